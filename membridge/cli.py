from __future__ import annotations

from pathlib import Path

import typer

from . import __version__
from .commands.common import config_from_options
from .commands.config_cmds import init_config_cmd
from .commands.worker_cmds import (
    context_cmd,
    health_cmd,
    observations_cmd,
    ready_cmd,
    replay_cmd,
    search_cmd,
    status_cmd,
    timeline_cmd,
)
from .config import BridgeConfig, get_config_path
from .events import LocalBus
from .integration import MemoryBridge, client_from_config
from .log import configure_logging
from .worker_client import WorkerClient

app = typer.Typer(help="membridge: capture OpenCode sessions into a claude-mem worker")


def _config(ctx: typer.Context) -> BridgeConfig:
    return ctx.obj["config"]


def _client(ctx: typer.Context) -> WorkerClient:
    return client_from_config(_config(ctx))


@app.callback()
def main(
    ctx: typer.Context,
    worker_url: str = typer.Option(None, help="Worker base URL (overrides config)"),
    config_path: str = typer.Option(None, "--config", help="Path to config file"),
) -> None:
    cfg = config_from_options(config_path, worker_url)
    configure_logging(cfg)
    ctx.obj = {
        "config": cfg,
        "config_path": get_config_path(Path(config_path) if config_path else None),
    }


@app.command()
def version() -> None:
    """Print the membridge version."""

    typer.echo(__version__)


@app.command("init-config")
def init_config(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config file"),
) -> None:
    """Write the effective settings to the config file."""

    init_config_cmd(cfg=_config(ctx), path=ctx.obj["config_path"], force=force)


@app.command()
def health(ctx: typer.Context) -> None:
    """Show worker health."""

    health_cmd(client=_client(ctx))


@app.command()
def ready(
    ctx: typer.Context,
    timeout_ms: int = typer.Option(None, help="How long to wait (defaults to config)"),
) -> None:
    """Wait for the worker to accept requests."""

    cfg = _config(ctx)
    ready_cmd(client=_client(ctx), timeout_ms=timeout_ms or cfg.ready_timeout_ms)


@app.command()
def status(ctx: typer.Context) -> None:
    """Initialize a bridge and show its status."""

    status_cmd(bridge=MemoryBridge(_config(ctx)))


@app.command()
def context(
    ctx: typer.Context,
    project: str = typer.Option(None, help="Project name (defaults to current directory)"),
) -> None:
    """Print memory context for a project."""

    context_cmd(bridge=MemoryBridge(_config(ctx)), project=project)


@app.command()
def search(
    ctx: typer.Context,
    query: str,
    limit: int = typer.Option(10, help="Max results"),
    type: str = typer.Option(None, "--type", help="Result type filter"),
    project: str = typer.Option(None, help="Project filter"),
) -> None:
    """Search memories."""

    search_cmd(client=_client(ctx), query=query, limit=limit, type=type, project=project)


@app.command()
def observations(ctx: typer.Context, ids: list[int]) -> None:
    """Fetch full observations by id."""

    observations_cmd(client=_client(ctx), ids=ids)


@app.command()
def timeline(
    ctx: typer.Context,
    session_db_id: int,
    observation_id: int,
    window: int = typer.Option(5, help="Observations on each side"),
) -> None:
    """Show the timeline around an observation."""

    timeline_cmd(
        client=_client(ctx),
        session_db_id=session_db_id,
        observation_id=observation_id,
        window=window,
    )


@app.command()
def replay(
    ctx: typer.Context,
    source: str = typer.Argument(None, help="JSON/JSONL event file ('-' or omitted for stdin)"),
) -> None:
    """Replay recorded host events through the bridge."""

    bus = LocalBus()
    replay_cmd(bridge=MemoryBridge(_config(ctx), bus=bus), bus=bus, source=source)


if __name__ == "__main__":
    app()
