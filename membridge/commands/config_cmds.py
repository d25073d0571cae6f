from __future__ import annotations

from pathlib import Path

import typer
from rich import print
from rich.markup import escape

from membridge.config import BridgeConfig, save_config


def init_config_cmd(*, cfg: BridgeConfig, path: Path, force: bool) -> None:
    """Write the effective settings to the config file."""

    try:
        written = save_config(cfg, path, overwrite=force)
    except FileExistsError:
        print(f"[yellow]Config already exists: {escape(str(path))}[/yellow]")
        print("Use --force to overwrite it.")
        raise typer.Exit(code=1) from None
    print(f"[green]Wrote config to {escape(str(written))}[/green]")
