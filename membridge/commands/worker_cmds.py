from __future__ import annotations

import json
from dataclasses import asdict

import typer
from rich import print, print_json
from rich.markup import escape

from membridge.commands.common import exit_on_worker_error, read_events
from membridge.errors import WorkerError
from membridge.events import LocalBus
from membridge.integration import MemoryBridge
from membridge.worker_client import WorkerClient


def health_cmd(*, client: WorkerClient) -> None:
    """Print worker health; exit non-zero when unhealthy."""

    health = client.check_health()
    print_json(data=health)
    status = health.get("status")
    if status is not None and status != "ok":
        raise typer.Exit(code=1)


def ready_cmd(*, client: WorkerClient, timeout_ms: int) -> None:
    """Wait until the worker accepts requests."""

    if not client.wait_for_ready(timeout_ms):
        print(f"[red]Worker at {client.worker_url} not ready after {timeout_ms}ms[/red]")
        raise typer.Exit(code=1)
    print(f"[green]Worker at {client.worker_url} is ready[/green]")


def status_cmd(*, bridge: MemoryBridge) -> None:
    bridge.initialize()
    print_json(data=asdict(bridge.get_status()))


def context_cmd(*, bridge: MemoryBridge, project: str | None) -> None:
    """Print the memory context block for a project."""

    bridge.initialize()
    if not bridge.memory_available:
        print("[red]Memory features are not available[/red]")
        raise typer.Exit(code=1)
    addition = bridge.context_injector.get_system_prompt_addition(
        project or bridge.current_project()
    )
    if not addition:
        print("[yellow]No memory context available[/yellow]")
        return
    print(escape(addition))


def search_cmd(
    *,
    client: WorkerClient,
    query: str,
    limit: int,
    type: str | None,
    project: str | None,
) -> None:
    """Search memories on the worker."""

    try:
        result = client.search(query, limit=limit, type=type, project=project)
    except WorkerError as exc:
        exit_on_worker_error(exc)
        return
    print_json(data=result)


def observations_cmd(*, client: WorkerClient, ids: list[int]) -> None:
    try:
        result = client.get_observations(ids)
    except WorkerError as exc:
        exit_on_worker_error(exc)
        return
    print_json(data=result)


def timeline_cmd(
    *, client: WorkerClient, session_db_id: int, observation_id: int, window: int
) -> None:
    try:
        result = client.get_timeline(session_db_id, observation_id, window)
    except WorkerError as exc:
        exit_on_worker_error(exc)
        return
    print_json(data=result)


def replay_cmd(*, bridge: MemoryBridge, bus: LocalBus, source: str | None) -> None:
    """Feed recorded host events through the bridge."""

    bridge.initialize()
    if not bridge.memory_available:
        print("[red]Memory features are not available[/red]")
        raise typer.Exit(code=1)
    count = 0
    try:
        for event in read_events(source):
            bus.publish(event)
            count += 1
    finally:
        mappings = bridge.listeners.mapper.all()
        bridge.shutdown()
    print(f"Replayed {count} events; {len(mappings)} active session mappings")
    if mappings:
        print(escape(json.dumps(mappings, ensure_ascii=False, sort_keys=True)))
