from __future__ import annotations

import json
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import typer
from rich import print

from membridge.config import BridgeConfig, load_config
from membridge.errors import WorkerError


def config_from_options(config_path: str | None, worker_url: str | None) -> BridgeConfig:
    cfg = load_config(Path(config_path) if config_path else None)
    if worker_url:
        cfg.worker_url = worker_url
    return cfg


def exit_on_worker_error(exc: WorkerError) -> None:
    print(f"[red]{exc}[/red]")
    raise typer.Exit(code=1) from exc


def read_events(source: str | None) -> Iterator[dict[str, Any]]:
    """Yield host events from a JSON array, a single JSON object or JSONL."""

    raw = sys.stdin.read() if source in {None, "-"} else Path(str(source)).read_text()
    if not raw.strip():
        return
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        payload = None
    if isinstance(payload, list):
        yield from (item for item in payload if isinstance(item, dict))
        return
    if isinstance(payload, dict):
        yield payload
        return
    for lineno, line in enumerate(raw.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            item = json.loads(line)
        except json.JSONDecodeError as exc:
            print(f"[red]Invalid event on line {lineno}: {exc}[/red]")
            raise typer.Exit(code=1) from exc
        if isinstance(item, dict):
            yield item
