from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from concurrent.futures import Executor, Future
from typing import Any, Protocol, TypedDict

logger = logging.getLogger(__name__)

SESSION_CREATED = "session.created"
SESSION_UPDATED = "session.updated"
MESSAGE_PART_UPDATED = "message.part.updated"

# Subscription order: created, part updated, updated.
BRIDGE_EVENT_TYPES = (SESSION_CREATED, MESSAGE_PART_UPDATED, SESSION_UPDATED)


class SessionTime(TypedDict, total=False):
    created: int
    updated: int
    archived: int | None


class SessionInfo(TypedDict, total=False):
    id: str
    directory: str
    title: str
    time: SessionTime


class ToolState(TypedDict, total=False):
    status: str
    input: dict[str, Any]
    output: Any


class MessagePart(TypedDict, total=False):
    id: str
    type: str
    sessionID: str
    name: str
    tool: str
    args: dict[str, Any]
    result: Any
    cwd: str
    state: ToolState


class HostEvent(TypedDict, total=False):
    type: str
    properties: dict[str, Any]


Handler = Callable[[HostEvent], None]


class EventBus(Protocol):
    def subscribe(self, event_type: str, handler: Handler) -> None: ...

    def unsubscribe(self, event_type: str, handler: Handler) -> None: ...


class LocalBus:
    """In-process publish/subscribe bus.

    Without an executor handlers run inline, one after another. With an
    executor each handler call is submitted and `publish` returns without
    waiting, so completions can arrive in any order.
    """

    def __init__(self, executor: Executor | None = None) -> None:
        self._executor = executor
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            return

    def subscriber_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, []))

    def publish(self, event: HostEvent) -> list[Future[None]]:
        futures: list[Future[None]] = []
        for handler in list(self._handlers.get(str(event.get("type") or ""), [])):
            if self._executor is None:
                self._dispatch(handler, event)
            else:
                futures.append(self._executor.submit(self._dispatch, handler, event))
        return futures

    @staticmethod
    def _dispatch(handler: Handler, event: HostEvent) -> None:
        try:
            handler(event)
        except Exception as exc:
            logger.warning("event handler failed for %s", event.get("type"), exc_info=exc)
