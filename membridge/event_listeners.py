from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any

from .events import BRIDGE_EVENT_TYPES, EventBus, Handler, HostEvent
from .privacy import strip_from_json, strip_from_text
from .project_name import extract_project_name
from .session_mapper import SessionMapper
from .worker_client import ObservationRequest, WorkerClient

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TITLE = "New session"


@dataclass(frozen=True, slots=True)
class ToolCall:
    session_id: str
    tool_name: str
    args: Any
    result: str
    cwd: str


def _now_ms() -> int:
    return int(time.time() * 1000)


def _result_text(result: Any) -> str:
    if result is None:
        return ""
    if isinstance(result, str):
        return result
    try:
        return json.dumps(result, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(result)


def completed_tool_call(part: dict[str, Any]) -> ToolCall | None:
    """Return the tool call carried by a message part, if it has finished.

    Accepts both the flat `tool_call` part and OpenCode's `tool` part whose
    `state.status` is `completed`. Anything else is not a tool call.
    """

    session_id = part.get("sessionID")
    if not isinstance(session_id, str) or not session_id:
        return None
    part_type = part.get("type")
    if part_type == "tool_call":
        status = part.get("status")
        if status is not None and status != "completed":
            return None
        tool_name = part.get("name") or part.get("tool")
        args = part.get("args")
        result = part.get("result")
    elif part_type == "tool":
        state = part.get("state")
        if not isinstance(state, dict) or state.get("status") != "completed":
            return None
        tool_name = part.get("tool") or part.get("name")
        args = state.get("input")
        result = state.get("output")
    else:
        return None
    if not tool_name:
        return None
    return ToolCall(
        session_id=session_id,
        tool_name=str(tool_name),
        args=args if args is not None else {},
        result=_result_text(result),
        cwd=str(part.get("cwd") or os.getcwd()),
    )


def _is_archived(info: dict[str, Any]) -> bool:
    session_time = info.get("time")
    if not isinstance(session_time, dict):
        return False
    return bool(session_time.get("archived"))


class EventListeners:
    """Bridge host bus events to the memory worker.

    A host session moves UNMAPPED -> MAPPED -> REMOVED. Sessions whose init
    was skipped by the worker never leave UNMAPPED, so none of their tool
    calls are captured. Worker failures are logged and swallowed; nothing
    raised here reaches the bus.
    """

    def __init__(
        self,
        client: WorkerClient,
        *,
        bus: EventBus | None = None,
        mapper: SessionMapper | None = None,
        project_override: str | None = None,
    ) -> None:
        self.client = client
        self.bus = bus
        self.mapper = mapper or SessionMapper()
        self.project_override = project_override
        self._subscriptions: list[tuple[str, Handler]] = []

    @property
    def standalone(self) -> bool:
        return self.bus is None

    @property
    def subscribed(self) -> bool:
        return bool(self._subscriptions)

    def initialize(self) -> None:
        if self.bus is None:
            logger.info("no host event bus; event listeners running in standalone mode")
            return
        if self._subscriptions:
            return
        handlers = (
            self.handle_session_created,
            self.handle_message_part_updated,
            self.handle_session_updated,
        )
        for event_type, handler in zip(BRIDGE_EVENT_TYPES, handlers, strict=True):
            self.bus.subscribe(event_type, handler)
            self._subscriptions.append((event_type, handler))
        logger.info("subscribed to host session and tool events")

    def close(self) -> None:
        if self.bus is not None:
            for event_type, handler in self._subscriptions:
                self.bus.unsubscribe(event_type, handler)
        self._subscriptions.clear()

    def handle_session_created(self, event: HostEvent) -> None:
        info = (event.get("properties") or {}).get("info") or {}
        session_id = info.get("id")
        if not session_id:
            return
        project = extract_project_name(str(info.get("directory") or ""), self.project_override)
        title = info.get("title") or DEFAULT_SESSION_TITLE
        logger.info("session created: %s", session_id)
        try:
            response = self.client.init_session(session_id, project, title)
        except Exception as exc:
            logger.warning("failed to initialize session %s", session_id, exc_info=exc)
            return
        if response.skipped:
            logger.info("session %s skipped by worker: %s", session_id, response.reason)
            return
        self.mapper.map(session_id, response.session_db_id, prompt_number=response.prompt_number)
        logger.info(
            "mapped %s -> %s (project=%s, prompt #%s)",
            session_id,
            response.session_db_id,
            project,
            response.prompt_number,
        )

    def handle_message_part_updated(self, event: HostEvent) -> None:
        part = (event.get("properties") or {}).get("part") or {}
        call = completed_tool_call(part)
        if call is None:
            return
        session_db_id = self.mapper.resolve(call.session_id)
        if session_db_id is None:
            logger.debug("no worker session for %s; dropping %s", call.session_id, call.tool_name)
            return
        observation = ObservationRequest(
            session_db_id=session_db_id,
            prompt_number=self.mapper.prompt_number(call.session_id),
            tool_name=call.tool_name,
            tool_input=strip_from_json(call.args),
            tool_output=strip_from_text(call.result),
            cwd=call.cwd,
            timestamp=_now_ms(),
        )
        try:
            self.client.add_observation(observation)
        except Exception as exc:
            logger.warning(
                "failed to add observation for %s (%s)",
                call.session_id,
                call.tool_name,
                exc_info=exc,
            )
            return
        logger.debug("added observation %s - %s", session_db_id, call.tool_name)

    def handle_session_updated(self, event: HostEvent) -> None:
        info = (event.get("properties") or {}).get("info") or {}
        if not _is_archived(info):
            return
        session_id = info.get("id")
        if not session_id:
            return
        session_db_id = self.mapper.resolve(session_id)
        if session_db_id is None:
            logger.debug("no worker session for archived %s", session_id)
            return
        try:
            self.client.complete_session(session_db_id)
        except Exception as exc:
            logger.warning("failed to complete session %s", session_db_id, exc_info=exc)
            return
        self.mapper.unmap(session_id)
        logger.info("completed session %s (%s)", session_db_id, session_id)

    def prompt_number(self, session_id: str) -> int:
        return self.mapper.prompt_number(session_id)

    def increment_prompt_number(self, session_id: str) -> int:
        return self.mapper.increment_prompt_number(session_id)
