from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

from . import http_client
from .errors import WorkerError, WorkerHTTPError

logger = logging.getLogger(__name__)

DEFAULT_WORKER_PORT = 37777
DEFAULT_TIMEOUT_S = 30.0
DEFAULT_HEALTH_TIMEOUT_S = 5.0
DEFAULT_POLL_INTERVAL_S = 0.5

HEALTH_ERROR = {"status": "error", "version": "unknown"}


@dataclass(frozen=True, slots=True)
class InitSessionResponse:
    session_db_id: int
    prompt_number: int
    skipped: bool
    reason: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> InitSessionResponse:
        skipped = bool(payload.get("skipped"))
        session_db_id = payload.get("sessionDbId")
        if session_db_id is None and not skipped:
            raise ValueError("init response is missing sessionDbId")
        prompt_number = payload.get("promptNumber")
        reason = payload.get("reason")
        return cls(
            session_db_id=int(session_db_id) if session_db_id is not None else 0,
            prompt_number=int(prompt_number) if prompt_number is not None else 1,
            skipped=skipped,
            reason=str(reason) if reason is not None else None,
        )


@dataclass(frozen=True, slots=True)
class ObservationRequest:
    session_db_id: int
    prompt_number: int
    tool_name: str
    tool_input: Any
    tool_output: str
    cwd: str
    timestamp: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "sessionDbId": self.session_db_id,
            "promptNumber": self.prompt_number,
            "toolName": self.tool_name,
            "toolInput": self.tool_input,
            "toolOutput": self.tool_output,
            "cwd": self.cwd,
            "timestamp": self.timestamp,
        }


class WorkerClient:
    """HTTP client for the memory worker API.

    Health and readiness checks (`check_health`, `readiness_check`,
    `wait_for_ready`) never raise.
    Every other call raises `WorkerHTTPError` on a non-2xx status,
    `WorkerTimeoutError` when `timeout_s` elapses and
    `WorkerUnavailableError` when the worker cannot be reached.
    """

    def __init__(
        self,
        port_or_url: int | str = DEFAULT_WORKER_PORT,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        health_timeout_s: float = DEFAULT_HEALTH_TIMEOUT_S,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
    ) -> None:
        if isinstance(port_or_url, str):
            self._base_url = http_client.build_base_url(port_or_url)
        else:
            self._base_url = f"http://127.0.0.1:{int(port_or_url)}"
        self.timeout_s = timeout_s
        self.health_timeout_s = health_timeout_s
        self.poll_interval_s = poll_interval_s

    @property
    def worker_url(self) -> str:
        return self._base_url

    @property
    def port(self) -> int:
        try:
            port = urlparse(self._base_url).port
        except ValueError:
            port = None
        return port or DEFAULT_WORKER_PORT

    def _call(
        self,
        method: str,
        path: str,
        *,
        action: str,
        query: dict[str, Any] | None = None,
        body: Any = None,
        timeout_s: float | None = None,
    ) -> http_client.HttpResponse:
        resp = http_client.request(
            method,
            f"{self._base_url}{path}",
            query=query,
            body=body,
            timeout_s=self.timeout_s if timeout_s is None else timeout_s,
            action=action,
        )
        if not resp.ok:
            raise WorkerHTTPError(action, resp.status, resp.reason)
        return resp

    def check_health(self) -> dict[str, Any]:
        try:
            resp = http_client.request(
                "GET",
                f"{self._base_url}/api/health",
                timeout_s=self.health_timeout_s,
                action="Health check",
            )
            payload = resp.json()
        except (WorkerError, ValueError) as exc:
            logger.warning("worker health check failed: %s", exc)
            return dict(HEALTH_ERROR)
        if not isinstance(payload, dict):
            logger.warning("worker health check returned %s", type(payload).__name__)
            return dict(HEALTH_ERROR)
        return payload

    def health_check(self) -> bool:
        status = self.check_health().get("status")
        return status is None or status == "ok"

    def readiness_check(self, timeout_s: float | None = None) -> bool:
        try:
            resp = http_client.request(
                "GET",
                f"{self._base_url}/api/readiness",
                timeout_s=self.health_timeout_s if timeout_s is None else timeout_s,
                action="Readiness check",
            )
        except WorkerError:
            return False
        return resp.ok

    def wait_for_ready(self, timeout_ms: int = 30000) -> bool:
        deadline = time.monotonic() + timeout_ms / 1000.0
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            if self.readiness_check(timeout_s=min(self.health_timeout_s, remaining)):
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            time.sleep(min(self.poll_interval_s, remaining))

    def init_session(
        self, content_session_id: str, project: str, prompt: str
    ) -> InitSessionResponse:
        resp = self._call(
            "POST",
            "/api/sessions/init",
            action="Session init",
            body={"contentSessionId": content_session_id, "project": project, "prompt": prompt},
        )
        payload = resp.json()
        if not isinstance(payload, dict):
            raise ValueError(f"unexpected init response: {type(payload).__name__}")
        return InitSessionResponse.from_payload(payload)

    def add_observation(self, observation: ObservationRequest) -> None:
        self._call(
            "POST",
            "/api/sessions/observations",
            action="Observation add",
            body=observation.to_payload(),
        )

    def complete_session(self, session_db_id: int) -> None:
        self._call("POST", f"/sessions/{int(session_db_id)}/complete", action="Session complete")

    def get_project_context(self, project: str) -> str:
        resp = self._call(
            "GET",
            "/api/context/inject",
            action="Context fetch",
            query={"project": project},
        )
        return resp.text()

    def search(
        self,
        query: str,
        *,
        limit: int | None = 10,
        type: str | None = None,
        project: str | None = None,
    ) -> dict[str, Any]:
        resp = self._call(
            "GET",
            "/api/search",
            action="Search",
            query={
                "q": query,
                "limit": 10 if limit is None else limit,
                "type": type or None,
                "project": project or None,
            },
        )
        payload = resp.json()
        return payload if isinstance(payload, dict) else {"results": [], "total": 0}

    def search_memories(
        self, query: str, *, type: str | None = None, limit: int | None = None
    ) -> dict[str, Any]:
        return self.search(query, type=type, limit=limit)

    def get_observations(self, ids: list[int]) -> list[Any]:
        resp = self._call(
            "POST",
            "/api/observations/batch",
            action="Get observations",
            body={"ids": [int(i) for i in ids]},
        )
        payload = resp.json()
        return payload if isinstance(payload, list) else []

    def get_timeline(
        self, session_db_id: int, observation_id: int, window: int = 5
    ) -> dict[str, Any]:
        resp = self._call(
            "GET",
            "/api/timeline",
            action="Timeline fetch",
            query={"session": session_db_id, "observation": observation_id, "window": window},
        )
        payload = resp.json()
        return payload if isinstance(payload, dict) else {}
