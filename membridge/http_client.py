from __future__ import annotations

import json
import socket
import time
from dataclasses import dataclass
from http.client import HTTPConnection, HTTPException, HTTPSConnection
from typing import Any
from urllib.parse import urlencode, urlparse

from .errors import WorkerTimeoutError, WorkerUnavailableError

_READ_CHUNK = 64 * 1024


def build_base_url(address: str) -> str:
    trimmed = address.strip().rstrip("/")
    if not trimmed:
        return ""
    parsed = urlparse(trimmed)
    if parsed.scheme:
        return trimmed
    return f"http://{trimmed}"


@dataclass(frozen=True, slots=True)
class HttpResponse:
    status: int
    reason: str
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        if not self.body:
            return None
        return json.loads(self.body.decode("utf-8"))


def _set_remaining(
    sock: socket.socket | None, deadline: float, timeout_s: float, action: str
) -> None:
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise WorkerTimeoutError(action, timeout_s)
    if sock is not None:
        sock.settimeout(remaining)


def request(
    method: str,
    url: str,
    *,
    query: dict[str, Any] | None = None,
    body: Any = None,
    headers: dict[str, str] | None = None,
    timeout_s: float = 30.0,
    action: str = "request",
) -> HttpResponse:
    parsed = urlparse(url)
    if not parsed.hostname:
        raise ValueError("missing hostname")
    if parsed.scheme == "https":
        conn = HTTPSConnection(parsed.hostname, parsed.port or 443, timeout=timeout_s)
    else:
        conn = HTTPConnection(parsed.hostname, parsed.port or 80, timeout=timeout_s)
    path = parsed.path or "/"
    params = [parsed.query] if parsed.query else []
    if query:
        params.append(urlencode({k: v for k, v in query.items() if v is not None}))
    if params:
        path = f"{path}?{'&'.join(p for p in params if p)}"
    body_bytes = None
    request_headers = {"Accept": "application/json"}
    if body is not None:
        body_bytes = json.dumps(body, ensure_ascii=False).encode("utf-8")
        request_headers["Content-Type"] = "application/json"
        request_headers["Content-Length"] = str(len(body_bytes))
    if headers:
        request_headers.update(headers)
    deadline = time.monotonic() + timeout_s
    try:
        conn.request(method, path, body=body_bytes, headers=request_headers)
        # getresponse() drops conn.sock when the server closes after replying.
        sock = getattr(conn, "sock", None)
        _set_remaining(sock, deadline, timeout_s, action)
        resp = conn.getresponse()
        chunks: list[bytes] = []
        while True:
            _set_remaining(sock, deadline, timeout_s, action)
            chunk = resp.read1(_READ_CHUNK)
            if not chunk:
                break
            chunks.append(chunk)
        return HttpResponse(
            status=int(resp.status), reason=resp.reason or "", body=b"".join(chunks)
        )
    except TimeoutError as exc:
        raise WorkerTimeoutError(action, timeout_s) from exc
    except (OSError, HTTPException) as exc:
        raise WorkerUnavailableError(f"{action} failed: {exc}") from exc
    finally:
        conn.close()
