from __future__ import annotations

import json
import socket
import threading
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, HTTPServer, ThreadingHTTPServer
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlparse

import pytest

from membridge.worker_client import WorkerClient


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "MEMBRIDGE_WORKER_HOST",
        "MEMBRIDGE_WORKER_PORT",
        "MEMBRIDGE_WORKER_URL",
        "MEMBRIDGE_REQUEST_TIMEOUT_S",
        "MEMBRIDGE_HEALTH_TIMEOUT_S",
        "MEMBRIDGE_READY_TIMEOUT_MS",
        "MEMBRIDGE_READY_POLL_INTERVAL_MS",
        "MEMBRIDGE_PROJECT",
        "MEMBRIDGE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MEMBRIDGE_CONFIG", str(tmp_path / "config" / "config.json"))
    monkeypatch.setenv("MEMBRIDGE_LOG", str(tmp_path / "logs" / "bridge.log"))


@dataclass
class RecordedRequest:
    method: str
    path: str
    query: dict[str, list[str]]
    body: Any


@dataclass
class FakeWorker:
    url: str = ""
    requests: list[RecordedRequest] = field(default_factory=list)
    health: dict[str, Any] = field(
        default_factory=lambda: {"status": "ok", "version": "1.0.0", "apiVersion": "1.0"}
    )
    ready: bool = True
    init_response: dict[str, Any] = field(
        default_factory=lambda: {"sessionDbId": 123, "promptNumber": 1, "skipped": False}
    )
    context_text: str = "Test memory context"
    search_response: dict[str, Any] = field(
        default_factory=lambda: {
            "results": [{"id": 1, "toolName": "bash", "summary": "Test command"}],
            "total": 1,
        }
    )
    # path -> status code override
    fail: dict[str, int] = field(default_factory=dict)
    # path -> seconds to sleep before answering
    delay: dict[str, float] = field(default_factory=dict)
    # path -> seconds between body bytes
    trickle: dict[str, float] = field(default_factory=dict)
    known_sessions: set[int] = field(default_factory=lambda: {123})
    lock: threading.Lock = field(default_factory=threading.Lock)

    def calls(self, path: str) -> list[RecordedRequest]:
        with self.lock:
            return [req for req in self.requests if req.path == path]

    def client(self, **kwargs: Any) -> WorkerClient:
        kwargs.setdefault("poll_interval_s", 0.01)
        return WorkerClient(self.url, **kwargs)


def _build_handler(worker: FakeWorker) -> type[BaseHTTPRequestHandler]:
    class Handler(BaseHTTPRequestHandler):
        def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
            return

        def _send(self, status: int, payload: Any = None, *, text: str | None = None) -> None:
            if text is not None:
                body = text.encode("utf-8")
                content_type = "text/plain; charset=utf-8"
            elif payload is not None:
                body = json.dumps(payload).encode("utf-8")
                content_type = "application/json"
            else:
                body = b""
                content_type = "application/json"
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            interval = worker.trickle.get(urlparse(self.path).path)
            if not interval:
                if body:
                    self.wfile.write(body)
                return
            try:
                for i in range(len(body)):
                    self.wfile.write(body[i : i + 1])
                    self.wfile.flush()
                    time.sleep(interval)
            except OSError:
                return

        def _record(self) -> tuple[str, dict[str, list[str]], Any]:
            parsed = urlparse(self.path)
            length = int(self.headers.get("Content-Length") or 0)
            raw = self.rfile.read(length) if length else b""
            body = json.loads(raw.decode("utf-8")) if raw else None
            query = parse_qs(parsed.query)
            with worker.lock:
                worker.requests.append(RecordedRequest(self.command, parsed.path, query, body))
            delay = worker.delay.get(parsed.path)
            if delay:
                time.sleep(delay)
            return parsed.path, query, body

        def do_GET(self) -> None:  # noqa: N802
            path, query, _ = self._record()
            if path in worker.fail:
                self._send(worker.fail[path], {"error": "boom"})
                return
            if path == "/api/health":
                self._send(200, worker.health)
            elif path == "/api/readiness":
                self._send(200 if worker.ready else 503, {"ready": worker.ready})
            elif path == "/api/context/inject":
                self._send(200, text=worker.context_text)
            elif path == "/api/search":
                self._send(200, worker.search_response)
            elif path == "/api/timeline":
                self._send(
                    200,
                    {
                        "session": int(query["session"][0]),
                        "observation": int(query["observation"][0]),
                        "window": int(query["window"][0]),
                        "items": [],
                    },
                )
            else:
                self._send(404, {"error": "not_found"})

        def do_POST(self) -> None:  # noqa: N802
            path, _, body = self._record()
            if path in worker.fail:
                self._send(worker.fail[path], {"error": "boom"})
                return
            if path == "/api/sessions/init":
                self._send(200, worker.init_response)
            elif path == "/api/sessions/observations":
                self._send(200)
            elif path == "/api/observations/batch":
                ids = (body or {}).get("ids", [])
                self._send(200, [{"id": i, "title": f"obs {i}"} for i in ids])
            elif path.startswith("/sessions/") and path.endswith("/complete"):
                session_id = int(path.split("/")[2])
                if session_id in worker.known_sessions:
                    self._send(200)
                else:
                    self._send(404, {"error": "unknown session"})
            else:
                self._send(404, {"error": "not_found"})

    return Handler


@pytest.fixture
def worker() -> Iterator[FakeWorker]:
    fake = FakeWorker()
    server = ThreadingHTTPServer(("127.0.0.1", 0), _build_handler(fake))
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    fake.url = f"http://127.0.0.1:{int(server.server_address[1])}"
    try:
        yield fake
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def closed_port() -> int:
    server = HTTPServer(("127.0.0.1", 0), BaseHTTPRequestHandler)
    port = int(server.server_address[1])
    server.server_close()
    return port


@pytest.fixture
def silent_port() -> Iterator[int]:
    """A port that accepts connections but never answers."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(8)
    try:
        yield int(listener.getsockname()[1])
    finally:
        listener.close()
