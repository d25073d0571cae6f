from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .config import BridgeConfig, load_config
from .context_injector import ContextInjector
from .errors import MemoryUnavailableError
from .event_listeners import EventListeners
from .events import EventBus
from .project_name import current_project
from .worker_client import WorkerClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BridgeStatus:
    initialized: bool
    worker_ready: bool
    worker_url: str
    current_project: str


def client_from_config(cfg: BridgeConfig) -> WorkerClient:
    return WorkerClient(
        cfg.worker_base_url,
        timeout_s=cfg.request_timeout_s,
        health_timeout_s=cfg.health_timeout_s,
        poll_interval_s=cfg.ready_poll_interval_ms / 1000.0,
    )


class MemoryBridge:
    """Owns the worker client, event listeners and context injector.

    Construct one per host process and pass it around. When the worker is
    not reachable at `initialize()` the bridge stays up in a degraded mode
    where context lookups return None and searches raise
    `MemoryUnavailableError`.
    """

    def __init__(
        self,
        config: BridgeConfig | None = None,
        *,
        client: WorkerClient | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.config = config or load_config()
        self.client = client or client_from_config(self.config)
        self.listeners = EventListeners(
            self.client, bus=bus, project_override=self.config.project
        )
        self.context_injector = ContextInjector(self.client)
        self.initialized = False
        self.memory_available = False

    def initialize(self) -> None:
        if self.initialized:
            logger.info("memory bridge already initialized")
            return
        logger.info("initializing memory bridge (worker %s)", self.client.worker_url)
        if not self.client.wait_for_ready(self.config.ready_timeout_ms):
            logger.error(
                "worker not ready after %sms; memory features unavailable",
                self.config.ready_timeout_ms,
            )
            self.memory_available = False
            return
        self.listeners.initialize()
        self.initialized = True
        self.memory_available = True
        logger.info("memory bridge initialized for project %s", self.current_project())

    def current_project(self) -> str:
        return current_project(self.config.project)

    def get_status(self) -> BridgeStatus:
        worker_ready = self.memory_available and self.client.health_check()
        return BridgeStatus(
            initialized=self.initialized,
            worker_ready=worker_ready,
            worker_url=self.client.worker_url,
            current_project=self.current_project(),
        )

    def get_project_context(self, project: str | None = None) -> str | None:
        if not self.memory_available:
            logger.warning("memory features are not available")
            return None
        return self.context_injector.inject_context(project or self.current_project())

    def search_memory(
        self,
        query: str,
        *,
        limit: int | None = 10,
        type: str | None = None,
        project: str | None = None,
    ) -> dict[str, Any]:
        if not self.memory_available:
            raise MemoryUnavailableError("memory features not available")
        return self.client.search(query, limit=limit, type=type, project=project)

    def shutdown(self) -> None:
        logger.info("shutting down memory bridge")
        self.listeners.close()
        self.initialized = False
        self.memory_available = False
