from __future__ import annotations

import logging

from .errors import WorkerError
from .worker_client import WorkerClient

logger = logging.getLogger(__name__)

CONTEXT_HEADING = "## Relevant Context from Past Sessions"


class ContextInjector:
    def __init__(self, client: WorkerClient) -> None:
        self.client = client

    def inject_context(self, project: str) -> str:
        try:
            context = self.client.get_project_context(project)
        except WorkerError as exc:
            logger.warning("failed to fetch memory context for %s", project, exc_info=exc)
            return ""
        if not context.strip():
            logger.info("no memory context available for %s", project)
            return ""
        logger.info("injected memory context for %s (%d chars)", project, len(context))
        return context

    def get_system_prompt_addition(self, project: str) -> str:
        context = self.inject_context(project)
        if not context:
            return ""
        return f"\n{CONTEXT_HEADING}\n\n{context}\n\n---\n"
