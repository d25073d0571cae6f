from __future__ import annotations

import os
from pathlib import PurePath


def extract_project_name(directory: str, override: str | None = None) -> str:
    if override is not None and override.strip():
        return override.strip()
    path = PurePath(directory.rstrip("/\\") or directory)
    # Hidden directories (.git, .opencode) belong to their parent project.
    if path.name.startswith("."):
        return path.parent.name
    return path.name


def current_project(override: str | None = None) -> str:
    return extract_project_name(os.getcwd(), override)
