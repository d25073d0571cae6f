from __future__ import annotations

import logging
import sys
from pathlib import Path

from .config import BridgeConfig

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_HANDLER_NAME = "membridge"


def configure_logging(cfg: BridgeConfig) -> logging.Handler:
    """Attach a single handler to the `membridge` logger.

    Logs go to `cfg.log_path` in append mode, or to stderr when no path is
    configured. Calling this again replaces the previous handler.
    """

    root = logging.getLogger("membridge")
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
            existing.close()
    handler: logging.Handler
    if cfg.log_path and cfg.log_path.strip():
        log_path = Path(cfg.log_path).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    level = logging.getLevelName(cfg.log_level.upper())
    root.setLevel(level if isinstance(level, int) else logging.INFO)
    return handler
