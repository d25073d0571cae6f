import logging
from pathlib import Path

from membridge.config import BridgeConfig
from membridge.log import configure_logging


def _remove(handler: logging.Handler) -> None:
    logger = logging.getLogger("membridge")
    logger.removeHandler(handler)
    handler.close()


def test_configure_logging_writes_to_file(tmp_path: Path) -> None:
    log_path = tmp_path / "nested" / "bridge.log"
    handler = configure_logging(BridgeConfig(log_path=str(log_path), log_level="debug"))
    try:
        logging.getLogger("membridge.event_listeners").debug("mapped %s -> %s", "s1", 1)
        handler.flush()
    finally:
        _remove(handler)

    text = log_path.read_text()
    assert "DEBUG [membridge.event_listeners] mapped s1 -> 1" in text
    assert logging.getLogger("membridge").level == logging.DEBUG


def test_configure_logging_is_idempotent(tmp_path: Path) -> None:
    cfg = BridgeConfig(log_path=str(tmp_path / "bridge.log"))
    first = configure_logging(cfg)
    second = configure_logging(cfg)
    try:
        named = [h for h in logging.getLogger("membridge").handlers if h.get_name() == "membridge"]
        assert named == [second]
        assert first not in logging.getLogger("membridge").handlers
    finally:
        _remove(second)


def test_configure_logging_falls_back_to_stderr() -> None:
    handler = configure_logging(BridgeConfig(log_path="", log_level="bogus"))
    try:
        assert isinstance(handler, logging.StreamHandler)
        assert not isinstance(handler, logging.FileHandler)
        assert logging.getLogger("membridge").level == logging.INFO
    finally:
        _remove(handler)
