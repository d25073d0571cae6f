from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("~/.config/membridge/config.json").expanduser()
DEFAULT_CONFIG_PATH_JSONC = Path("~/.config/membridge/config.jsonc").expanduser()

CONFIG_ENV_OVERRIDES = {
    "worker_host": "MEMBRIDGE_WORKER_HOST",
    "worker_port": "MEMBRIDGE_WORKER_PORT",
    "worker_url": "MEMBRIDGE_WORKER_URL",
    "request_timeout_s": "MEMBRIDGE_REQUEST_TIMEOUT_S",
    "health_timeout_s": "MEMBRIDGE_HEALTH_TIMEOUT_S",
    "ready_timeout_ms": "MEMBRIDGE_READY_TIMEOUT_MS",
    "ready_poll_interval_ms": "MEMBRIDGE_READY_POLL_INTERVAL_MS",
    "project": "MEMBRIDGE_PROJECT",
    "log_level": "MEMBRIDGE_LOG_LEVEL",
    "log_path": "MEMBRIDGE_LOG",
}

_INT_KEYS = {"worker_port", "ready_timeout_ms", "ready_poll_interval_ms"}
_FLOAT_KEYS = {"request_timeout_s", "health_timeout_s"}


def get_config_path(path: Path | None = None) -> Path:
    if path is not None:
        return path.expanduser()
    env_path = os.getenv("MEMBRIDGE_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    if not DEFAULT_CONFIG_PATH.exists() and DEFAULT_CONFIG_PATH_JSONC.exists():
        return DEFAULT_CONFIG_PATH_JSONC
    return DEFAULT_CONFIG_PATH


def _strip_json_comments(text: str) -> str:
    """Strip // and /* */ comments outside of JSON strings."""
    result: list[str] = []
    in_string = False
    escape_next = False
    i = 0
    while i < len(text):
        char = text[i]
        if in_string:
            result.append(char)
            if escape_next:
                escape_next = False
            elif char == "\\":
                escape_next = True
            elif char == '"':
                in_string = False
            i += 1
            continue
        if char == '"':
            in_string = True
            result.append(char)
            i += 1
            continue
        if text.startswith("//", i):
            newline = text.find("\n", i)
            i = len(text) if newline == -1 else newline
            continue
        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end == -1:
                raise ValueError("unterminated block comment")
            i = end + 2
            continue
        result.append(char)
        i += 1
    return "".join(result)


def _strip_trailing_commas(text: str) -> str:
    """Remove trailing commas before closing braces/brackets."""
    result: list[str] = []
    in_string = False
    escape_next = False
    i = 0
    while i < len(text):
        char = text[i]
        if escape_next:
            result.append(char)
            escape_next = False
            i += 1
            continue
        if char == "\\" and in_string:
            result.append(char)
            escape_next = True
            i += 1
            continue
        if char == '"':
            in_string = not in_string
            result.append(char)
            i += 1
            continue
        if not in_string and char == ",":
            j = i + 1
            while j < len(text) and text[j].isspace():
                j += 1
            if j < len(text) and text[j] in {"]", "}"}:
                i += 1
                continue
        result.append(char)
        i += 1
    return "".join(result)


def _parse_config_text(raw: str) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        try:
            data = json.loads(_strip_trailing_commas(_strip_json_comments(raw)))
        except ValueError as exc:
            raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    return _parse_config_text(raw)


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class BridgeConfig:
    worker_host: str = "127.0.0.1"
    worker_port: int = 37777
    # Full base URL; takes precedence over host/port when set.
    worker_url: str | None = None
    request_timeout_s: float = 30.0
    health_timeout_s: float = 5.0
    ready_timeout_ms: int = 30000
    ready_poll_interval_ms: int = 500
    project: str | None = None
    log_level: str = "INFO"
    log_path: str | None = "~/.membridge/bridge.log"

    @property
    def worker_base_url(self) -> str:
        if self.worker_url and self.worker_url.strip():
            return self.worker_url.strip().rstrip("/")
        return f"http://{self.worker_host}:{self.worker_port}"


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _parse_float(value: object, default: float, *, key: str) -> float:
    if value is None:
        return default
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid float for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    if parsed <= 0:
        warnings.warn(f"Invalid float for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    return parsed


def _coerce_value(cfg: BridgeConfig, key: str, value: Any) -> Any:
    if key in _INT_KEYS:
        return _parse_int(value, getattr(cfg, key), key=key)
    if key in _FLOAT_KEYS:
        return _parse_float(value, getattr(cfg, key), key=key)
    if value is None:
        return None
    return str(value)


def load_config(path: Path | None = None) -> BridgeConfig:
    cfg = BridgeConfig()
    config_path = get_config_path(path)
    if config_path.exists():
        try:
            data = read_config_file(config_path)
        except ValueError as exc:
            warnings.warn(f"Invalid config file {config_path}: {exc}", RuntimeWarning, stacklevel=2)
            data = {}
        cfg = _apply_dict(cfg, data)
    cfg = _apply_dict(cfg, get_env_overrides())
    return cfg


def _apply_dict(cfg: BridgeConfig, data: dict[str, Any]) -> BridgeConfig:
    for key, value in data.items():
        if key not in CONFIG_ENV_OVERRIDES:
            continue
        setattr(cfg, key, _coerce_value(cfg, key, value))
    return cfg


def save_config(cfg: BridgeConfig, path: Path | None = None, *, overwrite: bool = False) -> Path:
    """Write the settable fields of `cfg` as JSON, skipping unset ones.

    Raises FileExistsError when the target exists and `overwrite` is false.
    """

    config_path = get_config_path(path)
    if config_path.exists() and not overwrite:
        raise FileExistsError(str(config_path))
    data = {
        key: getattr(cfg, key) for key in CONFIG_ENV_OVERRIDES if getattr(cfg, key) is not None
    }
    config_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = config_path.with_name(f"{config_path.name}.tmp")
    tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n")
    tmp_path.replace(config_path)
    return config_path
