from __future__ import annotations

import logging
import threading

logger = logging.getLogger(__name__)

DEFAULT_PROMPT_NUMBER = 1


class SessionMapper:
    """In-memory mapping between host session ids and worker session ids.

    Forward and reverse lookups are kept in two dicts that are always updated
    together, so a host id maps to at most one worker id and vice versa. The
    per-session prompt counter lives and dies with the mapping.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._forward: dict[str, int] = {}
        self._reverse: dict[int, str] = {}
        self._prompt_numbers: dict[str, int] = {}

    def map(self, host_id: str, remote_id: int, *, prompt_number: int | None = None) -> None:
        with self._lock:
            previous_remote = self._forward.get(host_id)
            if previous_remote is not None and previous_remote != remote_id:
                self._reverse.pop(previous_remote, None)
            previous_host = self._reverse.get(remote_id)
            if previous_host is not None and previous_host != host_id:
                self._forward.pop(previous_host, None)
                self._prompt_numbers.pop(previous_host, None)
            self._forward[host_id] = remote_id
            self._reverse[remote_id] = host_id
            if prompt_number is not None:
                self._prompt_numbers[host_id] = prompt_number
        logger.debug("mapped session %s -> %s", host_id, remote_id)

    def resolve(self, host_id: str) -> int | None:
        return self._forward.get(host_id)

    def resolve_reverse(self, remote_id: int) -> str | None:
        return self._reverse.get(remote_id)

    def is_mapped(self, host_id: str) -> bool:
        return host_id in self._forward

    def unmap(self, host_id: str) -> None:
        with self._lock:
            remote_id = self._forward.pop(host_id, None)
            self._prompt_numbers.pop(host_id, None)
            if remote_id is None:
                return
            if self._reverse.get(remote_id) == host_id:
                del self._reverse[remote_id]
        logger.debug("unmapped session %s", host_id)

    def size(self) -> int:
        return len(self._forward)

    def clear(self) -> None:
        with self._lock:
            self._forward.clear()
            self._reverse.clear()
            self._prompt_numbers.clear()
        logger.debug("cleared all session mappings")

    def all(self) -> dict[str, int]:
        with self._lock:
            return dict(self._forward)

    def prompt_number(self, host_id: str) -> int:
        return self._prompt_numbers.get(host_id, DEFAULT_PROMPT_NUMBER)

    def set_prompt_number(self, host_id: str, prompt_number: int) -> None:
        with self._lock:
            self._prompt_numbers[host_id] = prompt_number

    def increment_prompt_number(self, host_id: str) -> int:
        with self._lock:
            current = self._prompt_numbers.get(host_id, DEFAULT_PROMPT_NUMBER) + 1
            self._prompt_numbers[host_id] = current
            return current

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, host_id: object) -> bool:
        return host_id in self._forward
