from __future__ import annotations


class WorkerError(Exception):
    """Base class for failures talking to the memory worker."""


class WorkerUnavailableError(WorkerError):
    pass


class WorkerTimeoutError(WorkerError):
    def __init__(self, action: str, timeout_s: float) -> None:
        super().__init__(f"{action} timed out after {timeout_s:g}s")
        self.action = action
        self.timeout_s = timeout_s


class WorkerHTTPError(WorkerError):
    def __init__(self, action: str, status: int, reason: str) -> None:
        super().__init__(f"{action} failed: {status} {reason}".rstrip())
        self.action = action
        self.status = status
        self.reason = reason


class MemoryUnavailableError(WorkerError):
    pass
