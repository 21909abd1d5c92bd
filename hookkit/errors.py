"""Exception types raised by the dispatch pipeline."""


class HookError(Exception):
    """Base class for hookkit errors."""


class InvalidEventError(HookError, ValueError):
    """Standard input did not hold a usable event object."""


class HandlerTimeoutError(HookError, TimeoutError):
    """The handler chain did not finish inside the configured budget."""

    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(f"Handler execution timed out after {timeout_ms}ms")


class QueueLockError(HookError):
    """The retry queue file lock could not be acquired in time."""

    def __init__(self, path, timeout: float):
        self.path = path
        self.timeout = timeout
        super().__init__(f"Could not lock {path} within {timeout:.1f}s")
