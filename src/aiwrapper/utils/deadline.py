"""Wall-clock budget threaded through every awaited pipeline step."""

import time
from typing import Callable, Optional

from .errors import JobTimeoutError


class Deadline:
    """Absolute deadline for one delivery attempt.

    Steps call ``check()`` before starting work and pass ``remaining_ms()``
    down to provider requests so in-flight I/O never outlives the attempt.
    """

    def __init__(self, timeout_ms: int, clock: Callable[[], float] = time.monotonic):
        self.timeout_ms = timeout_ms
        self._clock = clock
        self._expires_at = clock() + timeout_ms / 1000.0

    @classmethod
    def unbounded(cls) -> "Deadline":
        return cls(timeout_ms=10 ** 9)

    def remaining_ms(self, cap: Optional[int] = None) -> int:
        """Whole milliseconds left, at most ``cap``.

        Raises:
            JobTimeoutError: Less than one millisecond remains
        """
        remaining = int((self._expires_at - self._clock()) * 1000)
        if remaining <= 0:
            raise JobTimeoutError(self.timeout_ms)
        if cap is not None:
            return min(remaining, cap)
        return remaining

    @property
    def expired(self) -> bool:
        return self._clock() >= self._expires_at

    def check(self) -> None:
        if self.expired:
            raise JobTimeoutError(self.timeout_ms)
