"""Cancellable time source used for every wait in a replacement."""

import threading
import time
from typing import Optional, Protocol

from .errors import OperationCancelledError


class Clock(Protocol):
    def now(self) -> float:
        ...

    def sleep(self, seconds: float, token: "CancelToken") -> None:
        """Block for ``seconds`` or until ``token`` is cancelled.

        Raises OperationCancelledError when the wait ends because of cancellation.
        """
        ...


class CancelToken:
    """Operator interrupt plus an optional deadline, checked at every suspension point."""

    def __init__(self, clock: Clock, timeout: Optional[float] = None) -> None:
        self.clock = clock
        self.deadline = clock.now() + timeout if timeout is not None else None
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "interrupted by operator") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self.deadline is not None and self.clock.now() >= self.deadline:
            self.cancel("deadline exceeded")
            return True
        return False

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(self.deadline - self.clock.now(), 0.0)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelledError(self._reason or "operation cancelled")

    def wait(self, seconds: float) -> bool:
        """Wait on the underlying event; True if it was set."""
        return self._event.wait(seconds)


class SystemClock:
    """Wall-clock implementation backed by ``time.monotonic``."""

    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float, token: CancelToken) -> None:
        token.raise_if_cancelled()
        remaining = token.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        token.wait(seconds)
        token.raise_if_cancelled()
