"""Cooperative cancellation shared by the sync pipeline and the HTTP client."""

from __future__ import annotations

import threading
import time
from typing import Optional


class CancellationRequested(Exception):
    """Raised to cooperatively abort long-running tasks on timeout or request."""
    pass


class CancelToken:
    """Cancellation flag passed through every I/O call of a sync run.

    Sleeps go through :meth:`wait` so a cancelled run wakes up immediately
    instead of finishing its backoff.
    """

    def __init__(self, deadline: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline = deadline
        self._timer: Optional[threading.Timer] = None
        self.reason: Optional[str] = None

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancelToken":
        token = cls(deadline=time.monotonic() + seconds)
        timer = threading.Timer(seconds, token.cancel, kwargs={"reason": f"timed out after {seconds:g}s"})
        timer.daemon = True
        timer.start()
        token._timer = timer
        return token

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        if not self._event.is_set() and self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel(reason="deadline exceeded")
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise CancellationRequested(self.reason or "cancelled")

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when unbounded."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def wait(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first; raises when cancelled."""
        self.raise_if_cancelled()
        if seconds > 0 and self._event.wait(timeout=seconds):
            raise CancellationRequested(self.reason or "cancelled")
        self.raise_if_cancelled()

    def dispose(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


__all__ = ["CancellationRequested", "CancelToken"]
