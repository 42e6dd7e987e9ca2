"""Cancellation tokens shared by process termination and pipe teardown.

Responsibilities:
- Carry one cancellation signal per operation, explicit or deadline-driven.
- Run registered callbacks exactly once when the signal fires.
- Propagate cancellation from a caller-owned token to per-engine child tokens.
"""

from __future__ import annotations

import threading
from typing import Callable


DEADLINE_REASON = "deadline exceeded"
EXPLICIT_REASON = "cancelled by caller"


class CancellationToken:
    """Thread-safe, one-shot cancellation signal."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._reason: str | None = None
        self._callbacks: list[Callable[[str], None]] = []
        self._timer: threading.Timer | None = None

    @classmethod
    def with_timeout(cls, seconds: float) -> CancellationToken:
        """Create a token that cancels itself after `seconds`."""

        token = cls()
        token.cancel_after(seconds)
        return token

    def cancel_after(self, seconds: float) -> None:
        """Arm a deadline; an earlier deadline on the same token is replaced."""

        if seconds <= 0:
            raise ValueError("`seconds` must be positive.")
        timer = threading.Timer(seconds, self.cancel, kwargs={"reason": DEADLINE_REASON})
        timer.daemon = True
        with self._lock:
            if self._event.is_set():
                return
            previous = self._timer
            self._timer = timer
        if previous is not None:
            previous.cancel()
        timer.start()

    @property
    def cancelled(self) -> bool:
        """Return whether the token has fired."""

        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Return why the token fired, or `None` while it is live."""

        return self._reason

    def cancel(self, reason: str = EXPLICIT_REASON) -> bool:
        """Fire the token; returns `False` when it had already fired."""

        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
            timer = self._timer
            self._timer = None
        if timer is not None:
            timer.cancel()
        for callback in callbacks:
            callback(reason)
        return True

    def add_callback(self, callback: Callable[[str], None]) -> None:
        """Register a callback; it runs immediately when the token already fired."""

        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
            reason = self._reason or EXPLICIT_REASON
        callback(reason)

    def remove_callback(self, callback: Callable[[str], None]) -> None:
        """Unregister a callback that has not run yet."""

        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def child(self) -> CancellationToken:
        """Create a token cancelled with this one, but cancellable on its own."""

        child = CancellationToken()
        self.add_callback(child._cancel_from_parent)
        return child

    def release_child(self, child: CancellationToken) -> None:
        """Stop propagating cancellation to `child`."""

        self.remove_callback(child._cancel_from_parent)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the token fires or `timeout` elapses."""

        return self._event.wait(timeout)

    def dispose(self) -> None:
        """Stop a pending deadline timer without firing the token."""

        with self._lock:
            timer = self._timer
            self._timer = None
        if timer is not None:
            timer.cancel()

    def _cancel_from_parent(self, reason: str) -> None:
        self.cancel(reason)
