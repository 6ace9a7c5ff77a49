"""Single-shot cancellation signal.

Shared between build workers, the CI wait loop and the CLI's Ctrl-C
handler. The signal trips at most once; the first reason wins and
callbacks registered with `on_trip` run exactly once.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

__all__ = ["CancelSignal"]


class CancelSignal:
    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: str | None = None
        self._callbacks: list[Callable[[], None]] = []

    def trip(self, reason: str) -> bool:
        """Trip the signal. Returns False if it had already been tripped."""
        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            callback()
        return True

    def is_set(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def wait(self, timeout: float | None = None) -> bool:
        """Block up to `timeout` seconds; True if the signal tripped."""
        return self._event.wait(timeout)

    def on_trip(self, callback: Callable[[], None]) -> None:
        """Run `callback` when the signal trips (immediately if it already has)."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def off_trip(self, callback: Callable[[], None]) -> None:
        """Forget a callback registered with `on_trip` (no-op if it already ran)."""
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
