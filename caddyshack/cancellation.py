"""Cooperative cancellation for the blocking validator and admin calls."""
from __future__ import annotations

import threading
from typing import Callable


class CancelledError(RuntimeError):
    """Raised when a blocking call is abandoned because its token was cancelled."""


class CancelToken:
    """Thread-safe cancellation flag.

    Callbacks registered with :meth:`on_cancel` run once, on the thread that
    calls :meth:`cancel`; they are how an in-flight subprocess gets killed or a
    socket gets shut down while another thread is blocked on it.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register ``callback`` and return a function that unregisters it.

        Runs ``callback`` immediately when the token is already cancelled.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._remove(callback)
        callback()
        return lambda: None

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledError("operation cancelled")

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    def _remove(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
