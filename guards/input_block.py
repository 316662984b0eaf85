"""Process-wide input-block flag shared with navigation interceptors."""

import threading


class InputBlockFlag:
    """
    Whether navigation input must be intercepted, plus interceptor liveness.

    Only the lock engine calls set_blocking(). Interceptor hosts (the
    foreground monitor, or a device-side accessibility service bridge)
    read is_blocking() and report their own liveness through
    mark_connected() / mark_disconnected().
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._blocking = False
        self._connected = False

    def is_blocking(self) -> bool:
        with self._lock:
            return self._blocking

    def set_blocking(self, blocking: bool) -> None:
        with self._lock:
            self._blocking = bool(blocking)

    def is_connected(self) -> bool:
        with self._lock:
            return self._connected

    def mark_connected(self) -> None:
        with self._lock:
            self._connected = True

    def mark_disconnected(self) -> None:
        with self._lock:
            self._connected = False
