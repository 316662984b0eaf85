"""
Foreground watcher - the host-side source of intrusion signals.

Polls the focused window on the device. While the input-block flag is
raised, any window that does not belong to the locker (another app, the
notification shade, recents) is reported to the intrusion handler.
The monitor also reports its own liveness on the flag, which the engine
publishes as `watchdog_ready`.
"""

import re
import logging
import threading
from typing import Callable, Optional

import config

logger = logging.getLogger(__name__)

FOCUS_COMMAND = "dumpsys window | grep mCurrentFocus"

# mCurrentFocus=Window{4f1c2a u0 com.example/com.example.Main}
# mCurrentFocus=Window{9d0e11 u0 NotificationShade}
_FOCUS_RE = re.compile(r"mCurrentFocus=Window\{\S+ u\d+ ([^}\s]+)")


def parse_focused_package(output: str) -> Optional[str]:
    """
    Extract the package owning the focused window.

    Windows without a component (NotificationShade, StatusBar, ...) are
    system UI surfaces and are reported as the system UI package.

    Returns:
        Package name, or None when nothing is focused.
    """
    match = _FOCUS_RE.search(output)
    if match is None:
        return None
    name = match.group(1)
    if "/" in name:
        return name.split("/", 1)[0]
    return config.SYSTEM_UI_PACKAGE


class ForegroundMonitor:
    """
    Background poller raising intrusion signals.

    Args:
        channel: Privileged command channel.
        flag: Shared InputBlockFlag.
        on_intrusion: Called with the intruding package name.
        self_package: The locker package (never an intrusion).
    """

    def __init__(
        self,
        channel,
        flag,
        on_intrusion: Callable[[str], None],
        self_package: Optional[str] = None,
        interval: Optional[float] = None,
        idle_interval: Optional[float] = None,
    ) -> None:
        self.channel = channel
        self.flag = flag
        self.on_intrusion = on_intrusion
        self.self_package = self_package or config.LOCKER_PACKAGE
        self.interval = config.FOREGROUND_POLL_INTERVAL if interval is None else interval
        self.idle_interval = config.FOREGROUND_IDLE_POLL_INTERVAL if idle_interval is None else idle_interval
        self.should_stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self.should_stop.clear()
        self._thread = threading.Thread(target=self._monitor_loop, daemon=True)
        self._thread.start()
        logger.debug("Foreground monitor started")

    def stop(self) -> None:
        self.should_stop.set()
        if self._thread and self._thread is not threading.current_thread() and self._thread.is_alive():
            self._thread.join(timeout=2.0)
            if self._thread.is_alive():
                logger.warning("Foreground monitor did not stop within timeout")
        self._thread = None
        self.flag.mark_disconnected()

    def poll_once(self) -> Optional[str]:
        """
        Check the focused window once and raise an intrusion if needed.

        Returns:
            The focused package, or None if it could not be read.
        """
        result = self.channel.execute(FOCUS_COMMAND)
        if not result.success:
            self.flag.mark_disconnected()
            return None
        self.flag.mark_connected()

        package = parse_focused_package(result.stdout)
        if package and package != self.self_package and self.flag.is_blocking():
            try:
                self.on_intrusion(package)
            except Exception as e:
                logger.error(f"Intrusion handler error: {e}")
        return package

    def _monitor_loop(self) -> None:
        try:
            while not self.should_stop.is_set():
                self.poll_once()
                interval = self.interval if self.flag.is_blocking() else self.idle_interval
                if self.should_stop.wait(interval):
                    break
        except Exception as e:
            logger.error(f"Foreground monitor error: {e}")
        finally:
            self.flag.mark_disconnected()
