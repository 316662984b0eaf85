"""
Notification watcher - the host-side source of "notification posted" signals.

Polls the posted notification keys on the device while the input-block
flag is raised and reports every key that appeared since the previous
poll, unless it belongs to the locker itself.
"""

import logging
import threading
from typing import Callable, List, Optional, Set

import config

logger = logging.getLogger(__name__)

LIST_COMMAND = "cmd notification list"


def parse_notification_keys(output: str) -> List[str]:
    """
    Extract notification keys from `cmd notification list` output.

    Keys look like "0|com.whatsapp|12|null|10150" (user, package, id,
    tag, uid); anything else is ignored.
    """
    keys = []
    for line in output.splitlines():
        line = line.strip()
        if line.count("|") >= 2:
            keys.append(line)
    return keys


def key_package(key: str) -> str:
    return key.split("|")[1]


class NotificationMonitor:
    """
    Background poller raising notification-posted signals.

    Args:
        channel: Privileged command channel.
        flag: Shared InputBlockFlag; nothing is reported while it is clear.
        on_posted: Called with each newly posted notification key.
        self_package: The locker package (its notifications are allowed).
    """

    def __init__(
        self,
        channel,
        flag,
        on_posted: Callable[[str], None],
        self_package: Optional[str] = None,
        interval: Optional[float] = None,
    ) -> None:
        self.channel = channel
        self.flag = flag
        self.on_posted = on_posted
        self.self_package = self_package or config.LOCKER_PACKAGE
        self.interval = config.NOTIFICATION_POLL_INTERVAL if interval is None else interval
        self.should_stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._seen: Set[str] = set()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self.should_stop.clear()
        self._thread = threading.Thread(target=self._monitor_loop, daemon=True)
        self._thread.start()
        logger.debug("Notification monitor started")

    def stop(self) -> None:
        self.should_stop.set()
        if self._thread and self._thread is not threading.current_thread() and self._thread.is_alive():
            self._thread.join(timeout=2.0)
            if self._thread.is_alive():
                logger.warning("Notification monitor did not stop within timeout")
        self._thread = None

    def poll_once(self) -> Optional[List[str]]:
        """
        Read the posted notifications once and report new foreign ones.

        Returns:
            The newly reported keys, or None if nothing was polled.
        """
        if not self.flag.is_blocking():
            self._seen.clear()
            return None

        result = self.channel.execute(LIST_COMMAND)
        if not result.success:
            return None

        current = set(parse_notification_keys(result.stdout))
        fresh = [
            key for key in parse_notification_keys(result.stdout)
            if key not in self._seen and key_package(key) != self.self_package
        ]
        self._seen = current

        for key in fresh:
            try:
                self.on_posted(key)
            except Exception as e:
                logger.error(f"Notification handler error: {e}")
        return fresh

    def _monitor_loop(self) -> None:
        try:
            while not self.should_stop.is_set():
                self.poll_once()
                if self.should_stop.wait(self.interval):
                    break
        except Exception as e:
            logger.error(f"Notification monitor error: {e}")
