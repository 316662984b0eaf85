"""
Reactive guards that run while a lock is active.

Both handlers are driven by external signals and check the lock status
on every call: when the device is not locked they do nothing at all,
whatever the signal says. The check and the reaction run under the
engine's lock, so an unlock can never land between them.
"""

import logging
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class ForegroundWatchdog:
    """
    Pulls the locker back to the front when another app takes over.

    Args:
        engine: Anything with an `is_locked()` method (the LockEngine).
        orchestrator: CommandOrchestrator used to re-assert the launcher.
        lock: Lock shared with the engine's transitions.
    """

    def __init__(self, engine, orchestrator, lock=None) -> None:
        self.engine = engine
        self.orchestrator = orchestrator
        self._lock = lock or threading.RLock()
        self.intrusion_count: int = 0

    def on_intrusion(self, package: Optional[str] = None) -> bool:
        """
        Handle "a foreign app took the foreground".

        Args:
            package: The intruding package, if known.

        Returns:
            True if the locker was re-asserted.
        """
        with self._lock:
            if not self.engine.is_locked():
                return False
            if package is not None and package == self.orchestrator.self_identity.package:
                return False

            self.intrusion_count += 1
            logger.info(f"Intrusion by {package or 'unknown app'} - re-asserting lock")
            self.orchestrator.takeover()
            self.orchestrator.force_start_home()
            return True


class NotificationSuppressor:
    """Clears notifications posted while the device is locked."""

    def __init__(self, engine, notifications, lock=None) -> None:
        self.engine = engine
        self.notifications = notifications
        self._lock = lock or threading.RLock()

    def on_notification_posted(self, key: Optional[str] = None) -> bool:
        """
        Handle a "notification posted" signal.

        Returns:
            True if notifications were cleared.
        """
        with self._lock:
            if not self.engine.is_locked():
                return False
            logger.debug(f"Clearing notifications (posted: {key or 'unknown'})")
            return self.notifications.cancel_all()
