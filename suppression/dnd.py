"""
Do-not-disturb control for FocusLock.

Policy access granted over the shell can take a moment to apply, so
engaging DND waits for it in a bounded poll on a background thread.
If access never arrives DND is simply left off.
"""

import logging
import threading
from typing import Optional

import config

logger = logging.getLogger(__name__)


class DndController:
    """
    Engages and releases the "priority only" interruption filter.

    Args:
        policy: Notification policy port.
        orchestrator: Used to grant policy access over the privileged channel.
        retries: Number of permission polls before giving up.
        interval: Seconds between polls.
    """

    def __init__(
        self,
        policy,
        orchestrator,
        retries: Optional[int] = None,
        interval: Optional[float] = None,
    ) -> None:
        self.policy = policy
        self.orchestrator = orchestrator
        self.retries = config.DND_PERMISSION_RETRIES if retries is None else retries
        self.interval = config.DND_PERMISSION_POLL_INTERVAL if interval is None else interval
        self.is_engaged: bool = False
        self._filter_lock = threading.Lock()
        self._cancel: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    def engage(self) -> threading.Thread:
        """
        Start engaging DND in the background.

        Returns:
            The worker thread (callers may join it).
        """
        self.cancel_pending()
        cancel = threading.Event()
        self._cancel = cancel
        self._thread = threading.Thread(target=self._engage, args=(cancel,), daemon=True)
        self._thread.start()
        return self._thread

    def _engage(self, cancel: threading.Event) -> None:
        try:
            if not self.policy.is_policy_access_granted():
                self.orchestrator.grant_notification_policy_access()

            attempts = 0
            granted = self.policy.is_policy_access_granted()
            while not granted and attempts < self.retries:
                if cancel.wait(self.interval):
                    return
                attempts += 1
                granted = self.policy.is_policy_access_granted()

            if not granted:
                logger.warning(f"Notification policy access not granted after {attempts} checks, DND not engaged")
                return

            with self._filter_lock:
                if cancel.is_set():
                    return
                self.policy.set_interruption_filter(config.DND_FILTER_PRIORITY)
                self.is_engaged = True
            logger.info("Do-not-disturb engaged (priority only)")
        except Exception as e:
            logger.warning(f"Failed to engage do-not-disturb: {e}")

    def cancel_pending(self) -> None:
        """Stop a pending engage before it applies the filter."""
        if self._cancel is not None:
            self._cancel.set()
        self._cancel = None

    def wait(self, timeout: Optional[float] = None) -> None:
        """Wait for a pending engage to finish."""
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def release(self) -> None:
        """Revert to "allow all" if policy access is held."""
        self.cancel_pending()
        with self._filter_lock:
            try:
                if self.policy.is_policy_access_granted():
                    self.policy.set_interruption_filter(config.DND_FILTER_ALL)
                    logger.info("Do-not-disturb released")
                else:
                    logger.debug("No notification policy access, leaving interruption filter as is")
            except Exception as e:
                logger.warning(f"Failed to release do-not-disturb: {e}")
            self.is_engaged = False
