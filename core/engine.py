"""
LockEngine - Focus lock state machine for FocusLock.

Owns the lock lifecycle: start, countdown, unlock, and recovery after a
restart of the host process. Drives the command orchestrator (launcher
takeover/release), the suppression subsystem (volumes, do-not-disturb)
and the input-block flag, and persists everything needed to undo a lock
in the LockStateStore.

This module has ZERO UI dependencies. The CLI (or any other front end)
calls engine methods and receives updates via callbacks.

Callbacks:
    on_status_change(status: LockStatus)
    on_error(error_type: str, message: str)
"""

import time
import threading
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

import config
from core.permissions import check_shell_capability, CAPABILITY_READY
from device.commands import CommandOrchestrator, ReleaseOutcome
from device.launcher import DefaultLauncherResolver
from device.ports import AdbAudioPort, AdbNotificationPolicyPort, AdbNotificationPort
from guards.input_block import InputBlockFlag
from guards.watchdog import ForegroundWatchdog, NotificationSuppressor
from state.lock_store import LockStateStore
from suppression import Suppressor, VolumeSuppressor, DndController

logger = logging.getLogger(__name__)


class LockState(Enum):
    """Lock lifecycle states. LOCKING and UNLOCKING are transient."""
    UNLOCKED = "unlocked"
    LOCKING = "locking"
    LOCKED = "locked"
    UNLOCKING = "unlocking"


@dataclass(frozen=True)
class LockStatus:
    """Read-only snapshot published to the presentation layer."""
    is_locked: bool
    seconds_remaining: int
    watchdog_ready: bool
    state: str = LockState.UNLOCKED.value


class LockEngine:
    """
    Core focus lock engine.

    Handles:
    - Lock lifecycle (start, countdown, unlock, emergency override)
    - Rehydration of a persisted lock on startup
    - Launcher takeover and release through the command orchestrator
    - Audio and do-not-disturb suppression
    - The input-block flag consumed by navigation interceptors

    All public entry points serialise on one re-entrant lock, so the
    countdown thread and callers never interleave inside a transition.
    """

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    def __init__(
        self,
        channel,
        store: Optional[LockStateStore] = None,
        orchestrator: Optional[CommandOrchestrator] = None,
        resolver=None,
        suppressor: Optional[Suppressor] = None,
        notifications=None,
        input_block: Optional[InputBlockFlag] = None,
        clock: Callable[[], float] = time.time,
        tick_interval: Optional[float] = None,
        rehydrate: bool = True,
    ) -> None:
        """
        Wire the engine to its collaborators.

        Anything not supplied is built on top of `channel` with the adb
        device ports. With `rehydrate=True` the persisted record is read
        immediately and a running lock is resumed.
        """
        self.channel = channel
        self.store: LockStateStore = store or LockStateStore()
        self.orchestrator: CommandOrchestrator = orchestrator or CommandOrchestrator(channel)
        self.resolver = resolver or DefaultLauncherResolver(channel)
        self.suppressor: Suppressor = suppressor or Suppressor(
            VolumeSuppressor(AdbAudioPort(channel), self.store),
            DndController(AdbNotificationPolicyPort(channel), self.orchestrator),
        )
        self.input_block: InputBlockFlag = input_block or InputBlockFlag()
        self.clock = clock
        self.tick_interval: float = config.LOCKED_TICK_INTERVAL if tick_interval is None else tick_interval

        # Lock state
        self.state: LockState = LockState.UNLOCKED
        self.last_release: Optional[ReleaseOutcome] = None
        self._lock = threading.RLock()

        self.watchdog = ForegroundWatchdog(self, self.orchestrator, self._lock)
        self.notification_suppressor = NotificationSuppressor(
            self, notifications or AdbNotificationPort(channel), self._lock
        )

        # Countdown (one active at a time, each with its own cancel token)
        self._countdown_token: Optional[threading.Event] = None
        self._countdown_thread: Optional[threading.Thread] = None

        # ---- Callbacks (set by the front end) ----
        self.on_status_change: Optional[Callable[[LockStatus], None]] = None
        self.on_error: Optional[Callable[[str, str], None]] = None

        if rehydrate:
            self.rehydrate()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def rehydrate(self) -> None:
        """
        Recompute the lock state from the persisted record.

        A future deadline resumes the lock without a new launcher takeover
        (the home preference is a device setting and survived). A past
        deadline means the host died mid-lock, so the full unlock runs now.
        """
        with self._lock:
            deadline = self.store.get_deadline()
            if deadline is None:
                self._set_state(LockState.UNLOCKED)
                return

            now = self._now_ms()
            if deadline > now:
                logger.info(f"Resuming lock: {(deadline - now) // 1000}s remaining")
                self._set_state(LockState.LOCKED)
                self.input_block.set_blocking(True)
                self._safe_call("suppression", self.suppressor.enable)
                self._arm_countdown()
                self._publish()
            else:
                logger.info("Lock deadline passed while not running - unlocking now")
                self._run_unlock()

    def start_lock(self, minutes: int) -> Dict:
        """
        Start a focus lock.

        Args:
            minutes: Lock duration, must be a positive integer.

        Returns:
            {"success": bool, "error": str | None, "error_type": str | None}
            error_type values: "invalid_duration", "already_locked",
                "shell_unavailable", "no_original_launcher", "persist_failed"
        """
        if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
            logger.warning(f"Rejected lock duration: {minutes!r}")
            return {
                "success": False,
                "error": "Lock duration must be a positive number of minutes.",
                "error_type": "invalid_duration",
            }

        with self._lock:
            if self.state is not LockState.UNLOCKED:
                return {"success": False, "error": "A lock is already active.", "error_type": "already_locked"}

            capability = check_shell_capability(self.channel)
            if capability != CAPABILITY_READY:
                return {
                    "success": False,
                    "error": f"Privileged shell is not ready ({capability}). Connect and authorise the device.",
                    "error_type": "shell_unavailable",
                }

            # Remember the launcher to give the home screen back to
            self_identity = self.orchestrator.self_identity
            current = self.resolver.resolve_current_home_app()
            has_record = self.store.has_original_launcher()
            if current is None or (current.package == self_identity.package and not has_record):
                return {
                    "success": False,
                    "error": "Cannot identify the original launcher. Set a default home app on the device first.",
                    "error_type": "no_original_launcher",
                }
            if current.package != self_identity.package:
                self.store.set_original_launcher(current)

            # --- All checks passed - take over ---
            self._set_state(LockState.LOCKING)
            self._safe_call("launcher takeover", self.orchestrator.takeover, self_identity)

            # Deadline must be durable before the countdown is armed
            deadline = self._now_ms() + minutes * 60 * 1000
            if not self.store.set_deadline(deadline):
                logger.error("Could not persist the unlock deadline - rolling back")
                self.store.clear_deadline()
                self._safe_call(
                    "launcher release", self.orchestrator.release, self.store.get_original_launcher()
                )
                self.input_block.set_blocking(False)
                self._set_state(LockState.UNLOCKED)
                return {
                    "success": False,
                    "error": "Could not save the lock state, so no lock was started.",
                    "error_type": "persist_failed",
                }

            self._set_state(LockState.LOCKED)
            self.input_block.set_blocking(True)
            self._safe_call("suppression", self.suppressor.enable)
            self._safe_call(
                "notification listener",
                self.orchestrator.allow_notification_listener, config.LOCKER_LISTENER,
            )

            self._arm_countdown()
            self._publish()

        logger.info(f"Lock started for {minutes} min")
        return {"success": True, "error": None, "error_type": None}

    def unlock(self) -> Dict:
        """
        Lift the lock (timer expiry or emergency override).

        Idempotent: when already unlocked nothing happens. A persisted
        deadline that this engine never resumed (another process started
        the lock) is lifted too, without re-applying suppression first.

        Returns:
            {"success": bool, "release": str | None} where release is the
            ReleaseOutcome value, or None if there was nothing to unlock.
        """
        with self._lock:
            if self.state is LockState.UNLOCKED and self.store.get_deadline() is None:
                return {"success": True, "release": None}
            return self._run_unlock()

    def tick(self) -> LockStatus:
        """
        Advance the countdown once.

        Unlocks when the deadline has been reached.
        """
        with self._lock:
            if self.state is LockState.LOCKED and self._remaining_ms() <= 0:
                self.unlock()
            else:
                self._publish()
            return self.get_status()

    def is_locked(self) -> bool:
        return self.state is LockState.LOCKED

    def get_status(self) -> LockStatus:
        """
        Get the current lock status (polled by the front end).

        Returns:
            LockStatus with is_locked, seconds_remaining, watchdog_ready.
        """
        locked = self.is_locked()
        remaining = self._remaining_ms() // 1000 if locked else 0
        return LockStatus(
            is_locked=locked,
            seconds_remaining=max(0, remaining),
            watchdog_ready=self.input_block.is_connected(),
            state=self.state.value,
        )

    def bring_to_front(self, package: Optional[str] = None) -> bool:
        """
        Re-assert the locker as home and foreground (no-op when unlocked).

        Args:
            package: The app that took the foreground, if known.
        """
        with self._lock:
            return self.watchdog.on_intrusion(package)

    def handle_notification_posted(self, key: Optional[str] = None) -> bool:
        """Clear notifications posted while locked."""
        with self._lock:
            return self.notification_suppressor.on_notification_posted(key)

    def wait_until_unlocked(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the lock is lifted.

        Returns:
            True if unlocked, False on timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while self.state is not LockState.UNLOCKED:
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(min(self.tick_interval, 0.1) or 0.01)
        return True

    def cleanup(self) -> None:
        """
        Stop the countdown before the host exits.

        The lock itself stays in force and is resumed on the next start.
        """
        with self._lock:
            self._cancel_countdown()
        logger.info("Engine cleanup complete")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _run_unlock(self) -> Dict:
        """Full unlock sequence. Every step runs even if earlier ones fail."""
        self._set_state(LockState.UNLOCKING)
        # Input first, so the user can always reach recovery UI
        self.input_block.set_blocking(False)

        self._safe_call("suppression restore", self.suppressor.disable)
        self._cancel_countdown()
        self.store.clear_deadline()

        outcome = self._safe_call(
            "launcher release", self.orchestrator.release, self.store.get_original_launcher()
        )
        if outcome is None:
            outcome = ReleaseOutcome.MANUAL_REQUIRED
        self.last_release = outcome

        self._set_state(LockState.UNLOCKED)
        self._publish()

        if outcome is ReleaseOutcome.MANUAL_REQUIRED:
            self._notify_error(
                "manual_launcher_required",
                "Automatic launcher restore failed. Choose your home app in Settings > Default apps.",
            )
        logger.info(f"Unlocked (launcher release: {outcome.value})")
        return {"success": True, "release": outcome.value}

    def _set_state(self, state: LockState) -> None:
        if state is not self.state:
            logger.debug(f"Lock state {self.state.value} -> {state.value}")
        self.state = state

    # ------------------------------------------------------------------
    # Countdown (runs in a background thread)
    # ------------------------------------------------------------------

    def _arm_countdown(self) -> None:
        self._cancel_countdown()
        token = threading.Event()
        self._countdown_token = token
        self._countdown_thread = threading.Thread(
            target=self._countdown_loop, args=(token,), daemon=True
        )
        self._countdown_thread.start()

    def _cancel_countdown(self) -> None:
        # Not joined: the countdown may itself be waiting on self._lock
        if self._countdown_token is not None:
            self._countdown_token.set()
        self._countdown_token = None
        self._countdown_thread = None

    def _countdown_loop(self, token: threading.Event) -> None:
        try:
            while not token.wait(self.tick_interval):
                with self._lock:
                    if token.is_set():
                        break
                    self.tick()
        except Exception as e:
            logger.error(f"Countdown error: {e}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _remaining_ms(self) -> int:
        deadline = self.store.get_deadline()
        if deadline is None:
            return 0
        return max(0, deadline - self._now_ms())

    def _safe_call(self, label: str, func: Callable, *args):
        """Run a best-effort step; failures are logged, never raised."""
        try:
            return func(*args)
        except Exception as e:
            logger.error(f"{label} failed: {e}")
            return None

    def _publish(self) -> None:
        if self.on_status_change:
            try:
                self.on_status_change(self.get_status())
            except Exception as e:
                logger.debug(f"on_status_change callback error: {e}")

    def _notify_error(self, error_type: str, message: str) -> None:
        if self.on_error:
            try:
                self.on_error(error_type, message)
            except Exception as e:
                logger.debug(f"on_error callback error: {e}")
