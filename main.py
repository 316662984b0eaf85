#!/usr/bin/env python3
"""
FocusLock - Main Entry Point

Locks an attached Android device to a designated app for a fixed time:
the app becomes the home screen, navigation away is pulled back, sound
and notifications are suppressed, and everything is restored when the
timer runs out.

Usage:
    python main.py lock 25      # Lock for 25 minutes and stay in charge
    python main.py run          # Resume a lock after a restart
    python main.py status       # Show the persisted lock state
    python main.py unlock       # Emergency override
"""

import sys
import time
import signal
import logging
import argparse
import threading
from typing import Optional

import config
from instance_lock import check_single_instance, signal_owner, OVERRIDE_SIGNAL
from core.engine import LockEngine, LockStatus
from core.permissions import check_shell_capability, CAPABILITY_READY, CAPABILITY_UNAUTHORIZED
from device.shell import AdbShellChannel
from guards.foreground_monitor import ForegroundMonitor
from guards.notification_monitor import NotificationMonitor
from state.lock_store import LockStateStore

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging from config (DEBUG when verbose)."""
    level = logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format=config.LOG_FORMAT)


def format_remaining(seconds: int) -> str:
    """Format seconds as H:MM:SS or M:SS."""
    hours, rest = divmod(max(0, int(seconds)), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


class FocusLockApp:
    """
    Owns the engine and the device monitors for the life of a lock.
    """

    def __init__(self, channel: Optional[AdbShellChannel] = None):
        self.channel = channel or AdbShellChannel()
        self.engine = LockEngine(self.channel, LockStateStore(), rehydrate=False)
        self.monitor = ForegroundMonitor(
            self.channel,
            self.engine.input_block,
            self.engine.bring_to_front,
        )
        self.notification_monitor = NotificationMonitor(
            self.channel,
            self.engine.input_block,
            self.engine.handle_notification_posted,
        )
        self.engine.on_status_change = self._print_status
        self.engine.on_error = self._handle_error
        self._last_printed: Optional[int] = None

    def _print_status(self, status: LockStatus) -> None:
        if not status.is_locked:
            return
        if status.seconds_remaining == self._last_printed:
            return
        self._last_printed = status.seconds_remaining
        guard = "guard on" if status.watchdog_ready else "guard offline"
        print(f"\r🔒 {format_remaining(status.seconds_remaining)} remaining ({guard})  ", end="", flush=True)

    def _handle_error(self, error_type: str, message: str) -> None:
        print(f"\n⚠️  {message}")
        if error_type == "manual_launcher_required":
            self.engine.orchestrator.open_default_apps_settings()

    def _install_override_handler(self) -> None:
        """Unlock when another process sends the override signal."""
        if OVERRIDE_SIGNAL is None:
            return

        def _on_override(signum, frame):
            logger.warning("Emergency override received")
            # Off the signal frame: unlock takes the engine lock
            threading.Thread(target=self.engine.unlock, daemon=True).start()

        signal.signal(OVERRIDE_SIGNAL, _on_override)

    def run(self, minutes: Optional[int] = None) -> int:
        """
        Start (or resume) a lock and wait for it to end.

        Returns:
            Process exit code.
        """
        self._install_override_handler()
        self.monitor.start()
        self.notification_monitor.start()
        try:
            self.engine.rehydrate()
            if minutes is not None:
                if self.engine.is_locked():
                    print("❌ A lock is already active.")
                    return 1
                result = self.engine.start_lock(minutes)
                if not result["success"]:
                    print(f"❌ {result['error']}")
                    return 1
            elif not self.engine.is_locked():
                print("No active lock.")
                return 0

            self.engine.wait_until_unlocked()
            print("\n🔓 Unlocked.")
            return 0
        except KeyboardInterrupt:
            # The lock stays in force; `run` resumes it
            print("\nStopped watching. The lock stays active - use `main.py run` to resume.")
            return 130
        finally:
            self.engine.cleanup()
            self.monitor.stop()
            self.notification_monitor.stop()


def cmd_lock(args) -> int:
    if args.minutes <= 0 or args.minutes > config.MAX_LOCK_MINUTES:
        print(f"❌ Minutes must be between 1 and {config.MAX_LOCK_MINUTES}.")
        return 2
    if not check_single_instance():
        print("❌ FocusLock is already running.")
        return 1
    channel = AdbShellChannel()
    capability = check_shell_capability(channel)
    if capability == CAPABILITY_UNAUTHORIZED:
        channel.request_permission()
    if capability != CAPABILITY_READY:
        print(f"❌ Device shell not ready ({capability}). Connect the device with USB debugging enabled.")
        return 1
    return FocusLockApp(channel).run(args.minutes)


def cmd_run(args) -> int:
    if not check_single_instance():
        print("❌ FocusLock is already running.")
        return 1
    return FocusLockApp().run()


def cmd_status(args) -> int:
    store = LockStateStore()
    deadline = store.get_deadline()
    if deadline is None:
        print("🔓 Not locked.")
        return 0
    remaining = max(0, deadline - int(time.time() * 1000)) // 1000
    launcher = store.get_original_launcher()
    print(f"🔒 Locked, {format_remaining(remaining)} remaining")
    if launcher:
        print(f"   Original launcher: {launcher.flatten()}")
    return 0


def cmd_unlock(args) -> int:
    """Emergency override: signal the owner, or unlock directly if none."""
    if OVERRIDE_SIGNAL is not None and signal_owner(OVERRIDE_SIGNAL):
        print("🔓 Override sent to the running FocusLock.")
        return 0
    if not check_single_instance():
        print("❌ FocusLock is running but could not be signalled.")
        return 1
    store = LockStateStore()
    if store.get_deadline() is None:
        print("🔓 Not locked.")
        return 0
    # Not rehydrated: the persisted lock is lifted without re-applying it
    engine = LockEngine(AdbShellChannel(), store, rehydrate=False)
    result = engine.unlock()
    engine.cleanup()
    if result["release"] == "manual_required":
        engine.orchestrator.open_default_apps_settings()
        print("⚠️  Pick your home app in Settings > Default apps.")
    print("🔓 Unlocked.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="FocusLock - lock an Android device to one app for a set time"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    lock = sub.add_parser("lock", help="Start a lock")
    lock.add_argument("minutes", type=int, help="Lock duration in minutes")
    lock.set_defaults(func=cmd_lock)

    sub.add_parser("run", help="Resume a persisted lock").set_defaults(func=cmd_run)
    sub.add_parser("status", help="Show lock state").set_defaults(func=cmd_status)
    sub.add_parser("unlock", help="Emergency override").set_defaults(func=cmd_unlock)
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    if not getattr(args, "func", None):
        parser.print_help()
        return 2
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
