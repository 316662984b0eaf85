"""
Guards package - enforcement that reacts to device signals while locked.

Provides the shared input-block flag, the foreground watchdog and
notification suppressor, and the foreground and notification monitors
that feed them.
"""

from guards.input_block import InputBlockFlag
from guards.watchdog import ForegroundWatchdog, NotificationSuppressor
from guards.foreground_monitor import ForegroundMonitor
from guards.notification_monitor import NotificationMonitor

__all__ = [
    "InputBlockFlag", "ForegroundWatchdog", "NotificationSuppressor",
    "ForegroundMonitor", "NotificationMonitor",
]
