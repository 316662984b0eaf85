"""
Device package for FocusLock.

Provides the privileged adb shell channel, default-launcher resolution,
launcher takeover/release orchestration, and the audio and notification
ports the lock engine drives.
"""

from device.shell import AdbShellChannel, CommandResult, DeviceCommandError
from device.launcher import AppIdentity, DefaultLauncherResolver
from device.commands import CommandOrchestrator, ReleaseOutcome

__all__ = [
    "AdbShellChannel",
    "CommandResult",
    "DeviceCommandError",
    "AppIdentity",
    "DefaultLauncherResolver",
    "CommandOrchestrator",
    "ReleaseOutcome",
]
