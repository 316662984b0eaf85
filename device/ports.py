"""
Device ports used by the suppression subsystem and guards.

Each port wraps one Android service reachable from the shell user:
audio volumes, notification policy (do-not-disturb) and the
notification shade. Ports raise DeviceCommandError where a caller must
be able to tell failure apart (volume changes); queries degrade to
conservative defaults instead.
"""

import re
import logging

import config
from device.shell import DeviceCommandError

logger = logging.getLogger(__name__)

# "volume is 7 in range [0..15]"
_VOLUME_RE = re.compile(r"volume is (\d+)")


class AdbAudioPort:
    """Audio stream volumes through `cmd media_session volume`."""

    def __init__(self, channel) -> None:
        self.channel = channel

    def get_volume(self, stream: int) -> int:
        """
        Read the current volume of an audio stream.

        Raises:
            DeviceCommandError: If the volume could not be read.
        """
        command = f"cmd media_session volume --stream {stream} --get"
        result = self.channel.execute(command)
        match = _VOLUME_RE.search(result.stdout) if result.success else None
        if match is None:
            raise DeviceCommandError(command, result)
        return int(match.group(1))

    def set_volume(self, stream: int, level: int) -> None:
        """
        Set an audio stream volume.

        Raises:
            DeviceCommandError: If the device refused, e.g. while a
                silence-enforcing mode is active.
        """
        command = f"cmd media_session volume --stream {stream} --set {int(level)}"
        result = self.channel.execute(command)
        # Refusals surface as a SecurityException on stderr with exit code 0
        if not result.success or "Exception" in result.stderr:
            raise DeviceCommandError(command, result)


class AdbNotificationPolicyPort:
    """Do-not-disturb policy access and interruption filter."""

    def __init__(self, channel, package: str = None) -> None:
        self.channel = channel
        self.package = package or config.LOCKER_PACKAGE

    def is_policy_access_granted(self) -> bool:
        result = self.channel.execute(f"cmd appops get {self.package} ACCESS_NOTIFICATION_POLICY")
        if not result.success:
            return False
        # "ACCESS_NOTIFICATION_POLICY: allow; time=..."
        return "ACCESS_NOTIFICATION_POLICY: allow" in result.stdout

    def set_interruption_filter(self, mode: str) -> None:
        """
        Apply an interruption filter (config.DND_FILTER_*).

        Raises:
            DeviceCommandError: If the filter was not applied.
        """
        command = f"cmd notification set_dnd {mode}"
        result = self.channel.execute(command)
        if not result.success:
            raise DeviceCommandError(command, result)


class AdbNotificationPort:
    """Clears posted notifications."""

    def __init__(self, channel) -> None:
        self.channel = channel

    def cancel_all(self) -> bool:
        # INotificationManager transaction 1 is cancelAllNotifications
        result = self.channel.execute("service call notification 1")
        if not result.success:
            logger.warning("Could not clear notifications")
        return result.success
