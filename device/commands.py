"""
Command orchestration for launcher takeover and release.

Privileged command support differs between Android versions and vendors,
so takeover writes both the home role and the legacy preference, and
release walks a tier cascade from the role API down to a manual step.
No method here raises on command failure; results are logged and
reduced to booleans or a ReleaseOutcome.
"""

import logging
from enum import Enum
from typing import Optional

from device.launcher import AppIdentity, locker_identity, system_default_launcher
from device.shell import CommandResult

logger = logging.getLogger(__name__)

HOME_ROLE = "android.app.role.HOME"


class ReleaseOutcome(Enum):
    """How the original launcher was put back."""
    ROLE = "role"  # Restored through the home role
    LEGACY = "legacy"  # Restored through set-home-activity
    SYSTEM_DEFAULT = "system_default"  # No record, fell back to the stock launcher
    MANUAL_REQUIRED = "manual_required"  # User must pick a launcher in Settings


# --- Command builders ---

def set_home_role_cmd(package: str) -> str:
    return f"cmd role add-role-holder --user 0 {HOME_ROLE} {package}"


def clear_home_role_cmd(package: str) -> str:
    return f"cmd role remove-role-holder --user 0 {HOME_ROLE} {package}"


def set_home_activity_cmd(identity: AppIdentity) -> str:
    return f"cmd package set-home-activity --user 0 {identity.flatten()}"


def clear_preferred_activities_cmd(package: str) -> str:
    return f"pm clear-package-preferred-activities --user 0 {package}"


def force_start_home_cmd(identity: AppIdentity) -> str:
    return (
        "am start -a android.intent.action.MAIN -c android.intent.category.HOME "
        f"-n {identity.flatten()}"
    )


def grant_notification_policy_cmd(package: str) -> str:
    return f"cmd appops set {package} ACCESS_NOTIFICATION_POLICY allow"


def allow_notification_listener_cmd(package: str, listener: str) -> str:
    return f"cmd notification allow_listener {package}/{listener}"


class CommandOrchestrator:
    """
    Turns takeover/release intents into ordered privileged commands.

    Args:
        channel: Privileged command channel (execute() -> CommandResult).
        self_identity: The locker activity; defaults to the configured one.
    """

    def __init__(self, channel, self_identity: Optional[AppIdentity] = None) -> None:
        self.channel = channel
        self.self_identity = self_identity or locker_identity()

    def _run(self, command: str) -> CommandResult:
        return self.channel.execute(command)

    # ------------------------------------------------------------------
    # Takeover
    # ------------------------------------------------------------------

    def takeover(self, identity: Optional[AppIdentity] = None) -> bool:
        """
        Make `identity` (the locker by default) the home app.

        Both the role and the legacy preference are written; either one
        may be the one honoured by the device.

        Returns:
            True if at least one of the two commands succeeded.
        """
        identity = identity or self.self_identity
        role = self._run(set_home_role_cmd(identity.package))
        legacy = self._run(set_home_activity_cmd(identity))

        if role.success or legacy.success:
            logger.info(
                f"Launcher takeover for {identity.package} "
                f"(role={role.exit_code}, legacy={legacy.exit_code})"
            )
            return True
        logger.warning(f"Launcher takeover failed for {identity.package}, relying on input blocking")
        return False

    def force_start_home(self, identity: Optional[AppIdentity] = None) -> bool:
        """Launch `identity` as the home activity."""
        identity = identity or self.self_identity
        return self._run(force_start_home_cmd(identity)).success

    # ------------------------------------------------------------------
    # Release
    # ------------------------------------------------------------------

    def release(self, target: Optional[AppIdentity]) -> ReleaseOutcome:
        """
        Give the home screen back to `target`.

        Tiers, each tried only when the previous one failed:
            1. add `target` as home role holder
            2. drop the locker's preferences, set `target` as home activity
            3. manual selection by the user

        With no recorded target, the stock launcher is restored directly.
        """
        if target is None:
            return self._release_to_system_default()

        # Tier 1: role
        if self._run(set_home_role_cmd(target.package)).success:
            self.force_start_home(target)
            logger.info(f"Launcher restored to {target.package} (role)")
            return ReleaseOutcome.ROLE

        # Tier 2: legacy preference
        self._run(clear_home_role_cmd(self.self_identity.package))
        self._run(clear_preferred_activities_cmd(self.self_identity.package))
        if self._run(set_home_activity_cmd(target)).success:
            self.force_start_home(target)
            logger.info(f"Launcher restored to {target.package} (legacy)")
            return ReleaseOutcome.LEGACY

        # Tier 3: manual
        logger.warning(f"Automatic launcher restore to {target.package} failed - manual selection required")
        return ReleaseOutcome.MANUAL_REQUIRED

    def _release_to_system_default(self) -> ReleaseOutcome:
        fallback = system_default_launcher()
        logger.warning(f"No original launcher on record, restoring {fallback.flatten()}")
        self._run(clear_preferred_activities_cmd(self.self_identity.package))
        if self._run(set_home_activity_cmd(fallback)).success:
            self.force_start_home(fallback)
            return ReleaseOutcome.SYSTEM_DEFAULT
        logger.warning("Could not restore the system launcher - manual selection required")
        return ReleaseOutcome.MANUAL_REQUIRED

    # ------------------------------------------------------------------
    # Permissions and settings
    # ------------------------------------------------------------------

    def grant_notification_policy_access(self, package: Optional[str] = None) -> bool:
        """Grant do-not-disturb policy access to the locker."""
        package = package or self.self_identity.package
        return self._run(grant_notification_policy_cmd(package)).success

    def allow_notification_listener(self, listener: str) -> bool:
        """Register the locker's notification listener component."""
        return self._run(allow_notification_listener_cmd(self.self_identity.package, listener)).success

    def open_default_apps_settings(self) -> bool:
        """
        Show the default-apps settings screen so the user can pick a launcher.

        Falls back to the main Settings screen on builds without it.
        """
        result = self._run("am start -a android.settings.MANAGE_DEFAULT_APPS_SETTINGS")
        # am exits 0 even when no activity matched, it reports on stdout/stderr
        if result.success and "Error" not in result.stdout + result.stderr:
            return True
        logger.debug("Default apps settings unavailable, opening main Settings")
        return self._run("am start -a android.settings.SETTINGS").success
