"""Home-app identity and default-launcher resolution."""

import logging
from dataclasses import dataclass
from typing import Optional

import config

logger = logging.getLogger(__name__)

RESOLVE_HOME_COMMAND = (
    "cmd package resolve-activity --brief "
    "-a android.intent.action.MAIN -c android.intent.category.HOME"
)


@dataclass(frozen=True)
class AppIdentity:
    """A launchable activity: package plus fully-qualified component class."""
    package: str
    component: str

    def flatten(self) -> str:
        return f"{self.package}/{self.component}"

    @classmethod
    def parse(cls, flat: str) -> Optional["AppIdentity"]:
        """
        Parse "pkg/cls" or the shorthand "pkg/.Cls".

        Returns:
            AppIdentity, or None if the string is not a component name.
        """
        parts = flat.strip().split("/")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            return None
        package, component = parts
        if component.startswith("."):
            component = package + component
        return cls(package, component)


def locker_identity() -> AppIdentity:
    """The designated application that becomes home while locked."""
    return AppIdentity(config.LOCKER_PACKAGE, config.LOCKER_ACTIVITY)


def system_default_launcher() -> AppIdentity:
    """Launcher used when no original launcher was ever recorded."""
    return AppIdentity(config.DEFAULT_LAUNCHER_PACKAGE, config.DEFAULT_LAUNCHER_ACTIVITY)


def parse_resolve_output(output: str) -> Optional[AppIdentity]:
    """
    Extract the home activity from `resolve-activity --brief` output.

    Example output:
        priority=0 preferredOrder=0 match=0x108000 specificIndex=-1 isDefault=true
        com.microsoft.launcher/.Launcher

    The chooser (ResolverActivity) is reported when no default is set;
    it is not a launcher and is ignored.
    """
    for line in output.splitlines():
        line = line.strip()
        if "/" not in line or "=" in line:
            continue
        identity = AppIdentity.parse(line)
        if identity is None:
            continue
        if identity.package in config.RESOLVER_PACKAGES:
            logger.debug(f"Ignoring resolver activity: {line}")
            continue
        return identity
    return None


class DefaultLauncherResolver:
    """Finds the current default home app over the privileged channel."""

    def __init__(self, channel) -> None:
        self.channel = channel

    def resolve_current_home_app(self) -> Optional[AppIdentity]:
        result = self.channel.execute(RESOLVE_HOME_COMMAND)
        if not result.success:
            logger.warning("Could not query the default launcher")
            return None
        identity = parse_resolve_output(result.stdout)
        if identity is None:
            logger.info("No default launcher set on the device")
        else:
            logger.info(f"Current default launcher: {identity.flatten()}")
        return identity
