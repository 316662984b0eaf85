"""
Privileged shell capability checks for FocusLock.

The engine never obtains privilege itself; it only observes whether the
shell channel is usable before each privileged operation.
"""

import logging
from typing import Optional

import config

logger = logging.getLogger(__name__)

CAPABILITY_READY = "ready"
CAPABILITY_UNAVAILABLE = "unavailable"
CAPABILITY_UNAUTHORIZED = "unauthorized"
CAPABILITY_UNSUPPORTED = "unsupported"


def get_device_sdk_version(channel) -> Optional[int]:
    """
    Read the device API level.

    Returns:
        SDK integer, or None if it could not be read.
    """
    result = channel.execute("getprop ro.build.version.sdk")
    if not result.success:
        return None
    try:
        return int(result.stdout.strip())
    except ValueError:
        logger.debug(f"Unexpected SDK version output: {result.stdout!r}")
        return None


def check_shell_capability(channel) -> str:
    """
    Check that the privileged channel can run lock commands.

    Returns:
        One of: "ready", "unavailable", "unauthorized", "unsupported"
    """
    if not channel.available():
        return CAPABILITY_UNAVAILABLE
    if not channel.has_permission():
        return CAPABILITY_UNAUTHORIZED

    sdk = get_device_sdk_version(channel)
    if sdk is None:
        # Could not query, let the commands themselves decide
        logger.debug("Device SDK version unknown, assuming supported")
        return CAPABILITY_READY
    if sdk < config.MIN_SDK_VERSION:
        logger.warning(f"Device SDK {sdk} is below the supported minimum {config.MIN_SDK_VERSION}")
        return CAPABILITY_UNSUPPORTED
    return CAPABILITY_READY


def is_shell_ready(channel) -> bool:
    """True if the channel is available, authorised and the device supported."""
    return check_shell_capability(channel) == CAPABILITY_READY
