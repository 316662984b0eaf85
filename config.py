"""Configuration settings for FocusLock."""

import os
import sys
from pathlib import Path
from dotenv import load_dotenv


def get_user_data_dir() -> Path:
    """
    Get the directory for user-writable data (lock state, instance lock).

    Uses a dedicated folder in the user's home directory so the lock
    record survives reinstalls and restarts of the host process.

    Returns:
        Path to the user data directory.
    """
    override = os.getenv("FOCUSLOCK_DATA_DIR")
    if override:
        data_dir = Path(override)
    elif sys.platform == 'darwin':
        # macOS: ~/Library/Application Support/FocusLock
        data_dir = Path.home() / "Library" / "Application Support" / "FocusLock"
    elif sys.platform == 'win32':
        # Windows: %APPDATA%/FocusLock
        appdata = os.environ.get('APPDATA')
        if appdata:
            data_dir = Path(appdata) / "FocusLock"
        else:
            data_dir = Path.home() / "AppData" / "Roaming" / "FocusLock"
    else:
        # Linux: ~/.local/share/FocusLock
        data_dir = Path.home() / ".local" / "share" / "FocusLock"

    try:
        data_dir.mkdir(parents=True, exist_ok=True)
    except Exception:
        # Fallback to home directory if creation fails
        data_dir = Path.home() / ".focuslock"
        data_dir.mkdir(parents=True, exist_ok=True)

    return data_dir


def _get_float(env_var: str, default: float) -> float:
    """Read a float from the environment, falling back on bad values."""
    raw = os.getenv(env_var, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        import logging
        logging.getLogger(__name__).warning(
            f"{env_var}={raw!r} is not a number, using {default}"
        )
        return default


# Load environment variables from .env file next to this module
_env_path = Path(__file__).parent / ".env"
load_dotenv(_env_path)

# User data directory (lock record, instance lock file)
USER_DATA_DIR = get_user_data_dir()

# --- Privileged shell channel ---
ADB_PATH = os.getenv("ADB_PATH", "adb")
ADB_SERIAL = os.getenv("ADB_SERIAL", "")  # Empty = the only attached device
SHELL_COMMAND_TIMEOUT = _get_float("SHELL_COMMAND_TIMEOUT", 15.0)  # Seconds per command
MIN_SDK_VERSION = 24  # set-home-activity and cmd role need Android 7+

# Reserved exit codes for results that never reached the device
EXIT_CHANNEL_UNAVAILABLE = -1
EXIT_EXECUTION_ERROR = -2

# --- Locked (designated) application on the device ---
LOCKER_PACKAGE = os.getenv("LOCKER_PACKAGE", "com.brill.locker")
LOCKER_ACTIVITY = os.getenv("LOCKER_ACTIVITY", f"{LOCKER_PACKAGE}.MainActivity")
LOCKER_LISTENER = os.getenv("LOCKER_LISTENER", f"{LOCKER_PACKAGE}.NotificationBlocker")

# Launcher used when no original launcher was ever recorded
DEFAULT_LAUNCHER_PACKAGE = os.getenv("DEFAULT_LAUNCHER_PACKAGE", "com.android.launcher3")
DEFAULT_LAUNCHER_ACTIVITY = os.getenv(
    "DEFAULT_LAUNCHER_ACTIVITY", "com.android.launcher3.uioverrides.QuickstepLauncher"
)

# Packages that show up as "home" while the chooser is open, never a real launcher
RESOLVER_PACKAGES = {"android", "com.android.internal.app"}
SYSTEM_UI_PACKAGE = "com.android.systemui"

# --- Timers ---
LOCKED_TICK_INTERVAL = 0.5  # Countdown tick while locked (seconds)
FOREGROUND_POLL_INTERVAL = 1.0  # Foreground watcher poll while locked (seconds)
FOREGROUND_IDLE_POLL_INTERVAL = 5.0  # Liveness poll while unlocked (seconds)
NOTIFICATION_POLL_INTERVAL = 2.0  # Posted-notification poll while locked (seconds)
DND_PERMISSION_RETRIES = 10  # Attempts while waiting for policy access
DND_PERMISSION_POLL_INTERVAL = 0.2  # Seconds between attempts
MAX_LOCK_MINUTES = 24 * 60  # Upper bound accepted by the CLI

# --- Audio streams (Android AudioManager stream ids) ---
STREAM_SYSTEM = 1
STREAM_RING = 2
STREAM_MUSIC = 3
STREAM_NOTIFICATION = 5
SUPPRESSED_STREAMS = [STREAM_RING, STREAM_NOTIFICATION, STREAM_SYSTEM, STREAM_MUSIC]

# Interruption filters understood by `cmd notification set_dnd`
DND_FILTER_PRIORITY = "priority"
DND_FILTER_ALL = "all"

# Paths
LOCK_STATE_FILE = USER_DATA_DIR / "lock_state.json"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # Can override in .env: DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
