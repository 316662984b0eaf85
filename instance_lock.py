"""
Instance Lock - Keeps a single FocusLock process in charge of the device.

Only one process may own the lock record and drive the device at a time.
Ownership is an OS-level file lock holding the owner's PID:
- Unix (macOS/Linux): fcntl.flock()
- Windows: msvcrt.locking()

The file lock is released when the process terminates, even on crashes.
A second process (e.g. the emergency `unlock` command) uses the PID to
signal the owner instead of touching the device itself.
"""

import os
import sys
import signal
import logging
import atexit
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_LOCK_BYTES = 32


def _get_lock_file_path() -> Path:
    """Lock file inside the user data directory."""
    from config import USER_DATA_DIR
    return USER_DATA_DIR / ".focuslock_owner.lock"


def _is_process_running(pid: int) -> bool:
    """
    Check if a process with the given PID is currently running.

    Args:
        pid: Process ID to check.

    Returns:
        True if the process is running, False otherwise.
    """
    if pid <= 0:
        return False

    try:
        if sys.platform == 'win32':
            import ctypes
            kernel32 = ctypes.windll.kernel32
            PROCESS_QUERY_LIMITED_INFORMATION = 0x1000
            handle = kernel32.OpenProcess(PROCESS_QUERY_LIMITED_INFORMATION, False, pid)
            if handle:
                kernel32.CloseHandle(handle)
                return True
            return False
        else:
            # Signal 0 only checks that the process exists
            os.kill(pid, 0)
            return True
    except (OSError, ProcessLookupError):
        return False


class InstanceLock:
    """
    Cross-platform owner lock using file locking.

    Usage:
        lock = InstanceLock()
        if not lock.acquire():
            print("FocusLock is already running")
            sys.exit(1)
        # ... drive the device ...
        lock.release()  # Optional - released automatically on exit
    """

    def __init__(self, lock_file: Path = None):
        """
        Initialize instance lock.

        Args:
            lock_file: Path to lock file (default: user data dir)
        """
        self.lock_file = lock_file or _get_lock_file_path()
        self._lock_handle: Optional[object] = None
        self._acquired = False

    def _try_acquire_lock(self) -> bool:
        """
        Attempt a non-blocking exclusive lock and record our PID.

        Returns:
            True if lock acquired, False otherwise.
        """
        try:
            if sys.platform == 'win32':
                import msvcrt
                mode = 'r+b' if self.lock_file.exists() else 'w+b'
                self._lock_handle = open(self.lock_file, mode)
                try:
                    msvcrt.locking(self._lock_handle.fileno(), msvcrt.LK_NBLCK, _LOCK_BYTES)
                except (IOError, OSError):
                    self._close_handle()
                    return False
                self._lock_handle.seek(0)
                self._lock_handle.truncate()
                self._lock_handle.write(str(os.getpid()).encode('utf-8').ljust(_LOCK_BYTES, b'\0'))
                self._lock_handle.flush()
                return True

            import fcntl
            # 'a+' so a failed attempt does not wipe the owner's PID
            self._lock_handle = open(self.lock_file, 'a+')
            try:
                fcntl.flock(self._lock_handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except (IOError, OSError):
                self._close_handle()
                return False
            self._lock_handle.seek(0)
            self._lock_handle.truncate()
            self._lock_handle.write(str(os.getpid()))
            self._lock_handle.flush()
            return True
        except (IOError, OSError) as e:
            logger.debug(f"Failed to open lock file: {e}")
            self._close_handle()
            return False

    def _close_handle(self) -> None:
        if self._lock_handle is not None:
            try:
                self._lock_handle.close()
            except OSError:
                pass
            self._lock_handle = None

    def acquire(self) -> bool:
        """
        Try to become the owning process.

        Returns:
            True if lock acquired (no other owner)
            False if another process owns the device
        """
        try:
            self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create lock directory: {e}")
            return False

        if self._try_acquire_lock():
            self._acquired = True
            logger.debug(f"Instance lock acquired (PID: {os.getpid()})")
            return True

        owner = read_owner_pid(self.lock_file)
        if owner is not None and not _is_process_running(owner):
            # The OS lock should already be gone with the process; retry once
            logger.info(f"Previous owner {owner} is gone, retrying")
            if self._try_acquire_lock():
                self._acquired = True
                return True
        return False

    def release(self) -> None:
        """Release the owner lock and remove the lock file."""
        if self._lock_handle is None:
            return
        if sys.platform == 'win32':
            import msvcrt
            try:
                self._lock_handle.seek(0)
                msvcrt.locking(self._lock_handle.fileno(), msvcrt.LK_UNLCK, _LOCK_BYTES)
            except (IOError, OSError):
                pass
        # On Unix, closing the file releases flock automatically
        self._close_handle()
        self._acquired = False
        try:
            self.lock_file.unlink()
        except OSError:
            pass
        logger.debug("Instance lock released")

    def is_acquired(self) -> bool:
        """Check if lock is currently held by this process."""
        return self._acquired

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


def read_owner_pid(lock_file: Optional[Path] = None) -> Optional[int]:
    """
    Read the PID of the owning process from the lock file.

    Returns:
        PID, or None if not readable
    """
    lock_file = lock_file or _get_lock_file_path()
    try:
        if lock_file.exists():
            content = lock_file.read_text().strip().strip('\0')
            if content.isdigit():
                return int(content)
    except OSError:
        pass
    return None


def signal_owner(sig: int, lock_file: Optional[Path] = None) -> bool:
    """
    Send a signal to the running owner.

    Returns:
        True if a live owner was found and signalled.
    """
    pid = read_owner_pid(lock_file)
    if pid is None or pid == os.getpid() or not _is_process_running(pid):
        return False
    try:
        os.kill(pid, sig)
        logger.info(f"Sent signal {sig} to owner process {pid}")
        return True
    except OSError as e:
        logger.warning(f"Could not signal owner process {pid}: {e}")
        return False


# Emergency override signal (POSIX only)
OVERRIDE_SIGNAL = getattr(signal, "SIGUSR1", None)

# Global instance for module-level functions
_instance_lock: Optional[InstanceLock] = None


def check_single_instance() -> bool:
    """
    Become the single owner of the device.

    The lock is automatically registered with atexit for cleanup.

    Returns:
        True if this is the only owner (safe to proceed)
        False if another process owns the device
    """
    global _instance_lock

    if _instance_lock is not None:
        return _instance_lock.is_acquired()

    _instance_lock = InstanceLock()
    acquired = _instance_lock.acquire()
    if acquired:
        atexit.register(release_instance_lock)
    return acquired


def release_instance_lock() -> None:
    """Release the owner lock (also called via atexit)."""
    global _instance_lock
    if _instance_lock is not None:
        _instance_lock.release()
        _instance_lock = None
