"""
Lock State Store for FocusLock.

Durable record of an active lock: the unlock deadline, the launcher the
device had before the lock, and the audio volumes saved before muting.
The record must survive a restart of the host process so an interrupted
lock can be resumed or lifted.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional

import config
from device.launcher import AppIdentity

logger = logging.getLogger(__name__)

KEY_PKG = "original_pkg"
KEY_CLS = "original_cls"
KEY_UNLOCK_TIMESTAMP = "unlock_timestamp"
KEY_VOL_PREFIX = "vol_stream_"


class LockStateStore:
    """
    Synchronous key-value store backed by a JSON file.

    Every mutation is written straight to disk. Reads come from memory,
    which mirrors the file after load.
    """

    def __init__(self, data_file: Optional[Path] = None) -> None:
        self.data_file: Path = data_file or config.LOCK_STATE_FILE
        self._lock = threading.Lock()
        self.data: Dict = self._load_data()

    def _load_data(self) -> dict:
        """
        Load the record from the JSON file.

        Returns:
            The stored dict, or an empty one if missing or unreadable.
        """
        if not self.data_file.exists():
            return {}
        try:
            with open(self.data_file, 'r') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                logger.warning("Lock state file is not a JSON object, ignoring it")
                return {}
            logger.debug(f"Loaded lock state: {data}")
            return data
        except (json.JSONDecodeError, IOError, OSError) as e:
            logger.warning(f"Failed to load lock state: {e}")
            return {}

    def _save_data(self) -> bool:
        """
        Save the record with an atomic write (temp file, then rename).

        A crash mid-write leaves the previous record intact.

        Returns:
            True if the record reached disk.
        """
        try:
            self.data_file.parent.mkdir(parents=True, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(
                suffix='.tmp',
                prefix='lock_state_',
                dir=self.data_file.parent
            )
            try:
                with os.fdopen(temp_fd, 'w') as f:
                    json.dump(self.data, f, indent=2)
                os.replace(temp_path, self.data_file)
            except Exception:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise
            return True
        except (IOError, OSError) as e:
            logger.error(f"Failed to save lock state: {e}")
            return False

    def _put(self, key: str, value) -> bool:
        with self._lock:
            self.data[key] = value
            return self._save_data()

    def _remove(self, key: str) -> None:
        with self._lock:
            if key in self.data:
                del self.data[key]
                self._save_data()

    # ------------------------------------------------------------------
    # Deadline
    # ------------------------------------------------------------------

    def get_deadline(self) -> Optional[int]:
        """Unlock deadline in epoch milliseconds, or None."""
        value = self.data.get(KEY_UNLOCK_TIMESTAMP)
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed unlock deadline: {value!r}")
            return None

    def set_deadline(self, deadline_ms: int) -> bool:
        """Persist the deadline. Returns False if it could not be written."""
        return self._put(KEY_UNLOCK_TIMESTAMP, int(deadline_ms))

    def clear_deadline(self) -> None:
        self._remove(KEY_UNLOCK_TIMESTAMP)

    # ------------------------------------------------------------------
    # Original launcher
    # ------------------------------------------------------------------

    def get_original_launcher(self) -> Optional[AppIdentity]:
        pkg = self.data.get(KEY_PKG)
        cls = self.data.get(KEY_CLS)
        if not pkg or not cls:
            return None
        return AppIdentity(pkg, cls)

    def has_original_launcher(self) -> bool:
        return self.get_original_launcher() is not None

    def set_original_launcher(self, identity: AppIdentity) -> None:
        with self._lock:
            self.data[KEY_PKG] = identity.package
            self.data[KEY_CLS] = identity.component
            self._save_data()

    # ------------------------------------------------------------------
    # Saved stream volumes
    # ------------------------------------------------------------------

    def get_saved_volume(self, stream: int) -> Optional[int]:
        value = self.data.get(f"{KEY_VOL_PREFIX}{stream}")
        return int(value) if value is not None else None

    def save_volume(self, stream: int, level: int) -> None:
        self._put(f"{KEY_VOL_PREFIX}{stream}", int(level))

    def remove_volume(self, stream: int) -> None:
        self._remove(f"{KEY_VOL_PREFIX}{stream}")

    def saved_volumes(self) -> Dict[int, int]:
        """All saved volumes keyed by stream id."""
        volumes = {}
        for key, value in self.data.items():
            if not key.startswith(KEY_VOL_PREFIX):
                continue
            try:
                volumes[int(key[len(KEY_VOL_PREFIX):])] = int(value)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring malformed volume entry {key}={value!r}")
        return volumes
