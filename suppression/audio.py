"""Audio stream muting with persisted volume snapshots."""

import logging
from typing import List, Optional

import config

logger = logging.getLogger(__name__)


class VolumeSuppressor:
    """
    Mutes the suppressed audio streams and restores them afterwards.

    Each stream's pre-lock volume is saved in the lock record before it is
    muted. A snapshot is never overwritten, so re-muting after a restart
    keeps the original level rather than the muted one.
    """

    def __init__(self, audio, store, streams: Optional[List[int]] = None) -> None:
        self.audio = audio
        self.store = store
        self.streams = list(streams) if streams is not None else list(config.SUPPRESSED_STREAMS)

    def mute_all(self) -> None:
        for stream in self.streams:
            if self.store.get_saved_volume(stream) is None:
                try:
                    current = self.audio.get_volume(stream)
                except Exception as e:
                    # Unknown level, nothing safe to restore later
                    logger.warning(f"Could not read volume of stream {stream}: {e}")
                    continue
                self.store.save_volume(stream, current)
                logger.debug(f"Saved volume {current} for stream {stream}")

            try:
                self.audio.set_volume(stream, 0)
            except Exception as e:
                # The device is already in a silence-enforcing mode
                logger.debug(f"Mute of stream {stream} refused, treating as muted: {e}")

    def restore_all(self) -> None:
        for stream, level in self.store.saved_volumes().items():
            try:
                self.audio.set_volume(stream, level)
                logger.debug(f"Restored stream {stream} to {level}")
            except Exception as e:
                logger.warning(f"Could not restore stream {stream} to {level}: {e}")
            # Always drop the snapshot so the next lock saves a fresh one
            self.store.remove_volume(stream)
