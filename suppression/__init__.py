"""
Suppression subsystem - silences the device for the length of a lock.

Combines volume snapshot/mute and do-not-disturb so the engine has one
enable()/disable() pair. Neither call raises; failures are logged.
"""

import logging

from suppression.audio import VolumeSuppressor
from suppression.dnd import DndController

logger = logging.getLogger(__name__)


class Suppressor:
    """Applies and exactly reverses audio and interruption suppression."""

    def __init__(self, volumes: VolumeSuppressor, dnd: DndController) -> None:
        self.volumes = volumes
        self.dnd = dnd

    def enable(self) -> None:
        try:
            self.volumes.mute_all()
        except Exception as e:
            logger.error(f"Muting failed: {e}")
        self.dnd.engage()

    def disable(self) -> None:
        self.dnd.release()
        try:
            self.volumes.restore_all()
        except Exception as e:
            logger.error(f"Volume restore failed: {e}")


__all__ = ["Suppressor", "VolumeSuppressor", "DndController"]
