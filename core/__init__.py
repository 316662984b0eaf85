"""
Core business logic package for FocusLock.

Contains the headless LockEngine state machine and the privileged shell
capability checks. Zero UI dependencies.
"""

from core.engine import LockEngine, LockState, LockStatus

__all__ = ["LockEngine", "LockState", "LockStatus"]
