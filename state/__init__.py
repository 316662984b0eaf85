"""
State package - durable lock record.

Provides LockStateStore, the JSON-backed record that lets a lock survive
a restart of the host process.
"""

from state.lock_store import LockStateStore

__all__ = ["LockStateStore"]
