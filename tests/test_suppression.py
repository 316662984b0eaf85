"""Tests for the suppression subsystem (volume snapshots and DND)."""

import sys
import tempfile
import threading
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from fakes import FakeAudio, FakeChannel, FakePolicy
from device.commands import CommandOrchestrator
from device.launcher import AppIdentity
from state.lock_store import LockStateStore
from suppression import Suppressor, VolumeSuppressor, DndController

ORIGINAL_VOLUMES = {1: 3, 2: 5, 3: 10, 5: 6}


class TestVolumeSuppressor(unittest.TestCase):

    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.store = LockStateStore(Path(self._tmpdir.name) / "lock_state.json")
        self.audio = FakeAudio(ORIGINAL_VOLUMES)
        self.volumes = VolumeSuppressor(self.audio, self.store)

    def tearDown(self):
        self._tmpdir.cleanup()

    def test_mute_then_restore_round_trip(self):
        self.volumes.mute_all()
        self.assertEqual(set(self.audio.volumes.values()), {0})
        self.assertEqual(self.store.saved_volumes(), ORIGINAL_VOLUMES)

        self.volumes.restore_all()
        self.assertEqual(self.audio.volumes, ORIGINAL_VOLUMES)
        self.assertEqual(self.store.saved_volumes(), {})

    def test_snapshot_never_overwritten(self):
        self.volumes.mute_all()
        # A second mute sees 0 everywhere but must keep the first levels
        self.volumes.mute_all()
        self.assertEqual(self.store.saved_volumes(), ORIGINAL_VOLUMES)

    def test_restore_failure_still_drops_snapshots(self):
        """Silence-enforcing mode refuses every change: level kept, snapshot removed."""
        self.audio.fail_set = True
        self.volumes.mute_all()
        self.assertEqual(self.audio.volumes, ORIGINAL_VOLUMES)
        self.assertEqual(self.store.saved_volumes(), ORIGINAL_VOLUMES)

        self.volumes.restore_all()
        self.assertEqual(self.audio.volumes, ORIGINAL_VOLUMES)
        self.assertEqual(self.store.saved_volumes(), {})

    def test_failing_restore_after_mute_removes_snapshot(self):
        self.volumes.mute_all()
        self.audio.fail_set = True
        self.volumes.restore_all()
        self.assertEqual(self.store.saved_volumes(), {})

    def test_unreadable_stream_is_left_alone(self):
        self.audio.fail_get = {3}
        self.volumes.mute_all()
        self.assertNotIn(3, self.store.saved_volumes())
        self.assertEqual(self.audio.volumes[3], 10)
        self.assertEqual(self.audio.volumes[2], 0)

    def test_partial_restore_keeps_only_unrestored(self):
        self.volumes.mute_all()
        self.store.remove_volume(2)
        self.assertEqual(set(self.store.saved_volumes()), {1, 3, 5})


class TestDndController(unittest.TestCase):

    def setUp(self):
        self.channel = FakeChannel()
        self.orchestrator = CommandOrchestrator(
            self.channel, AppIdentity("com.brill.locker", "com.brill.locker.MainActivity")
        )

    def test_engage_with_access_applies_priority(self):
        policy = FakePolicy(granted=True)
        dnd = DndController(policy, self.orchestrator, retries=10, interval=0.0)
        dnd.engage().join(2.0)
        self.assertEqual(policy.filters, ["priority"])
        self.assertTrue(dnd.is_engaged)
        self.assertFalse(self.channel.ran("ACCESS_NOTIFICATION_POLICY"))

    def test_engage_grants_and_waits_for_access(self):
        policy = FakePolicy(granted=False, grant_after=3)
        dnd = DndController(policy, self.orchestrator, retries=10, interval=0.0)
        dnd.engage().join(2.0)
        self.assertTrue(self.channel.ran("cmd appops set com.brill.locker ACCESS_NOTIFICATION_POLICY allow"))
        self.assertEqual(policy.filters, ["priority"])

    def test_engage_gives_up_after_retry_budget(self):
        policy = FakePolicy(granted=False)
        dnd = DndController(policy, self.orchestrator, retries=10, interval=0.0)
        dnd.engage().join(2.0)
        self.assertEqual(policy.filters, [])
        self.assertFalse(dnd.is_engaged)
        # Initial check, the check after granting, then one per retry
        self.assertEqual(policy.checks, 12)

    def test_release_reverts_only_with_access(self):
        policy = FakePolicy(granted=True)
        dnd = DndController(policy, self.orchestrator, retries=0, interval=0.0)
        dnd.engage().join(2.0)
        dnd.release()
        self.assertEqual(policy.filters, ["priority", "all"])

        policy.granted = False
        dnd.release()
        self.assertEqual(policy.filters, ["priority", "all"])

    def test_release_cancels_pending_engage(self):
        policy = FakePolicy(granted=False)
        dnd = DndController(policy, self.orchestrator, retries=10, interval=5.0)
        worker = dnd.engage()
        dnd.release()
        policy.granted = True
        worker.join(2.0)
        self.assertFalse(worker.is_alive())
        self.assertNotIn("priority", policy.filters)


class TestSuppressor(unittest.TestCase):

    def test_enable_disable(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = LockStateStore(Path(tmpdir) / "lock_state.json")
            audio = FakeAudio(ORIGINAL_VOLUMES)
            policy = FakePolicy(granted=True)
            dnd = DndController(policy, CommandOrchestrator(FakeChannel()), retries=0, interval=0.0)
            suppressor = Suppressor(VolumeSuppressor(audio, store), dnd)

            suppressor.enable()
            dnd.wait(2.0)
            suppressor.disable()

            self.assertEqual(audio.volumes, ORIGINAL_VOLUMES)
            self.assertEqual(store.saved_volumes(), {})
            self.assertEqual(policy.filters, ["priority", "all"])


if __name__ == "__main__":
    unittest.main()
