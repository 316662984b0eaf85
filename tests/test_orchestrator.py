"""Tests for device/commands.py - takeover and the release tier cascade."""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from fakes import FakeChannel
import config
from device.commands import CommandOrchestrator, ReleaseOutcome
from device.launcher import AppIdentity

LOCKER = AppIdentity("com.brill.locker", "com.brill.locker.MainActivity")
TARGET = AppIdentity("com.microsoft.launcher", "com.microsoft.launcher.Launcher")


class TestTakeover(unittest.TestCase):

    def setUp(self):
        self.channel = FakeChannel()
        self.orchestrator = CommandOrchestrator(self.channel, LOCKER)

    def test_takeover_writes_role_and_preference(self):
        self.assertTrue(self.orchestrator.takeover())
        self.assertEqual(self.channel.commands, [
            "cmd role add-role-holder --user 0 android.app.role.HOME com.brill.locker",
            "cmd package set-home-activity --user 0 com.brill.locker/com.brill.locker.MainActivity",
        ])

    def test_takeover_attempts_both_when_role_fails(self):
        self.channel.respond("add-role-holder", exit_code=1, stderr="Unknown command")
        self.assertTrue(self.orchestrator.takeover())
        self.assertEqual(len(self.channel.ran("set-home-activity")), 1)

    def test_takeover_reports_total_failure(self):
        self.channel.respond("add-role-holder", exit_code=1)
        self.channel.respond("set-home-activity", exit_code=1)
        self.assertFalse(self.orchestrator.takeover())

    def test_takeover_with_channel_unavailable(self):
        self.channel.is_available = False
        self.assertFalse(self.orchestrator.takeover())


class TestReleaseCascade(unittest.TestCase):

    def setUp(self):
        self.channel = FakeChannel()
        self.orchestrator = CommandOrchestrator(self.channel, LOCKER)

    def test_role_tier_success_stops_cascade(self):
        outcome = self.orchestrator.release(TARGET)
        self.assertEqual(outcome, ReleaseOutcome.ROLE)
        self.assertEqual(self.channel.commands, [
            "cmd role add-role-holder --user 0 android.app.role.HOME com.microsoft.launcher",
            "am start -a android.intent.action.MAIN -c android.intent.category.HOME "
            "-n com.microsoft.launcher/com.microsoft.launcher.Launcher",
        ])

    def test_legacy_tier_after_role_failure(self):
        """Role fails, legacy succeeds: attributed to legacy, no manual path."""
        self.channel.respond("add-role-holder", exit_code=255)
        outcome = self.orchestrator.release(TARGET)
        self.assertEqual(outcome, ReleaseOutcome.LEGACY)
        self.assertEqual(self.channel.commands, [
            "cmd role add-role-holder --user 0 android.app.role.HOME com.microsoft.launcher",
            "cmd role remove-role-holder --user 0 android.app.role.HOME com.brill.locker",
            "pm clear-package-preferred-activities --user 0 com.brill.locker",
            "cmd package set-home-activity --user 0 com.microsoft.launcher/com.microsoft.launcher.Launcher",
            "am start -a android.intent.action.MAIN -c android.intent.category.HOME "
            "-n com.microsoft.launcher/com.microsoft.launcher.Launcher",
        ])
        self.assertFalse(self.channel.ran("android.settings"))

    def test_both_tiers_fail_requires_manual(self):
        self.channel.respond("add-role-holder", exit_code=1)
        self.channel.respond("set-home-activity", exit_code=1)
        outcome = self.orchestrator.release(TARGET)
        self.assertEqual(outcome, ReleaseOutcome.MANUAL_REQUIRED)
        self.assertFalse(self.channel.ran("am start"))

    def test_no_target_uses_system_default(self):
        outcome = self.orchestrator.release(None)
        self.assertEqual(outcome, ReleaseOutcome.SYSTEM_DEFAULT)
        default = f"{config.DEFAULT_LAUNCHER_PACKAGE}/{config.DEFAULT_LAUNCHER_ACTIVITY}"
        self.assertEqual(self.channel.ran("set-home-activity"), [
            f"cmd package set-home-activity --user 0 {default}"
        ])
        self.assertFalse(self.channel.ran("add-role-holder"))
        self.assertTrue(self.channel.ran(f"-n {default}"))

    def test_no_target_failure_requires_manual(self):
        self.channel.respond("set-home-activity", exit_code=1)
        self.assertEqual(self.orchestrator.release(None), ReleaseOutcome.MANUAL_REQUIRED)

    def test_channel_unavailable_never_raises(self):
        self.channel.is_available = False
        self.assertEqual(self.orchestrator.release(TARGET), ReleaseOutcome.MANUAL_REQUIRED)


class TestSettingsAndPermissions(unittest.TestCase):

    def setUp(self):
        self.channel = FakeChannel()
        self.orchestrator = CommandOrchestrator(self.channel, LOCKER)

    def test_grant_notification_policy(self):
        self.assertTrue(self.orchestrator.grant_notification_policy_access())
        self.assertEqual(self.channel.commands, [
            "cmd appops set com.brill.locker ACCESS_NOTIFICATION_POLICY allow"
        ])

    def test_allow_notification_listener(self):
        self.assertTrue(self.orchestrator.allow_notification_listener("com.brill.locker.NotificationBlocker"))
        self.assertEqual(self.channel.commands, [
            "cmd notification allow_listener com.brill.locker/com.brill.locker.NotificationBlocker"
        ])

    def test_open_default_apps_settings(self):
        self.assertTrue(self.orchestrator.open_default_apps_settings())
        self.assertEqual(len(self.channel.commands), 1)

    def test_open_settings_falls_back(self):
        self.channel.respond(
            "MANAGE_DEFAULT_APPS_SETTINGS",
            stderr="Error: Activity not started, unable to resolve Intent",
        )
        self.assertTrue(self.orchestrator.open_default_apps_settings())
        self.assertEqual(self.channel.commands[-1], "am start -a android.settings.SETTINGS")


if __name__ == "__main__":
    unittest.main()
