"""
Tests for the device layer: adb channel, capability checks, launcher
resolution and the audio/notification ports.
"""

import subprocess
import sys
import unittest
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent))

from fakes import FakeChannel, RESOLVE_OUTPUT
import config
from core.permissions import (
    check_shell_capability, is_shell_ready,
    CAPABILITY_READY, CAPABILITY_UNAVAILABLE, CAPABILITY_UNAUTHORIZED, CAPABILITY_UNSUPPORTED,
)
from device.launcher import AppIdentity, DefaultLauncherResolver, parse_resolve_output
from device.ports import AdbAudioPort, AdbNotificationPolicyPort, AdbNotificationPort
from device.shell import AdbShellChannel, DeviceCommandError


def _completed(argv, returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(argv, returncode, stdout, stderr)


class TestAdbShellChannel(unittest.TestCase):
    """subprocess is patched; no adb binary is needed."""

    def setUp(self):
        self.channel = AdbShellChannel(adb_path="adb", serial="emulator-5554", timeout=3)
        which = patch("device.shell.shutil.which", return_value="/usr/bin/adb")
        which.start()
        self.addCleanup(which.stop)

    def _fake_run(self, state="device", shell=None):
        calls = []

        def run(argv, **kwargs):
            calls.append(argv)
            if "get-state" in argv:
                if state == "unauthorized":
                    return _completed(argv, 1, "", "error: device unauthorized.")
                if not state:
                    return _completed(argv, 1, "", "error: no devices/emulators found")
                return _completed(argv, 0, state + "\n")
            if shell is not None:
                return shell(argv)
            return _completed(argv, 0, "ok\n")

        return run, calls

    def test_execute_success(self):
        run, calls = self._fake_run(shell=lambda argv: _completed(argv, 0, "  hello \n", ""))
        with patch("device.shell.subprocess.run", side_effect=run):
            result = self.channel.execute("echo hello")
        self.assertTrue(result.success)
        self.assertEqual(result.stdout, "hello")
        self.assertEqual(calls[-1], ["adb", "-s", "emulator-5554", "shell", "sh", "-c", "'echo hello'"])

    def test_execute_failure_keeps_exit_code(self):
        run, _ = self._fake_run(shell=lambda argv: _completed(argv, 255, "", "Unknown role\n"))
        with patch("device.shell.subprocess.run", side_effect=run):
            result = self.channel.execute("cmd role add-role-holder x")
        self.assertFalse(result.success)
        self.assertEqual(result.exit_code, 255)
        self.assertEqual(result.stderr, "Unknown role")

    def test_execute_fails_fast_without_device(self):
        run, calls = self._fake_run(state="")
        with patch("device.shell.subprocess.run", side_effect=run):
            result = self.channel.execute("echo hi")
        self.assertEqual(result.exit_code, config.EXIT_CHANNEL_UNAVAILABLE)
        self.assertFalse(any("shell" in argv for argv in calls))

    def test_execute_unauthorized(self):
        run, _ = self._fake_run(state="unauthorized")
        with patch("device.shell.subprocess.run", side_effect=run):
            self.assertTrue(self.channel.available())
            self.assertFalse(self.channel.has_permission())
            self.assertEqual(self.channel.execute("id").exit_code, config.EXIT_CHANNEL_UNAVAILABLE)

    def test_execute_timeout(self):
        def shell(argv):
            raise subprocess.TimeoutExpired(argv, 3)

        run, _ = self._fake_run(shell=shell)
        with patch("device.shell.subprocess.run", side_effect=run):
            result = self.channel.execute("sleep 100")
        self.assertEqual(result.exit_code, config.EXIT_EXECUTION_ERROR)

    def test_missing_adb_is_unavailable(self):
        with patch("device.shell.shutil.which", return_value=None):
            self.assertFalse(self.channel.available())


class TestShellCapability(unittest.TestCase):

    def test_ready(self):
        self.assertEqual(check_shell_capability(FakeChannel()), CAPABILITY_READY)
        self.assertTrue(is_shell_ready(FakeChannel()))

    def test_unavailable(self):
        self.assertEqual(check_shell_capability(FakeChannel(available=False)), CAPABILITY_UNAVAILABLE)

    def test_unauthorized(self):
        self.assertEqual(check_shell_capability(FakeChannel(permission=False)), CAPABILITY_UNAUTHORIZED)

    def test_old_device_unsupported(self):
        self.assertEqual(check_shell_capability(FakeChannel(sdk="21")), CAPABILITY_UNSUPPORTED)

    def test_unknown_sdk_assumed_ready(self):
        self.assertEqual(check_shell_capability(FakeChannel(sdk="")), CAPABILITY_READY)


class TestLauncherResolution(unittest.TestCase):

    def test_parse_shorthand_component(self):
        self.assertEqual(
            parse_resolve_output(RESOLVE_OUTPUT),
            AppIdentity("com.microsoft.launcher", "com.microsoft.launcher.Launcher"),
        )

    def test_parse_full_component(self):
        self.assertEqual(
            parse_resolve_output("com.nova/com.teslacoilsw.launcher.NovaLauncher"),
            AppIdentity("com.nova", "com.teslacoilsw.launcher.NovaLauncher"),
        )

    def test_resolver_activity_ignored(self):
        output = "priority=0 preferredOrder=0\nandroid/com.android.internal.app.ResolverActivity"
        self.assertIsNone(parse_resolve_output(output))

    def test_no_activity_found(self):
        self.assertIsNone(parse_resolve_output("No activity found"))

    def test_resolver_uses_channel(self):
        channel = FakeChannel()
        channel.respond("resolve-activity", stdout=RESOLVE_OUTPUT)
        identity = DefaultLauncherResolver(channel).resolve_current_home_app()
        self.assertEqual(identity.package, "com.microsoft.launcher")
        self.assertIn("--brief", channel.commands[0])

    def test_resolver_failure(self):
        channel = FakeChannel()
        channel.respond("resolve-activity", exit_code=1)
        self.assertIsNone(DefaultLauncherResolver(channel).resolve_current_home_app())

    def test_identity_round_trip_text(self):
        self.assertEqual(AppIdentity.parse("a.b/.Main").flatten(), "a.b/a.b.Main")
        self.assertIsNone(AppIdentity.parse("no-slash"))


class TestDevicePorts(unittest.TestCase):

    def test_get_volume(self):
        channel = FakeChannel()
        channel.respond("--get", stdout="volume is 7 in range [0..15]")
        self.assertEqual(AdbAudioPort(channel).get_volume(3), 7)
        self.assertEqual(channel.commands, ["cmd media_session volume --stream 3 --get"])

    def test_get_volume_unparseable(self):
        channel = FakeChannel()
        channel.respond("--get", stdout="garbage")
        with self.assertRaises(DeviceCommandError):
            AdbAudioPort(channel).get_volume(3)

    def test_set_volume_refused(self):
        channel = FakeChannel()
        channel.respond("--set", stderr="java.lang.SecurityException: Not allowed to change Do Not Disturb state")
        with self.assertRaises(DeviceCommandError):
            AdbAudioPort(channel).set_volume(2, 0)

    def test_policy_access(self):
        channel = FakeChannel()
        channel.respond("appops get", stdout="ACCESS_NOTIFICATION_POLICY: allow; time=+2m")
        port = AdbNotificationPolicyPort(channel, "com.brill.locker")
        self.assertTrue(port.is_policy_access_granted())
        channel.respond("appops get", stdout="ACCESS_NOTIFICATION_POLICY: default")
        self.assertFalse(port.is_policy_access_granted())

    def test_set_interruption_filter(self):
        channel = FakeChannel()
        AdbNotificationPolicyPort(channel).set_interruption_filter(config.DND_FILTER_PRIORITY)
        self.assertEqual(channel.commands, ["cmd notification set_dnd priority"])
        channel.respond("set_dnd", exit_code=1)
        with self.assertRaises(DeviceCommandError):
            AdbNotificationPolicyPort(channel).set_interruption_filter(config.DND_FILTER_ALL)

    def test_cancel_all_notifications(self):
        channel = FakeChannel()
        self.assertTrue(AdbNotificationPort(channel).cancel_all())
        self.assertEqual(channel.commands, ["service call notification 1"])


if __name__ == "__main__":
    unittest.main()
