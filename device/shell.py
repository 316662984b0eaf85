"""
Privileged command channel for FocusLock.

Runs single shell command strings on the attached Android device through
`adb shell`, which executes them as the shell user. Every execution
returns a CommandResult; nothing here raises on command failure.
"""

import shlex
import shutil
import subprocess
import logging
from dataclasses import dataclass
from typing import List, Optional

import config

logger = logging.getLogger(__name__)


class DeviceCommandError(Exception):
    """A device-side operation reported failure (non-zero exit code)."""

    def __init__(self, command: str, result: "CommandResult"):
        super().__init__(f"{command!r} failed with exit code {result.exit_code}: {result.stderr}")
        self.command = command
        self.result = result


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one privileged command execution."""
    exit_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def __str__(self) -> str:
        return f"ExitCode: {self.exit_code}\nSTDOUT: {self.stdout}\nSTDERR: {self.stderr}"


def unavailable_result(reason: str) -> CommandResult:
    """Result used when the command never reached the device."""
    return CommandResult(config.EXIT_CHANNEL_UNAVAILABLE, "", reason)


class AdbShellChannel:
    """
    Executes commands on the device via `adb shell`.

    Availability and permission are re-checked before every command so a
    device that was unplugged or de-authorised fails fast with the
    channel-unavailable sentinel instead of hanging.
    """

    def __init__(
        self,
        adb_path: Optional[str] = None,
        serial: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.adb_path = adb_path or config.ADB_PATH
        self.serial = serial if serial is not None else config.ADB_SERIAL
        self.timeout = timeout if timeout is not None else config.SHELL_COMMAND_TIMEOUT

    def _adb(self, *args: str) -> List[str]:
        """Build an adb argv targeting the configured device."""
        argv = [self.adb_path]
        if self.serial:
            argv += ["-s", self.serial]
        argv.extend(args)
        return argv

    def _device_state(self) -> str:
        """
        Ask adb for the device state.

        Returns:
            "device", "unauthorized", "offline", or "" when no device is
            reachable or adb is missing.
        """
        if shutil.which(self.adb_path) is None:
            return ""
        try:
            result = subprocess.run(
                self._adb("get-state"),
                capture_output=True, text=True, timeout=5,
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.debug(f"adb get-state failed: {e}")
            return ""
        if result.returncode == 0:
            return result.stdout.strip()
        # adb prints "error: device unauthorized" with a non-zero code
        if "unauthorized" in result.stderr:
            return "unauthorized"
        return ""

    def available(self) -> bool:
        """True if adb is installed and a device is attached."""
        return self._device_state() in ("device", "unauthorized")

    def has_permission(self) -> bool:
        """True if the attached device has authorised this host."""
        return self._device_state() == "device"

    def request_permission(self) -> None:
        """
        Re-open the connection so the device shows its authorisation prompt.

        Granting is up to the user on the device; this only triggers it.
        """
        try:
            subprocess.run(self._adb("reconnect"), capture_output=True, text=True, timeout=10)
            logger.info("Requested device authorisation - confirm the prompt on the device")
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.warning(f"Could not request device authorisation: {e}")

    def execute(self, command: str) -> CommandResult:
        """
        Run one shell command on the device and wait for it to exit.

        Args:
            command: Shell command line, run under `sh -c` on the device.

        Returns:
            CommandResult with trimmed stdout/stderr. Exit code -1 means the
            channel was unavailable, -2 means execution itself failed.
        """
        logger.debug(f"Exec: {command}")
        if not self.has_permission():
            logger.warning(f"Privileged channel unavailable, skipping: {command}")
            return unavailable_result("Privileged channel unavailable")

        try:
            proc = subprocess.run(
                self._adb("shell", "sh", "-c", shlex.quote(command)),
                capture_output=True, text=True, timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.error(f"Command timed out after {self.timeout}s: {command}")
            return CommandResult(config.EXIT_EXECUTION_ERROR, "", "Timed out")
        except OSError as e:
            logger.error(f"Exception running command: {e}")
            return CommandResult(config.EXIT_EXECUTION_ERROR, "", str(e) or "Unknown error")

        result = CommandResult(proc.returncode, proc.stdout.strip(), proc.stderr.strip())
        if result.success:
            logger.debug(f"Command SUCCESS:\n{result}")
        else:
            logger.warning(f"Command FAILED: {command}\n{result}")
        return result
