"""Tests for the systemd and launchd service managers."""

import io
import plistlib
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

from ser.config import Config
from ser.errors import CommandError, SerError, ServiceNotFoundError
from ser.models import CalendarSchedule, ServiceDetails
from ser.platform import (
    LaunchdManager,
    ListLevel,
    ServiceManager,
    SystemdManager,
    get_manager,
    normalize_service_name,
)
from ser.util.shell import ShellResult


class TestNormalizeServiceName(unittest.TestCase):
    """Test reducing unit names and labels to user-facing names."""

    def test_service_suffix(self):
        """Test that .service is removed."""
        self.assertEqual(normalize_service_name("nginx.service"), "nginx")

    def test_template_instance(self):
        """Test that the instance part of a template unit is removed."""
        self.assertEqual(normalize_service_name("getty@tty1.service"), "getty")

    def test_homebrew_label(self):
        """Test that the Homebrew label prefix is removed."""
        self.assertEqual(normalize_service_name("homebrew.mxcl.postgresql@14"), "postgresql")

    def test_plain_name(self):
        """Test that plain names are unchanged."""
        self.assertEqual(normalize_service_name("com.example.worker"), "com.example.worker")


class TestServiceManagerBase(unittest.TestCase):
    """Test the abstract manager contract."""

    def test_incomplete_manager_cannot_be_created(self):
        """Test that a manager missing platform operations fails at construction."""
        class DirectoriesOnly(ServiceManager):
            def user_dirs(self):
                return []

        with self.assertRaises(TypeError):
            DirectoriesOnly(Config())

    def test_platform_managers_are_complete(self):
        """Test that both shipped managers implement every operation."""
        self.assertFalse(SystemdManager.__abstractmethods__)
        self.assertFalse(LaunchdManager.__abstractmethods__)


class TestGetManager(unittest.TestCase):
    """Test platform selection."""

    def test_linux(self):
        """Test that Linux uses systemd."""
        self.assertIsInstance(get_manager(system="Linux"), SystemdManager)

    def test_macos(self):
        """Test that macOS uses launchd."""
        self.assertIsInstance(get_manager(system="Darwin"), LaunchdManager)

    def test_unsupported(self):
        """Test that other platforms are rejected."""
        with self.assertRaises(SerError):
            get_manager(system="Windows")

    def test_config_is_passed(self):
        """Test that the manager sees the loaded configuration."""
        manager = get_manager(Config(verbose=True, scope="user"), system="Linux")
        self.assertTrue(manager.echo)
        self.assertTrue(manager.user_scope)

    def test_default_scopes(self):
        """Test the per-platform default scope."""
        self.assertEqual(get_manager(system="Linux").scope, "system")
        self.assertEqual(get_manager(system="Darwin").scope, "user")


class ManagerTestCase(unittest.TestCase):
    """Run a manager against temporary directories with commands mocked."""

    manager_class = SystemdManager

    def make_manager(self, config: Config | None = None):
        manager = self.manager_class(config or Config())
        for attribute, value in (
            ("install_dir", self.unit_dir),
            ("user_dirs", []),
            ("system_dirs", [self.unit_dir]),
        ):
            patcher = patch.object(manager, attribute, return_value=value)
            patcher.start()
            self.addCleanup(patcher.stop)
        return manager

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.root = Path(self.temp_dir.name)
        self.unit_dir = self.root / "units"

        run_patcher = patch("ser.platform.base.run", return_value=ShellResult(0, "", ""))
        self.run = run_patcher.start()
        self.addCleanup(run_patcher.stop)

        interactive_patcher = patch("ser.platform.base.run_interactive", return_value=0)
        self.run_interactive = interactive_patcher.start()
        self.addCleanup(interactive_patcher.stop)

        self.manager = self.make_manager()

    def commands(self) -> list[list[str]]:
        return [call.args[0] for call in self.run.call_args_list]


class TestSystemdManager(ManagerTestCase):
    """Test SystemdManager file handling and systemctl calls."""

    def setUp(self):
        super().setUp()
        self.wants_dir = self.root / "multi-user.target.wants"
        patcher = patch.object(self.manager, "wants_dirs", return_value=[self.wants_dir])
        patcher.start()
        self.addCleanup(patcher.stop)

        self.backup = ServiceDetails.create(
            "backup", "/usr/bin/backup", ["--full"],
            schedule=CalendarSchedule(hour=3, minute=30)
        )
        self.worker = ServiceDetails.create(
            "worker", "/usr/bin/worker", run_at_load=True, keep_alive=True
        )

    def test_create_supervised(self):
        """Test writing a unit and enabling it for boot."""
        path = self.manager.create_service(self.worker)

        self.assertEqual(path, self.unit_dir / "worker.service")
        self.assertTrue(path.read_text().startswith("# Managed by ser"))
        self.assertFalse((self.unit_dir / "worker.timer").exists())
        self.assertEqual(
            self.commands(),
            [["systemctl", "daemon-reload"], ["systemctl", "enable", "worker.service"]]
        )

    def test_create_scheduled(self):
        """Test that scheduled services get a timer and the timer is enabled."""
        path = self.manager.create_service(self.backup)

        timer = self.unit_dir / "backup.timer"
        self.assertTrue(path.exists())
        self.assertIn("OnCalendar=*-*-* 03:30:00", timer.read_text())
        self.assertEqual(
            self.commands(),
            [["systemctl", "daemon-reload"], ["systemctl", "enable", "backup.timer"]]
        )

    def test_create_not_at_boot(self):
        """Test that nothing is enabled when the service should not start at boot."""
        details = ServiceDetails.create("once", "/bin/true")
        self.manager.create_service(details)
        self.assertEqual(self.commands(), [["systemctl", "daemon-reload"]])

    def test_user_scope(self):
        """Test that user-scope commands pass --user."""
        manager = self.make_manager(Config(scope="user"))
        manager.create_service(self.worker)
        self.assertEqual(self.commands()[0], ["systemctl", "--user", "daemon-reload"])

    def test_create_reports_systemctl_failure(self):
        """Test that a failing systemctl call raises CommandError."""
        self.run.return_value = ShellResult(1, "", "Failed to connect to bus")
        with self.assertRaises(CommandError) as ctx:
            self.manager.create_service(self.worker)
        self.assertIn("exit code 1", str(ctx.exception))
        self.assertIn("Failed to connect to bus", str(ctx.exception))

    def test_missing_systemctl(self):
        """Test that a missing systemctl binary is reported as SerError."""
        self.run.side_effect = FileNotFoundError("systemctl")
        with self.assertRaises(SerError):
            self.manager.is_service_running("worker.service")

    def test_get_service(self):
        """Test lookup by short name and by unit file name."""
        self.manager.create_service(self.worker)
        self.assertEqual(self.manager.get_service("worker").name, "worker.service")
        self.assertEqual(self.manager.resolve_service_name("worker.service"), "worker.service")

    def test_get_service_not_found(self):
        """Test that unknown names raise ServiceNotFoundError."""
        with self.assertRaises(ServiceNotFoundError):
            self.manager.get_service("missing")

    def test_get_service_details_with_timer(self):
        """Test that installed details include the schedule from the timer."""
        self.manager.create_service(self.backup)
        self.wants_dir.mkdir()
        (self.wants_dir / "backup.timer").touch()

        fs_details = self.manager.get_service_details("backup")

        self.assertEqual(fs_details.service, self.backup)
        self.assertEqual(fs_details.path, str(self.unit_dir / "backup.service"))
        self.assertTrue(fs_details.enabled)
        self.assertTrue(fs_details.running)

    def test_start_scheduled_uses_timer(self):
        """Test that start and stop act on the timer of a scheduled service."""
        self.manager.create_service(self.backup)
        self.run.reset_mock()

        self.manager.start_service("backup")
        self.manager.stop_service("backup")

        self.assertEqual(
            self.commands(),
            [["systemctl", "start", "backup.timer"], ["systemctl", "stop", "backup.timer"]]
        )

    def test_restart_service(self):
        """Test that unscheduled services are controlled through their .service unit."""
        self.manager.create_service(self.worker)
        self.run.reset_mock()
        self.manager.restart_service("worker")
        self.assertEqual(self.commands(), [["systemctl", "restart", "worker.service"]])

    def test_is_service_running(self):
        """Test the is-active probe."""
        self.assertTrue(self.manager.is_service_running("worker.service"))
        self.run.return_value = ShellResult(3, "", "")
        self.assertFalse(self.manager.is_service_running("worker.service"))
        self.assertEqual(
            self.commands()[-1], ["systemctl", "is-active", "--quiet", "worker.service"]
        )

    def test_show_logs(self):
        """Test the journalctl invocation."""
        self.manager.show_logs("worker.service", 20, follow=True)
        self.run_interactive.assert_called_once_with(
            ["journalctl", "-u", "worker.service", "-n", "20", "-f", "--no-pager"], echo=False
        )

    def test_show_logs_interrupted(self):
        """Test that Ctrl-C while following logs is not an error."""
        self.run_interactive.return_value = 130
        self.manager.show_logs("worker.service", 20, follow=True)

    def test_show_logs_failure(self):
        """Test that a failing journalctl raises CommandError."""
        self.run_interactive.return_value = 1
        with self.assertRaises(CommandError):
            self.manager.show_logs("worker.service", 20)

    def test_edit_service_reloads(self):
        """Test that editing opens the editor and reloads systemd."""
        manager = self.make_manager(Config(editor="nano"))
        manager.create_service(self.worker)
        self.run.reset_mock()

        with patch.object(manager, "wants_dirs", return_value=[self.wants_dir]):
            path = manager.edit_service("worker.service")

        self.run_interactive.assert_called_once_with(["nano", path], echo=False)
        self.assertEqual(self.commands(), [["systemctl", "daemon-reload"]])

    def test_next_trigger(self):
        """Test reading the next elapse time of a timer."""
        self.run.return_value = ShellResult(0, "Mon 2026-10-19 03:30:00 UTC", "")
        self.assertEqual(self.manager.next_trigger("backup"), "Mon 2026-10-19 03:30:00 UTC")
        self.run.return_value = ShellResult(0, "n/a", "")
        self.assertIsNone(self.manager.next_trigger("backup"))

    def test_service_rows_default_level(self):
        """Test that the default listing shows managed units with timers folded in."""
        self.manager.create_service(self.backup)
        self.manager.create_service(self.worker)
        (self.unit_dir / "sshd.service").write_text("[Service]\nExecStart=/usr/sbin/sshd -D\n")

        rows = self.manager.service_rows(ListLevel.DEFAULT)

        self.assertEqual([row.name for row in rows], ["backup.service", "worker.service"])
        backup, worker = rows
        self.assertEqual(backup.service_type, "timer")
        self.assertEqual(backup.schedule, "03:30")
        self.assertEqual(worker.service_type, "service")
        self.assertEqual(worker.schedule, "-")
        self.assertEqual(worker.status, "running")

    def test_service_rows_system_level(self):
        """Test that the full listing includes units written by other tools."""
        self.manager.create_service(self.worker)
        (self.unit_dir / "sshd.service").write_text("[Service]\nExecStart=/usr/sbin/sshd -D\n")

        rows = self.manager.service_rows(ListLevel.SYSTEM)
        self.assertEqual([row.name for row in rows], ["sshd.service", "worker.service"])

    def test_scan_ignores_other_files(self):
        """Test that only unit files are collected."""
        self.unit_dir.mkdir()
        (self.unit_dir / "README").write_text("notes")
        (self.unit_dir / "web.socket").write_text("[Socket]\n")
        names = [ref.name for ref in self.manager.scan_directory(self.unit_dir)]
        self.assertEqual(names, ["web.socket"])

    def test_scan_missing_directory(self):
        """Test that a missing directory yields no services."""
        self.assertEqual(self.manager.scan_directory(self.root / "nope"), [])


class TestLaunchdManager(ManagerTestCase):
    """Test LaunchdManager file handling and launchctl calls."""

    manager_class = LaunchdManager

    def setUp(self):
        super().setUp()
        self.worker = ServiceDetails.create(
            "com.example.worker", "/usr/local/bin/worker", ["--serve"],
            working_directory="/tmp", run_at_load=True, keep_alive=True,
            env_vars=[("PORT", "8080")]
        )
        self.report = ServiceDetails.create(
            "com.example.report", "/usr/local/bin/report",
            schedule=CalendarSchedule(weekday=1, hour=9, minute=0)
        )

    def listing(self, *labels: str) -> ShellResult:
        lines = ["PID\tStatus\tLabel"] + [f"123\t0\t{label}" for label in labels]
        return ShellResult(0, "\n".join(lines), "")

    def test_create_service(self):
        """Test that a plist is written to the install directory."""
        path = self.manager.create_service(self.worker)

        self.assertEqual(path, self.unit_dir / "com.example.worker.plist")
        with open(path, "rb") as f:
            plist = plistlib.load(f)
        self.assertEqual(plist["Label"], "com.example.worker")
        self.assertEqual(self.commands(), [])

    def test_get_service_by_label(self):
        """Test lookup by the plist Label."""
        self.manager.create_service(self.worker)
        service = self.manager.get_service("com.example.worker")
        self.assertEqual(service.path, str(self.unit_dir / "com.example.worker.plist"))
        self.assertTrue(service.enabled)

    def test_disabled_job(self):
        """Test that Disabled=true marks a job as not enabled."""
        self.unit_dir.mkdir()
        with open(self.unit_dir / "off.plist", "wb") as f:
            plistlib.dump({"Label": "com.example.off", "Program": "/bin/true", "Disabled": True}, f)
        service = self.manager.get_service("com.example.off")
        self.assertFalse(service.enabled)

    def test_unreadable_plist_is_listed_by_file_name(self):
        """Test that a broken plist is still listed."""
        self.unit_dir.mkdir()
        (self.unit_dir / "broken.plist").write_text("not a plist")
        names = [ref.name for ref in self.manager.list_services()]
        self.assertEqual(names, ["broken"])

    def test_get_service_details(self):
        """Test parsing an installed job back into a description."""
        self.manager.create_service(self.worker)
        self.run.return_value = self.listing("com.example.worker")

        fs_details = self.manager.get_service_details("com.example.worker")

        self.assertEqual(fs_details.service, self.worker)
        self.assertTrue(fs_details.running)

    def test_start_and_stop(self):
        """Test the launchctl load and unload invocations."""
        path = str(self.manager.create_service(self.worker))
        self.manager.start_service("com.example.worker")
        self.manager.stop_service("com.example.worker")
        self.assertEqual(
            self.commands(),
            [["launchctl", "load", "-w", path], ["launchctl", "unload", "-w", path]]
        )

    @patch("ser.platform.macos.time.sleep")
    def test_restart(self, mock_sleep):
        """Test that restart unloads then loads the job."""
        path = str(self.manager.create_service(self.worker))
        self.manager.restart_service("com.example.worker")
        self.assertEqual(
            self.commands(),
            [["launchctl", "unload", "-w", path], ["launchctl", "load", "-w", path]]
        )
        mock_sleep.assert_called_once()

    def test_is_service_running(self):
        """Test matching the label column of launchctl list."""
        self.run.return_value = self.listing("com.example.worker", "com.apple.other")
        self.assertTrue(self.manager.is_service_running("com.example.worker"))
        self.assertFalse(self.manager.is_service_running("com.example.work"))

    def test_is_service_running_failure(self):
        """Test that a failing launchctl list means not running."""
        self.run.return_value = ShellResult(1, "", "")
        self.assertFalse(self.manager.is_service_running("com.example.worker"))

    def test_service_rows(self):
        """Test that scheduled jobs are listed as timers."""
        self.manager.create_service(self.worker)
        self.manager.create_service(self.report)
        self.run.return_value = self.listing("com.example.worker")

        rows = {row.name: row for row in self.manager.service_rows()}

        self.assertEqual(rows["com.example.report"].service_type, "timer")
        self.assertEqual(rows["com.example.report"].schedule, "Mon 09:00")
        self.assertEqual(rows["com.example.report"].status, "stopped")
        self.assertEqual(rows["com.example.worker"].service_type, "service")
        self.assertEqual(rows["com.example.worker"].status, "running")

    def test_show_logs(self):
        """Test that only the last lines of the log window are printed."""
        self.run.return_value = ShellResult(0, "one\ntwo\nthree", "")
        out = io.StringIO()
        with redirect_stdout(out):
            self.manager.show_logs("com.example.worker", 2)
        self.assertEqual(out.getvalue(), "two\nthree\n")
        self.assertEqual(self.commands()[0][:4], ["log", "show", "--last", "1h"])

    def test_show_logs_empty(self):
        """Test the message when there are no log entries."""
        out = io.StringIO()
        with redirect_stdout(out):
            self.manager.show_logs("com.example.worker", 10)
        self.assertIn("No recent logs found", out.getvalue())

    def test_follow_logs(self):
        """Test that following logs streams attached to the terminal."""
        self.manager.show_logs("com.example.worker", 10, follow=True)
        cmd = self.run_interactive.call_args.args[0]
        self.assertEqual(cmd[:2], ["log", "stream"])


if __name__ == "__main__":
    unittest.main()
