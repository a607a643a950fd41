"""systemd service management for Linux."""

import logging
from pathlib import Path

from ser.codecs import systemd
from ser.errors import ParseError
from ser.models import FsServiceDetails, ServiceDetails, ServiceRef
from ser.platform.base import ListLevel, ServiceManager, normalize_service_name


logger = logging.getLogger(__name__)

UNIT_SUFFIXES = (
    ".service", ".socket", ".timer", ".target", ".mount",
    ".automount", ".swap", ".path", ".slice", ".scope",
)

_WANTS_TARGETS = ("multi-user", "graphical", "default", "timers")


class SystemdManager(ServiceManager):
    """Manage units through systemctl, system-wide or with --user."""

    default_scope = "system"
    native_format = "systemd"

    def _systemctl(self, *args: str) -> list[str]:
        if self.user_scope:
            return ["systemctl", "--user", *args]
        return ["systemctl", *args]

    def user_dirs(self) -> list[Path]:
        return [
            Path.home() / ".config" / "systemd" / "user",
            Path("/usr/lib/systemd/user"),
            Path("/etc/systemd/user"),
            Path("/usr/local/lib/systemd/user"),
        ]

    def system_dirs(self) -> list[Path]:
        return [
            Path("/lib/systemd/system"),
            Path("/usr/lib/systemd/system"),
            Path("/etc/systemd/system"),
            Path("/usr/local/lib/systemd/system"),
        ]

    def install_dir(self) -> Path:
        if self.user_scope:
            return Path.home() / ".config" / "systemd" / "user"
        return Path("/etc/systemd/system")

    def wants_dirs(self) -> list[Path]:
        """Directories whose symlinks mark a unit as enabled."""
        roots = [Path("/etc/systemd/system"), Path.home() / ".config" / "systemd" / "user"]
        return [root / f"{target}.target.wants" for root in roots for target in _WANTS_TARGETS]

    def is_enabled(self, unit_name: str) -> bool:
        return any((wants / unit_name).exists() for wants in self.wants_dirs())

    def scan_directory(self, directory: Path) -> list[ServiceRef]:
        """Collect unit files in one directory; unreadable directories are skipped."""
        if not directory.is_dir():
            return []

        services = []
        try:
            for path in sorted(directory.iterdir()):
                if path.suffix in UNIT_SUFFIXES and path.is_file():
                    services.append(ServiceRef(
                        name=path.name,
                        path=str(path),
                        enabled=self.is_enabled(path.name)
                    ))
        except OSError as e:
            logger.warning("Skipping %s: %s", directory, e)
        return services

    def generate_file(self, details: ServiceDetails) -> str:
        return systemd.generate_file(details)

    def _timer_path(self, service_path: Path) -> Path:
        return service_path.with_suffix(".timer")

    def _control_unit(self, name: str) -> str:
        """Unit to start/stop: the .timer for scheduled services."""
        service = self.get_service(name)
        path = Path(service.path)
        if path.suffix == ".service" and self._timer_path(path).exists():
            return self._timer_path(path).name
        return service.name

    def get_service_details(self, name: str) -> FsServiceDetails:
        """
        Parse an installed unit, including its schedule when a timer exists.

        Raises:
            ServiceNotFoundError: If no unit matches
            ParseError: If the unit cannot be parsed
        """
        service = self.get_service(name)
        path = Path(service.path)
        if path.suffix == ".timer":
            path = path.with_suffix(".service")

        try:
            contents = path.read_text()
        except OSError as e:
            raise ParseError(f"Failed to read service file {path}: {e}") from e

        timer_path = self._timer_path(path)
        timer = timer_path.read_text() if timer_path.exists() else None

        details = systemd.parse(contents, timer=timer, name=normalize_service_name(path.name))
        control = timer_path.name if timer is not None else path.name
        return FsServiceDetails(
            service=details,
            path=str(path),
            enabled=self.is_enabled(control),
            running=self.is_service_running(control)
        )

    def create_service(self, details: ServiceDetails) -> Path:
        """
        Write the unit (and timer) files, reload systemd and enable the unit.

        Returns:
            Path of the written .service file
        """
        directory = self.install_dir()
        directory.mkdir(parents=True, exist_ok=True)

        unit_path = directory / f"{details.name}.service"
        unit_path.write_text(systemd.generate_file(details))
        logger.info("Wrote %s", unit_path)

        if details.schedule is not None:
            timer_path = self._timer_path(unit_path)
            timer_path.write_text(systemd.generate_timer_file(details))
            logger.info("Wrote %s", timer_path)

        self._run_checked(self._systemctl("daemon-reload"))

        if details.schedule is not None:
            self._run_checked(self._systemctl("enable", f"{details.name}.timer"))
        elif details.run_at_load:
            self._run_checked(self._systemctl("enable", unit_path.name))

        return unit_path

    def start_service(self, name: str) -> None:
        self._run_checked(self._systemctl("start", self._control_unit(name)))

    def stop_service(self, name: str) -> None:
        self._run_checked(self._systemctl("stop", self._control_unit(name)))

    def restart_service(self, name: str) -> None:
        self._run_checked(self._systemctl("restart", self._control_unit(name)))

    def is_service_running(self, name: str) -> bool:
        return self._run(self._systemctl("is-active", "--quiet", name)).success

    def after_edit(self, path: str) -> None:
        self._run_checked(self._systemctl("daemon-reload"))

    def show_logs(self, name: str, lines: int, follow: bool = False) -> None:
        cmd = ["journalctl"]
        if self.user_scope:
            cmd.append("--user")
        cmd.extend(["-u", name, "-n", str(lines)])
        if follow:
            cmd.append("-f")
        cmd.append("--no-pager")
        self._run_attached(cmd)

    def next_trigger(self, base_name: str) -> str | None:
        """Next elapse time of a timer as reported by systemctl, if any."""
        result = self._run(self._systemctl(
            "show", f"{base_name}.timer", "--property=NextElapseUSecRealtime", "--value"
        ))
        if result.success and result.out and result.out != "n/a":
            return result.out
        return None

    def is_listed(self, service: ServiceRef, level: ListLevel) -> bool:
        # The default listing only shows units this tool wrote.
        if level != ListLevel.DEFAULT:
            return True
        try:
            return systemd.is_managed(Path(service.path).read_text())
        except OSError:
            return False

    def describe(self, service: ServiceRef, timer_bases: set[str]) -> tuple[str, str]:
        base = service.name.removesuffix(".service").removesuffix(".timer")
        if base not in timer_bases and not service.name.endswith(".timer"):
            return "service", "-"

        next_run = self.next_trigger(base)
        if next_run:
            return "timer", next_run

        timer_path = Path(service.path).with_name(f"{base}.timer")
        try:
            return "timer", systemd.parse_timer(timer_path.read_text()).display()
        except (OSError, ParseError):
            return "timer", "-"
