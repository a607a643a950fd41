"""launchd service management for macOS."""

import logging
import plistlib
import time
from pathlib import Path

from ser.codecs import launchd
from ser.errors import ParseError
from ser.models import FsServiceDetails, ServiceDetails, ServiceRef
from ser.platform.base import ServiceManager


logger = logging.getLogger(__name__)

LOG_WINDOW = "1h"


class LaunchdManager(ServiceManager):
    """Manage launch agents and daemons through launchctl."""

    default_scope = "user"
    native_format = "launchd"

    def user_dirs(self) -> list[Path]:
        return [Path.home() / "Library" / "LaunchAgents"]

    def system_dirs(self) -> list[Path]:
        return [
            Path("/System/Library/LaunchAgents"),
            Path("/Library/LaunchAgents"),
            Path("/System/Library/LaunchDaemons"),
            Path("/Library/LaunchDaemons"),
        ]

    def install_dir(self) -> Path:
        if self.user_scope:
            return Path.home() / "Library" / "LaunchAgents"
        return Path("/Library/LaunchDaemons")

    def scan_directory(self, directory: Path) -> list[ServiceRef]:
        """Collect .plist jobs in one directory; unreadable directories are skipped."""
        if not directory.is_dir():
            return []

        services = []
        try:
            for path in sorted(directory.iterdir()):
                if path.is_file() and path.suffix == ".plist":
                    services.append(self._read_ref(path))
        except OSError as e:
            logger.warning("Skipping %s: %s", directory, e)
        return services

    def _read_ref(self, path: Path) -> ServiceRef:
        # Unreadable plists are still listed under their file name.
        ref = ServiceRef(name=path.stem, path=str(path), enabled=True)
        try:
            with open(path, "rb") as f:
                data = plistlib.load(f)
        except (OSError, plistlib.InvalidFileException, ValueError) as e:
            logger.debug("Could not read %s: %s", path, e)
            return ref
        if not isinstance(data, dict):
            return ref

        label = data.get("Label")
        if isinstance(label, str) and label:
            ref.name = label
        ref.enabled = data.get("Disabled", False) is not True
        return ref

    def generate_file(self, details: ServiceDetails) -> str:
        return launchd.generate_file(details)

    def _load_details(self, service: ServiceRef) -> ServiceDetails:
        try:
            data = Path(service.path).read_bytes()
        except OSError as e:
            raise ParseError(f"Failed to read service file {service.path}: {e}") from e
        return launchd.loads(data, name=service.name)

    def get_service_details(self, name: str) -> FsServiceDetails:
        """
        Parse an installed job's property list.

        Raises:
            ServiceNotFoundError: If no job matches
            ParseError: If the plist cannot be parsed
        """
        service = self.get_service(name)
        return FsServiceDetails(
            service=self._load_details(service),
            path=service.path,
            enabled=service.enabled,
            running=self.is_service_running(service.name)
        )

    def create_service(self, details: ServiceDetails) -> Path:
        """Write <install dir>/<name>.plist and return its path."""
        directory = self.install_dir()
        directory.mkdir(parents=True, exist_ok=True)

        plist_path = directory / f"{details.name}.plist"
        plist_path.write_text(launchd.generate_file(details))
        logger.info("Wrote %s", plist_path)
        return plist_path

    def start_service(self, name: str) -> None:
        self._run_checked(["launchctl", "load", "-w", self.get_service_file_path(name)])

    def stop_service(self, name: str) -> None:
        self._run_checked(["launchctl", "unload", "-w", self.get_service_file_path(name)])

    def restart_service(self, name: str) -> None:
        self.stop_service(name)
        time.sleep(0.5)
        self.start_service(name)

    def is_service_running(self, name: str) -> bool:
        """Check whether a label appears in `launchctl list`."""
        result = self._run(["launchctl", "list"])
        if not result.success:
            return False
        # Columns: PID, last exit status, label
        return any(line.split()[-1:] == [name] for line in result.out.splitlines())

    def _log_predicate(self, name: str) -> str:
        return (
            f"process CONTAINS[c] '{name}' OR subsystem CONTAINS[c] '{name}' "
            f"OR category CONTAINS[c] '{name}' OR eventMessage CONTAINS[c] '{name}'"
        )

    def show_logs(self, name: str, lines: int, follow: bool = False) -> None:
        """
        Print recent unified-log entries mentioning a service.

        Without follow, the last `lines` entries of the past hour are printed.
        With follow, `log stream` runs attached to the terminal.
        """
        predicate = self._log_predicate(name)
        if follow:
            self._run_attached(["log", "stream", "--predicate", predicate, "--style", "syslog"])
            return

        cmd = ["log", "show", "--last", LOG_WINDOW, "--predicate", predicate, "--style", "syslog"]
        result = self._run_checked(cmd, timeout=None)
        log_lines = result.out.splitlines()
        if not log_lines:
            print(f"No recent logs found for service '{name}'")
            print("macOS services may also log to /var/log/ or ~/Library/Logs/")
            return
        for line in log_lines[-lines:]:
            print(line)

    def describe(self, service: ServiceRef, timer_bases: set[str]) -> tuple[str, str]:
        try:
            details = self._load_details(service)
        except ParseError:
            return "service", "-"
        if details.schedule is not None:
            return "timer", details.schedule.display()
        return "service", "-"
