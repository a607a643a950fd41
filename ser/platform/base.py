"""Behaviour shared by the systemd and launchd service managers."""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path

from ser.config import Config
from ser.errors import CommandError, SerError, ServiceNotFoundError
from ser.models import FsServiceDetails, ServiceDetails, ServiceRef, ServiceRow
from ser.util.shell import ShellResult, run, run_interactive


logger = logging.getLogger(__name__)


class ListLevel(str, Enum):
    """Which directories to scan when listing services."""

    DEFAULT = "default"
    USER = "user"
    SYSTEM = "system"


def normalize_service_name(name: str) -> str:
    """
    Reduce a unit name or label to the form users type.

    Example:
        >>> normalize_service_name("homebrew.mxcl.postgresql@14.service")
        'postgresql'
    """
    name = name.split("@", 1)[0]
    name = name.removeprefix("homebrew.mxcl.")
    return name.removesuffix(".service")


def display_name(name: str) -> str:
    """Name as shown in listings (without the Homebrew prefix)."""
    return name.removeprefix("homebrew.mxcl.")


class ServiceManager(ABC):
    """
    Base class for platform service managers.

    Subclasses supply the directory layout, how a directory is scanned and
    the commands that control services. The loaded Config is passed in so
    command echoing follows the caller's --verbose setting.
    """

    default_scope = "user"
    native_format = ""

    def __init__(self, config: Config | None = None):
        self.config = config or Config()

    @property
    def echo(self) -> bool:
        return self.config.verbose

    @property
    def scope(self) -> str:
        return self.config.scope or self.default_scope

    @property
    def user_scope(self) -> bool:
        return self.scope == "user"

    # Directory layout

    @abstractmethod
    def user_dirs(self) -> list[Path]:
        raise NotImplementedError

    @abstractmethod
    def system_dirs(self) -> list[Path]:
        raise NotImplementedError

    @abstractmethod
    def install_dir(self) -> Path:
        """Directory new service files are written to."""
        raise NotImplementedError

    @abstractmethod
    def scan_directory(self, directory: Path) -> list[ServiceRef]:
        raise NotImplementedError

    def dirs_for(self, level: ListLevel) -> list[Path]:
        if level == ListLevel.DEFAULT:
            return [self.install_dir()]
        if level == ListLevel.USER:
            return self.user_dirs()
        return self.user_dirs() + self.system_dirs()

    # Lookup

    def list_services(self, level: ListLevel = ListLevel.DEFAULT) -> list[ServiceRef]:
        """Enumerate service files in the directories for a list level."""
        services: list[ServiceRef] = []
        seen: set[Path] = set()
        for directory in self.dirs_for(level):
            # /lib is often a symlink to /usr/lib; scan each real directory once
            try:
                real = directory.resolve()
            except OSError:
                real = directory
            if real in seen:
                continue
            seen.add(real)
            services.extend(self.scan_directory(directory))
        return services

    def get_service(self, name: str) -> ServiceRef:
        """
        Find an installed service by name, label or unit file name.

        Raises:
            ServiceNotFoundError: If nothing matches
        """
        wanted = normalize_service_name(name)
        for service in self.list_services(ListLevel.SYSTEM):
            if service.name == name or normalize_service_name(service.name) == wanted:
                return service
        raise ServiceNotFoundError(f"Service '{name}' not found")

    def resolve_service_name(self, name: str) -> str:
        return self.get_service(name).name

    def get_service_file_path(self, name: str) -> str:
        return self.get_service(name).path

    # Commands

    def _run(self, cmd: list[str], timeout: int | None = 30) -> ShellResult:
        try:
            return run(cmd, timeout=timeout, echo=self.echo)
        except FileNotFoundError as e:
            raise SerError(f"'{cmd[0]}' not found. Is this the right platform?") from e

    def _run_checked(self, cmd: list[str], timeout: int | None = 30) -> ShellResult:
        """Run a command, raising CommandError on a non-zero exit."""
        result = self._run(cmd, timeout=timeout)
        if not result.success:
            raise CommandError(cmd, result.code, result.err)
        return result

    def _run_attached(self, cmd: list[str]) -> None:
        try:
            code = run_interactive(cmd, echo=self.echo)
        except FileNotFoundError as e:
            raise SerError(f"'{cmd[0]}' not found") from e
        # 130: interrupted with Ctrl-C
        if code not in (0, 130):
            raise CommandError(cmd, code)

    def edit_service(self, name: str, editor: str | None = None) -> str:
        """Open a service file in an editor and return its path."""
        path = self.get_service_file_path(name)
        self._run_attached([editor or self.config.resolve_editor(), path])
        self.after_edit(path)
        return path

    def after_edit(self, path: str) -> None:
        """Hook run after a service file was edited."""

    # Listing

    def is_listed(self, service: ServiceRef, level: ListLevel) -> bool:
        return True

    def describe(self, service: ServiceRef, timer_bases: set[str]) -> tuple[str, str]:
        """Return (type, schedule) columns for a listing row."""
        return "service", "-"

    def service_rows(self, level: ListLevel = ListLevel.DEFAULT) -> list[ServiceRow]:
        """
        Build listing rows, folding timers into the service they trigger.

        A .timer is shown on its own only when its .service is not listed.
        """
        services = [s for s in self.list_services(level) if self.is_listed(s, level)]
        services.sort(key=lambda s: s.name)

        timer_bases = {s.name.removesuffix(".timer") for s in services if s.name.endswith(".timer")}
        service_bases = {s.name.removesuffix(".service") for s in services if s.name.endswith(".service")}

        rows = []
        for service in services:
            if service.name.endswith(".timer") and service.name.removesuffix(".timer") in service_bases:
                continue
            service_type, schedule = self.describe(service, timer_bases)
            running = self.is_service_running(service.name)
            rows.append(ServiceRow(
                name=display_name(service.name),
                service_type=service_type,
                status="running" if running else "stopped",
                enabled=service.enabled,
                schedule=schedule,
                path=service.path
            ))
        return rows

    # Platform operations

    @abstractmethod
    def generate_file(self, details: ServiceDetails) -> str:
        raise NotImplementedError

    @abstractmethod
    def get_service_details(self, name: str) -> FsServiceDetails:
        raise NotImplementedError

    @abstractmethod
    def create_service(self, details: ServiceDetails) -> Path:
        raise NotImplementedError

    @abstractmethod
    def start_service(self, name: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def stop_service(self, name: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def restart_service(self, name: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def is_service_running(self, name: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def show_logs(self, name: str, lines: int, follow: bool = False) -> None:
        raise NotImplementedError
