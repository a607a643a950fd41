"""Platform service managers."""

import platform

from ser.config import Config
from ser.errors import SerError

from .base import ListLevel, ServiceManager, normalize_service_name
from .linux import SystemdManager
from .macos import LaunchdManager

__all__ = [
    "ListLevel",
    "ServiceManager",
    "SystemdManager",
    "LaunchdManager",
    "get_manager",
    "normalize_service_name",
]


def get_manager(config: Config | None = None, system: str | None = None) -> ServiceManager:
    """
    Return the service manager for the running (or given) operating system.

    Raises:
        SerError: On platforms other than Linux and macOS
    """
    system = system or platform.system()
    if system == "Linux":
        return SystemdManager(config)
    if system == "Darwin":
        return LaunchdManager(config)
    raise SerError(f"Unsupported platform: {system}")
