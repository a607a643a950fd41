"""Service file codecs for systemd and launchd."""

from . import launchd, systemd

__all__ = ["launchd", "systemd"]
