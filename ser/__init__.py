"""ser - manage background services with systemd and launchd."""

__version__ = "0.3.0"
