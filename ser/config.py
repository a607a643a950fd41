"""Configuration file management for ser."""

import os
from dataclasses import dataclass
from pathlib import Path

import yaml


SCOPES = ("user", "system")


@dataclass
class Config:
    """Configuration for ser."""

    # Echo every systemctl/launchctl/journalctl invocation to stderr
    verbose: bool = False

    # "user", "system", or None for the platform default
    # (system units on Linux, user LaunchAgents on macOS)
    scope: str | None = None

    # Editor for `ser edit` (falls back to $EDITOR, then vim)
    editor: str | None = None

    # Default number of lines for `ser logs`
    log_lines: int = 50

    # List user and system services by default
    show_all: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.scope is not None and self.scope not in SCOPES:
            raise ValueError(f"Invalid scope '{self.scope}'. Must be one of: {', '.join(SCOPES)}")
        if not isinstance(self.log_lines, int) or self.log_lines <= 0:
            raise ValueError(f"log_lines must be a positive integer, got {self.log_lines!r}")

    def resolve_editor(self) -> str:
        """Editor to launch: config, then $EDITOR, then vim."""
        return self.editor or os.environ.get("EDITOR") or "vim"


def default_config_paths() -> list[Path]:
    """Locations checked, in order, when no config path is given."""
    return [
        Path.home() / ".ser.yaml",
        Path.home() / ".ser.yml",
        Path.home() / ".config" / "ser" / "config.yaml",
        Path.home() / ".config" / "ser" / "config.yml",
    ]


def load_config(config_path: Path | str | None = None) -> Config:
    """
    Load configuration from file.

    Args:
        config_path: Path to config file. If None, the first existing file
            from default_config_paths() is used.

    Returns:
        Config object with loaded settings (or defaults if no config found)

    Raises:
        FileNotFoundError: If an explicit config path does not exist
        ValueError: If the file cannot be parsed or holds invalid settings
    """
    if config_path:
        config_file = Path(config_path).expanduser()
        if not config_file.exists():
            raise FileNotFoundError(f"Config file not found: {config_file}")
    else:
        config_file = next((path for path in default_config_paths() if path.exists()), None)
        if config_file is None:
            return Config()

    try:
        with open(config_file, 'r') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError("top level must be a mapping")
        return Config(**data)
    except (yaml.YAMLError, TypeError, ValueError) as e:
        raise ValueError(f"Failed to load config from {config_file}: {e}") from e


def save_example_config(output_path: Path | str) -> None:
    """
    Save an example configuration file with all options documented.

    Args:
        output_path: Where to save the example config
    """
    example = """# ser configuration file
# Place at ~/.ser.yaml or ~/.config/ser/config.yaml

# Print every service manager command before running it
verbose: false

# Where services live: user, system, or leave unset for the platform default
# (system units on Linux, ~/Library/LaunchAgents on macOS)
# scope: user

# Editor for `ser edit` (defaults to $EDITOR, then vim)
# editor: nano

# Lines shown by `ser logs` unless -n is given
log_lines: 50

# Make `ser list` behave like `ser list --all`
show_all: false
"""

    path = Path(output_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(example)
