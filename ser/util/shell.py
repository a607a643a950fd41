"""Subprocess helpers for talking to service managers."""

import logging
import shlex
import subprocess
import sys
from dataclasses import dataclass


logger = logging.getLogger(__name__)


@dataclass
class ShellResult:
    """Exit status and captured output of a service manager command."""

    code: int
    out: str
    err: str

    @property
    def success(self) -> bool:
        """True when the command exited with status 0."""
        return self.code == 0

    def __bool__(self) -> bool:
        """Truthy when the command succeeded."""
        return self.success


def echo_command(cmd: list[str]) -> None:
    """Print a command to stderr the way a shell trace would."""
    print(f"+ {shlex.join(cmd)}", file=sys.stderr)


def run(cmd: list[str], timeout: int | None = 30, echo: bool = False) -> ShellResult:
    """
    Execute a command without shell interpretation and capture its output.

    Args:
        cmd: Command and arguments (e.g., ['systemctl', 'is-active', 'foo'])
        timeout: Maximum execution time in seconds, None for no limit
        echo: Print the command to stderr before running it

    Returns:
        ShellResult with the exit code and normalized stdout/stderr

    Raises:
        TimeoutError: If the command runs longer than timeout
        FileNotFoundError: If cmd[0] is not installed

    Example:
        >>> result = run(['systemctl', 'is-active', 'sshd'])
        >>> if result.success:
        ...     print("running")
    """
    if echo:
        echo_command(cmd)
    logger.debug("Running %s", cmd)

    try:
        completed = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            shell=False,
            check=False
        )
    except subprocess.TimeoutExpired as e:
        raise TimeoutError(
            f"{shlex.join(cmd)} did not finish within {timeout}s"
        ) from e

    return ShellResult(
        code=completed.returncode,
        out=_normalize_output(completed.stdout),
        err=_normalize_output(completed.stderr)
    )


def run_interactive(cmd: list[str], echo: bool = False) -> int:
    """
    Run a command attached to the terminal (editors, log followers).

    Returns:
        The command's exit code

    Raises:
        FileNotFoundError: If cmd[0] is not installed
    """
    if echo:
        echo_command(cmd)
    logger.debug("Running interactively %s", cmd)

    try:
        completed = subprocess.run(cmd, shell=False, check=False)
    except KeyboardInterrupt:
        # Ctrl-C is the normal way to leave `journalctl -f` and `log --stream`.
        return 130
    return completed.returncode


def _normalize_output(text: str) -> str:
    """Convert line endings to \\n and trim surrounding whitespace."""
    if not text:
        return ""

    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    return normalized.strip()
