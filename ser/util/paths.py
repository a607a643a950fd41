"""Executable lookup."""

import os
from pathlib import Path

from ser.errors import ExecutableNotFoundError
from ser.util.shell import run


def _is_executable_file(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def resolve_executable(name: str) -> str:
    """
    Resolve a program name to an absolute path.

    Absolute paths are returned as-is if they exist. Otherwise `which` is
    consulted, and if that is unavailable or fails, PATH is searched directly.

    Args:
        name: Program name or absolute path (e.g., 'python3' or '/bin/ls')

    Returns:
        Absolute path to the executable

    Raises:
        ExecutableNotFoundError: If no matching executable exists
    """
    if os.path.isabs(name):
        if Path(name).exists():
            return name
        raise ExecutableNotFoundError(f"Binary '{name}' does not exist")

    try:
        result = run(["which", name], timeout=5)
    except (FileNotFoundError, TimeoutError):
        result = None
    if result and result.out:
        candidate = result.out.splitlines()[0].strip()
        if candidate and Path(candidate).exists():
            return candidate

    for directory in os.environ.get("PATH", "").split(os.pathsep):
        if not directory:
            continue
        candidate_path = Path(directory) / name
        if _is_executable_file(candidate_path):
            return str(candidate_path.absolute())

    raise ExecutableNotFoundError(f"Binary '{name}' not found in PATH")
