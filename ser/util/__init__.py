"""Utility module for ser."""

from .paths import resolve_executable
from .shell import ShellResult, run, run_interactive

__all__ = ["ShellResult", "run", "run_interactive", "resolve_executable"]
