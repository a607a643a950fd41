"""Render and parse systemd unit and timer files."""

import logging
import os

from ser.errors import MissingScheduleError, ParseError, RenderError
from ser.models import (
    CalendarSchedule,
    Scheduled,
    ServiceDetails,
    Supervised,
    has_control_characters,
)


logger = logging.getLogger(__name__)

MANAGED_BY_COMMENT = "# Managed by ser"

# Either target means the unit is installed to start at boot.
_BOOT_TARGETS = ("multi-user.target", "default.target")


def _check_single_line(details: ServiceDetails) -> None:
    values = [
        details.name,
        *details.command,
        *details.after,
        *(part for pair in details.env_vars for part in pair),
        details.working_directory or "",
        details.env_file or "",
    ]
    for value in values:
        if has_control_characters(value):
            raise RenderError(
                f"Service '{details.name}' has a value with control characters: {value!r}"
            )


def _quote_environment(key: str, value: str) -> str:
    escaped = f"{key}={value}".replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def generate_file(details: ServiceDetails) -> str:
    """
    Render a .service unit for a service description.

    Scheduled services become Type=oneshot units with no Restart= or
    [Install] section; their companion timer carries the install target.

    Args:
        details: Service to render

    Returns:
        Unit file content ending in a newline

    Raises:
        RenderError: If the service has neither a program nor arguments, or a
            value contains a newline or other control character
    """
    command = details.command
    if not command:
        raise RenderError(f"Service '{details.name}' has no program to run")
    _check_single_line(details)

    scheduled = details.schedule is not None

    lines = [MANAGED_BY_COMMENT, "[Unit]", f"Description={details.name}"]
    if details.after:
        lines.append(f"After={' '.join(details.after)}")

    lines.extend(["", "[Service]"])
    if scheduled:
        lines.append("Type=oneshot")
    lines.append(f"ExecStart={' '.join(command)}")
    if details.working_directory:
        lines.append(f"WorkingDirectory={details.working_directory}")
    if details.keep_alive and not scheduled:
        lines.append("Restart=always")
    if details.env_file:
        lines.append(f"EnvironmentFile={details.env_file}")
    for key, value in details.env_vars:
        lines.append(f"Environment={_quote_environment(key, value)}")

    if details.run_at_load and not scheduled:
        lines.extend(["", "[Install]", "WantedBy=default.target"])

    return "\n".join(lines) + "\n"


def generate_timer_file(details: ServiceDetails) -> str:
    """
    Render the .timer unit that triggers a scheduled service.

    Raises:
        MissingScheduleError: If the service has no schedule
    """
    schedule = details.schedule
    if schedule is None:
        raise MissingScheduleError(f"Service '{details.name}' has no schedule")

    lines = [
        MANAGED_BY_COMMENT,
        "[Unit]",
        f"Description=Timer for {details.name}",
        "",
        "[Timer]",
        f"OnCalendar={schedule.to_systemd_calendar_string()}",
        "Persistent=true",
        "",
        "[Install]",
        "WantedBy=timers.target",
    ]
    return "\n".join(lines) + "\n"


def is_managed(contents: str) -> bool:
    """Check whether unit file content was written by this tool."""
    return contents.startswith(MANAGED_BY_COMMENT)


def _unquote(value: str) -> str:
    """Strip surrounding quotes, undoing backslash escapes inside double quotes."""
    if len(value) < 2 or value[0] != value[-1] or value[0] not in "\"'":
        return value
    inner = value[1:-1]
    if value[0] == "'":
        return inner

    chars = []
    escaped = False
    for ch in inner:
        if escaped:
            chars.append(ch)
            escaped = False
        elif ch == "\\":
            escaped = True
        else:
            chars.append(ch)
    return "".join(chars)


def parse(contents: str, timer: str | None = None, name: str | None = None) -> ServiceDetails:
    """
    Parse a .service unit back into a service description.

    Recognizes keys line by line regardless of section; anything else is
    ignored. The schedule lives in the companion timer, so it is only
    restored when that file's content is passed as ``timer``.

    Args:
        contents: Unit file text
        timer: Optional text of the matching .timer unit
        name: Service name to use instead of Description= (the program's
            file name is used when neither is available)

    Raises:
        ParseError: If ExecStart= is missing or empty, or an Environment= line
            has no '='
    """
    description = None
    command: list[str] | None = None
    working_directory = None
    run_at_load = False
    keep_alive = False
    env_file = None
    env_vars: list[tuple[str, str]] = []
    after: list[str] = []

    for raw_line in contents.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(("#", ";")) or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip()

        if key == "Description":
            description = value
        elif key == "ExecStart":
            command = value.split()
            if not command:
                raise ParseError("ExecStart= is empty")
        elif key == "WorkingDirectory":
            working_directory = value
        elif key == "WantedBy":
            if value in _BOOT_TARGETS:
                run_at_load = True
        elif key == "Restart":
            keep_alive = value != "no"
        elif key == "EnvironmentFile":
            env_file = value
        elif key == "Environment":
            assignment = _unquote(value)
            env_key, sep, env_value = assignment.partition("=")
            if not sep or not env_key:
                raise ParseError(f"Malformed Environment= line: {line}")
            env_vars.append((env_key, env_value))
        elif key == "After":
            after.extend(value.split())

    if command is None:
        raise ParseError("No ExecStart= line found")

    service_name = name or description or os.path.basename(command[0])

    if timer is not None:
        policy: Supervised | Scheduled = Scheduled(schedule=parse_timer(timer))
    else:
        policy = Supervised(run_at_load=run_at_load, keep_alive=keep_alive)

    logger.debug("Parsed systemd unit %s: %s", service_name, command)
    return ServiceDetails(
        name=service_name,
        program=command[0],
        arguments=command[1:],
        working_directory=working_directory,
        env_file=env_file,
        env_vars=env_vars,
        after=after,
        policy=policy,
    )


def parse_timer(contents: str) -> CalendarSchedule:
    """
    Read the schedule from a .timer unit's OnCalendar= line.

    Raises:
        ParseError: If there is no OnCalendar= line or its syntax is unsupported
    """
    for raw_line in contents.splitlines():
        key, sep, value = raw_line.strip().partition("=")
        if sep and key.strip() == "OnCalendar":
            return CalendarSchedule.from_systemd_calendar_string(value)
    raise ParseError("No OnCalendar= line found in timer")
