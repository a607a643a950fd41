"""Interactive collection of service details."""

import os
import shlex

import click
import typer

from ser.errors import ValidationError
from ser.models import CalendarSchedule, ServiceDetails, validate_service_name
from ser.util.paths import resolve_executable


NETWORK_TARGETS = ["network.target", "network-online.target"]

SCHEDULE_TYPES = [
    "Daily at specific time",
    "Weekly on specific day",
    "Monthly on specific day",
    "Custom schedule",
]

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def _service_name(value: str) -> str:
    try:
        return validate_service_name(value.strip())
    except ValidationError as e:
        raise click.BadParameter(str(e))


def _command(value: str) -> list[str]:
    try:
        parts = shlex.split(value)
    except ValueError as e:
        raise click.BadParameter(f"Cannot parse command: {e}")
    if not parts:
        raise click.BadParameter("Command cannot be empty")
    return parts


def _env_var(value: str) -> tuple[str, str] | None:
    if not value.strip():
        return None
    key, sep, val = value.partition("=")
    if not sep or not key.strip():
        raise click.BadParameter("Format is 'KEY=VALUE'. Please try again.")
    return key.strip(), val.strip()


def _optional_text(prompt: str) -> str | None:
    value = typer.prompt(prompt, default="", show_default=False)
    return value.strip() or None


def _optional_number(prompt: str, low: int, high: int) -> int | None:
    def convert(value: str) -> int | None:
        value = value.strip()
        if not value:
            return None
        try:
            number = int(value)
        except ValueError:
            raise click.BadParameter(f"'{value}' is not a number")
        if not low <= number <= high:
            raise click.BadParameter(f"Value must be between {low} and {high}")
        return number

    return typer.prompt(
        f"{prompt} (or empty for any)", default="", show_default=False, value_proc=convert
    )


def _choose(prompt: str, choices: list[str], default: int) -> int:
    """Show a numbered menu and return the zero-based selection."""
    for index, choice in enumerate(choices, 1):
        typer.echo(f"  {index}) {choice}")
    selection = typer.prompt(
        prompt, type=click.IntRange(1, len(choices)), default=default + 1
    )
    return selection - 1


def _hour() -> int:
    return typer.prompt("Hour (0-23)", type=click.IntRange(0, 23), default=0)


def _minute() -> int:
    return typer.prompt("Minute (0-59)", type=click.IntRange(0, 59), default=0)


def collect_schedule() -> CalendarSchedule:
    """Prompt for a daily, weekly, monthly or custom calendar schedule."""
    typer.echo("\nSchedule configuration:")
    selection = _choose("Schedule type", SCHEDULE_TYPES, default=0)

    if selection == 0:
        return CalendarSchedule.create(hour=_hour(), minute=_minute())
    if selection == 1:
        weekday = _choose("Day of week", DAY_NAMES, default=1)
        return CalendarSchedule.create(weekday=weekday, hour=_hour(), minute=_minute())
    if selection == 2:
        day = typer.prompt("Day of month (1-31)", type=click.IntRange(1, 31), default=1)
        return CalendarSchedule.create(day=day, hour=_hour(), minute=_minute())

    typer.echo("Leave fields empty for 'any' (like * in cron)\n")
    month = _optional_number("Month (1-12)", 1, 12)
    day = _optional_number("Day of month (1-31)", 1, 31)
    weekday_choice = _choose("Day of week", ["Any day", *DAY_NAMES], default=0)
    hour = _optional_number("Hour (0-23)", 0, 23)
    minute = _optional_number("Minute (0-59)", 0, 59)
    return CalendarSchedule.create(
        month=month,
        day=day,
        weekday=weekday_choice - 1 if weekday_choice else None,
        hour=hour,
        minute=minute,
    )


def collect_service_details(command: list[str] | None = None, validate: bool = True) -> ServiceDetails:
    """
    Ask the user for everything needed to describe a service.

    Args:
        command: Program and arguments; prompted for when empty
        validate: Resolve the program to an existing executable

    Returns:
        A validated ServiceDetails

    Raises:
        ExecutableNotFoundError: If validate is set and the program is not found
    """
    typer.echo("Creating service configuration...\n")

    if not command:
        command = typer.prompt("Command to execute", value_proc=_command)
    program, *arguments = command

    program = resolve_executable(program) if validate else program

    name = typer.prompt(
        "Service name (e.g., com.example.myservice)",
        default=os.path.basename(program),
        value_proc=_service_name,
    )
    working_directory = _optional_text("Working directory path")
    env_file = _optional_text("Environment file path")

    env_vars = []
    while True:
        pair = typer.prompt(
            "Environment variable KEY=VALUE (or leave empty to finish)",
            default="",
            show_default=False,
            value_proc=_env_var,
        )
        if pair is None:
            break
        env_vars.append(pair)

    run_at_load = typer.confirm("Start automatically when system boots?", default=True)
    keep_alive = typer.confirm("Restart automatically if it crashes?", default=True)
    after = list(NETWORK_TARGETS) if typer.confirm("Networked service?", default=True) else []

    schedule = None
    if typer.confirm("Schedule this service to run at specific times?", default=False):
        schedule = collect_schedule()

    return ServiceDetails.create(
        name,
        program,
        arguments,
        working_directory=working_directory,
        run_at_load=run_at_load,
        keep_alive=keep_alive,
        env_file=env_file,
        env_vars=env_vars,
        after=after,
        schedule=schedule,
    )
