"""Data models for ser service descriptions."""

import re
from typing import Literal, Mapping

from pydantic import BaseModel, Field, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from ser.errors import ParseError, ValidationError


WEEKDAYS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

LAUNCHD_CALENDAR_KEYS = ("Month", "Day", "Weekday", "Hour", "Minute")

_ONCALENDAR_RE = re.compile(
    r"^(?:(?P<weekday>Sun|Mon|Tue|Wed|Thu|Fri|Sat)\s+)?"
    r"\*-(?P<month>\*|\d{1,2})-(?P<day>\*|\d{1,2})\s+"
    r"(?P<hour>\*|\d{1,2}):(?P<minute>\*|\d{1,2})(?::(?P<second>\d{1,2}))?$"
)


def _describe(error: PydanticValidationError) -> str:
    """Flatten pydantic error details into a single readable line."""
    parts = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"])
        parts.append(f"{location}: {err['msg']}" if location else err["msg"])
    return "; ".join(parts)


def validate_service_name(name: str) -> str:
    """
    Check that a service name can be used as a unit name and file stem.

    Raises:
        ValidationError: If the name is empty or contains whitespace
    """
    if not name or not name.strip():
        raise ValidationError("Service name cannot be empty")
    if any(ch.isspace() for ch in name):
        raise ValidationError("Service name cannot contain spaces")
    return name


def has_control_characters(value: str) -> bool:
    """True if the text holds a newline or any other C0/DEL control character."""
    return any(ord(ch) < 32 or ord(ch) == 127 for ch in value)


def _validate_text_fields(
    program: str,
    arguments: list[str],
    working_directory: str | None,
    env_file: str | None,
    env_vars: list[tuple[str, str]],
    after: list[str],
) -> None:
    """
    Reject values that cannot be written on a single unit-file line.

    Raises:
        ValidationError: On control characters or a malformed variable name
    """
    fields: list[tuple[str, str | None]] = [
        ("Program", program),
        ("Working directory", working_directory),
        ("Environment file", env_file),
    ]
    fields.extend(("Argument", argument) for argument in arguments)
    fields.extend(("Dependency", unit) for unit in after)
    for key, value in env_vars:
        if not key or "=" in key or any(ch.isspace() for ch in key):
            raise ValidationError(f"Invalid environment variable name: {key!r}")
        fields.append((f"Environment variable {key}", value))

    for label, value in fields:
        if value is not None and has_control_characters(value):
            raise ValidationError(f"{label} cannot contain control characters: {value!r}")


def _two_digits(value: int | None) -> str:
    return f"{value:02d}" if value is not None else "*"


class CalendarSchedule(BaseModel):
    """Recurring calendar trigger. A missing field means "any value"."""

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {"month": None, "day": None, "weekday": 1, "hour": 3, "minute": 30}
        }
    )

    month: int | None = Field(default=None, ge=1, le=12, description="Month (1-12)")
    day: int | None = Field(default=None, ge=1, le=31, description="Day of month (1-31)")
    weekday: int | None = Field(default=None, ge=0, le=6, description="Day of week (0=Sunday)")
    hour: int | None = Field(default=None, ge=0, le=23, description="Hour (0-23)")
    minute: int | None = Field(default=None, ge=0, le=59, description="Minute (0-59)")

    @classmethod
    def create(
        cls,
        month: int | None = None,
        day: int | None = None,
        weekday: int | None = None,
        hour: int | None = None,
        minute: int | None = None,
    ) -> "CalendarSchedule":
        """Build a schedule, raising ValidationError for out-of-range fields."""
        try:
            return cls(month=month, day=day, weekday=weekday, hour=hour, minute=minute)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid schedule: {_describe(e)}") from e

    def to_systemd_calendar_string(self) -> str:
        """
        Render as a systemd OnCalendar= value.

        An unset minute renders as "00" rather than "*": a schedule with only
        an hour fires at the top of that hour.

        Example:
            >>> CalendarSchedule(hour=3).to_systemd_calendar_string()
            '*-*-* 03:00:00'
        """
        weekday = f"{WEEKDAYS[self.weekday]} " if self.weekday is not None else ""
        minute = f"{self.minute:02d}" if self.minute is not None else "00"
        return (
            f"{weekday}*-{_two_digits(self.month)}-{_two_digits(self.day)} "
            f"{_two_digits(self.hour)}:{minute}:00"
        )

    def to_launchd_entries(self) -> list[tuple[str, int]]:
        """Return StartCalendarInterval entries for the fields that are set."""
        values = (self.month, self.day, self.weekday, self.hour, self.minute)
        return [
            (key, value)
            for key, value in zip(LAUNCHD_CALENDAR_KEYS, values)
            if value is not None
        ]

    def display(self) -> str:
        """Short human summary, e.g. "Mon 03:30"."""
        parts = []
        if self.weekday is not None:
            parts.append(WEEKDAYS[self.weekday])
        if self.day is not None:
            parts.append(f"day {self.day}")
        if self.hour is not None:
            parts.append(f"{self.hour:02d}:{self.minute or 0:02d}")
        return " ".join(parts) if parts else "scheduled"

    @classmethod
    def from_systemd_calendar_string(cls, value: str) -> "CalendarSchedule":
        """
        Parse an OnCalendar= value of the shape this tool writes.

        Raises:
            ParseError: If the value uses any other calendar syntax
        """
        match = _ONCALENDAR_RE.match(value.strip())
        if not match:
            raise ParseError(f"Unsupported OnCalendar value: {value!r}")

        fields: dict[str, int | None] = {}
        for key in ("month", "day", "hour", "minute"):
            raw = match.group(key)
            fields[key] = None if raw == "*" else int(raw)
        weekday = match.group("weekday")
        fields["weekday"] = WEEKDAYS.index(weekday) if weekday else None

        try:
            return cls(**fields)
        except PydanticValidationError as e:
            raise ParseError(f"Invalid OnCalendar value {value!r}: {_describe(e)}") from e

    @classmethod
    def from_launchd_entries(cls, entries: Mapping[str, object]) -> "CalendarSchedule":
        """
        Build a schedule from a StartCalendarInterval dictionary.

        launchd accepts 7 as well as 0 for Sunday; both map to 0.

        Raises:
            ParseError: If a value is not an integer or is out of range
        """
        fields: dict[str, int | None] = {}
        for key in LAUNCHD_CALENDAR_KEYS:
            value = entries.get(key)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise ParseError(f"StartCalendarInterval {key} must be an integer, got {value!r}")
            if key == "Weekday" and value == 7:
                value = 0
            fields[key.lower()] = value

        try:
            return cls(**fields)
        except PydanticValidationError as e:
            raise ParseError(f"Invalid StartCalendarInterval: {_describe(e)}") from e


class Supervised(BaseModel):
    """A long-running service kept up by the service manager."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["supervised"] = "supervised"
    run_at_load: bool = Field(default=False, description="Start automatically at boot/login")
    keep_alive: bool = Field(default=False, description="Restart the process when it exits")


class Scheduled(BaseModel):
    """A one-shot service fired by a calendar trigger."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["scheduled"] = "scheduled"
    schedule: CalendarSchedule


class ServiceDetails(BaseModel):
    """Format-agnostic description of a background service."""

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "name": "com.example.worker",
                "program": "/usr/local/bin/worker",
                "arguments": ["--queue", "default"],
                "working_directory": "/srv/worker",
                "env_file": None,
                "env_vars": [["LOG_LEVEL", "info"]],
                "after": ["network.target"],
                "policy": {"kind": "supervised", "run_at_load": True, "keep_alive": True}
            }
        }
    )

    name: str = Field(description="Unique identifier, also the service file stem")
    program: str = Field(description="Absolute path to the executable")
    arguments: tuple[str, ...] = Field(default=(), description="Arguments passed verbatim")
    working_directory: str | None = Field(default=None, description="Working directory")
    env_file: str | None = Field(default=None, description="Environment file (systemd only)")
    env_vars: tuple[tuple[str, str], ...] = Field(
        default=(),
        description="Environment variables in insertion order"
    )
    after: tuple[str, ...] = Field(
        default=(),
        description="Units this service starts after (systemd only)"
    )
    policy: Supervised | Scheduled = Field(
        default_factory=Supervised,
        discriminator="kind",
        description="Either supervised (run at load / keep alive) or scheduled"
    )

    @classmethod
    def create(
        cls,
        name: str,
        program: str,
        arguments: list[str] | None = None,
        *,
        working_directory: str | None = None,
        run_at_load: bool = False,
        keep_alive: bool = False,
        env_file: str | None = None,
        env_vars: list[tuple[str, str]] | None = None,
        after: list[str] | None = None,
        schedule: CalendarSchedule | None = None,
    ) -> "ServiceDetails":
        """
        Build a validated service description from flat attributes.

        When a schedule is given the service is scheduled and run_at_load /
        keep_alive are dropped.

        Raises:
            ValidationError: If the name or any other field is rejected
        """
        validate_service_name(name)
        arguments = list(arguments or [])
        env_vars = list(env_vars or [])
        after = list(after or [])
        _validate_text_fields(program, arguments, working_directory, env_file, env_vars, after)

        if schedule is not None:
            policy: Supervised | Scheduled = Scheduled(schedule=schedule)
        else:
            policy = Supervised(run_at_load=run_at_load, keep_alive=keep_alive)

        try:
            return cls(
                name=name,
                program=program,
                arguments=arguments,
                working_directory=working_directory,
                env_file=env_file,
                env_vars=env_vars,
                after=after,
                policy=policy,
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid service '{name}': {_describe(e)}") from e

    @property
    def schedule(self) -> CalendarSchedule | None:
        if isinstance(self.policy, Scheduled):
            return self.policy.schedule
        return None

    @property
    def run_at_load(self) -> bool:
        return isinstance(self.policy, Supervised) and self.policy.run_at_load

    @property
    def keep_alive(self) -> bool:
        return isinstance(self.policy, Supervised) and self.policy.keep_alive

    @property
    def command(self) -> list[str]:
        """Program followed by its arguments, skipping an empty program."""
        return ([self.program] if self.program else []) + list(self.arguments)


class ServiceRef(BaseModel):
    """A service file found in one of the service manager's directories."""

    name: str = Field(description="Unit file name or launchd label")
    path: str = Field(description="Path to the service file")
    enabled: bool = Field(default=False, description="Registered to start automatically")


class FsServiceDetails(BaseModel):
    """A parsed service together with its on-disk and runtime state."""

    service: ServiceDetails
    path: str
    enabled: bool = False
    running: bool = False


class ServiceRow(BaseModel):
    """One row of the service listing."""

    name: str
    service_type: str = "service"
    status: str = "stopped"
    enabled: bool = False
    schedule: str = "-"
    path: str
