"""Render and parse launchd property lists."""

import logging
import os
import plistlib
from typing import Any
from xml.parsers.expat import ExpatError

from ser.errors import MissingProgramError, ParseError, RenderError, SerializationError
from ser.models import CalendarSchedule, Scheduled, ServiceDetails, Supervised


logger = logging.getLogger(__name__)


def to_plist_dict(details: ServiceDetails) -> dict[str, Any]:
    """
    Build the launchd job dictionary for a service.

    Keys are inserted in a fixed order so the XML output is stable.
    Scheduled services get StartCalendarInterval and never RunAtLoad or
    KeepAlive. After and EnvironmentFile have no launchd equivalent and
    are dropped.

    Raises:
        RenderError: If the service has no program
    """
    if not details.program:
        raise RenderError(f"Service '{details.name}' has no program to run")

    plist: dict[str, Any] = {"Label": details.name}

    if details.arguments:
        plist["ProgramArguments"] = [details.program, *details.arguments]
    else:
        plist["Program"] = details.program

    if details.working_directory:
        plist["WorkingDirectory"] = details.working_directory

    if details.schedule is not None:
        plist["StartCalendarInterval"] = dict(details.schedule.to_launchd_entries())
    else:
        if details.run_at_load:
            plist["RunAtLoad"] = True
        if details.keep_alive:
            plist["KeepAlive"] = True

    if details.env_vars:
        plist["EnvironmentVariables"] = {key: value for key, value in details.env_vars}

    return plist


def generate_file(details: ServiceDetails) -> str:
    """
    Render a service as an XML property list.

    Raises:
        RenderError: If the service has no program
        SerializationError: If plistlib cannot encode the dictionary
    """
    plist = to_plist_dict(details)
    try:
        data = plistlib.dumps(plist, fmt=plistlib.FMT_XML, sort_keys=False)
    except (TypeError, ValueError, OverflowError) as e:
        raise SerializationError(f"Failed to serialize plist for '{details.name}': {e}") from e
    return data.decode("utf-8")


def loads(data: bytes, name: str | None = None) -> ServiceDetails:
    """
    Decode an XML or binary property list and parse it.

    Raises:
        ParseError: If the data is not a valid property list
    """
    try:
        plist_value = plistlib.loads(data)
    except (plistlib.InvalidFileException, ExpatError, ValueError) as e:
        raise ParseError(f"Invalid property list: {e}") from e
    return parse(plist_value, name=name)


def _string_list(value: Any, key: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ParseError(f"{key} must be an array of strings")
    return list(value)


def _calendar_interval(value: Any) -> CalendarSchedule:
    # An array with a single entry is equivalent to a bare dictionary.
    if isinstance(value, list):
        if len(value) != 1:
            raise ParseError("Only a single StartCalendarInterval entry is supported")
        value = value[0]
    if not isinstance(value, dict):
        raise ParseError("StartCalendarInterval must be a dictionary")
    return CalendarSchedule.from_launchd_entries(value)


def parse(plist_value: Any, name: str | None = None) -> ServiceDetails:
    """
    Parse a decoded launchd job dictionary into a service description.

    Args:
        plist_value: Value returned by plistlib.load/loads
        name: Fallback name when the plist has no Label (defaults to the
            program's file name)

    Raises:
        MissingProgramError: If neither Program nor ProgramArguments is present
        ParseError: If the plist is not a dictionary or a key has the wrong type
    """
    if not isinstance(plist_value, dict):
        raise ParseError("Invalid plist format: top level is not a dictionary")

    program = plist_value.get("Program")
    arguments: list[str] = []
    if "ProgramArguments" in plist_value:
        arguments = _string_list(plist_value["ProgramArguments"], "ProgramArguments")

    if isinstance(program, str) and program:
        # When both keys are present launchd runs Program with
        # ProgramArguments as the full argv, argv[0] included.
        arguments = arguments[1:]
    elif arguments:
        program, arguments = arguments[0], arguments[1:]
    else:
        raise MissingProgramError("Missing 'Program' or 'ProgramArguments' in plist")

    label = plist_value.get("Label")
    if isinstance(label, str) and label:
        service_name = label
    else:
        service_name = name or os.path.basename(program)

    working_directory = plist_value.get("WorkingDirectory")
    if working_directory is not None and not isinstance(working_directory, str):
        raise ParseError("WorkingDirectory must be a string")

    env_vars: list[tuple[str, str]] = []
    environment = plist_value.get("EnvironmentVariables")
    if environment is not None:
        if not isinstance(environment, dict):
            raise ParseError("EnvironmentVariables must be a dictionary")
        env_vars = [(str(key), str(value)) for key, value in environment.items()]

    if "StartCalendarInterval" in plist_value:
        policy: Supervised | Scheduled = Scheduled(
            schedule=_calendar_interval(plist_value["StartCalendarInterval"])
        )
    else:
        # KeepAlive may also be a dictionary of conditions; any such
        # dictionary still means launchd restarts the job.
        keep_alive = plist_value.get("KeepAlive", False)
        policy = Supervised(
            run_at_load=plist_value.get("RunAtLoad", False) is True,
            keep_alive=keep_alive is True or (isinstance(keep_alive, dict) and bool(keep_alive)),
        )

    logger.debug("Parsed launchd job %s: %s", service_name, program)
    return ServiceDetails(
        name=service_name,
        program=program,
        arguments=arguments,
        working_directory=working_directory,
        env_vars=env_vars,
        policy=policy,
    )
