"""Exception types raised by ser."""


class SerError(Exception):
    """Base class for all ser errors."""


class ValidationError(SerError, ValueError):
    """Input rejected before a service description is built."""


class RenderError(SerError):
    """A service description cannot be rendered into a service file."""


class MissingScheduleError(RenderError):
    """A timer file was requested for a service without a schedule."""


class ParseError(SerError):
    """Service file content is malformed or unrecognized."""


class MissingProgramError(ParseError):
    """A property list has neither Program nor ProgramArguments."""


class SerializationError(SerError):
    """A property list could not be encoded."""


class ExecutableNotFoundError(SerError, FileNotFoundError):
    """A program name could not be resolved to an executable file."""


class ServiceNotFoundError(SerError, LookupError):
    """No installed service matches the requested name."""


class CommandError(SerError, RuntimeError):
    """A service manager command exited unsuccessfully."""

    def __init__(self, cmd: list[str], code: int, err: str = ""):
        self.cmd = cmd
        self.code = code
        self.err = err
        message = f"'{' '.join(cmd)}' failed with exit code {code}"
        if err:
            message += f": {err}"
        super().__init__(message)
