"""Error taxonomy for lars.

Runners raise these; the controller, reconciler, bulk executor and log
streamer convert them into result objects at their boundary.
"""

from enum import StrEnum


class ErrorKind(StrEnum):
    """Stable machine-readable error kinds."""

    NOT_FOUND = "not_found"
    DUPLICATE_NAME = "duplicate_name"
    INVALID_INPUT = "invalid_input"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    LAUNCH_FAILURE = "launch_failure"
    STOP_FAILURE = "stop_failure"
    STOP_TIMEOUT = "stop_timeout"
    NOT_SUPPORTED = "not_supported"
    NOT_RUNNING = "not_running"
    CONFIG_ERROR = "config_error"
    LOG_READ_FAILURE = "log_read_failure"


class LarsError(Exception):
    """Base error carrying an ErrorKind."""

    kind: ErrorKind = ErrorKind.CONFIG_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(LarsError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, name: str):
        super().__init__(f"Service not found: {name}")
        self.name = name


class DuplicateName(LarsError):
    kind = ErrorKind.DUPLICATE_NAME

    def __init__(self, name: str):
        super().__init__(f"Service already exists: {name}")
        self.name = name


class InvalidInput(LarsError, ValueError):
    """Rejected user input. Also a ValueError so pydantic validators accept it."""

    kind = ErrorKind.INVALID_INPUT


class BackendUnavailable(LarsError):
    """The backend tool itself is missing or unreachable."""

    kind = ErrorKind.BACKEND_UNAVAILABLE


class LaunchFailure(LarsError):
    """The backend accepted the call but the command could not run.

    ``diagnostic`` holds backend output (stderr, or the log tail).
    """

    kind = ErrorKind.LAUNCH_FAILURE

    def __init__(self, message: str, diagnostic: str = ""):
        super().__init__(message)
        self.diagnostic = diagnostic


class StopFailure(LarsError):
    kind = ErrorKind.STOP_FAILURE


class StopTimeout(LarsError):
    kind = ErrorKind.STOP_TIMEOUT

    def __init__(self, name: str, timeout: float):
        super().__init__(
            f"Timeout waiting for service to stop: {name} ({timeout:g}s)"
        )
        self.name = name


class OperationNotSupported(LarsError):
    kind = ErrorKind.NOT_SUPPORTED


class NotRunning(LarsError):
    """The operation needs a live backend session and there is none."""

    kind = ErrorKind.NOT_RUNNING

    def __init__(self, name: str):
        super().__init__(f"Service '{name}' is not running")
        self.name = name


class ConfigError(LarsError):
    """Configuration file could not be read, parsed or written."""

    kind = ErrorKind.CONFIG_ERROR


class LogReadError(LarsError):
    kind = ErrorKind.LOG_READ_FAILURE
