"""Process exit codes, stable for scripting."""

from enum import IntEnum

from lars.errors import ErrorKind


class ExitCode(IntEnum):
    SUCCESS = 0
    GENERAL_ERROR = 1
    USAGE_ERROR = 2
    SERVICE_NOT_FOUND = 10
    SERVICE_ALREADY_EXISTS = 11
    RUNNER_UNAVAILABLE = 20
    START_FAILED = 21
    STOP_FAILED = 22
    CONFIG_ERROR = 30


_BY_KIND: dict[ErrorKind, ExitCode] = {
    ErrorKind.NOT_FOUND: ExitCode.SERVICE_NOT_FOUND,
    ErrorKind.NOT_RUNNING: ExitCode.SERVICE_NOT_FOUND,
    ErrorKind.DUPLICATE_NAME: ExitCode.SERVICE_ALREADY_EXISTS,
    ErrorKind.BACKEND_UNAVAILABLE: ExitCode.RUNNER_UNAVAILABLE,
    ErrorKind.NOT_SUPPORTED: ExitCode.RUNNER_UNAVAILABLE,
    ErrorKind.LAUNCH_FAILURE: ExitCode.START_FAILED,
    ErrorKind.STOP_FAILURE: ExitCode.STOP_FAILED,
    ErrorKind.STOP_TIMEOUT: ExitCode.STOP_FAILED,
    ErrorKind.INVALID_INPUT: ExitCode.CONFIG_ERROR,
    ErrorKind.CONFIG_ERROR: ExitCode.CONFIG_ERROR,
    ErrorKind.LOG_READ_FAILURE: ExitCode.GENERAL_ERROR,
}


def exit_code_for(kind: ErrorKind | None) -> ExitCode:
    if kind is None:
        return ExitCode.SUCCESS
    return _BY_KIND.get(kind, ExitCode.GENERAL_ERROR)
