"""Reading and following per-service log sinks."""

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import IO, Any

from lars.config.models import RunnerKind, ServiceDefinition
from lars.errors import BackendUnavailable, ErrorKind, LarsError, LogReadError
from lars.runner.base import Runner

logger = logging.getLogger(__name__)

DEFAULT_LINES = 100
POLL_INTERVAL_SECS = 0.2
# How often follow mode asks the backend whether the source is still alive
LIVENESS_INTERVAL_SECS = 1.0


class LogEventKind(StrEnum):
    LINE = "line"
    SOURCE_ENDED = "source_ended"
    ERROR = "error"


@dataclass
class LogEvent:
    kind: LogEventKind
    text: str = ""
    error: ErrorKind | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value, "text": self.text}
        if self.error is not None:
            data["error"] = self.error.value
        return data


def _line(text: str) -> LogEvent:
    return LogEvent(LogEventKind.LINE, text.rstrip("\r\n"))


def _failure(error: LarsError) -> LogEvent:
    return LogEvent(LogEventKind.ERROR, error.message, error=error.kind)


class LogStreamer:
    """Streams the log sink of a service.

    Never raises for read or backend failures: those end the stream with an
    ``error`` event. A backend that goes away ends it with ``source_ended``.
    """

    def __init__(
        self,
        runners: Mapping[RunnerKind, Runner],
        *,
        poll_interval: float = POLL_INTERVAL_SECS,
        liveness_interval: float = LIVENESS_INTERVAL_SECS,
    ):
        self._runners = runners
        self._poll_interval = poll_interval
        self._liveness_interval = liveness_interval

    def _runner(self, service: ServiceDefinition) -> Runner:
        runner = self._runners.get(service.backend_kind)
        if runner is None:
            raise BackendUnavailable(
                f"No runner configured for backend '{service.backend_kind}'"
            )
        return runner

    def log_path(self, service: ServiceDefinition) -> Path:
        return self._runner(service).log_path(service)

    def snapshot(
        self, service: ServiceDefinition, lines: int = DEFAULT_LINES
    ) -> list[LogEvent]:
        """The last ``lines`` lines of the log sink.

        A service that never produced output has an empty snapshot.
        """
        try:
            path = self.log_path(service)
            if not path.exists():
                return []
            with path.open(errors="replace") as f:
                return [_line(text) for text in _tail(f, lines)]
        except OSError as e:
            return [_failure(LogReadError(f"Failed to read log file: {e}"))]
        except LarsError as e:
            return [_failure(e)]

    async def follow(
        self,
        service: ServiceDefinition,
        lines: int = DEFAULT_LINES,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[LogEvent]:
        """Emit the last ``lines`` lines, then new lines as they arrive.

        Ends promptly when ``cancel`` is set. When the backend reports the
        service gone, drains what remains and ends with ``source_ended``.
        """
        cancel = cancel or asyncio.Event()
        try:
            runner = self._runner(service)
            path = runner.log_path(service)

            # Nothing written yet: wait for the file while the service lives
            while not path.exists():
                if cancel.is_set():
                    return
                if not await runner.is_alive(service):
                    yield LogEvent(LogEventKind.SOURCE_ENDED)
                    return
                await self._pause(cancel)

            with path.open(errors="replace") as f:  # noqa: ASYNC230
                for text in _tail(f, lines):
                    yield _line(text)

                pending = ""
                loop = asyncio.get_running_loop()
                last_check = 0.0
                while not cancel.is_set():
                    chunk = f.readline()
                    if chunk:
                        pending += chunk
                        if pending.endswith("\n"):
                            yield _line(pending)
                            pending = ""
                        continue

                    if path.stat().st_size < f.tell():
                        # Truncated underneath us; start over
                        f.seek(0)
                        continue

                    now = loop.time()
                    if now - last_check >= self._liveness_interval:
                        last_check = now
                        if not await runner.is_alive(service):
                            for text in f.readlines():
                                pending += text
                                if pending.endswith("\n"):
                                    yield _line(pending)
                                    pending = ""
                            if pending:
                                yield _line(pending)
                            yield LogEvent(LogEventKind.SOURCE_ENDED)
                            return

                    await self._pause(cancel)
        except OSError as e:
            logger.warning(
                "log_read_failed",
                extra={"service.name": service.name, "error.message": str(e)},
            )
            yield _failure(LogReadError(f"Failed to read log file: {e}"))
        except LarsError as e:
            yield _failure(e)

    async def _pause(self, cancel: asyncio.Event) -> None:
        """Sleep one poll interval, waking early on cancellation."""
        try:
            await asyncio.wait_for(cancel.wait(), timeout=self._poll_interval)
        except TimeoutError:
            pass


def _tail(f: IO[str], lines: int) -> list[str]:
    """Last ``lines`` lines of ``f``, leaving it positioned at the end."""
    if lines <= 0:
        f.seek(0, 2)
        return []
    return list(deque(iter(f.readline, ""), maxlen=lines))
