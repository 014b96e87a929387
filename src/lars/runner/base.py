"""Abstract base for service runners."""

from abc import ABC, abstractmethod
from pathlib import Path

from lars.config.models import RunnerKind, ServiceDefinition
from lars.config.paths import get_logs_path, get_run_path

# Lines of log output attached to a LaunchFailure
DIAGNOSTIC_TAIL_LINES = 20


class Runner(ABC):
    """Executes lifecycle primitives against one execution backend.

    Runners are the only layer that raises LarsError subclasses across its
    interface; callers above it convert those into results.

    Backends:
    - tmux sessions (TmuxRunner)
    - directly spawned processes (ProcessRunner)
    """

    def __init__(
        self,
        *,
        log_dir: Path | None = None,
        run_dir: Path | None = None,
        launch_grace_secs: float = 0.3,
    ):
        self._log_dir = log_dir or get_logs_path()
        self._run_dir = run_dir or get_run_path()
        self._launch_grace_secs = launch_grace_secs

    @property
    @abstractmethod
    def kind(self) -> RunnerKind:
        """The backend kind this runner manages."""
        ...

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Check if the backend tool is usable on this system."""
        ...

    @abstractmethod
    async def start(self, service: ServiceDefinition) -> bool:
        """Start the service.

        Returns:
            True if launched, False if it was already alive (nothing done).

        Raises:
            BackendUnavailable: If the backend tool is missing.
            LaunchFailure: If the command could not be launched.
        """
        ...

    @abstractmethod
    async def stop(self, service: ServiceDefinition) -> bool:
        """Stop the service.

        Returns:
            True if something was stopped, False if nothing was running.

        Raises:
            BackendUnavailable: If the backend tool is missing.
            StopFailure: If the backend refused to stop it.
        """
        ...

    @abstractmethod
    async def is_alive(self, service: ServiceDefinition) -> bool:
        """Query the backend; the sole source of truth for "running".

        Raises:
            BackendUnavailable: If the backend cannot be queried at all.
        """
        ...

    @abstractmethod
    async def get_pid(self, service: ServiceDefinition) -> int | None:
        """Get the PID of the service's top process, if running."""
        ...

    @abstractmethod
    def attach_command(self, service: ServiceDefinition) -> list[str] | None:
        """Get the argv that hands the terminal to the service's session.

        Returns None if the runner doesn't support interactive attach.
        """
        ...

    def log_path(self, service: ServiceDefinition) -> Path:
        """Get the per-service log sink."""
        return self._log_dir / f"{service.id}.log"

    def _prepare_log(self, service: ServiceDefinition) -> Path:
        path = self.log_path(service)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def _log_tail(self, service: ServiceDefinition) -> str:
        """Last lines of the log sink, for launch diagnostics."""
        path = self.log_path(service)
        try:
            lines = path.read_text(errors="replace").splitlines()
        except OSError:
            return ""
        return "\n".join(lines[-DIAGNOSTIC_TAIL_LINES:])
