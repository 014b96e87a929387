"""Shared test fixtures and factories."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from uuid import UUID

import pytest

from lars.config.models import RunnerKind, ServiceDefinition, Settings
from lars.config.paths import ENV_VAR, get_lars_home
from lars.errors import BackendUnavailable, LaunchFailure, StopFailure
from lars.registry.store import ServiceRegistry
from lars.runner.base import Runner
from lars.service import ServiceController, StartLedger

# =============================================================================
# Fake Runner
# =============================================================================


class FakeRunner(Runner):
    """In-memory runner: a service is alive while its id is in ``alive``.

    Records every backend call and the peak number of concurrent
    start/stop calls.
    """

    def __init__(
        self,
        kind: RunnerKind = RunnerKind.TMUX,
        *,
        log_dir: Path,
        delay: float = 0.0,
        attachable: bool = True,
    ):
        super().__init__(log_dir=log_dir, run_dir=log_dir, launch_grace_secs=0)
        self._kind = kind
        self.available = True
        self.alive: set[UUID] = set()
        self.delay = delay
        self.attachable = attachable
        # name -> diagnostic text for a LaunchFailure
        self.fail_start: dict[str, str] = {}
        self.fail_stop: set[str] = set()
        # names that survive stop (session never goes away)
        self.sticky: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def kind(self) -> RunnerKind:
        return self._kind

    @property
    def is_available(self) -> bool:
        return self.available

    @asynccontextmanager
    async def _track(self, op: str, service: ServiceDefinition) -> AsyncIterator[None]:
        self.calls.append((op, service.name))
        if not self.available:
            raise BackendUnavailable(f"{self._kind} is not installed")
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            yield
        finally:
            self.in_flight -= 1

    def ops(self, op: str) -> list[str]:
        """Names of services the given operation was called for."""
        return [name for called, name in self.calls if called == op]

    def crash(self, service: ServiceDefinition) -> None:
        self.alive.discard(service.id)

    async def start(self, service: ServiceDefinition) -> bool:
        async with self._track("start", service):
            if service.id in self.alive:
                return False
            if service.name in self.fail_start:
                raise LaunchFailure(
                    f"'{service.name}' exited immediately",
                    diagnostic=self.fail_start[service.name],
                )
            self._prepare_log(service).touch()
            self.alive.add(service.id)
            return True

    async def stop(self, service: ServiceDefinition) -> bool:
        async with self._track("stop", service):
            if service.name in self.fail_stop:
                raise StopFailure(f"kill-session failed for '{service.name}'")
            if service.id not in self.alive:
                return False
            if service.name not in self.sticky:
                self.alive.discard(service.id)
            return True

    async def is_alive(self, service: ServiceDefinition) -> bool:
        self.calls.append(("is_alive", service.name))
        if not self.available:
            raise BackendUnavailable(f"{self._kind} is not installed")
        return service.id in self.alive

    async def get_pid(self, service: ServiceDefinition) -> int | None:
        return 4242 if service.id in self.alive else None

    def attach_command(self, service: ServiceDefinition) -> list[str] | None:
        if not self.attachable:
            return None
        return ["tmux", "attach-session", "-t", f"=lars_{service.id}"]


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture
def lars_home(tmp_path: Path, monkeypatch) -> Path:
    """Point LARS_HOME at a temporary directory."""
    home = tmp_path / "lars-home"
    monkeypatch.setenv(ENV_VAR, str(home))
    get_lars_home.cache_clear()
    yield home
    get_lars_home.cache_clear()


@pytest.fixture
def registry(lars_home: Path) -> ServiceRegistry:
    return ServiceRegistry()


@pytest.fixture
def ledger(lars_home: Path) -> StartLedger:
    return StartLedger()


@pytest.fixture
def fake_runners(lars_home: Path) -> dict[RunnerKind, FakeRunner]:
    logs = lars_home / "logs"
    return {
        RunnerKind.TMUX: FakeRunner(RunnerKind.TMUX, log_dir=logs),
        RunnerKind.PROCESS: FakeRunner(
            RunnerKind.PROCESS, log_dir=logs, attachable=False
        ),
    }


@pytest.fixture
def tmux(fake_runners) -> FakeRunner:
    return fake_runners[RunnerKind.TMUX]


@pytest.fixture
def settings() -> Settings:
    return Settings(restart_timeout_secs=0.3)


@pytest.fixture
def controller(registry, fake_runners, ledger, settings) -> ServiceController:
    return ServiceController(registry, fake_runners, ledger, settings)


@pytest.fixture
def make_service(registry: ServiceRegistry):
    """Factory: declare a service directly in the registry."""

    def _make(name: str, command: str = "sleep 1000", **kwargs) -> ServiceDefinition:
        return registry.add(ServiceDefinition(name=name, command=command, **kwargs))

    return _make


# =============================================================================
# CLI Test Helpers
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner with colors disabled."""
    from typer.testing import CliRunner

    return CliRunner(env={"NO_COLOR": "1", "LARS_LOG_LEVEL": "ERROR"})


@pytest.fixture
def cli_env(lars_home, fake_runners, monkeypatch):
    """Make CLI commands use the fake runners."""
    monkeypatch.setattr(
        "lars.cli.runtime.create_runners", lambda *args, **kwargs: fake_runners
    )
    return fake_runners


@pytest.fixture(autouse=True)
def output_options():
    """Reset the global output flags around every test."""
    from lars.cli.console import OutputOptions, set_options

    set_options(OutputOptions())
    yield
    set_options(OutputOptions())
