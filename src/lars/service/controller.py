"""High-level service management interface."""

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from lars.config.models import RunnerKind, ServiceDefinition, Settings
from lars.errors import (
    BackendUnavailable,
    InvalidInput,
    LarsError,
    LaunchFailure,
    NotRunning,
    OperationNotSupported,
    StopTimeout,
)
from lars.registry.store import ServiceRegistry
from lars.runner.base import Runner
from lars.service.ledger import StartLedger
from lars.service.reconciler import Reconciler
from lars.service.results import ActionResult, Outcome, Reconciliation
from lars.validation import (
    generate_service_name,
    validate_command,
    validate_service_name,
)

logger = logging.getLogger(__name__)

RESTART_POLL_SECS = 0.1


class ServiceController:
    """Single entry point for lifecycle operations on declared services.

    Orchestrates the registry, the runners and the start ledger. Every
    operation returns an ActionResult; LarsErrors raised below are converted
    here.

    Example:
        controller = ServiceController(registry, runners, ledger)
        result = await controller.start("web")
        if not result.ok:
            print(result.error, result.message)
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        runners: Mapping[RunnerKind, Runner],
        ledger: StartLedger,
        settings: Settings | None = None,
    ):
        self._registry = registry
        self._runners = runners
        self._ledger = ledger
        self._settings = settings or registry.settings()
        self._reconciler = Reconciler(runners, ledger)

    @property
    def registry(self) -> ServiceRegistry:
        return self._registry

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def reconciler(self) -> Reconciler:
        return self._reconciler

    def runner_for(self, service: ServiceDefinition) -> Runner:
        """Get the runner for a service's backend kind.

        Raises:
            BackendUnavailable: If no runner handles that kind.
        """
        runner = self._runners.get(service.backend_kind)
        if runner is None:
            raise BackendUnavailable(
                f"No runner configured for backend '{service.backend_kind}'"
            )
        return runner

    async def status(self, include_disabled: bool = True) -> Reconciliation:
        services = self._registry.list_services()
        if not include_disabled:
            services = [s for s in services if s.enabled]
        return await self._reconciler.reconcile(services)

    # ------------------------------------------------------------------
    # Registry operations
    # ------------------------------------------------------------------

    def add(
        self,
        command: str,
        *,
        name: str | None = None,
        working_directory: Path | None = None,
        environment: dict[str, str] | None = None,
        backend_kind: RunnerKind | str | None = None,
        enabled: bool = True,
    ) -> ActionResult:
        """Declare a new service.

        Without a name, one is generated from the command and suffixed until
        it is unique. The working directory defaults to the current one.
        """
        label = name or ""
        try:
            validate_command(command)
            if name is not None:
                validate_service_name(name)
            cwd = (working_directory or Path.cwd()).expanduser().resolve()
            if not cwd.is_dir():
                raise InvalidInput(f"Working directory does not exist: {cwd}")
            try:
                kind = RunnerKind.parse(backend_kind or self._settings.default_runner)
            except ValueError as e:
                raise InvalidInput(str(e)) from e

            try:
                service = ServiceDefinition(
                    name=name or generate_service_name(command),
                    command=command,
                    working_directory=cwd,
                    environment=environment or {},
                    enabled=enabled,
                    backend_kind=kind,
                )
            except ValidationError as e:
                raise InvalidInput(_first_error(e)) from e
            service = self._registry.add(service, unique=name is None)
        except LarsError as e:
            return ActionResult.failure(label, "add", e)

        return ActionResult(
            name=service.name,
            action="add",
            outcome=Outcome.ADDED,
            message=f"Added service '{service.name}'",
            details={"id": str(service.id), "backend_kind": kind.value},
        )

    async def remove(self, name: str, *, force: bool = False) -> ActionResult:
        """Remove a service, stopping it first if it is alive.

        With ``force``, backend errors are ignored and the entry goes anyway.
        """
        stopped = False
        try:
            service = self._registry.get(name)
            try:
                runner = self.runner_for(service)
                if await runner.is_alive(service):
                    stopped = await runner.stop(service)
            except LarsError as e:
                if not force:
                    raise
                logger.warning(
                    "remove_backend_error_ignored",
                    extra={"service.name": name, "error.message": e.message},
                )
            self._ledger.clear(service.id)
            self._registry.remove(name)
        except LarsError as e:
            return ActionResult.failure(name, "remove", e)

        return ActionResult(
            name=name,
            action="remove",
            outcome=Outcome.REMOVED,
            message=f"Removed service '{name}'",
            details={"stopped": stopped},
        )

    def rename(self, name: str, new_name: str) -> ActionResult:
        """Rename a service. The backend session is untouched."""
        try:
            service = self._registry.rename(name, new_name)
        except LarsError as e:
            return ActionResult.failure(name, "rename", e)
        return ActionResult(
            name=service.name,
            action="rename",
            outcome=Outcome.RENAMED,
            message=f"Renamed '{name}' to '{new_name}'",
            details={"old_name": name},
        )

    def enable(self, name: str) -> ActionResult:
        return self._set_enabled(name, True)

    def disable(self, name: str) -> ActionResult:
        return self._set_enabled(name, False)

    def _set_enabled(self, name: str, enabled: bool) -> ActionResult:
        action = "enable" if enabled else "disable"
        try:
            self._registry.set_enabled(name, enabled)
        except LarsError as e:
            return ActionResult.failure(name, action, e)
        return ActionResult(
            name=name,
            action=action,
            outcome=Outcome.ENABLED if enabled else Outcome.DISABLED,
            message=f"{action.capitalize()}d service '{name}'",
        )

    # ------------------------------------------------------------------
    # Lifecycle operations
    # ------------------------------------------------------------------

    async def start(self, name: str) -> ActionResult:
        try:
            service = self._registry.get(name)
        except LarsError as e:
            return ActionResult.failure(name, "start", e)
        return await self.start_service(service)

    async def stop(self, name: str) -> ActionResult:
        try:
            service = self._registry.get(name)
        except LarsError as e:
            return ActionResult.failure(name, "stop", e)
        return await self.stop_service(service)

    async def restart(self, name: str) -> ActionResult:
        try:
            service = self._registry.get(name)
        except LarsError as e:
            return ActionResult.failure(name, "restart", e)
        return await self.restart_service(service)

    async def start_service(self, service: ServiceDefinition) -> ActionResult:
        """Start an already-resolved service. Idempotent."""
        name = service.name
        try:
            runner = self.runner_for(service)
            launched = await runner.start(service)
            pid = await runner.get_pid(service) if launched else None
        except LaunchFailure as e:
            # The attempt reached the backend; a dead service now reads as crashed
            self._ledger.mark_started(service.id)
            logger.warning(
                "service_launch_failed",
                extra={"service.name": name, "error.message": e.message},
            )
            return ActionResult.failure(name, "start", e)
        except LarsError as e:
            return ActionResult.failure(name, "start", e)

        if not launched:
            return ActionResult(
                name=name,
                action="start",
                outcome=Outcome.ALREADY_RUNNING,
                message=f"Service '{name}' is already running",
            )

        self._ledger.mark_started(service.id)
        logger.info("service_started", extra={"service.name": name, "pid": pid})
        return ActionResult(
            name=name,
            action="start",
            outcome=Outcome.STARTED,
            message=f"Started service '{name}' using {service.backend_kind}",
            details={"pid": pid, "backend_kind": service.backend_kind.value},
        )

    async def stop_service(self, service: ServiceDefinition) -> ActionResult:
        """Stop an already-resolved service. Idempotent."""
        name = service.name
        try:
            stopped = await self.runner_for(service).stop(service)
        except LarsError as e:
            return ActionResult.failure(name, "stop", e)

        self._ledger.clear(service.id)
        if not stopped:
            return ActionResult(
                name=name,
                action="stop",
                outcome=Outcome.ALREADY_STOPPED,
                message=f"Service '{name}' is not running",
            )
        logger.info("service_stopped", extra={"service.name": name})
        return ActionResult(
            name=name,
            action="stop",
            outcome=Outcome.STOPPED,
            message=f"Stopped service '{name}'",
        )

    async def restart_service(self, service: ServiceDefinition) -> ActionResult:
        """Stop, wait until the backend confirms it's gone, then start."""
        name = service.name
        stop_result = await self.stop_service(service)
        if not stop_result.ok:
            return _as_action(stop_result, "restart")

        try:
            await self._wait_until_gone(service)
        except LarsError as e:
            return ActionResult.failure(name, "restart", e)

        start_result = await self.start_service(service)
        if not start_result.ok:
            return _as_action(start_result, "restart")
        return ActionResult(
            name=name,
            action="restart",
            outcome=Outcome.RESTARTED,
            message=f"Restarted service '{name}'",
            details=start_result.details,
        )

    async def _wait_until_gone(self, service: ServiceDefinition) -> None:
        """Poll the backend until the service is no longer alive.

        Raises:
            StopTimeout: If it is still alive after ``restart_timeout_secs``.
        """
        runner = self.runner_for(service)
        timeout = self._settings.restart_timeout_secs
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while await runner.is_alive(service):
            if loop.time() >= deadline:
                raise StopTimeout(service.name, timeout)
            await asyncio.sleep(RESTART_POLL_SECS)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def inspect(self, name: str) -> ActionResult:
        """Definition, reconciled status, pid, log path and start time."""
        try:
            service = self._registry.get(name)
        except LarsError as e:
            return ActionResult.failure(name, "inspect", e)

        observed, unavailable = await self._reconciler.observe(service)
        started_at = self._ledger.started_at(service.id)
        runner = self._runners.get(service.backend_kind)
        details: dict[str, Any] = service.model_dump(mode="json")
        details.update(
            status=observed.status.value,
            pid=observed.pid,
            log_path=str(runner.log_path(service)) if runner else None,
            started_at=started_at.isoformat() if started_at else None,
        )
        if unavailable:
            details["backend_error"] = unavailable
        return ActionResult(
            name=name, action="inspect", outcome=Outcome.INSPECTED, details=details
        )

    async def attach(self, name: str) -> ActionResult:
        """Resolve the argv that attaches a terminal to a running service.

        The caller executes it; ``details["argv"]`` holds the command.
        """
        try:
            service = self._registry.get(name)
            runner = self.runner_for(service)
            argv = runner.attach_command(service)
            if argv is None:
                raise OperationNotSupported(
                    f"Runner '{service.backend_kind}' does not support attach"
                )
            if not await runner.is_alive(service):
                raise NotRunning(name)
        except LarsError as e:
            return ActionResult.failure(name, "attach", e)
        return ActionResult(
            name=name,
            action="attach",
            outcome=Outcome.ATTACHABLE,
            details={"argv": argv},
        )


def _as_action(result: ActionResult, action: str) -> ActionResult:
    result.action = action
    return result


def _first_error(error: ValidationError) -> str:
    errors = error.errors()
    if not errors:
        return str(error)
    return str(errors[0].get("msg", error))
