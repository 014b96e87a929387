"""Bulk start/stop/restart with bounded concurrency."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from lars.config.models import ServiceDefinition
from lars.errors import BackendUnavailable
from lars.service.controller import ServiceController
from lars.service.results import (
    ActionResult,
    BulkReport,
    ObservedService,
    Outcome,
    Reconciliation,
    ServiceStatus,
)

logger = logging.getLogger(__name__)

Action = Callable[[ServiceDefinition], Awaitable[ActionResult]]


class BulkExecutor:
    """Applies one lifecycle action to a snapshot of services.

    The target set is computed from a single reconciliation before any
    action begins. Each service's result is captured independently; a
    failure never aborts the others. At most ``concurrency`` backend
    operations are in flight at once.
    """

    def __init__(self, controller: ServiceController, concurrency: int | None = None):
        self._controller = controller
        self._concurrency = concurrency or controller.settings.effective_concurrency

    @property
    def concurrency(self) -> int:
        return self._concurrency

    async def start_all(self) -> BulkReport:
        """Start every enabled service that isn't already running."""
        reconciliation = await self._reconcile_enabled()
        return await self._run(
            "start",
            reconciliation,
            reconciliation.entries,
            self._controller.start_service,
            skip=ServiceStatus.RUNNING,
        )

    async def stop_all(self) -> BulkReport:
        """Stop every service currently running, enabled or not."""
        reconciliation = await self._controller.status()
        targets = reconciliation.with_status(ServiceStatus.RUNNING)
        return await self._run(
            "stop", reconciliation, targets, self._controller.stop_service
        )

    async def restart_all(self) -> BulkReport:
        """Restart every enabled service; stop then start within a service."""
        reconciliation = await self._reconcile_enabled()
        return await self._run(
            "restart",
            reconciliation,
            reconciliation.entries,
            self._controller.restart_service,
        )

    async def _reconcile_enabled(self) -> Reconciliation:
        return await self._controller.status(include_disabled=False)

    async def _run(
        self,
        operation: str,
        reconciliation: Reconciliation,
        targets: list[ObservedService],
        action: Action,
        skip: ServiceStatus | None = None,
    ) -> BulkReport:
        report = BulkReport(
            operation=operation, unavailable=dict(reconciliation.unavailable)
        )
        semaphore = asyncio.Semaphore(self._concurrency)

        async def run_one(observed: ObservedService) -> ActionResult:
            service = observed.service
            kind = service.backend_kind
            if kind in reconciliation.unavailable:
                # Reported once at the report level; no backend call
                return ActionResult.failure(
                    service.name,
                    operation,
                    BackendUnavailable(f"Backend '{kind}' is unavailable"),
                )
            if skip is not None and observed.status == skip:
                return ActionResult(
                    name=service.name,
                    action=operation,
                    outcome=Outcome.ALREADY_RUNNING,
                    message=f"Service '{service.name}' is already running",
                )
            async with semaphore:
                return await action(service)

        if targets:
            report.results = list(await asyncio.gather(*(run_one(t) for t in targets)))

        counts = report.counts()
        logger.info(
            "bulk_operation_finished",
            extra={"operation": operation, "total": len(report.results), **counts},
        )
        return report
