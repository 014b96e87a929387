"""Compare declared services against what the backends report."""

import logging
from collections.abc import Mapping, Sequence

from lars.config.models import RunnerKind, ServiceDefinition
from lars.errors import BackendUnavailable
from lars.runner.base import Runner
from lars.service.ledger import StartLedger
from lars.service.results import ObservedService, Reconciliation, ServiceStatus

logger = logging.getLogger(__name__)


class Reconciler:
    """Computes the runtime status of each service.

    Read-only: neither the registry nor the ledger is modified.
    """

    def __init__(self, runners: Mapping[RunnerKind, Runner], ledger: StartLedger):
        self._runners = runners
        self._ledger = ledger

    async def reconcile(self, services: Sequence[ServiceDefinition]) -> Reconciliation:
        """Observe every service, in order.

        A backend that cannot be queried is recorded once and not asked again
        for the rest of the pass; its services are reported ``unknown``.
        """
        reconciliation = Reconciliation()
        started = self._ledger.snapshot()

        for service in services:
            reconciliation.entries.append(
                await self._observe(service, started, reconciliation.unavailable)
            )

        logger.debug(
            "reconciled",
            extra={
                "count": len(reconciliation.entries),
                "unavailable": [k.value for k in reconciliation.unavailable],
            },
        )
        return reconciliation

    async def observe(
        self, service: ServiceDefinition
    ) -> tuple[ObservedService, str | None]:
        """Observe a single service.

        Returns:
            The observation and, if its backend is unavailable, the reason.
        """
        unavailable: dict[RunnerKind, str] = {}
        observed = await self._observe(service, None, unavailable)
        return observed, unavailable.get(service.backend_kind)

    async def _observe(
        self,
        service: ServiceDefinition,
        started: Mapping[str, str] | None,
        unavailable: dict[RunnerKind, str],
    ) -> ObservedService:
        # started is a ledger snapshot; None reads the ledger for this service
        kind = service.backend_kind
        if kind in unavailable:
            return ObservedService(service, ServiceStatus.UNKNOWN)

        runner = self._runners.get(kind)
        if runner is None:
            unavailable[kind] = f"No runner configured for backend '{kind}'"
            return ObservedService(service, ServiceStatus.UNKNOWN)

        try:
            alive = await runner.is_alive(service)
            pid = await runner.get_pid(service) if alive else None
        except BackendUnavailable as e:
            logger.warning(
                "backend_unavailable",
                extra={"backend": kind.value, "error.message": e.message},
            )
            unavailable[kind] = e.message
            return ObservedService(service, ServiceStatus.UNKNOWN)

        if alive:
            return ObservedService(service, ServiceStatus.RUNNING, pid)
        if started is None:
            crashed = self._ledger.was_started(service.id)
        else:
            crashed = str(service.id) in started
        if crashed:
            return ObservedService(service, ServiceStatus.CRASHED)
        return ObservedService(service, ServiceStatus.STOPPED)
