"""Service lifecycle management.

Builds on the registry (desired state) and the runners (observed state):

- Reconciler computes running / stopped / crashed / unknown
- ServiceController performs single-service operations
- BulkExecutor fans operations out with bounded concurrency
- LogStreamer reads and follows log sinks

Example:
    from lars.service import ServiceController

    controller = ServiceController(registry, runners, ledger)
    result = await controller.start("web")
"""

from lars.service.bulk import BulkExecutor
from lars.service.controller import ServiceController
from lars.service.ledger import StartLedger
from lars.service.logs import LogEvent, LogEventKind, LogStreamer
from lars.service.reconciler import Reconciler
from lars.service.results import (
    ActionResult,
    BulkReport,
    ObservedService,
    Outcome,
    Reconciliation,
    ServiceStatus,
)

__all__ = [
    "ActionResult",
    "BulkExecutor",
    "BulkReport",
    "LogEvent",
    "LogEventKind",
    "LogStreamer",
    "ObservedService",
    "Outcome",
    "Reconciler",
    "Reconciliation",
    "ServiceController",
    "ServiceStatus",
    "StartLedger",
]
