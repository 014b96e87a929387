"""Result types returned by the service layer."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from lars.config.models import RunnerKind, ServiceDefinition
from lars.errors import ErrorKind, LarsError, LaunchFailure


class Outcome(StrEnum):
    """What an action did. Failures carry an ErrorKind alongside FAILED."""

    ADDED = "added"
    REMOVED = "removed"
    RENAMED = "renamed"
    ENABLED = "enabled"
    DISABLED = "disabled"
    STARTED = "started"
    ALREADY_RUNNING = "already_running"
    STOPPED = "stopped"
    ALREADY_STOPPED = "already_stopped"
    RESTARTED = "restarted"
    INSPECTED = "inspected"
    ATTACHABLE = "attachable"
    FAILED = "failed"


class ServiceStatus(StrEnum):
    """Reconciled runtime status of a service."""

    RUNNING = "running"
    STOPPED = "stopped"
    CRASHED = "crashed"
    UNKNOWN = "unknown"


@dataclass
class ActionResult:
    """Outcome of one operation on one service."""

    name: str
    action: str
    outcome: Outcome
    error: ErrorKind | None = None
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, name: str, action: str, exc: LarsError) -> "ActionResult":
        details: dict[str, Any] = {}
        if isinstance(exc, LaunchFailure) and exc.diagnostic:
            details["diagnostic"] = exc.diagnostic
        return cls(
            name=name,
            action=action,
            outcome=Outcome.FAILED,
            error=exc.kind,
            message=exc.message,
            details=details,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "action": self.action,
            "outcome": self.outcome.value,
            "ok": self.ok,
        }
        if self.error is not None:
            data["error"] = self.error.value
        if self.message:
            data["message"] = self.message
        if self.details:
            data["details"] = self.details
        return data


@dataclass
class ObservedService:
    service: ServiceDefinition
    status: ServiceStatus
    pid: int | None = None

    @property
    def name(self) -> str:
        return self.service.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.service.name,
            "id": str(self.service.id),
            "command": self.service.command,
            "enabled": self.service.enabled,
            "backend_kind": self.service.backend_kind.value,
            "status": self.status.value,
            "pid": self.pid,
        }


@dataclass
class Reconciliation:
    """One reconciliation pass over a set of services."""

    entries: list[ObservedService] = field(default_factory=list)
    # Backend kinds that could not be queried, with the reason (once per kind)
    unavailable: dict[RunnerKind, str] = field(default_factory=dict)

    def get(self, name: str) -> ObservedService | None:
        return next((e for e in self.entries if e.name == name), None)

    def with_status(self, *statuses: ServiceStatus) -> list[ObservedService]:
        return [e for e in self.entries if e.status in statuses]

    def to_dict(self) -> dict[str, Any]:
        return {
            "services": [e.to_dict() for e in self.entries],
            "unavailable": {k.value: v for k, v in self.unavailable.items()},
        }


@dataclass
class BulkReport:
    """Aggregated per-service results of a bulk operation."""

    operation: str
    results: list[ActionResult] = field(default_factory=list)
    unavailable: dict[RunnerKind, str] = field(default_factory=dict)

    @property
    def failed(self) -> list[ActionResult]:
        return [r for r in self.results if not r.ok]

    @property
    def succeeded(self) -> list[ActionResult]:
        return [r for r in self.results if r.ok]

    @property
    def all_failed(self) -> bool:
        """True only when there were targets and every one of them failed."""
        return bool(self.results) and not self.succeeded

    def counts(self) -> dict[str, int]:
        counts = {
            "started": 0,
            "already_running": 0,
            "stopped": 0,
            "already_stopped": 0,
            "restarted": 0,
            "failed": 0,
        }
        for result in self.results:
            key = result.outcome.value
            if key in counts:
                counts[key] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "total": len(self.results),
            "counts": self.counts(),
            "results": [r.to_dict() for r in self.results],
            "unavailable": {k.value: v for k, v in self.unavailable.items()},
        }
