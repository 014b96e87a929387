"""Record of services started and not since stopped.

The backend says whether a service is alive right now; the ledger says whether
it was supposed to be. Together they tell a crash apart from a clean stop.
"""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from uuid import UUID

from filelock import FileLock

from lars.config.paths import get_ledger_path

logger = logging.getLogger(__name__)


class StartLedger:
    """Read/write start records in ``run/started.json``, keyed by service id.

    Uses file locking for safe concurrent access across invocations.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or get_ledger_path()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = FileLock(str(self._path) + ".lock")

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to read %s: %s", self._path.name, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict[str, str]) -> None:
        temp_path = self._path.with_suffix(".json.tmp")
        temp_path.write_text(json.dumps(data, indent=2) + "\n")
        temp_path.replace(self._path)

    def mark_started(self, service_id: UUID, at: datetime | None = None) -> None:
        """Record a start attempt that reached the backend."""
        stamp = (at or datetime.now(UTC)).isoformat()
        with self._lock:
            data = self._read_all()
            data[str(service_id)] = stamp
            self._write_all(data)

    def clear(self, service_id: UUID) -> bool:
        """Forget a service's start record.

        Returns:
            True if a record was removed.
        """
        with self._lock:
            data = self._read_all()
            if data.pop(str(service_id), None) is None:
                return False
            self._write_all(data)
        return True

    def snapshot(self) -> dict[str, str]:
        """All records at once, for a reconciliation pass."""
        with self._lock:
            return self._read_all()

    def was_started(self, service_id: UUID) -> bool:
        return str(service_id) in self.snapshot()

    def started_at(self, service_id: UUID) -> datetime | None:
        stamp = self.snapshot().get(str(service_id))
        if stamp is None:
            return None
        try:
            return datetime.fromisoformat(stamp)
        except ValueError:
            return None
