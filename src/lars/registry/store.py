"""Service registry persisted to config.toml.

Reads go through tomllib. Writes go through tomlkit so comments a user added
to the file survive, and are atomic: every mutation holds an exclusive file
lock for its read-modify-write cycle and replaces the file via rename.
"""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import tomlkit
from filelock import FileLock, Timeout
from pydantic import ValidationError
from tomlkit import TOMLDocument, aot, inline_table, table

from lars.config.models import (
    CURRENT_CONFIG_VERSION,
    RegistryDocument,
    ServiceDefinition,
    Settings,
)
from lars.config.paths import get_config_path
from lars.errors import ConfigError, DuplicateName, NotFound
from lars.validation import unique_name, validate_service_name

logger = logging.getLogger(__name__)

LOCK_TIMEOUT_SECS = 10.0


class ServiceRegistry:
    """Ordered collection of service definitions plus global settings.

    Example:
        registry = ServiceRegistry()
        registry.add(ServiceDefinition(name="web", command="npm start"))
        for service in registry.list_services():
            print(service.name)
    """

    def __init__(self, config_path: Path | None = None):
        self._path = config_path or get_config_path()
        self._lock = FileLock(str(self._path) + ".lock", timeout=LOCK_TIMEOUT_SECS)

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def load(self) -> RegistryDocument:
        """Load the registry document, or a default one if no file exists.

        Raises:
            ConfigError: If the file is unreadable or invalid.
        """
        if not self._path.exists():
            return RegistryDocument()

        try:
            with self._path.open("rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Failed to parse {self._path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read {self._path}: {e}") from e

        try:
            document = RegistryDocument.model_validate(raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid config {self._path}: {e}") from e

        if document.config_version < CURRENT_CONFIG_VERSION:
            document.config_version = CURRENT_CONFIG_VERSION
        return document

    def list_services(self) -> list[ServiceDefinition]:
        """All services in insertion order."""
        return self.load().services

    def get(self, name: str) -> ServiceDefinition:
        """Get a service by name.

        Raises:
            NotFound: If no service has that name.
        """
        service = self.load().find(name)
        if service is None:
            raise NotFound(name)
        return service

    def settings(self) -> Settings:
        return self.load().settings

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[RegistryDocument]:
        """Exclusive read-modify-write cycle.

        The yielded document is saved when the block exits cleanly and
        discarded when it raises.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with self._lock:
                document = self.load()
                yield document
                self._save(document)
        except Timeout as e:
            raise ConfigError(f"Timed out waiting for lock on {self._path}") from e

    def add(
        self, service: ServiceDefinition, *, unique: bool = False
    ) -> ServiceDefinition:
        """Append a service.

        With ``unique``, a taken name is treated as a base and suffixed
        (``web-1``, ``web-2``, ...) under the same lock, so concurrent adds
        never pick the same name.

        Raises:
            DuplicateName: If the name is taken (enabled or disabled) and
                ``unique`` is not set.
        """
        with self.transaction() as document:
            if unique:
                name = unique_name(service.name, document.names())
                service = service.model_copy(update={"name": name})
            elif document.find(service.name) is not None:
                raise DuplicateName(service.name)
            document.services.append(service)
        logger.info(
            "service_added",
            extra={"service.name": service.name, "service.id": str(service.id)},
        )
        return service

    def remove(self, name: str) -> ServiceDefinition:
        with self.transaction() as document:
            index = document.index_of(name)
            if index is None:
                raise NotFound(name)
            service = document.services.pop(index)
        logger.info("service_removed", extra={"service.name": name})
        return service

    def rename(self, name: str, new_name: str) -> ServiceDefinition:
        """Rename in place; id, position and backend binding are unchanged."""
        validate_service_name(new_name)
        with self.transaction() as document:
            service = document.find(name)
            if service is None:
                raise NotFound(name)
            if new_name != name and document.find(new_name) is not None:
                raise DuplicateName(new_name)
            service.name = new_name
            service.touch()
        logger.info(
            "service_renamed", extra={"service.name": new_name, "old_name": name}
        )
        return service

    def set_enabled(self, name: str, enabled: bool) -> ServiceDefinition:
        with self.transaction() as document:
            service = document.find(name)
            if service is None:
                raise NotFound(name)
            service.enabled = enabled
            service.touch()
        return service

    def update_settings(self, **changes: Any) -> Settings:
        """Validate and persist settings changes.

        Raises:
            ConfigError: If a key is unknown or a value is invalid.
        """
        unknown = set(changes) - set(Settings.model_fields)
        if unknown:
            raise ConfigError(f"Unknown setting: {', '.join(sorted(unknown))}")
        with self.transaction() as document:
            merged = document.settings.model_dump() | changes
            try:
                document.settings = Settings.model_validate(merged)
            except ValidationError as e:
                raise ConfigError(f"Invalid setting: {e}") from e
            settings = document.settings
        return settings

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read_toml_document(self) -> TOMLDocument:
        if self._path.exists():
            return tomlkit.parse(self._path.read_text())
        return tomlkit.document()

    def _save(self, document: RegistryDocument) -> None:
        """Write the document atomically, keeping existing top-level comments."""
        doc = self._read_toml_document()
        doc["config_version"] = document.config_version

        settings = table()
        for key, value in document.settings.model_dump(
            mode="json", exclude_none=True
        ).items():
            settings[key] = value
        doc["settings"] = settings

        services = aot()
        for service in document.services:
            services.append(_service_table(service))
        doc["services"] = services

        # Write to temp file first, then rename (atomic on POSIX)
        temp_path = self._path.with_suffix(".toml.tmp")
        try:
            temp_path.write_text(tomlkit.dumps(doc))
            temp_path.replace(self._path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise ConfigError(f"Failed to write {self._path}: {e}") from e
        logger.debug(f"Saved registry to {self._path}")


def _service_table(service: ServiceDefinition):
    data = service.model_dump(mode="json", exclude_none=True)
    environment = inline_table()
    environment.update(data.pop("environment"))

    entry = table()
    for key, value in data.items():
        entry[key] = value
    entry["environment"] = environment
    return entry
