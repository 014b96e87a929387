"""Portable JSON export/import of the registry document."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from lars.config.models import (
    CURRENT_CONFIG_VERSION,
    RunnerKind,
    ServiceDefinition,
    Settings,
)
from lars.errors import ConfigError, DuplicateName
from lars.registry.store import ServiceRegistry

logger = logging.getLogger(__name__)

# Machine-local fields that never leave this registry
_LOCAL_FIELDS = {"id", "created_at", "updated_at"}


class ExportedService(BaseModel):
    name: str
    command: str
    working_directory: Path | None = None
    environment: dict[str, str] = Field(default_factory=dict)
    enabled: bool = True
    backend_kind: RunnerKind = RunnerKind.TMUX


class ExportDocument(BaseModel):
    config_version: int = CURRENT_CONFIG_VERSION
    services: list[ExportedService] = Field(default_factory=list)
    settings: Settings = Field(default_factory=Settings)


@dataclass
class ImportResult:
    added: list[str] = field(default_factory=list)
    replaced: list[str] = field(default_factory=list)
    settings_applied: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "added": self.added,
            "replaced": self.replaced,
            "settings_applied": self.settings_applied,
        }


def export_document(registry: ServiceRegistry) -> dict[str, Any]:
    """Build the portable document for the current registry."""
    document = registry.load()
    services = [
        service.model_dump(mode="json", exclude=_LOCAL_FIELDS, exclude_none=True)
        for service in document.services
    ]
    return {
        "config_version": document.config_version,
        "services": services,
        "settings": document.settings.model_dump(mode="json"),
    }


def export_json(registry: ServiceRegistry) -> str:
    return json.dumps(export_document(registry), indent=2)


def parse_export(data: str | dict[str, Any]) -> ExportDocument:
    """Parse and validate an exported document.

    Raises:
        ConfigError: If the JSON or its schema is invalid.
    """
    try:
        raw = json.loads(data) if isinstance(data, str) else data
        return ExportDocument.model_validate(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"Invalid export document: {e}") from e


def import_document(
    registry: ServiceRegistry,
    data: str | dict[str, Any],
    *,
    overwrite: bool = False,
    include_settings: bool = False,
) -> ImportResult:
    """Merge an exported document into the registry.

    Imported services get fresh ids. A name collision rejects the whole
    import unless ``overwrite`` is set, in which case the existing entry is
    replaced in place. An overwritten entry keeps its id (and therefore its
    running session) when the backend kind is unchanged.

    Raises:
        ConfigError: If the document is invalid.
        DuplicateName: On a collision without ``overwrite``.
    """
    incoming = parse_export(data)
    result = ImportResult()

    try:
        definitions = [
            ServiceDefinition(**service.model_dump()) for service in incoming.services
        ]
    except ValidationError as e:
        raise ConfigError(f"Invalid service in export document: {e}") from e

    seen: set[str] = set()
    for definition in definitions:
        if definition.name in seen:
            raise ConfigError(f"Duplicate service name in import: {definition.name}")
        seen.add(definition.name)

    with registry.transaction() as document:
        if not overwrite:
            for definition in definitions:
                if document.find(definition.name) is not None:
                    raise DuplicateName(definition.name)

        for definition in definitions:
            index = document.index_of(definition.name)
            if index is None:
                document.services.append(definition)
                result.added.append(definition.name)
                continue
            existing = document.services[index]
            if existing.backend_kind == definition.backend_kind:
                definition.id = existing.id
                definition.created_at = existing.created_at
            document.services[index] = definition
            result.replaced.append(definition.name)

        if include_settings:
            document.settings = incoming.settings
            result.settings_applied = True

    logger.info(
        "registry_imported",
        extra={"added": len(result.added), "replaced": len(result.replaced)},
    )
    return result


def import_file(
    registry: ServiceRegistry,
    path: Path,
    *,
    overwrite: bool = False,
    include_settings: bool = False,
) -> ImportResult:
    try:
        content = path.read_text()
    except OSError as e:
        raise ConfigError(f"Failed to read {path}: {e}") from e
    return import_document(
        registry, content, overwrite=overwrite, include_settings=include_settings
    )
