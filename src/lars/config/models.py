"""Configuration models using Pydantic."""

from __future__ import annotations

import os
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from lars.validation import validate_command, validate_env_key, validate_service_name

CURRENT_CONFIG_VERSION = 1


class RunnerKind(StrEnum):
    """Which Runner variant manages a service."""

    TMUX = "tmux"
    PROCESS = "process"

    @classmethod
    def parse(cls, value: str | RunnerKind) -> RunnerKind:
        """Parse a runner kind, accepting ``direct`` as an alias of ``process``."""
        if isinstance(value, RunnerKind):
            return value
        normalized = str(value).strip().lower()
        if normalized == "direct":
            return cls.PROCESS
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(
                f"Invalid runner type: {value} (expected {valid})"
            ) from None


class ShutdownBehavior(StrEnum):
    """What ``lars up`` does with its services when interrupted."""

    STOP_ALL = "stop_all"
    LEAVE_RUNNING = "leave_running"

    @classmethod
    def parse(cls, value: str | ShutdownBehavior) -> ShutdownBehavior:
        if isinstance(value, ShutdownBehavior):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        aliases = {"stopall": "stop_all", "leaverunning": "leave_running"}
        try:
            return cls(aliases.get(normalized, normalized))
        except ValueError:
            raise ValueError(f"Invalid shutdown behavior: {value}") from None


def _now() -> datetime:
    return datetime.now(UTC)


class Settings(BaseModel):
    """Global settings, loaded once per invocation."""

    default_runner: RunnerKind = RunnerKind.TMUX
    shutdown_behavior: ShutdownBehavior = ShutdownBehavior.STOP_ALL
    restart_timeout_secs: float = Field(default=10.0, gt=0)
    # None = number of available CPUs
    bulk_concurrency: int | None = Field(default=None, ge=1)
    launch_grace_secs: float = Field(default=0.3, ge=0)

    @field_validator("default_runner", mode="before")
    @classmethod
    def _parse_runner(cls, value: object) -> object:
        return RunnerKind.parse(value) if isinstance(value, str) else value

    @field_validator("shutdown_behavior", mode="before")
    @classmethod
    def _parse_shutdown(cls, value: object) -> object:
        return ShutdownBehavior.parse(value) if isinstance(value, str) else value

    @property
    def effective_concurrency(self) -> int:
        return self.bulk_concurrency or os.cpu_count() or 1


class ServiceDefinition(BaseModel):
    """A declared service: identity and desired state.

    ``id`` never changes; backend session names and log files derive from it,
    which is what keeps a running session bound across renames.
    """

    id: UUID = Field(default_factory=uuid4)
    name: str
    command: str
    working_directory: Path | None = None
    environment: dict[str, str] = Field(default_factory=dict)
    enabled: bool = True
    backend_kind: RunnerKind = RunnerKind.TMUX
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return validate_service_name(value)

    @field_validator("command")
    @classmethod
    def _check_command(cls, value: str) -> str:
        return validate_command(value)

    @field_validator("environment")
    @classmethod
    def _check_environment(cls, value: dict[str, str]) -> dict[str, str]:
        for key in value:
            validate_env_key(key)
        return value

    @field_validator("backend_kind", mode="before")
    @classmethod
    def _parse_backend_kind(cls, value: object) -> object:
        return RunnerKind.parse(value) if isinstance(value, str) else value

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now()


class RegistryDocument(BaseModel):
    """The persisted registry: ordered services plus global settings."""

    config_version: int = CURRENT_CONFIG_VERSION
    services: list[ServiceDefinition] = Field(default_factory=list)
    settings: Settings = Field(default_factory=Settings)

    @model_validator(mode="after")
    def _check_unique_names(self) -> RegistryDocument:
        seen: set[str] = set()
        for service in self.services:
            if service.name in seen:
                raise ValueError(f"Duplicate service name: {service.name}")
            seen.add(service.name)
        return self

    def find(self, name: str) -> ServiceDefinition | None:
        return next((s for s in self.services if s.name == name), None)

    def index_of(self, name: str) -> int | None:
        for i, service in enumerate(self.services):
            if service.name == name:
                return i
        return None

    def names(self) -> list[str]:
        return [s.name for s in self.services]
