"""CLI command modules."""

from lars.cli.commands import (
    config,
    doctor,
    lifecycle,
    logs,
    services,
    transfer,
)

__all__ = [
    "config",
    "doctor",
    "lifecycle",
    "logs",
    "services",
    "transfer",
]
