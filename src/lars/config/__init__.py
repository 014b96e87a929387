"""Configuration module."""

from lars.config.models import (
    CURRENT_CONFIG_VERSION,
    RegistryDocument,
    RunnerKind,
    ServiceDefinition,
    Settings,
    ShutdownBehavior,
)
from lars.config.paths import (
    get_config_path,
    get_lars_home,
    get_ledger_path,
    get_logs_path,
    get_run_path,
)

__all__ = [
    "CURRENT_CONFIG_VERSION",
    "RegistryDocument",
    "RunnerKind",
    "ServiceDefinition",
    "Settings",
    "ShutdownBehavior",
    "get_config_path",
    "get_lars_home",
    "get_ledger_path",
    "get_logs_path",
    "get_run_path",
]
