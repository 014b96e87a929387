"""Centralized path management for lars.

All state (config, logs, runtime files) is stored under a single base
directory. The base directory can be overridden with the LARS_HOME
environment variable.

Default locations:
- Linux/macOS: ~/.lars
- Windows: %USERPROFILE%\\.lars
"""

import os
from functools import lru_cache
from pathlib import Path

ENV_VAR = "LARS_HOME"


@lru_cache(maxsize=1)
def get_lars_home() -> Path:
    """Get the base directory for all lars data.

    Resolution order:
    1. LARS_HOME environment variable (if set)
    2. Platform default (~/.lars)
    """
    if env_home := os.environ.get(ENV_VAR):
        return Path(env_home).expanduser().resolve()

    return Path.home() / ".lars"


def get_config_path() -> Path:
    """Get the config file path (services and settings)."""
    return get_lars_home() / "config.toml"


def get_logs_path() -> Path:
    """Get the directory holding per-service log files."""
    return get_lars_home() / "logs"


def get_run_path() -> Path:
    """Get the runtime directory path (PID files, start ledger)."""
    return get_lars_home() / "run"


def get_ledger_path() -> Path:
    """Get the start ledger file path."""
    return get_run_path() / "started.json"


def get_all_paths() -> dict[str, Path]:
    """Get all standard paths for display."""
    return {
        "home": get_lars_home(),
        "config": get_config_path(),
        "logs": get_logs_path(),
        "run": get_run_path(),
        "ledger": get_ledger_path(),
    }
