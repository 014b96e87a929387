"""Configuration management commands."""

from typing import Annotated

import typer

from lars.cli.console import (
    console,
    create_table,
    dim,
    get_options,
    print_json,
    success,
)
from lars.cli.runtime import fail
from lars.config.models import Settings
from lars.errors import ConfigError, LarsError
from lars.registry.store import ServiceRegistry

# Values that reset an optional setting to its default
_UNSET_VALUES = {"none", "null", "auto", "default", ""}


def _coerce(key: str, value: str) -> str | None:
    field = Settings.model_fields.get(key)
    if field is not None and field.default is None and value.lower() in _UNSET_VALUES:
        return None
    return value


def register(app: typer.Typer) -> None:
    """Register config subcommands."""
    config_app = typer.Typer(
        help="View and change global settings", no_args_is_help=True
    )
    app.add_typer(config_app, name="config")

    @config_app.command("show")
    def config_show() -> None:
        """Show the effective settings."""
        registry = ServiceRegistry()
        try:
            settings = registry.settings()
        except LarsError as e:
            fail(e)

        data = settings.model_dump(mode="json")
        if get_options().json:
            print_json({"path": str(registry.path), "settings": data})
            return

        table = create_table("Settings", [("Key", "cyan"), ("Value", "green")])
        for key, value in data.items():
            if value is None and key == "bulk_concurrency":
                value = f"auto ({settings.effective_concurrency})"
            table.add_row(key, str(value))
        console.print(table)
        dim(f"Config file: {registry.path}")

    @config_app.command("set")
    def config_set(
        key: Annotated[str, typer.Argument(help="Setting name")],
        value: Annotated[
            str, typer.Argument(help="New value (none resets optional values)")
        ],
    ) -> None:
        """Change a global setting."""
        registry = ServiceRegistry()
        if key not in Settings.model_fields:
            valid = ", ".join(Settings.model_fields)
            fail(ConfigError(f"Unknown setting: {key} (expected one of {valid})"))
        try:
            settings = registry.update_settings(**{key: _coerce(key, value)})
        except LarsError as e:
            fail(e)

        new_value = settings.model_dump(mode="json")[key]
        if get_options().json:
            print_json({"ok": True, "key": key, "value": new_value})
        else:
            success(f"Set {key} = {new_value}")
