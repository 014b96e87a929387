"""Export and import of the service registry."""

from pathlib import Path
from typing import Annotated

import typer

from lars.cli.console import get_options, print_json, success
from lars.cli.runtime import build_runtime, fail
from lars.errors import ConfigError, LarsError
from lars.registry import export_json, import_file


def register(app: typer.Typer) -> None:
    """Register export and import commands."""

    @app.command()
    def export(
        output: Annotated[
            Path | None,
            typer.Option("--output", "-o", help="Write to a file instead of stdout"),
        ] = None,
    ) -> None:
        """Export services and settings as JSON."""
        runtime = build_runtime()
        try:
            content = export_json(runtime.registry)
            if output is None:
                typer.echo(content)
                return
            output.write_text(content + "\n")
        except OSError as e:
            fail(ConfigError(f"Failed to write {output}: {e}"))
        except LarsError as e:
            fail(e)

        if get_options().json:
            print_json({"ok": True, "path": str(output)})
        else:
            success(f"Exported to {output}")

    @app.command("import")
    def import_(
        file: Annotated[Path, typer.Argument(help="Exported JSON file")],
        overwrite: Annotated[
            bool,
            typer.Option("--overwrite", help="Replace services whose names collide"),
        ] = False,
        settings: Annotated[
            bool,
            typer.Option("--settings", help="Also apply the exported settings"),
        ] = False,
    ) -> None:
        """Import services from an exported JSON file.

        Without --overwrite, any name collision rejects the whole import.
        """
        runtime = build_runtime()
        try:
            result = import_file(
                runtime.registry,
                file,
                overwrite=overwrite,
                include_settings=settings,
            )
        except LarsError as e:
            fail(e)

        if get_options().json:
            print_json({"ok": True, **result.to_dict()})
            return
        success(
            f"Imported {len(result.added)} service(s), "
            f"replaced {len(result.replaced)}"
        )
        if result.settings_applied:
            success("Applied imported settings")
