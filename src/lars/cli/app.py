"""Main CLI application."""

from importlib.metadata import PackageNotFoundError, version
from typing import Annotated

import typer

from lars.cli.commands import config, doctor, lifecycle, logs, services, transfer
from lars.cli.console import OutputOptions, set_options

app = typer.Typer(
    name="lars",
    help="lars - Local App Runner Service",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if not value:
        return
    try:
        typer.echo(f"lars {version('lars')}")
    except PackageNotFoundError:
        typer.echo("lars (not installed)")
    raise typer.Exit()


@app.callback()
def main(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Machine-readable JSON output"),
    ] = False,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="More detail (-vv for debug logs)"
        ),
    ] = 0,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Only print errors"),
    ] = False,
    show_version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the version and exit",
        ),
    ] = False,
) -> None:
    """Manage long-running local commands in tmux sessions or processes."""
    from lars.logging import configure_logging

    configure_logging(verbosity=verbose, quiet=quiet)
    set_options(OutputOptions(json=json_output, verbose=verbose, quiet=quiet))


services.register(app)
lifecycle.register(app)
logs.register(app)
transfer.register(app)
config.register(app)
doctor.register(app)
