"""Log viewing command."""

import asyncio
import json
from typing import Annotated

import typer

from lars.cli.console import console, dim, error, get_options
from lars.cli.exit_codes import exit_code_for
from lars.cli.runtime import build_runtime, fail
from lars.errors import ErrorKind, LarsError
from lars.service import LogEvent, LogEventKind


def _emit(event: LogEvent) -> None:
    if get_options().json:
        typer.echo(json.dumps(event.to_dict()))
    elif event.kind == LogEventKind.LINE:
        console.print(event.text, markup=False, highlight=False, soft_wrap=True)
    elif event.kind == LogEventKind.SOURCE_ENDED:
        dim("-- service exited --")
    else:
        error(event.text)


def register(app: typer.Typer) -> None:
    """Register the logs command."""

    @app.command()
    def logs(
        name: Annotated[str, typer.Argument(help="Service name")],
        follow: Annotated[
            bool,
            typer.Option("--follow", "-f", help="Follow log output"),
        ] = False,
        lines: Annotated[
            int,
            typer.Option("--lines", "-n", help="Number of lines to show", min=0),
        ] = 50,
    ) -> None:
        """View a service's output."""
        runtime = build_runtime()
        try:
            service = runtime.registry.get(name)
        except LarsError as e:
            fail(e)

        streamer = runtime.streamer()
        failure: ErrorKind | None = None

        if not follow:
            for event in streamer.snapshot(service, lines):
                _emit(event)
                failure = failure or event.error
        else:

            async def do_follow() -> ErrorKind | None:
                async for event in streamer.follow(service, lines):
                    _emit(event)
                    if event.kind == LogEventKind.ERROR:
                        return event.error
                return None

            try:
                failure = asyncio.run(do_follow())
            except KeyboardInterrupt:
                pass

        if failure is not None:
            raise typer.Exit(exit_code_for(failure))
