"""Lifecycle commands: start, stop, restart, the bulk variants, up and attach."""

import asyncio
import logging
import os
from collections.abc import Coroutine
from typing import Annotated, Any

import typer

from lars.cli.console import console, get_options, info, warning
from lars.cli.exit_codes import ExitCode
from lars.cli.runtime import (
    Runtime,
    build_runtime,
    emit_bulk,
    emit_result,
    fail,
    render_bulk,
)
from lars.config.models import ShutdownBehavior
from lars.errors import LarsError
from lars.service import ActionResult, BulkReport, ServiceStatus

logger = logging.getLogger(__name__)

DEFAULT_UP_INTERVAL = 5.0


def _exec_attach(result: ActionResult) -> None:
    """Replace this process with the backend's attach command."""
    if not result.ok:
        emit_result(result)
    argv = result.details["argv"]
    if not get_options().json:
        info("Attaching to session...")
    console.file.flush()
    os.execvp(argv[0], argv)


async def supervise(
    runtime: Runtime,
    interval: float,
    cancel: asyncio.Event | None = None,
) -> BulkReport:
    """Start all enabled services, then watch them until cancelled.

    Each cycle reconciles the enabled services and warns once when one of
    them turns crashed.

    Returns:
        The report of the initial start_all.
    """
    cancel = cancel or asyncio.Event()
    report = await runtime.bulk().start_all()
    render_bulk(report)

    crashed: set[str] = set()
    while not cancel.is_set():
        try:
            await asyncio.wait_for(cancel.wait(), timeout=interval)
        except TimeoutError:
            pass
        if cancel.is_set():
            break

        try:
            reconciliation = await runtime.controller.status(include_disabled=False)
        except LarsError as e:
            logger.warning("reconcile_failed", extra={"error.message": e.message})
            continue

        now_crashed = {
            e.name for e in reconciliation.with_status(ServiceStatus.CRASHED)
        }
        for name in sorted(now_crashed - crashed):
            logger.warning("service_crashed", extra={"service.name": name})
            warning(f"Service '{name}' crashed")
        crashed = now_crashed

    return report


def register(app: typer.Typer) -> None:
    """Register lifecycle commands."""

    @app.command()
    def start(
        name: Annotated[str, typer.Argument(help="Service name")],
        attach: Annotated[
            bool,
            typer.Option("--attach", "-a", help="Attach to the session once started"),
        ] = False,
    ) -> None:
        """Start a service. Starting a running service is a no-op."""
        runtime = build_runtime()
        result = asyncio.run(runtime.controller.start(name))
        if not attach or not result.ok:
            emit_result(result)
            return
        if not get_options().json and result.message:
            info(result.message)
        _exec_attach(asyncio.run(runtime.controller.attach(name)))

    @app.command()
    def stop(name: Annotated[str, typer.Argument(help="Service name")]) -> None:
        """Stop a service. Stopping a stopped service is a no-op."""
        runtime = build_runtime()
        emit_result(asyncio.run(runtime.controller.stop(name)))

    @app.command()
    def restart(name: Annotated[str, typer.Argument(help="Service name")]) -> None:
        """Stop a service, wait for it to exit, then start it again."""
        runtime = build_runtime()
        emit_result(asyncio.run(runtime.controller.restart(name)))

    @app.command("start-all")
    def start_all() -> None:
        """Start every enabled service."""
        runtime = build_runtime()
        emit_bulk(_run_bulk(runtime.bulk().start_all()), ExitCode.START_FAILED)

    @app.command("stop-all")
    def stop_all() -> None:
        """Stop every running service."""
        runtime = build_runtime()
        emit_bulk(_run_bulk(runtime.bulk().stop_all()), ExitCode.STOP_FAILED)

    @app.command("restart-all")
    def restart_all() -> None:
        """Restart every enabled service."""
        runtime = build_runtime()
        emit_bulk(_run_bulk(runtime.bulk().restart_all()), ExitCode.START_FAILED)

    @app.command()
    def up(
        interval: Annotated[
            float,
            typer.Option("--interval", "-i", help="Seconds between health checks"),
        ] = DEFAULT_UP_INTERVAL,
    ) -> None:
        """Start all enabled services and watch them until Ctrl+C."""
        if interval <= 0:
            raise typer.BadParameter("interval must be positive")
        runtime = build_runtime()
        info("Watching services, press Ctrl+C to exit")
        try:
            asyncio.run(supervise(runtime, interval))
        except KeyboardInterrupt:
            pass

        if runtime.settings.shutdown_behavior == ShutdownBehavior.LEAVE_RUNNING:
            info("Leaving services running")
            return
        info("Stopping services...")
        emit_bulk(_run_bulk(runtime.bulk().stop_all()), ExitCode.STOP_FAILED)

    @app.command()
    def attach(name: Annotated[str, typer.Argument(help="Service name")]) -> None:
        """Attach the terminal to a running service's session."""
        runtime = build_runtime()
        _exec_attach(asyncio.run(runtime.controller.attach(name)))


def _run_bulk(operation: Coroutine[Any, Any, BulkReport]) -> BulkReport:
    try:
        return asyncio.run(operation)
    except LarsError as e:
        fail(e)
