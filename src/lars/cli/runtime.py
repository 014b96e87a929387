"""Shared runtime bootstrap helpers for CLI entrypoints."""

from __future__ import annotations

from dataclasses import dataclass
from typing import NoReturn

import typer

from lars.cli.console import dim, error, get_options, print_json, success, warning
from lars.cli.exit_codes import ExitCode, exit_code_for
from lars.config.models import RunnerKind, Settings
from lars.config.paths import get_logs_path, get_run_path
from lars.errors import ErrorKind, LarsError
from lars.registry.store import ServiceRegistry
from lars.runner import Runner, create_runners
from lars.service import (
    ActionResult,
    BulkExecutor,
    BulkReport,
    LogStreamer,
    ServiceController,
    StartLedger,
)


@dataclass(slots=True)
class Runtime:
    """Composed dependencies for CLI command handlers."""

    registry: ServiceRegistry
    settings: Settings
    runners: dict[RunnerKind, Runner]
    ledger: StartLedger
    controller: ServiceController

    def bulk(self) -> BulkExecutor:
        return BulkExecutor(self.controller)

    def streamer(self) -> LogStreamer:
        return LogStreamer(self.runners)


def build_runtime() -> Runtime:
    """Load settings once and wire the registry, runners and controller.

    Exits with the config error code if the registry can't be loaded.
    """
    registry = ServiceRegistry()
    try:
        settings = registry.settings()
    except LarsError as e:
        fail(e)

    runners = create_runners(settings, log_dir=get_logs_path(), run_dir=get_run_path())
    ledger = StartLedger()
    controller = ServiceController(registry, runners, ledger, settings)
    return Runtime(
        registry=registry,
        settings=settings,
        runners=runners,
        ledger=ledger,
        controller=controller,
    )


def fail(exc: LarsError) -> NoReturn:
    """Report an error raised outside the service layer and exit."""
    if get_options().json:
        print_json({"ok": False, "error": exc.kind.value, "message": exc.message})
    else:
        error(exc.message)
    raise typer.Exit(exit_code_for(exc.kind))


def emit_result(result: ActionResult) -> None:
    """Print an ActionResult and exit non-zero if it failed."""
    if get_options().json:
        print_json(result.to_dict())
    elif result.ok:
        if result.message:
            success(result.message)
    else:
        error(result.message)
        diagnostic = result.details.get("diagnostic")
        if diagnostic:
            dim(diagnostic)

    if not result.ok:
        raise typer.Exit(exit_code_for(result.error))


def emit_bulk(report: BulkReport, failure_code: ExitCode) -> None:
    """Print a bulk report.

    Exits with ``failure_code`` only when every targeted service failed;
    partial failure is a warning and exits 0.
    """
    render_bulk(report)
    if report.all_failed:
        raise typer.Exit(failure_code)


def render_bulk(report: BulkReport) -> None:
    """Print a bulk report: a summary, plus a per-service breakdown with -v."""
    options = get_options()
    if options.json:
        print_json(report.to_dict())
        return

    if not report.results:
        dim(f"No services to {report.operation}")
        return

    # Backend problems are reported once, not per service
    for kind, reason in report.unavailable.items():
        error(f"Backend '{kind}' unavailable: {reason}")

    if options.verbose:
        for result in report.results:
            if result.ok:
                success(f"  {result.name}: {result.outcome}")
            else:
                error(f"  {result.name}: {result.error} - {result.message}")
    else:
        for result in report.failed:
            if result.error != ErrorKind.BACKEND_UNAVAILABLE:
                error(f"  {result.name}: {result.message}")

    counts = report.counts()
    summary = ", ".join(f"{count} {key}" for key, count in counts.items() if count)
    if report.all_failed:
        error(f"Summary: {summary}")
    elif report.failed:
        warning(f"Summary: {summary}")
    else:
        success(f"Summary: {summary}")
