"""Service definition commands: add, remove, rename, enable, disable, list, inspect."""

import asyncio
import shlex
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from lars.cli.console import console, create_table, dim, get_options, print_json
from lars.cli.runtime import build_runtime, emit_result, fail
from lars.errors import LarsError
from lars.service import ServiceStatus
from lars.validation import parse_env_pairs

STATUS_STYLES = {
    ServiceStatus.RUNNING: "green",
    ServiceStatus.STOPPED: "dim",
    ServiceStatus.CRASHED: "red",
    ServiceStatus.UNKNOWN: "yellow",
}


def register(app: typer.Typer) -> None:
    """Register service definition commands."""

    @app.command()
    def add(
        command: Annotated[
            list[str],
            typer.Argument(help="Command to run (quote it, or put it after --)"),
        ],
        name: Annotated[
            str | None,
            typer.Option("--name", "-n", help="Service name (derived from command)"),
        ] = None,
        workdir: Annotated[
            Path | None,
            typer.Option(
                "--workdir",
                "--cwd",
                "-d",
                help="Working directory (default: current directory)",
            ),
        ] = None,
        env: Annotated[
            list[str] | None,
            typer.Option("--env", "-e", help="Environment variable as KEY=VALUE"),
        ] = None,
        runner: Annotated[
            str | None,
            typer.Option("--runner", "-r", help="Backend: tmux or process"),
        ] = None,
        disabled: Annotated[
            bool,
            typer.Option("--disabled", help="Add the service disabled"),
        ] = False,
    ) -> None:
        """Declare a new service."""
        runtime = build_runtime()
        try:
            environment = parse_env_pairs(env or [])
        except LarsError as e:
            fail(e)

        # Words after -- arrive split; re-quote them into one shell string
        joined = command[0] if len(command) == 1 else shlex.join(command)
        result = runtime.controller.add(
            joined,
            name=name,
            working_directory=workdir,
            environment=environment,
            backend_kind=runner,
            enabled=not disabled,
        )
        emit_result(result)

    @app.command()
    def remove(
        name: Annotated[str, typer.Argument(help="Service name")],
        force: Annotated[
            bool,
            typer.Option("--force", "-f", help="Remove even if the backend errors"),
        ] = False,
    ) -> None:
        """Remove a service, stopping it first if it is running."""
        runtime = build_runtime()
        emit_result(asyncio.run(runtime.controller.remove(name, force=force)))

    @app.command()
    def rename(
        name: Annotated[str, typer.Argument(help="Current service name")],
        new_name: Annotated[str, typer.Argument(help="New service name")],
    ) -> None:
        """Rename a service. A running session keeps running."""
        emit_result(build_runtime().controller.rename(name, new_name))

    @app.command()
    def enable(name: Annotated[str, typer.Argument(help="Service name")]) -> None:
        """Include a service in bulk operations."""
        emit_result(build_runtime().controller.enable(name))

    @app.command()
    def disable(name: Annotated[str, typer.Argument(help="Service name")]) -> None:
        """Exclude a service from bulk operations."""
        emit_result(build_runtime().controller.disable(name))

    @app.command("list")
    def list_services(
        show_all: Annotated[
            bool,
            typer.Option("--all", "-a", help="Include disabled services"),
        ] = False,
    ) -> None:
        """List services with their current status."""
        runtime = build_runtime()
        try:
            reconciliation = asyncio.run(
                runtime.controller.status(include_disabled=show_all)
            )
        except LarsError as e:
            fail(e)

        if get_options().json:
            print_json(reconciliation.to_dict())
            return

        if not reconciliation.entries:
            dim("No services configured")
            if not show_all:
                dim("Use --all to show disabled services")
            return

        table = create_table(
            "Services",
            [
                ("Name", "cyan"),
                ("Status", ""),
                ("Enabled", ""),
                ("Runner", "dim"),
                ("PID", "dim"),
                ("Command", {"overflow": "fold"}),
            ],
        )
        for entry in reconciliation.entries:
            style = STATUS_STYLES[entry.status]
            table.add_row(
                entry.name,
                f"[{style}]{entry.status}[/{style}]",
                "yes" if entry.service.enabled else "[dim]no[/dim]",
                entry.service.backend_kind.value,
                str(entry.pid) if entry.pid else "-",
                escape(entry.service.command),
            )
        console.print(table)

        for kind, reason in reconciliation.unavailable.items():
            dim(f"Backend '{kind}' unavailable: {reason}")

    @app.command()
    def inspect(name: Annotated[str, typer.Argument(help="Service name")]) -> None:
        """Show a service's definition and runtime state."""
        runtime = build_runtime()
        result = asyncio.run(runtime.controller.inspect(name))
        if get_options().json or not result.ok:
            emit_result(result)
            return

        details = result.details
        status = ServiceStatus(details["status"])
        style = STATUS_STYLES[status]
        table = create_table(
            f"Service: {result.name}", [("Property", "cyan"), ("Value", "")]
        )
        table.add_row("ID", details["id"])
        table.add_row("Command", escape(details["command"]))
        if details.get("working_directory"):
            table.add_row("Workdir", escape(details["working_directory"]))
        for key, value in details["environment"].items():
            table.add_row("Env", escape(f"{key}={value}"))
        table.add_row("Enabled", "yes" if details["enabled"] else "no")
        table.add_row("Runner", details["backend_kind"])
        table.add_row("Status", f"[{style}]{status}[/{style}]")
        if details.get("pid"):
            table.add_row("PID", str(details["pid"]))
        if details.get("started_at"):
            table.add_row("Started", details["started_at"])
        if details.get("log_path"):
            table.add_row("Log", details["log_path"])
        table.add_row("Created", details["created_at"])
        table.add_row("Updated", details["updated_at"])
        if details.get("backend_error"):
            table.add_row("Backend", f"[yellow]{details['backend_error']}[/yellow]")
        console.print(table)
