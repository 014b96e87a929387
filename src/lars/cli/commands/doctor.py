"""System health checks for lars backends and data directories."""

from __future__ import annotations

import os
import shutil
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Literal

import typer
from rich.markup import escape

from lars.cli.console import (
    console,
    create_table,
    dim,
    error,
    get_options,
    print_json,
    success,
    warning,
)
from lars.config.models import RunnerKind, Settings
from lars.config.paths import (
    get_all_paths,
    get_config_path,
    get_lars_home,
    get_logs_path,
    get_run_path,
)
from lars.errors import LarsError
from lars.registry.store import ServiceRegistry
from lars.runner.pid import read_pid_file
from lars.runner.tmux import tmux_version


@dataclass
class DoctorFinding:
    """A single doctor check result."""

    level: Literal["ok", "warning", "error"]
    check: str
    detail: str
    repair: str | None = None


@dataclass
class DoctorResult:
    findings: list[DoctorFinding]

    @property
    def has_errors(self) -> bool:
        return any(f.level == "error" for f in self.findings)

    def count(self, level: str) -> int:
        return sum(1 for f in self.findings if f.level == level)

    def summary_text(self) -> str:
        return (
            f"checks={len(self.findings)} ok={self.count('ok')} "
            f"warnings={self.count('warning')} errors={self.count('error')}"
        )


def register(app: typer.Typer) -> None:
    """Register the doctor command."""

    @app.command()
    def doctor() -> None:
        """Check backends, configuration and runtime files (read-only)."""
        result = run_doctor_checks()
        _render_doctor_report(result)
        if result.has_errors:
            raise typer.Exit(1)


def run_doctor_checks() -> DoctorResult:
    findings: list[DoctorFinding] = []
    findings.extend(_check_home())
    config_findings, settings, kinds_in_use = _check_config()
    findings.extend(config_findings)
    findings.extend(_check_backends(settings, kinds_in_use))
    findings.extend(_check_pid_files())
    return DoctorResult(findings=findings)


def _render_doctor_report(result: DoctorResult) -> None:
    if get_options().json:
        print_json(
            {
                "ok": not result.has_errors,
                "paths": {k: str(v) for k, v in get_all_paths().items()},
                "findings": [asdict(f) for f in result.findings],
            }
        )
        return

    console.print(f"[bold]lars doctor[/bold] [cyan]{get_lars_home()}[/cyan]")
    table = create_table(
        "Doctor Findings",
        [
            ("Level", "white"),
            ("Check", "cyan"),
            ("Detail", "white"),
            ("Repair", "green"),
        ],
    )
    level_label = {
        "ok": "[green]OK[/green]",
        "warning": "[yellow]WARN[/yellow]",
        "error": "[red]ERROR[/red]",
    }
    for finding in result.findings:
        table.add_row(
            level_label[finding.level],
            finding.check,
            escape(finding.detail),
            escape(finding.repair or "-"),
        )
    console.print(table)

    console.print(f"[bold]Summary:[/bold] {result.summary_text()}")
    if result.has_errors:
        error("Doctor found blocking issues")
    elif result.count("warning"):
        warning("Doctor found non-blocking issues")
    else:
        success("Doctor checks passed")
    dim("Read-only checks. No changes were made.")


def _check_home() -> list[DoctorFinding]:
    home = get_lars_home()
    if not home.exists():
        return [
            DoctorFinding(
                level="warning",
                check="home.exists",
                detail=f"LARS_HOME does not exist: {home}",
                repair="Run `lars add` to create it",
            )
        ]

    findings = [
        DoctorFinding(level="ok", check="home.exists", detail=f"{home} exists")
    ]
    logs = get_logs_path()
    if logs.exists() and not os.access(logs, os.W_OK):
        findings.append(
            DoctorFinding(
                level="error",
                check="dir.logs",
                detail=f"logs directory is not writable: {logs}",
                repair=f"Fix permissions on {logs}",
            )
        )
    return findings


def _check_config() -> tuple[list[DoctorFinding], Settings, set[RunnerKind]]:
    path = get_config_path()
    if not path.exists():
        finding = DoctorFinding(
            level="ok", check="config.file", detail="no config yet (defaults apply)"
        )
        return [finding], Settings(), set()

    try:
        document = ServiceRegistry(path).load()
    except LarsError as e:
        finding = DoctorFinding(
            level="error",
            check="config.file",
            detail=e.message,
            repair=f"Fix or move aside {path}",
        )
        return [finding], Settings(), set()

    finding = DoctorFinding(
        level="ok",
        check="config.file",
        detail=f"{len(document.services)} service(s) in {path}",
    )
    kinds = {s.backend_kind for s in document.services}
    return [finding], document.settings, kinds


def _check_backends(
    settings: Settings, kinds_in_use: set[RunnerKind]
) -> list[DoctorFinding]:
    findings: list[DoctorFinding] = []

    version = tmux_version()
    in_use = RunnerKind.TMUX in kinds_in_use
    is_default = settings.default_runner == RunnerKind.TMUX
    if version:
        findings.append(
            DoctorFinding(level="ok", check="backend.tmux", detail=version)
        )
    else:
        findings.append(
            DoctorFinding(
                level="error" if in_use else "warning",
                check="backend.tmux",
                detail="tmux not found"
                + (" (it is the default runner)" if is_default else ""),
                repair="Install tmux 3.0+, or `lars config set default_runner process`",
            )
        )

    if shutil.which("sh"):
        findings.append(
            DoctorFinding(level="ok", check="backend.process", detail="sh available")
        )
    else:
        findings.append(
            DoctorFinding(
                level="error" if RunnerKind.PROCESS in kinds_in_use else "warning",
                check="backend.process",
                detail="sh not found in PATH",
            )
        )
    return findings


def _check_pid_files() -> list[DoctorFinding]:
    run_dir = get_run_path()
    if not run_dir.exists():
        return []
    stale = [p.name for p in run_dir.glob("*.pid") if not _pid_alive(p)]
    if not stale:
        return [
            DoctorFinding(
                level="ok", check="run.pid_files", detail="no stale pid files"
            )
        ]
    return [
        DoctorFinding(
            level="warning",
            check="run.pid_files",
            detail=f"{len(stale)} stale pid file(s)",
            repair=f"Remove them from {run_dir}",
        )
    ]


def _pid_alive(path: Path) -> bool:
    info = read_pid_file(path)
    return bool(info and info.alive)
