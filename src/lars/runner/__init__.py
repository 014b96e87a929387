"""Runner selection and factory."""

from pathlib import Path

from lars.config.models import RunnerKind, Settings
from lars.runner.base import Runner


def create_runner(
    kind: RunnerKind | str,
    *,
    log_dir: Path | None = None,
    run_dir: Path | None = None,
    launch_grace_secs: float = 0.3,
) -> Runner:
    """Get the runner for a backend kind.

    Raises:
        ValueError: If the kind is unknown.
    """
    kind = RunnerKind.parse(kind)
    kwargs = {
        "log_dir": log_dir,
        "run_dir": run_dir,
        "launch_grace_secs": launch_grace_secs,
    }

    # Import lazily to avoid loading unused backends
    if kind == RunnerKind.TMUX:
        from lars.runner.tmux import TmuxRunner

        return TmuxRunner(**kwargs)

    from lars.runner.process import ProcessRunner

    return ProcessRunner(**kwargs)


def create_runners(
    settings: Settings,
    *,
    log_dir: Path | None = None,
    run_dir: Path | None = None,
) -> dict[RunnerKind, Runner]:
    """One runner per backend kind, configured from settings."""
    return {
        kind: create_runner(
            kind,
            log_dir=log_dir,
            run_dir=run_dir,
            launch_grace_secs=settings.launch_grace_secs,
        )
        for kind in RunnerKind
    }


__all__ = ["Runner", "create_runner", "create_runners"]
