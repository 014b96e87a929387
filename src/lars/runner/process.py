"""Raw-process fallback runner.

Used when a service's backend kind is ``process``: the command is spawned
directly, detached into its own session, with output appended to the log
sink. There is no terminal to attach to.
"""

import asyncio
import logging
import os
import shutil
import signal
import subprocess
from pathlib import Path

from lars.config.models import RunnerKind, ServiceDefinition
from lars.errors import BackendUnavailable, LaunchFailure, StopFailure
from lars.runner.base import Runner
from lars.runner.pid import (
    is_process_alive,
    read_pid_file,
    reap,
    remove_pid_file,
    signal_group,
    write_pid_file,
)

logger = logging.getLogger(__name__)

# SIGTERM grace period before SIGKILL
STOP_TIMEOUT_SECS = 3.0
POLL_INTERVAL_SECS = 0.1


class ProcessRunner(Runner):
    """Runner backed by a directly spawned process.

    Uses per-service PID files and signals for process management.
    """

    @property
    def kind(self) -> RunnerKind:
        return RunnerKind.PROCESS

    @property
    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def pid_path(self, service: ServiceDefinition) -> Path:
        return self._run_dir / f"{service.id}.pid"

    async def start(self, service: ServiceDefinition) -> bool:
        """Spawn the service's command in a new session."""
        if not self.is_available:
            raise BackendUnavailable("sh is not available in PATH")

        if await self.is_alive(service):
            return False

        cwd = service.working_directory
        if cwd is not None and not cwd.is_dir():
            raise LaunchFailure(
                f"Working directory does not exist: {cwd}", diagnostic=str(cwd)
            )

        log_path = self._prepare_log(service)
        env = os.environ | service.environment

        try:
            proc = await asyncio.to_thread(self._spawn, service, log_path, env)
        except OSError as e:
            raise LaunchFailure(
                f"Failed to spawn '{service.name}': {e}", diagnostic=str(e)
            ) from e

        pid_path = self.pid_path(service)
        write_pid_file(pid_path, proc.pid)
        logger.debug(
            "process_spawned", extra={"service.name": service.name, "pid": proc.pid}
        )

        if self._launch_grace_secs:
            await asyncio.sleep(self._launch_grace_secs)
            exit_code = proc.poll()
            if exit_code is not None:
                remove_pid_file(pid_path)
                raise LaunchFailure(
                    f"'{service.name}' exited immediately with status {exit_code}",
                    diagnostic=self._log_tail(service),
                )

        # Detached: the pid file owns the child from here and stop() reaps it
        proc.returncode = 0
        return True

    def _spawn(
        self, service: ServiceDefinition, log_path: Path, env: dict[str, str]
    ) -> subprocess.Popen:
        # Popen rather than asyncio subprocesses: closing an asyncio transport
        # kills a still-running child, and this child must outlive us.
        with log_path.open("ab") as log_file:
            return subprocess.Popen(
                ["sh", "-c", service.command],
                stdout=log_file,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                cwd=service.working_directory,
                env=env,
                start_new_session=True,
            )

    async def stop(self, service: ServiceDefinition) -> bool:
        """Stop gracefully with SIGTERM, then SIGKILL after a timeout."""
        pid_path = self.pid_path(service)
        proc_info = read_pid_file(pid_path)
        if not proc_info or not proc_info.alive:
            # Already stopped - clean up stale PID file
            remove_pid_file(pid_path)
            return False

        pid, start_time = proc_info.pid, proc_info.start_time
        signal_group(pid, signal.SIGTERM)

        for _ in range(int(STOP_TIMEOUT_SECS / POLL_INTERVAL_SECS)):
            await asyncio.sleep(POLL_INTERVAL_SECS)
            reap(pid)
            if not is_process_alive(pid, start_time):
                remove_pid_file(pid_path)
                return True

        # Force kill if still running
        logger.warning("process_kill_forced", extra={"service.name": service.name})
        signal_group(pid, signal.SIGKILL)
        await asyncio.sleep(POLL_INTERVAL_SECS)
        reap(pid)
        if is_process_alive(pid, start_time):
            raise StopFailure(f"Process {pid} for '{service.name}' survived SIGKILL")
        remove_pid_file(pid_path)
        return True

    async def is_alive(self, service: ServiceDefinition) -> bool:
        proc_info = read_pid_file(self.pid_path(service))
        return bool(proc_info and proc_info.alive)

    async def get_pid(self, service: ServiceDefinition) -> int | None:
        proc_info = read_pid_file(self.pid_path(service))
        if proc_info and proc_info.alive:
            return proc_info.pid
        return None

    def attach_command(self, service: ServiceDefinition) -> list[str] | None:
        return None
