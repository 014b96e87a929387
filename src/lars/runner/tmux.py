"""tmux session runner.

Each service runs in its own detached session named ``lars_<id>``. Output is
tee'd into the service's log sink so it is both visible when attached and
readable by ``lars logs``. Requires tmux 3.0+ (``new-session -e``).
"""

import asyncio
import logging
import shlex
import shutil
import subprocess

from lars.config.models import RunnerKind, ServiceDefinition
from lars.errors import BackendUnavailable, LaunchFailure, StopFailure
from lars.runner.base import Runner

logger = logging.getLogger(__name__)

TMUX = "tmux"
SESSION_PREFIX = "lars_"


def session_name(service: ServiceDefinition) -> str:
    """Session name for a service, derived from its immutable id."""
    return f"{SESSION_PREFIX}{service.id}"


def _target(service: ServiceDefinition) -> str:
    # "=" forces an exact session-name match instead of prefix matching
    return f"={session_name(service)}"


def tmux_version() -> str | None:
    """Get the tmux version string, or None if tmux is unusable."""
    try:
        result = subprocess.run(
            [TMUX, "-V"], capture_output=True, text=True, timeout=5
        )
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip()


class TmuxRunner(Runner):
    """Runner backed by tmux sessions."""

    @property
    def kind(self) -> RunnerKind:
        return RunnerKind.TMUX

    @property
    def is_available(self) -> bool:
        return shutil.which(TMUX) is not None

    async def _run_tmux(self, *args: str) -> tuple[int, str, str]:
        """Run a tmux client command."""
        try:
            proc = await asyncio.create_subprocess_exec(
                TMUX,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except FileNotFoundError as e:
            raise BackendUnavailable("tmux is not installed or not in PATH") from e
        except OSError as e:
            raise BackendUnavailable(f"Failed to run tmux: {e}") from e
        stdout, stderr = await proc.communicate()
        return (
            proc.returncode or 0,
            stdout.decode(errors="replace"),
            stderr.decode(errors="replace"),
        )

    def _shell_command(self, service: ServiceDefinition) -> str:
        log_path = self._prepare_log(service)
        # Braces so redirection covers compound commands; the newline ends
        # any trailing comment in the user's command.
        script = f"{{ {service.command}\n}} 2>&1 | tee -a {shlex.quote(str(log_path))}"
        return shlex.join(["sh", "-c", script])

    async def start(self, service: ServiceDefinition) -> bool:
        if not self.is_available:
            raise BackendUnavailable("tmux is not installed or not in PATH")

        if await self.is_alive(service):
            return False

        args = ["new-session", "-d", "-s", session_name(service)]
        cwd = service.working_directory
        if cwd is not None:
            if not cwd.is_dir():
                raise LaunchFailure(
                    f"Working directory does not exist: {cwd}", diagnostic=str(cwd)
                )
            args += ["-c", str(cwd)]
        # The tmux server, not this client, owns the session environment
        for key, value in service.environment.items():
            args += ["-e", f"{key}={value}"]
        args.append(self._shell_command(service))

        returncode, _, stderr = await self._run_tmux(*args)
        if returncode != 0:
            raise LaunchFailure(
                f"tmux new-session failed for '{service.name}' (status {returncode})",
                diagnostic=stderr.strip(),
            )
        logger.debug(
            "tmux_session_created",
            extra={"service.name": service.name, "session": session_name(service)},
        )

        if self._launch_grace_secs:
            await asyncio.sleep(self._launch_grace_secs)
            if not await self.is_alive(service):
                raise LaunchFailure(
                    f"'{service.name}' exited immediately",
                    diagnostic=self._log_tail(service),
                )

        return True

    async def stop(self, service: ServiceDefinition) -> bool:
        if not await self.is_alive(service):
            return False

        returncode, _, stderr = await self._run_tmux(
            "kill-session", "-t", _target(service)
        )
        # It's okay if the session vanished on its own in the meantime
        if returncode != 0 and await self.is_alive(service):
            raise StopFailure(
                f"tmux kill-session failed for '{service.name}': {stderr.strip()}"
            )
        return True

    async def is_alive(self, service: ServiceDefinition) -> bool:
        if not self.is_available:
            raise BackendUnavailable("tmux is not installed or not in PATH")
        returncode, _, _ = await self._run_tmux("has-session", "-t", _target(service))
        return returncode == 0

    async def get_pid(self, service: ServiceDefinition) -> int | None:
        returncode, stdout, _ = await self._run_tmux(
            "list-panes", "-t", _target(service), "-F", "#{pane_pid}"
        )
        if returncode != 0:
            return None
        first = stdout.strip().split("\n", 1)[0]
        try:
            return int(first)
        except ValueError:
            return None

    def attach_command(self, service: ServiceDefinition) -> list[str] | None:
        return [TMUX, "attach-session", "-t", _target(service)]
