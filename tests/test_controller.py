"""Tests for ServiceController."""

import pytest

from lars.config.models import RunnerKind, Settings
from lars.errors import ErrorKind
from lars.service import Outcome, ServiceController, ServiceStatus

# =============================================================================
# Registry Operations
# =============================================================================


class TestAdd:
    """Tests for ServiceController.add()."""

    def test_add_with_name(self, controller, registry, tmp_path):
        result = controller.add(
            "npm run dev",
            name="web",
            working_directory=tmp_path,
            environment={"PORT": "3000"},
        )

        assert result.ok
        assert result.outcome is Outcome.ADDED
        service = registry.get("web")
        assert service.working_directory == tmp_path.resolve()
        assert service.environment == {"PORT": "3000"}
        assert service.backend_kind is RunnerKind.TMUX
        assert result.details["id"] == str(service.id)

    def test_generated_names_are_unique(self, controller, registry, tmp_path):
        for _ in range(3):
            assert controller.add("npx vibe-kanban", working_directory=tmp_path).ok

        assert [s.name for s in registry.list_services()] == [
            "vibe-kanban",
            "vibe-kanban-1",
            "vibe-kanban-2",
        ]

    def test_defaults_to_current_directory(
        self, controller, registry, tmp_path, monkeypatch
    ):
        monkeypatch.chdir(tmp_path)
        controller.add("true", name="here")
        assert registry.get("here").working_directory == tmp_path.resolve()

    def test_uses_default_runner_setting(
        self, registry, fake_runners, ledger, tmp_path
    ):
        controller = ServiceController(
            registry, fake_runners, ledger, Settings(default_runner="process")
        )
        controller.add("true", name="p", working_directory=tmp_path)
        assert registry.get("p").backend_kind is RunnerKind.PROCESS

    def test_explicit_direct_alias(self, controller, registry, tmp_path):
        controller.add(
            "true", name="p", working_directory=tmp_path, backend_kind="direct"
        )
        assert registry.get("p").backend_kind is RunnerKind.PROCESS

    @pytest.mark.parametrize(
        ("kwargs", "error"),
        [
            ({"command": ""}, ErrorKind.INVALID_INPUT),
            ({"command": "true", "name": "bad name"}, ErrorKind.INVALID_INPUT),
            ({"command": "true", "backend_kind": "docker"}, ErrorKind.INVALID_INPUT),
        ],
    )
    def test_rejects_invalid_input(self, controller, registry, tmp_path, kwargs, error):
        result = controller.add(working_directory=tmp_path, **kwargs)
        assert result.error is error
        assert registry.list_services() == []

    def test_rejects_missing_directory(self, controller, tmp_path):
        result = controller.add("true", name="x", working_directory=tmp_path / "nope")
        assert result.error is ErrorKind.INVALID_INPUT
        assert "does not exist" in result.message

    def test_duplicate_name(self, controller, tmp_path):
        controller.add("true", name="web", working_directory=tmp_path)
        result = controller.add("false", name="web", working_directory=tmp_path)
        assert result.error is ErrorKind.DUPLICATE_NAME


class TestRemove:
    @pytest.mark.asyncio
    async def test_remove_stops_running_service(
        self, controller, make_service, tmux, ledger, registry
    ):
        service = make_service("web")
        await controller.start("web")

        result = await controller.remove("web")

        assert result.outcome is Outcome.REMOVED
        assert result.details == {"stopped": True}
        assert service.id not in tmux.alive
        assert not ledger.was_started(service.id)
        assert registry.list_services() == []

    @pytest.mark.asyncio
    async def test_remove_unknown(self, controller):
        result = await controller.remove("ghost")
        assert result.error is ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_backend_error_blocks_remove(
        self, controller, make_service, tmux, registry
    ):
        make_service("web")
        tmux.available = False

        result = await controller.remove("web")

        assert result.error is ErrorKind.BACKEND_UNAVAILABLE
        assert registry.get("web")

    @pytest.mark.asyncio
    async def test_force_ignores_backend_error(
        self, controller, make_service, tmux, registry
    ):
        make_service("web")
        tmux.available = False

        result = await controller.remove("web", force=True)

        assert result.ok
        assert registry.list_services() == []


class TestRenameEnable:
    @pytest.mark.asyncio
    async def test_rename_keeps_running_session(self, controller, make_service, tmux):
        service = make_service("web")
        await controller.start("web")

        result = controller.rename("web", "frontend")
        status = await controller.status()

        assert result.outcome is Outcome.RENAMED
        assert status.get("frontend").status is ServiceStatus.RUNNING
        assert service.id in tmux.alive
        assert tmux.ops("stop") == []

    def test_rename_collision(self, controller, make_service):
        make_service("a")
        make_service("b")
        assert controller.rename("a", "b").error is ErrorKind.DUPLICATE_NAME

    def test_enable_disable(self, controller, make_service, registry):
        make_service("web")

        assert controller.disable("web").outcome is Outcome.DISABLED
        assert registry.get("web").enabled is False
        assert controller.enable("web").outcome is Outcome.ENABLED
        assert registry.get("web").enabled is True

    def test_enable_unknown(self, controller):
        assert controller.enable("ghost").error is ErrorKind.NOT_FOUND


# =============================================================================
# Lifecycle Operations
# =============================================================================


class TestStart:
    """Tests for ServiceController.start()."""

    @pytest.mark.asyncio
    async def test_start(self, controller, make_service, ledger):
        service = make_service("web")

        result = await controller.start("web")

        assert result.outcome is Outcome.STARTED
        assert result.details["pid"] == 4242
        assert ledger.was_started(service.id)

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, controller, make_service, tmux):
        make_service("web")
        await controller.start("web")

        result = await controller.start("web")

        assert result.ok
        assert result.outcome is Outcome.ALREADY_RUNNING

    @pytest.mark.asyncio
    async def test_start_disabled_service_directly(self, controller, make_service):
        """Disabled only excludes a service from bulk operations."""
        make_service("web", enabled=False)
        assert (await controller.start("web")).outcome is Outcome.STARTED

    @pytest.mark.asyncio
    async def test_start_unknown(self, controller):
        result = await controller.start("ghost")
        assert result.error is ErrorKind.NOT_FOUND
        assert result.message == "Service not found: ghost"

    @pytest.mark.asyncio
    async def test_launch_failure_reads_as_crashed(
        self, controller, make_service, tmux
    ):
        make_service("web")
        tmux.fail_start["web"] = "npm ERR! missing script: dev"

        result = await controller.start("web")
        status = await controller.status()

        assert result.error is ErrorKind.LAUNCH_FAILURE
        assert result.details["diagnostic"] == "npm ERR! missing script: dev"
        assert status.get("web").status is ServiceStatus.CRASHED

    @pytest.mark.asyncio
    async def test_backend_unavailable(self, controller, make_service, tmux, ledger):
        service = make_service("web")
        tmux.available = False

        result = await controller.start("web")

        assert result.error is ErrorKind.BACKEND_UNAVAILABLE
        assert not ledger.was_started(service.id)


class TestStop:
    @pytest.mark.asyncio
    async def test_stop(self, controller, make_service, ledger):
        service = make_service("web")
        await controller.start("web")

        result = await controller.stop("web")
        status = await controller.status()

        assert result.outcome is Outcome.STOPPED
        assert not ledger.was_started(service.id)
        assert status.get("web").status is ServiceStatus.STOPPED

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, controller, make_service):
        make_service("web")
        result = await controller.stop("web")
        assert result.ok
        assert result.outcome is Outcome.ALREADY_STOPPED

    @pytest.mark.asyncio
    async def test_stop_clears_crashed(self, controller, make_service, tmux):
        service = make_service("web")
        await controller.start("web")
        tmux.crash(service)
        assert (await controller.status()).get("web").status is ServiceStatus.CRASHED

        await controller.stop("web")

        assert (await controller.status()).get("web").status is ServiceStatus.STOPPED

    @pytest.mark.asyncio
    async def test_stop_failure(self, controller, make_service, tmux, ledger):
        service = make_service("web")
        await controller.start("web")
        tmux.fail_stop.add("web")

        result = await controller.stop("web")

        assert result.error is ErrorKind.STOP_FAILURE
        assert ledger.was_started(service.id)


class TestRestart:
    @pytest.mark.asyncio
    async def test_restart_running(self, controller, make_service, tmux):
        make_service("web")
        await controller.start("web")

        result = await controller.restart("web")

        assert result.outcome is Outcome.RESTARTED
        assert tmux.ops("stop") == ["web"]
        assert tmux.ops("start") == ["web", "web"]

    @pytest.mark.asyncio
    async def test_restart_stopped_starts_it(self, controller, make_service, tmux):
        make_service("web")
        result = await controller.restart("web")
        assert result.outcome is Outcome.RESTARTED
        assert len(tmux.alive) == 1

    @pytest.mark.asyncio
    async def test_restart_timeout(self, controller, make_service, tmux):
        make_service("web")
        await controller.start("web")
        tmux.sticky.add("web")

        result = await controller.restart("web")

        assert result.action == "restart"
        assert result.error is ErrorKind.STOP_TIMEOUT
        assert tmux.ops("start") == ["web"]

    @pytest.mark.asyncio
    async def test_restart_launch_failure(self, controller, make_service, tmux):
        make_service("web")
        tmux.fail_start["web"] = "boom"

        result = await controller.restart("web")

        assert result.action == "restart"
        assert result.error is ErrorKind.LAUNCH_FAILURE


# =============================================================================
# Queries
# =============================================================================


class TestInspect:
    @pytest.mark.asyncio
    async def test_inspect_running(self, controller, make_service, lars_home):
        service = make_service("web", environment={"PORT": "1"})
        await controller.start("web")

        result = await controller.inspect("web")

        assert result.outcome is Outcome.INSPECTED
        details = result.details
        assert details["id"] == str(service.id)
        assert details["environment"] == {"PORT": "1"}
        assert details["status"] == "running"
        assert details["pid"] == 4242
        assert details["log_path"] == str(lars_home / "logs" / f"{service.id}.log")
        assert details["started_at"] is not None
        assert "backend_error" not in details

    @pytest.mark.asyncio
    async def test_inspect_unknown_backend(self, controller, make_service, tmux):
        make_service("web")
        tmux.available = False

        result = await controller.inspect("web")

        assert result.details["status"] == "unknown"
        assert result.details["backend_error"] == "tmux is not installed"

    @pytest.mark.asyncio
    async def test_inspect_missing(self, controller):
        assert (await controller.inspect("ghost")).error is ErrorKind.NOT_FOUND


class TestAttach:
    @pytest.mark.asyncio
    async def test_attach_running(self, controller, make_service):
        service = make_service("web")
        await controller.start("web")

        result = await controller.attach("web")

        assert result.outcome is Outcome.ATTACHABLE
        assert result.details["argv"] == [
            "tmux",
            "attach-session",
            "-t",
            f"=lars_{service.id}",
        ]

    @pytest.mark.asyncio
    async def test_attach_not_running(self, controller, make_service):
        make_service("web")
        assert (await controller.attach("web")).error is ErrorKind.NOT_RUNNING

    @pytest.mark.asyncio
    async def test_attach_not_supported(self, controller, make_service):
        make_service("p", backend_kind=RunnerKind.PROCESS)
        await controller.start("p")
        assert (await controller.attach("p")).error is ErrorKind.NOT_SUPPORTED
