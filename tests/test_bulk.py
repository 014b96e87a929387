"""Tests for bulk lifecycle operations."""

import pytest

from lars.config.models import RunnerKind
from lars.errors import ErrorKind
from lars.service import BulkExecutor, Outcome, ServiceStatus


@pytest.fixture
def bulk(controller):
    return BulkExecutor(controller, concurrency=2)


def outcomes(report):
    return {r.name: r.outcome for r in report.results}


class TestStartAll:
    """Tests for BulkExecutor.start_all()."""

    @pytest.mark.asyncio
    async def test_starts_enabled_services_only(self, bulk, make_service, tmux):
        make_service("a")
        make_service("b")
        make_service("off", enabled=False)

        report = await bulk.start_all()

        assert outcomes(report) == {"a": Outcome.STARTED, "b": Outcome.STARTED}
        assert sorted(tmux.ops("start")) == ["a", "b"]
        assert report.counts()["started"] == 2

    @pytest.mark.asyncio
    async def test_running_services_skipped_without_backend_call(
        self, bulk, controller, make_service, tmux
    ):
        make_service("a")
        make_service("b")
        await controller.start("a")
        tmux.calls.clear()

        report = await bulk.start_all()

        assert outcomes(report) == {
            "a": Outcome.ALREADY_RUNNING,
            "b": Outcome.STARTED,
        }
        assert tmux.ops("start") == ["b"]

    @pytest.mark.asyncio
    async def test_partial_failure_does_not_abort_others(
        self, bulk, make_service, tmux
    ):
        for name in ["a", "b", "c"]:
            make_service(name)
        tmux.fail_start["b"] = "exit 1"

        report = await bulk.start_all()

        assert [r.name for r in report.failed] == ["b"]
        assert report.failed[0].error is ErrorKind.LAUNCH_FAILURE
        assert [r.name for r in report.succeeded] == ["a", "c"]
        assert not report.all_failed

    @pytest.mark.asyncio
    async def test_results_keep_registry_order(self, controller, make_service, tmux):
        for name in ["slow", "fast", "mid"]:
            make_service(name)
        tmux.delay = 0.01

        report = await BulkExecutor(controller, concurrency=3).start_all()

        assert [r.name for r in report.results] == ["slow", "fast", "mid"]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, controller, make_service, tmux):
        for i in range(6):
            make_service(f"svc-{i}")
        tmux.delay = 0.02

        report = await BulkExecutor(controller, concurrency=2).start_all()

        assert len(report.succeeded) == 6
        assert tmux.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_default_concurrency_from_settings(self, controller):
        assert BulkExecutor(controller).concurrency == (
            controller.settings.effective_concurrency
        )

    @pytest.mark.asyncio
    async def test_unavailable_backend_reported_once(
        self, bulk, make_service, tmux, fake_runners
    ):
        make_service("a")
        make_service("b")
        make_service("p", backend_kind=RunnerKind.PROCESS)
        tmux.available = False

        report = await bulk.start_all()

        assert list(report.unavailable) == [RunnerKind.TMUX]
        assert outcomes(report)["p"] is Outcome.STARTED
        assert {r.name for r in report.failed} == {"a", "b"}
        assert all(
            r.error is ErrorKind.BACKEND_UNAVAILABLE for r in report.failed
        )
        # One probe during reconciliation, nothing afterwards
        assert tmux.calls == [("is_alive", "a")]

    @pytest.mark.asyncio
    async def test_all_failed(self, bulk, make_service, tmux):
        make_service("a")
        make_service("b")
        tmux.available = False

        report = await bulk.start_all()

        assert report.all_failed

    @pytest.mark.asyncio
    async def test_nothing_to_do(self, bulk):
        report = await bulk.start_all()
        assert report.results == []
        assert not report.all_failed


class TestStopAll:
    @pytest.mark.asyncio
    async def test_stops_running_including_disabled(
        self, bulk, controller, make_service, tmux
    ):
        make_service("a")
        make_service("idle")
        make_service("off", enabled=False)
        await controller.start("a")
        await controller.start("off")

        report = await bulk.stop_all()

        assert outcomes(report) == {"a": Outcome.STOPPED, "off": Outcome.STOPPED}
        assert tmux.alive == set()

    @pytest.mark.asyncio
    async def test_crashed_services_not_targeted(
        self, bulk, controller, make_service, tmux
    ):
        service = make_service("a")
        await controller.start("a")
        tmux.crash(service)

        report = await bulk.stop_all()

        assert report.results == []
        status = await controller.status()
        assert status.get("a").status is ServiceStatus.CRASHED


class TestRestartAll:
    @pytest.mark.asyncio
    async def test_restarts_enabled(self, bulk, controller, make_service, tmux):
        make_service("a")
        make_service("b")
        make_service("off", enabled=False)
        await controller.start("a")

        report = await bulk.restart_all()

        assert outcomes(report) == {
            "a": Outcome.RESTARTED,
            "b": Outcome.RESTARTED,
        }
        assert report.counts()["restarted"] == 2
        assert "off" not in tmux.ops("start")

    @pytest.mark.asyncio
    async def test_report_to_dict(self, bulk, make_service, tmux):
        make_service("a")
        tmux.fail_start["a"] = "boom"

        data = (await bulk.restart_all()).to_dict()

        assert data["operation"] == "restart"
        assert data["total"] == 1
        assert data["counts"]["failed"] == 1
        assert data["results"][0]["error"] == "launch_failure"
        assert data["results"][0]["details"] == {"diagnostic": "boom"}
