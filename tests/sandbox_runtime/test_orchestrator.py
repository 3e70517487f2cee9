"""Unit tests for the repository x service fan-out."""

from __future__ import annotations

import asyncio

import pytest
from fakes import FakeExecutor

from devharbor.sandbox_runtime.errors import SandboxApiError
from devharbor.sandbox_runtime.execution.command import CommandResult
from devharbor.sandbox_runtime.execution.orchestrator import RepositoryOrchestrator
from devharbor.sandbox_runtime.execution.restart import CANCELLED_ERROR, ServiceRestartExecutor
from devharbor.sandbox_runtime.execution.summary import summarize
from devharbor.sandbox_runtime.models.enums import ServiceStatus
from devharbor.sandbox_runtime.models.restart import ServiceDefinition
from devharbor.sandbox_runtime.models.workspace import RepositoryDescriptor, WorkspaceHandle


def _orchestrator(executor: object, **kwargs: object) -> RepositoryOrchestrator:
    return RepositoryOrchestrator(ServiceRestartExecutor(executor, timeout=5), **kwargs)  # type: ignore[arg-type]


async def test_empty_repositories_issue_nothing(handle: WorkspaceHandle, services: list[ServiceDefinition]) -> None:
    executor = FakeExecutor()
    results = await _orchestrator(executor).restart_all(handle, [], services)
    assert results == []
    assert executor.calls == []


async def test_all_succeed(
    handle: WorkspaceHandle, repositories: list[RepositoryDescriptor], services: list[ServiceDefinition]
) -> None:
    executor = FakeExecutor()
    results = await _orchestrator(executor, max_concurrency=2).restart_all(handle, repositories, services)

    assert [r.repository for r in results] == ["a", "b"]
    assert [list(r.services) for r in results] == [["web", "api", "db"], ["web", "api", "db"]]
    assert results[0].path == "/home/dev/projects/a"
    assert len(executor.calls) == 6

    summary = summarize(results)
    assert (summary.repositories, summary.total_services, summary.successful, summary.failed) == (2, 6, 6, 0)


async def test_single_failure_is_isolated(
    handle: WorkspaceHandle, repositories: list[RepositoryDescriptor], services: list[ServiceDefinition]
) -> None:
    executor = FakeExecutor({("a", "svc restart db"): CommandResult(exit_code=1, output="db: ERROR")})
    results = await _orchestrator(executor, max_concurrency=2).restart_all(handle, repositories, services)

    a, b = results
    assert a.services["db"].status == ServiceStatus.FAILED
    assert a.services["web"].status == ServiceStatus.SUCCESS
    assert a.services["api"].status == ServiceStatus.SUCCESS
    assert all(r.status == ServiceStatus.SUCCESS for r in b.services.values())

    summary = summarize(results)
    assert (summary.total_services, summary.successful, summary.failed) == (6, 5, 1)


async def test_raised_error_does_not_abort_siblings(
    handle: WorkspaceHandle, repositories: list[RepositoryDescriptor], services: list[ServiceDefinition]
) -> None:
    executor = FakeExecutor({("b", "svc restart web"): SandboxApiError("boom", status_code=502)})
    results = await _orchestrator(executor).restart_all(handle, repositories, services)

    assert len(executor.calls) == 6
    assert results[1].services["web"].error == "boom"
    assert summarize(results).failed == 1


@pytest.mark.parametrize("repo_count", [1, 3, 5])
@pytest.mark.parametrize("concurrent_services", [False, True])
async def test_total_is_repositories_times_services(
    handle: WorkspaceHandle, services: list[ServiceDefinition], repo_count: int, concurrent_services: bool
) -> None:
    repositories = [RepositoryDescriptor(name=f"r{i}") for i in range(repo_count)]
    results = await _orchestrator(
        FakeExecutor(), max_concurrency=2, concurrent_services=concurrent_services
    ).restart_all(handle, repositories, services)

    summary = summarize(results)
    assert summary.repositories == repo_count
    assert summary.total_services == repo_count * len(services)
    assert summary.successful + summary.failed == summary.total_services


async def test_results_keep_input_order_when_completion_differs(
    handle: WorkspaceHandle, services: list[ServiceDefinition]
) -> None:
    """The first repository finishes last but is still reported first."""

    class SkewedExecutor(FakeExecutor):
        async def execute(self, handle, command, working_dir, timeout):  # noqa: ANN001, ANN202
            if working_dir.endswith("/slow"):
                await asyncio.sleep(0.02)
            return await super().execute(handle, command, working_dir, timeout)

    repositories = [RepositoryDescriptor(name="slow"), RepositoryDescriptor(name="fast")]
    executor = SkewedExecutor()
    results = await _orchestrator(executor, max_concurrency=2).restart_all(handle, repositories, services)

    assert [r.repository for r in results] == ["slow", "fast"]
    assert executor.calls[-1][2] == "/home/dev/projects/slow"


async def test_concurrency_is_bounded(handle: WorkspaceHandle, services: list[ServiceDefinition]) -> None:
    in_flight = 0
    peak = 0

    class CountingExecutor:
        async def execute(self, handle, command, working_dir, timeout):  # noqa: ANN001, ANN202
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            in_flight -= 1
            return CommandResult(exit_code=0, output="")

    repositories = [RepositoryDescriptor(name=f"r{i}") for i in range(6)]
    await _orchestrator(CountingExecutor(), max_concurrency=2).restart_all(handle, repositories, services)
    assert peak == 2


async def test_services_run_in_definition_order(
    handle: WorkspaceHandle, services: list[ServiceDefinition]
) -> None:
    executor = FakeExecutor()
    await _orchestrator(executor).restart_all(handle, [RepositoryDescriptor(name="a")], services)
    assert [call[1] for call in executor.calls] == ["svc restart web", "svc restart api", "svc restart db"]


async def test_stop_before_run_cancels_everything(
    handle: WorkspaceHandle, repositories: list[RepositoryDescriptor], services: list[ServiceDefinition]
) -> None:
    stop = asyncio.Event()
    stop.set()
    executor = FakeExecutor()
    results = await _orchestrator(executor).restart_all(handle, repositories, services, stop=stop)

    assert executor.calls == []
    assert all(r.error == CANCELLED_ERROR for repo in results for r in repo.services.values())
    summary = summarize(results)
    assert (summary.total_services, summary.successful, summary.failed) == (6, 0, 6)


async def test_stop_mid_run_cancels_unissued_restarts(
    handle: WorkspaceHandle, repositories: list[RepositoryDescriptor], services: list[ServiceDefinition]
) -> None:
    stop = asyncio.Event()

    class StoppingExecutor(FakeExecutor):
        async def execute(self, handle, command, working_dir, timeout):  # noqa: ANN001, ANN202
            result = await super().execute(handle, command, working_dir, timeout)
            if command == "svc restart api":
                stop.set()
            return result

    executor = StoppingExecutor()
    results = await _orchestrator(executor, max_concurrency=1).restart_all(
        handle, repositories, services, stop=stop
    )

    a, b = results
    assert a.services["web"].succeeded
    assert a.services["api"].succeeded
    assert a.services["db"].error == CANCELLED_ERROR
    assert all(r.error == CANCELLED_ERROR for r in b.services.values())
    assert len(executor.calls) == 2
    assert summarize(results).total_services == 6


def test_invalid_concurrency() -> None:
    with pytest.raises(ValueError, match="max_concurrency"):
        _orchestrator(FakeExecutor(), max_concurrency=0)


async def test_duplicate_service_names_are_rejected(
    handle: WorkspaceHandle, repositories: list[RepositoryDescriptor]
) -> None:
    executor = FakeExecutor()
    services = [
        ServiceDefinition(name="web", restart_command="svc restart a"),
        ServiceDefinition(name="web", restart_command="svc restart b"),
    ]

    with pytest.raises(ValueError, match="Duplicate service names: web"):
        await _orchestrator(executor).restart_all(handle, repositories, services)
    assert executor.calls == []
