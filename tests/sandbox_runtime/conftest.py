"""Shared fixtures for sandbox-runtime tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
from fakes import FakeAuthGate, FakeClock, FakeController, FakeExecutor
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from devharbor.sandbox_runtime.app import app
from devharbor.sandbox_runtime.deps import get_db
from devharbor.sandbox_runtime.execution.facade import RestartOrchestrationFacade
from devharbor.sandbox_runtime.execution.lifecycle import SandboxLifecycle
from devharbor.sandbox_runtime.execution.orchestrator import RepositoryOrchestrator
from devharbor.sandbox_runtime.execution.restart import ServiceRestartExecutor
from devharbor.sandbox_runtime.models.restart import ServiceDefinition
from devharbor.sandbox_runtime.models.workspace import RepositoryDescriptor, WorkspaceAccess, WorkspaceHandle
from devharbor.sandbox_runtime.registry import RunRegistry
from devharbor.sandbox_runtime.settings import HarborSettings

AUTH_TOKEN = "test-token"
OWNER = "user-1"

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def services() -> list[ServiceDefinition]:
    return [ServiceDefinition(name=name, restart_command=f"svc restart {name}") for name in ("web", "api", "db")]


@pytest.fixture
def repositories() -> list[RepositoryDescriptor]:
    return [RepositoryDescriptor(name="a"), RepositoryDescriptor(name="b")]


@pytest.fixture
def handle() -> WorkspaceHandle:
    return WorkspaceHandle(sandbox_id="sb-1", root_directory="/home/dev", owner_identity=OWNER)


@pytest.fixture
def access(handle: WorkspaceHandle, repositories: list[RepositoryDescriptor]) -> WorkspaceAccess:
    return WorkspaceAccess(handle=handle, repositories=tuple(repositories))


@pytest.fixture
def make_facade(
    access: WorkspaceAccess, services: list[ServiceDefinition]
) -> Callable[..., RestartOrchestrationFacade]:
    """Build a facade over fakes; every collaborator can be overridden."""

    def _make(
        *,
        executor: Any = None,
        controller: FakeController | None = None,
        gate: Any = None,
        max_concurrency: int = 2,
        clock: FakeClock | None = None,
    ) -> RestartOrchestrationFacade:
        clock = clock or FakeClock()
        lifecycle = SandboxLifecycle(
            controller or FakeController(),
            start_timeout=30,
            poll_interval=1,
            grace_period=0,
            clock=clock,
            sleep=clock.sleep,
        )
        restarter = ServiceRestartExecutor(executor or FakeExecutor(), timeout=5)
        return RestartOrchestrationFacade(
            auth_gate=gate or FakeAuthGate(access),
            lifecycle=lifecycle,
            orchestrator=RepositoryOrchestrator(restarter, max_concurrency=max_concurrency),
            services=services,
        )

    return _make


@pytest.fixture
async def api_client() -> AsyncIterator[Callable[[RestartOrchestrationFacade | None], AsyncClient]]:
    """Factory for an HTTP client wired to the app with a given facade.

    The app lifespan does NOT run under ``ASGITransport``, so state fields
    are pre-set here.
    """
    clients: list[AsyncClient] = []

    def _client(facade: RestartOrchestrationFacade | None) -> AsyncClient:
        app.state.settings = HarborSettings(auth_token=AUTH_TOKEN, run_timeout=60)
        app.state.auth_token = AUTH_TOKEN
        app.state.registry = RunRegistry()
        app.state.db_engine = None
        app.state.db_session_factory = None
        app.state.facade = facade
        client = AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            headers={"Authorization": f"Bearer {AUTH_TOKEN}"},
        )
        clients.append(client)
        return client

    yield _client

    for client in clients:
        await client.aclose()
    app.dependency_overrides.clear()


@pytest.fixture
async def db_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """HTTP client whose requests all share the savepoint-isolated ``db_session``."""

    async def _override_get_db() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.state.settings = HarborSettings(auth_token=AUTH_TOKEN, default_root_directory="/home/daytona")
    app.state.auth_token = AUTH_TOKEN
    app.state.registry = RunRegistry()
    app.state.db_engine = None
    app.state.db_session_factory = None
    app.state.facade = None

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": f"Bearer {AUTH_TOKEN}"},
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
