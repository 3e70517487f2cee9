"""Restart orchestration entry points.

Two ways in:

- ``restart_services_complete``: authenticate, make sure the sandbox is
  running, then restart everything.  Used when the caller cannot vouch for
  the sandbox state.
- ``restart_services``: restart everything for an already-authenticated
  handle whose sandbox the caller knows to be running.

Both return a ``RestartReport`` whose summary is consistent with its results
even under partial failure.  Precondition failures (auth, configuration,
start) raise instead, so "could not even try" is never confused with
"restarted nothing".
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from devharbor.sandbox_runtime.auth import RecordAuthGate
from devharbor.sandbox_runtime.execution.lifecycle import SandboxLifecycle
from devharbor.sandbox_runtime.execution.orchestrator import RepositoryOrchestrator
from devharbor.sandbox_runtime.execution.restart import ServiceRestartExecutor
from devharbor.sandbox_runtime.execution.summary import summarize
from devharbor.sandbox_runtime.models.restart import RestartReport

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from devharbor.sandbox_runtime.auth import AuthGate
    from devharbor.sandbox_runtime.execution.sandbox_api import SandboxApiClient
    from devharbor.sandbox_runtime.models.enums import SandboxState
    from devharbor.sandbox_runtime.models.restart import ServiceDefinition
    from devharbor.sandbox_runtime.models.workspace import RepositoryDescriptor, WorkspaceAccess, WorkspaceHandle
    from devharbor.sandbox_runtime.settings import HarborSettings


class RestartOrchestrationFacade:
    """Composes the gate, lifecycle and orchestrator.  Holds no per-run state."""

    def __init__(
        self,
        *,
        auth_gate: AuthGate,
        lifecycle: SandboxLifecycle,
        orchestrator: RepositoryOrchestrator,
        services: Sequence[ServiceDefinition],
    ) -> None:
        self._auth_gate = auth_gate
        self._lifecycle = lifecycle
        self._orchestrator = orchestrator
        self._services = tuple(services)

    @property
    def services(self) -> tuple[ServiceDefinition, ...]:
        return self._services

    async def restart_services(
        self,
        handle: WorkspaceHandle,
        repositories: Sequence[RepositoryDescriptor],
        *,
        stop: asyncio.Event | None = None,
        sandbox_started: bool = False,
    ) -> RestartReport:
        results = await self._orchestrator.restart_all(handle, repositories, self._services, stop=stop)
        summary = summarize(results)
        logger.info(
            "Service restart completed for sandbox {}: {}/{} successful across {} repositories",
            handle.sandbox_id,
            summary.successful,
            summary.total_services,
            summary.repositories,
        )
        return RestartReport(
            sandbox_id=handle.sandbox_id,
            message=f"Services restart completed for {summary.repositories} repositories",
            summary=summary,
            results=results,
            sandbox_started=sandbox_started,
        )

    async def restart_services_complete(
        self,
        sandbox_id: str,
        caller_identity: str | None,
        *,
        stop: asyncio.Event | None = None,
    ) -> RestartReport:
        logger.info("Complete service restart requested for sandbox {}", sandbox_id)
        access = await self._auth_gate.authenticate(sandbox_id, caller_identity)
        return await self.restart_authorized(access, stop=stop)

    async def restart_authorized(self, access: WorkspaceAccess, *, stop: asyncio.Event | None = None) -> RestartReport:
        """Complete restart for a caller the gate has already admitted."""
        started = await self._lifecycle.ensure_started(access.handle)
        return await self.restart_services(access.handle, access.repositories, stop=stop, sandbox_started=started)

    # -- Lifecycle only --------------------------------------------------------

    async def start_workspace(self, sandbox_id: str, caller_identity: str | None) -> bool:
        """Authenticate and ensure the sandbox is running.  Returns whether it was started."""
        access = await self._auth_gate.authenticate(sandbox_id, caller_identity)
        return await self._lifecycle.ensure_started(access.handle)

    async def workspace_state(self, sandbox_id: str, caller_identity: str | None) -> SandboxState:
        access = await self._auth_gate.authenticate(sandbox_id, caller_identity)
        return await self._lifecycle.get_state(access.handle)

    async def stop_workspace(self, sandbox_id: str, caller_identity: str | None) -> bool:
        """Authenticate and stop the sandbox if it is running.  Returns whether it was stopped."""
        access = await self._auth_gate.authenticate(sandbox_id, caller_identity)
        return await self.stop_authorized(access)

    async def stop_authorized(self, access: WorkspaceAccess) -> bool:
        return await self._lifecycle.stop(access.handle)

    async def authenticate(self, sandbox_id: str, caller_identity: str | None) -> WorkspaceAccess:
        """Expose the gate so entry points can admit a caller before claiming a run slot."""
        return await self._auth_gate.authenticate(sandbox_id, caller_identity)


def build_facade(
    settings: HarborSettings,
    *,
    session_factory: async_sessionmaker[AsyncSession],
    api_client: SandboxApiClient,
) -> RestartOrchestrationFacade:
    """Wire the production collaborators from settings."""
    restarter = ServiceRestartExecutor(
        api_client,
        timeout=settings.command_timeout,
        output_limit=settings.output_limit,
    )
    return RestartOrchestrationFacade(
        auth_gate=RecordAuthGate(session_factory, api_key_configured=settings.sandbox_api_key is not None),
        lifecycle=SandboxLifecycle(
            api_client,
            start_timeout=settings.start_timeout,
            poll_interval=settings.start_poll_interval,
            grace_period=settings.start_grace_period,
        ),
        orchestrator=RepositoryOrchestrator(
            restarter,
            max_concurrency=settings.max_concurrency,
            concurrent_services=settings.concurrent_services,
        ),
        services=settings.services,
    )
