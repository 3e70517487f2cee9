"""Fan restarts out over repositories x services and collect every result.

Repositories are independent (disjoint working directories) and run with a
bounded degree of parallelism; services of one repository run in definition
order unless ``concurrent_services`` is set.  Results are always reported in
input repository order and service definition order, whatever order the
restarts actually completed in.

A set ``stop`` event means "issue nothing new": restarts that have not been
issued yet are recorded as failed with error ``cancelled``, while restarts
already in flight finish under their own timeout.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from loguru import logger

from devharbor.sandbox_runtime.execution.restart import cancelled_result
from devharbor.sandbox_runtime.models.restart import RepositoryRestartResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from devharbor.sandbox_runtime.execution.restart import ServiceRestartExecutor
    from devharbor.sandbox_runtime.models.restart import ServiceDefinition, ServiceRestartResult
    from devharbor.sandbox_runtime.models.workspace import RepositoryDescriptor, WorkspaceHandle


class RepositoryOrchestrator:
    def __init__(
        self,
        restarter: ServiceRestartExecutor,
        *,
        max_concurrency: int = 1,
        concurrent_services: bool = False,
    ) -> None:
        if max_concurrency < 1:
            msg = f"max_concurrency must be >= 1, got {max_concurrency}"
            raise ValueError(msg)
        self._restarter = restarter
        self._max_concurrency = max_concurrency
        self._concurrent_services = concurrent_services

    async def restart_all(
        self,
        handle: WorkspaceHandle,
        repositories: Sequence[RepositoryDescriptor],
        services: Sequence[ServiceDefinition],
        *,
        stop: asyncio.Event | None = None,
    ) -> list[RepositoryRestartResult]:
        """Restart every service of every repository.

        Returns one ``RepositoryRestartResult`` per repository, in input
        order, each holding exactly one entry per service.  Raises
        ``ValueError`` before issuing anything if two services share a name.
        """
        names = [service.name for service in services]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            msg = f"Duplicate service names: {', '.join(duplicates)}"
            raise ValueError(msg)

        if not repositories:
            return []

        logger.info(
            "Restarting {} services across {} repositories in sandbox {} (concurrency={})",
            len(services),
            len(repositories),
            handle.sandbox_id,
            self._max_concurrency,
        )
        # Created per run so concurrent runs never share a limiter.
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def bounded(repository: RepositoryDescriptor) -> RepositoryRestartResult:
            async with semaphore:
                return await self._restart_repository(handle, repository, services, stop)

        return list(await asyncio.gather(*(bounded(repository) for repository in repositories)))

    async def _restart_repository(
        self,
        handle: WorkspaceHandle,
        repository: RepositoryDescriptor,
        services: Sequence[ServiceDefinition],
        stop: asyncio.Event | None,
    ) -> RepositoryRestartResult:
        if self._concurrent_services:
            outcomes = list(
                await asyncio.gather(*(self._restart_service(handle, repository, s, stop) for s in services))
            )
        else:
            outcomes = [await self._restart_service(handle, repository, s, stop) for s in services]

        result = RepositoryRestartResult(
            repository=repository.name,
            path=handle.working_directory(repository),
            services={service.name: outcome for service, outcome in zip(services, outcomes, strict=True)},
        )
        successful = sum(1 for outcome in outcomes if outcome.succeeded)
        logger.info(
            "Repository {}: {}/{} services restarted",
            repository.name,
            successful,
            len(outcomes),
        )
        return result

    async def _restart_service(
        self,
        handle: WorkspaceHandle,
        repository: RepositoryDescriptor,
        service: ServiceDefinition,
        stop: asyncio.Event | None,
    ) -> ServiceRestartResult:
        if stop is not None and stop.is_set():
            logger.debug("Skipping {}/{}: run stopped", repository.name, service.name)
            return cancelled_result(service)
        return await self._restarter.restart_one(handle, repository, service)
