"""Restart one service of one repository.

``restart_one`` is the fault-isolation seam of the orchestrator: every
failure mode of the remote call (non-zero exit, timeout, transport error) is
turned into a ``failed`` result.  Only task cancellation propagates.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from loguru import logger

from devharbor.sandbox_runtime.models.enums import ServiceStatus
from devharbor.sandbox_runtime.models.restart import ServiceRestartResult

if TYPE_CHECKING:
    from devharbor.sandbox_runtime.execution.command import CommandExecutor
    from devharbor.sandbox_runtime.models.restart import ServiceDefinition
    from devharbor.sandbox_runtime.models.workspace import RepositoryDescriptor, WorkspaceHandle

DEFAULT_COMMAND_TIMEOUT = 30.0
DEFAULT_OUTPUT_LIMIT = 500
LOCAL_TIMEOUT_MARGIN = 10.0
"""Local guard on top of the remote timeout, covering transport overhead."""

CANCELLED_ERROR = "cancelled"


def truncate_output(text: str, limit: int) -> str:
    """Keep the last *limit* characters; errors usually sit at the end."""
    if limit <= 0:
        return ""
    if len(text) <= limit:
        return text
    return text[-limit:]


def cancelled_result(service: ServiceDefinition) -> ServiceRestartResult:
    """Result recorded for a restart that was never issued."""
    return ServiceRestartResult(service=service.name, status=ServiceStatus.FAILED, error=CANCELLED_ERROR)


class ServiceRestartExecutor:
    def __init__(
        self,
        executor: CommandExecutor,
        *,
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
        output_limit: int = DEFAULT_OUTPUT_LIMIT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._executor = executor
        self._timeout = timeout
        self._output_limit = output_limit
        self._clock = clock

    async def restart_one(
        self,
        handle: WorkspaceHandle,
        repository: RepositoryDescriptor,
        service: ServiceDefinition,
    ) -> ServiceRestartResult:
        working_dir = handle.working_directory(repository)
        command = service.render(repository=repository.name, path=working_dir)
        started = self._clock()

        try:
            result = await asyncio.wait_for(
                self._executor.execute(handle, command, working_dir, self._timeout),
                timeout=self._timeout + LOCAL_TIMEOUT_MARGIN,
            )
        except TimeoutError:
            logger.warning("Restart of {}/{} timed out after {}s", repository.name, service.name, self._timeout)
            return self._failed(service, started, error=f"Timed out after {self._timeout:g}s")
        except Exception as exc:
            logger.warning("Restart of {}/{} failed: {}", repository.name, service.name, exc)
            return self._failed(service, started, error=str(exc) or type(exc).__name__)

        status = ServiceStatus.SUCCESS if result.exit_code == 0 else ServiceStatus.FAILED
        error = None if status == ServiceStatus.SUCCESS else f"Exited with code {result.exit_code}"
        if error:
            logger.warning("Restart of {}/{}: {}", repository.name, service.name, error)
        else:
            logger.debug("Restart of {}/{} succeeded", repository.name, service.name)

        return ServiceRestartResult(
            service=service.name,
            status=status,
            output=truncate_output(result.output, self._output_limit),
            duration_ms=self._elapsed_ms(started),
            exit_code=result.exit_code,
            error=error,
        )

    def _failed(self, service: ServiceDefinition, started: float, *, error: str) -> ServiceRestartResult:
        return ServiceRestartResult(
            service=service.name,
            status=ServiceStatus.FAILED,
            duration_ms=self._elapsed_ms(started),
            error=error,
        )

    def _elapsed_ms(self, started: float) -> int:
        return max(0, int((self._clock() - started) * 1000))
