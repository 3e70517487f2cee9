"""Sandbox lifecycle: query state, bring a sandbox to running, stop it.

``ensure_started`` is idempotent.  A running sandbox is left alone; otherwise
the start instruction is issued and the state is polled until the provider
reports it running, bounded by ``start_timeout``.  A short grace period then
gives in-sandbox services time to initialise before commands are issued.
``stop`` mirrors it: a sandbox that is not running is left alone.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from loguru import logger

from devharbor.sandbox_runtime.errors import SandboxApiError, SandboxStartError
from devharbor.sandbox_runtime.models.enums import PROVIDER_STATES, SandboxState

if TYPE_CHECKING:
    from devharbor.sandbox_runtime.execution.command import SandboxController
    from devharbor.sandbox_runtime.models.workspace import WorkspaceHandle


class SandboxLifecycle:
    def __init__(
        self,
        controller: SandboxController,
        *,
        start_timeout: float = 120.0,
        poll_interval: float = 2.0,
        grace_period: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._controller = controller
        self._start_timeout = start_timeout
        self._poll_interval = poll_interval
        self._grace_period = grace_period
        self._clock = clock
        self._sleep = sleep

    async def get_state(self, handle: WorkspaceHandle) -> SandboxState:
        raw = await self._controller.get_state(handle)
        return PROVIDER_STATES.get(raw, SandboxState.UNKNOWN)

    async def ensure_started(self, handle: WorkspaceHandle) -> bool:
        """Make sure the sandbox is running.

        Returns ``True`` if a start instruction was issued, ``False`` if the
        sandbox was already running.  Raises ``SandboxStartError`` if the
        start instruction fails or the sandbox never reports running.
        """
        state = await self.get_state(handle)
        if state == SandboxState.RUNNING:
            logger.debug("Sandbox {} already running", handle.sandbox_id)
            return False

        logger.info("Sandbox {} is {}, starting", handle.sandbox_id, state)
        started_at = self._clock()
        try:
            await self._controller.start(handle)
        except (SandboxApiError, TimeoutError) as exc:
            msg = f"Failed to start sandbox '{handle.sandbox_id}': {exc}"
            raise SandboxStartError(msg) from exc

        await self._wait_until_running(handle, deadline=started_at + self._start_timeout)

        if self._grace_period > 0:
            logger.debug("Sandbox {} running, waiting {}s for services", handle.sandbox_id, self._grace_period)
            await self._sleep(self._grace_period)

        logger.info("Sandbox {} started in {:.1f}s", handle.sandbox_id, self._clock() - started_at)
        return True

    async def stop(self, handle: WorkspaceHandle) -> bool:
        """Stop a running sandbox.

        Returns ``True`` if a stop instruction was issued, ``False`` if the
        sandbox was not running.  Provider failures propagate unchanged.
        """
        state = await self.get_state(handle)
        if state != SandboxState.RUNNING:
            logger.warning("Sandbox {} is not running (state: {}), nothing to stop", handle.sandbox_id, state)
            return False

        await self._controller.stop(handle)
        logger.info("Sandbox {} stopped", handle.sandbox_id)
        return True

    async def _wait_until_running(self, handle: WorkspaceHandle, *, deadline: float) -> None:
        state = SandboxState.UNKNOWN
        while True:
            try:
                state = await self.get_state(handle)
            except (SandboxApiError, TimeoutError) as exc:
                logger.warning("Sandbox {} state check failed while starting: {}", handle.sandbox_id, exc)
                state = SandboxState.UNKNOWN

            if state == SandboxState.RUNNING:
                return
            if self._clock() >= deadline:
                msg = (
                    f"Sandbox '{handle.sandbox_id}' did not reach running within "
                    f"{self._start_timeout:g}s (last state: {state})"
                )
                raise SandboxStartError(msg)
            await self._sleep(self._poll_interval)
