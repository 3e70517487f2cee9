"""In-process registry of running restart runs.

Tracks active runs so that shutdown can refuse new ones, wait for the rest,
and as a last resort tell them to stop issuing restarts.  Ephemeral -- empty
on process restart.  The orchestrator itself holds no run state; this
registry only sits at the HTTP boundary.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from devharbor.sandbox_runtime.context import RestartRun


class ShuttingDownError(RuntimeError):
    """Raised when attempting to register a run during shutdown."""


class RunInProgressError(RuntimeError):
    """Raised when the sandbox already has an active run."""


class RunRegistry:
    """Registry of currently executing restart runs, at most one per sandbox."""

    def __init__(self) -> None:
        self._runs: dict[str, RestartRun] = {}
        self._drain_event = asyncio.Event()
        self._drain_event.set()
        self._shutting_down = False

    # -- Mutation --------------------------------------------------------------

    def register(self, run: RestartRun) -> None:
        """Register a run.

        Raises ``ShuttingDownError`` during shutdown and
        ``RunInProgressError`` if the sandbox already has an active run.
        """
        if self._shutting_down:
            raise ShuttingDownError
        if self.get_by_sandbox(run.sandbox_id) is not None:
            raise RunInProgressError(run.sandbox_id)
        logger.debug("Registry: register run {} (sandbox={})", run.run_id, run.sandbox_id)
        self._runs[run.run_id] = run
        self._drain_event.clear()

    def unregister(self, run_id: str) -> RestartRun | None:
        run = self._runs.pop(run_id, None)
        if run:
            run.disarm_deadline()
            logger.debug("Registry: unregister run {}", run_id)
        if not self._runs:
            self._drain_event.set()
        return run

    # -- Query -----------------------------------------------------------------

    def get(self, run_id: str) -> RestartRun | None:
        return self._runs.get(run_id)

    def get_by_sandbox(self, sandbox_id: str) -> RestartRun | None:
        for run in self._runs.values():
            if run.sandbox_id == sandbox_id:
                return run
        return None

    def all_runs(self) -> list[RestartRun]:
        return list(self._runs.values())

    @property
    def active_count(self) -> int:
        return len(self._runs)

    # -- Lifecycle -------------------------------------------------------------

    def begin_shutdown(self) -> None:
        """Refuse new registrations from now on."""
        self._shutting_down = True
        logger.info("Registry: shutdown initiated, refusing new runs")
        if not self._runs:
            self._drain_event.set()

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    def stop_all(self) -> int:
        """Signal every active run to stop issuing restarts.  Returns how many were signalled."""
        count = 0
        for run in self._runs.values():
            if not run.stopped:
                run.stop()
                count += 1
                logger.info("Registry: stopped run {} (sandbox={})", run.run_id, run.sandbox_id)
        return count

    async def wait_until_drained(self, timeout: float | None = None) -> bool:
        """Wait until no runs remain.  ``False`` if *timeout* expired first."""
        if not self._runs:
            return True
        try:
            await asyncio.wait_for(self._drain_event.wait(), timeout=timeout)
        except TimeoutError:
            logger.warning(
                "Registry: drain timed out after {}s with {} runs still active",
                timeout,
                len(self._runs),
            )
            return False
        else:
            return True
