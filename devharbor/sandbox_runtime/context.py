"""In-flight restart run bookkeeping."""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field


@dataclass
class RestartRun:
    """One orchestration run, from request receipt to report.

    Created by the router, registered in the ``RunRegistry`` so shutdown and
    deadlines can reach it, and discarded once the report is returned.
    """

    sandbox_id: str
    caller_identity: str | None = None
    complete: bool = True
    """True for the start-then-restart entry point."""

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: float = field(default_factory=time.monotonic)
    stop_event: asyncio.Event = field(default_factory=asyncio.Event)
    """Set to stop issuing new restarts (deadline, shutdown)."""

    _deadline: asyncio.TimerHandle | None = field(default=None, repr=False)

    def arm_deadline(self, timeout: float) -> None:
        """Set ``stop_event`` after *timeout* seconds unless disarmed first."""
        self.disarm_deadline()
        loop = asyncio.get_running_loop()
        self._deadline = loop.call_later(timeout, self.stop_event.set)

    def disarm_deadline(self) -> None:
        if self._deadline is not None:
            self._deadline.cancel()
            self._deadline = None

    def stop(self) -> None:
        self.stop_event.set()

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()
