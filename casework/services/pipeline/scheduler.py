"""Coalescing per-case aggregation scheduler."""

import asyncio
from typing import Awaitable, Callable, Dict, Optional, Set
from uuid import UUID

from casework.core.config import settings
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)


class AggregationScheduler:
    """Runs at most one aggregation per case at a time.

    Each case has a single runner task and a dirty flag. Requests made while
    a run is in progress set the flag, and the runner performs exactly one
    more pass afterwards however many requests arrived.
    """

    def __init__(
        self,
        run_aggregation: Callable[[UUID], Awaitable[object]],
        debounce_seconds: Optional[float] = None,
    ):
        """Initialize the scheduler.

        Args:
            run_aggregation: Coroutine function aggregating one case
            debounce_seconds: Wait before each pass so bursts of requests coalesce
        """
        self.run_aggregation = run_aggregation
        self.debounce_seconds = (
            settings.aggregation_debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self._dirty: Set[UUID] = set()
        self._runners: Dict[UUID, asyncio.Task] = {}
        self.runs = 0

    def request(self, case_id: UUID) -> asyncio.Task:
        """Mark a case for aggregation, starting its runner if idle."""
        self._dirty.add(case_id)
        runner = self._runners.get(case_id)
        if runner is None or runner.done():
            runner = asyncio.create_task(self._run(case_id), name=f"aggregate-{case_id}")
            self._runners[case_id] = runner
        return runner

    def is_running(self, case_id: UUID) -> bool:
        runner = self._runners.get(case_id)
        return runner is not None and not runner.done()

    async def _run(self, case_id: UUID) -> None:
        try:
            while case_id in self._dirty:
                if self.debounce_seconds > 0:
                    await asyncio.sleep(self.debounce_seconds)
                self._dirty.discard(case_id)
                self.runs += 1
                try:
                    await self.run_aggregation(case_id)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    LOGGER.error(
                        f"Aggregation failed for case {case_id}",
                        exc_info=True,
                        extra={"case_id": str(case_id)}
                    )
        finally:
            if self._runners.get(case_id) is asyncio.current_task():
                del self._runners[case_id]

    async def wait(self, case_id: UUID) -> None:
        """Wait until the case has no pending or running aggregation."""
        while True:
            runner = self._runners.get(case_id)
            if runner is None:
                return
            await asyncio.wait({runner})

    async def drain(self) -> None:
        """Wait until no case has a pending or running aggregation."""
        while self._runners:
            await asyncio.wait(set(self._runners.values()))

    async def close(self) -> None:
        runners = list(self._runners.values())
        for runner in runners:
            runner.cancel()
        await asyncio.gather(*runners, return_exceptions=True)
        self._dirty.clear()
