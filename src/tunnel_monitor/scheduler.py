"""Periodic poll scheduling on asyncio."""

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Generic, TypeVar

from .common.exceptions import SchedulerError
from .common.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class SchedulerState(str, Enum):
    """Lifecycle of a poll scheduler."""

    IDLE = "idle"
    SCHEDULED = "scheduled"
    RUNNING_CYCLE = "running_cycle"
    CANCELLED = "cancelled"


class PollScheduler(Generic[T]):
    """Runs one poll cycle per interval and publishes each result.

    At most one cycle runs at a time. A failing cycle is logged, turned into
    a result by ``on_failure`` (when given) and polling carries on. After
    ``stop`` no new cycle starts, and a cycle still in flight has its result
    dropped.
    """

    def __init__(
        self,
        cycle: Callable[[], Awaitable[T]],
        on_result: Callable[[T], None],
        on_failure: Callable[[Exception], T] | None = None,
        name: str = "poll",
    ):
        self._cycle = cycle
        self._on_result = on_result
        self._on_failure = on_failure
        self.name = name
        self.interval: float | None = None
        self._state = SchedulerState.IDLE
        self._task: asyncio.Task[None] | None = None
        self._generation = 0
        self._lock = asyncio.Lock()
        self._cycling_task: asyncio.Task[None] | None = None
        self.cycles_run = 0
        self.cycles_failed = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, interval: float, immediate: bool = False) -> bool:
        """Begin polling every ``interval`` seconds.

        Args:
            interval: Seconds between cycles
            immediate: Run the first cycle without waiting

        Returns:
            False if the scheduler was already running

        Raises:
            SchedulerError: If the interval is not positive
        """
        if interval <= 0:
            raise SchedulerError(f"Poll interval must be positive, got {interval}")
        if self.active and self._state != SchedulerState.CANCELLED:
            logger.debug("Scheduler already running", scheduler=self.name)
            return False

        self.interval = interval
        self._generation += 1
        self._state = SchedulerState.SCHEDULED
        self._task = asyncio.get_running_loop().create_task(
            self._loop(self._generation, immediate), name=f"{self.name}-poll"
        )
        logger.info("Polling started", scheduler=self.name, interval=interval)
        return True

    def stop(self) -> None:
        """Stop polling. Safe to call repeatedly."""
        if self._state in (SchedulerState.CANCELLED, SchedulerState.IDLE) and not self.active:
            self._state = SchedulerState.CANCELLED
            return

        # A cycle the loop task is running is left to finish and be discarded;
        # a sleeping loop task is cancelled right away
        loop_busy = self._task is not None and self._cycling_task is self._task
        self._generation += 1
        self._state = SchedulerState.CANCELLED
        if self._task is not None and not loop_busy:
            self._task.cancel()
        logger.info("Polling stopped", scheduler=self.name, in_flight=loop_busy)

    def pause(self) -> None:
        self.stop()

    def resume(self) -> bool:
        """Restart polling with the last interval."""
        if self.interval is None:
            raise SchedulerError("Scheduler was never started")
        return self.start(self.interval)

    async def run_once(self) -> T | None:
        """Run a cycle now and publish its result."""
        return await self._run_cycle(self._generation)

    async def wait_stopped(self) -> None:
        """Wait for the polling task to wind down after ``stop``."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def _loop(self, generation: int, immediate: bool) -> None:
        try:
            if immediate:
                await self._loop_cycle(generation)
            while generation == self._generation:
                self._state = SchedulerState.SCHEDULED
                await asyncio.sleep(self.interval or 0)
                if generation != self._generation:
                    break
                await self._loop_cycle(generation)
        except asyncio.CancelledError:
            logger.debug("Poll task cancelled", scheduler=self.name)

    async def _loop_cycle(self, generation: int) -> None:
        task = asyncio.current_task()
        self._cycling_task = task
        try:
            await self._run_cycle(generation)
        finally:
            if self._cycling_task is task:
                self._cycling_task = None

    async def _run_cycle(self, generation: int) -> T | None:
        async with self._lock:
            if generation != self._generation:
                return None
            self._state = SchedulerState.RUNNING_CYCLE
            try:
                result = await self._cycle()
                self.cycles_run += 1
            except Exception as e:
                self.cycles_failed += 1
                logger.error(
                    "Poll cycle failed", scheduler=self.name, error=str(e), exc_info=True
                )
                if self._on_failure is None:
                    self._settle(generation)
                    return None
                result = self._on_failure(e)

            if generation != self._generation:
                logger.debug("Discarding result of cancelled cycle", scheduler=self.name)
                return None

            self._settle(generation)
            self._on_result(result)
            return result

    def _settle(self, generation: int) -> None:
        if generation == self._generation:
            self._state = SchedulerState.SCHEDULED if self.active else SchedulerState.IDLE
