"""
Fixed-interval poll scheduling.

PollScheduler runs one ticker task that waits on a wake-up event with the poll
interval as timeout. Every expired wait launches a poll cycle: all adapters
are fetched concurrently and joined, and the joined result is handed to the
cycle callback in one piece, so consumers never observe a partial cycle.
"""

import asyncio
import inspect
import logging
import time
from types import MappingProxyType
from typing import Awaitable, Callable, Dict, Optional, Sequence, Set, Union

from ..adapters.base import AbstractMetricAdapter
from ..models.runtime import PollCycleResult
from ..models.telemetry import MetricSnapshot
from ..validation import ErrorSeverity, PartialDataError, handle_error

logger = logging.getLogger(__name__)

CycleCallback = Callable[[PollCycleResult], Union[None, Awaitable[None]]]


class PollScheduler:
    """
    Periodic fan-out/join over a fixed set of metric adapters.

    Each start() and stop() advances the scheduler epoch. A cycle that was
    launched in an older epoch still completes, but its result is discarded
    instead of reaching the callback.
    """

    def __init__(
        self,
        adapters: Sequence[AbstractMetricAdapter],
        on_cycle: Optional[CycleCallback] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            adapters: Adapters polled every cycle; names must be unique
            on_cycle: Called with every joined cycle of the current epoch
            clock: Source of epoch seconds for cycle timestamps
        """
        names = [adapter.name for adapter in adapters]
        if len(set(names)) != len(names):
            raise ValueError(f"Adapter names must be unique, got {names}")

        self.adapters = list(adapters)
        self.on_cycle = on_cycle
        self._clock = clock

        self._interval: Optional[float] = None
        self._epoch = 0
        self._cycles_completed = 0
        self._stop_event: Optional[asyncio.Event] = None
        self._rearm: Optional[asyncio.Event] = None
        self._ticker: Optional[asyncio.Task] = None
        self._scheduled_cycle: Optional[asyncio.Task] = None
        self._in_flight: Set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    @property
    def interval(self) -> Optional[float]:
        return self._interval

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def cycles_completed(self) -> int:
        """Number of cycles delivered to the callback."""
        return self._cycles_completed

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def start(self, interval_seconds: float, run_immediately: bool = False) -> bool:
        """
        Start ticking every `interval_seconds`.

        Must be called from within a running event loop.

        Args:
            interval_seconds: Tick interval
            run_immediately: Also launch one cycle right away

        Returns:
            False if the scheduler was already running (nothing changes)
        """
        if self.is_running:
            logger.debug("Poll scheduler already running, start ignored")
            return False
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")

        self._epoch += 1
        self._interval = interval_seconds
        self._stop_event = asyncio.Event()
        self._rearm = asyncio.Event()
        self._ticker = asyncio.create_task(
            self._tick_loop(self._stop_event, self._rearm), name="poll-ticker"
        )
        logger.info(f"Poll scheduler started: {len(self.adapters)} sources every {interval_seconds}s")

        if run_immediately:
            self._scheduled_cycle = self._spawn_cycle()
        return True

    async def stop(self) -> None:
        """
        Stop ticking. Idempotent.

        The ticker is cancelled and awaited before returning, so no tick
        fires afterwards. Cycles already in flight keep running until
        drained; their results are discarded.
        """
        if self._ticker is None:
            return

        self._epoch += 1
        ticker, self._ticker = self._ticker, None
        self._stop_event.set()
        self._rearm.set()
        ticker.cancel()
        await asyncio.gather(ticker, return_exceptions=True)
        self._scheduled_cycle = None
        logger.info(f"Poll scheduler stopped after {self._cycles_completed} cycles")

    async def drain(self, timeout: Optional[float] = None) -> int:
        """
        Wait for in-flight cycles, cancelling those still pending after `timeout`.

        Returns:
            Number of cycles that had to be cancelled
        """
        pending = set(self._in_flight)
        if not pending:
            return 0

        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)
            logger.warning(f"Cancelled {len(still_pending)} poll cycles still running after {timeout}s")
        return len(still_pending)

    def set_interval(self, interval_seconds: float) -> None:
        """
        Change the tick interval.

        A running scheduler restarts its pending wait with the new interval,
        so the next tick is `interval_seconds` from now.
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        if interval_seconds == self._interval:
            return
        logger.info(f"Poll interval changed: {self._interval}s -> {interval_seconds}s")
        self._interval = interval_seconds
        if self.is_running:
            self._rearm.set()

    async def trigger_immediate(self) -> Optional[PollCycleResult]:
        """
        Run one cycle now, outside the regular cadence.

        The ticker's phase is left untouched. Cancelling the caller does not
        cancel the cycle; it completes (or is drained) like a scheduled one.

        Returns:
            The cycle result, or None if the scheduler is not running or the
            result was discarded
        """
        if not self.is_running:
            logger.debug("Poll scheduler not running, manual trigger ignored")
            return None
        return await asyncio.shield(self._spawn_cycle())

    async def _tick_loop(self, stop_event: asyncio.Event, rearm: asyncio.Event) -> None:
        # `rearm` is set by stop() and by interval changes
        while not stop_event.is_set():
            rearm.clear()
            try:
                await asyncio.wait_for(rearm.wait(), timeout=self._interval)
                continue
            except asyncio.TimeoutError:
                if self._scheduled_cycle is not None and not self._scheduled_cycle.done():
                    logger.debug("Previous poll cycle still running, skipping tick")
                    continue
                self._scheduled_cycle = self._spawn_cycle()

    def _spawn_cycle(self) -> asyncio.Task:
        task = asyncio.create_task(self._run_cycle(self._epoch), name=f"poll-cycle-{self._epoch}")
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def _run_cycle(self, epoch: int) -> Optional[PollCycleResult]:
        started_at = self._clock()
        outcomes = await asyncio.gather(
            *(adapter.fetch() for adapter in self.adapters), return_exceptions=True
        )

        snapshots: Dict[str, MetricSnapshot] = {}
        failures: Dict[str, PartialDataError] = {}
        for adapter, outcome in zip(self.adapters, outcomes):
            if isinstance(outcome, BaseException):
                # fetch() should never raise; isolate the adapter anyway
                logger.warning(f"Source '{adapter.name}' raised during fetch: {outcome!r}")
                snapshots[adapter.name] = adapter.stale_snapshot(outcome)
                failures[adapter.name] = PartialDataError(adapter.name, outcome)
                continue
            snapshots[adapter.name] = outcome
            if outcome.stale:
                failures[adapter.name] = PartialDataError(adapter.name, outcome.error)

        if epoch != self._epoch:
            logger.debug(f"Discarding poll cycle from epoch {epoch} (current epoch {self._epoch})")
            return None

        result = PollCycleResult(
            started_at=started_at,
            completed_at=self._clock(),
            snapshots=MappingProxyType(snapshots),
            failures=MappingProxyType(failures),
            epoch=epoch,
        )
        self._cycles_completed += 1
        if failures:
            logger.debug(f"Poll cycle finished with {len(failures)}/{len(snapshots)} stale sources")

        if self.on_cycle is not None:
            try:
                pending = self.on_cycle(result)
                if inspect.isawaitable(pending):
                    await pending
            except Exception as e:
                handle_error(e, context="applying poll cycle", severity=ErrorSeverity.ERROR,
                             reraise=False, logger=logger)
        return result
