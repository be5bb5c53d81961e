"""
Monitoring controller.

MonitoringController owns the whole live pipeline for one backend: the
poll scheduler with its adapters, the live event channel, the sliding
window, the recent-events log and the KPI/insight state. It is the only
writer of that state; readers get immutable DashboardSnapshot copies.
"""

import asyncio
import logging
import time
from types import MappingProxyType
from typing import Callable, Dict, Optional, Sequence, Tuple

from ..adapters.base import AbstractMetricAdapter
from ..adapters.factory import AdapterFactory
from ..adapters.http import ApiClient
from ..adapters.sources import ANALYSIS_HISTORY, LOGS, RESOURCES
from ..analysis.insights import build_insight_inputs, generate_insights
from ..analysis.kpi import HighConfidenceTracker, derive_kpis
from ..models.analysis import DerivedKPI, Insight
from ..models.config import AppConfig
from ..models.runtime import ChannelState, DashboardSnapshot, MonitoringState, PollCycleResult
from ..models.telemetry import (
    AnalysisHistorySummary,
    LiveEvent,
    MetricSnapshot,
    SystemResources,
)
from ..validation import StreamError
from .buffer import RecentEventLog, SlidingWindowBuffer
from .channel import LiveEventChannel
from .scheduler import PollScheduler

logger = logging.getLogger(__name__)

TOTAL_FAILURE_BANNER = "Failed to fetch system data. Using fallback data."


class MonitoringController:
    """
    Stopped/Running state machine gluing the pipeline together.

    While the live channel is down, polling runs at the configured fallback
    interval; once the channel reconnects, the normal interval is restored.
    The channel is reopened alongside the next manual refresh.
    """

    def __init__(
        self,
        config: AppConfig,
        adapters: Optional[Sequence[AbstractMetricAdapter]] = None,
        channel: Optional[LiveEventChannel] = None,
        client: Optional[ApiClient] = None,
        clock: Callable[[], float] = time.time,
        on_update: Optional[Callable[[DashboardSnapshot], None]] = None,
    ):
        """
        Args:
            config: Injected application configuration
            adapters: Metric adapters (built from the configuration if None)
            channel: Live event channel (built from the configuration if None
                and streaming is enabled)
            client: HTTP client shared by the built adapters and channel
            clock: Source of epoch seconds
            on_update: Called with a fresh snapshot after every applied cycle
        """
        self.config = config
        self.on_update = on_update
        monitor = config.monitor

        needs_client = adapters is None or (channel is None and monitor.stream_enabled)
        self._owns_client = client is None and needs_client
        if self._owns_client:
            client = ApiClient(monitor.base_url, monitor.auth_token, timeout=monitor.adapter_timeout_seconds)
        self.client = client

        if adapters is None:
            adapters = AdapterFactory(config, client).create_adapters()
        if channel is None and monitor.stream_enabled:
            channel = LiveEventChannel(client, config.endpoints.stream)
        self.channel = channel
        if channel is not None:
            channel.on_event = self._on_event
            channel.on_error = self._on_stream_error
            channel.on_connected = self._on_stream_connected

        self.scheduler = PollScheduler(adapters, on_cycle=self._apply_cycle, clock=clock)
        self.buffer = SlidingWindowBuffer(monitor.capacity)
        self.events = RecentEventLog(monitor.max_recent_events)
        self.confidence = HighConfidenceTracker(
            threshold=monitor.high_confidence_threshold,
            series_length=monitor.confidence_series_length,
        )

        self._state = MonitoringState.STOPPED
        self._poll_interval = monitor.interval_seconds
        # Serializes start() and stop(); a start issued mid-stop waits for it.
        self._lifecycle_lock = asyncio.Lock()
        self._snapshots: Dict[str, MetricSnapshot] = {}
        self._kpis = DerivedKPI()
        self._insights: Tuple[Insight, ...] = ()
        self._last_update: Optional[float] = None
        self._banner: Optional[str] = None

    @property
    def state(self) -> MonitoringState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is MonitoringState.RUNNING

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    @property
    def channel_state(self) -> ChannelState:
        return self.channel.state if self.channel is not None else ChannelState.DISCONNECTED

    async def start(self) -> bool:
        """
        Open the live channel, start polling and mark Running.

        A start issued while a stop is still draining waits for that stop
        to finish first.

        Returns:
            False if already running
        """
        async with self._lifecycle_lock:
            if self.is_running:
                logger.debug("Monitoring already running, start ignored")
                return False

            monitor = self.config.monitor
            self._state = MonitoringState.RUNNING
            self._poll_interval = monitor.interval_seconds
            logger.info(f"Monitoring started for {monitor.base_url}")

            if self.channel is not None:
                self.channel.open()
            self.scheduler.start(self._poll_interval, run_immediately=monitor.poll_on_start)
            return True

    async def stop(self) -> None:
        """
        Close the channel, stop the scheduler and release the HTTP session.

        Idempotent. Poll cycles already in flight are drained (bounded by the
        graceful shutdown timeout) and their results are discarded.
        """
        async with self._lifecycle_lock:
            if not self.is_running:
                return

            self._state = MonitoringState.STOPPED
            try:
                await self.scheduler.stop()
                if self.channel is not None:
                    await self.channel.close()
                await self.scheduler.drain(timeout=self.config.monitor.graceful_shutdown_timeout)
            finally:
                if self._owns_client and self.client is not None:
                    await self.client.close()
            logger.info(f"Monitoring stopped after {self.scheduler.cycles_completed} poll cycles")

    async def refresh_now(self) -> Optional[PollCycleResult]:
        """
        Poll all sources immediately without moving the regular tick phase.

        A disconnected live channel is reopened at the same time.

        Returns:
            The applied cycle, or None when stopped or the result was discarded
        """
        if not self.is_running:
            logger.debug("Monitoring stopped, refresh ignored")
            return None

        if self.channel is not None and self.channel.state is ChannelState.DISCONNECTED:
            logger.info("Reopening live event channel with manual refresh")
            self.channel.open()
        return await self.scheduler.trigger_immediate()

    def snapshot(self) -> DashboardSnapshot:
        """Immutable copy of the current pipeline state."""
        return DashboardSnapshot(
            state=self._state,
            channel_state=self.channel_state,
            poll_interval=self._poll_interval,
            samples=self.buffer.snapshot(),
            metrics=MappingProxyType(dict(self._snapshots)),
            recent_events=self.events.snapshot(),
            kpis=self._kpis,
            insights=self._insights,
            last_update=self._last_update,
            banner=self._banner,
        )

    def _apply_cycle(self, result: PollCycleResult) -> None:
        if not self.is_running:
            logger.debug(f"Discarding poll cycle completed at {result.completed_at} after stop")
            return

        self._snapshots.update(result.snapshots)

        resources = result.snapshots.get(RESOURCES)
        if resources is not None and not resources.stale and isinstance(resources.value, SystemResources):
            self.buffer.push(resources.value.to_sample(resources.as_of))

        logs = result.snapshots.get(LOGS)
        if logs is not None and not logs.stale:
            added = self.events.extend(logs.value)
            if added:
                logger.debug(f"Merged {added} polled log entries into the event log")

        history = result.snapshots.get(ANALYSIS_HISTORY)
        if history is not None and not history.stale and isinstance(history.value, AnalysisHistorySummary):
            self.confidence.ingest(history.value.records)

        self._kpis = derive_kpis(self.buffer.snapshot(), self.confidence.rate, self.confidence.series())
        self._insights = generate_insights(
            build_insight_inputs(self._snapshots, self._kpis), self.config.monitor.thresholds
        )

        if result.all_failed:
            if self._banner is None:
                logger.error(f"No source reachable at {self.config.monitor.base_url}, serving fallback data")
            self._banner = TOTAL_FAILURE_BANNER
        else:
            self._banner = None
        self._last_update = result.completed_at

        if self.on_update is not None:
            self.on_update(self.snapshot())

    def _on_event(self, event: LiveEvent) -> None:
        if self.is_running:
            self.events.append(event)

    def _on_stream_error(self, error: StreamError) -> None:
        if not self.is_running:
            return
        fallback = self.config.monitor.fallback_interval_seconds
        logger.warning(f"Live events unavailable ({error}), polling every {fallback}s instead")
        self._poll_interval = fallback
        self.scheduler.set_interval(fallback)

    def _on_stream_connected(self) -> None:
        if not self.is_running:
            return
        interval = self.config.monitor.interval_seconds
        if self._poll_interval != interval:
            logger.info(f"Live events restored, polling every {interval}s again")
            self._poll_interval = interval
            self.scheduler.set_interval(interval)

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
