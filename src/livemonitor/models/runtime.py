"""
Runtime data models.

This module contains the state enums of the controller and the live channel,
the outcome of one joined poll cycle, and the read-only snapshot handed to
the rendering layer.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from ..validation.exceptions import PartialDataError
from .analysis import DerivedKPI, Insight
from .telemetry import LiveEvent, MetricSnapshot, ResourceSample


class MonitoringState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class ChannelState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class PollCycleResult:
    """
    Outcome of one fan-out/join over all adapters.

    Attributes:
        started_at: Epoch seconds when the cycle was launched
        completed_at: Epoch seconds when every adapter had returned
        snapshots: Snapshot per adapter name (fresh or stale)
        failures: PartialDataError per adapter whose snapshot is stale
        epoch: Scheduler epoch the cycle was launched in
    """

    started_at: float
    completed_at: float
    snapshots: Mapping[str, MetricSnapshot] = field(default_factory=lambda: MappingProxyType({}))
    failures: Mapping[str, PartialDataError] = field(default_factory=lambda: MappingProxyType({}))
    epoch: int = 0

    @property
    def all_failed(self) -> bool:
        """True when no source produced fresh data."""
        return bool(self.snapshots) and len(self.failures) >= len(self.snapshots)


@dataclass(frozen=True)
class DashboardSnapshot:
    """Immutable view of the pipeline state for the rendering layer."""

    state: MonitoringState
    channel_state: ChannelState
    poll_interval: float
    samples: Tuple[ResourceSample, ...]
    metrics: Mapping[str, MetricSnapshot]
    recent_events: Tuple[LiveEvent, ...]
    kpis: DerivedKPI
    insights: Tuple[Insight, ...]
    last_update: Optional[float] = None
    banner: Optional[str] = None
