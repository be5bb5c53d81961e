"""
Derived analysis models: KPI snapshots and qualitative insights.

These values are recomputed every cycle and never persisted.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .telemetry import ResourceSample


class Trend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class Severity(str, Enum):
    GOOD = "good"
    WARN = "warn"
    BAD = "bad"


@dataclass(frozen=True)
class ConfidencePoint:
    """
    One step of the cumulative confidence series.

    Attributes:
        timestamp: Creation time of the analysis (ISO 8601, empty if unknown)
        confidence: Confidence of that analysis
        high_rate: Cumulative high-confidence share after it, in percent
        processed: Number of analyses ingested so far
    """

    timestamp: str
    confidence: float
    high_rate: float
    processed: int


@dataclass(frozen=True)
class DerivedKPI:
    high_confidence_rate: float = 0.0
    avg_confidence_series: Tuple[ConfidencePoint, ...] = ()
    cpu_trend: Trend = Trend.STABLE
    memory_trend: Trend = Trend.STABLE
    avg_cpu: float = 0.0
    avg_memory: float = 0.0
    latest: Optional[ResourceSample] = None
    # Number of window samples the trends were computed from.
    sample_count: int = 0


@dataclass(frozen=True)
class Insight:
    title: str
    detail: str
    severity: Severity


@dataclass(frozen=True)
class InsightInputs:
    """
    The KPI values the insight rules look at.

    `db_healthy` is None while the database state has never been reported.
    """

    success_rate: float = 0.0
    queue_length: int = 0
    avg_processing_ms: float = 0.0
    cpu_pct: float = 0.0
    mem_pct: float = 0.0
    db_healthy: Optional[bool] = None
    cpu_trend: Trend = Trend.STABLE
    memory_trend: Trend = Trend.STABLE
    sample_count: int = 0
