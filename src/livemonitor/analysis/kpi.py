"""
KPI derivation.

Pure functions computing rolling aggregates over the resource window and the
analysis records, plus HighConfidenceTracker, the running counter that keeps
the high-confidence share up to date without rescanning old records.
"""

import logging
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Tuple

from ..models.analysis import ConfidencePoint, DerivedKPI, Trend
from ..models.telemetry import AnalysisRecord, ResourceSample

logger = logging.getLogger(__name__)

TREND_MIN_SAMPLES = 5
TREND_WINDOW = 3
TREND_UP_RATIO = 1.1
TREND_DOWN_RATIO = 0.9

DEFAULT_HIGH_CONFIDENCE = 80.0


def calculate_trend(values: Sequence[float], min_samples: int = TREND_MIN_SAMPLES) -> Trend:
    """
    Compare the mean of the last 3 values with the mean of the 3 before them.

    Args:
        values: Time-ordered metric values
        min_samples: Below this many values the trend is STABLE

    Returns:
        INCREASING if the recent mean exceeds 1.1x the older mean,
        DECREASING if it is below 0.9x, STABLE otherwise
    """
    if len(values) < min_samples:
        return Trend.STABLE

    recent = values[-TREND_WINDOW:]
    older = values[-2 * TREND_WINDOW:-TREND_WINDOW]
    if not older:
        return Trend.STABLE

    recent_avg = sum(recent) / len(recent)
    older_avg = sum(older) / len(older)

    if recent_avg > older_avg * TREND_UP_RATIO:
        return Trend.INCREASING
    if recent_avg < older_avg * TREND_DOWN_RATIO:
        return Trend.DECREASING
    return Trend.STABLE


def metric_trend(samples: Sequence[ResourceSample], metric: str) -> Trend:
    return calculate_trend([sample.metric(metric) for sample in samples])


def rolling_average(samples: Sequence[ResourceSample], metric: str) -> float:
    """Arithmetic mean of a metric over the whole window (0.0 for an empty window)."""
    if not samples:
        return 0.0
    return sum(sample.metric(metric) for sample in samples) / len(samples)


def high_confidence_rate(confidences: Iterable[float], threshold: float = DEFAULT_HIGH_CONFIDENCE) -> float:
    """
    Share of confidences at or above the threshold, as a fraction in [0, 1].
    """
    total = 0
    high = 0
    for confidence in confidences:
        total += 1
        if confidence >= threshold:
            high += 1
    return high / total if total else 0.0


def _record_order(record: AnalysisRecord) -> Tuple[bool, float]:
    return (record.created_at is None, record.created_at.timestamp() if record.created_at else 0.0)


class HighConfidenceTracker:
    """
    Incremental high-confidence statistics over analysis records.

    Records are identified by id; a record seen in an earlier cycle is
    never counted again, so each ingest only touches the new records.

    The history endpoint returns the most recent analyses, so an id older
    than the oldest record of the latest batch cannot come back. Such ids
    are forgotten after each ingest, which keeps the id set bounded by the
    size of the history window.
    """

    def __init__(self, threshold: float = DEFAULT_HIGH_CONFIDENCE, series_length: int = 50):
        """
        Args:
            threshold: Confidence at or above which a record counts as high
            series_length: Number of most recent points kept in the series
        """
        if series_length < 1:
            raise ValueError("series_length must be at least 1")
        self.threshold = threshold
        self.series_length = series_length
        # id -> created_at epoch seconds (None when unknown)
        self._seen: Dict[str, Optional[float]] = {}
        self._total = 0
        self._high = 0
        self._series: Deque[ConfidencePoint] = deque(maxlen=series_length)

    @property
    def total(self) -> int:
        return self._total

    @property
    def high_count(self) -> int:
        return self._high

    @property
    def rate(self) -> float:
        """Running high-confidence share, 0.0 before any record."""
        return self._high / self._total if self._total else 0.0

    @property
    def retained_ids(self) -> int:
        """Number of record ids remembered for de-duplication."""
        return len(self._seen)

    def ingest(self, records: Iterable[AnalysisRecord]) -> int:
        """
        Add records not seen before, oldest first.

        Returns:
            Number of newly counted records
        """
        batch = list(records)
        fresh: List[AnalysisRecord] = []
        for record in batch:
            if record.id in self._seen:
                continue
            self._seen[record.id] = record.created_at.timestamp() if record.created_at else None
            fresh.append(record)

        for record in sorted(fresh, key=_record_order):
            self._total += 1
            if record.confidence >= self.threshold:
                self._high += 1
            self._series.append(
                ConfidencePoint(
                    timestamp=record.created_at.isoformat() if record.created_at else "",
                    confidence=record.confidence,
                    high_rate=round(self.rate * 100, 2),
                    processed=self._total,
                )
            )

        if fresh:
            logger.debug(f"Ingested {len(fresh)} analysis records, high-confidence rate {self.rate:.3f}")
        self._forget_older_than(batch)
        return len(fresh)

    def series(self) -> Tuple[ConfidencePoint, ...]:
        return tuple(self._series)

    def _forget_older_than(self, batch: List[AnalysisRecord]) -> None:
        dated = [record.created_at.timestamp() for record in batch if record.created_at is not None]
        if not dated:
            return
        cutoff = min(dated)
        current = {record.id for record in batch}
        self._seen = {
            record_id: created
            for record_id, created in self._seen.items()
            if record_id in current or (created is not None and created >= cutoff)
        }

    def reset(self) -> None:
        self._seen.clear()
        self._total = 0
        self._high = 0
        self._series.clear()


def build_confidence_series(
    records: Iterable[AnalysisRecord],
    threshold: float = DEFAULT_HIGH_CONFIDENCE,
    series_length: int = 50,
) -> Tuple[float, Tuple[ConfidencePoint, ...]]:
    """
    Compute the high-confidence rate and series from scratch.

    Returns:
        (rate, series), identical to what a fresh HighConfidenceTracker
        yields after ingesting the same records
    """
    tracker = HighConfidenceTracker(threshold=threshold, series_length=series_length)
    tracker.ingest(records)
    return tracker.rate, tracker.series()


def derive_kpis(
    samples: Sequence[ResourceSample],
    high_confidence: float = 0.0,
    confidence_series: Sequence[ConfidencePoint] = (),
) -> DerivedKPI:
    """
    Derive the KPI snapshot for one cycle.

    Args:
        samples: Window snapshot, time-ordered
        high_confidence: Current high-confidence share in [0, 1]
        confidence_series: Current cumulative confidence series

    Returns:
        DerivedKPI; the same inputs always give an equal result
    """
    return DerivedKPI(
        high_confidence_rate=high_confidence,
        avg_confidence_series=tuple(confidence_series),
        cpu_trend=metric_trend(samples, "cpu"),
        memory_trend=metric_trend(samples, "memory"),
        avg_cpu=rolling_average(samples, "cpu"),
        avg_memory=rolling_average(samples, "memory"),
        latest=samples[-1] if samples else None,
        sample_count=len(samples),
    )
