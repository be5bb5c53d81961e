"""
Tests for the KPI derivation engine.
"""

from datetime import datetime, timedelta, timezone

import pytest

from livemonitor.analysis.kpi import (
    HighConfidenceTracker,
    build_confidence_series,
    calculate_trend,
    derive_kpis,
    high_confidence_rate,
    rolling_average,
)
from livemonitor.models.analysis import Trend
from livemonitor.models.telemetry import AnalysisRecord, ResourceSample

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def record(record_id: str, confidence: float, minutes: int = 0) -> AnalysisRecord:
    return AnalysisRecord(
        id=record_id,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        confidence=confidence,
        recommendation="hold",
        file_size=0,
    )


def samples(cpu_values, mem_values=None):
    mem_values = mem_values or [50.0] * len(cpu_values)
    return tuple(
        ResourceSample(timestamp=float(i), cpu_pct=cpu, mem_pct=mem, disk_pct=10.0)
        for i, (cpu, mem) in enumerate(zip(cpu_values, mem_values))
    )


@pytest.mark.unit
class TestCalculateTrend:
    """Test cases for calculate_trend."""

    def test_monotonic_increase(self):
        assert calculate_trend([10, 20, 30, 40, 50, 60]) is Trend.INCREASING

    def test_monotonic_decrease(self):
        assert calculate_trend([60, 50, 40, 30, 20, 10]) is Trend.DECREASING

    def test_constant_sequence_is_stable(self):
        assert calculate_trend([42.0] * 10) is Trend.STABLE

    def test_fewer_than_five_samples_is_stable(self):
        assert calculate_trend([1, 100, 1000, 10000]) is Trend.STABLE
        assert calculate_trend([]) is Trend.STABLE

    def test_five_samples_compare_against_two_older(self):
        # older = [10, 10], recent = [30, 30, 30]
        assert calculate_trend([10, 10, 30, 30, 30]) is Trend.INCREASING

    def test_ten_percent_band_is_stable(self):
        assert calculate_trend([100, 100, 100, 105, 105, 105]) is Trend.STABLE
        assert calculate_trend([100, 100, 100, 95, 95, 95]) is Trend.STABLE

    def test_only_last_six_values_matter(self):
        assert calculate_trend([1000, 1000, 50, 50, 50, 50, 50, 50]) is Trend.STABLE

    def test_deterministic(self):
        values = [3.0, 9.0, 4.0, 12.0, 15.0, 18.0, 2.0]
        assert all(calculate_trend(values) is calculate_trend(values) for _ in range(5))


@pytest.mark.unit
class TestRollingAverageAndRate:
    """Test cases for rolling_average and high_confidence_rate."""

    def test_rolling_average_over_full_window(self):
        window = samples([10.0, 20.0, 30.0], [40.0, 50.0, 60.0])

        assert rolling_average(window, "cpu") == pytest.approx(20.0)
        assert rolling_average(window, "memory") == pytest.approx(50.0)

    def test_rolling_average_empty_window(self):
        assert rolling_average((), "cpu") == 0.0

    def test_rolling_average_unknown_metric(self):
        with pytest.raises(KeyError):
            rolling_average(samples([1.0]), "gpu")

    def test_high_confidence_rate(self):
        assert high_confidence_rate([90, 50, 85], threshold=80) == pytest.approx(2 / 3)
        assert high_confidence_rate([80], threshold=80) == 1.0
        assert high_confidence_rate([]) == 0.0


@pytest.mark.unit
class TestHighConfidenceTracker:
    """Test cases for HighConfidenceTracker."""

    def test_rate_for_mixed_records(self):
        tracker = HighConfidenceTracker(threshold=80)
        tracker.ingest([record("a", 90, 0), record("b", 50, 1), record("c", 85, 2)])

        assert tracker.rate == pytest.approx(2 / 3)
        assert tracker.total == 3
        assert tracker.high_count == 2

    def test_records_are_counted_once(self):
        tracker = HighConfidenceTracker()
        first = [record("a", 90, 0), record("b", 50, 1)]

        assert tracker.ingest(first) == 2
        assert tracker.ingest(first + [record("c", 95, 2)]) == 1
        assert tracker.total == 3
        assert tracker.rate == pytest.approx(2 / 3)

    def test_series_is_cumulative_and_time_ordered(self):
        tracker = HighConfidenceTracker()
        tracker.ingest([record("late", 50, 10), record("early", 90, 0)])

        series = tracker.series()
        assert [p.confidence for p in series] == [90, 50]
        assert [p.high_rate for p in series] == [100.0, 50.0]
        assert [p.processed for p in series] == [1, 2]
        assert series[0].timestamp.startswith("2024-05-01T12:00")

    def test_series_is_bounded(self):
        tracker = HighConfidenceTracker(series_length=3)
        tracker.ingest(record(str(i), 90, i) for i in range(10))

        series = tracker.series()
        assert len(series) == 3
        assert series[-1].processed == 10
        assert tracker.total == 10

    def test_ids_older_than_history_window_are_forgotten(self):
        tracker = HighConfidenceTracker()
        # The history endpoint returns the latest 3 analyses on every poll
        for newest in range(2, 50):
            window = [record(str(i), 90, i) for i in range(newest - 2, newest + 1)]
            tracker.ingest(window)

        assert tracker.total == 50
        assert tracker.retained_ids == 3
        assert tracker.ingest([record("47", 90, 47), record("48", 90, 48), record("49", 90, 49)]) == 0

    def test_undated_records_are_kept_while_returned(self):
        tracker = HighConfidenceTracker()
        undated = AnalysisRecord(id="x", created_at=None, confidence=90.0)

        tracker.ingest([undated, record("a", 90, 0)])
        assert tracker.ingest([undated, record("a", 90, 0)]) == 0
        tracker.ingest([record("b", 90, 1)])

        assert tracker.retained_ids == 1
        assert tracker.total == 3

    def test_empty_tracker(self):
        tracker = HighConfidenceTracker()
        assert tracker.rate == 0.0
        assert tracker.series() == ()

    def test_incremental_matches_from_scratch(self):
        records = [record(str(i), c, i) for i, c in enumerate([91, 40, 83, 79, 80, 99, 12])]

        tracker = HighConfidenceTracker()
        tracker.ingest(records[:3])
        tracker.ingest(records[:5])
        tracker.ingest(records)

        rate, series = build_confidence_series(records)
        assert tracker.rate == pytest.approx(rate)
        assert tracker.series() == series

    def test_reset(self):
        tracker = HighConfidenceTracker()
        tracker.ingest([record("a", 90)])
        tracker.reset()

        assert tracker.total == 0
        assert tracker.ingest([record("a", 90)]) == 1


@pytest.mark.unit
class TestDeriveKpis:
    """Test cases for derive_kpis."""

    def test_derives_trends_averages_and_latest(self):
        window = samples([10, 20, 30, 40, 50, 60], [50, 50, 50, 50, 50, 50])

        kpis = derive_kpis(window, high_confidence=0.5)

        assert kpis.cpu_trend is Trend.INCREASING
        assert kpis.memory_trend is Trend.STABLE
        assert kpis.avg_cpu == pytest.approx(35.0)
        assert kpis.avg_memory == pytest.approx(50.0)
        assert kpis.latest == window[-1]
        assert kpis.high_confidence_rate == 0.5

    def test_empty_window(self):
        kpis = derive_kpis(())

        assert kpis.latest is None
        assert kpis.cpu_trend is Trend.STABLE
        assert kpis.avg_cpu == 0.0

    def test_same_inputs_same_output(self):
        window = samples([5, 9, 14, 3, 77, 12, 40])
        tracker = HighConfidenceTracker()
        tracker.ingest([record("a", 90), record("b", 10, 1)])

        first = derive_kpis(window, tracker.rate, tracker.series())
        second = derive_kpis(window, tracker.rate, tracker.series())

        assert first == second
