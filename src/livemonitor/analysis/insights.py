"""
Rule-based insight generation.

The generator is stateless: every rule in the table is evaluated against the
current KPI inputs, each independently of the others, so several insights may
fire together. When none fires, a single "System stable" insight is returned,
which means the output is never empty.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Mapping, Optional, Tuple

from ..adapters.sources import AI_ENGINE, DB_HEALTH, RESOURCES
from ..models.analysis import DerivedKPI, Insight, InsightInputs, Severity, Trend
from ..models.config import InsightThresholds
from ..models.telemetry import AIEngineStats, DBHealth, MetricSnapshot, SystemResources

logger = logging.getLogger(__name__)

# The degradation forecast needs more history than a bare trend.
DEGRADATION_MIN_SAMPLES = 10

STABLE_INSIGHT = Insight(
    title="System stable",
    detail="All monitored indicators are within their normal ranges.",
    severity=Severity.GOOD,
)


@dataclass(frozen=True)
class InsightRule:
    """
    One row of the rule table.

    Attributes:
        title: Title of the produced insight
        severity: Severity of the produced insight
        condition: Predicate over the inputs and thresholds
        detail: Builds the detail text from the inputs and thresholds
    """

    title: str
    severity: Severity
    condition: Callable[[InsightInputs, InsightThresholds], bool]
    detail: Callable[[InsightInputs, InsightThresholds], str]

    def evaluate(self, inputs: InsightInputs, thresholds: InsightThresholds) -> Optional[Insight]:
        if not self.condition(inputs, thresholds):
            return None
        return Insight(title=self.title, detail=self.detail(inputs, thresholds), severity=self.severity)


INSIGHT_RULES: Tuple[InsightRule, ...] = (
    InsightRule(
        title="High Confidence Trend",
        severity=Severity.GOOD,
        condition=lambda i, t: i.success_rate >= t.success_rate_good,
        detail=lambda i, t: f"AI engine success rate is {i.success_rate:.1f}%.",
    ),
    InsightRule(
        title="Declining confidence",
        severity=Severity.WARN,
        condition=lambda i, t: 0 < i.success_rate < t.success_rate_good,
        detail=lambda i, t: (
            f"AI engine success rate dropped to {i.success_rate:.1f}% "
            f"(below {t.success_rate_good:.0f}%)."
        ),
    ),
    InsightRule(
        title="Queue backlog growing",
        severity=Severity.WARN,
        condition=lambda i, t: i.queue_length > t.queue_backlog,
        detail=lambda i, t: f"{i.queue_length} analyses are waiting in the queue.",
    ),
    InsightRule(
        title="Slow response",
        severity=Severity.BAD,
        condition=lambda i, t: i.avg_processing_ms > t.slow_response_ms,
        detail=lambda i, t: (
            f"Average processing time is {i.avg_processing_ms:.0f} ms "
            f"(limit {t.slow_response_ms:.0f} ms)."
        ),
    ),
    InsightRule(
        title="High resource pressure",
        severity=Severity.WARN,
        condition=lambda i, t: i.cpu_pct > t.cpu_pressure_pct or i.mem_pct > t.mem_pressure_pct,
        detail=lambda i, t: f"CPU at {i.cpu_pct:.1f}%, memory at {i.mem_pct:.1f}%.",
    ),
    InsightRule(
        title="Database unavailable",
        severity=Severity.BAD,
        # None means never reported; only an explicit False fires.
        condition=lambda i, t: i.db_healthy is False,
        detail=lambda i, t: "The database connection check is failing.",
    ),
    InsightRule(
        title="Performance degradation predicted",
        severity=Severity.WARN,
        condition=lambda i, t: (
            i.sample_count > DEGRADATION_MIN_SAMPLES
            and i.cpu_trend is Trend.INCREASING
            and i.memory_trend is Trend.INCREASING
        ),
        detail=lambda i, t: "CPU and memory usage are both trending upward.",
    ),
)


def generate_insights(
    inputs: InsightInputs,
    thresholds: InsightThresholds = InsightThresholds(),
    rules: Tuple[InsightRule, ...] = INSIGHT_RULES,
) -> Tuple[Insight, ...]:
    """
    Evaluate every rule against the inputs.

    Args:
        inputs: Current KPI values
        thresholds: Rule thresholds
        rules: Rule table, evaluated top to bottom

    Returns:
        Fired insights in table order, or (STABLE_INSIGHT,) when none fired
    """
    fired: List[Insight] = []
    for rule in rules:
        insight = rule.evaluate(inputs, thresholds)
        if insight is not None:
            fired.append(insight)

    if not fired:
        return (STABLE_INSIGHT,)
    return tuple(fired)


def build_insight_inputs(snapshots: Mapping[str, MetricSnapshot], kpis: DerivedKPI) -> InsightInputs:
    """
    Collect the rule inputs from the current snapshot set and KPIs.

    Resource percentages come from the newest window sample when there is
    one, otherwise from the resources snapshot (fallback zeros when stale
    and never fetched).
    """
    engine = _value_of(snapshots, AI_ENGINE, AIEngineStats)
    db = _value_of(snapshots, DB_HEALTH, DBHealth)
    resources = _value_of(snapshots, RESOURCES, SystemResources)

    if kpis.latest is not None:
        cpu_pct, mem_pct = kpis.latest.cpu_pct, kpis.latest.mem_pct
    elif resources is not None:
        cpu_pct, mem_pct = resources.cpu_pct, resources.mem_pct
    else:
        cpu_pct, mem_pct = 0.0, 0.0

    return InsightInputs(
        success_rate=engine.success_rate if engine else 0.0,
        queue_length=engine.queue_length if engine else 0,
        avg_processing_ms=engine.avg_processing_ms if engine else 0.0,
        cpu_pct=cpu_pct,
        mem_pct=mem_pct,
        db_healthy=db.healthy if db else None,
        cpu_trend=kpis.cpu_trend,
        memory_trend=kpis.memory_trend,
        sample_count=kpis.sample_count,
    )


def _value_of(snapshots: Mapping[str, MetricSnapshot], name: str, expected: type):
    snapshot = snapshots.get(name)
    if snapshot is None or not isinstance(snapshot.value, expected):
        return None
    return snapshot.value
