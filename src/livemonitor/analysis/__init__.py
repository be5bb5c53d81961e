"""
Analysis layer: KPI derivation and insight generation.

Everything here is deterministic. KPI functions are pure over the window
snapshot and the analysis records; the HighConfidenceTracker keeps the
running high-confidence counters between cycles. The insight generator maps
the current KPIs to qualitative insights through a rule table.
"""

from .insights import (
    INSIGHT_RULES,
    STABLE_INSIGHT,
    InsightRule,
    build_insight_inputs,
    generate_insights,
)
from .kpi import (
    HighConfidenceTracker,
    build_confidence_series,
    calculate_trend,
    derive_kpis,
    high_confidence_rate,
    metric_trend,
    rolling_average,
)

__all__ = [
    # KPI engine
    "HighConfidenceTracker",
    "build_confidence_series",
    "calculate_trend",
    "derive_kpis",
    "high_confidence_rate",
    "metric_trend",
    "rolling_average",
    # Insight generator
    "INSIGHT_RULES",
    "STABLE_INSIGHT",
    "InsightRule",
    "build_insight_inputs",
    "generate_insights",
]
