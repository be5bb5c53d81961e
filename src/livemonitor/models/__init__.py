"""
Data models and structures for the monitoring pipeline.

Configuration Models:
- Server, polling, window, KPI and insight settings
- Backend endpoint routes

Telemetry Models:
- Resource samples for the sliding window
- Live log events
- Per-source metric snapshots and their typed values

Analysis Models:
- Derived KPIs, trends and confidence series
- Qualitative insights

Runtime Models:
- Controller and channel states
- Poll cycle results and the dashboard snapshot

All models are frozen dataclasses; consumers only ever see immutable values.
"""

from .config import AppConfig, EndpointConfig, InsightThresholds, MonitorConfig

from .telemetry import (
    AIEngineStats,
    AnalysisHistorySummary,
    AnalysisRecord,
    DBHealth,
    LiveEvent,
    LiveLogLevel,
    MetricSnapshot,
    ProcessInfo,
    PromptSummary,
    ResourceSample,
    SecurityScore,
    SystemMetrics,
    SystemResources,
)

from .analysis import (
    ConfidencePoint,
    DerivedKPI,
    Insight,
    InsightInputs,
    Severity,
    Trend,
)

from .runtime import (
    ChannelState,
    DashboardSnapshot,
    MonitoringState,
    PollCycleResult,
)

__all__ = [
    # Configuration
    "AppConfig",
    "EndpointConfig",
    "InsightThresholds",
    "MonitorConfig",
    # Telemetry
    "AIEngineStats",
    "AnalysisHistorySummary",
    "AnalysisRecord",
    "DBHealth",
    "LiveEvent",
    "LiveLogLevel",
    "MetricSnapshot",
    "ProcessInfo",
    "PromptSummary",
    "ResourceSample",
    "SecurityScore",
    "SystemMetrics",
    "SystemResources",
    # Analysis
    "ConfidencePoint",
    "DerivedKPI",
    "Insight",
    "InsightInputs",
    "Severity",
    "Trend",
    # Runtime
    "ChannelState",
    "DashboardSnapshot",
    "MonitoringState",
    "PollCycleResult",
]
