"""
Metric source adapters.

Each adapter wraps one external data source behind a uniform
`fetch() -> MetricSnapshot` contract:

- HTTP adapters for every route of the dashboard backend
  (processes, resources, logs, metrics, database health, analysis history,
  user prompts, security headers, AI engine statistics)
- A psutil-backed resources adapter sampling the local host
- A factory assembling the adapter set from configuration

Failures never escape an adapter: they become stale snapshots.
"""

from .base import AbstractMetricAdapter
from .http import ApiClient
from .sources import (
    AI_ENGINE,
    ANALYSIS_HISTORY,
    DB_HEALTH,
    LOGS,
    METRICS,
    PROCESSES,
    RESOURCES,
    SECURITY,
    USER_PROMPTS,
    AIEngineStatsAdapter,
    AnalysisHistoryAdapter,
    DBHealthAdapter,
    HttpMetricAdapter,
    LogsAdapter,
    ProcessesAdapter,
    ResourcesAdapter,
    SecurityHeadersAdapter,
    SystemMetricsAdapter,
    UserPromptsAdapter,
    score_security_headers,
)
from .local import PsutilResourceAdapter
from .factory import AdapterFactory

__all__ = [
    "AbstractMetricAdapter",
    "ApiClient",
    "AdapterFactory",
    "HttpMetricAdapter",
    "PsutilResourceAdapter",
    # Source adapters
    "AIEngineStatsAdapter",
    "AnalysisHistoryAdapter",
    "DBHealthAdapter",
    "LogsAdapter",
    "ProcessesAdapter",
    "ResourcesAdapter",
    "SecurityHeadersAdapter",
    "SystemMetricsAdapter",
    "UserPromptsAdapter",
    "score_security_headers",
    # Source names
    "AI_ENGINE",
    "ANALYSIS_HISTORY",
    "DB_HEALTH",
    "LOGS",
    "METRICS",
    "PROCESSES",
    "RESOURCES",
    "SECURITY",
    "USER_PROMPTS",
]
