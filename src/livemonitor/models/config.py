"""
Configuration data models.

This module contains the configuration structures for the monitoring
pipeline: server/polling/window settings, endpoint routes and insight
thresholds, loaded from `config.toml`.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class InsightThresholds:
    """
    Thresholds used by the insight rule table, from `[monitor.insights]`.
    """

    # successRate at or above this is a "High Confidence Trend".
    success_rate_good: float = 85.0
    # More queued AI jobs than this is a backlog.
    queue_backlog: int = 5
    # Average processing time above this (ms) is a slow response.
    slow_response_ms: float = 2000.0
    cpu_pressure_pct: float = 80.0
    mem_pressure_pct: float = 85.0


@dataclass(frozen=True)
class EndpointConfig:
    """
    Routes of the dashboard backend, from the `[endpoints]` table.

    All paths are relative to `MonitorConfig.base_url`.
    """

    processes: str = "/api/system/processes"
    resources: str = "/api/system/resources"
    logs: str = "/api/system/logs"
    metrics: str = "/api/system/metrics"
    db_health: str = "/api/v1/db-test"
    analysis_history: str = "/api/v1/protected/analysis-history"
    user_prompts: str = "/api/v1/protected/user-prompts"
    health: str = "/api/v1/health"
    ai_engine_stats: str = "/api/v1/protected/ai-engine-stats"
    # Server-sent event stream of live log events.
    stream: str = "/api/system/logs/stream"


@dataclass(frozen=True)
class MonitorConfig:
    """
    Configuration for the monitor's behaviour, loaded from `config.toml`.
    """

    # [monitor.server]
    base_url: str = "http://localhost:3000"
    auth_token: str = ""
    stream_enabled: bool = True
    resources_source: str = "http"  # "http" or "local"

    # [monitor.polling]
    interval_seconds: float = 10.0
    # Shorter interval used while the live stream is unavailable.
    fallback_interval_seconds: float = 5.0
    adapter_timeout_seconds: float = 5.0
    poll_on_start: bool = True
    graceful_shutdown_timeout: float = 5.0

    # [monitor.window]
    capacity: int = 20
    max_recent_events: int = 500
    confidence_series_length: int = 50

    # [monitor.kpi]
    high_confidence_threshold: float = 80.0

    # [monitor.insights]
    thresholds: InsightThresholds = field(default_factory=InsightThresholds)


@dataclass(frozen=True)
class AppConfig:
    """
    The root configuration object that aggregates all loaded settings.
    """

    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    endpoints: EndpointConfig = field(default_factory=EndpointConfig)
