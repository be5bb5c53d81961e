"""
HTTP metric source adapters for the dashboard backend.

One adapter per polled route. Each parses the backend's JSON payload into
a typed, immutable value; anything unexpected in the payload is a fetch
failure and leads to a stale snapshot.
"""

import logging
from abc import abstractmethod
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from ..models.telemetry import (
    AIEngineStats,
    AnalysisHistorySummary,
    AnalysisRecord,
    DBHealth,
    LiveEvent,
    ProcessInfo,
    PromptSummary,
    SecurityScore,
    SystemMetrics,
    SystemResources,
)
from ..validation import TransientFetchError
from .base import AbstractMetricAdapter, T
from .http import ApiClient

logger = logging.getLogger(__name__)

# Source names, also the keys of the controller's snapshot set.
PROCESSES = "processes"
RESOURCES = "resources"
LOGS = "logs"
METRICS = "metrics"
DB_HEALTH = "db_health"
ANALYSIS_HISTORY = "analysis_history"
USER_PROMPTS = "user_prompts"
SECURITY = "security"
AI_ENGINE = "ai_engine"

REQUIRED_SECURITY_HEADERS = ("x-content-type-options", "x-frame-options", "x-xss-protection")
RECOMMENDED_SECURITY_HEADERS = (
    "strict-transport-security",
    "content-security-policy",
    "referrer-policy",
    "permissions-policy",
)


class HttpMetricAdapter(AbstractMetricAdapter[T]):
    """
    Adapter reading one JSON route through the shared ApiClient.
    """

    def __init__(self, client: ApiClient, path: str, timeout: float = 5.0, **kwargs):
        super().__init__(timeout=timeout, **kwargs)
        self.client = client
        self.path = path

    async def _fetch(self) -> T:
        payload = await self.client.get_json(self.path, self.name)
        if not isinstance(payload, Mapping):
            raise TransientFetchError(self.name, f"expected a JSON object, got {type(payload).__name__}")
        return self.parse(payload)

    @abstractmethod
    def parse(self, payload: Mapping[str, Any]) -> T:
        """Convert a decoded payload into the typed value."""


class ProcessesAdapter(HttpMetricAdapter[Tuple[ProcessInfo, ...]]):
    name = PROCESSES

    def parse(self, payload: Mapping[str, Any]) -> Tuple[ProcessInfo, ...]:
        entries = payload.get("processes") or []
        if not isinstance(entries, list):
            raise TransientFetchError(self.name, "'processes' is not a list")
        return tuple(
            ProcessInfo(
                id=str(entry.get("id", "")),
                name=str(entry.get("name", "")),
                status=str(entry.get("status", "stopped")),
                cpu=_number(entry.get("cpu")),
                memory=_number(entry.get("memory")),
                start_time=str(entry.get("startTime", "")),
                uptime=str(entry.get("uptime", "")),
                description=str(entry.get("description", "")),
            )
            for entry in entries
            if isinstance(entry, Mapping)
        )

    def fallback_value(self) -> Tuple[ProcessInfo, ...]:
        return ()


class ResourcesAdapter(HttpMetricAdapter[SystemResources]):
    name = RESOURCES

    def parse(self, payload: Mapping[str, Any]) -> SystemResources:
        resources = payload.get("resources")
        if not isinstance(resources, Mapping):
            raise TransientFetchError(self.name, "payload has no 'resources' object")

        cpu = _section(resources, "cpu")
        memory = _section(resources, "memory")
        disk = _section(resources, "disk")
        network = _section(resources, "network")
        return SystemResources(
            cpu_pct=_number(cpu.get("usage")),
            cpu_cores=int(_number(cpu.get("cores"))),
            cpu_temperature=_number(cpu.get("temperature")),
            mem_pct=_number(memory.get("usage")),
            mem_total_mb=_number(memory.get("total")),
            mem_used_mb=_number(memory.get("used")),
            disk_pct=_number(disk.get("usage")),
            network_connections=max(0, int(_number(network.get("connections")))),
            network_bytes_in=int(_number(network.get("bytesIn"))),
            network_bytes_out=int(_number(network.get("bytesOut"))),
        )

    def fallback_value(self) -> SystemResources:
        return SystemResources()


class LogsAdapter(HttpMetricAdapter[Tuple[LiveEvent, ...]]):
    name = LOGS

    def parse(self, payload: Mapping[str, Any]) -> Tuple[LiveEvent, ...]:
        entries = payload.get("logs") or []
        if not isinstance(entries, list):
            raise TransientFetchError(self.name, "'logs' is not a list")
        return tuple(LiveEvent.from_payload(entry) for entry in entries if isinstance(entry, Mapping))

    def fallback_value(self) -> Tuple[LiveEvent, ...]:
        return ()


class SystemMetricsAdapter(HttpMetricAdapter[SystemMetrics]):
    """Uptime and API response time."""

    name = METRICS

    def parse(self, payload: Mapping[str, Any]) -> SystemMetrics:
        metrics = payload.get("metrics")
        if not isinstance(metrics, Mapping):
            raise TransientFetchError(self.name, "payload has no 'metrics' object")
        return SystemMetrics(
            uptime_seconds=_number(metrics.get("uptime")),
            response_time_ms=_number(metrics.get("responseTime")),
            timestamp=str(metrics.get("timestamp", "")),
        )

    def fallback_value(self) -> SystemMetrics:
        return SystemMetrics()


class DBHealthAdapter(HttpMetricAdapter[DBHealth]):
    name = DB_HEALTH

    def parse(self, payload: Mapping[str, Any]) -> DBHealth:
        return DBHealth(healthy=bool(payload.get("connectionHealthy")))

    def fallback_value(self) -> DBHealth:
        # An unreachable health route cannot vouch for the database.
        return DBHealth(healthy=False)


class AnalysisHistoryAdapter(HttpMetricAdapter[AnalysisHistorySummary]):
    """
    Analysis history: totals, today's count, recommendation split,
    average confidence, stored bytes and the individual records.
    """

    name = ANALYSIS_HISTORY

    def __init__(self, client: ApiClient, path: str, timeout: float = 5.0,
                 today: Optional[Callable[[], date]] = None, **kwargs):
        super().__init__(client, path, timeout=timeout, **kwargs)
        self._today = today or (lambda: datetime.now().astimezone().date())

    def parse(self, payload: Mapping[str, Any]) -> AnalysisHistorySummary:
        entries = payload.get("analyses")
        if not isinstance(entries, list):
            entries = []
        records = tuple(AnalysisRecord.from_payload(entry) for entry in entries if isinstance(entry, Mapping))

        count = payload.get("count")
        total = count if isinstance(count, int) and not isinstance(count, bool) else len(records)

        today = self._today()
        today_count = sum(
            1 for record in records
            if record.created_at is not None and record.created_at.astimezone().date() == today
        )

        by_recommendation: Dict[str, int] = {"buy": 0, "sell": 0, "hold": 0}
        for record in records:
            if record.recommendation in by_recommendation:
                by_recommendation[record.recommendation] += 1

        avg_confidence = sum(r.confidence for r in records) / len(records) if records else 0.0

        return AnalysisHistorySummary(
            total=total,
            today=today_count,
            by_recommendation=MappingProxyType(by_recommendation),
            avg_confidence=avg_confidence,
            storage_bytes=sum(r.file_size for r in records),
            records=records,
        )

    def fallback_value(self) -> AnalysisHistorySummary:
        return AnalysisHistorySummary()


class UserPromptsAdapter(HttpMetricAdapter[PromptSummary]):
    name = USER_PROMPTS

    def parse(self, payload: Mapping[str, Any]) -> PromptSummary:
        count = payload.get("count")
        if isinstance(count, int) and not isinstance(count, bool):
            return PromptSummary(count=count)
        prompts = payload.get("prompts")
        if isinstance(prompts, list):
            return PromptSummary(count=len(prompts))
        raise TransientFetchError(self.name, "payload has neither 'count' nor 'prompts'")

    def fallback_value(self) -> PromptSummary:
        return PromptSummary()


class AIEngineStatsAdapter(HttpMetricAdapter[AIEngineStats]):
    name = AI_ENGINE

    def parse(self, payload: Mapping[str, Any]) -> AIEngineStats:
        if not payload.get("success"):
            raise TransientFetchError(self.name, "AI engine stats request was not successful")
        stats = _section(payload, "stats")
        return AIEngineStats(
            queue_length=max(0, int(_number(stats.get("queueLength")))),
            success_rate=_number(stats.get("successRate")),
            avg_processing_ms=_number(stats.get("averageProcessingTime")),
            healthy=bool(payload.get("health")),
        )

    def fallback_value(self) -> AIEngineStats:
        return AIEngineStats()


class SecurityHeadersAdapter(AbstractMetricAdapter[SecurityScore]):
    """
    Scores the security headers returned by the health route.

    Required headers weigh 70%, recommended ones 30%.
    """

    name = SECURITY

    def __init__(self, client: ApiClient, path: str, timeout: float = 5.0, **kwargs):
        super().__init__(timeout=timeout, **kwargs)
        self.client = client
        self.path = path

    async def _fetch(self) -> SecurityScore:
        headers = await self.client.get_headers(self.path, self.name)
        return score_security_headers(headers)

    def fallback_value(self) -> SecurityScore:
        return SecurityScore()


def score_security_headers(headers: Mapping[str, str]) -> SecurityScore:
    """
    Compute the security score from a set of response header names.
    """
    names = {name.lower() for name in headers}
    required = sum(1 for h in REQUIRED_SECURITY_HEADERS if h in names)
    recommended = sum(1 for h in RECOMMENDED_SECURITY_HEADERS if h in names)
    raw = (required / len(REQUIRED_SECURITY_HEADERS)) * 70 + (recommended / len(RECOMMENDED_SECURITY_HEADERS)) * 30
    score = max(0, min(100, int(raw + 0.5)))
    return SecurityScore(score=score, required=required, present=required + recommended)


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    return value if isinstance(value, Mapping) else {}


def _number(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if number == number and abs(number) != float("inf") else 0.0
