"""
Telemetry data models.

Immutable records produced by the metric sources and the live event stream:
resource samples for the sliding window, live log events, per-source metric
snapshots and the typed values each source yields.
"""

import math
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Generic, Mapping, Optional, Tuple, TypeVar

T = TypeVar("T")


def _check_pct(name: str, value: float) -> None:
    if not 0.0 <= value <= 100.0:
        raise ValueError(f"{name} must be within [0, 100], got {value}")


def clamp_pct(value: Any) -> float:
    """Coerce a payload value into a percentage in [0, 100]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return max(0.0, min(100.0, number))


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO 8601 string or epoch milliseconds into an aware datetime.

    Returns None when the value cannot be interpreted.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


@dataclass(frozen=True)
class ResourceSample:
    """
    One point of the resource time series.

    Attributes:
        timestamp: Epoch seconds at which the sample was taken
        cpu_pct: CPU usage percentage
        mem_pct: Memory usage percentage
        disk_pct: Disk usage percentage
        network_connections: Number of open network connections
    """

    timestamp: float
    cpu_pct: float
    mem_pct: float
    disk_pct: float
    network_connections: int = 0

    def __post_init__(self):
        _check_pct("cpu_pct", self.cpu_pct)
        _check_pct("mem_pct", self.mem_pct)
        _check_pct("disk_pct", self.disk_pct)
        if self.network_connections < 0:
            raise ValueError("network_connections must be non-negative")

    def metric(self, name: str) -> float:
        """Return a metric by its short name ('cpu', 'memory', 'disk', 'network')."""
        if name == "cpu":
            return self.cpu_pct
        if name == "memory":
            return self.mem_pct
        if name == "disk":
            return self.disk_pct
        if name == "network":
            return float(self.network_connections)
        raise KeyError(f"Unknown resource metric: {name}")


class LiveLogLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    DEBUG = "debug"

    @classmethod
    def parse(cls, value: Any) -> "LiveLogLevel":
        """Lower-case lookup; anything unknown becomes INFO."""
        try:
            return cls(str(value or "info").lower())
        except ValueError:
            return cls.INFO


@dataclass(frozen=True)
class LiveEvent:
    """A discrete log/telemetry event pushed by the server or polled from the log endpoint."""

    id: str
    timestamp: str
    level: LiveLogLevel
    message: str
    source: str = "server"
    details: Any = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "LiveEvent":
        """
        Build a normalized event from a decoded JSON object.

        Missing fields get the defaults the backend uses: a generated id,
        the current time, level 'info' and source 'server'.
        """
        event_id = data.get("id")
        timestamp = data.get("timestamp")
        return cls(
            id=str(event_id) if event_id not in (None, "") else f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}",
            timestamp=str(timestamp) if timestamp else utc_now_iso(),
            level=LiveLogLevel.parse(data.get("level")),
            message=str(data.get("message") or ""),
            source=str(data.get("source") or "server"),
            details=data.get("details"),
        )


@dataclass(frozen=True)
class MetricSnapshot(Generic[T]):
    """
    The latest value of one metric source.

    Attributes:
        source: Adapter name the value came from
        value: Typed value (previous good value or fallback when stale)
        as_of: Epoch seconds at which `value` was obtained
        stale: True when the most recent fetch failed
        error: The failure behind a stale snapshot
    """

    source: str
    value: T
    as_of: float
    stale: bool = False
    error: Optional[BaseException] = field(default=None, compare=False)


@dataclass(frozen=True)
class SystemResources:
    """Host resource usage as reported by the resources endpoint."""

    cpu_pct: float = 0.0
    cpu_cores: int = 0
    cpu_temperature: float = 0.0
    mem_pct: float = 0.0
    mem_total_mb: float = 0.0
    mem_used_mb: float = 0.0
    disk_pct: float = 0.0
    network_connections: int = 0
    network_bytes_in: int = 0
    network_bytes_out: int = 0

    def to_sample(self, timestamp: float) -> ResourceSample:
        return ResourceSample(
            timestamp=timestamp,
            cpu_pct=clamp_pct(self.cpu_pct),
            mem_pct=clamp_pct(self.mem_pct),
            disk_pct=clamp_pct(self.disk_pct),
            network_connections=max(0, int(self.network_connections)),
        )


@dataclass(frozen=True)
class ProcessInfo:
    id: str
    name: str
    status: str  # running / stopped / error
    cpu: float = 0.0
    memory: float = 0.0
    start_time: str = ""
    uptime: str = ""
    description: str = ""


@dataclass(frozen=True)
class SystemMetrics:
    uptime_seconds: float = 0.0
    response_time_ms: float = 0.0
    timestamp: str = ""


@dataclass(frozen=True)
class AIEngineStats:
    """
    AI engine statistics.

    Attributes:
        queue_length: Jobs waiting to be processed
        success_rate: Percentage of successful analyses
        avg_processing_ms: Mean processing time in milliseconds
        healthy: Engine self-reported health
    """

    queue_length: int = 0
    success_rate: float = 0.0
    avg_processing_ms: float = 0.0
    healthy: bool = False


@dataclass(frozen=True)
class DBHealth:
    healthy: bool = False


@dataclass(frozen=True)
class SecurityScore:
    """Security-header score: `required` counts required headers present, `present` all headers present."""

    score: int = 0
    required: int = 0
    present: int = 0


@dataclass(frozen=True)
class AnalysisRecord:
    """One chart analysis from the analysis history."""

    id: str
    created_at: Optional[datetime]
    confidence: float = 0.0
    recommendation: str = ""
    file_size: int = 0

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "AnalysisRecord":
        confidence = _as_float(data.get("confidenceLevel"))
        if not confidence:
            analysis = _nested(data, "aiResponse", "analysis")
            confidence = _as_float(analysis.get("confidence"))
        created_at = parse_timestamp(data.get("createdAt"))
        recommendation = str(data.get("recommendation") or "").lower()
        file_size = int(_as_float(data.get("fileSize")))
        record_id = data.get("id")
        if record_id in (None, ""):
            # Stable across polls so incremental KPIs do not count it twice.
            record_id = f"{data.get('createdAt', '')}|{recommendation}|{confidence}|{file_size}"
        return cls(
            id=str(record_id),
            created_at=created_at,
            confidence=confidence,
            recommendation=recommendation,
            file_size=file_size,
        )


@dataclass(frozen=True)
class AnalysisHistorySummary:
    total: int = 0
    today: int = 0
    by_recommendation: Mapping[str, int] = field(
        default_factory=lambda: MappingProxyType({"buy": 0, "sell": 0, "hold": 0})
    )
    avg_confidence: float = 0.0
    storage_bytes: int = 0
    records: Tuple[AnalysisRecord, ...] = ()


@dataclass(frozen=True)
class PromptSummary:
    count: int = 0


def _nested(data: Mapping[str, Any], *keys: str) -> Mapping[str, Any]:
    current: Any = data
    for key in keys:
        current = current.get(key) if isinstance(current, Mapping) else None
    return current if isinstance(current, Mapping) else {}


def _as_float(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0
