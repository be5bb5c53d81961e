"""
Tests for the metric source adapters.
"""

import asyncio
from collections import namedtuple
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock, patch

import psutil
import pytest

from livemonitor.adapters import (
    AdapterFactory,
    AIEngineStatsAdapter,
    AnalysisHistoryAdapter,
    DBHealthAdapter,
    LogsAdapter,
    ProcessesAdapter,
    PsutilResourceAdapter,
    ResourcesAdapter,
    SecurityHeadersAdapter,
    SystemMetricsAdapter,
    UserPromptsAdapter,
    score_security_headers,
)
from livemonitor.models.config import AppConfig, MonitorConfig
from livemonitor.models.telemetry import (
    AIEngineStats,
    DBHealth,
    LiveLogLevel,
    PromptSummary,
    SystemResources,
)
from livemonitor.validation import TransientFetchError

RESOURCES_PAYLOAD = {
    "success": True,
    "resources": {
        "cpu": {"usage": 42.5, "cores": 8, "temperature": 55},
        "memory": {"usage": 63.0, "total": 16384, "used": 10322},
        "disk": {"usage": 71.2, "total": 512, "used": 364},
        "network": {"connections": 17, "bytesIn": 1000, "bytesOut": 2000},
    },
}


def json_client(payload=None, error=None):
    client = Mock()
    client.get_json = AsyncMock(return_value=payload, side_effect=error)
    client.get_headers = AsyncMock()
    return client


def clock_from(*values):
    ticks = iter(values)
    return lambda: next(ticks)


@pytest.mark.unit
class TestAdapterContract:
    """The fetch contract shared by every adapter."""

    @pytest.mark.asyncio
    async def test_success_returns_fresh_snapshot(self):
        client = json_client(RESOURCES_PAYLOAD)
        adapter = ResourcesAdapter(client, "/api/system/resources", clock=lambda: 100.0)

        snapshot = await adapter.fetch()

        assert snapshot.source == "resources"
        assert snapshot.stale is False
        assert snapshot.as_of == 100.0
        assert snapshot.value.cpu_pct == 42.5
        assert adapter.last_good == snapshot
        client.get_json.assert_awaited_once_with("/api/system/resources", "resources")

    @pytest.mark.asyncio
    async def test_first_failure_serves_marked_fallback(self):
        client = json_client(error=TransientFetchError("db_health", "HTTP 503", status=503))
        adapter = DBHealthAdapter(client, "/api/v1/db-test")

        snapshot = await adapter.fetch()

        assert snapshot.stale is True
        assert snapshot.value == DBHealth(healthy=False)
        assert isinstance(snapshot.error, TransientFetchError)
        assert snapshot.error.status == 503

    @pytest.mark.asyncio
    async def test_failure_after_success_serves_previous_value(self):
        client = json_client(RESOURCES_PAYLOAD)
        adapter = ResourcesAdapter(client, "/r", clock=clock_from(10.0, 20.0))
        good = await adapter.fetch()

        client.get_json.side_effect = ConnectionResetError("peer reset")
        stale = await adapter.fetch()

        assert stale.stale is True
        assert stale.value == good.value
        assert stale.as_of == 10.0
        assert isinstance(stale.error, TransientFetchError)
        assert "ConnectionResetError" in str(stale.error)

    @pytest.mark.asyncio
    async def test_timeout_becomes_transient_error(self):
        async def hang(*args):
            await asyncio.sleep(10)

        client = Mock()
        client.get_json = AsyncMock(side_effect=hang)
        adapter = SystemMetricsAdapter(client, "/m", timeout=0.05)

        snapshot = await adapter.fetch()

        assert snapshot.stale is True
        assert "timed out" in str(snapshot.error)

    @pytest.mark.asyncio
    async def test_non_object_payload_is_a_failure(self):
        adapter = ProcessesAdapter(json_client(["not", "an", "object"]), "/p")

        snapshot = await adapter.fetch()

        assert snapshot.stale is True
        assert snapshot.value == ()

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            ProcessesAdapter(json_client(), "/p", timeout=0)


@pytest.mark.unit
class TestPayloadParsing:
    """Payload parsing of the individual HTTP adapters."""

    def test_resources(self):
        value = ResourcesAdapter(Mock(), "/r").parse(RESOURCES_PAYLOAD)

        assert value == SystemResources(
            cpu_pct=42.5, cpu_cores=8, cpu_temperature=55.0, mem_pct=63.0,
            mem_total_mb=16384.0, mem_used_mb=10322.0, disk_pct=71.2,
            network_connections=17, network_bytes_in=1000, network_bytes_out=2000,
        )

    def test_resources_without_section_raises(self):
        with pytest.raises(TransientFetchError):
            ResourcesAdapter(Mock(), "/r").parse({"success": False})

    def test_processes(self):
        payload = {"processes": [
            {"id": "server", "name": "API Server", "status": "running", "cpu": 12.1, "memory": 256,
             "startTime": "2024-01-01T00:00:00Z", "uptime": "2h", "description": "Express"},
            "garbage",
        ]}

        processes = ProcessesAdapter(Mock(), "/p").parse(payload)

        assert len(processes) == 1
        assert processes[0].name == "API Server"
        assert processes[0].cpu == 12.1

    def test_logs_are_normalized(self):
        payload = {"logs": [{"message": "boot", "level": "WARNING"}, {"id": "x", "message": "ok"}]}

        events = LogsAdapter(Mock(), "/l").parse(payload)

        assert events[0].level is LiveLogLevel.WARNING
        assert events[0].source == "server"
        assert events[0].id
        assert events[1].id == "x"

    def test_metrics(self):
        value = SystemMetricsAdapter(Mock(), "/m").parse({"metrics": {"uptime": 3600, "responseTime": 87}})

        assert value.uptime_seconds == 3600.0
        assert value.response_time_ms == 87.0

    def test_db_health(self):
        adapter = DBHealthAdapter(Mock(), "/db")

        assert adapter.parse({"connectionHealthy": True}) == DBHealth(healthy=True)
        assert adapter.parse({}) == DBHealth(healthy=False)

    def test_ai_engine_stats(self):
        payload = {"success": True, "health": True,
                   "stats": {"queueLength": 3, "successRate": 92.5, "averageProcessingTime": 1400}}

        value = AIEngineStatsAdapter(Mock(), "/ai").parse(payload)

        assert value == AIEngineStats(queue_length=3, success_rate=92.5, avg_processing_ms=1400.0, healthy=True)

    def test_ai_engine_unsuccessful_response_raises(self):
        with pytest.raises(TransientFetchError):
            AIEngineStatsAdapter(Mock(), "/ai").parse({"success": False, "error": "not authorized"})

    def test_user_prompts(self):
        adapter = UserPromptsAdapter(Mock(), "/up")

        assert adapter.parse({"count": 4}) == PromptSummary(count=4)
        assert adapter.parse({"prompts": [{}, {}]}) == PromptSummary(count=2)
        with pytest.raises(TransientFetchError):
            adapter.parse({})

    def test_analysis_history_summary(self):
        payload = {
            "count": 40,
            "analyses": [
                {"id": "1", "createdAt": "2024-05-01T10:00:00", "confidenceLevel": 90,
                 "recommendation": "BUY", "fileSize": 100},
                {"id": "2", "createdAt": "2024-05-01T11:00:00",
                 "aiResponse": {"analysis": {"confidence": 70}}, "recommendation": "sell", "fileSize": 50},
                {"id": "3", "createdAt": "2024-04-30T09:00:00", "confidenceLevel": 80,
                 "recommendation": "hold"},
            ],
        }
        adapter = AnalysisHistoryAdapter(Mock(), "/h", today=lambda: date(1999, 1, 1))

        summary = adapter.parse(payload)

        assert summary.total == 40
        assert summary.today == 0
        assert dict(summary.by_recommendation) == {"buy": 1, "sell": 1, "hold": 1}
        assert summary.avg_confidence == pytest.approx(80.0)
        assert summary.storage_bytes == 150
        assert [r.confidence for r in summary.records] == [90.0, 70.0, 80.0]

    def test_analysis_history_counts_todays_records(self):
        now = datetime.now(timezone.utc)
        payload = {"analyses": [
            {"id": "new", "createdAt": now.isoformat()},
            {"id": "old", "createdAt": (now - timedelta(days=3)).isoformat()},
        ]}

        summary = AnalysisHistoryAdapter(Mock(), "/h").parse(payload)

        assert summary.today == 1

    def test_analysis_history_total_defaults_to_record_count(self):
        summary = AnalysisHistoryAdapter(Mock(), "/h").parse({"analyses": [{"id": "1"}]})

        assert summary.total == 1
        assert summary.avg_confidence == 0.0


@pytest.mark.unit
class TestSecurityScore:
    """Test cases for the security-header score."""

    ALL_HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "X-XSS-Protection": "1; mode=block",
        "Strict-Transport-Security": "max-age=63072000",
        "Content-Security-Policy": "default-src 'self'",
        "Referrer-Policy": "no-referrer",
        "Permissions-Policy": "camera=()",
    }

    def test_all_headers(self):
        score = score_security_headers(self.ALL_HEADERS)

        assert (score.score, score.required, score.present) == (100, 3, 7)

    def test_required_only(self):
        required = {k: v for k, v in self.ALL_HEADERS.items() if k.startswith("X-")}

        assert score_security_headers(required).score == 70

    def test_partial(self):
        headers = {"x-frame-options": "DENY", "x-xss-protection": "1", "referrer-policy": "no-referrer"}

        score = score_security_headers(headers)

        # 2/3 * 70 + 1/4 * 30 = 54.17
        assert (score.score, score.required, score.present) == (54, 2, 3)

    def test_no_headers(self):
        assert score_security_headers({}).score == 0

    @pytest.mark.asyncio
    async def test_adapter_scores_health_route_headers(self):
        client = Mock()
        client.get_headers = AsyncMock(return_value={k.lower(): v for k, v in self.ALL_HEADERS.items()})
        adapter = SecurityHeadersAdapter(client, "/api/v1/health")

        snapshot = await adapter.fetch()

        assert snapshot.value.score == 100
        client.get_headers.assert_awaited_once_with("/api/v1/health", "security")


@pytest.mark.unit
class TestPsutilResourceAdapter:
    """Test cases for the local resource source."""

    VirtualMemory = namedtuple("VirtualMemory", "percent total used")
    DiskUsage = namedtuple("DiskUsage", "percent")
    NetIO = namedtuple("NetIO", "bytes_recv bytes_sent")

    @pytest.fixture
    def fake_psutil(self):
        with (
            patch.object(psutil, "cpu_percent", return_value=37.5),
            patch.object(psutil, "cpu_count", return_value=4),
            patch.object(psutil, "virtual_memory",
                         return_value=self.VirtualMemory(61.0, 8 * 1024 ** 3, 5 * 1024 ** 3)),
            patch.object(psutil, "disk_usage", return_value=self.DiskUsage(44.0)),
            patch.object(psutil, "net_connections", return_value=[object()] * 6) as net_connections,
            patch.object(psutil, "net_io_counters", return_value=self.NetIO(10, 20)),
        ):
            yield net_connections

    @pytest.mark.asyncio
    async def test_samples_host(self, fake_psutil):
        adapter = PsutilResourceAdapter(timeout=2.0)

        snapshot = await adapter.fetch()

        assert snapshot.stale is False
        assert snapshot.value.cpu_pct == 37.5
        assert snapshot.value.mem_pct == 61.0
        assert snapshot.value.mem_total_mb == 8192.0
        assert snapshot.value.disk_pct == 44.0
        assert snapshot.value.network_connections == 6
        assert snapshot.source == "resources"

    @pytest.mark.asyncio
    async def test_connection_listing_denied(self, fake_psutil):
        fake_psutil.side_effect = psutil.AccessDenied()
        adapter = PsutilResourceAdapter(timeout=2.0)

        snapshot = await adapter.fetch()

        assert snapshot.stale is False
        assert snapshot.value.network_connections == 0


@pytest.mark.unit
class TestAdapterFactory:
    """Test cases for AdapterFactory."""

    def test_creates_one_adapter_per_source(self):
        factory = AdapterFactory(AppConfig(), Mock(base_url="http://x"))

        adapters = factory.create_adapters()
        names = [a.name for a in adapters]

        assert names == [
            "processes", "resources", "logs", "metrics", "db_health",
            "analysis_history", "user_prompts", "security", "ai_engine",
        ]
        assert isinstance(adapters[1], ResourcesAdapter)
        assert all(a.timeout == 5.0 for a in adapters)

    def test_local_resource_source(self):
        config = AppConfig(monitor=MonitorConfig(resources_source="local", adapter_timeout_seconds=2.0))

        with patch.object(psutil, "cpu_percent", return_value=0.0):
            adapter = AdapterFactory(config, Mock(base_url="http://x")).create_resources_adapter()

        assert isinstance(adapter, PsutilResourceAdapter)
        assert adapter.timeout == 2.0

    def test_unknown_resource_source(self):
        config = AppConfig(monitor=MonitorConfig(resources_source="snmp"))

        with pytest.raises(ValueError):
            AdapterFactory(config, Mock()).create_resources_adapter()
