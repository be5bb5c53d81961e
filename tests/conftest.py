"""
Pytest configuration and shared fixtures for the livemonitor test suite.

This module provides common fixtures, fake adapters and a scriptable event
stream so that every test runs without a live backend.
"""

import asyncio
import shutil
import sys
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional
from unittest.mock import Mock

import pytest

# Add src to Python path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from livemonitor.adapters.base import AbstractMetricAdapter  # noqa: E402
from livemonitor.models.config import AppConfig, MonitorConfig  # noqa: E402
from livemonitor.monitoring.channel import LiveEventChannel  # noqa: E402


# ============================================================================
# Test Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def sample_config_data():
    """Sample `[monitor]` table for testing."""
    return {
        "server": {
            "base_url": "http://dashboard.test:3000/",
            "auth_token": "secret-token",
            "stream_enabled": True,
            "resources_source": "http",
        },
        "polling": {
            "interval_seconds": 10.0,
            "fallback_interval_seconds": 5.0,
            "adapter_timeout_seconds": 2.0,
            "poll_on_start": True,
            "graceful_shutdown_timeout": 1.0,
        },
        "window": {
            "capacity": 20,
            "max_recent_events": 500,
            "confidence_series_length": 50,
        },
        "kpi": {"high_confidence_threshold": 80.0},
        "insights": {
            "success_rate_good": 85.0,
            "queue_backlog": 5,
            "slow_response_ms": 2000.0,
            "cpu_pressure_pct": 80.0,
            "mem_pressure_pct": 85.0,
        },
    }


@pytest.fixture
def config_files(temp_dir, sample_config_data):
    """Create a temporary config.toml for testing."""
    import toml

    config_file = temp_dir / "config.toml"
    config_data = {
        "monitor": sample_config_data,
        "endpoints": {"health": "/healthz", "stream": "/events"},
    }
    with open(config_file, "w") as f:
        toml.dump(config_data, f)

    return {"config": config_file, "dir": temp_dir}


@pytest.fixture
def fast_config():
    """AppConfig with short intervals, no stream and no immediate poll."""
    return AppConfig(
        monitor=MonitorConfig(
            stream_enabled=False,
            interval_seconds=0.05,
            fallback_interval_seconds=0.02,
            adapter_timeout_seconds=1.0,
            poll_on_start=False,
            graceful_shutdown_timeout=1.0,
        )
    )


# ============================================================================
# Test Doubles
# ============================================================================


class FakeAdapter(AbstractMetricAdapter):
    """
    Scriptable metric adapter.

    `value` may be a callable producing the value; `error` makes every
    fetch fail; `gate` (an asyncio.Event) holds fetches until it is set.
    """

    def __init__(
        self,
        name: str,
        value: Any = None,
        fallback: Any = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        timeout: float = 5.0,
        clock=None,
    ):
        if clock is None:
            super().__init__(timeout=timeout)
        else:
            super().__init__(timeout=timeout, clock=clock)
        self.name = name
        self.value = value
        self.fallback = fallback
        self.error = error
        self.delay = delay
        self.gate: Optional[asyncio.Event] = None
        self.calls = 0

    async def _fetch(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.value() if callable(self.value) else self.value

    def fallback_value(self):
        return self.fallback


class FakeStream:
    """Scriptable server-sent event stream feeding a LiveEventChannel."""

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.connects = 0

    def push(self, *lines: str) -> None:
        for line in lines:
            self.queue.put_nowait(line)

    def push_event(self, payload: str) -> None:
        self.push(f"data: {payload}", "")

    def end(self) -> None:
        self.queue.put_nowait(None)

    def fail(self, error: BaseException) -> None:
        self.queue.put_nowait(error)

    @asynccontextmanager
    async def connect(self):
        self.connects += 1
        yield self._lines()

    async def _lines(self):
        while True:
            item = await self.queue.get()
            if item is None:
                return
            if isinstance(item, BaseException):
                raise item
            yield item


class TestUtils:
    """Utility functions for testing."""

    FakeAdapter = FakeAdapter
    FakeStream = FakeStream

    @staticmethod
    def make_channel(stream: FakeStream, **callbacks) -> LiveEventChannel:
        """LiveEventChannel whose connection is served by `stream`."""
        channel = LiveEventChannel(Mock(), "/api/system/logs/stream", **callbacks)
        channel._connect = stream.connect
        return channel

    @staticmethod
    async def wait_for_condition(predicate, timeout: float = 2.0, step: float = 0.01) -> bool:
        """Poll `predicate` until it is true or `timeout` elapses."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if predicate():
                return True
            await asyncio.sleep(step)
        return predicate()


@pytest.fixture
def test_utils():
    """Provide test utility functions."""
    return TestUtils


@pytest.fixture(autouse=True)
def clear_config_after_test():
    """Automatically clear configuration cache after each test."""
    original_config_path = Path(__file__).parent.parent / "conf" / "config.toml"

    yield  # Run the test

    from livemonitor.config import clear_config_cache, set_config_path

    clear_config_cache()
    # Always reset to original config path
    set_config_path(original_config_path)
