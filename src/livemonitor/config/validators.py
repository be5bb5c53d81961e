"""
Configuration validation utilities.

This module turns the raw `[monitor]` and `[endpoints]` tables into
validated configuration dataclasses.
"""

import logging
from dataclasses import fields
from typing import Any, Dict

from ..models.config import AppConfig, EndpointConfig, InsightThresholds, MonitorConfig
from ..validation import (
    ValidationError,
    validate_base_url,
    validate_boolean,
    validate_endpoint_path,
    validate_enum_choice,
    validate_positive_float,
    validate_positive_integer,
)

logger = logging.getLogger(__name__)

RESOURCE_SOURCES = ["http", "local"]


def validate_monitor_config(monitor_data: Dict[str, Any]) -> MonitorConfig:
    """
    Validate and create a MonitorConfig from raw configuration data.

    Args:
        monitor_data: Raw `[monitor]` table from TOML

    Returns:
        Validated MonitorConfig instance

    Raises:
        ValidationError: If validation fails
    """
    server_settings = monitor_data.get("server", {})
    polling_settings = monitor_data.get("polling", {})
    window_settings = monitor_data.get("window", {})
    kpi_settings = monitor_data.get("kpi", {})
    insight_settings = monitor_data.get("insights", {})

    defaults = MonitorConfig()

    # [monitor.server]
    base_url = validate_base_url(
        server_settings.get("base_url", defaults.base_url),
        field_name="monitor.server.base_url",
    )

    auth_token = server_settings.get("auth_token", defaults.auth_token)
    if not isinstance(auth_token, str):
        raise ValidationError(
            "monitor.server.auth_token must be a string",
            field_name="monitor.server.auth_token",
            value=auth_token,
        )

    stream_enabled = validate_boolean(
        server_settings.get("stream_enabled", defaults.stream_enabled),
        field_name="monitor.server.stream_enabled",
    )

    resources_source = validate_enum_choice(
        server_settings.get("resources_source", defaults.resources_source),
        valid_choices=RESOURCE_SOURCES,
        field_name="monitor.server.resources_source",
    )

    # [monitor.polling]
    interval_seconds = validate_positive_float(
        polling_settings.get("interval_seconds", defaults.interval_seconds),
        min_value=0.01,
        max_value=3600.0,
        field_name="monitor.polling.interval_seconds",
    )

    fallback_interval_seconds = validate_positive_float(
        polling_settings.get("fallback_interval_seconds", min(defaults.fallback_interval_seconds, interval_seconds)),
        min_value=0.01,
        max_value=interval_seconds,
        field_name="monitor.polling.fallback_interval_seconds",
    )

    adapter_timeout_seconds = validate_positive_float(
        polling_settings.get("adapter_timeout_seconds", defaults.adapter_timeout_seconds),
        min_value=0.01,
        max_value=300.0,
        field_name="monitor.polling.adapter_timeout_seconds",
    )

    poll_on_start = validate_boolean(
        polling_settings.get("poll_on_start", defaults.poll_on_start),
        field_name="monitor.polling.poll_on_start",
    )

    graceful_shutdown_timeout = validate_positive_float(
        polling_settings.get("graceful_shutdown_timeout", defaults.graceful_shutdown_timeout),
        min_value=0.0,
        max_value=60.0,
        field_name="monitor.polling.graceful_shutdown_timeout",
    )

    # [monitor.window]
    capacity = validate_positive_integer(
        window_settings.get("capacity", defaults.capacity),
        min_value=1,
        max_value=100000,
        field_name="monitor.window.capacity",
    )

    max_recent_events = validate_positive_integer(
        window_settings.get("max_recent_events", defaults.max_recent_events),
        min_value=1,
        max_value=100000,
        field_name="monitor.window.max_recent_events",
    )

    confidence_series_length = validate_positive_integer(
        window_settings.get("confidence_series_length", defaults.confidence_series_length),
        min_value=1,
        max_value=100000,
        field_name="monitor.window.confidence_series_length",
    )

    # [monitor.kpi]
    high_confidence_threshold = validate_positive_float(
        kpi_settings.get("high_confidence_threshold", defaults.high_confidence_threshold),
        min_value=0.0,
        max_value=100.0,
        field_name="monitor.kpi.high_confidence_threshold",
    )

    thresholds = validate_insight_thresholds(insight_settings)

    return MonitorConfig(
        # from [monitor.server]
        base_url=base_url,
        auth_token=auth_token,
        stream_enabled=stream_enabled,
        resources_source=resources_source,
        # from [monitor.polling]
        interval_seconds=interval_seconds,
        fallback_interval_seconds=fallback_interval_seconds,
        adapter_timeout_seconds=adapter_timeout_seconds,
        poll_on_start=poll_on_start,
        graceful_shutdown_timeout=graceful_shutdown_timeout,
        # from [monitor.window]
        capacity=capacity,
        max_recent_events=max_recent_events,
        confidence_series_length=confidence_series_length,
        # from [monitor.kpi] / [monitor.insights]
        high_confidence_threshold=high_confidence_threshold,
        thresholds=thresholds,
    )


def validate_insight_thresholds(insight_data: Dict[str, Any]) -> InsightThresholds:
    """Validate the `[monitor.insights]` table."""
    defaults = InsightThresholds()
    return InsightThresholds(
        success_rate_good=validate_positive_float(
            insight_data.get("success_rate_good", defaults.success_rate_good),
            min_value=0.0,
            max_value=100.0,
            field_name="monitor.insights.success_rate_good",
        ),
        queue_backlog=validate_positive_integer(
            insight_data.get("queue_backlog", defaults.queue_backlog),
            min_value=0,
            field_name="monitor.insights.queue_backlog",
        ),
        slow_response_ms=validate_positive_float(
            insight_data.get("slow_response_ms", defaults.slow_response_ms),
            min_value=0.0,
            field_name="monitor.insights.slow_response_ms",
        ),
        cpu_pressure_pct=validate_positive_float(
            insight_data.get("cpu_pressure_pct", defaults.cpu_pressure_pct),
            min_value=0.0,
            max_value=100.0,
            field_name="monitor.insights.cpu_pressure_pct",
        ),
        mem_pressure_pct=validate_positive_float(
            insight_data.get("mem_pressure_pct", defaults.mem_pressure_pct),
            min_value=0.0,
            max_value=100.0,
            field_name="monitor.insights.mem_pressure_pct",
        ),
    )


def validate_endpoint_config(endpoint_data: Dict[str, Any]) -> EndpointConfig:
    """
    Validate the `[endpoints]` table.

    Unknown keys are rejected so that a typo does not silently fall back
    to the default route.
    """
    known = {f.name for f in fields(EndpointConfig)}
    unknown = sorted(set(endpoint_data) - known)
    if unknown:
        raise ValidationError(
            f"Unknown endpoint keys in [endpoints]: {unknown}",
            field_name="endpoints",
            value=unknown,
        )

    paths = {
        name: validate_endpoint_path(value, field_name=f"endpoints.{name}")
        for name, value in endpoint_data.items()
    }
    return EndpointConfig(**paths)


def validate_app_config(config_data: Dict[str, Any]) -> AppConfig:
    """Validate a whole parsed config.toml document."""
    monitor_config = validate_monitor_config(config_data.get("monitor", {}))
    endpoint_config = validate_endpoint_config(config_data.get("endpoints", {}))
    logger.debug(f"Validated configuration for {monitor_config.base_url}")
    return AppConfig(monitor=monitor_config, endpoints=endpoint_config)
