"""
livemonitor: live telemetry aggregation for the trading-analysis dashboard.

This package coordinates several independent, unreliable data sources into
one continuously updated view:

- config: Configuration loading and validation
- models: Data structures and type definitions
- validation: Input validation and error handling
- adapters: Metric source adapters (HTTP backend routes, local psutil)
- monitoring: Poll scheduler, live event channel, buffers and controller
- analysis: KPI derivation and rule-based insights
- cli: Command-line interface

Usage:
    From command line:
        livemonitor --base-url http://localhost:3000 [options]

    Programmatically:
        from livemonitor import MonitoringController, get_config
        async with MonitoringController(get_config()) as controller:
            await controller.refresh_now()
            print(controller.snapshot().insights)
"""

__version__ = "0.1.0"

# Main interfaces
from .config import clear_config_cache, get_config, load_config, set_config_path
from .monitoring import MonitoringController
from .cli import main_cli

# Model classes for external use
from .models import (
    AppConfig,
    DashboardSnapshot,
    DerivedKPI,
    Insight,
    LiveEvent,
    MetricSnapshot,
    MonitorConfig,
    ResourceSample,
)

# Analysis
from .analysis import calculate_trend, derive_kpis, generate_insights

# Errors
from .validation import (
    MonitorError,
    PartialDataError,
    StreamError,
    TransientFetchError,
    ValidationError,
)

__all__ = [
    "__version__",
    # Main interfaces
    "get_config",
    "load_config",
    "clear_config_cache",
    "set_config_path",
    "MonitoringController",
    "main_cli",
    # Models
    "AppConfig",
    "DashboardSnapshot",
    "DerivedKPI",
    "Insight",
    "LiveEvent",
    "MetricSnapshot",
    "MonitorConfig",
    "ResourceSample",
    # Analysis
    "calculate_trend",
    "derive_kpis",
    "generate_insights",
    # Errors
    "MonitorError",
    "PartialDataError",
    "StreamError",
    "TransientFetchError",
    "ValidationError",
]
