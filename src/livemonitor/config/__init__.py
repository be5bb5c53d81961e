"""
Configuration management for the livemonitor package.

This module provides a clean interface for loading, validating, and accessing
configuration data from a TOML file, with a cached accessor for entry points.
"""

# Main configuration interface
from .manager import (
    clear_config_cache,
    get_config,
    get_config_info,
    is_config_loaded,
    load_config,
    set_config_path,
)

# For advanced usage - direct access to loaders and validators
from .loader import load_main_config, load_toml_file
from .validators import (
    validate_app_config,
    validate_endpoint_config,
    validate_insight_thresholds,
    validate_monitor_config,
)

__all__ = [
    # Main interface
    "get_config",
    "load_config",
    "set_config_path",
    "clear_config_cache",
    "is_config_loaded",
    "get_config_info",
    # Advanced interface
    "load_toml_file",
    "load_main_config",
    "validate_app_config",
    "validate_endpoint_config",
    "validate_insight_thresholds",
    "validate_monitor_config",
]
