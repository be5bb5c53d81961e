"""
Validation and error handling for the livemonitor package.

This module provides input validation for configuration values, the error
taxonomy of the telemetry pipeline and consistent error reporting helpers.
"""

from .exceptions import (
    ErrorSeverity,
    ValidationError,
    MonitorError,
    TransientFetchError,
    PartialDataError,
    StreamError,
    handle_error,
    handle_config_error,
    handle_cli_error,
)

from .validators import (
    validate_base_url,
    validate_boolean,
    validate_endpoint_path,
    validate_enum_choice,
    validate_positive_float,
    validate_positive_integer,
)

__all__ = [
    # Errors
    "ErrorSeverity",
    "ValidationError",
    "MonitorError",
    "TransientFetchError",
    "PartialDataError",
    "StreamError",
    "handle_error",
    "handle_config_error",
    "handle_cli_error",
    # Validators
    "validate_base_url",
    "validate_boolean",
    "validate_endpoint_path",
    "validate_enum_choice",
    "validate_positive_float",
    "validate_positive_integer",
]
