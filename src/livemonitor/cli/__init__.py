"""
Command-line interface for the livemonitor package.

This module provides the `livemonitor` console entry point.
"""

from .main import main_cli

__all__ = [
    "main_cli",
]
