"""
Live monitoring pipeline.

This package contains the moving parts of the dashboard pipeline:

- SlidingWindowBuffer / RecentEventLog: bounded in-memory stores
- PollScheduler: periodic concurrent polling of all metric adapters
- LiveEventChannel: server-sent event subscription with a fallback signal
- MonitoringController: the owner gluing everything together
"""

from .buffer import RecentEventLog, SlidingWindowBuffer
from .channel import LiveEventChannel, SSEDecoder
from .controller import TOTAL_FAILURE_BANNER, MonitoringController
from .scheduler import PollScheduler

__all__ = [
    "LiveEventChannel",
    "MonitoringController",
    "PollScheduler",
    "RecentEventLog",
    "SlidingWindowBuffer",
    "SSEDecoder",
    "TOTAL_FAILURE_BANNER",
]
