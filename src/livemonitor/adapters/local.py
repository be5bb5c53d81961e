"""
Resource adapter sampling the local host with the 'psutil' library.

Used instead of the HTTP resources route when `resources_source = "local"`.
psutil calls block, so sampling runs in an executor thread.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import psutil

from ..models.telemetry import SystemResources
from .base import AbstractMetricAdapter
from .sources import RESOURCES

logger = logging.getLogger(__name__)


class PsutilResourceAdapter(AbstractMetricAdapter[SystemResources]):
    """
    Samples CPU, memory, disk and network connection usage of this host.
    """

    name = RESOURCES

    def __init__(
        self,
        timeout: float = 5.0,
        disk_path: str = "/",
        executor: Optional[ThreadPoolExecutor] = None,
        **kwargs
    ):
        """
        Args:
            timeout: Per-sample timeout in seconds
            disk_path: Mount point whose usage is reported
            executor: Executor for the blocking psutil calls (default executor if None)
        """
        super().__init__(timeout=timeout, **kwargs)
        self.disk_path = disk_path
        self.executor = executor
        # Prime the CPU counter; the first non-blocking reading is always 0.0.
        psutil.cpu_percent(interval=None)

    async def _fetch(self) -> SystemResources:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self._sample_sync)

    def _sample_sync(self) -> SystemResources:
        """Take one sample (blocking)."""
        cpu_pct = psutil.cpu_percent(interval=None)
        memory = psutil.virtual_memory()
        disk = psutil.disk_usage(self.disk_path)

        try:
            connections = len(psutil.net_connections(kind="inet"))
        except (psutil.AccessDenied, PermissionError):
            # Listing sockets needs privileges on some platforms.
            logger.debug("Not permitted to list network connections, reporting 0")
            connections = 0

        io_counters = psutil.net_io_counters()
        return SystemResources(
            cpu_pct=cpu_pct,
            cpu_cores=psutil.cpu_count() or 0,
            mem_pct=memory.percent,
            mem_total_mb=memory.total / (1024 * 1024),
            mem_used_mb=memory.used / (1024 * 1024),
            disk_pct=disk.percent,
            network_connections=connections,
            network_bytes_in=io_counters.bytes_recv if io_counters else 0,
            network_bytes_out=io_counters.bytes_sent if io_counters else 0,
        )

    def fallback_value(self) -> SystemResources:
        return SystemResources()
