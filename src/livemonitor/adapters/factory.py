"""
Adapter factory.

Builds the full set of metric source adapters from the application
configuration.
"""

import logging
from typing import List

from ..models.config import AppConfig
from .base import AbstractMetricAdapter
from .http import ApiClient
from .sources import (
    AIEngineStatsAdapter,
    AnalysisHistoryAdapter,
    DBHealthAdapter,
    LogsAdapter,
    ProcessesAdapter,
    ResourcesAdapter,
    SecurityHeadersAdapter,
    SystemMetricsAdapter,
    UserPromptsAdapter,
)

logger = logging.getLogger(__name__)


class AdapterFactory:
    """
    Creates metric source adapters for one backend.
    """

    def __init__(self, config: AppConfig, client: ApiClient):
        """
        Args:
            config: Application configuration (endpoints, timeouts, resource source)
            client: Shared HTTP client used by every HTTP adapter
        """
        self.config = config
        self.client = client

    def create_resources_adapter(self) -> AbstractMetricAdapter:
        """
        Create the resources adapter for the configured source.

        Raises:
            ValueError: If the resource source is unknown
        """
        monitor = self.config.monitor
        source = monitor.resources_source
        if source == "http":
            return ResourcesAdapter(
                self.client, self.config.endpoints.resources, timeout=monitor.adapter_timeout_seconds
            )
        elif source == "local":
            from .local import PsutilResourceAdapter

            return PsutilResourceAdapter(timeout=monitor.adapter_timeout_seconds)
        else:
            raise ValueError(f"Unknown resource source: {source}")

    def create_adapters(self) -> List[AbstractMetricAdapter]:
        """
        Create one adapter per polled source.

        Returns:
            Adapters in a fixed order; names are unique
        """
        endpoints = self.config.endpoints
        timeout = self.config.monitor.adapter_timeout_seconds

        adapters: List[AbstractMetricAdapter] = [
            ProcessesAdapter(self.client, endpoints.processes, timeout=timeout),
            self.create_resources_adapter(),
            LogsAdapter(self.client, endpoints.logs, timeout=timeout),
            SystemMetricsAdapter(self.client, endpoints.metrics, timeout=timeout),
            DBHealthAdapter(self.client, endpoints.db_health, timeout=timeout),
            AnalysisHistoryAdapter(self.client, endpoints.analysis_history, timeout=timeout),
            UserPromptsAdapter(self.client, endpoints.user_prompts, timeout=timeout),
            SecurityHeadersAdapter(self.client, endpoints.health, timeout=timeout),
            AIEngineStatsAdapter(self.client, endpoints.ai_engine_stats, timeout=timeout),
        ]

        logger.info(
            f"Created {len(adapters)} metric adapters for {self.client.base_url} "
            f"(resources: {self.config.monitor.resources_source})"
        )
        return adapters
