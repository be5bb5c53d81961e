"""
Defines the base contract for metric source adapters.

Every adapter wraps one external data source behind the same contract:
`fetch()` always returns a MetricSnapshot. When the underlying read fails
or times out, the previous good value is returned marked stale (or a
neutral fallback value when there never was a good one), so a single
flaky source never breaks the rest of a poll cycle. Adapters do not retry;
the poll scheduler owns retry timing.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Callable, Generic, Optional, TypeVar

from ..models.telemetry import MetricSnapshot
from ..validation import TransientFetchError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AbstractMetricAdapter(ABC, Generic[T]):
    """
    Abstract base class for metric source adapters.

    Subclasses implement `_fetch()` (raise on failure) and `fallback_value()`.

    Attributes:
        name: Source name, used as the key of the controller's snapshot set
        timeout: Per-source timeout in seconds applied around `_fetch()`
    """

    name: str = "source"

    def __init__(self, timeout: float = 5.0, clock: Callable[[], float] = time.time):
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.timeout = timeout
        self._clock = clock
        self._last_good: Optional[MetricSnapshot[T]] = None

    @property
    def last_good(self) -> Optional[MetricSnapshot[T]]:
        """The most recent successful snapshot, if any."""
        return self._last_good

    @abstractmethod
    async def _fetch(self) -> T:
        """
        Read the source once.

        Raises:
            TransientFetchError: or any other exception when the read fails
        """

    @abstractmethod
    def fallback_value(self) -> T:
        """Neutral value served (marked stale) before any fetch has succeeded."""

    async def fetch(self) -> MetricSnapshot[T]:
        """
        Fetch the source, never raising for source failures.

        Returns:
            A fresh snapshot, or a stale one carrying the TransientFetchError
        """
        try:
            value = await asyncio.wait_for(self._fetch(), timeout=self.timeout)
        except asyncio.TimeoutError:
            error = TransientFetchError(self.name, f"timed out after {self.timeout}s")
        except TransientFetchError as e:
            error = e
        except Exception as e:
            error = TransientFetchError(self.name, f"{type(e).__name__}: {e}")
        else:
            snapshot = MetricSnapshot(source=self.name, value=value, as_of=self._clock())
            self._last_good = snapshot
            return snapshot

        logger.warning(f"Source '{self.name}' unavailable, serving stale data: {error}")
        return self.stale_snapshot(error)

    def stale_snapshot(self, error: Optional[BaseException] = None) -> MetricSnapshot[T]:
        """
        Build the stale snapshot served after a failed fetch.
        """
        if self._last_good is not None:
            return replace(self._last_good, stale=True, error=error)
        return MetricSnapshot(
            source=self.name,
            value=self.fallback_value(),
            as_of=self._clock(),
            stale=True,
            error=error,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, timeout={self.timeout})"
