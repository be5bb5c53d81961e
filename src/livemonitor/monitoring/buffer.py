"""
Bounded in-memory stores owned by the monitoring controller.

SlidingWindowBuffer holds the resource time series; RecentEventLog holds
the most recent live events. Both evict the oldest entry when full and
hand out immutable tuple copies only.
"""

import logging
from collections import deque
from typing import Deque, Iterable, Optional, Set, Tuple

from ..models.telemetry import LiveEvent, ResourceSample

logger = logging.getLogger(__name__)


class SlidingWindowBuffer:
    """
    Fixed-capacity, time-ordered FIFO of resource samples.

    Samples are only ever appended. A sample older than the current tail is
    dropped, so the window stays in non-decreasing timestamp order.
    """

    def __init__(self, capacity: int = 20):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._samples: Deque[ResourceSample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._samples.maxlen

    @property
    def latest(self) -> Optional[ResourceSample]:
        return self._samples[-1] if self._samples else None

    def push(self, sample: ResourceSample) -> bool:
        """
        Append a sample, evicting the oldest one at capacity.

        Returns:
            False if the sample was dropped for being older than the tail
        """
        if self._samples and sample.timestamp < self._samples[-1].timestamp:
            logger.debug(
                f"Dropping out-of-order sample {sample.timestamp} "
                f"(tail is {self._samples[-1].timestamp})"
            )
            return False
        self._samples.append(sample)
        return True

    def snapshot(self) -> Tuple[ResourceSample, ...]:
        return tuple(self._samples)

    def clear(self) -> None:
        self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)


class RecentEventLog:
    """
    Capped log of live events in arrival order.

    An event whose id is already retained is ignored; the server replays
    its buffer to every new stream, and polled logs overlap pushed ones.
    """

    def __init__(self, max_events: int = 500):
        if max_events < 1:
            raise ValueError("max_events must be at least 1")
        self._events: Deque[LiveEvent] = deque()
        self._ids: Set[str] = set()
        self.max_events = max_events

    def append(self, event: LiveEvent) -> bool:
        """
        Returns:
            True if the event was added, False if it was a duplicate
        """
        if event.id in self._ids:
            return False
        if len(self._events) >= self.max_events:
            evicted = self._events.popleft()
            self._ids.discard(evicted.id)
        self._events.append(event)
        self._ids.add(event.id)
        return True

    def extend(self, events: Iterable[LiveEvent]) -> int:
        """Append several events; returns how many were new."""
        return sum(1 for event in events if self.append(event))

    def snapshot(self) -> Tuple[LiveEvent, ...]:
        return tuple(self._events)

    def clear(self) -> None:
        self._events.clear()
        self._ids.clear()

    def __contains__(self, event_id: str) -> bool:
        return event_id in self._ids

    def __len__(self) -> int:
        return len(self._events)
