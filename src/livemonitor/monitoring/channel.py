"""
Live event channel over server-sent events.

The channel moves through Disconnected -> Connecting -> Connected and ends
in Disconnected, passing through Error when the stream fails or ends. It
never reconnects on its own: a failure is reported through `on_error` and
the owner decides when to open the channel again.
"""

import asyncio
import json
import logging
from contextlib import AbstractAsyncContextManager
from typing import AsyncIterator, Callable, List, Optional

from ..adapters.http import ApiClient
from ..models.runtime import ChannelState
from ..models.telemetry import LiveEvent
from ..validation import ErrorSeverity, StreamError, handle_error

logger = logging.getLogger(__name__)


class SSEDecoder:
    """
    Incremental decoder turning event-stream lines into LiveEvents.

    Lines starting with ':' are comments (the server's connect notice and
    heartbeats). `data:` lines accumulate until a blank line dispatches them.
    Payloads that are not a JSON object are skipped.
    """

    def __init__(self):
        self._data: List[str] = []

    def feed(self, line: str) -> Optional[LiveEvent]:
        if not line:
            if not self._data:
                return None
            payload = "\n".join(self._data)
            self._data = []
            return self._decode(payload)

        if line.startswith(":"):
            return None

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if field == "data":
            self._data.append(value)
        # 'event', 'id' and 'retry' fields are not used by this stream
        return None

    @staticmethod
    def _decode(payload: str) -> Optional[LiveEvent]:
        try:
            data = json.loads(payload)
        except ValueError as e:
            logger.debug(f"Skipping undecodable stream payload: {e}")
            return None
        if not isinstance(data, dict):
            logger.debug(f"Skipping stream payload of type {type(data).__name__}")
            return None
        return LiveEvent.from_payload(data)


class LiveEventChannel:
    """
    Subscription to the backend's live log stream.
    """

    def __init__(
        self,
        client: ApiClient,
        path: str,
        on_event: Optional[Callable[[LiveEvent], None]] = None,
        on_error: Optional[Callable[[StreamError], None]] = None,
        on_connected: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            client: HTTP client owning the session
            path: Stream route
            on_event: Called for every decoded event, in arrival order
            on_error: Called once when the stream fails or ends
            on_connected: Called when the stream has been opened
        """
        self.client = client
        self.path = path
        self.on_event = on_event
        self.on_error = on_error
        self.on_connected = on_connected
        self.events_received = 0
        self._state = ChannelState.DISCONNECTED
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._task is not None and not self._task.done()

    def open(self) -> bool:
        """
        Start connecting in a background task.

        Returns:
            False if the channel is already open or connecting
        """
        if self.is_open:
            return False
        self._set_state(ChannelState.CONNECTING)
        self._task = asyncio.create_task(self._run(), name="live-event-channel")
        return True

    async def close(self) -> None:
        """Cancel the stream task; the channel ends Disconnected without reporting an error."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._set_state(ChannelState.DISCONNECTED)

    def _connect(self) -> AbstractAsyncContextManager[AsyncIterator[str]]:
        return self.client.open_stream(self.path)

    async def _run(self) -> None:
        try:
            async with self._connect() as lines:
                self._set_state(ChannelState.CONNECTED)
                if self.on_connected is not None:
                    self.on_connected()

                decoder = SSEDecoder()
                async for line in lines:
                    event = decoder.feed(line)
                    if event is not None:
                        self._dispatch(event)
            error = StreamError("stream closed by server")
        except asyncio.CancelledError:
            raise
        except StreamError as e:
            error = e
        except Exception as e:
            error = StreamError(f"{type(e).__name__}: {e}")

        self._fail(error)

    def _dispatch(self, event: LiveEvent) -> None:
        self.events_received += 1
        if self.on_event is None:
            return
        try:
            self.on_event(event)
        except Exception as e:
            handle_error(e, context=f"handling live event {event.id}", severity=ErrorSeverity.ERROR,
                         reraise=False, logger=logger)

    def _fail(self, error: StreamError) -> None:
        self._set_state(ChannelState.ERROR)
        logger.warning(f"Live event stream failed: {error}")
        self._set_state(ChannelState.DISCONNECTED)
        if self.on_error is not None:
            self.on_error(error)

    def _set_state(self, state: ChannelState) -> None:
        if state is not self._state:
            logger.info(f"Live event channel: {self._state.value} -> {state.value}")
            self._state = state
