"""
HTTP access to the dashboard backend.

ApiClient owns one aiohttp ClientSession shared by all HTTP adapters and
the live event channel. Protected routes receive the auth token as a
bearer header; the event stream receives it as the `token` query parameter.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Mapping, Optional

import aiohttp

from ..validation import StreamError, TransientFetchError

logger = logging.getLogger(__name__)


class ApiClient:
    """
    Thin aiohttp wrapper bound to one backend base URL.
    """

    def __init__(
        self,
        base_url: str,
        auth_token: str = "",
        timeout: float = 5.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Args:
            base_url: Backend root, e.g. "http://localhost:3000"
            auth_token: Token for protected routes (empty for none)
            timeout: Connect/request timeout in seconds for polled requests
            session: Existing session to use; it is then not closed by close()
        """
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        """The shared session, created lazily inside the running event loop."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=None, sock_connect=self.timeout)
            )
            self._owns_session = True
        return self._session

    @property
    def closed(self) -> bool:
        return self._session is None or self._session.closed

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def auth_headers(self) -> Dict[str, str]:
        if not self.auth_token:
            return {}
        return {"Authorization": f"Bearer {self.auth_token}"}

    async def get_json(self, path: str, source: str) -> Any:
        """
        GET a JSON document.

        Raises:
            TransientFetchError: On non-2xx status
            aiohttp.ClientError / ValueError: On transport or decoding failure
        """
        async with self.session.get(
            self.url(path),
            headers=self.auth_headers(),
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as resp:
            if resp.status >= 400:
                raise TransientFetchError(source, f"HTTP {resp.status} from {path}", status=resp.status)
            return await resp.json(content_type=None)

    async def get_headers(self, path: str, source: str) -> Mapping[str, str]:
        """
        GET a route and return its response headers (lower-cased names).

        Any HTTP status is accepted; only transport failures raise.
        """
        async with self.session.get(
            self.url(path),
            headers=self.auth_headers(),
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as resp:
            return {name.lower(): value for name, value in resp.headers.items()}

    @asynccontextmanager
    async def open_stream(self, path: str) -> AsyncIterator[AsyncIterator[str]]:
        """
        Open the server-sent event stream and yield an iterator over its text lines.

        Raises:
            StreamError: If the server answers with a non-200 status
        """
        params = {"token": self.auth_token} if self.auth_token else None
        async with self.session.get(
            self.url(path),
            params=params,
            headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
            timeout=aiohttp.ClientTimeout(total=None, sock_connect=self.timeout),
        ) as resp:
            if resp.status != 200:
                raise StreamError(f"stream {path} answered HTTP {resp.status}")
            yield _iter_lines(resp.content)

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
            logger.debug(f"HTTP session for {self.base_url} closed")
        self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


async def _iter_lines(content: aiohttp.StreamReader) -> AsyncIterator[str]:
    async for raw in content:
        yield raw.decode("utf-8", errors="replace").rstrip("\r\n")
