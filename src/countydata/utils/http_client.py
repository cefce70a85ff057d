"""
Async HTTP Client

Thin wrapper around an aiohttp ClientSession. Every request carries its own
timeout, and network errors, timeouts and non-2xx statuses are all raised as
SourceUnreachable so callers handle one exception type.
"""
import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from src.countydata.errors import SourceUnreachable
from src.countydata.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_HEADERS = {
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,application/json;q=0.8,*/*;q=0.7',
    'Accept-Language': 'en-US,en;q=0.5',
    'Accept-Encoding': 'gzip, deflate',
    'Connection': 'keep-alive',
}


@dataclass
class HttpResponse:
    """Fully-read response body plus the bits callers inspect."""
    url: str
    status: int
    text: str
    content_type: str = ""

    def json(self) -> Any:
        try:
            return json.loads(self.text)
        except ValueError as e:
            raise SourceUnreachable(self.url, f"invalid JSON: {e}", self.status)


class AsyncHttpClient:
    """
    Shared aiohttp session with per-request timeouts.

    Usable as an async context manager; the session is created lazily so a
    client can be constructed outside a running event loop.
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        default_timeout: float = 30.0,
        connection_limit: int = 100,
        per_host_limit: int = 10,
    ):
        self._session = session
        self._owns_session = session is None
        self.default_timeout = default_timeout
        self.connection_limit = connection_limit
        self.per_host_limit = per_host_limit

    async def __aenter__(self):
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.connection_limit,
                limit_per_host=self.per_host_limit,
            )
            self._session = aiohttp.ClientSession(connector=connector, headers=DEFAULT_HEADERS)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def head(
        self,
        url: str,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> int:
        """
        Existence check.

        Returns:
            HTTP status code (2xx/3xx only)

        Raises:
            SourceUnreachable: On network error, timeout or status >= 400
        """
        session = self._ensure_session()
        client_timeout = aiohttp.ClientTimeout(total=timeout or self.default_timeout)
        try:
            async with session.head(url, headers=headers, timeout=client_timeout,
                                    allow_redirects=True) as response:
                if response.status >= 400:
                    raise SourceUnreachable(url, f"HTTP {response.status}", response.status)
                return response.status
        except asyncio.TimeoutError:
            raise SourceUnreachable(url, "timeout")
        except aiohttp.ClientError as e:
            raise SourceUnreachable(url, f"{type(e).__name__}: {e}")

    async def get(
        self,
        url: str,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> HttpResponse:
        """
        GET a URL and read the full body.

        Raises:
            SourceUnreachable: On network error, timeout or non-2xx status
        """
        session = self._ensure_session()
        client_timeout = aiohttp.ClientTimeout(total=timeout or self.default_timeout)
        try:
            async with session.get(url, headers=headers, params=params,
                                   timeout=client_timeout) as response:
                if not 200 <= response.status < 300:
                    raise SourceUnreachable(
                        url, f"HTTP {response.status}: {response.reason}", response.status
                    )
                text = await response.text(errors="replace")
                return HttpResponse(
                    url=str(response.url),
                    status=response.status,
                    text=text,
                    content_type=response.headers.get("Content-Type", ""),
                )
        except asyncio.TimeoutError:
            raise SourceUnreachable(url, "timeout")
        except aiohttp.ClientError as e:
            raise SourceUnreachable(url, f"{type(e).__name__}: {e}")

    async def get_json(
        self,
        url: str,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        response = await self.get(url, timeout=timeout, headers=headers, params=params)
        return response.json()
