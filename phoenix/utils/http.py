"""
Phoenix - Shared HTTP Session
=============================

One persistent aiohttp session for raw Discord REST calls.

Usage:
    from phoenix.utils.http import http_session

    session = await http_session.get_session()
    async with session.get(url) as resp:
        ...

    await http_session.close()  # on shutdown
"""

from typing import Optional

import aiohttp


DEFAULT_TIMEOUT = 15.0


class HTTPSessionManager:
    """Lazily creates and reuses a single ClientSession."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    def configure(self, timeout: float) -> None:
        """Set the total timeout used for the next session created."""
        self._timeout = timeout

    async def get_session(self) -> aiohttp.ClientSession:
        """Get or create the persistent HTTP session."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=10,
                limit_per_host=5,
                ttl_dns_cache=300,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session on shutdown."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None


http_session = HTTPSessionManager()


__all__ = ["HTTPSessionManager", "http_session", "DEFAULT_TIMEOUT"]
