"""
HTTP session management for outbound calls.

One ``SessionManager`` is owned by the app: it lazily creates a single
``aiohttp.ClientSession`` (a connection pool, no request data) on first use
and closes it when the app stops serving. Request-scoped state never lives
here; see ``request_cache`` for that.
"""

import asyncio
from typing import Optional

import aiohttp

from tour_gateway.config import Config


class SessionManager:
    """Owns the app-wide HTTP session."""

    def __init__(self, config: Config, session: Optional[aiohttp.ClientSession] = None):
        """Initialize the session manager.

        Args:
            config: Gateway configuration (timeouts)
            session: Pre-built session to use instead of creating one
        """
        self.config = config
        self._session = session
        self._owns_session = session is None
        self._lock = asyncio.Lock()

    async def get_session(self) -> aiohttp.ClientSession:
        """Get the shared HTTP session, creating it if necessary.

        Uses a lock so concurrent first callers do not each create a session.
        """
        async with self._lock:
            if self._session is None or self._session.closed:
                self._session = self._create_session()
                self._owns_session = True
            return self._session

    def _create_session(self) -> aiohttp.ClientSession:
        """Create a new HTTP session with pooled connections."""
        timeout = aiohttp.ClientTimeout(total=self.config.get_timeout('cms'))
        connector = aiohttp.TCPConnector(
            limit=100,
            limit_per_host=20,
            ttl_dns_cache=300,
        )
        return aiohttp.ClientSession(timeout=timeout, connector=connector)

    def timeout(self, operation: str) -> aiohttp.ClientTimeout:
        """Per-call timeout for an operation named in ``TimeoutConfig``."""
        return aiohttp.ClientTimeout(total=self.config.get_timeout(operation))

    async def close(self):
        """Close the shared session and clean up resources.

        An injected session belongs to the caller and is kept.
        """
        async with self._lock:
            if not self._owns_session:
                return
            if self._session is not None and not self._session.closed:
                await self._session.close()
            self._session = None

    async def health_check(self) -> bool:
        """True if a usable session is available."""
        try:
            session = await self.get_session()
            return not session.closed
        except Exception:
            return False
