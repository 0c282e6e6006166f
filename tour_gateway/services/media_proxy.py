"""
Allow-listed reverse proxy for CMS media.

Only files under the CMS uploads directory on a known CMS host (or a
development tunnel) may be fetched, so the proxy cannot be pointed at
internal services.
"""

import asyncio
import logging
import posixpath
from dataclasses import dataclass
from typing import AsyncIterator, Dict, Optional
from urllib.parse import unquote, urlsplit

import aiohttp

from tour_gateway.config import CMSConfig, MediaProxyConfig
from tour_gateway.providers.base import Failure, FailureKind, Result, Success
from tour_gateway.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

MISSING_URL = 'missing_url'
INVALID_URL = 'invalid_url'
URL_NOT_ALLOWED = 'url_not_allowed'


@dataclass(frozen=True)
class MediaTarget:
    """A validated media URL."""
    url: str
    host: str
    path: str


def _reject(code: str) -> Failure:
    return Failure(FailureKind.REJECTED, code, status=400)


class MediaUrlPolicy:
    """Decides whether a URL may be proxied."""

    def __init__(self, media: MediaProxyConfig):
        self.uploads_prefix = media.uploads_prefix
        self.tunnel_suffixes = tuple(suffix.lower() for suffix in media.tunnel_suffixes)
        self.allowed_hosts = {host.lower() for host in media.allowed_hosts}

    def host_allowed(self, host: str) -> bool:
        host = host.lower()
        return host in self.allowed_hosts or any(host.endswith(s) for s in self.tunnel_suffixes)

    def path_allowed(self, path: str) -> bool:
        """True if the decoded, dot-normalized path is inside the uploads prefix."""
        normalized = posixpath.normpath(unquote(path or '/'))
        return normalized.startswith(self.uploads_prefix)

    def validate(self, raw: Optional[str]) -> Result:
        """``Success(MediaTarget)`` or ``Failure(REJECTED, <code>, status=400)``."""
        if not raw or not raw.strip():
            return _reject(MISSING_URL)
        try:
            parts = urlsplit(raw.strip())
            # Accessing .port validates it.
            parts.port
        except ValueError:
            return _reject(INVALID_URL)
        if parts.scheme not in ('http', 'https') or not parts.hostname:
            return _reject(INVALID_URL)
        if parts.username is not None or parts.password is not None:
            return _reject(INVALID_URL)

        if not self.path_allowed(parts.path) or not self.host_allowed(parts.hostname):
            logger.info("Rejected media URL host=%s path=%s", parts.hostname, parts.path)
            return _reject(URL_NOT_ALLOWED)
        return Success(MediaTarget(url=raw.strip(), host=parts.hostname, path=parts.path))


class UpstreamMedia:
    """An open upstream response; ``chunks()`` streams and then releases it."""

    def __init__(self, response: aiohttp.ClientResponse, cache_control: str, chunk_size: int):
        self.response = response
        self.status = response.status
        self.content_type = response.headers.get('Content-Type') or 'application/octet-stream'
        self.cache_control = response.headers.get('Cache-Control') or cache_control
        self.chunk_size = chunk_size

    @property
    def headers(self) -> Dict[str, str]:
        return {'Content-Type': self.content_type, 'Cache-Control': self.cache_control}

    async def chunks(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self.response.content.iter_chunked(self.chunk_size):
                yield chunk
        finally:
            self.response.release()


class MediaProxy:
    """Fetches validated media targets from the CMS."""

    def __init__(self, media: MediaProxyConfig, cms: CMSConfig, sessions: SessionManager):
        self.media = media
        self.cms = cms
        self.sessions = sessions
        self.policy = MediaUrlPolicy(media)

    def diagnostic(self, target: MediaTarget, status: int, error: str) -> Dict[str, object]:
        """Error body for a failed fetch; never includes credentials."""
        return {
            'error': error,
            'status': status,
            'host': target.host,
            'path': target.path,
            'auth_attempted': self.cms.basic_auth is not None,
        }

    async def fetch(self, target: MediaTarget, accept: Optional[str] = None) -> Result:
        """Open ``target`` upstream.

        Returns ``Success(UpstreamMedia)`` for 2xx responses. Other statuses
        give ``Failure(UNAVAILABLE, status=<upstream status>)``. Redirects are
        not followed; they and transport errors give status 502.
        """
        headers = {
            'User-Agent': self.media.user_agent,
            'Accept': accept or '*/*',
        }
        auth = aiohttp.BasicAuth(*self.cms.basic_auth) if self.cms.basic_auth else None
        try:
            session = await self.sessions.get_session()
            response = await session.get(target.url, headers=headers, auth=auth, allow_redirects=False,
                                         timeout=self.sessions.timeout('media'))
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Media fetch failed for %s%s: %s", target.host, target.path, e or type(e).__name__)
            return Failure(FailureKind.UNAVAILABLE, 'upstream_unreachable', status=502)

        if 300 <= response.status < 400:
            # Redirect targets are not allow-listed; never follow them.
            logger.warning("Media upstream %s%s redirected (HTTP %s)", target.host, target.path, response.status)
            response.release()
            return Failure(FailureKind.UNAVAILABLE, 'upstream_redirect', status=502)
        if not 200 <= response.status < 300:
            logger.warning("Media upstream %s%s returned HTTP %s", target.host, target.path, response.status)
            response.release()
            return Failure(FailureKind.UNAVAILABLE, 'upstream_error', status=response.status)
        return Success(UpstreamMedia(response, self.media.cache_control, self.media.chunk_size))
