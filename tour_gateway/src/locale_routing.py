"""
Locale routing for page paths.

The default locale is served without a prefix: ``/tours`` is rewritten
internally to ``/en/tours`` and an explicit ``/en/tours`` is redirected back
to ``/tours``. Other locales keep their prefix.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional
from urllib.parse import parse_qsl, quote

from tour_gateway.config import LocaleConfig

logger = logging.getLogger(__name__)


class RouteState(Enum):
    BYPASS = "bypass"
    DEFAULT_REDUNDANT = "default_redundant"
    ALREADY_CANONICAL = "already_canonical"
    NEEDS_CANONICALIZATION = "needs_canonicalization"


class RouteAction(Enum):
    PASS_THROUGH = "pass_through"
    REDIRECT = "redirect"
    REWRITE = "rewrite"


@dataclass(frozen=True)
class RouteDecision:
    """What to do with one request path.

    ``path`` is the redirect location (path and query) for REDIRECT, the
    internal path for REWRITE and the unchanged path for PASS_THROUGH.
    """
    action: RouteAction
    path: str
    state: RouteState


_PREFETCH_FLAGS = ('rsc', 'next-router-prefetch', 'x-middleware-prefetch')
_PURPOSE_HEADERS = ('purpose', 'sec-purpose')


def _has_prefix(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + '/')


def is_bypassed(path: str, settings: LocaleConfig) -> bool:
    """Static files and API paths are never localized."""
    if any(_has_prefix(path, prefix) for prefix in settings.bypass_prefixes):
        return True
    return '.' in path.rsplit('/', 1)[-1]


def is_prefetch(query_string: str, headers: Mapping[str, str]) -> bool:
    """True for router prefetch or data-refresh requests.

    ``headers`` keys are expected lower-cased.
    """
    if any(key == '_rsc' for key, _ in parse_qsl(query_string, keep_blank_values=True)):
        return True
    if any(headers.get(name) == '1' for name in _PREFETCH_FLAGS):
        return True
    return any('prefetch' in (headers.get(name) or '').lower() for name in _PURPOSE_HEADERS)


def resolve_locale_route(path: str, query_string: str = '', headers: Optional[Mapping[str, str]] = None,
                         settings: Optional[LocaleConfig] = None) -> RouteDecision:
    """Classify ``path`` and decide how to route it; exactly one state applies."""
    settings = settings or LocaleConfig()
    headers = headers or {}
    path = path or '/'

    if is_bypassed(path, settings):
        return RouteDecision(RouteAction.PASS_THROUGH, path, RouteState.BYPASS)

    default_prefix = f"/{settings.default_locale}"
    if _has_prefix(path, default_prefix):
        if is_prefetch(query_string, headers):
            return RouteDecision(RouteAction.PASS_THROUGH, path, RouteState.DEFAULT_REDUNDANT)
        location = path[len(default_prefix):] or '/'
        if query_string:
            location = f"{location}?{query_string}"
        return RouteDecision(RouteAction.REDIRECT, location, RouteState.DEFAULT_REDUNDANT)

    if any(_has_prefix(path, f"/{locale}") for locale in settings.locales):
        return RouteDecision(RouteAction.PASS_THROUGH, path, RouteState.ALREADY_CANONICAL)

    return RouteDecision(RouteAction.REWRITE, f"{default_prefix}{path}", RouteState.NEEDS_CANONICALIZATION)


class LocaleRoutingMiddleware:
    """ASGI middleware applying ``resolve_locale_route`` to HTTP requests."""

    def __init__(self, app, settings: LocaleConfig):
        self.app = app
        self.settings = settings

    async def __call__(self, scope, receive, send):
        if scope['type'] != 'http':
            return await self.app(scope, receive, send)

        query_string = scope.get('query_string', b'').decode('latin-1')
        headers = {
            name.decode('latin-1').lower(): value.decode('latin-1')
            for name, value in scope.get('headers', [])
        }
        decision = resolve_locale_route(scope['path'], query_string, headers, self.settings)

        if decision.action is RouteAction.REDIRECT:
            logger.debug("Locale redirect %s -> %s", scope['path'], decision.path)
            await send({
                'type': 'http.response.start',
                'status': 307,
                'headers': [
                    (b'location', quote(decision.path, safe="/?=&%:@!$'()*+,;-._~").encode('ascii')),
                    (b'content-length', b'0'),
                ],
            })
            await send({'type': 'http.response.body', 'body': b''})
            return

        if decision.action is RouteAction.REWRITE:
            prefix = decision.path[:len(decision.path) - len(scope['path'])]
            scope = dict(scope)
            scope['path'] = decision.path
            if scope.get('raw_path'):
                scope['raw_path'] = prefix.encode('ascii') + scope['raw_path']
        return await self.app(scope, receive, send)
