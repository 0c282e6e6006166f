"""
Per-request access to the app-wide gateway objects.
"""
from quart import current_app, g

from tour_gateway.config import Config
from tour_gateway.providers.content_provider import WordPressContentProvider
from tour_gateway.providers.serpapi_provider import SerpApiReviewProvider
from tour_gateway.services.request_cache import RequestCache
from tour_gateway.services.session_manager import SessionManager


def gateway_config() -> Config:
    return current_app.config['GATEWAY_CONFIG']


def session_manager() -> SessionManager:
    return current_app.config['SESSION_MANAGER']


def request_cache() -> RequestCache:
    """The current request's cache (created lazily outside ``before_request``)."""
    if 'request_cache' not in g:
        g.request_cache = RequestCache()
    return g.request_cache


def content_provider() -> WordPressContentProvider:
    """Content client bound to this request's dedup scope."""
    return WordPressContentProvider(gateway_config(), request_cache(), session_manager())


def review_provider() -> SerpApiReviewProvider:
    return SerpApiReviewProvider(gateway_config(), session_manager())
