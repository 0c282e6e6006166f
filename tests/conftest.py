"""
Pytest configuration for tour gateway tests.

Provides a clean, deterministic environment and hand-written fakes for the
aiohttp session so no test touches the network.
"""
import json

import pytest

from tour_gateway.config import Config
from tour_gateway.services.request_cache import RequestCache
from tour_gateway.services.session_manager import SessionManager

CMS_API = "https://cms.example.com/wp-json/wp/v2"
CUSTOM_API = "https://cms.example.com/wp-json/qualitour/v1"
SYNC_KEY = "test-sync-key"

_GATEWAY_ENV = (
    "WORDPRESS_API_URL", "NEXT_PUBLIC_WORDPRESS_API_URL", "WORDPRESS_CUSTOM_API_URL",
    "NEXT_PUBLIC_WORDPRESS_CUSTOM_API_URL", "WORDPRESS_ORIGIN", "NEXT_PUBLIC_WORDPRESS_ORIGIN",
    "WORDPRESS_AUTH_USER", "WORDPRESS_AUTH_PASS", "CMS_CUSTOM_NAMESPACE",
    "MEDIA_UPLOADS_PREFIX", "MEDIA_TUNNEL_SUFFIXES", "MEDIA_CACHE_CONTROL",
    "SERPAPI_KEY", "SERPAPI_PLACE_ID", "REVIEWS_SYNC_KEY", "LOCALES", "DEFAULT_LOCALE",
    "CONTACT_FORM_IDS", "TIMEOUT_CMS", "TIMEOUT_MEDIA", "TIMEOUT_SERPAPI", "TIMEOUT_FORMS",
    "LOG_LEVEL", "LOG_FILE", "ENVIRONMENT", "DEBUG", "CORS_ORIGINS",
)


@pytest.fixture(autouse=True)
def gateway_env(monkeypatch):
    """Set up test environment variables for every test."""
    for name in _GATEWAY_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ENVIRONMENT", "testing")
    monkeypatch.setenv("WORDPRESS_API_URL", CMS_API)
    monkeypatch.setenv("REVIEWS_SYNC_KEY", SYNC_KEY)
    monkeypatch.setenv("SERPAPI_KEY", "test-serpapi-key")
    yield monkeypatch


@pytest.fixture
def config(gateway_env):
    return Config()


class FakeContent:
    def __init__(self, body):
        self._body = body

    async def iter_chunked(self, size):
        for start in range(0, len(self._body), size):
            yield self._body[start:start + size]


class FakeResponse:
    """Stand-in for ``aiohttp.ClientResponse``."""

    def __init__(self, status=200, json_data=None, text=None, headers=None, body=b''):
        self.status = status
        self.headers = dict(headers or {})
        if text is None:
            text = json.dumps(json_data) if json_data is not None else ''
        self._text = text
        self.content = FakeContent(body)
        self.released = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def json(self, content_type=None):
        return json.loads(self._text)

    async def text(self):
        return self._text

    def release(self):
        self.released = True


def json_response(data, status=200, headers=None):
    return FakeResponse(status=status, json_data=data, headers=headers)


class FakeRequest:
    """Both awaitable and an async context manager, like aiohttp's."""

    def __init__(self, outcome):
        self._outcome = outcome

    async def _resolve(self):
        if isinstance(self._outcome, BaseException):
            raise self._outcome
        return self._outcome

    def __await__(self):
        return self._resolve().__await__()

    async def __aenter__(self):
        return await self._resolve()

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Routes every request through ``handler(method, url, kwargs)``.

    The handler returns a ``FakeResponse`` or an exception instance to raise.
    Every call is recorded in ``calls``.
    """

    def __init__(self, handler):
        self.handler = handler
        self.calls = []
        self.closed = False
        self.close_calls = 0

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return FakeRequest(self.handler(method, url, kwargs))

    def get(self, url, **kwargs):
        return self.request('GET', url, **kwargs)

    def post(self, url, **kwargs):
        return self.request('POST', url, **kwargs)

    def delete(self, url, **kwargs):
        return self.request('DELETE', url, **kwargs)

    async def close(self):
        self.closed = True
        self.close_calls += 1

    def urls(self, method='GET'):
        return [url for m, url, _ in self.calls if m == method]


@pytest.fixture
def make_sessions(config):
    """Build a ``SessionManager`` around a ``FakeSession`` for ``handler``."""
    def _make(handler, cfg=None):
        return SessionManager(cfg or config, session=FakeSession(handler))
    return _make


@pytest.fixture
def request_cache():
    cache = RequestCache()
    yield cache
    cache.clear()


def tour_record(tour_id, title, slug=None, activities=(), destinations=(), meta=None, **extra):
    """A WordPress ``tour`` REST record."""
    record = {
        'id': tour_id,
        'slug': slug or f"tour-{tour_id}",
        'title': {'rendered': title},
        'excerpt': {'rendered': f"<p>About {title}</p>"},
        'content': {'rendered': f"<p>{title} itinerary</p>"},
        'tour-activity': list(activities),
        'tour-destination': list(destinations),
        'tour_tag': [],
        'tour_category': [],
        'date': '2024-05-01T10:00:00',
        'tour_meta': meta or {},
    }
    record.update(extra)
    return record


def term_record(term_id, slug, name, count=0):
    return {'id': term_id, 'slug': slug, 'name': name, 'description': '', 'count': count, 'parent': 0}


@pytest.fixture
def make_app(config, make_sessions):
    """Build the gateway app around a ``FakeSession``; returns (app, session)."""
    from tour_gateway.src.app import create_app

    def _make(handler, cfg=None):
        sessions = make_sessions(handler, cfg)
        return create_app(cfg or config, sessions=sessions), sessions._session
    return _make
