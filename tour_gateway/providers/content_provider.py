"""
ContentProvider implementation for the WordPress REST API.

All reads go through the request-scoped ``RequestCache`` so a page render
that asks for the same data twice hits the CMS once. Every public method
returns a ``Result``; transport errors and non-2xx statuses become
``Failure(UNAVAILABLE)`` so page views can degrade to "no content".
"""

import asyncio
import math
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import unquote

import aiohttp

from tour_gateway.config import Config
from tour_gateway.providers.base import (
    ContentProvider,
    Failure,
    FailureKind,
    ProviderMetadata,
    Result,
    Success,
)
from tour_gateway.providers.models import (
    PageWindow,
    PlaceDetails,
    Post,
    Review,
    TaxonomyTerm,
    TaxonomyType,
    Tour,
)
from tour_gateway.services.request_cache import RequestCache, cache_key
from tour_gateway.services.session_manager import SessionManager
from tour_gateway.services.tour_classifier import (
    filter_tours_by_duration,
    filter_tours_by_type,
    paginate,
    tours_matching_term,
)

# WordPress caps per_page at 100.
MAX_PER_PAGE = 100

TermFilter = Union[int, Sequence[int], None]


@dataclass(frozen=True)
class Payload:
    """Decoded response body plus the pagination headers that came with it."""
    data: Any
    total: Optional[int] = None
    total_pages: Optional[int] = None


def _header_int(headers: Mapping[str, str], name: str) -> Optional[int]:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (list, tuple)):
        return ','.join(str(item) for item in value)
    return str(value)


class WordPressContentProvider(ContentProvider):
    """Reads tours, taxonomy terms, posts and reviews from the CMS."""

    def __init__(self, config: Config, cache: RequestCache, sessions: SessionManager):
        """Initialize the provider for one request scope.

        Args:
            config: Gateway configuration
            cache: The current request's deduplication cache
            sessions: App-wide HTTP session manager
        """
        super().__init__()
        self.config = config
        self.cms = config.cms_config
        self.cache = cache
        self.sessions = sessions

    async def get_metadata(self) -> ProviderMetadata:
        """Get provider metadata."""
        return ProviderMetadata(
            name="wordpress",
            version="1.0.0",
            description="WordPress REST API content source",
            capabilities=["tours", "taxonomies", "posts", "reviews"],
        )

    async def ping(self) -> Result:
        return await self._get('/tour', {'per_page': 1, '_fields': 'id'})

    # -- transport -------------------------------------------------------

    async def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None,
                   custom: bool = False) -> Result:
        """Deduplicated GET against the core (or custom) REST namespace."""
        params = {k: v for k, v in (params or {}).items() if v is not None}
        base = self.cms.custom_api_base if custom else self.cms.api_url
        namespace = 'custom' if custom else 'wp'
        key = cache_key(f"{namespace}{endpoint}", params)
        return await self.cache.get_or_fetch(key, lambda: self._fetch(base, endpoint, params))

    async def _fetch(self, base: Optional[str], endpoint: str, params: Dict[str, Any]) -> Result:
        if not base:
            return Failure(FailureKind.NOT_CONFIGURED, "CMS API URL is not configured")

        url = f"{base.rstrip('/')}{endpoint}"
        query = {k: _query_value(v) for k, v in params.items()}
        headers = {
            'Accept': 'application/json',
            'User-Agent': self.cms.user_agent,
        }
        auth = aiohttp.BasicAuth(*self.cms.basic_auth) if self.cms.basic_auth else None
        start = time.monotonic()

        try:
            session = await self.sessions.get_session()
            async with session.get(url, params=query, headers=headers, auth=auth,
                                   timeout=self.sessions.timeout('cms')) as resp:
                self.logger.debug("[CMS] %s - %.0fms - %s", endpoint,
                                  (time.monotonic() - start) * 1000, resp.status)

                if resp.status == 400 and 'page' in params:
                    body = await resp.text()
                    if 'rest_post_invalid_page_number' in body:
                        return Success(Payload(data=[]))

                if not 200 <= resp.status < 300:
                    body = await resp.text()
                    self.logger.warning("CMS %s returned HTTP %s: %s", endpoint, resp.status, body[:200])
                    return Failure(FailureKind.UNAVAILABLE,
                                   f"{endpoint} returned HTTP {resp.status}", status=resp.status)

                try:
                    data = await resp.json(content_type=None)
                except ValueError as e:
                    self.logger.warning("CMS %s returned malformed JSON: %s", endpoint, e)
                    return Failure(FailureKind.INVALID_RESPONSE, f"{endpoint} returned malformed JSON")

                return Success(Payload(
                    data=data,
                    total=_header_int(resp.headers, 'X-WP-Total'),
                    total_pages=_header_int(resp.headers, 'X-WP-TotalPages'),
                ))
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.warning("CMS %s unreachable: %s", endpoint, e or type(e).__name__)
            return Failure(FailureKind.UNAVAILABLE, f"{endpoint} unreachable")

    def _page_of(self, payload: Payload, items: List[Any], page: int, per_page: int) -> PageWindow:
        total = payload.total if payload.total is not None else (page - 1) * per_page + len(items)
        if not items and payload.total is None:
            total = 0
        return PageWindow(
            items=items,
            page=page,
            per_page=per_page,
            total=total,
            total_pages=math.ceil(total / per_page) if per_page else 0,
        )

    @staticmethod
    def _records(payload: Payload) -> Optional[List[Dict[str, Any]]]:
        if not isinstance(payload.data, list):
            return None
        return [record for record in payload.data if isinstance(record, dict)]

    # -- tours -----------------------------------------------------------

    async def get_tours(self, locale: str, page: int = 1, per_page: int = 12,
                        activity: TermFilter = None, destination: TermFilter = None,
                        tag: TermFilter = None, category: TermFilter = None,
                        search: Optional[str] = None,
                        orderby: str = 'date', order: str = 'desc') -> Result:
        """One page of tours for ``locale``, optionally filtered by term IDs or search text."""
        if page < 1 or per_page < 1:
            raise ValueError("page and per_page must be >= 1")
        params = {
            '_embed': True,
            'page': page,
            'per_page': min(per_page, MAX_PER_PAGE),
            'orderby': orderby,
            'order': order,
            'lang': locale,
            'search': search or None,
            TaxonomyType.ACTIVITY.filter_param: activity,
            TaxonomyType.DESTINATION.filter_param: destination,
            TaxonomyType.TAG.filter_param: tag,
            TaxonomyType.CATEGORY.filter_param: category,
        }
        result = await self._get('/tour', params)
        if not isinstance(result, Success):
            return result
        records = self._records(result.value)
        if records is None:
            return Failure(FailureKind.INVALID_RESPONSE, "/tour did not return a list")
        tours = [Tour.from_wp(record, locale) for record in records]
        return Success(self._page_of(result.value, tours, page, min(per_page, MAX_PER_PAGE)))

    async def get_tour_by_slug(self, slug: str, locale: str) -> Result:
        """The tour with ``slug`` (raw or percent-encoded), or ``Success(None)``."""
        result = await self._get('/tour', {'slug': unquote(slug), '_embed': True, 'lang': locale})
        if not isinstance(result, Success):
            return result
        records = self._records(result.value)
        if records is None:
            return Failure(FailureKind.INVALID_RESPONSE, "/tour did not return a list")
        return Success(Tour.from_wp(records[0], locale) if records else None)

    async def get_tour_by_id(self, tour_id: int, locale: str) -> Result:
        """The tour with ``tour_id``, or ``Success(None)`` when the CMS says 404."""
        result = await self._get(f'/tour/{int(tour_id)}', {'_embed': True, 'lang': locale})
        if isinstance(result, Failure):
            if result.status == 404:
                return Success(None)
            return result
        if not isinstance(result.value.data, dict):
            return Failure(FailureKind.INVALID_RESPONSE, "/tour/<id> did not return an object")
        return Success(Tour.from_wp(result.value.data, locale))

    async def get_featured_tours(self, locale: str, limit: int = 6) -> Result:
        """Most recent tours for the home page."""
        result = await self.get_tours(locale, page=1, per_page=limit)
        if not isinstance(result, Success):
            return result
        return Success(result.value.items)

    async def get_all_tours(self, locale: str, max_pages: int = 2) -> Result:
        """Every tour for ``locale`` in batches of 100, up to ``max_pages`` batches.

        A failing first batch fails the call; a failing later batch keeps what
        was already fetched.
        """
        tours: List[Tour] = []
        for page in range(1, max_pages + 1):
            result = await self.get_tours(locale, page=page, per_page=MAX_PER_PAGE)
            if not isinstance(result, Success):
                if page == 1:
                    return result
                self.logger.warning("Could not fetch tour batch %d for %s: %s", page, locale, result.detail)
                break
            window = result.value
            tours.extend(window.items)
            if len(window.items) < MAX_PER_PAGE or page >= window.total_pages:
                break
        self.logger.debug("Fetched %d tours for %s", len(tours), locale)
        return Success(tours)

    async def get_tours_by_duration(self, bucket_slug: str, locale: str,
                                    page: int = 1, per_page: int = 12) -> Result:
        """A page of tours in a duration bucket; unknown buckets are NOT_FOUND."""
        if filter_tours_by_duration([], bucket_slug) is None:
            return Failure(FailureKind.NOT_FOUND, f"unknown duration bucket {bucket_slug!r}")
        result = await self.get_all_tours(locale)
        if not isinstance(result, Success):
            return result
        tours = filter_tours_by_duration(result.value, bucket_slug)
        return Success(paginate(tours, page, per_page))

    async def get_tours_by_type(self, type_slug: str, locale: str,
                                page: int = 1, per_page: int = 12) -> Result:
        """A page of tours of a tour type; unknown types are NOT_FOUND."""
        if filter_tours_by_type([], type_slug) is None:
            return Failure(FailureKind.NOT_FOUND, f"unknown tour type {type_slug!r}")
        result = await self.get_all_tours(locale)
        if not isinstance(result, Success):
            return result
        return Success(paginate(filter_tours_by_type(result.value, type_slug), page, per_page))

    # -- taxonomies ------------------------------------------------------

    async def get_taxonomy_terms(self, taxonomy: TaxonomyType, per_page: int = MAX_PER_PAGE,
                                 slug: Optional[str] = None) -> Result:
        """Terms of ``taxonomy`` in the CMS's source language."""
        result = await self._get(f'/{taxonomy.rest_base}', {'per_page': per_page, 'slug': slug})
        if not isinstance(result, Success):
            return result
        records = self._records(result.value)
        if records is None:
            return Failure(FailureKind.INVALID_RESPONSE, f"/{taxonomy.rest_base} did not return a list")
        return Success([TaxonomyTerm.from_wp(record, taxonomy) for record in records])

    async def get_term_by_slug(self, taxonomy: TaxonomyType, slug: str,
                               locale: Optional[str] = None) -> Result:
        """The term with ``slug`` or ``Success(None)``.

        With a locale, ``count`` is replaced by the number of tours published
        in that locale.
        """
        result = await self.get_taxonomy_terms(taxonomy, slug=slug)
        if not isinstance(result, Success):
            return result
        if not result.value:
            return Success(None)
        term = result.value[0]
        if locale is None:
            return Success(term)

        counted = await self._get('/tour', {
            taxonomy.filter_param: term.id,
            'lang': locale,
            'per_page': 1,
            '_fields': 'id',
        })
        if isinstance(counted, Success) and counted.value.total is not None:
            term = replace(term, count=counted.value.total)
        return Success(term)

    async def get_tours_by_term(self, taxonomy: TaxonomyType, slug: str, locale: str,
                                page: int = 1, per_page: int = 12) -> Result:
        """A page of tours for a taxonomy term.

        Tours assigned to the term are used when there are any. Otherwise the
        whole catalog is keyword matched against the taxonomy's terms.
        """
        term_result = await self.get_term_by_slug(taxonomy, slug)
        if not isinstance(term_result, Success):
            return term_result
        term = term_result.value
        if term is None:
            return Failure(FailureKind.NOT_FOUND, f"unknown {taxonomy.value} {slug!r}")

        assigned = await self.get_tours(locale, page=page, per_page=per_page,
                                        **{taxonomy.value: term.id})
        if not isinstance(assigned, Success) or assigned.value.total > 0:
            return assigned

        terms = await self.get_taxonomy_terms(taxonomy)
        catalog = await self.get_all_tours(locale)
        if not isinstance(terms, Success) or not isinstance(catalog, Success):
            return assigned
        matched = tours_matching_term(catalog.value, term, terms.value)
        self.logger.debug("Keyword fallback for %s %s matched %d tours", taxonomy.value, slug, len(matched))
        return Success(paginate(matched, page, per_page))

    # -- posts -----------------------------------------------------------

    async def get_posts(self, locale: str, page: int = 1, per_page: int = 10) -> Result:
        """One page of blog posts."""
        result = await self._get('/posts', {
            '_embed': True,
            'page': page,
            'per_page': min(per_page, MAX_PER_PAGE),
            'lang': locale,
        })
        if not isinstance(result, Success):
            return result
        records = self._records(result.value)
        if records is None:
            return Failure(FailureKind.INVALID_RESPONSE, "/posts did not return a list")
        posts = [Post.from_wp(record, locale) for record in records]
        return Success(self._page_of(result.value, posts, page, min(per_page, MAX_PER_PAGE)))

    async def get_post_by_slug(self, slug: str, locale: str) -> Result:
        result = await self._get('/posts', {'slug': unquote(slug), '_embed': True, 'lang': locale})
        if not isinstance(result, Success):
            return result
        records = self._records(result.value)
        if records is None:
            return Failure(FailureKind.INVALID_RESPONSE, "/posts did not return a list")
        return Success(Post.from_wp(records[0], locale) if records else None)

    # -- reviews ---------------------------------------------------------

    async def get_google_reviews(self) -> Result:
        """Reviews previously synced into the CMS."""
        result = await self._get('/google-reviews', custom=True)
        if not isinstance(result, Success):
            return result
        records = self._records(result.value)
        if records is None:
            return Failure(FailureKind.INVALID_RESPONSE, "/google-reviews did not return a list")
        self.logger.debug("Retrieved %d reviews from CMS", len(records))
        return Success([Review.from_wp(record) for record in records])

    async def get_business_reviews(self) -> Result:
        """Aggregated review summary, or ``Success(None)`` when there are no reviews."""
        result = await self.get_google_reviews()
        if not isinstance(result, Success):
            return result
        reviews = result.value
        if not reviews:
            return Success(None)
        reviews_config = self.config.reviews_config
        return Success(PlaceDetails(
            name=reviews_config.business_name,
            formatted_address=reviews_config.business_address,
            rating=sum(review.rating for review in reviews) / len(reviews),
            user_ratings_total=len(reviews),
            reviews=tuple(reviews),
        ))
