"""
SerpAPI review source and CMS review sync.

Reviews are fetched from SerpAPI's ``google_maps_reviews`` engine, converted
to the site's storage format and pushed into the CMS custom namespace, which
then serves them to ``WordPressContentProvider.get_google_reviews``.
"""

import asyncio
import time
from typing import Any, Dict, List, Mapping, Optional

import aiohttp

from tour_gateway.config import Config
from tour_gateway.providers.base import (
    Failure,
    FailureKind,
    Provider,
    ProviderError,
    ProviderMetadata,
    Result,
    Success,
)
from tour_gateway.providers.models import Review, utc_timestamp
from tour_gateway.providers.text import normalize_text
from tour_gateway.services.session_manager import SessionManager


def transform_review(raw: Mapping[str, Any]) -> Review:
    """Convert one SerpAPI review into the CMS storage format.

    Accepts both the flat ``reviewer``/``review`` shape and SerpAPI's nested
    ``user``/``snippet`` shape. Missing dates fall back to now.
    """
    user = raw.get('user') if isinstance(raw.get('user'), dict) else {}
    when = raw.get('review_datetime') or raw.get('review_datetime_utc') or raw.get('iso_date')
    timestamp = utc_timestamp(when) if isinstance(when, str) else None
    try:
        rating = float(raw.get('rating') or 0)
    except (TypeError, ValueError):
        rating = 0.0
    return Review(
        author_name=normalize_text(raw.get('reviewer') or user.get('name')) or 'Anonymous',
        author_url=raw.get('reviewer_url') or user.get('link') or '',
        profile_photo_url=raw.get('reviewer_image') or user.get('thumbnail') or '',
        rating=rating,
        text=normalize_text(raw.get('review_text') or raw.get('review') or raw.get('snippet')),
        time=timestamp if timestamp is not None else time.time(),
        relative_time_description=raw.get('review_datetime') or raw.get('date') or 'Recently',
        language='en',
    )


class SerpApiReviewProvider(Provider):
    """Fetches Google Maps reviews and syncs them into the CMS."""

    def __init__(self, config: Config, sessions: SessionManager):
        super().__init__()
        self.config = config
        self.reviews = config.reviews_config
        self.cms = config.cms_config
        self.sessions = sessions

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name="serpapi",
            version="1.0.0",
            description="Google Maps reviews via SerpAPI",
            capabilities=["reviews", "review_sync"],
        )

    async def ping(self) -> Result:
        # SerpAPI bills every search, so only configuration is checked.
        if not self.reviews.serpapi_key:
            return Failure(FailureKind.NOT_CONFIGURED, "SERPAPI_KEY is not configured")
        return Success(True)

    def require_sync_target(self) -> str:
        """Base URL of the CMS review endpoints.

        Raises:
            ProviderError: If no CMS custom API URL can be derived
        """
        base = self.cms.custom_api_base
        if not base:
            raise ProviderError("WordPress custom API URL is not configured", provider_name="serpapi")
        return base

    async def fetch_reviews(self, place_id: Optional[str] = None) -> Result:
        """Raw SerpAPI response for ``place_id`` (defaults to the configured place)."""
        if not self.reviews.serpapi_key:
            self.logger.error("SerpAPI key not configured")
            return Failure(FailureKind.NOT_CONFIGURED, "SERPAPI_KEY is not configured")

        place_id = place_id or self.reviews.place_id
        params = {
            'engine': 'google_maps_reviews',
            'place_id': place_id,
            'api_key': self.reviews.serpapi_key,
        }
        self.logger.info("Fetching reviews for place %s", place_id)
        try:
            session = await self.sessions.get_session()
            async with session.get(self.reviews.serpapi_url, params=params,
                                   headers={'Accept': 'application/json'},
                                   timeout=self.sessions.timeout('serpapi')) as resp:
                if resp.status != 200:
                    self.logger.warning("SerpAPI returned HTTP %s", resp.status)
                    return Failure(FailureKind.UNAVAILABLE, f"SerpAPI error: {resp.status}", status=resp.status)
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.warning("SerpAPI request failed: %s", e or type(e).__name__)
            return Failure(FailureKind.UNAVAILABLE, "SerpAPI unreachable")
        except ValueError:
            return Failure(FailureKind.INVALID_RESPONSE, "SerpAPI returned malformed JSON")

        if not isinstance(data, dict):
            return Failure(FailureKind.INVALID_RESPONSE, "SerpAPI did not return an object")
        self.logger.info("Fetched %d reviews (business: %s, rating: %s)",
                         len(data.get('reviews') or []), data.get('business_name'), data.get('rating'))
        return Success(data)

    async def _cms_call(self, method: str, path: str, key: str,
                        body: Optional[Dict[str, Any]] = None) -> Result:
        url = f"{self.require_sync_target()}{path}"
        auth = aiohttp.BasicAuth(*self.cms.basic_auth) if self.cms.basic_auth else None
        try:
            session = await self.sessions.get_session()
            async with session.request(method, url, params={'key': key}, json=body, auth=auth,
                                       headers={'User-Agent': self.cms.user_agent},
                                       timeout=self.sessions.timeout('cms')) as resp:
                if not 200 <= resp.status < 300:
                    self.logger.warning("CMS %s %s returned HTTP %s", method, path, resp.status)
                    return Failure(FailureKind.REJECTED, f"CMS returned HTTP {resp.status}", status=resp.status)
                try:
                    return Success(await resp.json(content_type=None))
                except ValueError:
                    return Success(None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.warning("CMS %s %s failed: %s", method, path, e or type(e).__name__)
            return Failure(FailureKind.UNAVAILABLE, "CMS unreachable")

    async def push_reviews(self, reviews: List[Review], key: str) -> Result:
        """Store ``reviews`` in the CMS, replacing what it had."""
        return await self._cms_call('POST', '/google-reviews/sync', key,
                                    {'reviews': [review.to_dict() for review in reviews]})

    async def clear_reviews(self, key: str) -> Result:
        """Delete every stored review from the CMS."""
        return await self._cms_call('DELETE', '/google-reviews/clear', key)

    async def sync_reviews(self, key: str, place_id: Optional[str] = None) -> Result:
        """Fetch, transform and push reviews in one go.

        Returns:
            ``Success({'count': n, 'details': <CMS response>})``
        """
        fetched = await self.fetch_reviews(place_id)
        if not isinstance(fetched, Success):
            return fetched
        raw_reviews = fetched.value.get('reviews')
        if not isinstance(raw_reviews, list):
            return Failure(FailureKind.INVALID_RESPONSE, "Failed to fetch from SerpAPI")

        reviews = [transform_review(raw) for raw in raw_reviews if isinstance(raw, dict)]
        pushed = await self.push_reviews(reviews, key)
        if not isinstance(pushed, Success):
            return pushed
        self.logger.info("Synced %d reviews to CMS", len(reviews))
        return Success({'count': len(reviews), 'details': pushed.value})
