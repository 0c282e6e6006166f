"""
Typed records for CMS content.

Records are immutable snapshots built from raw REST payloads. Free-text
fields are normalized on the way in; raw HTML is kept alongside where a
renderer needs it.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, List, Mapping, Optional, Tuple, TypeVar

from tour_gateway.providers.text import normalize_text, rendered


T = TypeVar('T')


class TaxonomyType(Enum):
    """Tour taxonomies exposed by the CMS."""
    ACTIVITY = "activity"
    DESTINATION = "destination"
    TAG = "tag"
    CATEGORY = "category"

    @property
    def rest_base(self) -> str:
        """REST collection for this taxonomy."""
        return f"tour-{self.value}"

    @property
    def filter_param(self) -> str:
        """Tour field and query parameter holding term IDs."""
        if self in (TaxonomyType.TAG, TaxonomyType.CATEGORY):
            return f"tour_{self.value}"
        return self.rest_base

    @property
    def dictionary_key(self) -> str:
        """Table name under ``taxonomies`` in a locale dictionary."""
        return {
            TaxonomyType.ACTIVITY: 'activities',
            TaxonomyType.DESTINATION: 'destinations',
            TaxonomyType.TAG: 'tags',
            TaxonomyType.CATEGORY: 'categories',
        }[self]


def _int_ids(value: Any) -> Tuple[int, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    ids = []
    for item in value:
        try:
            ids.append(int(item))
        except (TypeError, ValueError):
            continue
    return tuple(ids)


def _optional_int(value: Any) -> Optional[int]:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _featured_image(record: Mapping[str, Any]) -> Optional[str]:
    sizes = record.get('featured_image_url')
    if isinstance(sizes, dict):
        for size in ('large', 'full', 'medium', 'thumbnail'):
            entry = sizes.get(size)
            if isinstance(entry, dict) and entry.get('url'):
                return entry['url']
    embedded = record.get('_embedded') or {}
    media = embedded.get('wp:featuredmedia') if isinstance(embedded, dict) else None
    if isinstance(media, list) and media and isinstance(media[0], dict):
        return media[0].get('source_url') or None
    return None


@dataclass(frozen=True)
class TaxonomyTerm:
    """A classification term attachable to tours."""
    id: int
    slug: str
    name: str
    taxonomy: TaxonomyType
    description: str = ''
    count: int = 0
    parent: int = 0

    @classmethod
    def from_wp(cls, record: Mapping[str, Any], taxonomy: TaxonomyType) -> "TaxonomyTerm":
        return cls(
            id=int(record.get('id') or 0),
            slug=str(record.get('slug') or ''),
            name=normalize_text(record.get('name')),
            taxonomy=taxonomy,
            description=normalize_text(record.get('description')),
            count=int(record.get('count') or 0),
            parent=int(record.get('parent') or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['taxonomy'] = self.taxonomy.value
        return data


@dataclass(frozen=True)
class Tour:
    """Immutable snapshot of a tour as served for one locale."""
    id: int
    slug: str
    title: str
    locale: str
    excerpt: str = ''
    excerpt_html: str = ''
    content: str = ''
    content_html: str = ''
    activities: Tuple[int, ...] = ()
    destinations: Tuple[int, ...] = ()
    tags: Tuple[int, ...] = ()
    categories: Tuple[int, ...] = ()
    date: Optional[str] = None
    duration_days: Optional[int] = None
    duration_text: str = ''
    price: Optional[str] = None
    featured_image: Optional[str] = None
    meta: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_wp(cls, record: Mapping[str, Any], locale: str) -> "Tour":
        meta = record.get('tour_meta')
        if not isinstance(meta, dict):
            meta = {}
        excerpt_html = rendered(record.get('excerpt'))
        content_html = rendered(record.get('content'))
        return cls(
            id=int(record.get('id') or 0),
            slug=str(record.get('slug') or ''),
            title=normalize_text(rendered(record.get('title'))),
            locale=locale,
            excerpt=normalize_text(excerpt_html),
            excerpt_html=excerpt_html,
            content=normalize_text(content_html),
            content_html=content_html,
            activities=_int_ids(record.get('tour-activity')),
            destinations=_int_ids(record.get('tour-destination')),
            tags=_int_ids(record.get('tour_tag')),
            categories=_int_ids(record.get('tour_category')),
            date=record.get('date'),
            duration_days=_optional_int(meta.get('duration_days')),
            duration_text=normalize_text(meta.get('duration_text')),
            price=meta.get('price') or None,
            featured_image=_featured_image(record),
            meta=dict(meta),
        )

    def term_ids(self, taxonomy: TaxonomyType) -> Tuple[int, ...]:
        return {
            TaxonomyType.ACTIVITY: self.activities,
            TaxonomyType.DESTINATION: self.destinations,
            TaxonomyType.TAG: self.tags,
            TaxonomyType.CATEGORY: self.categories,
        }[taxonomy]

    def to_dict(self, full: bool = False) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'slug': self.slug,
            'title': self.title,
            'locale': self.locale,
            'excerpt': self.excerpt,
            'activities': list(self.activities),
            'destinations': list(self.destinations),
            'tags': list(self.tags),
            'date': self.date,
            'duration_days': self.duration_days,
            'duration_text': self.duration_text,
            'price': self.price,
            'featured_image': self.featured_image,
        }
        if full:
            data['content_html'] = self.content_html
            data['content'] = self.content
            data['meta'] = dict(self.meta)
        return data


@dataclass(frozen=True)
class Post:
    """A blog post."""
    id: int
    slug: str
    title: str
    locale: str
    excerpt: str = ''
    content_html: str = ''
    date: Optional[str] = None

    @classmethod
    def from_wp(cls, record: Mapping[str, Any], locale: str) -> "Post":
        return cls(
            id=int(record.get('id') or 0),
            slug=str(record.get('slug') or ''),
            title=normalize_text(rendered(record.get('title'))),
            locale=locale,
            excerpt=normalize_text(rendered(record.get('excerpt'))),
            content_html=rendered(record.get('content')),
            date=record.get('date'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Review:
    """A third-party business review in the site's storage format."""
    author_name: str
    rating: float
    text: str
    time: float
    author_url: str = ''
    profile_photo_url: str = ''
    relative_time_description: str = 'Recently'
    language: str = 'en'

    @classmethod
    def from_wp(cls, record: Mapping[str, Any]) -> "Review":
        try:
            rating = float(record.get('rating') or 0)
        except (TypeError, ValueError):
            rating = 0.0
        try:
            timestamp = float(record.get('time') or 0)
        except (TypeError, ValueError):
            timestamp = 0.0
        return cls(
            author_name=normalize_text(record.get('author_name')) or 'Anonymous',
            rating=rating,
            text=normalize_text(record.get('text')),
            time=timestamp,
            author_url=record.get('author_url') or '',
            profile_photo_url=record.get('profile_photo_url') or '',
            relative_time_description=record.get('relative_time_description') or 'Recently',
            language=record.get('language') or 'en',
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PlaceDetails:
    """Aggregated business review summary."""
    name: str
    formatted_address: str
    rating: float
    user_ratings_total: int
    reviews: Tuple[Review, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'formatted_address': self.formatted_address,
            'rating': self.rating,
            'user_ratings_total': self.user_ratings_total,
            'reviews': [review.to_dict() for review in self.reviews],
        }


@dataclass(frozen=True)
class PageWindow(Generic[T]):
    """One page of an ordered collection."""
    items: List[T]
    page: int
    per_page: int
    total: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    def to_dict(self) -> Dict[str, Any]:
        return {
            'items': [item.to_dict() if hasattr(item, 'to_dict') else item for item in self.items],
            'page': self.page,
            'per_page': self.per_page,
            'total': self.total,
            'total_pages': self.total_pages,
        }


def utc_timestamp(value: Optional[str]) -> Optional[float]:
    """Parse an ISO-8601 date into epoch seconds (naive dates are UTC)."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()
