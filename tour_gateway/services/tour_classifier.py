"""
Tour classification and pagination.

Derives views the CMS does not store:
- duration buckets (five fixed trip-length ranges)
- keyword-matched activity/destination groups for tours with no explicit
  taxonomy assignment
- tour types (tickets, package tours, cruises)
- stable page windows over an ordered list
"""
import math
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from tour_gateway.providers.models import PageWindow, TaxonomyTerm, TaxonomyType, Tour

T = TypeVar('T')

UNCATEGORIZED = 'uncategorized'

_DURATION_TEXT_RE = re.compile(r'(\d+)\s*days?', re.IGNORECASE)
_TITLE_DAYS_RE = re.compile(r'(\d+)\s*days?(?:/|[^0-9]|$)', re.IGNORECASE)


@dataclass(frozen=True)
class DurationBucket:
    """A fixed trip-length category; ``max_days`` of None means open ended."""
    slug: str
    label: str
    description: str
    min_days: int
    max_days: Optional[int]

    def contains(self, days: int) -> bool:
        if days < self.min_days:
            return False
        return self.max_days is None or days <= self.max_days

    def to_dict(self) -> Dict[str, object]:
        return {
            'slug': self.slug,
            'label': self.label,
            'description': self.description,
            'min_days': self.min_days,
            'max_days': self.max_days,
        }


# Contiguous, non-overlapping ranges covering every positive day count.
DURATION_BUCKETS: Tuple[DurationBucket, ...] = (
    DurationBucket('single-day', 'Single-Day Tickets', 'Quick attractions and day activities', 1, 1),
    DurationBucket('short-breaks', '1–4 Days (Short Breaks)', 'Weekend getaways and short trips', 2, 4),
    DurationBucket('weeklong', '5–8 Days (Weeklong)', 'Full week vacations and tours', 5, 8),
    DurationBucket('extended-journeys', '9–29 Days (Extended Journeys)', 'In-depth explorations and adventures', 9, 29),
    DurationBucket('grand-voyages', '30+ Days (Grand Voyages)', 'Epic journeys and world tours', 30, None),
)

_BUCKETS_BY_SLUG = {bucket.slug: bucket for bucket in DURATION_BUCKETS}


def get_duration_bucket(slug: str) -> Optional[DurationBucket]:
    """Bucket for ``slug``, or None when no such bucket exists."""
    return _BUCKETS_BY_SLUG.get(slug)


def classify_duration(days: int) -> Optional[DurationBucket]:
    """The single bucket containing ``days``; None when days < 1 (unknown)."""
    if days < 1:
        return None
    for bucket in DURATION_BUCKETS:
        if bucket.contains(days):
            return bucket
    return None


def extract_tour_days(tour: Tour) -> int:
    """Number of days a tour lasts, or 0 when it cannot be derived.

    Checks the explicit ``duration_days`` meta, then "N Days" in the duration
    text, then the title. Ticket and admission products count as one day.
    """
    if tour.duration_days:
        return tour.duration_days

    if tour.duration_text:
        match = _DURATION_TEXT_RE.search(tour.duration_text)
        if match:
            return int(match.group(1))

    title = tour.title.lower()
    match = _TITLE_DAYS_RE.search(title)
    if match:
        return int(match.group(1))

    if 'ticket' in title or 'admission' in title:
        return 1
    return 0


def filter_tours_by_duration(tours: Iterable[Tour], slug: str) -> Optional[List[Tour]]:
    """Tours in bucket ``slug``; None if the bucket does not exist."""
    bucket = get_duration_bucket(slug)
    if bucket is None:
        return None
    return [tour for tour in tours if bucket.contains(extract_tour_days(tour))]


def group_tours_by_duration(tours: Iterable[Tour]) -> Dict[str, List[Tour]]:
    """Every bucket slug mapped to its tours; underivable durations are dropped."""
    groups: Dict[str, List[Tour]] = {bucket.slug: [] for bucket in DURATION_BUCKETS}
    for tour in tours:
        bucket = classify_duration(extract_tour_days(tour))
        if bucket is not None:
            groups[bucket.slug].append(tour)
    return groups


def build_category_keyword_map(categories: Iterable[TaxonomyTerm]) -> Dict[str, TaxonomyTerm]:
    """Map every lower-cased keyword variant of each category to the category.

    Variants: name, slug, slug with hyphens as spaces, slug without hyphens.
    Later categories win when two share a keyword.
    """
    keyword_map: Dict[str, TaxonomyTerm] = {}
    for category in categories:
        slug = category.slug.lower()
        for keyword in (category.name.lower(), slug, slug.replace('-', ' '), slug.replace('-', '')):
            keyword = keyword.strip()
            if keyword:
                keyword_map[keyword] = category
    return keyword_map


def match_category(title: str, keyword_map: Mapping[str, TaxonomyTerm]) -> Optional[TaxonomyTerm]:
    """Category whose longest keyword occurs in ``title``; None if uncategorized."""
    title_lower = title.lower()
    for keyword in sorted(keyword_map, key=len, reverse=True):
        if keyword in title_lower:
            return keyword_map[keyword]
    return None


def group_tours_by_category(
    tours: Iterable[Tour],
    categories: Sequence[TaxonomyTerm],
    taxonomy: TaxonomyType,
) -> Dict[str, List[Tour]]:
    """Group tours by category slug.

    A tour explicitly assigned to known terms is listed under each of them.
    Otherwise its title is keyword matched; unmatched tours land under
    ``uncategorized``.
    """
    by_id = {category.id: category for category in categories}
    keyword_map = build_category_keyword_map(categories)
    groups: Dict[str, List[Tour]] = {category.slug: [] for category in categories}
    groups.setdefault(UNCATEGORIZED, [])

    for tour in tours:
        assigned = [by_id[term_id] for term_id in tour.term_ids(taxonomy) if term_id in by_id]
        if not assigned:
            matched = match_category(tour.title, keyword_map)
            assigned = [matched] if matched else []
        if not assigned:
            groups[UNCATEGORIZED].append(tour)
            continue
        for category in assigned:
            groups[category.slug].append(tour)
    return groups


def tours_matching_term(
    tours: Iterable[Tour],
    term: TaxonomyTerm,
    categories: Sequence[TaxonomyTerm],
) -> List[Tour]:
    """Tours that belong to ``term`` by assignment or by title keywords."""
    groups = group_tours_by_category(tours, categories, term.taxonomy)
    return groups.get(term.slug, [])


@dataclass(frozen=True)
class TourType:
    """A keyword-defined tour type."""
    slug: str
    label: str
    description: str
    keywords: Tuple[str, ...]
    exclude_keywords: Tuple[str, ...] = ()

    def matches(self, tour: Tour) -> bool:
        title = tour.title.lower()
        if any(word in title for word in self.exclude_keywords):
            return False
        return any(word in title for word in self.keywords)

    def to_dict(self) -> Dict[str, str]:
        return {'slug': self.slug, 'label': self.label, 'description': self.description}


TOUR_TYPES: Tuple[TourType, ...] = (
    TourType('attraction-tickets', 'Attraction Tickets',
             'Admission and activity tickets for popular attractions',
             keywords=('ticket', 'admission')),
    TourType('land-tours', 'Package Tours',
             'Multi-day package tours and vacation packages',
             keywords=('package tour',), exclude_keywords=('cruise', 'ticket', 'admission')),
    TourType('cruises', 'Cruises',
             'River cruises, ocean cruises, and expedition cruises',
             keywords=('cruise', 'river cruise', 'expedition'), exclude_keywords=('safari', 'wildlife', 'kenya')),
)

_TYPES_BY_SLUG = {tour_type.slug: tour_type for tour_type in TOUR_TYPES}


def get_tour_type(slug: str) -> Optional[TourType]:
    return _TYPES_BY_SLUG.get(slug)


def filter_tours_by_type(tours: Iterable[Tour], slug: str) -> Optional[List[Tour]]:
    """Tours of type ``slug``; None if the type does not exist."""
    tour_type = get_tour_type(slug)
    if tour_type is None:
        return None
    return [tour for tour in tours if tour_type.matches(tour)]


def paginate(items: Sequence[T], page: int, per_page: int) -> PageWindow[T]:
    """Slice one page out of ``items``.

    Pages past the end yield an empty ``items`` list rather than an error.

    Raises:
        ValueError: If ``page`` or ``per_page`` is below 1
    """
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if per_page < 1:
        raise ValueError(f"per_page must be >= 1, got {per_page}")
    total = len(items)
    start = (page - 1) * per_page
    return PageWindow(
        items=list(items[start:start + per_page]),
        page=page,
        per_page=per_page,
        total=total,
        total_pages=math.ceil(total / per_page),
    )


def parse_page_args(page: Optional[str], per_page: Optional[str] = None,
                    default_per_page: int = 12, max_per_page: int = 100) -> Tuple[int, int]:
    """Clamp raw query-string values into a valid (page, per_page) pair."""
    try:
        page_number = max(1, int(page)) if page else 1
    except ValueError:
        page_number = 1
    try:
        size = int(per_page) if per_page else default_per_page
    except ValueError:
        size = default_per_page
    return page_number, min(max(1, size), max_per_page)
