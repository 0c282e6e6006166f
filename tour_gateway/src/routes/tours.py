"""
Locale view routes: the data each page of the site renders from.

Every view reads through one request-scoped content provider, so shared
lookups (terms, the tour catalog) hit the CMS once per request. When the CMS
is down a view still answers 200 with empty collections and
``"error": "content_unavailable"``.
"""
import asyncio

from quart import Blueprint, current_app, jsonify, request

from tour_gateway.providers.base import Failure, FailureKind, Success, unwrap_or
from tour_gateway.providers.models import PageWindow, TaxonomyType
from tour_gateway.services.taxonomy_translator import translate_duration_bucket, translate_terms
from tour_gateway.services.tour_classifier import (
    DURATION_BUCKETS,
    get_duration_bucket,
    get_tour_type,
    group_tours_by_duration,
    parse_page_args,
)
from tour_gateway.src.routes.context import content_provider, gateway_config

bp = Blueprint('tours', __name__)

CONTENT_UNAVAILABLE = FailureKind.UNAVAILABLE.value


def _not_found():
    return jsonify({'error': 'not_found'}), 404


def _known_locale(lang) -> bool:
    return lang in gateway_config().locale_config.locales


def _empty_page(page, per_page):
    return PageWindow(items=[], page=page, per_page=per_page, total=0, total_pages=0)


def _page_args(default_per_page=12):
    return parse_page_args(request.args.get('page'), request.args.get('per_page'),
                           default_per_page=default_per_page)


def _int_arg(name):
    try:
        value = int(request.args.get(name, ''))
    except ValueError:
        return None
    return value if value > 0 else None


def _degrade(payload, *results):
    """Mark ``payload`` as degraded if any result failed; log the failures."""
    failures = [r for r in results if isinstance(r, Failure)]
    for failure in failures:
        current_app.logger.warning('Content read failed on %s: %s', request.path, failure.detail)
    if failures:
        payload['error'] = CONTENT_UNAVAILABLE
    return payload


def _terms_dict(result, lang, taxonomy):
    terms = translate_terms(unwrap_or(result, []), lang, taxonomy)
    return [term.to_dict() for term in terms]


@bp.route('/<lang>/')
async def home(lang):
    if not _known_locale(lang):
        return _not_found()
    provider = content_provider()
    featured, activities, reviews = await asyncio.gather(
        provider.get_featured_tours(lang),
        provider.get_taxonomy_terms(TaxonomyType.ACTIVITY),
        provider.get_business_reviews(),
    )
    summary = unwrap_or(reviews, None)
    payload = {
        'locale': lang,
        'featured_tours': [tour.to_dict() for tour in unwrap_or(featured, [])],
        'activities': _terms_dict(activities, lang, TaxonomyType.ACTIVITY),
        'reviews': summary.to_dict() if summary else None,
    }
    return jsonify(_degrade(payload, featured, activities))


@bp.route('/<lang>/tours')
async def tour_list(lang):
    if not _known_locale(lang):
        return _not_found()
    page, per_page = _page_args()
    provider = content_provider()
    tours, activities, destinations = await asyncio.gather(
        provider.get_tours(
            lang, page=page, per_page=per_page,
            activity=_int_arg('activity'),
            destination=_int_arg('destination'),
            search=request.args.get('search') or None,
            orderby=request.args.get('orderby', 'date'),
            order='asc' if request.args.get('order') == 'asc' else 'desc',
        ),
        provider.get_taxonomy_terms(TaxonomyType.ACTIVITY),
        provider.get_taxonomy_terms(TaxonomyType.DESTINATION),
    )
    payload = {
        'locale': lang,
        'tours': unwrap_or(tours, _empty_page(page, per_page)).to_dict(),
        'activities': _terms_dict(activities, lang, TaxonomyType.ACTIVITY),
        'destinations': _terms_dict(destinations, lang, TaxonomyType.DESTINATION),
    }
    return jsonify(_degrade(payload, tours, activities, destinations))


@bp.route('/<lang>/tours/<slug>')
async def tour_detail(lang, slug):
    if not _known_locale(lang):
        return _not_found()
    provider = content_provider()
    result = await provider.get_tour_by_slug(slug, lang)
    if isinstance(result, Failure):
        return jsonify(_degrade({'locale': lang, 'tour': None}, result))
    tour = result.value
    if tour is None:
        return _not_found()

    activities, destinations = await asyncio.gather(
        provider.get_taxonomy_terms(TaxonomyType.ACTIVITY),
        provider.get_taxonomy_terms(TaxonomyType.DESTINATION),
    )
    payload = {
        'locale': lang,
        'tour': tour.to_dict(full=True),
        'activities': [t for t in _terms_dict(activities, lang, TaxonomyType.ACTIVITY)
                       if t['id'] in tour.activities],
        'destinations': [t for t in _terms_dict(destinations, lang, TaxonomyType.DESTINATION)
                         if t['id'] in tour.destinations],
    }
    return jsonify(_degrade(payload, activities, destinations))


@bp.route('/<lang>/tours/duration')
async def duration_index(lang):
    if not _known_locale(lang):
        return _not_found()
    result = await content_provider().get_all_tours(lang)
    groups = group_tours_by_duration(unwrap_or(result, []))
    buckets = []
    for bucket in DURATION_BUCKETS:
        entry = translate_duration_bucket(bucket, lang).to_dict()
        entry['count'] = len(groups[bucket.slug])
        buckets.append(entry)
    return jsonify(_degrade({'locale': lang, 'buckets': buckets}, result))


@bp.route('/<lang>/tours/duration/<slug>')
async def duration_detail(lang, slug):
    bucket = get_duration_bucket(slug)
    if not _known_locale(lang) or bucket is None:
        return _not_found()
    page, per_page = _page_args()
    result = await content_provider().get_tours_by_duration(slug, lang, page, per_page)
    payload = {
        'locale': lang,
        'bucket': translate_duration_bucket(bucket, lang).to_dict(),
        'tours': unwrap_or(result, _empty_page(page, per_page)).to_dict(),
    }
    return jsonify(_degrade(payload, result))


async def _term_view(lang, slug, taxonomy):
    if not _known_locale(lang):
        return _not_found()
    page, per_page = _page_args()
    provider = content_provider()
    term_result = await provider.get_term_by_slug(taxonomy, slug, lang)
    if isinstance(term_result, Success) and term_result.value is None:
        return _not_found()

    tours = await provider.get_tours_by_term(taxonomy, slug, lang, page, per_page)
    if isinstance(tours, Failure) and tours.kind is FailureKind.NOT_FOUND:
        return _not_found()

    term = None
    if isinstance(term_result, Success):
        term = translate_terms([term_result.value], lang, taxonomy)[0].to_dict()
    payload = {
        'locale': lang,
        'term': term,
        'tours': unwrap_or(tours, _empty_page(page, per_page)).to_dict(),
    }
    return jsonify(_degrade(payload, term_result, tours))


@bp.route('/<lang>/tours/activity/<slug>')
async def activity_detail(lang, slug):
    return await _term_view(lang, slug, TaxonomyType.ACTIVITY)


@bp.route('/<lang>/tours/destination/<slug>')
async def destination_detail(lang, slug):
    return await _term_view(lang, slug, TaxonomyType.DESTINATION)


@bp.route('/<lang>/tours/type/<slug>')
async def type_detail(lang, slug):
    tour_type = get_tour_type(slug)
    if not _known_locale(lang) or tour_type is None:
        return _not_found()
    page, per_page = _page_args()
    result = await content_provider().get_tours_by_type(slug, lang, page, per_page)
    payload = {
        'locale': lang,
        'type': tour_type.to_dict(),
        'tours': unwrap_or(result, _empty_page(page, per_page)).to_dict(),
    }
    return jsonify(_degrade(payload, result))


@bp.route('/<lang>/posts/<slug>')
async def post_detail(lang, slug):
    if not _known_locale(lang):
        return _not_found()
    result = await content_provider().get_post_by_slug(slug, lang)
    if isinstance(result, Failure):
        return jsonify(_degrade({'locale': lang, 'post': None}, result))
    if result.value is None:
        return _not_found()
    return jsonify({'locale': lang, 'post': result.value.to_dict()})


def register(app):
    """Register tour view blueprint with app"""
    app.register_blueprint(bp)
