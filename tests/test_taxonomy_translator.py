from tour_gateway.i18n import get_locale_from_pathname, get_locale_prefix, load_dictionary, localize_path
from tour_gateway.providers.models import TaxonomyTerm, TaxonomyType
from tour_gateway.services.taxonomy_translator import (
    translate_duration_bucket,
    translate_term_name,
    translate_terms,
)
from tour_gateway.services.tour_classifier import get_duration_bucket


def activity(term_id, slug, name):
    return TaxonomyTerm(id=term_id, slug=slug, name=name, taxonomy=TaxonomyType.ACTIVITY)


def test_translates_known_slugs_from_bundled_dictionary():
    terms = [activity(1, 'city-tours', 'City Tours'), activity(2, 'wine-tasting', 'Wine Tasting')]
    translated = translate_terms(terms, 'zh', TaxonomyType.ACTIVITY)
    assert [t.name for t in translated] == ['城市观光', 'Wine Tasting']


def test_inputs_are_not_mutated():
    terms = [activity(1, 'city-tours', 'City Tours')]
    translated = translate_terms(terms, 'zh', TaxonomyType.ACTIVITY)
    assert terms[0].name == 'City Tours'
    assert translated[0] is not terms[0]
    assert translated[0].id == 1


def test_missing_dictionary_or_table_falls_back():
    terms = [activity(1, 'city-tours', 'City Tours')]
    assert translate_terms(terms, 'fr', TaxonomyType.ACTIVITY)[0].name == 'City Tours'
    assert translate_terms(terms, 'zh', TaxonomyType.TAG)[0].name == 'City Tours'
    assert translate_terms(terms, 'zh', TaxonomyType.ACTIVITY, loader=lambda locale: {'taxonomies': []})[0].name == 'City Tours'


def test_custom_loader():
    loader = {'ja': {'taxonomies': {'destinations': {'banff': 'バンフ'}}}}.get
    assert translate_term_name('banff', 'Banff', 'ja', TaxonomyType.DESTINATION,
                               loader=lambda locale: loader(locale) or {}) == 'バンフ'


def test_duration_bucket_labels():
    bucket = get_duration_bucket('weeklong')
    assert translate_duration_bucket(bucket, 'zh').label == '5–8天（一周游）'
    assert translate_duration_bucket(bucket, 'en').label == bucket.label
    assert translate_duration_bucket(bucket, 'fr').label == bucket.label


def test_unknown_locale_dictionary_is_empty():
    assert load_dictionary('xx') == {}


def test_locale_path_helpers():
    assert get_locale_prefix('en') == ''
    assert get_locale_prefix('zh') == '/zh'
    assert get_locale_from_pathname('/zh/tours') == 'zh'
    assert get_locale_from_pathname('/zhx') == 'en'
    assert get_locale_from_pathname('/tours') == 'en'
    assert localize_path('/tours', 'zh') == '/zh/tours'
    assert localize_path('/', 'zh') == '/zh'
    assert localize_path('tours', 'en') == '/tours'
