"""
Locale display names for taxonomy terms and duration buckets.

Display names are computed per request from the term slug and the locale
dictionary; the CMS name is the fallback whenever a translation is missing.
"""
import dataclasses
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from tour_gateway.i18n import load_dictionary
from tour_gateway.providers.models import TaxonomyTerm, TaxonomyType
from tour_gateway.services.tour_classifier import DurationBucket

DictionaryLoader = Callable[[str], Mapping[str, Any]]


def _lookup(dictionary: Any, *path: str) -> Optional[str]:
    node = dictionary
    for part in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(part)
    return node if isinstance(node, str) and node else None


def _taxonomy_table(locale: str, taxonomy: TaxonomyType,
                    loader: Optional[DictionaryLoader]) -> Dict[str, str]:
    dictionary = (loader or load_dictionary)(locale)
    taxonomies = dictionary.get('taxonomies') if isinstance(dictionary, Mapping) else None
    table = taxonomies.get(taxonomy.dictionary_key) if isinstance(taxonomies, Mapping) else None
    return table if isinstance(table, dict) else {}


def translate_term_name(slug: str, name: str, locale: str, taxonomy: TaxonomyType,
                        loader: Optional[DictionaryLoader] = None) -> str:
    """Translated name for one term, or ``name`` when none exists."""
    translated = _taxonomy_table(locale, taxonomy, loader).get(slug)
    return translated if isinstance(translated, str) and translated else name


def translate_terms(terms: Iterable[TaxonomyTerm], locale: str, taxonomy: TaxonomyType,
                    loader: Optional[DictionaryLoader] = None) -> List[TaxonomyTerm]:
    """Copies of ``terms`` with locale display names.

    Input terms are never modified. A missing locale dictionary or taxonomy
    table leaves every name as the CMS sent it.
    """
    table = _taxonomy_table(locale, taxonomy, loader)
    translated = []
    for term in terms:
        name = table.get(term.slug)
        if isinstance(name, str) and name:
            translated.append(dataclasses.replace(term, name=name))
        else:
            translated.append(dataclasses.replace(term))
    return translated


def translate_duration_bucket(bucket: DurationBucket, locale: str,
                              loader: Optional[DictionaryLoader] = None) -> DurationBucket:
    """Copy of ``bucket`` with a locale label, falling back to the English label."""
    label = _lookup((loader or load_dictionary)(locale), 'durations', bucket.slug)
    return dataclasses.replace(bucket, label=label or bucket.label)
