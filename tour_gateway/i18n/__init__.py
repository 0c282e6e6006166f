"""
Locale helpers and dictionary loading.

The default locale is served at bare paths; every other locale lives under
``/<locale>``. Dictionaries are JSON files in ``dictionaries/`` named after
the locale and are read once per process.
"""
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Sequence

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = 'en'
LOCALES = ('en', 'zh')

DICTIONARY_DIR = Path(__file__).parent / 'dictionaries'


def get_locale_prefix(locale: str, default_locale: str = DEFAULT_LOCALE) -> str:
    """Path prefix for ``locale``: empty for the default, ``/<locale>`` otherwise."""
    return '' if locale == default_locale else f'/{locale}'


def get_locale_from_pathname(pathname: str, locales: Sequence[str] = LOCALES,
                             default_locale: str = DEFAULT_LOCALE) -> str:
    """Locale named by the first path segment, or the default locale."""
    for locale in locales:
        if pathname == f'/{locale}' or pathname.startswith(f'/{locale}/'):
            return locale
    return default_locale


def localize_path(path: str, locale: str, default_locale: str = DEFAULT_LOCALE) -> str:
    """Canonical public URL of ``path`` (a locale-free path) in ``locale``."""
    if not path.startswith('/'):
        path = '/' + path
    prefix = get_locale_prefix(locale, default_locale)
    if not prefix:
        return path
    return prefix if path == '/' else prefix + path


@lru_cache(maxsize=None)
def load_dictionary(locale: str) -> Dict[str, Any]:
    """Dictionary for ``locale``; unknown or unreadable locales load as ``{}``."""
    path = DICTIONARY_DIR / f'{locale}.json'
    if not path.is_file():
        return {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Failed to load dictionary %s: %s", path, e)
        return {}
