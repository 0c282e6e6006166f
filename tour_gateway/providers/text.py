"""
Text cleanup for CMS string fields.

The CMS renders titles, term names and excerpts as HTML fragments with
entities (``Tickets &amp; Passes``, ``Banff&#8217;s``). These helpers turn
them into plain text for classification, translation and JSON views.
"""
import html
import re
import warnings
from typing import Any

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

_WHITESPACE_RE = re.compile(r'\s+')


def decode_html_entities(value: str) -> str:
    """Decode named and numeric HTML entities, leaving markup in place."""
    if not value:
        return value
    return html.unescape(value).replace('\xa0', ' ')


def strip_html_tags(value: str) -> str:
    """Remove markup from a small HTML fragment and decode its entities."""
    if not value:
        return value
    with warnings.catch_warnings():
        warnings.simplefilter('ignore', MarkupResemblesLocatorWarning)
        soup = BeautifulSoup(value, 'html.parser')
    return soup.get_text(' ')


def normalize_text(value: Any) -> str:
    """Plain-text form of a CMS field.

    Non-strings normalize to ``''``. Markup is stripped, entities are decoded,
    non-breaking spaces become spaces and runs of whitespace collapse.
    """
    if not isinstance(value, str):
        return ''
    text = strip_html_tags(value).replace('\xa0', ' ')
    return _WHITESPACE_RE.sub(' ', text).strip()


def rendered(field: Any) -> str:
    """Raw HTML of a WordPress ``{"rendered": ...}`` field (or a bare string)."""
    if isinstance(field, dict):
        value = field.get('rendered', '')
        return value if isinstance(value, str) else ''
    if isinstance(field, str):
        return field
    return ''
