"""
Tour content gateway: CMS content aggregation, locale routing, and media,
form and review proxies for the travel site.
"""

__version__ = "1.0.0"
