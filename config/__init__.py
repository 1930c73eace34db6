"""Configuration for the Albi Mall assistant."""

from config.synonyms import (
    SYNONYMS,
    COLOR_SYNONYMS,
    PRODUCT_TYPES,
    expand_synonyms,
    translate_query,
)
from config.patterns import (
    PRICE_PATTERNS,
    GREETING_PATTERNS,
    FAREWELL_PATTERNS,
    has_pattern,
)
from config.settings import Settings, get_settings

__all__ = [
    "SYNONYMS",
    "COLOR_SYNONYMS",
    "PRODUCT_TYPES",
    "expand_synonyms",
    "translate_query",
    "PRICE_PATTERNS",
    "GREETING_PATTERNS",
    "FAREWELL_PATTERNS",
    "has_pattern",
    "Settings",
    "get_settings",
]
