"""
Filter extraction for the Albi Mall assistant.

Extracts structured constraints from a free-text shopping query:
- Color (with synonyms: "crimson" -> red, "e kuqe" -> red)
- Price bounds ("under $100", "$50-$80", "around 200", "nën 100 euro")
- Product type, category and subcategory ("totes", "çantë shpine")
- Material, size, brand and occasion

English and Albanian are matched directly from the vocabulary tables in
config/, without translating the query first.

Pure Python, no external dependencies except config modules.
"""

import re
from typing import Optional

from core.context import FilterSet
from core.structured_logging import get_logger, timed
from config.patterns import PRICE_PATTERNS, AROUND_MARGIN
from config.synonyms import (
    CATALOG_BRANDS,
    COLOR_SYNONYMS,
    COMPETING_BRANDS,
    MATERIAL_SYNONYMS,
    OCCASION_KEYWORDS,
    PRODUCT_TYPES,
    SIZE_SYNONYMS,
    translate_query,
)

# Module-level logger
_logger = get_logger("core.filters")


def _term_pattern(term: str) -> str:
    # \b does not work for terms that start/end with non-word chars
    return r'(?<!\w)' + term + r'(?!\w)'


def _earliest(text: str, table: dict) -> Optional[str]:
    """
    Return the canonical key whose variant appears first in text.

    Ties at the same position go to the longer variant ("royal blue" over "blue").
    """
    best = None
    best_key = (len(text) + 1, 0)
    for canonical, variants in table.items():
        for variant in variants:
            match = re.search(_term_pattern(re.escape(variant)), text)
            if match:
                key = (match.start(), -len(variant))
                if key < best_key:
                    best_key = key
                    best = canonical
    return best


# Words ignored when building scoring keywords
STOP_WORDS = {
    # English
    'a', 'an', 'the', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for',
    'of', 'with', 'by', 'from', 'is', 'are', 'be', 'do', 'does', 'have', 'has',
    'i', 'me', 'my', 'you', 'your', 'we', 'it', 'its', 'this', 'that', 'these',
    'those', 'what', 'which', 'any', 'some', 'all', 'not', 'no',
    'one', 'ones', 'something', 'anything', 'thing', 'things',
    'show', 'find', 'get', 'buy', 'need', 'want', 'looking', 'look', 'like',
    'please', 'thanks', 'can', 'could', 'would', 'should', 'have', 'got',
    'under', 'below', 'over', 'above', 'less', 'than', 'more', 'up', 'around',
    'about', 'between', 'budget', 'price', 'cheap', 'cheaper', 'usd', 'dollars',
    # Albanian
    'një', 'nje', 'e', 'të', 'te', 'dhe', 'në', 'ne', 'me', 'për', 'per',
    'më', 'nga', 'deri', 'nën', 'nen', 'mbi', 'rreth', 'dua', 'kam', 'nevojë',
    'trego', 'tregom', 'ka', 'keni', 'ju', 'lutem', 'euro', 'lekë', 'leke',
}


def normalize_query(query: str) -> str:
    """
    Normalize a query for provider search and cache keys.

    Lower-cases, translates Albanian vocabulary to English indexing terms,
    strips punctuation (keeping '$' and decimal points inside numbers) and
    collapses whitespace.

    Example:
        >>> normalize_query("Çantë e kuqe, nën 100€!")
        "bag red under 100"
    """
    text = translate_query(query.lower())
    # Drop punctuation except '$' and a decimal point between digits
    text = re.sub(r'(?!(?<=\d)\.(?=\d))[^\w\s$]', ' ', text)
    text = text.replace('_', ' ')
    return re.sub(r'\s+', ' ', text).strip()


def extract_keywords(query: str) -> list[str]:
    """
    Content words of a query, used for keyword scoring.

    Example:
        >>> extract_keywords("Show me a leather tote for work")
        ["leather", "tote", "work"]
    """
    words = re.findall(r'[^\W\d_]+', normalize_query(query))
    seen = []
    for word in words:
        if len(word) > 1 and word not in STOP_WORDS and word not in seen:
            seen.append(word)
    return seen


class FilterExtractor:
    """
    Extracts a FilterSet from user queries.

    Never raises: unresolvable fields are left as None.

    Example:
        extractor = FilterExtractor()
        filters = extractor.extract("red leather tote under $100")
        # Returns: FilterSet(color="red", max_price=100.0, subcategory="tote",
        #                    material="leather", product_type="tote")
    """

    def __init__(self):
        """Initialize the filter extractor."""
        # Product type variants compiled once: canonical -> [compiled patterns]
        self._type_patterns = {
            canonical: [re.compile(_term_pattern(v)) for v in variants]
            for canonical, (_scope, _value, variants) in PRODUCT_TYPES.items()
        }
        self._brand_aliases = dict(CATALOG_BRANDS)

    @timed("filter_extraction")
    def extract(self, query: str) -> FilterSet:
        """
        Extract all filters from a query.

        Args:
            query: User's message

        Returns:
            FilterSet with extracted constraints

        Example:
            >>> extractor.extract("crimson bag between $50 and $30")
            FilterSet(color="red", min_price=30.0, max_price=50.0, category="bags",
                      product_type="bag")
        """
        filters = FilterSet()
        if not query or not isinstance(query, str):
            return filters

        text = query.lower()
        try:
            filters.color = self._extract_color(text)
            filters.min_price, filters.max_price = self._extract_price(text)
            filters.product_type = self._extract_product_type(text)
            if filters.product_type:
                scope, value, _ = PRODUCT_TYPES[filters.product_type]
                if scope == "category":
                    filters.category = value
                else:
                    filters.subcategory = value
            filters.material = _earliest(text, MATERIAL_SYNONYMS)
            filters.size = _earliest(text, SIZE_SYNONYMS)
            filters.brand, filters.competitor_brand = self._extract_brand(text)
            filters.occasion = self._extract_occasion(text)
        except Exception as e:
            _logger.warning(
                f"Filter extraction failed part-way: {e}",
                extra={"event": "filter_extraction_error", "error_type": type(e).__name__},
            )

        filters.normalize_price()
        return filters

    # === Color ===

    def _extract_color(self, text: str) -> Optional[str]:
        """
        Extract a canonical color. The first color mentioned wins.

        Examples:
            "crimson tote" -> "red"
            "navy or black wallet" -> "blue"
            "çantë e zezë" -> "black"
        """
        return _earliest(text, COLOR_SYNONYMS)

    # === Price ===

    def _extract_price(self, text: str) -> tuple[Optional[float], Optional[float]]:
        """
        Apply the price patterns in order; later matches overwrite earlier bounds.

        Examples:
            "under $100" -> (None, 100.0)
            "$50-$80" -> (50.0, 80.0)
            "around 200" -> (150.0, 250.0)
            "less than 60" -> (None, 59.0)
        """
        min_price = None
        max_price = None

        for name, kind, pattern in PRICE_PATTERNS:
            match = re.search(pattern, text)
            if not match:
                continue
            numbers = [float(g) for g in match.groups() if g is not None]
            if not numbers:
                continue

            if kind == "max":
                max_price = numbers[0]
            elif kind == "min":
                min_price = numbers[0]
            elif kind == "range" and len(numbers) >= 2:
                min_price, max_price = numbers[0], numbers[1]
            elif kind == "around":
                min_price = max(0.0, numbers[0] - AROUND_MARGIN)
                max_price = numbers[0] + AROUND_MARGIN
            elif kind == "less_than":
                max_price = max(0.0, numbers[0] - 1)

        return min_price, max_price

    # === Product type ===

    def _extract_product_type(self, text: str) -> Optional[str]:
        """
        Resolve one canonical product type.

        Subcategory-level types beat category-level ones ("red tote bag" -> tote),
        then the earliest mention wins.

        Examples:
            "leather totes" -> "tote"
            "çantë shpine" -> "backpack"
            "portofolin e zi" -> "wallet"
        """
        candidates = []
        for canonical, patterns in self._type_patterns.items():
            positions = [m.start() for p in patterns for m in [p.search(text)] if m]
            if positions:
                scope = PRODUCT_TYPES[canonical][0]
                specificity = 0 if scope == "subcategory" else 1
                candidates.append((specificity, min(positions), canonical))

        if not candidates:
            return None
        return min(candidates)[2]

    # === Brand ===

    def _extract_brand(self, text: str) -> tuple[Optional[str], bool]:
        """
        Returns (brand, is_competitor).

        Examples:
            "michael kors tote" -> ("michael kors", False)
            "Gucci bag" -> ("gucci", True)
        """
        for canonical, aliases in self._brand_aliases.items():
            for alias in aliases:
                if re.search(_term_pattern(re.escape(alias)), text):
                    return canonical, False

        for brand in COMPETING_BRANDS:
            if re.search(_term_pattern(re.escape(brand)), text):
                return brand, True

        return None, False

    # === Occasion ===

    def _extract_occasion(self, text: str) -> Optional[str]:
        """First occasion in table order with a matching keyword."""
        for occasion, keywords in OCCASION_KEYWORDS:
            for keyword in keywords:
                if re.search(_term_pattern(re.escape(keyword)), text):
                    return occasion
        return None
