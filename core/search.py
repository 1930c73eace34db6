"""
Candidate retrieval for the Albi Mall assistant.

Produces the ranked, bounded list of products a reply may recommend:

1. Gather candidates from the source the merger chose
   (session's retained products, remote search provider, or local catalog)
2. Brand integrity: a competing brand we do not carry yields no candidates
3. Hard constraints: drop every candidate that violates a present filter
4. Score the survivors additively, sort (stable), dedupe by id, truncate to K

Constraints are enforced by exclusion, never by score: a keyword-heavy $150
tote can not come back for "under $100".
"""

import re
from dataclasses import dataclass
from typing import Optional

from core.cache import TTLCache, search_cache_key
from core.context import CandidateSource, FilterSet, Product, RetrievalResult
from core.errors import ProviderError
from core.filters import extract_keywords
from core.search_provider import SearchProvider
from core.structured_logging import Timer, get_logger, log_cache, log_search
from config.synonyms import (
    CATALOG_BRANDS,
    COLOR_SYNONYMS,
    MATERIAL_HINTS,
    MATERIAL_SYNONYMS,
    OCCASION_KEYWORDS,
    PRODUCT_TYPES,
    SIZE_SYNONYMS,
    brand_display_name,
    color_terms,
)

# Module-level logger
_logger = get_logger("core.search")

_OCCASIONS = dict(OCCASION_KEYWORDS)


def _contains_term(text: str, term: str) -> bool:
    return re.search(r'(?<!\w)' + re.escape(term) + r'(?!\w)', text) is not None


def _contains_any(text: str, terms) -> bool:
    return any(_contains_term(text, t) for t in terms)


@dataclass
class RetrievalConfig:
    """
    Configuration for retrieval.

    Attributes:
        k: Maximum products returned for recommendation
        search_limit: Page size requested from the search provider
        pool_limit: Maximum constraint-satisfying products kept for follow-ups
        store_brand: Display name of the brand the store carries
    """
    k: int = 5
    search_limit: int = 10
    pool_limit: int = 20
    store_brand: str = "Michael Kors"


# =============================================================================
# Scoring weights
# =============================================================================

class ScoreWeights:
    EXACT_PHRASE = 200
    COLOR = 100
    COLORS_LIST = 80
    CATEGORY = 60
    SUBCATEGORY = 50
    KEYWORD = 1
    KEYWORD_NAME = 10
    KEYWORD_COLOR = 15
    KEYWORD_SUBCATEGORY = 8
    KEYWORD_CATEGORY = 6
    KEYWORD_FEATURES = 3
    KEYWORD_TAGS = 2
    BRAND_MENTION = 50
    COLOR_SYNONYM = 120
    STYLE = 40
    SIZE = 30
    MATERIAL = 35


# =============================================================================
# Hard constraints
# =============================================================================

def matches_color(product: Product, color: str) -> bool:
    terms = color_terms(color)
    return any(_contains_any(c.lower(), terms) for c in (product.color, *product.colors) if c)


def matches_category(product: Product, category: str) -> bool:
    category = category.lower()
    singular = category[:-1] if category.endswith("s") else category
    fields = (product.category.lower(), product.subcategory.lower())
    return any(category in f or singular in f for f in fields if f)


def matches_subcategory(product: Product, subcategory: str) -> bool:
    return subcategory.lower() in product.subcategory.lower()


def matches_product_type(product: Product, product_type: str) -> bool:
    if product_type not in PRODUCT_TYPES:
        return product_type.lower() in product.searchable_text()
    scope, value, _ = PRODUCT_TYPES[product_type]
    if scope == "category":
        return matches_category(product, value)
    return matches_subcategory(product, value)


def matches_material(product: Product, material: str) -> bool:
    terms = MATERIAL_SYNONYMS.get(material, [material])
    return _contains_any(product.material.lower(), terms)


def matches_size(product: Product, size: str) -> bool:
    terms = SIZE_SYNONYMS.get(size, [size])
    return any(_contains_any(s.lower(), terms) for s in (product.size, *product.sizes) if s)


def matches_brand(product: Product, brand: str) -> bool:
    return bool(product.brand) and brand.lower() in product.brand.lower()


def matches_occasion(product: Product, occasion: str) -> bool:
    keywords = _OCCASIONS.get(occasion, [occasion])
    text = " ".join([product.name, product.description, *product.features, *product.tags]).lower()
    return _contains_any(text, [occasion, *keywords])


def violated_constraint(product: Product, filters: FilterSet) -> Optional[str]:
    """
    Name of the first present filter the product does not satisfy, or None.

    Example:
        violated_constraint(blue_tote_150, FilterSet(color="red", max_price=100))
        -> "color"
    """
    if filters.color and not matches_color(product, filters.color):
        return "color"
    if filters.min_price is not None and product.price < filters.min_price:
        return "min_price"
    if filters.max_price is not None and product.price > filters.max_price:
        return "max_price"
    if filters.category and not matches_category(product, filters.category):
        return "category"
    if filters.subcategory and not matches_subcategory(product, filters.subcategory):
        return "subcategory"
    if filters.product_type and not matches_product_type(product, filters.product_type):
        return "product_type"
    if filters.material and not matches_material(product, filters.material):
        return "material"
    if filters.size and not matches_size(product, filters.size):
        return "size"
    if filters.brand and not matches_brand(product, filters.brand):
        return "brand"
    if filters.occasion and not matches_occasion(product, filters.occasion):
        return "occasion"
    return None


# =============================================================================
# Scoring
# =============================================================================

def score_product(query: str, product: Product, keywords: Optional[list[str]] = None) -> int:
    """
    Additive relevance score of a product for a normalized query.

    Args:
        query: Normalized query text
        product: Candidate
        keywords: Content words of the query (computed when None)

    Example:
        >>> score_product("red tote", red_tote)
        # exact phrase + color + subcategory + keyword boosts + color synonym
    """
    w = ScoreWeights
    q = query.lower().strip()
    if keywords is None:
        keywords = extract_keywords(q)

    text = product.searchable_text()
    name = product.name.lower()
    color = product.color.lower()
    colors = [c.lower() for c in product.colors]
    category = product.category.lower()
    subcategory = product.subcategory.lower()
    features = [f.lower() for f in product.features]
    tags = [t.lower() for t in product.tags]

    score = 0
    if q and q in text:
        score += w.EXACT_PHRASE
    if q and color and (color in q or q in color):
        score += w.COLOR
    if q and any(c in q or q in c for c in colors if c):
        score += w.COLORS_LIST
    if q and category and (category in q or q in category):
        score += w.CATEGORY
    if q and subcategory and (subcategory in q or q in subcategory):
        score += w.SUBCATEGORY

    for keyword in keywords:
        if len(keyword) <= 1 or keyword not in text:
            continue
        score += w.KEYWORD
        if keyword in name:
            score += w.KEYWORD_NAME
        if keyword in color:
            score += w.KEYWORD_COLOR
        if keyword in subcategory:
            score += w.KEYWORD_SUBCATEGORY
        if keyword in category:
            score += w.KEYWORD_CATEGORY
        if any(keyword in f for f in features):
            score += w.KEYWORD_FEATURES
        if any(keyword in t for t in tags):
            score += w.KEYWORD_TAGS

    for canonical, aliases in CATALOG_BRANDS.items():
        if _contains_any(q, aliases) and canonical in product.brand.lower():
            score += w.BRAND_MENTION
            break

    score += _semantic_score(q, product, color, colors, features, tags)
    return score


def _semantic_score(q: str, product: Product, color: str, colors: list[str],
                    features: list[str], tags: list[str]) -> int:
    w = ScoreWeights
    score = 0

    for canonical, variants in COLOR_SYNONYMS.items():
        if _contains_any(q, variants) or _contains_term(q, canonical):
            if canonical in color or any(canonical in c for c in colors):
                score += w.COLOR_SYNONYM

    for occasion, keywords in OCCASION_KEYWORDS:
        if _contains_term(q, occasion) or _contains_any(q, keywords):
            if any(occasion in f for f in features) or any(occasion in t for t in tags):
                score += w.STYLE

    product_sizes = [s.lower() for s in (product.size, *product.sizes) if s]
    for size, variants in SIZE_SYNONYMS.items():
        if _contains_any(q, variants):
            if any(size in s for s in product_sizes):
                score += w.SIZE

    material = product.material.lower()
    for name, hints in MATERIAL_HINTS.items():
        if _contains_term(q, name) or _contains_any(q, hints):
            if name in material:
                score += w.MATERIAL

    return score


# =============================================================================
# Retriever
# =============================================================================

class CandidateRetriever:
    """
    Retrieves, filters and ranks candidates.

    Example:
        retriever = CandidateRetriever(catalog=products)
        result = retriever.retrieve("red bag under 100",
                                    FilterSet(color="red", max_price=100, category="bags"),
                                    CandidateSource.CATALOG)
        # result.products -> only red bags priced <= $100, best first
    """

    def __init__(
        self,
        search_provider: Optional[SearchProvider] = None,
        catalog: Optional[list[Product]] = None,
        cache: Optional[TTLCache] = None,
        config: Optional[RetrievalConfig] = None,
    ):
        """
        Args:
            search_provider: Remote provider for SEARCH-source turns
            catalog: In-memory catalog for CATALOG-source turns
            cache: Cache for provider results (search:{query}:{limit})
            config: Retrieval configuration (uses defaults if None)
        """
        self.search_provider = search_provider
        self.catalog = list(catalog or [])
        self.cache = cache
        self.config = config or RetrievalConfig()

    def retrieve(
        self,
        query: str,
        filters: FilterSet,
        source: CandidateSource,
        context_products: Optional[list[Product]] = None,
        session_id: Optional[str] = None,
    ) -> RetrievalResult:
        """
        Retrieve candidates for one turn.

        Args:
            query: Normalized query (provider query for SEARCH turns)
            filters: Effective filters to enforce
            source: Candidate source chosen by the merger
            context_products: Session's retained products (SESSION turns)
            session_id: For logging

        Returns:
            RetrievalResult; products bounded to K, pool bounded to pool_limit
        """
        with Timer() as timer:
            result = self._retrieve(query, filters, source, context_products)

        log_search(
            session_id=session_id or "unknown",
            source=result.source.value,
            products_found=len(result.pool),
            search_time_ms=timer.elapsed_ms,
            excluded=result.excluded,
            filters=filters.to_dict(),
            brand_unavailable=result.brand_unavailable,
        )
        return result

    def _retrieve(
        self,
        query: str,
        filters: FilterSet,
        source: CandidateSource,
        context_products: Optional[list[Product]],
    ) -> RetrievalResult:
        notes: list[str] = []
        cache_hit = False

        if source == CandidateSource.SEARCH and self.search_provider is None:
            _logger.debug(
                "No search provider configured, using local catalog",
                extra={"event": "search_source_fallback"},
            )
            source = CandidateSource.CATALOG

        if source == CandidateSource.SESSION:
            candidates = list(context_products or [])
        elif source == CandidateSource.SEARCH:
            candidates, cache_hit = self._search_provider_candidates(query, notes)
        else:
            candidates = list(self.catalog)

        considered = len(candidates)

        if filters.brand and filters.competitor_brand:
            if not any(matches_brand(p, filters.brand) for p in candidates):
                brand = brand_display_name(filters.brand)
                notes.append(
                    f"Brand integrity maintained: User asked for {brand} "
                    f"but we only carry {self.config.store_brand}"
                )
                return RetrievalResult(
                    products=[],
                    pool=[],
                    source=source,
                    considered=considered,
                    excluded=considered,
                    brand_unavailable=brand,
                    audit_notes=notes,
                    cache_hit=cache_hit,
                )

        kept = []
        excluded_by: dict[str, int] = {}
        for product in candidates:
            reason = violated_constraint(product, filters)
            if reason is None:
                kept.append(product)
            else:
                excluded_by[reason] = excluded_by.get(reason, 0) + 1

        if excluded_by:
            _logger.debug(
                f"Excluded {sum(excluded_by.values())} of {considered} candidates",
                extra={"event": "constraint_exclusion", "excluded": excluded_by},
            )

        ranked = self.rank(query, kept, drop_unscored=(
            source == CandidateSource.CATALOG and filters.is_empty()
        ))
        pool = ranked[:self.config.pool_limit]

        if source == CandidateSource.SESSION:
            notes.append(
                f"Context-based filtering: {len(ranked)} of {considered} previous results "
                f"matched {filters.describe()}"
            )

        return RetrievalResult(
            products=ranked[:self.config.k],
            pool=pool,
            source=source,
            considered=considered,
            excluded=considered - len(kept),
            audit_notes=notes,
            cache_hit=cache_hit,
        )

    def rank(self, query: str, products: list[Product], drop_unscored: bool = False) -> list[Product]:
        """
        Sort by descending score (ties keep input order) and dedupe by id.

        Args:
            query: Normalized query
            products: Candidates that already satisfy the constraints
            drop_unscored: Drop candidates scoring zero
        """
        keywords = extract_keywords(query)
        scored = [(score_product(query, p, keywords), p) for p in products]
        if drop_unscored:
            scored = [(s, p) for s, p in scored if s > 0]
        scored.sort(key=lambda pair: pair[0], reverse=True)

        seen = set()
        ranked = []
        for _, product in scored:
            if product.id in seen:
                continue
            seen.add(product.id)
            ranked.append(product)
        return ranked

    def _search_provider_candidates(self, query: str, notes: list[str]) -> tuple[list[Product], bool]:
        limit = self.config.search_limit
        key = search_cache_key(query, limit)
        if self.cache is not None:
            cached = self.cache.get(key)
            log_cache(self.cache.name, key, hit=cached is not None)
            if cached is not None:
                return list(cached), True

        try:
            products = self.search_provider.search(query, limit)
        except ProviderError as e:
            _logger.warning(
                f"Search provider failed: {e}",
                extra={
                    "event": "search_provider_error",
                    "provider": e.provider,
                    "error_type": type(e).__name__,
                    "status_code": e.status_code,
                },
            )
            notes.append(e.audit_note)
            return [], False

        if self.cache is not None:
            self.cache.set(key, list(products))
        return list(products), False
