"""
Tests for filter extraction module.

Run with: pytest tests/test_filters.py -v
"""

import pytest

from core.filters import FilterExtractor, extract_keywords, normalize_query
from core.context import FilterSet
from config.synonyms import canonical_color, expand_synonyms, translate_query


@pytest.fixture
def extractor():
    """Create a filter extractor instance."""
    return FilterExtractor()


class TestColorExtraction:
    """Test color extraction with synonyms."""

    def test_plain_color(self, extractor):
        assert extractor.extract("red bag").color == "red"

    def test_synonym(self, extractor):
        assert extractor.extract("crimson bag").color == "red"

    def test_first_color_wins(self, extractor):
        assert extractor.extract("navy or black wallet").color == "blue"

    def test_albanian_color(self, extractor):
        assert extractor.extract("çantë e kuqe").color == "red"
        assert extractor.extract("portofol i zi").color == "black"

    def test_word_boundaries(self, extractor):
        # "tan" must not match inside "stand"
        assert extractor.extract("a bag that can stand up").color is None

    def test_no_color(self, extractor):
        assert extractor.extract("leather tote").color is None


class TestPriceExtraction:
    """Test price bound extraction."""

    def test_under(self, extractor):
        result = extractor.extract("red bag under $100")
        assert result.min_price is None
        assert result.max_price == 100.0

    def test_over(self, extractor):
        result = extractor.extract("wallet over 150")
        assert result.min_price == 150.0
        assert result.max_price is None

    def test_dash_range(self, extractor):
        result = extractor.extract("$50-$80 wallet")
        assert result.min_price == 50.0
        assert result.max_price == 80.0

    @pytest.mark.parametrize("query", ["50-80 eur totes", "totes priced 50-80", "tote €50 – 80"])
    def test_dash_range_with_price_marker(self, extractor, query):
        result = extractor.extract(query)
        assert (result.min_price, result.max_price) == (50.0, 80.0)

    @pytest.mark.parametrize("query", ["size 6-8 heels", "open 9-17 every day"])
    def test_bare_number_pair_is_not_a_price(self, extractor, query):
        result = extractor.extract(query)
        assert result.min_price is None
        assert result.max_price is None

    def test_between(self, extractor):
        result = extractor.extract("bags between 40 and 90 dollars")
        assert result.min_price == 40.0
        assert result.max_price == 90.0

    def test_reversed_bounds_are_swapped(self, extractor):
        result = extractor.extract("crimson bag between $80 and $30")
        assert result.min_price == 30.0
        assert result.max_price == 80.0

    def test_around(self, extractor):
        result = extractor.extract("a tote around 200")
        assert result.min_price == 150.0
        assert result.max_price == 250.0

    def test_less_than(self, extractor):
        assert extractor.extract("less than 60").max_price == 59.0

    def test_no_more_than(self, extractor):
        result = extractor.extract("no more than 80 for a clutch")
        assert result.min_price is None
        assert result.max_price == 80.0

    def test_decimal(self, extractor):
        assert extractor.extract("under $99.99").max_price == 99.99

    def test_albanian_under(self, extractor):
        assert extractor.extract("çantë nën 100 euro").max_price == 100.0

    def test_budget(self, extractor):
        assert extractor.extract("my budget is 120").max_price == 120.0

    def test_no_price(self, extractor):
        result = extractor.extract("black clutch")
        assert result.min_price is None
        assert result.max_price is None


class TestProductTypeExtraction:
    """Test product type, category and subcategory."""

    def test_subcategory_type(self, extractor):
        result = extractor.extract("show me totes")
        assert result.product_type == "tote"
        assert result.subcategory == "tote"
        assert result.category is None

    def test_category_type(self, extractor):
        result = extractor.extract("red bag")
        assert result.product_type == "bag"
        assert result.category == "bags"
        assert result.subcategory is None

    def test_subcategory_beats_category(self, extractor):
        assert extractor.extract("red tote bag").product_type == "tote"

    def test_crossbody_variants(self, extractor):
        assert extractor.extract("cross-body in pink").product_type == "crossbody"
        assert extractor.extract("messenger bag").product_type == "crossbody"

    def test_albanian_types(self, extractor):
        assert extractor.extract("çantë shpine").product_type == "backpack"
        assert extractor.extract("dua një portofol").product_type == "wallet"
        assert extractor.extract("kepuce te bardha").product_type == "shoes"


class TestOtherFields:
    """Material, size, brand and occasion."""

    def test_material(self, extractor):
        assert extractor.extract("leather tote").material == "leather"
        assert extractor.extract("saffiano wallet").material == "leather"

    def test_size(self, extractor):
        assert extractor.extract("large backpack").size == "large"
        assert extractor.extract("mini crossbody").size == "small"

    def test_catalog_brand(self, extractor):
        result = extractor.extract("michael kors tote")
        assert result.brand == "michael kors"
        assert result.competitor_brand is False

    def test_catalog_brand_alias(self, extractor):
        assert extractor.extract("MK wallet").brand == "michael kors"

    def test_competing_brand(self, extractor):
        result = extractor.extract("Gucci bag")
        assert result.brand == "gucci"
        assert result.competitor_brand is True

    def test_occasion(self, extractor):
        assert extractor.extract("black clutch for a party").occasion == "evening"
        assert extractor.extract("leather bag for work").occasion == "work"
        assert extractor.extract("something for my trip").occasion == "travel"


class TestEdgeCases:
    """Empty and non-product input."""

    def test_empty(self, extractor):
        assert extractor.extract("").is_empty()

    def test_none(self, extractor):
        assert extractor.extract(None).is_empty()

    def test_greeting(self, extractor):
        assert extractor.extract("hello there").is_empty()

    def test_full_query(self, extractor):
        result = extractor.extract("red leather tote under $100")
        assert result.to_dict() == {
            "color": "red",
            "max_price": 100.0,
            "subcategory": "tote",
            "material": "leather",
            "product_type": "tote",
        }


class TestFilterSet:
    """FilterSet helpers."""

    def test_overlay_newer_wins(self):
        merged = FilterSet(color="red", max_price=100).overlay(FilterSet(color="black"))
        assert merged.color == "black"
        assert merged.max_price == 100

    def test_overlay_does_not_mutate(self):
        base = FilterSet(color="red")
        base.overlay(FilterSet(color="black"))
        assert base.color == "red"

    def test_overlay_drops_conflicting_carried_min(self):
        merged = FilterSet(min_price=200).overlay(FilterSet(max_price=50))
        assert (merged.min_price, merged.max_price) == (None, 50)

    def test_overlay_drops_conflicting_carried_max(self):
        merged = FilterSet(max_price=50).overlay(FilterSet(min_price=200))
        assert (merged.min_price, merged.max_price) == (200, None)

    def test_overlay_keeps_compatible_bounds(self):
        merged = FilterSet(min_price=20).overlay(FilterSet(max_price=80))
        assert (merged.min_price, merged.max_price) == (20, 80)

    def test_without_item_class(self):
        cleared = FilterSet(color="red", subcategory="tote", product_type="tote").without_item_class()
        assert cleared.color == "red"
        assert cleared.product_type is None
        assert cleared.subcategory is None

    def test_describe(self):
        assert FilterSet(color="red", max_price=100, product_type="tote").describe() == "red, tote, under $100"
        assert FilterSet().describe() == "no constraints"

    def test_filter_terms_skip_competitor_brand(self):
        terms = FilterSet(color="red", brand="gucci", competitor_brand=True, product_type="bag").filter_terms()
        assert "gucci" not in terms
        assert terms == "red bag"


class TestQueryNormalization:
    """normalize_query, extract_keywords and the vocabulary helpers."""

    def test_normalize_albanian(self):
        assert normalize_query("Çantë e kuqe, nën 100€!") == "bag red under 100"

    def test_normalize_keeps_dollar_and_decimal(self):
        assert normalize_query("Tote under $99.99?") == "tote under $99.99"

    def test_extract_keywords(self):
        assert extract_keywords("Show me a leather tote for work") == ["leather", "tote", "work"]

    def test_translate_query(self):
        assert translate_query("çantë shpine") == "backpack"

    def test_expand_synonyms(self):
        assert expand_synonyms("Red cross body bag") == "red crossbody bag"

    def test_canonical_color(self):
        assert canonical_color("Burgundy") == "red"
        assert canonical_color("plaid") is None
