"""
Tests for the constraint merger.

Run with: pytest tests/test_merger.py -v
"""

import pytest

from core.context import CandidateSource, FilterSet, FollowupKind, Product, SessionContext
from core.filters import FilterExtractor
from core.merger import ConstraintMerger


@pytest.fixture
def extractor():
    return FilterExtractor()


@pytest.fixture
def totes():
    return [
        Product(id="tote-80", name="Logo Tote", price=80.0, category="Bags", subcategory="Tote"),
        Product(id="tote-150", name="Leather Tote", price=150.0, category="Bags", subcategory="Tote"),
        Product(id="tote-220", name="Large Tote", price=220.0, category="Bags", subcategory="Tote"),
    ]


@pytest.fixture
def tote_session(totes):
    return SessionContext(
        session_id="s1",
        last_query="show totes",
        last_products=totes,
        last_filters=FilterSet(subcategory="tote", product_type="tote"),
        locked_product_type="tote",
        last_recommended_ids=["tote-150", "tote-80"],
    )


def merge(merger, extractor, text, session):
    return merger.merge(text, session, extractor.extract(text))


class TestFollowupMerge:
    """Follow-ups refine the retained products."""

    def test_price_followup_keeps_product_type(self, extractor, tote_session):
        decision = merge(ConstraintMerger(), extractor, "under $100", tote_session)

        assert decision.is_followup is True
        assert decision.source == CandidateSource.SESSION
        assert decision.filters.product_type == "tote"
        assert decision.filters.subcategory == "tote"
        assert decision.filters.max_price == 100.0

    def test_turn_value_wins(self, extractor, tote_session):
        tote_session.last_filters = FilterSet(color="red", subcategory="tote", product_type="tote")
        decision = merge(ConstraintMerger(), extractor, "in black", tote_session)
        assert decision.filters.color == "black"

    def test_locked_product_type_injected(self, extractor, tote_session):
        tote_session.last_filters = FilterSet()
        decision = merge(ConstraintMerger(), extractor, "in black", tote_session)
        assert decision.filters.product_type == "tote"
        assert decision.filters.subcategory == "tote"

    def test_followup_ignores_remote_search(self, extractor, tote_session):
        decision = merge(ConstraintMerger(remote_search=True), extractor, "under $100", tote_session)
        assert decision.source == CandidateSource.SESSION


class TestCheaperRequests:
    """"Anything cheaper?" undercuts a reference price."""

    def test_reference_is_first_recommended(self, extractor, tote_session):
        decision = merge(ConstraintMerger(), extractor, "anything cheaper?", tote_session)

        assert decision.kind == FollowupKind.CHEAPER
        assert decision.reference_price == 150.0
        assert decision.filters.max_price == 149.99

    def test_reference_falls_back_to_cheapest_retained(self, extractor, tote_session):
        tote_session.last_recommended_ids = []
        decision = merge(ConstraintMerger(), extractor, "cheaper please", tote_session)
        assert decision.reference_price == 80.0
        assert decision.filters.max_price == 79.99

    def test_conflicting_min_price_dropped(self, extractor, tote_session):
        tote_session.last_filters = FilterSet(min_price=200, product_type="tote", subcategory="tote")
        decision = merge(ConstraintMerger(), extractor, "anything cheaper?", tote_session)
        assert decision.filters.min_price is None


class TestNewSearchMerge:
    """New searches and topic changes."""

    def test_source_catalog_without_provider(self, extractor):
        decision = merge(ConstraintMerger(), extractor, "red bag under $100", SessionContext(session_id="s"))
        assert decision.is_followup is False
        assert decision.source == CandidateSource.CATALOG

    def test_source_search_with_provider(self, extractor):
        merger = ConstraintMerger(remote_search=True)
        decision = merge(merger, extractor, "red bag", SessionContext(session_id="s"))
        assert decision.source == CandidateSource.SEARCH

    def test_topic_change_clears_item_class_only(self, extractor, tote_session):
        tote_session.last_filters = FilterSet(
            color="red", max_price=100, subcategory="tote", product_type="tote",
        )
        decision = merge(ConstraintMerger(), extractor, "show me wallets", tote_session)

        assert decision.is_followup is False
        assert decision.filters.product_type == "wallet"
        assert decision.filters.subcategory == "wallet"
        assert decision.filters.color == "red"
        assert decision.filters.max_price == 100

    def test_turn_price_bound_replaces_conflicting_carried_bound(self, extractor, tote_session):
        tote_session.last_filters = FilterSet(min_price=200, category="bags", product_type="bag")
        decision = merge(ConstraintMerger(), extractor, "show me wallets under $50", tote_session)

        assert decision.filters.max_price == 50
        assert decision.filters.min_price is None

    def test_carried_bound_kept_when_compatible(self, extractor, tote_session):
        tote_session.last_filters = FilterSet(min_price=20, category="bags", product_type="bag")
        decision = merge(ConstraintMerger(), extractor, "show me wallets under $50", tote_session)

        assert (decision.filters.min_price, decision.filters.max_price) == (20, 50)

    def test_competitor_brand_not_carried(self, extractor, tote_session):
        tote_session.last_filters = FilterSet(brand="gucci", competitor_brand=True)
        decision = merge(ConstraintMerger(), extractor, "under $100", tote_session)
        assert decision.filters.brand is None
        assert decision.filters.competitor_brand is False


class TestProviderQuery:
    """Provider query construction."""

    def test_albanian_query(self):
        query = ConstraintMerger().build_provider_query(
            "Çantë e kuqe!", FilterSet(color="red", product_type="bag"),
        )
        assert query == "bag red"

    def test_filter_terms_appended(self):
        query = ConstraintMerger().build_provider_query(
            "something for the office", FilterSet(occasion="work", product_type="tote"),
        )
        assert query == "something for the office work tote"
