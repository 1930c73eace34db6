"""
Tests for system prompts module.

Run with: pytest tests/test_prompts.py -v
"""

import json

import pytest

from core.context import FilterSet, Message, Product, SessionContext
from llm.prompts import (
    DEFAULT_HIGHLIGHT,
    ResponseTemplates,
    SystemPrompts,
    generate_highlight,
)


@pytest.fixture
def prompts():
    """Create SystemPrompts instance."""
    return SystemPrompts()


@pytest.fixture
def templates():
    """Create ResponseTemplates instance."""
    return ResponseTemplates()


@pytest.fixture
def tote():
    return Product(
        id="mk-tote-001",
        name="Jet Set Tote",
        price=90.0,
        original_price=128.0,
        color="Crimson",
        colors=("Crimson", "Black"),
        subcategory="Tote",
        material="Saffiano Leather",
        size="Large",
        features=("Zip top", "Laptop sleeve", "Gold hardware"),
        rating=4.6,
        reviews_count=212,
        description="A structured everyday tote.",
    )


@pytest.fixture
def session(tote):
    return SessionContext(
        session_id="s1",
        last_products=[tote],
        last_recommended_ids=[tote.id],
        messages=[
            Message("user", "show me totes"),
            Message("assistant", "I found 3 totes for you!"),
        ],
    )


class TestHighlights:
    """One-line product highlights."""

    def test_material_size_style(self, tote):
        assert generate_highlight(tote) == "saffiano leather, large, spacious and versatile"

    def test_feature_word(self):
        product = Product(id="p", name="Strap Crossbody", price=80, features=("Adjustable strap",),
                          subcategory="Crossbody")
        assert generate_highlight(product) == "adjustable strap, hands-free convenience"

    def test_default(self):
        assert generate_highlight(Product(id="p", name="Thing", price=1)) == DEFAULT_HIGHLIGHT


class TestSystemPrompts:
    """Test SystemPrompts class."""

    def test_candidates_embedded(self, prompts, tote):
        prompt = prompts.build_system_prompt([tote])

        assert "RETRIEVED_PRODUCTS" in prompt
        assert '"id": "mk-tote-001"' in prompt
        assert "NEVER invent products" in prompt
        assert "Michael Kors" in prompt

    def test_product_payload_is_json_ready(self, prompts, tote):
        payload = prompts.product_payload(tote)
        assert json.loads(json.dumps(payload))["features"] == ["Zip top", "Laptop sleeve", "Gold hardware"]
        assert payload["category"] == "Tote"

    def test_store_brand_configurable(self, tote):
        prompt = SystemPrompts(store_brand="Coach", mall_name="Test Mall").build_system_prompt([tote])
        assert "Test Mall AI Shopping Assistant" in prompt
        assert "Coach handbags" in prompt

    def test_empty_session_context(self, prompts):
        assert prompts.build_session_context(None) == "No previous conversation context."

    def test_session_context(self, prompts, session):
        context = prompts.build_session_context(session, filters=FilterSet(max_price=100, product_type="tote"))

        assert "User: show me totes" in context
        assert "Assistant: I found 3 totes for you!" in context
        assert '- max_price: 100' in context
        assert '- product_type: "tote"' in context
        assert "PREVIOUS RECOMMENDATIONS:\nJet Set Tote" in context

    def test_history_limit(self, prompts, session):
        context = prompts.build_session_context(session, history_limit=1)
        assert "show me totes" not in context
        assert "I found 3 totes" in context

    def test_brand_unavailable(self, prompts):
        text = prompts.format_brand_unavailable_response("Gucci")
        assert "don't carry Gucci" in text
        assert "Michael Kors" in text

    def test_greeting_and_farewell(self, prompts):
        assert "Albi Mall" in prompts.format_greeting_response()
        assert "?" not in prompts.format_farewell_response()

    def test_error_response_unknown_type(self, prompts):
        assert prompts.format_error_response("nope") == prompts.format_error_response("system_error")


class TestResponseTemplates:
    """Fallback templates."""

    def test_single_product(self, templates, tote):
        text = templates.format_single_product(tote)
        assert text.startswith("I found the Jet Set Tote in Crimson for $90.")
        assert "saffiano leather tote" in text
        assert "zip top, laptop sleeve, gold hardware" in text

    def test_product_summary(self, templates):
        products = [
            Product(id="a", name="Logo Tote", price=80, color="Brown"),
            Product(id="b", name="Leather Tote", price=150, color="Black"),
            Product(id="c", name="Large Tote", price=220, color="Black"),
        ]
        text = templates.format_product_summary(products, "totes")
        assert text == (
            "I found 3 totes for you! Here are some great options: Logo Tote, Leather Tote, Large Tote. "
            "They range from $80 to $220 and come in colors like Brown, Black."
        )

    def test_summary_single_price(self, templates):
        products = [Product(id="a", name="A", price=50), Product(id="b", name="B", price=50)]
        assert "They are all priced at $50." in templates.format_product_summary(products)

    def test_product_details(self, templates, tote):
        text = templates.format_product_details(tote)
        assert "- Price: $90 (was $128)" in text
        assert "- Color: Crimson, Black" in text
        assert "- Rating: 4.6/5 (212 reviews)" in text

    def test_cheaper_alternative(self, templates, tote):
        text = templates.format_cheaper_alternative(tote, 150.0)
        assert "$90, which is $60 less than the $150 option" in text

    def test_no_cheaper_alternative(self, templates):
        assert "most affordable tote at $80" in templates.format_no_cheaper_alternative(80.0, "tote")
        assert "cheaper option" in templates.format_no_cheaper_alternative(None)
