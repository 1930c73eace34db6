"""
Tests for the session store.

Run with: pytest tests/test_sessions.py -v
"""

import pytest

from core.context import FilterSet, IntentType, Product, TurnRecord
from core.sessions import SessionStore, generate_session_id


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return SessionStore(ttl_seconds=60, max_history=4, context_pool_limit=2, clock=clock)


def _products(n):
    return [Product(id=f"p{i}", name=f"Tote {i}", price=50.0 + i) for i in range(n)]


def _turn(**kwargs):
    kwargs.setdefault("user_message", "show me totes")
    kwargs.setdefault("assistant_text", "Here are some totes.")
    return TurnRecord(**kwargs)


class TestLifecycle:
    """Creation, expiry and clearing."""

    def test_get_or_create(self, store):
        session = store.get_or_create("s1")
        assert session.session_id == "s1"
        assert store.get_or_create("s1") is session

    def test_get_absent(self, store):
        assert store.get("nope") is None

    def test_expired_session_is_fresh(self, store, clock):
        store.update("s1", _turn(normalized_query="totes"))
        clock.now += 61
        assert store.get("s1") is None
        assert store.get_or_create("s1").last_query == ""

    def test_update_refreshes_activity(self, store, clock):
        store.update("s1", _turn())
        clock.now += 50
        store.update("s1", _turn())
        clock.now += 50
        assert store.get("s1") is not None

    def test_clear(self, store):
        store.get_or_create("s1")
        assert store.clear("s1") is True
        assert store.clear("s1") is False
        assert store.get("s1") is None

    def test_sweep_expired(self, store, clock):
        store.get_or_create("old")
        clock.now += 61
        store.get_or_create("new")
        assert store.sweep_expired() == 1
        assert len(store) == 1


class TestUpdate:
    """Applying a processed turn."""

    def test_messages_appended(self, store):
        store.update("s1", _turn(intent=IntentType.NEW_SEARCH, recommended_ids=["p1"]))
        session = store.get("s1")

        assert [m.role for m in session.messages] == ["user", "assistant"]
        assert session.messages[0].metadata == {"intent": "new_search"}
        assert session.messages[1].metadata == {"products": ["p1"]}

    def test_history_bounded(self, store):
        for i in range(3):
            store.update("s1", _turn(user_message=f"q{i}"))
        session = store.get("s1")
        assert len(session.messages) == 4
        assert session.messages[0].content == "q1"

    def test_filters_and_locked_type(self, store):
        store.update("s1", _turn(filters=FilterSet(product_type="tote", max_price=100)))
        store.update("s1", _turn(filters=FilterSet(color="black")))
        session = store.get("s1")
        assert session.last_filters == FilterSet(color="black")
        assert session.locked_product_type == "tote"

    def test_products_bounded(self, store):
        store.update("s1", _turn(products=_products(5)))
        assert [p.id for p in store.get("s1").last_products] == ["p0", "p1"]

    def test_none_keeps_products(self, store):
        store.update("s1", _turn(products=_products(2), recommended_ids=["p0", "p1"]))
        store.update("s1", _turn(products=None, recommended_ids=["p1"]))
        session = store.get("s1")
        assert len(session.last_products) == 2
        assert session.last_recommended_ids == ["p1"]

    def test_empty_list_replaces_products(self, store):
        store.update("s1", _turn(products=_products(2)))
        store.update("s1", _turn(products=[]))
        assert store.get("s1").last_products == []

    def test_blank_query_keeps_last_query(self, store):
        store.update("s1", _turn(normalized_query="totes"))
        store.update("s1", _turn(normalized_query=""))
        assert store.get("s1").last_query == "totes"


class TestStats:
    """Counts and snapshots."""

    def test_stats(self, store, clock):
        store.update("a", _turn())
        store.get_or_create("b")
        clock.now += 30
        store.update("c", _turn())
        clock.now += 40

        stats = store.stats()
        assert stats.total == 3
        assert stats.active == 1
        assert store.active_session_ids() == ["c"]

    def test_snapshot(self, store):
        store.update("s1", _turn(filters=FilterSet(color="red"), products=_products(1)))
        snapshot = store.snapshot("s1")
        assert snapshot["session_id"] == "s1"
        assert snapshot["last_filters"] == {"color": "red"}
        assert snapshot["last_products"] == ["p0"]
        assert snapshot["message_count"] == 2

    def test_snapshot_absent(self, store):
        assert store.snapshot("missing") is None


def test_generate_session_id():
    first, second = generate_session_id(), generate_session_id()
    assert first.startswith("session_")
    assert first != second
