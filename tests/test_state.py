"""Tests for StateStore session persistence."""

from datetime import datetime

import pytest

from shopkeeper.currency import Currency
from shopkeeper.db.state import StateStore
from shopkeeper.models import (
    BasketLine,
    HaggleResult,
    Merged,
    SellBasketLine,
    UserBasketState,
)


@pytest.fixture
def state(tmp_path):
    """Create a temporary StateStore."""
    store = StateStore(db_path=tmp_path / "test.db")
    yield store
    store.close()


def test_load_missing_user_is_empty(state):
    basket = state.load_baskets("nobody")
    assert basket.user_id == "nobody"
    assert basket.is_empty
    assert not basket.is_merged


def test_save_and_load_baskets(state):
    basket = UserBasketState(
        user_id="u1",
        buy=[BasketLine("sword", "Sword", 2, Currency(gp=10), "weapons")],
        sell=[
            SellBasketLine(
                "gem", "Gem", 1, Currency(gp=5), "magic",
                character_id="c1", base_value=Currency(gp=10),
            )
        ],
        sell_character_id="c1",
        merge=Merged(since=datetime(2024, 6, 1, 12, 30)),
    )
    state.save_baskets(basket)

    loaded = state.load_baskets("u1")
    assert loaded == basket


def test_save_overwrites(state):
    state.save_baskets(UserBasketState("u1", buy=[BasketLine("a", "A", 1, Currency(cp=1))]))
    state.save_baskets(UserBasketState("u1"))
    assert state.load_baskets("u1").is_empty


def test_state_survives_reopen(tmp_path):
    first = StateStore(tmp_path / "test.db")
    first.save_baskets(UserBasketState("u1", sell_character_id="c9"))
    first.close()

    second = StateStore(tmp_path / "test.db")
    assert second.load_baskets("u1").sell_character_id == "c9"
    second.close()


def test_delete_baskets(state):
    state.save_baskets(UserBasketState("u1", sell_character_id="c1"))
    state.delete_baskets("u1")
    assert state.load_baskets("u1").sell_character_id is None


class TestHighlights:
    def test_add_and_get(self, state):
        state.add_highlights("shop1", ["a", "b"])
        state.add_highlights("shop1", ["b", "c"])
        assert state.get_highlights("shop1") == {"a", "b", "c"}

    def test_scoped_per_shop(self, state):
        state.add_highlights("shop1", ["a"])
        assert state.get_highlights("shop2") == set()

    def test_consume_clears(self, state):
        state.add_highlights("shop1", ["a"])
        assert state.consume_highlights("shop1") == {"a"}
        assert state.consume_highlights("shop1") == set()


class TestHaggle:
    def test_get_missing(self, state):
        assert state.get_haggle("u1") is None

    def test_set_and_get(self, state):
        result = HaggleResult(buy_adjustment=-0.1, skill="Persuasion", roll=18, dc=15, success=True)
        state.set_haggle("u1", result)
        assert state.get_haggle("u1") == result

    def test_set_replaces(self, state):
        state.set_haggle("u1", HaggleResult(buy_adjustment=-0.1))
        state.set_haggle("u1", HaggleResult(buy_adjustment=0.05))
        assert state.get_haggle("u1").buy_adjustment == 0.05

    def test_clear(self, state):
        state.set_haggle("u1", HaggleResult(buy_adjustment=-0.1))
        state.clear_haggle("u1")
        assert state.get_haggle("u1") is None
