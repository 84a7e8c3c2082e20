"""Tests for BasketManager (mocked character inventory)."""

from unittest.mock import AsyncMock

import pytest

from shopkeeper.basket import BasketManager, basket_total, haggle_delta
from shopkeeper.currency import Currency
from shopkeeper.db import StateStore
from shopkeeper.errors import (
    BasketsLocked,
    CannotMerge,
    EmptyBasket,
    InsufficientStock,
    InvalidQuantity,
    ItemNotFound,
    ItemNotInBasket,
    LookupFailed,
    NoActiveShop,
    NoSellSource,
    NotMerged,
)
from shopkeeper.models import BasketLine, CatalogItem, HaggleResult, Merged, Shop, StockItem
from shopkeeper.sources import SellableInventory


def _shop() -> Shop:
    return Shop(
        name="Flagon",
        id="1",
        inventory={
            "weapons": [
                StockItem("longsword", "Longsword", "weapons", "common", Currency(gp=5), 10, 10),
            ],
            "potions": [
                StockItem("potion", "Potion", "potions", "uncommon", Currency(gp=50), 2, 2),
            ],
        },
    )


def _inventory() -> AsyncMock:
    source = AsyncMock()
    source.extract_sellable_items.return_value = SellableInventory([
        CatalogItem("ruby", "Ruby", "magic", "rare", Currency(gp=1, cp=5), quantity=3),
        CatalogItem("rope", "Rope", "equipment", "common", Currency(gp=1), quantity=0),
    ])
    return source


@pytest.fixture
def state(tmp_path):
    store = StateStore(db_path=tmp_path / "test.db")
    yield store
    store.close()


@pytest.fixture
def shop():
    return _shop()


@pytest.fixture
def manager(state, shop):
    baskets = BasketManager(state, inventory=_inventory())
    baskets.select_shop(shop)
    return baskets


async def _stage_both(manager: BasketManager) -> None:
    manager.add_to_buy_basket("u1", "longsword", 3)
    manager.begin_sell_session("u1", "char-1")
    await manager.add_to_sell_basket("u1", "ruby", 2)


def test_basket_total_and_delta():
    lines = [_line(3, Currency(gp=5)), _line(1, Currency(sp=5))]
    assert basket_total(lines) == 1550
    assert haggle_delta(1550, -0.1) == -155


def _line(quantity, price):
    return BasketLine("x", "X", quantity, price)


class TestBuyBasket:
    def test_stage_and_total(self, manager):
        line = manager.add_to_buy_basket("u1", "longsword", 3).value
        assert line.quantity == 3
        assert line.total_copper == 1500

    def test_coalesces_and_keeps_staged_price(self, manager, shop):
        manager.add_to_buy_basket("u1", "longsword", 3)
        shop.inventory["weapons"][0].price = Currency(gp=6)
        line = manager.add_to_buy_basket("u1", "longsword", 3).value

        assert line.quantity == 6
        assert line.price == Currency(gp=5)
        assert manager.summary("u1").buy_subtotal == 3000

    def test_insufficient_stock_is_cumulative(self, manager):
        manager.add_to_buy_basket("u1", "longsword", 8)
        result = manager.add_to_buy_basket("u1", "longsword", 3)

        assert isinstance(result.error, InsufficientStock)
        assert result.error.requested == 11
        assert result.error.available == 10
        assert manager.summary("u1").buy_lines[0].quantity == 8

    def test_unknown_item(self, manager):
        assert isinstance(manager.add_to_buy_basket("u1", "vorpal").error, ItemNotFound)

    def test_invalid_quantity(self, manager):
        assert isinstance(manager.add_to_buy_basket("u1", "longsword", 0).error, InvalidQuantity)

    def test_no_active_shop(self, state):
        manager = BasketManager(state)
        assert isinstance(manager.add_to_buy_basket("u1", "longsword").error, NoActiveShop)

    def test_remove_by_index(self, manager):
        manager.add_to_buy_basket("u1", "longsword", 1)
        manager.add_to_buy_basket("u1", "potion", 1)

        removed = manager.remove_from_buy_basket("u1", 0).value
        assert removed.item_id == "longsword"
        assert [ln.item_id for ln in manager.summary("u1").buy_lines] == ["potion"]

    def test_remove_bad_index(self, manager):
        result = manager.remove_from_buy_basket("u1", 5)
        assert isinstance(result.error, ItemNotInBasket)
        assert result.error.basket == "buy"

    def test_clear(self, manager, state):
        manager.add_to_buy_basket("u1", "longsword", 1)
        manager.record_haggle("u1", HaggleResult(buy_adjustment=-0.1))

        assert manager.clear_buy_basket("u1").value == 1
        assert manager.summary("u1").buy_lines == []
        assert state.get_haggle("u1") is None

    def test_baskets_are_per_user(self, manager):
        manager.add_to_buy_basket("u1", "longsword", 1)
        assert manager.summary("u2").buy_lines == []


class TestSellBasket:
    @pytest.mark.asyncio
    async def test_requires_session(self, manager):
        result = await manager.add_to_sell_basket("u1", "ruby")
        assert isinstance(result.error, NoSellSource)

    @pytest.mark.asyncio
    async def test_requires_inventory_source(self, state, shop):
        manager = BasketManager(state)
        manager.select_shop(shop)
        manager.begin_sell_session("u1", "char-1")
        result = await manager.add_to_sell_basket("u1", "ruby")
        assert isinstance(result.error, NoSellSource)

    @pytest.mark.asyncio
    async def test_price_floors_to_copper(self, manager):
        manager.begin_sell_session("u1", "char-1")
        line = (await manager.add_to_sell_basket("u1", "ruby")).value

        # 105cp at 0.5 -> 52.5cp -> 52cp
        assert line.price.copper == 52
        assert line.base_value == Currency(gp=1, cp=5)
        assert line.character_id == "char-1"

    @pytest.mark.asyncio
    async def test_uses_shop_sell_modifier(self, manager, shop):
        shop.sell_modifier = 0.8
        manager.begin_sell_session("u1", "char-1")
        line = (await manager.add_to_sell_basket("u1", "ruby")).value
        assert line.price.copper == 84

    @pytest.mark.asyncio
    async def test_clamps_to_held_quantity(self, manager):
        manager.begin_sell_session("u1", "char-1")
        line = (await manager.add_to_sell_basket("u1", "ruby", 10)).value
        assert line.quantity == 3

        result = await manager.add_to_sell_basket("u1", "ruby", 1)
        assert isinstance(result.error, InsufficientStock)

    @pytest.mark.asyncio
    async def test_zero_quantity_item_counts_as_one(self, manager):
        manager.begin_sell_session("u1", "char-1")
        line = (await manager.add_to_sell_basket("u1", "rope", 5)).value
        assert line.quantity == 1

    @pytest.mark.asyncio
    async def test_unknown_item(self, manager):
        manager.begin_sell_session("u1", "char-1")
        result = await manager.add_to_sell_basket("u1", "crown")
        assert isinstance(result.error, ItemNotFound)
        assert "character inventory" in result.message

    @pytest.mark.asyncio
    async def test_inventory_failure(self, state, shop):
        source = AsyncMock()
        source.extract_sellable_items.side_effect = ValueError("bad sheet")
        manager = BasketManager(state, inventory=source)
        manager.select_shop(shop)
        manager.begin_sell_session("u1", "char-1")

        result = await manager.add_to_sell_basket("u1", "ruby")
        assert isinstance(result.error, LookupFailed)

    @pytest.mark.asyncio
    async def test_clear_forgets_character(self, manager):
        manager.begin_sell_session("u1", "char-1")
        await manager.add_to_sell_basket("u1", "ruby")

        assert manager.clear_sell_basket("u1").value == 1
        summary = manager.summary("u1")
        assert summary.sell_lines == []
        assert summary.character_id is None


class TestMerging:
    def test_needs_both_baskets(self, manager):
        manager.add_to_buy_basket("u1", "longsword", 1)
        assert not manager.can_merge("u1")
        assert isinstance(manager.merge_baskets("u1").error, CannotMerge)

    @pytest.mark.asyncio
    async def test_merge_locks_baskets(self, manager):
        await _stage_both(manager)
        assert manager.can_merge("u1")

        merged = manager.merge_baskets("u1")
        assert isinstance(merged.value, Merged)
        assert isinstance(manager.add_to_buy_basket("u1", "potion").error, BasketsLocked)
        assert isinstance(manager.remove_from_sell_basket("u1", 0).error, BasketsLocked)
        assert isinstance(manager.clear_buy_basket("u1").error, BasketsLocked)
        assert isinstance(manager.begin_sell_session("u1", "char-2").error, BasketsLocked)
        result = await manager.add_to_sell_basket("u1", "ruby")
        assert isinstance(result.error, BasketsLocked)

    @pytest.mark.asyncio
    async def test_merge_twice(self, manager):
        await _stage_both(manager)
        manager.merge_baskets("u1")
        result = manager.merge_baskets("u1")
        assert isinstance(result.error, CannotMerge)
        assert "already merged" in result.message

    @pytest.mark.asyncio
    async def test_unmerge(self, manager):
        await _stage_both(manager)
        manager.merge_baskets("u1")

        assert manager.unmerge_baskets("u1")
        assert manager.add_to_buy_basket("u1", "potion")
        assert isinstance(manager.unmerge_baskets("u1").error, NotMerged)

    @pytest.mark.asyncio
    async def test_merged_view(self, manager):
        assert isinstance(manager.view_merged_baskets("u1").error, NotMerged)

        await _stage_both(manager)
        manager.merge_baskets("u1")
        text = manager.view_merged_baskets("u1").value

        assert text.startswith("🔄 Merged Transaction")
        assert "Buy Total: 💰1pp 5gp" in text
        assert "Sell Total: 💰1gp 4cp" in text
        assert text.endswith("Net Transaction: You pay: 💰1pp 3gp 9sp 6cp")


class TestSummaryAndSettle:
    def test_haggle_adjusts_and_is_clamped(self, manager):
        manager.add_to_buy_basket("u1", "longsword", 3)
        recorded = manager.record_haggle("u1", HaggleResult(buy_adjustment=-0.5)).value
        assert recorded.buy_adjustment == -0.2

        summary = manager.summary("u1")
        assert summary.buy_subtotal == 1500
        assert summary.buy_adjustment == -300
        assert summary.buy_total == 1200
        assert summary.net == -1200
        assert summary.direction == "pay"

    @pytest.mark.asyncio
    async def test_settle_resets_baskets(self, manager, state):
        await _stage_both(manager)
        manager.record_haggle("u1", HaggleResult(sell_adjustment=0.1))

        settled = manager.settle("u1").value
        assert settled.buy_total == 1500
        assert settled.sell_subtotal == 104
        assert settled.sell_adjustment == 10
        assert settled.character_id == "char-1"

        assert state.load_baskets("u1").is_empty
        assert state.get_haggle("u1") is None

    def test_settle_empty(self, manager):
        assert isinstance(manager.settle("u1").error, EmptyBasket)


class TestViews:
    def test_empty_views(self, manager):
        assert manager.view_buy_basket("u1") == "🧺 Your basket is empty!"
        assert manager.view_sell_basket("u1") == "💰 Your sell basket is empty!"

    def test_buy_view(self, manager):
        manager.add_to_buy_basket("u1", "longsword", 3)
        manager.add_to_buy_basket("u1", "potion", 1)
        assert manager.view_buy_basket("u1").splitlines() == [
            "🧺 Shopping Basket",
            "• [0] Longsword (x3) - 5gp each = 1pp 5gp",
            "• [1] Potion - 5pp each = 5pp",
            "Total Cost: 💰6pp 5gp",
        ]

    @pytest.mark.asyncio
    async def test_sell_view(self, manager):
        manager.begin_sell_session("u1", "char-1")
        await manager.add_to_sell_basket("u1", "ruby", 2)
        text = manager.view_sell_basket("u1")
        assert "Selling from: char-1" in text
        assert "• [0] Ruby (x2) - 5sp 2cp each = 1gp 4cp" in text
