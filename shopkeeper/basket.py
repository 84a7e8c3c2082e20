"""Per-user buy and sell baskets, merging and haggle-adjusted totals.

A user's baskets move through ``Empty -> Staging -> Merged -> Staging``
(unmerge) or ``-> Settled``. Only the merge state is stored explicitly;
empty and staging are read off the basket contents.
"""

from __future__ import annotations

import logging
import math
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime

from .config import ShopkeeperConfig
from .currency import format_currency, from_base_units, to_base_units
from .db import StateStore
from .errors import (
    BasketsLocked,
    CannotMerge,
    EmptyBasket,
    Err,
    InsufficientStock,
    InvalidQuantity,
    ItemNotFound,
    ItemNotInBasket,
    LookupFailed,
    NoActiveShop,
    NoSellSource,
    NotMerged,
    Ok,
    PersistenceError,
    Result,
)
from .models import (
    BasketLine,
    HaggleResult,
    Independent,
    Merged,
    SellBasketLine,
    Shop,
    UserBasketState,
)
from .sources import InventorySource

logger = logging.getLogger(__name__)


def basket_total(lines: list[BasketLine]) -> int:
    """Sum of ``price * quantity`` in copper."""
    return sum(line.total_copper for line in lines)


def haggle_delta(subtotal: int, fraction: float) -> int:
    """Signed copper adjustment for *fraction* of *subtotal*."""
    return round(subtotal * fraction)


@dataclass
class BasketSummary:
    """Totals for a user's baskets, ready for settlement and receipts.

    Adjustments are signed copper amounts: a negative buy adjustment is a
    discount, a positive sell adjustment is a bonus.
    """

    user_id: str
    buy_lines: list[BasketLine] = field(default_factory=list)
    sell_lines: list[SellBasketLine] = field(default_factory=list)
    buy_subtotal: int = 0
    sell_subtotal: int = 0
    buy_adjustment: int = 0
    sell_adjustment: int = 0
    is_merged: bool = False
    character_id: str | None = None
    haggle: HaggleResult | None = None

    @property
    def buy_total(self) -> int:
        return max(0, self.buy_subtotal + self.buy_adjustment)

    @property
    def sell_total(self) -> int:
        return max(0, self.sell_subtotal + self.sell_adjustment)

    @property
    def net(self) -> int:
        """Copper the customer receives (positive) or pays (negative)."""
        return self.sell_total - self.buy_total

    @property
    def direction(self) -> str:
        return "receive" if self.net >= 0 else "pay"


class BasketManager:
    """Stages purchases and sales per user against the active shop."""

    def __init__(
        self,
        state: StateStore,
        inventory: InventorySource | None = None,
        config: ShopkeeperConfig | None = None,
    ) -> None:
        self._state = state
        self._inventory = inventory
        self._config = config or ShopkeeperConfig()
        self._shop: Shop | None = None

    @property
    def active_shop(self) -> Shop | None:
        return self._shop

    def select_shop(self, shop: Shop | None) -> None:
        """Set the shop that buy lines are checked and priced against."""
        self._shop = shop
        logger.debug("Active shop: %s", shop.name if shop else None)

    def _save(self, basket: UserBasketState) -> Result[None]:
        try:
            self._state.save_baskets(basket)
        except sqlite3.Error as e:
            logger.error("Failed to save baskets for %s: %s", basket.user_id, e)
            return Err(PersistenceError(f"baskets for {basket.user_id}", str(e)))
        return Ok(None)

    def _clear_haggle(self, user_id: str) -> None:
        try:
            self._state.clear_haggle(user_id)
        except sqlite3.Error as e:
            logger.warning("Could not clear haggle result for %s: %s", user_id, e)

    def _find_stock(self, item_id: str):
        for _, _, item in self._shop.iter_items():
            if item.id == item_id:
                return item
        return None

    # -- buying ----------------------------------------------------------

    def add_to_buy_basket(
        self, user_id: str, item_id: str, quantity: int = 1
    ) -> Result[BasketLine]:
        """Stage *quantity* of a shop item at its current price."""
        if quantity < 1:
            return Err(InvalidQuantity(quantity))
        basket = self._state.load_baskets(user_id)
        if basket.is_merged:
            return Err(BasketsLocked())
        if self._shop is None:
            return Err(NoActiveShop())

        item = self._find_stock(item_id)
        if item is None:
            return Err(ItemNotFound(item_id))

        line = next((ln for ln in basket.buy if ln.item_id == item_id), None)
        staged = line.quantity if line else 0
        if staged + quantity > item.quantity:
            return Err(InsufficientStock(item.name, staged + quantity, item.quantity))

        if line is not None:
            line.quantity += quantity
        else:
            line = BasketLine(
                item_id=item.id,
                name=item.name,
                quantity=quantity,
                price=item.price,
                category=item.category,
                rarity=item.rarity,
            )
            basket.buy.append(line)

        saved = self._save(basket)
        if not saved:
            return saved
        logger.info("%s staged %d %s to buy", user_id, quantity, item.name)
        return Ok(line)

    def remove_from_buy_basket(self, user_id: str, index: int) -> Result[BasketLine]:
        return self._remove(user_id, "buy", index)

    # -- selling ---------------------------------------------------------

    def begin_sell_session(self, user_id: str, character_id: str) -> Result[None]:
        """Record which character the user's sales come from."""
        basket = self._state.load_baskets(user_id)
        if basket.is_merged:
            return Err(BasketsLocked())
        basket.sell_character_id = character_id
        return self._save(basket)

    async def add_to_sell_basket(
        self, user_id: str, item_path: str, quantity: int = 1
    ) -> Result[SellBasketLine]:
        """Stage a sale from the session character's inventory.

        The requested quantity is clamped to what the character holds. The
        sell price is the item's value times the shop's sell modifier,
        rounded down to the copper.
        """
        if quantity < 1:
            return Err(InvalidQuantity(quantity))
        basket = self._state.load_baskets(user_id)
        if basket.is_merged:
            return Err(BasketsLocked())
        if self._shop is None:
            return Err(NoActiveShop())
        character_id = basket.sell_character_id
        if not character_id or self._inventory is None:
            return Err(NoSellSource())

        try:
            sellable = await self._inventory.extract_sellable_items(character_id)
        except (OSError, ValueError) as e:
            logger.error("Inventory extraction failed for %s: %s", character_id, e)
            return Err(LookupFailed("character inventory", str(e)))

        found = sellable.find(item_path)
        if found is None:
            return Err(ItemNotFound(item_path, where="character inventory"))

        available = found.quantity or 1
        quantity = min(quantity, available)

        line = next((ln for ln in basket.sell if ln.item_id == found.id), None)
        if line is not None:
            if line.quantity + quantity > available:
                return Err(InsufficientStock(found.name, line.quantity + quantity, available))
            line.quantity += quantity
        else:
            modifier = self._shop.sell_modifier or self._config.pricing.sell_modifier
            sell_copper = math.floor(to_base_units(found.price) * modifier)
            line = SellBasketLine(
                item_id=found.id,
                name=found.name,
                quantity=quantity,
                price=from_base_units(sell_copper),
                category=found.category,
                rarity=found.rarity or "common",
                character_id=character_id,
                base_value=found.price,
            )
            basket.sell.append(line)

        saved = self._save(basket)
        if not saved:
            return saved
        logger.info("%s staged %d %s to sell", user_id, quantity, found.name)
        return Ok(line)

    def remove_from_sell_basket(self, user_id: str, index: int) -> Result[BasketLine]:
        return self._remove(user_id, "sell", index)

    def _remove(self, user_id: str, which: str, index: int) -> Result[BasketLine]:
        basket = self._state.load_baskets(user_id)
        if basket.is_merged:
            return Err(BasketsLocked())
        lines = basket.buy if which == "buy" else basket.sell
        if not 0 <= index < len(lines):
            return Err(ItemNotInBasket(which, index))

        removed = lines.pop(index)
        saved = self._save(basket)
        return Ok(removed) if saved else saved

    # -- clearing --------------------------------------------------------

    def clear_buy_basket(self, user_id: str) -> Result[int]:
        basket = self._state.load_baskets(user_id)
        if basket.is_merged:
            return Err(BasketsLocked())
        cleared = len(basket.buy)
        basket.buy = []
        saved = self._save(basket)
        if not saved:
            return saved
        self._clear_haggle(user_id)
        return Ok(cleared)

    def clear_sell_basket(self, user_id: str) -> Result[int]:
        basket = self._state.load_baskets(user_id)
        if basket.is_merged:
            return Err(BasketsLocked())
        cleared = len(basket.sell)
        basket.sell = []
        basket.sell_character_id = None
        saved = self._save(basket)
        if not saved:
            return saved
        self._clear_haggle(user_id)
        return Ok(cleared)

    # -- merging ---------------------------------------------------------

    def can_merge(self, user_id: str) -> bool:
        basket = self._state.load_baskets(user_id)
        return bool(basket.buy) and bool(basket.sell) and not basket.is_merged

    def merge_baskets(self, user_id: str) -> Result[Merged]:
        basket = self._state.load_baskets(user_id)
        if basket.is_merged:
            return Err(CannotMerge("Baskets are already merged."))
        if not basket.buy or not basket.sell:
            return Err(CannotMerge())

        basket.merge = Merged(since=datetime.now())
        saved = self._save(basket)
        return Ok(basket.merge) if saved else saved

    def unmerge_baskets(self, user_id: str) -> Result[None]:
        basket = self._state.load_baskets(user_id)
        if not basket.is_merged:
            return Err(NotMerged())
        basket.merge = Independent()
        return self._save(basket)

    # -- haggling and settlement -----------------------------------------

    def record_haggle(self, user_id: str, result: HaggleResult) -> Result[HaggleResult]:
        """Store a haggle outcome, clamped to the configured maximum."""
        clamped = result.clamped(self._config.pricing.haggle_max_adjustment)
        try:
            self._state.set_haggle(user_id, clamped)
        except sqlite3.Error as e:
            logger.error("Failed to save haggle result for %s: %s", user_id, e)
            return Err(PersistenceError(f"haggle result for {user_id}", str(e)))
        return Ok(clamped)

    def summary(self, user_id: str) -> BasketSummary:
        basket = self._state.load_baskets(user_id)
        haggle = self._state.get_haggle(user_id)
        buy_subtotal = basket_total(basket.buy)
        sell_subtotal = basket_total(basket.sell)
        return BasketSummary(
            user_id=user_id,
            buy_lines=list(basket.buy),
            sell_lines=list(basket.sell),
            buy_subtotal=buy_subtotal,
            sell_subtotal=sell_subtotal,
            buy_adjustment=haggle_delta(buy_subtotal, haggle.buy_adjustment) if haggle else 0,
            sell_adjustment=haggle_delta(sell_subtotal, haggle.sell_adjustment) if haggle else 0,
            is_merged=basket.is_merged,
            character_id=basket.sell_character_id,
            haggle=haggle,
        )

    def settle(self, user_id: str) -> Result[BasketSummary]:
        """Hand the final totals to settlement and reset the user's baskets.

        Stock levels are not re-checked here; the settlement step decides
        what to do with a basket that has gone stale.
        """
        result = self.summary(user_id)
        if not result.buy_lines and not result.sell_lines:
            return Err(EmptyBasket())
        try:
            self._state.delete_baskets(user_id)
            self._state.clear_haggle(user_id)
        except sqlite3.Error as e:
            logger.error("Failed to reset baskets for %s: %s", user_id, e)
            return Err(PersistenceError(f"baskets for {user_id}", str(e)))
        logger.info(
            "%s settled: %s %s", user_id, result.direction, format_currency(abs(result.net))
        )
        return Ok(result)

    # -- views -----------------------------------------------------------

    def view_buy_basket(self, user_id: str) -> str:
        basket = self._state.load_baskets(user_id)
        if not basket.buy:
            return "🧺 Your basket is empty!"
        lines = ["🧺 Shopping Basket", *_format_lines(basket.buy, with_totals=True)]
        lines.append(f"Total Cost: 💰{format_currency(basket_total(basket.buy))}")
        return "\n".join(lines)

    def view_sell_basket(self, user_id: str) -> str:
        basket = self._state.load_baskets(user_id)
        if not basket.sell:
            return "💰 Your sell basket is empty!"
        lines = ["💰 Sell Basket"]
        if basket.sell_character_id:
            lines.append(f"Selling from: {basket.sell_character_id}")
        lines.extend(_format_lines(basket.sell, with_totals=True))
        lines.append(f"Total Value: 💰{format_currency(basket_total(basket.sell))}")
        return "\n".join(lines)

    def view_merged_baskets(self, user_id: str) -> Result[str]:
        basket = self._state.load_baskets(user_id)
        if not basket.is_merged:
            return Err(NotMerged())

        buy_total = basket_total(basket.buy)
        sell_total = basket_total(basket.sell)
        net = sell_total - buy_total
        direction = "You receive" if net >= 0 else "You pay"
        lines = [
            "🔄 Merged Transaction",
            "Buying:",
            *_format_lines(basket.buy),
            f"Buy Total: 💰{format_currency(buy_total)}",
            "Selling:",
            *_format_lines(basket.sell),
            f"Sell Total: 💰{format_currency(sell_total)}",
            f"Net Transaction: {direction}: 💰{format_currency(abs(net))}",
        ]
        return Ok("\n".join(lines))


def _format_lines(lines: list[BasketLine], with_totals: bool = False) -> list[str]:
    if not lines:
        return ["No items"]
    rendered = []
    for index, line in enumerate(lines):
        qty = f" (x{line.quantity})" if line.quantity > 1 else ""
        text = f"• [{index}] {line.name}{qty} - {format_currency(line.price)} each"
        if with_totals:
            text += f" = {format_currency(line.total_copper)}"
        rendered.append(text)
    return rendered
