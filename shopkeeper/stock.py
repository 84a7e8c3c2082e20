"""Shop inventory management: stocking, restocking and random generation."""

from __future__ import annotations

import copy
import logging
import random
import sqlite3
from dataclasses import dataclass

from .config import ShopkeeperConfig
from .currency import Currency, format_currency
from .db import ShopStore, StateStore
from .dice import roll_dice
from .errors import (
    EmptyCatalog,
    Err,
    InvalidQuantity,
    ItemNotFound,
    LookupFailed,
    Ok,
    PersistenceError,
    Result,
    ShopNotConfigured,
)
from .models import CatalogItem, Shop, StockItem
from .sources import ANY, CatalogSource

logger = logging.getLogger(__name__)

CATEGORY_EMOJI = {
    "weapons": "⚔️",
    "Armor & Attire": "🛡️",
    "potions": "🧪",
    "scrolls": "📜",
    "magic": "✨",
    "equipment": "🎒",
    "Mounts & Vehicles": "🐴🛞",
    "Services": "🛎️",
}

RARITY_EMOJI = {
    "common": "⚪",
    "uncommon": "🟢",
    "rare": "🔵",
    "very rare": "🟣",
    "legendary": "🟠",
}

DEFAULT_QUANTITY_NOTATION = "1d4"


@dataclass
class CategorySummary:
    name: str
    emoji: str
    item_count: int
    total_quantity: int


class StockManager:
    """Mutates a shop's inventory and writes the whole shop back afterwards.

    Every mutator validates its inputs before touching the shop, and a
    rejected write restores the inventory, so a failed call leaves the
    shop as it was.
    """

    def __init__(
        self,
        shops: ShopStore,
        state: StateStore,
        config: ShopkeeperConfig | None = None,
    ) -> None:
        self._shops = shops
        self._state = state
        self._config = config or ShopkeeperConfig()

    # -- lookup ----------------------------------------------------------

    def _locate(self, shop: Shop, item_id: str) -> tuple[str, int, StockItem] | None:
        for category, index, item in shop.iter_items():
            if item.id == item_id:
                return category, index, item
        return None

    def find_item(self, shop: Shop, item_id: str) -> StockItem | None:
        found = self._locate(shop, item_id)
        return found[2] if found else None

    def _persist(self, shop: Shop, snapshot: dict[str, list[StockItem]]) -> Result[None]:
        """Save *shop*, putting *snapshot* back as its inventory if the write fails."""
        try:
            self._shops.save(shop)
        except (sqlite3.Error, OSError, KeyError) as e:
            logger.error("Failed to save shop %s: %s", shop.name, e)
            shop.inventory.clear()
            shop.inventory.update(snapshot)
            return Err(PersistenceError(f"shop {shop.name!r}", str(e)))
        return Ok(None)

    def _highlight(self, shop: Shop, item_ids: list[str]) -> None:
        try:
            self._state.add_highlights(shop.id, item_ids)
        except sqlite3.Error as e:
            logger.warning("Could not record highlights for %s: %s", shop.name, e)

    # -- single item mutations -------------------------------------------

    async def add_item(
        self,
        shop: Shop,
        catalog: CatalogSource,
        item_id: str,
        quantity: int = 1,
        custom_price: Currency | None = None,
    ) -> Result[StockItem]:
        """Stock *quantity* of a catalog item, raising its cap by the same amount."""
        if shop.id is None:
            return Err(ShopNotConfigured(shop.name))
        if quantity < 1:
            return Err(InvalidQuantity(quantity))

        try:
            candidates = await catalog.list_catalog_items(ANY, ANY)
        except (OSError, ValueError) as e:
            logger.error("Catalog lookup failed: %s", e)
            return Err(LookupFailed("item catalog", str(e)))

        catalog_item = next((c for c in candidates if c.id == item_id), None)
        if catalog_item is None:
            return Err(ItemNotFound(item_id, where="the item catalog"))

        snapshot = copy.deepcopy(shop.inventory)
        found = self._locate(shop, item_id)
        if found is not None:
            stocked = found[2]
            stocked.quantity += quantity
            stocked.max_stock += quantity
            if custom_price is not None:
                stocked.price = custom_price
            logger.info("Updated %s to %d/%d", stocked.name, stocked.quantity, stocked.max_stock)
        else:
            stocked = StockItem.from_catalog(catalog_item, quantity)
            if custom_price is not None:
                stocked.price = custom_price
            shop.inventory.setdefault(stocked.category, []).append(stocked)
            logger.info(
                "Added %d %s (%s) to %s",
                quantity, stocked.name, format_currency(stocked.price), shop.name,
            )

        saved = self._persist(shop, snapshot)
        if not saved:
            return saved
        self._highlight(shop, [item_id])
        return Ok(stocked)

    def remove_item(self, shop: Shop, item_id: str, quantity: int = 0) -> Result[int]:
        """Remove *quantity* units, or the whole entry when 0 or more than held.

        Returns the quantity left on the shelf (0 when the entry was deleted).
        """
        if shop.id is None:
            return Err(ShopNotConfigured(shop.name))
        if quantity < 0:
            return Err(InvalidQuantity(quantity))
        found = self._locate(shop, item_id)
        if found is None:
            return Err(ItemNotFound(item_id))
        category, index, item = found

        snapshot = copy.deepcopy(shop.inventory)
        if quantity == 0 or quantity >= item.quantity:
            del shop.inventory[category][index]
            remaining = 0
            logger.info("Removed %s from %s", item.name, shop.name)
        else:
            item.quantity -= quantity
            remaining = item.quantity
            logger.info("Reduced %s by %d (now %d)", item.name, quantity, remaining)

        saved = self._persist(shop, snapshot)
        return Ok(remaining) if saved else saved

    def set_max_stock(self, shop: Shop, item_id: str, new_max: int) -> Result[StockItem | None]:
        """Set the restock cap; a cap of 0 removes the item."""
        if shop.id is None:
            return Err(ShopNotConfigured(shop.name))
        if new_max < 0:
            return Err(InvalidQuantity(new_max))
        found = self._locate(shop, item_id)
        if found is None:
            return Err(ItemNotFound(item_id))
        category, index, item = found

        snapshot = copy.deepcopy(shop.inventory)
        if new_max == 0:
            del shop.inventory[category][index]
            logger.info("Removed %s (max stock set to 0)", item.name)
            result: StockItem | None = None
        else:
            item.max_stock = new_max
            item.quantity = min(item.quantity, new_max)
            logger.info("Max stock of %s is now %d", item.name, new_max)
            result = item

        saved = self._persist(shop, snapshot)
        return Ok(result) if saved else saved

    def set_quantity(self, shop: Shop, item_id: str, new_quantity: int) -> Result[StockItem]:
        if shop.id is None:
            return Err(ShopNotConfigured(shop.name))
        found = self._locate(shop, item_id)
        if found is None:
            return Err(ItemNotFound(item_id))
        item = found[2]

        snapshot = copy.deepcopy(shop.inventory)
        new_quantity = max(0, new_quantity)
        cap = item.max_stock or new_quantity
        item.quantity = min(new_quantity, cap)
        item.max_stock = max(item.max_stock, item.quantity)
        logger.info("Quantity of %s is now %d", item.name, item.quantity)

        saved = self._persist(shop, snapshot)
        return Ok(item) if saved else saved

    def set_price(self, shop: Shop, item_id: str, new_price: Currency) -> Result[StockItem]:
        if shop.id is None:
            return Err(ShopNotConfigured(shop.name))
        found = self._locate(shop, item_id)
        if found is None:
            return Err(ItemNotFound(item_id))
        item = found[2]

        snapshot = copy.deepcopy(shop.inventory)
        item.price = new_price
        logger.info("Price of %s is now %s", item.name, format_currency(new_price))

        saved = self._persist(shop, snapshot)
        return Ok(item) if saved else saved

    # -- bulk operations -------------------------------------------------

    async def generate_random_stock(
        self,
        catalog: CatalogSource,
        count: int | None = None,
        categories: list[str] | None = None,
        rarity_weights: dict[str, float] | None = None,
        quantities: dict[str, str] | None = None,
        rng: random.Random | None = None,
    ) -> Result[list[StockItem]]:
        """Draw *count* random catalog items, coalescing duplicates.

        Each draw picks a rarity proportionally to *rarity_weights* (entries
        with weight 0 are never chosen), a category uniformly, then an item
        uniformly among catalog matches. Draws with no match yield nothing.
        """
        settings = self._config.stock
        count = settings.default_count if count is None else count
        categories = categories or settings.categories
        rarity_weights = settings.rarity_weights if rarity_weights is None else rarity_weights
        quantities = settings.quantities if quantities is None else quantities
        rng = rng or random.Random()

        if count <= 0:
            return Ok([])

        try:
            catalog_items = await catalog.list_catalog_items(ANY, ANY)
        except (OSError, ValueError) as e:
            logger.error("Catalog lookup failed: %s", e)
            return Err(LookupFailed("item catalog", str(e)))
        if not catalog_items:
            return Err(EmptyCatalog())

        rarities = [r for r, w in rarity_weights.items() if w > 0]
        weights = [rarity_weights[r] for r in rarities]
        if not rarities:
            logger.warning("No rarity has a positive weight; nothing generated")
            return Ok([])

        generated: dict[str, StockItem] = {}
        for _ in range(count):
            rarity = rng.choices(rarities, weights=weights)[0]
            category = rng.choice(categories)
            matches = _matching(catalog_items, category, rarity)
            if not matches:
                continue
            picked = rng.choice(matches)
            quantity = roll_dice(quantities.get(rarity, DEFAULT_QUANTITY_NOTATION), rng)

            existing = generated.get(picked.id)
            if existing is not None:
                existing.quantity += quantity
                existing.max_stock += quantity
            else:
                generated[picked.id] = StockItem.from_catalog(picked, quantity)

        logger.info("Generated %d unique items for stock", len(generated))
        return Ok(list(generated.values()))

    def apply_generated_stock(self, shop: Shop, items: list[StockItem]) -> Result[int]:
        """Merge generated items into *shop* and highlight the batch."""
        if shop.id is None:
            return Err(ShopNotConfigured(shop.name))

        snapshot = copy.deepcopy(shop.inventory)
        for new in items:
            found = self._locate(shop, new.id)
            if found is not None:
                found[2].quantity += new.quantity
                found[2].max_stock += new.max_stock
            else:
                shop.inventory.setdefault(new.category, []).append(new)

        saved = self._persist(shop, snapshot)
        if not saved:
            return saved
        self._highlight(shop, [item.id for item in items])
        return Ok(len(items))

    def restock(self, shop: Shop) -> Result[int]:
        """Refill every item to its cap. Returns how many items changed."""
        if shop.id is None:
            return Err(ShopNotConfigured(shop.name))

        snapshot = copy.deepcopy(shop.inventory)
        restocked = 0
        for _, _, item in shop.iter_items():
            if item.max_stock and item.quantity < item.max_stock:
                logger.debug("Restocked %s: %d -> %d", item.name, item.quantity, item.max_stock)
                item.quantity = item.max_stock
                restocked += 1

        if restocked == 0:
            logger.info("No items in %s needed restocking", shop.name)
            return Ok(0)

        logger.info("Restocked %d items in %s", restocked, shop.name)
        saved = self._persist(shop, snapshot)
        return Ok(restocked) if saved else saved

    def clear_all(self, shop: Shop) -> Result[int]:
        if shop.id is None:
            return Err(ShopNotConfigured(shop.name))

        snapshot = copy.deepcopy(shop.inventory)
        cleared = shop.item_count()
        for category in shop.inventory:
            shop.inventory[category] = []
        logger.info("Cleared %d items from %s", cleared, shop.name)

        saved = self._persist(shop, snapshot)
        return Ok(cleared) if saved else saved

    # -- display ---------------------------------------------------------

    def format_inventory(self, shop: Shop) -> str:
        """Render the inventory grouped by category.

        Items added or modified since the last render are marked with 🔄;
        rendering consumes that highlight set.
        """
        if shop.item_count() == 0:
            return "No items in stock."

        highlights = self._state.consume_highlights(shop.id) if shop.id else set()

        lines: list[str] = []
        for category, items in shop.inventory.items():
            if not items:
                continue
            emoji = CATEGORY_EMOJI.get(category, "📦")
            lines.append(f"{emoji} {category[:1].upper()}{category[1:]}:")
            for item in items:
                marker = RARITY_EMOJI.get(item.rarity, RARITY_EMOJI["common"])
                price = format_currency(item.price)
                if item.quantity == 0:
                    entry = f"{marker} (🔴/{item.max_stock}) Out of Stock - {item.name} - 💰{price}"
                else:
                    entry = f"{marker} ({item.quantity}/{item.max_stock}) {item.name} - 💰{price}"
                if item.id in highlights:
                    entry = f"🔄 {entry}"
                lines.append(f"• {entry}")
        return "\n".join(lines)

    def shop_categories(self, shop: Shop) -> list[CategorySummary]:
        """Non-empty categories with counts, in configured category order."""
        order = self._config.stock.categories
        summaries = [
            CategorySummary(
                name=category,
                emoji=CATEGORY_EMOJI.get(category, "📦"),
                item_count=len(items),
                total_quantity=sum(item.quantity for item in items),
            )
            for category, items in shop.inventory.items()
            if items
        ]
        return sorted(
            summaries,
            key=lambda s: order.index(s.name) if s.name in order else len(order),
        )

    def validate_inventory(self, shop: Shop) -> bool:
        """Check every entry has an id and a name and honours its cap."""
        for category, _, item in shop.iter_items():
            if not item.id or not item.name:
                logger.warning("Invalid item in %s: missing id or name", category)
                return False
            if not 0 <= item.quantity <= item.max_stock:
                logger.warning(
                    "Invalid stock level for %s: %d/%d",
                    item.id, item.quantity, item.max_stock,
                )
                return False
        return True


def _matching(items: list[CatalogItem], category: str, rarity: str) -> list[CatalogItem]:
    category, rarity = category.lower(), rarity.lower()
    return [
        item
        for item in items
        if item.category.lower() == category and item.rarity.lower() == rarity
    ]
