"""Domain models for shops, catalog items, baskets and haggling."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Union

from .currency import Currency


@dataclass
class CatalogItem:
    """An item as reported by the catalog or a character's inventory."""

    id: str
    name: str
    category: str = "equipment"
    rarity: str = "common"
    price: Currency = field(default_factory=Currency)
    description: str = ""
    quantity: int = 1

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogItem:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", data["id"])),
            category=str(data.get("category", "equipment")),
            rarity=str(data.get("rarity", "common")),
            price=Currency.from_dict(data.get("price")),
            description=str(data.get("description", "")),
            quantity=int(data.get("quantity", 1)),
        )


@dataclass
class StockItem:
    """A stocked inventory entry.

    Invariants:
        - 0 <= quantity <= max_stock
    """

    id: str
    name: str
    category: str
    rarity: str = "common"
    price: Currency = field(default_factory=Currency)
    quantity: int = 0
    max_stock: int = 0
    description: str = ""

    @classmethod
    def from_catalog(cls, item: CatalogItem, quantity: int) -> StockItem:
        return cls(
            id=item.id,
            name=item.name,
            category=item.category,
            rarity=item.rarity or "common",
            price=item.price,
            quantity=quantity,
            max_stock=quantity,
            description=item.description,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StockItem:
        quantity = int(data.get("quantity", 0))
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", data["id"])),
            category=str(data.get("category", "equipment")),
            rarity=str(data.get("rarity", "common")),
            price=Currency.from_dict(data.get("price")),
            quantity=quantity,
            max_stock=int(data.get("maxStock", quantity)),
            description=str(data.get("description", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "rarity": self.rarity,
            "price": self.price.to_dict(),
            "quantity": self.quantity,
            "maxStock": self.max_stock,
            "description": self.description,
        }


@dataclass
class Shop:
    """A shop and its inventory, persisted as one document.

    ``id`` is the document identity and stays ``None`` until the shop has
    been saved.
    """

    name: str
    id: str | None = None
    merchant_name: str = "Unknown Merchant"
    location: str = "Town"
    buy_modifier: float = 1.0
    sell_modifier: float = 0.5
    inventory: dict[str, list[StockItem]] = field(default_factory=dict)

    def iter_items(self):
        """Yield ``(category, index, item)`` for every stocked item."""
        for category, items in self.inventory.items():
            for index, item in enumerate(items):
                yield category, index, item

    def item_count(self) -> int:
        return sum(len(items) for items in self.inventory.values())

    @classmethod
    def from_dict(cls, data: dict[str, Any], shop_id: str | None = None) -> Shop:
        modifiers = data.get("priceModifiers", {})
        inventory = {
            category: [StockItem.from_dict(item) for item in items]
            for category, items in (data.get("inventory") or {}).items()
            if isinstance(items, list)
        }
        return cls(
            name=str(data.get("name", "")),
            id=shop_id if shop_id is not None else data.get("id"),
            merchant_name=data.get("merchantName", "Unknown Merchant"),
            location=data.get("location", "Town"),
            buy_modifier=float(modifiers.get("buy", 1.0)),
            sell_modifier=float(modifiers.get("sell", 0.5)),
            inventory=inventory,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "merchantName": self.merchant_name,
            "location": self.location,
            "priceModifiers": {
                "buy": self.buy_modifier,
                "sell": self.sell_modifier,
            },
            "inventory": {
                category: [item.to_dict() for item in items]
                for category, items in self.inventory.items()
            },
        }


@dataclass
class BasketLine:
    """A staged purchase; ``price`` is frozen when the line is staged."""

    item_id: str
    name: str
    quantity: int
    price: Currency
    category: str = ""
    rarity: str = "common"

    @property
    def total_copper(self) -> int:
        return self.price.copper * self.quantity

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BasketLine:
        if "characterId" in data:
            return SellBasketLine.from_dict(data)
        return cls(
            item_id=data["id"],
            name=data["name"],
            quantity=int(data["quantity"]),
            price=Currency.from_dict(data.get("price")),
            category=data.get("category", ""),
            rarity=data.get("rarity", "common"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.item_id,
            "name": self.name,
            "quantity": self.quantity,
            "price": self.price.to_dict(),
            "category": self.category,
            "rarity": self.rarity,
        }


@dataclass
class SellBasketLine(BasketLine):
    """A staged sale from a character's inventory."""

    character_id: str = ""
    base_value: Currency = field(default_factory=Currency)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SellBasketLine:
        return cls(
            item_id=data["id"],
            name=data["name"],
            quantity=int(data["quantity"]),
            price=Currency.from_dict(data.get("price")),
            category=data.get("category", ""),
            rarity=data.get("rarity", "common"),
            character_id=data["characterId"],
            base_value=Currency.from_dict(data.get("baseValue")),
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["characterId"] = self.character_id
        result["baseValue"] = self.base_value.to_dict()
        return result


@dataclass(frozen=True)
class Independent:
    """Buy and sell baskets can be modified separately."""


@dataclass(frozen=True)
class Merged:
    """Baskets are locked together into one net transaction."""

    since: datetime


MergeState = Union[Independent, Merged]


@dataclass
class UserBasketState:
    user_id: str
    buy: list[BasketLine] = field(default_factory=list)
    sell: list[SellBasketLine] = field(default_factory=list)
    sell_character_id: str | None = None
    merge: MergeState = field(default_factory=Independent)

    @property
    def is_merged(self) -> bool:
        return isinstance(self.merge, Merged)

    @property
    def is_empty(self) -> bool:
        return not self.buy and not self.sell


@dataclass(frozen=True)
class HaggleResult:
    """Outcome of a haggle skill check, supplied by an external roller.

    Adjustments are fractions of the subtotal: ``-0.1`` on a purchase is a
    10% discount, ``0.1`` on a sale is a 10% bonus.
    """

    buy_adjustment: float = 0.0
    sell_adjustment: float = 0.0
    skill: str = ""
    roll: int | None = None
    dc: int | None = None
    success: bool = False

    def clamped(self, limit: float) -> HaggleResult:
        return replace(
            self,
            buy_adjustment=max(-limit, min(limit, self.buy_adjustment)),
            sell_adjustment=max(-limit, min(limit, self.sell_adjustment)),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HaggleResult:
        return cls(
            buy_adjustment=float(data.get("buyAdjustment", 0.0)),
            sell_adjustment=float(data.get("sellAdjustment", 0.0)),
            skill=data.get("skill", ""),
            roll=data.get("roll"),
            dc=data.get("dc"),
            success=bool(data.get("success", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "buyAdjustment": self.buy_adjustment,
            "sellAdjustment": self.sell_adjustment,
            "skill": self.skill,
            "roll": self.roll,
            "dc": self.dc,
            "success": self.success,
        }
