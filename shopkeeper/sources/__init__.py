"""Catalog and character-inventory sources, data types, and factories.

Both sources are asynchronous: they stand in for lookups against the host
(item compendium, character sheets) that complete before the rest of an
engine operation runs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..models import CatalogItem

if TYPE_CHECKING:
    from ..config import ShopkeeperConfig

ANY = "all"


@dataclass
class SellableInventory:
    """Items a character could sell, with the quantity they hold."""

    items: list[CatalogItem] = field(default_factory=list)

    def find(self, item_id: str) -> CatalogItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


class CatalogSource(ABC):
    """Abstract base for the item catalog a shop stocks from."""

    @abstractmethod
    async def list_catalog_items(
        self, category: str = ANY, rarity: str = ANY
    ) -> list[CatalogItem]:
        """Return catalog items matching *category* and *rarity*.

        ``"all"`` matches every value. May return an empty list.
        """
        ...


class InventorySource(ABC):
    """Abstract base for extracting sellable items from a character."""

    @abstractmethod
    async def extract_sellable_items(self, character_id: str) -> SellableInventory:
        ...


def create_catalog(config: ShopkeeperConfig) -> CatalogSource:
    """Create the catalog source named by configuration."""
    from .json_files import JsonCatalog

    return JsonCatalog(config.sources.catalog_path)


def create_inventory_source(config: ShopkeeperConfig) -> InventorySource | None:
    """Create the inventory source, or ``None`` when none is configured."""
    if not config.sources.inventory_path:
        return None

    from .json_files import JsonInventorySource

    return JsonInventorySource(config.sources.inventory_path)
