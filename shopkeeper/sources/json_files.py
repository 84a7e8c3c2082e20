"""JSON-file backed catalog and character inventory sources."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from ..models import CatalogItem
from . import ANY, CatalogSource, InventorySource, SellableInventory

logger = logging.getLogger(__name__)


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


def _to_item(raw: dict[str, Any]) -> CatalogItem:
    data = dict(raw)
    if not data.get("id"):
        data["id"] = _slug(str(data.get("name", ""))) or "item"
    return CatalogItem.from_dict(data)


def _read_json(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


class JsonCatalog(CatalogSource):
    """Item catalog read from a JSON file.

    The file holds either a list of items or ``{"items": [...]}``. Items
    without an id get one derived from their name. The file is read once
    and cached.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()
        self._items: list[CatalogItem] | None = None

    def _load(self) -> list[CatalogItem]:
        if self._items is None:
            if not self._path.exists():
                logger.warning("Catalog file not found: %s", self._path)
                self._items = []
            else:
                raw = _read_json(self._path)
                if isinstance(raw, dict):
                    raw = raw.get("items", [])
                self._items = [_to_item(r) for r in raw]
                logger.info("Loaded %d catalog items from %s", len(self._items), self._path)
        return self._items

    async def list_catalog_items(
        self, category: str = ANY, rarity: str = ANY
    ) -> list[CatalogItem]:
        category = (category or ANY).lower()
        rarity = (rarity or ANY).lower()
        return [
            item
            for item in self._load()
            if (category == ANY or item.category.lower() == category)
            and (rarity == ANY or item.rarity.lower() == rarity)
        ]


class JsonInventorySource(InventorySource):
    """Character inventories read from a JSON file.

    Format: ``{"<character id>": [item, ...], ...}``. The file is re-read
    on every extraction so sales see the latest sheet.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    async def extract_sellable_items(self, character_id: str) -> SellableInventory:
        if not self._path.exists():
            logger.warning("Inventory file not found: %s", self._path)
            return SellableInventory()

        raw = _read_json(self._path)
        entries = raw.get(character_id, []) if isinstance(raw, dict) else []
        items = [_to_item(e) for e in entries if int(e.get("quantity", 1)) > 0]
        logger.debug("Character %s has %d sellable items", character_id, len(items))
        return SellableInventory(items=items)
