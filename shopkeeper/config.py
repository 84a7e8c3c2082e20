"""TOML configuration loader for the shop engine."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]


DEFAULT_CATEGORIES = [
    "weapons",
    "Armor & Attire",
    "equipment",
    "potions",
    "scrolls",
    "magic",
    "Mounts & Vehicles",
    "Services",
]

RARITIES = ["common", "uncommon", "rare", "very rare", "legendary"]


@dataclass
class DatabaseConfig:
    path: str = "~/.config/shopkeeper/shop.db"


@dataclass
class PricingConfig:
    buy_modifier: float = 1.0
    sell_modifier: float = 0.5
    haggle_max_adjustment: float = 0.2


@dataclass
class StockConfig:
    default_count: int = 10
    categories: list[str] = field(default_factory=lambda: list(DEFAULT_CATEGORIES))
    rarity_weights: dict[str, float] = field(default_factory=lambda: {
        "common": 70,
        "uncommon": 20,
        "rare": 8,
        "very rare": 1.5,
        "legendary": 0.5,
    })
    quantities: dict[str, str] = field(default_factory=lambda: {
        "common": "3d6",
        "uncommon": "2d4",
        "rare": "1d4",
        "very rare": "1d2",
        "legendary": "1d2-1",
    })


@dataclass
class SourcesConfig:
    catalog_path: str = "~/.config/shopkeeper/catalog.json"
    inventory_path: str = ""


@dataclass
class RestockConfig:
    enabled: bool = False
    schedule: str = "0 6 * * *"  # cron: 6:00 AM daily


@dataclass
class ReceiptsConfig:
    owner_id: str = "gm"
    ledger_name: str = "Shopkeeper Transaction Log"


@dataclass
class ShopkeeperConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    stock: StockConfig = field(default_factory=StockConfig)
    sources: SourcesConfig = field(default_factory=SourcesConfig)
    restock: RestockConfig = field(default_factory=RestockConfig)
    receipts: ReceiptsConfig = field(default_factory=ReceiptsConfig)


def load_config(path: str | Path | None = None) -> ShopkeeperConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    The database and catalog paths can be overridden via environment
    variables.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    dbs = raw.get("database", {})
    prc = raw.get("pricing", {})
    stk = raw.get("stock", {})
    src = raw.get("sources", {})
    rst = raw.get("restock", {})
    rcp = raw.get("receipts", {})

    # Resolve paths: environment variable → config file → default
    db_path = os.environ.get("SHOPKEEPER_DB_PATH") or dbs.get(
        "path", DatabaseConfig.path
    )
    catalog_path = os.environ.get("SHOPKEEPER_CATALOG_PATH") or src.get(
        "catalog_path", SourcesConfig.catalog_path
    )

    # Per-rarity tables merge over the defaults
    defaults = StockConfig()
    rarity_weights = {**defaults.rarity_weights, **stk.get("rarity_weights", {})}
    quantities = {**defaults.quantities, **stk.get("quantities", {})}

    return ShopkeeperConfig(
        database=DatabaseConfig(path=db_path),
        pricing=PricingConfig(
            buy_modifier=prc.get("buy_modifier", 1.0),
            sell_modifier=prc.get("sell_modifier", 0.5),
            haggle_max_adjustment=prc.get("haggle_max_adjustment", 0.2),
        ),
        stock=StockConfig(
            default_count=stk.get("default_count", 10),
            categories=stk.get("categories", list(DEFAULT_CATEGORIES)),
            rarity_weights=rarity_weights,
            quantities=quantities,
        ),
        sources=SourcesConfig(
            catalog_path=catalog_path,
            inventory_path=src.get("inventory_path", ""),
        ),
        restock=RestockConfig(
            enabled=rst.get("enabled", False),
            schedule=rst.get("schedule", "0 6 * * *"),
        ),
        receipts=ReceiptsConfig(
            owner_id=rcp.get("owner_id", "gm"),
            ledger_name=rcp.get("ledger_name", "Shopkeeper Transaction Log"),
        ),
    )
