"""In-session shop engine: stock, baskets, currency and receipts."""

from .basket import BasketManager, BasketSummary
from .config import ShopkeeperConfig, load_config
from .currency import (
    Currency,
    format_currency,
    from_base_units,
    parse_currency,
    to_base_units,
)
from .errors import Err, Ok, Result, ShopError
from .models import (
    BasketLine,
    CatalogItem,
    HaggleResult,
    SellBasketLine,
    Shop,
    StockItem,
    UserBasketState,
)
from .pdf import generate_document_pdf, generate_receipt_pdf
from .receipt import LedgerEntry, Receipt, ReceiptBuilder, ReceiptHeader
from .sources import (
    CatalogSource,
    InventorySource,
    SellableInventory,
    create_catalog,
    create_inventory_source,
)
from .stock import StockManager

__all__ = [
    "Currency",
    "to_base_units",
    "from_base_units",
    "format_currency",
    "parse_currency",
    "Ok",
    "Err",
    "Result",
    "ShopError",
    "CatalogItem",
    "StockItem",
    "Shop",
    "BasketLine",
    "SellBasketLine",
    "UserBasketState",
    "HaggleResult",
    "CatalogSource",
    "InventorySource",
    "SellableInventory",
    "create_catalog",
    "create_inventory_source",
    "StockManager",
    "BasketManager",
    "BasketSummary",
    "ReceiptBuilder",
    "ReceiptHeader",
    "Receipt",
    "LedgerEntry",
    "generate_receipt_pdf",
    "generate_document_pdf",
    "ShopkeeperConfig",
    "load_config",
]
