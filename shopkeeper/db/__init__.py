"""SQLite persistence for shop documents, receipts and session state."""

from .documents import Document, DocumentStore, ShopStore
from .schema import ensure_schema
from .state import StateStore

__all__ = [
    "Document",
    "DocumentStore",
    "ShopStore",
    "StateStore",
    "ensure_schema",
]
