"""Named document storage: shops, receipts and the transaction ledger."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from pathlib import Path

from ..models import Shop
from .schema import ensure_schema

SHOP_PREFIX = "Shop-"


@dataclass
class Document:
    """A stored document row."""

    id: int
    name: str
    owner_id: str
    kind: str
    body: str
    created_at: str = ""

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Document:
        return cls(
            id=row["id"],
            name=row["name"],
            owner_id=row["owner_id"],
            kind=row["kind"],
            body=row["body"],
            created_at=row["created_at"],
        )


class DocumentStore:
    """Manages the documents table."""

    def __init__(self, db_path: str | Path = "~/.config/shopkeeper/shop.db") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = ensure_schema(self._db_path)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def create(
        self,
        name: str,
        body: str = "",
        *,
        owner_id: str = "",
        kind: str = "note",
    ) -> Document:
        """Insert a new document and return it."""
        conn = self._get_conn()
        cur = conn.execute(
            "INSERT INTO documents (name, owner_id, kind, body) VALUES (?, ?, ?, ?)",
            (name, owner_id, kind, body),
        )
        conn.commit()
        return self.get(cur.lastrowid)

    def get(self, doc_id: int | str) -> Document | None:
        conn = self._get_conn()
        row = conn.execute(
            "SELECT * FROM documents WHERE id = ?", (int(doc_id),)
        ).fetchone()
        return Document.from_row(row) if row else None

    def find_by_name(self, name: str, kind: str | None = None) -> Document | None:
        """Return the oldest document with exactly this name."""
        conn = self._get_conn()
        if kind is None:
            row = conn.execute(
                "SELECT * FROM documents WHERE name = ? ORDER BY id LIMIT 1",
                (name,),
            ).fetchone()
        else:
            row = conn.execute(
                "SELECT * FROM documents WHERE name = ? AND kind = ? ORDER BY id LIMIT 1",
                (name, kind),
            ).fetchone()
        return Document.from_row(row) if row else None

    def names_starting_with(self, prefix: str) -> list[str]:
        """All document names equal to or beginning with *prefix*."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT name FROM documents WHERE substr(name, 1, ?) = ? ORDER BY id",
            (len(prefix), prefix),
        ).fetchall()
        return [row["name"] for row in rows]

    def list(self, kind: str | None = None, owner_id: str | None = None) -> list[Document]:
        conn = self._get_conn()
        query = "SELECT * FROM documents WHERE 1 = 1"
        params: list[str] = []
        if kind is not None:
            query += " AND kind = ?"
            params.append(kind)
        if owner_id is not None:
            query += " AND owner_id = ?"
            params.append(owner_id)
        rows = conn.execute(query + " ORDER BY id", params).fetchall()
        return [Document.from_row(r) for r in rows]

    def update_body(self, doc_id: int | str, body: str) -> None:
        """Replace the whole body of a document."""
        conn = self._get_conn()
        cur = conn.execute(
            """UPDATE documents
               SET body = ?, updated_at = datetime('now', 'localtime')
               WHERE id = ?""",
            (body, int(doc_id)),
        )
        conn.commit()
        if cur.rowcount == 0:
            raise KeyError(f"document {doc_id} does not exist")

    def delete(self, doc_id: int | str) -> None:
        conn = self._get_conn()
        conn.execute("DELETE FROM documents WHERE id = ?", (int(doc_id),))
        conn.commit()


class ShopStore:
    """Persists each shop as a single JSON document."""

    def __init__(self, documents: DocumentStore) -> None:
        self._documents = documents

    def create(self, shop: Shop, owner_id: str = "gm") -> Shop:
        """Create the backing document and give *shop* its id."""
        doc = self._documents.create(
            f"{SHOP_PREFIX}{shop.name}", owner_id=owner_id, kind="shop"
        )
        shop.id = str(doc.id)
        self.save(shop)
        return shop

    def save(self, shop: Shop) -> None:
        """Write the whole shop document back.

        Raises:
            ValueError: If the shop has never been created.
            KeyError: If the backing document no longer exists.
        """
        if shop.id is None:
            raise ValueError(f"shop {shop.name!r} has no document id")
        body = json.dumps(shop.to_dict(), indent=2, ensure_ascii=False)
        self._documents.update_body(shop.id, body)

    def load(self, shop_id: int | str) -> Shop | None:
        doc = self._documents.get(shop_id)
        if doc is None or doc.kind != "shop":
            return None
        return self._from_document(doc)

    def find(self, name: str) -> Shop | None:
        doc = self._documents.find_by_name(f"{SHOP_PREFIX}{name}", kind="shop")
        return self._from_document(doc) if doc else None

    def list_shops(self) -> list[Shop]:
        return [self._from_document(d) for d in self._documents.list(kind="shop")]

    @staticmethod
    def _from_document(doc: Document) -> Shop:
        data = json.loads(doc.body) if doc.body.strip() else {}
        shop = Shop.from_dict(data, shop_id=str(doc.id))
        if not shop.name:
            shop.name = doc.name.removeprefix(SHOP_PREFIX)
        return shop
