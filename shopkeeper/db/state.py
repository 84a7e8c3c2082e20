"""Per-user basket state, per-shop highlights and pending haggle results."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path

from ..models import (
    BasketLine,
    HaggleResult,
    Independent,
    Merged,
    SellBasketLine,
    UserBasketState,
)
from .schema import ensure_schema


class StateStore:
    """Manages session state that must survive restarts.

    Records are created lazily on first save and are never expired.
    """

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

    # -- baskets ---------------------------------------------------------

    def load_baskets(self, user_id: str) -> UserBasketState:
        """Return the user's basket state, empty if none was saved."""
        conn = self._get_conn()
        row = conn.execute(
            "SELECT * FROM user_baskets WHERE user_id = ?", (user_id,)
        ).fetchone()
        if row is None:
            return UserBasketState(user_id=user_id)

        buy = [BasketLine.from_dict(d) for d in json.loads(row["buy_json"])]
        sell = [SellBasketLine.from_dict(d) for d in json.loads(row["sell_json"])]
        merge = (
            Merged(since=datetime.fromisoformat(row["merged_since"]))
            if row["merged_since"]
            else Independent()
        )
        return UserBasketState(
            user_id=user_id,
            buy=buy,
            sell=sell,
            sell_character_id=row["sell_character_id"],
            merge=merge,
        )

    def save_baskets(self, state: UserBasketState) -> None:
        merged_since = (
            state.merge.since.isoformat() if isinstance(state.merge, Merged) else None
        )
        conn = self._get_conn()
        conn.execute(
            """INSERT INTO user_baskets
                   (user_id, buy_json, sell_json, sell_character_id, merged_since)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(user_id) DO UPDATE SET
                   buy_json = excluded.buy_json,
                   sell_json = excluded.sell_json,
                   sell_character_id = excluded.sell_character_id,
                   merged_since = excluded.merged_since,
                   updated_at = datetime('now', 'localtime')""",
            (
                state.user_id,
                json.dumps([line.to_dict() for line in state.buy], ensure_ascii=False),
                json.dumps([line.to_dict() for line in state.sell], ensure_ascii=False),
                state.sell_character_id,
                merged_since,
            ),
        )
        conn.commit()

    def delete_baskets(self, user_id: str) -> None:
        conn = self._get_conn()
        conn.execute("DELETE FROM user_baskets WHERE user_id = ?", (user_id,))
        conn.commit()

    # -- highlights ------------------------------------------------------

    def add_highlights(self, shop_id: str, item_ids: list[str]) -> None:
        """Mark items as recently added or modified."""
        if not item_ids:
            return
        conn = self._get_conn()
        conn.executemany(
            "INSERT OR IGNORE INTO stock_highlights (shop_id, item_id) VALUES (?, ?)",
            [(shop_id, item_id) for item_id in item_ids],
        )
        conn.commit()

    def get_highlights(self, shop_id: str) -> set[str]:
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT item_id FROM stock_highlights WHERE shop_id = ?", (shop_id,)
        ).fetchall()
        return {row["item_id"] for row in rows}

    def consume_highlights(self, shop_id: str) -> set[str]:
        """Return the highlight set for *shop_id* and clear it."""
        highlights = self.get_highlights(shop_id)
        if highlights:
            conn = self._get_conn()
            conn.execute("DELETE FROM stock_highlights WHERE shop_id = ?", (shop_id,))
            conn.commit()
        return highlights

    # -- haggling --------------------------------------------------------

    def get_haggle(self, user_id: str) -> HaggleResult | None:
        conn = self._get_conn()
        row = conn.execute(
            "SELECT result_json FROM haggle_results WHERE user_id = ?", (user_id,)
        ).fetchone()
        return HaggleResult.from_dict(json.loads(row["result_json"])) if row else None

    def set_haggle(self, user_id: str, result: HaggleResult) -> None:
        conn = self._get_conn()
        conn.execute(
            """INSERT INTO haggle_results (user_id, result_json) VALUES (?, ?)
               ON CONFLICT(user_id) DO UPDATE SET
                   result_json = excluded.result_json,
                   created_at = datetime('now', 'localtime')""",
            (user_id, json.dumps(result.to_dict())),
        )
        conn.commit()

    def clear_haggle(self, user_id: str) -> None:
        conn = self._get_conn()
        conn.execute("DELETE FROM haggle_results WHERE user_id = ?", (user_id,))
        conn.commit()
