"""Transaction receipts and the append-only transaction ledger."""

from __future__ import annotations

import logging
import re
import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime

from .basket import BasketSummary, basket_total
from .config import ShopkeeperConfig
from .currency import Amount, Currency, format_currency, from_base_units
from .db import Document, DocumentStore
from .errors import Err, Ok, PersistenceError, Result
from .models import BasketLine, Shop

logger = logging.getLogger(__name__)

_RULE = "=" * 40
_THIN_RULE = "-" * 40
FOOTER = "Thank you for your business!"


@dataclass(frozen=True)
class ReceiptHeader:
    shop_name: str
    customer_name: str
    player_name: str = "Unknown Player"
    merchant_name: str = "Unknown Merchant"
    location: str = "Unknown Location"
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def for_shop(
        cls,
        shop: Shop | None,
        customer_name: str,
        player_name: str = "Unknown Player",
        timestamp: datetime | None = None,
    ) -> ReceiptHeader:
        return cls(
            shop_name=shop.name if shop else "Unknown Shop",
            customer_name=customer_name,
            player_name=player_name,
            merchant_name=shop.merchant_name if shop else "Unknown Merchant",
            location=shop.location if shop else "Unknown Location",
            timestamp=timestamp or datetime.now(),
        )


@dataclass(frozen=True)
class ReceiptLine:
    name: str
    quantity: int
    total: int


@dataclass(frozen=True)
class ReceiptSection:
    """One side of a transaction. Amounts are in copper."""

    title: str
    total_label: str
    lines: tuple[ReceiptLine, ...]
    subtotal: int
    adjustment: int = 0
    adjustment_label: str = ""

    @property
    def total(self) -> int:
        return max(0, self.subtotal + self.adjustment)

    @property
    def adjustment_percent(self) -> int:
        if self.subtotal <= 0:
            return 0
        return round(abs(self.adjustment / self.subtotal) * 100)

    def render(self) -> list[str]:
        out = [self.title]
        for line in self.lines:
            out.append(f"  {line.name} x{line.quantity}: {format_currency(line.total)}")
        out.append(f"  Subtotal: {format_currency(self.subtotal)}")
        if self.adjustment:
            sign = "-" if self.adjustment < 0 else "+"
            out.append(
                f"  {self.adjustment_label} ({self.adjustment_percent}%): "
                f"{sign}{format_currency(abs(self.adjustment))}"
            )
        out.append(f"  {self.total_label}: {format_currency(self.total)}")
        return out


@dataclass(frozen=True)
class Receipt:
    """An immutable rendered transaction record."""

    header: ReceiptHeader
    before: Currency
    after: Currency
    buy: ReceiptSection | None = None
    sell: ReceiptSection | None = None
    footer: str = FOOTER

    @property
    def net(self) -> int:
        """Copper received by the customer (negative when they paid)."""
        sold = self.sell.total if self.sell else 0
        bought = self.buy.total if self.buy else 0
        return sold - bought

    @property
    def direction(self) -> str:
        return "Received" if self.net >= 0 else "Paid"

    def render(self) -> str:
        h = self.header
        out = [
            _RULE,
            h.shop_name,
            h.merchant_name,
            h.location,
            _RULE,
            f"Customer: {h.customer_name} ({h.player_name})",
            f"Date: {h.timestamp:%Y-%m-%d %H:%M}",
        ]
        for section in (self.buy, self.sell):
            if section is not None:
                out.append(_THIN_RULE)
                out.extend(section.render())
        out.extend([
            _THIN_RULE,
            "Transaction Summary",
            f"  Net Amount {self.direction}: {format_currency(abs(self.net))}",
            f"  Currency Before: {format_currency(self.before)}",
            f"  Currency After: {format_currency(self.after)}",
            _RULE,
            self.footer,
        ])
        return "\n".join(out)

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class FailureReceipt:
    player_name: str
    reason: str
    timestamp: datetime = field(default_factory=datetime.now)

    def render(self) -> str:
        return "\n".join([
            _RULE,
            "Transaction Failed",
            _RULE,
            f"Player: {self.player_name}",
            f"Date: {self.timestamp:%Y-%m-%d %H:%M}",
            f"Reason: {self.reason}",
            _RULE,
            "Please try again or contact the GM for assistance.",
        ])

    def __str__(self) -> str:
        return self.render()


@dataclass
class LedgerEntry:
    actor: str
    character: str
    shop: str
    type: str
    amount: str
    items: list[str] | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    def format(self) -> str:
        out = [
            f"[{self.timestamp:%Y-%m-%d %H:%M:%S}]",
            f"Player: {self.actor}",
            f"Character: {self.character}",
            f"Shop: {self.shop}",
            f"Type: {self.type}",
            f"Amount: {self.amount}",
        ]
        if self.items:
            out.append(f"Items: {', '.join(self.items)}")
        out.append(_THIN_RULE)
        return "\n".join(out) + "\n"


def _section(
    lines: list[BasketLine],
    title: str,
    total_label: str,
    adjustment: int,
    adjustment_label: str,
) -> ReceiptSection:
    return ReceiptSection(
        title=title,
        total_label=total_label,
        lines=tuple(ReceiptLine(ln.name, ln.quantity, ln.total_copper) for ln in lines),
        subtotal=basket_total(lines),
        adjustment=adjustment,
        adjustment_label=adjustment_label,
    )


class ReceiptBuilder:
    """Builds receipts and writes them, and ledger entries, to the document store."""

    def __init__(
        self,
        documents: DocumentStore,
        config: ShopkeeperConfig | None = None,
    ) -> None:
        self._documents = documents
        self._config = config or ShopkeeperConfig()

    def build_receipt(
        self,
        header: ReceiptHeader,
        before: Amount,
        after: Amount,
        buy_lines: list[BasketLine] | None = None,
        sell_lines: list[BasketLine] | None = None,
        buy_adjustment: int = 0,
        sell_adjustment: int = 0,
    ) -> Receipt:
        """Assemble a receipt. Adjustments are signed copper amounts.

        A buy or sell section is only included when it has lines.
        """
        buy = None
        if buy_lines:
            buy = _section(
                buy_lines,
                "Items Purchased",
                "Total Paid",
                buy_adjustment,
                "Discount" if buy_adjustment < 0 else "Markup",
            )
        sell = None
        if sell_lines:
            sell = _section(
                sell_lines,
                "Items Sold",
                "Total Received",
                sell_adjustment,
                "Bonus" if sell_adjustment > 0 else "Penalty",
            )
        return Receipt(
            header=header,
            before=_as_currency(before),
            after=_as_currency(after),
            buy=buy,
            sell=sell,
        )

    def build_from_summary(
        self,
        header: ReceiptHeader,
        summary: BasketSummary,
        before: Amount,
        after: Amount,
    ) -> Receipt:
        return self.build_receipt(
            header,
            before,
            after,
            buy_lines=summary.buy_lines,
            sell_lines=summary.sell_lines,
            buy_adjustment=summary.buy_adjustment,
            sell_adjustment=summary.sell_adjustment,
        )

    def build_failure_receipt(self, player_name: str, reason: str) -> FailureReceipt:
        logger.info("Failure receipt for %s: %s", player_name, reason)
        return FailureReceipt(player_name=player_name, reason=reason)

    def next_receipt_name(
        self, customer_name: str, shop_name: str, on: date | None = None
    ) -> str:
        """The base name, or the base name with the next free ``(n)`` suffix."""
        on = on or date.today()
        base = f"Receipt: {customer_name} - {shop_name} - {on.isoformat()}"
        numbered = re.compile(rf"^{re.escape(base)} \((\d+)\)$")

        highest = 0
        for name in self._documents.names_starting_with(base):
            if name == base:
                highest = max(highest, 1)
            elif match := numbered.match(name):
                highest = max(highest, int(match.group(1)))
        return base if highest == 0 else f"{base} ({highest + 1})"

    def persist_receipt(
        self,
        owner_id: str,
        customer_name: str,
        shop_name: str,
        body: str | Receipt | FailureReceipt,
        on: date | None = None,
    ) -> Result[Document]:
        """Save a receipt under a unique name scoped to *owner_id*."""
        try:
            name = self.next_receipt_name(customer_name, shop_name, on)
            doc = self._documents.create(
                name, str(body), owner_id=owner_id, kind="receipt"
            )
        except (sqlite3.Error, OSError) as e:
            logger.error("Error creating receipt document: %s", e)
            return Err(PersistenceError("receipt", str(e)))
        logger.debug("Created receipt document: %s", name)
        return Ok(doc)

    def append_ledger_entry(self, entry: LedgerEntry) -> Result[Document]:
        """Append *entry* to the ledger document, creating it on first use."""
        ledger_name = self._config.receipts.ledger_name
        try:
            ledger = self._documents.find_by_name(ledger_name, kind="ledger")
            if ledger is None:
                header = (
                    f"{ledger_name}\n"
                    "Automatic transaction logging for audit purposes\n"
                    f"{_RULE}\n"
                )
                ledger = self._documents.create(
                    ledger_name,
                    header,
                    owner_id=self._config.receipts.owner_id,
                    kind="ledger",
                )
            self._documents.update_body(ledger.id, ledger.body + entry.format())
        except (sqlite3.Error, OSError, KeyError) as e:
            logger.error("Error logging transaction: %s", e)
            return Err(PersistenceError(ledger_name, str(e)))
        logger.debug("Transaction logged for %s at %s", entry.character, entry.shop)
        return Ok(self._documents.get(ledger.id))


def _as_currency(amount: Amount) -> Currency:
    if isinstance(amount, Currency):
        return amount
    if amount is None or isinstance(amount, int):
        return from_base_units(amount or 0)
    return Currency.from_dict(amount)
