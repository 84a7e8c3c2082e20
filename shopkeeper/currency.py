"""Multi-denomination currency arithmetic.

Amounts are stored as a :class:`Currency` record and converted through a
single base unit (copper pieces) for every calculation.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, fields
from typing import Union

COPPER_PER: dict[str, int] = {
    "pp": 1000,
    "gp": 100,
    "ep": 50,
    "sp": 10,
    "cp": 1,
}

# Canonical output order; electrum is accepted on input but never produced.
_CANONICAL = ("pp", "gp", "sp", "cp")


@dataclass(frozen=True)
class Currency:
    """A coin purse: five optional integer denomination counts."""

    cp: int = 0
    sp: int = 0
    ep: int = 0
    gp: int = 0
    pp: int = 0

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(
                    f"{f.name} must be an integer, got {value!r}"
                )

    @classmethod
    def from_dict(cls, data: Mapping[str, int] | None) -> Currency:
        """Build from a sparse mapping such as ``{"gp": 5, "sp": 2}``."""
        if not data:
            return cls()
        unknown = set(data) - set(COPPER_PER)
        if unknown:
            raise ValueError(f"unknown denomination(s): {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if v is not None})

    def to_dict(self) -> dict[str, int]:
        """Sparse mapping of non-zero denominations (``{"cp": 0}`` when empty)."""
        result = {
            denom: getattr(self, denom)
            for denom in COPPER_PER
            if getattr(self, denom)
        }
        return result or {"cp": 0}

    @property
    def copper(self) -> int:
        return to_base_units(self)

    def __str__(self) -> str:
        return format_currency(self)


Amount = Union[Currency, Mapping[str, int], int, None]


def to_base_units(amount: Amount) -> int:
    """Total value of *amount* in copper pieces.

    Plain integers are taken to be copper already. Negative counts are not
    rejected here.
    """
    if amount is None:
        return 0
    if isinstance(amount, int) and not isinstance(amount, bool):
        return amount
    if isinstance(amount, Currency):
        return sum(getattr(amount, d) * ratio for d, ratio in COPPER_PER.items())
    return sum((amount.get(d) or 0) * ratio for d, ratio in COPPER_PER.items())


def from_base_units(total: int) -> Currency:
    """Greedy decomposition of *total* copper into pp, gp, sp and cp.

    Negative totals are treated as zero.
    """
    remaining = max(0, int(total))
    counts: dict[str, int] = {}
    for denom in _CANONICAL:
        count, remaining = divmod(remaining, COPPER_PER[denom])
        if count:
            counts[denom] = count
    return Currency(**counts)


def format_currency(amount: Amount) -> str:
    """Render as ``"2pp 3gp 5sp"``; a zero amount renders ``"0 gp"``."""
    normalized = from_base_units(to_base_units(amount))
    parts = [
        f"{getattr(normalized, d)}{d}"
        for d in COPPER_PER
        if getattr(normalized, d)
    ]
    return " ".join(parts) if parts else "0 gp"


_PRICE_RE = re.compile(r"(\d+)\s*(pp|gp|ep|sp|cp)\b", re.IGNORECASE)


def parse_currency(text: str) -> Currency:
    """Parse text such as ``"5gp 2sp"`` or ``"1 pp, 3 cp"``.

    Raises:
        ValueError: If no amount can be read from *text*.
    """
    counts: dict[str, int] = {}
    for amount, denom in _PRICE_RE.findall(text):
        denom = denom.lower()
        counts[denom] = counts.get(denom, 0) + int(amount)
    if not counts:
        raise ValueError(f"could not read a price from {text!r}")
    return Currency(**counts)


def calculate_total(lines: Iterable) -> Currency:
    """Sum ``price * quantity`` over objects exposing those attributes."""
    total = 0
    for line in lines:
        quantity = getattr(line, "quantity", None) or 1
        total += to_base_units(line.price) * quantity
    return from_base_units(total)


def apply_modifier(price: Amount, modifier: float) -> Currency:
    """Scale *price* by *modifier*, rounding to the nearest copper (min 1cp)."""
    return from_base_units(max(1, round(to_base_units(price) * modifier)))


def can_afford(funds: Amount, cost: Amount) -> bool:
    return to_base_units(funds) >= to_base_units(cost)


def subtract_cost(funds: Amount, cost: Amount) -> Currency:
    return from_base_units(max(0, to_base_units(funds) - to_base_units(cost)))


def add_currency(existing: Amount, addition: Amount) -> Currency:
    return from_base_units(to_base_units(existing) + to_base_units(addition))
