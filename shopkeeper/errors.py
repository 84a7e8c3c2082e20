"""Result type and the engine's error hierarchy.

Public engine operations never raise for expected failures. They return
``Ok(value)`` or ``Err(error)`` where ``error`` is a :class:`ShopError`
subclass whose message is fit to show a user. ``Ok`` is truthy and ``Err``
is falsy, so ``if not manager.remove_item(...)`` reads naturally.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful result containing a value."""

    value: T

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Err:
    """Failed result containing a ShopError."""

    error: "ShopError"

    def __bool__(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return str(self.error)


Result = Union[Ok[T], Err]


def unwrap(result: Result[T]) -> T:
    """Return the Ok value, or raise the wrapped error."""
    if isinstance(result, Ok):
        return result.value
    raise result.error


class ShopError(RuntimeError):
    """Base error for engine operations. Use a specific subclass."""


class ItemNotFound(ShopError):
    def __init__(self, item_id: str, where: str = "shop") -> None:
        self.item_id = item_id
        self.where = where
        super().__init__(f"Item '{item_id}' not found in {where}")


class InsufficientStock(ShopError):
    """Requested quantity exceeds what is available.

    Attributes:
        requested: Cumulative quantity that would be staged
        available: Quantity actually available
    """

    def __init__(self, name: str, requested: int, available: int) -> None:
        self.name = name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Not enough {name}: requested {requested}, only {available} available"
        )


class BasketsLocked(ShopError):
    def __init__(self) -> None:
        super().__init__("Cannot modify baskets while merged. Unmerge first.")


class CannotMerge(ShopError):
    def __init__(self, reason: str = "Need items in both buy and sell baskets to merge.") -> None:
        super().__init__(reason)


class NotMerged(ShopError):
    def __init__(self) -> None:
        super().__init__("Baskets are not merged.")


class ItemNotInBasket(ShopError):
    def __init__(self, basket: str, index: int) -> None:
        self.basket = basket
        self.index = index
        super().__init__(f"No item at position {index} in your {basket} basket")


class EmptyBasket(ShopError):
    def __init__(self) -> None:
        super().__init__("Your baskets are empty. Nothing to settle.")


class ShopNotConfigured(ShopError):
    def __init__(self, shop_name: str = "") -> None:
        label = f"'{shop_name}' " if shop_name else ""
        super().__init__(f"Shop {label}is not properly configured (no document id)")


class NoActiveShop(ShopError):
    def __init__(self) -> None:
        super().__init__("No active shop selected")


class NoSellSource(ShopError):
    def __init__(self) -> None:
        super().__init__(
            "No character selected for selling. Begin a sell session first."
        )


class InvalidQuantity(ShopError):
    def __init__(self, quantity: int) -> None:
        self.quantity = quantity
        super().__init__(f"Invalid quantity: {quantity}")


class EmptyCatalog(ShopError):
    def __init__(self) -> None:
        super().__init__("No items found in the item catalog")


class LookupFailed(ShopError):
    """A catalog or inventory lookup raised instead of returning items."""

    def __init__(self, source: str, detail: str) -> None:
        self.source = source
        self.detail = detail
        super().__init__(f"Could not read {source}: {detail}")


class PersistenceError(ShopError):
    """The document or state store rejected a write.

    Attributes:
        target: Name of the document or state record being written
        detail: Underlying error message
    """

    def __init__(self, target: str, detail: str) -> None:
        self.target = target
        self.detail = detail
        super().__init__(f"Could not save {target}: {detail}")
