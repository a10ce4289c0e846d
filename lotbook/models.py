# lotbook/models.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

NAME_WIDTH = 64  # bytes per name field on disk, including the NUL terminator
MAX_NAME_BYTES = NAME_WIDTH - 1
ABSENT = -1  # expiry date that marks a missing child on disk
INT32_MAX = 2**31 - 1  # keys, stock and quantities are int32 on disk

ExpiryDate = int


def check_name(value: str, what: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{what} must be a non-empty string")
    if "\x00" in value:
        raise ValueError(f"{what} must not contain NUL characters")
    if len(value.encode("utf-8")) > MAX_NAME_BYTES:
        raise ValueError(f"{what} must fit in {MAX_NAME_BYTES} bytes")
    return value


def check_key(expiry_date: ExpiryDate) -> ExpiryDate:
    if not isinstance(expiry_date, int) or isinstance(expiry_date, bool) or not 0 < expiry_date <= INT32_MAX:
        raise ValueError("expiry_date must be a positive YYYYMMDD integer")
    return expiry_date


@dataclass(frozen=True, slots=True)
class Order:
    """
    Pending dispatch request queued against one lot.
    - destination: where the goods go (bounded name)
    - quantity: units reserved from the lot (positive int)
    """
    destination: str
    quantity: int

    def __post_init__(self) -> None:
        check_name(self.destination, "destination")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or not 0 < self.quantity <= INT32_MAX:
            raise ValueError(f"quantity must be between 1 and {INT32_MAX}")


@dataclass(frozen=True, slots=True)
class LotSnapshot:
    """
    Point-in-time value copy of a lot, handed to callers instead of live nodes.
    available_stock is already net of every pending order.
    """
    expiry_date: ExpiryDate
    product_name: str
    available_stock: int
    orders: Tuple[Order, ...] = ()

    @property
    def order_count(self) -> int:
        return len(self.orders)

    @property
    def reserved(self) -> int:
        return sum(o.quantity for o in self.orders)


class LotBookError(Exception):
    """Base class for recoverable inventory errors."""


class DuplicateKey(LotBookError):
    def __init__(self, expiry_date: ExpiryDate) -> None:
        super().__init__(f"a lot with expiry date {expiry_date} already exists")
        self.expiry_date = expiry_date


class NotFound(LotBookError):
    pass


class LotNotFound(NotFound):
    def __init__(self, expiry_date: ExpiryDate) -> None:
        super().__init__(f"lot not found: {expiry_date}")
        self.expiry_date = expiry_date


class OrderNotFound(NotFound):
    def __init__(self, expiry_date: ExpiryDate, destination: str, quantity: int) -> None:
        super().__init__(f"no pending order to {destination!r} for {quantity} units in lot {expiry_date}")
        self.expiry_date = expiry_date
        self.destination = destination
        self.quantity = quantity


class NoInventory(NotFound):
    def __init__(self) -> None:
        super().__init__("no inventory")


class InsufficientStock(LotBookError):
    def __init__(self, expiry_date: ExpiryDate, requested: int, available: int) -> None:
        super().__init__(f"insufficient stock in lot {expiry_date}: requested={requested} available={available}")
        self.expiry_date = expiry_date
        self.requested = requested
        self.available = available


class CorruptPersistence(LotBookError):
    pass
