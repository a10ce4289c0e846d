# lotbook/__init__.py
"""
Lot Book: perishable inventory indexed by expiry date.

Export the primary types and entry points for convenience.
"""
from .models import (
    CorruptPersistence,
    DuplicateKey,
    InsufficientStock,
    LotBookError,
    LotNotFound,
    LotSnapshot,
    NoInventory,
    NotFound,
    Order,
    OrderNotFound,
)
from .orders import OrderQueue
from .tree import AVLIndex, LotNode
from .core import Inventory

__all__ = [
    "Order",
    "LotSnapshot",
    "OrderQueue",
    "LotNode",
    "AVLIndex",
    "Inventory",
    "LotBookError",
    "DuplicateKey",
    "NotFound",
    "LotNotFound",
    "OrderNotFound",
    "NoInventory",
    "InsufficientStock",
    "CorruptPersistence",
]

__version__ = "0.1.0"
