# lotbook/core.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from . import codec
from .models import (
    DuplicateKey,
    ExpiryDate,
    InsufficientStock,
    LotNotFound,
    LotSnapshot,
    NoInventory,
    OrderNotFound,
)
from .tree import AVLIndex, LotNode

logger = logging.getLogger(__name__)

LotRow = Tuple[ExpiryDate, str, int]


class Inventory:
    """
    Perishable lots with first-expiry-first-out dispatch:
      - lots received by expiry date (unique key)
      - dispatch always reserves from the nearest-expiry lot
      - cancel by exact (destination, quantity) match restores stock
      - remove a whole lot together with its pending orders
    Every operation either completes or raises before mutating anything.
    Results are LotSnapshot values, never live tree nodes.
    """

    def __init__(self, check_invariants: bool = False) -> None:
        self._check: bool = check_invariants
        self._index: AVLIndex = AVLIndex(check_invariants=check_invariants)

    @property
    def index(self) -> AVLIndex:
        return self._index

    def _require(self, date: ExpiryDate) -> LotNode:
        node = self._index.search(date)
        if node is None:
            logger.warning("lot %s not found", date)
            raise LotNotFound(date)
        return node

    def insert_lot(self, date: ExpiryDate, product: str, stock: int) -> LotSnapshot:
        if not self._index.insert(date, product, stock):
            logger.warning("duplicate lot %s rejected", date)
            raise DuplicateKey(date)
        logger.info("received lot %s: %s x%d", date, product, stock)
        return self._index.search(date).snapshot()

    def receive_many(self, rows: Iterable[LotRow]) -> Tuple[List[LotSnapshot], List[ExpiryDate]]:
        inserted: List[LotSnapshot] = []
        skipped: List[ExpiryDate] = []
        for date, product, stock in rows:
            try:
                inserted.append(self.insert_lot(date, product, stock))
            except DuplicateKey:
                skipped.append(date)
        return inserted, skipped

    def dispatch(self, destination: str, quantity: int) -> LotSnapshot:
        lot = self._index.minimum()
        if lot is None:
            logger.warning("dispatch to %s rejected: no inventory", destination)
            raise NoInventory()
        try:
            lot.reserve(destination, quantity)
        except (InsufficientStock, ValueError):
            logger.warning("dispatch of %s to %s rejected by lot %s", quantity, destination, lot.expiry_date)
            raise
        logger.info("queued %d units for %s on lot %s (stock now %d)",
                    quantity, destination, lot.expiry_date, lot.available_stock)
        if self._check:
            self._index.assert_invariants()
        return lot.snapshot()

    def cancel_order(self, date: ExpiryDate, destination: str, quantity: int) -> LotSnapshot:
        lot = self._require(date)
        if not lot.cancel_order(destination, quantity):
            logger.warning("no order to %s for %s units in lot %s", destination, quantity, date)
            raise OrderNotFound(date, destination, quantity)
        logger.info("cancelled %d units for %s on lot %s (stock now %d)",
                    quantity, destination, date, lot.available_stock)
        return lot.snapshot()

    def remove_lot(self, date: ExpiryDate) -> LotSnapshot:
        gone = self._require(date).snapshot()
        self._index.delete(date)
        logger.info("removed lot %s with %d pending orders", date, gone.order_count)
        return gone

    def lot(self, date: ExpiryDate) -> LotSnapshot:
        return self._require(date).snapshot()

    def nearest(self) -> Optional[LotSnapshot]:
        lot = self._index.minimum()
        return lot.snapshot() if lot is not None else None

    def report(self) -> List[LotSnapshot]:
        out: List[LotSnapshot] = []
        self._index.traverse_ascending(lambda n: out.append(n.snapshot()))
        return out

    def save(self, path: Union[str, Path]) -> Path:
        return codec.save(self._index, path)

    def load(self, path: Union[str, Path]) -> int:
        # decode fully first; the current tree is only replaced on success
        fresh = codec.load(path, check_invariants=self._check)
        self._index.clear()
        self._index = fresh
        return len(fresh)

    def clear(self) -> None:
        self._index.clear()

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, date: object) -> bool:
        return date in self._index
