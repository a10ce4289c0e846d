# lotbook/tree.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Tuple

from .models import INT32_MAX, ExpiryDate, InsufficientStock, LotSnapshot, Order, check_key, check_name
from .orders import OrderQueue

logger = logging.getLogger(__name__)


def check_stock(stock: int) -> int:
    if isinstance(stock, bool) or not isinstance(stock, int) or not 0 <= stock <= INT32_MAX:
        raise ValueError(f"stock must be an integer between 0 and {INT32_MAX}")
    return stock


@dataclass(slots=True, eq=False)
class LotNode:
    """One expiry-dated lot. Owns its subtrees and its order queue."""
    expiry_date: ExpiryDate
    product_name: str
    available_stock: int
    orders: OrderQueue = field(default_factory=OrderQueue)
    left: Optional["LotNode"] = None
    right: Optional["LotNode"] = None
    height: int = 1

    def reserve(self, destination: str, quantity: int) -> Order:
        order = Order(destination, quantity)
        if quantity > self.available_stock:
            raise InsufficientStock(self.expiry_date, quantity, self.available_stock)
        self.orders.push(order)
        self.available_stock -= quantity
        return order

    def cancel_order(self, destination: str, quantity: int) -> bool:
        if not self.orders.cancel(destination, quantity):
            return False
        self.available_stock += quantity
        return True

    def take_over(self, donor: "LotNode") -> None:
        # Adopt the donor's identity; its queue is copied by value, the donor keeps its own cells.
        cloned = donor.orders.clone()
        self.orders.clear()
        self.expiry_date = donor.expiry_date
        self.product_name = donor.product_name
        self.available_stock = donor.available_stock
        self.orders = cloned

    def snapshot(self) -> LotSnapshot:
        return LotSnapshot(
            expiry_date=self.expiry_date,
            product_name=self.product_name,
            available_stock=self.available_stock,
            orders=tuple(self.orders),
        )


def _height(n: Optional[LotNode]) -> int:
    return n.height if n is not None else 0


def _update(n: LotNode) -> None:
    n.height = 1 + max(_height(n.left), _height(n.right))


def _balance(n: Optional[LotNode]) -> int:
    if n is None:
        return 0
    return _height(n.left) - _height(n.right)


def _rotate_right(y: LotNode) -> LotNode:
    x = y.left
    y.left = x.right
    x.right = y
    # y now hangs below x, so its height must be settled first
    _update(y)
    _update(x)
    logger.debug("rotate right at %d, new subtree root %d", y.expiry_date, x.expiry_date)
    return x


def _rotate_left(x: LotNode) -> LotNode:
    y = x.right
    x.right = y.left
    y.left = x
    _update(x)
    _update(y)
    logger.debug("rotate left at %d, new subtree root %d", x.expiry_date, y.expiry_date)
    return y


def _rebalance_after_insert(node: LotNode, key: ExpiryDate) -> LotNode:
    _update(node)
    b = _balance(node)
    if b > 1 and key < node.left.expiry_date:
        return _rotate_right(node)
    if b < -1 and key > node.right.expiry_date:
        return _rotate_left(node)
    if b > 1 and key > node.left.expiry_date:
        node.left = _rotate_left(node.left)
        return _rotate_right(node)
    if b < -1 and key < node.right.expiry_date:
        node.right = _rotate_right(node.right)
        return _rotate_left(node)
    return node


def _rebalance_after_delete(node: LotNode) -> LotNode:
    _update(node)
    b = _balance(node)
    if b > 1:
        if _balance(node.left) < 0:
            node.left = _rotate_left(node.left)
        return _rotate_right(node)
    if b < -1:
        if _balance(node.right) > 0:
            node.right = _rotate_right(node.right)
        return _rotate_left(node)
    return node


def _leftmost(n: Optional[LotNode]) -> Optional[LotNode]:
    while n is not None and n.left is not None:
        n = n.left
    return n


def _rightmost(n: Optional[LotNode]) -> Optional[LotNode]:
    while n is not None and n.right is not None:
        n = n.right
    return n


class AVLIndex:
    """
    AVL tree of lots keyed by expiry date (YYYYMMDD int).
      - insert rejects duplicate dates and leaves the tree untouched
      - delete releases the removed lot's queue before any restructuring
      - in-order iteration runs from nearest to farthest expiry
    Invariants (checked via assert_invariants on demand):
      - strictly ascending keys in-order
      - height == 1 + max(child heights), |balance| <= 1 at every node
      - available_stock >= 0 on every lot
    """

    def __init__(self, check_invariants: bool = False) -> None:
        self._root: Optional[LotNode] = None
        self._check: bool = check_invariants

    @classmethod
    def from_root(cls, root: Optional[LotNode], check_invariants: bool = False) -> "AVLIndex":
        """Wrap an already balanced, height-annotated subtree (used by the codec)."""
        index = cls(check_invariants=check_invariants)
        index._root = root
        if check_invariants:
            index.assert_invariants()
        return index

    @property
    def root(self) -> Optional[LotNode]:
        return self._root

    @property
    def height(self) -> int:
        return _height(self._root)

    def search(self, key: ExpiryDate) -> Optional[LotNode]:
        n = self._root
        while n is not None:
            if key == n.expiry_date:
                return n
            n = n.left if key < n.expiry_date else n.right
        return None

    def minimum(self, subtree: Optional[LotNode] = None) -> Optional[LotNode]:
        return _leftmost(self._root if subtree is None else subtree)

    def maximum(self, subtree: Optional[LotNode] = None) -> Optional[LotNode]:
        return _rightmost(self._root if subtree is None else subtree)

    def insert(self, key: ExpiryDate, product: str, stock: int) -> bool:
        check_key(key)
        check_name(product, "product_name")
        check_stock(stock)
        fresh = LotNode(key, product, stock)
        self._root, inserted = self._insert(self._root, fresh)
        if self._check and inserted:
            self.assert_invariants()
        return inserted

    def _insert(self, node: Optional[LotNode], fresh: LotNode) -> Tuple[LotNode, bool]:
        if node is None:
            return fresh, True
        key = fresh.expiry_date
        if key < node.expiry_date:
            node.left, inserted = self._insert(node.left, fresh)
        elif key > node.expiry_date:
            node.right, inserted = self._insert(node.right, fresh)
        else:
            return node, False
        if not inserted:
            return node, False
        return _rebalance_after_insert(node, key), True

    def delete(self, key: ExpiryDate) -> bool:
        self._root, removed = self._delete(self._root, key)
        if self._check and removed:
            self.assert_invariants()
        return removed

    def _delete(self, node: Optional[LotNode], key: ExpiryDate) -> Tuple[Optional[LotNode], bool]:
        if node is None:
            return None, False
        if key < node.expiry_date:
            node.left, removed = self._delete(node.left, key)
        elif key > node.expiry_date:
            node.right, removed = self._delete(node.right, key)
        else:
            removed = True
            node.orders.clear()
            if node.left is None or node.right is None:
                child = node.left if node.left is not None else node.right
                node.left = node.right = None
                if child is None:
                    return None, True
                # the child moves up whole, queue included
                node = child
            else:
                successor = _leftmost(node.right)
                node.take_over(successor)
                node.right, _ = self._delete(node.right, successor.expiry_date)
        if not removed:
            return node, False
        return _rebalance_after_delete(node), True

    def clear(self) -> None:
        for n in list(self.postorder()):
            n.orders.clear()
            n.left = n.right = None
        self._root = None

    def traverse_ascending(self, visit: Callable[[LotNode], None]) -> None:
        for n in self:
            visit(n)

    def __iter__(self) -> Iterator[LotNode]:
        stack: List[LotNode] = []
        n = self._root
        while stack or n is not None:
            while n is not None:
                stack.append(n)
                n = n.left
            n = stack.pop()
            yield n
            n = n.right

    def preorder(self) -> Iterator[LotNode]:
        def walk(n: Optional[LotNode]) -> Iterator[LotNode]:
            if n is None:
                return
            yield n
            yield from walk(n.left)
            yield from walk(n.right)
        return walk(self._root)

    def postorder(self) -> Iterator[LotNode]:
        def walk(n: Optional[LotNode]) -> Iterator[LotNode]:
            if n is None:
                return
            yield from walk(n.left)
            yield from walk(n.right)
            yield n
        return walk(self._root)

    def keys(self) -> List[ExpiryDate]:
        return [n.expiry_date for n in self]

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, int) and self.search(key) is not None

    def __bool__(self) -> bool:
        return self._root is not None

    def assert_invariants(self) -> None:
        def check(n: Optional[LotNode], lo: Optional[int], hi: Optional[int]) -> int:
            if n is None:
                return 0
            k = n.expiry_date
            assert lo is None or k > lo, f"Order violated: {k} not above {lo}"
            assert hi is None or k < hi, f"Order violated: {k} not below {hi}"
            assert n.available_stock >= 0, f"Negative stock at {k}"
            hl = check(n.left, lo, k)
            hr = check(n.right, k, hi)
            assert n.height == 1 + max(hl, hr), f"Stale height at {k}: {n.height} != {1 + max(hl, hr)}"
            assert abs(hl - hr) <= 1, f"Unbalanced at {k}: left={hl} right={hr}"
            return n.height
        check(self._root, None, None)
