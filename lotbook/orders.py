# lotbook/orders.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

from .models import Order


@dataclass(slots=True)
class _Cell:
    order: Order
    next: Optional["_Cell"] = None


class OrderQueue:
    """
    FIFO of pending orders owned by exactly one lot.
    Singly linked: head owns the chain, tail is a plain reference for O(1) append.
    """

    __slots__ = ("_head", "_tail")

    def __init__(self) -> None:
        self._head: Optional[_Cell] = None
        self._tail: Optional[_Cell] = None

    def enqueue(self, destination: str, quantity: int) -> Order:
        return self.push(Order(destination, quantity))

    def push(self, order: Order) -> Order:
        cell = _Cell(order)
        if self._tail is None:
            self._head = self._tail = cell
        else:
            self._tail.next = cell
            self._tail = cell
        return cell.order

    def cancel(self, destination: str, quantity: int) -> bool:
        prev: Optional[_Cell] = None
        cur = self._head
        while cur is not None:
            o = cur.order
            if o.destination == destination and o.quantity == quantity:
                if prev is None:
                    self._head = cur.next
                else:
                    prev.next = cur.next
                if self._tail is cur:
                    self._tail = prev
                cur.next = None
                return True
            prev = cur
            cur = cur.next
        return False

    def count(self) -> int:
        n = 0
        cur = self._head
        while cur is not None:
            n += 1
            cur = cur.next
        return n

    def clear(self) -> None:
        cur = self._head
        self._head = self._tail = None
        while cur is not None:
            nxt = cur.next
            cur.next = None
            cur = nxt

    def clone(self) -> "OrderQueue":
        copy = OrderQueue()
        for o in self:
            copy.enqueue(o.destination, o.quantity)
        return copy

    def peek(self) -> Optional[Order]:
        return self._head.order if self._head is not None else None

    def __iter__(self) -> Iterator[Order]:
        cur = self._head
        while cur is not None:
            yield cur.order
            cur = cur.next

    def __len__(self) -> int:
        return self.count()

    def __bool__(self) -> bool:
        return self._head is not None

    def __repr__(self) -> str:
        return f"OrderQueue({list(self)!r})"
