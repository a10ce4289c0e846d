# lotbook/codec.py
"""
Binary persistence for an AVLIndex.

Layout, little-endian, pre-order:

    int32    expiry_date          (-1 = absent child, nothing else follows)
    char[64] product_name         NUL padded
    int32    available_stock      net of the pending orders below
    int32    order_count
    order_count x (char[64] destination, int32 quantity)
    <left subtree> <right subtree>

An empty inventory is the lone sentinel. Stock on disk is exactly the in-memory
available stock; loading never subtracts the queued quantities a second time.
"""
from __future__ import annotations

import logging
import struct
from pathlib import Path
from typing import Optional, Tuple, Union

from .models import ABSENT, NAME_WIDTH, CorruptPersistence, Order
from .tree import AVLIndex, LotNode

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_KEY = struct.Struct("<i")
_LOT = struct.Struct(f"<{NAME_WIDTH}sii")  # product_name, available_stock, order_count
_ORDER = struct.Struct(f"<{NAME_WIDTH}si")  # destination, quantity

# an AVL tree of 2**31 lots is at most 45 levels deep
MAX_DEPTH = 46


def encode(index: AVLIndex) -> bytes:
    out = bytearray()

    def put(n: Optional[LotNode]) -> None:
        if n is None:
            out.extend(_KEY.pack(ABSENT))
            return
        orders = list(n.orders)
        out.extend(_KEY.pack(n.expiry_date))
        out.extend(_LOT.pack(n.product_name.encode("utf-8"), n.available_stock, len(orders)))
        for o in orders:
            out.extend(_ORDER.pack(o.destination.encode("utf-8"), o.quantity))
        put(n.left)
        put(n.right)

    put(index.root)
    return bytes(out)


class _Reader:
    __slots__ = ("_buf", "_pos")

    def __init__(self, data: bytes) -> None:
        self._buf = memoryview(data)
        self._pos = 0

    @property
    def offset(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return len(self._buf) - self._pos

    def take(self, layout: struct.Struct) -> Tuple:
        if layout.size > self.remaining:
            raise CorruptPersistence(f"truncated record at offset {self._pos}")
        values = layout.unpack_from(self._buf, self._pos)
        self._pos += layout.size
        return values


def _name(raw: bytes, what: str, offset: int) -> str:
    if b"\x00" not in raw:
        raise CorruptPersistence(f"unterminated {what} at offset {offset}")
    text = raw.split(b"\x00", 1)[0]
    try:
        value = text.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise CorruptPersistence(f"{what} at offset {offset} is not valid UTF-8") from exc
    if not value:
        raise CorruptPersistence(f"empty {what} at offset {offset}")
    return value


def _read_lot(r: _Reader, lo: Optional[int], hi: Optional[int], depth: int) -> Optional[LotNode]:
    if depth > MAX_DEPTH:
        raise CorruptPersistence(f"tree deeper than {MAX_DEPTH} levels at offset {r.offset}")
    at = r.offset
    (key,) = r.take(_KEY)
    if key == ABSENT:
        return None
    if key <= 0:
        raise CorruptPersistence(f"invalid expiry date {key} at offset {at}")
    if (lo is not None and key <= lo) or (hi is not None and key >= hi):
        raise CorruptPersistence(f"expiry date {key} out of order at offset {at}")

    raw, stock, count = r.take(_LOT)
    product = _name(raw, "product name", at)
    if stock < 0:
        raise CorruptPersistence(f"negative stock {stock} in lot {key}")
    if count < 0 or count * _ORDER.size > r.remaining:
        raise CorruptPersistence(f"bad order count {count} in lot {key}")

    node = LotNode(key, product, stock)
    for _ in range(count):
        at = r.offset
        raw, qty = r.take(_ORDER)
        dest = _name(raw, "destination", at)
        if qty <= 0:
            raise CorruptPersistence(f"non-positive quantity {qty} at offset {at}")
        node.orders.push(Order(dest, qty))

    node.left = _read_lot(r, lo, key, depth + 1)
    node.right = _read_lot(r, key, hi, depth + 1)
    hl = node.left.height if node.left is not None else 0
    hr = node.right.height if node.right is not None else 0
    if abs(hl - hr) > 1:
        raise CorruptPersistence(f"lot {key} is not AVL balanced (left={hl} right={hr})")
    node.height = 1 + max(hl, hr)
    return node


def decode(data: bytes, check_invariants: bool = False) -> AVLIndex:
    """
    Rebuild an index from encode() output. Any defect raises CorruptPersistence
    and nothing built so far escapes.
    """
    r = _Reader(data)
    root = _read_lot(r, None, None, 0)
    if r.remaining:
        raise CorruptPersistence(f"{r.remaining} trailing bytes after offset {r.offset}")
    return AVLIndex.from_root(root, check_invariants=check_invariants)


def save(index: AVLIndex, path: PathLike) -> Path:
    p = Path(path)
    payload = encode(index)
    # the previous file stays intact until the new one is fully written
    tmp = p.with_name(p.name + ".tmp")
    try:
        tmp.write_bytes(payload)
        tmp.replace(p)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise
    logger.info("saved %d lots to %s (%d bytes)", len(index), p, len(payload))
    return p


def load(path: PathLike, check_invariants: bool = False) -> AVLIndex:
    p = Path(path)
    if not p.exists():
        logger.info("no inventory file at %s, starting empty", p)
        return AVLIndex(check_invariants=check_invariants)
    data = p.read_bytes()
    if not data:
        logger.warning("inventory file %s is empty, starting empty", p)
        return AVLIndex(check_invariants=check_invariants)
    index = decode(data, check_invariants=check_invariants)
    logger.info("loaded %d lots from %s", len(index), p)
    return index
