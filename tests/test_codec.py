# tests/test_codec.py
from __future__ import annotations

import struct
from pathlib import Path

import pytest

from lotbook import codec
from lotbook.core import Inventory
from lotbook.models import CorruptPersistence, Order
from lotbook.tree import AVLIndex


def _lot(key, product="Milk", stock=10, orders=()):
    out = struct.pack("<i", key)
    out += struct.pack("<64sii", product.encode(), stock, len(orders))
    for dest, qty in orders:
        out += struct.pack("<64si", dest.encode(), qty)
    return out


END = struct.pack("<i", -1)


def _sample() -> AVLIndex:
    idx = AVLIndex(check_invariants=True)
    idx.insert(20251201, "Leche entera", 100)
    idx.insert(20251115, "Queso", 50)
    idx.insert(20251220, "Yogur", 30)
    idx.search(20251115).reserve("Guapi", 20)
    idx.search(20251115).reserve("Tumaco", 5)
    idx.search(20251220).reserve("Timbiqui", 30)
    return idx


def _dump(idx):
    return [(n.expiry_date, n.product_name, n.available_stock, list(n.orders), n.height) for n in idx]


def test_empty_index_is_single_sentinel():
    assert codec.encode(AVLIndex()) == END
    assert not codec.decode(END)


def test_record_layout_for_one_lot():
    idx = AVLIndex()
    idx.insert(20250704, "Pan", 12)
    idx.search(20250704).reserve("Guapi", 2)
    data = codec.encode(idx)
    assert len(data) == 4 + 72 + 68 + 4 + 4
    assert data == _lot(20250704, "Pan", 10, [("Guapi", 2)]) + END + END


def test_round_trip_preserves_structure_stock_and_queues():
    idx = _sample()
    back = codec.decode(codec.encode(idx), check_invariants=True)
    assert _dump(back) == _dump(idx)
    assert [n.expiry_date for n in back.preorder()] == [n.expiry_date for n in idx.preorder()]


def test_loaded_stock_is_not_reduced_twice():
    back = codec.decode(codec.encode(_sample()))
    lot = back.search(20251115)
    assert lot.available_stock == 25
    assert list(lot.orders) == [Order("Guapi", 20), Order("Tumaco", 5)]
    assert back.search(20251220).available_stock == 0


def test_save_and_load_files(tmp_path):
    path = tmp_path / "inventory.dat"
    codec.save(_sample(), path)
    assert _dump(codec.load(path)) == _dump(_sample())

    small = AVLIndex()
    small.insert(20300101, "Arroz", 1)
    codec.save(small, path)
    assert codec.load(path).keys() == [20300101]


def test_missing_or_empty_file_loads_empty(tmp_path):
    assert not codec.load(tmp_path / "nope.dat")
    empty = tmp_path / "empty.dat"
    empty.write_bytes(b"")
    assert not codec.load(empty)


@pytest.mark.parametrize(
    "data",
    [
        b"",
        _lot(20250101)[:-3],
        _lot(20250101) + END,
        _lot(20250101) + END + END + END,
        _lot(20250101, orders=[("Guapi", 1)])[:-10],
        _lot(20250101, stock=-5) + END + END,
        _lot(20250101, orders=[("Guapi", 0)]) + END + END,
        struct.pack("<i", 20250101) + struct.pack("<64sii", b"Milk", 1, -1) + END + END,
        struct.pack("<i", 20250101) + struct.pack("<64sii", b"Milk", 1, 1_000_000) + END + END,
        _lot(20250101, product="") + END + END,
        struct.pack("<i", 20250101) + struct.pack("<64sii", b"\xff\xfe", 1, 0) + END + END,
        struct.pack("<i", 20250101) + struct.pack("<64sii", b"x" * 64, 1, 0) + END + END,
        _lot(0) + END + END,
    ],
    ids=[
        "empty",
        "truncated-header",
        "missing-right-child",
        "trailing-bytes",
        "truncated-order",
        "negative-stock",
        "zero-quantity",
        "negative-count",
        "count-past-end",
        "empty-product",
        "bad-utf8",
        "unterminated-name",
        "zero-key",
    ],
)
def test_corrupt_input_is_rejected(data):
    with pytest.raises(CorruptPersistence):
        codec.decode(data)


def test_out_of_order_keys_are_rejected():
    # right child smaller than its parent
    data = _lot(20250102) + END + _lot(20250101) + END + END
    with pytest.raises(CorruptPersistence):
        codec.decode(data)
    # duplicate key
    data = _lot(20250102) + _lot(20250102) + END + END + END
    with pytest.raises(CorruptPersistence):
        codec.decode(data)


def test_unbalanced_chain_is_rejected():
    chain = _lot(3) + _lot(2) + _lot(1) + END + END + END + END
    with pytest.raises(CorruptPersistence):
        codec.decode(chain)


def test_corrupt_file_keeps_current_inventory(tmp_path):
    path = tmp_path / "bad.dat"
    path.write_bytes(_lot(20250101)[:-1])
    inv = Inventory()
    inv.insert_lot(20251231, "Sal", 5)
    with pytest.raises(CorruptPersistence):
        inv.load(path)
    assert [s.expiry_date for s in inv.report()] == [20251231]


def test_values_outside_int32_are_rejected_on_insert(tmp_path):
    inv = Inventory()
    with pytest.raises(ValueError):
        inv.insert_lot(3_000_000_000, "Milk", 5)
    with pytest.raises(ValueError):
        inv.insert_lot(20250101, "Pan", 2**31)
    assert len(inv) == 0
    inv.insert_lot(20250101, "Pan", 2**31 - 1)
    inv.save(tmp_path / "inventory.dat")
    assert codec.load(tmp_path / "inventory.dat").search(20250101).available_stock == 2**31 - 1


def test_save_replaces_file_without_leaving_temp(tmp_path):
    path = tmp_path / "inventory.dat"
    codec.save(_sample(), path)
    codec.save(AVLIndex(), path)
    assert codec.load(path).keys() == []
    assert sorted(p.name for p in tmp_path.iterdir()) == ["inventory.dat"]


def test_failed_save_keeps_previous_file(tmp_path, monkeypatch):
    path = tmp_path / "inventory.dat"
    codec.save(_sample(), path)
    before = path.read_bytes()

    def fail(self, target):
        raise OSError("disk full")

    monkeypatch.setattr(Path, "replace", fail)
    with pytest.raises(OSError):
        codec.save(AVLIndex(), path)
    assert path.read_bytes() == before
    assert sorted(p.name for p in tmp_path.iterdir()) == ["inventory.dat"]
