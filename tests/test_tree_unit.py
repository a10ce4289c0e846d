# tests/test_tree_unit.py
from __future__ import annotations

import pytest

from lotbook.models import InsufficientStock, Order
from lotbook.tree import AVLIndex


def _index(*keys, check=True):
    idx = AVLIndex(check_invariants=check)
    for k in keys:
        assert idx.insert(k, f"p{k}", 100)
    return idx


def _shape(idx):
    return [n.expiry_date for n in idx.preorder()]


@pytest.mark.parametrize(
    "keys",
    [
        (10, 20, 30),  # right-right
        (30, 20, 10),  # left-left
        (30, 10, 20),  # left-right
        (10, 30, 20),  # right-left
    ],
)
def test_insert_rotations_promote_middle_key(keys):
    idx = _index(*keys)
    assert _shape(idx) == [20, 10, 30]
    assert idx.root.height == 2
    assert idx.root.left.height == 1
    assert idx.root.right.height == 1


def test_ascending_inserts_stay_balanced():
    idx = _index(*range(20250101, 20250132))
    assert idx.keys() == list(range(20250101, 20250132))
    assert idx.height == 5
    assert len(idx) == 31
    idx.assert_invariants()


def test_duplicate_insert_leaves_lot_untouched():
    idx = _index(20251201)
    lot = idx.search(20251201)
    lot.reserve("Guapi", 10)
    assert not idx.insert(20251201, "Other", 999)
    lot = idx.search(20251201)
    assert lot.product_name == "p20251201"
    assert lot.available_stock == 90
    assert list(lot.orders) == [Order("Guapi", 10)]
    assert len(idx) == 1


@pytest.mark.parametrize("key,product,stock", [
    (0, "Milk", 1),
    (-1, "Milk", 1),
    (2**31, "Milk", 1),
    (20250101, "", 1),
    (20250101, "Milk", -1),
    (20250101, "Milk", 2**31),
])
def test_insert_validates_arguments(key, product, stock):
    idx = AVLIndex()
    with pytest.raises(ValueError):
        idx.insert(key, product, stock)
    assert not idx


def test_search_minimum_maximum():
    idx = _index(50, 20, 80, 10, 30)
    assert idx.search(30).expiry_date == 30
    assert idx.search(31) is None
    assert idx.minimum().expiry_date == 10
    assert idx.maximum().expiry_date == 80
    assert idx.minimum(idx.search(80)).expiry_date == 80
    assert AVLIndex().minimum() is None


def test_traversals():
    idx = _index(20, 10, 30)
    seen = []
    idx.traverse_ascending(lambda n: seen.append(n.expiry_date))
    assert seen == [10, 20, 30]
    assert [n.expiry_date for n in idx.postorder()] == [10, 30, 20]
    assert 20 in idx
    assert 25 not in idx


def test_delete_leaf():
    idx = _index(20, 10, 30)
    assert idx.delete(10)
    assert idx.search(10) is None
    assert idx.keys() == [20, 30]


def test_delete_missing_key_is_noop():
    idx = _index(20, 10, 30)
    assert not idx.delete(15)
    assert _shape(idx) == [20, 10, 30]


def test_delete_one_child_moves_child_queue_up():
    idx = _index(20, 10, 30, 35)
    idx.search(35).reserve("Tumaco", 5)
    assert idx.delete(30)
    moved = idx.search(35)
    assert moved is idx.root.right
    assert list(moved.orders) == [Order("Tumaco", 5)]
    assert moved.available_stock == 95


def test_delete_two_children_migrates_successor_by_value():
    idx = _index(20, 10, 30, 25, 35)
    idx.search(20).reserve("Guapi", 7)
    succ = idx.search(25)
    succ.reserve("Juanchaco", 3)
    succ.reserve("Tumaco", 4)
    assert idx.delete(20)
    root = idx.root
    assert root.expiry_date == 25
    assert root.product_name == "p25"
    assert root.available_stock == 93
    assert list(root.orders) == [Order("Juanchaco", 3), Order("Tumaco", 4)]
    assert idx.keys() == [10, 25, 30, 35]
    # every order appears exactly once across the tree
    everywhere = [o for n in idx for o in n.orders]
    assert everywhere == [Order("Juanchaco", 3), Order("Tumaco", 4)]
    # the removed successor's own queue was released
    assert succ.orders.count() == 0


def test_delete_rebalances_left_left():
    idx = _index(20, 10, 30, 5)
    assert idx.delete(30)
    assert _shape(idx) == [10, 5, 20]


def test_delete_rebalances_left_right():
    idx = _index(20, 10, 30, 15)
    assert idx.delete(30)
    assert _shape(idx) == [15, 10, 20]


def test_delete_rebalances_right_right_and_right_left():
    idx = _index(20, 10, 30, 40)
    assert idx.delete(10)
    assert _shape(idx) == [30, 20, 40]
    idx = _index(20, 10, 30, 25)
    assert idx.delete(10)
    assert _shape(idx) == [25, 20, 30]


def test_delete_root_until_empty():
    idx = _index(*range(1, 16))
    for k in range(1, 16):
        assert idx.delete(idx.root.expiry_date)
    assert not idx
    assert idx.height == 0


def test_reserve_rejects_oversized_quantity():
    idx = _index(20251115)
    lot = idx.search(20251115)
    with pytest.raises(InsufficientStock) as ei:
        lot.reserve("Guapi", 101)
    assert ei.value.available == 100
    assert lot.available_stock == 100
    assert lot.orders.count() == 0


def test_clear_releases_every_queue():
    idx = _index(20, 10, 30)
    leaf = idx.search(10)
    leaf.reserve("Guapi", 1)
    idx.clear()
    assert not idx
    assert leaf.orders.count() == 0


def test_assert_invariants_detects_stale_height():
    idx = _index(20, 10, 30, check=False)
    idx.root.height = 7
    with pytest.raises(AssertionError):
        idx.assert_invariants()
