# tests/test_cart.py
import json
import uuid
from decimal import Decimal

import pytest

from shopflow.schemas.cart import (
    CART_SNAPSHOT_VERSION,
    CartSnapshotError,
    ProductSnapshot,
    migrate_snapshot,
)
from shopflow.services.cart_service import CartState


def _product(price: float = 10.0, stock: int = 5, name: str = "Mug") -> ProductSnapshot:
    return ProductSnapshot(id=uuid.uuid4(), name=name, price=price, stock=stock)


def test_add_merges_quantities_for_same_product():
    mug = _product(stock=10)
    cart = CartState()

    cart.add(mug, 2)
    cart.add(mug, 3)

    assert len(cart.entries) == 1
    assert cart.entries[0].quantity == 5


def test_add_clamps_to_known_stock():
    mug = _product(stock=3)
    cart = CartState()

    cart.add(mug, 2)
    cart.add(mug, 5)

    assert cart.entries[0].quantity == 3


def test_add_out_of_stock_product_leaves_cart_empty():
    cart = CartState()

    cart.add(_product(stock=0), 1)

    assert cart.entries == []


def test_add_rejects_non_positive_quantity():
    with pytest.raises(ValueError):
        CartState().add(_product(), 0)


def test_set_quantity_clamps_and_removes():
    mug = _product(stock=4)
    cart = CartState()
    cart.add(mug, 1)

    assert cart.set_quantity(mug.id, 9) is True
    assert cart.entries[0].quantity == 4

    assert cart.set_quantity(mug.id, 0) is True
    assert cart.entries == []


def test_set_quantity_unknown_product_reports_missing():
    assert CartState().set_quantity(uuid.uuid4(), 1) is False


def test_remove_and_clear():
    mug, plate = _product(), _product(name="Plate")
    cart = CartState()
    cart.add(mug)
    cart.add(plate)

    assert cart.remove(mug.id) is True
    assert cart.remove(mug.id) is False
    assert [e.product.id for e in cart.entries] == [plate.id]

    cart.clear()
    assert cart.entries == []


def test_item_count_and_total_are_rounded():
    cart = CartState()
    cart.add(_product(price=19.99, stock=10), 3)
    cart.add(_product(price=0.01, stock=10), 1)

    assert cart.item_count == 4
    assert cart.total == Decimal("59.98")


def test_snapshot_then_restore_keeps_entries():
    mug = _product(stock=10)
    cart = CartState()
    cart.add(mug, 2)

    restored = CartState.from_snapshot(cart.snapshot())

    assert restored.snapshot().model_dump() == cart.snapshot().model_dump()
    assert restored.snapshot().version == CART_SNAPSHOT_VERSION


# ---- snapshot versions ----


def _entry(product_id: str, quantity: int = 1, stock: int = 5) -> dict:
    return {
        "product": {"id": product_id, "name": "Mug", "price": 10.0, "stock": stock},
        "quantity": quantity,
    }


def test_v1_list_snapshot_is_upgraded():
    pid = str(uuid.uuid4())

    snapshot = migrate_snapshot([_entry(pid, 2)])

    assert snapshot.version == CART_SNAPSHOT_VERSION
    assert str(snapshot.items[0].product.id) == pid
    assert snapshot.items[0].quantity == 2


def test_v2_snapshot_from_json_string():
    pid = str(uuid.uuid4())
    raw = json.dumps({"version": 2, "items": [_entry(pid)]})

    snapshot = migrate_snapshot(raw)

    assert len(snapshot.items) == 1


def test_restore_merges_duplicate_entries_from_old_snapshot():
    pid = str(uuid.uuid4())
    snapshot = migrate_snapshot([_entry(pid, 2, stock=3), _entry(pid, 2, stock=3)])

    cart = CartState.from_snapshot(snapshot)

    assert len(cart.entries) == 1
    assert cart.entries[0].quantity == 3


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        42,
        {"version": 3, "items": []},
        {"items": []},
        [{"product": {"id": "x"}, "quantity": 1}],
        {"version": 2, "items": [{"product": {"id": str(uuid.uuid4()), "name": "Mug",
                                              "price": 1.0, "stock": 1}, "quantity": 0}]},
    ],
)
def test_unreadable_snapshot_is_reported(raw):
    with pytest.raises(CartSnapshotError):
        migrate_snapshot(raw)
