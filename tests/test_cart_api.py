# tests/test_cart_api.py
import uuid

from conftest import API, bearer
from shopflow.models.cart import CartSnapshotRecord

CART = f"{API}/cart"


def _add(client, profile, product, quantity=1):
    return client.post(
        f"{CART}/items",
        json={"product_id": str(product.id), "quantity": quantity},
        headers=bearer(profile),
    )


def test_new_cart_is_empty(client, user):
    resp = client.get(CART, headers=bearer(user))

    assert resp.status_code == 200
    assert resp.json() == {"version": 2, "items": [], "item_count": 0, "total": 0.0}


def test_cart_requires_authentication(client):
    assert client.get(CART).status_code == 401


def test_add_item_persists_and_clamps(client, user, make_product):
    p1 = make_product(name="Lamp", price="100.00", stock=3)

    _add(client, user, p1, 2)
    resp = _add(client, user, p1, 5)

    assert resp.status_code == 200
    data = resp.json()
    assert data["item_count"] == 3
    assert data["total"] == 300.0
    assert data["items"][0]["product"]["name"] == "Lamp"

    again = client.get(CART, headers=bearer(user)).json()
    assert again == data


def test_add_unknown_product_is_not_found(client, user):
    resp = client.post(
        f"{CART}/items",
        json={"product_id": str(uuid.uuid4())},
        headers=bearer(user),
    )

    assert resp.status_code == 404


def test_update_and_remove_items(client, user, make_product):
    p1 = make_product(stock=10)
    p2 = make_product(name="Cable", price="5.00", stock=10)
    _add(client, user, p1)
    _add(client, user, p2)

    resp = client.patch(
        f"{CART}/items/{p1.id}", json={"quantity": 4}, headers=bearer(user)
    )
    assert resp.json()["item_count"] == 5

    resp = client.patch(
        f"{CART}/items/{p2.id}", json={"quantity": 0}, headers=bearer(user)
    )
    assert [i["product"]["id"] for i in resp.json()["items"]] == [str(p1.id)]

    resp = client.delete(f"{CART}/items/{p1.id}", headers=bearer(user))
    assert resp.json()["items"] == []


def test_update_missing_entry_is_not_found(client, user):
    resp = client.patch(
        f"{CART}/items/{uuid.uuid4()}", json={"quantity": 1}, headers=bearer(user)
    )

    assert resp.status_code == 404
    assert resp.json()["detail"] == "Item not in cart"


def test_clear_cart(client, session, user, make_product):
    _add(client, user, make_product())

    resp = client.delete(CART, headers=bearer(user))

    assert resp.status_code == 200
    assert resp.json()["items"] == []
    session.expire_all()
    assert session.get(CartSnapshotRecord, user.id) is None


def test_carts_are_private(client, user, other_user, make_product):
    _add(client, user, make_product())

    resp = client.get(CART, headers=bearer(other_user))

    assert resp.json()["items"] == []


def test_restore_accepts_v1_list(client, user):
    pid = str(uuid.uuid4())
    v1 = [
        {
            "product": {"id": pid, "name": "Mug", "price": 12.5, "stock": 4},
            "quantity": 2,
        }
    ]

    resp = client.put(CART, json=v1, headers=bearer(user))

    assert resp.status_code == 200
    assert resp.json()["version"] == 2
    assert resp.json()["total"] == 25.0


def test_restore_last_write_wins(client, user, make_product):
    _add(client, user, make_product())
    pid = str(uuid.uuid4())
    snapshot = {
        "version": 2,
        "items": [
            {"product": {"id": pid, "name": "Mug", "price": 1.0, "stock": 9}, "quantity": 1}
        ],
    }

    client.put(CART, json=snapshot, headers=bearer(user))
    resp = client.get(CART, headers=bearer(user))

    assert [i["product"]["id"] for i in resp.json()["items"]] == [pid]


def test_restore_rejects_unknown_version(client, user):
    resp = client.put(CART, json={"version": 9, "items": []}, headers=bearer(user))

    assert resp.status_code == 400
    assert "version" in resp.json()["detail"]


def test_unreadable_stored_cart_is_surfaced(client, session, user):
    session.add(CartSnapshotRecord(user_id=user.id, version=2, payload={"version": 7}))
    session.commit()

    resp = client.get(CART, headers=bearer(user))

    assert resp.status_code == 409
