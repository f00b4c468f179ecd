"""HTTP surface for transactions: stock moves and error mapping."""
import pytest

from conftest import add_stock, quantity


def _body(*lines, **overrides):
    body = {
        "date": "2024-05-01",
        "patient_type": "Rawat Jalan",
        "payment_method": "UMUM",
        "medical_record_number": "RM-001",
        "items": [{"item_id": i, "item_name": "Paracetamol", "quantity": q, "price": 300} for i, q in lines],
    }
    body.update(overrides)
    return body


def test_create_transaction_takes_stock(client, store):
    item = add_stock(store, quantity=5)

    resp = client.post("/transactions", json=_body((item, 3)))

    assert resp.status_code == 201
    record = resp.json()
    assert record["total_price"] == 900
    assert quantity(store, item) == 2
    assert client.get(f"/transactions/{record['id']}").json()["medical_record_number"] == "RM-001"


def test_insufficient_stock_is_409(client, store):
    item = add_stock(store, quantity=2)

    resp = client.post("/transactions", json=_body((item, 3)))

    assert resp.status_code == 409
    assert resp.json()["code"] == "INSUFFICIENT_STOCK"
    assert quantity(store, item) == 2
    assert client.get("/transactions").json() == []


def test_unknown_item_is_404(client, store):
    resp = client.post("/transactions", json=_body(("ghost", 1)))
    assert resp.status_code == 404
    assert resp.json()["code"] == "ITEM_NOT_FOUND"


@pytest.mark.parametrize("bad", [
    {"items": []},
    {"medical_record_number": "  "},
    {"payment_method": "CASH"},
])
def test_invalid_transaction_is_422(client, store, bad):
    item = add_stock(store, quantity=5)
    assert client.post("/transactions", json=_body((item, 1), **bad)).status_code == 422


def test_zero_quantity_line_is_422(client, store):
    item = add_stock(store, quantity=5)
    assert client.post("/transactions", json=_body((item, 0))).status_code == 422


def test_explicit_total_price_is_kept(client, store):
    item = add_stock(store, quantity=5)
    record = client.post("/transactions", json=_body((item, 1), total_price=250)).json()
    assert record["total_price"] == 250


def test_update_and_delete_round_trip(client, store):
    item = add_stock(store, quantity=10)
    original = _body((item, 2))
    txn_id = client.post("/transactions", json=original).json()["id"]
    assert quantity(store, item) == 8

    resp = client.put(f"/transactions/{txn_id}", json={"data": _body((item, 4)), "original": original})
    assert resp.status_code == 200
    assert resp.json()["items"][0]["quantity"] == 4
    assert quantity(store, item) == 6

    snapshot = _body((item, 4))
    resp = client.request("DELETE", f"/transactions/{txn_id}", json=snapshot)
    assert resp.status_code == 200
    assert quantity(store, item) == 10
    assert client.get(f"/transactions/{txn_id}").status_code == 404


def test_list_is_newest_first(client, store):
    item = add_stock(store, quantity=10)
    client.post("/transactions", json=_body((item, 1), date="2024-05-01"))
    client.post("/transactions", json=_body((item, 1), date="2024-06-01"))

    dates = [t["date"] for t in client.get("/transactions").json()]
    assert dates == ["2024-06-01", "2024-05-01"]


def test_repeated_delete_returns_stock_once(client, store):
    item = add_stock(store, quantity=10)
    snapshot = _body((item, 4))
    txn_id = client.post("/transactions", json=snapshot).json()["id"]

    assert client.request("DELETE", f"/transactions/{txn_id}", json=snapshot).status_code == 200
    assert client.request("DELETE", f"/transactions/{txn_id}", json=snapshot).status_code == 200

    assert quantity(store, item) == 10


def test_update_of_deleted_transaction_is_404(client, store):
    item = add_stock(store, quantity=10)
    original = _body((item, 4))
    txn_id = client.post("/transactions", json=original).json()["id"]
    client.request("DELETE", f"/transactions/{txn_id}", json=original)

    resp = client.put(f"/transactions/{txn_id}", json={"data": _body((item, 1)), "original": original})

    assert resp.status_code == 404
    assert resp.json()["code"] == "DOCUMENT_NOT_FOUND"
    assert quantity(store, item) == 10
    assert client.get(f"/transactions/{txn_id}").status_code == 404
