from inventory_api.services import product_service

API = "/api/v1/products"


def new_product(category_id, **overrides):
    body = {
        "sku": "BOLT-8",
        "name": "Bolt M8",
        "category_id": category_id,
        "price": 0.5,
        "cost_price": 0.2,
        "quantity": 40,
        "min_stock_level": 15,
    }
    body.update(overrides)
    return body


def test_create_journals_initial_stock(client, manager_headers, category):
    resp = client.post(API, json=new_product(category.id), headers=manager_headers)
    assert resp.status_code == 201
    product = resp.json()
    assert product["quantity"] == 40
    assert product["stock_status"] == "in_stock"
    assert product["category"]["name"] == "Hardware"

    logs = client.get(f"{API}/{product['id']}/inventory-logs", headers=manager_headers).json()
    assert [(log["change"], log["reason"]) for log in logs] == [(40, "inbound")]


def test_create_uses_default_min_stock_level(client, manager_headers, category):
    body = new_product(category.id)
    del body["min_stock_level"]
    product = client.post(API, json=body, headers=manager_headers).json()
    assert product["min_stock_level"] == 10


def test_duplicate_sku_rejected(client, manager_headers, category):
    client.post(API, json=new_product(category.id), headers=manager_headers)
    resp = client.post(API, json=new_product(category.id), headers=manager_headers)
    assert resp.status_code == 400
    assert resp.json()["sku"] == "BOLT-8"


def test_duplicate_sku_race_rejected(client, manager_headers, category, monkeypatch):
    # Both requests pass the lookup, as when they race
    monkeypatch.setattr(product_service, "get_product_by_sku", lambda db, sku: None)
    assert client.post(API, json=new_product(category.id), headers=manager_headers).status_code == 201
    resp = client.post(API, json=new_product(category.id), headers=manager_headers)
    assert resp.status_code == 400
    assert resp.json()["sku"] == "BOLT-8"
    assert len(client.get(API, headers=manager_headers).json()) == 1


def test_unknown_category_rejected(client, manager_headers):
    resp = client.post(API, json=new_product("nope"), headers=manager_headers)
    assert resp.status_code == 404


def test_negative_quantity_rejected(client, manager_headers, category):
    resp = client.post(API, json=new_product(category.id, quantity=-1), headers=manager_headers)
    assert resp.status_code == 422


def test_list_and_search(client, manager_headers, widget, make_product):
    make_product("BOLT-8", quantity=50, name="Bolt M8")

    names = [p["name"] for p in client.get(API, params={"search": "bolt"}, headers=manager_headers).json()]
    assert names == ["Bolt M8"]

    low = client.get(API, params={"low_stock": True}, headers=manager_headers).json()
    assert [p["sku"] for p in low] == ["WID-1"]
    assert low[0]["stock_status"] == "low_stock"


def test_update_cannot_change_quantity(client, manager_headers, widget):
    resp = client.put(
        f"{API}/{widget.id}", json={"name": "Widget XL", "quantity": 999}, headers=manager_headers
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "Widget XL"
    assert resp.json()["quantity"] == 10


def test_adjust_goes_through_ledger(client, manager_headers, widget):
    resp = client.post(
        f"{API}/{widget.id}/adjust", json={"quantity": -3, "note": "Damaged"}, headers=manager_headers
    )
    assert resp.status_code == 200
    assert resp.json()["quantity"] == 7

    logs = client.get(f"{API}/{widget.id}/inventory-logs", headers=manager_headers).json()
    assert logs[0]["change"] == -3
    assert logs[0]["reason"] == "adjustment"
    assert logs[0]["balance_after"] == 7


def test_adjust_below_zero_rejected(client, manager_headers, widget):
    resp = client.post(f"{API}/{widget.id}/adjust", json={"quantity": -11}, headers=manager_headers)
    assert resp.status_code == 400
    assert resp.json()["available"] == 10


def test_adjust_zero_rejected(client, manager_headers, widget):
    resp = client.post(f"{API}/{widget.id}/adjust", json={"quantity": 0}, headers=manager_headers)
    assert resp.status_code == 400


def test_adjust_into_low_stock_alerts_managers(client, manager_headers, make_product, outbox):
    product = make_product("LOW-1", quantity=12, min_stock_level=5)
    client.post(f"{API}/{product.id}/adjust", json={"quantity": -8}, headers=manager_headers)
    assert [m["To"] for m in outbox] == ["manager@example.test"]
    assert "LOW-1" in outbox[0].get_body(preferencelist=("html",)).get_content()


def test_adjust_survives_failed_alert_lookup(client, manager_headers, make_product, monkeypatch):
    product = make_product("LOW-1", quantity=12, min_stock_level=5)

    def broken(db):
        raise RuntimeError("directory unavailable")

    monkeypatch.setattr(product_service.auth_service, "low_stock_recipients", broken)
    resp = client.post(f"{API}/{product.id}/adjust", json={"quantity": -8}, headers=manager_headers)
    assert resp.status_code == 200
    assert resp.json()["quantity"] == 4


def test_stats_and_low_stock(client, manager_headers, widget, make_product):
    make_product("EMPTY-1", quantity=0, price=3)
    make_product("FULL-1", quantity=100, price=2)

    stats = client.get(f"{API}/stats/overview", headers=manager_headers).json()
    assert stats == {
        "total_products": 3,
        "low_stock_products": 2,
        "out_of_stock": 1,
        "total_inventory_value": 299.9,
    }
    low = client.get(f"{API}/low-stock", headers=manager_headers).json()
    assert sorted(p["sku"] for p in low) == ["EMPTY-1", "WID-1"]


def test_delete_and_get_missing(client, manager_headers, widget):
    url = f"{API}/{widget.id}"
    assert client.delete(url, headers=manager_headers).status_code == 200
    assert client.get(url, headers=manager_headers).status_code == 404
    assert client.delete(url, headers=manager_headers).status_code == 404


def test_staff_can_read_but_not_write(client, staff_headers, widget, category):
    assert client.get(API, headers=staff_headers).status_code == 200
    assert client.post(API, json=new_product(category.id), headers=staff_headers).status_code == 403
