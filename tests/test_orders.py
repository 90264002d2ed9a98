import logging
import re

from marketplace.application.order_service import OrderService
from marketplace.domain.models import Order, OrderItem

from conftest import auth_headers, products_of


def _payload(restaurant, items, payment_method, address=None, delivery_type="DELIVERY"):
    return {
        "restaurant_id": restaurant.id,
        "items": items,
        "delivery_type": delivery_type,
        "address_id": address.id if address else None,
        "payment_method_id": payment_method.id,
        "notes": "Ring twice",
    }


def test_create_order_prices_lines_from_current_catalog(client, db, customer, restaurant, payment_method, address):
    products = products_of(db, restaurant)
    items = [
        {"product_id": products["Margherita"].id, "quantity": 2},
        {"product_id": products["Calzone"].id, "quantity": 1, "notes": "No onions"},
    ]
    resp = client.post(
        "/api/orders",
        json=_payload(restaurant, items, payment_method, address),
        headers=auth_headers(customer),
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["success"] is True
    assert re.match(r"^ORD-\d{6}-\d{4}$", body["order_number"])

    order = client.get(f"/api/orders/{body['order_number']}", headers=auth_headers(customer)).json()
    assert order["status"] == "PENDING"
    assert order["payment_status"] == "PENDING"
    # 2 x 20.00 + 1 x 15.00 (discounted) + 5.00 delivery
    assert order["total_amount"] == 55.0
    assert order["delivery_fee"] == 5.0
    assert order["discount"] == 0.0
    assert order["final_amount"] == 60.0
    assert order["delivery_address"] == "Rua das Flores 42 Apt 3 - Centro, Sao Paulo - SP 01000-000"

    lines = {item["product_name_snapshot"]: item for item in order["items"]}
    assert lines["Margherita"]["unit_price"] == 20.0
    assert lines["Margherita"]["total_price"] == 40.0
    assert lines["Calzone"]["unit_price"] == 15.0
    assert lines["Calzone"]["notes"] == "No onions"


def test_order_keeps_price_snapshot_after_catalog_change(client, db, customer, restaurant, payment_method, address):
    product = products_of(db, restaurant)["Margherita"]
    items = [{"product_id": product.id, "quantity": 1}]
    number = client.post(
        "/api/orders", json=_payload(restaurant, items, payment_method, address), headers=auth_headers(customer)
    ).json()["order_number"]

    product.price = 99
    product.name = "Renamed"
    db.commit()

    order = client.get(f"/api/orders/{number}", headers=auth_headers(customer)).json()
    assert order["items"][0]["unit_price"] == 20.0
    assert order["items"][0]["product_name_snapshot"] == "Margherita"


def test_pickup_order_has_no_delivery_fee_or_address(client, db, customer, restaurant, payment_method):
    product = products_of(db, restaurant)["Margherita"]
    items = [{"product_id": product.id, "quantity": 3}]
    resp = client.post(
        "/api/orders",
        json=_payload(restaurant, items, payment_method, delivery_type="PICKUP"),
        headers=auth_headers(customer),
    )
    assert resp.status_code == 201
    order = client.get(f"/api/orders/{resp.json()['order_number']}", headers=auth_headers(customer)).json()
    assert order["delivery_fee"] == 0.0
    assert order["final_amount"] == 60.0
    assert order["delivery_address"] is None


def test_non_positive_quantity_counts_as_one(client, db, customer, restaurant, payment_method):
    product = products_of(db, restaurant)["Margherita"]
    items = [{"product_id": product.id, "quantity": 0}]
    resp = client.post(
        "/api/orders",
        json=_payload(restaurant, items, payment_method, delivery_type="PICKUP"),
        headers=auth_headers(customer),
    )
    assert resp.status_code == 201
    order = db.get(Order, resp.json()["order_id"])
    assert order.items[0].quantity == 1
    assert float(order.total_amount) == 20.0


def test_product_from_another_restaurant_rejects_whole_order(
    client, db, customer, restaurant, other_restaurant, payment_method, address
):
    own = products_of(db, restaurant)["Margherita"]
    foreign = products_of(db, other_restaurant)["Margherita"]
    items = [
        {"product_id": own.id, "quantity": 1},
        {"product_id": foreign.id, "quantity": 1},
    ]
    resp = client.post(
        "/api/orders", json=_payload(restaurant, items, payment_method, address), headers=auth_headers(customer)
    )
    assert resp.status_code == 400
    assert "does not belong" in resp.json()["detail"]
    db.expire_all()
    assert db.query(Order).count() == 0
    assert db.query(OrderItem).count() == 0


def test_unavailable_product_is_rejected(client, db, customer, restaurant, payment_method, address):
    product = products_of(db, restaurant)["Calzone"]
    product.is_available = False
    db.commit()
    resp = client.post(
        "/api/orders",
        json=_payload(restaurant, [{"product_id": product.id, "quantity": 1}], payment_method, address),
        headers=auth_headers(customer),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Product unavailable: Calzone"


def test_create_order_validation_errors(client, db, customer, restaurant, payment_method, address):
    product = products_of(db, restaurant)["Margherita"]
    items = [{"product_id": product.id, "quantity": 1}]
    headers = auth_headers(customer)

    empty = _payload(restaurant, [], payment_method, address)
    assert client.post("/api/orders", json=empty, headers=headers).json()["detail"] == "Cart is empty"

    no_address = _payload(restaurant, items, payment_method)
    resp = client.post("/api/orders", json=no_address, headers=headers)
    assert resp.status_code == 400
    assert "address" in resp.json()["detail"]

    no_payment = _payload(restaurant, items, payment_method, address)
    no_payment["payment_method_id"] = None
    resp = client.post("/api/orders", json=no_payment, headers=headers)
    assert resp.status_code == 400

    missing_restaurant = _payload(restaurant, items, payment_method, address)
    missing_restaurant["restaurant_id"] = 9999
    assert client.post("/api/orders", json=missing_restaurant, headers=headers).status_code == 404

    unknown_method = _payload(restaurant, items, payment_method, address)
    unknown_method["payment_method_id"] = 9999
    resp = client.post("/api/orders", json=unknown_method, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Payment method not found"

    db.expire_all()
    assert db.query(Order).count() == 0


def test_address_of_another_user_is_rejected(client, db, make_user, restaurant, payment_method, address):
    stranger = make_user("stranger@example.com")
    product = products_of(db, restaurant)["Margherita"]
    resp = client.post(
        "/api/orders",
        json=_payload(restaurant, [{"product_id": product.id, "quantity": 1}], payment_method, address),
        headers=auth_headers(stranger),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Address not found"


def test_order_requires_authentication(client, restaurant, payment_method):
    resp = client.post("/api/orders", json={"restaurant_id": restaurant.id, "items": [], "delivery_type": "PICKUP"})
    assert resp.status_code == 401


def test_customer_sees_only_own_orders(client, make_user, customer, place_order):
    place_order()
    stranger = make_user("stranger@example.com")

    mine = client.get("/api/orders", headers=auth_headers(customer)).json()
    assert len(mine) == 1
    number = mine[0]["order_number"]

    assert client.get("/api/orders", headers=auth_headers(stranger)).json() == []
    assert client.get(f"/api/orders/{number}", headers=auth_headers(stranger)).status_code == 404


def test_checkout_data_lists_methods_and_addresses(client, customer, restaurant, payment_method, address):
    resp = client.get(f"/api/checkout/data?restaurant_id={restaurant.id}", headers=auth_headers(customer))
    assert resp.status_code == 200
    body = resp.json()
    assert body["restaurant"]["delivery_fee"] == 5.0
    assert [m["name"] for m in body["payment_methods"]] == ["Cash"]
    assert [a["id"] for a in body["addresses"]] == [address.id]

    anonymous = client.get(f"/api/checkout/data?restaurant_id={restaurant.id}").json()
    assert anonymous["addresses"] == []


def test_order_number_collision_is_retried(client, db, monkeypatch, customer, restaurant, payment_method, place_order):
    taken = db.get(Order, place_order()).order_number
    numbers = iter([taken, "ORD-000001-0001"])
    monkeypatch.setattr(OrderService, "_generate_order_number", lambda self: next(numbers))

    product = products_of(db, restaurant)["Margherita"]
    payload = _payload(restaurant, [{"product_id": product.id, "quantity": 1}], payment_method, delivery_type="PICKUP")
    resp = client.post("/api/orders", json=payload, headers=auth_headers(customer))
    assert resp.status_code == 201, resp.text
    assert resp.json()["order_number"] == "ORD-000001-0001"
    assert db.query(Order).count() == 2
    assert db.query(OrderItem).count() == 2


def test_repeated_order_number_collision_is_a_conflict(
    client, db, monkeypatch, customer, restaurant, payment_method, place_order
):
    taken = db.get(Order, place_order()).order_number
    monkeypatch.setattr(OrderService, "_generate_order_number", lambda self: taken)

    product = products_of(db, restaurant)["Margherita"]
    payload = _payload(restaurant, [{"product_id": product.id, "quantity": 1}], payment_method, delivery_type="PICKUP")
    resp = client.post("/api/orders", json=payload, headers=auth_headers(customer))
    assert resp.status_code == 409
    assert db.query(Order).count() == 1
    assert db.query(OrderItem).count() == 1


def test_order_logs_carry_request_user(client, caplog, customer, place_order):
    caplog.set_level(logging.INFO, logger="marketplace")
    place_order()
    created = [r for r in caplog.records if "created for restaurant" in r.getMessage()]
    assert created
    assert created[0].extra_fields["user_id"] == str(customer.id)
    assert created[0].extra_fields["request_id"]
