from datetime import timedelta

from marketplace.domain.models import Order, utcnow

from conftest import auth_headers


def test_new_orders_counts_recent_pending(client, owner, place_order):
    place_order()
    resp = client.get("/api/restaurant/orders/new", headers=auth_headers(owner))
    assert resp.status_code == 200
    assert resp.json() == {"has_new_orders": True, "count": 1}
    assert "no-store" in resp.headers["Cache-Control"]


def test_new_orders_ignores_old_and_confirmed_orders(client, db, owner, place_order):
    old_id = place_order()
    confirmed_id = place_order()
    db.expire_all()
    db.get(Order, old_id).created_at = utcnow() - timedelta(minutes=5)
    db.commit()
    client.post(f"/api/restaurant/orders/{confirmed_id}/confirm", headers=auth_headers(owner))

    resp = client.get("/api/restaurant/orders/new", headers=auth_headers(owner))
    assert resp.json() == {"has_new_orders": False, "count": 0}


def test_check_new_returns_orders_after_timestamp(client, owner, customer, restaurant, place_order):
    since = (utcnow() - timedelta(seconds=10)).isoformat() + "Z"
    order_id = place_order()

    resp = client.get(
        "/api/restaurant/orders/check-new",
        params={"restaurant_id": restaurant.id, "since": since},
        headers=auth_headers(owner),
    )
    assert resp.status_code == 200
    assert "no-store" in resp.headers["Cache-Control"]
    body = resp.json()
    assert body["has_new_orders"] is True
    assert body["count"] == 1
    assert body["new_orders"][0]["id"] == order_id
    assert body["new_orders"][0]["customer_name"] == customer.name


def test_check_new_with_future_timestamp_is_empty(client, owner, restaurant, place_order):
    place_order()
    since = (utcnow() + timedelta(minutes=1)).isoformat()
    body = client.get(
        "/api/restaurant/orders/check-new",
        params={"restaurant_id": restaurant.id, "since": since},
        headers=auth_headers(owner),
    ).json()
    assert body == {"has_new_orders": False, "count": 0, "new_orders": []}


def test_check_new_requires_parameters(client, owner, restaurant):
    resp = client.get("/api/restaurant/orders/check-new", headers=auth_headers(owner))
    assert resp.status_code == 400

    resp = client.get(
        "/api/restaurant/orders/check-new",
        params={"restaurant_id": restaurant.id, "since": "yesterday"},
        headers=auth_headers(owner),
    )
    assert resp.status_code == 400


def test_check_new_for_someone_elses_restaurant(client, other_owner, other_restaurant, restaurant):
    resp = client.get(
        "/api/restaurant/orders/check-new",
        params={"restaurant_id": restaurant.id, "since": utcnow().isoformat()},
        headers=auth_headers(other_owner),
    )
    assert resp.status_code == 403


def test_polling_is_for_restaurant_accounts_only(client, customer, restaurant):
    assert client.get("/api/restaurant/orders/new", headers=auth_headers(customer)).status_code == 403
    assert client.get("/api/restaurant/orders/new").status_code == 401
