import pytest

from marketplace.domain.models import SiteSettings, UserRole

from conftest import auth_headers

REASON = "Documents could not be verified, please resubmit"


@pytest.fixture
def pending(make_user, make_restaurant):
    owner = make_user("pending@example.com", UserRole.RESTAURANT)
    return make_restaurant(owner, "pending-place", is_active=False, is_approved=False, approved_at=None)


def test_admin_routes_require_admin(client, customer, owner):
    assert client.get("/api/admin/restaurants").status_code == 401
    assert client.get("/api/admin/restaurants", headers=auth_headers(customer)).status_code == 403
    assert client.get("/api/admin/restaurants", headers=auth_headers(owner)).status_code == 403


def test_approve_and_reject_restaurant(client, admin, restaurant, pending):
    headers = auth_headers(admin)
    listed = client.get("/api/admin/restaurants?status=pending", headers=headers).json()
    assert [r["slug"] for r in listed] == ["pending-place"]

    short = client.post(f"/api/admin/restaurants/{pending.id}/reject", json={"rejection_reason": "no"}, headers=headers)
    assert short.status_code == 400

    rejected = client.post(
        f"/api/admin/restaurants/{pending.id}/reject", json={"rejection_reason": REASON}, headers=headers
    ).json()
    assert rejected["rejection_reason"] == REASON
    assert rejected["rejected_at"] is not None
    assert [r["id"] for r in client.get("/api/admin/restaurants?status=rejected", headers=headers).json()] == [pending.id]

    approved = client.post(f"/api/admin/restaurants/{pending.id}/approve", headers=headers).json()
    assert approved["is_approved"] is True
    assert approved["is_active"] is True
    assert approved["rejected_at"] is None
    assert approved["rejection_reason"] is None
    assert approved["approved_at"] is not None

    assert client.get("/api/admin/restaurants?status=nonsense", headers=headers).status_code == 400


def test_suspend_hides_restaurant(client, admin, restaurant):
    headers = auth_headers(admin)
    suspended = client.post(f"/api/admin/restaurants/{restaurant.id}/suspend", headers=headers).json()
    assert suspended["is_active"] is False
    assert client.get(f"/api/restaurants/{restaurant.slug}").status_code == 404

    client.post(f"/api/admin/restaurants/{restaurant.id}/activate", headers=headers)
    assert client.get(f"/api/restaurants/{restaurant.slug}").status_code == 200


def test_category_management(client, admin, restaurant, category):
    headers = auth_headers(admin)
    first = client.post("/api/admin/categories", json={"name": "Açaí Bowls"}, headers=headers).json()
    second = client.post("/api/admin/categories", json={"name": "Acai Bowls"}, headers=headers).json()
    assert first["slug"] == "acai-bowls"
    assert second["slug"] == "acai-bowls-1"

    renamed = client.put(f"/api/admin/categories/{second['id']}", json={"name": "Smoothies"}, headers=headers).json()
    assert renamed["slug"] == "smoothies"

    toggled = client.post(f"/api/admin/categories/{second['id']}/toggle", headers=headers).json()
    assert toggled["is_active"] is False

    in_use = client.delete(f"/api/admin/categories/{category.id}", headers=headers)
    assert in_use.status_code == 400
    assert client.delete(f"/api/admin/categories/{first['id']}", headers=headers).status_code == 204


def test_payment_method_management(client, admin, restaurant, payment_method):
    headers = auth_headers(admin)
    assert client.post("/api/admin/payment-methods", json={"name": "Cash"}, headers=headers).status_code == 409

    voucher = client.post("/api/admin/payment-methods", json={"name": "Voucher"}, headers=headers).json()
    renamed = client.put(
        f"/api/admin/payment-methods/{voucher['id']}", json={"name": "Cash"}, headers=headers
    )
    assert renamed.status_code == 409

    assert client.delete(f"/api/admin/payment-methods/{payment_method.id}", headers=headers).status_code == 400
    assert client.delete(f"/api/admin/payment-methods/{voucher['id']}", headers=headers).status_code == 204


def test_plan_management(client, admin, plan):
    headers = auth_headers(admin)
    payload = {"name": "Premium", "price": "299.90", "interval": "QUARTERLY", "features": ["Priority support"]}
    created = client.post("/api/admin/plans", json=payload, headers=headers)
    assert created.status_code == 201
    assert created.json()["interval"] == "QUARTERLY"

    bad = client.post("/api/admin/plans", json={**payload, "features": ["ok"]}, headers=headers)
    assert bad.status_code == 422

    toggled = client.post(f"/api/admin/plans/{plan.id}/toggle", headers=headers).json()
    assert toggled["is_active"] is False
    assert [p["name"] for p in client.get("/api/plans").json()] == ["Premium"]


def test_change_role(client, admin, customer):
    headers = auth_headers(admin)
    resp = client.put(f"/api/admin/users/{customer.id}/role", json={"role": "ADMIN"}, headers=headers)
    assert resp.json()["role"] == "ADMIN"

    demote_self = client.put(f"/api/admin/users/{admin.id}/role", json={"role": "USER"}, headers=headers)
    assert demote_self.status_code == 400


def test_site_settings_mask_secret_keys(client, db, admin):
    headers = auth_headers(admin)
    defaults = client.get("/api/admin/settings", headers=headers).json()
    assert defaults["site_name"] == "Marketplace"

    payload = {
        "site_name": "FoodHub",
        "primary_color": "#112233",
        "secondary_color": "#FFF",
        "footer_email": "hello@foodhub.example.com",
        "stripe_test_secret_key": "sk_test_supersecret1234",
        "is_stripe_sandbox": True,
    }
    saved = client.put("/api/admin/settings", json=payload, headers=headers).json()
    assert saved["stripe_test_secret_key"] == "********1234"

    # Saving the form again with the masked value keeps the real key
    client.put("/api/admin/settings", json={**payload, "stripe_test_secret_key": saved["stripe_test_secret_key"]},
               headers=headers)
    db.expire_all()
    assert db.query(SiteSettings).one().stripe_test_secret_key == "sk_test_supersecret1234"

    bad_color = client.put("/api/admin/settings", json={**payload, "primary_color": "red"}, headers=headers)
    assert bad_color.status_code == 422


def test_banner_management(client, admin):
    headers = auth_headers(admin)
    banner = client.post("/api/admin/banners", json={"image": "/img/promo.png", "title": "Promo"}, headers=headers)
    assert banner.status_code == 201
    banner_id = banner.json()["id"]
    assert [b["id"] for b in client.get("/api/banners").json()] == [banner_id]

    client.post(f"/api/admin/banners/{banner_id}/toggle", headers=headers)
    assert client.get("/api/banners").json() == []
    assert client.delete(f"/api/admin/banners/{banner_id}", headers=headers).status_code == 204


def test_admin_order_listing(client, admin, place_order):
    place_order()
    headers = auth_headers(admin)
    assert len(client.get("/api/admin/orders", headers=headers).json()) == 1
    assert client.get("/api/admin/orders?status=CONFIRMED", headers=headers).json() == []
