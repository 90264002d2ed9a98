from decimal import Decimal

from marketplace.domain.models import Banner, SubscriptionPlan, SubscriptionStatus, UserRole

from conftest import products_of


def test_only_visible_restaurants_are_listed(client, make_user, make_restaurant, restaurant):
    hidden = {
        "unapproved": dict(is_approved=False),
        "suspended": dict(is_active=False),
        "expired": dict(subscription_status=SubscriptionStatus.EXPIRED.value),
    }
    for slug, overrides in hidden.items():
        owner = make_user(f"{slug}@example.com", UserRole.RESTAURANT)
        make_restaurant(owner, slug, **overrides)

    slugs = [r["slug"] for r in client.get("/api/restaurants").json()]
    assert slugs == [restaurant.slug]

    for slug in hidden:
        assert client.get(f"/api/restaurants/{slug}").status_code == 404
        assert client.get(f"/api/restaurants/{slug}/reviews").status_code == 404


def test_restaurant_detail_lists_available_products(client, db, restaurant):
    products_of(db, restaurant)["Calzone"].is_available = False
    db.commit()

    body = client.get(f"/api/restaurants/{restaurant.slug}").json()
    assert [p["name"] for p in body["products"]] == ["Margherita"]
    assert [m["name"] for m in body["payment_methods"]] == ["Cash"]


def test_list_filters_and_sorting(client, db, restaurant, other_restaurant):
    other_restaurant.rating = 4.8
    db.commit()

    by_rating = [r["slug"] for r in client.get("/api/restaurants?sort=rating").json()]
    assert by_rating == [other_restaurant.slug, restaurant.slug]

    found = client.get("/api/restaurants", params={"q": "burger"}).json()
    assert [r["slug"] for r in found] == [other_restaurant.slug]

    in_category = client.get("/api/restaurants", params={"category": "pizza"}).json()
    assert len(in_category) == 2

    assert client.get("/api/restaurants?sort=cheapest").status_code == 400


def test_categories_report_visible_counts(client, restaurant, other_restaurant):
    categories = client.get("/api/categories").json()
    assert categories[0]["slug"] == "pizza"
    assert categories[0]["restaurant_count"] == 2

    detail = client.get("/api/categories/pizza").json()
    assert len(detail["restaurants"]) == 2
    assert client.get("/api/categories/sushi").status_code == 404


def test_search_matches_restaurants_and_products(client, restaurant):
    body = client.get("/api/search", params={"q": "calz"}).json()
    assert body["restaurants"] == []
    assert [p["name"] for p in body["products"]] == ["Calzone"]

    body = client.get("/api/search", params={"q": "napoli"}).json()
    assert [r["slug"] for r in body["restaurants"]] == [restaurant.slug]

    assert client.get("/api/search").json() == {"restaurants": [], "products": []}


def test_public_banners_and_plans(client, db, plan):
    db.add(Banner(image="/img/a.png", title="Promo", location="HOME", active=True))
    db.add(Banner(image="/img/b.png", title="Old", location="HOME", active=False))
    db.add(SubscriptionPlan(
        name="Retired", price=Decimal("10.00"), interval="MONTHLY", features=["None"], is_active=False
    ))
    db.commit()

    assert [b["title"] for b in client.get("/api/banners").json()] == ["Promo"]
    assert [p["name"] for p in client.get("/api/plans").json()] == ["Basic"]
