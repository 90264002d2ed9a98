import hashlib
import hmac
import os
import time
from decimal import Decimal

# Settings are read once at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RUN_MIGRATIONS"] = "false"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ.pop("REDIS_URL", None)

import pytest
from fastapi.testclient import TestClient

from marketplace.auth_local import create_access_token, hash_password
from marketplace.domain.models import (
    Address,
    Base,
    Category,
    PaymentMethod,
    PlanInterval,
    Product,
    Restaurant,
    RestaurantPaymentMethod,
    SubscriptionPlan,
    SubscriptionStatus,
    User,
    UserRole,
    utcnow,
)
from marketplace.infrastructure import cache
from marketplace.infrastructure.db import SessionLocal, engine
from marketplace.main import app

WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]
PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def _reset_state():
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    cache.local_cache.clear()
    yield
    cache.local_cache.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make(email, role=UserRole.USER, name="Test User"):
        user = User(name=name, email=email, role=role.value, password_hash=hash_password(PASSWORD))
        db.add(user)
        db.commit()
        return user
    return _make


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


@pytest.fixture
def customer(make_user):
    return make_user("customer@example.com", name="Carla Customer")


@pytest.fixture
def owner(make_user):
    return make_user("owner@example.com", UserRole.RESTAURANT, name="Otto Owner")


@pytest.fixture
def admin(make_user):
    return make_user("admin@example.com", UserRole.ADMIN, name="Ada Admin")


@pytest.fixture
def plan(db):
    plan = SubscriptionPlan(
        name="Basic",
        price=Decimal("99.90"),
        interval=PlanInterval.MONTHLY.value,
        features=["Up to 50 products"],
        max_products=50,
        is_active=True,
    )
    db.add(plan)
    db.commit()
    return plan


@pytest.fixture
def category(db):
    category = Category(name="Pizza", slug="pizza", is_active=True)
    db.add(category)
    db.commit()
    return category


@pytest.fixture
def payment_method(db):
    method = PaymentMethod(name="Cash", is_active=True)
    db.add(method)
    db.commit()
    return method


@pytest.fixture
def make_restaurant(db, category, plan, payment_method):
    def _make(owner, slug, **overrides):
        values = dict(
            owner_id=owner.id,
            category_id=category.id,
            name=slug.replace("-", " ").title(),
            slug=slug,
            email=owner.email,
            phone="11987654321",
            delivery_fee=Decimal("5.00"),
            min_order_value=Decimal("0"),
            is_active=True,
            is_approved=True,
            approved_at=utcnow(),
            subscription_status=SubscriptionStatus.ACTIVE.value,
            subscription_plan_id=plan.id,
        )
        values.update(overrides)
        restaurant = Restaurant(**values)
        db.add(restaurant)
        db.flush()
        db.add(RestaurantPaymentMethod(restaurant_id=restaurant.id, payment_method_id=payment_method.id))
        db.add(Product(
            restaurant_id=restaurant.id, name="Margherita", category="Pizzas",
            price=Decimal("20.00"), is_available=True,
        ))
        db.add(Product(
            restaurant_id=restaurant.id, name="Calzone", category="Pizzas",
            price=Decimal("18.00"), discount_price=Decimal("15.00"), is_available=True,
        ))
        db.commit()
        return restaurant
    return _make


@pytest.fixture
def restaurant(make_restaurant, owner):
    return make_restaurant(owner, "bella-napoli")


@pytest.fixture
def other_owner(make_user):
    return make_user("rival@example.com", UserRole.RESTAURANT, name="Rita Rival")


@pytest.fixture
def other_restaurant(make_restaurant, other_owner):
    return make_restaurant(other_owner, "burger-house")


def products_of(db, restaurant):
    return {
        p.name: p
        for p in db.query(Product).filter(Product.restaurant_id == restaurant.id)
    }


@pytest.fixture
def address(db, customer):
    address = Address(
        user_id=customer.id,
        street="Rua das Flores",
        number="42",
        complement="Apt 3",
        neighborhood="Centro",
        city="Sao Paulo",
        state="SP",
        zip_code="01000-000",
        is_default=True,
    )
    db.add(address)
    db.commit()
    return address


@pytest.fixture
def place_order(client, db, customer, restaurant, payment_method, address):
    """Place a DELIVERY order for one Margherita and return the created order id."""
    def _place(user=None, delivery_type="DELIVERY"):
        user = user or customer
        product = products_of(db, restaurant)["Margherita"]
        payload = {
            "restaurant_id": restaurant.id,
            "items": [{"product_id": product.id, "quantity": 1}],
            "delivery_type": delivery_type,
            "address_id": address.id if delivery_type == "DELIVERY" else None,
            "payment_method_id": payment_method.id,
        }
        resp = client.post("/api/orders", json=payload, headers=auth_headers(user))
        assert resp.status_code == 201, resp.text
        return resp.json()["order_id"]
    return _place


def stripe_signature(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"
