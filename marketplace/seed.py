"""Load demo data: plans, categories, payment methods, users and restaurants.

Run with `python -m marketplace.seed`. Rows that already exist (matched by
slug, name or email) are left alone, so the script can be re-run.
"""
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from marketplace.auth_local import hash_password
from marketplace.domain.models import (
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
from marketplace.infrastructure.db import SessionLocal, init_models

DEMO_PASSWORD = "123456"

PLANS = [
    {
        "name": "Basic",
        "description": "To get started",
        "price": Decimal("99.90"),
        "interval": PlanInterval.MONTHLY.value,
        "features": ["Up to 50 products", "Up to 100 orders/month", "Email support"],
        "max_products": 50,
        "max_orders": 100,
    },
    {
        "name": "Professional",
        "description": "For established restaurants",
        "price": Decimal("199.90"),
        "interval": PlanInterval.MONTHLY.value,
        "features": ["Unlimited products", "Unlimited orders", "Priority support", "Featured listing"],
    },
]

CATEGORIES = [
    ("Pizza", "pizza"),
    ("Burgers", "burgers"),
    ("Japanese", "japanese"),
    ("Italian", "italian"),
    ("Brazilian", "brazilian"),
    ("Healthy", "healthy"),
    ("Desserts", "desserts"),
    ("Coffee", "coffee"),
]

PAYMENT_METHODS = ["Cash", "Credit card", "Debit card", "PIX"]

USERS = [
    ("admin@marketplace.local", "Administrator", UserRole.ADMIN),
    ("customer@example.com", "John Silva", UserRole.USER),
    ("pizza@example.com", "Mark Baker", UserRole.RESTAURANT),
    ("burger@example.com", "Luke Grill", UserRole.RESTAURANT),
    ("sushi@example.com", "Ana Takahashi", UserRole.RESTAURANT),
]

RESTAURANTS = [
    {
        "owner": "pizza@example.com",
        "category": "pizza",
        "plan": "Basic",
        "name": "Bella Napoli Pizzeria",
        "slug": "bella-napoli-pizzeria",
        "description": "Hand-stretched dough, wood-fired oven",
        "phone": "(11) 98765-4321",
        "min_order_value": Decimal("30"),
        "delivery_fee": Decimal("8.90"),
        "estimated_delivery_time": 45,
        "opens_at": "18:00",
        "closes_at": "23:30",
        "products": [
            ("Margherita", "Pizzas", Decimal("45.90"), None),
            ("Pepperoni", "Pizzas", Decimal("52.90"), Decimal("47.90")),
            ("Soda 2L", "Drinks", Decimal("12.00"), None),
        ],
    },
    {
        "owner": "burger@example.com",
        "category": "burgers",
        "plan": "Professional",
        "name": "Burger House",
        "slug": "burger-house",
        "description": "Smash burgers and fries",
        "phone": "(11) 98765-1234",
        "min_order_value": Decimal("25"),
        "delivery_fee": Decimal("7.50"),
        "estimated_delivery_time": 35,
        "opens_at": "11:00",
        "closes_at": "23:00",
        "products": [
            ("Classic Burger", "Burgers", Decimal("32.90"), None),
            ("Double Cheddar", "Burgers", Decimal("39.90"), None),
            ("Fries", "Sides", Decimal("14.90"), Decimal("11.90")),
        ],
    },
    {
        "owner": "sushi@example.com",
        "category": "japanese",
        "plan": "Professional",
        "name": "Sushi Premium",
        "slug": "sushi-premium",
        "description": "Traditional Japanese cuisine",
        "phone": "(11) 98765-5678",
        "min_order_value": Decimal("40"),
        "delivery_fee": Decimal("12.00"),
        "estimated_delivery_time": 50,
        "opens_at": "11:30",
        "closes_at": "22:30",
        "products": [
            ("Salmon combo (20 pcs)", "Combos", Decimal("89.90"), None),
            ("Hot roll", "Rolls", Decimal("29.90"), None),
        ],
    },
]


def seed(db: Session) -> None:
    plans = {}
    for data in PLANS:
        plan = db.query(SubscriptionPlan).filter(SubscriptionPlan.name == data["name"]).first()
        if not plan:
            plan = SubscriptionPlan(is_active=True, **data)
            db.add(plan)
        plans[data["name"]] = plan
    print("Plans ready")

    categories = {}
    for name, slug in CATEGORIES:
        category = db.query(Category).filter(Category.slug == slug).first()
        if not category:
            category = Category(name=name, slug=slug, is_active=True)
            db.add(category)
        categories[slug] = category
    print("Categories ready")

    methods = []
    for name in PAYMENT_METHODS:
        method = db.query(PaymentMethod).filter(PaymentMethod.name == name).first()
        if not method:
            method = PaymentMethod(name=name, is_active=True)
            db.add(method)
        methods.append(method)
    db.flush()
    print("Payment methods ready")

    password_hash = hash_password(DEMO_PASSWORD)
    users = {}
    for email, name, role in USERS:
        user = db.query(User).filter(User.email == email).first()
        if not user:
            user = User(email=email, name=name, role=role.value, password_hash=password_hash)
            db.add(user)
        users[email] = user
    db.flush()
    print("Users ready")

    expires_at = utcnow() + timedelta(days=30)
    for data in RESTAURANTS:
        if db.query(Restaurant).filter(Restaurant.slug == data["slug"]).first():
            continue
        owner = users[data["owner"]]
        restaurant = Restaurant(
            owner_id=owner.id,
            category_id=categories[data["category"]].id,
            name=data["name"],
            slug=data["slug"],
            description=data["description"],
            email=owner.email,
            phone=data["phone"],
            min_order_value=data["min_order_value"],
            delivery_fee=data["delivery_fee"],
            estimated_delivery_time=data["estimated_delivery_time"],
            opens_at=data["opens_at"],
            closes_at=data["closes_at"],
            accepts_delivery=True,
            accepts_pickup=True,
            is_active=True,
            is_approved=True,
            approved_at=utcnow(),
            subscription_status=SubscriptionStatus.ACTIVE.value,
            subscription_plan_id=plans[data["plan"]].id,
            subscription_expires_at=expires_at,
        )
        db.add(restaurant)
        db.flush()
        for method in methods:
            db.add(RestaurantPaymentMethod(restaurant_id=restaurant.id, payment_method_id=method.id))
        for name, section, price, discount in data["products"]:
            db.add(Product(
                restaurant_id=restaurant.id,
                name=name,
                category=section,
                price=price,
                discount_price=discount,
                is_available=True,
            ))
        print(f"Restaurant {restaurant.slug} created")

    db.commit()


def main():
    init_models()
    db = SessionLocal()
    try:
        seed(db)
    finally:
        db.close()
    print(f"Seed complete. Demo accounts use the password '{DEMO_PASSWORD}'.")


if __name__ == "__main__":
    main()
