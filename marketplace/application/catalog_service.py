from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from marketplace.domain.models import (
    Banner,
    Category,
    PaymentMethod,
    Product,
    Restaurant,
    RestaurantPaymentMethod,
    SubscriptionPlan,
    SubscriptionStatus,
    User,
)
from .address_service import AddressService
from .errors import NotFound, ValidationFailed
from .schemas import RestaurantSummary

SORT_OPTIONS = {
    "recent": Restaurant.created_at.desc(),
    "rating": Restaurant.rating.desc(),
    "reviews": Restaurant.total_reviews.desc(),
    "delivery_fee": Restaurant.delivery_fee.asc(),
}


def visible_restaurants_filter():
    """Public visibility: active, approved and with an ACTIVE subscription."""
    return (
        Restaurant.is_active.is_(True),
        Restaurant.is_approved.is_(True),
        Restaurant.subscription_status == SubscriptionStatus.ACTIVE.value,
    )


class CatalogService:
    def __init__(self, db: Session):
        self.db = db

    def _visible(self):
        return self.db.query(Restaurant).filter(*visible_restaurants_filter())

    def list_restaurants(self, q: Optional[str] = None, category_slug: Optional[str] = None, sort: str = "recent"):
        if sort not in SORT_OPTIONS:
            raise ValidationFailed(f"Unknown sort option: {sort}")
        query = self._visible()
        if q:
            pattern = f"%{q}%"
            query = query.filter(or_(Restaurant.name.ilike(pattern), Restaurant.description.ilike(pattern)))
        if category_slug:
            query = query.join(Category, Restaurant.category_id == Category.id).filter(Category.slug == category_slug)
        return query.order_by(SORT_OPTIONS[sort], Restaurant.id.desc()).all()

    def get_restaurant(self, slug: str) -> dict:
        restaurant = self._visible().filter(Restaurant.slug == slug).first()
        if not restaurant:
            raise NotFound("Restaurant not found")
        products = (
            self.db.query(Product)
            .filter(Product.restaurant_id == restaurant.id, Product.is_available.is_(True))
            .order_by(Product.category, Product.name)
            .all()
        )
        return {
            **_summary(restaurant),
            "products": products,
            "payment_methods": self._active_payment_methods(restaurant.id),
        }

    def list_categories(self) -> list[dict]:
        counts = dict(
            self.db.query(Restaurant.category_id, func.count(Restaurant.id))
            .filter(*visible_restaurants_filter())
            .group_by(Restaurant.category_id)
            .all()
        )
        categories = self.db.query(Category).filter(Category.is_active.is_(True)).order_by(Category.name).all()
        return [
            {**_category(c), "restaurant_count": counts.get(c.id, 0)}
            for c in categories
        ]

    def get_category(self, slug: str) -> dict:
        category = self.db.query(Category).filter(Category.slug == slug, Category.is_active.is_(True)).first()
        if not category:
            raise NotFound("Category not found")
        restaurants = (
            self._visible()
            .filter(Restaurant.category_id == category.id)
            .order_by(Restaurant.rating.desc(), Restaurant.id)
            .all()
        )
        return {**_category(category), "restaurants": restaurants}

    def search(self, q: str) -> dict:
        if not q or not q.strip():
            return {"restaurants": [], "products": []}
        pattern = f"%{q.strip()}%"
        restaurants = (
            self._visible()
            .join(Category, Restaurant.category_id == Category.id)
            .filter(or_(
                Restaurant.name.ilike(pattern),
                Restaurant.description.ilike(pattern),
                Category.name.ilike(pattern),
            ))
            .order_by(Restaurant.rating.desc())
            .all()
        )
        products = (
            self.db.query(Product)
            .join(Restaurant, Product.restaurant_id == Restaurant.id)
            .filter(*visible_restaurants_filter())
            .filter(Product.is_available.is_(True))
            .filter(or_(
                Product.name.ilike(pattern),
                Product.description.ilike(pattern),
                Product.category.ilike(pattern),
            ))
            .order_by(Product.name)
            .all()
        )
        return {"restaurants": restaurants, "products": products}

    def list_banners(self, location: str = "HOME"):
        return (
            self.db.query(Banner)
            .filter(Banner.location == location, Banner.active.is_(True))
            .order_by(Banner.created_at.desc(), Banner.id.desc())
            .all()
        )

    def list_plans(self):
        return (
            self.db.query(SubscriptionPlan)
            .filter(SubscriptionPlan.is_active.is_(True))
            .order_by(SubscriptionPlan.price.asc())
            .all()
        )

    def checkout_data(self, restaurant_id: int, user: Optional[User] = None) -> dict:
        restaurant = self.db.get(Restaurant, restaurant_id)
        if not restaurant:
            raise NotFound("Restaurant not found")
        addresses = AddressService(self.db).list(user) if user else []
        return {
            "restaurant": restaurant,
            "payment_methods": self._active_payment_methods(restaurant_id),
            "addresses": addresses,
        }

    def _active_payment_methods(self, restaurant_id: int) -> list[PaymentMethod]:
        links = (
            self.db.query(RestaurantPaymentMethod)
            .options(selectinload(RestaurantPaymentMethod.payment_method))
            .join(PaymentMethod, RestaurantPaymentMethod.payment_method_id == PaymentMethod.id)
            .filter(
                RestaurantPaymentMethod.restaurant_id == restaurant_id,
                RestaurantPaymentMethod.is_active.is_(True),
                PaymentMethod.is_active.is_(True),
            )
            .order_by(PaymentMethod.name)
            .all()
        )
        return [link.payment_method for link in links]


def _category(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "description": category.description,
        "image": category.image,
        "is_active": category.is_active,
    }


def _summary(restaurant: Restaurant) -> dict:
    return RestaurantSummary.model_validate(restaurant).model_dump()
