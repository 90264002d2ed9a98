from typing import Optional

from sqlalchemy.orm import Session

from marketplace.core.logging_config import get_logger
from marketplace.domain.models import (
    Category,
    PaymentMethod,
    Restaurant,
    RestaurantPaymentMethod,
    User,
    UserRole,
)
from .errors import AuthenticationRequired, NotFound, PermissionDenied, ValidationFailed
from .schemas import RestaurantImagesUpdate, RestaurantInfoUpdate

logger = get_logger(__name__)

MAX_IMAGE_LENGTH = 7_000_000  # base64 data URLs, roughly 5MB of image


def owned_restaurant(db: Session, user: Optional[User]) -> Restaurant:
    """The caller's restaurant; the caller must hold the RESTAURANT role."""
    if user is None:
        raise AuthenticationRequired("Not authenticated")
    if user.role != UserRole.RESTAURANT:
        raise PermissionDenied("Access denied")
    restaurant = db.query(Restaurant).filter(Restaurant.owner_id == user.id).first()
    if not restaurant:
        raise NotFound("Restaurant not found")
    return restaurant


class RestaurantService:
    def __init__(self, db: Session):
        self.db = db

    def get_mine(self, user: User) -> Restaurant:
        return owned_restaurant(self.db, user)

    def update_info(self, user: User, data: RestaurantInfoUpdate) -> Restaurant:
        restaurant = owned_restaurant(self.db, user)
        if not self.db.get(Category, data.category_id):
            raise ValidationFailed("Category not found")
        for key, value in data.model_dump().items():
            setattr(restaurant, key, value)
        self.db.commit()
        self.db.refresh(restaurant)
        logger.info(f"Restaurant {restaurant.id} info updated")
        return restaurant

    def update_images(self, user: User, data: RestaurantImagesUpdate) -> Restaurant:
        restaurant = owned_restaurant(self.db, user)
        if data.logo and len(data.logo) > MAX_IMAGE_LENGTH:
            raise ValidationFailed("Logo is too large")
        if data.banner and len(data.banner) > MAX_IMAGE_LENGTH:
            raise ValidationFailed("Banner is too large")
        restaurant.logo = data.logo
        restaurant.banner = data.banner
        self.db.commit()
        self.db.refresh(restaurant)
        return restaurant

    def list_payment_methods(self, user: User) -> list[dict]:
        """Every active global method, flagged with whether the restaurant accepts it."""
        restaurant = owned_restaurant(self.db, user)
        linked = {
            link.payment_method_id
            for link in self.db.query(RestaurantPaymentMethod).filter(
                RestaurantPaymentMethod.restaurant_id == restaurant.id
            )
        }
        methods = self.db.query(PaymentMethod).filter(PaymentMethod.is_active.is_(True)).order_by(PaymentMethod.name)
        return [
            {"id": m.id, "name": m.name, "is_active": m.is_active, "enabled": m.id in linked}
            for m in methods
        ]

    def toggle_payment_method(self, user: User, payment_method_id: int, enabled: bool) -> None:
        restaurant = owned_restaurant(self.db, user)
        method = self.db.get(PaymentMethod, payment_method_id)
        if not method:
            raise NotFound("Payment method not found")

        link = (
            self.db.query(RestaurantPaymentMethod)
            .filter(
                RestaurantPaymentMethod.restaurant_id == restaurant.id,
                RestaurantPaymentMethod.payment_method_id == payment_method_id,
            )
            .first()
        )
        if enabled:
            if link:
                link.is_active = True
            else:
                self.db.add(RestaurantPaymentMethod(
                    restaurant_id=restaurant.id, payment_method_id=payment_method_id, is_active=True
                ))
        else:
            if not link:
                return
            linked_count = (
                self.db.query(RestaurantPaymentMethod)
                .filter(RestaurantPaymentMethod.restaurant_id == restaurant.id)
                .count()
            )
            if linked_count <= 1:
                raise ValidationFailed("At least one payment method must stay enabled")
            self.db.delete(link)
        self.db.commit()
        logger.info(
            f"Restaurant {restaurant.id} {'enabled' if enabled else 'disabled'} payment method {method.name}"
        )
