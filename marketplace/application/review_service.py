from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.core.logging_config import get_logger
from marketplace.domain.models import Order, OrderStatus, Restaurant, Review, User
from .errors import NotFound, PermissionDenied, ValidationFailed
from .schemas import ReviewCreate

logger = get_logger(__name__)


class ReviewService:
    def __init__(self, db: Session):
        self.db = db

    def create(self, user: User, data: ReviewCreate) -> Review:
        order = self.db.get(Order, data.order_id)
        if not order:
            raise NotFound("Order not found")
        if order.user_id != user.id:
            raise PermissionDenied("You can only review your own orders")
        if order.status != OrderStatus.COMPLETED.value:
            raise ValidationFailed("Only completed orders can be reviewed")
        if self.db.query(Review.id).filter(Review.order_id == order.id).first():
            raise ValidationFailed("This order has already been reviewed")

        review = Review(
            order_id=order.id,
            user_id=user.id,
            restaurant_id=order.restaurant_id,
            rating=data.rating,
            comment=data.comment or None,
        )
        try:
            self.db.add(review)
            self.db.flush()
            self._refresh_rating(order.restaurant_id)
            self.db.commit()
        except IntegrityError:
            # Lost a race against another review for the same order
            self.db.rollback()
            raise ValidationFailed("This order has already been reviewed")
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(review)
        logger.info(f"Review {review.id} created for order {order.order_number}")
        return review

    def _refresh_rating(self, restaurant_id: int) -> None:
        average, count = (
            self.db.query(func.avg(Review.rating), func.count(Review.id))
            .filter(Review.restaurant_id == restaurant_id)
            .one()
        )
        restaurant = self.db.get(Restaurant, restaurant_id)
        restaurant.rating = float(average or 0)
        restaurant.total_reviews = count

    def list_for_restaurant_slug(self, slug: str):
        restaurant = self.db.query(Restaurant).filter(Restaurant.slug == slug).first()
        if not restaurant or not restaurant.is_publicly_visible:
            raise NotFound("Restaurant not found")
        return self._list(restaurant.id)

    def list_for_restaurant(self, restaurant_id: int):
        return self._list(restaurant_id)

    def _list(self, restaurant_id: int):
        return (
            self.db.query(Review)
            .filter(Review.restaurant_id == restaurant_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .all()
        )
