import re
import time
import unicodedata
from typing import Optional

from sqlalchemy.orm import Session

from marketplace.auth_local import create_access_token, hash_password, verify_password
from marketplace.core.logging_config import get_logger
from marketplace.domain.models import (
    Category,
    Restaurant,
    SubscriptionStatus,
    User,
    UserRole,
)
from .errors import AuthenticationRequired, Conflict, NotFound, ValidationFailed
from .schemas import LoginRequest, ProfileUpdate, SignupRequest

logger = get_logger(__name__)


def slugify(value: str) -> str:
    normalized = unicodedata.normalize("NFD", value.lower())
    ascii_only = "".join(c for c in normalized if not unicodedata.combining(c))
    return re.sub(r"[^a-z0-9]+", "-", ascii_only).strip("-")


class AccountService:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if not user:
            raise NotFound("User not found")
        return user

    def signup(self, data: SignupRequest) -> User:
        email = data.email.lower()
        if self.db.query(User).filter(User.email == email).first():
            raise ValidationFailed("Email already registered")

        try:
            user = User(
                name=data.name,
                email=email,
                password_hash=hash_password(data.password),
                role=data.role,
            )
            self.db.add(user)
            self.db.flush()  # assign id
            if data.role == UserRole.RESTAURANT:
                self._create_pending_restaurant(user, data.restaurant_name)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(user)
        logger.info(f"User {user.id} signed up with role {user.role}")
        return user

    def authenticate(self, data: LoginRequest) -> str:
        user = self.db.query(User).filter(User.email == data.email.lower()).first()
        if not user or not verify_password(data.password, user.password_hash):
            raise AuthenticationRequired("Incorrect email or password")
        return create_access_token(user.id, user.role)

    def update_profile(self, user: User, data: ProfileUpdate) -> User:
        email = data.email.lower()
        taken = self.db.query(User).filter(User.email == email, User.id != user.id).first()
        if taken:
            raise Conflict("Email already in use")

        if data.new_password:
            if not data.current_password:
                raise ValidationFailed("Current password is required to set a new password")
            if not verify_password(data.current_password, user.password_hash):
                raise ValidationFailed("Current password is incorrect")
            user.password_hash = hash_password(data.new_password)

        user.name = data.name
        user.email = email
        if data.phone is not None:
            user.phone = data.phone
        self.db.commit()
        self.db.refresh(user)
        return user

    def upgrade_to_restaurant(self, user: User, restaurant_name: Optional[str] = None) -> User:
        if user.role != UserRole.USER:
            raise ValidationFailed("Only customer accounts can be upgraded")
        try:
            user.role = UserRole.RESTAURANT.value
            if not user.restaurant:
                self._create_pending_restaurant(user, restaurant_name)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(user)
        logger.info(f"User {user.id} upgraded to restaurant owner")
        return user

    def _create_pending_restaurant(self, user: User, restaurant_name: Optional[str]) -> Restaurant:
        name = restaurant_name or f"Restaurant of {user.name}"
        slug = slugify(name) or "restaurant"
        if self.db.query(Restaurant).filter(Restaurant.slug == slug).first():
            slug = f"{slug}-{int(time.time() * 1000)}"

        category = self.db.query(Category).order_by(Category.id).first()
        if not category:
            category = Category(name="Others", slug="others", image="/images/categories/others.png")
            self.db.add(category)
            self.db.flush()

        restaurant = Restaurant(
            name=name,
            slug=slug,
            email=user.email,
            phone="",
            owner_id=user.id,
            category_id=category.id,
            is_active=False,
            is_approved=False,
            subscription_status=SubscriptionStatus.PENDING.value,
            opens_at="08:00",
            closes_at="22:00",
        )
        self.db.add(restaurant)
        self.db.flush()
        return restaurant
