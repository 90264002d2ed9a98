from typing import Optional

from sqlalchemy.orm import Session, selectinload

from marketplace.core.logging_config import get_logger
from marketplace.domain.models import (
    Banner,
    Category,
    Order,
    OrderStatus,
    PaymentMethod,
    Restaurant,
    RestaurantPaymentMethod,
    SiteSettings,
    SubscriptionPlan,
    User,
    UserRole,
    utcnow,
)
from .account_service import slugify
from .errors import Conflict, NotFound, ValidationFailed
from .schemas import (
    BannerCreate,
    CategoryCreate,
    PaymentMethodCreate,
    PlanCreate,
    SiteSettingsUpdate,
)

logger = get_logger(__name__)

REJECTION_REASON_MIN_LENGTH = 20
SECRET_FIELDS = ("stripe_prod_secret_key", "stripe_test_secret_key")
MASK = "********"

RESTAURANT_FILTERS = {
    "pending": (Restaurant.is_approved.is_(False), Restaurant.rejected_at.is_(None)),
    "approved": (Restaurant.is_approved.is_(True),),
    "rejected": (Restaurant.rejected_at.is_not(None), Restaurant.is_approved.is_(False)),
    "active": (Restaurant.is_active.is_(True),),
    "inactive": (Restaurant.is_active.is_(False),),
}


def mask_secret(value: Optional[str]) -> Optional[str]:
    if not value:
        return value
    return MASK + value[-4:]


class AdminService:
    def __init__(self, db: Session):
        self.db = db

    def _get(self, model, obj_id: int, label: str):
        obj = self.db.get(model, obj_id)
        if not obj:
            raise NotFound(f"{label} not found")
        return obj

    # --- Restaurants ---

    def list_restaurants(self, status: Optional[str] = None):
        query = self.db.query(Restaurant)
        if status:
            if status not in RESTAURANT_FILTERS:
                raise ValidationFailed(f"Unknown restaurant filter: {status}")
            query = query.filter(*RESTAURANT_FILTERS[status])
        return query.order_by(Restaurant.created_at.desc(), Restaurant.id.desc()).all()

    def get_restaurant(self, restaurant_id: int) -> Restaurant:
        return self._get(Restaurant, restaurant_id, "Restaurant")

    def approve_restaurant(self, restaurant_id: int) -> Restaurant:
        restaurant = self.get_restaurant(restaurant_id)
        restaurant.is_approved = True
        restaurant.approved_at = utcnow()
        restaurant.rejected_at = None
        restaurant.rejection_reason = None
        restaurant.is_active = True
        self.db.commit()
        self.db.refresh(restaurant)
        logger.info(f"Restaurant {restaurant.id} approved")
        return restaurant

    def reject_restaurant(self, restaurant_id: int, reason: str) -> Restaurant:
        reason = (reason or "").strip()
        if len(reason) < REJECTION_REASON_MIN_LENGTH:
            raise ValidationFailed(
                f"The rejection reason must have at least {REJECTION_REASON_MIN_LENGTH} characters"
            )
        restaurant = self.get_restaurant(restaurant_id)
        restaurant.is_approved = False
        restaurant.rejected_at = utcnow()
        restaurant.rejection_reason = reason
        restaurant.is_active = False
        self.db.commit()
        self.db.refresh(restaurant)
        logger.info(f"Restaurant {restaurant.id} rejected")
        return restaurant

    def set_restaurant_active(self, restaurant_id: int, active: bool) -> Restaurant:
        restaurant = self.get_restaurant(restaurant_id)
        restaurant.is_active = active
        self.db.commit()
        self.db.refresh(restaurant)
        logger.info(f"Restaurant {restaurant.id} {'activated' if active else 'suspended'}")
        return restaurant

    # --- Categories ---

    def _unique_category_slug(self, name: str, exclude_id: Optional[int] = None) -> str:
        base = slugify(name) or "category"
        slug, count = base, 1
        while True:
            query = self.db.query(Category.id).filter(Category.slug == slug)
            if exclude_id is not None:
                query = query.filter(Category.id != exclude_id)
            if not query.first():
                return slug
            slug = f"{base}-{count}"
            count += 1

    def list_categories(self):
        return self.db.query(Category).order_by(Category.name).all()

    def create_category(self, data: CategoryCreate) -> Category:
        category = Category(slug=self._unique_category_slug(data.name), **data.model_dump())
        self.db.add(category)
        self.db.commit()
        self.db.refresh(category)
        logger.info(f"Category {category.slug} created")
        return category

    def update_category(self, category_id: int, data: CategoryCreate) -> Category:
        category = self._get(Category, category_id, "Category")
        if category.name != data.name:
            category.slug = self._unique_category_slug(data.name, exclude_id=category.id)
        for key, value in data.model_dump().items():
            setattr(category, key, value)
        self.db.commit()
        self.db.refresh(category)
        return category

    def delete_category(self, category_id: int) -> None:
        category = self._get(Category, category_id, "Category")
        if self.db.query(Restaurant.id).filter(Restaurant.category_id == category.id).first():
            raise ValidationFailed("Cannot delete category with associated restaurants")
        self.db.delete(category)
        self.db.commit()

    def toggle_category(self, category_id: int) -> Category:
        category = self._get(Category, category_id, "Category")
        category.is_active = not category.is_active
        self.db.commit()
        self.db.refresh(category)
        return category

    # --- Payment methods ---

    def list_payment_methods(self):
        return self.db.query(PaymentMethod).order_by(PaymentMethod.name).all()

    def create_payment_method(self, data: PaymentMethodCreate) -> PaymentMethod:
        if self.db.query(PaymentMethod.id).filter(PaymentMethod.name == data.name).first():
            raise Conflict("Payment method already exists")
        method = PaymentMethod(**data.model_dump())
        self.db.add(method)
        self.db.commit()
        self.db.refresh(method)
        return method

    def update_payment_method(self, method_id: int, data: PaymentMethodCreate) -> PaymentMethod:
        method = self._get(PaymentMethod, method_id, "Payment method")
        taken = (
            self.db.query(PaymentMethod.id)
            .filter(PaymentMethod.name == data.name, PaymentMethod.id != method.id)
            .first()
        )
        if taken:
            raise Conflict("Payment method name already taken")
        method.name = data.name
        method.is_active = data.is_active
        self.db.commit()
        self.db.refresh(method)
        return method

    def delete_payment_method(self, method_id: int) -> None:
        method = self._get(PaymentMethod, method_id, "Payment method")
        in_use = (
            self.db.query(RestaurantPaymentMethod.id)
            .filter(RestaurantPaymentMethod.payment_method_id == method.id)
            .first()
        )
        if in_use:
            raise ValidationFailed("Cannot delete payment method used by restaurants")
        self.db.delete(method)
        self.db.commit()

    def toggle_payment_method(self, method_id: int) -> PaymentMethod:
        method = self._get(PaymentMethod, method_id, "Payment method")
        method.is_active = not method.is_active
        self.db.commit()
        self.db.refresh(method)
        return method

    # --- Plans ---

    def list_plans(self):
        return self.db.query(SubscriptionPlan).order_by(SubscriptionPlan.price.asc()).all()

    def create_plan(self, data: PlanCreate) -> SubscriptionPlan:
        plan = SubscriptionPlan(**data.model_dump())
        self.db.add(plan)
        self.db.commit()
        self.db.refresh(plan)
        logger.info(f"Plan {plan.id} ({plan.name}) created")
        return plan

    def update_plan(self, plan_id: int, data: PlanCreate) -> SubscriptionPlan:
        plan = self._get(SubscriptionPlan, plan_id, "Plan")
        for key, value in data.model_dump().items():
            setattr(plan, key, value)
        self.db.commit()
        self.db.refresh(plan)
        return plan

    def toggle_plan(self, plan_id: int) -> SubscriptionPlan:
        plan = self._get(SubscriptionPlan, plan_id, "Plan")
        plan.is_active = not plan.is_active
        self.db.commit()
        self.db.refresh(plan)
        return plan

    # --- Users ---

    def list_users(self):
        return self.db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()

    def change_role(self, actor: User, user_id: int, role: str) -> User:
        if actor.id == user_id and role != UserRole.ADMIN.value:
            raise ValidationFailed("Cannot remove your own admin privileges")
        user = self._get(User, user_id, "User")
        user.role = role
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User {user.id} role changed to {role} by admin {actor.id}")
        return user

    # --- Site settings ---

    def get_site_settings(self) -> dict:
        site = self.db.query(SiteSettings).first() or SiteSettings(
            site_name="Marketplace", primary_color="#EA1D2C", secondary_color="#FFFFFF", is_stripe_sandbox=True
        )
        data = {column.name: getattr(site, column.name) for column in SiteSettings.__table__.columns}
        for field in SECRET_FIELDS:
            data[field] = mask_secret(data[field])
        return data

    def update_site_settings(self, data: SiteSettingsUpdate) -> dict:
        site = self.db.query(SiteSettings).first()
        if site is None:
            site = SiteSettings()
            self.db.add(site)
        for key, value in data.model_dump().items():
            # A masked value echoed back from the settings form keeps the stored key
            if key in SECRET_FIELDS and value and value.startswith(MASK):
                continue
            setattr(site, key, value)
        self.db.commit()
        logger.info("Site settings updated")
        return self.get_site_settings()

    # --- Banners ---

    def list_banners(self):
        return self.db.query(Banner).order_by(Banner.created_at.desc(), Banner.id.desc()).all()

    def create_banner(self, data: BannerCreate) -> Banner:
        banner = Banner(active=True, **data.model_dump())
        self.db.add(banner)
        self.db.commit()
        self.db.refresh(banner)
        return banner

    def delete_banner(self, banner_id: int) -> None:
        banner = self._get(Banner, banner_id, "Banner")
        self.db.delete(banner)
        self.db.commit()

    def toggle_banner(self, banner_id: int) -> Banner:
        banner = self._get(Banner, banner_id, "Banner")
        banner.active = not banner.active
        self.db.commit()
        self.db.refresh(banner)
        return banner

    # --- Orders ---

    def list_orders(self, status: Optional[str] = None):
        query = self.db.query(Order).options(selectinload(Order.items))
        if status:
            if status not in OrderStatus.__members__:
                raise ValidationFailed(f"Unknown order status: {status}")
            query = query.filter(Order.status == status)
        return query.order_by(Order.created_at.desc(), Order.id.desc()).all()
