from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    Numeric,
    DateTime,
    Boolean,
    Text,
    Integer,
    JSON,
    UniqueConstraint,
)
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how every DateTime column is stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserRole(str, Enum):
    USER = "USER"
    RESTAURANT = "RESTAURANT"
    ADMIN = "ADMIN"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY = "READY"
    DELIVERING = "DELIVERING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class DeliveryType(str, Enum):
    DELIVERY = "DELIVERY"
    PICKUP = "PICKUP"


class SubscriptionStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class PlanInterval(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    SEMIANNUAL = "SEMIANNUAL"
    ANNUAL = "ANNUAL"


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(100))
    role: Mapped[str] = mapped_column(String(20), default=UserRole.USER.value)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
    restaurant: Mapped[Optional["Restaurant"]] = relationship("Restaurant", back_populates="owner", uselist=False)
    addresses: Mapped[list["Address"]] = relationship("Address", back_populates="user", cascade="all, delete-orphan")


class Address(Base):
    __tablename__ = "addresses"
    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    label: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    street: Mapped[str] = mapped_column(String(300))
    number: Mapped[str] = mapped_column(String(20))
    complement: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    neighborhood: Mapped[str] = mapped_column(String(100))
    city: Mapped[str] = mapped_column(String(100))
    state: Mapped[str] = mapped_column(String(50))
    zip_code: Mapped[str] = mapped_column(String(20))
    latitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)
    longitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    user: Mapped[User] = relationship("User", back_populates="addresses")

    def one_line(self) -> str:
        # Snapshot stored on DELIVERY orders
        complement = f" {self.complement}" if self.complement else ""
        return (
            f"{self.street} {self.number}{complement} - {self.neighborhood}, "
            f"{self.city} - {self.state} {self.zip_code}"
        )


class Category(Base):
    __tablename__ = "categories"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50))
    slug: Mapped[str] = mapped_column(String(80), unique=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class PaymentMethod(Base):
    __tablename__ = "payment_methods"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50), unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    interval: Mapped[str] = mapped_column(String(20))
    features: Mapped[list] = mapped_column(JSON, default=list)
    max_products: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_orders: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class Restaurant(Base):
    __tablename__ = "restaurants"
    id: Mapped[int] = mapped_column(primary_key=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), unique=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id", ondelete="RESTRICT"))
    name: Mapped[str] = mapped_column(String(120))
    slug: Mapped[str] = mapped_column(String(160), unique=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    email: Mapped[str] = mapped_column(String(255))
    phone: Mapped[str] = mapped_column(String(50), default="")
    logo: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    banner: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    min_order_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    estimated_delivery_time: Mapped[int] = mapped_column(Integer, default=30)
    opens_at: Mapped[str] = mapped_column(String(5), default="08:00")
    closes_at: Mapped[str] = mapped_column(String(5), default="22:00")
    accepts_delivery: Mapped[bool] = mapped_column(Boolean, default=True)
    accepts_pickup: Mapped[bool] = mapped_column(Boolean, default=True)
    rating: Mapped[float] = mapped_column(default=0.0)
    total_reviews: Mapped[int] = mapped_column(Integer, default=0)
    # Approval
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Subscription, written only by webhooks and admin actions
    subscription_plan_id: Mapped[Optional[int]] = mapped_column(ForeignKey("subscription_plans.id"), nullable=True)
    subscription_status: Mapped[str] = mapped_column(String(20), default=SubscriptionStatus.PENDING.value)
    subscription_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    owner: Mapped[User] = relationship("User", back_populates="restaurant")
    category: Mapped[Category] = relationship("Category")
    subscription_plan: Mapped[Optional[SubscriptionPlan]] = relationship("SubscriptionPlan")
    products: Mapped[list["Product"]] = relationship("Product", back_populates="restaurant", cascade="all, delete-orphan")
    payment_methods: Mapped[list["RestaurantPaymentMethod"]] = relationship(
        "RestaurantPaymentMethod", back_populates="restaurant", cascade="all, delete-orphan"
    )

    @property
    def is_publicly_visible(self) -> bool:
        return bool(
            self.is_active
            and self.is_approved
            and self.subscription_status == SubscriptionStatus.ACTIVE.value
        )


class RestaurantPaymentMethod(Base):
    __tablename__ = "restaurant_payment_methods"
    __table_args__ = (UniqueConstraint("restaurant_id", "payment_method_id", name="uq_restaurant_payment_method"),)
    id: Mapped[int] = mapped_column(primary_key=True)
    restaurant_id: Mapped[int] = mapped_column(ForeignKey("restaurants.id", ondelete="CASCADE"))
    payment_method_id: Mapped[int] = mapped_column(ForeignKey("payment_methods.id", ondelete="RESTRICT"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    restaurant: Mapped[Restaurant] = relationship("Restaurant", back_populates="payment_methods")
    payment_method: Mapped[PaymentMethod] = relationship("PaymentMethod")


class Product(Base):
    __tablename__ = "products"
    id: Mapped[int] = mapped_column(primary_key=True)
    restaurant_id: Mapped[int] = mapped_column(ForeignKey("restaurants.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Menu section shown on the restaurant page, e.g. "Drinks"
    category: Mapped[str] = mapped_column(String(100))
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    discount_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    preparation_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
    restaurant: Mapped[Restaurant] = relationship("Restaurant", back_populates="products")

    @property
    def effective_price(self) -> Decimal:
        return self.discount_price if self.discount_price is not None else self.price


class Order(Base):
    __tablename__ = "orders"
    id: Mapped[int] = mapped_column(primary_key=True)
    order_number: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    restaurant_id: Mapped[int] = mapped_column(ForeignKey("restaurants.id"), index=True)
    status: Mapped[str] = mapped_column(String(30), default=OrderStatus.PENDING.value, index=True)
    payment_status: Mapped[str] = mapped_column(String(30), default=PaymentStatus.PENDING.value)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    discount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    final_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    delivery_type: Mapped[str] = mapped_column(String(20))
    address_id: Mapped[Optional[int]] = mapped_column(ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True)
    delivery_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_method_id: Mapped[int] = mapped_column(ForeignKey("payment_methods.id"))
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    user: Mapped[User] = relationship("User")
    restaurant: Mapped[Restaurant] = relationship("Restaurant")
    payment_method: Mapped[PaymentMethod] = relationship("PaymentMethod")
    items: Mapped[list["OrderItem"]] = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    review: Mapped[Optional["Review"]] = relationship("Review", back_populates="order", uselist=False)


class OrderItem(Base):
    __tablename__ = "order_items"
    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"))
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"))
    quantity: Mapped[int]
    # Price snapshot captured at order time
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    product_name_snapshot: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    order: Mapped[Order] = relationship("Order", back_populates="items")


class Review(Base):
    __tablename__ = "reviews"
    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), unique=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    restaurant_id: Mapped[int] = mapped_column(ForeignKey("restaurants.id"), index=True)
    rating: Mapped[int] = mapped_column(Integer)
    comment: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    order: Mapped[Order] = relationship("Order", back_populates="review")
    user: Mapped[User] = relationship("User")


class Banner(Base):
    __tablename__ = "banners"
    id: Mapped[int] = mapped_column(primary_key=True)
    image: Mapped[str] = mapped_column(Text)
    title: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    link: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    location: Mapped[str] = mapped_column(String(30), default="HOME")
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class SiteSettings(Base):
    __tablename__ = "site_settings"
    id: Mapped[int] = mapped_column(primary_key=True)
    site_name: Mapped[str] = mapped_column(String(100), default="Marketplace")
    logo: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    favicon: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    primary_color: Mapped[str] = mapped_column(String(7), default="#EA1D2C")
    secondary_color: Mapped[str] = mapped_column(String(7), default="#FFFFFF")
    footer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    footer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    footer_address: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    footer_facebook: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    footer_instagram: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    footer_twitter: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    footer_linkedin: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    stripe_prod_secret_key: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    stripe_prod_publishable_key: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    stripe_test_secret_key: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    stripe_test_publishable_key: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_stripe_sandbox: Mapped[bool] = mapped_column(Boolean, default=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class WebhookEvent(Base):
    """Ledger of processed payment-provider events, one row per event id."""
    __tablename__ = "webhook_events"
    id: Mapped[int] = mapped_column(primary_key=True)
    event_id: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    event_type: Mapped[str] = mapped_column(String(100))
    restaurant_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    received_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
