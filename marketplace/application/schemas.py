from pydantic import BaseModel, Field, EmailStr, field_validator, model_validator
from datetime import datetime
from decimal import Decimal
from typing import Optional, Literal

HH_MM = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"
HEX_COLOR = r"^#([0-9A-Fa-f]{3}){1,2}$"

# --- Accounts ---

class SignupRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    role: Literal["USER", "RESTAURANT"] = "USER"
    restaurant_name: Optional[str] = None

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"

class UserRead(BaseModel):
    id: int
    name: str
    email: str
    role: str
    phone: Optional[str] = None
    created_at: datetime
    class Config:
        from_attributes = True

class ProfileUpdate(BaseModel):
    name: str = Field(min_length=2)
    email: EmailStr
    phone: Optional[str] = None
    current_password: Optional[str] = None
    new_password: Optional[str] = Field(default=None, min_length=6)

class RoleChange(BaseModel):
    role: Literal["USER", "RESTAURANT", "ADMIN"]

class UpgradeRequest(BaseModel):
    restaurant_name: Optional[str] = None

# --- Addresses ---

class AddressCreate(BaseModel):
    label: Optional[str] = None
    street: str = Field(min_length=1)
    number: str = Field(min_length=1)
    complement: Optional[str] = None
    neighborhood: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: str = Field(min_length=1)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_default: bool = False

class AddressRead(BaseModel):
    id: int
    label: Optional[str] = None
    street: str
    number: str
    complement: Optional[str] = None
    neighborhood: str
    city: str
    state: str
    zip_code: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_default: bool
    created_at: datetime
    class Config:
        from_attributes = True

# --- Catalog ---

class CategoryRead(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    image: Optional[str] = None
    is_active: bool
    class Config:
        from_attributes = True

class CategoryWithCount(CategoryRead):
    restaurant_count: int = 0

class PaymentMethodRead(BaseModel):
    id: int
    name: str
    is_active: bool
    class Config:
        from_attributes = True

class ProductRead(BaseModel):
    id: int
    restaurant_id: int
    name: str
    description: Optional[str] = None
    category: str
    price: float
    discount_price: Optional[float] = None
    image: Optional[str] = None
    preparation_time: Optional[int] = None
    is_available: bool
    class Config:
        from_attributes = True

class RestaurantSummary(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    logo: Optional[str] = None
    banner: Optional[str] = None
    category_id: int
    delivery_fee: float
    min_order_value: float
    estimated_delivery_time: int
    opens_at: str
    closes_at: str
    accepts_delivery: bool
    accepts_pickup: bool
    rating: float
    total_reviews: int
    class Config:
        from_attributes = True

class RestaurantDetail(RestaurantSummary):
    products: list[ProductRead] = []
    payment_methods: list[PaymentMethodRead] = []

class CategoryDetail(CategoryRead):
    restaurants: list[RestaurantSummary] = []

class SearchResults(BaseModel):
    restaurants: list[RestaurantSummary]
    products: list[ProductRead]

class BannerRead(BaseModel):
    id: int
    image: str
    title: Optional[str] = None
    description: Optional[str] = None
    link: Optional[str] = None
    location: str
    active: bool
    created_at: datetime
    class Config:
        from_attributes = True

class PlanRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    interval: str
    features: list[str]
    max_products: Optional[int] = None
    max_orders: Optional[int] = None
    is_active: bool
    class Config:
        from_attributes = True

class CheckoutRestaurant(BaseModel):
    delivery_fee: float
    min_order_value: float
    estimated_delivery_time: int
    accepts_delivery: bool
    accepts_pickup: bool
    class Config:
        from_attributes = True

class CheckoutData(BaseModel):
    restaurant: CheckoutRestaurant
    payment_methods: list[PaymentMethodRead]
    addresses: list[AddressRead]

# --- Orders ---

class OrderItemCreate(BaseModel):
    product_id: int
    quantity: int = 1
    notes: Optional[str] = None

class OrderCreate(BaseModel):
    restaurant_id: int
    items: list[OrderItemCreate] = []
    delivery_type: Literal["DELIVERY", "PICKUP"]
    address_id: Optional[int] = None
    payment_method_id: Optional[int] = None
    notes: Optional[str] = None

class OrderCreated(BaseModel):
    success: bool = True
    order_id: int
    order_number: str

class OrderItemRead(BaseModel):
    id: int
    product_id: int
    product_name_snapshot: Optional[str] = None
    quantity: int
    unit_price: float
    total_price: float
    notes: Optional[str] = None
    class Config:
        from_attributes = True

class OrderRead(BaseModel):
    id: int
    order_number: str
    user_id: int
    restaurant_id: int
    status: str
    payment_status: str
    total_amount: float
    delivery_fee: float
    discount: float
    final_amount: float
    delivery_type: str
    address_id: Optional[int] = None
    delivery_address: Optional[str] = None
    payment_method_id: int
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemRead]
    class Config:
        from_attributes = True

class CancelRequest(BaseModel):
    cancel_reason: str

class TransitionResult(BaseModel):
    success: bool = True
    message: str
    order: OrderRead

class NewOrdersCount(BaseModel):
    has_new_orders: bool
    count: int

class NewOrderSummary(BaseModel):
    id: int
    order_number: str
    created_at: datetime
    customer_name: Optional[str] = None

class NewOrdersSince(NewOrdersCount):
    new_orders: list[NewOrderSummary]

# --- Reviews ---

class ReviewCreate(BaseModel):
    order_id: int
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=500)

class ReviewRead(BaseModel):
    id: int
    order_id: int
    user_id: int
    restaurant_id: int
    rating: int
    comment: Optional[str] = None
    created_at: datetime
    class Config:
        from_attributes = True

# --- Restaurant management ---

class RestaurantInfoUpdate(BaseModel):
    name: str = Field(min_length=3)
    description: Optional[str] = Field(default=None, max_length=500)
    category_id: int
    phone: str = Field(min_length=10)
    email: EmailStr
    opens_at: str = Field(pattern=HH_MM)
    closes_at: str = Field(pattern=HH_MM)
    min_order_value: Decimal = Field(ge=0)
    delivery_fee: Decimal = Field(ge=0)
    estimated_delivery_time: int = Field(gt=0)
    accepts_delivery: bool
    accepts_pickup: bool

    @model_validator(mode="after")
    def _one_fulfilment_mode(self):
        if not (self.accepts_delivery or self.accepts_pickup):
            raise ValueError("Select at least one of delivery or pickup")
        return self

class RestaurantImagesUpdate(BaseModel):
    logo: Optional[str] = None
    banner: Optional[str] = None

class PaymentMethodToggle(BaseModel):
    payment_method_id: int
    enabled: bool

class OwnerPaymentMethodRead(PaymentMethodRead):
    enabled: bool

class OwnerRestaurantRead(RestaurantSummary):
    email: str
    phone: str
    is_active: bool
    is_approved: bool
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    subscription_plan_id: Optional[int] = None
    subscription_status: str
    subscription_expires_at: Optional[datetime] = None
    created_at: datetime

class ProductCreate(BaseModel):
    name: str = Field(min_length=3)
    description: Optional[str] = None
    category: str = Field(min_length=3)
    price: Decimal = Field(gt=0)
    discount_price: Optional[Decimal] = Field(default=None, gt=0)
    image: Optional[str] = None
    preparation_time: Optional[int] = Field(default=None, gt=0)
    is_available: bool = True

    @model_validator(mode="after")
    def _discount_below_price(self):
        if self.discount_price is not None and self.discount_price >= self.price:
            raise ValueError("Discount price must be lower than the original price")
        return self

# --- Subscriptions ---

class CheckoutSessionRequest(BaseModel):
    plan_id: Optional[int] = None

class CheckoutSessionResponse(BaseModel):
    session_id: str
    url: str
    is_mock: bool = False

class SubscriptionRead(BaseModel):
    restaurant_id: int
    subscription_status: str
    subscription_expires_at: Optional[datetime] = None
    plan: Optional[PlanRead] = None

class WebhookAck(BaseModel):
    received: bool = True
    duplicate: bool = False

# --- Admin ---

class RejectRequest(BaseModel):
    rejection_reason: str

class AdminRestaurantRead(OwnerRestaurantRead):
    owner_id: int

class CategoryCreate(BaseModel):
    name: str = Field(min_length=3, max_length=50)
    description: Optional[str] = Field(default=None, max_length=200)
    image: Optional[str] = None
    is_active: bool = True

class PaymentMethodCreate(BaseModel):
    name: str = Field(min_length=3, max_length=50)
    is_active: bool = True

class PlanCreate(BaseModel):
    name: str = Field(min_length=3)
    description: Optional[str] = None
    price: Decimal = Field(gt=0)
    interval: Literal["MONTHLY", "QUARTERLY", "SEMIANNUAL", "ANNUAL"]
    features: list[str] = Field(min_length=1)
    max_products: Optional[int] = Field(default=None, gt=0)
    max_orders: Optional[int] = Field(default=None, gt=0)
    is_active: bool = True

    @field_validator("features")
    @classmethod
    def _feature_length(cls, value: list[str]) -> list[str]:
        for feature in value:
            if len(feature) < 3:
                raise ValueError("Each feature must have at least 3 characters")
        return value

class BannerCreate(BaseModel):
    image: str = Field(min_length=1)
    title: Optional[str] = None
    description: Optional[str] = None
    link: Optional[str] = None
    location: str = "HOME"

class SiteSettingsUpdate(BaseModel):
    site_name: str = Field(min_length=1)
    logo: Optional[str] = None
    favicon: Optional[str] = None
    primary_color: str = Field(pattern=HEX_COLOR)
    secondary_color: str = Field(pattern=HEX_COLOR)
    footer_email: Optional[str] = None
    footer_phone: Optional[str] = None
    footer_address: Optional[str] = None
    footer_facebook: Optional[str] = None
    footer_instagram: Optional[str] = None
    footer_twitter: Optional[str] = None
    footer_linkedin: Optional[str] = None
    stripe_prod_secret_key: Optional[str] = None
    stripe_prod_publishable_key: Optional[str] = None
    stripe_test_secret_key: Optional[str] = None
    stripe_test_publishable_key: Optional[str] = None
    is_stripe_sandbox: bool = True

    @field_validator("footer_email")
    @classmethod
    def _footer_email(cls, value: Optional[str]) -> Optional[str]:
        # Empty string clears the field
        if value and ("@" not in value or "." not in value.split("@")[-1]):
            raise ValueError("Invalid footer email")
        return value or None

class SiteSettingsRead(BaseModel):
    site_name: str
    logo: Optional[str] = None
    favicon: Optional[str] = None
    primary_color: str
    secondary_color: str
    footer_email: Optional[str] = None
    footer_phone: Optional[str] = None
    footer_address: Optional[str] = None
    footer_facebook: Optional[str] = None
    footer_instagram: Optional[str] = None
    footer_twitter: Optional[str] = None
    footer_linkedin: Optional[str] = None
    stripe_prod_secret_key: Optional[str] = None
    stripe_prod_publishable_key: Optional[str] = None
    stripe_test_secret_key: Optional[str] = None
    stripe_test_publishable_key: Optional[str] = None
    is_stripe_sandbox: bool
    class Config:
        from_attributes = True

class ExpireResult(BaseModel):
    expired: int

class ActionResult(BaseModel):
    success: bool = True
    message: Optional[str] = None
