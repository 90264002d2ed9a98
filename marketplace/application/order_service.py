"""Order creation, lifecycle transitions and new-order polling."""
import random
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from marketplace.core.logging_config import get_logger
from marketplace.core_settings import get_settings
from marketplace.domain.models import (
    Address,
    DeliveryType,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Product,
    Restaurant,
    User,
    UserRole,
    utcnow,
)
from marketplace.infrastructure.cache import (
    cache_get,
    cache_set,
    invalidate_restaurant_orders,
    restaurant_orders_key,
)
from .errors import AuthenticationRequired, Conflict, NotFound, PermissionDenied, ValidationFailed
from .schemas import OrderCreate, OrderRead

logger = get_logger(__name__)

TERMINAL_STATUSES = {OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value}

# Successors accepted when STRICT_ORDER_TRANSITIONS is on. READY may go straight
# to COMPLETED for pickup orders.
ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING.value: {OrderStatus.CONFIRMED.value, OrderStatus.CANCELLED.value},
    OrderStatus.CONFIRMED.value: {OrderStatus.PREPARING.value, OrderStatus.CANCELLED.value},
    OrderStatus.PREPARING.value: {OrderStatus.READY.value, OrderStatus.CANCELLED.value},
    OrderStatus.READY.value: {
        OrderStatus.DELIVERING.value,
        OrderStatus.COMPLETED.value,
        OrderStatus.CANCELLED.value,
    },
    OrderStatus.DELIVERING.value: {OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value},
    OrderStatus.COMPLETED.value: set(),
    OrderStatus.CANCELLED.value: set(),
}

ORDER_NUMBER_ATTEMPTS = 5
ORDER_INSERT_ATTEMPTS = 2
MONEY = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(value).quantize(MONEY)


class OrderService:
    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    # --- Customer side ---

    def _generate_order_number(self) -> str:
        """Generate an order number in format ORD-NNNNNN-RRRR (time digits + random suffix)."""
        for _ in range(ORDER_NUMBER_ATTEMPTS):
            candidate = f"ORD-{str(int(time.time() * 1000))[-6:]}-{random.randint(1000, 9999)}"
            exists = self.db.query(Order.id).filter(Order.order_number == candidate).first()
            if not exists:
                return candidate
        raise ValidationFailed("Could not allocate an order number, please try again")

    def create(self, user: User, data: OrderCreate) -> Order:
        if not data.items:
            raise ValidationFailed("Cart is empty")
        if data.delivery_type == DeliveryType.DELIVERY and not data.address_id:
            raise ValidationFailed("An address is required for delivery orders")
        if not data.payment_method_id:
            raise ValidationFailed("A payment method is required")

        restaurant = self.db.get(Restaurant, data.restaurant_id)
        if not restaurant:
            raise NotFound("Restaurant not found")

        product_ids = {item.product_id for item in data.items}
        products = {
            p.id: p for p in self.db.query(Product).filter(Product.id.in_(product_ids)).all()
        }

        total = Decimal("0")
        item_rows = []
        for item in data.items:
            product = products.get(item.product_id)
            if not product:
                raise ValidationFailed(f"Product not found: {item.product_id}")
            if product.restaurant_id != restaurant.id:
                raise ValidationFailed(f"Product {product.name} does not belong to the selected restaurant")
            if not product.is_available:
                raise ValidationFailed(f"Product unavailable: {product.name}")

            quantity = item.quantity if item.quantity and item.quantity > 0 else 1
            unit_price = _money(product.effective_price)
            line_total = _money(unit_price * quantity)
            total += line_total
            item_rows.append({
                "product_id": product.id,
                "product_name_snapshot": product.name,
                "quantity": quantity,
                "unit_price": unit_price,
                "total_price": line_total,
                "notes": item.notes or None,
            })

        address_snapshot = None
        address_id = None
        if data.delivery_type == DeliveryType.DELIVERY:
            address = self.db.query(Address).filter(
                Address.id == data.address_id, Address.user_id == user.id
            ).first()
            if not address:
                raise ValidationFailed("Address not found")
            address_id = address.id
            address_snapshot = address.one_line()

        if not self.db.get(PaymentMethod, data.payment_method_id):
            raise ValidationFailed("Payment method not found")

        delivery_fee = _money(restaurant.delivery_fee or 0) if data.delivery_type == DeliveryType.DELIVERY else _money(0)
        discount = _money(0)
        total = _money(total)

        fields = dict(
            user_id=user.id,
            restaurant_id=restaurant.id,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            total_amount=total,
            delivery_fee=delivery_fee,
            discount=discount,
            final_amount=total + delivery_fee - discount,
            delivery_type=data.delivery_type,
            address_id=address_id,
            delivery_address=address_snapshot,
            payment_method_id=data.payment_method_id,
            notes=data.notes or None,
        )
        order = self._insert_order(fields, item_rows)
        invalidate_restaurant_orders(restaurant.id)
        logger.info(f"Order {order.order_number} created for restaurant {restaurant.id}")
        return order

    def _insert_order(self, fields: dict, item_rows: list[dict]) -> Order:
        """Insert the order and its items, retrying once if another insert took the order number."""
        for attempt in range(ORDER_INSERT_ATTEMPTS):
            order = Order(
                order_number=self._generate_order_number(),
                items=[OrderItem(**row) for row in item_rows],
                **fields,
            )
            self.db.add(order)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.warning(f"Order number {order.order_number} collided on insert (attempt {attempt + 1})")
                continue
            except Exception:
                self.db.rollback()
                raise
            self.db.refresh(order)
            return order
        raise Conflict("Could not allocate an order number, please try again")

    def list_for_user(self, user: User):
        return (
            self.db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.user_id == user.id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )

    def get_for_user(self, user: User, order_number: str) -> Order:
        order = self.db.query(Order).filter(Order.order_number == order_number).first()
        if not order or order.user_id != user.id:
            raise NotFound("Order not found")
        return order

    # --- Restaurant side ---

    def _require_owner_role(self, actor: Optional[User]) -> User:
        if actor is None:
            raise AuthenticationRequired("Not authenticated")
        if actor.role != UserRole.RESTAURANT:
            raise PermissionDenied("Not authorized")
        return actor

    def _owned_restaurant(self, actor: User) -> Restaurant:
        restaurant = self.db.query(Restaurant).filter(Restaurant.owner_id == actor.id).first()
        if not restaurant:
            raise NotFound("Restaurant not found")
        return restaurant

    def _load_owned_order(self, actor: User, order_id: int) -> Order:
        self._require_owner_role(actor)
        order = (
            self.db.query(Order)
            .filter(Order.id == order_id)
            .with_for_update()
            .first()
        )
        if not order:
            raise NotFound("Order not found")
        if order.restaurant.owner_id != actor.id:
            raise PermissionDenied("You are not allowed to manage this order")
        return order

    def _transition(self, actor: User, order_id: int, target: OrderStatus, **changes) -> Order:
        return self._apply(actor, self._load_owned_order(actor, order_id), target, **changes)

    def _apply(self, actor: User, order: Order, target: OrderStatus, **changes) -> Order:
        current = order.status

        if self.settings.STRICT_ORDER_TRANSITIONS:
            if current == target.value:
                # Repeated request for the state the order is already in
                self.db.rollback()
                return order
            if target.value not in ALLOWED_TRANSITIONS.get(current, set()):
                self.db.rollback()
                raise ValidationFailed(f"Cannot move order from {current} to {target.value}")

        order.status = target.value
        for key, value in changes.items():
            setattr(order, key, value)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(order)
        invalidate_restaurant_orders(order.restaurant_id)
        logger.info(f"Order {order.order_number} moved from {current} to {target.value} by user {actor.id}")
        return order

    def confirm(self, actor: User, order_id: int) -> Order:
        return self._transition(actor, order_id, OrderStatus.CONFIRMED)

    def start_preparing(self, actor: User, order_id: int) -> Order:
        return self._transition(actor, order_id, OrderStatus.PREPARING)

    def mark_ready(self, actor: User, order_id: int) -> Order:
        return self._transition(actor, order_id, OrderStatus.READY)

    def dispatch(self, actor: User, order_id: int) -> Order:
        return self._transition(actor, order_id, OrderStatus.DELIVERING)

    def complete(self, actor: User, order_id: int) -> Order:
        # Completion settles payment regardless of payment method
        return self._transition(actor, order_id, OrderStatus.COMPLETED, payment_status=PaymentStatus.PAID.value)

    def cancel(self, actor: User, order_id: int, cancel_reason: str) -> Order:
        order = self._load_owned_order(actor, order_id)
        reason = (cancel_reason or "").strip()
        minimum = self.settings.CANCEL_REASON_MIN_LENGTH
        if len(reason) < minimum:
            self.db.rollback()
            raise ValidationFailed(f"The cancellation reason must have at least {minimum} characters")
        return self._apply(actor, order, OrderStatus.CANCELLED, cancel_reason=reason, cancelled_at=utcnow())

    def list_for_restaurant(self, actor: User, status: Optional[str] = None) -> list[dict]:
        """Dashboard listing, cached per restaurant and status filter."""
        self._require_owner_role(actor)
        restaurant = self._owned_restaurant(actor)
        if status and status not in OrderStatus.__members__:
            raise ValidationFailed(f"Unknown order status: {status}")

        key = restaurant_orders_key(restaurant.id, status)
        cached = cache_get(key)
        if cached is not None:
            return cached

        query = (
            self.db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.restaurant_id == restaurant.id)
        )
        if status:
            query = query.filter(Order.status == status)
        orders = query.order_by(Order.created_at.desc(), Order.id.desc()).all()
        payload = [OrderRead.model_validate(o).model_dump(mode="json") for o in orders]
        cache_set(key, payload)
        return payload

    # --- Polling ---

    def recent_pending_count(self, actor: User) -> dict:
        """PENDING orders created inside the fixed lookback window."""
        self._require_owner_role(actor)
        restaurant = self._owned_restaurant(actor)
        window_start = utcnow() - timedelta(seconds=self.settings.NEW_ORDER_LOOKBACK_SECONDS)
        count = (
            self.db.query(Order)
            .filter(
                Order.restaurant_id == restaurant.id,
                Order.status == OrderStatus.PENDING.value,
                Order.created_at >= window_start,
            )
            .count()
        )
        return {"has_new_orders": count > 0, "count": count}

    def pending_since(self, actor: User, restaurant_id: Optional[int], since: Optional[str]) -> dict:
        """PENDING orders created after a client-held timestamp."""
        self._require_owner_role(actor)
        if not restaurant_id or not since:
            raise ValidationFailed("restaurant_id and since are required")
        since_at = _parse_timestamp(since)

        restaurant = self.db.get(Restaurant, restaurant_id)
        if not restaurant or restaurant.owner_id != actor.id:
            raise PermissionDenied("Not authorized")

        orders = (
            self.db.query(Order)
            .filter(
                Order.restaurant_id == restaurant.id,
                Order.status == OrderStatus.PENDING.value,
                Order.created_at > since_at,
            )
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )
        logger.debug(f"Checked orders since {since_at.isoformat()}: {len(orders)} new")
        return {
            "has_new_orders": bool(orders),
            "count": len(orders),
            "new_orders": [
                {
                    "id": o.id,
                    "order_number": o.order_number,
                    "created_at": o.created_at,
                    "customer_name": o.user.name if o.user else None,
                }
                for o in orders
            ],
        }


def _parse_timestamp(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationFailed("since must be an ISO-8601 timestamp")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
