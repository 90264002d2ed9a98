"""Subscription checkout and reconciliation of Stripe webhook events."""
from datetime import datetime
from typing import Optional

import pendulum
import stripe
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.core.logging_config import get_logger
from marketplace.domain.models import (
    PlanInterval,
    Restaurant,
    SubscriptionPlan,
    SubscriptionStatus,
    User,
    WebhookEvent,
    utcnow,
)
from marketplace.infrastructure.payments import CheckoutSession, StripeGateway
from .errors import NotFound, ValidationFailed
from .restaurant_service import owned_restaurant

logger = get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"

INTERVAL_MONTHS = {
    PlanInterval.MONTHLY.value: 1,
    PlanInterval.QUARTERLY.value: 3,
    PlanInterval.SEMIANNUAL.value: 6,
}


def add_interval(start: datetime, interval: str) -> datetime:
    """Naive UTC `start` advanced by one billing interval (calendar aware)."""
    moment = pendulum.instance(start, tz="UTC")
    if interval == PlanInterval.ANNUAL.value:
        moment = moment.add(years=1)
    elif interval in INTERVAL_MONTHS:
        moment = moment.add(months=INTERVAL_MONTHS[interval])
    else:
        raise ValueError(f"Unknown plan interval: {interval}")
    return moment.naive()


def renewed_expiry(current: Optional[datetime], interval: str, now: Optional[datetime] = None) -> datetime:
    """An unexpired subscription is extended from its end, anything else from now."""
    now = now or utcnow()
    start = current if current and current > now else now
    return add_interval(start, interval)


def _as_int(value) -> Optional[int]:
    if value in (None, ""):
        return None
    return int(value)


class SubscriptionService:
    def __init__(self, db: Session, gateway: Optional[StripeGateway] = None):
        self.db = db
        self.gateway = gateway or StripeGateway.from_db(db)

    # --- Checkout ---

    def create_checkout_session(self, user: User, plan_id: Optional[int]) -> CheckoutSession:
        restaurant = owned_restaurant(self.db, user)
        if not plan_id:
            raise ValidationFailed("Plan ID required")
        plan = self.db.get(SubscriptionPlan, plan_id)
        if not plan or not plan.is_active:
            raise NotFound("Plan not found or inactive")

        session = self.gateway.create_subscription_checkout(plan, restaurant.id, user.id)
        logger.info(
            f"Checkout session {session.session_id} created for restaurant {restaurant.id} plan {plan.id}"
        )
        return session

    def subscription_status(self, user: User) -> dict:
        restaurant = owned_restaurant(self.db, user)
        return {
            "restaurant_id": restaurant.id,
            "subscription_status": restaurant.subscription_status,
            "subscription_expires_at": restaurant.subscription_expires_at,
            "plan": restaurant.subscription_plan,
        }

    # --- Webhooks ---

    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> dict:
        """Verify and apply a Stripe event.

        Signature problems raise ValidationFailed. Failures while applying a
        recognised event are logged and acknowledged so Stripe stops retrying.
        Each applied event is recorded in the webhook ledger in the same
        transaction as its restaurant update; a repeated event id is
        acknowledged without being applied again.
        """
        if not signature:
            raise ValidationFailed("Webhook Error: missing Stripe-Signature header")
        try:
            event = self.gateway.construct_event(payload, signature)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise ValidationFailed(f"Webhook Error: {e}")

        event_id = event["id"]
        event_type = event["type"]
        handler = {
            CHECKOUT_COMPLETED: self._on_checkout_completed,
            INVOICE_PAYMENT_FAILED: self._on_payment_failed,
            SUBSCRIPTION_DELETED: self._on_subscription_deleted,
        }.get(event_type)
        if handler is None:
            logger.debug(f"Ignoring Stripe event {event_id} of type {event_type}")
            return {"received": True, "duplicate": False}

        if self.db.query(WebhookEvent.id).filter(WebhookEvent.event_id == event_id).first():
            logger.info(f"Stripe event {event_id} already processed")
            return {"received": True, "duplicate": True}

        try:
            restaurant_id = handler(event["data"]["object"])
            self.db.add(WebhookEvent(event_id=event_id, event_type=event_type, restaurant_id=restaurant_id))
            self.db.commit()
        except IntegrityError:
            # Concurrent delivery of the same event won the ledger insert
            self.db.rollback()
            logger.info(f"Stripe event {event_id} already processed")
            return {"received": True, "duplicate": True}
        except Exception:
            self.db.rollback()
            logger.exception(f"Error processing Stripe event {event_id} ({event_type})")
        return {"received": True, "duplicate": False}

    def _locked_restaurant(self, restaurant_id: Optional[int]) -> Optional[Restaurant]:
        if restaurant_id is None:
            return None
        return (
            self.db.query(Restaurant)
            .filter(Restaurant.id == restaurant_id)
            .with_for_update()
            .first()
        )

    def _restaurant_for_subscription(self, subscription_id: Optional[str], metadata=None) -> Optional[Restaurant]:
        if subscription_id:
            restaurant = (
                self.db.query(Restaurant)
                .filter(Restaurant.stripe_subscription_id == subscription_id)
                .with_for_update()
                .first()
            )
            if restaurant:
                return restaurant
        if metadata is None and subscription_id:
            metadata = self.gateway.retrieve_subscription_metadata(subscription_id)
        return self._locked_restaurant(_as_int((metadata or {}).get("restaurant_id")))

    def _on_checkout_completed(self, session) -> Optional[int]:
        metadata = session.get("metadata") or {}
        restaurant_id = _as_int(metadata.get("restaurant_id"))
        plan_id = _as_int(metadata.get("plan_id"))
        if restaurant_id is None or plan_id is None:
            logger.warning(f"Checkout session {session.get('id')} has no restaurant/plan metadata")
            return None

        plan = self.db.get(SubscriptionPlan, plan_id)
        restaurant = self._locked_restaurant(restaurant_id)
        if not plan or not restaurant:
            logger.warning(f"Checkout session {session.get('id')} references unknown restaurant or plan")
            return None

        restaurant.subscription_plan_id = plan.id
        restaurant.subscription_status = SubscriptionStatus.ACTIVE.value
        restaurant.subscription_expires_at = renewed_expiry(restaurant.subscription_expires_at, plan.interval)
        restaurant.is_active = True
        if session.get("subscription"):
            restaurant.stripe_subscription_id = session.get("subscription")
        logger.info(
            f"Subscription activated for restaurant {restaurant.id} until "
            f"{restaurant.subscription_expires_at.isoformat()}"
        )
        return restaurant.id

    def _on_payment_failed(self, invoice) -> Optional[int]:
        subscription_id = invoice.get("subscription")
        if not subscription_id:
            # Newer API versions nest the subscription under the invoice parent
            details = (invoice.get("parent") or {}).get("subscription_details") or {}
            subscription_id = details.get("subscription")
        restaurant = self._restaurant_for_subscription(subscription_id)
        if not restaurant:
            logger.warning(f"Payment failure for unknown subscription {subscription_id}")
            return None
        restaurant.subscription_status = SubscriptionStatus.PAYMENT_FAILED.value
        logger.info(f"Subscription payment failed for restaurant {restaurant.id}")
        return restaurant.id

    def _on_subscription_deleted(self, subscription) -> Optional[int]:
        restaurant = self._restaurant_for_subscription(
            subscription.get("id"), subscription.get("metadata") or {}
        )
        if not restaurant:
            logger.warning(f"Deleted subscription {subscription.get('id')} matches no restaurant")
            return None
        restaurant.subscription_status = SubscriptionStatus.CANCELLED.value
        restaurant.is_active = False
        logger.info(f"Subscription cancelled for restaurant {restaurant.id}")
        return restaurant.id

    # --- Expiry ---

    def expire_subscriptions(self) -> int:
        """Mark ACTIVE subscriptions past their expiry as EXPIRED."""
        count = (
            self.db.query(Restaurant)
            .filter(
                Restaurant.subscription_status == SubscriptionStatus.ACTIVE.value,
                Restaurant.subscription_expires_at.is_not(None),
                Restaurant.subscription_expires_at < utcnow(),
            )
            .update({Restaurant.subscription_status: SubscriptionStatus.EXPIRED.value}, synchronize_session=False)
        )
        self.db.commit()
        if count:
            logger.info(f"Expired {count} subscriptions")
        return count
