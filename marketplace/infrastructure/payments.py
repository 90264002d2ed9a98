"""Stripe integration for subscription billing."""
import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

import stripe
from sqlalchemy.orm import Session

from marketplace.core_settings import get_settings
from marketplace.domain.models import PlanInterval, SiteSettings, SubscriptionPlan

logger = logging.getLogger(__name__)

# Plan interval -> Stripe recurring (interval, interval_count)
STRIPE_INTERVALS = {
    PlanInterval.MONTHLY.value: ("month", 1),
    PlanInterval.QUARTERLY.value: ("month", 3),
    PlanInterval.SEMIANNUAL.value: ("month", 6),
    PlanInterval.ANNUAL.value: ("year", 1),
}


@dataclass
class CheckoutSession:
    session_id: str
    url: str
    is_mock: bool = False


def resolve_stripe_keys(db: Session) -> tuple[str, str]:
    """Return (secret_key, publishable_key).

    Keys stored in site settings for the selected mode (sandbox or
    production) win over the environment keys.
    """
    settings = get_settings()
    site = db.query(SiteSettings).first()
    secret = publishable = None
    if site:
        if site.is_stripe_sandbox:
            secret, publishable = site.stripe_test_secret_key, site.stripe_test_publishable_key
        else:
            secret, publishable = site.stripe_prod_secret_key, site.stripe_prod_publishable_key
    return (secret or settings.STRIPE_SECRET_KEY or "", publishable or settings.STRIPE_PUBLISHABLE_KEY or "")


class StripeGateway:
    def __init__(self, secret_key: str, webhook_secret: str = "", currency: str = "brl", app_url: str = ""):
        self.secret_key = secret_key or ""
        self.webhook_secret = webhook_secret
        self.currency = currency
        self.app_url = app_url.rstrip("/")

    @classmethod
    def from_db(cls, db: Session) -> "StripeGateway":
        settings = get_settings()
        secret_key, _ = resolve_stripe_keys(db)
        return cls(
            secret_key=secret_key,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            currency=settings.STRIPE_CURRENCY,
            app_url=settings.APP_URL,
        )

    @property
    def is_mock(self) -> bool:
        return not self.secret_key or "dummy" in self.secret_key

    @property
    def success_url(self) -> str:
        return f"{self.app_url}/restaurant/dashboard/subscription/success"

    @property
    def cancel_url(self) -> str:
        return f"{self.app_url}/plans"

    def create_subscription_checkout(
        self, plan: SubscriptionPlan, restaurant_id: int, user_id: int
    ) -> CheckoutSession:
        metadata = {
            "restaurant_id": str(restaurant_id),
            "plan_id": str(plan.id),
            "user_id": str(user_id),
        }

        if self.is_mock:
            session_id = f"mock_session_{int(time.time() * 1000)}"
            logger.info(f"Mocking Stripe checkout session {session_id} for restaurant {restaurant_id}")
            return CheckoutSession(
                session_id=session_id,
                url=f"{self.success_url}?session_id={session_id}&mock=true",
                is_mock=True,
            )

        interval, interval_count = STRIPE_INTERVALS[plan.interval]
        session = stripe.checkout.Session.create(
            api_key=self.secret_key,
            mode="subscription",
            payment_method_types=["card"],
            line_items=[
                {
                    "quantity": 1,
                    "price_data": {
                        "currency": self.currency,
                        "unit_amount": int(round(plan.price * 100)),
                        "product_data": {
                            "name": plan.name,
                            "description": (plan.description or plan.name)[:200],
                        },
                        "recurring": {
                            "interval": interval,
                            "interval_count": interval_count,
                        },
                    },
                }
            ],
            success_url=self.success_url + "?session_id={CHECKOUT_SESSION_ID}",
            cancel_url=self.cancel_url,
            client_reference_id=str(restaurant_id),
            metadata=metadata,
            # Copied onto the subscription so invoice/subscription events carry it
            subscription_data={"metadata": metadata},
        )
        return CheckoutSession(session_id=session.id, url=session.url)

    def construct_event(self, payload: bytes, signature: str) -> dict:
        """Verify the signature header and parse the event into plain dicts.

        Raises ValueError or stripe.SignatureVerificationError.
        """
        if not self.webhook_secret:
            raise ValueError("Webhook secret not configured")
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(payload, signature, self.webhook_secret)
        return json.loads(payload)

    def retrieve_subscription_metadata(self, subscription_id: str) -> Optional[dict]:
        if self.is_mock or not subscription_id:
            return None
        subscription = stripe.Subscription.retrieve(subscription_id, api_key=self.secret_key)
        return dict(subscription.get("metadata") or {})
