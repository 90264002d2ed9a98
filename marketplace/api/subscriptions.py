from fastapi import APIRouter, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from marketplace.application.schemas import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    SubscriptionRead,
    WebhookAck,
)
from marketplace.application.subscription_service import SubscriptionService
from marketplace.domain.models import User
from marketplace.infrastructure.db import get_db
from .deps import get_current_user

router = APIRouter(prefix="/api", tags=["subscriptions"])


@router.post("/create-checkout-session", response_model=CheckoutSessionResponse)
def create_checkout_session(
    payload: CheckoutSessionRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    session = SubscriptionService(db).create_checkout_session(user, payload.plan_id)
    return {"session_id": session.session_id, "url": session.url, "is_mock": session.is_mock}


@router.get("/restaurant/subscription", response_model=SubscriptionRead)
def subscription_status(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return SubscriptionService(db).subscription_status(user)


def _handle_webhook(db: Session, payload: bytes, signature: str) -> dict:
    return SubscriptionService(db).handle_webhook(payload, signature)


@router.post("/webhooks/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(default=None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
):
    # Signature is computed over the exact bytes Stripe sent
    payload = await request.body()
    # Row locks, commits and Stripe API calls block; keep them off the event loop
    return await run_in_threadpool(_handle_webhook, db, payload, stripe_signature)
