from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.application.catalog_service import CatalogService
from marketplace.application.order_service import OrderService
from marketplace.application.review_service import ReviewService
from marketplace.application.schemas import (
    CheckoutData,
    OrderCreate,
    OrderCreated,
    OrderRead,
    ReviewCreate,
    ReviewRead,
)
from marketplace.domain.models import User
from marketplace.infrastructure.db import get_db
from .deps import get_current_user, get_optional_user

router = APIRouter(prefix="/api", tags=["orders"])


@router.get("/checkout/data", response_model=CheckoutData)
def checkout_data(
    restaurant_id: int,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Delivery settings, payment methods and the caller's addresses for the checkout form."""
    return CatalogService(db).checkout_data(restaurant_id, user)


@router.post("/orders", response_model=OrderCreated, status_code=201)
def create_order(payload: OrderCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = OrderService(db).create(user, payload)
    return {"success": True, "order_id": order.id, "order_number": order.order_number}


@router.get("/orders", response_model=list[OrderRead])
def list_my_orders(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return OrderService(db).list_for_user(user)


@router.get("/orders/{order_number}", response_model=OrderRead)
def get_my_order(order_number: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return OrderService(db).get_for_user(user, order_number)


@router.post("/reviews", response_model=ReviewRead, status_code=201)
def create_review(payload: ReviewCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ReviewService(db).create(user, payload)
