"""Restaurant owner dashboard: orders, polling, settings, products and reviews."""
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from marketplace.application.order_service import OrderService
from marketplace.application.product_service import ProductService
from marketplace.application.restaurant_service import RestaurantService
from marketplace.application.review_service import ReviewService
from marketplace.application.schemas import (
    ActionResult,
    CancelRequest,
    NewOrdersCount,
    NewOrdersSince,
    OrderRead,
    OwnerPaymentMethodRead,
    OwnerRestaurantRead,
    PaymentMethodToggle,
    ProductCreate,
    ProductRead,
    RestaurantImagesUpdate,
    RestaurantInfoUpdate,
    ReviewRead,
    TransitionResult,
)
from marketplace.domain.models import User
from marketplace.infrastructure.db import get_db
from .deps import get_current_user

router = APIRouter(prefix="/api/restaurant", tags=["restaurant"])

NO_STORE = "no-store, no-cache, must-revalidate, max-age=0"


# --- Orders ---

@router.get("/orders", response_model=list[OrderRead])
def list_restaurant_orders(
    status: Optional[str] = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return OrderService(db).list_for_restaurant(user, status)


@router.get("/orders/new", response_model=NewOrdersCount)
def has_new_orders(response: Response, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """PENDING orders created in the last few seconds."""
    response.headers["Cache-Control"] = NO_STORE
    return OrderService(db).recent_pending_count(user)


@router.get("/orders/check-new", response_model=NewOrdersSince)
def check_new_orders(
    response: Response,
    restaurant_id: Optional[int] = None,
    since: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """PENDING orders created after the client's last seen timestamp."""
    response.headers["Cache-Control"] = NO_STORE
    return OrderService(db).pending_since(user, restaurant_id, since)


def _transition_result(order, message: str) -> dict:
    return {"success": True, "message": message, "order": order}


@router.post("/orders/{order_id}/confirm", response_model=TransitionResult)
def confirm_order(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _transition_result(OrderService(db).confirm(user, order_id), "Order confirmed")


@router.post("/orders/{order_id}/prepare", response_model=TransitionResult)
def start_preparing_order(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _transition_result(OrderService(db).start_preparing(user, order_id), "Order in preparation")


@router.post("/orders/{order_id}/ready", response_model=TransitionResult)
def mark_order_ready(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _transition_result(OrderService(db).mark_ready(user, order_id), "Order ready")


@router.post("/orders/{order_id}/dispatch", response_model=TransitionResult)
def dispatch_order(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _transition_result(OrderService(db).dispatch(user, order_id), "Order out for delivery")


@router.post("/orders/{order_id}/complete", response_model=TransitionResult)
def complete_order(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _transition_result(OrderService(db).complete(user, order_id), "Order completed")


@router.post("/orders/{order_id}/cancel", response_model=TransitionResult)
def cancel_order(
    order_id: int, payload: CancelRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return _transition_result(OrderService(db).cancel(user, order_id, payload.cancel_reason), "Order cancelled")


# --- Settings ---

@router.get("/me", response_model=OwnerRestaurantRead)
def get_my_restaurant(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return RestaurantService(db).get_mine(user)


@router.put("/me", response_model=OwnerRestaurantRead)
def update_restaurant_info(
    payload: RestaurantInfoUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return RestaurantService(db).update_info(user, payload)


@router.put("/me/images", response_model=OwnerRestaurantRead)
def update_restaurant_images(
    payload: RestaurantImagesUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return RestaurantService(db).update_images(user, payload)


@router.get("/payment-methods", response_model=list[OwnerPaymentMethodRead])
def list_payment_methods(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return RestaurantService(db).list_payment_methods(user)


@router.post("/payment-methods/toggle", response_model=ActionResult)
def toggle_payment_method(
    payload: PaymentMethodToggle, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    RestaurantService(db).toggle_payment_method(user, payload.payment_method_id, payload.enabled)
    return {"success": True}


# --- Products ---

@router.get("/products", response_model=list[ProductRead])
def list_products(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ProductService(db).list(user)


@router.post("/products", response_model=ProductRead, status_code=201)
def create_product(payload: ProductCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ProductService(db).create(user, payload)


@router.get("/products/{product_id}", response_model=ProductRead)
def get_product(product_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ProductService(db).get(user, product_id)


@router.put("/products/{product_id}", response_model=ProductRead)
def update_product(
    product_id: int, payload: ProductCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return ProductService(db).update(user, product_id, payload)


@router.delete("/products/{product_id}", status_code=204)
def delete_product(product_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ProductService(db).delete(user, product_id)
    return None


@router.post("/products/{product_id}/toggle", response_model=ProductRead)
def toggle_product_availability(
    product_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return ProductService(db).toggle_availability(user, product_id)


# --- Reviews ---

@router.get("/reviews", response_model=list[ReviewRead])
def list_my_reviews(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    restaurant = RestaurantService(db).get_mine(user)
    return ReviewService(db).list_for_restaurant(restaurant.id)
