from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.application.admin_service import AdminService
from marketplace.application.schemas import (
    AdminRestaurantRead,
    BannerCreate,
    BannerRead,
    CategoryCreate,
    CategoryRead,
    ExpireResult,
    OrderRead,
    PaymentMethodCreate,
    PaymentMethodRead,
    PlanCreate,
    PlanRead,
    RejectRequest,
    RoleChange,
    SiteSettingsRead,
    SiteSettingsUpdate,
    UserRead,
)
from marketplace.application.subscription_service import SubscriptionService
from marketplace.domain.models import User, UserRole
from marketplace.infrastructure.db import get_db
from .deps import require_role

router = APIRouter(prefix="/api/admin", tags=["admin"])
admin_only = require_role(UserRole.ADMIN)


# --- Restaurants ---

@router.get("/restaurants", response_model=list[AdminRestaurantRead])
def list_restaurants(status: Optional[str] = None, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    """All restaurants; status is one of pending, approved, rejected, active, inactive."""
    return AdminService(db).list_restaurants(status)


@router.get("/restaurants/{restaurant_id}", response_model=AdminRestaurantRead)
def get_restaurant(restaurant_id: int, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).get_restaurant(restaurant_id)


@router.post("/restaurants/{restaurant_id}/approve", response_model=AdminRestaurantRead)
def approve_restaurant(restaurant_id: int, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).approve_restaurant(restaurant_id)


@router.post("/restaurants/{restaurant_id}/reject", response_model=AdminRestaurantRead)
def reject_restaurant(
    restaurant_id: int, payload: RejectRequest, _: User = Depends(admin_only), db: Session = Depends(get_db)
):
    return AdminService(db).reject_restaurant(restaurant_id, payload.rejection_reason)


@router.post("/restaurants/{restaurant_id}/suspend", response_model=AdminRestaurantRead)
def suspend_restaurant(restaurant_id: int, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).set_restaurant_active(restaurant_id, False)


@router.post("/restaurants/{restaurant_id}/activate", response_model=AdminRestaurantRead)
def activate_restaurant(restaurant_id: int, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).set_restaurant_active(restaurant_id, True)


@router.post("/subscriptions/expire", response_model=ExpireResult)
def expire_subscriptions(_: User = Depends(admin_only), db: Session = Depends(get_db)):
    """Mark lapsed ACTIVE subscriptions as EXPIRED; meant for a cron job or manual run."""
    return {"expired": SubscriptionService(db).expire_subscriptions()}


# --- Categories ---

@router.get("/categories", response_model=list[CategoryRead])
def list_categories(_: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).list_categories()


@router.post("/categories", response_model=CategoryRead, status_code=201)
def create_category(payload: CategoryCreate, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).create_category(payload)


@router.put("/categories/{category_id}", response_model=CategoryRead)
def update_category(
    category_id: int, payload: CategoryCreate, _: User = Depends(admin_only), db: Session = Depends(get_db)
):
    return AdminService(db).update_category(category_id, payload)


@router.delete("/categories/{category_id}", status_code=204)
def delete_category(category_id: int, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    AdminService(db).delete_category(category_id)
    return None


@router.post("/categories/{category_id}/toggle", response_model=CategoryRead)
def toggle_category(category_id: int, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).toggle_category(category_id)


# --- Payment methods ---

@router.get("/payment-methods", response_model=list[PaymentMethodRead])
def list_payment_methods(_: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).list_payment_methods()


@router.post("/payment-methods", response_model=PaymentMethodRead, status_code=201)
def create_payment_method(payload: PaymentMethodCreate, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).create_payment_method(payload)


@router.put("/payment-methods/{method_id}", response_model=PaymentMethodRead)
def update_payment_method(
    method_id: int, payload: PaymentMethodCreate, _: User = Depends(admin_only), db: Session = Depends(get_db)
):
    return AdminService(db).update_payment_method(method_id, payload)


@router.delete("/payment-methods/{method_id}", status_code=204)
def delete_payment_method(method_id: int, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    AdminService(db).delete_payment_method(method_id)
    return None


@router.post("/payment-methods/{method_id}/toggle", response_model=PaymentMethodRead)
def toggle_payment_method(method_id: int, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).toggle_payment_method(method_id)


# --- Plans ---

@router.get("/plans", response_model=list[PlanRead])
def list_plans(_: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).list_plans()


@router.post("/plans", response_model=PlanRead, status_code=201)
def create_plan(payload: PlanCreate, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).create_plan(payload)


@router.put("/plans/{plan_id}", response_model=PlanRead)
def update_plan(plan_id: int, payload: PlanCreate, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).update_plan(plan_id, payload)


@router.post("/plans/{plan_id}/toggle", response_model=PlanRead)
def toggle_plan(plan_id: int, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).toggle_plan(plan_id)


# --- Users ---

@router.get("/users", response_model=list[UserRead])
def list_users(_: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).list_users()


@router.put("/users/{user_id}/role", response_model=UserRead)
def change_user_role(
    user_id: int, payload: RoleChange, admin: User = Depends(admin_only), db: Session = Depends(get_db)
):
    return AdminService(db).change_role(admin, user_id, payload.role)


# --- Site settings ---

@router.get("/settings", response_model=SiteSettingsRead)
def get_site_settings(_: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).get_site_settings()


@router.put("/settings", response_model=SiteSettingsRead)
def update_site_settings(payload: SiteSettingsUpdate, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).update_site_settings(payload)


# --- Banners ---

@router.get("/banners", response_model=list[BannerRead])
def list_banners(_: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).list_banners()


@router.post("/banners", response_model=BannerRead, status_code=201)
def create_banner(payload: BannerCreate, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).create_banner(payload)


@router.delete("/banners/{banner_id}", status_code=204)
def delete_banner(banner_id: int, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    AdminService(db).delete_banner(banner_id)
    return None


@router.post("/banners/{banner_id}/toggle", response_model=BannerRead)
def toggle_banner(banner_id: int, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).toggle_banner(banner_id)


# --- Orders ---

@router.get("/orders", response_model=list[OrderRead])
def list_orders(status: Optional[str] = None, _: User = Depends(admin_only), db: Session = Depends(get_db)):
    return AdminService(db).list_orders(status)

