from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.application.account_service import AccountService
from marketplace.application.address_service import AddressService
from marketplace.application.schemas import (
    AddressCreate,
    AddressRead,
    LoginRequest,
    ProfileUpdate,
    SignupRequest,
    TokenResponse,
    UpgradeRequest,
    UserRead,
)
from marketplace.domain.models import User
from marketplace.infrastructure.db import get_db
from .deps import get_current_user

router = APIRouter(tags=["accounts"])


@router.post("/auth/signup", response_model=UserRead, status_code=201)
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    return AccountService(db).signup(payload)


@router.post("/auth/token", response_model=TokenResponse)
def issue_token(payload: LoginRequest, db: Session = Depends(get_db)):
    return {"access_token": AccountService(db).authenticate(payload), "token_type": "bearer"}


@router.get("/api/me", response_model=UserRead)
def me(user: User = Depends(get_current_user)):
    return user


@router.put("/api/me", response_model=UserRead)
def update_profile(payload: ProfileUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return AccountService(db).update_profile(user, payload)


@router.post("/api/me/upgrade", response_model=UserRead)
def upgrade_to_restaurant(
    payload: Optional[UpgradeRequest] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Turn a customer account into a restaurant owner with a pending restaurant."""
    name = payload.restaurant_name if payload else None
    return AccountService(db).upgrade_to_restaurant(user, name)


# --- Addresses ---

@router.get("/api/addresses", response_model=list[AddressRead])
def list_addresses(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return AddressService(db).list(user)


@router.post("/api/addresses", response_model=AddressRead, status_code=201)
def create_address(payload: AddressCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return AddressService(db).create(user, payload)


@router.put("/api/addresses/{address_id}", response_model=AddressRead)
def update_address(
    address_id: int, payload: AddressCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return AddressService(db).update(user, address_id, payload)


@router.post("/api/addresses/{address_id}/default", response_model=AddressRead)
def set_default_address(address_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return AddressService(db).set_default(user, address_id)


@router.delete("/api/addresses/{address_id}", status_code=204)
def delete_address(address_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    AddressService(db).delete(user, address_id)
    return None
