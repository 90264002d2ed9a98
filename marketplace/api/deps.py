from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from marketplace.application.errors import AuthenticationRequired, PermissionDenied
from marketplace.auth_local import decode_access_token
from marketplace.domain.models import User, UserRole
from marketplace.infrastructure.db import get_db

BEARER_PREFIX = "Bearer "


def _token_user(request: Request, db: Session) -> Optional[User]:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        return None
    token_data = decode_access_token(auth_header.split(" ", 1)[1])
    if not token_data:
        raise AuthenticationRequired("Invalid token")
    user = db.get(User, int(token_data["sub"]))
    if not user:
        raise AuthenticationRequired("Invalid token")
    return user


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    return _token_user(request, db)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    user = _token_user(request, db)
    if user is None:
        raise AuthenticationRequired("Missing token")
    return user


def require_role(*roles: UserRole):
    """Dependency factory: the caller must hold one of `roles`.

    The role is read from the database row, not the token, so a role change
    applies to tokens issued before it.
    """
    allowed = {r.value for r in roles}

    def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise PermissionDenied("Access denied")
        return user

    return _check
