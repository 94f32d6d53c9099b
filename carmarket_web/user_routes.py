"""
User routes.

- Admins: list everyone, create users (with an optional opening balance,
  applied as an admin fund), change roles, delete users
- Normal users: see and update only themselves
"""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request, Response, status

from carmarket.auth.models import User
from carmarket.ledger.service import ADMIN_FUND_LIMIT
from carmarket.utils.exceptions import ValidationError
from carmarket.utils.validation import is_finite_number

from .auth_middleware import get_services, require_admin, require_login
from .schemas import UserCreate, UserUpdate

router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
def list_users(request: Request, current_user: User = Depends(require_login)) -> List[Dict[str, Any]]:
    return [u.to_public() for u in get_services(request).users.visible_to(current_user)]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserCreate,
    request: Request,
    current_user: User = Depends(require_admin),
) -> Dict[str, Any]:
    if not is_finite_number(body.balance) or not 0 <= body.balance <= ADMIN_FUND_LIMIT:
        raise ValidationError(f"Opening balance must be within [0, {ADMIN_FUND_LIMIT}]")
    services = get_services(request)
    user = services.sessions.create_user(body.username, body.password, role=body.role)
    if body.balance:
        user = services.ledger.admin_fund(current_user, user.id, body.balance)
    return user.to_public()


@router.put("/{user_id}")
def update_user(
    user_id: str,
    body: UserUpdate,
    request: Request,
    current_user: User = Depends(require_login),
) -> Dict[str, Any]:
    user = get_services(request).users.update_user(
        current_user,
        user_id,
        username=body.username,
        password=body.password,
        role=body.role,
    )
    return user.to_public()


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: str, request: Request, current_user: User = Depends(require_admin)) -> Response:
    get_services(request).users.delete_user(current_user, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
