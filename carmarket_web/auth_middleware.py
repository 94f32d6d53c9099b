"""
Auth "middleware" helpers.

``require_login`` is a FastAPI dependency that:
- reads the access token from the ``auth`` cookie or an Authorization header
- verifies it and resolves the current user from the record store
- raises 401 when the token is missing, invalid, expired, or its user is gone
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request

from carmarket.auth.directory import UserDirectory
from carmarket.auth.models import User
from carmarket.auth.service import SessionService
from carmarket.cars.service import CarService
from carmarket.core.config import Settings
from carmarket.events.feed import EventFeed
from carmarket.ledger.audit import AuditLog
from carmarket.ledger.service import LedgerService
from carmarket.stores.record_store import RecordStore
from carmarket.utils.exceptions import AuthenticationError, ForbiddenError

COOKIE_ACCESS = "auth"
COOKIE_REFRESH = "refresh"


@dataclass
class Services:
    """Everything a request handler may need; built once per app."""
    settings: Settings
    store: RecordStore
    sessions: SessionService
    users: UserDirectory
    cars: CarService
    ledger: LedgerService
    audit: AuditLog
    feed: EventFeed


def get_services(request: Request) -> Services:
    return request.app.state.services


def extract_access_token(request: Request) -> Optional[str]:
    # Prefer cookie for browser flows
    token = request.cookies.get(COOKIE_ACCESS)
    if token:
        return token
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip()
    return None


def extract_refresh_token(request: Request) -> Optional[str]:
    return request.cookies.get(COOKIE_REFRESH) or None


def require_login(request: Request) -> User:
    """Dependency for protected routes."""
    user = get_services(request).sessions.resolve_user(extract_access_token(request))
    if user is None:
        raise AuthenticationError("Not authenticated")
    return user


def require_admin(current_user: User = Depends(require_login)) -> User:
    if current_user.role != "admin":
        raise ForbiddenError("Admin only")
    return current_user
