"""
FastAPI routes for authentication.

Prefix: /auth

Tokens travel in two HttpOnly cookies: ``auth`` (access, 15 minutes) and
``refresh`` (7 days). Every successful register/login/refresh replaces
both.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from carmarket.auth.models import AuthResult, User
from carmarket.auth.tokens import ACCESS_TTL_SECONDS, REFRESH_TTL_SECONDS
from carmarket.core.config import Settings

from .auth_middleware import (
    COOKIE_ACCESS,
    COOKIE_REFRESH,
    extract_refresh_token,
    get_services,
    require_login,
)
from .schemas import Credentials

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_cookie(response: Response, settings: Settings, key: str, value: str, max_age: int) -> None:
    response.set_cookie(
        key=key,
        value=value,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def set_auth_cookies(response: Response, settings: Settings, result: AuthResult) -> None:
    _set_cookie(response, settings, COOKIE_ACCESS, result.access_token, ACCESS_TTL_SECONDS)
    _set_cookie(response, settings, COOKIE_REFRESH, result.refresh_token, REFRESH_TTL_SECONDS)


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    _set_cookie(response, settings, COOKIE_ACCESS, "", 0)
    _set_cookie(response, settings, COOKIE_REFRESH, "", 0)


def _session_response(request: Request, result: AuthResult, status_code: int = 200) -> JSONResponse:
    response = JSONResponse(
        status_code=status_code,
        content={"success": True, "user": result.user.to_public()},
    )
    set_auth_cookies(response, get_services(request).settings, result)
    return response


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(body: Credentials, request: Request) -> Any:
    """Create an account and start a session."""
    result = get_services(request).sessions.register(body.username, body.password)
    return _session_response(request, result, status.HTTP_201_CREATED)


@router.post("/login")
def login(body: Credentials, request: Request) -> Any:
    result = get_services(request).sessions.login(body.username, body.password)
    return _session_response(request, result)


@router.post("/refresh")
def refresh(request: Request) -> Any:
    """Rotate the refresh token; the presented one stops working."""
    result = get_services(request).sessions.refresh(extract_refresh_token(request))
    return _session_response(request, result)


@router.post("/logout")
def logout(request: Request) -> Any:
    """Revoke the refresh lineage if there is one. Always succeeds."""
    services = get_services(request)
    services.sessions.logout(extract_refresh_token(request))
    response = JSONResponse({"success": True})
    clear_auth_cookies(response, services.settings)
    return response


@router.get("/me")
def me(current_user: User = Depends(require_login)) -> Dict[str, Any]:
    return {"success": True, "user": current_user.to_public()}
