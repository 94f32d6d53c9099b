"""
Development faucet.

Only available with ENVIRONMENT=development. Callers must also present
``X-Faucet-Secret`` when FAUCET_SECRET is configured, and connect from one
of FAUCET_ALLOWED_HOSTS.
"""

from __future__ import annotations

import hmac
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from carmarket.auth.models import User
from carmarket.utils.exceptions import ForbiddenError, NotFoundError
from carmarket.utils.logger import get_logger

from .auth_middleware import get_services, require_login
from .schemas import FaucetRequest

logger = get_logger(__name__)

router = APIRouter(tags=["faucet"])


def require_development(request: Request) -> None:
    if not get_services(request).settings.is_development:
        raise NotFoundError("Not found")


def check_faucet_access(request: Request) -> None:
    settings = get_services(request).settings
    if settings.faucet_secret:
        presented = request.headers.get("X-Faucet-Secret") or ""
        if not hmac.compare_digest(presented.encode(), settings.faucet_secret.encode()):
            raise ForbiddenError("Faucet secret required")
    host = request.client.host if request.client else ""
    if host not in settings.faucet_allowed_hosts:
        logger.warning("Faucet request from disallowed host", host=host)
        raise ForbiddenError("Faucet not available from this host")


@router.post("/faucet", dependencies=[Depends(require_development)])
def faucet(
    body: FaucetRequest,
    request: Request,
    current_user: User = Depends(require_login),
) -> Dict[str, Any]:
    """Top up the caller's own balance."""
    check_faucet_access(request)
    user = get_services(request).ledger.faucet(current_user.id, body.amount)
    return {"success": True, "userId": user.id, "balance": user.balance}
