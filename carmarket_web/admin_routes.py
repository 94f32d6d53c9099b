"""
Admin routes: account funding and the audit log.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request

from carmarket.auth.models import User
from carmarket.ledger.audit import AUDIT_TYPES
from carmarket.utils.exceptions import ValidationError

from .auth_middleware import get_services, require_admin, require_login
from .schemas import FundRequest

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/fund")
def fund(
    body: FundRequest,
    request: Request,
    current_user: User = Depends(require_login),
) -> Dict[str, Any]:
    """Credit or debit a user's balance. Admin only."""
    user = get_services(request).ledger.admin_fund(current_user, body.user_id, body.amount)
    return {"success": True, "userId": user.id, "balance": user.balance}


@router.get("/audit")
def audit(
    request: Request,
    entry_type: Optional[str] = Query(default=None, alias="type"),
    limit: int = Query(default=100, ge=1, le=1000),
    current_user: User = Depends(require_admin),
) -> Dict[str, Any]:
    if entry_type is not None and entry_type not in AUDIT_TYPES:
        raise ValidationError(f"Unknown audit type: {entry_type}")
    entries = get_services(request).audit.entries(entry_type=entry_type, limit=limit)
    return {"success": True, "entries": entries}
