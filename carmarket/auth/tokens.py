"""
JWT token generation and validation.

Two token kinds share one HS256 key and are told apart by the ``typ``
claim, so an access token never verifies as a refresh token and vice
versa. Refresh tokens also carry ``rv``, the user's refreshVersion at
issuance; the session layer compares it with the stored counter.

Verification never raises: any failure yields ``None``.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from ..utils.logger import get_logger

logger = get_logger(__name__)

ALGORITHM = "HS256"
ACCESS_TTL_SECONDS = 15 * 60
REFRESH_TTL_SECONDS = 7 * 24 * 60 * 60

TYPE_ACCESS = "access"
TYPE_REFRESH = "refresh"


@dataclass(frozen=True)
class TokenPayload:
    """
    Decoded, verified token claims.

    Attributes:
        user_id: ``sub`` claim
        token_type: ``typ`` claim ("access" or "refresh")
        expires_at: ``exp`` claim
        refresh_version: ``rv`` claim (refresh tokens only)
    """
    user_id: str
    token_type: str
    expires_at: datetime
    refresh_version: Optional[int] = None


class TokenService:
    """Signs and verifies access and refresh tokens."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = ALGORITHM,
        access_ttl: int = ACCESS_TTL_SECONDS,
        refresh_ttl: int = REFRESH_TTL_SECONDS,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def _encode(self, claims: dict, ttl_seconds: int) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            **claims,
            "iat": now,
            "exp": now + timedelta(seconds=ttl_seconds),
            "jti": secrets.token_urlsafe(12),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def issue_access(self, user_id: str) -> str:
        """Signed access token, valid for 15 minutes."""
        return self._encode({"sub": user_id, "typ": TYPE_ACCESS}, self.access_ttl)

    def issue_refresh(self, user_id: str, refresh_version: int) -> str:
        """Signed refresh token bound to ``refresh_version``, valid for 7 days."""
        return self._encode(
            {"sub": user_id, "typ": TYPE_REFRESH, "rv": refresh_version},
            self.refresh_ttl,
        )

    def _decode(self, token: Any) -> Optional[dict]:
        if not token or not isinstance(token, str):
            return None
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Token has expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.debug("Invalid token", error=str(e))
            return None
        if not isinstance(payload.get("sub"), str) or not payload["sub"]:
            return None
        return payload

    @staticmethod
    def _expiry(payload: dict) -> datetime:
        return datetime.fromtimestamp(payload["exp"], tz=timezone.utc)

    def verify_access(self, token: Any) -> Optional[TokenPayload]:
        payload = self._decode(token)
        if payload is None or payload.get("typ") != TYPE_ACCESS:
            return None
        return TokenPayload(
            user_id=payload["sub"],
            token_type=TYPE_ACCESS,
            expires_at=self._expiry(payload),
        )

    def verify_refresh(self, token: Any) -> Optional[TokenPayload]:
        payload = self._decode(token)
        if payload is None or payload.get("typ") != TYPE_REFRESH:
            return None
        rv = payload.get("rv")
        if isinstance(rv, bool) or not isinstance(rv, (int, float)):
            return None
        return TokenPayload(
            user_id=payload["sub"],
            token_type=TYPE_REFRESH,
            expires_at=self._expiry(payload),
            refresh_version=rv,
        )
