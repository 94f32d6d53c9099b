"""
Session protocol.

Sessions are not stored server-side. The only revocation anchor is the
per-user ``refreshVersion`` counter: a refresh token is honoured only while
its embedded ``rv`` equals the stored counter, and every login, refresh and
logout bumps the counter, so at most one refresh lineage is alive per user.

All counter updates happen inside the ``users`` write region so concurrent
refreshes cannot both succeed with the same token.
"""

from __future__ import annotations

from typing import Any, List, Optional, Tuple

import bcrypt

from ..stores.record_store import USERS, RecordStore, parse_records
from ..utils.exceptions import AuthenticationError, ConflictError, ValidationError
from ..utils.logger import get_logger
from .models import AuthResult, User
from .tokens import TokenService

logger = get_logger(__name__)

BCRYPT_ROUNDS = 12
# bcrypt only accepts passwords up to 72 bytes
MAX_PASSWORD_BYTES = 72
REVOKED_MESSAGE = "Refresh token invalid or revoked"


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a password with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def load_users(store: RecordStore) -> List[User]:
    users, rejected = parse_records(store.load(USERS), User)
    if rejected:
        logger.warning("Skipping invalid user records", count=len(rejected))
    return users


def save_users(store: RecordStore, users: List[User]) -> None:
    """Replace the valid user records; records that fail validation are kept as they are."""
    _, rejected = parse_records(store.load(USERS), User)
    store.save(USERS, [u.to_record() for u in users] + rejected)


def find_user(users: List[User], user_id: str) -> Tuple[int, Optional[User]]:
    for i, user in enumerate(users):
        if user.id == user_id:
            return i, user
    return -1, None


def validate_credentials(username: Any, password: Any) -> str:
    """Return the normalised username or raise ValidationError."""
    if not isinstance(username, str) or not username.strip():
        raise ValidationError("Username must be a non-empty string")
    check_password(password)
    return username.strip()


def check_password(password: Any) -> None:
    if not isinstance(password, str):
        raise ValidationError("Password must be a string")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


class SessionService:
    """Register, login, refresh, logout and current-user resolution."""

    def __init__(self, store: RecordStore, tokens: TokenService, bcrypt_rounds: int = BCRYPT_ROUNDS):
        self.store = store
        self.tokens = tokens
        self.bcrypt_rounds = bcrypt_rounds

    def _issue(self, user: User) -> AuthResult:
        return AuthResult(
            user=user,
            access_token=self.tokens.issue_access(user.id),
            refresh_token=self.tokens.issue_refresh(user.id, user.refresh_version),
        )

    def create_user(
        self,
        username: Any,
        password: Any,
        role: str = "user",
        balance: float = 0,
    ) -> User:
        """
        Create a user with refreshVersion 1.

        Username must be unique (case-sensitive); the password is stored
        only as a bcrypt hash.
        """
        name = validate_credentials(username, password)
        if role not in ("admin", "user"):
            raise ValidationError("Role must be 'admin' or 'user'")
        password_hash = hash_password(password, self.bcrypt_rounds)
        with self.store.write_region(USERS):
            users = load_users(self.store)
            if any(u.username == name for u in users):
                raise ConflictError("Username already taken")
            user = User(
                username=name,
                password_hash=password_hash,
                role=role,
                balance=balance,
                refresh_version=1,
            )
            users.append(user)
            save_users(self.store, users)
        logger.info("User created", user_id=user.id, username=user.username, role=user.role)
        return user

    def register(self, username: Any, password: Any) -> AuthResult:
        user = self.create_user(username, password, role="user")
        return self._issue(user)

    def login(self, username: Any, password: Any) -> AuthResult:
        name = validate_credentials(username, password)
        with self.store.write_region(USERS):
            users = load_users(self.store)
            idx = next((i for i, u in enumerate(users) if u.username == name), -1)
            if idx < 0 or not verify_password(password, users[idx].password_hash):
                raise AuthenticationError("Invalid username or password")
            user = users[idx].model_copy(
                update={"refresh_version": users[idx].refresh_version + 1}
            )
            users[idx] = user
            save_users(self.store, users)
        logger.info("User logged in", user_id=user.id, refresh_version=user.refresh_version)
        return self._issue(user)

    def refresh(self, refresh_token: Optional[str]) -> AuthResult:
        """
        Rotate a refresh token.

        The token's ``rv`` must equal the stored refreshVersion exactly; a
        reused (already rotated) token is treated as revoked.
        """
        payload = self.tokens.verify_refresh(refresh_token)
        if payload is None:
            raise AuthenticationError(REVOKED_MESSAGE)
        with self.store.write_region(USERS):
            users = load_users(self.store)
            idx, user = find_user(users, payload.user_id)
            if user is None or payload.refresh_version != user.refresh_version:
                logger.warning(
                    "Refresh rejected",
                    user_id=payload.user_id,
                    user_exists=user is not None,
                )
                raise AuthenticationError(REVOKED_MESSAGE)
            user = user.model_copy(update={"refresh_version": user.refresh_version + 1})
            users[idx] = user
            save_users(self.store, users)
        logger.info("Session refreshed", user_id=user.id, refresh_version=user.refresh_version)
        return self._issue(user)

    def logout(self, refresh_token: Optional[str]) -> None:
        """Revoke the refresh lineage of the token's user, if any (idempotent)."""
        payload = self.tokens.verify_refresh(refresh_token)
        if payload is None:
            return
        with self.store.write_region(USERS):
            users = load_users(self.store)
            idx, user = find_user(users, payload.user_id)
            if user is None:
                return
            users[idx] = user.model_copy(update={"refresh_version": user.refresh_version + 1})
            save_users(self.store, users)
        logger.info("User logged out", user_id=payload.user_id)

    def resolve_user(self, access_token: Optional[str]) -> Optional[User]:
        """Current user for an access token; None when invalid or the user is gone."""
        payload = self.tokens.verify_access(access_token)
        if payload is None:
            return None
        _, user = find_user(load_users(self.store), payload.user_id)
        return user

    def ensure_seed_admin(self, username: str, password: str, balance: float = 0) -> Optional[User]:
        """
        Seed the first admin when no users exist yet.

        An existing users file that cannot be read is left alone so the
        records in it are not overwritten.
        """
        with self.store.write_region(USERS):
            if self.store.is_unreadable(USERS):
                logger.error(
                    "Users file is unreadable; not seeding admin",
                    path=str(self.store.path_for(USERS)),
                )
                return None
            if self.store.load(USERS):
                return None
            admin = self.create_user(username, password, role="admin", balance=balance)
        logger.info("Seeded admin user", username=admin.username)
        return admin
