"""
User administration: listing, profile updates and deletion.

Balances and refreshVersion are never set here directly; money moves only
through the ledger, and a password change revokes existing refresh tokens.
"""

from __future__ import annotations

from typing import Any, List, Optional

from ..stores.record_store import USERS, RecordStore
from ..utils.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..utils.logger import get_logger
from .models import User
from .service import BCRYPT_ROUNDS, check_password, find_user, hash_password, load_users, save_users

logger = get_logger(__name__)


class UserDirectory:
    def __init__(self, store: RecordStore, bcrypt_rounds: int = BCRYPT_ROUNDS):
        self.store = store
        self.bcrypt_rounds = bcrypt_rounds

    def list_users(self) -> List[User]:
        return load_users(self.store)

    def get_user(self, user_id: str) -> User:
        _, user = find_user(load_users(self.store), user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def visible_to(self, actor: User) -> List[User]:
        """Admins see everyone, normal users only themselves."""
        if actor.role == "admin":
            return self.list_users()
        return [self.get_user(actor.id)]

    def update_user(
        self,
        actor: User,
        user_id: str,
        username: Any = None,
        password: Any = None,
        role: Any = None,
    ) -> User:
        if actor.role != "admin" and actor.id != user_id:
            raise ForbiddenError("Cannot modify another user")
        if role is not None and actor.role != "admin":
            raise ForbiddenError("Only admins can change roles")
        if role is not None and role not in ("admin", "user"):
            raise ValidationError("Role must be 'admin' or 'user'")
        if username is not None and (not isinstance(username, str) or not username.strip()):
            raise ValidationError("Username must be a non-empty string")
        if password is not None:
            check_password(password)

        updates: dict = {}
        if password is not None:
            updates["password_hash"] = hash_password(password, self.bcrypt_rounds)

        with self.store.write_region(USERS):
            users = load_users(self.store)
            idx, user = find_user(users, user_id)
            if user is None:
                raise NotFoundError("User not found")
            if username is not None:
                name = username.strip()
                if any(u.username == name and u.id != user_id for u in users):
                    raise ConflictError("Username already taken")
                updates["username"] = name
            if role is not None:
                if user.role == "admin" and role != "admin" and _admin_count(users) == 1:
                    raise ConflictError("Cannot demote the last admin")
                updates["role"] = role
            if "password_hash" in updates:
                updates["refresh_version"] = user.refresh_version + 1
            user = user.model_copy(update=updates)
            users[idx] = user
            save_users(self.store, users)
        logger.info("User updated", user_id=user_id, by=actor.id, fields=sorted(updates))
        return user

    def delete_user(self, actor: User, user_id: str) -> None:
        if actor.role != "admin":
            raise ForbiddenError("Admin only")
        with self.store.write_region(USERS):
            users = load_users(self.store)
            _, user = find_user(users, user_id)
            if user is None:
                raise NotFoundError("User not found")
            if user.role == "admin" and _admin_count(users) == 1:
                raise ConflictError("Cannot delete the last admin user")
            save_users(self.store, [u for u in users if u.id != user_id])
        logger.info("User deleted", user_id=user_id, by=actor.id)


def _admin_count(users: List[User]) -> int:
    return sum(1 for u in users if u.role == "admin")
