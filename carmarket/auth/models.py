"""
Auth models.

Records are persisted with camelCase keys (``passwordHash``,
``refreshVersion``); Python code uses the snake_case attribute names.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Role = Literal["admin", "user"]


class User(BaseModel):
    """User record."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    username: str
    password_hash: str
    role: Role = "user"
    balance: float = 0
    refresh_version: int = Field(default=1, ge=1)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_public(self) -> Dict[str, Any]:
        data = self.to_record()
        data.pop("passwordHash", None)
        return data


@dataclass(frozen=True)
class AuthResult:
    """Outcome of register/login/refresh: the user and a fresh token pair."""

    user: User
    access_token: str
    refresh_token: str
