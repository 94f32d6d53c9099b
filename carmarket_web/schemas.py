"""Request bodies. JSON keys are camelCase, as stored on disk."""

from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, StrictStr
from pydantic.alias_generators import to_camel

Number = Union[StrictInt, StrictFloat]


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Credentials(ApiModel):
    username: StrictStr
    password: StrictStr


class FundRequest(ApiModel):
    user_id: StrictStr
    amount: Number


class FaucetRequest(ApiModel):
    amount: Number


class CarCreate(ApiModel):
    model: StrictStr
    price: Number
    owner_id: Optional[StrictStr] = None


class CarUpdate(ApiModel):
    model: Optional[StrictStr] = None
    price: Optional[Number] = None


class UserCreate(ApiModel):
    username: StrictStr
    password: StrictStr
    role: Literal["admin", "user"] = "user"
    balance: Number = 0


class UserUpdate(ApiModel):
    username: Optional[StrictStr] = None
    password: Optional[StrictStr] = None
    role: Optional[Literal["admin", "user"]] = None
