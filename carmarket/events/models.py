"""Live feed events: purchase, fund and keep-alive ping."""

from __future__ import annotations

import time
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    return int(time.time() * 1000)


class _Event(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ts: int = Field(default_factory=now_ms)

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PurchaseEvent(_Event):
    event: Literal["purchase"] = "purchase"
    car_id: str
    model: str
    price: float
    buyer_id: str
    seller_id: str


class FundEvent(_Event):
    event: Literal["fund"] = "fund"
    by: Literal["admin", "faucet"]
    user_id: str
    amount: float
    admin_id: Optional[str] = None


class PingEvent(_Event):
    event: Literal["ping"] = "ping"


FeedEvent = Union[PurchaseEvent, FundEvent, PingEvent]
