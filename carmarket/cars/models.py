"""Car record."""

from __future__ import annotations

from typing import Any, Dict, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt
from pydantic.alias_generators import to_camel


class Car(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    model: str
    price: Union[StrictInt, StrictFloat]
    owner_id: str

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
