from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.core.timeutils import utc_now

P = TypeVar("P", bound=BaseModel)


class EventMetadata(BaseModel):
    tenant: str = ""
    user_id: str = ""
    app: str = ""


class EventPayload(BaseModel):
    """Base for event payloads; serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    tenant: str


class Event(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    aggregate_id: str
    aggregate_type: str
    event_type: str
    version: int = 0
    timestamp: datetime = Field(default_factory=utc_now)
    data: dict[str, Any] = Field(default_factory=dict)
    metadata: EventMetadata = Field(default_factory=EventMetadata)

    @property
    def tenant(self) -> str:
        return self.metadata.tenant or str(self.data.get("tenant", ""))

    def payload(self, model: type[P]) -> P:
        return model.model_validate(self.data)


def new_event(aggregate_id: str, aggregate_type: str, event_type: str, payload: EventPayload) -> Event:
    return Event(
        aggregate_id=aggregate_id,
        aggregate_type=aggregate_type,
        event_type=event_type,
        data=payload.model_dump(mode="json", by_alias=True),
    )
