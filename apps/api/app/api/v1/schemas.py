from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.db.neo4j.entities import FlowActionExecutionEntity, FlowEntity
from app.db.neo4j.filters import Filter


class OrganizationSearchRequest(BaseModel):
    tenant: str
    where: Filter | None = None


class OrganizationSearchResponse(BaseModel):
    organization_ids: list[str] = Field(default_factory=list)


class FlowActionExecutionOut(BaseModel):
    id: str
    flow_id: str | None = None
    action_id: str | None = None
    entity_id: str | None = None
    entity_type: str | None = None
    mailbox: str | None = None
    scheduled_at: datetime | None = None
    executed_at: datetime | None = None
    status: str | None = None

    @classmethod
    def from_entity(cls, entity: FlowActionExecutionEntity) -> FlowActionExecutionOut:
        return cls.model_validate(entity.model_dump())


class MailboxSlotResponse(BaseModel):
    mailbox: str
    first_slot_at: datetime | None = None
    last_scheduled: FlowActionExecutionOut | None = None


class MailboxDailyCountResponse(BaseModel):
    mailbox: str
    start: datetime
    end: datetime
    count: int


class DueExecutionsResponse(BaseModel):
    before: datetime
    executions: list[FlowActionExecutionOut] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    graph: str
    event_store: str


class FlowOut(BaseModel):
    id: str
    name: str | None = None
    status: str | None = None

    @classmethod
    def from_entity(cls, entity: FlowEntity) -> FlowOut:
        return cls.model_validate(entity.model_dump())


class FlowParticipantOut(BaseModel):
    id: str
    entity_id: str
    entity_type: str
    status: str | None = None


class FlowEntityExecutionsResponse(BaseModel):
    flow_id: str
    participant: FlowParticipantOut | None = None
    mailbox: str | None = None
    executions: list[FlowActionExecutionOut] = Field(default_factory=list)
