from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, PrivateAttr
from pydantic.alias_generators import to_camel

from app.db.neo4j.extract import node_labels, node_props


class GraphEntity(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    _labels: set[str] = PrivateAttr(default_factory=set)

    @classmethod
    def from_node(cls, node: Any):
        if node is None:
            return None
        entity = cls.model_validate(node_props(node))
        entity._labels = node_labels(node)
        return entity

    @property
    def labels(self) -> set[str]:
        return self._labels


class SourceFields(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    source: str = ""
    source_of_truth: str = ""
    app_source: str = ""


class OrganizationEntity(GraphEntity, SourceFields):
    name: str | None = None
    hide: bool = False
    stage: str | None = None
    relationship: str | None = None
    customer_os_id: str | None = None
    aggregate_version: int | None = None
    onboarding_status: str | None = None
    renewal_forecast_arr: float | None = None
    renewal_forecast_max_arr: float | None = None
    derived_renewal_likelihood: str | None = None
    derived_next_renewal_at: datetime | None = None
    last_touchpoint_id: str | None = None
    last_touchpoint_at: datetime | None = None
    archived: bool = False


class ContractEntity(GraphEntity, SourceFields):
    name: str | None = None
    status: str | None = None
    approved: bool = False
    auto_renew: bool = False
    length_in_months: int = 0
    service_started_at: datetime | None = None
    signed_at: datetime | None = None
    ended_at: datetime | None = None
    currency: str | None = None
    triggered_onboarding_status_change: bool = False
    ltv: float | None = None


class OpportunityEntity(GraphEntity):
    name: str | None = None
    amount: float = 0.0
    max_amount: float = 0.0
    internal_type: str | None = None
    internal_stage: str | None = None
    renewed_at: datetime | None = None
    renewal_likelihood: str | None = None
    renewal_approved: bool = False


class ContactEntity(GraphEntity, SourceFields):
    first_name: str | None = None
    last_name: str | None = None
    name: str | None = None
    prefix: str | None = None
    description: str | None = None
    timezone: str | None = None
    profile_photo_url: str | None = None
    username: str | None = None
    hide: bool = False


class EmailEntity(GraphEntity):
    email: str | None = None
    raw_email: str | None = None
    source: str | None = None
    work: bool | None = None
    deliverable: str | None = None
    is_free_account: bool | None = None
    primary_domain: str | None = None


class FlowEntity(GraphEntity):
    name: str | None = None
    status: str | None = None


class FlowParticipantEntity(GraphEntity):
    entity_id: str = ""
    entity_type: str = ""
    status: str | None = None


class FlowActionExecutionEntity(GraphEntity):
    flow_id: str | None = None
    action_id: str | None = None
    entity_id: str | None = None
    entity_type: str | None = None
    mailbox: str | None = None
    scheduled_at: datetime | None = None
    executed_at: datetime | None = None
    status: str | None = None
    error: str | None = None


class FlowExecutionSettingsEntity(GraphEntity):
    flow_id: str | None = None
    entity_id: str | None = None
    entity_type: str | None = None
    mailbox: str | None = None
    user_id: str | None = None


class TenantEntity(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str | None = None
    name: str
    created_at: datetime | None = None
