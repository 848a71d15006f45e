from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from app.core.constants import OnboardingStatus
from app.core.errors import InvalidArgumentError, InvalidRequestTypeError
from app.core.timeutils import utc_now
from app.eventstore.aggregate import Aggregate, object_id_from_aggregate_id
from app.eventstore.events import Event, EventMetadata, EventPayload
from app.services.aggregates.common import (
    CamelModel,
    ExternalSystem,
    Source,
    is_authoritative,
    merge_external_system,
    merge_field,
)
from app.services.commands import requests as rq

ORGANIZATION_AGGREGATE_TYPE = "organization"

ORGANIZATION_CREATE_V1 = "V1_ORGANIZATION_CREATE"
ORGANIZATION_UPDATE_V1 = "V1_ORGANIZATION_UPDATE"
ORGANIZATION_HIDE_V1 = "V1_ORGANIZATION_HIDE"
ORGANIZATION_SHOW_V1 = "V1_ORGANIZATION_SHOW"
ORGANIZATION_LINK_DOMAIN_V1 = "V1_ORGANIZATION_LINK_DOMAIN"
ORGANIZATION_UPDATE_ONBOARDING_STATUS_V1 = "V1_ORGANIZATION_UPDATE_ONBOARDING_STATUS"
ORGANIZATION_REFRESH_ARR_V1 = "V1_ORGANIZATION_REFRESH_ARR"
ORGANIZATION_REFRESH_RENEWAL_SUMMARY_V1 = "V1_ORGANIZATION_REFRESH_RENEWAL_SUMMARY"
ORGANIZATION_REFRESH_LAST_TOUCHPOINT_V1 = "V1_ORGANIZATION_REFRESH_LAST_TOUCHPOINT"
ORGANIZATION_ARCHIVE_V1 = "V1_ORGANIZATION_ARCHIVE"

ORGANIZATION_FIELDS = (
    "name",
    "description",
    "website",
    "industry",
    "sub_industry",
    "industry_group",
    "target_audience",
    "value_proposition",
    "last_funding_round",
    "last_funding_amount",
    "reference_id",
    "note",
    "is_public",
    "employees",
    "market",
    "year_founded",
    "headquarters",
    "logo_url",
    "icon_url",
    "employee_growth_rate",
    "slack_channel_id",
    "lead_source",
    "relationship",
    "stage",
    "icp_fit",
)


def organization_object_id(aggregate_id: str, tenant: str) -> str:
    return object_id_from_aggregate_id(aggregate_id, tenant, ORGANIZATION_AGGREGATE_TYPE)


def normalize_domain(domain: str) -> str:
    return domain.strip().lower()


def parse_onboarding_status(status: str) -> str:
    try:
        return OnboardingStatus(status).value
    except ValueError as exc:
        raise InvalidArgumentError(f"unknown onboarding status: {status}") from exc


class OnboardingState(CamelModel):
    status: str = OnboardingStatus.NOT_APPLICABLE.value
    comments: str = ""
    updated_at: datetime | None = None


class Organization(CamelModel):
    id: str = ""
    name: str | None = None
    description: str | None = None
    website: str | None = None
    industry: str | None = None
    sub_industry: str | None = None
    industry_group: str | None = None
    target_audience: str | None = None
    value_proposition: str | None = None
    last_funding_round: str | None = None
    last_funding_amount: str | None = None
    reference_id: str | None = None
    note: str | None = None
    is_public: bool | None = None
    employees: int | None = None
    market: str | None = None
    year_founded: int | None = None
    headquarters: str | None = None
    logo_url: str | None = None
    icon_url: str | None = None
    employee_growth_rate: str | None = None
    slack_channel_id: str | None = None
    lead_source: str | None = None
    relationship: str | None = None
    stage: str | None = None
    icp_fit: bool | None = None
    hide: bool = False
    archived: bool = False
    archived_at: datetime | None = None
    source: Source = Field(default_factory=Source)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    domains: list[str] = Field(default_factory=list)
    external_systems: list[ExternalSystem] = Field(default_factory=list)
    onboarding: OnboardingState = Field(default_factory=OnboardingState)
    arr_refreshed_at: datetime | None = None
    renewal_summary_refreshed_at: datetime | None = None
    last_touchpoint_refreshed_at: datetime | None = None

    def has_domain(self, domain: str) -> bool:
        return normalize_domain(domain) in self.domains

    def has_external_system(self, external_system: ExternalSystem) -> bool:
        return any(existing.same_as(external_system) for existing in self.external_systems)


class OrganizationFieldsPayload(EventPayload):
    name: str | None = None
    description: str | None = None
    website: str | None = None
    industry: str | None = None
    sub_industry: str | None = None
    industry_group: str | None = None
    target_audience: str | None = None
    value_proposition: str | None = None
    last_funding_round: str | None = None
    last_funding_amount: str | None = None
    reference_id: str | None = None
    note: str | None = None
    is_public: bool | None = None
    employees: int | None = None
    market: str | None = None
    year_founded: int | None = None
    headquarters: str | None = None
    logo_url: str | None = None
    icon_url: str | None = None
    employee_growth_rate: str | None = None
    slack_channel_id: str | None = None
    lead_source: str | None = None
    relationship: str | None = None
    stage: str | None = None
    icp_fit: bool | None = None
    source: str = ""
    app_source: str = ""
    external_system: ExternalSystem | None = None


class OrganizationCreateEvent(OrganizationFieldsPayload):
    domains: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class OrganizationUpdateEvent(OrganizationFieldsPayload):
    enrich_domain: str | None = None
    enrich_source: str | None = None
    updated_at: datetime


class OrganizationVisibilityEvent(EventPayload):
    hide: bool
    updated_at: datetime


class OrganizationLinkDomainEvent(EventPayload):
    domain: str


class OrganizationUpdateOnboardingStatusEvent(EventPayload):
    status: str
    comments: str = ""
    logged_in_user_id: str = ""
    caused_by_contract_id: str = ""
    updated_at: datetime


class OrganizationRefreshEvent(EventPayload):
    requested_at: datetime


class OrganizationArchiveEvent(EventPayload):
    archived_at: datetime


def _metadata(request: rq.CommandRequest) -> EventMetadata:
    return EventMetadata(tenant=request.tenant, user_id=request.logged_in_user_id, app=request.app_source)


def masked_fields(request: rq.OrganizationFieldsRequest, field_mask: list[str] | None = None) -> dict[str, Any]:
    """Provided field values, restricted to ``field_mask`` when one is given."""
    unknown = [name for name in field_mask or [] if name not in ORGANIZATION_FIELDS]
    if unknown:
        raise InvalidArgumentError(f"unknown organization fields in mask: {', '.join(unknown)}")
    values = {name: getattr(request, name) for name in ORGANIZATION_FIELDS}
    if field_mask:
        values = {name: (value if name in field_mask else None) for name, value in values.items()}
    return values


class OrganizationAggregate(Aggregate):
    aggregate_type = ORGANIZATION_AGGREGATE_TYPE

    def __init__(self, tenant: str, organization_id: str) -> None:
        super().__init__(tenant, organization_id)
        self.organization = Organization(id=organization_id)

    def handle_request(self, request: Any) -> Any:
        if isinstance(request, rq.CreateOrganizationRequest):
            created_at = request.created_at or utc_now()
            payload = OrganizationCreateEvent(
                tenant=self.tenant,
                source=request.source,
                app_source=request.app_source,
                external_system=request.external_system,
                domains=[normalize_domain(domain) for domain in request.domains if domain.strip()],
                created_at=created_at,
                updated_at=created_at,
                **masked_fields(request),
            )
            return self._emit(ORGANIZATION_CREATE_V1, payload, request)
        if isinstance(request, rq.UpdateOrganizationRequest):
            payload = OrganizationUpdateEvent(
                tenant=self.tenant,
                source=request.source,
                app_source=request.app_source,
                external_system=request.external_system,
                enrich_domain=request.enrich_domain,
                enrich_source=request.enrich_source,
                updated_at=utc_now(),
                **masked_fields(request, request.field_mask),
            )
            return self._emit(ORGANIZATION_UPDATE_V1, payload, request)
        if isinstance(request, rq.HideOrganizationRequest):
            payload = OrganizationVisibilityEvent(tenant=self.tenant, hide=True, updated_at=utc_now())
            return self._emit(ORGANIZATION_HIDE_V1, payload, request)
        if isinstance(request, rq.ShowOrganizationRequest):
            payload = OrganizationVisibilityEvent(tenant=self.tenant, hide=False, updated_at=utc_now())
            return self._emit(ORGANIZATION_SHOW_V1, payload, request)
        if isinstance(request, rq.LinkDomainToOrganizationRequest):
            payload = OrganizationLinkDomainEvent(tenant=self.tenant, domain=normalize_domain(request.domain))
            return self._emit(ORGANIZATION_LINK_DOMAIN_V1, payload, request)
        if isinstance(request, rq.UpdateOnboardingStatusRequest):
            payload = OrganizationUpdateOnboardingStatusEvent(
                tenant=self.tenant,
                status=parse_onboarding_status(request.status),
                comments=request.comments,
                logged_in_user_id=request.logged_in_user_id,
                caused_by_contract_id=request.caused_by_contract_id,
                updated_at=utc_now(),
            )
            return self._emit(ORGANIZATION_UPDATE_ONBOARDING_STATUS_V1, payload, request)
        if isinstance(request, rq.RefreshArrRequest):
            return self._emit(ORGANIZATION_REFRESH_ARR_V1, self._refresh_payload(), request)
        if isinstance(request, rq.RefreshRenewalSummaryRequest):
            return self._emit(ORGANIZATION_REFRESH_RENEWAL_SUMMARY_V1, self._refresh_payload(), request)
        if isinstance(request, rq.RefreshLastTouchpointRequest):
            return self._emit(ORGANIZATION_REFRESH_LAST_TOUCHPOINT_V1, self._refresh_payload(), request)
        if isinstance(request, rq.ArchiveOrganizationRequest):
            payload = OrganizationArchiveEvent(tenant=self.tenant, archived_at=utc_now())
            return self._emit(ORGANIZATION_ARCHIVE_V1, payload, request)
        raise InvalidRequestTypeError(type(request).__name__)

    def _refresh_payload(self) -> OrganizationRefreshEvent:
        return OrganizationRefreshEvent(tenant=self.tenant, requested_at=utc_now())

    def _emit(self, event_type: str, payload: EventPayload, request: rq.CommandRequest) -> str:
        self.apply(self.new_event(event_type, payload, _metadata(request)))
        return self.object_id

    def update_is_redundant(self, request: rq.UpdateOrganizationRequest) -> bool:
        overwrite = is_authoritative(request.source)
        for name, value in masked_fields(request, request.field_mask).items():
            current = getattr(self.organization, name)
            if merge_field(current, value, overwrite) != current:
                return False
        if request.enrich_domain and request.enrich_source:
            return False
        if request.external_system is not None and not self.organization.has_external_system(request.external_system):
            return False
        return True

    def when(self, event: Event) -> None:
        handler = {
            ORGANIZATION_CREATE_V1: self._on_create,
            ORGANIZATION_UPDATE_V1: self._on_update,
            ORGANIZATION_HIDE_V1: self._on_visibility,
            ORGANIZATION_SHOW_V1: self._on_visibility,
            ORGANIZATION_LINK_DOMAIN_V1: self._on_link_domain,
            ORGANIZATION_UPDATE_ONBOARDING_STATUS_V1: self._on_onboarding_status,
            ORGANIZATION_REFRESH_ARR_V1: self._on_refresh,
            ORGANIZATION_REFRESH_RENEWAL_SUMMARY_V1: self._on_refresh,
            ORGANIZATION_REFRESH_LAST_TOUCHPOINT_V1: self._on_refresh,
            ORGANIZATION_ARCHIVE_V1: self._on_archive,
        }.get(event.event_type)
        if handler is not None:
            handler(event)

    def _on_create(self, event: Event) -> None:
        data = event.payload(OrganizationCreateEvent)
        for name in ORGANIZATION_FIELDS:
            setattr(self.organization, name, getattr(data, name))
        self.organization.source = Source.resolve(data.source, data.app_source)
        self.organization.created_at = data.created_at
        self.organization.updated_at = data.updated_at
        for domain in data.domains:
            if domain not in self.organization.domains:
                self.organization.domains.append(domain)
        self.organization.external_systems = merge_external_system(
            self.organization.external_systems, data.external_system
        )

    def _on_update(self, event: Event) -> None:
        data = event.payload(OrganizationUpdateEvent)
        overwrite = is_authoritative(data.source)
        if overwrite:
            self.organization.source.source_of_truth = Source.resolve(data.source).source
        for name in ORGANIZATION_FIELDS:
            current = getattr(self.organization, name)
            setattr(self.organization, name, merge_field(current, getattr(data, name), overwrite))
        self.organization.updated_at = data.updated_at
        self.organization.external_systems = merge_external_system(
            self.organization.external_systems, data.external_system
        )

    def _on_visibility(self, event: Event) -> None:
        data = event.payload(OrganizationVisibilityEvent)
        self.organization.hide = data.hide
        self.organization.updated_at = data.updated_at

    def _on_link_domain(self, event: Event) -> None:
        data = event.payload(OrganizationLinkDomainEvent)
        if data.domain not in self.organization.domains:
            self.organization.domains.append(data.domain)

    def _on_onboarding_status(self, event: Event) -> None:
        data = event.payload(OrganizationUpdateOnboardingStatusEvent)
        self.organization.onboarding = OnboardingState(
            status=data.status, comments=data.comments, updated_at=data.updated_at
        )

    def _on_refresh(self, event: Event) -> None:
        data = event.payload(OrganizationRefreshEvent)
        if event.event_type == ORGANIZATION_REFRESH_ARR_V1:
            self.organization.arr_refreshed_at = data.requested_at
        elif event.event_type == ORGANIZATION_REFRESH_RENEWAL_SUMMARY_V1:
            self.organization.renewal_summary_refreshed_at = data.requested_at
        else:
            self.organization.last_touchpoint_refreshed_at = data.requested_at

    def _on_archive(self, event: Event) -> None:
        data = event.payload(OrganizationArchiveEvent)
        self.organization.archived = True
        self.organization.archived_at = data.archived_at
