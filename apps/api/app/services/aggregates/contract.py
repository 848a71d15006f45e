from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import Field

from app.core.constants import DEFAULT_CURRENCY, ContractStatus
from app.core.errors import InvalidArgumentError, InvalidRequestTypeError, MissingFieldError
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

CONTRACT_AGGREGATE_TYPE = "contract"

CONTRACT_CREATE_V1 = "V1_CONTRACT_CREATE"
CONTRACT_UPDATE_V1 = "V1_CONTRACT_UPDATE"
CONTRACT_UPDATE_STATUS_V1 = "V1_CONTRACT_UPDATE_STATUS"
CONTRACT_REFRESH_STATUS_V1 = "V1_CONTRACT_REFRESH_STATUS"
CONTRACT_REFRESH_LTV_V1 = "V1_CONTRACT_REFRESH_LTV"
CONTRACT_ROLLOUT_RENEWAL_OPPORTUNITY_V1 = "V1_CONTRACT_ROLLOUT_RENEWAL_OPPORTUNITY"
CONTRACT_DELETE_V1 = "V1_CONTRACT_DELETE"

CONTRACT_FIELDS = (
    "name",
    "contract_url",
    "service_started_at",
    "signed_at",
    "ended_at",
    "billing_cycle_in_months",
    "currency",
    "invoicing_enabled",
    "auto_renew",
    "due_days",
    "length_in_months",
    "approved",
    "invoice_email",
    "invoice_note",
    "organization_legal_name",
    "invoicing_start_date",
    "next_invoice_date",
    "address_line1",
    "address_line2",
    "locality",
    "country",
    "region",
    "zip",
    "invoice_email_cc",
    "invoice_email_bcc",
    "can_pay_with_card",
    "can_pay_with_direct_debit",
    "can_pay_with_bank_transfer",
    "pay_online",
    "pay_automatically",
    "check",
)


def contract_object_id(aggregate_id: str, tenant: str) -> str:
    return object_id_from_aggregate_id(aggregate_id, tenant, CONTRACT_AGGREGATE_TYPE)


class Contract(CamelModel):
    id: str = ""
    organization_id: str = ""
    created_by_user_id: str = ""
    name: str | None = None
    contract_url: str | None = None
    status: str = ContractStatus.DRAFT.value
    service_started_at: datetime | None = None
    signed_at: datetime | None = None
    ended_at: datetime | None = None
    billing_cycle_in_months: int | None = None
    currency: str | None = None
    invoicing_enabled: bool | None = None
    auto_renew: bool | None = None
    due_days: int | None = None
    length_in_months: int | None = None
    approved: bool | None = None
    invoice_email: str | None = None
    invoice_note: str | None = None
    organization_legal_name: str | None = None
    invoicing_start_date: date | None = None
    next_invoice_date: date | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    locality: str | None = None
    country: str | None = None
    region: str | None = None
    zip: str | None = None
    invoice_email_cc: list[str] | None = None
    invoice_email_bcc: list[str] | None = None
    can_pay_with_card: bool | None = None
    can_pay_with_direct_debit: bool | None = None
    can_pay_with_bank_transfer: bool | None = None
    pay_online: bool | None = None
    pay_automatically: bool | None = None
    check: bool | None = None
    ltv: float = 0.0
    source: Source = Field(default_factory=Source)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    removed: bool = False
    removed_at: datetime | None = None
    renewal_rolled_out_at: datetime | None = None
    status_refreshed_at: datetime | None = None
    external_systems: list[ExternalSystem] = Field(default_factory=list)


class ContractFieldsPayload(EventPayload):
    name: str | None = None
    contract_url: str | None = None
    service_started_at: datetime | None = None
    signed_at: datetime | None = None
    ended_at: datetime | None = None
    billing_cycle_in_months: int | None = None
    currency: str | None = None
    invoicing_enabled: bool | None = None
    auto_renew: bool | None = None
    due_days: int | None = None
    length_in_months: int | None = None
    approved: bool | None = None
    invoice_email: str | None = None
    invoice_note: str | None = None
    organization_legal_name: str | None = None
    invoicing_start_date: date | None = None
    next_invoice_date: date | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    locality: str | None = None
    country: str | None = None
    region: str | None = None
    zip: str | None = None
    invoice_email_cc: list[str] | None = None
    invoice_email_bcc: list[str] | None = None
    can_pay_with_card: bool | None = None
    can_pay_with_direct_debit: bool | None = None
    can_pay_with_bank_transfer: bool | None = None
    pay_online: bool | None = None
    pay_automatically: bool | None = None
    check: bool | None = None
    source: str = ""
    app_source: str = ""
    external_system: ExternalSystem | None = None


class ContractCreateEvent(ContractFieldsPayload):
    organization_id: str
    created_by_user_id: str = ""
    created_at: datetime
    updated_at: datetime


class ContractUpdateEvent(ContractFieldsPayload):
    updated_at: datetime


class ContractUpdateStatusEvent(EventPayload):
    status: str


class ContractRequestedEvent(EventPayload):
    requested_at: datetime


class ContractRefreshLtvEvent(EventPayload):
    ltv: float


class ContractDeleteEvent(EventPayload):
    deleted_at: datetime


def _metadata(request: rq.CommandRequest) -> EventMetadata:
    return EventMetadata(tenant=request.tenant, user_id=request.logged_in_user_id, app=request.app_source)


def contract_fields(request: rq.ContractFieldsRequest, field_mask: list[str] | None = None) -> dict[str, Any]:
    unknown = [name for name in field_mask or [] if name not in CONTRACT_FIELDS]
    if unknown:
        raise InvalidArgumentError(f"unknown contract fields in mask: {', '.join(unknown)}")
    values = {name: getattr(request, name) for name in CONTRACT_FIELDS}
    if field_mask:
        values = {name: (value if name in field_mask else None) for name, value in values.items()}
    return values


def parse_contract_status(status: str) -> str:
    try:
        return ContractStatus(status).value
    except ValueError as exc:
        raise InvalidArgumentError(f"unknown contract status: {status}") from exc


class ContractAggregate(Aggregate):
    aggregate_type = CONTRACT_AGGREGATE_TYPE

    def __init__(self, tenant: str, contract_id: str) -> None:
        super().__init__(tenant, contract_id)
        self.contract = Contract(id=contract_id)

    def handle_request(self, request: Any) -> Any:
        if isinstance(request, rq.CreateContractRequest):
            return self._create(request)
        if isinstance(request, rq.UpdateContractRequest):
            payload = ContractUpdateEvent(
                tenant=self.tenant,
                source=request.source,
                app_source=request.app_source,
                external_system=request.external_system,
                updated_at=utc_now(),
                **contract_fields(request, request.field_mask),
            )
            return self._emit(CONTRACT_UPDATE_V1, payload, request)
        if isinstance(request, rq.UpdateContractStatusRequest):
            payload = ContractUpdateStatusEvent(tenant=self.tenant, status=parse_contract_status(request.status))
            return self._emit(CONTRACT_UPDATE_STATUS_V1, payload, request)
        if isinstance(request, rq.SoftDeleteContractRequest):
            payload = ContractDeleteEvent(tenant=self.tenant, deleted_at=utc_now())
            return self._emit(CONTRACT_DELETE_V1, payload, request)
        if isinstance(request, rq.RolloutRenewalOpportunityOnExpirationRequest):
            payload = ContractRequestedEvent(tenant=self.tenant, requested_at=utc_now())
            return self._emit(CONTRACT_ROLLOUT_RENEWAL_OPPORTUNITY_V1, payload, request)
        if isinstance(request, rq.RefreshContractStatusRequest):
            payload = ContractRequestedEvent(tenant=self.tenant, requested_at=utc_now())
            return self._emit(CONTRACT_REFRESH_STATUS_V1, payload, request)
        if isinstance(request, rq.RefreshContractLtvRequest):
            payload = ContractRefreshLtvEvent(tenant=self.tenant, ltv=request.ltv)
            return self._emit(CONTRACT_REFRESH_LTV_V1, payload, request)
        raise InvalidRequestTypeError(type(request).__name__)

    def _create(self, request: rq.CreateContractRequest) -> str:
        if not request.organization_id:
            raise MissingFieldError("organizationId")
        created_at = request.created_at or utc_now()
        fields = contract_fields(request)
        fields["currency"] = fields["currency"] or DEFAULT_CURRENCY
        payload = ContractCreateEvent(
            tenant=self.tenant,
            organization_id=request.organization_id,
            created_by_user_id=request.created_by_user_id or request.logged_in_user_id,
            source=request.source,
            app_source=request.app_source,
            external_system=request.external_system,
            created_at=created_at,
            updated_at=created_at,
            **fields,
        )
        return self._emit(CONTRACT_CREATE_V1, payload, request)

    def _emit(self, event_type: str, payload: EventPayload, request: rq.CommandRequest) -> str:
        self.apply(self.new_event(event_type, payload, _metadata(request)))
        return self.object_id

    def ltv_is_redundant(self, ltv: float) -> bool:
        return self.contract.ltv == ltv

    def when(self, event: Event) -> None:
        handler = {
            CONTRACT_CREATE_V1: self._on_create,
            CONTRACT_UPDATE_V1: self._on_update,
            CONTRACT_UPDATE_STATUS_V1: self._on_update_status,
            CONTRACT_REFRESH_STATUS_V1: self._on_refresh_status,
            CONTRACT_REFRESH_LTV_V1: self._on_refresh_ltv,
            CONTRACT_ROLLOUT_RENEWAL_OPPORTUNITY_V1: self._on_rollout_renewal,
            CONTRACT_DELETE_V1: self._on_delete,
        }.get(event.event_type)
        if handler is not None:
            handler(event)

    def _on_create(self, event: Event) -> None:
        data = event.payload(ContractCreateEvent)
        for name in CONTRACT_FIELDS:
            setattr(self.contract, name, getattr(data, name))
        self.contract.organization_id = data.organization_id
        self.contract.created_by_user_id = data.created_by_user_id
        self.contract.source = Source.resolve(data.source, data.app_source)
        self.contract.created_at = data.created_at
        self.contract.updated_at = data.updated_at
        self.contract.external_systems = merge_external_system(self.contract.external_systems, data.external_system)

    def _on_update(self, event: Event) -> None:
        data = event.payload(ContractUpdateEvent)
        if is_authoritative(data.source):
            self.contract.source.source_of_truth = Source.resolve(data.source).source
        # The field mask alone decides what changes on a contract.
        for name in CONTRACT_FIELDS:
            setattr(self.contract, name, merge_field(getattr(self.contract, name), getattr(data, name), True))
        self.contract.updated_at = data.updated_at
        self.contract.external_systems = merge_external_system(self.contract.external_systems, data.external_system)

    def _on_update_status(self, event: Event) -> None:
        self.contract.status = event.payload(ContractUpdateStatusEvent).status

    def _on_refresh_status(self, event: Event) -> None:
        self.contract.status_refreshed_at = event.payload(ContractRequestedEvent).requested_at

    def _on_refresh_ltv(self, event: Event) -> None:
        self.contract.ltv = event.payload(ContractRefreshLtvEvent).ltv

    def _on_rollout_renewal(self, event: Event) -> None:
        self.contract.renewal_rolled_out_at = event.payload(ContractRequestedEvent).requested_at

    def _on_delete(self, event: Event) -> None:
        self.contract.removed = True
        self.contract.removed_at = event.payload(ContractDeleteEvent).deleted_at
