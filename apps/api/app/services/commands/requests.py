"""Typed command requests. Every request names its tenant, the acting user and the calling app."""
from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from app.services.aggregates.common import ExternalSystem


class CommandRequest(BaseModel):
    tenant: str = ""
    logged_in_user_id: str = ""
    app_source: str = ""


class SourceRequest(CommandRequest):
    source: str = ""
    external_system: ExternalSystem | None = None


class ContactFieldsRequest(SourceRequest):
    first_name: str | None = None
    last_name: str | None = None
    name: str | None = None
    prefix: str | None = None
    description: str | None = None
    timezone: str | None = None
    profile_photo_url: str | None = None
    username: str | None = None


class CreateContactRequest(ContactFieldsRequest):
    contact_id: str = ""
    created_at: datetime | None = None


class UpdateContactRequest(ContactFieldsRequest):
    contact_id: str = ""


class LinkPhoneNumberToContactRequest(CommandRequest):
    contact_id: str = ""
    phone_number_id: str = ""
    label: str = ""
    primary: bool = False


class LinkLocationToContactRequest(CommandRequest):
    contact_id: str = ""
    location_id: str = ""


class ContactAddLocationRequest(SourceRequest):
    contact_id: str = ""
    name: str = ""
    raw_address: str = ""
    country: str = ""
    country_code_a2: str = ""
    region: str = ""
    locality: str = ""
    address: str = ""
    zip: str = ""
    latitude: float | None = None
    longitude: float | None = None


class ContactAddSocialRequest(SourceRequest):
    contact_id: str = ""
    url: str = ""
    alias: str = ""
    followers_count: int | None = None


class LinkEmailToContactRequest(CommandRequest):
    contact_id: str = ""
    email_id: str = ""
    primary: bool = False


class LinkOrganizationToContactRequest(SourceRequest):
    contact_id: str = ""
    organization_id: str = ""
    job_title: str = ""
    description: str = ""
    primary: bool = False
    started_at: datetime | None = None
    ended_at: datetime | None = None


class OrganizationFieldsRequest(SourceRequest):
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


class CreateOrganizationRequest(OrganizationFieldsRequest):
    organization_id: str = ""
    domains: list[str] = Field(default_factory=list)
    created_at: datetime | None = None


class UpdateOrganizationRequest(OrganizationFieldsRequest):
    organization_id: str = ""
    # Empty mask means every provided field is updated.
    field_mask: list[str] = Field(default_factory=list)
    enrich_domain: str | None = None
    enrich_source: str | None = None


class OrganizationRequest(CommandRequest):
    organization_id: str = ""


class HideOrganizationRequest(OrganizationRequest):
    pass


class ShowOrganizationRequest(OrganizationRequest):
    pass


class ArchiveOrganizationRequest(OrganizationRequest):
    pass


class RefreshArrRequest(OrganizationRequest):
    pass


class RefreshRenewalSummaryRequest(OrganizationRequest):
    pass


class RefreshLastTouchpointRequest(OrganizationRequest):
    pass


class LinkDomainToOrganizationRequest(OrganizationRequest):
    domain: str = ""


class UpdateOnboardingStatusRequest(OrganizationRequest):
    status: str = ""
    comments: str = ""
    caused_by_contract_id: str = ""


class ContractFieldsRequest(SourceRequest):
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


class CreateContractRequest(ContractFieldsRequest):
    contract_id: str = ""
    organization_id: str = ""
    created_by_user_id: str = ""
    created_at: datetime | None = None


class UpdateContractRequest(ContractFieldsRequest):
    contract_id: str = ""
    field_mask: list[str] = Field(default_factory=list)


class ContractRequest(CommandRequest):
    contract_id: str = ""


class SoftDeleteContractRequest(ContractRequest):
    pass


class RolloutRenewalOpportunityOnExpirationRequest(ContractRequest):
    pass


class RefreshContractStatusRequest(ContractRequest):
    pass


class RefreshContractLtvRequest(ContractRequest):
    ltv: float = 0.0


class UpdateContractStatusRequest(ContractRequest):
    status: str = ""


class CreateEmailRequest(CommandRequest):
    email_id: str = ""
    raw_email: str = ""
    source: str = ""
    created_at: datetime | None = None


class EmailValidatedRequest(CommandRequest):
    email_id: str = ""
    email_address: str = ""
    domain: str = ""
    deliverable: str = ""
    is_valid_syntax: bool = False
    is_catch_all: bool = False
    is_risky: bool = False
    is_firewalled: bool = False
    is_role_account: bool = False
    is_system_generated: bool = False
    is_mailbox_full: bool = False
    is_free_account: bool = False
    is_primary_domain: bool = False
    smtp_success: bool = False
    username: str = ""
    provider: str = ""
    firewall: str = ""
    response_code: str = ""
    error_code: str = ""
    description: str = ""
    primary_domain: str = ""
    alternate_email: str = ""
    retry_validation: bool = False


class DeleteEventStoreStreamRequest(BaseModel):
    tenant: str = ""
    type: str = ""
    id: str = ""
    minutes_until_deletion: int = 0


class CommandResponse(BaseModel):
    id: str
    redundant_event_skipped: bool = False
