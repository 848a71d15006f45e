from __future__ import annotations

import uuid

from app.services.aggregates.contact import ContactAggregate, JobRole
from app.services.commands.base import execute, require
from app.services.commands.requests import (
    CommandResponse,
    ContactAddLocationRequest,
    ContactAddSocialRequest,
    CreateContactRequest,
    LinkEmailToContactRequest,
    LinkLocationToContactRequest,
    LinkOrganizationToContactRequest,
    LinkPhoneNumberToContactRequest,
    UpdateContactRequest,
)


def _aggregate(tenant: str, contact_id: str) -> ContactAggregate:
    return ContactAggregate(require(tenant, "tenant"), require(contact_id, "contactId"))


def create_contact(request: CreateContactRequest) -> CommandResponse:
    request.contact_id = request.contact_id or str(uuid.uuid4())
    return execute("CreateContact", _aggregate(request.tenant, request.contact_id), request)


def update_contact(request: UpdateContactRequest) -> CommandResponse:
    return execute(
        "UpdateContact",
        _aggregate(request.tenant, request.contact_id),
        request,
        is_redundant=lambda agg: agg.update_is_redundant(request),
        must_exist=True,
    )


def link_phone_number_to_contact(request: LinkPhoneNumberToContactRequest) -> CommandResponse:
    require(request.phone_number_id, "phoneNumberId")
    return execute(
        "LinkPhoneNumberToContact",
        _aggregate(request.tenant, request.contact_id),
        request,
        is_redundant=lambda agg: agg.contact.has_phone_number(request.phone_number_id, request.label, request.primary),
    )


def link_location_to_contact(request: LinkLocationToContactRequest) -> CommandResponse:
    require(request.location_id, "locationId")
    return execute(
        "LinkLocationToContact",
        _aggregate(request.tenant, request.contact_id),
        request,
        is_redundant=lambda agg: agg.contact.has_location(request.location_id),
    )


def add_location(request: ContactAddLocationRequest) -> CommandResponse:
    return execute("ContactAddLocation", _aggregate(request.tenant, request.contact_id), request)


def add_social(request: ContactAddSocialRequest) -> CommandResponse:
    require(request.url, "url")
    return execute(
        "ContactAddSocial",
        _aggregate(request.tenant, request.contact_id),
        request,
        is_redundant=lambda agg: agg.contact.has_social(request.url),
        skipped_id=lambda agg: agg.contact.socials[request.url],
    )


def link_email_to_contact(request: LinkEmailToContactRequest) -> CommandResponse:
    require(request.email_id, "emailId")
    return execute(
        "LinkEmailToContact",
        _aggregate(request.tenant, request.contact_id),
        request,
        is_redundant=lambda agg: agg.contact.has_email(request.email_id, request.primary),
    )


def link_organization_to_contact(request: LinkOrganizationToContactRequest) -> CommandResponse:
    require(request.organization_id, "organizationId")
    job_role = JobRole(
        job_title=request.job_title,
        description=request.description,
        primary=request.primary,
        started_at=request.started_at,
        ended_at=request.ended_at,
    )
    return execute(
        "LinkOrganizationToContact",
        _aggregate(request.tenant, request.contact_id),
        request,
        is_redundant=lambda agg: agg.contact.has_job_role_in_organization(request.organization_id, job_role),
    )
