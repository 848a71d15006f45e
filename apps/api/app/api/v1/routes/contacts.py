from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from app.api.v1.deps import require_api_key
from app.services.commands import contact as commands
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

router = APIRouter(prefix="/contacts", tags=["contacts"], dependencies=[Depends(require_api_key)])
logger = logging.getLogger(__name__)


@router.post("", response_model=CommandResponse)
def create_contact(payload: CreateContactRequest) -> CommandResponse:
    return commands.create_contact(payload)


@router.patch("/{contact_id}", response_model=CommandResponse)
def update_contact(contact_id: str, payload: UpdateContactRequest) -> CommandResponse:
    payload.contact_id = contact_id
    return commands.update_contact(payload)


@router.post("/{contact_id}/phone-numbers", response_model=CommandResponse)
def link_phone_number(contact_id: str, payload: LinkPhoneNumberToContactRequest) -> CommandResponse:
    payload.contact_id = contact_id
    return commands.link_phone_number_to_contact(payload)


@router.post("/{contact_id}/locations", response_model=CommandResponse)
def link_location(contact_id: str, payload: LinkLocationToContactRequest) -> CommandResponse:
    payload.contact_id = contact_id
    return commands.link_location_to_contact(payload)


@router.post("/{contact_id}/locations/new", response_model=CommandResponse)
def add_location(contact_id: str, payload: ContactAddLocationRequest) -> CommandResponse:
    payload.contact_id = contact_id
    return commands.add_location(payload)


@router.post("/{contact_id}/socials", response_model=CommandResponse)
def add_social(contact_id: str, payload: ContactAddSocialRequest) -> CommandResponse:
    payload.contact_id = contact_id
    return commands.add_social(payload)


@router.post("/{contact_id}/emails", response_model=CommandResponse)
def link_email(contact_id: str, payload: LinkEmailToContactRequest) -> CommandResponse:
    payload.contact_id = contact_id
    return commands.link_email_to_contact(payload)


@router.post("/{contact_id}/organizations", response_model=CommandResponse)
def link_organization(contact_id: str, payload: LinkOrganizationToContactRequest) -> CommandResponse:
    payload.contact_id = contact_id
    response = commands.link_organization_to_contact(payload)
    logger.info(
        "contact_linked_to_organization",
        extra={"contact_id": contact_id, "organization_id": payload.organization_id, "skipped": response.redundant_event_skipped},
    )
    return response
