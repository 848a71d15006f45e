from __future__ import annotations

import logging
from typing import Callable

from app.eventstore.events import Event
from app.services.aggregates import contact as contact_events
from app.services.aggregates import contract as contract_events
from app.services.aggregates import email as email_events
from app.services.aggregates import organization as organization_events
from app.services.projection import contact, contract, email, organization

logger = logging.getLogger(__name__)

Handler = Callable[[Event], None]

HANDLERS: dict[str, Handler] = {
    contact_events.CONTACT_CREATE_V1: contact.on_create,
    contact_events.CONTACT_UPDATE_V1: contact.on_update,
    contact_events.CONTACT_PHONE_NUMBER_LINK_V1: contact.on_phone_number_link,
    contact_events.CONTACT_LOCATION_LINK_V1: contact.on_location_link,
    contact_events.CONTACT_ADD_LOCATION_V1: contact.on_add_location,
    contact_events.CONTACT_EMAIL_LINK_V1: contact.on_email_link,
    contact_events.CONTACT_ADD_SOCIAL_V1: contact.on_add_social,
    contact_events.CONTACT_LINK_WITH_ORGANIZATION_V1: contact.on_link_with_organization,
    organization_events.ORGANIZATION_CREATE_V1: organization.on_create,
    organization_events.ORGANIZATION_UPDATE_V1: organization.on_update,
    organization_events.ORGANIZATION_HIDE_V1: organization.on_visibility,
    organization_events.ORGANIZATION_SHOW_V1: organization.on_visibility,
    organization_events.ORGANIZATION_LINK_DOMAIN_V1: organization.on_link_domain,
    organization_events.ORGANIZATION_UPDATE_ONBOARDING_STATUS_V1: organization.on_update_onboarding_status,
    organization_events.ORGANIZATION_REFRESH_ARR_V1: organization.on_refresh_arr,
    organization_events.ORGANIZATION_REFRESH_RENEWAL_SUMMARY_V1: organization.on_refresh_renewal_summary,
    organization_events.ORGANIZATION_REFRESH_LAST_TOUCHPOINT_V1: organization.on_refresh_last_touchpoint,
    organization_events.ORGANIZATION_ARCHIVE_V1: organization.on_archive,
    contract_events.CONTRACT_CREATE_V1: contract.on_create,
    contract_events.CONTRACT_UPDATE_V1: contract.on_update,
    contract_events.CONTRACT_UPDATE_STATUS_V1: contract.on_update_status,
    contract_events.CONTRACT_REFRESH_STATUS_V1: contract.on_refresh_status,
    contract_events.CONTRACT_REFRESH_LTV_V1: contract.on_refresh_ltv,
    contract_events.CONTRACT_ROLLOUT_RENEWAL_OPPORTUNITY_V1: contract.on_rollout_renewal_opportunity,
    contract_events.CONTRACT_DELETE_V1: contract.on_delete,
    email_events.EMAIL_CREATE_V1: email.on_create,
    email_events.EMAIL_VALIDATED_V1: email.on_validated,
    email_events.EMAIL_VALIDATION_CLEANED_V1: email.on_validation_cleaned,
}


def project(event: Event) -> bool:
    """Write one event into the graph. Returns False for event types without a projection."""
    handler = HANDLERS.get(event.event_type)
    if handler is None:
        logger.warning(
            "projection_unknown_event_type",
            extra={"event_type": event.event_type, "aggregate_id": event.aggregate_id},
        )
        return False
    logger.info(
        "projection_started",
        extra={"event_type": event.event_type, "aggregate_id": event.aggregate_id, "version": event.version},
    )
    handler(event)
    return True
