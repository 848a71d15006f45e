from __future__ import annotations

import logging

from app.db.neo4j.driver import execute_write_in_transaction
from app.db.neo4j.labels import CONTACT
from app.db.neo4j.repositories import contact_write, email_write, external_system, location, phone_number, social
from app.db.neo4j.repositories.contact_write import ContactSaveFields
from app.db.neo4j.repositories.external_system import ExternalSystemRef
from app.db.neo4j.repositories.location import LocationFields
from app.eventstore.events import Event
from app.services.aggregates.common import ExternalSystem
from app.services.aggregates.contact import (
    CONTACT_SCALAR_FIELDS,
    ContactAddLocationEvent,
    ContactAddSocialEvent,
    ContactCreateEvent,
    ContactLinkEmailEvent,
    ContactLinkLocationEvent,
    ContactLinkPhoneNumberEvent,
    ContactLinkWithOrganizationEvent,
    ContactUpdateEvent,
    contact_object_id,
)
from app.services.projection.notifications import event_completed
from app.services.projection.refresh import REFRESH_LAST_TOUCHPOINT, request_refresh

logger = logging.getLogger(__name__)

ENTITY = CONTACT.upper()


def _link_external_system(tenant: str, contact_id: str, ext: ExternalSystem | None) -> None:
    if ext is None or not ext.external_system_id:
        return
    external_system.link_with_entity(tenant, CONTACT, contact_id, ExternalSystemRef(**ext.model_dump()))


def on_create(event: Event) -> None:
    data = event.payload(ContactCreateEvent)
    contact_id = contact_object_id(event.aggregate_id, data.tenant)
    contact_write.save(
        data.tenant,
        contact_id,
        ContactSaveFields(
            aggregate_version=event.version,
            source=data.source,
            app_source=data.app_source,
            created_at=data.created_at,
            **{name: getattr(data, name) for name in CONTACT_SCALAR_FIELDS},
        ),
    )
    _link_external_system(data.tenant, contact_id, data.external_system)
    event_completed(data.tenant, ENTITY, contact_id, "create")


def on_update(event: Event) -> None:
    data = event.payload(ContactUpdateEvent)
    contact_id = contact_object_id(event.aggregate_id, data.tenant)
    applied = contact_write.save(
        data.tenant,
        contact_id,
        ContactSaveFields(
            aggregate_version=event.version,
            source=data.source,
            app_source=data.app_source,
            **{name: getattr(data, name) for name in CONTACT_SCALAR_FIELDS},
        ),
    )
    if not applied:
        logger.info("contact_update_skipped", extra={"tenant": data.tenant, "contact_id": contact_id})
        return
    _link_external_system(data.tenant, contact_id, data.external_system)
    event_completed(data.tenant, ENTITY, contact_id, "update")


def on_phone_number_link(event: Event) -> None:
    data = event.payload(ContactLinkPhoneNumberEvent)
    contact_id = contact_object_id(event.aggregate_id, data.tenant)
    phone_number.link_with_contact(data.tenant, contact_id, data.phone_number_id, data.label, data.primary)
    event_completed(data.tenant, ENTITY, contact_id, "update")


def on_location_link(event: Event) -> None:
    data = event.payload(ContactLinkLocationEvent)
    contact_id = contact_object_id(event.aggregate_id, data.tenant)
    location.link_with_contact(data.tenant, contact_id, data.location_id)
    event_completed(data.tenant, ENTITY, contact_id, "update")


def on_add_location(event: Event) -> None:
    data = event.payload(ContactAddLocationEvent)
    contact_id = contact_object_id(event.aggregate_id, data.tenant)
    fields = LocationFields(**data.model_dump(exclude={"tenant", "location_id"}))

    def _work(tx):
        location.create_location(data.tenant, data.location_id, fields, tx)
        location.link_with_contact(data.tenant, contact_id, data.location_id, tx)

    execute_write_in_transaction(_work)
    event_completed(data.tenant, ENTITY, contact_id, "update")


def on_email_link(event: Event) -> None:
    data = event.payload(ContactLinkEmailEvent)
    contact_id = contact_object_id(event.aggregate_id, data.tenant)
    email_write.link_with_contact(data.tenant, contact_id, data.email_id, data.primary)
    event_completed(data.tenant, ENTITY, contact_id, "update")


def on_add_social(event: Event) -> None:
    data = event.payload(ContactAddSocialEvent)
    contact_id = contact_object_id(event.aggregate_id, data.tenant)
    social.merge_social_for(
        data.tenant,
        ENTITY,
        contact_id,
        data.social_id,
        data.url,
        alias=data.alias,
        followers_count=data.followers_count,
        source=data.source,
        app_source=data.app_source,
        created_at=data.created_at,
    )
    event_completed(data.tenant, ENTITY, contact_id, "update")


def on_link_with_organization(event: Event) -> None:
    data = event.payload(ContactLinkWithOrganizationEvent)
    contact_id = contact_object_id(event.aggregate_id, data.tenant)
    contact_write.link_with_organization(
        data.tenant,
        contact_id,
        data.organization_id,
        job_title=data.job_title,
        description=data.description,
        primary=data.primary,
        source=data.source,
        app_source=data.app_source,
        started_at=data.started_at,
        ended_at=data.ended_at,
    )
    event_completed(data.tenant, ENTITY, contact_id, "update")
    request_refresh(REFRESH_LAST_TOUCHPOINT, data.tenant, data.organization_id)
