from __future__ import annotations

from app.db.neo4j.labels import EMAIL
from app.db.neo4j.repositories import email_write
from app.db.neo4j.repositories.email_write import EmailCreateFields, EmailValidatedFields
from app.eventstore.events import Event
from app.services.aggregates.email import EmailCreateEvent, EmailValidatedEvent, email_object_id
from app.services.projection.notifications import event_completed


def on_create(event: Event) -> None:
    data = event.payload(EmailCreateEvent)
    email_id = email_object_id(event.aggregate_id, data.tenant)
    email_write.create_email(
        data.tenant,
        email_id,
        EmailCreateFields(
            raw_email=data.raw_email, source=data.source, app_source=data.app_source, created_at=data.created_at
        ),
    )
    event_completed(data.tenant, EMAIL.upper(), email_id, "create")


def on_validated(event: Event) -> None:
    data = event.payload(EmailValidatedEvent)
    email_id = email_object_id(event.aggregate_id, data.tenant)
    email_write.email_validated(
        data.tenant,
        email_id,
        EmailValidatedFields(**data.model_dump(exclude={"tenant"})),
    )
    event_completed(data.tenant, EMAIL.upper(), email_id, "update")


def on_validation_cleaned(event: Event) -> None:
    tenant = event.tenant
    email_write.clean_email_validation(tenant, email_object_id(event.aggregate_id, tenant))
