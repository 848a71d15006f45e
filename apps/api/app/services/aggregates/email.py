from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from app.core.errors import InvalidRequestTypeError, MissingFieldError
from app.core.timeutils import utc_now
from app.eventstore.aggregate import Aggregate, object_id_from_aggregate_id
from app.eventstore.events import Event, EventMetadata, EventPayload
from app.services.aggregates.common import CamelModel, Source
from app.services.commands import requests as rq

EMAIL_AGGREGATE_TYPE = "email"

EMAIL_CREATE_V1 = "V1_EMAIL_CREATE"
EMAIL_VALIDATED_V1 = "V1_EMAIL_VALIDATED"
EMAIL_VALIDATION_CLEANED_V1 = "V1_EMAIL_VALIDATION_CLEANED"

VALIDATION_FIELDS = (
    "email_address",
    "domain",
    "deliverable",
    "is_valid_syntax",
    "is_catch_all",
    "is_risky",
    "is_firewalled",
    "is_role_account",
    "is_system_generated",
    "is_mailbox_full",
    "is_free_account",
    "is_primary_domain",
    "smtp_success",
    "username",
    "provider",
    "firewall",
    "response_code",
    "error_code",
    "description",
    "primary_domain",
    "alternate_email",
    "retry_validation",
)


def email_object_id(aggregate_id: str, tenant: str) -> str:
    return object_id_from_aggregate_id(aggregate_id, tenant, EMAIL_AGGREGATE_TYPE)


class EmailValidation(CamelModel):
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
    validated_at: datetime | None = None


class Email(CamelModel):
    id: str = ""
    raw_email: str = ""
    source: Source = Field(default_factory=Source)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    validation: EmailValidation | None = None


class EmailCreateEvent(EventPayload):
    raw_email: str
    source: str = ""
    app_source: str = ""
    created_at: datetime


class EmailValidatedEvent(EventPayload):
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
    validated_at: datetime


class EmailValidationCleanedEvent(EventPayload):
    cleaned_at: datetime


class EmailAggregate(Aggregate):
    aggregate_type = EMAIL_AGGREGATE_TYPE

    def __init__(self, tenant: str, email_id: str) -> None:
        super().__init__(tenant, email_id)
        self.email = Email(id=email_id)

    def handle_request(self, request: Any) -> Any:
        metadata = EventMetadata(tenant=request.tenant, user_id=request.logged_in_user_id, app=request.app_source)
        if isinstance(request, rq.CreateEmailRequest):
            if not request.raw_email.strip():
                raise MissingFieldError("rawEmail")
            payload = EmailCreateEvent(
                tenant=self.tenant,
                raw_email=request.raw_email.strip(),
                source=request.source,
                app_source=request.app_source,
                created_at=request.created_at or utc_now(),
            )
            self.apply(self.new_event(EMAIL_CREATE_V1, payload, metadata))
            return self.object_id
        if isinstance(request, rq.EmailValidatedRequest):
            values = {name: getattr(request, name) for name in VALIDATION_FIELDS}
            values["domain"] = values["domain"].strip().lower()
            payload = EmailValidatedEvent(tenant=self.tenant, validated_at=utc_now(), **values)
            self.apply(self.new_event(EMAIL_VALIDATED_V1, payload, metadata))
            return self.object_id
        raise InvalidRequestTypeError(type(request).__name__)

    def clean_validation(self) -> str:
        payload = EmailValidationCleanedEvent(tenant=self.tenant, cleaned_at=utc_now())
        self.apply(self.new_event(EMAIL_VALIDATION_CLEANED_V1, payload))
        return self.object_id

    def when(self, event: Event) -> None:
        if event.event_type == EMAIL_CREATE_V1:
            data = event.payload(EmailCreateEvent)
            self.email.raw_email = data.raw_email
            self.email.source = Source.resolve(data.source, data.app_source)
            self.email.created_at = data.created_at
            self.email.updated_at = data.created_at
        elif event.event_type == EMAIL_VALIDATED_V1:
            data = event.payload(EmailValidatedEvent)
            self.email.validation = EmailValidation.model_validate(data.model_dump(exclude={"tenant"}))
            self.email.updated_at = data.validated_at
        elif event.event_type == EMAIL_VALIDATION_CLEANED_V1:
            self.email.validation = None
            self.email.updated_at = event.payload(EmailValidationCleanedEvent).cleaned_at
