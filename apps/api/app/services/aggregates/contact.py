from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import Field

from app.core.errors import InvalidRequestTypeError
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

CONTACT_AGGREGATE_TYPE = "contact"

CONTACT_CREATE_V1 = "V1_CONTACT_CREATE"
CONTACT_UPDATE_V1 = "V1_CONTACT_UPDATE"
CONTACT_PHONE_NUMBER_LINK_V1 = "V1_CONTACT_PHONE_NUMBER_LINK"
CONTACT_LOCATION_LINK_V1 = "V1_CONTACT_LOCATION_LINK"
CONTACT_ADD_LOCATION_V1 = "V1_CONTACT_ADD_LOCATION"
CONTACT_EMAIL_LINK_V1 = "V1_CONTACT_EMAIL_LINK"
CONTACT_ADD_SOCIAL_V1 = "V1_CONTACT_ADD_SOCIAL"
CONTACT_LINK_WITH_ORGANIZATION_V1 = "V1_CONTACT_LINK_WITH_ORGANIZATION"

CONTACT_SCALAR_FIELDS = (
    "first_name",
    "last_name",
    "name",
    "prefix",
    "description",
    "timezone",
    "profile_photo_url",
    "username",
)


def contact_object_id(aggregate_id: str, tenant: str) -> str:
    return object_id_from_aggregate_id(aggregate_id, tenant, CONTACT_AGGREGATE_TYPE)


def normalize_timezone(timezone: str | None) -> str | None:
    if not timezone:
        return timezone
    value = timezone.replace("_slash_", "/")
    parts = []
    for segment in value.split("/"):
        parts.append("_".join(word[:1].upper() + word[1:] for word in segment.split("_")))
    return "/".join(parts)


class ContactPhoneNumber(CamelModel):
    label: str = ""
    primary: bool = False


class ContactEmail(CamelModel):
    primary: bool = False


class JobRole(CamelModel):
    job_title: str = ""
    description: str = ""
    primary: bool = False
    started_at: datetime | None = None
    ended_at: datetime | None = None
    source: str = ""


class Contact(CamelModel):
    id: str = ""
    first_name: str = ""
    last_name: str = ""
    name: str = ""
    prefix: str = ""
    description: str = ""
    timezone: str = ""
    profile_photo_url: str = ""
    username: str = ""
    source: Source = Field(default_factory=Source)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    phone_numbers: dict[str, ContactPhoneNumber] = Field(default_factory=dict)
    emails: dict[str, ContactEmail] = Field(default_factory=dict)
    location_ids: list[str] = Field(default_factory=list)
    external_systems: list[ExternalSystem] = Field(default_factory=list)
    socials: dict[str, str] = Field(default_factory=dict)
    job_roles: dict[str, JobRole] = Field(default_factory=dict)

    def has_phone_number(self, phone_number_id: str, label: str, primary: bool) -> bool:
        current = self.phone_numbers.get(phone_number_id)
        return current is not None and current.label == label and current.primary == primary

    def has_location(self, location_id: str) -> bool:
        return location_id in self.location_ids

    def has_external_system(self, external_system: ExternalSystem) -> bool:
        return any(existing.same_as(external_system) for existing in self.external_systems)

    def has_email(self, email_id: str, primary: bool) -> bool:
        current = self.emails.get(email_id)
        return current is not None and current.primary == primary

    def has_social(self, url: str) -> bool:
        return url in self.socials

    def has_job_role_in_organization(self, organization_id: str, job_role: JobRole) -> bool:
        current = self.job_roles.get(organization_id)
        if current is None:
            return False
        return (
            current.job_title == job_role.job_title
            and current.description == job_role.description
            and current.primary == job_role.primary
            and current.started_at == job_role.started_at
            and current.ended_at == job_role.ended_at
        )


class ContactFieldsPayload(EventPayload):
    first_name: str | None = None
    last_name: str | None = None
    name: str | None = None
    prefix: str | None = None
    description: str | None = None
    timezone: str | None = None
    profile_photo_url: str | None = None
    username: str | None = None
    source: str = ""
    app_source: str = ""
    external_system: ExternalSystem | None = None


class ContactCreateEvent(ContactFieldsPayload):
    created_at: datetime
    updated_at: datetime


class ContactUpdateEvent(ContactFieldsPayload):
    updated_at: datetime


class ContactLinkPhoneNumberEvent(EventPayload):
    phone_number_id: str
    label: str = ""
    primary: bool = False
    updated_at: datetime


class ContactLinkLocationEvent(EventPayload):
    location_id: str
    updated_at: datetime


class ContactAddLocationEvent(EventPayload):
    location_id: str
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
    source: str = ""
    app_source: str = ""
    created_at: datetime


class ContactLinkEmailEvent(EventPayload):
    email_id: str
    primary: bool = False
    updated_at: datetime


class ContactAddSocialEvent(EventPayload):
    social_id: str
    url: str
    alias: str = ""
    followers_count: int | None = None
    source: str = ""
    app_source: str = ""
    created_at: datetime


class ContactLinkWithOrganizationEvent(EventPayload):
    organization_id: str
    job_title: str = ""
    description: str = ""
    primary: bool = False
    started_at: datetime | None = None
    ended_at: datetime | None = None
    source: str = ""
    app_source: str = ""
    created_at: datetime
    updated_at: datetime


def _metadata(request: rq.CommandRequest) -> EventMetadata:
    return EventMetadata(tenant=request.tenant, user_id=request.logged_in_user_id, app=request.app_source)


class ContactAggregate(Aggregate):
    aggregate_type = CONTACT_AGGREGATE_TYPE

    def __init__(self, tenant: str, contact_id: str) -> None:
        super().__init__(tenant, contact_id)
        self.contact = Contact(id=contact_id)

    def handle_request(self, request: Any) -> Any:
        if isinstance(request, rq.CreateContactRequest):
            return self._create(request)
        if isinstance(request, rq.UpdateContactRequest):
            return self._update(request)
        if isinstance(request, rq.LinkPhoneNumberToContactRequest):
            payload = ContactLinkPhoneNumberEvent(
                tenant=self.tenant,
                phone_number_id=request.phone_number_id,
                label=request.label,
                primary=request.primary,
                updated_at=utc_now(),
            )
            return self._emit(CONTACT_PHONE_NUMBER_LINK_V1, payload, request)
        if isinstance(request, rq.LinkLocationToContactRequest):
            payload = ContactLinkLocationEvent(tenant=self.tenant, location_id=request.location_id, updated_at=utc_now())
            return self._emit(CONTACT_LOCATION_LINK_V1, payload, request)
        if isinstance(request, rq.ContactAddLocationRequest):
            return self._add_location(request)
        if isinstance(request, rq.LinkEmailToContactRequest):
            payload = ContactLinkEmailEvent(
                tenant=self.tenant, email_id=request.email_id, primary=request.primary, updated_at=utc_now()
            )
            return self._emit(CONTACT_EMAIL_LINK_V1, payload, request)
        if isinstance(request, rq.ContactAddSocialRequest):
            return self._add_social(request)
        if isinstance(request, rq.LinkOrganizationToContactRequest):
            now = utc_now()
            payload = ContactLinkWithOrganizationEvent(
                tenant=self.tenant,
                organization_id=request.organization_id,
                job_title=request.job_title,
                description=request.description,
                primary=request.primary,
                started_at=request.started_at,
                ended_at=request.ended_at,
                source=request.source,
                app_source=request.app_source,
                created_at=now,
                updated_at=now,
            )
            return self._emit(CONTACT_LINK_WITH_ORGANIZATION_V1, payload, request)
        raise InvalidRequestTypeError(type(request).__name__)

    def _emit(self, event_type: str, payload: EventPayload, request: rq.CommandRequest) -> str:
        self.apply(self.new_event(event_type, payload, _metadata(request)))
        return self.object_id

    def _fields(self, request: rq.ContactFieldsRequest) -> dict[str, Any]:
        values = {name: getattr(request, name) for name in CONTACT_SCALAR_FIELDS}
        values["timezone"] = normalize_timezone(values["timezone"])
        return values

    def _create(self, request: rq.CreateContactRequest) -> str:
        created_at = request.created_at or utc_now()
        payload = ContactCreateEvent(
            tenant=self.tenant,
            source=request.source,
            app_source=request.app_source,
            external_system=request.external_system,
            created_at=created_at,
            updated_at=created_at,
            **self._fields(request),
        )
        return self._emit(CONTACT_CREATE_V1, payload, request)

    def _update(self, request: rq.UpdateContactRequest) -> str:
        payload = ContactUpdateEvent(
            tenant=self.tenant,
            source=request.source,
            app_source=request.app_source,
            external_system=request.external_system,
            updated_at=utc_now(),
            **self._fields(request),
        )
        return self._emit(CONTACT_UPDATE_V1, payload, request)

    def _add_location(self, request: rq.ContactAddLocationRequest) -> str:
        location_id = str(uuid.uuid4())
        payload = ContactAddLocationEvent(
            tenant=self.tenant,
            location_id=location_id,
            name=request.name,
            raw_address=request.raw_address,
            country=request.country,
            country_code_a2=request.country_code_a2,
            region=request.region,
            locality=request.locality,
            address=request.address,
            zip=request.zip,
            latitude=request.latitude,
            longitude=request.longitude,
            source=request.source,
            app_source=request.app_source,
            created_at=utc_now(),
        )
        self._emit(CONTACT_ADD_LOCATION_V1, payload, request)
        return location_id

    def _add_social(self, request: rq.ContactAddSocialRequest) -> str:
        social_id = self.contact.socials.get(request.url) or str(uuid.uuid4())
        payload = ContactAddSocialEvent(
            tenant=self.tenant,
            social_id=social_id,
            url=request.url,
            alias=request.alias,
            followers_count=request.followers_count,
            source=request.source,
            app_source=request.app_source,
            created_at=utc_now(),
        )
        self._emit(CONTACT_ADD_SOCIAL_V1, payload, request)
        return social_id

    def update_is_redundant(self, request: rq.UpdateContactRequest) -> bool:
        """True when folding the update would leave every field unchanged."""
        overwrite = is_authoritative(request.source)
        for name, value in self._fields(request).items():
            if merge_field(getattr(self.contact, name), value, overwrite) != getattr(self.contact, name):
                return False
        if request.external_system is not None and not self.contact.has_external_system(request.external_system):
            return False
        return True

    def when(self, event: Event) -> None:
        handler = {
            CONTACT_CREATE_V1: self._on_create,
            CONTACT_UPDATE_V1: self._on_update,
            CONTACT_PHONE_NUMBER_LINK_V1: self._on_phone_number_link,
            CONTACT_LOCATION_LINK_V1: self._on_location_link,
            CONTACT_ADD_LOCATION_V1: self._on_add_location,
            CONTACT_EMAIL_LINK_V1: self._on_email_link,
            CONTACT_ADD_SOCIAL_V1: self._on_add_social,
            CONTACT_LINK_WITH_ORGANIZATION_V1: self._on_link_with_organization,
        }.get(event.event_type)
        if handler is not None:
            handler(event)

    def _on_create(self, event: Event) -> None:
        data = event.payload(ContactCreateEvent)
        for name in CONTACT_SCALAR_FIELDS:
            setattr(self.contact, name, getattr(data, name) or "")
        self.contact.source = Source.resolve(data.source, data.app_source)
        self.contact.created_at = data.created_at
        self.contact.updated_at = data.updated_at
        self.contact.external_systems = merge_external_system(self.contact.external_systems, data.external_system)

    def _on_update(self, event: Event) -> None:
        data = event.payload(ContactUpdateEvent)
        overwrite = is_authoritative(data.source)
        if overwrite:
            self.contact.source.source_of_truth = Source.resolve(data.source).source
        for name in CONTACT_SCALAR_FIELDS:
            setattr(self.contact, name, merge_field(getattr(self.contact, name), getattr(data, name), overwrite))
        self.contact.updated_at = data.updated_at
        self.contact.external_systems = merge_external_system(self.contact.external_systems, data.external_system)

    def _on_phone_number_link(self, event: Event) -> None:
        data = event.payload(ContactLinkPhoneNumberEvent)
        if data.primary:
            for phone_number in self.contact.phone_numbers.values():
                phone_number.primary = False
        self.contact.phone_numbers[data.phone_number_id] = ContactPhoneNumber(label=data.label, primary=data.primary)
        self.contact.updated_at = data.updated_at

    def _on_location_link(self, event: Event) -> None:
        data = event.payload(ContactLinkLocationEvent)
        if data.location_id not in self.contact.location_ids:
            self.contact.location_ids.append(data.location_id)
        self.contact.updated_at = data.updated_at

    def _on_add_location(self, event: Event) -> None:
        data = event.payload(ContactAddLocationEvent)
        if data.location_id not in self.contact.location_ids:
            self.contact.location_ids.append(data.location_id)
        self.contact.updated_at = data.created_at

    def _on_email_link(self, event: Event) -> None:
        data = event.payload(ContactLinkEmailEvent)
        if data.primary:
            for email in self.contact.emails.values():
                email.primary = False
        self.contact.emails[data.email_id] = ContactEmail(primary=data.primary)
        self.contact.updated_at = data.updated_at

    def _on_add_social(self, event: Event) -> None:
        data = event.payload(ContactAddSocialEvent)
        self.contact.socials[data.url] = data.social_id

    def _on_link_with_organization(self, event: Event) -> None:
        data = event.payload(ContactLinkWithOrganizationEvent)
        self.contact.job_roles[data.organization_id] = JobRole(
            job_title=data.job_title,
            description=data.description,
            primary=data.primary,
            started_at=data.started_at,
            ended_at=data.ended_at,
            source=data.source,
        )
        self.contact.updated_at = data.updated_at
