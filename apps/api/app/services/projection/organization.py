from __future__ import annotations

import logging

from app.core.constants import ONBOARDING_STATUS_ORDER
from app.db.neo4j.labels import ORGANIZATION
from app.db.neo4j.repositories import external_system, organization_read, organization_write
from app.db.neo4j.repositories.external_system import ExternalSystemRef
from app.db.neo4j.repositories.organization_write import OrganizationSaveFields
from app.eventstore.events import Event
from app.services.aggregates.common import ExternalSystem
from app.services.aggregates.organization import (
    ORGANIZATION_FIELDS,
    OrganizationCreateEvent,
    OrganizationLinkDomainEvent,
    OrganizationUpdateEvent,
    OrganizationUpdateOnboardingStatusEvent,
    OrganizationVisibilityEvent,
    organization_object_id,
)
from app.services.projection.derivations import summarize_renewals
from app.services.projection.notifications import event_completed

logger = logging.getLogger(__name__)


def _link_external_system(tenant: str, organization_id: str, ext: ExternalSystem | None) -> None:
    if ext is None or not ext.external_system_id:
        return
    external_system.link_with_entity(tenant, ORGANIZATION, organization_id, ExternalSystemRef(**ext.model_dump()))


def _link_domain(tenant: str, organization_id: str, domain: str) -> None:
    if not organization_write.link_with_domain(tenant, organization_id, domain):
        logger.warning(
            "organization_domain_owned_by_other",
            extra={"tenant": tenant, "organization_id": organization_id, "domain": domain},
        )


def on_create(event: Event) -> None:
    data = event.payload(OrganizationCreateEvent)
    organization_id = organization_object_id(event.aggregate_id, data.tenant)
    organization_write.save(
        data.tenant,
        organization_id,
        OrganizationSaveFields(
            aggregate_version=event.version,
            source=data.source,
            app_source=data.app_source,
            created_at=data.created_at,
            updated_at=data.updated_at,
            **{name: getattr(data, name) for name in ORGANIZATION_FIELDS},
        ),
    )
    for domain in data.domains:
        _link_domain(data.tenant, organization_id, domain)
    _link_external_system(data.tenant, organization_id, data.external_system)
    event_completed(data.tenant, ORGANIZATION.upper(), organization_id, "create")


def on_update(event: Event) -> None:
    data = event.payload(OrganizationUpdateEvent)
    organization_id = organization_object_id(event.aggregate_id, data.tenant)
    applied = organization_write.save(
        data.tenant,
        organization_id,
        OrganizationSaveFields(
            aggregate_version=event.version,
            source=data.source,
            app_source=data.app_source,
            updated_at=data.updated_at,
            enrich_domain=data.enrich_domain,
            enrich_source=data.enrich_source,
            **{name: getattr(data, name) for name in ORGANIZATION_FIELDS},
        ),
    )
    if not applied:
        return
    _link_external_system(data.tenant, organization_id, data.external_system)
    event_completed(data.tenant, ORGANIZATION.upper(), organization_id, "update")


def on_visibility(event: Event) -> None:
    data = event.payload(OrganizationVisibilityEvent)
    organization_id = organization_object_id(event.aggregate_id, data.tenant)
    organization_write.set_visibility(data.tenant, organization_id, data.hide, aggregate_version=event.version)
    event_completed(data.tenant, ORGANIZATION.upper(), organization_id, "update")


def on_link_domain(event: Event) -> None:
    data = event.payload(OrganizationLinkDomainEvent)
    _link_domain(data.tenant, organization_object_id(event.aggregate_id, data.tenant), data.domain)


def on_update_onboarding_status(event: Event) -> None:
    data = event.payload(OrganizationUpdateOnboardingStatusEvent)
    organization_id = organization_object_id(event.aggregate_id, data.tenant)
    organization_write.update_onboarding_status(
        data.tenant,
        organization_id,
        data.status,
        data.comments,
        ONBOARDING_STATUS_ORDER.get(data.status),
        data.updated_at,
        aggregate_version=event.version,
    )
    logger.info(
        "organization_onboarding_status_updated",
        extra={
            "tenant": data.tenant,
            "organization_id": organization_id,
            "status": data.status,
            "caused_by_contract_id": data.caused_by_contract_id,
        },
    )
    event_completed(data.tenant, ORGANIZATION.upper(), organization_id, "update")


def on_refresh_arr(event: Event) -> None:
    tenant = event.tenant
    organization_write.update_arr(tenant, organization_object_id(event.aggregate_id, tenant))


def on_refresh_renewal_summary(event: Event) -> None:
    tenant = event.tenant
    organization_id = organization_object_id(event.aggregate_id, tenant)
    summary = summarize_renewals(organization_read.get_active_renewals_for_organization(tenant, organization_id))
    organization_write.update_renewal_summary(
        tenant, organization_id, summary.likelihood, summary.likelihood_order, summary.next_renewal_at
    )


def on_refresh_last_touchpoint(event: Event) -> None:
    tenant = event.tenant
    organization_id = organization_object_id(event.aggregate_id, tenant)
    try:
        touchpoint = organization_read.get_latest_touchpoint(tenant, organization_id)
        if touchpoint is None:
            return
        touchpoint_id, touchpoint_at, touchpoint_type = touchpoint
        organization_write.update_last_touchpoint(tenant, organization_id, touchpoint_at, touchpoint_id, touchpoint_type)
    except Exception:
        logger.exception(
            "organization_last_touchpoint_refresh_failed", extra={"tenant": tenant, "organization_id": organization_id}
        )


def on_archive(event: Event) -> None:
    tenant = event.tenant
    organization_id = organization_object_id(event.aggregate_id, tenant)
    organization_write.archive(tenant, organization_id)
    event_completed(tenant, ORGANIZATION.upper(), organization_id, "delete")
