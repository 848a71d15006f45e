from __future__ import annotations

import logging

from app.core.constants import ContractStatus, OnboardingStatus
from app.db.neo4j.labels import CONTRACT
from app.db.neo4j.repositories import contract_read, contract_write, external_system, organization_read
from app.db.neo4j.repositories.contract_write import ContractSaveFields
from app.db.neo4j.repositories.external_system import ExternalSystemRef
from app.eventstore.events import Event
from app.services.aggregates.common import ExternalSystem
from app.services.aggregates.contract import (
    CONTRACT_FIELDS,
    ContractCreateEvent,
    ContractDeleteEvent,
    ContractRefreshLtvEvent,
    ContractUpdateEvent,
    ContractUpdateStatusEvent,
    contract_object_id,
)
from app.services.projection.derivations import derive_contract_status
from app.services.projection.notifications import event_completed
from app.services.projection.refresh import (
    UPDATE_ONBOARDING_STATUS,
    refresh_organization_financials,
    request_refresh,
)

logger = logging.getLogger(__name__)


def _link_external_system(tenant: str, contract_id: str, ext: ExternalSystem | None) -> None:
    if ext is None or not ext.external_system_id:
        return
    external_system.link_with_entity(tenant, CONTRACT, contract_id, ExternalSystemRef(**ext.model_dump()))


def refresh_status(tenant: str, contract_id: str) -> str | None:
    """Recompute the contract status and trigger onboarding on the first move to LIVE."""
    contract = contract_read.get_contract_by_id(tenant, contract_id)
    if contract is None:
        logger.warning("contract_status_refresh_missing", extra={"tenant": tenant, "contract_id": contract_id})
        return None
    renewal = contract_read.get_active_renewal_opportunity_for_contract(tenant, contract_id)
    status = derive_contract_status(contract, renewal)
    if status != contract.status:
        contract_write.update_status(tenant, contract_id, status)
        logger.info(
            "contract_status_changed",
            extra={"tenant": tenant, "contract_id": contract_id, "from": contract.status, "to": status},
        )

    if status == ContractStatus.LIVE.value and not contract.triggered_onboarding_status_change:
        organization_id = organization_read.get_organization_id_for_contract(tenant, contract_id)
        organization = organization_read.get_organization(tenant, organization_id) if organization_id else None
        contract_write.contract_caused_onboarding_status_change(tenant, contract_id)
        if organization is not None and organization.onboarding_status in (None, OnboardingStatus.NOT_APPLICABLE.value):
            request_refresh(
                UPDATE_ONBOARDING_STATUS,
                tenant,
                organization.id,
                status=OnboardingStatus.NOT_STARTED.value,
                caused_by_contract_id=contract_id,
            )
    return status


def on_create(event: Event) -> None:
    data = event.payload(ContractCreateEvent)
    contract_id = contract_object_id(event.aggregate_id, data.tenant)
    fields = {name: getattr(data, name) for name in CONTRACT_FIELDS}
    contract_write.create_for_organization(
        data.tenant,
        contract_id,
        ContractSaveFields(
            aggregate_version=event.version,
            organization_id=data.organization_id,
            created_by_user_id=data.created_by_user_id,
            source=data.source,
            app_source=data.app_source,
            created_at=data.created_at,
            status=ContractStatus.DRAFT.value,
            **fields,
        ),
    )
    _link_external_system(data.tenant, contract_id, data.external_system)
    refresh_status(data.tenant, contract_id)
    event_completed(data.tenant, CONTRACT.upper(), contract_id, "create")
    refresh_organization_financials(data.tenant, data.organization_id)


def on_update(event: Event) -> None:
    data = event.payload(ContractUpdateEvent)
    tenant = data.tenant
    contract_id = contract_object_id(event.aggregate_id, tenant)
    before = contract_read.get_contract_by_id(tenant, contract_id)

    fields = {name: getattr(data, name) for name in CONTRACT_FIELDS}
    applied = contract_write.update_contract(
        tenant,
        contract_id,
        ContractSaveFields(aggregate_version=event.version, source=data.source, app_source=data.app_source, **fields),
    )
    if not applied:
        logger.info(
            "contract_update_skipped",
            extra={"tenant": tenant, "contract_id": contract_id, "aggregate_version": event.version},
        )
        return
    _link_external_system(tenant, contract_id, data.external_system)

    if before is not None and data.length_in_months is not None:
        if before.length_in_months > 0 and data.length_in_months == 0:
            contract_write.suspend_active_renewal_opportunity(tenant, contract_id)
        elif before.length_in_months == 0 and data.length_in_months > 0:
            contract_write.activate_suspended_renewal_opportunity(tenant, contract_id)

    refresh_status(tenant, contract_id)
    event_completed(tenant, CONTRACT.upper(), contract_id, "update")
    refresh_organization_financials(tenant, organization_read.get_organization_id_for_contract(tenant, contract_id))


def on_update_status(event: Event) -> None:
    data = event.payload(ContractUpdateStatusEvent)
    contract_id = contract_object_id(event.aggregate_id, data.tenant)
    contract_write.update_status(data.tenant, contract_id, data.status, aggregate_version=event.version)
    event_completed(data.tenant, CONTRACT.upper(), contract_id, "update")
    refresh_organization_financials(data.tenant, organization_read.get_organization_id_for_contract(data.tenant, contract_id))


def on_refresh_status(event: Event) -> None:
    tenant = event.tenant
    contract_id = contract_object_id(event.aggregate_id, tenant)
    refresh_status(tenant, contract_id)
    event_completed(tenant, CONTRACT.upper(), contract_id, "update")


def on_refresh_ltv(event: Event) -> None:
    data = event.payload(ContractRefreshLtvEvent)
    contract_write.set_ltv(data.tenant, contract_object_id(event.aggregate_id, data.tenant), data.ltv)


def on_rollout_renewal_opportunity(event: Event) -> None:
    tenant = event.tenant
    contract_id = contract_object_id(event.aggregate_id, tenant)
    contract_write.mark_rollout_renewal_requested(tenant, contract_id)
    refresh_status(tenant, contract_id)
    refresh_organization_financials(tenant, organization_read.get_organization_id_for_contract(tenant, contract_id))


def on_delete(event: Event) -> None:
    data = event.payload(ContractDeleteEvent)
    tenant = data.tenant
    contract_id = contract_object_id(event.aggregate_id, tenant)
    organization_id = organization_read.get_organization_id_for_contract(tenant, contract_id)
    contract_write.soft_delete(tenant, contract_id, data.deleted_at)
    event_completed(tenant, CONTRACT.upper(), contract_id, "delete")
    refresh_organization_financials(tenant, organization_id)
