from __future__ import annotations

import logging
from typing import Any, Callable

from app.core.constants import APP_SOURCE_EVENT_SUBSCRIBERS
from app.core.errors import InvalidArgumentError
from app.eventstore import store
from app.services.commands import contract as contract_commands
from app.services.commands import organization as organization_commands
from app.services.commands import requests as rq
from app.services.projection import refresh
from app.services.projection.router import project

logger = logging.getLogger(__name__)


def project_event(stream_id: str, version: int) -> dict:
    event = store.get_event(stream_id, version)
    if event is None:
        logger.warning("project_event_missing", extra={"stream_id": stream_id, "version": version})
        return {"stream_id": stream_id, "version": version, "status": "missing"}
    projected = project(event)
    return {
        "stream_id": stream_id,
        "version": version,
        "event_type": event.event_type,
        "status": "projected" if projected else "ignored",
    }


def _organization_command(
    command: Callable[[Any], rq.CommandResponse], request_cls: type[rq.OrganizationRequest]
) -> Callable[..., rq.CommandResponse]:
    def _run(tenant: str, object_id: str, **fields: Any) -> rq.CommandResponse:
        request = request_cls(
            tenant=tenant, organization_id=object_id, app_source=APP_SOURCE_EVENT_SUBSCRIBERS, **fields
        )
        return command(request)

    return _run


def _contract_command(
    command: Callable[[Any], rq.CommandResponse], request_cls: type[rq.ContractRequest]
) -> Callable[..., rq.CommandResponse]:
    def _run(tenant: str, object_id: str, **fields: Any) -> rq.CommandResponse:
        request = request_cls(tenant=tenant, contract_id=object_id, app_source=APP_SOURCE_EVENT_SUBSCRIBERS, **fields)
        return command(request)

    return _run


REFRESH_COMMANDS: dict[str, Callable[..., rq.CommandResponse]] = {
    refresh.REFRESH_ARR: _organization_command(organization_commands.refresh_arr, rq.RefreshArrRequest),
    refresh.REFRESH_RENEWAL_SUMMARY: _organization_command(
        organization_commands.refresh_renewal_summary, rq.RefreshRenewalSummaryRequest
    ),
    refresh.REFRESH_LAST_TOUCHPOINT: _organization_command(
        organization_commands.refresh_last_touchpoint, rq.RefreshLastTouchpointRequest
    ),
    refresh.UPDATE_ONBOARDING_STATUS: _organization_command(
        organization_commands.update_onboarding_status, rq.UpdateOnboardingStatusRequest
    ),
    refresh.REFRESH_CONTRACT_STATUS: _contract_command(
        contract_commands.refresh_contract_status, rq.RefreshContractStatusRequest
    ),
}


def run_refresh_command(name: str, tenant: str, object_id: str, **fields: Any) -> dict:
    command = REFRESH_COMMANDS.get(name)
    if command is None:
        raise InvalidArgumentError(f"unknown refresh command: {name}")
    response = command(tenant, object_id, **fields)
    logger.info(
        "refresh_command_completed",
        extra={"refresh": name, "tenant": tenant, "object_id": object_id, "skipped": response.redundant_event_skipped},
    )
    return response.model_dump()
