from __future__ import annotations

import uuid

from app.services.aggregates.contract import ContractAggregate
from app.services.commands.base import execute, require
from app.services.commands.requests import (
    CommandResponse,
    CreateContractRequest,
    RefreshContractLtvRequest,
    RefreshContractStatusRequest,
    RolloutRenewalOpportunityOnExpirationRequest,
    SoftDeleteContractRequest,
    UpdateContractRequest,
    UpdateContractStatusRequest,
)


def _aggregate(tenant: str, contract_id: str) -> ContractAggregate:
    return ContractAggregate(require(tenant, "tenant"), require(contract_id, "contractId"))


def create_contract(request: CreateContractRequest) -> CommandResponse:
    require(request.organization_id, "organizationId")
    request.contract_id = request.contract_id or str(uuid.uuid4())
    return execute("CreateContract", _aggregate(request.tenant, request.contract_id), request)


def update_contract(request: UpdateContractRequest) -> CommandResponse:
    return execute("UpdateContract", _aggregate(request.tenant, request.contract_id), request, must_exist=True)


def update_contract_status(request: UpdateContractStatusRequest) -> CommandResponse:
    require(request.status, "status")
    return execute(
        "UpdateContractStatus",
        _aggregate(request.tenant, request.contract_id),
        request,
        is_redundant=lambda agg: agg.contract.status == request.status,
        must_exist=True,
    )


def soft_delete_contract(request: SoftDeleteContractRequest) -> None:
    execute(
        "SoftDeleteContract",
        _aggregate(request.tenant, request.contract_id),
        request,
        is_redundant=lambda agg: agg.contract.removed,
    )


def rollout_renewal_opportunity_on_expiration(request: RolloutRenewalOpportunityOnExpirationRequest) -> CommandResponse:
    return execute("RolloutRenewalOpportunityOnExpiration", _aggregate(request.tenant, request.contract_id), request)


def refresh_contract_status(request: RefreshContractStatusRequest) -> CommandResponse:
    return execute("RefreshContractStatus", _aggregate(request.tenant, request.contract_id), request)


def refresh_contract_ltv(request: RefreshContractLtvRequest) -> CommandResponse:
    return execute(
        "RefreshContractLtv",
        _aggregate(request.tenant, request.contract_id),
        request,
        is_redundant=lambda agg: agg.ltv_is_redundant(request.ltv),
    )
