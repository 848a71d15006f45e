from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from app.api.v1.deps import require_api_key
from app.services.commands import contract as commands
from app.services.commands.requests import (
    CommandRequest,
    CommandResponse,
    CreateContractRequest,
    RefreshContractLtvRequest,
    RefreshContractStatusRequest,
    RolloutRenewalOpportunityOnExpirationRequest,
    SoftDeleteContractRequest,
    UpdateContractRequest,
    UpdateContractStatusRequest,
)

router = APIRouter(prefix="/contracts", tags=["contracts"], dependencies=[Depends(require_api_key)])


@router.post("", response_model=CommandResponse)
def create_contract(payload: CreateContractRequest) -> CommandResponse:
    return commands.create_contract(payload)


@router.patch("/{contract_id}", response_model=CommandResponse)
def update_contract(contract_id: str, payload: UpdateContractRequest) -> CommandResponse:
    payload.contract_id = contract_id
    return commands.update_contract(payload)


@router.put("/{contract_id}/status", response_model=CommandResponse)
def update_contract_status(contract_id: str, payload: UpdateContractStatusRequest) -> CommandResponse:
    payload.contract_id = contract_id
    return commands.update_contract_status(payload)


@router.delete("/{contract_id}", status_code=status.HTTP_204_NO_CONTENT)
def soft_delete_contract(contract_id: str, tenant: str, logged_in_user_id: str = "", app_source: str = "") -> Response:
    commands.soft_delete_contract(
        SoftDeleteContractRequest(
            tenant=tenant, contract_id=contract_id, logged_in_user_id=logged_in_user_id, app_source=app_source
        )
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{contract_id}/rollout-renewal", response_model=CommandResponse)
def rollout_renewal(contract_id: str, payload: CommandRequest) -> CommandResponse:
    return commands.rollout_renewal_opportunity_on_expiration(
        RolloutRenewalOpportunityOnExpirationRequest(**payload.model_dump(), contract_id=contract_id)
    )


@router.post("/{contract_id}/refresh/status", response_model=CommandResponse)
def refresh_status(contract_id: str, payload: CommandRequest) -> CommandResponse:
    return commands.refresh_contract_status(
        RefreshContractStatusRequest(**payload.model_dump(), contract_id=contract_id)
    )


@router.put("/{contract_id}/ltv", response_model=CommandResponse)
def refresh_ltv(contract_id: str, payload: RefreshContractLtvRequest) -> CommandResponse:
    payload.contract_id = contract_id
    return commands.refresh_contract_ltv(payload)
