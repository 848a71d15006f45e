from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.v1.deps import require_api_key
from app.api.v1.schemas import OrganizationSearchRequest, OrganizationSearchResponse
from app.db.neo4j.repositories.organization_with_filters import get_filtered_organization_ids
from app.services.commands import organization as commands
from app.services.commands.requests import (
    ArchiveOrganizationRequest,
    CommandRequest,
    CommandResponse,
    CreateOrganizationRequest,
    HideOrganizationRequest,
    LinkDomainToOrganizationRequest,
    RefreshArrRequest,
    RefreshLastTouchpointRequest,
    RefreshRenewalSummaryRequest,
    ShowOrganizationRequest,
    UpdateOnboardingStatusRequest,
    UpdateOrganizationRequest,
)

router = APIRouter(prefix="/organizations", tags=["organizations"], dependencies=[Depends(require_api_key)])


@router.post("", response_model=CommandResponse)
def create_organization(payload: CreateOrganizationRequest) -> CommandResponse:
    return commands.create_organization(payload)


@router.post("/search", response_model=OrganizationSearchResponse)
def search_organizations(payload: OrganizationSearchRequest) -> OrganizationSearchResponse:
    return OrganizationSearchResponse(organization_ids=get_filtered_organization_ids(payload.tenant, payload.where))


@router.patch("/{organization_id}", response_model=CommandResponse)
def update_organization(organization_id: str, payload: UpdateOrganizationRequest) -> CommandResponse:
    payload.organization_id = organization_id
    return commands.update_organization(payload)


@router.post("/{organization_id}/hide", response_model=CommandResponse)
def hide_organization(organization_id: str, payload: CommandRequest) -> CommandResponse:
    return commands.hide_organization(HideOrganizationRequest(**payload.model_dump(), organization_id=organization_id))


@router.post("/{organization_id}/show", response_model=CommandResponse)
def show_organization(organization_id: str, payload: CommandRequest) -> CommandResponse:
    return commands.show_organization(ShowOrganizationRequest(**payload.model_dump(), organization_id=organization_id))


@router.post("/{organization_id}/archive", response_model=CommandResponse)
def archive_organization(organization_id: str, payload: CommandRequest) -> CommandResponse:
    return commands.archive_organization(
        ArchiveOrganizationRequest(**payload.model_dump(), organization_id=organization_id)
    )


@router.post("/{organization_id}/domains", response_model=CommandResponse)
def link_domain(organization_id: str, payload: LinkDomainToOrganizationRequest) -> CommandResponse:
    payload.organization_id = organization_id
    return commands.link_domain_to_organization(payload)


@router.put("/{organization_id}/onboarding", response_model=CommandResponse)
def update_onboarding_status(organization_id: str, payload: UpdateOnboardingStatusRequest) -> CommandResponse:
    payload.organization_id = organization_id
    return commands.update_onboarding_status(payload)


@router.post("/{organization_id}/refresh/arr", response_model=CommandResponse)
def refresh_arr(organization_id: str, payload: CommandRequest) -> CommandResponse:
    return commands.refresh_arr(RefreshArrRequest(**payload.model_dump(), organization_id=organization_id))


@router.post("/{organization_id}/refresh/renewal-summary", response_model=CommandResponse)
def refresh_renewal_summary(organization_id: str, payload: CommandRequest) -> CommandResponse:
    return commands.refresh_renewal_summary(
        RefreshRenewalSummaryRequest(**payload.model_dump(), organization_id=organization_id)
    )


@router.post("/{organization_id}/refresh/last-touchpoint", response_model=CommandResponse)
def refresh_last_touchpoint(organization_id: str, payload: CommandRequest) -> CommandResponse:
    return commands.refresh_last_touchpoint(
        RefreshLastTouchpointRequest(**payload.model_dump(), organization_id=organization_id)
    )
