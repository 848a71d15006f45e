from __future__ import annotations

import uuid

from app.services.aggregates.organization import OrganizationAggregate
from app.services.commands.base import execute, require
from app.services.commands.requests import (
    ArchiveOrganizationRequest,
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


def _aggregate(tenant: str, organization_id: str) -> OrganizationAggregate:
    return OrganizationAggregate(require(tenant, "tenant"), require(organization_id, "organizationId"))


def create_organization(request: CreateOrganizationRequest) -> CommandResponse:
    request.organization_id = request.organization_id or str(uuid.uuid4())
    return execute("CreateOrganization", _aggregate(request.tenant, request.organization_id), request)


def update_organization(request: UpdateOrganizationRequest) -> CommandResponse:
    return execute(
        "UpdateOrganization",
        _aggregate(request.tenant, request.organization_id),
        request,
        is_redundant=lambda agg: agg.update_is_redundant(request),
        must_exist=True,
    )


def hide_organization(request: HideOrganizationRequest) -> CommandResponse:
    return execute(
        "HideOrganization",
        _aggregate(request.tenant, request.organization_id),
        request,
        is_redundant=lambda agg: agg.organization.hide,
    )


def show_organization(request: ShowOrganizationRequest) -> CommandResponse:
    return execute(
        "ShowOrganization",
        _aggregate(request.tenant, request.organization_id),
        request,
        is_redundant=lambda agg: not agg.organization.hide,
    )


def link_domain_to_organization(request: LinkDomainToOrganizationRequest) -> CommandResponse:
    require(request.domain, "domain")
    return execute(
        "LinkDomainToOrganization",
        _aggregate(request.tenant, request.organization_id),
        request,
        is_redundant=lambda agg: agg.organization.has_domain(request.domain),
    )


def update_onboarding_status(request: UpdateOnboardingStatusRequest) -> CommandResponse:
    require(request.status, "status")
    return execute(
        "UpdateOnboardingStatus",
        _aggregate(request.tenant, request.organization_id),
        request,
        is_redundant=lambda agg: (
            agg.organization.onboarding.status == request.status
            and agg.organization.onboarding.comments == request.comments
        ),
    )


def refresh_arr(request: RefreshArrRequest) -> CommandResponse:
    return execute("RefreshArr", _aggregate(request.tenant, request.organization_id), request)


def refresh_renewal_summary(request: RefreshRenewalSummaryRequest) -> CommandResponse:
    return execute("RefreshRenewalSummary", _aggregate(request.tenant, request.organization_id), request)


def refresh_last_touchpoint(request: RefreshLastTouchpointRequest) -> CommandResponse:
    return execute("RefreshLastTouchpoint", _aggregate(request.tenant, request.organization_id), request)


def archive_organization(request: ArchiveOrganizationRequest) -> CommandResponse:
    return execute(
        "ArchiveOrganization",
        _aggregate(request.tenant, request.organization_id),
        request,
        is_redundant=lambda agg: agg.organization.archived,
    )
