from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

REFRESH_ARR = "RefreshArr"
REFRESH_RENEWAL_SUMMARY = "RefreshRenewalSummary"
REFRESH_LAST_TOUCHPOINT = "RefreshLastTouchpoint"
REFRESH_CONTRACT_STATUS = "RefreshContractStatus"
UPDATE_ONBOARDING_STATUS = "UpdateOnboardingStatus"


def request_refresh(name: str, tenant: str, object_id: str, **fields: Any) -> None:
    """Queue a derived-state refresh command; failures never reach the caller."""
    if not object_id:
        return
    from app.workers.queue import enqueue_job

    try:
        enqueue_job("run_refresh_command", name, tenant, object_id, **fields)
    except Exception:
        logger.exception("refresh_request_failed", extra={"refresh": name, "tenant": tenant, "object_id": object_id})


def refresh_organization_financials(tenant: str, organization_id: str | None) -> None:
    if not organization_id:
        return
    request_refresh(REFRESH_RENEWAL_SUMMARY, tenant, organization_id)
    request_refresh(REFRESH_ARR, tenant, organization_id)
