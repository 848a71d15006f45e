"""Pure derivations of contract status and the organization renewal summary."""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, NamedTuple

from app.core.constants import RENEWAL_LIKELIHOOD_ORDER, ContractStatus
from app.core.timeutils import as_utc, utc_now
from app.db.neo4j.entities import ContractEntity, OpportunityEntity


def derive_contract_status(
    contract: ContractEntity,
    active_renewal: OpportunityEntity | None,
    now: datetime | None = None,
) -> str:
    now = now or utc_now()
    if contract.ended_at is not None and as_utc(contract.ended_at) < now:
        return ContractStatus.ENDED.value
    if contract.service_started_at is None or as_utc(contract.service_started_at) > now:
        return ContractStatus.DRAFT.value
    if active_renewal is None:
        return ContractStatus.LIVE.value
    if active_renewal.renewed_at is None or as_utc(active_renewal.renewed_at) > now:
        return ContractStatus.LIVE.value
    if contract.auto_renew and contract.approved:
        return ContractStatus.LIVE.value
    return ContractStatus.OUT_OF_CONTRACT.value


class RenewalSummary(NamedTuple):
    likelihood: str | None
    likelihood_order: int | None
    next_renewal_at: datetime | None


def summarize_renewals(renewals: Iterable[OpportunityEntity], now: datetime | None = None) -> RenewalSummary:
    """Lowest likelihood and earliest upcoming renewal date across the given active renewals."""
    now = now or utc_now()
    likelihood: str | None = None
    order: int | None = None
    next_renewal_at: datetime | None = None
    for renewal in renewals:
        renewal_order = RENEWAL_LIKELIHOOD_ORDER.get(renewal.renewal_likelihood or "")
        if renewal_order is not None and (order is None or renewal_order < order):
            likelihood, order = renewal.renewal_likelihood, renewal_order
        if renewal.renewed_at is not None:
            renewed_at = as_utc(renewal.renewed_at)
            if renewed_at > now and (next_renewal_at is None or renewed_at < next_renewal_at):
                next_renewal_at = renewed_at
    return RenewalSummary(likelihood, order, next_renewal_at)
