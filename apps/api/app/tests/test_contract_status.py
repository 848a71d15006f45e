from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.db.neo4j.entities import ContractEntity, OpportunityEntity
from app.services.projection.derivations import derive_contract_status, summarize_renewals

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
DAY = timedelta(days=1)


def test_ended_contract() -> None:
    contract = ContractEntity(id="c1", service_started_at=NOW - 30 * DAY, ended_at=NOW - DAY)
    assert derive_contract_status(contract, None, now=NOW) == "ENDED"


def test_contract_not_started_yet_is_draft() -> None:
    contract = ContractEntity(id="c1", service_started_at=NOW + DAY)
    assert derive_contract_status(contract, None, now=NOW) == "DRAFT"


def test_contract_without_service_start_is_draft() -> None:
    assert derive_contract_status(ContractEntity(id="c1"), None, now=NOW) == "DRAFT"


def test_live_with_upcoming_renewal() -> None:
    contract = ContractEntity(id="c1", service_started_at=NOW, approved=True, auto_renew=True)
    renewal = OpportunityEntity(id="op-1", renewed_at=NOW + DAY)
    assert derive_contract_status(contract, renewal, now=NOW) == "LIVE"


def test_out_of_contract_when_renewal_passed_without_auto_renew() -> None:
    contract = ContractEntity(id="c1", service_started_at=NOW, approved=True, auto_renew=False)
    renewal = OpportunityEntity(id="op-1", renewed_at=NOW - DAY)
    assert derive_contract_status(contract, renewal, now=NOW) == "OUT_OF_CONTRACT"


def test_renewal_without_date_keeps_contract_live() -> None:
    contract = ContractEntity(id="c1", service_started_at=NOW - DAY, approved=True, auto_renew=False)
    renewal = OpportunityEntity(id="op-1")
    assert derive_contract_status(contract, renewal, now=NOW) == "LIVE"


def test_auto_renewed_approved_contract_stays_live_after_renewal_date() -> None:
    contract = ContractEntity(id="c1", service_started_at=NOW - DAY, approved=True, auto_renew=True)
    renewal = OpportunityEntity(id="op-1", renewed_at=NOW - DAY)
    assert derive_contract_status(contract, renewal, now=NOW) == "LIVE"


def test_live_without_active_renewal() -> None:
    contract = ContractEntity(id="c1", service_started_at=NOW - DAY)
    assert derive_contract_status(contract, None, now=NOW) == "LIVE"


def test_naive_dates_are_read_as_utc() -> None:
    contract = ContractEntity(id="c1", service_started_at=datetime(2026, 10, 1), ended_at=datetime(2026, 10, 18))
    assert derive_contract_status(contract, None, now=NOW) == "ENDED"


def test_renewal_summary_picks_lowest_likelihood_and_earliest_future_date() -> None:
    renewals = [
        OpportunityEntity(id="op-1", renewal_likelihood="HIGH", renewed_at=NOW + 40 * DAY),
        OpportunityEntity(id="op-2", renewal_likelihood="LOW", renewed_at=NOW + 10 * DAY),
        OpportunityEntity(id="op-3", renewal_likelihood="MEDIUM", renewed_at=NOW - DAY),
    ]

    summary = summarize_renewals(renewals, now=NOW)

    assert summary.likelihood == "LOW"
    assert summary.likelihood_order == 20
    assert summary.next_renewal_at == NOW + 10 * DAY


def test_renewal_summary_is_empty_without_renewals() -> None:
    summary = summarize_renewals([], now=NOW)
    assert summary.likelihood is None
    assert summary.likelihood_order is None
    assert summary.next_renewal_at is None
