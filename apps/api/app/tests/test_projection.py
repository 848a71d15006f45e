from __future__ import annotations

from datetime import timedelta

from app.core.timeutils import utc_now
from app.db.neo4j.entities import ContractEntity, OpportunityEntity, OrganizationEntity
from app.eventstore.events import EventPayload, new_event
from app.services.aggregates.contact import ContactAggregate
from app.services.aggregates.contract import ContractAggregate
from app.services.aggregates.organization import OrganizationAggregate
from app.services.commands import requests as rq
from app.services.projection import contact as contact_projection
from app.services.projection import contract as contract_projection
from app.services.projection import organization as organization_projection
from app.services.projection import refresh
from app.services.projection.router import project


def _contract_event(request):
    aggregate = ContractAggregate("ziggy", "c1")
    aggregate.handle_request(request)
    return aggregate.uncommitted[-1]


def _record_refreshes(monkeypatch) -> list[tuple]:
    calls: list[tuple] = []
    monkeypatch.setattr(contract_projection, "request_refresh", lambda *args, **kw: calls.append((*args, kw)))
    monkeypatch.setattr(refresh, "request_refresh", lambda *args, **kw: calls.append((*args, kw)))
    return calls


def test_contract_delete_soft_deletes_and_refreshes_financials(monkeypatch, completed_events) -> None:
    deleted: list[tuple] = []
    refreshes = _record_refreshes(monkeypatch)
    monkeypatch.setattr(
        contract_projection.organization_read, "get_organization_id_for_contract", lambda tenant, cid: "org-1"
    )
    monkeypatch.setattr(
        contract_projection.contract_write,
        "soft_delete",
        lambda tenant, cid, deleted_at: deleted.append((tenant, cid)),
    )

    assert project(_contract_event(rq.SoftDeleteContractRequest(tenant="ziggy", contract_id="c1"))) is True

    assert deleted == [("ziggy", "c1")]
    assert [call[0] for call in refreshes] == [refresh.REFRESH_RENEWAL_SUMMARY, refresh.REFRESH_ARR]
    assert completed_events[0].delete is True
    assert completed_events[0].entity == "CONTRACT"


def test_refresh_status_moving_to_live_requests_onboarding(monkeypatch) -> None:
    contract = ContractEntity(id="c1", status="DRAFT", service_started_at=utc_now() - timedelta(days=3))
    status_updates: list[str] = []
    flagged: list[str] = []
    refreshes = _record_refreshes(monkeypatch)
    monkeypatch.setattr(contract_projection.contract_read, "get_contract_by_id", lambda tenant, cid: contract)
    monkeypatch.setattr(
        contract_projection.contract_read, "get_active_renewal_opportunity_for_contract", lambda tenant, cid: None
    )
    monkeypatch.setattr(
        contract_projection.contract_write, "update_status", lambda tenant, cid, status: status_updates.append(status)
    )
    monkeypatch.setattr(
        contract_projection.contract_write,
        "contract_caused_onboarding_status_change",
        lambda tenant, cid: flagged.append(cid),
    )
    monkeypatch.setattr(
        contract_projection.organization_read, "get_organization_id_for_contract", lambda tenant, cid: "org-1"
    )
    monkeypatch.setattr(
        contract_projection.organization_read,
        "get_organization",
        lambda tenant, oid: OrganizationEntity(id=oid, onboarding_status="NOT_APPLICABLE"),
    )

    assert contract_projection.refresh_status("ziggy", "c1") == "LIVE"

    assert status_updates == ["LIVE"]
    assert flagged == ["c1"]
    name, tenant, organization_id, fields = refreshes[0]
    assert (name, tenant, organization_id) == (refresh.UPDATE_ONBOARDING_STATUS, "ziggy", "org-1")
    assert fields == {"status": "NOT_STARTED", "caused_by_contract_id": "c1"}


def test_refresh_status_skips_onboarding_when_already_triggered(monkeypatch) -> None:
    contract = ContractEntity(
        id="c1",
        status="LIVE",
        service_started_at=utc_now() - timedelta(days=3),
        triggered_onboarding_status_change=True,
    )
    refreshes = _record_refreshes(monkeypatch)
    monkeypatch.setattr(contract_projection.contract_read, "get_contract_by_id", lambda tenant, cid: contract)
    monkeypatch.setattr(
        contract_projection.contract_read, "get_active_renewal_opportunity_for_contract", lambda tenant, cid: None
    )

    assert contract_projection.refresh_status("ziggy", "c1") == "LIVE"
    assert refreshes == []


def test_refresh_status_for_missing_contract(monkeypatch) -> None:
    monkeypatch.setattr(contract_projection.contract_read, "get_contract_by_id", lambda tenant, cid: None)

    assert contract_projection.refresh_status("ziggy", "c1") is None


def test_location_link_projects_and_notifies(monkeypatch, completed_events) -> None:
    links: list[tuple] = []
    monkeypatch.setattr(
        contact_projection.location, "link_with_contact", lambda tenant, cid, lid: links.append((tenant, cid, lid))
    )
    aggregate = ContactAggregate("ziggy", "contact-1")
    aggregate.handle_request(rq.LinkLocationToContactRequest(tenant="ziggy", contact_id="contact-1", location_id="l1"))

    project(aggregate.uncommitted[-1])

    assert links == [("ziggy", "contact-1", "l1")]
    assert completed_events[0].entity == "CONTACT"
    assert completed_events[0].update is True


def test_unknown_event_type_is_ignored() -> None:
    event = new_event("contact-ziggy-contact-1", "contact", "V1_CONTACT_TELEPORT", EventPayload(tenant="ziggy"))

    assert project(event) is False


def test_request_refresh_never_raises(monkeypatch) -> None:
    def _boom(*args, **kwargs):
        raise RuntimeError("queue down")

    monkeypatch.setattr("app.workers.queue.enqueue_job", _boom)

    refresh.request_refresh(refresh.REFRESH_ARR, "ziggy", "org-1")


def test_request_refresh_ignores_blank_object(monkeypatch) -> None:
    calls: list[str] = []
    monkeypatch.setattr("app.workers.queue.enqueue_job", lambda *args, **kw: calls.append(args[0]))

    refresh.request_refresh(refresh.REFRESH_ARR, "ziggy", "")
    refresh.refresh_organization_financials("ziggy", None)

    assert calls == []


def _stub_contract_update(monkeypatch, before: ContractEntity | None, applied: bool = True) -> dict[str, list]:
    calls: dict[str, list] = {"update": [], "suspend": [], "activate": []}
    monkeypatch.setattr(contract_projection.contract_read, "get_contract_by_id", lambda tenant, cid: before)
    monkeypatch.setattr(contract_projection, "refresh_status", lambda tenant, cid: None)
    monkeypatch.setattr(
        contract_projection.organization_read, "get_organization_id_for_contract", lambda tenant, cid: None
    )
    monkeypatch.setattr(
        contract_projection.contract_write,
        "update_contract",
        lambda tenant, cid, data: calls["update"].append(data) or applied,
    )
    monkeypatch.setattr(
        contract_projection.contract_write,
        "suspend_active_renewal_opportunity",
        lambda tenant, cid: calls["suspend"].append(cid),
    )
    monkeypatch.setattr(
        contract_projection.contract_write,
        "activate_suspended_renewal_opportunity",
        lambda tenant, cid: calls["activate"].append(cid),
    )
    return calls


def _length_update(months: int):
    return _contract_event(
        rq.UpdateContractRequest(
            tenant="ziggy", contract_id="c1", length_in_months=months, field_mask=["length_in_months"]
        )
    )


def test_contract_length_dropping_to_zero_suspends_renewal(monkeypatch, completed_events) -> None:
    calls = _stub_contract_update(monkeypatch, ContractEntity(id="c1", length_in_months=12))

    project(_length_update(0))

    assert calls["update"][0].length_in_months == 0
    assert calls["suspend"] == ["c1"]
    assert calls["activate"] == []


def test_contract_length_set_from_zero_reactivates_renewal(monkeypatch, completed_events) -> None:
    calls = _stub_contract_update(monkeypatch, ContractEntity(id="c1", length_in_months=0))

    project(_length_update(6))

    assert calls["activate"] == ["c1"]
    assert calls["suspend"] == []


def test_contract_length_change_between_terms_keeps_renewal(monkeypatch, completed_events) -> None:
    calls = _stub_contract_update(monkeypatch, ContractEntity(id="c1", length_in_months=12))

    project(_length_update(6))

    assert calls["suspend"] == []
    assert calls["activate"] == []


def test_stale_contract_update_stops_before_renewal_changes(monkeypatch, completed_events) -> None:
    calls = _stub_contract_update(monkeypatch, ContractEntity(id="c1", length_in_months=12), applied=False)

    project(_length_update(0))

    assert calls["suspend"] == []
    assert completed_events == []


def test_contract_status_event_writes_with_its_version(monkeypatch, completed_events) -> None:
    writes: list[tuple] = []
    monkeypatch.setattr(
        contract_projection.contract_write,
        "update_status",
        lambda tenant, cid, status, aggregate_version=None: writes.append((status, aggregate_version)),
    )
    monkeypatch.setattr(
        contract_projection.organization_read, "get_organization_id_for_contract", lambda tenant, cid: None
    )

    project(_contract_event(rq.UpdateContractStatusRequest(tenant="ziggy", contract_id="c1", status="ENDED")))

    assert writes == [("ENDED", 1)]


def test_hide_event_writes_with_its_version(monkeypatch, completed_events) -> None:
    writes: list[tuple] = []
    monkeypatch.setattr(
        organization_projection.organization_write,
        "set_visibility",
        lambda tenant, oid, hide, aggregate_version=None: writes.append((oid, hide, aggregate_version)),
    )
    aggregate = OrganizationAggregate("ziggy", "org-1")
    aggregate.handle_request(rq.HideOrganizationRequest(tenant="ziggy", organization_id="org-1"))
    aggregate.handle_request(rq.ShowOrganizationRequest(tenant="ziggy", organization_id="org-1"))

    for event in aggregate.uncommitted:
        project(event)

    assert writes == [("org-1", True, 1), ("org-1", False, 2)]


def test_renewal_summary_refresh_writes_lowest_likelihood(monkeypatch) -> None:
    soon = utc_now() + timedelta(days=10)
    later = utc_now() + timedelta(days=40)
    renewals = [
        OpportunityEntity(id="op-1", renewal_likelihood="HIGH", renewed_at=soon),
        OpportunityEntity(id="op-2", renewal_likelihood="LOW", renewed_at=later),
    ]
    written: list[tuple] = []
    monkeypatch.setattr(
        organization_projection.organization_read,
        "get_active_renewals_for_organization",
        lambda tenant, oid: renewals,
    )
    monkeypatch.setattr(
        organization_projection.organization_write,
        "update_renewal_summary",
        lambda *args: written.append(args),
    )
    aggregate = OrganizationAggregate("ziggy", "org-1")
    aggregate.handle_request(rq.RefreshRenewalSummaryRequest(tenant="ziggy", organization_id="org-1"))

    project(aggregate.uncommitted[-1])

    assert written == [("ziggy", "org-1", "LOW", 20, soon)]


def test_last_touchpoint_refresh_writes_latest_event(monkeypatch) -> None:
    happened_at = utc_now() - timedelta(hours=2)
    written: list[tuple] = []
    monkeypatch.setattr(
        organization_projection.organization_read,
        "get_latest_touchpoint",
        lambda tenant, oid: ("te-1", happened_at, "Meeting"),
    )
    monkeypatch.setattr(
        organization_projection.organization_write, "update_last_touchpoint", lambda *args: written.append(args)
    )
    aggregate = OrganizationAggregate("ziggy", "org-1")
    aggregate.handle_request(rq.RefreshLastTouchpointRequest(tenant="ziggy", organization_id="org-1"))

    project(aggregate.uncommitted[-1])

    assert written == [("ziggy", "org-1", happened_at, "te-1", "Meeting")]
