from __future__ import annotations

from datetime import date

import pytest

from app.core.errors import AggregateNotFoundError, InvalidArgumentError, MissingFieldError
from app.db.pg.base import Base
from app.db.pg.session import engine
from app.eventstore.store import get_event
from app.services.commands import contact as contact_commands
from app.services.commands import contract as contract_commands
from app.services.commands import email as email_commands
from app.services.commands import organization as organization_commands
from app.services.commands import requests as rq
from app.services.projection import contract as contract_projection
from app.services.projection.router import project
from app.workers import jobs


def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


@pytest.fixture(autouse=True)
def projected(monkeypatch):
    reset_db()
    calls: list[tuple[str, int]] = []
    monkeypatch.setattr(jobs, "project_event", lambda stream_id, version: calls.append((stream_id, version)))
    return calls


def _create_contact() -> str:
    return contact_commands.create_contact(
        rq.CreateContactRequest(tenant="ziggy", contact_id="contact-1", first_name="Ada", app_source="test")
    ).id


def test_create_contact_generates_id_and_projects(projected) -> None:
    response = contact_commands.create_contact(rq.CreateContactRequest(tenant="ziggy", first_name="Ada"))

    assert response.id
    assert response.redundant_event_skipped is False
    assert projected == [(f"contact-ziggy-{response.id}", 1)]


def test_system_update_without_changes_is_skipped(projected) -> None:
    _create_contact()

    response = contact_commands.update_contact(
        rq.UpdateContactRequest(tenant="ziggy", contact_id="contact-1", first_name="Ada")
    )

    assert response.id == "contact-1"
    assert response.redundant_event_skipped is True
    assert len(projected) == 1


def test_logged_in_user_always_emits(projected) -> None:
    _create_contact()

    response = contact_commands.update_contact(
        rq.UpdateContactRequest(tenant="ziggy", contact_id="contact-1", first_name="Ada", logged_in_user_id="user-1")
    )

    assert response.redundant_event_skipped is False
    assert projected[-1] == ("contact-ziggy-contact-1", 2)


def test_update_requires_existing_contact() -> None:
    with pytest.raises(AggregateNotFoundError):
        contact_commands.update_contact(rq.UpdateContactRequest(tenant="ziggy", contact_id="ghost", first_name="X"))


def test_missing_tenant_is_reported() -> None:
    with pytest.raises(MissingFieldError) as exc_info:
        contact_commands.link_location_to_contact(
            rq.LinkLocationToContactRequest(contact_id="contact-1", location_id="l1")
        )
    assert exc_info.value.field == "tenant"


def test_repeated_location_link_is_skipped(projected) -> None:
    _create_contact()
    request = rq.LinkLocationToContactRequest(tenant="ziggy", contact_id="contact-1", location_id="l1")

    first = contact_commands.link_location_to_contact(request)
    second = contact_commands.link_location_to_contact(request)

    assert first.redundant_event_skipped is False
    assert second.redundant_event_skipped is True
    assert len(projected) == 2


def test_add_social_skip_returns_existing_social_id() -> None:
    _create_contact()
    request = rq.ContactAddSocialRequest(tenant="ziggy", contact_id="contact-1", url="https://x.com/ada")

    first = contact_commands.add_social(request)
    second = contact_commands.add_social(request)

    assert first.id != "contact-1"
    assert second.redundant_event_skipped is True
    assert second.id == first.id


def test_add_location_returns_new_location_id() -> None:
    _create_contact()

    response = contact_commands.add_location(
        rq.ContactAddLocationRequest(tenant="ziggy", contact_id="contact-1", locality="Berlin", country="Germany")
    )

    assert response.id != "contact-1"


def test_hide_twice_is_skipped() -> None:
    organization_commands.create_organization(
        rq.CreateOrganizationRequest(tenant="ziggy", organization_id="org-1", name="Acme")
    )
    request = rq.HideOrganizationRequest(tenant="ziggy", organization_id="org-1")

    assert organization_commands.hide_organization(request).redundant_event_skipped is False
    assert organization_commands.hide_organization(request).redundant_event_skipped is True
    assert organization_commands.show_organization(
        rq.ShowOrganizationRequest(tenant="ziggy", organization_id="org-1")
    ).redundant_event_skipped is False


def test_onboarding_status_requires_status() -> None:
    with pytest.raises(MissingFieldError):
        organization_commands.update_onboarding_status(
            rq.UpdateOnboardingStatusRequest(tenant="ziggy", organization_id="org-1")
        )


def test_contract_lifecycle_commands(projected) -> None:
    created = contract_commands.create_contract(
        rq.CreateContractRequest(tenant="ziggy", contract_id="c1", organization_id="org-1", name="Pilot")
    )
    contract_commands.refresh_contract_ltv(rq.RefreshContractLtvRequest(tenant="ziggy", contract_id="c1", ltv=99.0))
    skipped = contract_commands.refresh_contract_ltv(
        rq.RefreshContractLtvRequest(tenant="ziggy", contract_id="c1", ltv=99.0)
    )
    deleted = contract_commands.soft_delete_contract(rq.SoftDeleteContractRequest(tenant="ziggy", contract_id="c1"))

    assert created.id == "c1"
    assert skipped.redundant_event_skipped is True
    assert deleted is None
    assert [version for _, version in projected] == [1, 2, 3]


def test_email_validation_requires_created_email() -> None:
    with pytest.raises(AggregateNotFoundError):
        email_commands.email_validated(rq.EmailValidatedRequest(tenant="ziggy", email_id="ghost"))


def test_clean_validation_skips_unvalidated_email() -> None:
    created = email_commands.create_email(rq.CreateEmailRequest(tenant="ziggy", raw_email="ada@acme.com"))

    response = email_commands.clean_email_validation(rq.CommandRequest(tenant="ziggy"), created.id)

    assert response.redundant_event_skipped is True


def test_email_validation_then_clean() -> None:
    created = email_commands.create_email(rq.CreateEmailRequest(tenant="ziggy", raw_email="ada@acme.com"))
    email_commands.email_validated(
        rq.EmailValidatedRequest(
            tenant="ziggy", email_id=created.id, email_address="ada@acme.com", domain="Acme.com", deliverable="true"
        )
    )

    response = email_commands.clean_email_validation(rq.CommandRequest(tenant="ziggy"), created.id)

    assert response.redundant_event_skipped is False


def test_contract_billing_fields_flow_from_command_to_graph_write(monkeypatch, completed_events) -> None:
    contract_commands.create_contract(
        rq.CreateContractRequest(
            tenant="ziggy", contract_id="c1", organization_id="org-1", country="RO", next_invoice_date=date(2026, 11, 1)
        )
    )
    contract_commands.update_contract(
        rq.UpdateContractRequest(
            tenant="ziggy",
            contract_id="c1",
            address_line1="1 Main St",
            pay_online=True,
            country="US",
            field_mask=["address_line1", "pay_online"],
        )
    )
    writes = []
    monkeypatch.setattr(contract_projection.contract_read, "get_contract_by_id", lambda tenant, cid: None)
    monkeypatch.setattr(
        contract_projection.organization_read, "get_organization_id_for_contract", lambda tenant, cid: None
    )
    monkeypatch.setattr(
        contract_projection.contract_write, "update_contract", lambda tenant, cid, data: writes.append(data) or True
    )

    created = get_event("contract-ziggy-c1", 1)
    updated = get_event("contract-ziggy-c1", 2)
    assert created.data["country"] == "RO"
    assert created.data["nextInvoiceDate"] == "2026-11-01"
    assert project(updated) is True

    data = writes[0]
    assert data.aggregate_version == 2
    assert data.address_line1 == "1 Main St"
    assert data.pay_online is True
    assert data.country is None
    assert data.can_pay_with_card is None
    assert completed_events[0].entity_id == "c1"


def test_contract_update_rejects_unknown_mask_field() -> None:
    contract_commands.create_contract(rq.CreateContractRequest(tenant="ziggy", contract_id="c1", organization_id="org-1"))

    with pytest.raises(InvalidArgumentError):
        contract_commands.update_contract(
            rq.UpdateContractRequest(tenant="ziggy", contract_id="c1", field_mask=["billing_address"])
        )
