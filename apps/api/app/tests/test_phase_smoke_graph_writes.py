from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.core.errors import InvalidArgumentError
from app.db.neo4j.labels import entity_label, tenant_label
from app.db.neo4j.repositories import (
    contact_write,
    contract_write,
    email_write,
    location,
    organization_read,
    organization_write,
)
from app.db.neo4j.repositories.contact_write import ContactSaveFields
from app.db.neo4j.repositories.contract_write import ContractSaveFields
from app.db.neo4j.repositories.email_write import EmailValidatedFields
from app.db.neo4j.repositories.organization_write import OrganizationSaveFields


def test_tenant_labels_are_composite_and_quoted_when_needed() -> None:
    assert tenant_label("Contract", "ziggy") == "Contract_ziggy"
    assert entity_label("Organization", "ziggy") == "Organization:Organization_ziggy"
    assert tenant_label("Contact", "acme-corp") == "`Contact_acme-corp`"


@pytest.mark.phase_smoke
def test_organization_save_guards_on_aggregate_version(recording_tx) -> None:
    tx = recording_tx([], [[True]])

    applied = organization_write.save(
        "ziggy",
        "org-1",
        OrganizationSaveFields(aggregate_version=3, source="hubspot", name="Acme", employees=20),
        tx=tx,
    )

    assert applied is True
    ensure_query, ensure_params = tx.calls[0]
    update_query, params = tx.calls[1]
    assert "org:Organization:Organization_ziggy" in ensure_query
    assert ensure_params["onboardingStatus"] == "NOT_APPLICABLE"
    assert "org.aggregateVersion IS NULL OR org.aggregateVersion < $aggregateVersion" in update_query
    assert "org.name = CASE WHEN $overwrite = true OR org.sourceOfTruth = $source" in update_query
    assert "org.description" not in update_query
    assert params["aggregateVersion"] == 3
    assert params["overwrite"] is False
    assert params["source"] == "hubspot"
    assert params["name"] == "Acme"
    assert params["employees"] == 20


@pytest.mark.phase_smoke
def test_organization_save_reports_skipped_write_when_version_is_stale(recording_tx) -> None:
    tx = recording_tx([], [])

    applied = organization_write.save("ziggy", "org-1", OrganizationSaveFields(aggregate_version=1, name="Old"), tx=tx)

    assert applied is False
    assert tx.calls[1][1]["overwrite"] is True


@pytest.mark.phase_smoke
def test_link_with_domain_refuses_domain_owned_within_tenant(recording_tx) -> None:
    tx = recording_tx([])

    linked = organization_write.link_with_domain("ziggy", "org-1", " Acme.COM ", tx=tx)

    assert linked is False
    assert tx.params["domain"] == "acme.com"
    assert "MERGE (d:Domain {domain:$domain})" in tx.query
    assert "WHERE existingOrgCount = 0" in tx.query
    assert "MERGE (org)-[:HAS_DOMAIN]->(d)" in tx.query


@pytest.mark.phase_smoke
def test_contact_update_from_non_authoritative_source_keeps_existing_values(recording_tx) -> None:
    tx = recording_tx([[True]])

    contact_write.save(
        "ziggy",
        "contact-1",
        ContactSaveFields(aggregate_version=2, source="hubspot", description="from hubspot", name="New name"),
        tx=tx,
    )

    assert tx.params["overwrite"] is False
    assert tx.params["description"] == "from hubspot"
    assert (
        "c.description = CASE WHEN ($updateOnlyIfEmpty = false AND ($overwrite = true OR c.sourceOfTruth = $source)) "
        "OR c.description IS NULL OR c.description = '' THEN $description ELSE c.description END"
    ) in tx.query
    assert "c.sourceOfTruth = CASE WHEN $overwrite = true AND $updateOnlyIfEmpty = false THEN $source" in tx.query
    assert "c:Contact_ziggy" in tx.query


@pytest.mark.phase_smoke
def test_contract_soft_delete_swaps_labels(recording_tx) -> None:
    tx = recording_tx([])
    deleted_at = datetime(2026, 10, 1, tzinfo=timezone.utc)

    contract_write.soft_delete("ziggy", "c1", deleted_at, tx=tx)

    assert "ct:DeletedContract," in tx.query
    assert "ct:DeletedContract_ziggy" in tx.query
    assert "REMOVE ct:Contract, ct:Contract_ziggy" in tx.query
    assert tx.params == {"tenant": "ziggy", "contractId": "c1", "deletedAt": deleted_at}


@pytest.mark.phase_smoke
def test_set_primary_for_entity_demotes_other_emails(recording_tx) -> None:
    tx = recording_tx([])

    email_write.set_primary_for_entity("ziggy", "contact", "contact-1", "a@acme.com", tx=tx)

    assert "(owner:Contact_ziggy {id:$entityId})-[rel:HAS]->(e:Email)" in tx.query
    assert "SET rel.primary = true" in tx.query
    assert "SET other.primary = false" in tx.query
    assert tx.params["email"] == "a@acme.com"


@pytest.mark.phase_smoke
def test_primary_email_link_demotes_previous_primary(recording_tx) -> None:
    tx = recording_tx([])

    email_write.link_with_contact("ziggy", "contact-1", "email-1", True, tx=tx)

    assert "MERGE (owner)-[rel:HAS]->(e)" in tx.query
    assert "WHERE $primary = true AND oe.id <> e.id" in tx.query
    assert tx.params["primary"] is True


def test_email_link_rejects_unknown_owner_type(recording_tx) -> None:
    with pytest.raises(InvalidArgumentError):
        email_write.link_with_entity("ziggy", "INVOICE", "i-1", "email-1", False, tx=recording_tx())


@pytest.mark.phase_smoke
def test_email_validated_merges_global_domain_once(recording_tx) -> None:
    tx = recording_tx([])

    email_write.email_validated(
        "ziggy", "email-1", EmailValidatedFields(email_address="a@acme.com", domain="ACME.com"), tx=tx
    )

    assert tx.query.count("MERGE (d:Domain {domain:$domain})") == 1
    assert "MERGE (e)-[:HAS_DOMAIN]->(d)" in tx.query
    assert "WHERE $domain <> ''" in tx.query
    assert tx.params["domain"] == "acme.com"


@pytest.mark.phase_smoke
def test_location_link_with_contact_uses_associated_with(recording_tx) -> None:
    tx = recording_tx([])

    location.link_with_contact("ziggy", "contact-1", "loc-1", tx=tx)

    assert "MERGE (c)-[:ASSOCIATED_WITH]->(l)" in tx.query
    assert "c:Contact:Contact_ziggy" in tx.query
    assert tx.params["contactId"] == "contact-1"
    assert tx.params["locationId"] == "loc-1"


@pytest.mark.phase_smoke
def test_renewal_summary_write_binds_derived_fields(recording_tx) -> None:
    tx = recording_tx([])
    next_renewal = datetime(2027, 1, 1, tzinfo=timezone.utc)

    organization_write.update_renewal_summary("ziggy", "org-1", "LOW", 20, next_renewal, tx=tx)

    assert tx.params["derivedRenewalLikelihood"] == "LOW"
    assert tx.params["derivedRenewalLikelihoodOrder"] == 20
    assert tx.params["derivedNextRenewalAt"] == next_renewal


@pytest.mark.phase_smoke
def test_arr_sums_active_renewals_of_live_contracts_only(recording_tx) -> None:
    tx = recording_tx([])

    organization_write.update_arr("ziggy", "org-1", tx=tx)

    assert "(org)-[:HAS_CONTRACT]->(c:Contract_ziggy)" in tx.query
    assert "DeletedContract" not in tx.query
    assert "WHERE c.status <> $statusDraft" in tx.query
    assert "(c)-[:ACTIVE_RENEWAL]->(op:Opportunity)" in tx.query
    assert "COALESCE(sum(op.amount), 0) AS arr" in tx.query
    assert "COALESCE(sum(op.maxAmount), 0) AS maxArr" in tx.query
    assert tx.params == {"tenant": "ziggy", "organizationId": "org-1", "statusDraft": "DRAFT"}


@pytest.mark.phase_smoke
def test_suspend_moves_active_renewal_to_suspended(recording_tx) -> None:
    tx = recording_tx([])

    contract_write.suspend_active_renewal_opportunity("ziggy", "c1", tx=tx)

    assert "-[r:ACTIVE_RENEWAL]->(op:RenewalOpportunity)" in tx.query
    assert "SET op.internalStage = $suspendedStage" in tx.query
    assert "MERGE (ct)-[:SUSPENDED_RENEWAL]->(op)" in tx.query
    assert "DELETE r" in tx.query
    assert tx.params["suspendedStage"] == "SUSPENDED"


@pytest.mark.phase_smoke
def test_activate_suspended_renewal_only_without_an_active_one(recording_tx) -> None:
    tx = recording_tx([])

    contract_write.activate_suspended_renewal_opportunity("ziggy", "c1", tx=tx)

    assert "-[r:SUSPENDED_RENEWAL]->(op:RenewalOpportunity)" in tx.query
    assert "WHERE NOT (ct)-[:ACTIVE_RENEWAL]->(:Opportunity)" in tx.query
    assert "MERGE (ct)-[:ACTIVE_RENEWAL]->(op)" in tx.query
    assert tx.params["openStage"] == "OPEN"


@pytest.mark.phase_smoke
def test_archive_moves_organization_off_the_tenant(recording_tx) -> None:
    tx = recording_tx([])

    organization_write.archive("ziggy", "org-1", tx=tx)

    assert "MERGE (org)-[:ARCHIVED]->(t)" in tx.query
    assert "org:ArchivedOrganization_ziggy" in tx.query
    assert "DELETE currentRel" in tx.query
    assert "REMOVE org:Organization_ziggy" in tx.query
    assert tx.params["organizationId"] == "org-1"


@pytest.mark.phase_smoke
def test_contract_create_defaults_currency_and_links_creator_when_known(recording_tx) -> None:
    tx = recording_tx([])

    contract_write.create_for_organization(
        "ziggy", "c1", ContractSaveFields(aggregate_version=1, organization_id="org-1", name="Pilot"), tx=tx
    )

    assert "ct:Contract_ziggy" in tx.query
    assert "WHERE $createdByUserId <> ''" in tx.query
    assert "MERGE (ct)-[:CREATED_BY]->(u)" in tx.query
    assert tx.params["currency"] == "USD"
    assert tx.params["createdByUserId"] == ""
    assert tx.params["source"] == "openline"
    assert tx.params["orgId"] == "org-1"


@pytest.mark.phase_smoke
def test_contract_create_keeps_given_currency_and_creator(recording_tx) -> None:
    tx = recording_tx([])

    contract_write.create_for_organization(
        "ziggy",
        "c1",
        ContractSaveFields(organization_id="org-1", currency="EUR", created_by_user_id="user-1", pay_online=True),
        tx=tx,
    )

    assert tx.params["currency"] == "EUR"
    assert tx.params["createdByUserId"] == "user-1"
    assert tx.params["payOnline"] is True


@pytest.mark.phase_smoke
def test_contract_update_sets_only_provided_fields_under_version_guard(recording_tx) -> None:
    tx = recording_tx([[True]])

    applied = contract_write.update_contract(
        "ziggy", "c1", ContractSaveFields(aggregate_version=4, address_line1="1 Main St", pay_online=False), tx=tx
    )

    assert applied is True
    assert "ct.aggregateVersion IS NULL OR ct.aggregateVersion < $aggregateVersion" in tx.query
    assert "ct.addressLine1 = $addressLine1" in tx.query
    assert "ct.payOnline = $payOnline" in tx.query
    assert "ct.aggregateVersion = $aggregateVersion" in tx.query
    assert "ct.name" not in tx.query
    assert "ct.currency" not in tx.query
    assert tx.params["payOnline"] is False
    assert tx.params["aggregateVersion"] == 4


@pytest.mark.phase_smoke
def test_contract_update_rejected_by_version_guard(recording_tx) -> None:
    tx = recording_tx([])

    applied = contract_write.update_contract("ziggy", "c1", ContractSaveFields(aggregate_version=2, name="x"), tx=tx)

    assert applied is False


@pytest.mark.phase_smoke
def test_contract_status_write_is_version_guarded(recording_tx) -> None:
    tx = recording_tx([])

    contract_write.update_status("ziggy", "c1", "LIVE", aggregate_version=5, tx=tx)

    assert "ct.aggregateVersion IS NULL OR ct.aggregateVersion < $aggregateVersion" in tx.query
    assert "ct.aggregateVersion = COALESCE($aggregateVersion, ct.aggregateVersion)" in tx.query
    assert tx.params["aggregateVersion"] == 5
    assert tx.params["status"] == "LIVE"


@pytest.mark.phase_smoke
def test_derived_status_write_skips_the_version_guard(recording_tx) -> None:
    tx = recording_tx([])

    contract_write.update_status("ziggy", "c1", "OUT_OF_CONTRACT", tx=tx)

    assert "$aggregateVersion IS NULL OR" in tx.query
    assert tx.params["aggregateVersion"] is None


@pytest.mark.phase_smoke
def test_visibility_write_is_version_guarded(recording_tx) -> None:
    tx = recording_tx([])

    organization_write.set_visibility("ziggy", "org-1", True, aggregate_version=7, tx=tx)

    assert "org.aggregateVersion IS NULL OR org.aggregateVersion < $aggregateVersion" in tx.query
    assert "org.aggregateVersion = COALESCE($aggregateVersion, org.aggregateVersion)" in tx.query
    assert "org.hiddenAt = CASE WHEN $hide = true THEN $now ELSE null END" in tx.query
    assert tx.params["aggregateVersion"] == 7
    assert tx.params["hide"] is True


@pytest.mark.phase_smoke
def test_onboarding_status_write_is_version_guarded(recording_tx) -> None:
    tx = recording_tx([])
    updated_at = datetime(2026, 10, 19, tzinfo=timezone.utc)

    organization_write.update_onboarding_status(
        "ziggy", "org-1", "ON_TRACK", "kickoff done", 30, updated_at, aggregate_version=9, tx=tx
    )

    assert "org.aggregateVersion IS NULL OR org.aggregateVersion < $aggregateVersion" in tx.query
    assert "SET org.onboardingStatus = $status" in tx.query
    assert tx.params["aggregateVersion"] == 9
    assert tx.params["statusOrder"] == 30
    assert tx.params["updatedAt"] == updated_at


@pytest.mark.phase_smoke
def test_latest_touchpoint_reads_typed_timeline_event(recording_tx) -> None:
    happened_at = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)
    tx = recording_tx([["te-1", happened_at, ["TimelineEvent", "Meeting", "TimelineEvent_ziggy"]]])

    touchpoint = organization_read.get_latest_touchpoint("ziggy", "org-1", tx=tx)

    assert touchpoint == ("te-1", happened_at, "Meeting")
    assert "(te:TimelineEvent_ziggy)" in tx.query
    assert "WHERE touchpointAt <= $now" in tx.query
    assert "ORDER BY touchpointAt DESC" in tx.query
    assert tx.params["organizationId"] == "org-1"


@pytest.mark.phase_smoke
def test_latest_touchpoint_none_without_timeline_events(recording_tx) -> None:
    assert organization_read.get_latest_touchpoint("ziggy", "org-1", tx=recording_tx([])) is None
