from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.db.neo4j.entities import FlowParticipantEntity
from app.db.neo4j.repositories import (
    contact_read,
    email_read,
    flow_action_execution,
    flow_execution_settings,
    flow_participant,
    flow_read,
    tenant,
)

SCHEDULED_AT = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)


@pytest.mark.phase_smoke
def test_flow_list_with_participant_pairs_flow_and_entity(recording_tx, fake_node) -> None:
    flow = fake_node({"Flow", "Flow_ziggy"}, id="flow-1", name="Onboarding", status="ACTIVE")
    tx = recording_tx([[flow, "contact-1"], [flow, "contact-2"]])

    rows = flow_read.get_list_with_participant("ziggy", ["contact-1", "contact-2"], "CONTACT", tx=tx)

    assert [(item.id, entity_id) for item, entity_id in rows] == [("flow-1", "contact-1"), ("flow-1", "contact-2")]
    assert "FlowParticipant_ziggy" in tx.query
    assert tx.params == {"tenant": "ziggy", "entityIds": ["contact-1", "contact-2"], "entityType": "CONTACT"}


@pytest.mark.phase_smoke
def test_flow_get_by_id_missing_is_none(recording_tx) -> None:
    assert flow_read.get_by_id("ziggy", "flow-404", tx=recording_tx([])) is None


@pytest.mark.phase_smoke
def test_flow_list_with_sender(recording_tx, fake_node) -> None:
    flow = fake_node({"Flow"}, id="flow-1")
    tx = recording_tx([[flow, "sender-1"]])

    rows = flow_read.get_list_with_sender("ziggy", ["sender-1"], tx=tx)

    assert rows[0][1] == "sender-1"
    assert "FlowSender_ziggy" in tx.query


@pytest.mark.phase_smoke
def test_flow_participant_merge_links_flow_when_given(recording_tx, fake_node) -> None:
    node = fake_node({"FlowParticipant"}, id="fp-1", entityId="contact-1", entityType="CONTACT", status="READY")
    tx = recording_tx([[node]])
    participant = FlowParticipantEntity(id="fp-1", entity_id="contact-1", entity_type="CONTACT", status="READY")

    merged = flow_participant.merge("ziggy", participant, flow_id="flow-1", tx=tx)

    assert merged.entity_id == "contact-1"
    assert "MERGE (f)-[:HAS]->(fp)" in tx.query
    assert "fp:FlowParticipant:FlowParticipant_ziggy" in tx.query
    assert tx.params["flowId"] == "flow-1"


@pytest.mark.phase_smoke
def test_flow_participant_merge_without_flow(recording_tx) -> None:
    tx = recording_tx([])

    assert flow_participant.merge("ziggy", FlowParticipantEntity(id="fp-1"), tx=tx) is None
    assert "MERGE (f)-[:HAS]->(fp)" not in tx.query


@pytest.mark.phase_smoke
def test_flow_participant_delete_detaches(recording_tx) -> None:
    tx = recording_tx()

    flow_participant.delete("ziggy", "fp-1", tx=tx)

    assert "DETACH DELETE fp" in tx.query
    assert tx.params == {"tenant": "ziggy", "id": "fp-1"}


@pytest.mark.phase_smoke
def test_flow_execution_settings_for_entity(recording_tx, fake_node) -> None:
    node = fake_node({"FlowExecutionSettings"}, id="fes-1", mailbox="sales@acme.com", entityId="c-1")
    tx = recording_tx([[node]])

    settings = flow_execution_settings.get_for_entity("ziggy", "flow-1", "c-1", "CONTACT", tx=tx)

    assert settings.mailbox == "sales@acme.com"
    assert tx.params == {"tenant": "ziggy", "flowId": "flow-1", "entityId": "c-1", "entityType": "CONTACT"}


@pytest.mark.phase_smoke
def test_executions_for_entity_order(recording_tx, fake_node) -> None:
    node = fake_node({"FlowActionExecution"}, id="fae-1", scheduledAt=SCHEDULED_AT, status="SCHEDULED")
    tx = recording_tx([[node]])

    executions = flow_action_execution.get_for_entity("ziggy", "flow-1", "c-1", "CONTACT", tx=tx)

    assert [execution.id for execution in executions] == ["fae-1"]
    assert "ORDER BY fae.executedAt, fae.scheduledAt" in tx.query


@pytest.mark.phase_smoke
def test_execution_lookup_by_flow_action_and_entity(recording_tx) -> None:
    tx = recording_tx([])

    assert flow_action_execution.get_execution("ziggy", "flow-1", "action-1", "c-1", "CONTACT", tx=tx) is None
    assert tx.params["actionId"] == "action-1"
    assert "FlowAction_ziggy" in tx.query


@pytest.mark.phase_smoke
def test_executions_for_participants(recording_tx, fake_node) -> None:
    node = fake_node({"FlowActionExecution"}, id="fae-1")
    tx = recording_tx([[node, "fp-1"]])

    rows = flow_action_execution.get_for_participants("ziggy", ["fp-1"], tx=tx)

    assert rows[0][0].id == "fae-1"
    assert rows[0][1] == "fp-1"
    assert flow_action_execution.get_by_id("ziggy", "fae-404", tx=recording_tx([])) is None


@pytest.mark.phase_smoke
def test_contact_count_by_organizations(recording_tx) -> None:
    tx = recording_tx([["org-1", 3], ["org-2", 0]])

    counts = contact_read.get_contact_count_by_organizations("ziggy", ["org-1", "org-2"], tx=tx)

    assert counts == {"org-1": 3, "org-2": 0}
    assert "count(DISTINCT c)" in tx.query


@pytest.mark.phase_smoke
def test_contact_lookups(recording_tx, fake_node) -> None:
    node = fake_node({"Contact", "Contact_ziggy"}, id="c-1", firstName="Ada")

    contact = contact_read.get_contact_by_id("ziggy", "c-1", tx=recording_tx([[node]]))
    missing = contact_read.get_contact_in_organization_by_email("ziggy", "org-1", "ada@acme.com", tx=recording_tx([]))

    assert contact.first_name == "Ada"
    assert "Contact_ziggy" in contact.labels
    assert missing is None


@pytest.mark.phase_smoke
def test_email_id_if_exists_strips_input(recording_tx) -> None:
    tx = recording_tx([["email-1"]])

    assert email_read.get_email_id_if_exists("ziggy", " ada@acme.com ", tx=tx) == "email-1"
    assert tx.params["email"] == "ada@acme.com"
    assert email_read.get_email_id_if_exists("ziggy", "nobody@acme.com", tx=recording_tx([])) is None
    assert email_read.get_by_id("ziggy", "email-404", tx=recording_tx([])) is None


@pytest.mark.phase_smoke
def test_tenant_merge_and_read(recording_tx, fake_node) -> None:
    tx = recording_tx()
    tenant.merge("ziggy", [{"name": "acme.com", "provider": "google"}], tx=tx)

    assert "MERGE (t)-[:HAS_WORKSPACE]->(w)" in tx.query
    assert tx.params["workspaces"] == [{"name": "acme.com", "provider": "google"}]

    node = fake_node({"Tenant"}, id="t-1", name="ziggy")
    assert tenant.get_by_name("ziggy", tx=recording_tx([[node]])).name == "ziggy"
    assert tenant.get_by_name("nobody", tx=recording_tx([])) is None
