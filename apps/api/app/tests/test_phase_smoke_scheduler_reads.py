from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.db.neo4j.repositories import flow_action_execution

START = datetime(2026, 10, 19, tzinfo=timezone.utc)


@pytest.mark.phase_smoke
def test_first_slot_for_mailbox_is_latest_scheduled(recording_tx) -> None:
    latest = START + timedelta(hours=3)
    tx = recording_tx([[latest]])

    slot = flow_action_execution.get_first_slot_for_mailbox("ziggy", "sales@acme.com", tx=tx)

    assert slot == latest
    assert "FlowActionExecution_ziggy" in tx.query
    assert "ORDER BY fae.scheduledAt DESC" in tx.query
    assert tx.params == {"tenant": "ziggy", "mailbox": "sales@acme.com", "scheduled": "SCHEDULED"}


@pytest.mark.phase_smoke
def test_first_slot_for_mailbox_is_none_without_scheduled_executions(recording_tx) -> None:
    assert flow_action_execution.get_first_slot_for_mailbox("ziggy", "sales@acme.com", tx=recording_tx([])) is None


@pytest.mark.phase_smoke
def test_last_scheduled_for_mailbox_returns_entity(recording_tx, fake_node) -> None:
    node = fake_node(
        {"FlowActionExecution", "FlowActionExecution_ziggy"},
        id="fae-1",
        mailbox="sales@acme.com",
        scheduledAt=START,
        status="SCHEDULED",
    )
    tx = recording_tx([[node]])

    execution = flow_action_execution.get_last_scheduled_for_mailbox("ziggy", "sales@acme.com", tx=tx)

    assert execution is not None
    assert execution.id == "fae-1"
    assert execution.scheduled_at == START
    assert "FlowActionExecution_ziggy" in execution.labels


@pytest.mark.phase_smoke
def test_interval_lookup_is_half_open(recording_tx) -> None:
    tx = recording_tx([])
    end = START + timedelta(minutes=30)

    execution = flow_action_execution.get_by_mailbox_and_time_interval("ziggy", "sales@acme.com", START, end, tx=tx)

    assert execution is None
    assert "fae.scheduledAt >= $start AND fae.scheduledAt < $end" in tx.query
    assert tx.params["tenant"] == "ziggy"


@pytest.mark.phase_smoke
def test_daily_count_is_inclusive_and_defaults_to_zero(recording_tx) -> None:
    end = START + timedelta(days=1)
    tx = recording_tx([[7]])

    assert flow_action_execution.count_emails_per_mailbox_per_day("ziggy", "sales@acme.com", START, end, tx=tx) == 7
    assert "fae.scheduledAt >= $start AND fae.scheduledAt <= $end" in tx.query
    assert flow_action_execution.count_emails_per_mailbox_per_day(
        "ziggy", "sales@acme.com", START, end, tx=recording_tx([])
    ) == 0


@pytest.mark.phase_smoke
def test_scheduled_before_only_reads_active_flows(recording_tx) -> None:
    tx = recording_tx([])

    flow_action_execution.get_scheduled_before(START, tx=tx)

    assert "(:Flow {status:$activeStatus})-[:HAS]->(:FlowAction)-[:HAS_EXECUTION]->" in tx.query
    assert "ORDER BY fae.scheduledAt" in tx.query
    assert tx.params["activeStatus"] == "ACTIVE"
    assert tx.params["limit"] == 100


@pytest.mark.phase_smoke
def test_pending_executions_for_entity_and_action_type(recording_tx) -> None:
    tx = recording_tx([])

    flow_action_execution.get_for_entity_with_action_type("ziggy", "contact-1", "CONTACT", "EMAIL_NEW", tx=tx)

    assert tx.params["pending"] == ["SCHEDULED", "IN_PROGRESS"]
    assert "fa.action = $actionType" in tx.query
