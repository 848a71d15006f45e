"""Read side of flow action executions, used by the mailbox scheduler.

The scheduler keeps ``scheduledAt`` strictly increasing per mailbox and caps sends per day; these
queries give it the last slot, interval lookups and the daily count.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from app.core.config import get_settings
from app.core.constants import FlowActionExecutionStatus, FlowStatus
from app.core.errors import NotFoundError
from app.db.neo4j.driver import execute_read_in_transaction, run_query
from app.db.neo4j.entities import FlowActionExecutionEntity
from app.db.neo4j.extract import (
    extract_all_records_as_node_and_id,
    extract_all_records_first_value_as_node_list,
    extract_first_record_first_value_as_node_or_none,
    extract_single_record_first_value_as_node,
    extract_single_record_first_value_as_type,
    to_native,
)
from app.db.neo4j.labels import FLOW, FLOW_ACTION, FLOW_ACTION_EXECUTION, tenant_label

_SCHEDULED = FlowActionExecutionStatus.SCHEDULED.value
_PENDING = [FlowActionExecutionStatus.SCHEDULED.value, FlowActionExecutionStatus.IN_PROGRESS.value]


def _executions(tenant: str) -> str:
    return (
        f"(:Tenant {{name:$tenant}})<-[:BELONGS_TO_TENANT]-"
        f"(fae:{tenant_label(FLOW_ACTION_EXECUTION, tenant)})"
    )


def _entities(nodes: list[Any]) -> list[FlowActionExecutionEntity]:
    return [FlowActionExecutionEntity.from_node(node) for node in nodes]


def get_by_id(tenant: str, execution_id: str, tx: Any | None = None) -> FlowActionExecutionEntity | None:
    query = f"""
        MATCH {_executions(tenant)}
        WHERE fae.id = $id
        RETURN fae
    """
    params = {"tenant": tenant, "id": execution_id}

    def _work(tx_):
        try:
            return extract_single_record_first_value_as_node(run_query(tx_, "fae_get_by_id", query, params))
        except NotFoundError:
            return None

    return FlowActionExecutionEntity.from_node(execute_read_in_transaction(_work, tx))


def get_execution(
    tenant: str, flow_id: str, action_id: str, entity_id: str, entity_type: str, tx: Any | None = None
) -> FlowActionExecutionEntity | None:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:BELONGS_TO_TENANT]-(:{tenant_label(FLOW, tenant)} {{id:$flowId}})
              -[:HAS]->(:{tenant_label(FLOW_ACTION, tenant)} {{id:$actionId}})
              -[:HAS_EXECUTION]->(fae:{tenant_label(FLOW_ACTION_EXECUTION, tenant)} {{entityId:$entityId, entityType:$entityType}})
        RETURN fae
        ORDER BY fae.executedAt
        LIMIT 1
    """
    params = {
        "tenant": tenant,
        "flowId": flow_id,
        "actionId": action_id,
        "entityId": entity_id,
        "entityType": entity_type,
    }
    node = execute_read_in_transaction(
        lambda tx_: extract_first_record_first_value_as_node_or_none(run_query(tx_, "fae_get_execution", query, params)),
        tx,
    )
    return FlowActionExecutionEntity.from_node(node)


def get_for_participants(
    tenant: str, participant_ids: list[str], tx: Any | None = None
) -> list[tuple[FlowActionExecutionEntity, str]]:
    query = f"""
        MATCH {_executions(tenant)}
        WHERE fae.participantId IN $participantIds
        RETURN fae, fae.participantId
        ORDER BY fae.scheduledAt
    """
    params = {"tenant": tenant, "participantIds": list(participant_ids)}
    rows = execute_read_in_transaction(
        lambda tx_: extract_all_records_as_node_and_id(run_query(tx_, "fae_for_participants", query, params)), tx
    )
    return [(FlowActionExecutionEntity.from_node(node), participant_id) for node, participant_id in rows]


def get_for_entity(
    tenant: str, flow_id: str, entity_id: str, entity_type: str, tx: Any | None = None
) -> list[FlowActionExecutionEntity]:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:BELONGS_TO_TENANT]-(:{tenant_label(FLOW, tenant)} {{id:$flowId}})
              -[:HAS]->(:{tenant_label(FLOW_ACTION, tenant)})
              -[:HAS_EXECUTION]->(fae:{tenant_label(FLOW_ACTION_EXECUTION, tenant)} {{entityId:$entityId, entityType:$entityType}})
        RETURN fae
        ORDER BY fae.executedAt, fae.scheduledAt
    """
    params = {"tenant": tenant, "flowId": flow_id, "entityId": entity_id, "entityType": entity_type}
    nodes = execute_read_in_transaction(
        lambda tx_: extract_all_records_first_value_as_node_list(run_query(tx_, "fae_for_entity", query, params)), tx
    )
    return _entities(nodes)


def get_scheduled_before(before: datetime, limit: int | None = None, tx: Any | None = None) -> list[FlowActionExecutionEntity]:
    """Due executions of active flows across all tenants, oldest first."""
    query = """
        MATCH (:Flow {status:$activeStatus})-[:HAS]->(:FlowAction)-[:HAS_EXECUTION]->(fae:FlowActionExecution)
        WHERE fae.status = $scheduled AND fae.scheduledAt < $before
        RETURN fae
        ORDER BY fae.scheduledAt
        LIMIT $limit
    """
    params = {
        "activeStatus": FlowStatus.ACTIVE.value,
        "scheduled": _SCHEDULED,
        "before": before,
        "limit": limit or get_settings().scheduler_due_batch_size,
    }
    nodes = execute_read_in_transaction(
        lambda tx_: extract_all_records_first_value_as_node_list(run_query(tx_, "fae_scheduled_before", query, params)),
        tx,
    )
    return _entities(nodes)


def get_by_mailbox_and_time_interval(
    tenant: str, mailbox: str, start: datetime, end: datetime, tx: Any | None = None
) -> FlowActionExecutionEntity | None:
    """Most recent execution for the mailbox with ``start <= scheduledAt < end``."""
    query = f"""
        MATCH {_executions(tenant)}
        WHERE fae.mailbox = $mailbox AND fae.scheduledAt >= $start AND fae.scheduledAt < $end
        RETURN fae
        ORDER BY fae.scheduledAt DESC
        LIMIT 1
    """
    params = {"tenant": tenant, "mailbox": mailbox, "start": start, "end": end}
    node = execute_read_in_transaction(
        lambda tx_: extract_first_record_first_value_as_node_or_none(
            run_query(tx_, "fae_by_mailbox_and_interval", query, params)
        ),
        tx,
    )
    return FlowActionExecutionEntity.from_node(node)


def get_for_entity_with_action_type(
    tenant: str, entity_id: str, entity_type: str, action_type: str, tx: Any | None = None
) -> list[FlowActionExecutionEntity]:
    query = f"""
        MATCH (fa:{tenant_label(FLOW_ACTION, tenant)})-[:HAS_EXECUTION]->(fae:{tenant_label(FLOW_ACTION_EXECUTION, tenant)})
        WHERE fae.entityId = $entityId AND fae.entityType = $entityType AND fa.action = $actionType
              AND fae.status IN $pending
        RETURN fae
    """
    params = {"entityId": entity_id, "entityType": entity_type, "actionType": action_type, "pending": _PENDING}
    nodes = execute_read_in_transaction(
        lambda tx_: extract_all_records_first_value_as_node_list(
            run_query(tx_, "fae_for_entity_with_action_type", query, params)
        ),
        tx,
    )
    return _entities(nodes)


def get_first_slot_for_mailbox(tenant: str, mailbox: str, tx: Any | None = None) -> datetime | None:
    """Latest ``scheduledAt`` among scheduled executions of the mailbox, or None."""
    query = f"""
        MATCH {_executions(tenant)}
        WHERE fae.status = $scheduled AND fae.mailbox = $mailbox AND fae.scheduledAt IS NOT NULL
        RETURN fae.scheduledAt
        ORDER BY fae.scheduledAt DESC
        LIMIT 1
    """
    params = {"tenant": tenant, "mailbox": mailbox, "scheduled": _SCHEDULED}

    def _work(tx_):
        try:
            return extract_single_record_first_value_as_type(
                run_query(tx_, "fae_first_slot_for_mailbox", query, params), datetime
            )
        except NotFoundError:
            return None

    return execute_read_in_transaction(_work, tx)


def get_last_scheduled_for_mailbox(tenant: str, mailbox: str, tx: Any | None = None) -> FlowActionExecutionEntity | None:
    query = f"""
        MATCH {_executions(tenant)}
        WHERE fae.status = $scheduled AND fae.mailbox = $mailbox AND fae.scheduledAt IS NOT NULL
        RETURN fae
        ORDER BY fae.scheduledAt DESC
        LIMIT 1
    """
    params = {"tenant": tenant, "mailbox": mailbox, "scheduled": _SCHEDULED}
    node = execute_read_in_transaction(
        lambda tx_: extract_first_record_first_value_as_node_or_none(
            run_query(tx_, "fae_last_scheduled_for_mailbox", query, params)
        ),
        tx,
    )
    return FlowActionExecutionEntity.from_node(node)


def count_emails_per_mailbox_per_day(
    tenant: str, mailbox: str, start: datetime, end: datetime, tx: Any | None = None
) -> int:
    query = f"""
        MATCH {_executions(tenant)}
        WHERE fae.scheduledAt >= $start AND fae.scheduledAt <= $end AND fae.mailbox = $mailbox
        RETURN count(fae)
    """
    params = {"tenant": tenant, "mailbox": mailbox, "start": start, "end": end}

    def _work(tx_):
        records = list(run_query(tx_, "fae_count_per_mailbox_per_day", query, params))
        if not records:
            return 0
        return int(to_native(records[0][0]) or 0)

    return execute_read_in_transaction(_work, tx)
