from __future__ import annotations

from typing import Any

from app.core.errors import NotFoundError
from app.db.neo4j.driver import execute_read_in_transaction, run_query
from app.db.neo4j.entities import FlowEntity
from app.db.neo4j.extract import (
    extract_all_records_as_node_and_id,
    extract_all_records_first_value_as_node_list,
    extract_first_record_first_value_as_node_or_none,
    extract_single_record_first_value_as_node,
)
from app.db.neo4j.labels import FLOW, FLOW_PARTICIPANT, FLOW_SENDER, tenant_label


def get_list(tenant: str, tx: Any | None = None) -> list[FlowEntity]:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:BELONGS_TO_TENANT]-(f:{tenant_label(FLOW, tenant)})
        RETURN f
    """
    params = {"tenant": tenant}
    nodes = execute_read_in_transaction(
        lambda tx_: extract_all_records_first_value_as_node_list(run_query(tx_, "flow_list", query, params)), tx
    )
    return [FlowEntity.from_node(node) for node in nodes]


def get_by_id(tenant: str, flow_id: str, tx: Any | None = None) -> FlowEntity | None:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:BELONGS_TO_TENANT]-(f:{tenant_label(FLOW, tenant)} {{id:$flowId}})
        RETURN f
    """
    params = {"tenant": tenant, "flowId": flow_id}

    def _work(tx_):
        try:
            return extract_single_record_first_value_as_node(run_query(tx_, "flow_get_by_id", query, params))
        except NotFoundError:
            return None

    return FlowEntity.from_node(execute_read_in_transaction(_work, tx))


def get_with_participant(tenant: str, participant_id: str, tx: Any | None = None) -> FlowEntity | None:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:BELONGS_TO_TENANT]-(f:{tenant_label(FLOW, tenant)})
              -[:HAS]->(:{tenant_label(FLOW_PARTICIPANT, tenant)} {{id:$participantId}})
        RETURN f
    """
    params = {"tenant": tenant, "participantId": participant_id}
    node = execute_read_in_transaction(
        lambda tx_: extract_first_record_first_value_as_node_or_none(
            run_query(tx_, "flow_with_participant", query, params)
        ),
        tx,
    )
    return FlowEntity.from_node(node)


def get_list_with_participant(
    tenant: str, entity_ids: list[str], entity_type: str, tx: Any | None = None
) -> list[tuple[FlowEntity, str]]:
    """Flows having a participant for any of ``entity_ids``, paired with that entity id."""
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:BELONGS_TO_TENANT]-(f:{tenant_label(FLOW, tenant)})
              -[:HAS]->(fp:{tenant_label(FLOW_PARTICIPANT, tenant)})
        WHERE fp.entityType = $entityType AND fp.entityId IN $entityIds
        RETURN f, fp.entityId
    """
    params = {"tenant": tenant, "entityIds": list(entity_ids), "entityType": entity_type}
    rows = execute_read_in_transaction(
        lambda tx_: extract_all_records_as_node_and_id(run_query(tx_, "flow_list_with_participant", query, params)),
        tx,
    )
    return [(FlowEntity.from_node(node), entity_id) for node, entity_id in rows]


def get_list_with_sender(tenant: str, sender_ids: list[str], tx: Any | None = None) -> list[tuple[FlowEntity, str]]:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:BELONGS_TO_TENANT]-(f:{tenant_label(FLOW, tenant)})
              -[:HAS]->(fs:{tenant_label(FLOW_SENDER, tenant)})
        WHERE fs.id IN $senderIds
        RETURN f, fs.id
    """
    params = {"tenant": tenant, "senderIds": list(sender_ids)}
    rows = execute_read_in_transaction(
        lambda tx_: extract_all_records_as_node_and_id(run_query(tx_, "flow_list_with_sender", query, params)), tx
    )
    return [(FlowEntity.from_node(node), sender_id) for node, sender_id in rows]
