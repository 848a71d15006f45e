from __future__ import annotations

from typing import Any

from app.db.neo4j.driver import execute_read_in_transaction, run_query
from app.db.neo4j.entities import FlowExecutionSettingsEntity
from app.db.neo4j.extract import extract_first_record_first_value_as_node_or_none
from app.db.neo4j.labels import FLOW, FLOW_EXECUTION_SETTINGS, tenant_label


def get_for_entity(
    tenant: str, flow_id: str, entity_id: str, entity_type: str, tx: Any | None = None
) -> FlowExecutionSettingsEntity | None:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:BELONGS_TO_TENANT]-(:{tenant_label(FLOW, tenant)} {{id:$flowId}})
              -[:HAS]->(fes:{tenant_label(FLOW_EXECUTION_SETTINGS, tenant)} {{entityId:$entityId, entityType:$entityType}})
        RETURN fes
        LIMIT 1
    """
    params = {"tenant": tenant, "flowId": flow_id, "entityId": entity_id, "entityType": entity_type}
    node = execute_read_in_transaction(
        lambda tx_: extract_first_record_first_value_as_node_or_none(
            run_query(tx_, "flow_execution_settings_for_entity", query, params)
        ),
        tx,
    )
    return FlowExecutionSettingsEntity.from_node(node)
