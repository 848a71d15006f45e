from __future__ import annotations

from typing import Any

from app.core.errors import NotFoundError
from app.core.timeutils import utc_now
from app.db.neo4j.driver import execute_read_in_transaction, execute_write_in_transaction, run_query
from app.db.neo4j.entities import FlowParticipantEntity
from app.db.neo4j.extract import (
    extract_first_record_first_value_as_node_or_none,
    extract_single_record_first_value_as_node,
)
from app.db.neo4j.labels import FLOW, FLOW_PARTICIPANT, entity_label, tenant_label


def merge(
    tenant: str, participant: FlowParticipantEntity, flow_id: str | None = None, tx: Any | None = None
) -> FlowParticipantEntity | None:
    now = utc_now()
    link = ""
    if flow_id:
        link = f"""
        WITH t, fp
        MATCH (t)<-[:BELONGS_TO_TENANT]-(f:{tenant_label(FLOW, tenant)} {{id:$flowId}})
        MERGE (f)-[:HAS]->(fp)
        """
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})
        MERGE (t)<-[:BELONGS_TO_TENANT]-(fp:{entity_label(FLOW_PARTICIPANT, tenant)} {{id:$id}})
        ON CREATE SET
            fp.createdAt = $createdAt,
            fp.updatedAt = $updatedAt,
            fp.entityId = $entityId,
            fp.entityType = $entityType,
            fp.status = $status
        ON MATCH SET
            fp.updatedAt = $updatedAt,
            fp.entityId = $entityId,
            fp.entityType = $entityType,
            fp.status = $status
        {link}
        RETURN fp
    """
    params = {
        "tenant": tenant,
        "id": participant.id,
        "flowId": flow_id,
        "createdAt": participant.created_at or now,
        "updatedAt": now,
        "entityId": participant.entity_id,
        "entityType": participant.entity_type,
        "status": participant.status,
    }
    node = execute_write_in_transaction(
        lambda tx_: extract_first_record_first_value_as_node_or_none(
            run_query(tx_, "flow_participant_merge", query, params)
        ),
        tx,
    )
    return FlowParticipantEntity.from_node(node)


def delete(tenant: str, participant_id: str, tx: Any | None = None) -> None:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:BELONGS_TO_TENANT]-(fp:{tenant_label(FLOW_PARTICIPANT, tenant)} {{id:$id}})
        DETACH DELETE fp
    """
    params = {"tenant": tenant, "id": participant_id}
    execute_write_in_transaction(lambda tx_: run_query(tx_, "flow_participant_delete", query, params).consume(), tx)


def get_by_id(tenant: str, participant_id: str, tx: Any | None = None) -> FlowParticipantEntity | None:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:BELONGS_TO_TENANT]-(fp:{tenant_label(FLOW_PARTICIPANT, tenant)} {{id:$id}})
        RETURN fp
    """
    params = {"tenant": tenant, "id": participant_id}

    def _work(tx_):
        try:
            return extract_single_record_first_value_as_node(run_query(tx_, "flow_participant_get_by_id", query, params))
        except NotFoundError:
            return None

    return FlowParticipantEntity.from_node(execute_read_in_transaction(_work, tx))


def get_by_entity(
    tenant: str, flow_id: str, entity_id: str, entity_type: str, tx: Any | None = None
) -> FlowParticipantEntity | None:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:BELONGS_TO_TENANT]-(:{tenant_label(FLOW, tenant)} {{id:$flowId}})
              -[:HAS]->(fp:{tenant_label(FLOW_PARTICIPANT, tenant)} {{entityId:$entityId, entityType:$entityType}})
        RETURN fp
        LIMIT 1
    """
    params = {"tenant": tenant, "flowId": flow_id, "entityId": entity_id, "entityType": entity_type}
    node = execute_read_in_transaction(
        lambda tx_: extract_first_record_first_value_as_node_or_none(
            run_query(tx_, "flow_participant_by_entity", query, params)
        ),
        tx,
    )
    return FlowParticipantEntity.from_node(node)
