from __future__ import annotations

from datetime import datetime
from typing import Any

from app.core.constants import ContractStatus
from app.core.errors import NotFoundError
from app.core.timeutils import utc_now
from app.db.neo4j.driver import execute_read_in_transaction, run_query
from app.db.neo4j.entities import OpportunityEntity, OrganizationEntity
from app.db.neo4j.extract import (
    extract_all_records_first_value_as_node_list,
    extract_single_record_first_value_as_node,
    to_native,
)
from app.db.neo4j.labels import CONTRACT, ORGANIZATION, TIMELINE_EVENT, tenant_label

_TOUCHPOINT_TYPES = ("Meeting", "InteractionEvent", "LogEntry", "Note", "Issue", "Action")


def get_organization(tenant: str, organization_id: str, tx: Any | None = None) -> OrganizationEntity | None:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:{tenant_label(ORGANIZATION, tenant)} {{id:$organizationId}})
        RETURN org
    """
    params = {"tenant": tenant, "organizationId": organization_id}

    def _work(tx_):
        try:
            return extract_single_record_first_value_as_node(run_query(tx_, "organization_get", query, params))
        except NotFoundError:
            return None

    return OrganizationEntity.from_node(execute_read_in_transaction(_work, tx))


def get_organization_id_for_contract(tenant: str, contract_id: str, tx: Any | None = None) -> str | None:
    # Deleted contracts keep their HAS_CONTRACT edge, so the lookup does not filter on the contract label.
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:{tenant_label(ORGANIZATION, tenant)})
              -[:HAS_CONTRACT]->(c {{id:$contractId}})
        RETURN org.id
    """
    params = {"tenant": tenant, "contractId": contract_id}

    def _work(tx_):
        records = list(run_query(tx_, "organization_id_for_contract", query, params))
        return records[0][0] if records else None

    return execute_read_in_transaction(_work, tx)


def get_active_renewals_for_organization(
    tenant: str, organization_id: str, tx: Any | None = None
) -> list[OpportunityEntity]:
    """Open renewal opportunities attached to active, non-draft, non-ended contracts."""
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:Organization {{id:$organizationId}})
              -[:HAS_CONTRACT]->(c:{tenant_label(CONTRACT, tenant)})-[:ACTIVE_RENEWAL]->(op:Opportunity)
        WHERE NOT c.status IN $excludedStatuses
        RETURN op
    """
    params = {
        "tenant": tenant,
        "organizationId": organization_id,
        "excludedStatuses": [ContractStatus.DRAFT.value, ContractStatus.ENDED.value],
    }
    nodes = execute_read_in_transaction(
        lambda tx_: extract_all_records_first_value_as_node_list(
            run_query(tx_, "organization_active_renewals", query, params)
        ),
        tx,
    )
    return [OpportunityEntity.from_node(node) for node in nodes]


def get_latest_touchpoint(
    tenant: str, organization_id: str, tx: Any | None = None
) -> tuple[str, datetime | None, str] | None:
    """Most recent timeline event touching the organization or one of its contacts.

    Returns ``(touchpoint_id, touchpoint_at, touchpoint_type)`` or None.
    """
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:Organization {{id:$organizationId}})
        OPTIONAL MATCH (org)<-[:ROLE_IN]-(:JobRole)<-[:WORKS_AS]-(c:Contact)
        WITH org, collect(DISTINCT c) + [org] AS parties
        UNWIND parties AS party
        MATCH (party)-[:PARTICIPATES|SENT_BY|SENT_TO|LOGGED|REPORTED_BY|ATTENDED_BY]-(te:{tenant_label(TIMELINE_EVENT, tenant)})
        WITH te, coalesce(te.startedAt, te.createdAt) AS touchpointAt
        WHERE touchpointAt <= $now
        RETURN te.id, touchpointAt, labels(te)
        ORDER BY touchpointAt DESC
        LIMIT 1
    """
    params = {"tenant": tenant, "organizationId": organization_id, "now": utc_now()}

    def _work(tx_):
        records = list(run_query(tx_, "organization_latest_touchpoint", query, params))
        if not records:
            return None
        record = records[0]
        labels = record[2] or []
        touchpoint_type = next((label for label in _TOUCHPOINT_TYPES if label in labels), TIMELINE_EVENT)
        return record[0], to_native(record[1]), touchpoint_type

    return execute_read_in_transaction(_work, tx)
