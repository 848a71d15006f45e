from __future__ import annotations

import logging
from typing import Any

from app.core.timeutils import utc_now
from app.db.neo4j.driver import execute_read_in_transaction, execute_write_in_transaction, run_query
from app.db.neo4j.entities import TenantEntity
from app.db.neo4j.extract import extract_all_records_first_value_as_node_list, extract_first_record_first_value_as_node_or_none, node_props

logger = logging.getLogger(__name__)


def get_by_name(tenant: str, tx: Any | None = None) -> TenantEntity | None:
    query = "MATCH (t:Tenant {name:$tenant}) RETURN t"
    params = {"tenant": tenant}
    node = execute_read_in_transaction(
        lambda tx_: extract_first_record_first_value_as_node_or_none(run_query(tx_, "tenant_get_by_name", query, params)),
        tx,
    )
    if node is None:
        return None
    return TenantEntity.model_validate(node_props(node))


def merge(tenant: str, workspaces: list[dict[str, str]] | None = None, tx: Any | None = None) -> None:
    """Create the tenant when missing and attach the given workspaces by (name, provider)."""
    query = """
        MERGE (t:Tenant {name:$tenant})
        ON CREATE SET t.id = randomUUID(), t.createdAt = $now
        SET t.updatedAt = $now
        WITH t
        UNWIND $workspaces AS workspace
        MERGE (w:Workspace {name:workspace.name, provider:workspace.provider})
        ON CREATE SET w.id = randomUUID(), w.createdAt = $now
        MERGE (t)-[:HAS_WORKSPACE]->(w)
    """
    params = {"tenant": tenant, "workspaces": list(workspaces or []), "now": utc_now()}
    execute_write_in_transaction(lambda tx_: run_query(tx_, "tenant_merge", query, params).consume(), tx)
    logger.info("tenant_merged", extra={"tenant": tenant, "workspaces": len(params["workspaces"])})


def get_workspaces(tenant: str, tx: Any | None = None) -> list[dict[str, Any]]:
    query = "MATCH (:Tenant {name:$tenant})-[:HAS_WORKSPACE]->(w:Workspace) RETURN w ORDER BY w.name"
    params = {"tenant": tenant}
    nodes = execute_read_in_transaction(
        lambda tx_: extract_all_records_first_value_as_node_list(run_query(tx_, "tenant_workspaces", query, params)), tx
    )
    return [node_props(node) for node in nodes]
