from __future__ import annotations

from typing import Any

from app.core.constants import OpportunityInternalStage
from app.core.errors import NotFoundError
from app.db.neo4j.driver import execute_read_in_transaction, run_query
from app.db.neo4j.entities import ContractEntity, OpportunityEntity
from app.db.neo4j.extract import (
    extract_all_records_first_value_as_node_list,
    extract_first_record_first_value_as_node_or_none,
    extract_single_record_first_value_as_node,
)
from app.db.neo4j.labels import CONTRACT, tenant_label


def get_contract_by_id(tenant: str, contract_id: str, tx: Any | None = None) -> ContractEntity | None:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:CONTRACT_BELONGS_TO_TENANT]-(ct:{tenant_label(CONTRACT, tenant)} {{id:$contractId}})
        RETURN ct
    """
    params = {"tenant": tenant, "contractId": contract_id}

    def _work(tx_):
        try:
            return extract_single_record_first_value_as_node(run_query(tx_, "contract_get_by_id", query, params))
        except NotFoundError:
            return None

    return ContractEntity.from_node(execute_read_in_transaction(_work, tx))


def get_contracts_for_organization(tenant: str, organization_id: str, tx: Any | None = None) -> list[ContractEntity]:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(:Organization {{id:$organizationId}})
              -[:HAS_CONTRACT]->(ct:{tenant_label(CONTRACT, tenant)})
        RETURN ct
        ORDER BY ct.createdAt
    """
    params = {"tenant": tenant, "organizationId": organization_id}
    nodes = execute_read_in_transaction(
        lambda tx_: extract_all_records_first_value_as_node_list(
            run_query(tx_, "contract_for_organization", query, params)
        ),
        tx,
    )
    return [ContractEntity.from_node(node) for node in nodes]


def get_active_renewal_opportunity_for_contract(
    tenant: str, contract_id: str, tx: Any | None = None
) -> OpportunityEntity | None:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:CONTRACT_BELONGS_TO_TENANT]-(ct:{tenant_label(CONTRACT, tenant)} {{id:$contractId}})
              -[:ACTIVE_RENEWAL]->(op:Opportunity)
        WHERE op.internalStage = $openStage
        RETURN op
        LIMIT 1
    """
    params = {"tenant": tenant, "contractId": contract_id, "openStage": OpportunityInternalStage.OPEN.value}
    node = execute_read_in_transaction(
        lambda tx_: extract_first_record_first_value_as_node_or_none(
            run_query(tx_, "contract_active_renewal", query, params)
        ),
        tx,
    )
    return OpportunityEntity.from_node(node)
