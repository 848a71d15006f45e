from __future__ import annotations

from typing import Any

from app.core.errors import NotFoundError
from app.db.neo4j.driver import execute_read_in_transaction, run_query
from app.db.neo4j.entities import ContactEntity
from app.db.neo4j.extract import extract_first_record_first_value_as_node_or_none, extract_single_record_first_value_as_node
from app.db.neo4j.labels import CONTACT, tenant_label


def get_contact_by_id(tenant: str, contact_id: str, tx: Any | None = None) -> ContactEntity | None:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:CONTACT_BELONGS_TO_TENANT]-(c:{tenant_label(CONTACT, tenant)} {{id:$contactId}})
        RETURN c
    """
    params = {"tenant": tenant, "contactId": contact_id}

    def _work(tx_):
        try:
            return extract_single_record_first_value_as_node(run_query(tx_, "contact_get_by_id", query, params))
        except NotFoundError:
            return None

    return ContactEntity.from_node(execute_read_in_transaction(_work, tx))


def get_contact_in_organization_by_email(
    tenant: str, organization_id: str, email: str, tx: Any | None = None
) -> ContactEntity | None:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(o:Organization {{id:$organizationId}})
              <-[:ROLE_IN]-(:JobRole)<-[:WORKS_AS]-(c:{tenant_label(CONTACT, tenant)})-[:HAS]->(e:Email)
        WHERE e.rawEmail = $email OR e.email = $email
        RETURN c
        LIMIT 1
    """
    params = {"tenant": tenant, "organizationId": organization_id, "email": email}
    node = execute_read_in_transaction(
        lambda tx_: extract_first_record_first_value_as_node_or_none(
            run_query(tx_, "contact_in_organization_by_email", query, params)
        ),
        tx,
    )
    return ContactEntity.from_node(node)


def get_contact_count_by_organizations(tenant: str, organization_ids: list[str], tx: Any | None = None) -> dict[str, int]:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(o:Organization)
        WHERE o.id IN $organizationIds
        OPTIONAL MATCH (o)<-[:ROLE_IN]-(:JobRole)<-[:WORKS_AS]-(c:{tenant_label(CONTACT, tenant)})
        RETURN o.id, count(DISTINCT c)
    """
    params = {"tenant": tenant, "organizationIds": list(organization_ids)}
    rows = execute_read_in_transaction(
        lambda tx_: list(run_query(tx_, "contact_count_by_organizations", query, params)), tx
    )
    return {row[0]: int(row[1]) for row in rows}
