from __future__ import annotations

from typing import Any

from app.core.errors import NotFoundError
from app.db.neo4j.driver import execute_read_in_transaction, run_query
from app.db.neo4j.entities import EmailEntity
from app.db.neo4j.extract import extract_single_record_first_value_as_node, extract_single_record_first_value_as_type
from app.db.neo4j.labels import EMAIL, tenant_label


def get_by_id(tenant: str, email_id: str, tx: Any | None = None) -> EmailEntity | None:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:EMAIL_ADDRESS_BELONGS_TO_TENANT]-(e:{tenant_label(EMAIL, tenant)} {{id:$emailId}})
        RETURN e
    """
    params = {"tenant": tenant, "emailId": email_id}

    def _work(tx_):
        try:
            return extract_single_record_first_value_as_node(run_query(tx_, "email_get_by_id", query, params))
        except NotFoundError:
            return None

    return EmailEntity.from_node(execute_read_in_transaction(_work, tx))


def get_email_id_if_exists(tenant: str, email: str, tx: Any | None = None) -> str | None:
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:EMAIL_ADDRESS_BELONGS_TO_TENANT]-(e:{tenant_label(EMAIL, tenant)})
        WHERE e.email = $email OR e.rawEmail = $email
        RETURN e.id
        LIMIT 1
    """
    params = {"tenant": tenant, "email": email.strip()}

    def _work(tx_):
        try:
            return extract_single_record_first_value_as_type(run_query(tx_, "email_id_if_exists", query, params), str)
        except NotFoundError:
            return None

    return execute_read_in_transaction(_work, tx)
