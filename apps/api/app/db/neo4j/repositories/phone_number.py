from __future__ import annotations

from typing import Any

from app.core.timeutils import utc_now
from app.db.neo4j.driver import execute_write_in_transaction, run_query
from app.db.neo4j.labels import CONTACT, PHONE_NUMBER, tenant_label


def link_with_contact(
    tenant: str, contact_id: str, phone_number_id: str, label: str = "", primary: bool = False, tx: Any | None = None
) -> None:
    """Attach the phone number; when primary, demote every other phone number of the contact."""
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:CONTACT_BELONGS_TO_TENANT]-(c:{tenant_label(CONTACT, tenant)} {{id:$contactId}}),
              (t)<-[:PHONE_NUMBER_BELONGS_TO_TENANT]-(p:{PHONE_NUMBER} {{id:$phoneNumberId}})
        MERGE (c)-[rel:HAS]->(p)
        SET rel.label = $label,
            rel.primary = $primary,
            p.updatedAt = $now,
            c.updatedAt = $now
        WITH c, p
        MATCH (c)-[other:HAS]->(op:{PHONE_NUMBER})
        WHERE $primary = true AND op.id <> p.id
        SET other.primary = false
    """
    params = {
        "tenant": tenant,
        "contactId": contact_id,
        "phoneNumberId": phone_number_id,
        "label": label,
        "primary": primary,
        "now": utc_now(),
    }
    execute_write_in_transaction(
        lambda tx_: run_query(tx_, "phone_number_link_with_contact", query, params).consume(), tx
    )
