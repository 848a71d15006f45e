from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from app.core.timeutils import utc_now
from app.db.neo4j.driver import execute_write_in_transaction, run_query
from app.db.neo4j.labels import EXTERNAL_SYSTEM, tenant_label


class ExternalSystemRef(BaseModel):
    external_system_id: str
    external_id: str
    external_url: str = ""
    external_id_second: str = ""
    external_source: str = ""
    sync_date: datetime | None = None

    def key(self) -> tuple[str, str]:
        return self.external_system_id, self.external_id


def link_with_entity(
    tenant: str, entity_label: str, entity_id: str, ref: ExternalSystemRef, tx: Any | None = None
) -> None:
    query = f"""
        MATCH (e:{EXTERNAL_SYSTEM} {{id:$externalSystemId}})-[:EXTERNAL_SYSTEM_BELONGS_TO_TENANT]->(:Tenant {{name:$tenant}}),
              (n:{tenant_label(entity_label, tenant)} {{id:$entityId}})
        MERGE (n)-[r:IS_LINKED_WITH {{externalId:$externalId}}]->(e)
        ON CREATE SET
            e:{tenant_label(EXTERNAL_SYSTEM, tenant)},
            r.syncDate = $syncDate,
            r.externalUrl = $externalUrl,
            r.externalIdSecond = $externalIdSecond,
            r.externalSource = $externalSource
        ON MATCH SET
            r.syncDate = $syncDate
    """
    params = {
        "tenant": tenant,
        "entityId": entity_id,
        "externalSystemId": ref.external_system_id,
        "externalId": ref.external_id,
        "externalUrl": ref.external_url,
        "externalIdSecond": ref.external_id_second,
        "externalSource": ref.external_source,
        "syncDate": ref.sync_date or utc_now(),
    }
    execute_write_in_transaction(lambda tx_: run_query(tx_, "external_system_link", query, params).consume(), tx)
