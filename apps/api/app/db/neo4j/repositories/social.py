from __future__ import annotations

from datetime import datetime
from typing import Any

from app.core.constants import source_or_default
from app.core.errors import InvalidArgumentError
from app.core.timeutils import utc_now
from app.db.neo4j.driver import execute_write_in_transaction, run_query
from app.db.neo4j.labels import CONTACT, ORGANIZATION, SOCIAL, tenant_edge, tenant_label

SOCIAL_OWNER_LABELS = {"CONTACT": CONTACT, "ORGANIZATION": ORGANIZATION}


def merge_social_for(
    tenant: str,
    entity_type: str,
    entity_id: str,
    social_id: str,
    url: str,
    alias: str = "",
    followers_count: int | None = None,
    source: str = "",
    app_source: str = "",
    created_at: datetime | None = None,
    tx: Any | None = None,
) -> None:
    """Attach a social profile to the entity, reusing an existing node with the same url."""
    owner = SOCIAL_OWNER_LABELS.get(entity_type.upper())
    if owner is None:
        raise InvalidArgumentError(f"unsupported social owner type: {entity_type}")
    query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:{tenant_edge(owner)}]-(n:{tenant_label(owner, tenant)} {{id:$entityId}})
        MERGE (n)-[:HAS]->(s:{SOCIAL} {{url:$url}})
        ON CREATE SET
            s.id = $socialId,
            s:{tenant_label(SOCIAL, tenant)},
            s.alias = $alias,
            s.followersCount = $followersCount,
            s.source = $source,
            s.sourceOfTruth = $source,
            s.appSource = $appSource,
            s.createdAt = $createdAt,
            s.updatedAt = $now
        ON MATCH SET
            s.alias = CASE WHEN $alias <> '' THEN $alias ELSE s.alias END,
            s.followersCount = coalesce($followersCount, s.followersCount),
            s.updatedAt = $now
        SET n.updatedAt = $now
    """
    params = {
        "tenant": tenant,
        "entityId": entity_id,
        "socialId": social_id,
        "url": url,
        "alias": alias,
        "followersCount": followers_count,
        "source": source_or_default(source),
        "appSource": app_source,
        "createdAt": created_at or utc_now(),
        "now": utc_now(),
    }
    execute_write_in_transaction(lambda tx_: run_query(tx_, "social_merge", query, params).consume(), tx)
