from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from app.core.constants import AUTHORITATIVE_SOURCES, source_or_default
from app.core.errors import InvalidArgumentError, NotFoundError
from app.core.timeutils import utc_now
from app.db.neo4j.driver import execute_write_in_transaction, run_query
from app.db.neo4j.extract import extract_single_record_first_value_as_type
from app.db.neo4j.labels import CONTACT, JOB_ROLE, tenant_label

CONTACT_FIELDS = (
    "first_name",
    "last_name",
    "name",
    "prefix",
    "description",
    "timezone",
    "profile_photo_url",
    "username",
)

UPDATABLE_PROPERTIES = frozenset(
    {
        "hide",
        "enrichRequestedAt",
        "enrichFailedAt",
        "findWorkEmailRequestedAt",
        "lastTouchpointAt",
        "techLinkedInUrlCheckedAt",
    }
)


class ContactSaveFields(BaseModel):
    aggregate_version: int | None = None
    source: str = ""
    app_source: str = ""
    created_at: datetime | None = None
    # When set, only empty properties are written regardless of source.
    update_only_if_empty: bool = False

    first_name: str | None = None
    last_name: str | None = None
    name: str | None = None
    prefix: str | None = None
    description: str | None = None
    timezone: str | None = None
    profile_photo_url: str | None = None
    username: str | None = None

    def overwrite(self) -> bool:
        return source_or_default(self.source) in AUTHORITATIVE_SOURCES


def save(tenant: str, contact_id: str, data: ContactSaveFields, tx: Any | None = None) -> bool:
    """Create the contact when missing, then merge the provided fields under the source-of-truth rule."""
    params: dict[str, Any] = {
        "tenant": tenant,
        "contactId": contact_id,
        "createdAt": data.created_at or utc_now(),
        "source": source_or_default(data.source),
        "appSource": data.app_source,
        "overwrite": data.overwrite(),
        "updateOnlyIfEmpty": data.update_only_if_empty,
        "aggregateVersion": data.aggregate_version,
    }
    clauses = ["c.updatedAt = datetime()"]
    for field_name in CONTACT_FIELDS:
        value = getattr(data, field_name)
        if value is None:
            continue
        prop = to_camel(field_name)
        params[prop] = value
        clauses.append(
            f"c.{prop} = CASE WHEN ($updateOnlyIfEmpty = false AND ($overwrite = true OR c.sourceOfTruth = $source)) "
            f"OR c.{prop} IS NULL OR c.{prop} = '' THEN ${prop} ELSE c.{prop} END"
        )
    clauses.append(
        "c.sourceOfTruth = CASE WHEN $overwrite = true AND $updateOnlyIfEmpty = false THEN $source ELSE c.sourceOfTruth END"
    )
    clauses.append("c.aggregateVersion = coalesce($aggregateVersion, c.aggregateVersion)")
    set_block = ",\n            ".join(clauses)
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})
        MERGE (t)<-[:CONTACT_BELONGS_TO_TENANT]-(c:Contact {{id:$contactId}})
        ON CREATE SET
            c:{tenant_label(CONTACT, tenant)},
            c.createdAt = $createdAt,
            c.hide = false,
            c.source = $source,
            c.sourceOfTruth = $source,
            c.appSource = $appSource
        WITH c
        WHERE $aggregateVersion IS NULL OR c.aggregateVersion IS NULL OR c.aggregateVersion < $aggregateVersion
        SET {set_block}
        RETURN count(c) > 0
    """

    def _work(tx_):
        try:
            return extract_single_record_first_value_as_type(run_query(tx_, "contact_save", query, params), bool)
        except NotFoundError:
            return False

    return execute_write_in_transaction(_work, tx)


def update_any_property(tenant: str, contact_id: str, prop: str, value: Any, tx: Any | None = None) -> None:
    if prop not in UPDATABLE_PROPERTIES:
        raise InvalidArgumentError(f"unsupported contact property: {prop}")
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:CONTACT_BELONGS_TO_TENANT]-(c:Contact {{id:$contactId}})
        SET c.{prop} = $value
    """
    params = {"tenant": tenant, "contactId": contact_id, "value": value}
    execute_write_in_transaction(lambda tx_: run_query(tx_, "contact_update_property", query, params).consume(), tx)


def link_with_organization(
    tenant: str,
    contact_id: str,
    organization_id: str,
    job_title: str = "",
    description: str = "",
    primary: bool = False,
    source: str = "",
    app_source: str = "",
    started_at: datetime | None = None,
    ended_at: datetime | None = None,
    tx: Any | None = None,
) -> None:
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:CONTACT_BELONGS_TO_TENANT]-(c:Contact {{id:$contactId}}),
              (t)<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:Organization {{id:$organizationId}})
        MERGE (c)-[:WORKS_AS]->(jr:{JOB_ROLE})-[:ROLE_IN]->(org)
        ON CREATE SET
            jr.id = randomUUID(),
            jr:{tenant_label(JOB_ROLE, tenant)},
            jr.source = $source,
            jr.sourceOfTruth = $source,
            jr.appSource = $appSource,
            jr.jobTitle = $jobTitle,
            jr.description = $description,
            jr.primary = $primary,
            jr.startedAt = $startedAt,
            jr.endedAt = $endedAt,
            jr.createdAt = $now,
            jr.updatedAt = $now
        ON MATCH SET
            jr.jobTitle = CASE WHEN jr.sourceOfTruth = $source OR $overwrite = true OR jr.jobTitle IS NULL OR jr.jobTitle = ''
                               THEN $jobTitle ELSE jr.jobTitle END,
            jr.description = CASE WHEN jr.sourceOfTruth = $source OR $overwrite = true OR jr.description IS NULL OR jr.description = ''
                                  THEN $description ELSE jr.description END,
            jr.primary = $primary,
            jr.startedAt = coalesce($startedAt, jr.startedAt),
            jr.endedAt = coalesce($endedAt, jr.endedAt),
            jr.updatedAt = $now
        SET c.updatedAt = $now
    """
    resolved_source = source_or_default(source)
    params = {
        "tenant": tenant,
        "contactId": contact_id,
        "organizationId": organization_id,
        "jobTitle": job_title,
        "description": description,
        "primary": primary,
        "source": resolved_source,
        "appSource": app_source,
        "overwrite": resolved_source in AUTHORITATIVE_SOURCES,
        "startedAt": started_at,
        "endedAt": ended_at,
        "now": utc_now(),
    }
    execute_write_in_transaction(
        lambda tx_: run_query(tx_, "contact_link_with_organization", query, params).consume(), tx
    )
