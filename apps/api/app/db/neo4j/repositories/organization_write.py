from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from app.core.constants import AUTHORITATIVE_SOURCES, ContractStatus, OnboardingStatus, source_or_default
from app.core.errors import InvalidArgumentError, NotFoundError
from app.core.timeutils import utc_now
from app.db.neo4j.driver import execute_write_in_transaction, run_query
from app.db.neo4j.extract import extract_single_record_first_value_as_type
from app.db.neo4j.labels import ARCHIVED_ORGANIZATION, CONTRACT, ORGANIZATION, entity_label, tenant_label

logger = logging.getLogger(__name__)

# Scalar properties governed by the source-of-truth rule, in SET order.
SOURCE_OF_TRUTH_FIELDS = (
    "name",
    "description",
    "website",
    "industry",
    "sub_industry",
    "industry_group",
    "target_audience",
    "value_proposition",
    "last_funding_round",
    "last_funding_amount",
    "customer_os_id",
    "reference_id",
    "note",
    "is_public",
    "employees",
    "market",
    "year_founded",
    "headquarters",
    "logo_url",
    "icon_url",
    "employee_growth_rate",
    "slack_channel_id",
    "lead_source",
    "relationship",
    "stage",
    "icp_fit",
)

TIME_PROPERTIES = frozenset(
    {
        "lastTouchpointRequestedAt",
        "derivedNextRenewalAt",
        "enrichRequestedAt",
        "domainCheckedAt",
        "industryCheckedAt",
        "webScrapeLastRequestedAt",
    }
)
FLOAT_PROPERTIES = frozenset({"renewalForecastArr", "renewalForecastMaxArr", "ltv"})
STRING_PROPERTIES = frozenset({"enrichFailedReason", "industry", "leadSource", "slackChannelId", "headquarters"})


class OrganizationSaveFields(BaseModel):
    """Sparse organization write. ``None`` leaves the stored property untouched."""

    aggregate_version: int
    source: str = ""
    app_source: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    name: str | None = None
    description: str | None = None
    website: str | None = None
    industry: str | None = None
    sub_industry: str | None = None
    industry_group: str | None = None
    target_audience: str | None = None
    value_proposition: str | None = None
    last_funding_round: str | None = None
    last_funding_amount: str | None = None
    customer_os_id: str | None = None
    reference_id: str | None = None
    note: str | None = None
    is_public: bool | None = None
    employees: int | None = None
    market: str | None = None
    year_founded: int | None = None
    headquarters: str | None = None
    logo_url: str | None = None
    icon_url: str | None = None
    employee_growth_rate: str | None = None
    slack_channel_id: str | None = None
    lead_source: str | None = None
    relationship: str | None = None
    stage: str | None = None
    icp_fit: bool | None = None

    hide: bool | None = None
    enrich_domain: str | None = None
    enrich_source: str | None = None

    def overwrite(self) -> bool:
        return source_or_default(self.source) in AUTHORITATIVE_SOURCES


def _source_of_truth_assignment(prop: str) -> str:
    return (
        f"org.{prop} = CASE WHEN $overwrite = true OR org.sourceOfTruth = $source "
        f"OR org.{prop} IS NULL OR org.{prop} = '' THEN ${prop} ELSE org.{prop} END"
    )


def _build_update_clauses(data: OrganizationSaveFields, params: dict[str, Any]) -> list[str]:
    clauses: list[str] = []
    for field_name in SOURCE_OF_TRUTH_FIELDS:
        value = getattr(data, field_name)
        if value is None:
            continue
        prop = to_camel(field_name)
        params[prop] = value
        if field_name == "stage":
            # stageUpdatedAt reads the previous stage, so it is assigned first.
            clauses.append(
                "org.stageUpdatedAt = CASE WHEN ($overwrite = true OR org.sourceOfTruth = $source "
                "OR org.stage IS NULL OR org.stage = '') AND (org.stage IS NULL OR org.stage <> $stage) "
                "THEN $now ELSE org.stageUpdatedAt END"
            )
        clauses.append(_source_of_truth_assignment(prop))

    if data.hide is not None:
        params["hide"] = data.hide
        clauses.append("org.hide = $hide")
        clauses.append("org.hiddenAt = CASE WHEN $hide = true THEN $now ELSE null END")

    if data.enrich_domain and data.enrich_source:
        params["enrichDomain"] = data.enrich_domain
        params["enrichSource"] = data.enrich_source
        clauses.append("org.enrichDomain = $enrichDomain")
        clauses.append("org.enrichSource = $enrichSource")
        clauses.append("org.enrichedAt = $now")
    return clauses


def save(tenant: str, organization_id: str, data: OrganizationSaveFields, tx: Any | None = None) -> bool:
    """Ensure the organization exists, then apply the provided fields.

    Returns False when the stored aggregateVersion is not older than the incoming one.
    """
    now = utc_now()
    label = entity_label(ORGANIZATION, tenant)
    ensure_query = f"""
        MATCH (t:Tenant {{name:$tenant}})
        MERGE (t)<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:{label} {{id:$organizationId}})
        ON CREATE SET
            org.createdAt = $createdAt,
            org.updatedAt = $updatedAt,
            org.source = $source,
            org.sourceOfTruth = $source,
            org.appSource = $appSource,
            org.hide = false,
            org.onboardingStatus = $onboardingStatus
    """
    ensure_params = {
        "tenant": tenant,
        "organizationId": organization_id,
        "createdAt": data.created_at or now,
        "updatedAt": data.updated_at or now,
        "source": source_or_default(data.source),
        "appSource": data.app_source,
        "onboardingStatus": OnboardingStatus.NOT_APPLICABLE.value,
    }

    params: dict[str, Any] = {
        "tenant": tenant,
        "organizationId": organization_id,
        "aggregateVersion": data.aggregate_version,
        "source": source_or_default(data.source),
        "overwrite": data.overwrite(),
        "now": now,
    }
    clauses = _build_update_clauses(data, params)
    clauses.append("org.sourceOfTruth = CASE WHEN $overwrite = true THEN $source ELSE org.sourceOfTruth END")
    clauses.append("org.aggregateVersion = $aggregateVersion")
    clauses.append("org.updatedAt = datetime()")
    set_block = ",\n            ".join(clauses)
    update_query = f"""
        MATCH (:Tenant {{name:$tenant}})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:{label} {{id:$organizationId}})
        WHERE org.aggregateVersion IS NULL OR org.aggregateVersion < $aggregateVersion
        SET {set_block}
        RETURN count(org) > 0 AS applied
    """

    def _work(tx_):
        run_query(tx_, "organization_ensure", ensure_query, ensure_params).consume()
        result = run_query(tx_, "organization_update", update_query, params)
        try:
            return extract_single_record_first_value_as_type(result, bool)
        except NotFoundError:
            return False

    applied = execute_write_in_transaction(_work, tx)
    if not applied:
        logger.info(
            "organization_save_skipped",
            extra={"tenant": tenant, "organization_id": organization_id, "aggregate_version": data.aggregate_version},
        )
    return applied


def link_with_domain(tenant: str, organization_id: str, domain: str, tx: Any | None = None) -> bool:
    """Attach the domain unless another organization of the tenant already owns it."""
    query = """
        MERGE (d:Domain {domain:$domain})
        ON CREATE SET d.createdAt = datetime(), d.updatedAt = datetime()
        WITH d
        MATCH (t:Tenant {name:$tenant})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:Organization {id:$organizationId})
        OPTIONAL MATCH (d)<-[:HAS_DOMAIN]-(otherOrg:Organization)-[:ORGANIZATION_BELONGS_TO_TENANT]->(t)
        WHERE otherOrg.id <> org.id
        WITH d, org, count(otherOrg) AS existingOrgCount
        WHERE existingOrgCount = 0
        MERGE (org)-[:HAS_DOMAIN]->(d)
        SET org.updatedAt = datetime()
        RETURN existingOrgCount = 0 AS linked
    """
    params = {"tenant": tenant, "organizationId": organization_id, "domain": domain.strip().lower()}

    def _work(tx_):
        result = run_query(tx_, "organization_link_with_domain", query, params)
        try:
            return extract_single_record_first_value_as_type(result, bool)
        except NotFoundError:
            return False

    return execute_write_in_transaction(_work, tx)


def unlink_from_domain(tenant: str, organization_id: str, domain: str, tx: Any | None = None) -> None:
    query = """
        MATCH (t:Tenant {name:$tenant})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:Organization {id:$organizationId})
        MATCH (org)-[rel:HAS_DOMAIN]->(d:Domain {domain:$domain})
        SET org.updatedAt = datetime()
        DELETE rel
    """
    params = {"tenant": tenant, "organizationId": organization_id, "domain": domain.strip().lower()}
    execute_write_in_transaction(
        lambda tx_: run_query(tx_, "organization_unlink_from_domain", query, params).consume(), tx
    )


def archive(tenant: str, organization_id: str, tx: Any | None = None) -> None:
    query = f"""
        MATCH (org:Organization {{id:$organizationId}})-[currentRel:ORGANIZATION_BELONGS_TO_TENANT]->(t:Tenant {{name:$tenant}})
        MERGE (org)-[:ARCHIVED]->(t)
        SET org.archived = true,
            org.archivedAt = $now,
            org.updatedAt = $now,
            org:{tenant_label(ARCHIVED_ORGANIZATION, tenant)}
        DELETE currentRel
        REMOVE org:{tenant_label(ORGANIZATION, tenant)}
    """
    params = {"tenant": tenant, "organizationId": organization_id, "now": utc_now()}
    execute_write_in_transaction(lambda tx_: run_query(tx_, "organization_archive", query, params).consume(), tx)


def replace_owner(tenant: str, organization_id: str, user_id: str, source: str = "", tx: Any | None = None) -> None:
    query = """
        MATCH (t:Tenant {name:$tenant})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:Organization {id:$organizationId})
        OPTIONAL MATCH (:User)-[rel:OWNS]->(org)
        DELETE rel
        WITH org, t
        MATCH (t)<-[:USER_BELONGS_TO_TENANT]-(u:User {id:$userId})
        WHERE (u.internal = false OR u.internal IS NULL)
          AND (u.bot = false OR u.bot IS NULL)
          AND (u.test = false OR u.test IS NULL)
        MERGE (u)-[:OWNS]->(org)
        SET org.updatedAt = datetime(), org.sourceOfTruth = $source
    """
    params = {
        "tenant": tenant,
        "organizationId": organization_id,
        "userId": user_id,
        "source": source_or_default(source),
    }
    execute_write_in_transaction(lambda tx_: run_query(tx_, "organization_replace_owner", query, params).consume(), tx)


def set_visibility(
    tenant: str, organization_id: str, hide: bool, aggregate_version: int | None = None, tx: Any | None = None
) -> None:
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:{entity_label(ORGANIZATION, tenant)} {{id:$organizationId}})
        WHERE $aggregateVersion IS NULL OR org.aggregateVersion IS NULL OR org.aggregateVersion < $aggregateVersion
        SET org.hide = $hide,
            org.hiddenAt = CASE WHEN $hide = true THEN $now ELSE null END,
            org.aggregateVersion = COALESCE($aggregateVersion, org.aggregateVersion),
            org.updatedAt = $now
    """
    params = {
        "tenant": tenant,
        "organizationId": organization_id,
        "hide": hide,
        "aggregateVersion": aggregate_version,
        "now": utc_now(),
    }
    execute_write_in_transaction(lambda tx_: run_query(tx_, "organization_set_visibility", query, params).consume(), tx)


def update_last_touchpoint(
    tenant: str,
    organization_id: str,
    touchpoint_at: datetime | None,
    touchpoint_id: str,
    touchpoint_type: str,
    tx: Any | None = None,
) -> None:
    query = """
        MATCH (:Tenant {name:$tenant})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:Organization {id:$organizationId})
        SET org.updatedAt = CASE WHEN org.lastTouchpointId IS NULL OR org.lastTouchpointId <> $touchpointId
                                 THEN datetime() ELSE org.updatedAt END,
            org.lastTouchpointAt = $touchpointAt,
            org.lastTouchpointId = $touchpointId,
            org.lastTouchpointType = $touchpointType
    """
    params = {
        "tenant": tenant,
        "organizationId": organization_id,
        "touchpointAt": touchpoint_at,
        "touchpointId": touchpoint_id,
        "touchpointType": touchpoint_type,
    }
    execute_write_in_transaction(
        lambda tx_: run_query(tx_, "organization_update_last_touchpoint", query, params).consume(), tx
    )


def set_customer_os_id_if_missing(tenant: str, organization_id: str, customer_os_id: str, tx: Any | None = None) -> None:
    query = """
        MATCH (:Tenant {name:$tenant})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:Organization {id:$organizationId})
        SET org.customerOsId = CASE WHEN (org.customerOsId IS NULL OR org.customerOsId = '') AND $customerOsId <> ''
                                    THEN $customerOsId ELSE org.customerOsId END,
            org.updatedAt = datetime()
    """
    params = {"tenant": tenant, "organizationId": organization_id, "customerOsId": customer_os_id}
    execute_write_in_transaction(
        lambda tx_: run_query(tx_, "organization_set_customer_os_id", query, params).consume(), tx
    )


def link_with_parent_organization(
    tenant: str, organization_id: str, parent_organization_id: str, relation_type: str, tx: Any | None = None
) -> None:
    query = """
        MATCH (t:Tenant {name:$tenant})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(parent:Organization {id:$parentOrganizationId}),
              (t)<-[:ORGANIZATION_BELONGS_TO_TENANT]-(sub:Organization {id:$subOrganizationId})
        MERGE (sub)-[rel:SUBSIDIARY_OF]->(parent)
        SET rel.type = $type,
            sub.updatedAt = datetime(),
            parent.updatedAt = datetime()
    """
    params = {
        "tenant": tenant,
        "parentOrganizationId": parent_organization_id,
        "subOrganizationId": organization_id,
        "type": relation_type,
    }
    execute_write_in_transaction(lambda tx_: run_query(tx_, "organization_link_parent", query, params).consume(), tx)


def unlink_parent_organization(
    tenant: str, organization_id: str, parent_organization_id: str, tx: Any | None = None
) -> None:
    query = """
        MATCH (t:Tenant {name:$tenant})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(parent:Organization {id:$parentOrganizationId})
              <-[rel:SUBSIDIARY_OF]-(sub:Organization {id:$subOrganizationId})-[:ORGANIZATION_BELONGS_TO_TENANT]->(t)
        DELETE rel
        SET sub.updatedAt = datetime(),
            parent.updatedAt = datetime()
    """
    params = {"tenant": tenant, "parentOrganizationId": parent_organization_id, "subOrganizationId": organization_id}
    execute_write_in_transaction(lambda tx_: run_query(tx_, "organization_unlink_parent", query, params).consume(), tx)


def update_arr(tenant: str, organization_id: str, tx: Any | None = None) -> None:
    # Only the tenant contract label is matched, so soft-deleted contracts never contribute.
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:Organization {{id:$organizationId}})
        OPTIONAL MATCH (org)-[:HAS_CONTRACT]->(c:{tenant_label(CONTRACT, tenant)})
        WHERE c.status <> $statusDraft
        WITH *
        OPTIONAL MATCH (c)-[:ACTIVE_RENEWAL]->(op:Opportunity)
        WITH org, COALESCE(sum(op.amount), 0) AS arr, COALESCE(sum(op.maxAmount), 0) AS maxArr
        SET org.renewalForecastArr = arr,
            org.renewalForecastMaxArr = maxArr,
            org.updatedAt = datetime()
    """
    params = {"tenant": tenant, "organizationId": organization_id, "statusDraft": ContractStatus.DRAFT.value}
    execute_write_in_transaction(lambda tx_: run_query(tx_, "organization_update_arr", query, params).consume(), tx)


def update_renewal_summary(
    tenant: str,
    organization_id: str,
    likelihood: str | None,
    likelihood_order: int | None,
    next_renewal_at: datetime | None,
    tx: Any | None = None,
) -> None:
    query = """
        MATCH (t:Tenant {name:$tenant})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:Organization {id:$organizationId})
        SET org.derivedRenewalLikelihood = $derivedRenewalLikelihood,
            org.derivedRenewalLikelihoodOrder = $derivedRenewalLikelihoodOrder,
            org.derivedNextRenewalAt = $derivedNextRenewalAt,
            org.updatedAt = datetime()
    """
    params = {
        "tenant": tenant,
        "organizationId": organization_id,
        "derivedRenewalLikelihood": likelihood,
        "derivedRenewalLikelihoodOrder": likelihood_order,
        "derivedNextRenewalAt": next_renewal_at,
    }
    execute_write_in_transaction(
        lambda tx_: run_query(tx_, "organization_update_renewal_summary", query, params).consume(), tx
    )


def update_onboarding_status(
    tenant: str,
    organization_id: str,
    status: str,
    comments: str,
    status_order: int | None,
    updated_at: datetime,
    aggregate_version: int | None = None,
    tx: Any | None = None,
) -> None:
    query = """
        MATCH (t:Tenant {name:$tenant})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:Organization {id:$organizationId})
        WHERE $aggregateVersion IS NULL OR org.aggregateVersion IS NULL OR org.aggregateVersion < $aggregateVersion
        SET org.onboardingStatus = $status,
            org.onboardingStatusOrder = $statusOrder,
            org.onboardingComments = $comments,
            org.onboardingUpdatedAt = $updatedAt,
            org.aggregateVersion = COALESCE($aggregateVersion, org.aggregateVersion),
            org.updatedAt = datetime()
    """
    params = {
        "tenant": tenant,
        "organizationId": organization_id,
        "status": status,
        "statusOrder": status_order,
        "comments": comments,
        "updatedAt": updated_at,
        "aggregateVersion": aggregate_version,
    }
    execute_write_in_transaction(
        lambda tx_: run_query(tx_, "organization_update_onboarding_status", query, params).consume(), tx
    )


def web_scrape_requested(tenant: str, organization_id: str, url: str, attempt: int, tx: Any | None = None) -> None:
    query = """
        MATCH (t:Tenant {name:$tenant})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:Organization {id:$organizationId})
        SET org.webScrapeLastRequestedAt = $requestedAt,
            org.webScrapeLastRequestedUrl = $url,
            org.webScrapeAttempts = $attempt
    """
    params = {
        "tenant": tenant,
        "organizationId": organization_id,
        "requestedAt": utc_now(),
        "url": url,
        "attempt": attempt,
    }
    execute_write_in_transaction(
        lambda tx_: run_query(tx_, "organization_web_scrape_requested", query, params).consume(), tx
    )


def _update_property(tenant: str, organization_id: str, prop: str, value: Any, tx: Any | None) -> None:
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:Organization {{id:$organizationId}})
        SET org.{prop} = $value
    """
    params = {"tenant": tenant, "organizationId": organization_id, "value": value}
    execute_write_in_transaction(lambda tx_: run_query(tx_, "organization_update_property", query, params).consume(), tx)


def update_time_property(
    tenant: str, organization_id: str, prop: str, value: datetime | None, tx: Any | None = None
) -> None:
    if prop not in TIME_PROPERTIES:
        raise InvalidArgumentError(f"unsupported organization time property: {prop}")
    _update_property(tenant, organization_id, prop, value, tx)


def update_float_property(tenant: str, organization_id: str, prop: str, value: float, tx: Any | None = None) -> None:
    if prop not in FLOAT_PROPERTIES:
        raise InvalidArgumentError(f"unsupported organization float property: {prop}")
    _update_property(tenant, organization_id, prop, float(value), tx)


def update_string_property(tenant: str, organization_id: str, prop: str, value: str, tx: Any | None = None) -> None:
    if prop not in STRING_PROPERTIES:
        raise InvalidArgumentError(f"unsupported organization string property: {prop}")
    _update_property(tenant, organization_id, prop, value, tx)
