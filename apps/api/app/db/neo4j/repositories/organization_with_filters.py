from __future__ import annotations

import logging
from typing import Any

from app.core.errors import InvalidArgumentError
from app.db.neo4j.driver import execute_read_in_transaction, run_query
from app.db.neo4j.extract import extract_all_records_as_string_list
from app.db.neo4j.filters import ComparisonOperator, CypherFilter, Filter, FilterItem, and_group, flatten_and, leaf

logger = logging.getLogger(__name__)

SEARCH_PARAM_STAGE = "STAGE"
SEARCH_PARAM_INDUSTRY = "INDUSTRY"
SEARCH_PARAM_EMPLOYEE_COUNT = "EMPLOYEE_COUNT"
SEARCH_PARAM_COUNTRY_A2 = "COUNTRY_A2"
SEARCH_PARAM_TAGS = "TAGS"
SEARCH_PARAM_LINKEDIN_FOLLOWER_COUNT = "LINKEDIN_FOLLOWER_COUNT"
SEARCH_PARAM_IS_PUBLIC = "IS_PUBLIC"
SEARCH_PARAM_YEAR_FOUNDED = "YEAR_FOUNDED"

ORGANIZATION_SEARCH_PARAMS = {
    "STAGE": SEARCH_PARAM_STAGE,
    "ORGANIZATIONS_STAGE": SEARCH_PARAM_STAGE,
    "INDUSTRY": SEARCH_PARAM_INDUSTRY,
    "ORGANIZATIONS_INDUSTRY": SEARCH_PARAM_INDUSTRY,
    "EMPLOYEE_COUNT": SEARCH_PARAM_EMPLOYEE_COUNT,
    "ORGANIZATIONS_EMPLOYEE_COUNT": SEARCH_PARAM_EMPLOYEE_COUNT,
    "COUNTRY_A2": SEARCH_PARAM_COUNTRY_A2,
    "ORGANIZATIONS_HEADQUARTERS": SEARCH_PARAM_COUNTRY_A2,
    "TAGS": SEARCH_PARAM_TAGS,
    "ORGANIZATIONS_TAGS": SEARCH_PARAM_TAGS,
    "LINKEDIN_FOLLOWER_COUNT": SEARCH_PARAM_LINKEDIN_FOLLOWER_COUNT,
    "ORGANIZATIONS_LINKEDIN_FOLLOWER_COUNT": SEARCH_PARAM_LINKEDIN_FOLLOWER_COUNT,
    "IS_PUBLIC": SEARCH_PARAM_IS_PUBLIC,
    "ORGANIZATIONS_IS_PUBLIC": SEARCH_PARAM_IS_PUBLIC,
    "YEAR_FOUNDED": SEARCH_PARAM_YEAR_FOUNDED,
    "ORGANIZATIONS_YEAR_FOUNDED": SEARCH_PARAM_YEAR_FOUNDED,
}

_COMPARISONS = {
    ComparisonOperator.LT,
    ComparisonOperator.LTE,
    ComparisonOperator.GT,
    ComparisonOperator.GTE,
    ComparisonOperator.EQ,
}


def _require(value: Any, item: FilterItem, kind: str) -> Any:
    if value is None:
        raise InvalidArgumentError(f"filter {item.property} expects a {kind} value")
    return value


def _numeric_filter(prop: str, item: FilterItem) -> CypherFilter:
    values = _require(item.value.array_int, item, "integer array")
    if item.operation == ComparisonOperator.BETWEEN:
        if len(values) != 2:
            raise InvalidArgumentError(f"filter {item.property} BETWEEN expects two integers")
        return leaf(prop, (values[0], values[1]), ComparisonOperator.BETWEEN)
    if item.operation not in _COMPARISONS or not values:
        raise InvalidArgumentError(f"filter {item.property} does not support {item.operation.value}")
    return leaf(prop, values[0], item.operation)


def compile_organization_filter(tenant: str, filter_: Filter | None) -> tuple[str, dict[str, Any]]:
    """Build the organization search query.

    Predicates are routed into organization, tag, location and social buckets; each non-empty
    bucket adds its own MATCH hop. Unrecognized properties are dropped.
    """
    organization_filter = and_group()
    tag_filter = and_group()
    location_filter = and_group()
    social_filter = and_group()

    for item in flatten_and(filter_):
        search_param = ORGANIZATION_SEARCH_PARAMS.get(item.property, "")
        if search_param == SEARCH_PARAM_STAGE:
            organization_filter.filters.append(leaf("stage", _require(item.value.str_, item, "string")))
        elif search_param == SEARCH_PARAM_INDUSTRY:
            organization_filter.filters.append(
                leaf("industry", _require(item.value.array_str, item, "string array"), ComparisonOperator.IN)
            )
        elif search_param == SEARCH_PARAM_EMPLOYEE_COUNT:
            organization_filter.filters.append(_numeric_filter("employees", item))
        elif search_param == SEARCH_PARAM_YEAR_FOUNDED:
            organization_filter.filters.append(_numeric_filter("yearFounded", item))
        elif search_param == SEARCH_PARAM_IS_PUBLIC:
            organization_filter.filters.append(leaf("isPublic", _require(item.value.bool_, item, "boolean")))
        elif search_param == SEARCH_PARAM_TAGS:
            tag_filter.filters.append(
                leaf("id", _require(item.value.array_str, item, "string array"), ComparisonOperator.IN)
            )
        elif search_param == SEARCH_PARAM_COUNTRY_A2:
            location_filter.filters.append(
                leaf("countryCodeA2", _require(item.value.array_str, item, "string array"), ComparisonOperator.IN)
            )
        elif search_param == SEARCH_PARAM_LINKEDIN_FOLLOWER_COUNT:
            social_filter.filters.append(leaf("url", "linkedin.", ComparisonOperator.CONTAINS))
            social_filter.filters.append(_numeric_filter("followersCount", item))
        else:
            logger.info("organization_filter_property_ignored", extra={"property": item.property})

    params: dict[str, Any] = {"tenant": tenant}
    parts: list[str] = []
    query = (
        "MATCH (o:Organization)-[:ORGANIZATION_BELONGS_TO_TENANT]->(:Tenant {name:$tenant}) "
        "WHERE o.hide = false WITH *"
    )
    buckets = (
        (organization_filter, "o", "o_param_", ""),
        (tag_filter, "t", "t_param_", " MATCH (o)-[:TAGGED]->(t:Tag) WITH *"),
        (location_filter, "l", "l_param_", " MATCH (o)--(l:Location) WITH *"),
        (social_filter, "s", "s_param_", " MATCH (o)-[:HAS]->(s:Social) WITH *"),
    )
    for bucket, alias, prefix, hop in buckets:
        if not bucket.filters:
            continue
        fragment, fragment_params = bucket.build_fragment(alias, prefix)
        query += hop
        parts.append(fragment)
        params.update(fragment_params)
    if parts:
        query += " WHERE " + " AND ".join(parts)
    query += " RETURN DISTINCT o.id"
    return query, params


def get_filtered_organization_ids(tenant: str, filter_: Filter | None, tx: Any | None = None) -> list[str]:
    query, params = compile_organization_filter(tenant, filter_)
    ids = execute_read_in_transaction(
        lambda tx_: extract_all_records_as_string_list(run_query(tx_, "organization_filtered_ids", query, params)),
        tx,
    )
    logger.debug("organization_filtered_ids", extra={"tenant": tenant, "count": len(ids)})
    return ids
