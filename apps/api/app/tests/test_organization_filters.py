from __future__ import annotations

import pytest

from app.core.errors import InvalidArgumentError
from app.db.neo4j.filters import ComparisonOperator, Filter, FilterItem, FilterValue
from app.db.neo4j.repositories.organization_with_filters import (
    compile_organization_filter,
    get_filtered_organization_ids,
)


def _and(*items: FilterItem) -> Filter:
    return Filter(and_=[Filter(filter=item) for item in items])


def test_employee_range_and_tags_compile_to_org_and_tag_matches() -> None:
    where = _and(
        FilterItem(
            property="EMPLOYEE_COUNT",
            operation=ComparisonOperator.BETWEEN,
            value=FilterValue(array_int=[10, 100]),
        ),
        FilterItem(property="TAGS", operation=ComparisonOperator.IN, value=FilterValue(array_str=["t1", "t2"])),
    )

    query, params = compile_organization_filter("ziggy", where)

    assert query.startswith("MATCH (o:Organization)-[:ORGANIZATION_BELONGS_TO_TENANT]->(:Tenant {name:$tenant})")
    assert "MATCH (o)-[:TAGGED]->(t:Tag)" in query
    assert "WHERE (o.employees >= $o_param_0 AND o.employees <= $o_param_1) AND t.id IN $t_param_0" in query
    assert query.endswith("RETURN DISTINCT o.id")
    assert params == {"tenant": "ziggy", "o_param_0": 10, "o_param_1": 100, "t_param_0": ["t1", "t2"]}


def test_filter_accepts_external_json_grammar() -> None:
    where = Filter.model_validate(
        {"and": [{"filter": {"property": "IS_PUBLIC", "operation": "EQ", "value": {"bool": True}}}]}
    )

    query, params = compile_organization_filter("ziggy", where)

    assert "WHERE o.isPublic = $o_param_0" in query
    assert params["o_param_0"] is True


def test_linkedin_follower_count_adds_social_hop() -> None:
    where = _and(
        FilterItem(
            property="LINKEDIN_FOLLOWER_COUNT",
            operation=ComparisonOperator.GTE,
            value=FilterValue(array_int=[500]),
        )
    )

    query, params = compile_organization_filter("ziggy", where)

    assert "MATCH (o)-[:HAS]->(s:Social)" in query
    assert "(s.url CONTAINS $s_param_0 AND s.followersCount >= $s_param_1)" in query
    assert params["s_param_0"] == "linkedin."
    assert params["s_param_1"] == 500


def test_unknown_properties_are_dropped() -> None:
    where = _and(FilterItem(property="FAVOURITE_COLOUR", value=FilterValue(str_="blue")))

    query, params = compile_organization_filter("ziggy", where)

    assert " WHERE o.hide = false WITH * RETURN DISTINCT o.id" in query
    assert params == {"tenant": "ziggy"}


def test_between_requires_two_integers() -> None:
    where = _and(
        FilterItem(property="EMPLOYEE_COUNT", operation=ComparisonOperator.BETWEEN, value=FilterValue(array_int=[10]))
    )

    with pytest.raises(InvalidArgumentError):
        compile_organization_filter("ziggy", where)


def test_or_groups_are_rejected() -> None:
    with pytest.raises(InvalidArgumentError):
        compile_organization_filter("ziggy", Filter(or_=[Filter(filter=FilterItem(property="STAGE"))]))


@pytest.mark.phase_smoke
def test_filtered_ids_runs_compiled_query(recording_tx) -> None:
    tx = recording_tx([["org-1"], ["org-2"], [None]])
    where = _and(FilterItem(property="STAGE", value=FilterValue(str_="LEAD")))

    ids = get_filtered_organization_ids("ziggy", where, tx=tx)

    assert ids == ["org-1", "org-2"]
    assert "o.stage = $o_param_0" in tx.query
    assert tx.params["o_param_0"] == "LEAD"
