from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.core.errors import InvalidArgumentError


class ComparisonOperator(str, Enum):
    EQ = "EQ"
    IN = "IN"
    BETWEEN = "BETWEEN"
    LT = "LT"
    LTE = "LTE"
    GT = "GT"
    GTE = "GTE"
    CONTAINS = "CONTAINS"

    @property
    def cypher(self) -> str:
        return _CYPHER_OPERATORS[self]


_CYPHER_OPERATORS = {
    ComparisonOperator.EQ: "=",
    ComparisonOperator.IN: "IN",
    ComparisonOperator.BETWEEN: "BETWEEN",
    ComparisonOperator.LT: "<",
    ComparisonOperator.LTE: "<=",
    ComparisonOperator.GT: ">",
    ComparisonOperator.GTE: ">=",
    ComparisonOperator.CONTAINS: "CONTAINS",
}


class FilterValue(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    str_: str | None = Field(default=None, alias="str")
    array_str: list[str] | None = Field(default=None, alias="arrayStr")
    array_int: list[int] | None = Field(default=None, alias="arrayInt")
    bool_: bool | None = Field(default=None, alias="bool")


class FilterItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    property: str
    operation: ComparisonOperator = ComparisonOperator.EQ
    value: FilterValue = Field(default_factory=FilterValue)


class Filter(BaseModel):
    """Logical filter tree: either a leaf ``filter`` or a group of sub-filters."""

    model_config = ConfigDict(populate_by_name=True)

    not_: Filter | None = Field(default=None, alias="not")
    and_: list[Filter] | None = Field(default=None, alias="and")
    or_: list[Filter] | None = Field(default=None, alias="or")
    filter: FilterItem | None = None


Filter.model_rebuild()


_PROPERTY_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass
class CypherFilter:
    """Compiled predicate tree. Leaves hold a property, a value and an operator."""

    property_name: str = ""
    value: Any = None
    operator: ComparisonOperator = ComparisonOperator.EQ
    logical_operator: str = "AND"
    negate: bool = False
    filters: list[CypherFilter] = field(default_factory=list)

    def is_leaf(self) -> bool:
        return bool(self.property_name)

    def build_fragment(self, node_alias: str, param_prefix: str) -> tuple[str, dict[str, Any]]:
        params: dict[str, Any] = {}
        counter = [0]
        fragment = self._build(node_alias, param_prefix, params, counter)
        return fragment, params

    def _next_param(self, param_prefix: str, params: dict[str, Any], counter: list[int], value: Any) -> str:
        name = f"{param_prefix}{counter[0]}"
        counter[0] += 1
        params[name] = value
        return name

    def _build(self, alias: str, prefix: str, params: dict[str, Any], counter: list[int]) -> str:
        if self.is_leaf():
            fragment = self._build_leaf(alias, prefix, params, counter)
        else:
            parts = [child._build(alias, prefix, params, counter) for child in self.filters]
            parts = [part for part in parts if part]
            if not parts:
                return ""
            joiner = f" {self.logical_operator} "
            fragment = parts[0] if len(parts) == 1 else f"({joiner.join(parts)})"
        if self.negate and fragment:
            return f"NOT {fragment}"
        return fragment

    def _build_leaf(self, alias: str, prefix: str, params: dict[str, Any], counter: list[int]) -> str:
        if not _PROPERTY_NAME.match(self.property_name):
            raise InvalidArgumentError(f"invalid property name: {self.property_name}")
        target = f"{alias}.{self.property_name}"
        if self.operator == ComparisonOperator.BETWEEN:
            low, high = self.value
            low_param = self._next_param(prefix, params, counter, low)
            high_param = self._next_param(prefix, params, counter, high)
            return f"({target} >= ${low_param} AND {target} <= ${high_param})"
        param = self._next_param(prefix, params, counter, self.value)
        return f"{target} {self.operator.cypher} ${param}"


def leaf(property_name: str, value: Any, operator: ComparisonOperator = ComparisonOperator.EQ) -> CypherFilter:
    return CypherFilter(property_name=property_name, value=value, operator=operator)


def and_group(filters: list[CypherFilter] | None = None) -> CypherFilter:
    return CypherFilter(logical_operator="AND", filters=list(filters or []))


def flatten_and(filter_: Filter | None) -> list[FilterItem]:
    """Collect leaf predicates of an AND-only tree."""
    if filter_ is None:
        return []
    if filter_.or_ or filter_.not_ is not None:
        raise InvalidArgumentError("only AND filters are supported")
    items: list[FilterItem] = []
    if filter_.filter is not None:
        items.append(filter_.filter)
    for child in filter_.and_ or []:
        items.extend(flatten_and(child))
    return items
