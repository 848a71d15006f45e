from __future__ import annotations

from datetime import date, datetime
from typing import Any, TypeVar

from app.core.errors import InternalError, NotFoundError

T = TypeVar("T")


def to_native(value: Any) -> Any:
    """Convert driver temporal values (and lists of them) into stdlib types."""
    if isinstance(value, list):
        return [to_native(item) for item in value]
    to_native_fn = getattr(value, "to_native", None)
    if callable(to_native_fn) and not isinstance(value, (datetime, date)):
        return to_native_fn()
    return value


def node_props(node: Any) -> dict[str, Any]:
    if node is None:
        return {}
    return {key: to_native(node[key]) for key in node.keys()}


def node_labels(node: Any) -> set[str]:
    return set(getattr(node, "labels", set()) or set())


def _records(result: Any) -> list[Any]:
    return list(result)


def extract_single_record_first_value_as_node(result: Any) -> Any:
    records = _records(result)
    if not records:
        raise NotFoundError("no records")
    return records[0][0]


def extract_first_record_first_value_as_node_or_none(result: Any) -> Any | None:
    records = _records(result)
    if not records:
        return None
    return records[0][0]


def extract_all_records_first_value_as_node_list(result: Any) -> list[Any]:
    return [record[0] for record in _records(result)]


def extract_all_records_as_string_list(result: Any) -> list[str]:
    return [record[0] for record in _records(result) if record[0] is not None]


def extract_single_record_first_value_as_type(result: Any, expected_type: type[T]) -> T:
    records = _records(result)
    if not records:
        raise NotFoundError("no records")
    value = to_native(records[0][0])
    if expected_type is float and isinstance(value, int) and not isinstance(value, bool):
        value = float(value)
    if not isinstance(value, expected_type):
        raise InternalError(f"expected {expected_type.__name__}, got {type(value).__name__}")
    return value


def extract_all_records_as_node_and_id(result: Any) -> list[tuple[Any, str]]:
    return [(record[0], record[1]) for record in _records(result)]
