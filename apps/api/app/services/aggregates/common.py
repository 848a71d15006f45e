from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.core.constants import AUTHORITATIVE_SOURCES, app_source_or_default, source_or_default


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Source(CamelModel):
    source: str = ""
    source_of_truth: str = ""
    app_source: str = ""

    @classmethod
    def resolve(cls, source: str = "", app_source: str = "") -> Source:
        resolved = source_or_default(source)
        return cls(source=resolved, source_of_truth=resolved, app_source=app_source_or_default(app_source))


class ExternalSystem(CamelModel):
    external_system_id: str
    external_id: str
    external_url: str = ""
    external_id_second: str = ""
    external_source: str = ""
    sync_date: datetime | None = None

    def matches(self, other: ExternalSystem) -> bool:
        return self.external_system_id == other.external_system_id and self.external_id == other.external_id

    def same_as(self, other: ExternalSystem) -> bool:
        return (
            self.matches(other)
            and self.external_source == other.external_source
            and self.external_url == other.external_url
            and self.external_id_second == other.external_id_second
        )


def merge_external_system(systems: list[ExternalSystem], incoming: ExternalSystem | None) -> list[ExternalSystem]:
    """Replace the entry with the same (system, external id) or append a new one."""
    if incoming is None or not incoming.external_system_id:
        return systems
    merged = [incoming if existing.matches(incoming) else existing for existing in systems]
    if not any(existing.matches(incoming) for existing in systems):
        merged.append(incoming)
    return merged


def is_authoritative(source: str) -> bool:
    return source_or_default(source) in AUTHORITATIVE_SOURCES


def is_empty(value: Any) -> bool:
    return value is None or value == ""


def merge_field(current: Any, incoming: Any, overwrite: bool) -> Any:
    """Fold one scalar under the source-of-truth rule. ``None`` means the field was not sent."""
    if incoming is None:
        return current
    if overwrite or is_empty(current):
        return incoming
    return current
