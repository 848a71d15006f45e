from __future__ import annotations

from typing import Any

from app.core.errors import InvalidArgumentError
from app.eventstore.events import Event, EventMetadata, EventPayload, new_event


def aggregate_id(aggregate_type: str, tenant: str, object_id: str) -> str:
    return f"{aggregate_type}-{tenant}-{object_id}"


def object_id_from_aggregate_id(agg_id: str, tenant: str, aggregate_type: str) -> str:
    prefix = f"{aggregate_type}-{tenant}-"
    if agg_id.startswith(prefix):
        return agg_id[len(prefix) :]
    return agg_id


def allow_check_for_no_changes(app_source: str, logged_in_user_id: str) -> bool:
    """Redundant events may be skipped only for system requests, never for a logged-in user."""
    return not logged_in_user_id


class Aggregate:
    """Event-sourced consistency boundary identified by ``(type, tenant, object id)``.

    ``version`` counts every event folded so far, including uncommitted ones.
    """

    aggregate_type = ""

    def __init__(self, tenant: str, object_id: str) -> None:
        if not tenant:
            raise InvalidArgumentError("tenant is required")
        if not object_id:
            raise InvalidArgumentError("aggregate id is required")
        self.tenant = tenant
        self.object_id = object_id
        self.id = aggregate_id(self.aggregate_type, tenant, object_id)
        self.version = 0
        self.uncommitted: list[Event] = []

    def when(self, event: Event) -> None:
        raise NotImplementedError

    def handle_request(self, request: Any) -> Any:
        raise NotImplementedError

    @property
    def original_version(self) -> int:
        return self.version - len(self.uncommitted)

    def new_event(self, event_type: str, payload: EventPayload, metadata: EventMetadata | None = None) -> Event:
        event = new_event(self.id, self.aggregate_type, event_type, payload)
        event.metadata = metadata or EventMetadata(tenant=self.tenant)
        if not event.metadata.tenant:
            event.metadata.tenant = self.tenant
        return event

    def apply(self, event: Event) -> None:
        if event.aggregate_id != self.id:
            raise InvalidArgumentError(f"event {event.event_type} targets {event.aggregate_id}, not {self.id}")
        if event.data.get("tenant") and event.data["tenant"] != self.tenant:
            raise InvalidArgumentError(f"event tenant {event.data['tenant']} differs from aggregate tenant")
        self.when(event)
        self.version += 1
        event.version = self.version
        self.uncommitted.append(event)

    def raise_from_history(self, events: list[Event]) -> None:
        for event in events:
            self.when(event)
            self.version = event.version

    def clear_uncommitted(self) -> None:
        self.uncommitted = []

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id!r}, version={self.version})"
