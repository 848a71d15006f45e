"""Durable event log on SQLAlchemy plus the aggregate load/save collaborator."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.errors import AggregateNotFoundError, ConcurrencyError, InternalError
from app.core.timeutils import as_utc, utc_now
from app.db.pg.models import EventStream, StoredEvent
from app.db.pg.session import SessionLocal
from app.eventstore.aggregate import Aggregate
from app.eventstore.events import Event, EventMetadata

logger = logging.getLogger(__name__)

A = TypeVar("A", bound=Aggregate)


def _to_event(row: StoredEvent) -> Event:
    return Event(
        event_id=row.event_id,
        aggregate_id=row.stream_id,
        aggregate_type=row.aggregate_type,
        event_type=row.event_type,
        version=row.version,
        timestamp=row.created_at,
        data=row.payload_json,
        metadata=EventMetadata.model_validate(row.metadata_json or {}),
    )


def _expired(row: StoredEvent, stream: EventStream | None) -> bool:
    if stream is None:
        return False
    if stream.truncate_before is not None and row.version < stream.truncate_before:
        return True
    if stream.max_age_seconds is None or row.created_at is None:
        return False
    return as_utc(row.created_at) < utc_now() - timedelta(seconds=stream.max_age_seconds)


def append(stream_id: str, expected_version: int, events: list[Event]) -> int:
    """Append ``events`` when the stream is at ``expected_version``; returns the new stream version."""
    if not events:
        return expected_version
    db = SessionLocal()
    try:
        stream = db.get(EventStream, stream_id)
        current = stream.version if stream is not None else 0
        if current != expected_version:
            raise ConcurrencyError(stream_id, expected_version, current)
        if stream is None:
            stream = EventStream(
                stream_id=stream_id,
                aggregate_type=events[0].aggregate_type,
                tenant=events[0].tenant,
                version=0,
            )
            db.add(stream)
        version = current
        for event in events:
            version += 1
            event.version = version
            db.add(
                StoredEvent(
                    event_id=event.event_id,
                    stream_id=stream_id,
                    version=version,
                    event_type=event.event_type,
                    aggregate_type=event.aggregate_type,
                    tenant=event.tenant,
                    payload_json=event.data,
                    metadata_json=event.metadata.model_dump(),
                    created_at=event.timestamp,
                )
            )
        stream.version = version
        stream.updated_at = utc_now()
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConcurrencyError(stream_id, expected_version, -1) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("event_store_append_failed", extra={"stream_id": stream_id})
        raise InternalError(str(exc)) from exc
    finally:
        db.close()
    logger.info("event_store_appended", extra={"stream_id": stream_id, "count": len(events), "version": version})
    return version


def load(stream_id: str) -> list[Event]:
    db = SessionLocal()
    try:
        stream = db.get(EventStream, stream_id)
        rows = db.scalars(
            select(StoredEvent).where(StoredEvent.stream_id == stream_id).order_by(StoredEvent.version)
        ).all()
        events = [_to_event(row) for row in rows if not _expired(row, stream)]
    finally:
        db.close()
    if not events:
        raise AggregateNotFoundError(stream_id)
    return events


def get_event(stream_id: str, version: int) -> Event | None:
    db = SessionLocal()
    try:
        row = db.scalars(
            select(StoredEvent).where(StoredEvent.stream_id == stream_id, StoredEvent.version == version)
        ).first()
        return _to_event(row) if row is not None else None
    finally:
        db.close()


def exists(stream_id: str) -> bool:
    db = SessionLocal()
    try:
        count = db.scalar(select(func.count()).select_from(StoredEvent).where(StoredEvent.stream_id == stream_id))
        return bool(count)
    finally:
        db.close()


def update_stream_metadata(stream_id: str, max_age_seconds: int | None) -> None:
    """Schedule expiry of the stream's events; nothing is removed synchronously."""
    db = SessionLocal()
    try:
        stream = db.get(EventStream, stream_id)
        if stream is None:
            raise AggregateNotFoundError(stream_id)
        stream.max_age_seconds = max_age_seconds
        stream.updated_at = utc_now()
        db.commit()
    finally:
        db.close()
    logger.info("event_stream_metadata_updated", extra={"stream_id": stream_id, "max_age_seconds": max_age_seconds})


def read_all(after_position: int = 0, limit: int = 500) -> list[tuple[int, Event]]:
    db = SessionLocal()
    try:
        rows = db.scalars(
            select(StoredEvent).where(StoredEvent.position > after_position).order_by(StoredEvent.position).limit(limit)
        ).all()
        return [(row.position, _to_event(row)) for row in rows]
    finally:
        db.close()


def load_aggregate(aggregate: A) -> A:
    """Fold the stored stream into ``aggregate``; raises AggregateNotFoundError for an empty stream."""
    aggregate.raise_from_history(load(aggregate.id))
    return aggregate


def load_or_new(aggregate: A) -> A:
    try:
        return load_aggregate(aggregate)
    except AggregateNotFoundError:
        return aggregate


def save_aggregate(aggregate: Aggregate) -> list[Event]:
    """Persist uncommitted events and hand each one to the projection queue."""
    from app.workers.queue import enqueue_job

    events = list(aggregate.uncommitted)
    if not events:
        return []
    append(aggregate.id, aggregate.original_version, events)
    aggregate.clear_uncommitted()
    for event in events:
        enqueue_job("project_event", event.aggregate_id, event.version)
    return events
