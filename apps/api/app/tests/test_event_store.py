from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import update

from app.core.errors import AggregateNotFoundError, ConcurrencyError, MissingFieldError
from app.core.timeutils import utc_now
from app.db.pg.base import Base
from app.db.pg.models import EventStream, StoredEvent
from app.db.pg.session import SessionLocal, engine
from app.eventstore import store
from app.services.aggregates.contact import ContactAggregate
from app.services.commands import requests as rq
from app.services.commands.event_store import delete_event_store_stream
from app.workers import jobs

project_event = jobs.project_event


def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_event_store(monkeypatch):
    reset_db()
    projected: list[tuple[str, int]] = []
    monkeypatch.setattr(jobs, "project_event", lambda stream_id, version: projected.append((stream_id, version)))
    return projected


def _age_events(stream_id: str, days: int) -> None:
    db = SessionLocal()
    try:
        db.execute(
            update(StoredEvent)
            .where(StoredEvent.stream_id == stream_id)
            .values(created_at=utc_now() - timedelta(days=days))
        )
        db.commit()
    finally:
        db.close()


def _saved_contact(contact_id: str = "contact-1") -> ContactAggregate:
    aggregate = ContactAggregate("ziggy", contact_id)
    aggregate.handle_request(rq.CreateContactRequest(tenant="ziggy", contact_id=contact_id, first_name="Ada"))
    aggregate.handle_request(rq.LinkLocationToContactRequest(tenant="ziggy", contact_id=contact_id, location_id="l1"))
    store.save_aggregate(aggregate)
    return aggregate


def test_save_and_load_aggregate(clean_event_store) -> None:
    _saved_contact()

    loaded = store.load_aggregate(ContactAggregate("ziggy", "contact-1"))

    assert loaded.version == 2
    assert loaded.uncommitted == []
    assert loaded.contact.first_name == "Ada"
    assert loaded.contact.location_ids == ["l1"]
    assert clean_event_store == [("contact-ziggy-contact-1", 1), ("contact-ziggy-contact-1", 2)]


def test_loaded_events_keep_metadata_and_tenant() -> None:
    _saved_contact()

    events = store.load("contact-ziggy-contact-1")

    assert [event.version for event in events] == [1, 2]
    assert events[0].event_type == "V1_CONTACT_CREATE"
    assert events[0].tenant == "ziggy"
    assert events[0].data["firstName"] == "Ada"


def test_stale_expected_version_is_rejected() -> None:
    _saved_contact()
    stale = ContactAggregate("ziggy", "contact-1")
    stale.handle_request(rq.LinkLocationToContactRequest(tenant="ziggy", contact_id="contact-1", location_id="l2"))

    with pytest.raises(ConcurrencyError) as exc_info:
        store.save_aggregate(stale)

    assert exc_info.value.status_code == 409
    assert exc_info.value.actual_version == 2


def test_missing_stream_raises_not_found_and_load_or_new_creates() -> None:
    with pytest.raises(AggregateNotFoundError):
        store.load_aggregate(ContactAggregate("ziggy", "ghost"))

    fresh = store.load_or_new(ContactAggregate("ziggy", "ghost"))
    assert fresh.version == 0


def test_read_all_follows_global_position() -> None:
    _saved_contact("contact-1")
    _saved_contact("contact-2")

    first_page = store.read_all(0, limit=3)
    rest = store.read_all(first_page[-1][0])

    assert len(first_page) == 3
    assert len(rest) == 1
    assert rest[0][1].aggregate_id == "contact-ziggy-contact-2"


def test_delete_stream_sets_default_max_age() -> None:
    _saved_contact()

    delete_event_store_stream(rq.DeleteEventStoreStreamRequest(tenant="ziggy", type="contact", id="contact-1"))

    db = SessionLocal()
    try:
        stream = db.get(EventStream, "contact-ziggy-contact-1")
        assert stream.max_age_seconds == 86400
    finally:
        db.close()
    # Recent events stay readable until they age out.
    assert len(store.load("contact-ziggy-contact-1")) == 2


def test_delete_stream_with_minutes_expires_old_events() -> None:
    _saved_contact()

    delete_event_store_stream(
        rq.DeleteEventStoreStreamRequest(tenant="ziggy", type="contact", id="contact-1", minutes_until_deletion=5)
    )
    _age_events("contact-ziggy-contact-1", days=1)

    assert store.exists("contact-ziggy-contact-1") is True
    with pytest.raises(AggregateNotFoundError):
        store.load("contact-ziggy-contact-1")


def test_delete_missing_stream_is_a_no_op() -> None:
    delete_event_store_stream(rq.DeleteEventStoreStreamRequest(tenant="ziggy", type="contact", id="ghost"))


@pytest.mark.parametrize("missing", ["tenant", "type", "id"])
def test_delete_stream_requires_identity(missing: str) -> None:
    fields = {"tenant": "ziggy", "type": "contact", "id": "contact-1"}
    fields[missing] = ""

    with pytest.raises(MissingFieldError):
        delete_event_store_stream(rq.DeleteEventStoreStreamRequest(**fields))


def test_project_event_reports_missing_event() -> None:
    assert project_event("contact-ziggy-nobody", 1)["status"] == "missing"
