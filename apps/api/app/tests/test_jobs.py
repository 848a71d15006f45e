from __future__ import annotations

import pytest

from app.core.errors import InvalidArgumentError
from app.db.pg.base import Base
from app.db.pg.session import engine
from app.eventstore import store
from app.services.projection import refresh
from app.workers import jobs
from app.workers.queue import enqueue_job, queue_name_for


@pytest.fixture(autouse=True)
def projected(monkeypatch):
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    calls: list[tuple[str, int]] = []
    monkeypatch.setattr(jobs, "project_event", lambda stream_id, version: calls.append((stream_id, version)))
    return calls


def test_unknown_refresh_command_is_rejected() -> None:
    with pytest.raises(InvalidArgumentError):
        jobs.run_refresh_command("RefreshEverything", "ziggy", "org-1")


def test_refresh_arr_records_event(projected) -> None:
    result = jobs.run_refresh_command(refresh.REFRESH_ARR, "ziggy", "org-1")

    assert result == {"id": "org-1", "redundant_event_skipped": False}
    assert projected == [("organization-ziggy-org-1", 1)]
    event = store.get_event("organization-ziggy-org-1", 1)
    assert event.metadata.app == "event-processing-platform-subscribers"


def test_onboarding_refresh_passes_fields(projected) -> None:
    jobs.run_refresh_command(
        refresh.UPDATE_ONBOARDING_STATUS, "ziggy", "org-1", status="NOT_STARTED", caused_by_contract_id="c1"
    )

    event = store.get_event("organization-ziggy-org-1", 1)
    assert event.data["status"] == "NOT_STARTED"
    assert event.data["causedByContractId"] == "c1"


def test_inline_enqueue_runs_handler(projected) -> None:
    job_id = enqueue_job("project_event", "contact-ziggy-c1", 3)

    assert job_id == "inline-project_event"
    assert projected == [("contact-ziggy-c1", 3)]


def test_refresh_jobs_use_refresh_queue() -> None:
    assert queue_name_for("run_refresh_command") == "refresh"
    assert queue_name_for("project_event") == "projection"
