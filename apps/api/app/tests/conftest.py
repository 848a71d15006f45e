from __future__ import annotations

import os
import tempfile
from typing import Any

import pytest

# The event store engine is built at import time, so point it at a scratch SQLite file first.
os.environ.setdefault("EVENT_STORE_DSN", f"sqlite:///{tempfile.mkdtemp()}/crm_events_test.db")

from app.core.config import get_settings  # noqa: E402
from app.services.projection import notifications  # noqa: E402


class FakeRecord(dict):
    """Record that answers both positional (``record[0]``) and keyed access."""

    def __getitem__(self, key):  # noqa: ANN001
        if isinstance(key, int):
            return list(self.values())[key]
        return super().__getitem__(key)


class FakeResult:
    def __init__(self, rows: list[Any] | None = None) -> None:
        self._records = [self._record(row) for row in rows or []]

    @staticmethod
    def _record(row: Any) -> FakeRecord:
        if isinstance(row, dict):
            return FakeRecord(row)
        if isinstance(row, (list, tuple)):
            return FakeRecord({f"v{index}": value for index, value in enumerate(row)})
        return FakeRecord({"v0": row})

    def __iter__(self):
        return iter(self._records)

    def single(self):
        return self._records[0] if self._records else None

    def data(self):
        return [dict(record) for record in self._records]

    def consume(self):
        return None


class RecordingTx:
    """Transaction double: records every (query, params) and replays queued rows in order."""

    def __init__(self, *responses: list[Any]) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._responses = list(responses)

    def run(self, query: str, params: dict[str, Any] | None = None) -> FakeResult:
        self.calls.append((query, dict(params or {})))
        rows = self._responses.pop(0) if self._responses else []
        return FakeResult(rows)

    @property
    def query(self) -> str:
        return self.calls[-1][0]

    @property
    def params(self) -> dict[str, Any]:
        return self.calls[-1][1]


class FakeNode(dict):
    def __init__(self, labels: set[str], **props: Any) -> None:
        super().__init__(props)
        self.labels = labels


@pytest.fixture
def recording_tx():
    return RecordingTx


@pytest.fixture
def fake_node():
    return FakeNode


@pytest.fixture(autouse=True)
def inline_settings(monkeypatch):
    monkeypatch.setenv("QUEUE_MODE", "inline")
    monkeypatch.setenv("API_KEY", "")
    monkeypatch.setenv("NEO4J_URI", "")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def completed_events():
    received: list[notifications.EventCompleted] = []
    notifications.set_notifier(received.append)
    yield received
    notifications.set_notifier(None)
