from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_past(value: datetime | None, now: datetime | None = None) -> bool:
    if value is None:
        return False
    return as_utc(value) < (now or utc_now())


def is_future(value: datetime | None, now: datetime | None = None) -> bool:
    if value is None:
        return False
    return as_utc(value) > (now or utc_now())
