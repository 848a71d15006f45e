from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.pg.base import Base

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
PositionType = BigInteger().with_variant(Integer(), "sqlite")


class StoredEvent(Base):
    __tablename__ = "event_store_events"
    __table_args__ = (
        UniqueConstraint("stream_id", "version", name="uq_event_store_events_stream_version"),
        Index("ix_event_store_events_tenant", "tenant"),
    )

    position: Mapped[int] = mapped_column(PositionType, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True, default=lambda: str(uuid.uuid4()))
    stream_id: Mapped[str] = mapped_column(String(512), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    event_type: Mapped[str] = mapped_column(String(128), nullable=False)
    aggregate_type: Mapped[str] = mapped_column(String(64), nullable=False)
    tenant: Mapped[str] = mapped_column(String(255), nullable=False)
    payload_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    metadata_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class EventStream(Base):
    __tablename__ = "event_store_streams"

    stream_id: Mapped[str] = mapped_column(String(512), primary_key=True)
    aggregate_type: Mapped[str] = mapped_column(String(64), nullable=False)
    tenant: Mapped[str] = mapped_column(String(255), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_age_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    truncate_before: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
