from __future__ import annotations

import logging
from typing import Callable

from pydantic import BaseModel
from redis import Redis
from redis.exceptions import RedisError

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class EventCompleted(BaseModel):
    tenant: str
    entity: str
    entity_id: str
    create: bool = False
    update: bool = False
    delete: bool = False


Notifier = Callable[[EventCompleted], None]

_notifier: Notifier | None = None


def publish_to_redis(details: EventCompleted) -> None:
    logger.info("event_completed", extra=details.model_dump())
    settings = get_settings()
    if settings.queue_mode == "inline":
        return
    try:
        conn = Redis.from_url(settings.redis_url)
        conn.publish(settings.event_completed_channel, details.model_dump_json())
    except RedisError:
        logger.exception("event_completed_publish_failed", extra={"entity_id": details.entity_id})


def set_notifier(notifier: Notifier | None) -> None:
    global _notifier
    _notifier = notifier


def event_completed(tenant: str, entity: str, entity_id: str, kind: str = "update") -> None:
    details = EventCompleted(
        tenant=tenant,
        entity=entity,
        entity_id=entity_id,
        create=kind == "create",
        update=kind == "update",
        delete=kind == "delete",
    )
    (_notifier or publish_to_redis)(details)
