from __future__ import annotations

import logging

from app.core.config import get_settings
from app.core.errors import MissingFieldError
from app.eventstore import store
from app.eventstore.aggregate import aggregate_id
from app.services.commands.requests import DeleteEventStoreStreamRequest

logger = logging.getLogger(__name__)


def delete_event_store_stream(request: DeleteEventStoreStreamRequest) -> None:
    """Expire a stream by setting its max age; events disappear from loads once they are older."""
    if not request.tenant:
        raise MissingFieldError("tenant")
    if not request.type:
        raise MissingFieldError("type")
    if not request.id:
        raise MissingFieldError("id")

    stream_id = aggregate_id(request.type, request.tenant, request.id)
    if not store.exists(stream_id):
        logger.info("event_stream_delete_missing", extra={"stream_id": stream_id})
        return

    if request.minutes_until_deletion > 0:
        max_age_seconds = request.minutes_until_deletion * 60
    else:
        max_age_seconds = get_settings().event_stream_default_max_age_seconds
    store.update_stream_metadata(stream_id, max_age_seconds)
