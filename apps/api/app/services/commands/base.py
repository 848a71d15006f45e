from __future__ import annotations

import logging
from typing import Callable, TypeVar

from app.core.errors import MissingFieldError
from app.eventstore.aggregate import Aggregate, allow_check_for_no_changes
from app.eventstore.store import load_aggregate, load_or_new, save_aggregate
from app.services.commands.requests import CommandRequest, CommandResponse

logger = logging.getLogger(__name__)

A = TypeVar("A", bound=Aggregate)


def require(value: str, field: str) -> str:
    if not value or not value.strip():
        raise MissingFieldError(field)
    return value


def execute(
    command: str,
    aggregate: A,
    request: CommandRequest,
    is_redundant: Callable[[A], bool] | None = None,
    must_exist: bool = False,
    skipped_id: Callable[[A], str] | None = None,
) -> CommandResponse:
    """Load, optionally short-circuit a no-op, apply the request and persist the new events."""
    log_extra = {
        "command": command,
        "tenant": aggregate.tenant,
        "user_id": request.logged_in_user_id,
        "aggregate_id": aggregate.id,
    }
    logger.info("command_started", extra=log_extra)
    aggregate = load_aggregate(aggregate) if must_exist else load_or_new(aggregate)

    if (
        is_redundant is not None
        and aggregate.version > 0
        and allow_check_for_no_changes(request.app_source, request.logged_in_user_id)
        and is_redundant(aggregate)
    ):
        logger.info("command_redundant_event_skipped", extra=log_extra)
        existing_id = skipped_id(aggregate) if skipped_id is not None else aggregate.object_id
        return CommandResponse(id=existing_id, redundant_event_skipped=True)

    result = aggregate.handle_request(request)
    events = save_aggregate(aggregate)
    logger.info("command_completed", extra={**log_extra, "events": len(events), "version": aggregate.version})
    return CommandResponse(id=str(result))
