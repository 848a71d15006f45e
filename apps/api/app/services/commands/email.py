from __future__ import annotations

import uuid

from app.eventstore.store import load_aggregate, save_aggregate
from app.services.aggregates.email import EmailAggregate
from app.services.commands.base import execute, require
from app.services.commands.requests import CommandRequest, CommandResponse, CreateEmailRequest, EmailValidatedRequest


def _aggregate(tenant: str, email_id: str) -> EmailAggregate:
    return EmailAggregate(require(tenant, "tenant"), require(email_id, "emailId"))


def create_email(request: CreateEmailRequest) -> CommandResponse:
    require(request.raw_email, "rawEmail")
    request.email_id = request.email_id or str(uuid.uuid4())
    return execute(
        "CreateEmail",
        _aggregate(request.tenant, request.email_id),
        request,
        is_redundant=lambda agg: agg.email.raw_email == request.raw_email.strip(),
    )


def email_validated(request: EmailValidatedRequest) -> CommandResponse:
    return execute("EmailValidated", _aggregate(request.tenant, request.email_id), request, must_exist=True)


def clean_email_validation(request: CommandRequest, email_id: str) -> CommandResponse:
    aggregate = load_aggregate(_aggregate(request.tenant, email_id))
    if aggregate.email.validation is None:
        return CommandResponse(id=email_id, redundant_event_skipped=True)
    aggregate.clean_validation()
    save_aggregate(aggregate)
    return CommandResponse(id=email_id)
