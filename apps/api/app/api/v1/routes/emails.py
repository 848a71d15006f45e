from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.v1.deps import require_api_key
from app.services.commands import email as commands
from app.services.commands.requests import CommandRequest, CommandResponse, CreateEmailRequest, EmailValidatedRequest

router = APIRouter(prefix="/emails", tags=["emails"], dependencies=[Depends(require_api_key)])


@router.post("", response_model=CommandResponse)
def create_email(payload: CreateEmailRequest) -> CommandResponse:
    return commands.create_email(payload)


@router.post("/{email_id}/validation", response_model=CommandResponse)
def email_validated(email_id: str, payload: EmailValidatedRequest) -> CommandResponse:
    payload.email_id = email_id
    return commands.email_validated(payload)


@router.delete("/{email_id}/validation", response_model=CommandResponse)
def clean_email_validation(email_id: str, tenant: str, app_source: str = "") -> CommandResponse:
    return commands.clean_email_validation(CommandRequest(tenant=tenant, app_source=app_source), email_id)
