from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from app.api.v1.deps import require_api_key
from app.api.v1.schemas import (
    DueExecutionsResponse,
    FlowActionExecutionOut,
    FlowEntityExecutionsResponse,
    FlowOut,
    FlowParticipantOut,
    MailboxDailyCountResponse,
    MailboxSlotResponse,
)
from app.core.errors import NotFoundError
from app.core.timeutils import utc_now
from app.db.neo4j.repositories import flow_action_execution, flow_execution_settings, flow_participant, flow_read

router = APIRouter(prefix="/flows", tags=["flows"], dependencies=[Depends(require_api_key)])


@router.get("/mailboxes/{mailbox}/slot", response_model=MailboxSlotResponse)
def mailbox_slot(mailbox: str, tenant: str) -> MailboxSlotResponse:
    first_slot_at = flow_action_execution.get_first_slot_for_mailbox(tenant, mailbox)
    last = flow_action_execution.get_last_scheduled_for_mailbox(tenant, mailbox)
    return MailboxSlotResponse(
        mailbox=mailbox,
        first_slot_at=first_slot_at,
        last_scheduled=FlowActionExecutionOut.from_entity(last) if last is not None else None,
    )


@router.get("/mailboxes/{mailbox}/interval", response_model=FlowActionExecutionOut | None)
def mailbox_interval(mailbox: str, tenant: str, start: datetime, end: datetime) -> FlowActionExecutionOut | None:
    execution = flow_action_execution.get_by_mailbox_and_time_interval(tenant, mailbox, start, end)
    if execution is None:
        return None
    return FlowActionExecutionOut.from_entity(execution)


@router.get("/mailboxes/{mailbox}/daily-count", response_model=MailboxDailyCountResponse)
def mailbox_daily_count(mailbox: str, tenant: str, start: datetime, end: datetime) -> MailboxDailyCountResponse:
    count = flow_action_execution.count_emails_per_mailbox_per_day(tenant, mailbox, start, end)
    return MailboxDailyCountResponse(mailbox=mailbox, start=start, end=end, count=count)


@router.get("/executions/due", response_model=DueExecutionsResponse)
def due_executions(
    before: datetime | None = None,
    limit: int | None = Query(default=None, ge=1, le=1000),
) -> DueExecutionsResponse:
    before = before or utc_now()
    executions = flow_action_execution.get_scheduled_before(before, limit)
    return DueExecutionsResponse(
        before=before,
        executions=[FlowActionExecutionOut.from_entity(execution) for execution in executions],
    )


@router.get("", response_model=list[FlowOut])
def list_flows(tenant: str) -> list[FlowOut]:
    return [FlowOut.from_entity(flow) for flow in flow_read.get_list(tenant)]


@router.get("/{flow_id}", response_model=FlowOut)
def get_flow(flow_id: str, tenant: str) -> FlowOut:
    flow = flow_read.get_by_id(tenant, flow_id)
    if flow is None:
        raise NotFoundError(f"flow {flow_id} not found")
    return FlowOut.from_entity(flow)


@router.get("/{flow_id}/entities/{entity_type}/{entity_id}", response_model=FlowEntityExecutionsResponse)
def flow_entity_executions(flow_id: str, entity_type: str, entity_id: str, tenant: str) -> FlowEntityExecutionsResponse:
    participant = flow_participant.get_by_entity(tenant, flow_id, entity_id, entity_type)
    settings = flow_execution_settings.get_for_entity(tenant, flow_id, entity_id, entity_type)
    executions = flow_action_execution.get_for_entity(tenant, flow_id, entity_id, entity_type)
    return FlowEntityExecutionsResponse(
        flow_id=flow_id,
        participant=FlowParticipantOut.model_validate(participant.model_dump()) if participant is not None else None,
        mailbox=settings.mailbox if settings is not None else None,
        executions=[FlowActionExecutionOut.from_entity(execution) for execution in executions],
    )
