from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from app.api.v1.deps import require_api_key
from app.services.commands.event_store import delete_event_store_stream
from app.services.commands.requests import DeleteEventStoreStreamRequest

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_api_key)])


@router.delete("/event-streams/{tenant}/{aggregate_type}/{aggregate_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event_stream(tenant: str, aggregate_type: str, aggregate_id: str, minutes_until_deletion: int = 0) -> Response:
    delete_event_store_stream(
        DeleteEventStoreStreamRequest(
            tenant=tenant, type=aggregate_type, id=aggregate_id, minutes_until_deletion=minutes_until_deletion
        )
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
