"""Server-Sent Events (SSE) endpoint."""

from fastapi import APIRouter, Query
from fastapi.responses import StreamingResponse

from ticketpilot.api.dependencies import EventManagerDep

router = APIRouter(prefix="/events", tags=["events"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.get("/stream")
async def event_stream(
    event_manager: EventManagerDep,
    ticket: str | None = Query(default=None, description="Only events about this ticket"),
) -> StreamingResponse:
    """Stream autopilot progress and ticket updates.

    With ``ticket`` set, events about other tickets are dropped; run-level
    events (``started``, ``cancelled``, ``completed``) are always sent.
    """
    return StreamingResponse(
        event_manager.stream(ticket),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
