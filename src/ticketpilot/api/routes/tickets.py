"""Ticket CRUD and lifecycle endpoints."""

from fastapi import APIRouter
from fastapi import status as http_status

from ticketpilot.api.dependencies import EventManagerDep, ServiceDep
from ticketpilot.api.models import (
    APIResponse,
    CleanupResponse,
    StartTicketResponse,
    TicketCreate,
    TicketImport,
    TicketResponse,
    TicketStart,
    TicketStop,
    TicketUpdate,
    cleanup_to_response,
    resolution_to_response,
    ticket_to_response,
)
from ticketpilot.tickets import TicketStatus, parse_markdown_tickets

router = APIRouter(prefix="/tickets", tags=["tickets"])


@router.get("", response_model=APIResponse[list[TicketResponse]])
def list_tickets(
    service: ServiceDep, status: TicketStatus | None = None
) -> APIResponse[list[TicketResponse]]:
    """List tickets in creation order, optionally filtered by status."""
    tickets = service.list_tickets(status=status)
    return APIResponse(data=[ticket_to_response(t) for t in tickets])


@router.post(
    "",
    response_model=APIResponse[TicketResponse],
    status_code=http_status.HTTP_201_CREATED,
)
def create_ticket(
    ticket: TicketCreate, service: ServiceDep, events: EventManagerDep
) -> APIResponse[TicketResponse]:
    """Create a pending ticket."""
    created = service.create_ticket(ticket.id, ticket.description)
    events.emit_ticket_updated(created.id, created.status)
    return APIResponse(data=ticket_to_response(created))


@router.post(
    "/import",
    response_model=APIResponse[list[TicketResponse]],
    status_code=http_status.HTTP_201_CREATED,
)
def import_tickets(body: TicketImport, service: ServiceDep) -> APIResponse[list[TicketResponse]]:
    """Create tickets from Markdown sections, skipping ids that already exist."""
    created = service.import_tickets(parse_markdown_tickets(body.markdown))
    return APIResponse(data=[ticket_to_response(t) for t in created])


@router.get("/{ticket_id}", response_model=APIResponse[TicketResponse])
def get_ticket(ticket_id: str, service: ServiceDep) -> APIResponse[TicketResponse]:
    """Get a ticket by id or name."""
    return APIResponse(data=ticket_to_response(service.get_ticket(ticket_id)))


@router.patch("/{ticket_id}", response_model=APIResponse[TicketResponse])
def update_ticket(
    ticket_id: str, body: TicketUpdate, service: ServiceDep
) -> APIResponse[TicketResponse]:
    """Edit a ticket's description."""
    updated = service.update_description(ticket_id, body.description)
    return APIResponse(data=ticket_to_response(updated))


@router.delete("/{ticket_id}", response_model=APIResponse[CleanupResponse])
def delete_ticket(
    ticket_id: str, service: ServiceDep, events: EventManagerDep
) -> APIResponse[CleanupResponse]:
    """Delete a ticket after tearing down its worktree and branches."""
    ticket = service.get_ticket(ticket_id)
    report = service.delete_ticket(ticket.id)
    events.emit_ticket_updated(ticket.id, "deleted")
    return APIResponse(data=cleanup_to_response(report))


@router.post("/{ticket_id}/start", response_model=APIResponse[StartTicketResponse])
def start_ticket(
    ticket_id: str,
    service: ServiceDep,
    events: EventManagerDep,
    body: TicketStart | None = None,
) -> APIResponse[StartTicketResponse]:
    """Start a ticket and, unless disabled, resolve it."""
    resolve = body.resolve if body is not None else True
    result = service.start_ticket(ticket_id, resolve=resolve)
    ticket = service.get_ticket(ticket_id)
    events.emit_ticket_updated(ticket.id, ticket.status)
    return APIResponse(
        data=StartTicketResponse(
            ticket=ticket_to_response(ticket),
            resolution=resolution_to_response(result) if result is not None else None,
        )
    )


@router.post("/{ticket_id}/stop", response_model=APIResponse[TicketResponse])
def stop_ticket(
    ticket_id: str,
    service: ServiceDep,
    events: EventManagerDep,
    body: TicketStop | None = None,
) -> APIResponse[TicketResponse]:
    """Stop work on a ticket."""
    commit = body.commit if body is not None else True
    ticket = service.stop_ticket(ticket_id, commit=commit)
    events.emit_ticket_updated(ticket.id, ticket.status)
    return APIResponse(data=ticket_to_response(ticket))


@router.post("/{ticket_id}/close", response_model=APIResponse[TicketResponse])
def close_ticket(
    ticket_id: str, service: ServiceDep, events: EventManagerDep
) -> APIResponse[TicketResponse]:
    """Close a ticket manually."""
    ticket = service.close_ticket(ticket_id)
    events.emit_ticket_updated(ticket.id, ticket.status)
    return APIResponse(data=ticket_to_response(ticket))
