"""REST API for ticketpilot."""

from ticketpilot.api.app import create_app
from ticketpilot.api.events import Event, EventManager, EventType
from ticketpilot.api.models import APIResponse, TicketCreate, TicketResponse

__all__ = [
    "APIResponse",
    "Event",
    "EventManager",
    "EventType",
    "TicketCreate",
    "TicketResponse",
    "create_app",
]
