"""Tickets - Ticket records, their persistence and lifecycle rules."""

from ticketpilot.tickets.exceptions import (
    InvalidTransitionError,
    TicketBusyError,
    TicketExistsError,
    TicketNotFoundError,
    TicketStoreError,
)
from ticketpilot.tickets.importer import parse_markdown_tickets
from ticketpilot.tickets.models import (
    Ticket,
    TicketStatus,
    review_branch_name,
    utcnow,
    working_branch_name,
)
from ticketpilot.tickets.store import TicketStore
from ticketpilot.tickets.transitions import (
    ALLOWED_TRANSITIONS,
    can_transition,
    is_terminal,
    validate_transition,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "InvalidTransitionError",
    "Ticket",
    "TicketBusyError",
    "TicketExistsError",
    "TicketNotFoundError",
    "TicketStatus",
    "TicketStore",
    "TicketStoreError",
    "can_transition",
    "is_terminal",
    "parse_markdown_tickets",
    "review_branch_name",
    "utcnow",
    "validate_transition",
    "working_branch_name",
]
