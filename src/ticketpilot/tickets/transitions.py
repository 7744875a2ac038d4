"""Ticket lifecycle state machine."""

from __future__ import annotations

from ticketpilot.tickets.exceptions import InvalidTransitionError
from ticketpilot.tickets.models import TicketStatus

ALLOWED_TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
    TicketStatus.PENDING: frozenset({TicketStatus.BRANCHING, TicketStatus.WORKING}),
    TicketStatus.BRANCHING: frozenset({TicketStatus.WORKING, TicketStatus.ERROR}),
    TicketStatus.WORKING: frozenset(
        {TicketStatus.STOPPED, TicketStatus.CLOSED, TicketStatus.ERROR}
    ),
    TicketStatus.STOPPED: frozenset({TicketStatus.WORKING, TicketStatus.CLOSED}),
    TicketStatus.CLOSED: frozenset(),
    TicketStatus.ERROR: frozenset(),
}

TERMINAL_STATUSES = frozenset({TicketStatus.CLOSED, TicketStatus.ERROR})


def can_transition(current: TicketStatus, target: TicketStatus) -> bool:
    """Whether a ticket in ``current`` may move to ``target``.

    No status has an edge to itself, so re-writing the current status is
    refused too.
    """
    return target in ALLOWED_TRANSITIONS[current]


def validate_transition(current: TicketStatus, target: TicketStatus) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is allowed."""
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)


def is_terminal(status: TicketStatus) -> bool:
    """Closed and errored tickets are not picked up by automated flows."""
    return status in TERMINAL_STATUSES
