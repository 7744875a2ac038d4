"""Custom exceptions for the ticket store."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ticketpilot.tickets.models import TicketStatus


class TicketStoreError(Exception):
    """Base exception for ticket store errors."""


class TicketNotFoundError(TicketStoreError):
    """No ticket matches the given id or name."""


class TicketExistsError(TicketStoreError):
    """A ticket with this id already exists."""


class TicketBusyError(TicketStoreError):
    """The ticket is being worked on and cannot be changed right now."""


class InvalidTransitionError(TicketStoreError):
    """The requested status change is not an allowed transition."""

    def __init__(self, current: TicketStatus, target: TicketStatus) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid ticket status transition: {current.value} -> {target.value}")
