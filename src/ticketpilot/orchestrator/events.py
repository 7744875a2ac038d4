"""Progress events emitted during an autopilot run.

Events are emitted in this order: ``started``, then per ticket ``processing``
followed by ``ticket_completed`` or ``ticket_failed``, and finally
``completed``. A stop request emits ``cancelled`` before ``completed``. A run
with nothing to do emits only ``no_tickets``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from ticketpilot.orchestrator.models import AutopilotRun, TicketRef


@dataclass(frozen=True)
class NoTickets:
    """There were no pending tickets."""

    type: ClassVar[str] = "no_tickets"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type}


@dataclass(frozen=True)
class Started:
    """The run selected its tickets, in processing order."""

    type: ClassVar[str] = "started"

    total: int
    tickets: tuple[TicketRef, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "total": self.total,
            "tickets": [t.to_dict() for t in self.tickets],
        }


@dataclass(frozen=True)
class Processing:
    """A ticket's resolution is starting."""

    type: ClassVar[str] = "processing"

    current: int
    total: int
    ticket: TicketRef

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "current": self.current,
            "total": self.total,
            "ticket": self.ticket.to_dict(),
        }


@dataclass(frozen=True)
class TicketCompleted:
    """A ticket was resolved."""

    type: ClassVar[str] = "ticket_completed"

    current: int
    total: int
    ticket: TicketRef
    duration_ms: int
    summary: str | None = None
    test_branch: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "current": self.current,
            "total": self.total,
            "ticket": self.ticket.to_dict(),
            "duration_ms": self.duration_ms,
            "summary": self.summary,
            "test_branch": self.test_branch,
        }


@dataclass(frozen=True)
class TicketFailed:
    """A ticket's resolution failed."""

    type: ClassVar[str] = "ticket_failed"

    current: int
    total: int
    ticket: TicketRef
    duration_ms: int
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "current": self.current,
            "total": self.total,
            "ticket": self.ticket.to_dict(),
            "duration_ms": self.duration_ms,
            "error": self.error,
        }


@dataclass(frozen=True)
class Cancelled:
    """A stop request was honoured; the remaining tickets were left pending."""

    type: ClassVar[str] = "cancelled"

    processed: int
    remaining: int

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "processed": self.processed, "remaining": self.remaining}


@dataclass(frozen=True)
class Completed:
    """The run finished."""

    type: ClassVar[str] = "completed"

    result: AutopilotRun

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "result": self.result.to_dict()}


ProgressEvent = (
    NoTickets | Started | Processing | TicketCompleted | TicketFailed | Cancelled | Completed
)
