"""Data models for the Orchestrator module."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ticketpilot.tickets import Ticket


@dataclass(frozen=True)
class TicketRef:
    """Snapshot of the ticket identity carried by progress events.

    Attributes:
        id: The ticket's id.
        name: The ticket's display name.
    """

    id: str
    name: str

    @classmethod
    def from_ticket(cls, ticket: Ticket) -> TicketRef:
        return cls(id=ticket.id, name=ticket.name)

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name}


@dataclass
class TicketOutcome:
    """Result of processing one ticket during an autopilot run.

    Attributes:
        ticket: The ticket processed.
        success: Whether it was resolved.
        duration_ms: Time spent on the ticket.
        error: Why it failed (failures only).
        summary: Summary of the changes (successes only).
        test_branch: Review branch created (successes only).
    """

    ticket: TicketRef
    success: bool
    duration_ms: int
    error: str | None = None
    summary: str | None = None
    test_branch: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticket": self.ticket.to_dict(),
            "success": self.success,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "summary": self.summary,
            "test_branch": self.test_branch,
        }


@dataclass
class AutopilotRun:
    """Aggregate result of an autopilot run. Held in memory only.

    Attributes:
        completed: Tickets resolved successfully, in processing order.
        failed: Tickets whose resolution failed, in processing order.
        cancelled: Whether a stop request ended the run early.
        total_duration_ms: Wall-clock duration of the run.
    """

    completed: list[TicketOutcome] = field(default_factory=list)
    failed: list[TicketOutcome] = field(default_factory=list)
    cancelled: bool = False
    total_duration_ms: int = 0

    @property
    def processed(self) -> int:
        """Number of tickets attempted."""
        return len(self.completed) + len(self.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed": [o.to_dict() for o in self.completed],
            "failed": [o.to_dict() for o in self.failed],
            "cancelled": self.cancelled,
            "total_duration_ms": self.total_duration_ms,
        }


@dataclass
class AutopilotStatus:
    """Status of the autopilot.

    Attributes:
        running: Whether a run is in progress.
        stop_requested: Whether the current run has been asked to stop.
    """

    running: bool
    stop_requested: bool
