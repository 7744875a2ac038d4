"""Data models for the resolution pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from ticketpilot.tickets.models import TicketStatus


@dataclass
class ResolutionResult:
    """Outcome of one resolution attempt.

    Attributes:
        success: Whether the ticket was resolved and a test branch created.
        ticket_id: The ticket the attempt was for.
        worktree_path: The worktree used, if one was acquired.
        has_changes: Whether the agent left changes that were committed.
        test_branch: The review branch created on success.
        commit_message: The message the changes were committed with.
        summary: HTML report of the changes (a failure notice if generation failed).
        error: Why the attempt failed.
        duration_ms: Wall-clock duration of the whole attempt.
        no_changes: True when the agent succeeded but changed nothing.
    """

    success: bool
    ticket_id: str
    worktree_path: Path | None = None
    has_changes: bool = False
    test_branch: str | None = None
    commit_message: str | None = None
    summary: str | None = None
    error: str | None = None
    duration_ms: int = 0
    no_changes: bool = False

    def ticket_fields(self, now: datetime) -> dict[str, Any]:
        """Ticket update recording this outcome."""
        if self.success:
            fields: dict[str, Any] = {"status": TicketStatus.CLOSED, "closed_at": now}
            if self.summary:
                fields["summary"] = self.summary
            return fields
        return {"status": TicketStatus.ERROR, "error": self.error or "Resolution failed"}

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation."""
        return {
            "success": self.success,
            "ticket_id": self.ticket_id,
            "worktree_path": str(self.worktree_path) if self.worktree_path else None,
            "has_changes": self.has_changes,
            "test_branch": self.test_branch,
            "commit_message": self.commit_message,
            "summary": self.summary,
            "error": self.error,
            "duration_ms": self.duration_ms,
            "no_changes": self.no_changes,
        }
