"""Pydantic models for REST API."""

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ticketpilot.git_manager import CleanupReport
from ticketpilot.orchestrator import AutopilotStatus
from ticketpilot.pipeline import ResolutionResult

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    data: T | None = None
    error: str | None = None


# Ticket models


class TicketCreate(BaseModel):
    """Request model for creating a ticket."""

    id: str = Field(..., min_length=1, max_length=255, pattern=r"^[\w.\-]+$")
    description: str = Field(..., min_length=1)


class TicketUpdate(BaseModel):
    """Request model for editing a ticket."""

    description: str = Field(..., min_length=1)


class TicketImport(BaseModel):
    """Request model for importing tickets from Markdown."""

    markdown: str = Field(..., min_length=1)


class TicketStart(BaseModel):
    """Request model for starting a ticket."""

    resolve: bool = True


class TicketStop(BaseModel):
    """Request model for stopping a ticket."""

    commit: bool = True


class TicketResponse(BaseModel):
    """Response model for a ticket."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    status: str
    created_at: datetime
    started_at: datetime | None
    stopped_at: datetime | None
    closed_at: datetime | None
    branch: str | None
    error: str | None
    summary: str | None


def ticket_to_response(ticket: Any) -> TicketResponse:
    """Convert a Ticket model to TicketResponse."""
    return TicketResponse.model_validate(ticket)


class ResolutionResponse(BaseModel):
    """Response model for a resolution attempt."""

    success: bool
    ticket_id: str
    worktree_path: str | None
    has_changes: bool
    test_branch: str | None
    commit_message: str | None
    summary: str | None
    error: str | None
    duration_ms: int
    no_changes: bool


def resolution_to_response(result: ResolutionResult) -> ResolutionResponse:
    """Convert a ResolutionResult to ResolutionResponse."""
    return ResolutionResponse.model_validate(result.to_dict())


class StartTicketResponse(BaseModel):
    """Response model for starting a ticket."""

    ticket: TicketResponse
    resolution: ResolutionResponse | None = None


class CleanupResponse(BaseModel):
    """Response model for a ticket deletion."""

    removed: list[str]
    warnings: list[str]


def cleanup_to_response(report: CleanupReport) -> CleanupResponse:
    """Convert a CleanupReport to CleanupResponse."""
    return CleanupResponse(removed=list(report.removed), warnings=list(report.warnings))


# Autopilot models


class AutopilotStatusResponse(BaseModel):
    """Response model for autopilot status."""

    running: bool
    stop_requested: bool


def autopilot_status_to_response(status: AutopilotStatus) -> AutopilotStatusResponse:
    """Convert AutopilotStatus to AutopilotStatusResponse."""
    return AutopilotStatusResponse(running=status.running, stop_requested=status.stop_requested)


class AutopilotActionResponse(BaseModel):
    """Response model for autopilot start/stop actions."""

    message: str


# Config models


class ConfigUpdate(BaseModel):
    """Request model for setting one configuration key."""

    key: str = Field(..., min_length=1)
    value: Any = None
