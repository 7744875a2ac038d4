"""Orchestrator - Autopilot batch resolution of pending tickets."""

from ticketpilot.orchestrator.autopilot import AutopilotOrchestrator, AutopilotSession
from ticketpilot.orchestrator.events import (
    Cancelled,
    Completed,
    NoTickets,
    Processing,
    ProgressEvent,
    Started,
    TicketCompleted,
    TicketFailed,
)
from ticketpilot.orchestrator.exceptions import AlreadyRunningError, OrchestratorError
from ticketpilot.orchestrator.models import (
    AutopilotRun,
    AutopilotStatus,
    TicketOutcome,
    TicketRef,
)

__all__ = [
    "AlreadyRunningError",
    "AutopilotOrchestrator",
    "AutopilotRun",
    "AutopilotSession",
    "AutopilotStatus",
    "Cancelled",
    "Completed",
    "NoTickets",
    "OrchestratorError",
    "Processing",
    "ProgressEvent",
    "Started",
    "TicketCompleted",
    "TicketFailed",
    "TicketOutcome",
    "TicketRef",
]
