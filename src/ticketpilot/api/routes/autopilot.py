"""Control endpoints for the autopilot."""

from fastapi import APIRouter

from ticketpilot.api.dependencies import EventManagerDep, OrchestratorDep
from ticketpilot.api.models import (
    APIResponse,
    AutopilotActionResponse,
    AutopilotStatusResponse,
    autopilot_status_to_response,
)
from ticketpilot.api.worker import start_worker

router = APIRouter(prefix="/autopilot", tags=["autopilot"])


@router.get("", response_model=APIResponse[AutopilotStatusResponse])
def get_autopilot_status(orchestrator: OrchestratorDep) -> APIResponse[AutopilotStatusResponse]:
    """Get autopilot status."""
    return APIResponse(data=autopilot_status_to_response(orchestrator.status()))


@router.post("/start", response_model=APIResponse[AutopilotActionResponse])
def start_autopilot(
    orchestrator: OrchestratorDep, events: EventManagerDep
) -> APIResponse[AutopilotActionResponse]:
    """Start resolving pending tickets in the background."""
    start_worker(orchestrator, events)
    return APIResponse(data=AutopilotActionResponse(message="Autopilot started"))


@router.post("/stop", response_model=APIResponse[AutopilotActionResponse])
def stop_autopilot(orchestrator: OrchestratorDep) -> APIResponse[AutopilotActionResponse]:
    """Ask the autopilot to stop after the current ticket."""
    if orchestrator.request_stop():
        message = "Autopilot will stop after the current ticket"
    else:
        message = "Autopilot is not running"
    return APIResponse(data=AutopilotActionResponse(message=message))
