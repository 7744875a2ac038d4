"""Pipeline - Single-ticket resolution inside a worktree."""

from ticketpilot.pipeline.exceptions import NoChangesDetected, PipelineError
from ticketpilot.pipeline.models import ResolutionResult
from ticketpilot.pipeline.resolver import ResolutionPipeline, enriched_commit_message

__all__ = [
    "NoChangesDetected",
    "PipelineError",
    "ResolutionPipeline",
    "ResolutionResult",
    "enriched_commit_message",
]
