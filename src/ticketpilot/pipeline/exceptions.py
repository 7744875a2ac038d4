"""Custom exceptions for the resolution pipeline."""


class PipelineError(Exception):
    """Base exception for resolution pipeline errors."""


class NoChangesDetected(PipelineError):
    """The agent finished cleanly but left the worktree unchanged."""
