"""Custom exceptions for workers."""


class WorkerError(Exception):
    """Base exception for worker errors."""


class AgentExecutionError(WorkerError):
    """The code-generation agent reported failure or could not be run."""


class EnrichmentFailure(WorkerError):
    """Commit message or summary generation failed."""
