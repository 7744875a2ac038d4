"""Exceptions for the Orchestrator module."""


class OrchestratorError(Exception):
    """Base exception for orchestrator errors."""

    pass


class AlreadyRunningError(OrchestratorError):
    """An autopilot run is already in progress."""

    pass
