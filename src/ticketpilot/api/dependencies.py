"""FastAPI dependencies for dependency injection."""

from __future__ import annotations

from collections.abc import Generator  # noqa: TC003
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends

from ticketpilot.api.events import EventManager
from ticketpilot.config import PilotConfig  # noqa: TC001
from ticketpilot.orchestrator import AutopilotOrchestrator  # noqa: TC001
from ticketpilot.service import Components, TicketService  # noqa: TC001

if TYPE_CHECKING:
    from pathlib import Path

# Global Components instance (initialized on app startup)
_components: Components | None = None
_config_path: Path | None = None


def init_components(components: Components, config_path: Path | None = None) -> Components:
    """Initialize the global Components instance."""
    global _components, _config_path  # noqa: PLW0603
    _components = components
    _config_path = config_path
    return _components


def close_components() -> None:
    """Close the global Components instance."""
    global _components, _config_path  # noqa: PLW0603
    if _components is not None:
        _components.close()
        _components = None
    _config_path = None


def get_components() -> Components:
    """Return the initialized Components."""
    if _components is None:
        raise RuntimeError("Components not initialized. Call init_components() first.")
    return _components


def get_config_path() -> Path | None:
    """Where configuration changes are saved (None means the default path)."""
    return _config_path


def get_service() -> Generator[TicketService, None, None]:
    """Dependency that provides the TicketService instance."""
    yield get_components().service


def get_orchestrator() -> Generator[AutopilotOrchestrator, None, None]:
    """Dependency that provides the AutopilotOrchestrator instance."""
    yield get_components().orchestrator


def get_config() -> Generator[PilotConfig, None, None]:
    """Dependency that provides the live configuration."""
    yield get_components().config


# Type aliases for dependency injection
ServiceDep = Annotated[TicketService, Depends(get_service)]
OrchestratorDep = Annotated[AutopilotOrchestrator, Depends(get_orchestrator)]
ConfigDep = Annotated[PilotConfig, Depends(get_config)]

# Global EventManager instance
_event_manager: EventManager | None = None


def init_event_manager() -> EventManager:
    """Initialize the global EventManager instance."""
    global _event_manager  # noqa: PLW0603
    _event_manager = EventManager()
    return _event_manager


def get_event_manager() -> Generator[EventManager, None, None]:
    """Dependency that provides the EventManager instance."""
    if _event_manager is None:
        raise RuntimeError("EventManager not initialized. Call init_event_manager() first.")
    yield _event_manager


# Type alias for dependency injection
EventManagerDep = Annotated[EventManager, Depends(get_event_manager)]
