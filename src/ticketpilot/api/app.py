"""FastAPI application setup."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ticketpilot.api.dependencies import close_components, init_components, init_event_manager
from ticketpilot.api.models import APIResponse
from ticketpilot.api.routes import autopilot, events, tickets
from ticketpilot.api.routes import config as config_routes
from ticketpilot.config import ConfigurationError, load_config
from ticketpilot.git_manager import GitManagerError
from ticketpilot.orchestrator import AlreadyRunningError
from ticketpilot.service import build_components
from ticketpilot.tickets import (
    InvalidTransitionError,
    TicketBusyError,
    TicketExistsError,
    TicketNotFoundError,
    TicketStoreError,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from ticketpilot.config import PilotConfig
    from ticketpilot.tickets import TicketStore

logger = logging.getLogger("ticketpilot.api")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=APIResponse[None](data=None, error=message).model_dump(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    config: PilotConfig = app.state.config
    components = build_components(
        config,
        working_repo_path=app.state.working_repo_path,
        store=app.state.store,
    )
    init_components(components, app.state.config_path)
    init_event_manager()
    logger.info("API started (database=%s)", config.database_path)

    yield

    components.orchestrator.request_stop()
    close_components()


def create_app(
    config: PilotConfig | None = None,
    config_path: str | Path | None = None,
    store: TicketStore | None = None,
    working_repo_path: str | Path | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Configuration to use (loaded from ``config_path`` if omitted)
        config_path: Config file read at startup and written by the config routes
        store: Ticket store to use instead of opening the configured database
        working_repo_path: The user's own checkout, for branch teardown
    """
    app = FastAPI(
        title="ticketpilot API",
        description="REST API for ticketpilot - worktree-based ticket resolution",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store config for lifespan manager
    app.state.config = config if config is not None else load_config(config_path)
    app.state.config_path = Path(config_path) if config_path is not None else None
    app.state.store = store
    app.state.working_repo_path = working_repo_path

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TicketNotFoundError)
    async def ticket_not_found_handler(
        _request: Request, exc: TicketNotFoundError
    ) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(TicketExistsError)
    async def ticket_exists_handler(_request: Request, exc: TicketExistsError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc))

    @app.exception_handler(TicketBusyError)
    async def ticket_busy_handler(_request: Request, exc: TicketBusyError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc))

    @app.exception_handler(InvalidTransitionError)
    async def invalid_transition_handler(
        _request: Request, exc: InvalidTransitionError
    ) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc))

    @app.exception_handler(AlreadyRunningError)
    async def already_running_handler(
        _request: Request, exc: AlreadyRunningError
    ) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc))

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        _request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))

    @app.exception_handler(GitManagerError)
    async def git_error_handler(_request: Request, exc: GitManagerError) -> JSONResponse:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    @app.exception_handler(TicketStoreError)
    async def store_error_handler(_request: Request, _exc: TicketStoreError) -> JSONResponse:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    app.include_router(tickets.router, prefix="/api/v1")
    app.include_router(autopilot.router, prefix="/api/v1")
    app.include_router(events.router, prefix="/api/v1")
    app.include_router(config_routes.router, prefix="/api/v1")

    return app
