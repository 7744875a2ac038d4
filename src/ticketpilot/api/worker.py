"""Background thread running autopilot sessions for the API."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ticketpilot.api.events import EventManager
    from ticketpilot.orchestrator import AutopilotOrchestrator, AutopilotSession

logger = logging.getLogger("ticketpilot.api.worker")

# The thread running the current session, if any
_worker_thread: threading.Thread | None = None


def _run_session(session: AutopilotSession) -> None:
    try:
        session.run()
    except Exception:
        logger.exception("Autopilot worker crashed")
    finally:
        logger.info("Autopilot worker finished")


def start_worker(
    orchestrator: AutopilotOrchestrator, event_manager: EventManager
) -> threading.Thread:
    """Start an autopilot session on a daemon thread and return immediately.

    Progress events are forwarded to the event manager.

    Raises:
        AlreadyRunningError: If a session is already live
    """
    global _worker_thread  # noqa: PLW0603
    session = orchestrator.start(on_progress=event_manager.emit_progress)

    thread = threading.Thread(
        target=_run_session, args=(session,), name="ticketpilot-autopilot", daemon=True
    )
    try:
        thread.start()
    except RuntimeError:
        session.close()
        raise
    _worker_thread = thread
    logger.info("Started autopilot worker thread")
    return thread


def get_worker_thread() -> threading.Thread | None:
    """The thread of the most recent session, if one was started."""
    return _worker_thread
