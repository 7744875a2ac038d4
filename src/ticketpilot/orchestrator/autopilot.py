"""AutopilotOrchestrator - Unattended, sequential resolution of pending tickets."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING

from ticketpilot.config import ConfigurationError
from ticketpilot.git_manager import GitManagerError
from ticketpilot.orchestrator.events import (
    Cancelled,
    Completed,
    NoTickets,
    Processing,
    Started,
    TicketCompleted,
    TicketFailed,
)
from ticketpilot.orchestrator.exceptions import AlreadyRunningError, OrchestratorError
from ticketpilot.orchestrator.models import AutopilotRun, AutopilotStatus, TicketOutcome, TicketRef
from ticketpilot.pipeline import ResolutionResult
from ticketpilot.tickets import TicketBusyError, TicketStatus, TicketStoreError, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable

    from ticketpilot.git_manager import WorktreeManager
    from ticketpilot.orchestrator.events import ProgressEvent
    from ticketpilot.pipeline import ResolutionPipeline
    from ticketpilot.tickets import Ticket, TicketStore

    ProgressCallback = Callable[[ProgressEvent], None]

logger = logging.getLogger("ticketpilot.orchestrator")


class AutopilotSession:
    """Handle for one autopilot run.

    Obtained from ``AutopilotOrchestrator.start()``. While a session exists the
    orchestrator refuses to start another one; the session releases itself
    when ``run()`` returns or raises, or when ``close()`` is called.
    """

    def __init__(
        self,
        orchestrator: AutopilotOrchestrator,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._on_progress = on_progress
        self._stop = threading.Event()
        self._started = False

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def request_stop(self) -> None:
        """Ask the run to stop before the next ticket. The current ticket finishes."""
        if not self._stop.is_set():
            logger.info("Autopilot stop requested")
        self._stop.set()

    def close(self) -> None:
        """Release the session without running it."""
        self._orchestrator.release(self)

    def run(self) -> AutopilotRun:
        """Resolve every pending ticket in creation order.

        Returns:
            The aggregate AutopilotRun, also carried by the final ``completed`` event.

        Raises:
            OrchestratorError: If this session has already been run
        """
        if self._started:
            raise OrchestratorError("Autopilot session has already run")
        self._started = True
        try:
            return self._run()
        finally:
            self._orchestrator.release(self)

    def _run(self) -> AutopilotRun:
        start = time.monotonic()
        run = AutopilotRun()

        tickets = self._orchestrator.pending_tickets()
        if not tickets:
            logger.info("Autopilot: no pending tickets")
            self._emit(NoTickets())
            return run

        refs = tuple(TicketRef.from_ticket(t) for t in tickets)
        total = len(tickets)
        logger.info("Autopilot starting with %d ticket(s): %s", total, [r.id for r in refs])
        self._emit(Started(total=total, tickets=refs))

        worktrees = self._orchestrator.provision_worktrees(tickets)

        for current, (ticket, ref) in enumerate(zip(tickets, refs, strict=True), start=1):
            if self._stop.is_set():
                run.cancelled = True
                remaining = total - current + 1
                logger.info("Autopilot cancelled, %d ticket(s) left pending", remaining)
                self._emit(Cancelled(processed=current - 1, remaining=remaining))
                break

            ticket_start = time.monotonic()
            try:
                ticket = self._orchestrator.claim_ticket(ticket.id)
            except TicketStoreError as e:
                logger.error("Skipping %s: %s", ticket.id, e)
                outcome = TicketOutcome(
                    ticket=ref,
                    success=False,
                    duration_ms=_elapsed_ms(ticket_start),
                    error=str(e),
                )
                run.failed.append(outcome)
                self._emit(
                    TicketFailed(
                        current=current,
                        total=total,
                        ticket=ref,
                        duration_ms=outcome.duration_ms,
                        error=str(e),
                    )
                )
                continue

            logger.info("Autopilot processing %d/%d: %s", current, total, ticket.id)
            self._emit(Processing(current=current, total=total, ticket=ref))

            result = self._orchestrator.resolve_ticket(ticket, worktrees.get(ticket.id))
            self._orchestrator.record_result(result)

            if result.success:
                outcome = TicketOutcome(
                    ticket=ref,
                    success=True,
                    duration_ms=result.duration_ms,
                    summary=result.summary,
                    test_branch=result.test_branch,
                )
                run.completed.append(outcome)
                self._emit(
                    TicketCompleted(
                        current=current,
                        total=total,
                        ticket=ref,
                        duration_ms=result.duration_ms,
                        summary=result.summary,
                        test_branch=result.test_branch,
                    )
                )
            else:
                error = result.error or "Resolution failed"
                outcome = TicketOutcome(
                    ticket=ref, success=False, duration_ms=result.duration_ms, error=error
                )
                run.failed.append(outcome)
                self._emit(
                    TicketFailed(
                        current=current,
                        total=total,
                        ticket=ref,
                        duration_ms=result.duration_ms,
                        error=error,
                    )
                )

        run.total_duration_ms = _elapsed_ms(start)
        logger.info(
            "Autopilot finished: %d completed, %d failed%s in %.1fs",
            len(run.completed),
            len(run.failed),
            " (cancelled)" if run.cancelled else "",
            run.total_duration_ms / 1000,
        )
        self._emit(Completed(result=run))
        return run

    def _emit(self, event: ProgressEvent) -> None:
        logger.debug("Progress event: %s", event.type)
        if self._on_progress is None:
            return
        try:
            self._on_progress(event)
        except Exception:
            logger.exception("Progress callback failed on %s event", event.type)


class AutopilotOrchestrator:
    """Resolves all pending tickets one at a time.

    Only one run per orchestrator may be in flight; ``start()`` returns the
    run handle and raises AlreadyRunningError while another handle is live.
    A failed ticket never aborts the batch.
    """

    def __init__(
        self,
        store: TicketStore,
        worktrees: WorktreeManager,
        pipeline: ResolutionPipeline,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Ticket store
            worktrees: Worktree manager used for pre-provisioning
            pipeline: Per-ticket resolution pipeline
        """
        self.store = store
        self.worktrees = worktrees
        self.pipeline = pipeline
        self._lock = threading.Lock()
        self._session: AutopilotSession | None = None

    def start(self, on_progress: ProgressCallback | None = None) -> AutopilotSession:
        """Claim the run slot and return the session handle.

        Raises:
            AlreadyRunningError: If a session is already live
        """
        with self._lock:
            if self._session is not None:
                raise AlreadyRunningError("Autopilot is already running")
            self._session = AutopilotSession(self, on_progress)
            return self._session

    def run(self, on_progress: ProgressCallback | None = None) -> AutopilotRun:
        """Start a session and run it to completion."""
        return self.start(on_progress).run()

    def request_stop(self) -> bool:
        """Ask the live session to stop. Returns False if nothing is running."""
        with self._lock:
            session = self._session
        if session is None:
            return False
        session.request_stop()
        return True

    def status(self) -> AutopilotStatus:
        """Whether a run is live and whether it was asked to stop."""
        with self._lock:
            session = self._session
        return AutopilotStatus(
            running=session is not None,
            stop_requested=session.stop_requested if session is not None else False,
        )

    def pending_tickets(self) -> list[Ticket]:
        """Pending tickets, oldest first. Ties keep store order."""
        tickets = self.store.list_tickets(status=TicketStatus.PENDING)
        return sorted(tickets, key=lambda t: t.created_at)

    def provision_worktrees(self, tickets: list[Ticket]) -> dict[str, Path]:
        """Ensure a worktree for every ticket up front.

        Failures are logged and skipped; those tickets provision again, and
        fail again, in their own resolution step.
        """
        worktrees: dict[str, Path] = {}
        for ticket in tickets:
            try:
                worktrees[ticket.id] = self.worktrees.ensure_worktree(ticket.id)
            except (ConfigurationError, GitManagerError, OSError) as e:
                logger.warning("Could not provision worktree for %s: %s", ticket.id, e)
        return worktrees

    def claim_ticket(self, ticket_id: str) -> Ticket:
        """Mark a selected ticket working, re-reading it first.

        Another caller may have started, closed or deleted the ticket since
        the batch was selected.

        Raises:
            TicketNotFoundError: If the ticket is gone
            TicketBusyError: If the ticket is no longer pending
        """
        current = self.store.get_ticket(ticket_id)
        if current.ticket_status != TicketStatus.PENDING:
            raise TicketBusyError(
                f"Ticket {current.id} is no longer pending ({current.ticket_status.value})"
            )
        return self.store.update_ticket(
            current.id, status=TicketStatus.WORKING, started_at=utcnow()
        )

    def resolve_ticket(self, ticket: Ticket, worktree: Path | None) -> ResolutionResult:
        """Run the pipeline, turning any unexpected exception into a failure result."""
        try:
            return self.pipeline.resolve(ticket, existing_worktree=worktree)
        except Exception as e:
            logger.exception("Pipeline crashed on %s", ticket.id)
            return ResolutionResult(
                success=False, ticket_id=ticket.id, error=str(e) or type(e).__name__
            )

    def record_result(self, result: ResolutionResult) -> None:
        """Write a resolution outcome onto its ticket."""
        try:
            self.store.update_ticket(result.ticket_id, **result.ticket_fields(utcnow()))
        except TicketStoreError as e:
            logger.error("Could not record outcome for %s: %s", result.ticket_id, e)

    def release(self, session: AutopilotSession) -> None:
        """Free the run slot if ``session`` still holds it."""
        with self._lock:
            if self._session is session:
                self._session = None


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
