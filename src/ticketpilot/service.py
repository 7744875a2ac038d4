"""TicketService - Interactive ticket flows and component wiring."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from ticketpilot.config import ConfigurationError
from ticketpilot.git_manager import GitManagerError, WorktreeManager
from ticketpilot.orchestrator import AutopilotOrchestrator
from ticketpilot.pipeline import ResolutionPipeline
from ticketpilot.tickets import (
    TicketBusyError,
    TicketStatus,
    TicketStore,
    utcnow,
    validate_transition,
    working_branch_name,
)
from ticketpilot.workers import CodeAgent, EnrichmentAgent

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ticketpilot.config import PilotConfig
    from ticketpilot.git_manager import CleanupReport
    from ticketpilot.pipeline import ResolutionResult
    from ticketpilot.tickets import Ticket

logger = logging.getLogger("ticketpilot.service")


class TicketService:
    """Single-ticket operations driven by a user rather than the autopilot."""

    def __init__(
        self,
        store: TicketStore,
        worktrees: WorktreeManager,
        pipeline: ResolutionPipeline | None = None,
    ) -> None:
        self.store = store
        self.worktrees = worktrees
        self.pipeline = pipeline

    def create_ticket(self, ticket_id: str, description: str) -> Ticket:
        ticket = self.store.create_ticket(ticket_id, description)
        logger.info("Ticket created: %s", ticket.id)
        return ticket

    def import_tickets(self, entries: Iterable[tuple[str, str]]) -> list[Ticket]:
        created = self.store.import_tickets(entries)
        logger.info("Imported %d ticket(s)", len(created))
        return created

    def list_tickets(self, status: TicketStatus | None = None) -> list[Ticket]:
        return self.store.list_tickets(status=status)

    def get_ticket(self, id_or_name: str) -> Ticket:
        return self.store.get_ticket(id_or_name)

    def update_description(self, id_or_name: str, description: str) -> Ticket:
        """Replace a ticket's description.

        Raises:
            TicketNotFoundError: If the ticket doesn't exist
            TicketBusyError: If the ticket is being worked on
        """
        ticket = self.store.get_ticket(id_or_name)
        if ticket.ticket_status == TicketStatus.WORKING:
            raise TicketBusyError(f"Ticket {ticket.id} is being worked on and cannot be edited")
        return self.store.update_ticket(ticket.id, description=description)

    def start_ticket(self, id_or_name: str, resolve: bool = True) -> ResolutionResult | None:
        """Start work on a ticket.

        With a git base repository, a pending ticket passes through ``branching``
        while its worktree and branch are provisioned; a stopped ticket goes
        straight back to ``working``. With ``resolve`` set, the resolution
        pipeline then runs on the worktree and its outcome is recorded on the
        ticket. Without a git base repository the ticket is simply marked
        ``working`` for manual work.

        Returns:
            The ResolutionResult, or None if no resolution was attempted

        Raises:
            TicketNotFoundError: If the ticket doesn't exist
            TicketBusyError: If the ticket is already being worked on
            InvalidTransitionError: If the ticket is closed or in error
            ConfigurationError, GitManagerError: If provisioning fails
        """
        ticket = self.store.get_ticket(id_or_name)
        if ticket.ticket_status == TicketStatus.WORKING:
            raise TicketBusyError(f"Ticket {ticket.id} is already in working status")
        validate_transition(ticket.ticket_status, TicketStatus.WORKING)

        if not self.worktrees.is_git_repo():
            logger.warning("Base repository is not a git repository, skipping git operations")
            self.store.update_ticket(ticket.id, status=TicketStatus.WORKING, started_at=utcnow())
            return None

        branching = ticket.ticket_status == TicketStatus.PENDING
        if branching:
            self.store.update_ticket(ticket.id, status=TicketStatus.BRANCHING)

        try:
            worktree = self.worktrees.ensure_worktree(ticket.id)
        except (ConfigurationError, GitManagerError) as e:
            logger.error("Failed to start ticket %s: %s", ticket.id, e)
            if branching:
                self.store.update_ticket(ticket.id, status=TicketStatus.ERROR, error=str(e))
            raise

        ticket = self.store.update_ticket(
            ticket.id,
            status=TicketStatus.WORKING,
            started_at=utcnow(),
            branch=working_branch_name(ticket.id),
        )
        logger.info("Started working on ticket %s in %s", ticket.id, worktree)

        if not resolve or self.pipeline is None:
            return None

        result = self.pipeline.resolve(ticket, existing_worktree=worktree)
        self.store.update_ticket(ticket.id, **result.ticket_fields(utcnow()))
        return result

    def stop_ticket(self, id_or_name: str, commit: bool = True) -> Ticket:
        """Pause a working ticket, optionally committing its pending changes.

        Raises:
            TicketNotFoundError: If the ticket doesn't exist
            InvalidTransitionError: If the ticket is not working
            GitManagerError: If the work-in-progress commit fails
        """
        ticket = self.store.get_ticket(id_or_name)
        validate_transition(ticket.ticket_status, TicketStatus.STOPPED)

        worktree = self.worktrees.worktree_exists(ticket.id)
        if commit and worktree is not None and self.worktrees.has_changes(worktree):
            self.worktrees.commit_in_worktree(
                worktree, ticket.id, f"Work in progress on {ticket.name}"
            )

        logger.info("Stopped working on ticket %s", ticket.id)
        return self.store.update_ticket(
            ticket.id, status=TicketStatus.STOPPED, stopped_at=utcnow()
        )

    def close_ticket(self, id_or_name: str) -> Ticket:
        """Mark a working or stopped ticket as done.

        Raises:
            TicketNotFoundError: If the ticket doesn't exist
            InvalidTransitionError: If the ticket cannot be closed from its status
        """
        ticket = self.store.get_ticket(id_or_name)
        validate_transition(ticket.ticket_status, TicketStatus.CLOSED)
        logger.info("Closing ticket %s", ticket.id)
        return self.store.update_ticket(ticket.id, status=TicketStatus.CLOSED, closed_at=utcnow())

    def delete_ticket(self, id_or_name: str) -> CleanupReport:
        """Tear down a ticket's worktree and branches, then delete the record.

        Cleanup is best-effort; its warnings are returned, never raised.

        Raises:
            TicketNotFoundError: If the ticket doesn't exist
        """
        ticket = self.store.get_ticket(id_or_name)
        report = self.worktrees.teardown(ticket.id)
        for warning in report.warnings:
            logger.warning("Cleanup of %s: %s", ticket.id, warning)
        self.store.delete_ticket(ticket.id)
        logger.info("Ticket deleted: %s", ticket.id)
        return report


@dataclass
class Components:
    """Everything a front end needs, wired from one configuration."""

    config: PilotConfig
    store: TicketStore
    worktrees: WorktreeManager
    agent: CodeAgent
    enricher: EnrichmentAgent | None
    pipeline: ResolutionPipeline
    orchestrator: AutopilotOrchestrator
    service: TicketService

    def apply_config(self) -> None:
        """Push changed settings into the already-built components.

        The enrichment endpoint and the database path are read only when the
        components are built.
        """
        config = self.config
        self.worktrees.base_repository_path = config.base_repository_path
        self.worktrees.automation_root = config.automation_root
        self.worktrees.base_branch = config.base_branch
        self.agent.command = config.agent_command
        self.agent.model = config.model
        self.agent.prompts_dir = config.prompts_dir
        self.agent.resolution_prompt = config.ticket_resolution_prompt
        self.agent.command_prompt = config.ticket_command_prompt
        self.pipeline.cleanup_on_error = config.cleanup_on_error

    def close(self) -> None:
        if self.enricher is not None:
            self.enricher.close()
        self.store.close()


def build_components(
    config: PilotConfig,
    working_repo_path: str | Path | None = None,
    store: TicketStore | None = None,
) -> Components:
    """Wire store, worktree manager, agents, pipeline, orchestrator and service.

    Args:
        config: Loaded configuration
        working_repo_path: The user's own checkout, for branch teardown
        store: Existing store to use instead of opening ``config.database_path``
    """
    if store is None:
        Path(config.database_path).parent.mkdir(parents=True, exist_ok=True)
        store = TicketStore(config.database_path)
    worktrees = WorktreeManager.from_config(config, working_repo_path=working_repo_path)
    agent = CodeAgent.from_config(config)
    enricher = EnrichmentAgent.from_config(config)
    pipeline = ResolutionPipeline(config, worktrees, agent, enricher)
    return Components(
        config=config,
        store=store,
        worktrees=worktrees,
        agent=agent,
        enricher=enricher,
        pipeline=pipeline,
        orchestrator=AutopilotOrchestrator(store, worktrees, pipeline),
        service=TicketService(store, worktrees, pipeline),
    )
