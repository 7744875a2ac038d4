"""ResolutionPipeline - Resolves one ticket inside its worktree."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING

from ticketpilot.config import ConfigurationError
from ticketpilot.git_manager import GitManagerError, default_commit_message
from ticketpilot.pipeline.exceptions import NoChangesDetected
from ticketpilot.pipeline.models import ResolutionResult
from ticketpilot.workers import AgentExecutionError, EnrichmentFailure, failure_summary

if TYPE_CHECKING:
    from ticketpilot.config import PilotConfig
    from ticketpilot.git_manager import WorktreeManager
    from ticketpilot.tickets import Ticket
    from ticketpilot.workers import CodeAgent, EnrichmentAgent

logger = logging.getLogger("ticketpilot.pipeline")


def enriched_commit_message(generated: str, ticket_id: str) -> str:
    """Commit message built around a generated subject."""
    return f"[feat]: {generated}({ticket_id})"


class ResolutionPipeline:
    """Runs a single resolution attempt for a ticket.

    Steps, stopping at the first fatal error:
    1. Validate configuration
    2. Acquire the ticket's worktree
    3. Run the code-generation agent in it
    4. Detect changes
    5. Commit, with a generated message when possible
    6. Generate a summary of the changes
    7. Cut the review branch

    Errors never propagate: every attempt returns a ResolutionResult. On a
    fatal error the worktree is removed when ``cleanup_on_error`` is set. An
    attempt that changed nothing keeps its worktree for inspection.
    """

    def __init__(
        self,
        config: PilotConfig,
        worktrees: WorktreeManager,
        agent: CodeAgent,
        enricher: EnrichmentAgent | None = None,
        cleanup_on_error: bool | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Loaded configuration
            worktrees: Manager for the ticket worktrees
            agent: Code-generation agent
            enricher: Commit message and summary generator (optional)
            cleanup_on_error: Remove the worktree after a fatal error
                              (defaults to the configured value)
        """
        self.config = config
        self.worktrees = worktrees
        self.agent = agent
        self.enricher = enricher
        self.cleanup_on_error = (
            config.cleanup_on_error if cleanup_on_error is None else cleanup_on_error
        )

    def validate_configuration(self) -> None:
        """Check every precondition before any worktree is touched.

        Raises:
            ConfigurationError: If a required path is missing or the agent is unavailable
        """
        automation_root = self.config.automation_root
        if automation_root is None:
            raise ConfigurationError(
                "Automation root not configured. "
                "Set it with: ticketpilot config set automation_root <path>"
            )
        if not Path(automation_root).is_dir():
            raise ConfigurationError(f"Automation root does not exist: {automation_root}")

        base_repo = self.config.base_repository_path
        if base_repo is None:
            raise ConfigurationError(
                "Base repository path not configured. "
                "Set it with: ticketpilot config set base_repository_path <path>"
            )
        if not Path(base_repo).is_dir():
            raise ConfigurationError(f"Base repository path does not exist: {base_repo}")

        if not self.agent.is_available():
            raise ConfigurationError(
                f"Code agent '{self.agent.command}' not found. Install it or set agent_command."
            )

    def resolve(
        self, ticket: Ticket, existing_worktree: str | Path | None = None
    ) -> ResolutionResult:
        """Resolve a ticket.

        Args:
            ticket: The ticket to resolve
            existing_worktree: A worktree already provisioned for the ticket (optional)

        Returns:
            ResolutionResult describing the outcome
        """
        start = time.monotonic()
        worktree_path: Path | None = None
        logger.info("Starting resolution of ticket %s", ticket.id)

        try:
            self.validate_configuration()

            if existing_worktree is not None:
                worktree_path = Path(existing_worktree)
                logger.info("Using existing worktree %s", worktree_path)
            else:
                worktree_path = self.worktrees.ensure_worktree(ticket.id)

            coding = self.agent.resolve(
                worktree_path, ticket.id, ticket.description, model=self.config.model
            )
            if not coding.success:
                raise AgentExecutionError(coding.error or "Code agent failed")

            if not self.worktrees.has_changes(worktree_path):
                raise NoChangesDetected(
                    f"No changes detected for ticket {ticket.id}; the issue may not be fixed"
                )

            diff = self.worktrees.worktree_diff(worktree_path)
            generated = self._generate_commit_message(ticket.id, diff)
            commit_message = generated or default_commit_message(ticket.id)
            self.worktrees.commit_in_worktree(worktree_path, ticket.id, commit_message)

            summary = self._generate_summary(ticket.id, diff, generated)
            test_branch = self.worktrees.create_test_branch(ticket.id)

        except NoChangesDetected as e:
            logger.warning("%s", e)
            return ResolutionResult(
                success=False,
                ticket_id=ticket.id,
                worktree_path=worktree_path,
                error=str(e),
                duration_ms=self._elapsed_ms(start),
                no_changes=True,
            )
        except (ConfigurationError, GitManagerError, AgentExecutionError) as e:
            logger.error("Resolution of %s failed: %s", ticket.id, e)
            return self._failure(ticket.id, worktree_path, str(e), start)
        except Exception as e:
            logger.exception("Unexpected error resolving %s", ticket.id)
            return self._failure(ticket.id, worktree_path, str(e) or type(e).__name__, start)

        duration_ms = self._elapsed_ms(start)
        logger.info(
            "Ticket %s resolved in %.1fs (commit: %s, test branch: %s)",
            ticket.id,
            duration_ms / 1000,
            commit_message,
            test_branch,
        )
        return ResolutionResult(
            success=True,
            ticket_id=ticket.id,
            worktree_path=worktree_path,
            has_changes=True,
            test_branch=test_branch,
            commit_message=commit_message,
            summary=summary,
            duration_ms=duration_ms,
        )

    def _failure(
        self, ticket_id: str, worktree_path: Path | None, error: str, start: float
    ) -> ResolutionResult:
        if self.cleanup_on_error and worktree_path is not None:
            logger.info("Cleaning up worktree %s", worktree_path)
            report = self.worktrees.remove_worktree(worktree_path)
            for warning in report.warnings:
                logger.warning("Cleanup: %s", warning)
        return ResolutionResult(
            success=False,
            ticket_id=ticket_id,
            worktree_path=worktree_path,
            error=error,
            duration_ms=self._elapsed_ms(start),
        )

    def _generate_commit_message(self, ticket_id: str, diff: str) -> str | None:
        """Generated commit message, or None to fall back to the default."""
        if self.enricher is None or not diff:
            return None
        try:
            return enriched_commit_message(
                self.enricher.generate_commit_message(diff, ticket_id), ticket_id
            )
        except EnrichmentFailure as e:
            logger.warning("Failed to generate commit message, using default: %s", e)
            return None

    def _generate_summary(self, ticket_id: str, diff: str, commit_message: str | None) -> str:
        """Generated summary, or a failure notice when none could be produced."""
        if self.enricher is None:
            return failure_summary(ticket_id, "No enrichment agent configured")
        if not diff:
            return failure_summary(ticket_id, "Diff unavailable")
        try:
            return self.enricher.generate_summary(ticket_id, diff, commit_message)
        except EnrichmentFailure as e:
            logger.warning("Failed to generate summary for %s: %s", ticket_id, e)
            return failure_summary(ticket_id, str(e))

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)
