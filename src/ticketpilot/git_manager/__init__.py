"""Git Manager - Per-ticket worktrees, branches and their cleanup."""

from ticketpilot.git_manager.exceptions import GitManagerError, GitOperationError
from ticketpilot.git_manager.manager import WorktreeManager, default_commit_message
from ticketpilot.git_manager.models import CleanupReport, WorktreeRecord

__all__ = [
    "CleanupReport",
    "GitManagerError",
    "GitOperationError",
    "WorktreeManager",
    "WorktreeRecord",
    "default_commit_message",
]
