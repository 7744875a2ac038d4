"""Data models for the worktree manager."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class WorktreeRecord:
    """A ticket's worktree as derived from git and the filesystem.

    Attributes:
        ticket_id: The ticket the worktree belongs to.
        path: Worktree directory, ``{automation_root}/{ticket_id}``.
        branch: Branch checked out in the worktree, ``copilot/{ticket_id}``.
    """

    ticket_id: str
    path: Path
    branch: str | None


@dataclass
class CleanupReport:
    """Outcome of a best-effort cleanup.

    Attributes:
        removed: Worktrees and branches that were removed.
        warnings: Steps that failed; cleanup carried on past each of them.
    """

    removed: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        """True when every step succeeded."""
        return not self.warnings

    def extend(self, other: CleanupReport) -> CleanupReport:
        """Fold another report into this one and return self."""
        self.removed.extend(other.removed)
        self.warnings.extend(other.warnings)
        return self
