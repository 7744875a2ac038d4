"""Custom exceptions for the worktree manager."""


class GitManagerError(Exception):
    """Base exception for worktree manager errors."""


class GitOperationError(GitManagerError):
    """An underlying git command failed."""
