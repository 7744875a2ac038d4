"""ticketpilot - ticket lifecycle and worktree-based resolution."""

__version__ = "0.1.0"
