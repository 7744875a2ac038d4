"""Data models for workers."""

from dataclasses import dataclass


@dataclass
class CodingResult:
    """Result of a code-generation run.

    Attributes:
        success: Whether the agent exited cleanly.
        output: Agent output for logging.
        error: Error message if the run failed.
        prompt_file: Where the rendered prompt was saved, if it was.
    """

    success: bool
    output: str
    error: str | None = None
    prompt_file: str | None = None


@dataclass
class StreamingResult:
    """Result from streaming subprocess execution."""

    returncode: int
    output: str
