"""Logging setup for ticketpilot.

Every component logs under the ``ticketpilot`` logger. ``setup_logging``
sends that tree to a rotating file and, optionally, the console. Agent output
goes to ``ticketpilot.agent.<ticket>`` at DEBUG level, so it only shows up
when running verbose.
"""

from __future__ import annotations

import logging
import os
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

ROOT_LOGGER = "ticketpilot"
AGENT_LOGGER = "ticketpilot.agent"

DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_FILE = "ticketpilot.log"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10MB
DEFAULT_BACKUP_COUNT = 5
DEFAULT_LOG_LEVEL = "INFO"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Credentials that can show up in agent output or API error bodies
_SECRET_PATTERNS = [
    (re.compile(r"gh[pousr]_[a-zA-Z0-9]{36}"), "[GITHUB_TOKEN]"),
    (re.compile(r"github_pat_[a-zA-Z0-9_]{82}"), "[GITHUB_TOKEN]"),
    (re.compile(r"sk-[a-zA-Z0-9_-]{20,}"), "[API_KEY]"),
    (re.compile(r"Bearer [a-zA-Z0-9._-]+"), "Bearer [REDACTED]"),
    (re.compile(r"token=[a-zA-Z0-9._-]+"), "token=[REDACTED]"),
]


def setup_logging(
    log_dir: str | Path | None = None,
    log_file: str = DEFAULT_LOG_FILE,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    level: str | None = None,
    console: bool = True,
) -> logging.Logger:
    """Configure the ``ticketpilot`` logger tree.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        log_dir: Directory for the log file (TICKETPILOT_LOG_DIR, else ./logs)
        log_file: Log file name
        max_bytes: Size at which the file is rotated
        backup_count: Rotated files to keep
        level: DEBUG, INFO, WARNING or ERROR (TICKETPILOT_LOG_LEVEL, else INFO)
        console: Also log to stderr

    Returns:
        The ``ticketpilot`` logger.
    """
    log_dir = Path(log_dir or os.environ.get("TICKETPILOT_LOG_DIR", DEFAULT_LOG_DIR))
    log_dir.mkdir(parents=True, exist_ok=True)
    level = level or os.environ.get("TICKETPILOT_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(log_level)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    log_path = log_dir / log_file
    handlers: list[logging.Handler] = [
        RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.info("Logging to %s at %s", log_path, logging.getLevelName(log_level))
    return logger


def agent_output_logger(ticket_id: str) -> Callable[[str], None]:
    """Line callback writing agent output to ``ticketpilot.agent.<ticket_id>``."""
    logger = logging.getLogger(f"{AGENT_LOGGER}.{ticket_id}")

    def log_line(line: str) -> None:
        if line.strip():
            logger.debug("%s", sanitize_for_log(line))

    return log_line


def truncate_output(output: str, max_length: int = 5000) -> str:
    """Cut long agent output, noting how much was dropped."""
    if len(output) <= max_length:
        return output
    return output[:max_length] + f"\n... [truncated, {len(output) - max_length} more chars]"


def sanitize_for_log(text: str) -> str:
    """Redact tokens and API keys."""
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text
