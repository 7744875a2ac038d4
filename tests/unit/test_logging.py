"""Unit tests for ticketpilot logging configuration."""

import logging
import os
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path
from unittest.mock import patch

import pytest

from ticketpilot.logging import (
    agent_output_logger,
    sanitize_for_log,
    setup_logging,
    truncate_output,
)


@pytest.fixture(autouse=True)
def reset_ticketpilot_logger():
    """Drop handlers added by a test so later tests start clean."""
    yield
    logger = logging.getLogger("ticketpilot")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()


@pytest.mark.unit
class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_creates_nested_log_directory(self) -> None:
        """Missing log directories are created."""
        with tempfile.TemporaryDirectory() as tmpdir:
            log_dir = Path(tmpdir) / "home" / "logs"
            setup_logging(log_dir=log_dir, console=False)

            assert (log_dir / "ticketpilot.log").exists()

    def test_component_loggers_share_the_file(self) -> None:
        """Every component logs to ticketpilot.log with its own name."""
        with tempfile.TemporaryDirectory() as tmpdir:
            setup_logging(log_dir=tmpdir, console=False)

            logging.getLogger("ticketpilot.git_manager").info("worktree created")
            logging.getLogger("ticketpilot.pipeline").info("ticket resolved")
            logging.getLogger("ticketpilot.orchestrator").info("autopilot finished")

            content = (Path(tmpdir) / "ticketpilot.log").read_text()
            assert "| ticketpilot.git_manager | worktree created" in content
            assert "| ticketpilot.pipeline | ticket resolved" in content
            assert "| ticketpilot.orchestrator | autopilot finished" in content
            assert " | INFO" in content

    def test_level_filters_messages(self) -> None:
        """Messages below the configured level are dropped."""
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = setup_logging(log_dir=tmpdir, level="WARNING", console=False)
            logger.info("hidden")
            logger.warning("shown")

            content = (Path(tmpdir) / "ticketpilot.log").read_text()
            assert "hidden" not in content
            assert "shown" in content

    @patch.dict(os.environ, {"TICKETPILOT_LOG_LEVEL": "DEBUG"})
    def test_level_from_env(self) -> None:
        """TICKETPILOT_LOG_LEVEL sets the level when none is passed."""
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = setup_logging(log_dir=tmpdir, console=False)

            assert logger.level == logging.DEBUG

    def test_log_dir_from_env(self) -> None:
        """TICKETPILOT_LOG_DIR sets the directory when none is passed."""
        with (
            tempfile.TemporaryDirectory() as tmpdir,
            patch.dict(os.environ, {"TICKETPILOT_LOG_DIR": tmpdir}),
        ):
            setup_logging(console=False)

            assert (Path(tmpdir) / "ticketpilot.log").exists()

    def test_repeated_setup_replaces_handlers(self) -> None:
        """Calling setup twice leaves a single rotating handler."""
        with tempfile.TemporaryDirectory() as tmpdir:
            setup_logging(log_dir=tmpdir, max_bytes=2048, backup_count=2, console=False)
            logger = setup_logging(log_dir=tmpdir, max_bytes=2048, backup_count=2, console=False)

            assert logger.name == "ticketpilot"
            assert len(logger.handlers) == 1
            handler = logger.handlers[0]
            assert isinstance(handler, RotatingFileHandler)
            assert handler.maxBytes == 2048
            assert handler.backupCount == 2


@pytest.mark.unit
class TestAgentOutputLogger:
    """Tests for agent_output_logger function."""

    def test_lines_logged_per_ticket_at_debug(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            setup_logging(log_dir=tmpdir, level="DEBUG", console=False)
            log_line = agent_output_logger("T-1")

            log_line("Editing login.py")
            log_line("   ")

            content = (Path(tmpdir) / "ticketpilot.log").read_text()
            assert "| DEBUG    | ticketpilot.agent.T-1 | Editing login.py" in content
            assert content.count("ticketpilot.agent.T-1") == 1

    def test_hidden_at_info(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            setup_logging(log_dir=tmpdir, console=False)

            agent_output_logger("T-1")("Editing login.py")

            assert "Editing login.py" not in (Path(tmpdir) / "ticketpilot.log").read_text()

    def test_secrets_redacted(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            setup_logging(log_dir=tmpdir, level="DEBUG", console=False)

            agent_output_logger("T-1")("using Bearer abc123")

            content = (Path(tmpdir) / "ticketpilot.log").read_text()
            assert "abc123" not in content
            assert "Bearer [REDACTED]" in content


@pytest.mark.unit
class TestTruncateOutput:
    """Tests for truncate_output function."""

    def test_short_output_unchanged(self) -> None:
        assert truncate_output("agent done", max_length=100) == "agent done"

    def test_long_output_truncated(self) -> None:
        """Long agent output is cut with a count of what was dropped."""
        result = truncate_output("x" * 250, max_length=100)

        assert result.startswith("x" * 100)
        assert "150 more chars" in result


@pytest.mark.unit
class TestSanitize:
    """Tests for sanitize_for_log function."""

    def test_redacts_api_keys(self) -> None:
        """Completion API keys are redacted."""
        result = sanitize_for_log('{"error": "bad key sk-abcdefghijklmnopqrstuvwx"}')

        assert "sk-abc" not in result
        assert "[API_KEY]" in result

    def test_redacts_bearer_tokens(self) -> None:
        result = sanitize_for_log("Authorization: Bearer abc123.def456")

        assert result == "Authorization: Bearer [REDACTED]"

    def test_safe_text_unchanged(self) -> None:
        text = "Ticket T-1 moved to working"

        assert sanitize_for_log(text) == text
