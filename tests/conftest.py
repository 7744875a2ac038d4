"""Shared pytest fixtures and configuration."""

import subprocess
from pathlib import Path

import pytest

from ticketpilot.config import PilotConfig
from ticketpilot.tickets import TicketStore


# Register custom markers
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: component interaction tests")
    config.addinivalue_line("markers", "e2e: full autopilot runs against real git")


# Shared fixtures


@pytest.fixture
def store():
    """Create an in-memory TicketStore."""
    s = TicketStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def pilot_config(tmp_path: Path) -> PilotConfig:
    """Configuration with existing automation root and base repository directories."""
    automation_root = tmp_path / "automation"
    base_repo = tmp_path / "base"
    automation_root.mkdir()
    base_repo.mkdir()
    return PilotConfig(
        automation_root=automation_root,
        base_repository_path=base_repo,
        database_path=tmp_path / "tickets.db",
        prompts_dir=tmp_path / "prompts",
    )


def run_git(*args: str, cwd: Path) -> str:
    """Run a git command in a test repository."""
    result = subprocess.run(["git", *args], cwd=cwd, capture_output=True, text=True, check=True)
    return result.stdout.strip()


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A real repository on ``develop`` with one commit and no remotes."""
    repo = tmp_path / "repo"
    repo.mkdir()
    run_git("init", cwd=repo)
    run_git("config", "user.email", "test@example.com", cwd=repo)
    run_git("config", "user.name", "Test User", cwd=repo)
    run_git("config", "commit.gpgsign", "false", cwd=repo)
    (repo / "README.md").write_text("# Test\n")
    run_git("add", "README.md", cwd=repo)
    run_git("commit", "-m", "Initial commit", cwd=repo)
    run_git("branch", "-M", "develop", cwd=repo)
    return repo
