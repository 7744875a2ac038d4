"""Unit tests for WorktreeManager."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from ticketpilot.config import ConfigurationError, PilotConfig
from ticketpilot.git_manager import (
    GitOperationError,
    WorktreeManager,
    default_commit_message,
)


def git_error(stderr: str = "fatal: error") -> subprocess.CalledProcessError:
    return subprocess.CalledProcessError(128, "git", stderr=stderr)


@pytest.fixture
def base_repo(tmp_path: Path) -> Path:
    path = tmp_path / "base"
    path.mkdir()
    return path


@pytest.fixture
def automation_root(tmp_path: Path) -> Path:
    path = tmp_path / "automation"
    path.mkdir()
    return path


@pytest.fixture
def manager(base_repo: Path, automation_root: Path) -> WorktreeManager:
    """Create a WorktreeManager over temporary directories."""
    return WorktreeManager(
        base_repository_path=base_repo,
        automation_root=automation_root,
        base_branch="develop",
    )


@pytest.mark.unit
class TestWorktreePaths:
    """Tests for worktree_path and worktree_exists."""

    def test_worktree_path(self, manager: WorktreeManager, automation_root: Path) -> None:
        """Worktrees live at {automation_root}/{ticket_id}."""
        assert manager.worktree_path("T-1") == automation_root / "T-1"

    def test_worktree_path_requires_root(self, base_repo: Path) -> None:
        """ConfigurationError without an automation root."""
        manager = WorktreeManager(base_repository_path=base_repo, automation_root=None)

        with pytest.raises(ConfigurationError, match="Automation root not configured"):
            manager.worktree_path("T-1")

    def test_worktree_exists(self, manager: WorktreeManager, automation_root: Path) -> None:
        """Returns the path only when the directory exists."""
        assert manager.worktree_exists("T-1") is None

        (automation_root / "T-1").mkdir()

        assert manager.worktree_exists("T-1") == automation_root / "T-1"

    def test_worktree_exists_without_root(self, base_repo: Path) -> None:
        manager = WorktreeManager(base_repository_path=base_repo, automation_root=None)

        assert manager.worktree_exists("T-1") is None

    def test_from_config(self, pilot_config: PilotConfig) -> None:
        """Settings are taken from the configuration."""
        pilot_config.base_branch = "main"

        manager = WorktreeManager.from_config(pilot_config, working_repo_path="/work")

        assert manager.base_repository_path == pilot_config.base_repository_path
        assert manager.automation_root == pilot_config.automation_root
        assert manager.base_branch == "main"
        assert manager.working_repo_path == Path("/work")


@pytest.mark.unit
class TestEnsureWorktree:
    """Tests for ensure_worktree."""

    def test_existing_worktree_is_reused(
        self, manager: WorktreeManager, automation_root: Path
    ) -> None:
        """No git command runs when the worktree is already there."""
        (automation_root / "T-1").mkdir()

        with patch.object(manager, "_run_git") as mock_git:
            path = manager.ensure_worktree("T-1")

            assert path == automation_root / "T-1"
            mock_git.assert_not_called()

    def test_creates_branch_and_worktree(
        self, manager: WorktreeManager, base_repo: Path, automation_root: Path
    ) -> None:
        """Base branch is updated, the ticket branch forked and the worktree added."""

        def fake_git(*args: str, cwd: Path) -> str:
            return "origin" if args == ("remote",) else ""

        with patch.object(manager, "_run_git", side_effect=fake_git) as mock_git:
            path = manager.ensure_worktree("T-1")

            assert path == automation_root / "T-1"
            mock_git.assert_any_call("checkout", "develop", cwd=base_repo)
            mock_git.assert_any_call("pull", "origin", "develop", cwd=base_repo)
            mock_git.assert_any_call("branch", "copilot/T-1", "develop", cwd=base_repo)
            mock_git.assert_any_call(
                "worktree", "add", str(automation_root / "T-1"), "copilot/T-1", cwd=base_repo
            )

    def test_existing_branch_is_tolerated(
        self, manager: WorktreeManager, base_repo: Path, automation_root: Path
    ) -> None:
        """A branch left over from an earlier attempt is reused."""

        def fake_git(*args: str, cwd: Path) -> str:
            if args[0] == "branch":
                raise git_error("fatal: a branch named 'copilot/T-1' already exists")
            return ""

        with patch.object(manager, "_run_git", side_effect=fake_git) as mock_git:
            path = manager.ensure_worktree("T-1")

            assert path == automation_root / "T-1"
            mock_git.assert_any_call(
                "worktree", "add", str(automation_root / "T-1"), "copilot/T-1", cwd=base_repo
            )

    def test_branch_failure_raises(self, manager: WorktreeManager) -> None:
        """Other branch errors are fatal."""

        def fake_git(*args: str, cwd: Path) -> str:
            if args[0] == "branch":
                raise git_error("fatal: not a valid object name: 'develop'")
            return ""

        with patch.object(manager, "_run_git", side_effect=fake_git):
            with pytest.raises(GitOperationError) as exc_info:
                manager.ensure_worktree("T-1")

            assert "copilot/T-1" in str(exc_info.value)
            assert "not a valid object name" in str(exc_info.value)

    def test_worktree_add_failure_raises(self, manager: WorktreeManager) -> None:
        """GitOperationError when the worktree cannot be added."""

        def fake_git(*args: str, cwd: Path) -> str:
            if args[:2] == ("worktree", "add"):
                raise git_error("fatal: 'copilot/T-1' is already checked out")
            return ""

        with patch.object(manager, "_run_git", side_effect=fake_git):
            with pytest.raises(GitOperationError, match="already checked out"):
                manager.ensure_worktree("T-1")

    def test_missing_base_repo_raises(self, automation_root: Path) -> None:
        """ConfigurationError without a base repository."""
        manager = WorktreeManager(base_repository_path=None, automation_root=automation_root)

        with pytest.raises(ConfigurationError, match="Base repository path not configured"):
            manager.ensure_worktree("T-1")


@pytest.mark.unit
class TestUpdateBaseBranch:
    """Tests for update_base_branch."""

    def test_skips_pull_without_origin(self, manager: WorktreeManager, base_repo: Path) -> None:
        """Local-only repositories are checked out but not pulled."""
        with patch.object(manager, "_run_git", return_value="") as mock_git:
            manager.update_base_branch()

            mock_git.assert_any_call("checkout", "develop", cwd=base_repo)
            assert all(c.args[0] != "pull" for c in mock_git.call_args_list)

    def test_checkout_failure_raises(self, manager: WorktreeManager) -> None:
        """GitOperationError names the base branch."""
        with patch.object(manager, "_run_git", side_effect=git_error("pathspec 'develop'")):
            with pytest.raises(GitOperationError, match="develop"):
                manager.update_base_branch()


@pytest.mark.unit
class TestRemoveWorktree:
    """Tests for remove_worktree."""

    def test_git_remove(
        self, manager: WorktreeManager, base_repo: Path, automation_root: Path
    ) -> None:
        """git worktree remove is tried first."""
        path = automation_root / "T-1"

        with patch.object(manager, "_run_git", return_value="") as mock_git:
            report = manager.remove_worktree(path)

            mock_git.assert_called_once_with(
                "worktree", "remove", "--force", str(path), cwd=base_repo
            )
            assert report.removed == [str(path)]
            assert report.clean

    def test_falls_back_to_deleting_directory(
        self, manager: WorktreeManager, automation_root: Path
    ) -> None:
        """A directory git does not know about is deleted directly."""
        path = automation_root / "T-1"
        path.mkdir()
        (path / "file.txt").write_text("leftover")

        def fake_git(*args: str, cwd: Path) -> str:
            if args[:2] == ("worktree", "remove"):
                raise git_error("fatal: not a working tree")
            return ""

        with patch.object(manager, "_run_git", side_effect=fake_git) as mock_git:
            report = manager.remove_worktree(path)

            assert not path.exists()
            assert report.removed == [str(path)]
            assert len(report.warnings) == 1
            mock_git.assert_any_call("worktree", "prune", cwd=manager.base_repository_path)

    def test_never_raises(self, manager: WorktreeManager, automation_root: Path) -> None:
        """Failures are reported, not raised."""
        with patch.object(manager, "_run_git", side_effect=git_error()):
            report = manager.remove_worktree(automation_root / "missing")

            assert report.removed == []
            assert not report.clean


@pytest.mark.unit
class TestCreateTestBranch:
    """Tests for create_test_branch."""

    def test_creates_from_working_branch(self, manager: WorktreeManager, base_repo: Path) -> None:
        """test/copilot/{id} is cut from copilot/{id} and the base branch restored."""
        with patch.object(manager, "_run_git", return_value="") as mock_git:
            branch = manager.create_test_branch("T-1")

            assert branch == "test/copilot/T-1"
            mock_git.assert_any_call("branch", "-D", "test/copilot/T-1", cwd=base_repo)
            mock_git.assert_any_call(
                "checkout", "-b", "test/copilot/T-1", "copilot/T-1", cwd=base_repo
            )
            assert mock_git.call_args_list[-1].args == ("checkout", "develop")

    def test_missing_previous_branch_ignored(self, manager: WorktreeManager) -> None:
        """Deleting a non-existent previous test branch is not an error."""

        def fake_git(*args: str, cwd: Path) -> str:
            if args[:2] == ("branch", "-D"):
                raise git_error("error: branch 'test/copilot/T-1' not found")
            return ""

        with patch.object(manager, "_run_git", side_effect=fake_git):
            assert manager.create_test_branch("T-1") == "test/copilot/T-1"

    def test_failure_raises_and_restores_base(
        self, manager: WorktreeManager, base_repo: Path
    ) -> None:
        """GitOperationError, with the base branch checked out again."""

        def fake_git(*args: str, cwd: Path) -> str:
            if args[:2] == ("checkout", "-b"):
                raise git_error("fatal: invalid reference: copilot/T-1")
            return ""

        with patch.object(manager, "_run_git", side_effect=fake_git) as mock_git:
            with pytest.raises(GitOperationError, match="test/copilot/T-1"):
                manager.create_test_branch("T-1")

            mock_git.assert_called_with("checkout", "develop", cwd=base_repo)


@pytest.mark.unit
class TestChangesAndCommits:
    """Tests for has_changes, worktree_diff and commit_in_worktree."""

    def test_has_changes(self, manager: WorktreeManager, tmp_path: Path) -> None:
        with patch.object(manager, "_run_git", return_value=" M src/app.py"):
            assert manager.has_changes(tmp_path) is True

    def test_has_no_changes(self, manager: WorktreeManager, tmp_path: Path) -> None:
        with patch.object(manager, "_run_git", return_value=""):
            assert manager.has_changes(tmp_path) is False

    def test_has_changes_failure_raises(self, manager: WorktreeManager, tmp_path: Path) -> None:
        with patch.object(manager, "_run_git", side_effect=git_error("not a git repository")):
            with pytest.raises(GitOperationError, match="not a git repository"):
                manager.has_changes(tmp_path)

    def test_worktree_diff_includes_untracked(
        self, manager: WorktreeManager, tmp_path: Path
    ) -> None:
        """Everything is staged before diffing against HEAD."""

        def fake_git(*args: str, cwd: Path) -> str:
            return "diff --git a/new.py b/new.py" if args[0] == "diff" else ""

        with patch.object(manager, "_run_git", side_effect=fake_git) as mock_git:
            diff = manager.worktree_diff(tmp_path)

            assert diff == "diff --git a/new.py b/new.py"
            assert mock_git.call_args_list[0].args == ("add", "-A")
            assert mock_git.call_args_list[1].args == ("diff", "--cached", "HEAD")

    def test_worktree_diff_failure_is_empty(
        self, manager: WorktreeManager, tmp_path: Path
    ) -> None:
        with patch.object(manager, "_run_git", side_effect=git_error()):
            assert manager.worktree_diff(tmp_path) == ""

    def test_commit_nothing_to_commit(self, manager: WorktreeManager, tmp_path: Path) -> None:
        """No commit when the worktree is clean."""
        with patch.object(manager, "_run_git", return_value="") as mock_git:
            assert manager.commit_in_worktree(tmp_path, "T-1") is False
            assert all(c.args[0] != "commit" for c in mock_git.call_args_list)

    def test_commit_default_message(self, manager: WorktreeManager, tmp_path: Path) -> None:
        """Without a message the default one is used."""
        with patch.object(manager, "_run_git", return_value="A  new.py") as mock_git:
            assert manager.commit_in_worktree(tmp_path, "T-1") is True

            mock_git.assert_any_call(
                "commit", "-m", "[feat]: Implement functionality for T-1 task", cwd=tmp_path
            )

    def test_commit_custom_message(self, manager: WorktreeManager, tmp_path: Path) -> None:
        with patch.object(manager, "_run_git", return_value="A  new.py") as mock_git:
            manager.commit_in_worktree(tmp_path, "T-1", "[feat]: Fix login(T-1)")

            mock_git.assert_any_call("commit", "-m", "[feat]: Fix login(T-1)", cwd=tmp_path)

    def test_commit_failure_raises(self, manager: WorktreeManager, tmp_path: Path) -> None:
        def fake_git(*args: str, cwd: Path) -> str:
            if args[0] == "commit":
                raise git_error("Please tell me who you are")
            return "A  new.py"

        with patch.object(manager, "_run_git", side_effect=fake_git):
            with pytest.raises(GitOperationError, match="who you are"):
                manager.commit_in_worktree(tmp_path, "T-1")

    def test_default_commit_message(self) -> None:
        assert default_commit_message("T-9") == "[feat]: Implement functionality for T-9 task"


@pytest.mark.unit
class TestRepositoryQueries:
    """Tests for is_git_repo and branch_exists."""

    def test_is_git_repo(self, manager: WorktreeManager) -> None:
        with patch.object(manager, "_run_git", return_value="true"):
            assert manager.is_git_repo() is True

    def test_is_git_repo_false_on_error(self, manager: WorktreeManager) -> None:
        with patch.object(manager, "_run_git", side_effect=git_error("not a git repository")):
            assert manager.is_git_repo() is False

    def test_is_git_repo_missing_path(self, manager: WorktreeManager, tmp_path: Path) -> None:
        with patch.object(manager, "_run_git") as mock_git:
            assert manager.is_git_repo(tmp_path / "missing") is False
            mock_git.assert_not_called()

    def test_is_git_repo_unconfigured(self, automation_root: Path) -> None:
        manager = WorktreeManager(base_repository_path=None, automation_root=automation_root)

        assert manager.is_git_repo() is False

    @pytest.mark.parametrize("line", ["  copilot/T-1", "* copilot/T-1", "+ copilot/T-1"])
    def test_branch_exists(self, manager: WorktreeManager, line: str) -> None:
        """Current and worktree-checked-out branches are recognised."""
        with patch.object(manager, "_run_git", return_value=line):
            assert manager.branch_exists("copilot/T-1") is True

    def test_branch_missing(self, manager: WorktreeManager) -> None:
        with patch.object(manager, "_run_git", return_value=""):
            assert manager.branch_exists("copilot/T-1") is False


@pytest.mark.unit
class TestTeardown:
    """Tests for teardown and delete_branch."""

    def test_removes_worktree_and_branches_in_both_repos(
        self, base_repo: Path, automation_root: Path, tmp_path: Path
    ) -> None:
        """Worktree first, then both branches in base and working repositories."""
        working_repo = tmp_path / "working"
        working_repo.mkdir()
        manager = WorktreeManager(base_repo, automation_root, working_repo_path=working_repo)
        (automation_root / "T-1").mkdir()

        def fake_git(*args: str, cwd: Path) -> str:
            if args[:2] == ("branch", "--list"):
                return f"  {args[2]}"
            return ""

        with patch.object(manager, "_run_git", side_effect=fake_git) as mock_git:
            report = manager.teardown("T-1")

            assert report.clean
            assert report.removed == [
                str(automation_root / "T-1"),
                f"{base_repo}:copilot/T-1",
                f"{working_repo}:copilot/T-1",
                f"{base_repo}:test/copilot/T-1",
                f"{working_repo}:test/copilot/T-1",
            ]
            mock_git.assert_any_call("branch", "-D", "copilot/T-1", cwd=working_repo)

    def test_same_repo_only_cleaned_once(self, base_repo: Path, automation_root: Path) -> None:
        """A working repository equal to the base is not visited twice."""
        manager = WorktreeManager(base_repo, automation_root, working_repo_path=base_repo)

        def fake_git(*args: str, cwd: Path) -> str:
            if args[:2] == ("branch", "--list"):
                return f"  {args[2]}"
            return ""

        with patch.object(manager, "_run_git", side_effect=fake_git) as mock_git:
            report = manager.teardown("T-1")

            deletes = [c for c in mock_git.call_args_list if c.args[:2] == ("branch", "-D")]
            assert len(deletes) == 2
            assert len(report.removed) == 2

    def test_missing_branches_skipped(self, manager: WorktreeManager) -> None:
        """Nothing to remove yields an empty, clean report."""
        with patch.object(manager, "_run_git", return_value=""):
            report = manager.teardown("T-1")

            assert report.removed == []
            assert report.clean

    def test_delete_branch_failure_reported(self, manager: WorktreeManager) -> None:
        """delete_branch never raises."""
        with patch.object(manager, "_run_git", side_effect=git_error("branch is checked out")):
            report = manager.delete_branch("copilot/T-1")

            assert report.removed == []
            assert "checked out" in report.warnings[0]


@pytest.mark.unit
class TestListWorktrees:
    """Tests for list_worktrees."""

    def test_lists_ticket_worktrees_only(
        self, manager: WorktreeManager, automation_root: Path, base_repo: Path
    ) -> None:
        """The main checkout is not a ticket worktree."""
        ticket_path = automation_root.resolve() / "T-1"
        output = (
            f"worktree {base_repo}\nHEAD abc123\nbranch refs/heads/develop\n\n"
            f"worktree {ticket_path}\nHEAD def456\nbranch refs/heads/copilot/T-1"
        )

        with patch.object(manager, "_run_git", return_value=output):
            records = manager.list_worktrees()

            assert len(records) == 1
            assert records[0].ticket_id == "T-1"
            assert records[0].path == ticket_path
            assert records[0].branch == "copilot/T-1"

    def test_git_failure_lists_nothing(self, manager: WorktreeManager) -> None:
        with patch.object(manager, "_run_git", side_effect=git_error()):
            assert manager.list_worktrees() == []
