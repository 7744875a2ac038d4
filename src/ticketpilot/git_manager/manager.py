"""WorktreeManager - Per-ticket git worktrees and branches."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

from ticketpilot.config import ConfigurationError
from ticketpilot.git_manager.exceptions import GitOperationError
from ticketpilot.git_manager.models import CleanupReport, WorktreeRecord
from ticketpilot.tickets.models import review_branch_name, working_branch_name

if TYPE_CHECKING:
    from ticketpilot.config import PilotConfig

logger = logging.getLogger("ticketpilot.git_manager")


class WorktreeManager:
    """Maps a ticket id to an isolated checkout on its own branch.

    Every ticket gets ``{automation_root}/{ticket_id}``, a worktree of the base
    repository attached to ``copilot/{ticket_id}``. Worktrees share the base
    repository's object database, so creating and discarding them is cheap.
    """

    def __init__(
        self,
        base_repository_path: str | Path | None,
        automation_root: str | Path | None,
        base_branch: str = "develop",
        working_repo_path: str | Path | None = None,
    ) -> None:
        """Initialize the worktree manager.

        Args:
            base_repository_path: Repository the worktrees are attached to
            automation_root: Directory holding one worktree per ticket
            base_branch: Branch ticket branches are forked from
            working_repo_path: The user's own checkout, if branches may also
                               live there (only consulted on teardown)
        """
        self.base_repository_path = Path(base_repository_path) if base_repository_path else None
        self.automation_root = Path(automation_root) if automation_root else None
        self.base_branch = base_branch
        self.working_repo_path = Path(working_repo_path) if working_repo_path else None

    @classmethod
    def from_config(
        cls, config: PilotConfig, working_repo_path: str | Path | None = None
    ) -> WorktreeManager:
        """Build a manager from the loaded configuration."""
        return cls(
            base_repository_path=config.base_repository_path,
            automation_root=config.automation_root,
            base_branch=config.base_branch,
            working_repo_path=working_repo_path,
        )

    def _run_git(self, *args: str, cwd: Path) -> str:
        """Run a git command.

        Args:
            *args: Git command arguments
            cwd: Directory to run in

        Returns:
            Command stdout

        Raises:
            subprocess.CalledProcessError: If command fails
        """
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()

    def _require_base_repo(self) -> Path:
        if self.base_repository_path is None:
            raise ConfigurationError(
                "Base repository path not configured. "
                "Set it with: ticketpilot config set base_repository_path <path>"
            )
        return self.base_repository_path

    def _require_automation_root(self) -> Path:
        if self.automation_root is None:
            raise ConfigurationError(
                "Automation root not configured. "
                "Set it with: ticketpilot config set automation_root <path>"
            )
        return self.automation_root

    def worktree_path(self, ticket_id: str) -> Path:
        """Conventional worktree location for a ticket.

        Raises:
            ConfigurationError: If the automation root is not configured
        """
        return self._require_automation_root() / ticket_id

    def worktree_exists(self, ticket_id: str) -> Path | None:
        """Return the ticket's worktree path if the directory exists.

        Filesystem check only; no git command is run.
        """
        if self.automation_root is None:
            return None
        path = self.automation_root / ticket_id
        return path if path.exists() else None

    def ensure_worktree(self, ticket_id: str) -> Path:
        """Return the ticket's worktree, creating branch and worktree if needed.

        An existing worktree is returned untouched. Otherwise the base branch is
        checked out and pulled, ``copilot/{ticket_id}`` is created from it unless
        it already exists, and the worktree is added on that branch.

        Args:
            ticket_id: The ticket's id

        Returns:
            Path to the worktree

        Raises:
            ConfigurationError: If automation root or base repository is not configured
            GitOperationError: If a git command fails
        """
        automation_root = self._require_automation_root()
        base_repo = self._require_base_repo()

        existing = self.worktree_exists(ticket_id)
        if existing is not None:
            logger.info("Worktree for %s already exists at %s", ticket_id, existing)
            return existing

        branch = working_branch_name(ticket_id)
        path = automation_root / ticket_id
        logger.info("Creating worktree for %s at %s", ticket_id, path)

        self.update_base_branch()

        try:
            self._run_git("branch", branch, self.base_branch, cwd=base_repo)
            logger.info("Created branch %s from %s", branch, self.base_branch)
        except subprocess.CalledProcessError as e:
            if "already exists" not in (e.stderr or ""):
                logger.error("Failed to create branch %s: %s", branch, e.stderr)
                raise GitOperationError(
                    f"Failed to create branch '{branch}' from '{self.base_branch}': {e.stderr}"
                ) from e
            logger.info("Branch %s already exists", branch)

        try:
            automation_root.mkdir(parents=True, exist_ok=True)
            self._run_git("worktree", "add", str(path), branch, cwd=base_repo)
        except subprocess.CalledProcessError as e:
            logger.error("Failed to add worktree %s: %s", path, e.stderr)
            raise GitOperationError(f"Failed to create worktree at '{path}': {e.stderr}") from e
        except OSError as e:
            raise GitOperationError(f"Failed to create worktree at '{path}': {e}") from e

        logger.info("Worktree created at %s", path)
        return path

    def update_base_branch(self) -> None:
        """Check out the base branch in the base repository and pull it.

        The pull is skipped when the repository has no ``origin`` remote.

        Raises:
            ConfigurationError: If the base repository is not configured
            GitOperationError: If checkout or pull fails
        """
        base_repo = self._require_base_repo()
        logger.info("Updating %s in %s", self.base_branch, base_repo)
        try:
            self._run_git("checkout", self.base_branch, cwd=base_repo)
            remotes = self._run_git("remote", cwd=base_repo).split()
            if "origin" in remotes:
                self._run_git("pull", "origin", self.base_branch, cwd=base_repo)
            else:
                logger.warning("No origin remote in %s, skipping pull", base_repo)
        except subprocess.CalledProcessError as e:
            logger.error("Failed to update %s: %s", self.base_branch, e.stderr)
            raise GitOperationError(
                f"Failed to update base branch '{self.base_branch}': {e.stderr}"
            ) from e
        except OSError as e:
            raise GitOperationError(f"Failed to run git in '{base_repo}': {e}") from e

    def remove_worktree(self, path: str | Path) -> CleanupReport:
        """Remove a worktree, falling back to deleting the directory.

        Never raises; problems are logged and returned as warnings.
        """
        path = Path(path)
        report = CleanupReport()
        logger.info("Removing worktree %s", path)

        if self.base_repository_path is not None:
            try:
                self._run_git(
                    "worktree", "remove", "--force", str(path), cwd=self.base_repository_path
                )
                report.removed.append(str(path))
                return report
            except (subprocess.CalledProcessError, OSError) as e:
                stderr = getattr(e, "stderr", None) or str(e)
                logger.warning("git worktree remove failed for %s: %s", path, stderr)
                report.warnings.append(f"git worktree remove failed for {path}: {stderr}")
        else:
            report.warnings.append(f"Base repository not configured; deleting {path} directly")

        if path.exists():
            try:
                shutil.rmtree(path)
                report.removed.append(str(path))
                logger.info("Deleted worktree directory %s", path)
            except OSError as e:
                logger.warning("Failed to delete %s: %s", path, e)
                report.warnings.append(f"Failed to delete {path}: {e}")

        if self.base_repository_path is not None:
            try:
                self._run_git("worktree", "prune", cwd=self.base_repository_path)
            except (subprocess.CalledProcessError, OSError) as e:
                logger.debug("git worktree prune failed: %s", e)

        return report

    def create_test_branch(self, ticket_id: str) -> str:
        """Cut ``test/copilot/{ticket_id}`` from the ticket's working branch.

        Any previous test branch is replaced. The base repository is returned to
        the base branch afterwards.

        Returns:
            The test branch name

        Raises:
            ConfigurationError: If the base repository is not configured
            GitOperationError: If the branch cannot be created
        """
        base_repo = self._require_base_repo()
        source = working_branch_name(ticket_id)
        test_branch = review_branch_name(ticket_id)
        logger.info("Creating test branch %s from %s", test_branch, source)

        try:
            self._run_git("branch", "-D", test_branch, cwd=base_repo)
        except subprocess.CalledProcessError:
            logger.debug("No previous %s to delete", test_branch)

        try:
            self._run_git("checkout", "-b", test_branch, source, cwd=base_repo)
            self._run_git("checkout", self.base_branch, cwd=base_repo)
        except subprocess.CalledProcessError as e:
            logger.error("Failed to create test branch %s: %s", test_branch, e.stderr)
            try:
                self._run_git("checkout", self.base_branch, cwd=base_repo)
            except subprocess.CalledProcessError:
                logger.warning("Could not return %s to %s", base_repo, self.base_branch)
            raise GitOperationError(
                f"Failed to create test branch '{test_branch}': {e.stderr}"
            ) from e

        logger.info("Test branch created: %s", test_branch)
        return test_branch

    def has_changes(self, path: str | Path) -> bool:
        """Whether the worktree has staged, unstaged or untracked changes.

        Raises:
            GitOperationError: If git status fails
        """
        try:
            return bool(self._run_git("status", "--porcelain", cwd=Path(path)))
        except (subprocess.CalledProcessError, OSError) as e:
            stderr = getattr(e, "stderr", None) or str(e)
            raise GitOperationError(f"Failed to read status of '{path}': {stderr}") from e

    def worktree_diff(self, path: str | Path) -> str:
        """Diff of everything changed in the worktree against HEAD, untracked files included.

        Stages all changes first. Returns an empty string if the diff cannot be read.
        """
        cwd = Path(path)
        try:
            self._run_git("add", "-A", cwd=cwd)
            return self._run_git("diff", "--cached", "HEAD", cwd=cwd)
        except (subprocess.CalledProcessError, OSError) as e:
            logger.warning("Failed to get diff for %s: %s", path, getattr(e, "stderr", e))
            return ""

    def commit_in_worktree(
        self, path: str | Path, ticket_id: str, message: str | None = None
    ) -> bool:
        """Stage and commit every change in the worktree.

        Args:
            path: Worktree path
            ticket_id: The ticket's id, used for the default message
            message: Commit message (optional)

        Returns:
            False if there was nothing to commit, True otherwise

        Raises:
            GitOperationError: If staging or committing fails
        """
        cwd = Path(path)
        try:
            self._run_git("add", "-A", cwd=cwd)
            status = self._run_git("status", "--porcelain", cwd=cwd)
            if not status:
                logger.info("No changes to commit in %s", path)
                return False

            logger.info("Committing %d changed file(s) in %s", len(status.splitlines()), path)
            commit_message = message or default_commit_message(ticket_id)
            self._run_git("commit", "-m", commit_message, cwd=cwd)
        except (subprocess.CalledProcessError, OSError) as e:
            stderr = getattr(e, "stderr", None) or str(e)
            logger.error("Failed to commit in %s: %s", path, stderr)
            raise GitOperationError(f"Failed to commit changes in '{path}': {stderr}") from e

        logger.info("Changes committed in worktree %s", path)
        return True

    def is_git_repo(self, path: str | Path | None = None) -> bool:
        """Whether ``path`` (default: the base repository) is inside a git work tree."""
        target = Path(path) if path is not None else self.base_repository_path
        if target is None or not target.exists():
            return False
        try:
            return self._run_git("rev-parse", "--is-inside-work-tree", cwd=target) == "true"
        except (subprocess.CalledProcessError, OSError):
            return False

    def branch_exists(self, branch: str, repo_path: str | Path | None = None) -> bool:
        """Whether a local branch exists (default: in the base repository)."""
        repo = Path(repo_path) if repo_path is not None else self.base_repository_path
        if repo is None:
            return False
        try:
            output = self._run_git("branch", "--list", branch, cwd=repo)
        except (subprocess.CalledProcessError, OSError):
            return False
        return any(line.lstrip("*+ ").strip() == branch for line in output.splitlines())

    def delete_branch(self, branch: str, repo_path: str | Path | None = None) -> CleanupReport:
        """Force-delete a local branch. Never raises."""
        report = CleanupReport()
        repo = Path(repo_path) if repo_path is not None else self.base_repository_path
        if repo is None:
            report.warnings.append(f"No repository to delete {branch} from")
            return report
        try:
            self._run_git("branch", "-D", branch, cwd=repo)
            report.removed.append(f"{repo}:{branch}")
            logger.info("Branch deleted: %s (%s)", branch, repo)
        except (subprocess.CalledProcessError, OSError) as e:
            stderr = getattr(e, "stderr", None) or str(e)
            logger.warning("Could not delete branch %s in %s: %s", branch, repo, stderr)
            report.warnings.append(f"Could not delete branch {branch} in {repo}: {stderr}")
        return report

    def teardown(self, ticket_id: str) -> CleanupReport:
        """Remove a ticket's worktree, working branch and test branch.

        Branches are deleted from the base repository and, when configured and
        different, from the working repository. Best-effort: never raises.
        """
        report = CleanupReport()

        path = self.worktree_exists(ticket_id)
        if path is not None:
            report.extend(self.remove_worktree(path))
        else:
            logger.info("No worktree found for %s", ticket_id)

        repos = [r for r in (self.base_repository_path, self.working_repo_path) if r is not None]
        if len(repos) == 2 and repos[0].resolve() == repos[1].resolve():
            repos = repos[:1]

        for branch in (working_branch_name(ticket_id), review_branch_name(ticket_id)):
            for repo in repos:
                if self.branch_exists(branch, repo):
                    report.extend(self.delete_branch(branch, repo))

        return report

    def list_worktrees(self) -> list[WorktreeRecord]:
        """Ticket worktrees registered with the base repository."""
        if self.base_repository_path is None or self.automation_root is None:
            return []
        try:
            output = self._run_git(
                "worktree", "list", "--porcelain", cwd=self.base_repository_path
            )
        except (subprocess.CalledProcessError, OSError):
            return []

        root = self.automation_root.resolve()
        records = []
        for block in output.split("\n\n"):
            path: Path | None = None
            branch: str | None = None
            for line in block.splitlines():
                if line.startswith("worktree "):
                    path = Path(line.removeprefix("worktree "))
                elif line.startswith("branch "):
                    branch = line.removeprefix("branch ").removeprefix("refs/heads/")
            if path is not None and path.resolve().parent == root:
                records.append(WorktreeRecord(ticket_id=path.name, path=path, branch=branch))
        return records


def default_commit_message(ticket_id: str) -> str:
    """Commit message used when no generated message is available."""
    return f"[feat]: Implement functionality for {ticket_id} task"
