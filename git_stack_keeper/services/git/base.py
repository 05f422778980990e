"""Shared plumbing for the git services."""

import re
from typing import List, Optional

import git

from git_stack_keeper.exceptions import GitOperationError
from git_stack_keeper.logging_config import get_logger

logger = get_logger(__name__)

_STDERR_RE = re.compile(r"stderr: '(.*)'", re.DOTALL)


def format_git_error(error: Exception) -> str:
    """Build a readable message from a GitPython exception."""
    if isinstance(error, git.exc.GitCommandError):
        command = error.command if isinstance(error.command, str) else " ".join(
            str(part) for part in error.command
        )
        stderr = (error.stderr or "").strip()
        match = _STDERR_RE.search(stderr)
        if match:
            stderr = match.group(1).strip()
        status = error.status if error.status is not None else "unknown"

        if stderr:
            return f"'{command}' failed (exit {status}): {stderr}"
        return f"'{command}' failed with exit code {status}"
    return str(error)


class GitServiceBase:
    """Base for services that shell out to git through GitPython."""

    def __init__(self, repo_path: str):
        """Initialize the service.

        Args:
            repo_path: Path to the git repository (string path, not repo object)
        """
        self.repo_path = repo_path

    def _get_repo(self) -> git.Repo:
        """Get a thread-safe git.Repo instance.

        Creates a new repo instance for each call so concurrent workers never
        share one. GitPython repos are lightweight; opening one does not clone.

        Returns:
            git.Repo: A fresh repository instance
        """
        return git.Repo(self.repo_path)

    def _git(self, args: List[str], operation: str, branch: Optional[str] = None) -> str:
        """Run a git command and return its stdout.

        Raises:
            GitOperationError: If the repository cannot be opened or the
                command exits non-zero
        """
        try:
            repo = self._get_repo()
            return repo.git.execute(["git", *args])
        except git.exc.GitError as e:
            raise GitOperationError(operation, branch, format_git_error(e)) from e

    def _git_status(self, args: List[str]) -> tuple:
        """Run a git command, returning (exit_status, stdout) instead of raising on exit codes.

        Raises:
            GitOperationError: If the repository cannot be opened
        """
        try:
            repo = self._get_repo()
        except git.exc.GitError as e:
            raise GitOperationError(args[0], message=format_git_error(e)) from e

        try:
            return 0, repo.git.execute(["git", *args])
        except git.exc.GitCommandError as e:
            return e.status, ""
