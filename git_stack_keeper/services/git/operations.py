"""Git operations that change the working tree or refs."""

from contextlib import contextmanager
from typing import Iterable, List, Optional

from git_stack_keeper.constants import CONFLICT_STATUS_CODES
from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.services.git.base import GitServiceBase

logger = get_logger(__name__)


def split_status_entries(output: str) -> List[str]:
    """Split `git status --porcelain -z` output into `XY path` entries.

    Paths are NUL-terminated and never quoted. A rename or copy entry is
    followed by its origin path, which is dropped.
    """
    entries = []
    fields = iter(output.split("\0"))
    for field in fields:
        if not field:
            continue
        entries.append(field)
        if "R" in field[:2] or "C" in field[:2]:
            next(fields, None)
    return entries


def parse_conflicted_files(status_lines: Iterable[str]) -> List[str]:
    """Extract unresolved paths from porcelain status entries.

    Porcelain format is `XY path`; UU, AA and DD mark both-sides conflicts.
    """
    return [
        line[3:]
        for line in status_lines
        if len(line) > 3 and line[:2] in CONFLICT_STATUS_CODES
    ]


class GitOperations(GitServiceBase):
    """Service for mutating git operations.

    Every method raises GitOperationError when git exits non-zero.
    """

    def __init__(self, repo_path: str):
        super().__init__(repo_path)
        self.in_git_operation = False  # Track if a mutation is in progress

        logger.debug("Git operations initialized")

    @contextmanager
    def _git_operation(self):
        """Context manager to track git operations."""
        self.in_git_operation = True
        try:
            yield
        finally:
            self.in_git_operation = False

    def checkout(self, branch: str) -> None:
        """Check out an existing branch."""
        with self._git_operation():
            logger.info(f"Checking out {branch}")
            self._git(["checkout", branch], "checkout", branch)

    def checkout_new(self, branch: str, start_point: Optional[str] = None) -> None:
        """Create a branch (from start_point, default HEAD) and check it out."""
        args = ["checkout", "-b", branch]
        if start_point:
            args.append(start_point)
        with self._git_operation():
            logger.info(f"Creating branch {branch}")
            self._git(args, "checkout -b", branch)

    def rebase_onto(self, parent: str) -> None:
        """Rebase the checked-out branch onto parent."""
        with self._git_operation():
            logger.info(f"Rebasing onto {parent}")
            self._git(["rebase", parent], "rebase", parent)

    def merge_in(self, parent: str) -> None:
        """Merge parent into the checked-out branch."""
        with self._git_operation():
            logger.info(f"Merging {parent}")
            self._git(["merge", parent, "--no-edit"], "merge", parent)

    def abort_rebase(self) -> None:
        with self._git_operation():
            logger.warning("Aborting rebase")
            self._git(["rebase", "--abort"], "rebase --abort")

    def abort_merge(self) -> None:
        with self._git_operation():
            logger.warning("Aborting merge")
            self._git(["merge", "--abort"], "merge --abort")

    def delete_branch(self, branch: str, force: bool = False) -> None:
        flag = "-D" if force else "-d"
        with self._git_operation():
            logger.info(f"Deleting branch {branch}")
            self._git(["branch", flag, branch], "branch delete", branch)

    def working_tree_status(self) -> List[str]:
        """Get `git status --porcelain -z` output as a list of `XY path` entries."""
        output = self._git(["status", "--porcelain", "-z"], "status")
        return split_status_entries(output)

    def has_uncommitted_changes(self) -> bool:
        """Check for staged, unstaged or untracked changes in the working tree."""
        return bool(self.working_tree_status())

    def conflicted_files(self) -> List[str]:
        return parse_conflicted_files(self.working_tree_status())
