"""Worktree listing for stack annotation."""

import os
from threading import Lock
from typing import Any, Dict, List, Optional

from git_stack_keeper.exceptions import GitOperationError
from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.models.stack import WorktreeInfo
from git_stack_keeper.services.git.base import GitServiceBase

logger = get_logger(__name__)


def parse_worktree_list(output: str) -> List[WorktreeInfo]:
    """Parse `git worktree list --porcelain` output.

    Entries are blank-line separated blocks of `worktree <path>`,
    `HEAD <sha>` and either `branch refs/heads/<name>`, `detached` or `bare`.
    """
    worktrees: List[WorktreeInfo] = []
    current: Dict[str, Any] = {}

    def flush():
        if current.get("path"):
            path = current["path"]
            worktrees.append(
                WorktreeInfo(
                    path=path,
                    head=current.get("head", ""),
                    branch_name=current.get("branch"),
                    is_main=not worktrees,
                    is_orphaned=not os.path.exists(path),
                )
            )
        current.clear()

    for line in output.split("\n"):
        line = line.strip()
        if not line:
            flush()
            continue

        key, _, value = line.partition(" ")
        if key == "worktree":
            current["path"] = value
        elif key == "HEAD":
            current["head"] = value
        elif key == "branch":
            current["branch"] = value.replace("refs/heads/", "", 1)

    flush()
    return worktrees


def index_by_branch(worktrees: List[WorktreeInfo]) -> Dict[str, WorktreeInfo]:
    """Map branch name to the worktree that has it checked out."""
    return {wt.branch_name: wt for wt in worktrees if wt.branch_name}


class WorktreeService(GitServiceBase):
    """Service for listing git worktrees."""

    def __init__(self, repo_path: str):
        super().__init__(repo_path)
        self._worktree_info: Optional[List[WorktreeInfo]] = None
        self._cache_lock = Lock()

    def clear_cache(self):
        """Clear the worktree information cache."""
        with self._cache_lock:
            self._worktree_info = None

    def get_worktree_info(self) -> List[WorktreeInfo]:
        """Get all worktrees; an empty list if they cannot be listed."""
        with self._cache_lock:
            if self._worktree_info is not None:
                return self._worktree_info

        try:
            output = self._git(["worktree", "list", "--porcelain"], "worktree list")
        except GitOperationError as e:
            logger.debug(f"Could not list worktrees: {e}")
            return []

        worktrees = parse_worktree_list(output)
        with self._cache_lock:
            self._worktree_info = worktrees
        return worktrees
