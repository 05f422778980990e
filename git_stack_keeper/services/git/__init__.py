"""Git-related services for git-stack-keeper."""

from .base import GitServiceBase, format_git_error
from .queries import GitQueries
from .operations import GitOperations, parse_conflicted_files, split_status_entries
from .config_store import GitConfigStore
from .worktrees import WorktreeService

__all__ = [
    "GitServiceBase",
    "format_git_error",
    "GitQueries",
    "GitOperations",
    "parse_conflicted_files",
    "split_status_entries",
    "GitConfigStore",
    "WorktreeService",
]
