"""Sync status models"""
from enum import Enum
from dataclasses import dataclass, field
from typing import List, Optional


class SyncStatus(Enum):
    """Drift of a branch relative to its recorded parent."""
    SYNCED = "synced"
    BEHIND = "behind"
    DIVERGED = "diverged"
    ERROR = "error"


@dataclass
class BranchSyncStatus:
    """Derived sync state of one stacked branch."""
    branch: str
    parent: str
    base_commit: str
    parent_head: str = ""
    status: SyncStatus = SyncStatus.SYNCED
    commits_behind: int = 0
    commits_ahead: int = 0  # Commits in branch not in parent
    error: Optional[str] = None

    @property
    def needs_sync(self) -> bool:
        return self.status in (SyncStatus.BEHIND, SyncStatus.DIVERGED)


@dataclass
class StackSyncStatus:
    """Sync state of every branch in a stack, root first."""
    stack_name: str
    trunk: str
    branches: List[BranchSyncStatus] = field(default_factory=list)
    needs_sync: bool = False


@dataclass
class SyncResult:
    """Outcome of syncing one branch."""
    branch: str
    success: bool
    new_base: Optional[str] = None
    error: Optional[str] = None
    conflict_files: Optional[List[str]] = None
