"""Stack models: durable explicit metadata and detected stack graphs"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class StackMetadata:
    """Explicit stack record stored in git config."""
    name: str
    trunk: str
    root: str
    created_at: str


@dataclass
class BranchStackMetadata:
    """Explicit per-branch stack record stored in git config."""
    stack_name: str
    parent: str
    base_commit: str  # Parent commit the branch was last based on


@dataclass
class StackInfo:
    """A stack's metadata together with all of its tracked branches."""
    metadata: StackMetadata
    branches: Dict[str, BranchStackMetadata] = field(default_factory=dict)


@dataclass
class WorktreeInfo:
    """A worktree entry from `git worktree list --porcelain`."""
    path: str
    head: str
    branch_name: Optional[str] = None  # None when detached or bare
    is_main: bool = False  # First entry is the main working tree
    is_orphaned: bool = False  # Directory missing


@dataclass
class StackNode:
    """One branch of a detected stack."""
    branch: str
    parent: Optional[str]
    children: List[str]
    depth: int  # Distance from the stack root
    commit: Optional[str] = None
    worktree: Optional[WorktreeInfo] = None


@dataclass
class Stack:
    """A detected group of related branches, rebuilt on every detection pass."""
    root: str
    branches: List[str] = field(default_factory=list)
    nodes: Dict[str, StackNode] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.branches)
