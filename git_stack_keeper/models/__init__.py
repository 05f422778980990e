"""Data models for git-stack-keeper."""

from .branch import Branch, BranchRelationship, ParentCandidate
from .stack import (
    BranchStackMetadata,
    Stack,
    StackInfo,
    StackMetadata,
    StackNode,
    WorktreeInfo,
)
from .sync import BranchSyncStatus, StackSyncStatus, SyncResult, SyncStatus

__all__ = [
    "Branch",
    "BranchRelationship",
    "ParentCandidate",
    "BranchStackMetadata",
    "Stack",
    "StackInfo",
    "StackMetadata",
    "StackNode",
    "WorktreeInfo",
    "BranchSyncStatus",
    "StackSyncStatus",
    "SyncResult",
    "SyncStatus",
]
