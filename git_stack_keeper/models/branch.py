"""Branch model and heuristic relationship types"""
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class Branch:
    """A local branch as reported by git."""
    name: str
    remote: Optional[str] = None
    upstream: Optional[str] = None
    ahead: int = 0
    behind: int = 0
    current: bool = False


@dataclass
class BranchRelationship:
    """Parent/children links inferred for one branch during a detection pass."""
    branch: str
    parent: Optional[str] = None
    children: List[str] = field(default_factory=list)


@dataclass
class ParentCandidate:
    """A branch accepted as a possible parent, with its ranking data."""
    branch: str
    merge_base: str
    distance: int  # Commits from the merge-base to the child branch
    is_exact_match: bool
    priority: int

    @property
    def sort_key(self) -> tuple:
        return (self.priority, self.distance)
