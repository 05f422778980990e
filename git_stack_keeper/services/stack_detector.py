"""Stack detection - infer parent/child relationships and group branches into stacks"""

import re
from collections import deque
from typing import Dict, List, Optional, Sequence, Set, Union, TYPE_CHECKING

from git_stack_keeper.constants import BRANCH_PARENT_PATTERN
from git_stack_keeper.exceptions import GitOperationError
from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.models.branch import Branch, BranchRelationship
from git_stack_keeper.models.stack import Stack, StackNode, WorktreeInfo
from git_stack_keeper.services.git.config_store import GitConfigStore
from git_stack_keeper.services.git.queries import GitQueries
from git_stack_keeper.services.git.worktrees import WorktreeService, index_by_branch
from git_stack_keeper.services.topology_service import TopologyService
from git_stack_keeper.utils.threading import gather_settled

if TYPE_CHECKING:
    from git_stack_keeper.config import Config

logger = get_logger(__name__)

_BRANCH_PARENT_KEY_RE = re.compile(r"^branch\.(.+)\.parent$")


def resolve_cycles(
    relationships: Dict[str, BranchRelationship], trunk_names: Sequence[str]
) -> None:
    """Break every two-branch parent cycle in place.

    When A and B point at each other, a trunk name wins as the surviving
    parent. Otherwise the alphabetically earlier branch keeps its parent
    link and the later one becomes a root.
    """
    for name, rel in relationships.items():
        if not rel.parent:
            continue
        parent_rel = relationships.get(rel.parent)
        if parent_rel is None or parent_rel.parent != name:
            continue

        branch_is_trunk = name in trunk_names
        parent_is_trunk = rel.parent in trunk_names

        if parent_is_trunk and not branch_is_trunk:
            cleared = parent_rel
        elif branch_is_trunk and not parent_is_trunk:
            cleared = rel
        elif name < rel.parent:
            cleared = parent_rel
        else:
            cleared = rel

        logger.debug(f"Breaking cycle {name} <-> {rel.parent}: {cleared.branch} becomes a root")
        cleared.parent = None


def link_children(relationships: Dict[str, BranchRelationship]) -> None:
    """Derive children lists from parent pointers."""
    for name, rel in relationships.items():
        if rel.parent:
            parent_rel = relationships.get(rel.parent)
            if parent_rel is not None and name not in parent_rel.children:
                parent_rel.children.append(name)


class StackDetector:
    """Builds a forest of stacks from branch topology.

    The result is recomputed on every call and never persisted; explicit
    stacks live in StackManager instead.
    """

    def __init__(
        self,
        repo_path: str,
        config: Union["Config", dict],
        git_queries: Optional[GitQueries] = None,
        config_store: Optional[GitConfigStore] = None,
        worktree_service: Optional[WorktreeService] = None,
    ):
        """Initialize the stack detector.

        Args:
            repo_path: Path to the git repository
            config: Configuration dictionary or Config object
            git_queries: Query service (created from repo_path if omitted)
            config_store: Git config access for explicit parent hints
            worktree_service: Worktree listing for node annotation
        """
        self.repo_path = repo_path
        self.config = config
        self.git_queries = git_queries or GitQueries(repo_path)
        self.config_store = config_store or GitConfigStore(repo_path)
        self.worktree_service = worktree_service or WorktreeService(repo_path)

        logger.debug("Stack detector initialized")

    def _new_topology(self) -> TopologyService:
        return TopologyService(self.git_queries, self.config)

    def detect_stacks(
        self,
        branches: Optional[List[Branch]] = None,
        worktrees: Optional[List[WorktreeInfo]] = None,
    ) -> Dict[str, Stack]:
        """Detect all stacks and their relationships.

        Args:
            branches: Branches to consider (default: all local branches)
            worktrees: Worktrees for node annotation (default: all worktrees)

        Returns:
            Stacks keyed by root branch name
        """
        if branches is None:
            branches = self.get_all_branches()
        if worktrees is None:
            worktrees = self.get_all_worktrees()

        # One topology instance per pass so memoized answers never go stale
        topology = self._new_topology()
        relationships = self.build_relationships(branches, topology)
        return self.group_into_stacks(relationships, worktrees, topology)

    def load_branch_parents(self) -> Dict[str, str]:
        """Read explicit `branch.<name>.parent` hints from git config."""
        try:
            entries = self.config_store.get_regexp(BRANCH_PARENT_PATTERN)
        except GitOperationError as e:
            logger.debug(f"Could not read branch parent hints: {e}")
            return {}

        parents = {}
        for key, value in entries:
            match = _BRANCH_PARENT_KEY_RE.match(key)
            if match and value:
                parents[match.group(1)] = value
        return parents

    def build_relationships(
        self, branches: List[Branch], topology: Optional[TopologyService] = None
    ) -> Dict[str, BranchRelationship]:
        """Build parent-child relationships for all branches."""
        topology = topology or self._new_topology()
        relationships: Dict[str, BranchRelationship] = {
            branch.name: BranchRelationship(branch=branch.name) for branch in branches
        }

        # Explicit parents from config come first
        explicit_parents = self.load_branch_parents()
        for name, rel in relationships.items():
            parent = explicit_parents.get(name)
            if parent and parent != name and parent in relationships:
                rel.parent = parent

        # Heuristic parents for everything else
        pending = [name for name, rel in relationships.items() if not rel.parent]
        topology.prefetch(pending, branches)
        for name, rel in relationships.items():
            if rel.parent:
                continue
            rel.parent = topology.detect_parent_branch(name, branches)

        resolve_cycles(relationships, topology.trunk_names)
        link_children(relationships)
        return relationships

    def group_into_stacks(
        self,
        relationships: Dict[str, BranchRelationship],
        worktrees: Optional[List[WorktreeInfo]] = None,
        topology: Optional[TopologyService] = None,
    ) -> Dict[str, Stack]:
        """Group branches into stacks based on relationships.

        Roots are branches without a parent plus branches that have both a
        parent and children. The latter form their own sub-stacks and are
        left out of their parent's stack.
        """
        topology = topology or self._new_topology()

        roots = [rel.branch for rel in relationships.values() if not rel.parent or rel.children]
        sub_stack_roots: Set[str] = {
            rel.branch for rel in relationships.values() if rel.parent and rel.children
        }

        stacks: Dict[str, Stack] = {}
        for root in roots:
            stack = Stack(root=root)

            queue = deque([root])
            visited: Set[str] = set()
            while queue:
                current = queue.popleft()
                if current in visited:
                    continue
                visited.add(current)

                rel = relationships.get(current)
                if rel is None:
                    continue

                stack.branches.append(current)
                for child in rel.children:
                    if child != root and child in sub_stack_roots:
                        continue
                    queue.append(child)

            stacks[root] = stack

        worktree_map = index_by_branch(worktrees or [])
        for stack in stacks.values():
            self._build_stack_nodes(stack, relationships, worktree_map, topology)

        return stacks

    def _build_stack_nodes(
        self,
        stack: Stack,
        relationships: Dict[str, BranchRelationship],
        worktree_map: Dict[str, WorktreeInfo],
        topology: TopologyService,
    ) -> None:
        """Fill in node details for a stack: depth, commit and worktree."""
        depths: Dict[str, int] = {}
        queue = deque([(stack.root, 0)])
        while queue:
            branch, depth = queue.popleft()
            if branch in depths:
                continue
            depths[branch] = depth

            rel = relationships.get(branch)
            if rel is not None:
                queue.extend((child, depth + 1) for child in rel.children)

        commits, _ = gather_settled(
            topology.rev_parse,
            stack.branches,
            max_workers=topology.workers,
            sequential=topology.sequential,
        )
        commit_map = {branch: commit for branch, commit in commits if commit}

        for branch in stack.branches:
            rel = relationships[branch]
            stack.nodes[branch] = StackNode(
                branch=branch,
                parent=rel.parent,
                children=list(rel.children),
                depth=depths.get(branch, 0),
                commit=commit_map.get(branch),
                worktree=worktree_map.get(branch),
            )

    def get_all_branches(self) -> List[Branch]:
        """Get all local branches; an empty list if they cannot be listed."""
        try:
            return self.git_queries.list_branches()
        except GitOperationError as e:
            logger.warning(f"Could not list branches: {e}")
            return []

    def get_all_worktrees(self) -> List[WorktreeInfo]:
        return self.worktree_service.get_worktree_info()
