"""Parent inference from commit-graph topology."""

from threading import Lock
from typing import Dict, List, Optional, Sequence, Union, TYPE_CHECKING

from git_stack_keeper.constants import (
    COMMON_TRUNK_NAMES,
    DEFAULT_DRIFT_THRESHOLD,
    PRIORITY_EXACT_MATCH,
    PRIORITY_OTHER,
    PRIORITY_TRUNK,
)
from git_stack_keeper.exceptions import GitOperationError
from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.models.branch import Branch, ParentCandidate
from git_stack_keeper.utils.threading import gather_settled

if TYPE_CHECKING:
    from git_stack_keeper.config import Config
    from git_stack_keeper.services.git.queries import GitQueries

logger = get_logger(__name__)


class TopologyService:
    """Infers the most likely parent of a branch from merge-bases.

    Results of merge-base, rev-parse and commit-count queries are memoized
    on the instance. A fresh instance is meant to serve exactly one
    detection pass; it never invalidates its caches.
    """

    def __init__(self, git_queries: "GitQueries", config: Union["Config", dict]):
        """Initialize the topology service.

        Args:
            git_queries: Read-only git query service
            config: Configuration dictionary or Config object
        """
        self.git_queries = git_queries
        self.config = config
        self.trunk_names: List[str] = list(config.get("trunk_names") or COMMON_TRUNK_NAMES)
        drift_threshold = config.get("drift_threshold")
        self.drift_threshold = DEFAULT_DRIFT_THRESHOLD if drift_threshold is None else drift_threshold
        self.workers = config.get("workers")
        self.sequential = config.get("sequential", False)

        self._merge_base_cache: Dict[str, Optional[str]] = {}
        self._rev_parse_cache: Dict[str, str] = {}
        self._distance_cache: Dict[str, Optional[int]] = {}
        self._cache_lock = Lock()

    def is_trunk_name(self, branch: str) -> bool:
        return branch in self.trunk_names

    # ============ Memoized queries ============

    def merge_base(self, first: str, second: str) -> Optional[str]:
        """Memoized merge-base; None when the refs share no history."""
        key = f"{first}:{second}"
        with self._cache_lock:
            if key in self._merge_base_cache:
                return self._merge_base_cache[key]

        result = self.git_queries.merge_base(first, second)
        if result is not None:
            result = result.strip()

        with self._cache_lock:
            self._merge_base_cache[key] = result
        return result

    def rev_parse(self, ref: str) -> Optional[str]:
        """Memoized commit resolution; failures are not cached."""
        with self._cache_lock:
            if ref in self._rev_parse_cache:
                return self._rev_parse_cache[ref]

        try:
            commit = self.git_queries.resolve_commit(ref)
        except GitOperationError as e:
            logger.debug(f"Could not resolve {ref}: {e}")
            return None

        with self._cache_lock:
            self._rev_parse_cache[ref] = commit
        return commit

    def commit_distance(self, from_ref: str, to_ref: str) -> Optional[int]:
        """Memoized `rev-list --count from..to`; None if it cannot be computed."""
        key = f"{from_ref}:{to_ref}"
        with self._cache_lock:
            if key in self._distance_cache:
                return self._distance_cache[key]

        try:
            distance: Optional[int] = self.git_queries.commit_count(from_ref, to_ref)
        except (GitOperationError, ValueError) as e:
            logger.debug(f"Could not count {from_ref}..{to_ref}: {e}")
            distance = None

        with self._cache_lock:
            self._distance_cache[key] = distance
        return distance

    # ============ Parent detection ============

    def candidate_order(self, branch: str, all_branches: Sequence[Union[Branch, str]]) -> List[str]:
        """Trunk names that exist first, then every other branch, minus branch itself."""
        names = [b.name if isinstance(b, Branch) else b for b in all_branches]
        existing = set(names)
        ordered = [name for name in self.trunk_names if name in existing]
        ordered.extend(name for name in names if name not in self.trunk_names)
        return [name for name in ordered if name != branch]

    def prefetch(self, branches: Sequence[str], all_branches: Sequence[Union[Branch, str]]) -> None:
        """Warm the caches for detecting the parents of many branches at once.

        Runs one batch of merge-bases over every (branch, candidate) pair,
        one batch of candidate heads and one batch of commit counts, so the
        number of sequential query rounds does not grow with the number of
        branches. detect_parent_branch is then answered from the caches.
        """
        pairs = [
            (branch, candidate)
            for branch in branches
            for candidate in self.candidate_order(branch, all_branches)
        ]
        if not pairs:
            return

        merge_bases, _ = gather_settled(
            lambda pair: self.merge_base(*pair),
            pairs,
            max_workers=self.workers,
            sequential=self.sequential,
        )
        valid = [(pair, base) for pair, base in merge_bases if base]

        candidates = list(dict.fromkeys(candidate for (_, candidate), _ in valid))
        heads, _ = gather_settled(
            self.rev_parse, candidates, max_workers=self.workers, sequential=self.sequential
        )
        head_map = {candidate: head for candidate, head in heads if head}

        ranges = []
        for (branch, candidate), base in valid:
            ranges.append((base, branch))
            # Only moved candidates are measured for drift
            if head_map.get(candidate) not in (None, base):
                ranges.append((base, candidate))
        gather_settled(
            lambda refs: self.commit_distance(*refs),
            list(dict.fromkeys(ranges)),
            max_workers=self.workers,
            sequential=self.sequential,
        )
        logger.debug(f"Prefetched {len(pairs)} merge-bases for {len(branches)} branches")

    def detect_parent_branch(
        self, branch: str, all_branches: Sequence[Union[Branch, str]]
    ) -> Optional[str]:
        """Pick the most likely parent of branch among all_branches.

        Candidates are ranked by (priority, distance from merge-base): an
        exact match (candidate head is the merge-base) beats a trunk name,
        which beats any other branch.

        Returns:
            The parent branch name, or None if no candidate qualifies
        """
        candidates = self.candidate_order(branch, all_branches)
        if not candidates:
            return None

        merge_bases, _ = gather_settled(
            lambda candidate: self.merge_base(branch, candidate),
            candidates,
            max_workers=self.workers,
            sequential=self.sequential,
        )
        valid = [(candidate, base) for candidate, base in merge_bases if base]
        if not valid:
            logger.debug(f"No candidate shares history with {branch}")
            return None

        heads, _ = gather_settled(
            self.rev_parse,
            [candidate for candidate, _ in valid],
            max_workers=self.workers,
            sequential=self.sequential,
        )
        head_map = {candidate: head for candidate, head in heads if head}

        scored, _ = gather_settled(
            lambda item: self._score_candidate(branch, item[0], item[1], head_map.get(item[0])),
            valid,
            max_workers=self.workers,
            sequential=self.sequential,
        )
        potential_parents = [candidate for _, candidate in scored if candidate is not None]
        if not potential_parents:
            return None

        # Stable sort keeps candidate order on ties
        potential_parents.sort(key=lambda candidate: candidate.sort_key)
        best = potential_parents[0]
        logger.debug(
            f"Parent of {branch}: {best.branch} (priority {best.priority}, distance {best.distance})"
        )
        return best.branch

    def _score_candidate(
        self, branch: str, candidate: str, merge_base: str, candidate_head: Optional[str]
    ) -> Optional[ParentCandidate]:
        """Rank one candidate, or return None to reject it."""
        if not candidate_head:
            return None

        is_exact_match = candidate_head == merge_base

        distance_from_base = self.commit_distance(merge_base, branch)
        if distance_from_base is None:
            return None

        # Zero distance only counts when the candidate has not moved either
        if distance_from_base == 0 and not is_exact_match:
            logger.debug(f"Rejecting {candidate} for {branch}: branch is not ahead of it")
            return None

        if is_exact_match:
            return ParentCandidate(
                branch=candidate,
                merge_base=merge_base,
                distance=distance_from_base,
                is_exact_match=True,
                priority=PRIORITY_EXACT_MATCH,
            )

        distance_to_candidate = self.commit_distance(merge_base, candidate)
        if distance_to_candidate is None or distance_to_candidate > self.drift_threshold:
            logger.debug(
                f"Rejecting {candidate} for {branch}: moved {distance_to_candidate} commits past the merge-base"
            )
            return None

        return ParentCandidate(
            branch=candidate,
            merge_base=merge_base,
            distance=distance_from_base,
            is_exact_match=False,
            priority=PRIORITY_TRUNK if self.is_trunk_name(candidate) else PRIORITY_OTHER,
        )
