"""Read-only commit-graph queries."""

import re
from typing import List, Optional

from git_stack_keeper.exceptions import GitOperationError
from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.models.branch import Branch
from git_stack_keeper.services.git.base import GitServiceBase

logger = get_logger(__name__)

BRANCH_LIST_FORMAT = "%(refname:short)|%(upstream:short)|%(upstream:track)"

_AHEAD_RE = re.compile(r"ahead (\d+)")
_BEHIND_RE = re.compile(r"behind (\d+)")


def parse_branch_list(output: str) -> List[Branch]:
    """Parse `git for-each-ref` output in BRANCH_LIST_FORMAT."""
    branches = []
    for line in output.split("\n"):
        if not line.strip():
            continue

        name, _, rest = line.partition("|")
        upstream, _, track = rest.partition("|")

        ahead_match = _AHEAD_RE.search(track)
        behind_match = _BEHIND_RE.search(track)

        branches.append(
            Branch(
                name=name,
                remote=upstream.split("/")[0] if upstream else None,
                upstream=upstream or None,
                ahead=int(ahead_match.group(1)) if ahead_match else 0,
                behind=int(behind_match.group(1)) if behind_match else 0,
            )
        )
    return branches


class GitQueries(GitServiceBase):
    """Service for querying refs and the commit graph.

    Nothing here mutates the repository, so every method is safe to call
    from several worker threads at once.
    """

    def resolve_commit(self, ref: str) -> str:
        """Resolve a ref to its full commit hash.

        Raises:
            GitOperationError: If the ref does not resolve
        """
        return self._git(["rev-parse", "--verify", f"{ref}^{{commit}}"], "rev-parse", ref)

    def merge_base(self, first: str, second: str) -> Optional[str]:
        """Get the best common ancestor of two refs, or None if there is none."""
        try:
            return self._git(["merge-base", first, second], "merge-base", first) or None
        except GitOperationError as e:
            logger.debug(f"No merge-base for {first} and {second}: {e}")
            return None

    def commit_count(self, from_ref: str, to_ref: str) -> int:
        """Count commits reachable from to_ref but not from from_ref.

        Raises:
            GitOperationError: If either ref does not resolve
        """
        output = self._git(["rev-list", "--count", f"{from_ref}..{to_ref}"], "rev-list", to_ref)
        return int(output.strip())

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """Check whether ancestor is reachable from descendant.

        Unresolvable refs count as "not an ancestor".
        """
        if not ancestor or not descendant:
            return False
        status, _ = self._git_status(["merge-base", "--is-ancestor", ancestor, descendant])
        if status not in (0, 1):
            logger.debug(f"Ancestry check {ancestor}..{descendant} failed with exit {status}")
        return status == 0

    def branch_exists(self, name: str) -> bool:
        """Check if a local branch exists."""
        try:
            status, _ = self._git_status(["show-ref", "--verify", "--quiet", f"refs/heads/{name}"])
        except GitOperationError as e:
            logger.debug(f"Error checking branch {name}: {e}")
            return False
        return status == 0

    def current_branch(self) -> Optional[str]:
        """Get the checked-out branch name, or None when detached or outside a repository."""
        try:
            status, output = self._git_status(["symbolic-ref", "--quiet", "--short", "HEAD"])
        except GitOperationError as e:
            logger.debug(f"Error reading current branch: {e}")
            return None
        if status != 0:
            return None
        return output.strip() or None

    def list_branches(self) -> List[Branch]:
        """List local branches with upstream tracking information.

        Raises:
            GitOperationError: If the refs cannot be listed
        """
        output = self._git(
            ["for-each-ref", f"--format={BRANCH_LIST_FORMAT}", "refs/heads"], "for-each-ref"
        )
        branches = parse_branch_list(output)

        current = self.current_branch()
        for branch in branches:
            branch.current = branch.name == current

        return branches
