"""Drift detection and replay of stacked branches onto their parents"""

from collections import deque
from typing import Dict, List, Optional, Union, TYPE_CHECKING

from git_stack_keeper.exceptions import ErrorCode, GitOperationError
from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.models.stack import BranchStackMetadata
from git_stack_keeper.models.sync import BranchSyncStatus, StackSyncStatus, SyncResult, SyncStatus
from git_stack_keeper.results import StackErrors, StackResult, stack_err, stack_ok
from git_stack_keeper.services.git.operations import GitOperations
from git_stack_keeper.services.git.queries import GitQueries
from git_stack_keeper.services.stack_manager import StackManager

if TYPE_CHECKING:
    from git_stack_keeper.config import Config

logger = get_logger(__name__)


def order_branches(branches: Dict[str, BranchStackMetadata], trunk: str) -> List[str]:
    """Order tracked branches root first by walking parent links out from trunk.

    Siblings keep the order they appear in branches. Branches whose parent
    chain never reaches trunk are left out.
    """
    children: Dict[str, List[str]] = {}
    for name, meta in branches.items():
        children.setdefault(meta.parent, []).append(name)

    ordered: List[str] = []
    visited = {trunk}
    queue = deque([trunk])
    while queue:
        parent = queue.popleft()
        for child in children.get(parent, []):
            if child in visited:
                continue
            visited.add(child)
            ordered.append(child)
            queue.append(child)

    unreachable = [name for name in branches if name not in visited]
    if unreachable:
        logger.debug(f"Branches not reachable from {trunk}: {', '.join(unreachable)}")
    return ordered


class SyncService:
    """Service for checking and restoring the sync state of explicit stacks."""

    def __init__(
        self,
        repo_path: str,
        config: Optional[Union["Config", dict]] = None,
        stack_manager: Optional[StackManager] = None,
        git_queries: Optional[GitQueries] = None,
        git_operations: Optional[GitOperations] = None,
    ):
        """Initialize the sync service.

        Args:
            repo_path: Path to the git repository
            config: Configuration dictionary or Config object
            stack_manager: Explicit stack store (created if omitted)
            git_queries: Query service (created if omitted)
            git_operations: Mutation service (created if omitted)
        """
        self.repo_path = repo_path
        self.config = config or {}
        self.git_queries = git_queries or GitQueries(repo_path)
        self.git_operations = git_operations or GitOperations(repo_path)
        self.stack_manager = stack_manager or StackManager(
            repo_path,
            self.config,
            git_queries=self.git_queries,
            git_operations=self.git_operations,
        )

        logger.debug("Sync service initialized")

    @property
    def in_git_operation(self) -> bool:
        return self.git_operations.in_git_operation

    # ============ Status ============

    def get_stack_sync_status(self, stack_name: str) -> StackResult[StackSyncStatus]:
        """Sync status of every branch in a stack, parents before children."""
        stack_meta = self.stack_manager.get_stack_metadata(stack_name)
        if stack_meta.is_err():
            return stack_meta

        branches = self.stack_manager.get_stack_branches(stack_name)
        if branches.is_err():
            return branches

        trunk = stack_meta.value.trunk
        statuses = [
            self.get_branch_sync_status(name, branches.value[name])
            for name in order_branches(branches.value, trunk)
        ]

        return stack_ok(
            StackSyncStatus(
                stack_name=stack_name,
                trunk=trunk,
                branches=statuses,
                needs_sync=any(status.needs_sync for status in statuses),
            )
        )

    def get_branch_sync_status(self, branch: str, meta: BranchStackMetadata) -> BranchSyncStatus:
        """Classify a branch as synced, behind, diverged or error against its parent."""
        status = BranchSyncStatus(branch=branch, parent=meta.parent, base_commit=meta.base_commit)

        try:
            parent_head = self.git_queries.resolve_commit(meta.parent)
        except GitOperationError as e:
            status.status = SyncStatus.ERROR
            status.error = str(e)
            return status
        status.parent_head = parent_head

        if meta.base_commit == parent_head:
            return status

        if self.git_queries.is_ancestor(meta.base_commit, parent_head):
            # Parent moved forward
            status.status = SyncStatus.BEHIND
            status.commits_behind = self._count_commits(meta.base_commit, parent_head)
            return status

        # Parent history was rewritten
        status.status = SyncStatus.DIVERGED
        merge_base = self.git_queries.merge_base(branch, meta.parent)
        if merge_base and merge_base != meta.base_commit:
            status.commits_behind = self._count_commits(merge_base, parent_head)
            status.commits_ahead = self._count_commits(merge_base, branch)
        return status

    # ============ Sync ============

    def sync_branch(self, branch: str, merge: bool = False, force: bool = False) -> StackResult[SyncResult]:
        """Replay branch onto its recorded parent and record the new base.

        The originally checked-out branch is restored on every exit, and a
        conflicting rebase or merge is aborted before returning.

        Args:
            branch: Tracked branch to sync
            merge: Merge the parent in instead of rebasing
            force: Sync even if the working tree has uncommitted changes
        """
        branch_meta = self.stack_manager.get_branch_stack(branch)
        if branch_meta.is_err():
            return branch_meta
        meta = branch_meta.value

        try:
            dirty = self.git_operations.has_uncommitted_changes()
        except GitOperationError as e:
            return StackErrors.git_error("status", str(e))
        if dirty and not force:
            return StackErrors.uncommitted_changes(branch)

        original_branch = self.git_queries.current_branch()

        try:
            self.git_operations.checkout(branch)
        except GitOperationError as e:
            return stack_err(ErrorCode.GIT_ERROR, f"Failed to checkout {branch}: {e}", {"branch": branch})

        try:
            replayed = self._replay(branch, meta.parent, merge)
            if replayed.is_err():
                return replayed

            try:
                new_base = self.git_queries.resolve_commit(meta.parent)
            except GitOperationError as e:
                return stack_err(ErrorCode.GIT_ERROR, f"Failed to get parent HEAD: {e}", {"branch": branch})

            updated = self.stack_manager.update_branch_base(branch, new_base)
            if updated.is_err():
                return updated

            logger.info(f"Synced {branch} onto {meta.parent} at {new_base[:8]}")
            return stack_ok(SyncResult(branch=branch, success=True, new_base=new_base))
        finally:
            self._restore_branch(original_branch, branch)

    def sync_stack(self, stack_name: str, merge: bool = False, force: bool = False) -> StackResult[List[SyncResult]]:
        """Sync every out-of-date branch root first, stopping at the first failure.

        Each branch is evaluated only after its parent has been synced, so a
        child left behind by its parent's rebase is synced in the same run.
        """
        stack_meta = self.stack_manager.get_stack_metadata(stack_name)
        if stack_meta.is_err():
            return stack_meta

        branches = self.stack_manager.get_stack_branches(stack_name)
        if branches.is_err():
            return branches

        results: List[SyncResult] = []
        for name in order_branches(branches.value, stack_meta.value.trunk):
            branch_status = self.get_branch_sync_status(name, branches.value[name])
            if branch_status.status == SyncStatus.SYNCED:
                results.append(SyncResult(branch=branch_status.branch, success=True))
                continue

            if branch_status.status == SyncStatus.ERROR:
                results.append(SyncResult(branch=branch_status.branch, success=False, error=branch_status.error))
                continue

            synced = self.sync_branch(branch_status.branch, merge=merge, force=force)
            if synced.is_err():
                results.append(
                    SyncResult(
                        branch=branch_status.branch,
                        success=False,
                        error=synced.error.message,
                        conflict_files=synced.error.details.get("files"),
                    )
                )
                logger.warning(f"Stopping sync of {stack_name} at {branch_status.branch}")
                break

            results.append(synced.value)

        return stack_ok(results)

    def restack_branches(self, stack_name: str) -> StackResult[None]:
        """Record every branch's parent head as its base without touching history."""
        if self.stack_manager.get_stack_metadata(stack_name).is_err():
            return StackErrors.stack_not_found(stack_name)

        branches = self.stack_manager.get_stack_branches(stack_name)
        if branches.is_err():
            return branches

        for branch, meta in branches.value.items():
            try:
                parent_head = self.git_queries.resolve_commit(meta.parent)
            except GitOperationError as e:
                return stack_err(ErrorCode.GIT_ERROR, f"Failed to get parent HEAD: {e}", {"branch": branch})

            updated = self.stack_manager.update_branch_base(branch, parent_head)
            if updated.is_err():
                return updated
            logger.debug(f"Restacked {branch} on {meta.parent} at {parent_head[:8]}")

        return stack_ok()

    # ============ Private helpers ============

    def _replay(self, branch: str, parent: str, merge: bool) -> StackResult[None]:
        """Rebase or merge the checked-out branch; abort it if it fails."""
        operation = "merge" if merge else "rebase"
        try:
            if merge:
                self.git_operations.merge_in(parent)
            else:
                self.git_operations.rebase_onto(parent)
            return stack_ok()
        except GitOperationError as e:
            failure = e

        try:
            conflicts = self.git_operations.conflicted_files()
        except GitOperationError as e:
            logger.debug(f"Could not read status after failed {operation}: {e}")
            conflicts = []

        # Leave a clean tree behind whatever went wrong
        try:
            if merge:
                self.git_operations.abort_merge()
            else:
                self.git_operations.abort_rebase()
        except GitOperationError as e:
            logger.debug(f"Nothing to abort after failed {operation}: {e}")

        if conflicts:
            logger.warning(f"Conflict while syncing {branch}: {', '.join(conflicts)}")
            return StackErrors.sync_conflict(branch, conflicts)
        return StackErrors.git_error(operation, failure.message or str(failure))

    def _restore_branch(self, original_branch: Optional[str], synced_branch: str) -> None:
        if not original_branch or original_branch == synced_branch:
            return
        try:
            self.git_operations.checkout(original_branch)
        except GitOperationError as e:
            logger.warning(f"Could not return to {original_branch}: {e}")

    def _count_commits(self, from_ref: str, to_ref: str) -> int:
        try:
            return self.git_queries.commit_count(from_ref, to_ref)
        except (GitOperationError, ValueError) as e:
            logger.debug(f"Could not count {from_ref}..{to_ref}: {e}")
            return 0
