"""Explicit stack tracking stored as flat keys in the repository's git config.

Layout:

    stacks.<name>.trunk         = main
    stacks.<name>.root          = feature/auth
    stacks.<name>.created       = 2024-01-15T10:30:00+00:00

    branch.<name>.stackname     = auth-feature
    branch.<name>.stackparent   = main
    branch.<name>.stackbase     = <commit the branch was last based on>
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Union, TYPE_CHECKING

from git_stack_keeper.constants import (
    BRANCH_STACK_BASE_KEY,
    BRANCH_STACK_NAME_KEY,
    BRANCH_STACK_NAME_PATTERN,
    BRANCH_STACK_PARENT_KEY,
    STACK_CREATED_KEY,
    STACK_ROOT_KEY,
    STACK_TRUNK_KEY,
    STACK_TRUNK_PATTERN,
)
from git_stack_keeper.exceptions import ErrorCode, GitOperationError
from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.models.stack import BranchStackMetadata, StackInfo, StackMetadata
from git_stack_keeper.results import StackErrors, StackResult, stack_err, stack_ok
from git_stack_keeper.services.git.config_store import GitConfigStore
from git_stack_keeper.services.git.operations import GitOperations
from git_stack_keeper.services.git.queries import GitQueries

if TYPE_CHECKING:
    from git_stack_keeper.config import Config

logger = get_logger(__name__)


def _strip_key(key: str, prefix: str, suffix: str) -> Optional[str]:
    """Extract the middle of `<prefix><name><suffix>`, or None if key has another shape."""
    if key.startswith(prefix) and key.endswith(suffix) and len(key) > len(prefix) + len(suffix):
        return key[len(prefix):-len(suffix)]
    return None


class StackManager:
    """CRUD for explicit stacks and their member branches.

    Every public method returns a StackResult; git failures are reported
    as GIT_ERROR (commands) or CONFIG_ERROR (metadata access).
    """

    def __init__(
        self,
        repo_path: str,
        config: Optional[Union["Config", dict]] = None,
        git_queries: Optional[GitQueries] = None,
        config_store: Optional[GitConfigStore] = None,
        git_operations: Optional[GitOperations] = None,
    ):
        self.repo_path = repo_path
        self.config = config or {}
        self.git_queries = git_queries or GitQueries(repo_path)
        self.config_store = config_store or GitConfigStore(repo_path)
        self.git_operations = git_operations or GitOperations(repo_path)

        logger.debug("Stack manager initialized")

    # ============ Stacks ============

    def init_stack(self, stack_name: str, trunk: str, root_branch: str) -> StackResult[StackMetadata]:
        """Create a stack rooted at root_branch and targeting trunk."""
        if not self.git_queries.branch_exists(trunk):
            return StackErrors.invalid_trunk(trunk)

        if self.get_stack_metadata(stack_name).is_ok():
            return StackErrors.stack_exists(stack_name)

        existing = self.get_branch_stack(root_branch)
        if existing.is_ok():
            return StackErrors.already_in_stack(root_branch, existing.value.stack_name)

        base_commit = self._get_current_commit()
        if base_commit.is_err():
            return base_commit

        created_at = datetime.now(timezone.utc).isoformat()
        try:
            self.config_store.set(STACK_TRUNK_KEY.format(name=stack_name), trunk)
            self.config_store.set(STACK_ROOT_KEY.format(name=stack_name), root_branch)
            self.config_store.set(STACK_CREATED_KEY.format(name=stack_name), created_at)
        except GitOperationError as e:
            self._discard_stack_keys(stack_name)
            return StackErrors.config_error(str(e))

        # The root branch's parent is the trunk
        result = self._set_branch_stack_metadata(
            root_branch, BranchStackMetadata(stack_name, trunk, base_commit.value)
        )
        if result.is_err():
            self.remove_branch(root_branch)
            self._discard_stack_keys(stack_name)
            return result

        logger.info(f"Initialized stack {stack_name} ({root_branch} on {trunk})")
        return stack_ok(StackMetadata(name=stack_name, trunk=trunk, root=root_branch, created_at=created_at))

    def get_stack_metadata(self, stack_name: str) -> StackResult[StackMetadata]:
        try:
            trunk = self.config_store.get(STACK_TRUNK_KEY.format(name=stack_name))
            root = self.config_store.get(STACK_ROOT_KEY.format(name=stack_name))
            created_at = self.config_store.get(STACK_CREATED_KEY.format(name=stack_name))
        except GitOperationError as e:
            return StackErrors.config_error(str(e))

        if not trunk or not root:
            return StackErrors.stack_not_found(stack_name)

        return stack_ok(StackMetadata(name=stack_name, trunk=trunk, root=root, created_at=created_at or ""))

    def get_all_stacks(self) -> StackResult[List[StackMetadata]]:
        """All stacks in config order; an empty list when none are tracked."""
        try:
            entries = self.config_store.get_regexp(STACK_TRUNK_PATTERN)
        except GitOperationError as e:
            return StackErrors.config_error(str(e))

        stacks = []
        for key, _ in entries:
            name = _strip_key(key, "stacks.", ".trunk")
            if name is None:
                continue
            metadata = self.get_stack_metadata(name)
            if metadata.is_ok():
                stacks.append(metadata.value)
        return stack_ok(stacks)

    def get_stack_branches(self, stack_name: str) -> StackResult[Dict[str, BranchStackMetadata]]:
        """Tracked branches of a stack keyed by name; empty when none are tracked."""
        try:
            entries = self.config_store.get_regexp(BRANCH_STACK_NAME_PATTERN)
        except GitOperationError as e:
            return StackErrors.config_error(str(e))

        branches: Dict[str, BranchStackMetadata] = {}
        for key, value in entries:
            branch = _strip_key(key, "branch.", ".stackname")
            if branch is None or value != stack_name:
                continue
            metadata = self.get_branch_stack(branch)
            if metadata.is_ok():
                branches[branch] = metadata.value
        return stack_ok(branches)

    def get_full_stack_info(self, stack_name: str) -> StackResult[StackInfo]:
        metadata = self.get_stack_metadata(stack_name)
        if metadata.is_err():
            return metadata

        branches = self.get_stack_branches(stack_name)
        if branches.is_err():
            return branches

        return stack_ok(StackInfo(metadata=metadata.value, branches=branches.value))

    def delete_stack(self, stack_name: str) -> StackResult[None]:
        """Delete a stack, removing every member branch's metadata first."""
        branches = self.get_stack_branches(stack_name)
        if branches.is_err():
            return branches

        for branch in branches.value:
            result = self.remove_branch(branch)
            if result.is_err():
                return result

        try:
            self._unset_stack_keys(stack_name)
        except GitOperationError as e:
            return StackErrors.config_error(str(e))

        logger.info(f"Deleted stack {stack_name} ({len(branches.value)} branches)")
        return stack_ok()

    # ============ Branches ============

    def add_branch(
        self, branch_name: str, parent_branch: str, stack_name: str
    ) -> StackResult[BranchStackMetadata]:
        """Track branch_name in stack_name as a child of parent_branch."""
        if self.get_stack_metadata(stack_name).is_err():
            return StackErrors.stack_not_found(stack_name)

        parent_stack = self.get_branch_stack(parent_branch)
        if parent_stack.is_err():
            return StackErrors.not_in_stack(parent_branch)
        if parent_stack.value.stack_name != stack_name:
            return stack_err(
                ErrorCode.CONFIG_ERROR,
                f"Parent branch '{parent_branch}' is in a different stack '{parent_stack.value.stack_name}'",
                {"branch": parent_branch, "stack": parent_stack.value.stack_name},
            )

        existing = self.get_branch_stack(branch_name)
        if existing.is_ok():
            return StackErrors.already_in_stack(branch_name, existing.value.stack_name)

        base_commit = self._get_current_commit()
        if base_commit.is_err():
            return base_commit

        metadata = BranchStackMetadata(stack_name=stack_name, parent=parent_branch, base_commit=base_commit.value)
        result = self._set_branch_stack_metadata(branch_name, metadata)
        if result.is_err():
            return result

        logger.info(f"Added {branch_name} to stack {stack_name} on top of {parent_branch}")
        return stack_ok(metadata)

    def get_branch_stack(self, branch_name: str) -> StackResult[BranchStackMetadata]:
        try:
            stack_name = self.config_store.get(BRANCH_STACK_NAME_KEY.format(name=branch_name))
            parent = self.config_store.get(BRANCH_STACK_PARENT_KEY.format(name=branch_name))
            base_commit = self.config_store.get(BRANCH_STACK_BASE_KEY.format(name=branch_name))
        except GitOperationError as e:
            return StackErrors.config_error(str(e))

        if not stack_name or not parent:
            return StackErrors.not_in_stack(branch_name)

        return stack_ok(BranchStackMetadata(stack_name=stack_name, parent=parent, base_commit=base_commit or ""))

    def update_branch_base(self, branch_name: str, new_base: str) -> StackResult[None]:
        """Overwrite the recorded base commit of a branch."""
        try:
            self.config_store.set(BRANCH_STACK_BASE_KEY.format(name=branch_name), new_base)
        except GitOperationError as e:
            return StackErrors.config_error(str(e))
        return stack_ok()

    def remove_branch(self, branch_name: str) -> StackResult[None]:
        """Forget a branch's stack metadata. Missing keys are ignored."""
        try:
            self.config_store.unset(BRANCH_STACK_NAME_KEY.format(name=branch_name))
            self.config_store.unset(BRANCH_STACK_PARENT_KEY.format(name=branch_name))
            self.config_store.unset(BRANCH_STACK_BASE_KEY.format(name=branch_name))
        except GitOperationError as e:
            return StackErrors.config_error(str(e))

        logger.debug(f"Removed stack metadata for {branch_name}")
        return stack_ok()

    def get_current_branch_stack(self) -> StackResult[str]:
        """Name of the stack the checked-out branch belongs to."""
        current = self.git_queries.current_branch()
        if not current:
            return StackErrors.not_in_repo()

        branch_stack = self.get_branch_stack(current)
        if branch_stack.is_err():
            return branch_stack
        return stack_ok(branch_stack.value.stack_name)

    def create_branch(self, branch_name: str) -> StackResult[BranchStackMetadata]:
        """Create branch_name from the current branch and stack it on top.

        The new branch is checked out. If it cannot be recorded, the
        original branch is checked out again and the new ref is deleted.
        """
        current = self.git_queries.current_branch()
        if not current:
            return StackErrors.not_in_repo()

        current_stack = self.get_branch_stack(current)
        if current_stack.is_err():
            return current_stack

        existing = self.get_branch_stack(branch_name)
        if existing.is_ok():
            return StackErrors.already_in_stack(branch_name, existing.value.stack_name)

        if self.git_queries.branch_exists(branch_name):
            return StackErrors.git_error("checkout -b", f"branch '{branch_name}' already exists")

        try:
            self.git_operations.checkout_new(branch_name)
        except GitOperationError as e:
            return StackErrors.git_error("checkout -b", str(e))

        result = self.add_branch(branch_name, current, current_stack.value.stack_name)
        if result.is_err():
            logger.warning(f"Could not record {branch_name}, rolling back")
            try:
                self.git_operations.checkout(current)
                self.git_operations.delete_branch(branch_name, force=True)
            except GitOperationError as e:
                logger.warning(f"Rollback of {branch_name} incomplete: {e}")
        return result

    # ============ Private helpers ============

    def _unset_stack_keys(self, stack_name: str) -> None:
        self.config_store.unset(STACK_TRUNK_KEY.format(name=stack_name))
        self.config_store.unset(STACK_ROOT_KEY.format(name=stack_name))
        self.config_store.unset(STACK_CREATED_KEY.format(name=stack_name))

    def _discard_stack_keys(self, stack_name: str) -> None:
        """Undo a partially written stack so the name can be used again."""
        try:
            self._unset_stack_keys(stack_name)
        except GitOperationError as e:
            logger.warning(f"Could not clean up stack {stack_name}: {e}")

    def _get_current_commit(self) -> StackResult[str]:
        try:
            return stack_ok(self.git_queries.resolve_commit("HEAD"))
        except GitOperationError as e:
            return StackErrors.git_error("rev-parse", str(e))

    def _set_branch_stack_metadata(self, branch_name: str, metadata: BranchStackMetadata) -> StackResult[None]:
        try:
            self.config_store.set(BRANCH_STACK_NAME_KEY.format(name=branch_name), metadata.stack_name)
            self.config_store.set(BRANCH_STACK_PARENT_KEY.format(name=branch_name), metadata.parent)
            self.config_store.set(BRANCH_STACK_BASE_KEY.format(name=branch_name), metadata.base_commit)
        except GitOperationError as e:
            return StackErrors.config_error(str(e))
        return stack_ok()
