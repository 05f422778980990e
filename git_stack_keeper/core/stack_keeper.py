"""Core functionality for git-stack-keeper"""

import signal
import sys
from typing import Dict, List, Optional, Union

from rich.console import Console

from git_stack_keeper.config import Config
from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.models.stack import BranchStackMetadata, Stack, StackInfo, StackMetadata
from git_stack_keeper.models.sync import StackSyncStatus, SyncResult
from git_stack_keeper.results import StackErrors, StackResult, stack_ok
from git_stack_keeper.services.git import GitConfigStore, GitOperations, GitQueries, WorktreeService
from git_stack_keeper.services.stack_detector import StackDetector
from git_stack_keeper.services.stack_manager import StackManager
from git_stack_keeper.services.sync_service import SyncService

console = Console(stderr=True)
logger = get_logger(__name__)

# Module-level reference to the active StackKeeper instance for signal handling
_active_keeper: Optional["StackKeeper"] = None


def _signal_handler(signum, frame):
    """Handle interrupt signals gracefully."""
    if signum == signal.SIGINT:
        print()  # New line after ^C
        if _active_keeper and _active_keeper.in_git_operation:
            console.print(
                "[yellow]Interrupted during a git operation! "
                "Check for an unfinished rebase or merge with 'git status'.[/yellow]"
            )
        else:
            console.print("[yellow]Interrupted! Cleaning up...[/yellow]")
        sys.exit(1)


def install_signal_handler() -> None:
    signal.signal(signal.SIGINT, _signal_handler)


class StackKeeper:
    """Main class for managing stacked branches."""

    def __init__(self, repo_path: str, config: Optional[Union[Config, dict]] = None):
        """Initialize StackKeeper.

        Args:
            repo_path: Path to git repository
            config: Configuration dict or Config object
        """
        global _active_keeper

        self.repo_path = repo_path
        if config is None:
            self.config = Config()
        elif isinstance(config, dict):
            self.config = Config.from_dict(config)
        else:
            self.config = config

        # Services share one set of git wrappers
        self.git_queries = GitQueries(repo_path)
        self.git_operations = GitOperations(repo_path)
        self.config_store = GitConfigStore(repo_path)
        self.worktree_service = WorktreeService(repo_path)

        self.stack_manager = StackManager(
            repo_path,
            self.config,
            git_queries=self.git_queries,
            config_store=self.config_store,
            git_operations=self.git_operations,
        )
        self.sync_service = SyncService(
            repo_path,
            self.config,
            stack_manager=self.stack_manager,
            git_queries=self.git_queries,
            git_operations=self.git_operations,
        )
        self.stack_detector = StackDetector(
            repo_path,
            self.config,
            git_queries=self.git_queries,
            config_store=self.config_store,
            worktree_service=self.worktree_service,
        )

        _active_keeper = self
        logger.debug(f"StackKeeper ready for {repo_path}")

    @property
    def in_git_operation(self) -> bool:
        """True while a checkout, rebase or merge is running."""
        return self.git_operations.in_git_operation

    # ============ Detection ============

    def detect_stacks(self) -> Dict[str, Stack]:
        """Infer stacks from branch topology without using stack metadata."""
        self.worktree_service.clear_cache()
        return self.stack_detector.detect_stacks()

    # ============ Explicit stacks ============

    def resolve_stack_name(self, name: Optional[str] = None) -> StackResult[str]:
        """Use name if given, otherwise the stack of the checked-out branch."""
        if name:
            return stack_ok(name)
        return self.stack_manager.get_current_branch_stack()

    def init_stack(
        self, name: str, trunk: str, root_branch: Optional[str] = None
    ) -> StackResult[StackMetadata]:
        """Create a stack rooted at root_branch (default: the checked-out branch)."""
        if root_branch is None:
            root_branch = self.git_queries.current_branch()
            if not root_branch:
                return StackErrors.not_in_repo()
        elif not self.git_queries.branch_exists(root_branch):
            return StackErrors.branch_not_found(root_branch)
        return self.stack_manager.init_stack(name, trunk, root_branch)

    def add_branch(
        self, branch: str, parent: str, stack_name: Optional[str] = None
    ) -> StackResult[BranchStackMetadata]:
        if not self.git_queries.branch_exists(branch):
            return StackErrors.branch_not_found(branch)
        if stack_name is None:
            parent_stack = self.stack_manager.get_branch_stack(parent)
            if parent_stack.is_err():
                return parent_stack
            stack_name = parent_stack.value.stack_name
        return self.stack_manager.add_branch(branch, parent, stack_name)

    def create_branch(self, branch: str) -> StackResult[BranchStackMetadata]:
        return self.stack_manager.create_branch(branch)

    def remove_branch(self, branch: str) -> StackResult[None]:
        tracked = self.stack_manager.get_branch_stack(branch)
        if tracked.is_err():
            return tracked
        return self.stack_manager.remove_branch(branch)

    def delete_stack(self, name: str) -> StackResult[None]:
        if self.stack_manager.get_stack_metadata(name).is_err():
            return StackErrors.stack_not_found(name)
        return self.stack_manager.delete_stack(name)

    def list_stacks(self) -> StackResult[List[StackMetadata]]:
        return self.stack_manager.get_all_stacks()

    def stack_info(self, name: Optional[str] = None) -> StackResult[StackInfo]:
        resolved = self.resolve_stack_name(name)
        if resolved.is_err():
            return resolved
        return self.stack_manager.get_full_stack_info(resolved.value)

    # ============ Sync ============

    def stack_status(self, name: Optional[str] = None) -> StackResult[StackSyncStatus]:
        resolved = self.resolve_stack_name(name)
        if resolved.is_err():
            return resolved
        return self.sync_service.get_stack_sync_status(resolved.value)

    def sync(
        self, name: Optional[str] = None, merge: Optional[bool] = None, force: Optional[bool] = None
    ) -> StackResult[List[SyncResult]]:
        """Sync a whole stack; merge and force default to the configured values."""
        resolved = self.resolve_stack_name(name)
        if resolved.is_err():
            return resolved
        return self.sync_service.sync_stack(
            resolved.value,
            merge=self.config.merge if merge is None else merge,
            force=self.config.force if force is None else force,
        )

    def sync_branch(
        self, branch: str, merge: Optional[bool] = None, force: Optional[bool] = None
    ) -> StackResult[SyncResult]:
        return self.sync_service.sync_branch(
            branch,
            merge=self.config.merge if merge is None else merge,
            force=self.config.force if force is None else force,
        )

    def restack(self, name: Optional[str] = None) -> StackResult[None]:
        resolved = self.resolve_stack_name(name)
        if resolved.is_err():
            return resolved
        return self.sync_service.restack_branches(resolved.value)
