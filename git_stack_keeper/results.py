"""Tagged success/error values returned by stack operations."""

from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, TypeVar

from git_stack_keeper.exceptions import ErrorCode, StackError

T = TypeVar("T")


@dataclass(frozen=True)
class StackResult(Generic[T]):
    """Either a value or a StackError, never both."""

    value: Optional[T] = None
    error: Optional[StackError] = None

    def is_ok(self) -> bool:
        return self.error is None

    def is_err(self) -> bool:
        return self.error is not None

    def unwrap(self) -> T:
        """Return the value, raising the carried error if there is one."""
        if self.error is not None:
            raise self.error
        return self.value

    def unwrap_or(self, default: T) -> T:
        if self.error is not None:
            return default
        return self.value


def stack_ok(value: Any = None) -> StackResult:
    """Create a successful result."""
    return StackResult(value=value)


def stack_err(
    code: ErrorCode,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    suggestion: Optional[str] = None,
) -> StackResult:
    """Create an error result."""
    return StackResult(error=StackError(code, message, details, suggestion))


class StackErrors:
    """Canonical error results with consistent messages and hints."""

    @staticmethod
    def not_in_repo() -> StackResult:
        return stack_err(
            ErrorCode.NOT_IN_REPO,
            "Not in a git repository",
            suggestion="Run this command from within a git repository",
        )

    @staticmethod
    def branch_not_found(branch: str) -> StackResult:
        return stack_err(
            ErrorCode.BRANCH_NOT_FOUND,
            f"Branch '{branch}' not found",
            {"branch": branch},
            f"Create the branch first with 'git checkout -b {branch}'",
        )

    @staticmethod
    def stack_not_found(name: Optional[str] = None) -> StackResult:
        message = f"Stack '{name}' not found" if name else "Current branch is not part of a stack"
        return stack_err(
            ErrorCode.STACK_NOT_FOUND,
            message,
            {"name": name},
            "Initialize a stack with 'git-stack-keeper init <name> --trunk <branch>'",
        )

    @staticmethod
    def stack_exists(name: str) -> StackResult:
        return stack_err(
            ErrorCode.STACK_EXISTS,
            f"Stack '{name}' already exists",
            {"name": name},
            "Use a different name or remove the existing stack first",
        )

    @staticmethod
    def already_in_stack(branch: str, stack: str) -> StackResult:
        return stack_err(
            ErrorCode.ALREADY_IN_STACK,
            f"Branch '{branch}' is already in stack '{stack}'",
            {"branch": branch, "stack": stack},
            f"Remove it from the stack first with 'git-stack-keeper remove {branch}'",
        )

    @staticmethod
    def not_in_stack(branch: str) -> StackResult:
        return stack_err(
            ErrorCode.NOT_IN_STACK,
            f"Branch '{branch}' is not part of any stack",
            {"branch": branch},
            "Add it to a stack with 'git-stack-keeper add' or create a new stack",
        )

    @staticmethod
    def sync_conflict(branch: str, files: List[str]) -> StackResult:
        return stack_err(
            ErrorCode.SYNC_CONFLICT,
            f"Conflict while syncing '{branch}'",
            {"branch": branch, "files": files},
            "Resolve the conflicts manually, then run sync again",
        )

    @staticmethod
    def uncommitted_changes(branch: str) -> StackResult:
        return stack_err(
            ErrorCode.UNCOMMITTED_CHANGES,
            f"Branch '{branch}' has uncommitted changes",
            {"branch": branch},
            "Commit or stash your changes before syncing",
        )

    @staticmethod
    def invalid_trunk(trunk: str) -> StackResult:
        return stack_err(
            ErrorCode.INVALID_TRUNK,
            f"Trunk branch '{trunk}' does not exist",
            {"trunk": trunk},
            "Specify a valid branch as the trunk",
        )

    @staticmethod
    def git_error(operation: str, message: str) -> StackResult:
        return stack_err(
            ErrorCode.GIT_ERROR,
            f"Git {operation} failed: {message}",
            {"operation": operation},
        )

    @staticmethod
    def config_error(message: str) -> StackResult:
        return stack_err(ErrorCode.CONFIG_ERROR, f"Configuration error: {message}")
