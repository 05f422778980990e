"""Custom exceptions for git-stack-keeper"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Kinds of failure a stack operation can report."""

    NOT_IN_REPO = "NOT_IN_REPO"
    BRANCH_NOT_FOUND = "BRANCH_NOT_FOUND"
    STACK_NOT_FOUND = "STACK_NOT_FOUND"
    STACK_EXISTS = "STACK_EXISTS"
    ALREADY_IN_STACK = "ALREADY_IN_STACK"
    NOT_IN_STACK = "NOT_IN_STACK"
    SYNC_CONFLICT = "SYNC_CONFLICT"
    UNCOMMITTED_CHANGES = "UNCOMMITTED_CHANGES"
    INVALID_TRUNK = "INVALID_TRUNK"
    CONFIG_ERROR = "CONFIG_ERROR"
    GIT_ERROR = "GIT_ERROR"


class GitStackKeeperError(Exception):
    """Base exception for all git-stack-keeper errors."""
    pass


class GitOperationError(GitStackKeeperError):
    """Exception raised for errors in Git operations."""

    def __init__(self, operation: str, branch: Optional[str] = None, message: Optional[str] = None):
        self.operation = operation
        self.branch = branch
        self.message = message

        error_msg = f"Git operation '{operation}' failed"
        if branch:
            error_msg += f" for branch '{branch}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class StackError(GitStackKeeperError):
    """Structured error carried by a failed stack operation.

    Stack operations return these inside a ``StackResult`` rather than
    raising them; ``StackResult.unwrap()`` is the only place one is raised.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.suggestion = suggestion
        super().__init__(message)

    def format(self) -> str:
        """Format error for CLI display."""
        output = self.message
        if self.suggestion:
            output += f"\n\nSuggestion: {self.suggestion}"
        return output

    def __repr__(self) -> str:
        return f"StackError({self.code.value}, {self.message!r})"
