"""Flat key/value metadata stored in the repository's local git config."""

from typing import List, Optional, Tuple

from git_stack_keeper.exceptions import GitOperationError
from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.services.git.base import GitServiceBase

logger = get_logger(__name__)

# `git config` exit codes that mean "nothing there" rather than failure
_MISSING_KEY = 1
_UNSET_MISSING_KEY = 5


class GitConfigStore(GitServiceBase):
    """Exact-key and regexp access to `git config --local`."""

    def get(self, key: str) -> Optional[str]:
        """Get a value, or None if the key is unset or empty.

        Raises:
            GitOperationError: If git config itself fails
        """
        status, output = self._git_status(["config", "--local", "--get", key])
        if status == _MISSING_KEY:
            return None
        if status != 0:
            raise GitOperationError("config --get", message=f"Failed to read {key} (exit {status})")
        return output.strip() or None

    def set(self, key: str, value: str) -> None:
        """Set a value, replacing any existing one."""
        logger.debug(f"Setting {key} = {value}")
        self._git(["config", "--local", key, value], "config")

    def unset(self, key: str) -> None:
        """Remove a key. Removing a key that is not set is not an error."""
        status, _ = self._git_status(["config", "--local", "--unset", key])
        if status not in (0, _UNSET_MISSING_KEY):
            raise GitOperationError("config --unset", message=f"Failed to unset {key} (exit {status})")
        if status == 0:
            logger.debug(f"Unset {key}")

    def get_regexp(self, pattern: str) -> List[Tuple[str, str]]:
        """Get every (key, value) pair whose key matches pattern, in config order."""
        status, output = self._git_status(["config", "--local", "--get-regexp", pattern])
        if status == _MISSING_KEY:
            return []
        if status != 0:
            raise GitOperationError(
                "config --get-regexp", message=f"Failed to list {pattern} (exit {status})"
            )

        entries = []
        for line in output.split("\n"):
            if not line.strip():
                continue
            key, _, value = line.partition(" ")
            entries.append((key, value.strip()))
        return entries
