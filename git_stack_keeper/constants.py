"""Shared constants for git-stack-keeper."""

from typing import List

# Branch names treated as likely trunks by the parent heuristic
COMMON_TRUNK_NAMES: List[str] = ["main", "master", "develop", "dev"]

# How far (in commits) a non-exact candidate parent may have moved past the
# merge-base and still be accepted
DEFAULT_DRIFT_THRESHOLD = 50

# Candidate priorities, lower wins
PRIORITY_EXACT_MATCH = 0
PRIORITY_TRUNK = 1
PRIORITY_OTHER = 2

# Porcelain status codes that mark an unresolved conflict
CONFLICT_STATUS_CODES = ("UU", "AA", "DD")

# Metadata key layout in the repository's local git config
STACK_TRUNK_KEY = "stacks.{name}.trunk"
STACK_ROOT_KEY = "stacks.{name}.root"
STACK_CREATED_KEY = "stacks.{name}.created"
BRANCH_STACK_NAME_KEY = "branch.{name}.stackname"
BRANCH_STACK_PARENT_KEY = "branch.{name}.stackparent"
BRANCH_STACK_BASE_KEY = "branch.{name}.stackbase"

# Explicit parent hints used by stack detection
BRANCH_PARENT_KEY = "branch.{name}.parent"

STACK_TRUNK_PATTERN = r"^stacks\..*\.trunk$"
BRANCH_STACK_NAME_PATTERN = r"^branch\..*\.stackname$"
BRANCH_PARENT_PATTERN = r"^branch\..*\.parent$"

# Sync status display colors (Rich color names)
SYNC_STATUS_COLORS = {
    "synced": "green",
    "behind": "yellow",
    "diverged": "red",
    "error": "magenta",
}
