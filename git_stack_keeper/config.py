"""Configuration handling for git-stack-keeper"""

from dataclasses import dataclass, field
from typing import Optional, List

from git_stack_keeper.constants import COMMON_TRUNK_NAMES, DEFAULT_DRIFT_THRESHOLD


@dataclass
class Config:
    """Configuration for git-stack-keeper with validation."""

    # Stack detection
    trunk_names: List[str] = field(default_factory=lambda: list(COMMON_TRUNK_NAMES))
    drift_threshold: int = DEFAULT_DRIFT_THRESHOLD

    # Sync behavior
    merge: bool = False  # Merge the parent in instead of rebasing
    force: bool = False  # Sync even with uncommitted changes

    # Execution modes
    verbose: bool = False
    debug: bool = False
    sequential: bool = False  # Run topology queries without the thread pool
    workers: Optional[int] = None  # Number of parallel workers (None = auto-detect)

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_trunk_names()
        self._validate_drift_threshold()
        self._validate_workers()

    def _validate_trunk_names(self):
        """Validate trunk_names is a non-empty list of names."""
        if not isinstance(self.trunk_names, list):
            raise ValueError("trunk_names must be a list")
        names = [name.strip() for name in self.trunk_names if name and name.strip()]
        if not names:
            raise ValueError("trunk_names cannot be empty")
        self.trunk_names = names

    def _validate_drift_threshold(self):
        """Validate drift_threshold is not negative."""
        if self.drift_threshold < 0:
            raise ValueError(f"drift_threshold must not be negative, got {self.drift_threshold}")

    def _validate_workers(self):
        """Validate workers is positive when given."""
        if self.workers is not None and self.workers <= 0:
            raise ValueError(f"workers must be positive, got {self.workers}")

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "trunk_names": self.trunk_names,
            "drift_threshold": self.drift_threshold,
            "merge": self.merge,
            "force": self.force,
            "verbose": self.verbose,
            "debug": self.debug,
            "sequential": self.sequential,
            "workers": self.workers,
        }

    def get(self, key: str, default=None):
        """Get config value by key so services can take a Config or a dict."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary."""
        known_fields = {
            "trunk_names",
            "drift_threshold",
            "merge",
            "force",
            "verbose",
            "debug",
            "sequential",
            "workers",
        }

        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)
