"""Utility functions for git-stack-keeper.

- threading: worker sizing and the scatter/gather helper used for
  read-only git queries
"""

from .threading import (
    gather_settled,
    get_optimal_worker_count,
    get_threading_info,
    is_free_threading_enabled,
)

__all__ = [
    "gather_settled",
    "get_optimal_worker_count",
    "get_threading_info",
    "is_free_threading_enabled",
]
