"""Threading utilities: worker sizing and scatter/gather of independent queries."""

import os
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from git_stack_keeper.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def is_free_threading_enabled() -> bool:
    """Detect if Python is running with free-threading enabled.

    Returns:
        True if running on Python 3.13+ with the GIL disabled, False otherwise
    """
    # sys._is_gil_enabled() only exists on 3.13+
    is_gil_enabled = getattr(sys, "_is_gil_enabled", None)
    if is_gil_enabled is None:
        return False
    return not is_gil_enabled()


def get_optimal_worker_count(user_specified: Optional[int] = None) -> int:
    """Calculate worker count for I/O-bound git subprocess fan-out.

    Args:
        user_specified: User-specified worker count, if provided

    Returns:
        Number of workers for parallel processing
    """
    if user_specified is not None and user_specified > 0:
        return user_specified

    cpu_count = os.cpu_count() or 1

    if is_free_threading_enabled():
        return min(64, cpu_count * 2)

    # Git queries spend their time waiting on subprocesses
    return min(32, cpu_count + 4)


def get_threading_info() -> Dict[str, Any]:
    """Get information about the Python threading configuration."""
    return {
        "free_threading": is_free_threading_enabled(),
        "cpu_count": os.cpu_count() or 1,
        "optimal_workers": get_optimal_worker_count(),
        "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
    }


def gather_settled(
    func: Callable[[T], R],
    items: Sequence[T],
    max_workers: Optional[int] = None,
    sequential: bool = False,
) -> Tuple[List[Tuple[T, R]], List[Tuple[T, Exception]]]:
    """Run func over every item and wait for all outcomes.

    A failing call never aborts the batch. Both returned lists keep the
    order of ``items``.

    Args:
        func: Callable applied to each item
        items: Inputs to fan out over
        max_workers: Thread pool size (None = auto-detect)
        sequential: Run inline instead of on a thread pool

    Returns:
        Tuple of (successes, failures), each a list of (item, outcome) pairs
    """
    outcomes: Dict[int, Tuple[bool, Any]] = {}

    if sequential or len(items) <= 1:
        for index, item in enumerate(items):
            try:
                outcomes[index] = (True, func(item))
            except Exception as e:
                outcomes[index] = (False, e)
    else:
        workers = min(get_optimal_worker_count(max_workers), len(items))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_index = {
                executor.submit(func, item): index for index, item in enumerate(items)
            }
            for future in as_completed(future_to_index):
                index = future_to_index[future]
                try:
                    outcomes[index] = (True, future.result())
                except Exception as e:
                    outcomes[index] = (False, e)

    successes: List[Tuple[T, R]] = []
    failures: List[Tuple[T, Exception]] = []
    for index, item in enumerate(items):
        succeeded, outcome = outcomes[index]
        if succeeded:
            successes.append((item, outcome))
        else:
            logger.debug(f"Discarding failed query for {item!r}: {outcome}")
            failures.append((item, outcome))

    return successes, failures
