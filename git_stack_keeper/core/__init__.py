"""Core functionality for git-stack-keeper."""

from .stack_keeper import StackKeeper, install_signal_handler

__all__ = ["StackKeeper", "install_signal_handler"]
