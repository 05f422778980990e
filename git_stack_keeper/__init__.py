"""
git-stack-keeper - Track stacked git branches and keep them in sync
"""

from .__version__ import __version__
from .core import StackKeeper
from .cli.main import main

__all__ = ["StackKeeper", "main", "__version__"]
