"""Command-line argument parsing for git-stack-keeper."""

import argparse
from typing import List, Optional

from git_stack_keeper.__version__ import __version__


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative, got {number}")
    return number


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="git-stack-keeper",
        description="Track stacked git branches and keep them rebased on their parents",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument("--version", action="version", version=f"git-stack-keeper {__version__}")
    parser.add_argument(
        "--debug", action="store_true", help="Show debug information for troubleshooting"
    )
    parser.add_argument(
        "--workers",
        type=_positive_int,
        metavar="N",
        help="Number of parallel workers for topology queries (default: auto-detect)",
    )
    parser.add_argument(
        "--sequential",
        action="store_true",
        help="Force sequential processing (disable parallelism)",
    )
    parser.add_argument(
        "--drift-threshold",
        type=_non_negative_int,
        metavar="N",
        help="How many commits a candidate parent may have moved past the fork point (default: 50)",
    )
    parser.add_argument(
        "--trunk-name",
        action="append",
        dest="trunk_names",
        metavar="NAME",
        help="Branch name treated as a trunk during detection (repeatable)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    subparsers.add_parser("detect", help="Infer stacks from branch topology")
    subparsers.add_parser("list", help="List tracked stacks")

    status = subparsers.add_parser("status", help="Show sync status of a stack")
    status.add_argument("stack", nargs="?", help="Stack name (default: stack of the current branch)")

    init = subparsers.add_parser("init", help="Start tracking a new stack")
    init.add_argument("name", help="Stack name")
    init.add_argument("--trunk", default="main", help="Branch the stack targets (default: main)")
    init.add_argument("--root", help="Root branch of the stack (default: current branch)")

    add = subparsers.add_parser("add", help="Add an existing branch to a stack")
    add.add_argument("branch", help="Branch to add")
    add.add_argument("--parent", help="Parent branch (default: current branch)")
    add.add_argument("--stack", help="Stack name (default: stack of the parent)")

    branch = subparsers.add_parser("branch", help="Create a branch on top of the current one")
    branch.add_argument("name", help="New branch name")

    remove = subparsers.add_parser("remove", help="Stop tracking a branch")
    remove.add_argument("branch", help="Branch to remove from its stack")

    delete = subparsers.add_parser("delete", help="Stop tracking a stack and all its branches")
    delete.add_argument("name", help="Stack name")

    sync = subparsers.add_parser("sync", help="Rebase (or merge) out-of-date branches onto their parents")
    sync.add_argument("stack", nargs="?", help="Stack name (default: stack of the current branch)")
    sync.add_argument("--branch", help="Sync only this branch")
    sync.add_argument("--merge", action="store_true", help="Merge parents in instead of rebasing")
    sync.add_argument("--force", action="store_true", help="Sync even with uncommitted changes")

    restack = subparsers.add_parser("restack", help="Record current parent heads as base commits")
    restack.add_argument("stack", nargs="?", help="Stack name (default: stack of the current branch)")

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)
