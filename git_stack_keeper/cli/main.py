"""Command-line interface for git-stack-keeper"""

import os
import sys
from typing import Optional

import git
from rich.console import Console
from rich.markup import escape

from git_stack_keeper.cli.args import parse_args
from git_stack_keeper.config import Config
from git_stack_keeper.constants import SYNC_STATUS_COLORS
from git_stack_keeper.core import StackKeeper, install_signal_handler
from git_stack_keeper.logging_config import setup_logging
from git_stack_keeper.results import StackErrors, StackResult
from git_stack_keeper.utils.threading import get_threading_info

console = Console()


def _find_repo_root(path: str) -> Optional[str]:
    try:
        return git.Repo(path, search_parent_directories=True).working_tree_dir
    except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
        return None


def _report_error(result: StackResult) -> int:
    console.print(f"[red]Error:[/red] {escape(result.error.format())}")
    return 1


def _build_config(parsed_args) -> Config:
    options = {
        "verbose": parsed_args.verbose,
        "debug": parsed_args.debug,
        "sequential": parsed_args.sequential,
        "workers": parsed_args.workers,
    }
    if parsed_args.drift_threshold is not None:
        options["drift_threshold"] = parsed_args.drift_threshold
    if parsed_args.trunk_names:
        options["trunk_names"] = parsed_args.trunk_names
    if getattr(parsed_args, "merge", False):
        options["merge"] = True
    if getattr(parsed_args, "force", False):
        options["force"] = True
    return Config(**options)


# ============ Commands ============

def _cmd_detect(keeper: StackKeeper, parsed_args) -> int:
    stacks = keeper.detect_stacks()
    if not stacks:
        console.print("[dim]No branches found[/dim]")
        return 0

    for root, stack in stacks.items():
        console.print(f"[bold cyan]{escape(root)}[/bold cyan] [dim]({len(stack)} branches)[/dim]")
        for name in stack.branches:
            node = stack.nodes[name]
            parent = f" [dim]<- {escape(node.parent)}[/dim]" if node.parent else ""
            commit = f" [dim]{node.commit[:8]}[/dim]" if node.commit else ""
            worktree = f" [blue]{escape(node.worktree.path)}[/blue]" if node.worktree else ""
            console.print(f"  {'  ' * node.depth}{escape(name)}{parent}{commit}{worktree}")
    return 0


def _cmd_list(keeper: StackKeeper, parsed_args) -> int:
    result = keeper.list_stacks()
    if result.is_err():
        return _report_error(result)

    if not result.value:
        console.print("[dim]No stacks tracked[/dim]")
        return 0

    for stack in result.value:
        console.print(
            f"[bold cyan]{escape(stack.name)}[/bold cyan]  root {escape(stack.root)}  "
            f"trunk [yellow]{escape(stack.trunk)}[/yellow]  [dim]{stack.created_at}[/dim]"
        )
    return 0


def _cmd_status(keeper: StackKeeper, parsed_args) -> int:
    result = keeper.stack_status(parsed_args.stack)
    if result.is_err():
        return _report_error(result)

    status = result.value
    console.print(
        f"[bold cyan]{escape(status.stack_name)}[/bold cyan] on [yellow]{escape(status.trunk)}[/yellow]"
    )
    for branch in status.branches:
        color = SYNC_STATUS_COLORS.get(branch.status.value, "white")
        line = f"  [{color}]{branch.status.value:<8}[/{color}] {escape(branch.branch)} [dim]<- {escape(branch.parent)}[/dim]"
        if branch.commits_behind:
            line += f" [yellow]{branch.commits_behind} behind[/yellow]"
        if branch.commits_ahead:
            line += f" [green]{branch.commits_ahead} ahead[/green]"
        if branch.error:
            line += f" [red]{escape(branch.error)}[/red]"
        console.print(line)

    if status.needs_sync:
        console.print("\n[yellow]Stack needs sync. Run 'git-stack-keeper sync'.[/yellow]")
    return 0


def _cmd_init(keeper: StackKeeper, parsed_args) -> int:
    result = keeper.init_stack(parsed_args.name, parsed_args.trunk, parsed_args.root)
    if result.is_err():
        return _report_error(result)

    stack = result.value
    console.print(
        f"[green]✓[/green] Created stack [bold cyan]{escape(stack.name)}[/bold cyan] "
        f"with root {escape(stack.root)} on [yellow]{escape(stack.trunk)}[/yellow]"
    )
    return 0


def _cmd_add(keeper: StackKeeper, parsed_args) -> int:
    parent = parsed_args.parent or keeper.git_queries.current_branch()
    if not parent:
        return _report_error(StackErrors.not_in_repo())

    result = keeper.add_branch(parsed_args.branch, parent, parsed_args.stack)
    if result.is_err():
        return _report_error(result)

    meta = result.value
    console.print(
        f"[green]✓[/green] Added {escape(parsed_args.branch)} to [bold cyan]{escape(meta.stack_name)}[/bold cyan] "
        f"on top of {escape(meta.parent)}"
    )
    return 0


def _cmd_branch(keeper: StackKeeper, parsed_args) -> int:
    result = keeper.create_branch(parsed_args.name)
    if result.is_err():
        return _report_error(result)

    meta = result.value
    console.print(f"[green]✓[/green] Created branch [bold cyan]{escape(parsed_args.name)}[/bold cyan]")
    console.print(f"  [dim]Parent:[/dim]      [yellow]{escape(meta.parent)}[/yellow]")
    console.print(f"  [dim]Stack:[/dim]       [cyan]{escape(meta.stack_name)}[/cyan]")
    console.print(f"  [dim]Base commit:[/dim] [dim]{meta.base_commit[:8]}[/dim]")
    return 0


def _cmd_remove(keeper: StackKeeper, parsed_args) -> int:
    result = keeper.remove_branch(parsed_args.branch)
    if result.is_err():
        return _report_error(result)
    console.print(f"[green]✓[/green] Removed {escape(parsed_args.branch)} from its stack")
    return 0


def _cmd_delete(keeper: StackKeeper, parsed_args) -> int:
    result = keeper.delete_stack(parsed_args.name)
    if result.is_err():
        return _report_error(result)
    console.print(f"[green]✓[/green] Deleted stack [bold cyan]{escape(parsed_args.name)}[/bold cyan]")
    return 0


def _cmd_sync(keeper: StackKeeper, parsed_args) -> int:
    if parsed_args.branch:
        result = keeper.sync_branch(parsed_args.branch)
        if result.is_err():
            _print_conflicts(result.error.details.get("files"))
            return _report_error(result)
        console.print(f"[green]✓[/green] Synced {escape(result.value.branch)}")
        return 0

    result = keeper.sync(parsed_args.stack)
    if result.is_err():
        return _report_error(result)

    exit_code = 0
    for outcome in result.value:
        if outcome.success:
            note = f" [dim]new base {outcome.new_base[:8]}[/dim]" if outcome.new_base else " [dim]up to date[/dim]"
            console.print(f"[green]✓[/green] {escape(outcome.branch)}{note}")
        else:
            exit_code = 1
            console.print(f"[red]✗[/red] {escape(outcome.branch)}: {escape(outcome.error or 'failed')}")
            _print_conflicts(outcome.conflict_files)
    return exit_code


def _print_conflicts(files) -> None:
    for path in files or []:
        console.print(f"    [red]conflict[/red] {escape(path)}")


def _cmd_restack(keeper: StackKeeper, parsed_args) -> int:
    result = keeper.restack(parsed_args.stack)
    if result.is_err():
        return _report_error(result)
    console.print("[green]✓[/green] Recorded current parent heads as base commits")
    return 0


COMMANDS = {
    "detect": _cmd_detect,
    "list": _cmd_list,
    "status": _cmd_status,
    "init": _cmd_init,
    "add": _cmd_add,
    "branch": _cmd_branch,
    "remove": _cmd_remove,
    "delete": _cmd_delete,
    "sync": _cmd_sync,
    "restack": _cmd_restack,
}


def main(argv=None) -> int:
    """Main entry point for the application."""
    parsed_args = None
    try:
        parsed_args = parse_args(argv)

        # Setup logging before creating StackKeeper
        setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug)

        config = _build_config(parsed_args)

        if parsed_args.debug:
            console.print("[yellow]Debug mode enabled[/yellow]")

            threading_info = get_threading_info()
            console.print("[yellow]Threading Information:[/yellow]")
            console.print(f"  Python version: {threading_info['python_version']}")
            console.print(f"  CPU count: {threading_info['cpu_count']}")
            console.print(f"  Optimal workers: {threading_info['optimal_workers']}")
            console.print(f"  Free-threading enabled: {threading_info['free_threading']}")

            console.print("[yellow]Configuration:[/yellow]")
            for key, value in config.to_dict().items():
                console.print(f"  {key}: {escape(str(value))}")

        install_signal_handler()

        repo_root = _find_repo_root(os.getcwd())
        if repo_root is None:
            return _report_error(StackErrors.not_in_repo())

        keeper = StackKeeper(repo_root, config)
        return COMMANDS[parsed_args.command](keeper, parsed_args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        if parsed_args is not None and parsed_args.debug:
            console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
