"""Pytest fixtures for git-stack-keeper tests"""
import importlib
import tempfile
from pathlib import Path
from unittest.mock import patch
import pytest
import git

from git_stack_keeper.services.stack_manager import StackManager


def commit_file(repo, filename, content, message=None):
    """Write a file in the working tree, commit it and return the new commit sha."""
    path = Path(repo.working_dir) / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    repo.index.add([filename])
    return repo.index.commit(message or f"Update {filename}").hexsha


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_config():
    """Create a mock configuration dictionary."""
    return {
        'verbose': False,
        'debug': False,
        'trunk_names': ['main', 'master', 'develop', 'dev'],
        'drift_threshold': 50,
        'merge': False,
        'force': False,
        'sequential': False,
        'workers': 4,
    }


@pytest.fixture
def commit():
    """Expose commit_file to tests as a fixture."""
    return commit_file


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository with one commit on main."""
    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()

    # Initialize repository
    repo = git.Repo.init(repo_path)

    # Configure git user for commits
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    # Create initial commit
    commit_file(repo, "README.md", "# Test Repository\n", "Initial commit")

    # Rename the default branch to main
    repo.git.branch('-M', 'main')

    yield repo

    # Cleanup
    repo.close()


@pytest.fixture
def stacked_repo(git_repo):
    """Create a repository with main <- feature/a <- feature/b, checked out on main."""
    repo = git_repo

    repo.git.checkout('-b', 'feature/a')
    commit_file(repo, "a.txt", "Feature A\n", "Add feature A")

    repo.git.checkout('-b', 'feature/b')
    commit_file(repo, "b.txt", "Feature B\n", "Add feature B")

    repo.git.checkout('main')

    yield repo


@pytest.fixture
def tracked_stack(stacked_repo):
    """Track stacked_repo as stack 'feature-stack' with every base matching its parent head."""
    repo = stacked_repo
    manager = StackManager(repo.working_dir)

    # Base commits come from HEAD, so record each branch from its parent
    manager.init_stack('feature-stack', 'main', 'feature/a').unwrap()
    repo.git.checkout('feature/a')
    manager.add_branch('feature/b', 'feature/a', 'feature-stack').unwrap()
    repo.git.checkout('main')

    yield repo


@pytest.fixture
def no_signal_handler():
    """Keep the CLI from replacing pytest's SIGINT handling."""
    # The cli package re-exports main(), so look the module up directly
    cli_main = importlib.import_module('git_stack_keeper.cli.main')
    with patch.object(cli_main, 'install_signal_handler'):
        yield
