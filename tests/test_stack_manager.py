"""Tests for explicit stack tracking"""
from unittest.mock import patch

import pytest

from git_stack_keeper.exceptions import ErrorCode, GitOperationError
from git_stack_keeper.results import StackErrors
from git_stack_keeper.services.stack_manager import StackManager


@pytest.fixture
def manager(stacked_repo):
    """StackManager over the stacked repository."""
    return StackManager(stacked_repo.working_dir)


def read_config(repo, key):
    return repo.git.config("--local", "--get", key)


class TestInitStack:
    """Test stack creation."""

    def test_round_trip(self, stacked_repo, manager):
        """Test init then lookup returns the same metadata."""
        created = manager.init_stack("auth-feature", "main", "feature/auth")
        assert created.is_ok()

        metadata = manager.get_stack_metadata("auth-feature").unwrap()
        assert metadata.name == "auth-feature"
        assert metadata.trunk == "main"
        assert metadata.root == "feature/auth"
        assert metadata.created_at == created.value.created_at
        assert metadata.created_at.endswith("+00:00")

    def test_key_layout(self, stacked_repo, manager):
        """Test metadata is stored under the documented git config keys."""
        manager.init_stack("auth-feature", "main", "feature/a")
        head = stacked_repo.head.commit.hexsha

        assert read_config(stacked_repo, "stacks.auth-feature.trunk") == "main"
        assert read_config(stacked_repo, "stacks.auth-feature.root") == "feature/a"
        assert read_config(stacked_repo, "stacks.auth-feature.created")
        assert read_config(stacked_repo, "branch.feature/a.stackname") == "auth-feature"
        assert read_config(stacked_repo, "branch.feature/a.stackparent") == "main"
        assert read_config(stacked_repo, "branch.feature/a.stackbase") == head

    def test_invalid_trunk(self, manager):
        """Test a nonexistent trunk is rejected."""
        result = manager.init_stack("auth-feature", "nope", "feature/a")
        assert result.error.code == ErrorCode.INVALID_TRUNK

    def test_stack_exists(self, manager):
        """Test stack names are unique."""
        manager.init_stack("demo", "main", "feature/a")
        result = manager.init_stack("demo", "main", "feature/b")
        assert result.error.code == ErrorCode.STACK_EXISTS

    def test_root_already_in_stack(self, manager):
        """Test a branch can only belong to one stack."""
        manager.init_stack("one", "main", "feature/a")
        result = manager.init_stack("two", "main", "feature/a")
        assert result.error.code == ErrorCode.ALREADY_IN_STACK
        assert result.error.details["stack"] == "one"
        assert manager.get_stack_metadata("two").is_err()

    def test_config_write_failure(self, manager):
        """Test git config failures become CONFIG_ERROR."""
        with patch.object(manager.config_store, "set", side_effect=GitOperationError("config")):
            result = manager.init_stack("demo", "main", "feature/a")
        assert result.error.code == ErrorCode.CONFIG_ERROR

    def test_failed_root_write_leaves_nothing_behind(self, stacked_repo, manager):
        """Test a failed root branch write removes the stack so the name can be reused."""
        real_set = manager.config_store.set

        def fail_on_base(key, value):
            if key.endswith(".stackbase"):
                raise GitOperationError("config", message="could not lock config file")
            real_set(key, value)

        with patch.object(manager.config_store, "set", side_effect=fail_on_base):
            result = manager.init_stack("demo", "main", "feature/a")

        assert result.error.code == ErrorCode.CONFIG_ERROR
        assert manager.get_stack_metadata("demo").error.code == ErrorCode.STACK_NOT_FOUND
        assert manager.get_branch_stack("feature/a").is_err()
        assert "stacks.demo" not in stacked_repo.git.config("--local", "--list")

        assert manager.init_stack("demo", "main", "feature/a").is_ok()

    def test_head_unresolvable(self, manager):
        """Test a failed rev-parse becomes GIT_ERROR."""
        with patch.object(manager.git_queries, "resolve_commit", side_effect=GitOperationError("rev-parse", "HEAD")):
            result = manager.init_stack("demo", "main", "feature/a")
        assert result.error.code == ErrorCode.GIT_ERROR
        assert "rev-parse" in result.error.message


class TestAddBranch:
    """Test adding branches to a stack."""

    def test_add_branch(self, stacked_repo, manager):
        """Test a branch is recorded on top of its parent."""
        manager.init_stack("demo", "main", "feature/a")
        stacked_repo.git.checkout("feature/a")

        metadata = manager.add_branch("feature/b", "feature/a", "demo").unwrap()
        assert metadata.stack_name == "demo"
        assert metadata.parent == "feature/a"
        assert metadata.base_commit == stacked_repo.heads["feature/a"].commit.hexsha
        assert manager.get_branch_stack("feature/b").unwrap() == metadata

    def test_parent_not_tracked(self, manager):
        """Test an untracked parent is NOT_IN_STACK."""
        manager.init_stack("auth-feature", "main", "feature/a")
        result = manager.add_branch("feature/login", "feature/auth", "auth-feature")
        assert result.error.code == ErrorCode.NOT_IN_STACK

    def test_stack_not_found(self, manager):
        """Test adding to a missing stack."""
        result = manager.add_branch("feature/b", "feature/a", "missing")
        assert result.error.code == ErrorCode.STACK_NOT_FOUND

    def test_parent_in_other_stack(self, manager):
        """Test a parent from another stack is a CONFIG_ERROR."""
        manager.init_stack("one", "main", "feature/a")
        manager.init_stack("two", "main", "main")
        result = manager.add_branch("feature/b", "feature/a", "two")
        assert result.error.code == ErrorCode.CONFIG_ERROR
        assert "different stack 'one'" in result.error.message

    def test_already_in_stack(self, manager):
        """Test adding a tracked branch again."""
        manager.init_stack("demo", "main", "feature/a")
        manager.add_branch("feature/b", "feature/a", "demo")
        result = manager.add_branch("feature/b", "feature/a", "demo")
        assert result.error.code == ErrorCode.ALREADY_IN_STACK


class TestQueries:
    """Test lookups and enumerations."""

    def test_branch_not_in_stack(self, manager):
        """Test looking up an untracked branch."""
        assert manager.get_branch_stack("feature/a").error.code == ErrorCode.NOT_IN_STACK

    def test_stack_not_found(self, manager):
        """Test looking up a missing stack."""
        assert manager.get_stack_metadata("missing").error.code == ErrorCode.STACK_NOT_FOUND

    def test_empty_enumerations(self, manager):
        """Test nothing tracked is empty, not an error."""
        assert manager.get_all_stacks().unwrap() == []
        assert manager.get_stack_branches("missing").unwrap() == {}

    def test_get_all_stacks(self, manager):
        """Test every stack is listed."""
        manager.init_stack("one", "main", "feature/a")
        manager.init_stack("two.with.dots", "main", "feature/b")
        names = [stack.name for stack in manager.get_all_stacks().unwrap()]
        assert names == ["one", "two.with.dots"]

    def test_get_stack_branches(self, manager):
        """Test branches are filtered by stack."""
        manager.init_stack("one", "main", "feature/a")
        manager.add_branch("feature/b", "feature/a", "one")
        manager.init_stack("two", "main", "main")

        branches = manager.get_stack_branches("one").unwrap()
        assert list(branches) == ["feature/a", "feature/b"]
        assert branches["feature/b"].parent == "feature/a"

    def test_full_stack_info(self, manager):
        """Test metadata and branches together."""
        manager.init_stack("one", "main", "feature/a")
        info = manager.get_full_stack_info("one").unwrap()
        assert info.metadata.root == "feature/a"
        assert list(info.branches) == ["feature/a"]

    def test_full_stack_info_missing(self, manager):
        """Test a missing stack."""
        assert manager.get_full_stack_info("missing").error.code == ErrorCode.STACK_NOT_FOUND

    def test_current_branch_stack(self, stacked_repo, manager):
        """Test resolving the stack of the checked-out branch."""
        manager.init_stack("one", "main", "feature/a")
        stacked_repo.git.checkout("feature/a")
        assert manager.get_current_branch_stack().unwrap() == "one"

    def test_current_branch_untracked(self, manager):
        """Test the checked-out branch without metadata."""
        assert manager.get_current_branch_stack().error.code == ErrorCode.NOT_IN_STACK

    def test_current_branch_detached(self, stacked_repo, manager):
        """Test detached HEAD has no current stack."""
        stacked_repo.git.checkout("--detach", "main")
        assert manager.get_current_branch_stack().error.code == ErrorCode.NOT_IN_REPO


class TestMutations:
    """Test base updates and deletion."""

    def test_update_branch_base(self, stacked_repo, manager):
        """Test the base commit is overwritten."""
        manager.init_stack("one", "main", "feature/a")
        manager.update_branch_base("feature/a", "abc123").unwrap()
        assert manager.get_branch_stack("feature/a").unwrap().base_commit == "abc123"

    def test_remove_branch(self, manager):
        """Test removing a branch forgets its metadata."""
        manager.init_stack("one", "main", "feature/a")
        manager.add_branch("feature/b", "feature/a", "one")
        manager.remove_branch("feature/b").unwrap()
        assert manager.get_branch_stack("feature/b").is_err()
        assert list(manager.get_stack_branches("one").unwrap()) == ["feature/a"]

    def test_remove_untracked_branch(self, manager):
        """Test removing absent keys is not an error."""
        assert manager.remove_branch("feature/zzz").is_ok()

    def test_delete_stack_cascades(self, stacked_repo, manager):
        """Test deleting a stack removes every member's metadata."""
        manager.init_stack("one", "main", "feature/a")
        manager.add_branch("feature/b", "feature/a", "one")
        manager.init_stack("two", "main", "main")

        manager.delete_stack("one").unwrap()

        assert manager.get_stack_metadata("one").is_err()
        assert manager.get_branch_stack("feature/a").is_err()
        assert manager.get_branch_stack("feature/b").is_err()
        assert manager.get_branch_stack("main").is_ok()
        assert [s.name for s in manager.get_all_stacks().unwrap()] == ["two"]
        assert "stacks.one" not in stacked_repo.git.config("--local", "--list")

    def test_delete_missing_stack(self, manager):
        """Test deleting an unknown stack is a no-op."""
        assert manager.delete_stack("missing").is_ok()


class TestCreateBranch:
    """Test creating a stacked branch from the current one."""

    def test_create_branch(self, stacked_repo, manager):
        """Test the new branch is checked out and stacked on the current one."""
        manager.init_stack("one", "main", "feature/a")
        stacked_repo.git.checkout("feature/a")

        metadata = manager.create_branch("feature/c").unwrap()

        assert stacked_repo.active_branch.name == "feature/c"
        assert metadata.parent == "feature/a"
        assert metadata.stack_name == "one"
        assert metadata.base_commit == stacked_repo.heads["feature/a"].commit.hexsha

    def test_current_branch_untracked(self, manager):
        """Test the current branch must be tracked."""
        assert manager.create_branch("feature/c").error.code == ErrorCode.NOT_IN_STACK

    def test_existing_ref(self, stacked_repo, manager):
        """Test an existing branch name is a git error."""
        manager.init_stack("one", "main", "main")
        result = manager.create_branch("feature/a")
        assert result.error.code == ErrorCode.GIT_ERROR
        assert stacked_repo.active_branch.name == "main"

    def test_already_tracked(self, manager):
        """Test a tracked name is ALREADY_IN_STACK."""
        manager.init_stack("one", "main", "main")
        manager.update_branch_base("feature/ghost", "abc")
        manager.config_store.set("branch.feature/ghost.stackname", "one")
        manager.config_store.set("branch.feature/ghost.stackparent", "main")
        assert manager.create_branch("feature/ghost").error.code == ErrorCode.ALREADY_IN_STACK

    def test_rollback_when_recording_fails(self, stacked_repo, manager):
        """Test the new branch is deleted and the original restored on failure."""
        manager.init_stack("one", "main", "feature/a")
        stacked_repo.git.checkout("feature/a")

        with patch.object(manager, "add_branch", return_value=StackErrors.config_error("disk full")):
            result = manager.create_branch("feature/c")

        assert result.error.code == ErrorCode.CONFIG_ERROR
        assert stacked_repo.active_branch.name == "feature/a"
        assert "feature/c" not in [head.name for head in stacked_repo.heads]
