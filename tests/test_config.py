"""Tests for Config and logging setup"""
import logging

import pytest

from git_stack_keeper.config import Config
from git_stack_keeper.constants import COMMON_TRUNK_NAMES, DEFAULT_DRIFT_THRESHOLD
from git_stack_keeper.logging_config import GitPythonFilter, get_logger, setup_logging


class TestConfig:
    """Test configuration defaults and validation."""

    def test_defaults(self):
        """Test default values."""
        config = Config()
        assert config.trunk_names == COMMON_TRUNK_NAMES
        assert config.drift_threshold == DEFAULT_DRIFT_THRESHOLD == 50
        assert config.merge is False
        assert config.force is False
        assert config.workers is None

    def test_trunk_names_default_is_a_copy(self):
        """Test instances do not share the trunk name list."""
        config = Config()
        config.trunk_names.append("trunk")
        assert "trunk" not in COMMON_TRUNK_NAMES

    def test_trunk_names_are_stripped(self):
        """Test blank entries are dropped and names stripped."""
        config = Config(trunk_names=[" main ", "", "develop"])
        assert config.trunk_names == ["main", "develop"]

    def test_empty_trunk_names_rejected(self):
        """Test an empty trunk list is invalid."""
        with pytest.raises(ValueError, match="trunk_names"):
            Config(trunk_names=[])

    def test_trunk_names_must_be_list(self):
        """Test a bare string is rejected."""
        with pytest.raises(ValueError, match="must be a list"):
            Config(trunk_names="main")

    def test_negative_drift_threshold_rejected(self):
        """Test drift threshold cannot be negative."""
        with pytest.raises(ValueError, match="drift_threshold"):
            Config(drift_threshold=-1)

    def test_zero_drift_threshold_allowed(self):
        """Test zero drift only accepts candidates that never moved."""
        assert Config(drift_threshold=0).drift_threshold == 0

    def test_invalid_workers_rejected(self):
        """Test workers must be positive."""
        with pytest.raises(ValueError, match="workers"):
            Config(workers=0)

    def test_get(self):
        """Test dict-style access."""
        config = Config(drift_threshold=10)
        assert config.get("drift_threshold") == 10
        assert config.get("missing", "fallback") == "fallback"

    def test_from_dict_ignores_unknown_keys(self):
        """Test unknown keys are dropped."""
        config = Config.from_dict({"drift_threshold": 5, "stale_days": 30})
        assert config.drift_threshold == 5

    def test_to_dict_round_trip(self):
        """Test to_dict feeds back into from_dict."""
        config = Config(trunk_names=["trunk"], sequential=True, workers=2)
        assert Config.from_dict(config.to_dict()) == config


class TestLogging:
    """Test logging configuration."""

    def test_get_logger_strips_prefixes(self):
        """Test logger names are shortened."""
        assert get_logger("git_stack_keeper.services.sync_service").name == "sync_service"
        assert get_logger("git_stack_keeper.config").name == "config"

    def test_git_service_loggers_stay_out_of_gitpython_namespace(self):
        """Test git service loggers are not children of GitPython's `git` logger."""
        name = get_logger("git_stack_keeper.services.git.operations").name
        assert name == "services.git.operations"
        assert not name.startswith("git.")

    @pytest.mark.parametrize("name,level,shown", [
        ("git.cmd", logging.DEBUG, False),
        ("git", logging.INFO, False),
        ("git.cmd", logging.WARNING, True),
        ("services.git.operations", logging.DEBUG, True),
        ("gitlab", logging.DEBUG, True),
    ])
    def test_gitpython_filter(self, name, level, shown):
        """Test GitPython command chatter is kept off the console."""
        record = logging.LogRecord(name, level, __file__, 1, "Popen(['git'])", None, None)
        assert bool(GitPythonFilter().filter(record)) is shown

    def test_console_handler_filters_gitpython(self):
        """Test setup_logging installs the filter on the console handler only."""
        setup_logging(verbose=True)
        console = [h for h in logging.getLogger().handlers if not isinstance(h, logging.FileHandler)]
        assert console and all(any(isinstance(f, GitPythonFilter) for f in h.filters) for h in console)
        setup_logging()

    @pytest.mark.parametrize("verbose,debug,level", [
        (False, False, logging.WARNING),
        (True, False, logging.INFO),
    ])
    def test_setup_logging_levels(self, verbose, debug, level):
        """Test verbosity flags select the root level."""
        setup_logging(verbose=verbose, debug=debug)
        assert logging.getLogger().level == level

    def test_debug_logging_writes_file(self, temp_dir, monkeypatch):
        """Test debug mode adds a log file under the home directory."""
        monkeypatch.setenv("HOME", str(temp_dir))
        setup_logging(debug=True)
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert any(isinstance(h, logging.FileHandler) for h in root.handlers)
        assert (temp_dir / ".git-stack-keeper" / "git-stack-keeper.log").exists()
        setup_logging()
