"""Tests for configuration loading."""

import pytest
import yaml
from pydantic import ValidationError

from worktree_board.core import config as config_module
from worktree_board.core.config import OrchestratorConfig, load_config


@pytest.fixture(autouse=True)
def clear_cache():
    config_module._config_cache.clear()
    yield
    config_module._config_cache.clear()


class TestDefaults:
    def test_defaults(self):
        config = OrchestratorConfig()

        assert config.worktrees.directory_name == ".worktrees"
        assert config.worktrees.feature_branch_prefix == "feature/"
        assert config.tools.git_timeout == 30
        assert config.tools.push_timeout == 120
        assert config.tools.gh_timeout == 120
        assert "/opt/homebrew/bin" in config.tools.extra_path_dirs
        assert config.publish.default_base_branch == "main"
        assert config.features.metadata_dir == ".workboard"
        assert config.features.strict_transitions is False
        assert config.execution.command is None
        assert config.server.port == 3008
        assert config.log_level == "INFO"

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "missing.yaml")
        assert config.worktrees.directory_name == ".worktrees"


class TestLoadConfig:
    """Tests for YAML loading, env expansion and caching."""

    def test_yaml_values(self, tmp_path):
        path = tmp_path / "worktree-board.yaml"
        path.write_text(yaml.safe_dump({
            "log_level": "debug",
            "worktrees": {"directory_name": "trees"},
            "tools": {"git_timeout": 5},
            "execution": {"command": ["agent", "run", "{feature_id}"], "timeout": 600},
        }))

        config = load_config(path)

        assert config.log_level == "DEBUG"
        assert config.worktrees.directory_name == "trees"
        assert config.tools.git_timeout == 5
        assert config.execution.command == ["agent", "run", "{feature_id}"]
        assert config.execution.timeout == 600

    def test_env_expansion(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BOARD_BASE", "develop")
        path = tmp_path / "worktree-board.yaml"
        path.write_text("publish:\n  default_base_branch: ${BOARD_BASE}\n")

        assert load_config(path).publish.default_base_branch == "develop"

    def test_unset_env_var_kept_literally(self, tmp_path, monkeypatch):
        monkeypatch.delenv("BOARD_UNSET_VAR", raising=False)
        path = tmp_path / "worktree-board.yaml"
        path.write_text("publish:\n  remote: ${BOARD_UNSET_VAR}\n")

        assert load_config(path).publish.remote == "${BOARD_UNSET_VAR}"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "worktree-board.yaml"
        path.write_text("")

        assert load_config(path).server.host == "127.0.0.1"

    def test_cached_until_modified(self, tmp_path):
        path = tmp_path / "worktree-board.yaml"
        path.write_text("server:\n  port: 4000\n")

        first = load_config(path)
        assert load_config(path) is first

        path.write_text("server:\n  port: 4001\n")
        config_module._config_cache[str(path.resolve())] = (first, -1.0)

        assert load_config(path).server.port == 4001

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("WORKBOARD_LOG_LEVEL", "warning")
        assert OrchestratorConfig().log_level == "WARNING"


class TestValidation:
    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            OrchestratorConfig(log_level="LOUD")

    def test_timeouts_must_be_positive(self):
        with pytest.raises(ValidationError):
            OrchestratorConfig(tools={"git_timeout": 0})

    @pytest.mark.parametrize("name", ["", "a/b", "..", "."])
    def test_directory_name_single_segment(self, name):
        with pytest.raises(ValidationError):
            OrchestratorConfig(worktrees={"directory_name": name})
