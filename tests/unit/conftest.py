"""Shared test fixtures for unit tests."""

import pytest

from worktree_board.core.config import OrchestratorConfig
from worktree_board.store.feature_store import FeatureStore
from worktree_board.utils.subprocess_utils import run_command


@pytest.fixture
def config():
    return OrchestratorConfig()


@pytest.fixture
def store(tmp_path, config):
    return FeatureStore(tmp_path, config)


@pytest.fixture
def git_repo(tmp_path, monkeypatch):
    """A real repository with one commit on ``main``."""
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")

    repo = tmp_path / "repo"
    repo.mkdir()
    run_command(["git", "init"], cwd=repo, check=True)
    run_command(["git", "checkout", "-b", "main"], cwd=repo, check=True)
    (repo / "README.md").write_text("hello\n")
    run_command(["git", "add", "README.md"], cwd=repo, check=True)
    run_command(["git", "commit", "-m", "initial"], cwd=repo, check=True)
    return repo.resolve()
