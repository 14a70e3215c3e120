"""Tests for the commit/push/PR publication pipeline."""

from unittest.mock import patch

import pytest

from worktree_board.publish.pipeline import (
    CommitError,
    PublicationPipeline,
    PublishOptions,
    PushError,
)
from worktree_board.publish.remotes import Fork, SameRepo
from worktree_board.utils.subprocess_utils import SubprocessError
from tests.unit.board_fixtures import completed, fake_git

SAME_REPO_REMOTES = (
    "origin\tgit@github.com:acme/widgets.git (fetch)\n"
    "origin\tgit@github.com:acme/widgets.git (push)\n"
)

FORK_REMOTES = (
    "origin\tgit@github.com:alice/repo.git (fetch)\n"
    "origin\tgit@github.com:alice/repo.git (push)\n"
    "upstream\thttps://github.com/org/repo.git (fetch)\n"
    "upstream\thttps://github.com/org/repo.git (push)\n"
)


def git_responses(remotes=SAME_REPO_REMOTES, status=" M app.py\n"):
    return [
        ("rev-parse --abbrev-ref HEAD", "feature/login\n"),
        ("rev-parse HEAD", "abcdef1234567890abcdef1234567890abcdef12\n"),
        ("status --porcelain", status),
        ("remote -v", remotes),
    ]


@pytest.fixture
def pipeline(config):
    return PublicationPipeline(config)


@pytest.fixture
def gh_installed():
    with patch("worktree_board.publish.gh_cli.is_installed", return_value=True) as mock:
        yield mock


@pytest.fixture
def gh_missing():
    with patch("worktree_board.publish.gh_cli.is_installed", return_value=False) as mock:
        yield mock


class TestPublish:
    """Tests for PublicationPipeline.publish()."""

    def test_commit_push_and_pr(self, pipeline, tmp_path, gh_installed):
        git = fake_git(git_responses())
        with patch("worktree_board.publish.pipeline.run_git_command", side_effect=git), \
             patch("worktree_board.publish.gh_cli.run_command",
                   return_value=completed("https://github.com/acme/widgets/pull/7\n")) as gh:
            result = pipeline.publish(tmp_path, PublishOptions(commit_message="Add login"))

        assert result.committed is True
        assert result.commit_hash == "abcdef12"
        assert result.pushed is True
        assert result.pr_created is True
        assert result.pr_url == "https://github.com/acme/widgets/pull/7"
        assert result.pr_error is None

        assert ["add", "-A"] in git.calls
        assert ["commit", "-m", "Add login"] in git.calls
        assert ["push", "origin", "feature/login"] in git.calls

        args = gh.call_args[0][0]
        assert args[:5] == ["gh", "pr", "create", "--base", "main"]
        assert "--repo" not in args
        assert args[args.index("--head") + 1] == "feature/login"
        assert args[args.index("--title") + 1] == "feature/login"

    def test_nothing_to_commit_still_pushes(self, pipeline, tmp_path, gh_missing):
        git = fake_git(git_responses(status=""))
        with patch("worktree_board.publish.pipeline.run_git_command", side_effect=git):
            result = pipeline.publish(tmp_path)

        assert result.committed is False
        assert result.commit_hash is None
        assert result.pushed is True
        assert not any(call[0] == "commit" for call in git.calls)

    def test_default_commit_message(self, pipeline, tmp_path, gh_missing):
        git = fake_git(git_responses())
        with patch("worktree_board.publish.pipeline.run_git_command", side_effect=git):
            pipeline.publish(tmp_path)

        assert ["commit", "-m", "Changes from feature/login"] in git.calls

    def test_gh_absent_skips_pr_without_error(self, pipeline, tmp_path, gh_missing):
        git = fake_git(git_responses())
        with patch("worktree_board.publish.pipeline.run_git_command", side_effect=git), \
             patch("worktree_board.publish.gh_cli.run_command") as gh:
            result = pipeline.publish(tmp_path)

        assert result.pushed is True
        assert result.pr_created is False
        assert result.pr_url is None
        assert result.pr_error is None
        gh.assert_not_called()
        assert "prError" not in result.to_dict()

    def test_fork_targets_upstream_with_owner_head(self, pipeline, tmp_path, gh_installed):
        git = fake_git(git_responses(remotes=FORK_REMOTES))
        with patch("worktree_board.publish.pipeline.run_git_command", side_effect=git), \
             patch("worktree_board.publish.gh_cli.run_command",
                   return_value=completed("https://github.com/org/repo/pull/1\n")) as gh:
            result = pipeline.publish(tmp_path, PublishOptions(base_branch="develop", draft=True))

        args = gh.call_args[0][0]
        assert args[args.index("--repo") + 1] == "org/repo"
        assert args[args.index("--head") + 1] == "alice:feature/login"
        assert args[args.index("--base") + 1] == "develop"
        assert args[-1] == "--draft"
        assert result.pr_created is True

    def test_push_retries_with_upstream(self, pipeline, tmp_path, gh_missing):
        git = fake_git(git_responses(), failures={"push origin": "no upstream branch"})
        with patch("worktree_board.publish.pipeline.run_git_command", side_effect=git):
            result = pipeline.publish(tmp_path)

        assert result.pushed is True
        assert ["push", "--set-upstream", "origin", "feature/login"] in git.calls

    def test_push_failure_stops_before_pr(self, pipeline, tmp_path, gh_installed):
        git = fake_git(git_responses(), failures={"push": "remote rejected"})
        with patch("worktree_board.publish.pipeline.run_git_command", side_effect=git), \
             patch("worktree_board.publish.gh_cli.run_command") as gh:
            with pytest.raises(PushError, match="Failed to push branch: remote rejected"):
                pipeline.publish(tmp_path)

        gh.assert_not_called()
        assert not any(call[:2] == ["remote", "-v"] for call in git.calls)

    def test_commit_failure(self, pipeline, tmp_path, gh_installed):
        git = fake_git(git_responses(), failures={"commit": "nothing added"})
        with patch("worktree_board.publish.pipeline.run_git_command", side_effect=git):
            with pytest.raises(CommitError, match="Failed to commit changes"):
                pipeline.publish(tmp_path)

        assert not any(call[0] == "push" for call in git.calls)

    def test_unreadable_status_is_a_commit_failure(self, pipeline, tmp_path, gh_missing):
        git = fake_git(git_responses(), failures={"status": "not a git repository"})
        with patch("worktree_board.publish.pipeline.run_git_command", side_effect=git):
            with pytest.raises(CommitError):
                pipeline.publish(tmp_path)

    @pytest.mark.parametrize("stderr,expected", [
        ("GraphQL: No commits between main and feature/login", "No new commits to create PR"),
        ("a pull request for branch \"feature/login\" already exists", "A pull request already exists"),
        ("To get started with GitHub CLI, please run: gh auth login", "GitHub CLI not authenticated"),
        ("something odd", "something odd"),
    ])
    def test_pr_failure_is_classified(self, pipeline, tmp_path, gh_installed, stderr, expected):
        git = fake_git(git_responses())
        error = SubprocessError(cmd="gh pr create", returncode=1, stderr=stderr)
        with patch("worktree_board.publish.pipeline.run_git_command", side_effect=git), \
             patch("worktree_board.publish.gh_cli.run_command", side_effect=error):
            result = pipeline.publish(tmp_path)

        assert result.committed is True
        assert result.pushed is True
        assert result.pr_created is False
        assert result.pr_error.startswith(expected)
        assert result.to_dict()["prError"] == result.pr_error

    def test_holds_worktree_lock(self, pipeline, tmp_path, gh_missing):
        seen = []

        def git(args, **kwargs):
            seen.append(pipeline.path_locks.is_locked(tmp_path))
            return fake_git(git_responses())(args, **kwargs)

        with patch("worktree_board.publish.pipeline.run_git_command", side_effect=git):
            pipeline.publish(tmp_path)

        assert seen and all(seen)
        assert not pipeline.path_locks.is_locked(tmp_path)


class TestCommitAndPush:
    """Tests for the standalone commit and push operations."""

    def test_commit_only(self, pipeline, tmp_path):
        git = fake_git(git_responses())
        with patch("worktree_board.publish.pipeline.run_git_command", side_effect=git):
            result = pipeline.commit(tmp_path, "WIP")

        assert result.to_dict() == {"branch": "feature/login", "committed": True, "commitHash": "abcdef12"}
        assert not any(call[0] == "push" for call in git.calls)

    def test_push_only(self, pipeline, tmp_path):
        git = fake_git(git_responses())
        with patch("worktree_board.publish.pipeline.run_git_command", side_effect=git):
            assert pipeline.push(tmp_path) == "feature/login"

        assert ["push", "origin", "feature/login"] in git.calls

    def test_push_uses_push_timeout(self, pipeline, tmp_path):
        with patch("worktree_board.publish.pipeline.run_git_command",
                   side_effect=fake_git(git_responses())) as run:
            pipeline.push(tmp_path)

        push_call = next(c for c in run.call_args_list if c[0][0][0] == "push")
        assert push_call.kwargs["timeout"] == 120


class TestDetectTopology:
    def test_unreadable_remotes_mean_same_repo(self, pipeline, tmp_path):
        git = fake_git(failures={"remote": "fatal"})
        with patch("worktree_board.publish.pipeline.run_git_command", side_effect=git):
            assert pipeline.detect_topology(tmp_path) == SameRepo()

    def test_fork(self, pipeline, tmp_path):
        git = fake_git([("remote -v", FORK_REMOTES)])
        with patch("worktree_board.publish.pipeline.run_git_command", side_effect=git):
            assert pipeline.detect_topology(tmp_path) == Fork(upstream="org/repo", origin_owner="alice")


class TestGhStatus:
    def test_not_installed(self, pipeline, gh_missing):
        status = pipeline.gh_status()
        assert status.installed is False
        assert status.to_dict() == {"installed": False}

    def test_installed_with_version(self, pipeline, gh_installed):
        output = "gh version 2.45.0 (2024-03-04)\nhttps://github.com/cli/cli/releases/tag/v2.45.0\n"
        with patch("worktree_board.publish.gh_cli.run_command", return_value=completed(output)):
            status = pipeline.gh_status()

        assert status.installed is True
        assert status.version == "2.45.0"
        assert status.to_dict() == {"installed": True, "version": "2.45.0"}

    def test_broken_gh_reports_not_installed(self, pipeline, gh_installed):
        error = SubprocessError(cmd="gh --version", returncode=1, stderr="broken")
        with patch("worktree_board.publish.gh_cli.run_command", side_effect=error):
            assert pipeline.gh_status().installed is False
