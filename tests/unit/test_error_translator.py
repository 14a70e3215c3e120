"""Tests for ErrorTranslator and pull-request error classification."""

import pytest

from worktree_board.errors.translator import ErrorTranslator, UserFriendlyError, classify_pr_error


class TestErrorTranslator:
    """Tests for gh failure translation to user-friendly messages."""

    def test_no_commits_between(self):
        translator = ErrorTranslator()

        result = translator.translate(
            "pull request create failed: GraphQL: No commits between main and feature/x"
        )

        assert isinstance(result, UserFriendlyError)
        assert result.title == "Nothing to publish"
        assert result.message.startswith("No new commits to create PR")
        assert len(result.actions) > 0

    def test_already_exists(self):
        translator = ErrorTranslator()

        result = translator.translate(
            'a pull request for branch "feature/x" into branch "main" already exists'
        )

        assert result.message == "A pull request already exists for this branch."

    @pytest.mark.parametrize("raw", [
        "You are not logged into any GitHub hosts. Run gh auth login",
        "error: not logged in",
        "HTTP 401: authentication required",
        "gh: To use GitHub CLI in a GitHub Actions workflow, set the GH_TOKEN env var (AUTH)",
    ])
    def test_authentication(self, raw):
        result = ErrorTranslator().translate(raw)

        assert result.title == "Authentication required"
        assert "gh auth login" in result.message

    def test_unknown_error_passes_through(self):
        result = ErrorTranslator().translate("something unexpected happened\n")

        assert result.message == "something unexpected happened"
        assert result.raw_message == "something unexpected happened\n"
        assert result.actions == []

    def test_first_matching_pattern_wins(self):
        """A message mentioning two phrases gets the earlier pattern."""
        result = ErrorTranslator().translate("No commits between main and x; auth ok")
        assert result.title == "Nothing to publish"

    def test_matching_is_case_insensitive(self):
        result = ErrorTranslator().translate("ALREADY EXISTS")
        assert result.title == "Pull request already open"


class TestClassifyPrError:
    """Tests for the short message helper used by the pipeline."""

    def test_none_means_no_failure(self):
        assert classify_pr_error(None) is None

    def test_known_failure(self):
        assert classify_pr_error("already exists") == "A pull request already exists for this branch."

    def test_unknown_failure_keeps_raw_text(self):
        assert classify_pr_error("boom") == "boom"

    def test_empty_failure_gets_generic_text(self):
        assert classify_pr_error("") == "PR creation failed"
