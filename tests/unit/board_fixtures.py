"""Shared helpers for unit tests: feature factory and git stand-ins."""

from unittest.mock import MagicMock

from worktree_board.core.feature import Feature
from worktree_board.utils.subprocess_utils import SubprocessError


def make_feature(feature_id: str, **fields) -> Feature:
    fields.setdefault("description", f"Description of {feature_id}")
    return Feature(id=feature_id, **fields)


def completed(stdout: str = "", returncode: int = 0) -> MagicMock:
    """Stand-in for subprocess.CompletedProcess."""
    return MagicMock(stdout=stdout, stderr="", returncode=returncode)


def fake_git(responses=(), failures=None):
    """Build a ``run_git_command`` replacement.

    ``responses`` is a sequence of ``(args_prefix, stdout)``; ``failures``
    maps an args prefix to the stderr of a SubprocessError. Every call's
    args are recorded on ``.calls``.
    """
    failures = failures or {}
    calls = []

    def _run(args, **kwargs):
        calls.append(list(args))
        joined = " ".join(args)
        for prefix, stderr in failures.items():
            if joined.startswith(prefix):
                raise SubprocessError(cmd=f"git {joined}", returncode=1, stderr=stderr)
        for prefix, stdout in responses:
            if joined.startswith(prefix):
                return completed(stdout)
        return completed("")

    _run.calls = calls
    return _run
