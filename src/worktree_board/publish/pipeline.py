"""Commit, push and pull-request pipeline for one worktree.

Each step fails independently. A failed commit or push ends the attempt;
a failed pull request does not undo the commit or push that already
happened, it is reported alongside them.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from ..core.config import OrchestratorConfig
from ..errors.translator import classify_pr_error
from ..utils.subprocess_utils import SubprocessError, build_tool_env, run_git_command
from ..workspace.path_locks import PathLocks
from . import gh_cli
from .remotes import Fork, SameRepo, Topology, detect_topology, parse_remotes

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

COMMIT_HASH_LENGTH = 8


class PublishError(RuntimeError):
    """A fatal publication step failed."""


class CommitError(PublishError):
    pass


class PushError(PublishError):
    pass


@dataclass
class PublishOptions:
    commit_message: Optional[str] = None
    pr_title: Optional[str] = None
    pr_body: Optional[str] = None
    base_branch: Optional[str] = None
    draft: bool = False


@dataclass
class CommitResult:
    branch: str
    committed: bool
    commit_hash: Optional[str] = None

    def to_dict(self) -> Dict:
        return {"branch": self.branch, "committed": self.committed, "commitHash": self.commit_hash}


@dataclass
class PublicationResult:
    """Outcome of one publication attempt. Never persisted."""
    branch: str
    committed: bool
    commit_hash: Optional[str]
    pushed: bool
    pr_url: Optional[str] = None
    pr_created: bool = False
    pr_error: Optional[str] = None

    def to_dict(self) -> Dict:
        data = {
            "branch": self.branch,
            "committed": self.committed,
            "commitHash": self.commit_hash,
            "pushed": self.pushed,
            "prUrl": self.pr_url,
            "prCreated": self.pr_created,
        }
        if self.pr_error is not None:
            data["prError"] = self.pr_error
        return data


class PublicationPipeline:
    """Drives git and gh to publish a worktree's work."""

    def __init__(
        self,
        config: Optional[OrchestratorConfig] = None,
        path_locks: Optional[PathLocks] = None,
    ):
        self.config = config or OrchestratorConfig()
        self.path_locks = path_locks or PathLocks()
        self.env = build_tool_env(self.config.tools.extra_path_dirs)

    def _git(self, args, cwd: Path, timeout: Optional[int] = None):
        return run_git_command(
            args,
            cwd=cwd,
            check=True,
            timeout=timeout or self.config.tools.git_timeout,
            env=self.env,
        )

    # ---- individual steps ----

    def current_branch(self, worktree: Path) -> str:
        return self._git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=worktree).stdout.strip()

    def has_changes(self, worktree: Path) -> bool:
        return bool(self._git(["status", "--porcelain"], cwd=worktree).stdout.strip())

    def _commit(self, worktree: Path, branch: str, message: Optional[str]) -> CommitResult:
        try:
            if not self.has_changes(worktree):
                return CommitResult(branch=branch, committed=False)
        except SubprocessError as e:
            raise CommitError(f"Cannot read status of {worktree}: {e.detail}") from e

        message = message or f"Changes from {branch}"
        try:
            self._git(["add", "-A"], cwd=worktree)
            self._git(["commit", "-m", message], cwd=worktree)
            head = self._git(["rev-parse", "HEAD"], cwd=worktree).stdout.strip()
        except SubprocessError as e:
            logger.error(f"Commit failed in {worktree}: {e.detail}")
            raise CommitError(f"Failed to commit changes: {e.detail}") from e

        commit_hash = head[:COMMIT_HASH_LENGTH]
        logger.info(f"Committed {commit_hash} on {branch}")
        return CommitResult(branch=branch, committed=True, commit_hash=commit_hash)

    def _push(self, worktree: Path, branch: str) -> None:
        remote = self.config.publish.remote
        timeout = self.config.tools.push_timeout
        try:
            self._git(["push", remote, branch], cwd=worktree, timeout=timeout)
            logger.info(f"Pushed {branch} to {remote}")
            return
        except SubprocessError as first:
            logger.info(f"Plain push of {branch} failed, retrying with upstream: {first.detail}")

        try:
            self._git(["push", "--set-upstream", remote, branch], cwd=worktree, timeout=timeout)
        except SubprocessError as e:
            logger.error(f"Push failed for {branch}: {e.detail}")
            raise PushError(f"Failed to push branch: {e.detail}") from e
        logger.info(f"Pushed {branch} to {remote} (upstream set)")

    def detect_topology(self, worktree: Path) -> Topology:
        """Inspect remotes; unreadable remotes mean same-repository."""
        try:
            output = self._git(["remote", "-v"], cwd=worktree).stdout
        except SubprocessError as e:
            logger.debug(f"Could not read remotes of {worktree}: {e.detail}")
            return SameRepo()
        return detect_topology(
            parse_remotes(output),
            origin=self.config.publish.remote,
            upstream=self.config.publish.upstream_remote,
        )

    def gh_status(self) -> gh_cli.GhStatus:
        return gh_cli.probe_gh(self.config.tools.gh_executable, env=self.env)

    def _open_pull_request(self, worktree: Path, branch: str, options: PublishOptions):
        """Returns ``(url, raw_error)``; both None when gh is absent."""
        executable = self.config.tools.gh_executable
        if not gh_cli.is_installed(executable, env=self.env):
            logger.info(f"{executable} not installed, skipping pull request")
            return None, None

        topology = self.detect_topology(worktree)
        if isinstance(topology, Fork):
            repo, head = topology.upstream, topology.head_ref(branch)
        else:
            repo, head = None, branch

        try:
            url = gh_cli.create_pull_request(
                worktree,
                base=options.base_branch or self.config.publish.default_base_branch,
                head=head,
                title=options.pr_title or branch,
                body=options.pr_body or f"Changes from branch {branch}",
                draft=options.draft,
                repo=repo,
                executable=executable,
                env=self.env,
                timeout=self.config.tools.gh_timeout,
            )
        except SubprocessError as e:
            logger.warning(f"gh pr create failed for {branch}: {e.detail}")
            return None, e.detail or "PR creation failed"

        logger.info(f"Created PR: {url}")
        return url, None

    # ---- public operations ----

    def commit(self, worktree_path: PathLike, message: Optional[str] = None) -> CommitResult:
        """Stage and commit everything outstanding in the worktree."""
        worktree = Path(worktree_path)
        with self.path_locks.hold(worktree):
            try:
                branch = self.current_branch(worktree)
            except SubprocessError as e:
                raise CommitError(f"Cannot read branch of {worktree}: {e.detail}") from e
            return self._commit(worktree, branch, message)

    def push(self, worktree_path: PathLike) -> str:
        """Push the worktree's branch; returns the branch name."""
        worktree = Path(worktree_path)
        with self.path_locks.hold(worktree):
            try:
                branch = self.current_branch(worktree)
            except SubprocessError as e:
                raise PushError(f"Cannot read branch of {worktree}: {e.detail}") from e
            self._push(worktree, branch)
            return branch

    def publish(self, worktree_path: PathLike, options: Optional[PublishOptions] = None) -> PublicationResult:
        """
        Commit outstanding changes, push, and open a pull request.

        Args:
            worktree_path: Worktree to publish
            options: Commit message, PR title/body, base branch, draft flag

        Returns:
            PublicationResult; ``pr_error`` carries a classified gh failure

        Raises:
            CommitError: If staging or committing fails
            PushError: If both push attempts fail (no PR is attempted)
        """
        options = options or PublishOptions()
        worktree = Path(worktree_path)

        with self.path_locks.hold(worktree):
            try:
                branch = self.current_branch(worktree)
            except SubprocessError as e:
                raise CommitError(f"Cannot read branch of {worktree}: {e.detail}") from e

            commit = self._commit(worktree, branch, options.commit_message)
            self._push(worktree, branch)
            pr_url, raw_error = self._open_pull_request(worktree, branch, options)

        return PublicationResult(
            branch=branch,
            committed=commit.committed,
            commit_hash=commit.commit_hash,
            pushed=True,
            pr_url=pr_url,
            pr_created=bool(pr_url),
            pr_error=classify_pr_error(raw_error),
        )
