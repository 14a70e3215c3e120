"""Thin wrapper around the GitHub CLI (``gh``)."""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from ..utils.subprocess_utils import SubprocessError, build_tool_env, check_command_exists, run_command

logger = logging.getLogger(__name__)

_VERSION = re.compile(r"gh version (\S+)")


@dataclass
class GhStatus:
    installed: bool
    version: Optional[str] = None

    def to_dict(self) -> Dict:
        data: Dict = {"installed": self.installed}
        if self.version:
            data["version"] = self.version
        return data


def is_installed(executable: str = "gh", env: Optional[dict] = None) -> bool:
    return check_command_exists(executable, env=env if env is not None else build_tool_env())


def probe_gh(
    executable: str = "gh",
    env: Optional[dict] = None,
    timeout: int = 10,
) -> GhStatus:
    """Report whether ``gh`` runs, with its version. Never raises."""
    env = env if env is not None else build_tool_env()
    if not is_installed(executable, env=env):
        return GhStatus(installed=False)

    try:
        result = run_command([executable, "--version"], check=True, timeout=timeout, env=env)
    except SubprocessError as e:
        logger.debug(f"{executable} --version failed: {e.detail}")
        return GhStatus(installed=False)

    match = _VERSION.search(result.stdout)
    return GhStatus(installed=True, version=match.group(1) if match else None)


def build_pr_create_args(
    executable: str,
    base: str,
    head: str,
    title: str,
    body: str,
    draft: bool = False,
    repo: Optional[str] = None,
) -> List[str]:
    args = [executable, "pr", "create", "--base", base]
    if repo:
        args += ["--repo", repo]
    args += ["--head", head, "--title", title, "--body", body]
    if draft:
        args.append("--draft")
    return args


def create_pull_request(
    cwd: Path,
    base: str,
    head: str,
    title: str,
    body: str,
    draft: bool = False,
    repo: Optional[str] = None,
    executable: str = "gh",
    env: Optional[dict] = None,
    timeout: int = 120,
) -> str:
    """
    Open a pull request and return its URL.

    Raises:
        SubprocessError: If gh exits non-zero or times out
    """
    args = build_pr_create_args(executable, base, head, title, body, draft=draft, repo=repo)
    logger.info(f"Creating PR: base={base} head={head}{f' repo={repo}' if repo else ''}")
    result = run_command(args, cwd=cwd, check=True, timeout=timeout, env=env)
    return result.stdout.strip()
