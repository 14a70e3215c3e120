"""Standardized subprocess utilities for git and gh invocation."""

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

# Common install locations for third-party CLIs. Servers launched from a
# desktop session do not inherit the interactive shell's PATH.
DEFAULT_EXTRA_PATH_DIRS = (
    "/opt/homebrew/bin",
    "/usr/local/bin",
    "/home/linuxbrew/.linuxbrew/bin",
    "~/.local/bin",
)


class SubprocessError(Exception):
    """Exception raised when a subprocess command fails."""

    def __init__(
        self,
        cmd: str,
        returncode: int,
        stderr: str,
        stdout: str = "",
        cwd: Optional[Path] = None,
        timed_out: bool = False,
    ):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        self.cwd = cwd
        self.timed_out = timed_out

        if timed_out:
            headline = f"Command timed out: {cmd}"
        else:
            headline = f"Command failed with exit code {returncode}: {cmd}"
        if cwd is not None:
            headline += f" (cwd: {cwd})"
        super().__init__(f"{headline}\nstderr: {stderr}")

    @property
    def detail(self) -> str:
        """Most useful single message for reporting back to a caller."""
        return (self.stderr or self.stdout or str(self)).strip()


def build_tool_env(
    extra_dirs: Sequence[str] = DEFAULT_EXTRA_PATH_DIRS,
    base_env: Optional[Dict[str, str]] = None,
) -> Dict[str, str]:
    """Copy of the environment with PATH widened by ``extra_dirs``.

    The inherited PATH keeps precedence; extra directories are appended
    once each, with ``~`` expanded.
    """
    env = dict(os.environ if base_env is None else base_env)
    entries = [p for p in env.get("PATH", "").split(os.pathsep) if p]
    for directory in extra_dirs:
        expanded = os.path.expanduser(directory)
        if expanded not in entries:
            entries.append(expanded)
    env["PATH"] = os.pathsep.join(entries)
    return env


def run_command(
    cmd: Union[str, List[str]],
    *,
    cwd: Optional[Path] = None,
    capture_output: bool = True,
    check: bool = True,
    timeout: Optional[int] = None,
    env: Optional[dict] = None,
) -> subprocess.CompletedProcess:
    """
    Run a command with standardized error handling.

    Args:
        cmd: Command to run (string or list)
        cwd: Working directory
        capture_output: Capture stdout/stderr
        check: Raise exception on non-zero exit
        timeout: Timeout in seconds
        env: Environment variables

    Returns:
        CompletedProcess with stdout, stderr, returncode

    Raises:
        SubprocessError: If check=True and command fails, or on timeout
    """
    cmd_str = cmd if isinstance(cmd, str) else " ".join(cmd)
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=capture_output,
            text=True,
            timeout=timeout,
            env=env,
            check=False,  # We handle check ourselves for better error messages
        )
    except subprocess.TimeoutExpired as e:
        logger.error(f"Command timed out after {timeout}s: {cmd_str}")
        raise SubprocessError(
            cmd=cmd_str,
            returncode=-1,
            stderr=f"timed out after {timeout}s",
            stdout=e.stdout if isinstance(e.stdout, str) else "",
            cwd=cwd,
            timed_out=True,
        ) from e
    except FileNotFoundError as e:
        raise SubprocessError(
            cmd=cmd_str,
            returncode=127,
            stderr=str(e),
            cwd=cwd,
        ) from e

    if check and result.returncode != 0:
        raise SubprocessError(
            cmd=cmd_str,
            returncode=result.returncode,
            stderr=result.stderr,
            stdout=result.stdout,
            cwd=cwd,
        )

    return result


def run_git_command(
    args: List[str],
    *,
    cwd: Optional[Path] = None,
    check: bool = True,
    timeout: Optional[int] = 30,
    env: Optional[dict] = None,
) -> subprocess.CompletedProcess:
    """
    Run a git command with standardized error handling.

    Args:
        args: Git command arguments (without 'git' prefix)
        cwd: Working directory (git repo)
        check: Raise exception on non-zero exit
        timeout: Timeout in seconds (default: 30, None disables)
        env: Environment variables (defaults to the widened tool env)

    Returns:
        CompletedProcess with stdout, stderr, returncode

    Raises:
        SubprocessError: If check=True and command fails
    """
    cmd = ["git"] + args

    try:
        return run_command(
            cmd,
            cwd=cwd,
            capture_output=True,
            check=check,
            timeout=timeout,
            env=env if env is not None else build_tool_env(),
        )
    except SubprocessError:
        logger.debug(f"Git command failed in {cwd}: {' '.join(args)}")
        raise


def check_command_exists(command: str, env: Optional[dict] = None) -> bool:
    """
    Check if a command exists on the PATH of ``env``.

    Args:
        command: Command name to check
        env: Environment whose PATH is searched (defaults to the widened tool env)

    Returns:
        True if command exists, False otherwise
    """
    search_env = env if env is not None else build_tool_env()
    return shutil.which(command, path=search_env.get("PATH")) is not None
