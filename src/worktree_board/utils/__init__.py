"""Shared utility functions for worktree board."""

from .atomic_io import atomic_write_model, atomic_write_text
from .subprocess_utils import (
    SubprocessError,
    build_tool_env,
    run_command,
    run_git_command,
)
from .validators import sanitize_directory_name, validate_branch_name, validate_feature_id

__all__ = [
    "atomic_write_model",
    "atomic_write_text",
    "SubprocessError",
    "build_tool_env",
    "run_command",
    "run_git_command",
    "sanitize_directory_name",
    "validate_branch_name",
    "validate_feature_id",
]
