"""Worktree management for worktree board."""

from .path_locks import PathLocks
from .worktree_registry import (
    NoRepositoryError,
    Worktree,
    WorktreeConflictError,
    WorktreeError,
    WorktreeNotFoundError,
    WorktreeRegistry,
)

__all__ = [
    "PathLocks",
    "NoRepositoryError",
    "Worktree",
    "WorktreeConflictError",
    "WorktreeError",
    "WorktreeNotFoundError",
    "WorktreeRegistry",
]
