"""Validation utilities for branch names, directory names, and feature ids."""

import re

# Characters git refuses in ref names (see git-check-ref-format)
_FORBIDDEN_REF_CHARS = re.compile(r"[\s~^:?*\[\\\x00-\x1f\x7f]")
_UNSAFE_DIR_CHARS = re.compile(r"[^A-Za-z0-9_-]")
_FEATURE_ID = re.compile(r"^[a-z0-9][a-z0-9-]*$")


def validate_branch_name(branch_name: str) -> str:
    """
    Validate a git branch name.

    Args:
        branch_name: Branch name to validate

    Returns:
        Validated branch name

    Raises:
        ValueError: If branch name is invalid
    """
    if not branch_name:
        raise ValueError("Branch name cannot be empty")

    if _FORBIDDEN_REF_CHARS.search(branch_name):
        raise ValueError(f"Invalid branch name: {branch_name}")

    if branch_name.startswith(("/", "-")) or branch_name.endswith(("/", ".")):
        raise ValueError("Branch name cannot start with / or - or end with / or .")

    if ".." in branch_name or "@{" in branch_name or "//" in branch_name:
        raise ValueError("Branch name contains invalid sequence")

    if branch_name.endswith(".lock") or branch_name == "@":
        raise ValueError(f"Invalid branch name: {branch_name}")

    if len(branch_name) > 255:
        raise ValueError("Branch name too long")

    return branch_name


def sanitize_directory_name(branch_name: str) -> str:
    """Map a branch name to a filesystem-safe directory name.

    Every character outside ``[A-Za-z0-9_-]`` becomes ``-``; the mapping is
    one character for one character, so ``feature/login.page`` becomes
    ``feature-login-page``.
    """
    return _UNSAFE_DIR_CHARS.sub("-", branch_name)


def validate_feature_id(value: str) -> str:
    """
    Validate a feature id (lowercase-hyphenated token).

    Feature ids double as directory names in the work registry, so the
    check also rules out path traversal.

    Raises:
        ValueError: If the id is invalid
    """
    if not value:
        raise ValueError("Feature id cannot be empty")

    if not _FEATURE_ID.match(value):
        raise ValueError(f"Invalid feature id: {value}")

    if len(value) > 128:
        raise ValueError("Feature id too long")

    return value
