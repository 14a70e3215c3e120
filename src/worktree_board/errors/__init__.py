"""Error translation for user-facing messages."""

from .translator import ErrorTranslator, UserFriendlyError, classify_pr_error

__all__ = ["ErrorTranslator", "UserFriendlyError", "classify_pr_error"]
