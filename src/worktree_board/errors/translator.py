"""Translate gh CLI failures into user-facing messages."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class UserFriendlyError:
    """User-friendly error representation."""
    raw_message: str
    title: str
    explanation: str
    actions: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        return self.explanation


class ErrorTranslator:
    """Match raw pull-request errors against known phrases.

    Patterns are case-insensitive substrings checked in order; the first
    hit wins. Unknown errors pass through with the raw text.
    """

    ERROR_PATTERNS = [
        (("no commits between",), {
            "title": "Nothing to publish",
            "explanation": (
                "No new commits to create PR. Make sure your branch has changes "
                "compared to the base branch."
            ),
            "actions": ["Commit changes on the branch, then publish again"],
        }),
        (("already exists",), {
            "title": "Pull request already open",
            "explanation": "A pull request already exists for this branch.",
            "actions": ["Open the existing pull request: gh pr view --web"],
        }),
        (("not logged in", "auth"), {
            "title": "Authentication required",
            "explanation": "GitHub CLI not authenticated. Run 'gh auth login' in terminal.",
            "actions": ["Run: gh auth login", "Check status: gh auth status"],
        }),
    ]

    def translate(self, raw_message: str) -> UserFriendlyError:
        """Classify ``raw_message``."""
        lowered = raw_message.lower()
        for needles, translation in self.ERROR_PATTERNS:
            if any(needle in lowered for needle in needles):
                return UserFriendlyError(raw_message=raw_message, **translation)

        return UserFriendlyError(
            raw_message=raw_message,
            title="Pull request creation failed",
            explanation=raw_message.strip() or "PR creation failed",
        )


_default_translator = ErrorTranslator()


def classify_pr_error(raw_message: Optional[str]) -> Optional[str]:
    """Short user-facing message for a gh failure, ``None`` for no failure."""
    if raw_message is None:
        return None
    return _default_translator.translate(raw_message).message
