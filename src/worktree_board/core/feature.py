"""Feature (work item) model matching the on-disk JSON schema."""

from datetime import UTC, datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..utils.validators import validate_feature_id


class FeatureStatus(str, Enum):
    """Lifecycle of a feature on the board."""
    BACKLOG = "backlog"
    IN_PROGRESS = "in_progress"
    WAITING_APPROVAL = "waiting_approval"
    VERIFIED = "verified"
    COMPLETED = "completed"


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


# Forward chain plus the two ways back that a run can force:
# a failed run returns to backlog, a rejected review goes back to work.
ALLOWED_TRANSITIONS: Dict[FeatureStatus, FrozenSet[FeatureStatus]] = {
    FeatureStatus.BACKLOG: frozenset({FeatureStatus.IN_PROGRESS}),
    FeatureStatus.IN_PROGRESS: frozenset({FeatureStatus.WAITING_APPROVAL, FeatureStatus.BACKLOG}),
    FeatureStatus.WAITING_APPROVAL: frozenset({FeatureStatus.VERIFIED, FeatureStatus.IN_PROGRESS}),
    FeatureStatus.VERIFIED: frozenset({FeatureStatus.COMPLETED}),
    FeatureStatus.COMPLETED: frozenset(),
}


class InvalidTransitionError(ValueError):
    """Status change not permitted under strict transitions."""


def check_transition(current: str, new: str) -> None:
    """Raise InvalidTransitionError unless ``current -> new`` is allowed.

    A no-op change is always allowed; an unrecognized current status may
    move anywhere (it is shown as backlog anyway).
    """
    if current == new:
        return
    try:
        source = FeatureStatus(current)
    except ValueError:
        return
    target = FeatureStatus(new)
    if target not in ALLOWED_TRANSITIONS[source]:
        raise InvalidTransitionError(f"Cannot move feature from {current} to {new}")


def _now() -> datetime:
    return datetime.now(UTC)


class Feature(BaseModel):
    """A unit of automatable work.

    ``status`` is stored as a plain string so records written by newer or
    older tools round-trip; use :class:`FeatureStatus` to compare.
    ``worktree_path`` absent means the feature is visible in every scope.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        extra="ignore",
    )

    id: str
    category: str = "Uncategorized"
    title: str = ""
    description: str = ""
    status: str = FeatureStatus.BACKLOG.value
    priority: Optional[int] = None
    complexity: Complexity = Complexity.MODERATE
    dependencies: List[str] = Field(default_factory=list)
    worktree_path: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        return validate_feature_id(v)

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v not in (1, 2, 3):
            raise ValueError(f"priority must be 1, 2 or 3, got {v}")
        return v

    @field_validator("dependencies")
    @classmethod
    def dedupe_dependencies(cls, v: List[str]) -> List[str]:
        # Set semantics, first occurrence order kept for stable JSON
        return list(dict.fromkeys(v))

    @property
    def is_archived(self) -> bool:
        return self.status == FeatureStatus.COMPLETED.value

    def to_json_dict(self) -> dict:
        """camelCase dict as written to disk and returned over HTTP."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
