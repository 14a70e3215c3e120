"""Project features onto board columns for one worktree scope."""

from typing import AbstractSet, Dict, Iterable, List, Optional

from .feature import Feature, FeatureStatus

COLUMNS = [status.value for status in FeatureStatus]

# Completed features live in the archive view, not on the board
BOARD_COLUMNS = [c for c in COLUMNS if c != FeatureStatus.COMPLETED.value]

# Sort key for backlog features without a priority: after every real one
NO_PRIORITY = 999


def matches_search(feature: Feature, query: str) -> bool:
    """Case-insensitive substring match on description and category."""
    normalized = query.strip().lower()
    if not normalized:
        return True
    return (
        normalized in feature.description.lower()
        or normalized in (feature.category or "").lower()
    )


def in_scope(feature: Feature, scope: Optional[str]) -> bool:
    """Whether ``feature`` is visible when ``scope`` is selected.

    ``scope`` is a worktree path, or None for the main copy. Unscoped
    features are visible everywhere; scoped ones only in their own worktree.
    """
    if not feature.worktree_path:
        return True
    if scope is None:
        return False
    return feature.worktree_path == scope


def project_board(
    features: Iterable[Feature],
    running_ids: AbstractSet[str],
    search_query: str = "",
    scope: Optional[str] = None,
) -> Dict[str, List[Feature]]:
    """
    Assign features to columns.

    Args:
        features: Every feature of the project
        running_ids: Ids currently executing; these always show in_progress
        search_query: Text filter, applied before the scope filter
        scope: Selected worktree path, None for main

    Returns:
        Mapping of every column name (completed included) to its features
    """
    columns: Dict[str, List[Feature]] = {name: [] for name in COLUMNS}

    visible = [f for f in features if matches_search(f, search_query)]
    visible = [f for f in visible if in_scope(f, scope)]

    for feature in visible:
        if feature.id in running_ids:
            columns[FeatureStatus.IN_PROGRESS.value].append(feature)
        elif feature.status in columns:
            columns[feature.status].append(feature)
        else:
            columns[FeatureStatus.BACKLOG.value].append(feature)

    # list.sort is stable: equal and missing priorities keep encounter order
    columns[FeatureStatus.BACKLOG.value].sort(
        key=lambda f: f.priority if f.priority is not None else NO_PRIORITY
    )

    return columns


def archived_features(features: Iterable[Feature]) -> List[Feature]:
    """Every completed feature, regardless of search or scope."""
    return [f for f in features if f.status == FeatureStatus.COMPLETED.value]
