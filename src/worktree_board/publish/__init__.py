"""Commit, push and pull-request publication."""

from .pipeline import (
    CommitError,
    PublicationPipeline,
    PublicationResult,
    PublishError,
    PublishOptions,
    PushError,
)
from .remotes import Fork, SameRepo

__all__ = [
    "CommitError",
    "PublicationPipeline",
    "PublicationResult",
    "PublishError",
    "PublishOptions",
    "PushError",
    "Fork",
    "SameRepo",
]
