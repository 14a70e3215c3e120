"""Core models and configuration."""

from .feature import Feature, FeatureStatus, InvalidTransitionError
from .config import OrchestratorConfig, load_config
from .board import project_board, archived_features

__all__ = [
    "Feature",
    "FeatureStatus",
    "InvalidTransitionError",
    "OrchestratorConfig",
    "load_config",
    "project_board",
    "archived_features",
]
