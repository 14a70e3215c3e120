"""Persistent feature records."""

from .feature_store import FeatureNotFoundError, FeatureStore
from .ingest import parse_generated_features

__all__ = ["FeatureNotFoundError", "FeatureStore", "parse_generated_features"]
