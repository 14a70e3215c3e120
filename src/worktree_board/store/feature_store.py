"""File-backed work registry: one JSON descriptor per feature.

Layout::

    <project>/<metadata_dir>/features/<feature-id>/feature.json

The metadata directory is symlinked into every worktree, so all isolation
scopes read and write the same records. Each record is rewritten atomically
as a whole; concurrent writers are last-write-wins per record.
"""

import json
import logging
import shutil
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, List, Optional, Union

from pydantic import ValidationError

from ..core.config import OrchestratorConfig
from ..core.feature import Feature, FeatureStatus, check_transition
from ..utils.atomic_io import atomic_write_model
from ..utils.validators import validate_feature_id

logger = logging.getLogger(__name__)

FEATURE_FILENAME = "feature.json"


class FeatureNotFoundError(KeyError):
    """No record exists for the requested feature id."""


class FeatureStore:
    """Reads and writes the feature records of one project."""

    def __init__(
        self,
        project_path: Union[str, Path],
        config: Optional[OrchestratorConfig] = None,
    ):
        self.config = config or OrchestratorConfig()
        self.project_path = Path(project_path)
        self.metadata_dir = self.project_path / self.config.features.metadata_dir
        self.features_dir = self.metadata_dir / "features"

    def _feature_file(self, feature_id: str) -> Path:
        return self.features_dir / validate_feature_id(feature_id) / FEATURE_FILENAME

    def _read(self, path: Path) -> Feature:
        with open(path) as f:
            return Feature.model_validate(json.load(f))

    def load_all(self) -> List[Feature]:
        """Load every readable record, sorted by id. Malformed files are skipped."""
        if not self.features_dir.is_dir():
            return []

        features = []
        for path in sorted(self.features_dir.glob(f"*/{FEATURE_FILENAME}")):
            try:
                features.append(self._read(path))
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                logger.warning(f"Skipping malformed feature file {path}: {e}")
        return features

    def get(self, feature_id: str) -> Optional[Feature]:
        path = self._feature_file(feature_id)
        if not path.exists():
            return None
        try:
            return self._read(path)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Malformed feature file {path}: {e}")
            return None

    def save(self, feature: Feature, touch: bool = True) -> Feature:
        """Write ``feature`` atomically, stamping ``updated_at`` unless ``touch`` is False."""
        if touch:
            feature.updated_at = datetime.now(UTC)
        path = self._feature_file(feature.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_model(path, feature)
        return feature

    def update(self, feature_id: str, **changes: Any) -> Feature:
        """Read-modify-write a single record.

        Keyword names are model field names (``worktree_path=...``); pass
        ``None`` to clear an optional field.

        Raises:
            FeatureNotFoundError: If no record exists
            InvalidTransitionError: If strict transitions reject a status change
        """
        feature = self.get(feature_id)
        if feature is None:
            raise FeatureNotFoundError(feature_id)

        if "status" in changes:
            new_status = FeatureStatus(changes["status"]).value
            if self.config.features.strict_transitions:
                check_transition(feature.status, new_status)
            changes["status"] = new_status

        updated = feature.model_copy(update=changes)
        # model_copy skips validation; round-trip to catch bad values
        updated = Feature.model_validate(updated.model_dump())
        return self.save(updated)

    def set_status(self, feature_id: str, status: Union[str, FeatureStatus]) -> Feature:
        return self.update(feature_id, status=status)

    def delete(self, feature_id: str) -> bool:
        """Remove a record entirely (archiving is a status change, not this)."""
        feature_dir = self._feature_file(feature_id).parent
        if not feature_dir.exists():
            return False
        shutil.rmtree(feature_dir)
        logger.info(f"Deleted feature {feature_id}")
        return True

    def create_batch(self, features: List[Feature]) -> List[Feature]:
        """Persist a batch produced by the generation collaborator."""
        created = []
        for feature in features:
            created.append(self.save(feature, touch=False))
            logger.debug(f"Created feature {feature.id}")
        logger.info(f"Created {len(created)} features in {self.features_dir}")
        return created
