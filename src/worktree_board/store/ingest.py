"""Turn feature-generation output into backlog records."""

import json
import logging
import re
from typing import Any, Dict, List, Union

from pydantic import ValidationError

from ..core.feature import Feature, FeatureStatus

logger = logging.getLogger(__name__)

# Greedy on purpose: the outermost object that mentions "features"
_FEATURES_JSON = re.compile(r"\{[\s\S]*\"features\"[\s\S]*\}")


def _extract_payload(content: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(content, dict):
        return content

    match = _FEATURES_JSON.search(content)
    if not match:
        raise ValueError("No valid JSON found in response")
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed features JSON: {e}") from e


def parse_generated_features(content: Union[str, Dict[str, Any]]) -> List[Feature]:
    """
    Parse generator output into new backlog features.

    Args:
        content: Structured output (``{"features": [...]}``) or free text
            containing such an object

    Returns:
        Features with status backlog and defaults filled in

    Raises:
        ValueError: If no feature list can be found or an entry is invalid
    """
    payload = _extract_payload(content)
    raw_features = payload.get("features")
    if not isinstance(raw_features, list):
        raise ValueError("'features' must be a list")

    features = []
    for raw in raw_features:
        if not isinstance(raw, dict):
            raise ValueError(f"Feature entry must be an object, got {type(raw).__name__}")
        try:
            features.append(
                Feature(
                    id=raw.get("id", ""),
                    category=raw.get("category") or "Uncategorized",
                    title=raw.get("title") or "",
                    description=raw.get("description") or "",
                    status=FeatureStatus.BACKLOG.value,
                    priority=raw.get("priority") or 2,
                    complexity=raw.get("complexity") or "moderate",
                    dependencies=raw.get("dependencies") or [],
                )
            )
        except ValidationError as e:
            raise ValueError(f"Invalid feature {raw.get('id')!r}: {e}") from e

    logger.info(f"Parsed {len(features)} generated features")
    return features
