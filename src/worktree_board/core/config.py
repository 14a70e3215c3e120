"""Configuration loading and validation."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..utils.subprocess_utils import DEFAULT_EXTRA_PATH_DIRS

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "worktree-board.yaml"


class WorktreeSettings(BaseModel):
    """Where isolated worktrees live and how feature branches are named."""
    directory_name: str = ".worktrees"
    feature_branch_prefix: str = "feature/"

    @field_validator("directory_name")
    @classmethod
    def validate_directory_name(cls, v: str) -> str:
        if not v or "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError(f"directory_name must be a single path segment, got '{v}'")
        return v


class ToolSettings(BaseModel):
    """External tool invocation settings."""
    extra_path_dirs: List[str] = Field(default_factory=lambda: list(DEFAULT_EXTRA_PATH_DIRS))
    gh_executable: str = "gh"
    git_timeout: int = 30
    push_timeout: int = 120  # Network-bound: push and PR creation
    gh_timeout: int = 120

    @field_validator("git_timeout", "push_timeout", "gh_timeout")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"timeouts must be >= 1 second, got {v}")
        return v


class PublishSettings(BaseModel):
    """Commit/push/PR defaults."""
    default_base_branch: str = "main"
    remote: str = "origin"
    upstream_remote: str = "upstream"


class FeatureSettings(BaseModel):
    """Work registry settings."""
    metadata_dir: str = ".workboard"
    # Enforce the forward-only status lifecycle on writes
    strict_transitions: bool = False


class ExecutionSettings(BaseModel):
    """How a feature is actually worked on inside its directory.

    ``command`` is an argv list; ``{feature_id}``, ``{title}`` and
    ``{description}`` placeholders are substituted per feature.
    """
    command: Optional[List[str]] = None
    timeout: Optional[int] = None


class ServerSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 3008


class OrchestratorConfig(BaseSettings):
    """Main configuration."""

    model_config = SettingsConfigDict(
        env_prefix="WORKBOARD_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="allow",
    )

    log_level: str = "INFO"
    worktrees: WorktreeSettings = Field(default_factory=WorktreeSettings)
    tools: ToolSettings = Field(default_factory=ToolSettings)
    publish: PublishSettings = Field(default_factory=PublishSettings)
    features: FeatureSettings = Field(default_factory=FeatureSettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        normalized = v.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"log_level must be a standard logging level, got '{v}'")
        return normalized


# Module-level mtime-based config cache: path -> (parsed_config, file_mtime)
_config_cache: Dict[str, tuple] = {}


def _get_cached_or_load(resolved_path: Path, loader):
    """Return cached config if file mtime unchanged, else reload."""
    key = str(resolved_path)
    try:
        current_mtime = resolved_path.stat().st_mtime
    except FileNotFoundError:
        _config_cache.pop(key, None)
        return None

    cached = _config_cache.get(key)
    if cached is not None:
        cached_result, cached_mtime = cached
        if cached_mtime == current_mtime:
            return cached_result

    result = loader(resolved_path)
    _config_cache[key] = (result, current_mtime)
    return result


def _load_config_from_file(config_path: Path) -> OrchestratorConfig:
    """Internal loader for the config file (no caching)."""
    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    data = _expand_env_vars(data)
    return OrchestratorConfig(**data)


def load_config(config_path: Path = Path(DEFAULT_CONFIG_FILENAME)) -> OrchestratorConfig:
    """Load configuration from a YAML file.

    Uses mtime-based caching; a missing file yields defaults (plus any
    ``WORKBOARD_*`` environment overrides).
    """
    if not config_path.exists():
        logger.debug(f"Config file not found: {config_path}. Using default configuration.")
        return OrchestratorConfig()

    resolved = config_path.resolve()
    result = _get_cached_or_load(resolved, _load_config_from_file)
    return result if result is not None else OrchestratorConfig()


def _expand_env_vars(data: Any, _path: str = "") -> Any:
    """Recursively expand ``${VAR}`` strings in config data.

    Args:
        data: Config data to process
        _path: Internal tracking for error messages (e.g., "execution.command[0]")
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v, f"{_path}.{k}" if _path else k) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item, f"{_path}[{i}]") for i, item in enumerate(data)]
    elif isinstance(data, str) and data.startswith("${") and data.endswith("}"):
        env_var = data[2:-1]
        value = os.environ.get(env_var)
        if value is None:
            logger.warning(
                f"Environment variable '{env_var}' not set (referenced at config path: {_path or 'root'}). "
                f"The literal string '{data}' will be used."
            )
            return data
        return value
    return data
