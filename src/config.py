"""Configuration loaded from .semble.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from semble_recs.api import (
    DEFAULT_BASE_URL,
    DEFAULT_MAX_PAGES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_TIMEOUT,
    SembleAPI,
)
from semble_recs.clustering import (
    DEFAULT_NUM_CLUSTERS,
    DEFAULT_SIMILARITY_THRESHOLD,
    DEFAULT_TOP_KEYWORDS,
)
from semble_recs.errors import ConfigError
from semble_recs.overlap import (
    DEFAULT_MAX_WORKERS as DEFAULT_OVERLAP_WORKERS,
    DEFAULT_TOP_COLLECTIONS,
    DEFAULT_TOP_USERS,
)
from semble_recs.recommendations import (
    DEFAULT_CARDS_PER_CLUSTER,
    DEFAULT_MAX_CLUSTERS,
    DEFAULT_MAX_WORKERS,
    DEFAULT_RESULTS_PER_CLUSTER,
    DEFAULT_SEARCH_THRESHOLD,
    DEFAULT_SIMILAR_LIMIT,
    DEFAULT_SIMILAR_THRESHOLD,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".semble.toml"
GLOBAL_CONFIG_PATH = Path.home() / ".config" / "semble-recs" / "config.toml"


class ApiConfig(BaseModel):
    """[api] section."""

    base_url: str = DEFAULT_BASE_URL
    timeout: int = DEFAULT_TIMEOUT
    page_size: int = DEFAULT_PAGE_SIZE
    max_pages: int = DEFAULT_MAX_PAGES


class ClusteringConfig(BaseModel):
    """[clustering] section."""

    num_clusters: int = Field(default=DEFAULT_NUM_CLUSTERS, ge=0)
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    top_keywords: int = Field(default=DEFAULT_TOP_KEYWORDS, ge=1)


class RecommendationsConfig(BaseModel):
    """[recommendations] section."""

    max_clusters: int = Field(default=DEFAULT_MAX_CLUSTERS, ge=0)
    results_per_cluster: int = Field(default=DEFAULT_RESULTS_PER_CLUSTER, ge=1)
    search_threshold: float = DEFAULT_SEARCH_THRESHOLD
    similar_threshold: float = DEFAULT_SIMILAR_THRESHOLD
    similar_limit: int = Field(default=DEFAULT_SIMILAR_LIMIT, ge=1)
    cards_per_cluster: int = Field(default=DEFAULT_CARDS_PER_CLUSTER, ge=1)
    max_workers: int = Field(default=DEFAULT_MAX_WORKERS, ge=1)


class OverlapConfig(BaseModel):
    """[overlap] section."""

    max_workers: int = Field(default=DEFAULT_OVERLAP_WORKERS, ge=1)
    top_users: int = Field(default=DEFAULT_TOP_USERS, ge=1)
    top_collections: int = Field(default=DEFAULT_TOP_COLLECTIONS, ge=1)


class SembleConfig(BaseModel):
    """Top-level configuration."""

    api: ApiConfig = Field(default_factory=ApiConfig)
    clustering: ClusteringConfig = Field(default_factory=ClusteringConfig)
    recommendations: RecommendationsConfig = Field(default_factory=RecommendationsConfig)
    overlap: OverlapConfig = Field(default_factory=OverlapConfig)

    def to_client(self) -> SembleAPI:
        """Build a SembleAPI client from the [api] section."""
        return SembleAPI(
            self.api.base_url,
            timeout=self.api.timeout,
            page_size=self.api.page_size,
            max_pages=self.api.max_pages,
        )


def load_config(path: str | Path | None = None) -> SembleConfig:
    """Build the effective configuration from TOML and the environment.

    An explicit ``path`` wins; otherwise ``./.semble.toml`` is tried, then
    the per-user file. A file that is missing or fails to validate is
    logged and replaced by defaults, so only bad ``SEMBLE_*`` variables
    raise (``ConfigError``).
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for candidate in (Path(".") / CONFIG_FILENAME, GLOBAL_CONFIG_PATH):
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break

    try:
        config = SembleConfig.model_validate(data) if data else SembleConfig()
    except ValidationError as exc:
        logger.warning("Invalid config, using defaults: %s", exc)
        config = SembleConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: SembleConfig, **cli_kwargs: object) -> SembleConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Flags left at None are ignored. Values that fail validation raise
    ``ConfigError`` naming the offending option.
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "num_clusters": ("clustering", "num_clusters"),
        "similarity_threshold": ("clustering", "similarity_threshold"),
        "max_clusters": ("recommendations", "max_clusters"),
        "results_per_cluster": ("recommendations", "results_per_cluster"),
        "cards_per_cluster": ("recommendations", "cards_per_cluster"),
        "top_users": ("overlap", "top_users"),
        "top_collections": ("overlap", "top_collections"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key not in mapping:
            raise ConfigError(f"Unknown CLI override: {key}")
        section, field = mapping[key]
        data[section][field] = value

    try:
        return SembleConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid option: {exc}") from exc


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: SembleConfig) -> SembleConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "SEMBLE_API_URL": ("api", "base_url"),
        "SEMBLE_API_TIMEOUT": ("api", "timeout"),
        "SEMBLE_NUM_CLUSTERS": ("clustering", "num_clusters"),
        "SEMBLE_SIMILARITY_THRESHOLD": ("clustering", "similarity_threshold"),
        "SEMBLE_MAX_CLUSTERS": ("recommendations", "max_clusters"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    try:
        return SembleConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid environment override: {exc}") from exc
