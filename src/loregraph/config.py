"""Configuration management for LoreGraph."""

from __future__ import annotations

import json
import math
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from loregraph.exceptions import ConfigError

LOREGRAPH_DIR = ".loregraph"
CONFIG_FILE = "config.json"


class RagFallbackPolicy(str, Enum):
    """When RAG documents are added next to world_info entries."""

    OFF = "off"
    AUTO = "auto"  # Only when lexical/graph seeding is weak or absent
    ALWAYS = "always"


class MembershipMode(str, Enum):
    """How a pack scope claims documents from nested scopes."""

    EXACT = "exact"
    CASCADE = "cascade"  # Parent scopes also hold their children's documents


class RankingWeights(BaseModel):
    """Weights of the seven normalized factors in the importance score."""

    hierarchy: float = 8000.0
    in_degree: float = 4000.0
    pagerank: float = 2000.0
    betweenness: float = 1000.0
    out_degree: float = 500.0
    total_degree: float = 100.0
    file_depth: float = 2000.0

    @field_validator("*")
    @classmethod
    def _clamp_weight(cls, value: float) -> float:
        # NaN, infinities and negatives contribute nothing
        if not math.isfinite(value) or value < 0:
            return 0.0
        return value


class RetrievalConfig(BaseModel):
    """Query-time defaults for context assembly."""

    token_budget: int = 1024
    max_entries: int = 8
    max_documents: int = 6
    budget_ratio: float = 0.6  # Share of the budget given to world_info
    max_graph_hops: int = 2
    graph_hop_decay: float = 0.55
    rag_fallback_policy: RagFallbackPolicy = RagFallbackPolicy.AUTO
    rag_fallback_threshold: float = 120.0
    semantic_boost_scale: float = 150.0


class ScopeConfig(BaseModel):
    """Which documents a named scope holds."""

    membership_mode: MembershipMode = MembershipMode.CASCADE
    include_unscoped: bool = False  # Documents without a scope join every scope


class ProjectConfig(BaseModel):
    """Full project configuration."""

    name: str = ""
    root_path: str = "."
    root_uid: int | None = None
    ranking: RankingWeights = Field(default_factory=RankingWeights)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    scope: ScopeConfig = Field(default_factory=ScopeConfig)


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from `start` looking for a .loregraph directory."""
    current = (start or Path.cwd()).resolve()
    while current != current.parent:
        if (current / LOREGRAPH_DIR).is_dir():
            return current
        current = current.parent
    if (current / LOREGRAPH_DIR).is_dir():
        return current
    return None


def get_loregraph_dir(root: Path) -> Path:
    """Get the .loregraph directory for a project root."""
    return root / LOREGRAPH_DIR


def load_config(root: Path) -> ProjectConfig:
    """Load configuration from .loregraph/config.json."""
    config_path = get_loregraph_dir(root) / CONFIG_FILE
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
            return ProjectConfig(**data)
        except (json.JSONDecodeError, ValidationError, TypeError) as exc:
            raise ConfigError(f"Could not read {config_path}: {exc}") from exc
    return ProjectConfig(name=root.name, root_path=str(root))


def save_config(root: Path, config: ProjectConfig) -> None:
    """Save configuration to .loregraph/config.json."""
    lg_dir = get_loregraph_dir(root)
    lg_dir.mkdir(parents=True, exist_ok=True)
    config_path = lg_dir / CONFIG_FILE
    config_path.write_text(json.dumps(config.model_dump(mode="json"), indent=2))


def set_config_value(config: ProjectConfig, key: str, value: Any) -> ProjectConfig:
    """Set a nested config value using dot notation (e.g., 'ranking.pagerank')."""
    parts = key.split(".")
    data = config.model_dump()
    target = data
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            raise KeyError(f"Invalid config key: {key}")
        target = target[part]
    if parts[-1] not in target:
        raise KeyError(f"Invalid config key: {key}")
    target[parts[-1]] = value
    return ProjectConfig(**data)
