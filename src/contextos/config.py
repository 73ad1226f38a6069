"""Configuration management for ContextOS."""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from contextos.exceptions import ConfigError

CONTEXTOS_DIR = ".contextos"
CONFIG_FILE = "config.json"
GRAPH_DB_FILE = "db/graph.db"
VECTOR_DB_FILE = "db/vectors.db"


class Severity(str, Enum):
    """How strongly a constraint should be enforced."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class Constraint(BaseModel):
    """A project coding rule. Read-only to the ranker and packer."""

    rule: str
    severity: Severity = Severity.WARNING
    autofix: bool = False
    suggestion: str | None = None
    related: list[str] = Field(default_factory=list)  # topics matched against the goal


class ProjectInfo(BaseModel):
    """Project description, summarised into the immutable core of every build."""

    name: str = ""
    description: str = ""
    language: str = ""


class IndexerConfig(BaseModel):
    """Indexer configuration."""

    exclude_patterns: list[str] = Field(
        default_factory=lambda: [
            "node_modules",
            "__pycache__",
            ".git",
            ".contextos",
            "dist",
            "build",
            ".venv",
            "venv",
            ".env",
            "*.pyc",
            "*.min.js",
            "*.map",
            "*.lock",
            "package-lock.json",
            "yarn.lock",
        ]
    )
    max_file_size_kb: int = 1024
    languages: list[str] = Field(default_factory=list)  # empty = auto-detect
    max_concurrent_reads: int = 10


class ChunkingConfig(BaseModel):
    """Chunker tuning, in characters."""

    chunk_size: int = 512
    overlap: int = 50
    min_chunk_size: int = 100


class EmbeddingConfig(BaseModel):
    """Embedding backend selection.

    ``auto`` tries sentence-transformers and quietly drops to lexical
    search when it is not installed; ``none`` always uses lexical search.
    """

    provider: str = "auto"  # auto | sentence-transformers | hash | none
    model: str = "all-MiniLM-L6-v2"
    dim: int = 256  # hash embedder only


class RankingConfig(BaseModel):
    """Hybrid ranker weights and default result size."""

    vector_weight: float = 0.4
    graph_weight: float = 0.4
    manual_weight: float = 0.2
    limit: int = 20


class BudgetConfig(BaseModel):
    """Token budgeting configuration."""

    target_model: str = "gpt-4-turbo"
    max_tokens: int | None = None  # overrides the model's limit when set


class ProjectConfig(BaseModel):
    """Full project configuration."""

    project: ProjectInfo = Field(default_factory=ProjectInfo)
    root_path: str = "."
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    ranking: RankingConfig = Field(default_factory=RankingConfig)
    budget: BudgetConfig = Field(default_factory=BudgetConfig)
    constraints: list[Constraint] = Field(default_factory=list)


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from `start` looking for a .contextos directory."""
    current = (start or Path.cwd()).resolve()
    while current != current.parent:
        if (current / CONTEXTOS_DIR).is_dir():
            return current
        current = current.parent
    if (current / CONTEXTOS_DIR).is_dir():
        return current
    return None


def get_contextos_dir(root: Path) -> Path:
    """Get the .contextos directory for a project root."""
    return root / CONTEXTOS_DIR


def load_config(root: Path) -> ProjectConfig:
    """Load configuration from .contextos/config.json.

    Raises:
        ConfigError: If the file exists but is not valid JSON or does not
            match the configuration schema.
    """
    config_path = get_contextos_dir(root) / CONFIG_FILE
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
            return ProjectConfig(**data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e
    return ProjectConfig(project=ProjectInfo(name=root.name), root_path=str(root))


def save_config(root: Path, config: ProjectConfig) -> None:
    """Save configuration to .contextos/config.json."""
    ctx_dir = get_contextos_dir(root)
    ctx_dir.mkdir(parents=True, exist_ok=True)
    config_path = ctx_dir / CONFIG_FILE
    config_path.write_text(json.dumps(config.model_dump(mode="json"), indent=2))


def set_config_value(config: ProjectConfig, key: str, value: Any) -> ProjectConfig:
    """Set a nested config value using dot notation (e.g., 'embedding.provider')."""
    parts = key.split(".")
    data = config.model_dump(mode="json")
    target = data
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            raise KeyError(f"Invalid config key: {key}")
        target = target[part]
    if parts[-1] not in target:
        raise KeyError(f"Invalid config key: {key}")
    target[parts[-1]] = value
    return ProjectConfig(**data)
