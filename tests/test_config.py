"""Tests for configuration management."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from contextos.config import (
    CONFIG_FILE,
    CONTEXTOS_DIR,
    Constraint,
    ProjectConfig,
    Severity,
    find_project_root,
    get_contextos_dir,
    load_config,
    save_config,
    set_config_value,
)
from contextos.exceptions import ConfigError


class TestConfig:
    def test_defaults(self):
        config = ProjectConfig()
        assert config.embedding.provider == "auto"
        assert config.embedding.model == "all-MiniLM-L6-v2"
        assert config.chunking.chunk_size == 512
        assert config.chunking.overlap == 50
        assert config.chunking.min_chunk_size == 100
        assert config.ranking.vector_weight == 0.4
        assert config.ranking.graph_weight == 0.4
        assert config.ranking.manual_weight == 0.2
        assert config.ranking.limit == 20
        assert config.budget.target_model == "gpt-4-turbo"
        assert config.budget.max_tokens is None
        assert config.indexer.max_concurrent_reads == 10
        assert ".contextos" in config.indexer.exclude_patterns

    def test_constraint_defaults(self):
        rule = Constraint(rule="Write tests")
        assert rule.severity == Severity.WARNING
        assert rule.autofix is False
        assert rule.suggestion is None
        assert rule.related == []

    def test_save_and_load(self, tmp_path: Path):
        config = ProjectConfig()
        config.project.name = "test-project"
        config.embedding.provider = "hash"
        config.constraints = [
            Constraint(rule="No eval", severity=Severity.ERROR, related=["security"]),
        ]

        save_config(tmp_path, config)
        assert (tmp_path / CONTEXTOS_DIR / CONFIG_FILE).exists()

        loaded = load_config(tmp_path)
        assert loaded.project.name == "test-project"
        assert loaded.embedding.provider == "hash"
        assert loaded.constraints[0].severity == Severity.ERROR
        assert loaded.constraints[0].related == ["security"]

    def test_load_default(self, tmp_path: Path):
        config = load_config(tmp_path)
        assert config.project.name == tmp_path.name
        assert config.root_path == str(tmp_path)

    def test_load_invalid_json(self, tmp_path: Path):
        ctx_dir = get_contextos_dir(tmp_path)
        ctx_dir.mkdir()
        (ctx_dir / CONFIG_FILE).write_text("{not json")
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_load_invalid_schema(self, tmp_path: Path):
        ctx_dir = get_contextos_dir(tmp_path)
        ctx_dir.mkdir()
        (ctx_dir / CONFIG_FILE).write_text(json.dumps({"ranking": {"limit": "many"}}))
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_set_config_value(self):
        config = ProjectConfig()
        updated = set_config_value(config, "ranking.limit", 30)
        assert updated.ranking.limit == 30

        updated = set_config_value(updated, "embedding.provider", "none")
        assert updated.embedding.provider == "none"
        assert updated.ranking.limit == 30

    def test_set_unknown_key(self):
        config = ProjectConfig()
        with pytest.raises(KeyError):
            set_config_value(config, "ranking.nonexistent", 1)
        with pytest.raises(KeyError):
            set_config_value(config, "nothing.here", 1)

    def test_find_project_root(self, tmp_path: Path):
        (tmp_path / CONTEXTOS_DIR).mkdir()
        nested = tmp_path / "src" / "pkg"
        nested.mkdir(parents=True)
        assert find_project_root(nested) == tmp_path.resolve()
