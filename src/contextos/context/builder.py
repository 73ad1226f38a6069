"""Context builder: indexes a project and assembles packed context for a goal.

Usage:
    builder = ContextBuilder("/path/to/project")
    builder.initialize()
    builder.index()
    built = builder.build("fix the login redirect", target_file="src/auth.py")
    print(builder.format_for_llm(built))
"""

from __future__ import annotations

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from contextos.budget.packer import SEVERITY_ICONS, TokenBudget
from contextos.config import (
    GRAPH_DB_FILE,
    VECTOR_DB_FILE,
    ProjectConfig,
    get_contextos_dir,
    load_config,
)
from contextos.context.merge import merge_files_to_context
from contextos.context.models import BuildMeta, BuiltContext, IndexResult
from contextos.embedding.chunker import chunk_code
from contextos.embedding.embedder import Embedder
from contextos.embedding.store import SimilarityStore
from contextos.exceptions import ConfigError, ContextOSError, GraphError, IndexingError
from contextos.graph.dependency import DependencyGraph
from contextos.graph.store import GraphStore
from contextos.parser.core import collect_files, parse_file, resolve_import
from contextos.ranking.hybrid import HybridRanker, RankingWeights

logger = logging.getLogger("contextos.builder")

DEFAULT_GOAL = "General development context"
CORE_RULE_LIMIT = 5


class ContextBuilder:
    """Ties the graph, store, ranker and packer together for one project.

    Args:
        root: Project root directory.
        config: Configuration to use instead of ``.contextos/config.json``.
        embedder: Embedding backend to inject into the similarity store.
    """

    def __init__(
        self,
        root: str | Path,
        config: ProjectConfig | None = None,
        embedder: Embedder | None = None,
    ) -> None:
        self.root = Path(root).resolve()
        self.config = config
        self._embedder = embedder
        self.graph = DependencyGraph()
        self.store: SimilarityStore | None = None
        self.graph_store: GraphStore | None = None
        self.ranker: HybridRanker | None = None
        self.budget = TokenBudget()
        self._initialized = False

    def initialize(self) -> None:
        """Load config, open the stores and restore the saved graph."""
        if self._initialized:
            return

        if self.config is None:
            self.config = load_config(self.root)
        ctx_dir = get_contextos_dir(self.root)

        self.store = SimilarityStore(
            ctx_dir / VECTOR_DB_FILE, embedder=self._embedder, config=self.config.embedding
        )
        self.store.initialize()

        self.graph_store = GraphStore(ctx_dir / GRAPH_DB_FILE)
        try:
            loaded = self.graph_store.load()
        except (GraphError, ValueError) as e:
            logger.warning("Failed to load dependency graph, starting empty: %s", e)
            loaded = None
        self.graph = loaded or DependencyGraph()

        ranking = self.config.ranking
        self.ranker = HybridRanker(
            self.store,
            self.graph,
            constraints=self.config.constraints,
            weights=RankingWeights(),
        )
        try:
            self.ranker.set_weights(
                vector=ranking.vector_weight,
                graph=ranking.graph_weight,
                manual=ranking.manual_weight,
            )
        except ValueError as e:
            raise ConfigError(f"Invalid ranking weights: {e}") from e

        self.budget = TokenBudget(
            model_name=self.config.budget.target_model,
            max_tokens=self.config.budget.max_tokens,
        )
        self._initialized = True

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise ContextOSError("ContextBuilder not initialized; call initialize() first")

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def index(self, force: bool = False, progress_callback=None) -> IndexResult:
        """Bring the graph and similarity store up to date with the project.

        Args:
            force: Re-index files even when their content is unchanged.
            progress_callback: Optional callback(file_path, current, total).
        """
        self._require_initialized()
        if not self.root.is_dir():
            raise IndexingError(f"Project root is not a directory: {self.root}")
        start = time.time()
        config = self.config
        result = IndexResult()

        files = collect_files(self.root, config.indexer)
        rel_paths = [f.relative_to(self.root).as_posix() for f in files]
        known = set(rel_paths)
        total = len(rel_paths)
        batch_size = max(1, config.indexer.max_concurrent_reads)

        with ThreadPoolExecutor(max_workers=batch_size) as pool:
            for offset in range(0, total, batch_size):
                batch = rel_paths[offset : offset + batch_size]
                contents = list(pool.map(self._read_file, batch))
                for i, (rel_path, content) in enumerate(zip(batch, contents)):
                    if progress_callback:
                        progress_callback(rel_path, offset + i + 1, total)
                    if isinstance(content, Exception):
                        logger.warning("Failed to read %s: %s", rel_path, content)
                        result.files_failed += 1
                        continue
                    refresh = force
                    if not force and not self.graph.has_changed(rel_path, content):
                        if not self._gained_import_target(rel_path, known):
                            continue
                        refresh = True
                    try:
                        result.chunks_created += self._index_file(rel_path, content, known, refresh)
                        result.files_indexed += 1
                    except Exception as e:
                        logger.warning("Failed to index %s: %s", rel_path, e)
                        result.files_failed += 1

        indexed = {node.path for node in self.graph.get_all_nodes()}
        indexed.update(self.store.get_indexed_files())
        for stale in sorted(indexed - known):
            self.graph.remove_node(stale)
            self.store.remove_file(stale)
            result.files_removed += 1

        self.graph_store.save(self.graph)
        result.time_ms = round((time.time() - start) * 1000, 2)
        logger.info(
            "Indexed %d files (%d chunks, %d removed, %d failed) in %.0fms",
            result.files_indexed,
            result.chunks_created,
            result.files_removed,
            result.files_failed,
            result.time_ms,
        )
        return result

    def _read_file(self, rel_path: str) -> str | Exception:
        try:
            return (self.root / rel_path).read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            return e

    def _gained_import_target(self, rel_path: str, known: set[str]) -> bool:
        """Whether an unresolved import of `rel_path` now resolves to a project file."""
        node = self.graph.get_node(rel_path)
        if node is None:
            return False
        for spec in node.imports:
            if spec in known:
                continue
            target = resolve_import(spec, rel_path, known, node.language)
            if target not in (spec, rel_path):
                return True
        return False

    def _index_file(self, rel_path: str, content: str, known: set[str], force: bool) -> int:
        parsed = parse_file(rel_path, content)
        if parsed is None:
            return 0

        imports: list[str] = []
        for spec in parsed.imports:
            target = resolve_import(spec, rel_path, known, parsed.language)
            if target != rel_path and target not in imports:
                imports.append(target)

        self.graph.add_node(
            rel_path, imports, parsed.exports, parsed.language, content, force=force
        )

        chunking = self.config.chunking
        chunks = chunk_code(
            rel_path,
            content,
            chunk_size=chunking.chunk_size,
            overlap=chunking.overlap,
            min_chunk_size=chunking.min_chunk_size,
        )
        self.store.sync_file(rel_path, chunks)
        return len(chunks)

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def build(
        self,
        goal: str,
        target_file: str | None = None,
        max_tokens: int | None = None,
        include_rules: bool = True,
        limit: int | None = None,
    ) -> BuiltContext:
        """Rank the project against `goal` and pack the result into a budget."""
        self._require_initialized()
        start = time.time()

        goal = (goal or "").strip() or DEFAULT_GOAL
        target = self._normalize_path(target_file) if target_file else None
        ranked = self.ranker.rank(goal, target, limit or self.config.ranking.limit)
        rules = list(self.config.constraints) if include_rules else []

        packed = self.budget.pack_context(ranked, self.get_core_content(), rules, max_tokens)
        packed_paths = {p.path for p in packed.files}

        built = BuiltContext(
            goal=goal,
            files=[f for f in ranked if f.path in packed_paths],
            rules=rules,
            packed=packed.files,
            token_count=packed.total_tokens,
            savings=packed.savings,
            meta=BuildMeta(
                build_time_ms=round((time.time() - start) * 1000, 2),
                files_analyzed=len(ranked),
                files_included=len(packed.files),
            ),
        )
        logger.info(
            "Built context for %r: %d files, %d tokens (%d%% saved)",
            goal, len(built.files), built.token_count, built.savings.percentage,
        )
        return built

    def get_core_content(self) -> str:
        """Project summary placed in the immutable core of every build."""
        self._require_initialized()
        return json.dumps(
            {
                "project": self.config.project.model_dump(mode="json"),
                "rules": [c.rule for c in self.config.constraints[:CORE_RULE_LIMIT]],
            },
            indent=2,
        )

    def _normalize_path(self, path: str) -> str:
        candidate = Path(path)
        if candidate.is_absolute():
            try:
                return candidate.resolve().relative_to(self.root).as_posix()
            except ValueError:
                return candidate.as_posix()
        return candidate.as_posix().removeprefix("./")

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def format_for_llm(self, built: BuiltContext) -> str:
        """Render a built context as a markdown prompt section."""
        parts = ["# Project Context", "", f"**Goal:** {built.goal}", ""]

        if built.rules:
            parts += ["## Coding Rules", ""]
            for rule in built.rules:
                parts.append(f"{SEVERITY_ICONS.get(rule.severity, 'ℹ️')} {rule.rule}")
            parts.append("")

        parts += ["## Relevant Files", ""]
        for ranked in built.files:
            parts += [f"### {ranked.path}", f"*{ranked.reason} (score {ranked.score.final:.2f})*", ""]
            for chunk in ranked.chunks:
                start_line, end_line = chunk.lines
                parts += [f"Lines {start_line}-{end_line}:", "```", chunk.content, "```", ""]

        parts += [
            "---",
            "",
            f"*Context: {built.token_count} tokens | {len(built.files)} files | "
            f"{built.savings.percentage}% token savings*",
        ]
        return "\n".join(parts) + "\n"

    def to_merged_context(self, built: BuiltContext) -> str:
        """Serialize the packed payload in the merged multi-file format."""
        return merge_files_to_context((p.path, p.content) for p in built.packed)

    def get_stats(self) -> dict[str, Any]:
        self._require_initialized()
        return {
            "graph": self.graph.get_stats(),
            "store": self.store.get_stats(),
            "model": self.budget.model_name,
            "max_tokens": self.budget.get_model_limit(),
        }

    def close(self) -> None:
        """Close resources."""
        if self.store:
            self.store.close()
        if self.graph_store:
            self.graph_store.close()
        self._initialized = False
