"""Tests for embedders and the similarity store."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import pytest

from contextos.config import EmbeddingConfig
from contextos.embedding.embedder import (
    Embedder,
    HashEmbedder,
    create_embedder,
    load_embedder,
)
from contextos.embedding.store import SimilarityStore, cosine_similarity
from contextos.exceptions import StoreNotInitializedError

LOGIN = "def login(user, password):\n    validate password for user\n    return session"
LOGOUT = "def logout(session):\n    clear session cookies\n    return None"


class BrokenEmbedder(Embedder):
    name = "broken"

    def embed(self, text: str) -> list[float]:
        raise RuntimeError("backend went away")


@pytest.fixture
def lexical_store(tmp_path: Path):
    store = SimilarityStore(tmp_path / "vectors.db", config=EmbeddingConfig(provider="none"))
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def vector_store(tmp_path: Path):
    store = SimilarityStore(tmp_path / "vectors.db", embedder=HashEmbedder())
    store.initialize()
    yield store
    store.close()


class TestHashEmbedder:
    def test_deterministic_and_normalized(self):
        embedder = HashEmbedder(dim=64)
        a = embedder.embed("calculate order total")
        b = embedder.embed("calculate order total")
        assert a == b
        assert len(a) == 64
        assert np.linalg.norm(a) == pytest.approx(1.0, abs=1e-5)

    def test_empty_text_is_zero_vector(self):
        assert not any(HashEmbedder(dim=16).embed("!!! ???"))

    def test_shared_tokens_score_higher(self):
        embedder = HashEmbedder()
        query = embedder.embed("user password")
        assert cosine_similarity(query, embedder.embed(LOGIN)) > cosine_similarity(
            query, embedder.embed("render chart axis labels")
        )

    def test_invalid_dim(self):
        with pytest.raises(ValueError):
            HashEmbedder(dim=0)

    def test_embed_many(self):
        embedder = HashEmbedder(dim=32)
        vectors = embedder.embed_many(["a b", "c d"])
        assert len(vectors) == 2
        assert vectors[0] == embedder.embed("a b")


class TestEmbedderFactory:
    def test_create_hash(self):
        embedder = create_embedder(EmbeddingConfig(provider="hash", dim=128))
        assert isinstance(embedder, HashEmbedder)
        assert embedder.dim == 128

    def test_create_unknown(self):
        with pytest.raises(ValueError, match="Unknown embedding provider"):
            create_embedder(EmbeddingConfig(provider="word2vec"))

    def test_load_none(self):
        assert load_embedder(EmbeddingConfig(provider="none")) is None

    def test_load_unknown_returns_none(self):
        assert load_embedder(EmbeddingConfig(provider="word2vec")) is None


class TestCosineSimilarity:
    def test_identical(self):
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)

    def test_orthogonal(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_mismatched_lengths(self):
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0

    def test_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


class TestStoreLifecycle:
    def test_operations_require_initialize(self, tmp_path: Path, make_chunk):
        store = SimilarityStore(tmp_path / "vectors.db", embedder=HashEmbedder())
        with pytest.raises(StoreNotInitializedError):
            store.search("anything")
        with pytest.raises(StoreNotInitializedError):
            store.add_chunk(make_chunk(LOGIN))
        with pytest.raises(StoreNotInitializedError):
            store.get_stats()

    def test_initialize_is_idempotent(self, tmp_path: Path, make_chunk):
        store = SimilarityStore(tmp_path / "vectors.db", embedder=HashEmbedder())
        store.initialize()
        store.add_chunk(make_chunk(LOGIN))
        store.initialize()
        assert store.get_stats()["chunk_count"] == 1
        store.close()

    def test_loads_embedder_from_config(self, tmp_path: Path):
        store = SimilarityStore(tmp_path / "vectors.db", config=EmbeddingConfig(provider="hash"))
        store.initialize()
        assert isinstance(store.embedder, HashEmbedder)
        assert not store.fallback_mode
        store.close()

    def test_fallback_warning_logged_once(self, tmp_path: Path, caplog):
        store = SimilarityStore(tmp_path / "vectors.db", config=EmbeddingConfig(provider="none"))
        with caplog.at_level(logging.WARNING, logger="contextos.store"):
            store.initialize()
            store.initialize()
        warnings = [r for r in caplog.records if r.name == "contextos.store"]
        assert len(warnings) == 1
        assert store.fallback_mode
        store.close()

    def test_persists_across_connections(self, tmp_path: Path, make_chunk):
        store = SimilarityStore(tmp_path / "vectors.db", embedder=HashEmbedder())
        store.initialize()
        store.add_chunk(make_chunk(LOGIN, file_path="auth.py"))
        store.close()

        reopened = SimilarityStore(tmp_path / "vectors.db", embedder=HashEmbedder())
        reopened.initialize()
        assert reopened.get_indexed_files() == ["auth.py"]
        reopened.close()


class TestStoreMutation:
    def test_add_chunk_skips_unchanged(self, vector_store, make_chunk):
        chunk = make_chunk(LOGIN, file_path="auth.py")
        assert vector_store.add_chunk(chunk) is True
        assert vector_store.add_chunk(chunk) is False

        changed = make_chunk(LOGOUT, file_path="auth.py")
        assert vector_store.add_chunk(changed) is True
        stored = vector_store.get_file_chunks("auth.py")
        assert len(stored) == 1
        assert stored[0].content == LOGOUT

    def test_unembedded_chunk_embedded_after_provider_switch(self, tmp_path: Path, make_chunk):
        chunk = make_chunk(LOGIN, file_path="auth.py")
        lexical = SimilarityStore(tmp_path / "vectors.db", config=EmbeddingConfig(provider="none"))
        lexical.initialize()
        assert lexical.add_chunk(chunk) is True
        assert lexical.add_chunk(chunk) is False
        lexical.close()

        store = SimilarityStore(tmp_path / "vectors.db", embedder=HashEmbedder())
        store.initialize()
        assert store.get_stats()["embedded_count"] == 0

        assert store.add_chunk(chunk) is True
        assert store.get_stats()["embedded_count"] == 1
        assert store.add_chunk(chunk) is False
        assert [r.file_path for r in store.search("login password")] == ["auth.py"]
        assert not store.fallback_mode
        store.close()

    def test_add_chunks_counts_writes(self, vector_store, make_chunk):
        chunks = [make_chunk(LOGIN, "auth.py", 0), make_chunk(LOGOUT, "auth.py", 1)]
        assert vector_store.add_chunks(chunks) == 2
        assert vector_store.add_chunks(chunks) == 0

    def test_sync_file_removes_stale_chunks(self, vector_store, make_chunk):
        chunks = [make_chunk(f"{LOGIN}\n# {i}", "auth.py", i) for i in range(3)]
        vector_store.add_chunks(chunks)

        vector_store.sync_file("auth.py", chunks[:1])
        assert [c.id for c in vector_store.get_file_chunks("auth.py")] == ["auth.py#0"]

        vector_store.sync_file("auth.py", [])
        assert vector_store.get_file_chunks("auth.py") == []

    def test_remove_file_and_clear(self, vector_store, make_chunk):
        vector_store.add_chunk(make_chunk(LOGIN, "auth.py"))
        vector_store.add_chunk(make_chunk(LOGOUT, "session.py"))

        vector_store.remove_file("auth.py")
        assert vector_store.get_indexed_files() == ["session.py"]

        vector_store.clear()
        assert vector_store.get_indexed_files() == []

    def test_embedding_failure_still_stores(self, tmp_path: Path, make_chunk):
        store = SimilarityStore(tmp_path / "vectors.db", embedder=BrokenEmbedder())
        store.initialize()
        assert store.add_chunk(make_chunk(LOGIN, "auth.py")) is True

        stats = store.get_stats()
        assert stats["chunk_count"] == 1
        assert stats["embedded_count"] == 0

        # Query embedding fails too, so search answers lexically
        results = store.search("login")
        assert [r.file_path for r in results] == ["auth.py"]
        store.close()


class TestStoreSearch:
    def test_vector_search_ranks_by_similarity(self, vector_store, make_chunk):
        vector_store.add_chunk(make_chunk(LOGIN, "auth.py"))
        vector_store.add_chunk(make_chunk(LOGOUT, "session.py"))

        results = vector_store.search("login password", limit=5)
        assert results[0].file_path == "auth.py"
        assert results[0].chunk_id == "auth.py#0"
        assert results[0].lines == (1, 3)
        assert results[0].score >= results[-1].score

    def test_vector_search_limit(self, vector_store, make_chunk):
        for i in range(5):
            vector_store.add_chunk(make_chunk(f"{LOGIN}\n# variant {i}", f"f{i}.py"))
        assert len(vector_store.search("login", limit=3)) == 3

    def test_lexical_search(self, lexical_store, make_chunk):
        lexical_store.add_chunk(make_chunk(LOGIN, "auth.py"))
        lexical_store.add_chunk(make_chunk(LOGOUT, "session.py"))

        results = lexical_store.search("LOGIN return")
        assert [r.file_path for r in results] == ["auth.py", "session.py"]
        # login x1 + return x1 over 2 terms * 2
        assert results[0].score == pytest.approx(0.5)
        assert results[1].score == pytest.approx(0.25)

    def test_lexical_no_match(self, lexical_store, make_chunk):
        lexical_store.add_chunk(make_chunk(LOGIN, "auth.py"))
        assert lexical_store.search("kubernetes") == []
        assert lexical_store.search("   ") == []

    def test_lexical_treats_query_literally(self, lexical_store, make_chunk):
        lexical_store.add_chunk(make_chunk(LOGIN, "auth.py"))
        results = lexical_store.search("login(")
        assert len(results) == 1
        assert lexical_store.search("[unclosed") == []

    def test_lexical_long_query(self, lexical_store, make_chunk):
        lexical_store.add_chunk(make_chunk(LOGIN, "auth.py"))
        assert lexical_store.search("login " * 5000)[0].file_path == "auth.py"

    def test_lexical_score_capped(self, lexical_store, make_chunk):
        lexical_store.add_chunk(make_chunk("session " * 40, "s.py"))
        assert lexical_store.search("session")[0].score == 1.0


class TestStoreIntrospection:
    def test_stats(self, vector_store, make_chunk):
        vector_store.add_chunk(make_chunk(LOGIN, "auth.py", 0))
        vector_store.add_chunk(make_chunk(LOGOUT, "auth.py", 1))
        vector_store.add_chunk(make_chunk(LOGOUT, "session.py", 0))

        stats = vector_store.get_stats()
        assert stats == {
            "chunk_count": 3,
            "file_count": 2,
            "embedded_count": 3,
            "embedder": "hash",
        }

    def test_paginated(self, lexical_store, make_chunk):
        for i in range(5):
            lexical_store.add_chunk(make_chunk(LOGIN, f"f{i}.py"))

        first = lexical_store.get_chunks_paginated(page=0, page_size=2)
        assert len(first.chunks) == 2
        assert first.total == 5
        assert first.total_pages == 3
        assert first.has_more

        last = lexical_store.get_chunks_paginated(page=2, page_size=2)
        assert [c.file_path for c in last.chunks] == ["f4.py"]
        assert not last.has_more

    def test_paginated_rejects_bad_page(self, lexical_store):
        with pytest.raises(ValueError):
            lexical_store.get_chunks_paginated(page=-1)
        with pytest.raises(ValueError):
            lexical_store.get_chunks_paginated(page_size=0)
