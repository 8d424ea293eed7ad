"""
Tests for TemplateVectorIndex.

Tests cover:
- cosine_similarity edge cases
- Initialization from embeddings.json, from the provider, and without vectors
- Batch concurrency bounds during generation
- Ranking, filters and stale cache entries
- Cache file generation
"""

import asyncio
import json

import numpy as np
import pytest

from conftest import (
    ALL_IDS,
    GOOGLE_ID,
    SQLALCHEMY_ID,
    STRIPE_ID,
    KeywordEmbeddingProvider,
    make_metadata,
    write_embeddings,
    write_template,
)
from vibe_templates.models import TemplateFilters
from vibe_templates.services.template_service import TemplateService
from vibe_templates.services.vector_index import (
    IndexState,
    TemplateVectorIndex,
    build_embedding_text,
    cosine_similarity,
)
from vibe_templates.template_exceptions import (
    EmbeddingProviderError,
    VectorDimensionMismatchError,
)


class TestCosineSimilarity:
    """Test cosine similarity."""

    def test_identical_vectors(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_zero_magnitude(self):
        """Test a zero vector scores 0 instead of dividing by zero."""
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
        assert cosine_similarity([1.0, 1.0], [0.0, 0.0]) == 0.0

    def test_dimension_mismatch(self):
        with pytest.raises(VectorDimensionMismatchError) as exc_info:
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0], template_id=GOOGLE_ID)
        assert exc_info.value.expected == 2
        assert exc_info.value.actual == 3
        assert exc_info.value.template_id == GOOGLE_ID

    def test_accepts_numpy_arrays(self):
        a = np.array([3.0, 4.0], dtype=np.float32)
        assert cosine_similarity(a, a * 2) == pytest.approx(1.0)


class TestInitialization:
    """Test index initialization paths."""

    def test_starts_uninitialized(self, template_service):
        index = TemplateVectorIndex(template_service)
        assert index.state == IndexState.UNINITIALIZED
        assert not index.has_vectors

    def test_no_provider_no_cache(self, template_service):
        """Test vectors are unavailable without provider or cache file."""
        index = TemplateVectorIndex(template_service, provider=None)
        asyncio.run(index.initialize())

        assert index.state == IndexState.READY
        assert not index.vectors_available
        assert not index.has_vectors
        assert list(index.records) == ALL_IDS

    def test_unavailable_provider(self, template_service):
        provider = KeywordEmbeddingProvider(available=False)
        index = TemplateVectorIndex(template_service, provider=provider)
        asyncio.run(index.initialize())

        assert not index.has_vectors
        assert provider.calls == []

    def test_generates_from_provider(self, template_service, keyword_provider):
        index = TemplateVectorIndex(template_service, provider=keyword_provider)
        asyncio.run(index.initialize())

        assert index.has_vectors
        assert index.vector_count == 3
        assert index.vector_source == "provider"
        assert len(keyword_provider.calls) == 3
        assert index.model_name == "keyword-test"

    def test_embedding_text(self, template_service):
        record = template_service.load_template(STRIPE_ID)
        assert build_embedding_text(record) == (
            "Stripe Checkout Stripe checkout session with webhook handling "
            "payment nextjs typescript stripe payment checkout"
        )

    def test_cache_file_means_zero_provider_calls(self, template_service, templates_dir, keyword_provider):
        write_embeddings(templates_dir, {
            GOOGLE_ID: [1.0, 1.0, 0, 0, 0, 0, 0, 0, 0],
            STRIPE_ID: [0, 0, 0, 1.0, 1.0, 0, 0, 0, 0],
        }, model="cached-model")
        index = TemplateVectorIndex(template_service, provider=keyword_provider)
        asyncio.run(index.initialize())

        assert keyword_provider.calls == []
        assert index.has_vectors
        assert index.vector_source == "cache"
        assert index.model_name == "cached-model"
        assert index.vector_count == 2

    def test_cache_file_without_provider(self, template_service, templates_dir):
        write_embeddings(templates_dir, {GOOGLE_ID: [1.0, 0.0]})
        index = TemplateVectorIndex(template_service, provider=None)
        asyncio.run(index.initialize())

        assert index.has_vectors
        assert index.vector_source == "cache"
        assert index.vector_count == 1

    @pytest.mark.parametrize("content", ["{broken", json.dumps({"embeddings": {}})])
    def test_unreadable_cache_falls_back_to_provider(self, template_service, templates_dir,
                                                     keyword_provider, content):
        (templates_dir / "embeddings.json").write_text(content, encoding="utf-8")
        index = TemplateVectorIndex(template_service, provider=keyword_provider)
        asyncio.run(index.initialize())

        assert index.vector_source == "provider"
        assert len(keyword_provider.calls) == 3

    def test_empty_cache_means_no_vectors(self, template_service, templates_dir):
        """Test a parsed but empty cache leaves vector ranking off."""
        write_embeddings(templates_dir, {})
        index = TemplateVectorIndex(template_service, provider=None)
        asyncio.run(index.initialize())

        assert index.vectors_available
        assert not index.has_vectors

    def test_initialize_is_idempotent(self, template_service, keyword_provider):
        index = TemplateVectorIndex(template_service, provider=keyword_provider)
        asyncio.run(index.initialize())
        asyncio.run(index.initialize())

        assert len(keyword_provider.calls) == 3

    def test_concurrent_initialize_shares_one_load(self, template_service):
        provider = KeywordEmbeddingProvider(delay=0.02)
        index = TemplateVectorIndex(template_service, provider=provider)

        async def start_twice():
            await asyncio.gather(index.initialize(), index.initialize())

        asyncio.run(start_twice())

        assert index.state == IndexState.READY
        assert len(provider.calls) == 3

    def test_provider_failure_resets_state(self, template_service):
        provider = KeywordEmbeddingProvider(fail_on="Stripe")
        index = TemplateVectorIndex(template_service, provider=provider)

        with pytest.raises(EmbeddingProviderError):
            asyncio.run(index.initialize())

        assert index.state == IndexState.UNINITIALIZED
        assert index.records == {}
        assert not index.has_vectors

    def test_clear_then_reinitialize(self, template_service, keyword_provider):
        index = TemplateVectorIndex(template_service, provider=keyword_provider)
        asyncio.run(index.initialize())
        index.clear()

        assert index.state == IndexState.UNINITIALIZED
        assert index.vector_count == 0

        asyncio.run(index.initialize())
        assert index.vector_count == 3
        assert len(keyword_provider.calls) == 6

    def test_invalid_batch_size(self, template_service):
        with pytest.raises(ValueError):
            TemplateVectorIndex(template_service, batch_size=0)


class TestBatching:
    """Test batched generation."""

    @pytest.fixture
    def large_corpus(self, tmp_path):
        root = tmp_path / "templates"
        for i in range(12):
            template_id = f"typescript/react/ui/widget-{i:02d}"
            write_template(root, template_id,
                           make_metadata(template_id, f"Widget {i}", "Reusable widget", ["ui"]),
                           files={"widget.tsx": "x"})
        return root

    def test_concurrency_bounded_by_batch_size(self, large_corpus):
        provider = KeywordEmbeddingProvider(delay=0.02)
        index = TemplateVectorIndex(TemplateService(large_corpus), provider=provider, batch_size=5)
        asyncio.run(index.initialize())

        assert len(provider.calls) == 12
        assert index.vector_count == 12
        assert 1 <= provider.max_in_flight <= 5

    def test_batch_size_one_is_sequential(self, large_corpus):
        provider = KeywordEmbeddingProvider(delay=0.005)
        index = TemplateVectorIndex(TemplateService(large_corpus), provider=provider, batch_size=1)
        asyncio.run(index.initialize())

        assert provider.max_in_flight == 1


class TestRank:
    """Test vector ranking."""

    @pytest.fixture
    def index(self, template_service, keyword_provider):
        index = TemplateVectorIndex(template_service, provider=keyword_provider)
        asyncio.run(index.initialize())
        return index

    def test_best_match_first(self, index):
        ranked = asyncio.run(index.rank("google oauth"))
        assert ranked[0].id == GOOGLE_ID
        assert ranked[0].score > 0.5

    def test_zero_scores_kept(self, index):
        """Test templates with zero similarity still rank."""
        ranked = asyncio.run(index.rank("google oauth"))
        assert [item.id for item in ranked] == [GOOGLE_ID, SQLALCHEMY_ID, STRIPE_ID]
        assert ranked[1].score == 0.0
        assert ranked[2].score == 0.0

    def test_filters(self, index):
        ranked = asyncio.run(index.rank("google oauth", TemplateFilters(category="payment")))
        assert [item.id for item in ranked] == [STRIPE_ID]

    def test_limit(self, index):
        ranked = asyncio.run(index.rank("stripe payment", limit=1))
        assert [item.id for item in ranked] == [STRIPE_ID]

    def test_query_embedded_once_per_rank(self, index, keyword_provider):
        before = len(keyword_provider.calls)
        asyncio.run(index.rank("database postgres"))
        assert len(keyword_provider.calls) == before + 1
        assert keyword_provider.calls[-1] == "database postgres"

    def test_stale_cache_entries_ignored(self, template_service, templates_dir, keyword_provider):
        write_embeddings(templates_dir, {
            GOOGLE_ID: [1.0, 1.0, 1.0, 0, 0, 0, 0, 0, 0],
            "typescript/nextjs/auth/deleted-template": [1.0, 1.0, 1.0, 0, 0, 0, 0, 0, 0],
        })
        index = TemplateVectorIndex(template_service, provider=keyword_provider)
        ranked = asyncio.run(index.rank("google"))

        assert [item.id for item in ranked] == [GOOGLE_ID]

    def test_dimension_mismatch_surfaces(self, template_service, templates_dir, keyword_provider):
        write_embeddings(templates_dir, {GOOGLE_ID: [1.0, 0.0, 0.0]})
        index = TemplateVectorIndex(template_service, provider=keyword_provider)

        with pytest.raises(VectorDimensionMismatchError):
            asyncio.run(index.rank("google"))

    def test_query_embedding_failure(self, template_service, templates_dir):
        write_embeddings(templates_dir, {GOOGLE_ID: [1.0] * 9})
        provider = KeywordEmbeddingProvider(fail_on="boom")
        index = TemplateVectorIndex(template_service, provider=provider)

        with pytest.raises(EmbeddingProviderError):
            asyncio.run(index.rank("boom"))

    def test_rank_without_provider(self, template_service, templates_dir):
        write_embeddings(templates_dir, {GOOGLE_ID: [1.0] * 9})
        index = TemplateVectorIndex(template_service, provider=None)

        with pytest.raises(EmbeddingProviderError):
            asyncio.run(index.rank("google"))


class TestCacheGeneration:
    """Test embeddings.json regeneration."""

    def test_save_cache_writes_file(self, template_service, templates_dir, keyword_provider):
        index = TemplateVectorIndex(template_service, provider=keyword_provider)
        path = asyncio.run(index.save_cache())

        assert path == templates_dir / "embeddings.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert set(data) == {"embeddings", "generatedAt", "model"}
        assert sorted(data["embeddings"]) == sorted(ALL_IDS)
        assert data["model"] == "keyword-test"
        assert len(data["embeddings"][GOOGLE_ID]) == len(KeywordEmbeddingProvider.VOCABULARY)

    def test_saved_cache_is_loaded_next_time(self, template_service, templates_dir, keyword_provider):
        asyncio.run(TemplateVectorIndex(template_service, provider=keyword_provider).save_cache())

        fresh_provider = KeywordEmbeddingProvider()
        index = TemplateVectorIndex(template_service, provider=fresh_provider)
        asyncio.run(index.initialize())

        assert fresh_provider.calls == []
        assert index.vector_source == "cache"

    def test_save_cache_custom_path(self, template_service, tmp_path, keyword_provider):
        output = tmp_path / "out" / "vectors.json"
        index = TemplateVectorIndex(template_service, provider=keyword_provider)
        assert asyncio.run(index.save_cache(output)) == output
        assert output.exists()

    def test_generate_cache_requires_provider(self, template_service):
        index = TemplateVectorIndex(template_service, provider=None)
        with pytest.raises(EmbeddingProviderError):
            asyncio.run(index.generate_cache())
