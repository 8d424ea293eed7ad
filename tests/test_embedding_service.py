"""
Tests for embedding providers and the provider factory.
"""

from types import SimpleNamespace

import numpy as np
import pytest

from conftest import KeywordEmbeddingProvider
from vibe_templates.services.embedding_service import (
    HashEmbeddingProvider,
    LocalEmbeddingProvider,
    OpenAIEmbeddingProvider,
    VoyageEmbeddingProvider,
    create_embedding_provider,
)
from vibe_templates.template_exceptions import EmbeddingProviderError


class CountingHashProvider(HashEmbeddingProvider):
    def __init__(self, cache_size):
        super().__init__(embedding_dim=16, cache_size=cache_size)
        self.backend_calls = 0

    def _embed(self, text):
        self.backend_calls += 1
        return super()._embed(text)


class TestHashProvider:

    def test_deterministic(self):
        provider = HashEmbeddingProvider(embedding_dim=64)
        a = provider.embed("stripe checkout")
        b = HashEmbeddingProvider(embedding_dim=64).embed("stripe checkout")
        np.testing.assert_array_equal(a, b)

    def test_shape_and_norm(self):
        embedding = HashEmbeddingProvider(embedding_dim=100).embed("hello")
        assert embedding.shape == (100,)
        assert embedding.dtype == np.float32
        assert np.linalg.norm(embedding) == pytest.approx(1.0, abs=1e-5)

    def test_info(self):
        info = HashEmbeddingProvider().get_info()
        assert info["provider"] == "hash"
        assert info["model"] == "hash-256"
        assert info["dimension"] == 256
        assert info["available"] is True


class TestEmbeddingCache:

    def test_cache_hit_skips_backend(self):
        provider = CountingHashProvider(cache_size=10)
        provider.embed("a")
        provider.embed("a")
        assert provider.backend_calls == 1

    def test_lru_eviction(self):
        provider = CountingHashProvider(cache_size=2)
        provider.embed("a")
        provider.embed("b")
        provider.embed("a")  # a becomes most recent
        provider.embed("c")  # evicts b
        provider.embed("a")
        assert provider.backend_calls == 3
        provider.embed("b")
        assert provider.backend_calls == 4

    def test_cached_copy_is_independent(self):
        provider = CountingHashProvider(cache_size=10)
        first = provider.embed("a")
        first[0] = 99.0
        assert provider.embed("a")[0] != 99.0

    def test_zero_cache_size_disables_cache(self):
        provider = CountingHashProvider(cache_size=0)
        provider.embed("a")
        provider.embed("a")
        assert provider.backend_calls == 2

    def test_clear_cache(self):
        provider = CountingHashProvider(cache_size=10)
        provider.embed("a")
        provider.clear_cache()
        provider.embed("a")
        assert provider.backend_calls == 2


class TestErrorWrapping:

    def test_backend_exception_wrapped(self):
        provider = KeywordEmbeddingProvider(fail_on="x")
        with pytest.raises(EmbeddingProviderError) as exc_info:
            provider.embed("x")
        assert exc_info.value.provider == "keyword"
        assert "rate limited" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_bad_shape_rejected(self):
        class ScalarProvider(HashEmbeddingProvider):
            def _embed(self, text):
                return 1.0

        with pytest.raises(EmbeddingProviderError):
            ScalarProvider().embed("x")

    def test_openai_response_parsed(self):
        provider = OpenAIEmbeddingProvider(api_key="sk-test")
        requests = []

        def create(model, input):
            requests.append((model, input))
            return SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2, 0.3])])

        provider._client = SimpleNamespace(embeddings=SimpleNamespace(create=create))
        embedding = provider.embed("hello")

        assert requests == [("text-embedding-3-small", ["hello"])]
        np.testing.assert_allclose(embedding, [0.1, 0.2, 0.3], rtol=1e-6)

    def test_openai_client_error_wrapped(self):
        provider = OpenAIEmbeddingProvider(api_key="sk-test")

        def create(model, input):
            raise TimeoutError("timed out")

        provider._client = SimpleNamespace(embeddings=SimpleNamespace(create=create))
        with pytest.raises(EmbeddingProviderError) as exc_info:
            provider.embed("hello")
        assert exc_info.value.provider == "openai"

    def test_voyage_response_parsed(self):
        provider = VoyageEmbeddingProvider(api_key="pa-test")
        calls = []

        def embed(texts, model, input_type):
            calls.append((texts, model, input_type))
            return SimpleNamespace(embeddings=[[1.0, 0.0]])

        provider._client = SimpleNamespace(embed=embed)
        provider.embed("hi")
        assert calls == [(["hi"], "voyage-3", "document")]


class TestCreateProvider:

    def test_auto_without_keys(self, clean_env):
        assert create_embedding_provider({"embedding_provider": "auto"}) is None

    def test_auto_prefers_openai(self, clean_env):
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        clean_env.setenv("VOYAGE_API_KEY", "pa-test")
        provider = create_embedding_provider({})
        assert isinstance(provider, OpenAIEmbeddingProvider)

    def test_auto_falls_back_to_voyage(self, clean_env):
        clean_env.setenv("VOYAGE_API_KEY", "pa-test")
        assert isinstance(create_embedding_provider(None), VoyageEmbeddingProvider)

    def test_none(self, clean_env):
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        assert create_embedding_provider({"embedding_provider": "none"}) is None

    def test_explicit_hash_with_cache_size(self, clean_env):
        provider = create_embedding_provider({"embedding_provider": "hash", "embedding_cache_size": 5})
        assert isinstance(provider, HashEmbeddingProvider)
        assert provider.cache_size == 5

    def test_model_override(self, clean_env):
        provider = create_embedding_provider({
            "embedding_provider": "openai",
            "embedding_model": "text-embedding-3-large",
        })
        assert provider.model_name == "text-embedding-3-large"
        assert provider.embedding_dim == 3072
        assert not provider.is_available()

    def test_local_strips_prefix(self, clean_env):
        provider = create_embedding_provider({
            "embedding_provider": "local",
            "embedding_model": "sentence-transformers/all-MiniLM-L6-v2",
        })
        assert isinstance(provider, LocalEmbeddingProvider)
        assert provider.model_name == "all-MiniLM-L6-v2"

    def test_unknown(self, clean_env):
        with pytest.raises(ValueError):
            create_embedding_provider({"embedding_provider": "cohere"})
