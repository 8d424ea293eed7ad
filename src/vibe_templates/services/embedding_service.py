"""
Embedding providers for template ranking.

Turns text into fixed-length float32 vectors. Available providers:
- OpenAI: text-embedding-3-small/large (via OPENAI_API_KEY)
- Voyage AI: voyage-3 family (via VOYAGE_API_KEY)
- Local: sentence-transformers (no API key, downloads the model on first use)
- Hash: deterministic hash-based vectors for tests and offline runs

The ranking core only depends on the EmbeddingProvider interface. Provider
clients are synchronous; async callers offload them with asyncio.to_thread.

Configuration via vibe_templates.json or environment variables.
"""

import hashlib
import importlib.util
import os
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Dict, List, Optional

import numpy as np

from ..logging_config import configure_logger
from ..template_exceptions import EmbeddingProviderError

logger = configure_logger(__name__)

# Backend package availability, resolved on first use
_PACKAGE_AVAILABLE: Dict[str, bool] = {}


def _package_available(module_name: str) -> bool:
    """Whether an optional backend package can be imported, without importing it."""
    if module_name not in _PACKAGE_AVAILABLE:
        _PACKAGE_AVAILABLE[module_name] = importlib.util.find_spec(module_name) is not None
    return _PACKAGE_AVAILABLE[module_name]


class EmbeddingProvider(ABC):
    """
    Base class for embedding providers.

    ::: This is-in-layer Service-Layer.
    ::: This is a provider.
    ::: This holds-state embedding-lru-cache.

    Subclasses implement ``_embed``. ``embed`` adds the LRU cache and turns
    any backend failure into EmbeddingProviderError.
    """

    provider_name = "base"

    # Model configurations
    MODEL_DIMENSIONS: Dict[str, int] = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
        "voyage-3": 1024,
        "voyage-3-lite": 512,
        "voyage-code-3": 1024,
        "all-MiniLM-L6-v2": 384,
        "all-mpnet-base-v2": 768,
    }

    def __init__(self, model_name: str, cache_size: int = 1000):
        self._model_name = model_name
        self.cache_size = cache_size
        self._embedding_cache: OrderedDict[str, np.ndarray] = OrderedDict()

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def embedding_dim(self) -> Optional[int]:
        return self.MODEL_DIMENSIONS.get(self._model_name)

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the provider can be called (package installed, key set)."""

    @abstractmethod
    def _embed(self, text: str) -> Any:
        """Call the backend for a single text."""

    @staticmethod
    def _text_key(text: str) -> str:
        return hashlib.sha256(text.encode('utf-8')).hexdigest()

    def _lookup(self, key: str) -> Optional[np.ndarray]:
        """Return a copy of a cached vector and mark it most recently used."""
        embedding = self._embedding_cache.get(key)
        if embedding is None:
            return None
        self._embedding_cache.move_to_end(key)
        return embedding.copy()

    def _remember(self, key: str, embedding: np.ndarray) -> None:
        """Store a vector, evicting the least recently used entry when full."""
        if self.cache_size <= 0:
            return
        self._embedding_cache[key] = embedding.copy()
        self._embedding_cache.move_to_end(key)
        while len(self._embedding_cache) > self.cache_size:
            self._embedding_cache.popitem(last=False)

    def embed(self, text: str) -> np.ndarray:
        """
        Generate the embedding for a single text.

        Blocking. When called from async context, use asyncio.to_thread()
        at the caller level.

        Returns:
            float32 array of the model's dimension

        Raises:
            EmbeddingProviderError: the backend failed; never retried
        """
        cache_key = self._text_key(text)
        cached = self._lookup(cache_key)
        if cached is not None:
            return cached

        try:
            raw = self._embed(text)
        except EmbeddingProviderError:
            raise
        except Exception as e:
            logger.error("Embedding request to %s failed: %s", self.provider_name, e)
            raise EmbeddingProviderError(self.provider_name, str(e)) from e

        embedding = np.asarray(raw, dtype=np.float32)
        if embedding.ndim != 1 or embedding.size == 0:
            raise EmbeddingProviderError(
                self.provider_name, f"unexpected embedding shape {embedding.shape}"
            )

        self._remember(cache_key, embedding)
        return embedding

    def clear_cache(self) -> None:
        """Clear the embedding cache."""
        self._embedding_cache.clear()
        logger.info("Embedding cache cleared")

    def get_info(self) -> Dict[str, Any]:
        """
        Get provider information.

        Returns:
            Dictionary with provider statistics
        """
        return {
            'provider': self.provider_name,
            'model': self.model_name,
            'dimension': self.embedding_dim,
            'available': self.is_available(),
            'cache_size': len(self._embedding_cache),
            'max_cache_size': self.cache_size,
        }


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI embeddings API (text-embedding-3-small by default)."""

    provider_name = "openai"
    DEFAULT_MODEL = "text-embedding-3-small"

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        cache_size: int = 1000
    ):
        super().__init__(model_name or self.DEFAULT_MODEL, cache_size)
        self._api_key = api_key or os.getenv("OPENAI_API_KEY")
        self._client = None

    def is_available(self) -> bool:
        return bool(self._api_key) and _package_available("openai")

    def _get_client(self):
        if self._client is None:
            if not _package_available("openai"):
                raise ImportError(
                    "openai package is required for OpenAI embeddings. "
                    "Install with: pip install openai"
                )
            # Import lazily
            import openai

            if not self._api_key:
                raise ValueError(
                    "OPENAI_API_KEY required for OpenAI embeddings. "
                    "Set via environment variable"
                )
            self._client = openai.OpenAI(api_key=self._api_key)
        return self._client

    def _embed(self, text: str) -> Any:
        response = self._get_client().embeddings.create(
            model=self.model_name,
            input=[text]
        )
        return response.data[0].embedding


class VoyageEmbeddingProvider(EmbeddingProvider):
    """Voyage AI embeddings API (voyage-3 by default)."""

    provider_name = "voyage"
    DEFAULT_MODEL = "voyage-3"

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        cache_size: int = 1000,
        input_type: str = "document"
    ):
        super().__init__(model_name or self.DEFAULT_MODEL, cache_size)
        self._api_key = api_key or os.getenv("VOYAGE_API_KEY")
        self._input_type = input_type
        self._client = None

    def is_available(self) -> bool:
        return bool(self._api_key) and _package_available("voyageai")

    def _get_client(self):
        if self._client is None:
            if not _package_available("voyageai"):
                raise ImportError(
                    "voyageai package is required for Voyage embeddings. "
                    "Install with: pip install voyageai"
                )
            # Import lazily
            import voyageai

            if not self._api_key:
                raise ValueError(
                    "VOYAGE_API_KEY required for Voyage embeddings. "
                    "Set via environment variable"
                )
            self._client = voyageai.Client(api_key=self._api_key)
        return self._client

    def _embed(self, text: str) -> Any:
        result = self._get_client().embed(
            texts=[text],
            model=self.model_name,
            input_type=self._input_type
        )
        return result.embeddings[0]


class LocalEmbeddingProvider(EmbeddingProvider):
    """
    Local sentence-transformers model (all-MiniLM-L6-v2 by default).

    The model is loaded on the first embed call; TRANSFORMERS_CACHE selects
    the download directory.
    """

    provider_name = "local"
    DEFAULT_MODEL = "all-MiniLM-L6-v2"

    def __init__(self, model_name: Optional[str] = None, cache_size: int = 1000):
        model_name = model_name or self.DEFAULT_MODEL
        if model_name.startswith("sentence-transformers/"):
            model_name = model_name.replace("sentence-transformers/", "")
        super().__init__(model_name, cache_size)
        self._model = None

    def is_available(self) -> bool:
        return _package_available("sentence_transformers")

    def _load_model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            cache_dir = os.environ.get('TRANSFORMERS_CACHE', None)
            if cache_dir:
                os.makedirs(cache_dir, exist_ok=True)

            logger.info("Loading local embedding model '%s'...", self.model_name)
            self._model = SentenceTransformer(self.model_name, cache_folder=cache_dir)
        return self._model

    def _embed(self, text: str) -> Any:
        return self._load_model().encode(text, convert_to_numpy=True, normalize_embeddings=True)


class HashEmbeddingProvider(EmbeddingProvider):
    """
    Hash-based embeddings for testing without network or model downloads.

    Same text gives the same vector, but similarity carries no meaning.
    NOT suitable for production semantic search.
    """

    provider_name = "hash"

    def __init__(self, embedding_dim: int = 256, cache_size: int = 1000):
        super().__init__(f"hash-{embedding_dim}", cache_size)
        self._dim = embedding_dim

    @property
    def embedding_dim(self) -> Optional[int]:
        return self._dim

    def is_available(self) -> bool:
        return True

    def _embed(self, text: str) -> Any:
        seed = hashlib.sha256(text.encode('utf-8')).digest()
        blocks = [seed]
        counter = 0
        while len(blocks) * len(seed) < self._dim:
            counter += 1
            blocks.append(hashlib.sha256(seed + counter.to_bytes(4, 'little')).digest())

        raw = np.frombuffer(b"".join(blocks), dtype=np.uint8)[:self._dim]
        embedding = raw.astype(np.float32) / 255.0

        norm = np.linalg.norm(embedding)
        if norm > 0:
            embedding = embedding / norm
        return embedding


PROVIDER_NAMES: List[str] = ["auto", "openai", "voyage", "local", "hash", "none"]


def create_embedding_provider(config: Optional[Dict[str, Any]] = None) -> Optional[EmbeddingProvider]:
    """
    Factory function to get an embedding provider based on configuration.

    An explicit ``embedding_provider`` wins. With "auto" (the default) the
    first provider whose API key is present is used: OpenAI, then Voyage.
    Without any key, None is returned and search runs in lexical mode.

    Args:
        config: Merged configuration (see ConfigLoader.get_template_config)

    Returns:
        Configured provider, or None when vectors are disabled
    """
    if config is None:
        config = {}

    name = str(config.get("embedding_provider") or "auto").lower()
    model = config.get("embedding_model") or None
    cache_size = int(config.get("embedding_cache_size", 1000))

    if name == "auto":
        if os.getenv("OPENAI_API_KEY"):
            name = "openai"
        elif os.getenv("VOYAGE_API_KEY"):
            name = "voyage"
        else:
            logger.info("No embedding API key found, using keyword search")
            return None

    if name == "none":
        return None
    if name == "openai":
        provider: EmbeddingProvider = OpenAIEmbeddingProvider(model_name=model, cache_size=cache_size)
    elif name == "voyage":
        provider = VoyageEmbeddingProvider(model_name=model, cache_size=cache_size)
    elif name == "local":
        provider = LocalEmbeddingProvider(model_name=model, cache_size=cache_size)
    elif name == "hash":
        logger.warning("Using hash embedding provider (testing only)")
        provider = HashEmbeddingProvider(cache_size=cache_size)
    else:
        raise ValueError(
            f"Unknown embedding provider: {name}. Expected one of {', '.join(PROVIDER_NAMES)}"
        )

    logger.info("Embedding provider: %s (%s)", provider.provider_name, provider.model_name)
    return provider
