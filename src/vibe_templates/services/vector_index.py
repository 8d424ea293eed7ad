"""
Template Vector Index

Holds one embedding per template and ranks templates by cosine similarity
to a query embedding. Vectors come from {root}/embeddings.json when that
file is present and parses, otherwise they are generated through the
configured EmbeddingProvider. Without either, the index reports no vectors
and callers fall back to lexical ranking.
"""

import asyncio
import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
from pydantic import ValidationError

from ..logging_config import configure_logger
from ..models import EmbeddingCache, ScoredTemplate, TemplateFilters, TemplateRecord
from ..template_exceptions import EmbeddingProviderError, VectorDimensionMismatchError
from .embedding_service import EmbeddingProvider
from .template_service import TemplateService

logger = configure_logger(__name__)

EMBEDDINGS_FILENAME = "embeddings.json"
DEFAULT_BATCH_SIZE = 10


class IndexState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


def cosine_similarity(
    a: Union[np.ndarray, Sequence[float]],
    b: Union[np.ndarray, Sequence[float]],
    template_id: Optional[str] = None
) -> float:
    """
    Compute cosine similarity between two embeddings.

    Returns:
        Similarity in [-1, 1]; 0.0 when either vector has zero magnitude

    Raises:
        VectorDimensionMismatchError: the vectors differ in length
    """
    a = np.asarray(a, dtype=np.float32)
    b = np.asarray(b, dtype=np.float32)
    if a.shape != b.shape:
        raise VectorDimensionMismatchError(a.size, b.size, template_id)

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(a, b) / (norm_a * norm_b))


def build_embedding_text(record: TemplateRecord) -> str:
    """Text embedded for a template: name, description, category, framework, language, tags."""
    return " ".join([
        record.name,
        record.description,
        record.category,
        record.framework,
        record.language,
        *record.tags,
    ])


class TemplateVectorIndex:
    """
    In-memory vector index over the template corpus.

    ::: This is-in-layer Service-Layer.
    ::: This is a index.
    ::: This holds-state template-vectors.

    State: UNINITIALIZED -> LOADING -> READY. A failed initialization goes
    back to UNINITIALIZED and re-raises. ``clear()`` returns to
    UNINITIALIZED so the next ``initialize()`` reloads everything.
    """

    def __init__(
        self,
        template_service: TemplateService,
        provider: Optional[EmbeddingProvider] = None,
        cache_path: Optional[Union[str, Path]] = None,
        batch_size: int = DEFAULT_BATCH_SIZE
    ):
        """
        Args:
            template_service: Corpus accessor used to load records
            provider: Embedding provider, or None for lexical-only mode
            cache_path: embeddings.json location (default: corpus root)
            batch_size: Concurrent provider calls per batch
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.template_service = template_service
        self.provider = provider
        self.cache_path = (
            Path(cache_path) if cache_path is not None
            else template_service.templates_dir / EMBEDDINGS_FILENAME
        )
        self.batch_size = batch_size

        self._records: Dict[str, TemplateRecord] = {}
        self._vectors: Dict[str, np.ndarray] = {}
        self._state = IndexState.UNINITIALIZED
        self._vectors_available = False
        self._vector_source: Optional[str] = None
        self._cache_model: Optional[str] = None
        self._loading: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == IndexState.READY

    @property
    def vectors_available(self) -> bool:
        return self._vectors_available

    @property
    def has_vectors(self) -> bool:
        """Vector ranking is usable: vectors were loaded and the map is non-empty."""
        return self._vectors_available and len(self._vectors) > 0

    @property
    def records(self) -> Dict[str, TemplateRecord]:
        """Loaded records, in corpus scan order."""
        return self._records

    @property
    def vector_count(self) -> int:
        return len(self._vectors)

    @property
    def model_name(self) -> Optional[str]:
        """Model of the vectors in use (cache file model or provider model)."""
        if self._cache_model:
            return self._cache_model
        if self.provider is not None:
            return self.provider.model_name
        return None

    @property
    def vector_source(self) -> Optional[str]:
        """'cache', 'provider' or None."""
        return self._vector_source

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Load records and vectors. No-op once READY.

        Concurrent callers during LOADING await the same load instead of
        starting another one.

        Raises:
            EmbeddingProviderError: provider failed while generating vectors
            InvalidTemplateRecordError: a corpus record is invalid
        """
        if self._state == IndexState.READY:
            return

        loop = asyncio.get_running_loop()
        loading = self._loading
        if loading is None or loading.get_loop() is not loop:
            loading = loop.create_task(self._load())
            loading.add_done_callback(self._loading_finished)
            self._loading = loading
        await loading

    def _loading_finished(self, task: asyncio.Task) -> None:
        if self._loading is task:
            self._loading = None

    async def _load(self) -> None:
        self._state = IndexState.LOADING
        logger.info("Initializing template index...")
        try:
            records = await asyncio.to_thread(self.template_service.list_templates)
            self._records = {record.id: record for record in records}

            if self._load_cache_file():
                self._vectors_available = True
                self._vector_source = "cache"
            elif self.provider is not None and self.provider.is_available():
                self._vectors = await self._generate_vectors(list(self._records.values()))
                self._vectors_available = True
                self._vector_source = "provider"
            else:
                logger.info("Embeddings not available. Using keyword search fallback.")
                self._vectors_available = False
                self._vector_source = None
        except BaseException:
            self._reset()
            raise

        self._state = IndexState.READY
        logger.info(
            "Template index initialized: %d templates, %d vectors, embeddings %s",
            len(self._records), len(self._vectors),
            "available" if self._vectors_available else "unavailable"
        )

    def _load_cache_file(self) -> bool:
        """
        Load vectors from the embeddings cache file.

        Returns:
            True if the cache was loaded; False if absent or unreadable
        """
        try:
            with open(self.cache_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            cache = EmbeddingCache.model_validate(data)
        except FileNotFoundError:
            return False
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
            logger.warning("Failed to load embedding cache %s: %s", self.cache_path, e)
            return False

        self._vectors = {
            template_id: np.asarray(vector, dtype=np.float32)
            for template_id, vector in cache.embeddings.items()
        }
        self._cache_model = cache.model
        logger.info(
            "Loaded cached embeddings: %d vectors, model %s, generated %s",
            len(self._vectors), cache.model, cache.generated_at
        )
        return True

    async def _generate_vectors(self, records: List[TemplateRecord]) -> Dict[str, np.ndarray]:
        """
        Embed every record through the provider.

        Calls inside a batch run concurrently; batches run one after another.
        """
        if self.provider is None:
            return {}

        provider = self.provider
        vectors: Dict[str, np.ndarray] = {}
        total_batches = (len(records) + self.batch_size - 1) // self.batch_size
        logger.info("Generating embeddings for %d templates...", len(records))

        for start in range(0, len(records), self.batch_size):
            batch = records[start:start + self.batch_size]
            embeddings = await asyncio.gather(*[
                asyncio.to_thread(provider.embed, build_embedding_text(record))
                for record in batch
            ])
            for record, embedding in zip(batch, embeddings):
                vectors[record.id] = embedding
            logger.debug(
                "Processed embedding batch %d/%d", start // self.batch_size + 1, total_batches
            )

        logger.info("Generated %d embeddings", len(vectors))
        return vectors

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------

    async def embed_query(self, query: str) -> np.ndarray:
        if self.provider is None:
            raise EmbeddingProviderError("none", "No embedding provider configured")
        return await asyncio.to_thread(self.provider.embed, query)

    async def rank(
        self,
        query: str,
        filters: Optional[TemplateFilters] = None,
        limit: int = 5
    ) -> List[ScoredTemplate]:
        """
        Rank templates by similarity to the query.

        Every filtered template with both a vector and a record is scored,
        including near-zero and negative scores. Vectors for IDs no longer in
        the corpus are ignored.

        Raises:
            EmbeddingProviderError: the query could not be embedded
            VectorDimensionMismatchError: a stored vector has the wrong length
        """
        if not self.is_ready:
            await self.initialize()

        query_embedding = await self.embed_query(query)

        scores: List[ScoredTemplate] = []
        for template_id, vector in self._vectors.items():
            record = self._records.get(template_id)
            if record is None:
                continue
            if filters is not None and not filters.matches(record):
                continue
            score = cosine_similarity(query_embedding, vector, template_id)
            scores.append(ScoredTemplate(template_id, score))

        # sorted() is stable: ties keep vector map order
        scores = sorted(scores, key=lambda item: item.score, reverse=True)
        return scores[:limit]

    # ------------------------------------------------------------------
    # Cache file generation
    # ------------------------------------------------------------------

    async def generate_cache(self) -> EmbeddingCache:
        """
        Embed the whole corpus through the provider, ignoring any cache file.

        Raises:
            EmbeddingProviderError: no usable provider, or a provider call failed
        """
        if self.provider is None or not self.provider.is_available():
            name = self.provider.provider_name if self.provider is not None else "none"
            raise EmbeddingProviderError(name, "Embedding provider not available")

        records = await asyncio.to_thread(self.template_service.list_templates)
        vectors = await self._generate_vectors(records)
        return EmbeddingCache(
            embeddings={
                template_id: [float(v) for v in vector]
                for template_id, vector in vectors.items()
            },
            generated_at=datetime.now(timezone.utc).isoformat(),
            model=self.provider.model_name,
        )

    async def save_cache(self, path: Optional[Union[str, Path]] = None) -> Path:
        """Regenerate the embeddings and write them to the cache file."""
        cache = await self.generate_cache()
        output_path = Path(path) if path is not None else self.cache_path
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(cache.model_dump(by_alias=True), f, indent=2)
        logger.info("Saved %d embeddings to %s", len(cache.embeddings), output_path)
        return output_path

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def _reset(self) -> None:
        self._records = {}
        self._vectors = {}
        self._vectors_available = False
        self._vector_source = None
        self._cache_model = None
        self._state = IndexState.UNINITIALIZED

    def clear(self) -> None:
        """Drop records and vectors; the next initialize() reloads both."""
        self._reset()
        logger.info("Template index cleared")
