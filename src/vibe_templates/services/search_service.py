"""
Search Service

Routes template queries to vector or keyword ranking and assembles the
results. The strategy is chosen once per index initialization: vector
ranking when the index holds vectors, keyword ranking otherwise. A failed
query embedding is an error, never a silent switch to keyword ranking.

Also serves the non-ranked operations (get by ID, listing) straight from
the TemplateService.
"""

from typing import Any, Dict, List, Optional

from ..logging_config import configure_logger
from ..models import (
    ResponseFormat,
    ScoredTemplate,
    SearchFilters,
    SearchResult,
    TemplateFilters,
    TemplateListItem,
)
from ..template_exceptions import TemplateNotFoundError
from .lexical_ranker import rank_templates
from .template_service import TemplateService
from .vector_index import TemplateVectorIndex

logger = configure_logger(__name__)

DEFAULT_LIMIT = 5

STRATEGY_VECTOR = "vector"
STRATEGY_LEXICAL = "lexical"

RESPONSE_FORMATS = ("full", "code-only", "metadata-only")


class SearchService:
    """
    Query router and result assembler.

    ::: This is-in-layer Service-Layer.
    ::: This is a facade.
    ::: This depends-on TemplateService.
    ::: This depends-on TemplateVectorIndex.
    """

    def __init__(self, template_service: TemplateService, vector_index: TemplateVectorIndex):
        self.template_service = template_service
        self.vector_index = vector_index
        self._strategy: Optional[str] = None

    @property
    def strategy(self) -> Optional[str]:
        """'vector' or 'lexical' once initialized, None before."""
        if not self.vector_index.is_ready:
            return None
        return self._strategy

    @property
    def is_initialized(self) -> bool:
        return self.vector_index.is_ready

    async def initialize(self) -> None:
        """Initialize the vector index and fix the ranking strategy."""
        if self.vector_index.is_ready and self._strategy is not None:
            return
        await self.vector_index.initialize()
        self._strategy = STRATEGY_VECTOR if self.vector_index.has_vectors else STRATEGY_LEXICAL
        logger.info("Search strategy: %s", self._strategy)

    async def search(self, query: str, filters: Optional[SearchFilters] = None) -> List[SearchResult]:
        """
        Search for templates using a natural language query.

        Args:
            query: Search query
            filters: Optional category/language/framework filters and limit

        Returns:
            Results sorted by relevance, at most ``filters.limit`` long

        Raises:
            EmbeddingProviderError: vector mode and the query embedding failed
        """
        await self.initialize()

        limit = filters.limit if filters is not None else DEFAULT_LIMIT

        if self._strategy == STRATEGY_VECTOR:
            scored = await self.vector_index.rank(query, filters, limit)
        else:
            scored = rank_templates(query, self.vector_index.records.values(), filters, limit)

        logger.debug("Search %r (%s): %d results", query, self._strategy, len(scored))
        return self._build_search_results(scored)

    def _build_search_results(self, scored: List[ScoredTemplate]) -> List[SearchResult]:
        results: List[SearchResult] = []
        records = self.vector_index.records
        for item in scored:
            record = records.get(item.id)
            if record is None:
                continue
            results.append(SearchResult.from_record(record, item.score))
        return results

    def list_templates(self, filters: Optional[TemplateFilters] = None) -> List[TemplateListItem]:
        """List template summaries in corpus scan order."""
        return self.template_service.list_template_items(filters)

    def get_template(
        self,
        template_id: str,
        response_format: ResponseFormat = "full",
        include_example: bool = True
    ) -> Dict[str, Any]:
        """
        Get one template by ID in the requested response shape.

        - full: metadata, code, installation, envVariables, usage, relatedTemplates
        - metadata-only: the same without code (code files are not read)
        - code-only: id, name and code

        Raises:
            InvalidTemplateIdError: malformed ID
            TemplateNotFoundError: well-formed ID with no template on disk
        """
        if response_format not in RESPONSE_FORMATS:
            raise ValueError(f"Unknown response format: {response_format}")

        record = self.template_service.load_template(template_id)
        if record is None:
            raise TemplateNotFoundError(template_id)

        if response_format == "code-only":
            return {
                "id": record.id,
                "name": record.name,
                "code": self.template_service.get_template_code(template_id),
            }

        metadata = record.to_dict()
        usage = dict(metadata["usage"])
        if not include_example:
            usage["example"] = ""
            metadata["usage"] = dict(usage)

        response: Dict[str, Any] = {"metadata": metadata}
        if response_format == "full":
            response["code"] = self.template_service.get_template_code(template_id)
        response["installation"] = usage["installation"]
        response["envVariables"] = metadata["envVariables"]
        response["usage"] = usage
        if record.related_templates is not None:
            response["relatedTemplates"] = list(record.related_templates)
        return response

    def clear_cache(self) -> None:
        """Reset the vector index. The TemplateService record cache is untouched."""
        self.vector_index.clear()
        self._strategy = None

    def get_status(self) -> Dict[str, Any]:
        """Index and corpus status."""
        index = self.vector_index
        status: Dict[str, Any] = {
            "templates_dir": str(self.template_service.templates_dir),
            "initialized": index.is_ready,
            "state": index.state.value,
            "strategy": self.strategy,
            "template_count": len(index.records),
            "vector_count": index.vector_count,
            "vector_source": index.vector_source,
            "embedding_model": index.model_name,
            "embedding_provider": index.provider.provider_name if index.provider is not None else None,
            "cached_records": self.template_service.cached_count,
        }
        return status
