"""
Service classes for the vibe-templates MCP server.

Each service has a single responsibility:
- TemplateService: reads the on-disk template corpus
- TemplateVectorIndex: embeddings and cosine ranking
- SearchService: routes queries and shapes results
- ResourceRegistrar / PromptRegistrar / ToolRegistrar: MCP surface
"""

from .config_loader import ConfigLoader, load_config
from .embedding_service import (
    EmbeddingProvider,
    HashEmbeddingProvider,
    LocalEmbeddingProvider,
    OpenAIEmbeddingProvider,
    VoyageEmbeddingProvider,
    create_embedding_provider,
)
from .template_service import TemplateService
from .vector_index import IndexState, TemplateVectorIndex, cosine_similarity
from .search_service import SearchService
from .template_validator import TemplateValidator, ValidationReport
from .resource_registrar import ResourceRegistrar
from .prompt_registrar import PromptRegistrar
from .tool_registrar import ToolRegistrar

__all__ = [
    "ConfigLoader",
    "load_config",
    "EmbeddingProvider",
    "HashEmbeddingProvider",
    "LocalEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "VoyageEmbeddingProvider",
    "create_embedding_provider",
    "TemplateService",
    "IndexState",
    "TemplateVectorIndex",
    "cosine_similarity",
    "SearchService",
    "TemplateValidator",
    "ValidationReport",
    "ResourceRegistrar",
    "PromptRegistrar",
    "ToolRegistrar",
]
