"""
Vibe Templates - code template MCP server

A Model Context Protocol server that matches natural-language requests to
pre-authored code templates and returns their code, dependencies and setup
instructions.
"""

__version__ = "1.0.0"
__author__ = "Vibe Templates"

from .mcp_server import create_server, VibeTemplatesServer, main
from .models import (
    TemplateRecord,
    TemplateWithCode,
    TemplateListItem,
    TemplateFilters,
    SearchFilters,
    SearchResult,
    EmbeddingCache,
)
from .template_exceptions import (
    TemplateError,
    InvalidTemplateIdError,
    TemplateNotFoundError,
    InvalidTemplateRecordError,
    EmbeddingProviderError,
    VectorDimensionMismatchError,
)

__all__ = [
    "create_server",
    "VibeTemplatesServer",
    "main",
    "TemplateRecord",
    "TemplateWithCode",
    "TemplateListItem",
    "TemplateFilters",
    "SearchFilters",
    "SearchResult",
    "EmbeddingCache",
    "TemplateError",
    "InvalidTemplateIdError",
    "TemplateNotFoundError",
    "InvalidTemplateRecordError",
    "EmbeddingProviderError",
    "VectorDimensionMismatchError",
]
