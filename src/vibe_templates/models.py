"""
Data models for the vibe-templates MCP Server

Pydantic models for template metadata, search results, the embedding cache
and the validated inputs of the MCP tools. Attribute names are snake_case;
the on-disk metadata.json and the tool responses use the camelCase aliases.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Enums
# ============================================================================

class TemplateCategory(str, Enum):
    """Closed set of template categories"""
    AUTH = "auth"
    PAYMENT = "payment"
    EMAIL = "email"
    NOTIFICATION = "notification"
    DATABASE = "database"
    STORAGE = "storage"
    API = "api"
    UI = "ui"
    TESTING = "testing"
    DEPLOYMENT = "deployment"


class TemplateLanguage(str, Enum):
    """Supported programming languages"""
    TYPESCRIPT = "typescript"
    PYTHON = "python"


ResponseFormat = Literal["full", "code-only", "metadata-only"]

VERSION_PATTERN = r"^\d+\.\d+\.\d+"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)


# ============================================================================
# Template metadata
# ============================================================================

class EnvVariable(_CamelModel):
    """Environment variable a template consumer must supply"""
    name: str
    description: str = ""
    required: bool
    example: Optional[str] = None


class TemplateFile(_CamelModel):
    """File declared by a template"""
    path: str
    description: str = ""
    is_required: bool = Field(..., alias="isRequired")


class TemplateUsage(_CamelModel):
    """Usage instructions, returned verbatim"""
    installation: str
    configuration: str
    example: str


class TemplateRecord(_CamelModel):
    """Complete template metadata, as stored in metadata.json"""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    version: str = Field(..., pattern=VERSION_PATTERN)
    category: TemplateCategory
    language: TemplateLanguage
    framework: str = Field(..., min_length=1)

    dependencies: Dict[str, str]
    dev_dependencies: Optional[Dict[str, str]] = Field(None, alias="devDependencies")
    peer_dependencies: Optional[Dict[str, str]] = Field(None, alias="peerDependencies")

    env_variables: List[EnvVariable] = Field(..., alias="envVariables")
    files: List[TemplateFile]
    tags: List[str]
    usage: TemplateUsage
    related_templates: Optional[List[str]] = Field(None, alias="relatedTemplates")

    author: str = Field(..., min_length=1)
    created_at: str = Field(..., alias="createdAt", pattern=DATE_PATTERN)
    updated_at: str = Field(..., alias="updatedAt", pattern=DATE_PATTERN)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with camelCase keys, omitting unset optional sections."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_list_item(self) -> "TemplateListItem":
        return TemplateListItem(
            id=self.id,
            name=self.name,
            description=self.description,
            category=self.category,
            language=self.language,
            framework=self.framework,
            tags=list(self.tags),
        )


class TemplateWithCode(TemplateRecord):
    """Template metadata plus its code body (relative path -> content)"""
    code: Dict[str, str] = Field(default_factory=dict)


class TemplateListItem(_CamelModel):
    """Listing summary without code"""
    id: str
    name: str
    description: str
    category: TemplateCategory
    language: TemplateLanguage
    framework: str
    tags: List[str] = Field(default_factory=list)


class ParsedTemplateId(NamedTuple):
    """The four segments of a template ID"""
    language: str
    framework: str
    category: str
    name: str


# ============================================================================
# Filters and search results
# ============================================================================

class TemplateFilters(_CamelModel):
    """Exact-match filters applied to loaded template records"""
    category: Optional[TemplateCategory] = None
    language: Optional[TemplateLanguage] = None
    framework: Optional[str] = None

    def matches(self, record: TemplateRecord) -> bool:
        if self.category and record.category != self.category:
            return False
        if self.language and record.language != self.language:
            return False
        if self.framework and record.framework != self.framework:
            return False
        return True


class SearchFilters(TemplateFilters):
    """Filters for search, plus the result limit"""
    limit: int = Field(5, ge=1)


class ScoredTemplate(NamedTuple):
    """A ranked template ID with its relevance score"""
    id: str
    score: float


class SearchResult(_CamelModel):
    """Denormalized projection of a matched template"""
    id: str
    name: str
    description: str
    score: float
    category: TemplateCategory
    language: TemplateLanguage
    framework: str

    @classmethod
    def from_record(cls, record: TemplateRecord, score: float) -> "SearchResult":
        return cls(
            id=record.id,
            name=record.name,
            description=record.description,
            score=score,
            category=record.category,
            language=record.language,
            framework=record.framework,
        )

    def to_dict(self) -> Dict[str, Any]:
        result = self.model_dump(by_alias=True)
        result["score"] = round(self.score, 4)
        return result


class EmbeddingCache(_CamelModel):
    """Serialized form of embeddings.json"""
    embeddings: Dict[str, List[float]]
    generated_at: str = Field(..., alias="generatedAt")
    model: str


# ============================================================================
# MCP resources
# ============================================================================

class ResourceItem(NamedTuple):
    """A listable MCP resource"""
    uri: str
    name: str
    description: str
    mime_type: str


class ResourceContent(NamedTuple):
    """One content item of a resource read"""
    uri: str
    mime_type: str
    text: str


# ============================================================================
# MCP tool inputs
# ============================================================================

class SearchTemplatesInput(_CamelModel):
    """Input of the search_templates tool"""
    query: str
    language: Optional[TemplateLanguage] = None
    framework: Optional[str] = None
    category: Optional[TemplateCategory] = None
    limit: int = Field(5, ge=1, le=20)

    def to_filters(self) -> SearchFilters:
        return SearchFilters(
            category=self.category,
            language=self.language,
            framework=self.framework,
            limit=self.limit,
        )


class GetTemplateInput(_CamelModel):
    """Input of the get_template tool"""
    template_id: str = Field(..., alias="templateId")
    include_example: bool = Field(True, alias="includeExample")
    format: ResponseFormat = "full"


class ListTemplatesInput(_CamelModel):
    """Input of the list_templates tool"""
    category: Optional[TemplateCategory] = None
    language: Optional[TemplateLanguage] = None
    framework: Optional[str] = None

    def to_filters(self) -> TemplateFilters:
        return TemplateFilters(
            category=self.category,
            language=self.language,
            framework=self.framework,
        )
