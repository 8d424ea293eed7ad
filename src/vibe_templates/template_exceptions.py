"""
Template Exception Hierarchy

Contains all exception classes raised by the template retrieval layer.
Every exception carries a machine-readable ``kind`` plus the offending
value so the MCP boundary can build a one-line structured error.
"""

from typing import Any, Dict, Optional


class TemplateError(Exception):
    """
    Base exception for all template operations.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """

    kind = "template_error"

    def to_response(self, **extra_fields) -> Dict[str, Any]:
        """Convert to a tool response dict."""
        response = {
            "success": False,
            "error": str(self),
            "error_kind": self.kind,
        }
        response.update(extra_fields)
        return response


class InvalidTemplateIdError(TemplateError, ValueError):
    """
    Raised when a template ID is malformed or unsafe.

    Wrong segment count, disallowed characters and path traversal attempts
    all end up here, always before the filesystem is touched.
    """

    kind = "invalid_identifier"

    def __init__(self, template_id: Any, reason: str):
        self.template_id = template_id
        self.reason = reason
        super().__init__(f"Invalid template ID {template_id!r}: {reason}")

    def to_response(self, **extra_fields) -> Dict[str, Any]:
        return super().to_response(template_id=self.template_id, **extra_fields)


class TemplateNotFoundError(TemplateError, LookupError):
    """Raised when a well-formed template ID has no metadata on disk."""

    kind = "not_found"

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Template not found: {template_id}")

    def to_response(self, **extra_fields) -> Dict[str, Any]:
        return super().to_response(template_id=self.template_id, **extra_fields)


class InvalidTemplateRecordError(TemplateError):
    """
    Raised when metadata.json exists but fails structural validation.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    """

    kind = "invalid_record"

    def __init__(self, template_id: str, reason: str):
        self.template_id = template_id
        self.reason = reason
        super().__init__(f"Invalid template {template_id}: {reason}")

    def to_response(self, **extra_fields) -> Dict[str, Any]:
        return super().to_response(template_id=self.template_id, **extra_fields)


class EmbeddingProviderError(TemplateError):
    """
    Raised when the embedding backend errors or times out.

    Not retried. Surfaces to the caller of search or of the batch
    embedding generation.
    """

    kind = "provider_failure"

    def __init__(self, provider: str, message: str):
        self.provider = provider
        self.message = message
        super().__init__(f"Embedding provider '{provider}' failed: {message}")

    def to_response(self, **extra_fields) -> Dict[str, Any]:
        return super().to_response(provider=self.provider, **extra_fields)


class VectorDimensionMismatchError(TemplateError):
    """
    Raised when two vectors of different lengths are compared.

    Indicates a corrupted embeddings.json or a provider/model mismatch.
    Never recovered from by switching to lexical ranking.
    """

    kind = "vector_dimension_mismatch"

    def __init__(self, expected: int, actual: int, template_id: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        self.template_id = template_id
        where = f" for template {template_id}" if template_id else ""
        super().__init__(
            f"Vector dimension mismatch{where}: expected {expected}, got {actual}"
        )


__all__ = [
    "TemplateError",
    "InvalidTemplateIdError",
    "TemplateNotFoundError",
    "InvalidTemplateRecordError",
    "EmbeddingProviderError",
    "VectorDimensionMismatchError",
]
