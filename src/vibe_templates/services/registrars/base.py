"""
Base Tool Registrar

Common functionality for all tool registrars.
"""

import inspect
from functools import wraps
from typing import Any, Callable, Dict

from pydantic import ValidationError

from ...logging_config import configure_logger
from ...template_exceptions import TemplateError
from ..search_service import SearchService
from ..template_service import TemplateService

logger = configure_logger(__name__)


def _error_response(func_name: str, error: Exception) -> Dict[str, Any]:
    if isinstance(error, TemplateError):
        logger.info("%s failed: %s", func_name, error)
        return error.to_response()
    if isinstance(error, ValidationError):
        return {
            "success": False,
            "error": str(error),
            "error_kind": "invalid_input",
        }
    logger.error("%s error: %s", func_name, error, exc_info=True)
    return {
        "success": False,
        "error": f"{type(error).__name__}: {error}",
        "error_kind": "internal_error",
    }


def handle_template_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Decorator to convert exceptions into structured error responses.

    TemplateError subclasses use their own to_response(); pydantic input
    validation errors become "invalid_input"; anything else is logged and
    reported as "internal_error". Works on sync and async tools.

    Example:
        @app.tool()
        @handle_template_errors
        async def my_tool(...) -> Dict[str, Any]:
            ...
    """
    if inspect.iscoroutinefunction(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs) -> Dict[str, Any]:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                return _error_response(func.__name__, e)
        return async_wrapper

    @wraps(func)
    def wrapper(*args, **kwargs) -> Dict[str, Any]:
        try:
            return func(*args, **kwargs)
        except Exception as e:
            return _error_response(func.__name__, e)
    return wrapper


class ToolRegistrarBase:
    """Base class with common functionality for tool registrars."""

    def __init__(self, template_service: TemplateService, search_service: SearchService):
        self.template_service = template_service
        self.search_service = search_service

    def register(self, app) -> None:
        """Register tools with FastMCP. Override in subclasses."""
        raise NotImplementedError("Subclasses must implement register()")
