"""
Tool Registrar Service

Handles registration of all MCP tools.
"""

from typing import List

from fastmcp import FastMCP

from ..logging_config import configure_logger
from .registrars import TemplateToolsRegistrar, ToolRegistrarBase
from .search_service import SearchService
from .template_service import TemplateService

logger = configure_logger(__name__)


class ToolRegistrar:
    """
    Manages MCP tool registration.

    ::: This is-in-layer Service-Layer.
    ::: This is a model-context-protocol-tool-provider.
    ::: This is stateless.
    """

    def __init__(self, template_service: TemplateService, search_service: SearchService):
        self.template_tools = TemplateToolsRegistrar(template_service, search_service)
        self._registrars: List[ToolRegistrarBase] = [self.template_tools]

    def register_all_tools(self, app: FastMCP) -> None:
        """Register every tool registrar with the app."""
        for registrar in self._registrars:
            registrar.register(app)
        logger.info(
            "Registered MCP tools: search_templates, get_template, list_templates, template_status"
        )
