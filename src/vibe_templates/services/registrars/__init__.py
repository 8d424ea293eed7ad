"""
Tool registrars for the vibe-templates MCP server.
"""

from .base import ToolRegistrarBase, handle_template_errors
from .template_tools import TemplateToolsRegistrar

__all__ = [
    "ToolRegistrarBase",
    "handle_template_errors",
    "TemplateToolsRegistrar",
]
