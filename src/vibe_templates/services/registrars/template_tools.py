"""
Template Tools Registrar

Registers the template MCP tools:
- search_templates: natural language search
- get_template: full template by ID
- list_templates: browse with filters
- template_status: index and corpus status
"""

import asyncio
from typing import Any, Dict, Optional

from fastmcp import FastMCP

from ...models import GetTemplateInput, ListTemplatesInput, SearchTemplatesInput
from .base import ToolRegistrarBase, handle_template_errors


class TemplateToolsRegistrar(ToolRegistrarBase):
    """
    Registers template tools with FastMCP.

    ::: This is-in-layer Presentation-Layer.
    ::: This is a model-context-protocol-tool-provider.
    ::: This depends-on SearchService.
    ::: This is stateless.

    The tool bodies are plain methods so they can be called without a
    running MCP app.
    """

    @handle_template_errors
    async def search_templates(
        self,
        query: str,
        language: Optional[str] = None,
        framework: Optional[str] = None,
        category: Optional[str] = None,
        limit: int = 5
    ) -> Dict[str, Any]:
        params = SearchTemplatesInput(
            query=query,
            language=language,
            framework=framework,
            category=category,
            limit=limit,
        )
        results = await self.search_service.search(params.query, params.to_filters())
        return {
            "success": True,
            "results": [result.to_dict() for result in results],
            "count": len(results),
            "strategy": self.search_service.strategy,
        }

    @handle_template_errors
    async def get_template(
        self,
        template_id: str,
        include_example: bool = True,
        format: str = "full"
    ) -> Dict[str, Any]:
        params = GetTemplateInput(
            template_id=template_id,
            include_example=include_example,
            format=format,
        )
        template = await asyncio.to_thread(
            self.search_service.get_template,
            params.template_id,
            params.format,
            params.include_example,
        )
        return {"success": True, "template": template}

    @handle_template_errors
    async def list_templates(
        self,
        category: Optional[str] = None,
        language: Optional[str] = None,
        framework: Optional[str] = None
    ) -> Dict[str, Any]:
        params = ListTemplatesInput(category=category, language=language, framework=framework)
        items = await asyncio.to_thread(self.search_service.list_templates, params.to_filters())
        return {
            "success": True,
            "templates": [item.model_dump(by_alias=True) for item in items],
            "count": len(items),
        }

    @handle_template_errors
    async def template_status(self) -> Dict[str, Any]:
        status = self.search_service.get_status()
        status["success"] = True
        return status

    def register(self, app: FastMCP) -> None:
        """Register all template tools."""
        registrar = self

        @app.tool()
        async def search_templates(
            query: str,
            language: Optional[str] = None,
            framework: Optional[str] = None,
            category: Optional[str] = None,
            limit: int = 5
        ) -> Dict[str, Any]:
            """
            Search for code templates using natural language.

            Returns relevant templates ranked by similarity. Uses embeddings when
            available, keyword matching otherwise.

            Args:
                query: What you need, e.g. "user authentication with Google OAuth"
                language: Programming language filter ("typescript", "python")
                framework: Framework filter (e.g., "nextjs", "fastapi")
                category: auth, payment, email, notification, database, storage, api, ui, testing, deployment
                limit: Maximum number of results, 1-20 (default: 5)

            Returns:
                {
                    "success": True,
                    "results": [
                        {
                            "id": "typescript/nextjs/auth/nextauth-google",
                            "name": "NextAuth Google OAuth",
                            "description": "...",
                            "score": 0.83,
                            "category": "auth",
                            "language": "typescript",
                            "framework": "nextjs"
                        },
                        ...
                    ],
                    "count": 3,
                    "strategy": "vector"
                }

            Examples:
                - search_templates("Stripe payment integration with subscriptions")
                - search_templates("send email", framework="nextjs")
            """
            return await registrar.search_templates(query, language, framework, category, limit)

        @app.tool()
        async def get_template(
            templateId: str,
            includeExample: bool = True,
            format: str = "full"
        ) -> Dict[str, Any]:
            """
            Get complete template code, dependencies, and usage instructions.

            Use after search_templates to get the full implementation details.

            Args:
                templateId: Template ID (e.g., "typescript/nextjs/auth/nextauth-google")
                includeExample: Include the usage example code (default: True)
                format: "full" (default), "code-only" or "metadata-only"

            Returns:
                {"success": True, "template": {...}}; the template holds metadata,
                code (path -> content), installation, envVariables, usage and
                relatedTemplates, depending on format.
            """
            return await registrar.get_template(templateId, includeExample, format)

        @app.tool()
        async def list_templates(
            category: Optional[str] = None,
            language: Optional[str] = None,
            framework: Optional[str] = None
        ) -> Dict[str, Any]:
            """
            List available code templates with optional filtering.

            Use this to browse when you're not sure what you're looking for.

            Args:
                category: auth, payment, email, notification, database, storage, api, ui, testing, deployment
                language: "typescript" or "python"
                framework: e.g. "nextjs", "fastapi"

            Returns:
                {"success": True, "templates": [{id, name, description, category,
                language, framework, tags}, ...], "count": N}
            """
            return await registrar.list_templates(category, language, framework)

        @app.tool()
        async def template_status() -> Dict[str, Any]:
            """
            Template index status: template count, search strategy (vector or
            lexical), vector count and embedding model.
            """
            return await registrar.template_status()
