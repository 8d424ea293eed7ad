"""
Prompt Registrar Service

Registers MCP prompts:
- implement_auth: step-by-step guide for adding an authentication provider,
  built from the best matching auth template
"""

from typing import Any, Dict, List, Optional

from fastmcp import FastMCP

from ..logging_config import configure_logger
from ..models import SearchFilters, SearchResult
from .search_service import SearchService
from .template_formatting import format_template_markdown

logger = configure_logger(__name__)

DEFAULT_AUTH_FRAMEWORK = "nextjs"
AUTH_GUIDE_CANDIDATES = 3


def parse_features(features: Optional[str]) -> List[str]:
    """Split a comma-separated feature list, dropping blanks."""
    if not features:
        return []
    return [feature.strip() for feature in features.split(",") if feature.strip()]


class PromptRegistrar:
    """
    Manages MCP prompt registration.

    ::: This is-in-layer Presentation-Layer.
    ::: This is a model-context-protocol-prompt-provider.
    ::: This depends-on SearchService.
    ::: This is stateless.
    """

    def __init__(self, search_service: SearchService):
        self.search_service = search_service

    async def build_auth_guide(
        self,
        provider: str,
        framework: str = DEFAULT_AUTH_FRAMEWORK,
        features: Optional[List[str]] = None
    ) -> str:
        """
        Build the implement_auth guide.

        Searches auth templates for the provider and features, then renders
        the top match's setup as markdown with the follow-up tool calls.

        Raises:
            EmbeddingProviderError: vector search and the query embedding failed
        """
        features = list(features or [])
        query = " ".join([provider, "authentication", *features])
        results = await self.search_service.search(
            query, SearchFilters(category="auth", framework=framework or None, limit=AUTH_GUIDE_CANDIDATES)
        )

        title = f"# Implement {provider.capitalize()} authentication ({framework or 'any framework'})"
        if not results:
            return "\n".join([
                title,
                "",
                f"No auth template matches \"{query}\".",
                'Call `list_templates(category="auth")` to browse the available auth templates.',
            ])

        top = results[0]
        template = self.search_service.get_template(top.id, "metadata-only")
        return self._render_guide(title, features, top, results[1:], template)

    @staticmethod
    def _render_guide(
        title: str,
        features: List[str],
        top: SearchResult,
        others: List[SearchResult],
        template: Dict[str, Any]
    ) -> str:
        sections: List[str] = [title, ""]

        if features:
            sections.append("Requested features: " + ", ".join(features))
            sections.append("")

        sections.append(f"## Recommended template: `{top.id}`\n")
        sections.append(format_template_markdown(template, "metadata-only"))
        sections.append("")

        if others:
            sections.append("## Other matching templates\n")
            for result in others:
                sections.append(f"- `{result.id}`: {result.description}")
            sections.append("")

        env_names = [env["name"] for env in template["envVariables"] if env.get("required")]
        sections.append("## Steps\n")
        sections.append(f'1. Call `get_template(templateId="{top.id}")` to fetch the code files.')
        sections.append("2. Install the dependencies listed above.")
        if env_names:
            sections.append("3. Set " + ", ".join(f"`{name}`" for name in env_names) + ".")
        else:
            sections.append("3. No environment variables are required.")
        sections.append("4. Copy the code files into the project and apply the configuration above.")

        return "\n".join(sections)

    def register(self, app: FastMCP) -> None:
        """Register the prompts with the MCP app."""
        registrar = self

        @app.prompt(
            name="implement_auth",
            description="Guide for implementing an authentication provider from the template library",
        )
        async def implement_auth(
            provider: str,
            framework: str = DEFAULT_AUTH_FRAMEWORK,
            features: Optional[str] = None
        ) -> str:
            """
            Args:
                provider: Auth provider, e.g. "google", "github", "clerk"
                framework: Framework the templates target, e.g. "nextjs"
                features: Comma-separated extras, e.g. "session, middleware"
            """
            try:
                return await registrar.build_auth_guide(provider, framework, parse_features(features))
            except Exception as e:
                logger.error("implement_auth prompt failed: %s", e)
                raise

        logger.info("Registered MCP prompts: implement_auth")
