"""
Resource Registrar Service

Serves templates as MCP resources:
- template://{language}/{framework}/{category}/{name}: one template as markdown
- template://{id}/{path}: one code file, MIME type by extension
- templates://catalog: every template, grouped by category

Every template and code file in the corpus is also registered as a concrete
resource so that MCP hosts can list them.
"""

from typing import Callable, List
from urllib.parse import quote

from fastmcp import FastMCP

from ..logging_config import configure_logger
from ..models import ResourceContent, ResourceItem
from ..template_exceptions import TemplateError, TemplateNotFoundError
from .search_service import SearchService
from .template_formatting import file_extension, format_template_list, format_template_markdown

logger = configure_logger(__name__)

TEMPLATE_URI_PREFIX = "template://"
TEMPLATE_URI_PATTERN = TEMPLATE_URI_PREFIX + "{language}/{framework}/{category}/{name}"
CATALOG_URI = "templates://catalog"

MARKDOWN_MIME_TYPE = "text/markdown"
DEFAULT_CODE_MIME_TYPE = "text/plain"
NO_CODE_PLACEHOLDER = "// No code files found for this template"

MIME_TYPES = {
    "ts": "text/typescript",
    "tsx": "text/typescript",
    "js": "text/javascript",
    "jsx": "text/javascript",
    "json": "application/json",
    "md": "text/markdown",
    "py": "text/x-python",
    "prisma": "text/plain",
}


def mime_type_for(file_path: str) -> str:
    return MIME_TYPES.get(file_extension(file_path, default=""), DEFAULT_CODE_MIME_TYPE)


def build_template_uri(template_id: str, file_path: str = "") -> str:
    """template://{id} or template://{id}/{file path}, file path percent-encoded."""
    uri = TEMPLATE_URI_PREFIX + template_id
    if file_path:
        uri += "/" + quote(file_path, safe="/")
    return uri


class ResourceRegistrar:
    """
    Manages MCP resource registration for templates.

    ::: This is-in-layer Presentation-Layer.
    ::: This is a model-context-protocol-resource-provider.
    ::: This depends-on SearchService.
    """

    def __init__(self, search_service: SearchService):
        """
        Args:
            search_service: Service used to fetch and list templates
        """
        self.search_service = search_service

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_template(self, template_id: str) -> str:
        """
        Render one template as markdown.

        Raises:
            InvalidTemplateIdError / TemplateNotFoundError, which the MCP
            layer reports as a resource read error
        """
        logger.debug("Fetching template resource %s", template_id)
        response = self.search_service.get_template(template_id, "full")
        return format_template_markdown(response, "full")

    def read_template_files(self, template_id: str) -> List[ResourceContent]:
        """
        One content item per code file.

        A template without code yields a single placeholder item.
        """
        response = self.search_service.get_template(template_id, "code-only")
        contents = [
            ResourceContent(build_template_uri(template_id, file_path), mime_type_for(file_path), text)
            for file_path, text in response["code"].items()
        ]
        if not contents:
            contents.append(ResourceContent(
                build_template_uri(template_id), "text/typescript", NO_CODE_PLACEHOLDER
            ))
        return contents

    def read_template_file(self, template_id: str, file_path: str) -> str:
        """
        Read one code file of a template.

        Raises:
            TemplateNotFoundError: the template or the file does not exist
        """
        code = self.search_service.get_template(template_id, "code-only")["code"]
        if file_path not in code:
            raise TemplateNotFoundError(f"{template_id}/{file_path}")
        return code[file_path]

    def read_catalog(self) -> str:
        return format_template_list(self.search_service.list_templates())

    def list_template_resources(self) -> List[ResourceItem]:
        """One markdown resource per template, in corpus scan order."""
        return [
            ResourceItem(build_template_uri(item.id), item.name, item.description, MARKDOWN_MIME_TYPE)
            for item in self.search_service.list_templates()
        ]

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_all_resources(self, app: FastMCP) -> List[str]:
        """
        Register all template resources with the MCP app.

        Args:
            app: FastMCP application instance

        Returns:
            URIs of the concrete (listable) resources registered
        """
        registrar = self

        @app.resource(TEMPLATE_URI_PATTERN, mime_type=MARKDOWN_MIME_TYPE)
        def get_template_resource(language: str, framework: str, category: str, name: str) -> str:
            """Template code, dependencies and setup instructions as markdown"""
            return registrar.read_template(f"{language}/{framework}/{category}/{name}")

        @app.resource(CATALOG_URI, mime_type=MARKDOWN_MIME_TYPE)
        def get_template_catalog() -> str:
            """Catalog of all available templates, grouped by category"""
            return registrar.read_catalog()

        listed = self._register_listed_resources(app)
        logger.info(
            "Registered MCP resources: %s, %s and %d listed template resources",
            TEMPLATE_URI_PATTERN, CATALOG_URI, len(listed)
        )
        return listed

    def _register_listed_resources(self, app: FastMCP) -> List[str]:
        """
        Register every template and code file as a concrete resource.

        A corpus that cannot be scanned is logged and left unlisted; the
        URI template above still serves every template.
        """
        template_service = self.search_service.template_service
        uris: List[str] = []

        try:
            items = self.list_template_resources()
            for item in items:
                template_id = item.uri[len(TEMPLATE_URI_PREFIX):]
                app.resource(
                    item.uri, name=item.name, description=item.description, mime_type=item.mime_type
                )(self._template_reader(template_id))
                uris.append(item.uri)

                for file_path in template_service.list_code_files(template_id):
                    uri = build_template_uri(template_id, file_path)
                    app.resource(
                        uri,
                        name=f"{item.name}: {file_path}",
                        description=f"{file_path} from {template_id}",
                        mime_type=mime_type_for(file_path),
                    )(self._file_reader(template_id, file_path))
                    uris.append(uri)
        except (TemplateError, OSError) as e:
            logger.warning("Template resources not listed: %s", e)

        return uris

    def _template_reader(self, template_id: str) -> Callable[[], str]:
        def read() -> str:
            return self.read_template(template_id)
        return read

    def _file_reader(self, template_id: str, file_path: str) -> Callable[[], str]:
        def read() -> str:
            return self.read_template_file(template_id, file_path)
        return read
