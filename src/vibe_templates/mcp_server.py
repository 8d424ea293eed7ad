"""
Vibe Templates MCP Server

Serves pre-authored code templates to AI coding assistants over the MCP
stdio transport.
"""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from fastmcp import FastMCP

from .logging_config import configure_logger, set_log_level
from .template_exceptions import TemplateError
from .services import (
    ConfigLoader,
    PromptRegistrar,
    ResourceRegistrar,
    SearchService,
    TemplateService,
    TemplateVectorIndex,
    ToolRegistrar,
    create_embedding_provider,
)

logger = configure_logger(__name__)

SERVER_NAME = "vibe-templates"

SERVER_INSTRUCTIONS = """Vibe Templates serves production-ready code templates (auth, payments, email, storage, database, API, UI...).

When the user asks to add a common feature, check for a template FIRST instead of writing it from scratch:
1. `search_templates(query="...")` - find templates by describing the need in natural language
2. `get_template(templateId="...")` - fetch code files, dependencies, env variables and setup steps
3. `list_templates(category="...")` - browse when unsure what exists

Use `format="metadata-only"` to review dependencies and setup before pulling the code.
`template_status()` reports whether search runs on embeddings or keyword matching."""


class VibeTemplatesServer:
    """
    Vibe Templates MCP Server.

    ::: This is-in-layer Presentation-Layer.
    ::: This is a model-context-protocol-server.
    ::: This is-in-process Model-Context-Protocol-Server-Process.
    ::: This is a process-entry-point.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, project_root: Optional[Path] = None):
        """
        Args:
            config: Merged configuration; loaded from vibe_templates.json and
                the environment when omitted
            project_root: Directory holding vibe_templates.json
        """
        if config is None:
            loader = ConfigLoader()
            loader.load(project_root)
            config = loader.get_template_config()
        self.config = config
        set_log_level(str(config.get("log_level", "info")))

        self.template_service = TemplateService(config["templates_dir"])
        self.embedding_provider = create_embedding_provider(config)
        self.vector_index = TemplateVectorIndex(
            self.template_service,
            self.embedding_provider,
            batch_size=int(config.get("embedding_batch_size", 10)),
        )
        self.search_service = SearchService(self.template_service, self.vector_index)

        self.resource_registrar = ResourceRegistrar(self.search_service)
        self.prompt_registrar = PromptRegistrar(self.search_service)
        self.tool_registrar = ToolRegistrar(self.template_service, self.search_service)

        self.app = FastMCP(SERVER_NAME, instructions=SERVER_INSTRUCTIONS)

    def register(self) -> None:
        """Register resources, prompts and tools with the FastMCP app."""
        self.resource_registrar.register_all_resources(self.app)
        self.prompt_registrar.register(self.app)
        self.tool_registrar.register_all_tools(self.app)

    def initialize(self) -> bool:
        """
        Load the template index before serving.

        Runs in its own event loop, before FastMCP starts its own. A failure
        (invalid record, provider error, unreadable corpus) is logged and the
        index stays UNINITIALIZED, so the first search retries.

        Returns:
            True if the index is ready
        """
        try:
            asyncio.run(self.search_service.initialize())
        except (TemplateError, OSError) as e:
            logger.error("Template index initialization failed: %s", e)
            return False
        return True

    def run(self):
        """
        Start the MCP server with graceful shutdown support.
        """
        def signal_handler(signum, frame):
            """Handle shutdown signals gracefully"""
            sig_name = signal.Signals(signum).name
            logger.warning("Received %s, initiating graceful shutdown...", sig_name)
            sys.exit(0)

        # Register signal handlers (SIGINT = Ctrl+C, SIGTERM = kill command)
        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        try:
            logger.info("Starting vibe-templates MCP server (templates: %s)...",
                        self.config["templates_dir"])

            if self.config.get("eager_init", True):
                self.initialize()
            else:
                logger.info("Template index will load on the first search")

            self.register()

            # Run the FastMCP app (blocking)
            self.app.run()

        except KeyboardInterrupt:
            logger.warning("Keyboard interrupt received, shutting down...")

        except Exception as e:
            logger.error("Unexpected error during server operation: %s", e)
            raise

        finally:
            logger.info("Server shutdown complete")


def create_server(config: Optional[Dict[str, Any]] = None) -> VibeTemplatesServer:
    """Factory function to create server instance"""
    return VibeTemplatesServer(config)


def _print_setup_instructions():
    """Print setup instructions when run directly from terminal."""
    print("""
Vibe Templates - code template MCP server

  Install:
    pip install vibe-templates

  Add MCP to Claude Code:
    claude mcp add vibe-templates -e VIBE_TEMPLATES_DIR=/path/to/templates -- vibe-templates-mcp --stdio

  Optional environment:
    OPENAI_API_KEY / VOYAGE_API_KEY     enable embedding search
    VIBE_TEMPLATES_EMBEDDING_PROVIDER   auto, openai, voyage, local, hash, none
    VIBE_TEMPLATES_LOG_LEVEL            debug, info, warning, error

  Config locations:
    macOS:   ~/Library/Application Support/Claude/claude_desktop_config.json
    Windows: %APPDATA%\\Claude\\claude_desktop_config.json
    Linux:   ~/.config/Claude/claude_desktop_config.json
""")


def main():
    """Main entry point.

    When run from a terminal (TTY), prints setup instructions.
    When run with --stdio (by an MCP host), starts the MCP server.
    """
    if "--stdio" in sys.argv:
        server = create_server()
        server.run()
    else:
        _print_setup_instructions()


if __name__ == "__main__":
    main()
