"""
vibe-templates command line

    vibe-templates serve                  run the MCP server on stdio
    vibe-templates validate               check every template in the corpus
    vibe-templates generate-embeddings    rebuild templates/embeddings.json
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from .logging_config import (
    configure_logger,
    restore_stderr_logging,
    set_log_level,
    suppress_stderr_logging,
)
from .services import (
    ConfigLoader,
    TemplateService,
    TemplateValidator,
    TemplateVectorIndex,
    create_embedding_provider,
)
from .services.embedding_service import PROVIDER_NAMES
from .template_exceptions import TemplateError

logger = configure_logger(__name__)


def _build_config(args: argparse.Namespace) -> Dict[str, Any]:
    loader = ConfigLoader()
    loader.load(args.project)
    config = loader.get_template_config()
    if args.templates_dir is not None:
        config["templates_dir"] = args.templates_dir.expanduser().resolve()
    if getattr(args, "provider", None):
        config["embedding_provider"] = args.provider
    if args.verbose:
        config["log_level"] = "debug"
    set_log_level(str(config["log_level"]))
    return config


def cmd_serve(args: argparse.Namespace) -> int:
    from .mcp_server import VibeTemplatesServer

    server = VibeTemplatesServer(_build_config(args))
    server.run()
    return 0


def cmd_validate(args: argparse.Namespace, console: Console) -> int:
    config = _build_config(args)
    template_service = TemplateService(config["templates_dir"])
    validator = TemplateValidator(template_service)

    suppress_stderr_logging()
    try:
        reports = validator.validate_all()
    finally:
        restore_stderr_logging()

    if not reports:
        console.print(f"[yellow]No templates found in {config['templates_dir']}[/yellow]")
        return 1

    console.print(f"Found {len(reports)} templates\n")

    table = Table(title="Template validation")
    table.add_column("Template", style="cyan")
    table.add_column("Status")
    table.add_column("Details")

    for report in reports:
        status = "[green]valid[/green]" if report.valid else "[red]invalid[/red]"
        details: List[str] = [f"[red]error:[/red] {e}" for e in report.errors]
        details.extend(f"[yellow]warning:[/yellow] {w}" for w in report.warnings)
        table.add_row(report.template_id, status, "\n".join(details))

    console.print(table)

    valid_count = sum(1 for r in reports if r.valid)
    invalid_count = len(reports) - valid_count
    warning_count = sum(len(r.warnings) for r in reports)
    console.print(
        f"\nValid: [green]{valid_count}[/green]  "
        f"Invalid: [red]{invalid_count}[/red]  "
        f"Warnings: [yellow]{warning_count}[/yellow]"
    )

    if invalid_count:
        console.print("[red]Validation failed![/red]")
        return 1
    console.print("[green]All templates valid![/green]")
    return 0


def cmd_generate_embeddings(args: argparse.Namespace, console: Console) -> int:
    config = _build_config(args)
    template_service = TemplateService(config["templates_dir"])

    template_ids = template_service.get_all_template_ids()
    if not template_ids:
        console.print(f"[yellow]No templates found in {config['templates_dir']}[/yellow]")
        return 1
    console.print(f"Found {len(template_ids)} templates")

    provider = create_embedding_provider(config)
    if provider is None or not provider.is_available():
        console.print(
            "[red]No embedding provider available.[/red] "
            "Set OPENAI_API_KEY or VOYAGE_API_KEY, or pass --provider."
        )
        return 1

    index = TemplateVectorIndex(
        template_service,
        provider,
        cache_path=args.output,
        batch_size=int(config["embedding_batch_size"]),
    )

    with console.status(f"Generating embeddings with {provider.model_name}..."):
        output_path = asyncio.run(index.save_cache())

    console.print(f"[green]Saved embeddings to {output_path}[/green]")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vibe-templates",
        description="Code template MCP server and corpus tools",
    )
    parser.add_argument("--project", "-p", type=Path, default=None,
                        help="Project root holding vibe_templates.json (default: current directory)")
    parser.add_argument("--templates-dir", "-t", type=Path, default=None,
                        help="Template corpus directory (overrides config)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("serve", help="Run the MCP server on stdio")
    subparsers.add_parser("validate", help="Validate every template in the corpus")

    generate = subparsers.add_parser("generate-embeddings", help="Regenerate embeddings.json")
    generate.add_argument("--provider", choices=[p for p in PROVIDER_NAMES if p != "none"],
                          help="Embedding provider (overrides config)")
    generate.add_argument("--output", "-o", type=Path, default=None,
                          help="Output file (default: <templates-dir>/embeddings.json)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the vibe-templates command."""
    args = build_parser().parse_args(argv)
    console = Console()

    try:
        if args.command == "serve":
            return cmd_serve(args)
        if args.command == "validate":
            return cmd_validate(args, console)
        if args.command == "generate-embeddings":
            return cmd_generate_embeddings(args, console)
    except TemplateError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    return 2


if __name__ == "__main__":
    sys.exit(main())
