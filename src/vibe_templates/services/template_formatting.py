"""
Markdown rendering of templates for MCP resources and CLI output.
"""

import json
from collections import OrderedDict
from typing import Any, Dict, List, Sequence

from ..models import ResponseFormat, TemplateListItem


def file_extension(file_path: str, default: str = "ts") -> str:
    name = file_path.rsplit("/", 1)[-1]
    if "." not in name:
        return default
    return name.rsplit(".", 1)[-1] or default


def format_template_markdown(response: Dict[str, Any], response_format: ResponseFormat = "full") -> str:
    """
    Render a SearchService.get_template() response as markdown.

    Sections are skipped according to the format: code-only drops the
    installation, dependency, environment and usage sections; metadata-only
    drops the code files.
    """
    if response_format == "code-only":
        name = response["name"]
        description = ""
    else:
        name = response["metadata"]["name"]
        description = response["metadata"]["description"]

    sections: List[str] = [f"# {name}"]
    if description:
        sections.append(f"\n{description}\n")
    else:
        sections.append("")

    if response_format != "code-only":
        metadata = response["metadata"]

        sections.append("## Installation\n")
        sections.append("```bash")
        sections.append(response["installation"])
        sections.append("```\n")

        if metadata.get("dependencies"):
            sections.append("## Dependencies\n")
            sections.append("```json")
            sections.append(json.dumps(metadata["dependencies"], indent=2))
            sections.append("```\n")

        env_variables = response.get("envVariables") or []
        if env_variables:
            sections.append("## Environment Variables\n")
            for env in env_variables:
                required = "(required)" if env.get("required") else "(optional)"
                sections.append(f"- `{env['name']}` {required}: {env.get('description', '')}")
                if env.get("example"):
                    sections.append(f"  - Example: `{env['example']}`")
            sections.append("")

    code = response.get("code")
    if response_format != "metadata-only" and code:
        sections.append("## Code Files\n")
        for file_path, content in code.items():
            sections.append(f"### {file_path}\n")
            sections.append("```" + file_extension(file_path))
            sections.append(content)
            sections.append("```\n")

    if response_format != "code-only":
        usage = response["usage"]
        sections.append("## Configuration\n")
        sections.append(usage["configuration"])
        sections.append("")

        if usage.get("example"):
            sections.append("## Usage Example\n")
            sections.append("```" + response["metadata"].get("language", "typescript"))
            sections.append(usage["example"])
            sections.append("```\n")

        related = response.get("relatedTemplates") or []
        if related:
            sections.append("## Related Templates\n")
            for related_id in related:
                sections.append(f"- {related_id}")

    return "\n".join(sections)


def format_template_list(templates: Sequence[TemplateListItem]) -> str:
    """Render template summaries as a markdown catalog grouped by category."""
    if not templates:
        return "No templates found matching the specified filters."

    sections: List[str] = [f"# Available Templates ({len(templates)})\n"]

    by_category: "OrderedDict[str, List[TemplateListItem]]" = OrderedDict()
    for template in templates:
        by_category.setdefault(template.category, []).append(template)

    for category, category_templates in by_category.items():
        sections.append(f"## {category.capitalize()}\n")
        for template in category_templates:
            sections.append(f"### {template.name}")
            sections.append(f"- **ID**: `{template.id}`")
            sections.append(f"- **Language**: {template.language}")
            sections.append(f"- **Framework**: {template.framework}")
            sections.append(f"- **Description**: {template.description}")
            sections.append(f"- **Tags**: {', '.join(template.tags)}")
            sections.append("")

    return "\n".join(sections)
