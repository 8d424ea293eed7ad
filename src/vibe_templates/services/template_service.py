"""
Template Service

Loads template metadata and code from the on-disk corpus:

    {root}/{language}/{framework}/{category}/{name}/
        metadata.json
        files/...          (multi-file code body), or
        template.ts        (single-file code body)
        README.md          (optional)

Template IDs double as relative paths, so every ID is validated segment by
segment before it is joined onto the corpus root.
"""

import json
import re
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from ..logging_config import configure_logger
from ..models import (
    ParsedTemplateId,
    TemplateFilters,
    TemplateListItem,
    TemplateRecord,
    TemplateWithCode,
)
from ..template_exceptions import InvalidTemplateIdError, InvalidTemplateRecordError

logger = configure_logger(__name__)

METADATA_FILENAME = "metadata.json"
FILES_DIRNAME = "files"
SINGLE_TEMPLATE_FILENAME = "template.ts"
README_FILENAME = "README.md"

_SEGMENT_NAMES = ("language", "framework", "category", "name")
_SAFE_SEGMENT = re.compile(r"[a-zA-Z0-9_-]+")


def is_valid_path_component(component: str) -> bool:
    """Only alphanumerics, hyphens and underscores; never empty, '.' or '..'."""
    return bool(component) and _SAFE_SEGMENT.fullmatch(component) is not None


def format_validation_error(error: ValidationError) -> str:
    """Flatten a pydantic error into 'field: message; field: message'."""
    parts = []
    for err in error.errors():
        location = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        parts.append(f"{location}: {err.get('msg')}")
    return "; ".join(parts)


class TemplateService:
    """
    Service for loading and managing code templates.

    ::: This is-in-layer Service-Layer.
    ::: This is a repository.
    ::: This holds-state template-record-cache.

    Owns the process-lifetime record cache keyed by template ID. Code
    bodies are never cached; each fetch re-reads the files from disk.
    """

    def __init__(self, templates_dir: Union[str, Path]):
        """
        Args:
            templates_dir: Root directory of the template corpus
        """
        self.templates_dir = Path(templates_dir)
        self._template_cache: Dict[str, TemplateRecord] = {}

    # ------------------------------------------------------------------
    # Identifiers
    # ------------------------------------------------------------------

    def parse_template_id(self, template_id: str) -> ParsedTemplateId:
        """
        Parse a template ID into its components.

        Args:
            template_id: e.g. "typescript/nextjs/auth/nextauth-google"

        Returns:
            ParsedTemplateId

        Raises:
            InvalidTemplateIdError: wrong segment count or unsafe characters
        """
        if not isinstance(template_id, str):
            raise InvalidTemplateIdError(template_id, "Template ID must be a string")

        parts = template_id.split("/")
        if len(parts) != 4:
            raise InvalidTemplateIdError(
                template_id, "Template ID must have format: language/framework/category/name"
            )

        for segment_name, segment in zip(_SEGMENT_NAMES, parts):
            if not is_valid_path_component(segment):
                raise InvalidTemplateIdError(template_id, f"Invalid characters in {segment_name}")

        return ParsedTemplateId(*parts)

    def build_template_path(self, template_id: str) -> Path:
        """
        Build the filesystem path for a template. Does not check existence.

        Raises:
            InvalidTemplateIdError: if the ID is malformed
        """
        parsed = self.parse_template_id(template_id)
        return self.templates_dir.joinpath(*parsed)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def _read_metadata_file(self, metadata_path: Path) -> str:
        with open(metadata_path, 'r', encoding='utf-8') as f:
            return f.read()

    def load_template(self, template_id: str) -> Optional[TemplateRecord]:
        """
        Load a template's metadata by ID.

        Returns:
            The record, or None if no metadata.json exists for the ID

        Raises:
            InvalidTemplateIdError: malformed ID
            InvalidTemplateRecordError: metadata.json is not a valid record
            OSError: any filesystem failure other than "not found"
        """
        cached = self._template_cache.get(template_id)
        if cached is not None:
            return cached

        metadata_path = self.build_template_path(template_id) / METADATA_FILENAME

        try:
            content = self._read_metadata_file(metadata_path)
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            raise InvalidTemplateRecordError(template_id, f"metadata.json is not valid UTF-8: {e}") from e
        except OSError as e:
            logger.error("Error loading template %s: %s", template_id, e)
            raise

        try:
            payload = json.loads(content)
        except json.JSONDecodeError as e:
            raise InvalidTemplateRecordError(template_id, f"metadata.json parse error: {e}") from e

        if not isinstance(payload, dict):
            raise InvalidTemplateRecordError(template_id, "metadata.json is not a JSON object")

        payload = self._normalize_record_id(payload, template_id)

        try:
            record = TemplateRecord.model_validate(payload)
        except ValidationError as e:
            raise InvalidTemplateRecordError(template_id, format_validation_error(e)) from e

        self._template_cache[template_id] = record
        return record

    @staticmethod
    def _normalize_record_id(payload: Dict, template_id: str) -> Dict:
        """The lookup key wins over the stored id; the mismatch is logged."""
        stored_id = payload.get("id")
        if stored_id == template_id:
            return payload
        logger.warning(
            "Template ID mismatch: expected %s, metadata.json has %r", template_id, stored_id
        )
        normalized = dict(payload)
        normalized["id"] = template_id
        return normalized

    # ------------------------------------------------------------------
    # Code
    # ------------------------------------------------------------------

    def list_code_files(self, template_id: str) -> List[str]:
        """
        Relative paths of a template's code files, without reading them.

        Posix paths relative to files/ in name order, else ["template.ts"],
        else [].
        """
        template_path = self.build_template_path(template_id)
        files_dir = template_path / FILES_DIRNAME

        if files_dir.is_dir():
            return [
                file_path.relative_to(files_dir).as_posix()
                for file_path in self._read_dir_recursive(files_dir)
            ]
        if (template_path / SINGLE_TEMPLATE_FILENAME).is_file():
            return [SINGLE_TEMPLATE_FILENAME]
        return []

    def get_template_code(self, template_id: str) -> Dict[str, str]:
        """
        Get template code files.

        Reads every file under files/ (keys are posix paths relative to
        files/), else template.ts, else returns an empty mapping. Bytes that
        are not valid UTF-8 become U+FFFD, so a binary asset such as a logo
        never makes a template unreadable.
        """
        template_path = self.build_template_path(template_id)
        files_dir = template_path / FILES_DIRNAME
        base_dir = files_dir if files_dir.is_dir() else template_path

        return {
            relative_path: (base_dir / relative_path).read_text(encoding='utf-8', errors='replace')
            for relative_path in self.list_code_files(template_id)
        }

    def get_template_with_code(self, template_id: str) -> Optional[TemplateWithCode]:
        """Get a template with its code, or None if it does not exist."""
        record = self.load_template(template_id)
        if record is None:
            return None

        code = self.get_template_code(template_id)
        return TemplateWithCode.model_validate({**record.model_dump(), "code": code})

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def get_all_template_ids(self) -> List[str]:
        """
        Get all template IDs by walking language/framework/category/name.

        Only directories holding a metadata.json are templates; directories
        whose names can never form a valid ID are skipped.
        """
        ids: List[str] = []

        if not self.templates_dir.is_dir():
            logger.warning("Templates directory not found: %s", self.templates_dir)
            return ids

        for language_dir in self._list_subdirs(self.templates_dir):
            for framework_dir in self._list_subdirs(language_dir):
                for category_dir in self._list_subdirs(framework_dir):
                    for template_dir in self._list_subdirs(category_dir):
                        if (template_dir / METADATA_FILENAME).is_file():
                            ids.append("/".join((
                                language_dir.name,
                                framework_dir.name,
                                category_dir.name,
                                template_dir.name,
                            )))

        return ids

    def list_templates(self, filters: Optional[TemplateFilters] = None) -> List[TemplateRecord]:
        """
        List all templates with optional filtering.

        Filters compare against the loaded record, not the path segments.
        """
        templates: List[TemplateRecord] = []

        for template_id in self.get_all_template_ids():
            record = self.load_template(template_id)
            if record is None:
                continue
            if filters is not None and not filters.matches(record):
                continue
            templates.append(record)

        return templates

    def list_template_items(self, filters: Optional[TemplateFilters] = None) -> List[TemplateListItem]:
        """List all templates as summary items."""
        return [record.to_list_item() for record in self.list_templates(filters)]

    def clear_cache(self) -> None:
        """Clear the template record cache."""
        self._template_cache.clear()

    @property
    def cached_count(self) -> int:
        return len(self._template_cache)

    # ------------------------------------------------------------------
    # Filesystem helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _list_subdirs(directory: Path) -> List[Path]:
        return [
            entry for entry in sorted(directory.iterdir(), key=lambda p: p.name)
            if entry.is_dir() and is_valid_path_component(entry.name)
        ]

    def _read_dir_recursive(self, directory: Path) -> List[Path]:
        """Recursively collect all files in a directory, in name order."""
        files: List[Path] = []
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            if entry.is_dir():
                files.extend(self._read_dir_recursive(entry))
            else:
                files.append(entry)
        return files
