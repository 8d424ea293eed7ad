"""
Template Validator

Authoring-time checks over the whole template corpus. Unlike
TemplateService.load_template, the validator reads metadata.json as written:
an id that does not match its directory is an error here, not something to
repair.
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from pydantic import ValidationError

from ..logging_config import configure_logger
from ..models import TemplateRecord
from .template_service import (
    FILES_DIRNAME,
    METADATA_FILENAME,
    README_FILENAME,
    SINGLE_TEMPLATE_FILENAME,
    TemplateService,
    format_validation_error,
)

logger = configure_logger(__name__)

# Stricter than the runtime ID rule: lowercase authoring convention
AUTHORING_ID_PATTERN = re.compile(r"^[a-z]+/[a-z]+/[a-z]+/[a-z0-9-]+$")


@dataclass
class ValidationReport:
    """
    Validation outcome for one template directory.

    ::: This is-in-layer Utility-Layer.
    ::: This is a value-object.
    """
    template_id: str
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "template_id": self.template_id,
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


class TemplateValidator:
    """
    Validates every template in the corpus.

    ::: This is-in-layer Service-Layer.
    ::: This is a validator.
    ::: This is stateless.
    """

    def __init__(self, template_service: TemplateService):
        self.template_service = template_service

    def validate_all(self) -> List[ValidationReport]:
        template_ids = self.template_service.get_all_template_ids()
        known_ids = set(template_ids)
        reports = [self.validate_template(template_id, known_ids) for template_id in template_ids]
        invalid = sum(1 for report in reports if not report.valid)
        logger.info("Validated %d templates: %d invalid", len(reports), invalid)
        return reports

    def validate_template(self, template_id: str, known_ids: Optional[Set[str]] = None) -> ValidationReport:
        """
        Validate a single template directory.

        Args:
            template_id: Directory-derived ID
            known_ids: All corpus IDs, for resolving relatedTemplates
        """
        report = ValidationReport(template_id=template_id)
        template_path = self.template_service.build_template_path(template_id)

        record = self._validate_metadata(template_path, template_id, report)
        has_code = self._check_code_present(template_path, report)

        if record is not None and has_code:
            self._check_declared_files(template_path, record, report)

        if not (template_path / README_FILENAME).is_file():
            report.warnings.append("README.md not found")

        if record is not None and record.related_templates and known_ids is not None:
            for related_id in record.related_templates:
                if related_id not in known_ids:
                    report.warnings.append(f"Related template not found: {related_id}")

        return report

    def _validate_metadata(
        self,
        template_path: Path,
        template_id: str,
        report: ValidationReport
    ) -> Optional[TemplateRecord]:
        metadata_path = template_path / METADATA_FILENAME
        try:
            with open(metadata_path, 'r', encoding='utf-8') as f:
                payload = json.load(f)
        except FileNotFoundError:
            report.errors.append("metadata.json not found")
            return None
        except json.JSONDecodeError as e:
            report.errors.append(f"metadata.json parse error: {e}")
            return None
        except UnicodeDecodeError as e:
            report.errors.append(f"metadata.json is not valid UTF-8: {e}")
            return None

        if not isinstance(payload, dict):
            report.errors.append("metadata.json is not a valid object")
            return None

        stored_id = payload.get("id")
        if isinstance(stored_id, str):
            if not AUTHORING_ID_PATTERN.match(stored_id):
                report.errors.append(
                    f'id "{stored_id}" doesn\'t match format: language/framework/category/name'
                )
            if stored_id != template_id:
                report.errors.append(
                    f'id "{stored_id}" doesn\'t match directory path "{template_id}"'
                )

        try:
            record = TemplateRecord.model_validate(payload)
        except ValidationError as e:
            report.errors.append(format_validation_error(e))
            return None

        if not record.files:
            report.errors.append("files must be a non-empty array")
        if not record.tags:
            report.errors.append("tags must be a non-empty array")

        return record

    @staticmethod
    def _check_code_present(template_path: Path, report: ValidationReport) -> bool:
        if (template_path / FILES_DIRNAME).is_dir() or (template_path / SINGLE_TEMPLATE_FILENAME).is_file():
            return True
        report.errors.append("No code files found (need files/ directory or template.ts)")
        return False

    @staticmethod
    def _check_declared_files(template_path: Path, record: TemplateRecord, report: ValidationReport) -> None:
        """Warn about required files whose name appears nowhere under files/."""
        files_dir = template_path / FILES_DIRNAME
        if not files_dir.is_dir():
            return

        actual_names = {p.name for p in files_dir.rglob("*") if p.is_file()}
        actual_stems = {name.split(".")[0] for name in actual_names}

        for declared in record.files:
            if not declared.is_required:
                continue
            filename = declared.path.rsplit("/", 1)[-1]
            if filename in actual_names or filename.split(".")[0] in actual_stems:
                continue
            report.warnings.append(f"Declared file may not exist: {declared.path}")
