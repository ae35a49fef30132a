"""Utilities for loading the subject-specific CBA prompt templates."""
from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

from pydantic import ValidationError

from heuristics import GRADE_LEVELS, HEURISTICS
from schemas import Template

_TEMPLATE_DIR = Path(__file__).resolve().parent


class TemplateConfigError(ValueError):
    """Raised when a subject template file contains invalid data."""


@dataclass(frozen=True)
class TemplateSet:
    """Registered subject templates plus the generic fallback."""

    by_subject: Mapping[str, Template]
    fallback: Template

    def get(self, subject: Optional[str]) -> Optional[Template]:
        if not subject:
            return None
        return self.by_subject.get(str(subject).strip().lower())


def _load_template(path: Path) -> Template:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise TemplateConfigError(f"Template file {path.name} is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise TemplateConfigError(f"Template file {path.name} must contain a JSON object")

    required = {"subject", "question_types", "prompt_template", "competencies", "grade_levels"}
    missing = sorted(required - payload.keys())
    if missing:
        raise TemplateConfigError(f"Template file {path.name} missing keys: {', '.join(missing)}")

    body = payload["prompt_template"]
    if isinstance(body, list):
        body = "\n".join(str(line) for line in body)
    try:
        template = Template.model_validate({**payload, "prompt_template": body})
    except ValidationError as exc:
        raise TemplateConfigError(f"Template file {path.name} is invalid: {exc}") from exc

    if "{question}" not in template.prompt_template:
        raise TemplateConfigError(f"Template file {path.name} has no {{question}} placeholder")
    unknown = [level for level in template.grade_levels if level not in GRADE_LEVELS]
    if unknown:
        raise TemplateConfigError(
            f"Template file {path.name} lists unknown grade levels: {', '.join(unknown)}"
        )
    return template


def _iter_template_files(directory: Path) -> Iterable[Path]:
    for path in sorted(directory.glob("*.json")):
        if path.is_file():
            yield path


@lru_cache(maxsize=4)
def load_templates(directory: Path | None = None) -> TemplateSet:
    base_dir = Path(directory) if directory else _TEMPLATE_DIR
    templates: Dict[str, Template] = {}
    fallback: Optional[Template] = None
    for file_path in _iter_template_files(base_dir):
        template = _load_template(file_path)
        if template.is_fallback:
            if fallback is not None:
                raise TemplateConfigError(
                    f"More than one fallback template defined ({fallback.subject}, {template.subject})"
                )
            fallback = template
            continue
        if HEURISTICS.get_subject(template.subject) is None:
            raise TemplateConfigError(f"Template subject '{template.subject}' is not in the catalogue")
        key = template.subject.lower()
        if key in templates:
            raise TemplateConfigError(f"Duplicate subject template detected: {template.subject}")
        templates[key] = template
    if fallback is None:
        raise TemplateConfigError(f"No fallback template found in {base_dir}")
    return TemplateSet(by_subject=templates, fallback=fallback)


def get_template(subject: str | None) -> Optional[Template]:
    """Return the registered template for ``subject`` or ``None``."""

    return load_templates().get(subject)


def has_template(subject: str | None) -> bool:
    return get_template(subject) is not None


def fallback_template() -> Template:
    return load_templates().fallback


__all__ = [
    "TemplateConfigError",
    "TemplateSet",
    "load_templates",
    "get_template",
    "has_template",
    "fallback_template",
]
