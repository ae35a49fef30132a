"""Coerce raw generation output into an Introduction / Elaboration / Conclusion answer.

``ResponseFormatter.format`` accepts whatever the generation service returned
(plain text, a partially structured mapping, or some other JSON object) and
always produces a :class:`~schemas.StructuredResponse` whose three sections
are at least ``min_section_length`` characters long.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel

from heuristics import HEURISTICS, SECTION_NAMES, HeuristicsRegistry
from schemas import GenerationResult, ResponseContext, StructuredResponse

logger = logging.getLogger(__name__)

Sections = Dict[str, str]

_SECTION_ALIASES: Dict[str, Sequence[str]] = {
    "introduction": ("introduction", "intro", "overview"),
    "elaboration": ("elaboration", "explanation", "details"),
    "conclusion": ("conclusion", "summary", "application"),
}
_MAX_UNWRAP_DEPTH = 5
_HEADER_MAX_WORDS = 5

_MARKER = re.compile(
    r"^[ \t]*(?:#+[ \t]*)?(?:\*\*)?[ \t]*\d+\.[ \t]*(?:\*\*)?[ \t]*"
    r"(introduction|elaboration|conclusion)"
    r"[ \t]*(?:\*\*)?[ \t]*:?[ \t]*(?:\*\*)?",
    re.IGNORECASE | re.MULTILINE,
)
# splits after terminal punctuation followed by whitespace, so "3.14" stays whole
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")
_HEADER_DECORATION = re.compile(r"^[\s#*_>\-]*(?:\d+[.)]\s*)?|[\s#*_]+$")


@dataclass(frozen=True)
class TextPayload:
    text: str


@dataclass(frozen=True)
class PartialStructure:
    sections: Sections
    competencies: Optional[List[str]] = None
    references: Optional[List[str]] = None


@dataclass(frozen=True)
class OpaquePayload:
    obj: Mapping[str, Any] = field(default_factory=dict)


RawPayload = Union[TextPayload, PartialStructure, OpaquePayload]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return " ".join(_as_text(item) for item in value if item is not None)
    return str(value)


def _as_list(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple, set)):
        return [str(item) for item in value if item is not None]
    return None


def _structure_from_mapping(data: Mapping[str, Any]) -> Optional[PartialStructure]:
    sections: Sections = {}
    for name, aliases in _SECTION_ALIASES.items():
        for alias in aliases:
            text = _as_text(data.get(alias)).strip()
            if text:
                sections[name] = text
                break
    if not sections:
        return None
    competencies = _as_list(data.get("competencies_addressed"))
    if competencies is None:
        competencies = _as_list(data.get("competencies"))
    return PartialStructure(sections, competencies, _as_list(data.get("references")))


def classify_payload(raw: Any) -> RawPayload:
    """Resolve a raw generation result into one of the tagged payload variants."""

    if isinstance(raw, GenerationResult):
        return TextPayload(raw.text)
    if isinstance(raw, StructuredResponse):
        return PartialStructure(
            {name: getattr(raw, name) for name in SECTION_NAMES},
            list(raw.competencies_addressed),
            list(raw.references),
        )
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    if isinstance(raw, Mapping):
        return _structure_from_mapping(raw) or OpaquePayload(raw)
    if raw is None:
        return TextPayload("")
    if isinstance(raw, (bytes, bytearray)):
        return TextPayload(bytes(raw).decode("utf-8", errors="replace"))
    if isinstance(raw, str):
        return TextPayload(raw)
    return TextPayload(_as_text(raw))


class ResponseFormatter:
    """Turn generated text into a CBA-compliant three-part answer."""

    def __init__(self, heuristics: HeuristicsRegistry = HEURISTICS) -> None:
        self.heuristics = heuristics
        self.parsers: List[Callable[[RawPayload], Optional[Sections]]] = [
            self._already_structured,
            self._marker_sections,
            self._keyword_sections,
            self._proportional_sections,
        ]

    @property
    def rules(self):
        return self.heuristics.response_format

    # ------------------------------------------------------------------
    def format(self, raw: Any, context: Any = None) -> StructuredResponse:
        try:
            ctx = ResponseContext.coerce(context)
        except (TypeError, ValueError):
            logger.warning("Ignoring unusable response context of type %s", type(context).__name__)
            ctx = ResponseContext()

        payload = self._unwrap(classify_payload(raw))
        sections: Sections = {}
        for parser in self.parsers:
            parsed = parser(payload)
            if parsed is not None:
                sections = parsed
                logger.debug("Response sections resolved by %s", parser.__name__)
                break

        competencies: Optional[List[str]] = None
        references: Optional[List[str]] = None
        if isinstance(payload, PartialStructure):
            competencies, references = payload.competencies, payload.references
        return self._assemble(sections, ctx, competencies, references)

    def _unwrap(self, payload: RawPayload) -> RawPayload:
        depth = 0
        while isinstance(payload, OpaquePayload):
            if depth >= _MAX_UNWRAP_DEPTH:
                return TextPayload("")
            content: Any = None
            for name in self.rules.content_fields:
                candidate = payload.obj.get(name)
                if candidate is not None and candidate != "":
                    content = candidate
                    break
            payload = classify_payload(content)
            depth += 1
        return payload

    # ------------------------------------------------------------------
    # parser chain
    # ------------------------------------------------------------------
    def _already_structured(self, payload: RawPayload) -> Optional[Sections]:
        """Structured payloads are used as-is; missing sections are filled in later."""

        if isinstance(payload, PartialStructure):
            return dict(payload.sections)
        return None

    def _marker_sections(self, payload: RawPayload) -> Optional[Sections]:
        if not isinstance(payload, TextPayload):
            return None
        text = payload.text
        matches = list(_MARKER.finditer(text))
        if not matches:
            return None

        sections: Sections = {}
        for index, match in enumerate(matches):
            end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
            body = text[match.end():end].strip()
            name = match.group(1).lower()
            sections[name] = f"{sections[name]} {body}".strip() if name in sections else body
        if all(sections.get(name) for name in SECTION_NAMES):
            return sections
        return None

    def _header_section(self, line: str) -> tuple[Optional[str], str]:
        """Return the section a header-like line switches to and any text after its colon."""

        label, _, remainder = line.partition(":")
        label = _HEADER_DECORATION.sub("", label).lower()
        if not label or len(label.split()) > _HEADER_MAX_WORDS:
            return None, ""
        for name in SECTION_NAMES:
            if any(word in label for word in self.rules.section_headers[name]):
                return name, remainder.strip().strip("*").strip()
        return None, ""

    def _keyword_sections(self, payload: RawPayload) -> Optional[Sections]:
        if not isinstance(payload, TextPayload):
            return None
        buckets: Dict[str, List[str]] = {name: [] for name in SECTION_NAMES}
        active = "elaboration"
        for raw_line in payload.text.splitlines():
            line = raw_line.strip()
            if not line:
                continue
            section, remainder = self._header_section(line)
            if section is None:
                buckets[active].append(line)
                continue
            active = section
            if remainder:
                buckets[active].append(remainder)

        if all(buckets[name] for name in SECTION_NAMES):
            return {name: " ".join(lines) for name, lines in buckets.items()}
        return None

    def _proportional_sections(self, payload: RawPayload) -> Optional[Sections]:
        text = payload.text if isinstance(payload, TextPayload) else ""
        sentences = [part.strip() for part in _SENTENCE_BREAK.split(text) if part.strip()]
        count = len(sentences)
        edge = min(self.rules.split_cap, math.ceil(count * self.rules.split_ratio))
        if count < 2 * edge + 1:
            return {"introduction": "", "elaboration": text.strip(), "conclusion": ""}
        return {
            "introduction": " ".join(sentences[:edge]),
            "elaboration": " ".join(sentences[edge:count - edge]),
            "conclusion": " ".join(sentences[count - edge:]),
        }

    # ------------------------------------------------------------------
    # section validation
    # ------------------------------------------------------------------
    def _subject_label(self, ctx: ResponseContext) -> str:
        return ctx.subject or self.rules.default_subject

    def ensure_section(self, content: Optional[str], name: str, ctx: ResponseContext) -> str:
        """Return ``content`` trimmed, topped up with the default sentence when too short."""

        text = (content or "").strip()
        if len(text) >= self.rules.min_section_length:
            return text
        default = self.rules.default_sections[name].replace("{subject}", self._subject_label(ctx))
        return f"{text} {default}" if text else default

    def _with_cba_introduction(self, introduction: str, ctx: ResponseContext) -> str:
        if "competenc" in introduction.lower():
            return introduction
        template = (
            self.rules.prefix_with_competencies if ctx.competencies else self.rules.prefix_without_competencies
        )
        return template.replace("{subject}", self._subject_label(ctx)) + introduction

    def _with_cba_conclusion(self, conclusion: str, ctx: ResponseContext) -> str:
        if "appl" in conclusion.lower():
            return conclusion
        return f"{conclusion} {self.rules.application_phrase(ctx.subject)}"

    def _assemble(
        self,
        sections: Sections,
        ctx: ResponseContext,
        competencies: Optional[List[str]],
        references: Optional[List[str]],
    ) -> StructuredResponse:
        introduction = self.ensure_section(sections.get("introduction"), "introduction", ctx)
        elaboration = self.ensure_section(sections.get("elaboration"), "elaboration", ctx)
        conclusion = self.ensure_section(sections.get("conclusion"), "conclusion", ctx)
        return StructuredResponse(
            introduction=self._with_cba_introduction(introduction, ctx),
            elaboration=elaboration,
            conclusion=self._with_cba_conclusion(conclusion, ctx),
            competencies_addressed=competencies if competencies else list(ctx.competencies),
            references=references or [],
        )
