"""Heuristic configuration loader.

Keyword tables, thresholds and phrase maps used by the question analyzer,
template selector, response formatter and competency checker live in JSON
files under ``data/``.  They are loaded once, validated, and exposed through
the :data:`HEURISTICS` registry.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

QUESTION_TYPES: Tuple[str, ...] = (
    "factual",
    "analytical",
    "practical",
    "application",
    "evaluation",
    "synthesis",
)
COMPLEXITY_LEVELS: Tuple[str, ...] = ("low", "medium", "high")
SECTION_NAMES: Tuple[str, ...] = ("introduction", "elaboration", "conclusion")
GRADE_LEVELS: Tuple[str, ...] = tuple(f"P{n}" for n in range(1, 8)) + tuple(
    f"S{n}" for n in range(1, 7)
)


class HeuristicsConfigError(ValueError):
    """Raised when a heuristic JSON file contains invalid data."""


@dataclass(frozen=True)
class SubjectProfile:
    """Catalogue entry for one curriculum subject."""

    name: str
    category: str
    difficulty: Optional[str]
    education_levels: Optional[Tuple[str, ...]]
    keywords: Tuple[str, ...]

    def hits(self, lowered_text: str) -> int:
        """Return how many of the subject keywords occur in ``lowered_text``."""

        return sum(1 for keyword in self.keywords if keyword in lowered_text)


@dataclass(frozen=True)
class GradeRedFlag:
    """Topic that is out of place for a subject at certain grade levels."""

    subjects: Tuple[str, ...]
    terms: Tuple[str, ...]
    warning: str
    suggestion: str
    grade_prefix: Optional[str] = None
    grades: Tuple[str, ...] = ()

    def applies(self, subject: str, grade_level: str, lowered_question: str) -> bool:
        if subject not in self.subjects:
            return False
        if self.grade_prefix and not grade_level.startswith(self.grade_prefix):
            return False
        if self.grades and grade_level not in self.grades:
            return False
        return any(term in lowered_question for term in self.terms)


@dataclass(frozen=True)
class AnalysisRules:
    default_question_type: str
    type_indicators: Dict[str, Tuple[str, ...]]
    competency_type_keywords: Dict[str, Tuple[str, ...]]
    type_weights: Dict[str, Tuple[str, ...]]
    default_grade_level: str
    grade_indicators: Dict[str, Tuple[str, ...]]
    stop_words: frozenset
    min_keyword_length: int
    max_keywords: int
    max_competencies: int
    word_threshold: int
    sentence_threshold: int
    char_threshold: int
    analytical_verbs: Tuple[str, ...]
    analytical_bonus: int
    comparative_verbs: Tuple[str, ...]
    comparative_bonus: int
    high_threshold: int
    medium_threshold: int
    confidence_base: float
    keyword_minimum: int
    keyword_bonus: float
    subject_hit_weight: float
    subject_hit_cap: float
    cue_words: Tuple[str, ...]
    cue_bonus: float
    grade_expectations: Dict[str, str]
    default_grade_expectation: str
    grade_red_flags: Tuple[GradeRedFlag, ...]


@dataclass(frozen=True)
class PromptAdjustments:
    question_type: Dict[str, str]
    grade_level: Dict[str, str]
    complexity: Dict[str, str]


@dataclass(frozen=True)
class ResponseFormatRules:
    min_section_length: int
    split_ratio: float
    split_cap: int
    section_headers: Dict[str, Tuple[str, ...]]
    content_fields: Tuple[str, ...]
    default_subject: str
    default_sections: Dict[str, str]
    prefix_with_competencies: str
    prefix_without_competencies: str
    application_phrases: Dict[str, str]
    default_application_phrase: str

    def application_phrase(self, subject: Optional[str]) -> str:
        return self.application_phrases.get(subject or "", self.default_application_phrase)


@dataclass(frozen=True)
class CompetencyRules:
    keyword_weight: float
    keyword_cap: float
    application_weight: float
    skill_weight: float
    real_world_weight: float
    memorization_penalty: float
    missing_threshold: float
    valid_overall: float
    valid_emphasis: float
    subject_suggestion_emphasis: float
    max_elaboration_length: int
    competency_keywords: Dict[str, Tuple[str, ...]]
    application_indicators: Tuple[str, ...]
    skill_indicators: Dict[str, Tuple[str, ...]]
    real_world_indicators: Tuple[str, ...]
    memorization_indicators: Tuple[str, ...]
    application_cues: Tuple[str, ...]
    emphasis_conclusion_words: Tuple[str, ...]
    emphasis_conclusion_weight: float
    emphasis_example_weight: float
    emphasis_skill_words: Tuple[str, ...]
    emphasis_skill_weight: float
    emphasis_skill_cap: float
    missing_suggestion: str
    low_emphasis_suggestions: Tuple[str, ...]
    low_overall_suggestions: Tuple[str, ...]
    subject_suggestions: Dict[str, Tuple[str, ...]]
    default_subject_suggestions: Tuple[str, ...]
    conclusion_phrases: Dict[str, str]
    default_conclusion_phrase: str
    example_kinds: Tuple[Tuple[str, Tuple[str, ...]], ...]
    example_sentences: Dict[str, str]

    def conclusion_phrase(self, subject: Optional[str]) -> str:
        return self.conclusion_phrases.get(subject or "", self.default_conclusion_phrase)

    def example_kind(self, competency: str) -> Optional[str]:
        """Return the example kind recognised in ``competency`` if any."""

        lowered = competency.lower()
        for kind, stems in self.example_kinds:
            if any(stem in lowered for stem in stems):
                return kind
        return None


# ----------------------------------------------------------------------
# validation helpers
# ----------------------------------------------------------------------
def _load_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Heuristics file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)
    except json.JSONDecodeError as exc:
        raise HeuristicsConfigError(f"{path.name} is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise HeuristicsConfigError(f"{path.name} must contain a JSON object")
    return raw


def _field(raw: Mapping[str, Any], key: str, where: str) -> Any:
    if key not in raw:
        raise HeuristicsConfigError(f"{where} is missing '{key}'")
    return raw[key]


def _text(value: Any, where: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise HeuristicsConfigError(f"{where} must be a non-empty string")
    return value


def _strings(value: Any, where: str, *, allow_empty: bool = False, lower: bool = False) -> Tuple[str, ...]:
    if not isinstance(value, list):
        raise HeuristicsConfigError(f"{where} must be a JSON list")
    items: List[str] = []
    for idx, item in enumerate(value, start=1):
        text = _text(item, f"{where} item #{idx}")
        items.append(text.strip().lower() if lower else text)
    if not items and not allow_empty:
        raise HeuristicsConfigError(f"{where} may not be empty")
    return tuple(items)


def _number(value: Any, where: str, *, low: float = 0.0, high: Optional[float] = None) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise HeuristicsConfigError(f"{where} must be numeric")
    number = float(value)
    if number < low or (high is not None and number > high):
        bound = f"[{low}, {high}]" if high is not None else f">= {low}"
        raise HeuristicsConfigError(f"{where} must be within {bound}")
    return number


def _integer(value: Any, where: str, *, low: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise HeuristicsConfigError(f"{where} must be an integer")
    if value < low:
        raise HeuristicsConfigError(f"{where} must be >= {low}")
    return value


def _mapping(value: Any, where: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise HeuristicsConfigError(f"{where} must be a JSON object")
    return value


def _keyword_table(value: Any, where: str, keys: Optional[Iterable[str]] = None) -> Dict[str, Tuple[str, ...]]:
    table = _mapping(value, where)
    if keys is not None:
        expected = list(keys)
        missing = [key for key in expected if key not in table]
        if missing:
            raise HeuristicsConfigError(f"{where} is missing entries for: {', '.join(missing)}")
    return {str(key): _strings(words, f"{where}.{key}", lower=True) for key, words in table.items()}


def _text_table(value: Any, where: str, keys: Optional[Iterable[str]] = None) -> Dict[str, str]:
    table = _mapping(value, where)
    if keys is not None:
        missing = [key for key in keys if key not in table]
        if missing:
            raise HeuristicsConfigError(f"{where} is missing entries for: {', '.join(missing)}")
    return {str(key): _text(text, f"{where}.{key}") for key, text in table.items()}


# ----------------------------------------------------------------------
# per-file parsers
# ----------------------------------------------------------------------
def _parse_subjects(raw: Mapping[str, Any]) -> Tuple[List[SubjectProfile], str]:
    entries = _field(raw, "subjects", "subjects.json")
    if not isinstance(entries, list) or not entries:
        raise HeuristicsConfigError("subjects.json 'subjects' must be a non-empty list")

    subjects: List[SubjectProfile] = []
    seen: set[str] = set()
    for idx, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            raise HeuristicsConfigError(f"Subject #{idx} must be a JSON object")
        name = _text(entry.get("name"), f"Subject #{idx} name").strip()
        if name.lower() in seen:
            raise HeuristicsConfigError(f"Duplicate subject detected: {name}")
        seen.add(name.lower())

        levels_raw = entry.get("education_levels")
        levels: Optional[Tuple[str, ...]] = None
        if levels_raw is not None:
            levels = _strings(levels_raw, f"Subject {name} education_levels")
            unknown = [level for level in levels if level not in GRADE_LEVELS]
            if unknown:
                raise HeuristicsConfigError(
                    f"Subject {name} lists unknown grade levels: {', '.join(unknown)}"
                )
        difficulty = entry.get("difficulty")
        subjects.append(
            SubjectProfile(
                name=name,
                category=str(entry.get("category") or "other"),
                difficulty=str(difficulty) if difficulty else None,
                education_levels=levels,
                keywords=_strings(
                    entry.get("keywords", []),
                    f"Subject {name} keywords",
                    allow_empty=True,
                    lower=True,
                ),
            )
        )

    fallback = _text(_field(raw, "fallback_subject", "subjects.json"), "fallback_subject").strip()
    if fallback.lower() not in seen:
        raise HeuristicsConfigError(f"Fallback subject '{fallback}' is not in the catalogue")
    return subjects, fallback


def _parse_red_flags(value: Any) -> Tuple[GradeRedFlag, ...]:
    if not isinstance(value, list):
        raise HeuristicsConfigError("analysis.json grade_red_flags must be a list")
    flags: List[GradeRedFlag] = []
    for idx, entry in enumerate(value, start=1):
        where = f"grade_red_flags #{idx}"
        entry = _mapping(entry, where)
        prefix = entry.get("grade_prefix")
        flags.append(
            GradeRedFlag(
                subjects=_strings(_field(entry, "subjects", where), f"{where}.subjects"),
                terms=_strings(_field(entry, "terms", where), f"{where}.terms", lower=True),
                warning=_text(_field(entry, "warning", where), f"{where}.warning"),
                suggestion=_text(_field(entry, "suggestion", where), f"{where}.suggestion"),
                grade_prefix=str(prefix) if prefix else None,
                grades=_strings(entry.get("grades", []), f"{where}.grades", allow_empty=True),
            )
        )
    return tuple(flags)


def _parse_analysis(raw: Mapping[str, Any]) -> AnalysisRules:
    where = "analysis.json"
    default_type = _text(_field(raw, "default_question_type", where), "default_question_type")
    if default_type not in QUESTION_TYPES:
        raise HeuristicsConfigError(f"Unknown default question type: {default_type}")

    complexity = _mapping(_field(raw, "complexity", where), "complexity")
    confidence = _mapping(_field(raw, "confidence", where), "confidence")

    expectations = _text_table(_field(raw, "grade_expectations", where), "grade_expectations")
    for grade, level in expectations.items():
        if level not in COMPLEXITY_LEVELS:
            raise HeuristicsConfigError(f"grade_expectations.{grade} must be low, medium or high")
    default_expectation = _text(
        raw.get("default_grade_expectation", "medium"), "default_grade_expectation"
    )
    if default_expectation not in COMPLEXITY_LEVELS:
        raise HeuristicsConfigError("default_grade_expectation must be low, medium or high")

    grade_indicators = _keyword_table(_field(raw, "grade_indicators", where), "grade_indicators")
    default_grade = _text(_field(raw, "default_grade_level", where), "default_grade_level")
    if default_grade not in GRADE_LEVELS:
        raise HeuristicsConfigError(f"Unknown default grade level: {default_grade}")

    return AnalysisRules(
        default_question_type=default_type,
        type_indicators=_keyword_table(
            _field(raw, "type_indicators", where), "type_indicators", QUESTION_TYPES
        ),
        competency_type_keywords=_keyword_table(
            _field(raw, "competency_type_keywords", where),
            "competency_type_keywords",
            QUESTION_TYPES,
        ),
        type_weights=_keyword_table(_field(raw, "type_weights", where), "type_weights", QUESTION_TYPES),
        default_grade_level=default_grade,
        grade_indicators=grade_indicators,
        stop_words=frozenset(_strings(_field(raw, "stop_words", where), "stop_words", lower=True)),
        min_keyword_length=_integer(raw.get("min_keyword_length", 3), "min_keyword_length", low=1),
        max_keywords=_integer(raw.get("max_keywords", 10), "max_keywords", low=1),
        max_competencies=_integer(raw.get("max_competencies", 3), "max_competencies", low=1),
        word_threshold=_integer(_field(complexity, "word_threshold", "complexity"), "word_threshold"),
        sentence_threshold=_integer(
            _field(complexity, "sentence_threshold", "complexity"), "sentence_threshold"
        ),
        char_threshold=_integer(_field(complexity, "char_threshold", "complexity"), "char_threshold"),
        analytical_verbs=_strings(
            _field(complexity, "analytical_verbs", "complexity"), "analytical_verbs", lower=True
        ),
        analytical_bonus=_integer(
            _field(complexity, "analytical_bonus", "complexity"), "analytical_bonus"
        ),
        comparative_verbs=_strings(
            _field(complexity, "comparative_verbs", "complexity"), "comparative_verbs", lower=True
        ),
        comparative_bonus=_integer(
            _field(complexity, "comparative_bonus", "complexity"), "comparative_bonus"
        ),
        high_threshold=_integer(_field(complexity, "high_threshold", "complexity"), "high_threshold"),
        medium_threshold=_integer(
            _field(complexity, "medium_threshold", "complexity"), "medium_threshold"
        ),
        confidence_base=_number(_field(confidence, "base", "confidence"), "confidence.base", high=1.0),
        keyword_minimum=_integer(
            _field(confidence, "keyword_minimum", "confidence"), "confidence.keyword_minimum"
        ),
        keyword_bonus=_number(
            _field(confidence, "keyword_bonus", "confidence"), "confidence.keyword_bonus", high=1.0
        ),
        subject_hit_weight=_number(
            _field(confidence, "subject_hit_weight", "confidence"),
            "confidence.subject_hit_weight",
            high=1.0,
        ),
        subject_hit_cap=_number(
            _field(confidence, "subject_hit_cap", "confidence"), "confidence.subject_hit_cap", high=1.0
        ),
        cue_words=_strings(_field(confidence, "cue_words", "confidence"), "cue_words", lower=True),
        cue_bonus=_number(_field(confidence, "cue_bonus", "confidence"), "confidence.cue_bonus", high=1.0),
        grade_expectations=expectations,
        default_grade_expectation=default_expectation,
        grade_red_flags=_parse_red_flags(raw.get("grade_red_flags", [])),
    )


def _parse_prompt_adjustments(raw: Mapping[str, Any]) -> PromptAdjustments:
    where = "prompt_adjustments.json"
    return PromptAdjustments(
        question_type=_text_table(_field(raw, "question_type", where), "question_type", QUESTION_TYPES),
        grade_level=_text_table(_field(raw, "grade_level", where), "grade_level"),
        complexity=_text_table(_field(raw, "complexity", where), "complexity", COMPLEXITY_LEVELS),
    )


def _parse_response_format(raw: Mapping[str, Any]) -> ResponseFormatRules:
    where = "response_format.json"
    prefixes = _mapping(_field(raw, "introduction_prefix", where), "introduction_prefix")
    return ResponseFormatRules(
        min_section_length=_integer(
            _field(raw, "min_section_length", where), "min_section_length", low=1
        ),
        split_ratio=_number(_field(raw, "split_ratio", where), "split_ratio", high=0.5),
        split_cap=_integer(_field(raw, "split_cap", where), "split_cap", low=1),
        section_headers=_keyword_table(
            _field(raw, "section_headers", where), "section_headers", SECTION_NAMES
        ),
        content_fields=_strings(_field(raw, "content_fields", where), "content_fields"),
        default_subject=_text(_field(raw, "default_subject", where), "default_subject"),
        default_sections=_text_table(
            _field(raw, "default_sections", where), "default_sections", SECTION_NAMES
        ),
        prefix_with_competencies=_text(
            _field(prefixes, "with_competencies", "introduction_prefix"),
            "introduction_prefix.with_competencies",
        ),
        prefix_without_competencies=_text(
            _field(prefixes, "without_competencies", "introduction_prefix"),
            "introduction_prefix.without_competencies",
        ),
        application_phrases=_text_table(
            _field(raw, "application_phrases", where), "application_phrases"
        ),
        default_application_phrase=_text(
            _field(raw, "default_application_phrase", where), "default_application_phrase"
        ),
    )


def _parse_competency(raw: Mapping[str, Any]) -> CompetencyRules:
    where = "competency.json"
    weights = _mapping(_field(raw, "weights", where), "weights")
    thresholds = _mapping(_field(raw, "thresholds", where), "thresholds")
    emphasis = _mapping(_field(raw, "emphasis", where), "emphasis")
    suggestions = _mapping(_field(raw, "suggestions", where), "suggestions")

    def weight(table: Mapping[str, Any], key: str, label: str) -> float:
        return _number(_field(table, key, label), f"{label}.{key}", high=1.0)

    subject_suggestions: Dict[str, Tuple[str, ...]] = {}
    groups = _field(raw, "subject_suggestions", where)
    if not isinstance(groups, list):
        raise HeuristicsConfigError("subject_suggestions must be a list")
    for idx, group in enumerate(groups, start=1):
        label = f"subject_suggestions #{idx}"
        group = _mapping(group, label)
        texts = _strings(_field(group, "suggestions", label), f"{label}.suggestions")
        for subject in _strings(_field(group, "subjects", label), f"{label}.subjects"):
            subject_suggestions[subject] = texts

    kinds_raw = _field(raw, "example_kinds", where)
    if not isinstance(kinds_raw, list) or not kinds_raw:
        raise HeuristicsConfigError("example_kinds must be a non-empty list")
    example_kinds: List[Tuple[str, Tuple[str, ...]]] = []
    for idx, entry in enumerate(kinds_raw, start=1):
        label = f"example_kinds #{idx}"
        entry = _mapping(entry, label)
        kind = _text(_field(entry, "kind", label), f"{label}.kind")
        example_kinds.append((kind, _strings(_field(entry, "stems", label), f"{label}.stems", lower=True)))
    sentences = _text_table(
        _field(raw, "example_sentences", where),
        "example_sentences",
        [kind for kind, _ in example_kinds],
    )

    return CompetencyRules(
        keyword_weight=weight(weights, "keyword", "weights"),
        keyword_cap=weight(weights, "keyword_cap", "weights"),
        application_weight=weight(weights, "application_example", "weights"),
        skill_weight=weight(weights, "skill_demonstration", "weights"),
        real_world_weight=weight(weights, "real_world", "weights"),
        memorization_penalty=weight(weights, "memorization_penalty", "weights"),
        missing_threshold=weight(thresholds, "missing", "thresholds"),
        valid_overall=weight(thresholds, "valid_overall", "thresholds"),
        valid_emphasis=weight(thresholds, "valid_emphasis", "thresholds"),
        subject_suggestion_emphasis=weight(thresholds, "subject_suggestion_emphasis", "thresholds"),
        max_elaboration_length=_integer(
            _field(thresholds, "max_elaboration_length", "thresholds"),
            "thresholds.max_elaboration_length",
            low=1,
        ),
        competency_keywords=_keyword_table(
            _field(raw, "competency_keywords", where), "competency_keywords"
        ),
        application_indicators=_strings(
            _field(raw, "application_indicators", where), "application_indicators", lower=True
        ),
        skill_indicators=_keyword_table(
            _field(raw, "skill_indicators", where), "skill_indicators", QUESTION_TYPES
        ),
        real_world_indicators=_strings(
            _field(raw, "real_world_indicators", where), "real_world_indicators", lower=True
        ),
        memorization_indicators=_strings(
            _field(raw, "memorization_indicators", where), "memorization_indicators", lower=True
        ),
        application_cues=_strings(_field(raw, "application_cues", where), "application_cues", lower=True),
        emphasis_conclusion_words=_strings(
            _field(emphasis, "conclusion_words", "emphasis"), "emphasis.conclusion_words", lower=True
        ),
        emphasis_conclusion_weight=weight(emphasis, "conclusion_weight", "emphasis"),
        emphasis_example_weight=weight(emphasis, "example_weight", "emphasis"),
        emphasis_skill_words=_strings(
            _field(emphasis, "skill_words", "emphasis"), "emphasis.skill_words", lower=True
        ),
        emphasis_skill_weight=weight(emphasis, "skill_weight", "emphasis"),
        emphasis_skill_cap=weight(emphasis, "skill_cap", "emphasis"),
        missing_suggestion=_text(
            _field(suggestions, "missing_competency", "suggestions"), "suggestions.missing_competency"
        ),
        low_emphasis_suggestions=_strings(
            _field(suggestions, "low_emphasis", "suggestions"), "suggestions.low_emphasis"
        ),
        low_overall_suggestions=_strings(
            _field(suggestions, "low_overall", "suggestions"), "suggestions.low_overall"
        ),
        subject_suggestions=subject_suggestions,
        default_subject_suggestions=_strings(
            _field(raw, "default_subject_suggestions", where), "default_subject_suggestions"
        ),
        conclusion_phrases=_text_table(_field(raw, "conclusion_phrases", where), "conclusion_phrases"),
        default_conclusion_phrase=_text(
            _field(raw, "default_conclusion_phrase", where), "default_conclusion_phrase"
        ),
        example_kinds=tuple(example_kinds),
        example_sentences=sentences,
    )


def _default_directory() -> Path:
    override = os.getenv("HEURISTICS_DIR")
    if override:
        return Path(override)
    return Path(__file__).resolve().parent / "data"


class HeuristicsRegistry:
    """Load and validate the heuristic tables from a ``data`` directory."""

    def __init__(self, directory: str | Path | None = None) -> None:
        self.directory = Path(directory) if directory is not None else _default_directory()
        self._subjects: List[SubjectProfile] = []
        self._by_name: Dict[str, SubjectProfile] = {}
        self.reload()

    # ------------------------------------------------------------------
    def reload(self) -> None:
        """Reload every heuristic table from disk and validate the structure."""

        subjects, fallback = _parse_subjects(_load_json(self.directory / "subjects.json"))
        analysis = _parse_analysis(_load_json(self.directory / "analysis.json"))
        adjustments = _parse_prompt_adjustments(_load_json(self.directory / "prompt_adjustments.json"))
        response_format = _parse_response_format(_load_json(self.directory / "response_format.json"))
        competency = _parse_competency(_load_json(self.directory / "competency.json"))

        self._subjects = subjects
        self._by_name = {subject.name.lower(): subject for subject in subjects}
        self.fallback_subject = self._by_name[fallback.lower()].name
        self.analysis = analysis
        self.prompt_adjustments = adjustments
        self.response_format = response_format
        self.competency = competency
        logger.debug("Loaded %d subjects from %s", len(subjects), self.directory)

    # ------------------------------------------------------------------
    @property
    def subjects(self) -> List[SubjectProfile]:
        """Return a shallow copy of the subject catalogue in declaration order."""

        return list(self._subjects)

    def subject_names(self) -> Tuple[str, ...]:
        return tuple(subject.name for subject in self._subjects)

    def get_subject(self, name: Optional[str]) -> Optional[SubjectProfile]:
        """Fetch a subject profile by case-insensitive name."""

        if not name:
            return None
        return self._by_name.get(str(name).strip().lower())

    def canonical_subject(self, name: Optional[str]) -> str:
        """Return the catalogue spelling of ``name`` or the fallback subject."""

        profile = self.get_subject(name)
        return profile.name if profile else self.fallback_subject

    def __iter__(self):
        return iter(self._subjects)


HEURISTICS = HeuristicsRegistry()
"""Singleton registry used throughout the application."""
