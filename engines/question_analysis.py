"""Keyword-driven classification of free-text student questions.

The analyzer never calls a model: subject, question type, grade level,
complexity and confidence are all derived from the keyword tables in
``data/analysis.json`` and ``data/subjects.json``.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from engines.caching import TTLCache
from heuristics import HEURISTICS, HeuristicsRegistry, SubjectProfile
from prompts.subject_templates import fallback_template, get_template
from schemas import Analysis, GradeLevelValidation

logger = logging.getLogger(__name__)

_NON_WORD = re.compile(r"[^\w\s]")
_SENTENCE_BREAK = re.compile(r"[.!?]+")


def _context_value(context: Any, key: str) -> Optional[str]:
    if context is None:
        return None
    if isinstance(context, Mapping):
        value = context.get(key)
    else:
        value = getattr(context, key, None)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _count_hits(lowered: str, phrases: Iterable[str]) -> int:
    return sum(1 for phrase in phrases if phrase in lowered)


def _best_label(scores: Iterable[Tuple[str, int]], default: Optional[str]) -> Optional[str]:
    """Return the first label with the strictly highest positive score."""

    best, best_score = default, 0
    for label, score in scores:
        if score > best_score:
            best, best_score = label, score
    return best


class QuestionAnalyzer:
    """Classify questions into an :class:`~schemas.Analysis`."""

    def __init__(self, cache: Optional[TTLCache] = None, heuristics: HeuristicsRegistry = HEURISTICS) -> None:
        self.cache = cache
        self.heuristics = heuristics

    @property
    def rules(self):
        return self.heuristics.analysis

    # ------------------------------------------------------------------
    def analyze(self, question: str, context: Any = None) -> Analysis:
        """Classify ``question``; ``context`` may carry ``subject`` and ``grade_level``."""

        subject_hint = _context_value(context, "subject")
        grade_hint = _context_value(context, "grade_level")

        if self.cache is not None:
            cached = self.cache.get_cached_analysis(question, subject=subject_hint, grade_level=grade_hint)
            if isinstance(cached, Analysis):
                if cached.question != question:
                    return cached.model_copy(update={"question": question})
                return cached

        subject = self.identify_subject(question, subject_hint)
        question_type = self.identify_question_type(question)
        keywords = self.extract_keywords(question)
        analysis = Analysis(
            question=question,
            subject=subject,
            question_type=question_type,
            grade_level=grade_hint.upper() if grade_hint else self.infer_grade_level(question),
            keywords=keywords,
            complexity=self.assess_complexity(question),
            competencies=self.identify_competencies(subject, question_type),
            confidence=self.calculate_confidence(question, subject, keywords),
        )
        logger.debug(
            "Analyzed question as %s/%s (%s, confidence %.2f)",
            analysis.subject,
            analysis.question_type,
            analysis.complexity,
            analysis.confidence,
        )

        if self.cache is not None:
            self.cache.cache_analysis(question, analysis, subject=subject_hint, grade_level=grade_hint)
        return analysis

    # ------------------------------------------------------------------
    def identify_subject(self, question: str, subject_hint: Optional[str] = None) -> str:
        lowered = question.lower()
        scores = ((profile.name, profile.hits(lowered)) for profile in self.heuristics.subjects)
        subject = _best_label(scores, None)
        if subject is not None:
            return subject
        if subject_hint:
            return self.heuristics.canonical_subject(subject_hint)
        return self.heuristics.fallback_subject

    def identify_question_type(self, question: str) -> str:
        lowered = question.lower()
        scores = ((kind, _count_hits(lowered, words)) for kind, words in self.rules.type_indicators.items())
        return _best_label(scores, self.rules.default_question_type)

    def infer_grade_level(self, question: str) -> str:
        lowered = question.lower()
        scores = ((grade, _count_hits(lowered, words)) for grade, words in self.rules.grade_indicators.items())
        return _best_label(scores, self.rules.default_grade_level)

    def identify_competencies(self, subject: str, question_type: str) -> List[str]:
        """Competencies of the subject template that suit ``question_type``, at most three."""

        template = get_template(subject) or fallback_template()
        type_keywords = self.rules.competency_type_keywords.get(question_type, ())
        matched = [
            competency
            for competency in template.competencies
            if any(keyword in competency.lower() for keyword in type_keywords)
        ]
        return matched[: self.rules.max_competencies]

    def extract_keywords(self, question: str) -> List[str]:
        rules = self.rules
        tokens = [
            token
            for token in _NON_WORD.sub(" ", question.lower()).split()
            if len(token) >= rules.min_keyword_length and token not in rules.stop_words
        ]
        # most_common keeps first-seen order among equal counts
        return [token for token, _ in Counter(tokens).most_common(rules.max_keywords)]

    def assess_complexity(self, question: str) -> str:
        rules = self.rules
        lowered = question.lower()
        words = len(question.split())
        sentences = len([part for part in _SENTENCE_BREAK.split(question) if part.strip()])

        score = 0
        if words > rules.word_threshold:
            score += 1
        if sentences > rules.sentence_threshold:
            score += 1
        if len(question) > rules.char_threshold:
            score += 1
        if any(verb in lowered for verb in rules.analytical_verbs):
            score += rules.analytical_bonus
        if any(verb in lowered for verb in rules.comparative_verbs):
            score += rules.comparative_bonus

        if score >= rules.high_threshold:
            return "high"
        if score >= rules.medium_threshold:
            return "medium"
        return "low"

    def calculate_confidence(self, question: str, subject: str, keywords: List[str]) -> float:
        rules = self.rules
        lowered = question.lower()
        confidence = rules.confidence_base
        if len(keywords) >= rules.keyword_minimum:
            confidence += rules.keyword_bonus

        profile = self.heuristics.get_subject(subject)
        hits = profile.hits(lowered) if profile else 0
        confidence += min(hits * rules.subject_hit_weight, rules.subject_hit_cap)

        if any(cue in lowered for cue in rules.cue_words):
            confidence += rules.cue_bonus
        return round(max(0.0, min(confidence, 1.0)), 4)

    # ------------------------------------------------------------------
    def refine_analysis(self, analysis: Analysis, question: str, context: Any = None) -> Analysis:
        """Apply caller overrides of subject and grade level to an existing analysis."""

        updates: dict[str, Any] = {}
        subject_override = _context_value(context, "subject")
        if subject_override:
            subject = self.heuristics.canonical_subject(subject_override)
            if subject != analysis.subject:
                updates["subject"] = subject
                updates["competencies"] = self.identify_competencies(subject, analysis.question_type)

        grade_override = _context_value(context, "grade_level")
        if grade_override and grade_override.upper() != analysis.grade_level:
            updates["grade_level"] = grade_override.upper()

        updates["confidence"] = self.calculate_confidence(
            question, updates.get("subject", analysis.subject), list(analysis.keywords)
        )
        return analysis.model_copy(update=updates)

    def validate_grade_level(self, subject: str, grade_level: str, question: str) -> GradeLevelValidation:
        """Check whether ``question`` suits ``subject`` at ``grade_level``."""

        profile = self._subject_metadata(subject)
        if profile is None or profile.education_levels is None:
            return GradeLevelValidation(is_valid=True)

        warnings: List[str] = []
        suggestions: List[str] = []
        levels = list(profile.education_levels)
        if grade_level not in levels:
            warnings.append(
                f"Subject '{profile.name}' is not typically taught at {grade_level} level in Ugandan curriculum."
            )
            suggestions.append(
                f"Consider selecting a grade level where {profile.name} is offered: {', '.join(levels)}"
            )

        complexity = self.assess_complexity(question)
        expected = self.rules.grade_expectations.get(grade_level, self.rules.default_grade_expectation)
        if complexity == "high" and expected == "low":
            warnings.append("Question appears too complex for the selected grade level.")
            suggestions.append("Consider simplifying the question or selecting a higher grade level.")
        elif complexity == "low" and expected == "high":
            warnings.append("Question appears too basic for the selected grade level.")
            suggestions.append("Consider making the question more challenging or selecting a lower grade level.")

        lowered = question.lower()
        for flag in self.rules.grade_red_flags:
            if flag.applies(profile.name, grade_level, lowered):
                warnings.append(flag.warning)
                suggestions.append(flag.suggestion)

        return GradeLevelValidation(
            is_valid=not warnings,
            warnings=warnings,
            suggestions=suggestions,
            subject_difficulty=profile.difficulty,
            supported_grades=levels,
            question_complexity=complexity,
            expected_complexity=expected,
        )

    def _subject_metadata(self, subject: str) -> Optional[SubjectProfile]:
        profile = self.heuristics.get_subject(subject)
        if profile is None or self.cache is None:
            return profile
        cached = self.cache.get_cached_subject_metadata(profile.name)
        if isinstance(cached, SubjectProfile):
            return cached
        self.cache.cache_subject_metadata(profile.name, profile)
        return profile
