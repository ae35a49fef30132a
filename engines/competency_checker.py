"""Score structured answers against CBA competencies and repair weak ones."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Sequence

from heuristics import HEURISTICS, HeuristicsRegistry
from schemas import CompetencyCheckResult, ResponseContext, StructuredResponse

logger = logging.getLogger(__name__)

_PRECISION = 6


def _clamp(value: float) -> float:
    return round(max(0.0, min(value, 1.0)), _PRECISION)


def _contains_any(text: str, phrases: Iterable[str]) -> bool:
    return any(phrase in text for phrase in phrases)


def _full_text(response: StructuredResponse) -> str:
    return f"{response.introduction} {response.elaboration} {response.conclusion}".lower()


class CompetencyChecker:
    """Heuristic competency scoring for :class:`~schemas.StructuredResponse` objects."""

    def __init__(self, heuristics: HeuristicsRegistry = HEURISTICS) -> None:
        self.heuristics = heuristics

    @property
    def rules(self):
        return self.heuristics.competency

    # ------------------------------------------------------------------
    def check(
        self, response: StructuredResponse, required: Sequence[str], context: Any = None
    ) -> CompetencyCheckResult:
        ctx = ResponseContext.coerce(context)
        rules = self.rules
        text = _full_text(response)
        emphasis = self.assess_emphasis(response)

        scores: Dict[str, float] = {}
        for competency in required:
            scores[competency] = self.score_competency(text, competency, ctx)

        overall = round(sum(scores.values()) / len(scores), _PRECISION) if scores else 0.0
        missing = [name for name, score in scores.items() if score < rules.missing_threshold]
        valid = overall >= rules.valid_overall and emphasis >= rules.valid_emphasis
        logger.debug(
            "Competency check: overall=%.2f emphasis=%.2f missing=%d valid=%s",
            overall,
            emphasis,
            len(missing),
            valid,
        )
        return CompetencyCheckResult(
            overall_score=overall,
            competency_scores=scores,
            missing_competencies=missing,
            suggestions=self.suggestions(missing, emphasis, overall, ctx),
            emphasis_level=emphasis,
            valid=valid,
        )

    def competency_keywords(self, competency: str) -> List[str]:
        lowered = competency.lower()
        keywords: List[str] = []
        for stem, words in self.rules.competency_keywords.items():
            if stem in lowered:
                keywords.extend(words)
        return list(dict.fromkeys(keywords))

    def score_competency(self, text: str, competency: str, ctx: ResponseContext) -> float:
        """Score one competency against the lowercased answer ``text``."""

        rules = self.rules
        hits = sum(1 for keyword in self.competency_keywords(competency) if keyword in text)
        score = min(hits * rules.keyword_weight, rules.keyword_cap)
        if _contains_any(text, rules.application_indicators):
            score += rules.application_weight
        if _contains_any(text, rules.skill_indicators.get(ctx.question_type or "", ())):
            score += rules.skill_weight
        if _contains_any(text, rules.real_world_indicators):
            score += rules.real_world_weight
        if self.is_memorization_focused(text):
            score *= rules.memorization_penalty
        return _clamp(score)

    def is_memorization_focused(self, text: str) -> bool:
        memorization = sum(1 for cue in self.rules.memorization_indicators if cue in text)
        application = sum(1 for cue in self.rules.application_cues if cue in text)
        return memorization > application

    def assess_emphasis(self, response: StructuredResponse) -> float:
        rules = self.rules
        emphasis = 0.0
        if _contains_any(response.conclusion.lower(), rules.emphasis_conclusion_words):
            emphasis += rules.emphasis_conclusion_weight
        text = _full_text(response)
        if _contains_any(text, rules.application_indicators):
            emphasis += rules.emphasis_example_weight
        skill_count = sum(1 for word in rules.emphasis_skill_words if word in text)
        emphasis += min(skill_count * rules.emphasis_skill_weight, rules.emphasis_skill_cap)
        return _clamp(emphasis)

    def suggestions(
        self, missing: Sequence[str], emphasis: float, overall: float, ctx: ResponseContext
    ) -> List[str]:
        rules = self.rules
        tips = [rules.missing_suggestion.replace("{competency}", name.lower()) for name in missing]
        if emphasis < rules.valid_emphasis:
            tips.extend(rules.low_emphasis_suggestions)
        if overall < rules.valid_overall:
            tips.extend(rules.low_overall_suggestions)

        subject_tips = rules.subject_suggestions.get(ctx.subject or "")
        if subject_tips is None:
            tips.extend(rules.default_subject_suggestions)
        elif emphasis < rules.subject_suggestion_emphasis:
            tips.extend(subject_tips)
        return tips

    # ------------------------------------------------------------------
    def enhance(
        self, response: StructuredResponse, check_result: CompetencyCheckResult, context: Any = None
    ) -> StructuredResponse:
        """Return a repaired copy of ``response``; the input is never mutated."""

        if check_result.valid:
            return response.model_copy(deep=True)

        ctx = ResponseContext.coerce(context)
        rules = self.rules
        conclusion = response.conclusion
        if check_result.emphasis_level < rules.valid_emphasis:
            phrase = rules.conclusion_phrase(ctx.subject)
            if phrase not in conclusion:
                conclusion = f"{conclusion} {phrase}"

        elaboration = response.elaboration
        for competency in check_result.missing_competencies:
            if len(elaboration) >= rules.max_elaboration_length:
                break
            kind = rules.example_kind(competency)
            if kind is None:
                continue
            sentence = rules.example_sentences[kind]
            if sentence not in elaboration:
                elaboration = f"{elaboration} {sentence}"

        return response.model_copy(update={"conclusion": conclusion, "elaboration": elaboration}, deep=True)
