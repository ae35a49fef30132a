"""Select, customize and render subject prompt templates for an analysis."""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence

from engines.caching import TTLCache
from heuristics import HEURISTICS, HeuristicsRegistry
from prompts.subject_templates import fallback_template, get_template
from schemas import Analysis, SelectionValidation, Template, TemplateSelection

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{(subject|grade_level|question_type|question|competencies)\}")
_QUESTION_LINE = "QUESTION: {question}"
_QUESTION_TYPE_LINE = "QUESTION TYPE: {question_type}"

MAX_COMPETENCIES = 4
BASE_CONFIDENCE = 0.5
SUBJECT_MATCH_BONUS = 0.2
TYPE_SUPPORTED_BONUS = 0.2
GRADE_SUPPORTED_BONUS = 0.1
ANALYSIS_CONFIDENCE_WEIGHT = 0.2
FALLBACK_ALTERNATIVE_CONFIDENCE = 0.8
LOW_CONFIDENCE_THRESHOLD = 0.3


class TemplateSelector:
    """Map an :class:`~schemas.Analysis` to a customized template and prompt."""

    def __init__(self, cache: Optional[TTLCache] = None, heuristics: HeuristicsRegistry = HEURISTICS) -> None:
        self.cache = cache
        self.heuristics = heuristics

    def select_template(self, analysis: Analysis) -> TemplateSelection:
        base = self.base_template(analysis.subject, analysis.grade_level)
        customized = self.customize_template(base, analysis)
        selection = TemplateSelection(
            template=customized,
            prompt=self.render_prompt(customized, analysis),
            subject=analysis.subject,
            question_type=analysis.question_type,
            confidence=self.selection_confidence(analysis, base),
        )
        logger.debug(
            "Selected %s template for %s (confidence %.2f)",
            base.subject,
            analysis.subject,
            selection.confidence,
        )
        return selection

    # ------------------------------------------------------------------
    def base_template(self, subject: str, grade_level: str) -> Template:
        if self.cache is not None:
            cached = self.cache.get_cached_template(subject, grade_level)
            if isinstance(cached, Template):
                return cached
        template = get_template(subject) or fallback_template()
        if self.cache is not None:
            self.cache.cache_template(subject, grade_level, template)
        return template

    def customize_template(self, template: Template, analysis: Analysis) -> Template:
        """Return a copy of ``template`` tuned to the analysis type, grade and complexity."""

        body: Optional[str] = None
        if self.cache is not None:
            cached = self.cache.get_cached_response_pattern(
                template.subject, analysis.question_type, analysis.grade_level, analysis.complexity
            )
            if isinstance(cached, str):
                body = cached
        if body is None:
            body = self.customize_prompt(
                template.prompt_template,
                analysis.question_type,
                analysis.grade_level,
                analysis.complexity,
            )
            if self.cache is not None:
                self.cache.cache_response_pattern(
                    template.subject, analysis.question_type, analysis.grade_level, body, analysis.complexity
                )

        competencies = self.rank_competencies(template.competencies, analysis.competencies, analysis.question_type)
        return template.model_copy(update={"prompt_template": body, "competencies": competencies})

    def customize_prompt(self, body: str, question_type: str, grade_level: str, complexity: str) -> str:
        adjustments = self.heuristics.prompt_adjustments
        blocks = [
            adjustments.question_type.get(question_type),
            adjustments.grade_level.get(grade_level),
            adjustments.complexity.get(complexity),
        ]
        addition = "".join(f"\n{block}" for block in blocks if block)
        if not addition:
            return body

        anchor = body.find(_QUESTION_LINE)
        if anchor >= 0:
            insert_at = anchor + len(_QUESTION_LINE)
        else:
            anchor = body.find("{question}")
            insert_at = anchor + len("{question}") if anchor >= 0 else len(body)
        return body[:insert_at] + addition + body[insert_at:]

    def rank_competencies(
        self, template_competencies: Sequence[str], analysis_competencies: Sequence[str], question_type: str
    ) -> List[str]:
        merged = list(dict.fromkeys([*template_competencies, *analysis_competencies]))
        weights = self.heuristics.analysis.type_weights.get(question_type, ())

        def relevance(competency: str) -> int:
            lowered = competency.lower()
            return sum(1 for word in weights if word in lowered)

        ranked = sorted(merged, key=relevance, reverse=True)
        return ranked[:MAX_COMPETENCIES]

    def render_prompt(self, template: Template, analysis: Analysis) -> str:
        body = template.prompt_template.replace(
            _QUESTION_TYPE_LINE, f"{_QUESTION_TYPE_LINE}\nCOMPLEXITY: {analysis.complexity}", 1
        )
        competencies = analysis.competencies or template.competencies
        values = {
            "subject": analysis.subject,
            "grade_level": analysis.grade_level,
            "question_type": analysis.question_type,
            "question": analysis.question,
            "competencies": ", ".join(competencies),
        }
        # one pass, so braces inside the question text are left alone
        return _PLACEHOLDER.sub(lambda match: values[match.group(1)], body)

    def selection_confidence(self, analysis: Analysis, template: Template) -> float:
        confidence = BASE_CONFIDENCE
        if not template.is_fallback and template.subject == analysis.subject:
            confidence += SUBJECT_MATCH_BONUS
        if analysis.question_type in template.question_types:
            confidence += TYPE_SUPPORTED_BONUS
        if analysis.grade_level in template.grade_levels:
            confidence += GRADE_SUPPORTED_BONUS
        confidence += analysis.confidence * ANALYSIS_CONFIDENCE_WEIGHT
        return round(max(0.0, min(confidence, 1.0)), 4)

    # ------------------------------------------------------------------
    def alternative_templates(self, analysis: Analysis, min_confidence: float = 0.7) -> List[TemplateSelection]:
        """Return the primary selection, plus the generic template when confidence is low."""

        primary = self.select_template(analysis)
        if primary.confidence >= min_confidence or primary.template.is_fallback:
            return [primary]

        fallback = fallback_template()
        alternative = TemplateSelection(
            template=fallback,
            prompt=self.render_prompt(fallback, analysis),
            subject=fallback.subject,
            question_type=analysis.question_type,
            confidence=FALLBACK_ALTERNATIVE_CONFIDENCE,
        )
        return [primary, alternative]

    def validate_selection(self, selection: TemplateSelection) -> SelectionValidation:
        issues: List[str] = []
        if not selection.prompt.strip():
            issues.append("Generated prompt is empty")
        if selection.confidence < LOW_CONFIDENCE_THRESHOLD:
            issues.append("Low confidence in template selection")
        leftovers = sorted({f"{{{name}}}" for name in _PLACEHOLDER.findall(selection.prompt)})
        if leftovers:
            issues.append(f"Unrendered placeholders in prompt: {', '.join(leftovers)}")
        return SelectionValidation(valid=not issues, issues=issues)
