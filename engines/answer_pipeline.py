"""Analyze, prompt, generate, format and check: the full answer flow for one question."""

from __future__ import annotations

import logging
from typing import Any, Optional

from engines.caching import TTLCache
from engines.competency_checker import CompetencyChecker
from engines.generation import TextGenerator
from engines.question_analysis import QuestionAnalyzer
from engines.response_formatter import ResponseFormatter
from engines.template_selection import TemplateSelector
from schemas import GenerationResult, PipelineResult, ResponseContext

logger = logging.getLogger(__name__)


class AnswerPipeline:
    """Glue the engines together around one shared cache and one generator."""

    def __init__(
        self,
        generator: TextGenerator,
        cache: Optional[TTLCache] = None,
        analyzer: Optional[QuestionAnalyzer] = None,
        selector: Optional[TemplateSelector] = None,
        formatter: Optional[ResponseFormatter] = None,
        checker: Optional[CompetencyChecker] = None,
    ) -> None:
        self.generator = generator
        self.cache = cache
        self.analyzer = analyzer or QuestionAnalyzer(cache)
        self.selector = selector or TemplateSelector(cache)
        self.formatter = formatter or ResponseFormatter()
        self.checker = checker or CompetencyChecker()

    async def answer(self, question: str, context: Any = None) -> PipelineResult:
        if not question or not question.strip():
            raise ValueError("question must not be empty")

        analysis = self.analyzer.analyze(question, context)
        selection = self.selector.select_template(analysis)

        cache_context = {
            "subject": analysis.subject,
            "grade_level": analysis.grade_level,
            "competencies": analysis.competencies,
        }
        generation: Optional[GenerationResult] = None
        if self.cache is not None:
            cached = self.cache.get_cached_ai_response(question, **cache_context)
            if isinstance(cached, GenerationResult):
                generation = cached
        was_cached = generation is not None
        if generation is None:
            generation = await self.generator.generate(selection.prompt)
            if self.cache is not None:
                self.cache.cache_ai_response(question, generation, **cache_context)

        response_context = ResponseContext(
            subject=analysis.subject,
            grade_level=analysis.grade_level,
            question_type=analysis.question_type,
            competencies=list(analysis.competencies),
        )
        response = self.formatter.format(generation, response_context)
        check = self.checker.check(response, analysis.competencies, response_context)
        enhanced = False
        if not check.valid:
            response = self.checker.enhance(response, check, response_context)
            enhanced = True

        logger.info(
            "Answered %s question (%s, cached=%s, competency score %.2f)",
            analysis.subject,
            analysis.question_type,
            was_cached,
            check.overall_score,
        )
        return PipelineResult(
            analysis=analysis,
            selection=selection,
            response=response,
            check=check,
            enhanced=enhanced,
            generation=generation,
            cached=was_cached,
        )
