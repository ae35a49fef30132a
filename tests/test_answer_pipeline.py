from __future__ import annotations

import unittest

from engines.answer_pipeline import AnswerPipeline
from engines.caching import TTLCache
from engines.generation import GenerationError
from heuristics import HEURISTICS
from schemas import GenerationResult

STRUCTURED_ANSWER = (
    "1. INTRODUCTION: Photosynthesis builds key competencies in understanding how plants make food.\n"
    "2. ELABORATION: For example, leaves use sunlight, water and carbon dioxide. "
    "We analyze and compare how light intensity changes the rate.\n"
    "3. CONCLUSION: Farmers apply this in everyday life when they practice spacing crops for light."
)


class FakeGenerator:
    def __init__(self, text: str = STRUCTURED_ANSWER, error: Exception | None = None):
        self.text = text
        self.error = error
        self.prompts = []

    async def generate(self, prompt: str) -> GenerationResult:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return GenerationResult(text=self.text, tokens_used=10, latency_ms=5, model="fake")


class AnswerPipelineTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.cache = TTLCache()
        self.generator = FakeGenerator()
        self.pipeline = AnswerPipeline(self.generator, self.cache)

    async def test_answer_runs_every_step(self):
        result = await self.pipeline.answer("Explain the process of photosynthesis in plants")

        self.assertEqual(result.analysis.subject, "Biology")
        self.assertIn("Explain the process of photosynthesis in plants", self.generator.prompts[0])
        self.assertEqual(self.generator.prompts[0], result.selection.prompt)
        self.assertTrue(result.response.introduction.startswith("Photosynthesis builds key competencies"))
        self.assertTrue(result.response.elaboration.startswith("For example, leaves use sunlight"))
        self.assertEqual(result.response.competencies_addressed, result.analysis.competencies)
        self.assertEqual(set(result.check.competency_scores), set(result.analysis.competencies))
        self.assertEqual(result.enhanced, not result.check.valid)
        self.assertFalse(result.cached)
        self.assertEqual(result.generation.model, "fake")

    async def test_repeated_question_uses_cached_generation(self):
        first = await self.pipeline.answer("Explain the process of photosynthesis in plants")
        second = await self.pipeline.answer("explain the process of photosynthesis in plants")

        self.assertEqual(len(self.generator.prompts), 1)
        self.assertTrue(second.cached)
        self.assertEqual(second.response, first.response)

    async def test_weak_answer_is_enhanced(self):
        self.generator.text = (
            "1. INTRODUCTION: Plants are green things.\n"
            "2. ELABORATION: Leaves hold chlorophyll inside.\n"
            "3. CONCLUSION: Remember this fact for tests."
        )
        result = await self.pipeline.answer("Explain the process of photosynthesis in plants", {"grade_level": "S1"})

        self.assertFalse(result.check.valid)
        self.assertTrue(result.enhanced)
        self.assertEqual(result.analysis.grade_level, "S1")
        self.assertTrue(result.response.conclusion.startswith("Remember this fact for tests."))
        self.assertTrue(
            result.response.conclusion.endswith(HEURISTICS.competency.conclusion_phrase("Biology"))
        )

    async def test_empty_question_is_rejected_before_generation(self):
        with self.assertRaises(ValueError):
            await self.pipeline.answer("   ")
        self.assertEqual(self.generator.prompts, [])

    async def test_generation_errors_propagate(self):
        pipeline = AnswerPipeline(FakeGenerator(error=GenerationError("boom")), self.cache)
        with self.assertRaises(GenerationError):
            await pipeline.answer("What is an acid?")
