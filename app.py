# app.py - CBA Tutor 1.0.0
# - Question analysis, template selection and answer structuring for the Ugandan CBA curriculum
# - Non-streaming generation against an OpenAI-style chat-completions endpoint

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict

import httpx
from fastapi import FastAPI, HTTPException

from engines.answer_pipeline import AnswerPipeline
from engines.caching import TTLCache
from engines.generation import ChatCompletionGenerator, GenerationError
from engines.question_analysis import QuestionAnalyzer
from engines.template_selection import TemplateSelector
from env_validation import get_env_float
from schemas import AskBody

logger = logging.getLogger(__name__)

CACHE = TTLCache()
ANALYZER = QuestionAnalyzer(CACHE)
SELECTOR = TemplateSelector(CACHE)
GENERATOR = ChatCompletionGenerator()
PIPELINE = AnswerPipeline(GENERATOR, CACHE, analyzer=ANALYZER, selector=SELECTOR)


@asynccontextmanager
async def _lifespan(_: FastAPI):
    try:
        # Validate environment variables first
        from env_validation import validate_environment
        validate_environment()

        interval = get_env_float("CACHE_SWEEP_INTERVAL", CACHE.sweep_interval)
        if interval > 0:
            CACHE.sweep_interval = interval
        CACHE.start()
        logger.info("Generation endpoint: %s | model: %s", GENERATOR.api_url, GENERATOR.model)
    except Exception as e:
        logger.error("Failed to initialize application: %s", str(e), exc_info=True)
        raise
    try:
        yield
    finally:
        CACHE.shutdown()


app = FastAPI(title="CBA Tutor", version="1.0.0", lifespan=_lifespan)


def _require_question(body: AskBody) -> str:
    question = (body.question or "").strip()
    if not question:
        raise HTTPException(status_code=400, detail="question must not be empty")
    return question


def _context(body: AskBody) -> Dict[str, Any]:
    return {"subject": body.subject, "grade_level": body.grade_level}


@app.post("/ask")
async def ask(body: AskBody):
    question = _require_question(body)
    try:
        result = await PIPELINE.answer(question, _context(body))
    except (GenerationError, httpx.HTTPError) as exc:
        logger.exception("Answer generation failed")
        raise HTTPException(status_code=502, detail=f"Generation failed: {exc}") from exc

    return {
        "analysis": result.analysis.model_dump(),
        "template_confidence": result.selection.confidence,
        "response": result.response.model_dump(),
        "competency_check": result.check.model_dump(),
        "enhanced": result.enhanced,
        "generation": {
            "model": result.generation.model,
            "tokens_used": result.generation.tokens_used,
            "latency_ms": result.generation.latency_ms,
            "cached": result.cached,
        },
    }


@app.post("/analyze")
def analyze(body: AskBody):
    question = _require_question(body)
    context = _context(body)
    analysis = ANALYZER.analyze(question, context)
    if body.subject or body.grade_level:
        analysis = ANALYZER.refine_analysis(analysis, question, context)
    selections = SELECTOR.alternative_templates(analysis)
    return {
        "analysis": analysis.model_dump(),
        "grade_validation": ANALYZER.validate_grade_level(
            analysis.subject, analysis.grade_level, question
        ).model_dump(),
        "templates": [
            {
                "subject": selection.template.subject,
                "confidence": selection.confidence,
                "validation": SELECTOR.validate_selection(selection).model_dump(),
            }
            for selection in selections
        ],
    }


@app.get("/health")
def health():
    return {
        "status": "ok",
        "model": GENERATOR.model,
        "cache_sweep_running": CACHE.running,
    }


@app.get("/cache/stats")
def cache_stats():
    return {"cache": CACHE.stats(), "subjects": CACHE.subject_cache_stats()}
