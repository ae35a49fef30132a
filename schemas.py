"""Pydantic schemas shared by the analysis, templating and formatting engines."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "QuestionType",
    "Complexity",
    "Analysis",
    "Template",
    "TemplateSelection",
    "StructuredResponse",
    "CompetencyCheckResult",
    "ResponseContext",
    "GenerationResult",
    "GradeLevelValidation",
    "SelectionValidation",
    "PipelineResult",
    "AskBody",
]

QuestionType = Literal["factual", "analytical", "practical", "application", "evaluation", "synthesis"]
Complexity = Literal["low", "medium", "high"]


class Analysis(BaseModel):
    """Classification of a single student question."""

    model_config = ConfigDict(frozen=True)

    question: str = Field(description="Original question text, used when rendering prompts.")
    subject: str = Field(description="Catalogue subject name, 'Other' when nothing matched.")
    question_type: QuestionType
    grade_level: str = Field(description="Ugandan grade level such as P5 or S2.")
    keywords: List[str] = Field(default_factory=list, max_length=10)
    complexity: Complexity
    competencies: List[str] = Field(default_factory=list, max_length=3)
    confidence: float = Field(ge=0.0, le=1.0)


class Template(BaseModel):
    """Subject prompt skeleton with its competency and grade coverage."""

    model_config = ConfigDict(frozen=True)

    subject: str
    question_types: List[QuestionType] = Field(min_length=1)
    prompt_template: str = Field(
        description="Prompt body with {subject}, {grade_level}, {question_type}, {question} and {competencies} placeholders."
    )
    competencies: List[str] = Field(default_factory=list)
    grade_levels: List[str] = Field(default_factory=list)
    is_fallback: bool = False


class TemplateSelection(BaseModel):
    template: Template
    prompt: str
    subject: str
    question_type: QuestionType
    confidence: float = Field(ge=0.0, le=1.0)


class StructuredResponse(BaseModel):
    """Introduction / Elaboration / Conclusion answer."""

    introduction: str
    elaboration: str
    conclusion: str
    competencies_addressed: List[str] = Field(default_factory=list)
    references: List[str] = Field(default_factory=list)


class CompetencyCheckResult(BaseModel):
    overall_score: float = Field(ge=0.0, le=1.0)
    competency_scores: Dict[str, float] = Field(default_factory=dict)
    missing_competencies: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    emphasis_level: float = Field(ge=0.0, le=1.0)
    valid: bool


class ResponseContext(BaseModel):
    """Per-request context handed to the formatter and checker."""

    subject: Optional[str] = None
    grade_level: Optional[str] = None
    question_type: Optional[str] = None
    competencies: List[str] = Field(default_factory=list)

    @classmethod
    def coerce(cls, value: "ResponseContext | Mapping[str, Any] | None") -> "ResponseContext":
        """Accept a context model, a plain mapping, or ``None``."""

        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            data = {key: value[key] for key in cls.model_fields if value.get(key) is not None}
            competencies = data.get("competencies")
            if isinstance(competencies, str):
                data["competencies"] = [competencies]
            elif isinstance(competencies, (tuple, set)):
                data["competencies"] = list(competencies)
            return cls.model_validate(data)
        raise TypeError(f"Unsupported context type: {type(value).__name__}")


class GenerationResult(BaseModel):
    text: str
    tokens_used: int = 0
    latency_ms: int = 0
    model: Optional[str] = None


class GradeLevelValidation(BaseModel):
    is_valid: bool
    warnings: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    subject_difficulty: Optional[str] = None
    supported_grades: Optional[List[str]] = None
    question_complexity: Optional[Complexity] = None
    expected_complexity: Optional[Complexity] = None


class SelectionValidation(BaseModel):
    valid: bool
    issues: List[str] = Field(default_factory=list)


class PipelineResult(BaseModel):
    """Everything produced while answering one question."""

    analysis: Analysis
    selection: TemplateSelection
    response: StructuredResponse
    check: CompetencyCheckResult
    enhanced: bool = Field(description="True when the response was repaired after a failed check.")
    generation: GenerationResult
    cached: bool = Field(default=False, description="True when the generated text came from the cache.")


class AskBody(BaseModel):
    question: str
    subject: Optional[str] = None
    grade_level: Optional[str] = None
