import pytest

from heuristics import HEURISTICS
from schemas import ResponseContext, StructuredResponse

RULES = HEURISTICS.competency

STRONG = StructuredResponse(
    introduction="Learners know how to apply ideas about measurement.",
    elaboration="For example, we use a ruler in everyday life to measure desks.",
    conclusion="We apply and practice these skills at home.",
)
WEAK = StructuredResponse(
    introduction="Photosynthesis is a process.",
    elaboration="Plants make food from light.",
    conclusion="Remember this fact.",
)
WEAK_REQUIRED = ["Apply biological knowledge to solve problems", "Analyze and interpret biological data"]
BIOLOGY = ResponseContext(subject="Biology", question_type="factual")


def test_empty_required_list_scores_zero(checker):
    result = checker.check(STRONG, [])
    assert result.overall_score == 0.0
    assert result.competency_scores == {}
    assert result.missing_competencies == []
    assert not result.valid


def test_strong_response_is_valid(checker):
    context = {"subject": "Mathematics", "question_type": "application"}
    result = checker.check(STRONG, ["Apply knowledge"], context)
    assert result.competency_scores["Apply knowledge"] == pytest.approx(1.0)
    assert result.emphasis_level == pytest.approx(1.0)
    assert result.valid
    assert result.missing_competencies == []


def test_enhance_on_valid_result_is_a_copy(checker):
    result = checker.check(STRONG, ["Apply knowledge"], {"question_type": "application"})
    assert result.valid
    enhanced = checker.enhance(STRONG, result)
    assert enhanced == STRONG
    assert enhanced is not STRONG


def test_weak_response_collects_suggestions(checker):
    result = checker.check(WEAK, WEAK_REQUIRED, BIOLOGY)
    assert not result.valid
    assert result.overall_score == 0.0
    assert result.emphasis_level == 0.0
    assert result.missing_competencies == WEAK_REQUIRED
    assert result.suggestions[0] == "Add more emphasis on apply biological knowledge to solve problems with practical examples"
    assert result.suggestions[-1] == "Connect scientific concepts to Ugandan environmental contexts"
    assert len(result.suggestions) == 8


def test_unmapped_subject_gets_default_suggestions(checker):
    result = checker.check(WEAK, WEAK_REQUIRED, {"subject": "Music"})
    assert result.suggestions[-1] == RULES.default_subject_suggestions[-1]


def test_memorization_penalty(checker):
    ctx = ResponseContext()
    plain = checker.score_competency("for example, this is useful", "Communicate ideas", ctx)
    memorized = checker.score_competency("for example, memorize and recall this", "Communicate ideas", ctx)
    assert plain == pytest.approx(0.3)
    assert memorized == pytest.approx(0.24)
    assert checker.is_memorization_focused("remember to recall")
    assert not checker.is_memorization_focused("remember to apply")


def test_competency_keywords_follow_stems(checker):
    keywords = checker.competency_keywords("Critical thinking and problem solving")
    assert "reflect" in keywords
    assert "solve" in keywords
    assert checker.competency_keywords("Drawing") == []


def test_enhance_appends_phrase_and_examples(checker):
    result = checker.check(WEAK, WEAK_REQUIRED, BIOLOGY)
    enhanced = checker.enhance(WEAK, result, BIOLOGY)

    assert enhanced.conclusion == f"{WEAK.conclusion} {RULES.conclusion_phrase('Biology')}"
    assert enhanced.elaboration.startswith(WEAK.elaboration)
    assert RULES.example_sentences["application"] in enhanced.elaboration
    assert RULES.example_sentences["analysis"] in enhanced.elaboration
    assert WEAK.elaboration == "Plants make food from light."
    assert WEAK.conclusion == "Remember this fact."

    again = checker.enhance(enhanced, result, BIOLOGY)
    assert again.conclusion == enhanced.conclusion
    assert again.elaboration == enhanced.elaboration


def test_enhance_stops_adding_examples_to_long_elaboration(checker):
    long_response = WEAK.model_copy(update={"elaboration": "x" * RULES.max_elaboration_length})
    result = checker.check(long_response, WEAK_REQUIRED, BIOLOGY)
    enhanced = checker.enhance(long_response, result, BIOLOGY)
    assert enhanced.elaboration == long_response.elaboration
