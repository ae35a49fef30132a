import json
import shutil
from pathlib import Path

import pytest

from heuristics import GRADE_LEVELS, HEURISTICS, HeuristicsConfigError, HeuristicsRegistry

DATA_DIR = Path(__file__).resolve().parents[1] / "data"


def _copy_data(tmp_path: Path) -> Path:
    target = tmp_path / "data"
    shutil.copytree(DATA_DIR, target)
    return target


def _rewrite(path: Path, mutate) -> None:
    payload = json.loads(path.read_text(encoding="utf-8"))
    mutate(payload)
    path.write_text(json.dumps(payload), encoding="utf-8")


def test_default_registry_exposes_catalogue():
    names = HEURISTICS.subject_names()
    assert names[0] == "Mathematics"
    assert HEURISTICS.fallback_subject == "Other"
    assert "Other" in names
    assert len(names) == len(set(names))
    assert HEURISTICS.get_subject("biology").name == "Biology"
    assert HEURISTICS.canonical_subject("  physics ") == "Physics"
    assert HEURISTICS.canonical_subject("Astrology") == "Other"
    assert HEURISTICS.canonical_subject(None) == "Other"


def test_subject_levels_are_known_grades():
    for profile in HEURISTICS:
        if profile.education_levels is not None:
            assert set(profile.education_levels) <= set(GRADE_LEVELS)


def test_rule_tables_are_loaded():
    assert HEURISTICS.analysis.default_question_type == "factual"
    assert HEURISTICS.analysis.max_keywords == 10
    assert HEURISTICS.response_format.min_section_length == 10
    assert HEURISTICS.competency.valid_overall == pytest.approx(0.7)
    assert HEURISTICS.competency.example_kind("Apply knowledge to solve problems") == "application"
    assert HEURISTICS.competency.example_kind("Communicate clearly") is None
    assert HEURISTICS.response_format.application_phrase("Unknown") == (
        HEURISTICS.response_format.default_application_phrase
    )


def test_custom_directory_loads(tmp_path: Path, monkeypatch):
    target = _copy_data(tmp_path)
    monkeypatch.setenv("HEURISTICS_DIR", str(target))
    registry = HeuristicsRegistry()
    assert registry.directory == target
    assert registry.subject_names() == HEURISTICS.subject_names()


def test_unknown_fallback_subject_is_rejected(tmp_path: Path):
    target = _copy_data(tmp_path)
    _rewrite(target / "subjects.json", lambda payload: payload.update(fallback_subject="Nothing"))
    with pytest.raises(HeuristicsConfigError):
        HeuristicsRegistry(target)


def test_duplicate_subject_is_rejected(tmp_path: Path):
    target = _copy_data(tmp_path)
    _rewrite(target / "subjects.json", lambda payload: payload["subjects"].append(dict(payload["subjects"][0])))
    with pytest.raises(HeuristicsConfigError):
        HeuristicsRegistry(target)


def test_unknown_grade_level_is_rejected(tmp_path: Path):
    target = _copy_data(tmp_path)
    _rewrite(target / "subjects.json", lambda payload: payload["subjects"][0].update(education_levels=["Y9"]))
    with pytest.raises(HeuristicsConfigError):
        HeuristicsRegistry(target)


def test_broken_json_and_missing_file(tmp_path: Path):
    target = _copy_data(tmp_path)
    (target / "analysis.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(HeuristicsConfigError):
        HeuristicsRegistry(target)

    (target / "analysis.json").unlink()
    with pytest.raises(FileNotFoundError):
        HeuristicsRegistry(target)


def test_missing_section_field_is_rejected(tmp_path: Path):
    target = _copy_data(tmp_path)
    _rewrite(target / "response_format.json", lambda payload: payload.pop("default_sections"))
    with pytest.raises(HeuristicsConfigError):
        HeuristicsRegistry(target)
