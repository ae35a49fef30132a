import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class FakeClock:
    """Manually advanced monotonic clock for cache expiry tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    from engines.caching import TTLCache

    store = TTLCache(clock=clock)
    yield store
    store.shutdown()


@pytest.fixture
def analyzer(cache):
    from engines.question_analysis import QuestionAnalyzer

    return QuestionAnalyzer(cache)


@pytest.fixture
def selector(cache):
    from engines.template_selection import TemplateSelector

    return TemplateSelector(cache)


@pytest.fixture
def formatter():
    from engines.response_formatter import ResponseFormatter

    return ResponseFormatter()


@pytest.fixture
def checker():
    from engines.competency_checker import CompetencyChecker

    return CompetencyChecker()
