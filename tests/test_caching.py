import threading
import time

import pytest

from engines.caching import (
    AI_RESPONSE_TTL,
    ANALYSIS_TTL,
    METADATA_TTL,
    TTLCache,
    ai_response_key,
    analysis_key,
    pattern_key,
    template_key,
)


def test_set_get_and_lazy_expiry(cache, clock):
    cache.set("k", "v", 10)
    assert cache.get("k") == "v"
    clock.advance(9.9)
    assert cache.get("k") == "v"
    clock.advance(0.1)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_non_positive_ttl_is_never_observed(cache):
    cache.set("gone", "value", -1)
    assert cache.get("gone") is None
    cache.set("zero", "value", 0)
    assert cache.get("zero") is None


def test_delete_and_clear(cache):
    cache.set("a", 1)
    cache.set("b", 2)
    cache.delete("a")
    cache.delete("missing")
    assert cache.get("a") is None
    cache.clear()
    assert len(cache) == 0
    assert cache.stats()["hits"] == 0


def test_cleanup_counts_removed_entries(cache, clock):
    cache.set("short", 1, 5)
    cache.set("long", 2, 50)
    cache.set("expired", 3, -1)
    assert cache.cleanup() == 1
    clock.advance(10)
    assert cache.cleanup() == 1
    assert cache.get("long") == 2
    assert cache.cleanup() == 0


def test_stats_track_hits_and_misses(cache):
    cache.set("a", 1)
    cache.set("b", 2, -1)
    cache.get("a")
    cache.get("nope")
    stats = cache.stats()
    assert stats["total_entries"] == 2
    assert stats["valid_entries"] == 1
    assert stats["expired_entries"] == 1
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == pytest.approx(0.5)


def test_key_builders_normalize_inputs():
    assert analysis_key("What  is Photosynthesis?") == analysis_key("what is photosynthesis?")
    assert ai_response_key("Q", competencies=["b", "a"]) == ai_response_key("q", competencies=["a", "b"])
    assert ai_response_key("q", subject="Biology") != ai_response_key("q", subject="Physics")
    assert template_key("Biology", "S2") == "subject_template_Biology_S2"
    assert pattern_key("Biology", "factual", "S2") != pattern_key("Biology", "factual", "S2", "high")


def test_typed_helpers_use_their_own_lifetimes(cache, clock):
    cache.cache_ai_response("q", "answer", subject="Biology")
    cache.cache_analysis("q", "analysis")
    cache.cache_subject_metadata("Biology", {"difficulty": "advanced"})

    assert cache.get_cached_ai_response("q", subject="Biology") == "answer"
    assert cache.get_cached_ai_response("q", subject="Physics") is None

    clock.advance(AI_RESPONSE_TTL)
    assert cache.get_cached_ai_response("q", subject="Biology") is None
    assert cache.get_cached_analysis("q") == "analysis"

    clock.advance(ANALYSIS_TTL)
    assert cache.get_cached_analysis("q") is None
    assert cache.get_cached_subject_metadata("Biology") == {"difficulty": "advanced"}

    clock.advance(METADATA_TTL)
    assert cache.get_cached_subject_metadata("Biology") is None


def test_subject_cache_stats_and_clear(cache):
    cache.cache_template("Biology", "S2", "bio-template")
    cache.cache_template("Physics", "S3", "phy-template")
    cache.cache_subject_metadata("Biology", "meta")
    cache.cache_response_pattern("Biology", "factual", "S2", "pattern", "low")
    cache.cache_analysis("q", "analysis")

    stats = cache.subject_cache_stats()
    assert stats["template_entries"] == 2
    assert stats["metadata_entries"] == 1
    assert stats["pattern_entries"] == 1
    assert stats["total_subject_entries"] == 4

    assert cache.clear_subject_cache("Biology") == 3
    assert cache.get_cached_template("Physics", "S3") == "phy-template"
    assert cache.get_cached_analysis("q") == "analysis"

    assert cache.clear_subject_cache() == 1
    assert cache.get_cached_analysis("q") == "analysis"


def test_sweep_thread_lifecycle():
    cache = TTLCache(sweep_interval=0.01)
    cache.set("expired", 1, -1)
    with cache:
        assert cache.running
        cache.start()
        deadline = time.monotonic() + 2
        while len(cache) and time.monotonic() < deadline:
            time.sleep(0.01)
    assert len(cache) == 0
    assert not cache.running


def test_sweep_interval_must_be_positive():
    with pytest.raises(ValueError):
        TTLCache(sweep_interval=0)


def test_sweep_runs_safely_alongside_readers_and_writers():
    cache = TTLCache(sweep_interval=0.001)
    keys = [f"shared-{n}" for n in range(8)]
    lifetimes = {"live": 60, "short": 0.0005, "dead": -1}
    errors = []
    leaked = []

    def worker(seed: int) -> None:
        try:
            for step in range(2000):
                key = keys[(seed + step) % len(keys)]
                kind = ("live", "short", "dead")[(seed * 7 + step) % 3]
                cache.set(key, kind, lifetimes[kind])
                if cache.get(key) == "dead":
                    leaked.append(key)
                if step % 5 == 0:
                    cache.delete(keys[(seed + step + 1) % len(keys)])
        except Exception as exc:  # collected for the main thread
            errors.append(exc)

    with cache:
        threads = [threading.Thread(target=worker, args=(seed,)) for seed in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert cache.running

    assert errors == []
    assert leaked == []
    assert not cache.running
    assert all(cache.get(key) != "dead" for key in keys)
