"""Thread-safe TTL cache for analyses, templates and generated answers."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from threading import Event, Lock, Thread
from typing import Any, Callable, Dict, Iterable, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL = 15 * 60
DEFAULT_SWEEP_INTERVAL = 30 * 60

AI_RESPONSE_TTL = 60 * 60
ANALYSIS_TTL = 24 * 60 * 60
TEMPLATE_TTL = 7 * 24 * 60 * 60
METADATA_TTL = 30 * 24 * 60 * 60
PATTERN_TTL = 24 * 60 * 60

AI_RESPONSE_PREFIX = "ai_response_"
ANALYSIS_PREFIX = "analysis_"
TEMPLATE_PREFIX = "subject_template_"
METADATA_PREFIX = "subject_metadata_"
PATTERN_PREFIX = "response_pattern_"
_SUBJECT_PREFIXES = (TEMPLATE_PREFIX, METADATA_PREFIX, PATTERN_PREFIX)


def _normalize_question(question: str) -> str:
    return " ".join(str(question).lower().split())


def ai_response_key(
    question: str,
    subject: Optional[str] = None,
    grade_level: Optional[str] = None,
    competencies: Optional[Iterable[str]] = None,
) -> str:
    payload = {
        "question": _normalize_question(question),
        "subject": subject or "",
        "grade_level": grade_level or "",
        "competencies": ",".join(sorted(competencies or ())),
    }
    return AI_RESPONSE_PREFIX + json.dumps(payload, sort_keys=True, ensure_ascii=False)


def analysis_key(question: str, subject: Optional[str] = None, grade_level: Optional[str] = None) -> str:
    payload = {
        "question": _normalize_question(question),
        "subject": subject or "",
        "grade_level": grade_level or "",
    }
    return ANALYSIS_PREFIX + json.dumps(payload, sort_keys=True, ensure_ascii=False)


def template_key(subject: str, grade_level: str) -> str:
    return f"{TEMPLATE_PREFIX}{subject}_{grade_level}"


def metadata_key(subject: str) -> str:
    return f"{METADATA_PREFIX}{subject}"


def pattern_key(subject: str, question_type: str, grade_level: str, variant: Optional[str] = None) -> str:
    key = f"{PATTERN_PREFIX}{subject}_{question_type}_{grade_level}"
    return f"{key}_{variant}" if variant else key


@dataclass
class CacheEntry:
    key: str
    value: Any
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


class TTLCache:
    """In-memory key/value store with per-entry expiry.

    Expired entries are dropped lazily by :meth:`get` and actively by
    :meth:`cleanup`, which a background daemon thread runs every
    ``sweep_interval`` seconds between :meth:`start` and :meth:`shutdown`.
    One lock guards the store, so the sweep and request threads may use the
    cache concurrently.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")
        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = Lock()
        self._hits = 0
        self._misses = 0
        self._stop = Event()
        self._sweeper: Optional[Thread] = None

    # ------------------------------------------------------------------
    # core operations
    # ------------------------------------------------------------------
    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store ``value`` for ``ttl`` seconds; a non-positive ttl stores an expired entry."""

        lifetime = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = CacheEntry(key, value, self._clock() + lifetime)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.expired(self._clock()):
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def cleanup(self) -> int:
        """Remove every expired entry and return how many were dropped."""

        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.expired(now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            now = self._clock()
            expired = sum(1 for entry in self._entries.values() if entry.expired(now))
            lookups = self._hits + self._misses
            return {
                "total_entries": len(self._entries),
                "valid_entries": len(self._entries) - expired,
                "expired_entries": expired,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
            }

    # ------------------------------------------------------------------
    # subject-scoped helpers
    # ------------------------------------------------------------------
    def clear_subject_cache(self, subject: Optional[str] = None) -> int:
        """Drop template, metadata and pattern entries for ``subject`` (or all subjects)."""

        with self._lock:
            doomed = []
            for key in self._entries:
                if not key.startswith(_SUBJECT_PREFIXES):
                    continue
                if subject is None or f"_{subject}_" in key or key.endswith(f"_{subject}"):
                    doomed.append(key)
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def subject_cache_stats(self) -> Dict[str, int]:
        counts = {TEMPLATE_PREFIX: 0, METADATA_PREFIX: 0, PATTERN_PREFIX: 0}
        expired = 0
        with self._lock:
            now = self._clock()
            for key, entry in self._entries.items():
                if not key.startswith(_SUBJECT_PREFIXES):
                    continue
                if entry.expired(now):
                    expired += 1
                    continue
                for prefix in counts:
                    if key.startswith(prefix):
                        counts[prefix] += 1
                        break
        return {
            "template_entries": counts[TEMPLATE_PREFIX],
            "metadata_entries": counts[METADATA_PREFIX],
            "pattern_entries": counts[PATTERN_PREFIX],
            "expired_entries": expired,
            "total_subject_entries": sum(counts.values()),
        }

    # ------------------------------------------------------------------
    # typed helpers
    # ------------------------------------------------------------------
    def cache_ai_response(self, question: str, value: Any, **context: Any) -> None:
        self.set(ai_response_key(question, **context), value, AI_RESPONSE_TTL)

    def get_cached_ai_response(self, question: str, **context: Any) -> Optional[Any]:
        return self.get(ai_response_key(question, **context))

    def cache_analysis(self, question: str, value: Any, **context: Any) -> None:
        self.set(analysis_key(question, **context), value, ANALYSIS_TTL)

    def get_cached_analysis(self, question: str, **context: Any) -> Optional[Any]:
        return self.get(analysis_key(question, **context))

    def cache_template(self, subject: str, grade_level: str, value: Any) -> None:
        self.set(template_key(subject, grade_level), value, TEMPLATE_TTL)

    def get_cached_template(self, subject: str, grade_level: str) -> Optional[Any]:
        return self.get(template_key(subject, grade_level))

    def cache_subject_metadata(self, subject: str, value: Any) -> None:
        self.set(metadata_key(subject), value, METADATA_TTL)

    def get_cached_subject_metadata(self, subject: str) -> Optional[Any]:
        return self.get(metadata_key(subject))

    def cache_response_pattern(
        self, subject: str, question_type: str, grade_level: str, value: Any, variant: Optional[str] = None
    ) -> None:
        self.set(pattern_key(subject, question_type, grade_level, variant), value, PATTERN_TTL)

    def get_cached_response_pattern(
        self, subject: str, question_type: str, grade_level: str, variant: Optional[str] = None
    ) -> Optional[Any]:
        return self.get(pattern_key(subject, question_type, grade_level, variant))

    # ------------------------------------------------------------------
    # background sweep
    # ------------------------------------------------------------------
    @property
    def running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def start(self) -> None:
        """Start the periodic cleanup thread; calling it twice is a no-op."""

        if self.running:
            return
        self._stop.clear()
        self._sweeper = Thread(target=self._sweep_loop, name="ttl-cache-sweep", daemon=True)
        self._sweeper.start()
        logger.debug("Cache sweep started (interval %.0fs)", self.sweep_interval)

    def shutdown(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        sweeper, self._sweeper = self._sweeper, None
        if sweeper is not None:
            sweeper.join(timeout)
            logger.debug("Cache sweep stopped")

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.sweep_interval):
            removed = self.cleanup()
            logger.debug("Cache sweep removed %d expired entries", removed)

    def __enter__(self) -> "TTLCache":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()
