"""
Safety metrics context.

One ``SafetyMetrics`` instance is created at process start and passed to the
components that record into it. Nothing here is global.
"""

import threading
from collections import Counter
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from chat_safety.models.schemas import FallbackBehavior, SafetyEvaluationResult

# Keep the most recent samples only
MAX_SAMPLES = 10_000


def _key(*parts: Any) -> str:
    return "|".join(str(getattr(p, "value", p)) for p in parts)


class SafetyMetrics:
    """Counters, samples and an active-evaluation gauge for the safety layer."""

    def __init__(self, service_name: str = "chat-safety"):
        self.service_name = service_name
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._evaluations: Counter = Counter()
            self._violations: Counter = Counter()
            self._errors: Counter = Counter()
            self._fallbacks: Counter = Counter()
            self._circuit_trips: Counter = Counter()
            self._durations_ms: List[Tuple[str, int]] = []
            self._risk_scores: List[Tuple[str, int]] = []
            self._active = 0

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_evaluation(self, provider: str, evaluation_type: str, is_safe: bool, duration_ms: Optional[int] = None) -> None:
        with self._lock:
            self._evaluations[_key(provider, evaluation_type, is_safe)] += 1
            if duration_ms is not None:
                self._append(self._durations_ms, (evaluation_type, duration_ms))

    def record_violation(self, evaluation_type: str, category: Any) -> None:
        with self._lock:
            self._violations[_key(evaluation_type, category)] += 1

    def record_risk_score(self, evaluation_type: str, risk_score: int) -> None:
        with self._lock:
            self._append(self._risk_scores, (evaluation_type, risk_score))

    def record_error(self, provider: str, evaluation_type: str, error_type: str) -> None:
        with self._lock:
            self._errors[_key(provider, evaluation_type, error_type)] += 1

    def record_fallback(self, behavior: FallbackBehavior) -> None:
        with self._lock:
            self._fallbacks[_key(behavior)] += 1

    def record_circuit_trip(self, provider: str) -> None:
        with self._lock:
            self._circuit_trips[_key(provider)] += 1

    def record_from_result(
        self,
        result: SafetyEvaluationResult,
        evaluation_type: str,
        provider: Optional[str] = None,
        duration_ms: Optional[int] = None,
    ) -> None:
        """Record evaluation, risk score and one violation per blocking category."""
        if provider is None:
            provider = result.metadata.provider if result.metadata else "unknown"
        if duration_ms is None and result.metadata is not None:
            duration_ms = result.metadata.processing_time_ms

        self.record_evaluation(provider, evaluation_type, result.is_safe, duration_ms)
        self.record_risk_score(evaluation_type, result.risk_score)
        for detection in result.blocking_categories:
            self.record_violation(evaluation_type, detection.category)

    @contextmanager
    def track_active(self) -> Iterator[None]:
        """Count an evaluation as active for the duration of the block."""
        with self._lock:
            self._active += 1
        try:
            yield
        finally:
            with self._lock:
                self._active -= 1

    def _append(self, samples: list, value: tuple) -> None:
        samples.append(value)
        if len(samples) > MAX_SAMPLES:
            del samples[: len(samples) - MAX_SAMPLES]

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    @property
    def active_evaluations(self) -> int:
        return self._active

    def count(self, name: str, *labels: Any) -> int:
        """Read one counter, e.g. ``count("violations", "text", HarmCategory.HATE)``."""
        counter = getattr(self, f"_{name}")
        return counter[_key(*labels)]

    def total(self, name: str) -> int:
        return sum(getattr(self, f"_{name}").values())

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            durations = [d for _, d in self._durations_ms]
            risks = [r for _, r in self._risk_scores]
            return {
                "service": self.service_name,
                "evaluations": dict(self._evaluations),
                "violations": dict(self._violations),
                "errors": dict(self._errors),
                "fallbacks": dict(self._fallbacks),
                "circuit_trips": dict(self._circuit_trips),
                "active_evaluations": self._active,
                "duration_ms": _summary(durations),
                "risk_score": _summary(risks),
            }


def _summary(samples: List[int]) -> Dict[str, float]:
    if not samples:
        return {"count": 0, "avg": 0.0, "max": 0}
    return {
        "count": len(samples),
        "avg": round(sum(samples) / len(samples), 2),
        "max": max(samples),
    }
