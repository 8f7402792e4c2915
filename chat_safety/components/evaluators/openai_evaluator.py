"""OpenAI moderation evaluator."""

import asyncio
import logging
import time
from typing import List, Optional

from chat_safety.clients.circuit_breaker import CircuitBreaker, CircuitOpenError
from chat_safety.clients.moderation_client import ModerationClient
from chat_safety.components.evaluators.base import BaseSafetyEvaluator
from chat_safety.components.evaluators.parsing import parse_moderation_response
from chat_safety.components.evaluators.policy import apply_policy, build_fallback_result
from chat_safety.components.streaming import (
    BaseStreamingEvaluator,
    NoOpStreamingEvaluator,
    OpenAIStreamingEvaluator,
    create_strategy,
)
from chat_safety.config import Settings, get_settings
from chat_safety.models.schemas import EvaluationMetadata, PolicySettings, SafetyEvaluationResult
from chat_safety.services.metrics import SafetyMetrics

logger = logging.getLogger(__name__)


class OpenAIModerationEvaluator(BaseSafetyEvaluator):
    """
    Evaluator backed by the OpenAI moderation endpoint.

    Provider failures (transport, timeout, HTTP status, malformed body,
    missing key, open circuit) never propagate; they produce the configured
    fallback result. One circuit breaker guards all calls made through this
    instance.
    """

    name = "openai"
    description = "OpenAI moderation endpoint evaluator"
    provider_name = "OpenAI Moderation"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[ModerationClient] = None,
        metrics: Optional[SafetyMetrics] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.settings = settings or get_settings()
        self.client = client or ModerationClient.from_settings(self.settings)
        self.metrics = metrics or SafetyMetrics(self.settings.service_name)
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=self.settings.circuit_breaker_threshold,
            reset_timeout=self.settings.circuit_breaker_duration_seconds,
            name="openai-moderation",
        )
        if self.breaker.on_open is None:
            self.breaker.on_open = lambda: self.metrics.record_circuit_trip(self.provider_name)

    async def evaluate_text(
        self,
        text: str,
        policy: Optional[PolicySettings] = None,
        streaming: bool = False,
    ) -> SafetyEvaluationResult:
        """
        Evaluate text against the moderation endpoint.

        Args:
            text: Text to evaluate
            policy: Thresholds to apply (input policy when omitted)
            streaming: Use streaming wording in the result

        Returns:
            SafetyEvaluationResult: Evaluation or fallback result
        """
        if not self.settings.enabled:
            return SafetyEvaluationResult.safe(provider=self.provider_name)

        policy = policy or self.settings.input_policy
        evaluation_type = "streaming" if streaming else "text"
        start = time.perf_counter()

        with self.metrics.track_active():
            try:
                data = await self._call_provider(text)
                moderation = parse_moderation_response(data)
                result = apply_policy(moderation, policy, streaming=streaming)
                elapsed_ms = int((time.perf_counter() - start) * 1000)
                result.metadata = EvaluationMetadata(
                    provider=self.provider_name,
                    provider_version=moderation.model or self.settings.model,
                    processing_time_ms=elapsed_ms,
                    request_id=moderation.id or None,
                    additional_data={"flagged": moderation.flagged},
                )
                self.breaker.record_success()
            except CircuitOpenError as e:
                logger.warning(f"Moderation skipped: {e}")
                return self._fallback(e, evaluation_type, streaming)
            except Exception as e:
                self.breaker.record_failure()
                logger.error(f"Moderation evaluation failed: {type(e).__name__}: {e}")
                self.metrics.record_error(self.provider_name, evaluation_type, type(e).__name__)
                return self._fallback(e, evaluation_type, streaming)

        self.metrics.record_from_result(result, evaluation_type, self.provider_name, elapsed_ms)
        if result.is_safe:
            logger.debug(f"Moderation passed in {elapsed_ms}ms (risk={result.risk_score})")
        else:
            logger.warning(
                f"Content blocked: categories={result.category_names} risk={result.risk_score}"
            )
        return result

    async def _call_provider(self, text: str):
        self.breaker.before_call()
        try:
            return await self.client.moderate(text)
        except asyncio.CancelledError:
            self.breaker.release()
            raise

    def _fallback(self, error: BaseException, evaluation_type: str, streaming: bool = False) -> SafetyEvaluationResult:
        behavior = self.settings.fallback_behavior
        result = build_fallback_result(
            behavior,
            error,
            provider=self.provider_name,
            risk_score=self.settings.fallback_risk_score,
            streaming=streaming,
            category=self.settings.fallback_category,
            severity=self.settings.fallback_severity,
        )
        self.metrics.record_fallback(behavior)
        self.metrics.record_from_result(result, evaluation_type, self.provider_name, 0)
        return result

    async def evaluate_batch(
        self,
        texts: List[str],
        policy: Optional[PolicySettings] = None,
    ) -> List[SafetyEvaluationResult]:
        """
        Evaluate texts concurrently.

        Returns one result per text in input order; a failure in one item
        yields a fallback for that item only.
        """
        if not texts:
            return []

        outcomes = await asyncio.gather(
            *(self.evaluate_text(text, policy) for text in texts),
            return_exceptions=True,
        )

        results = []
        for outcome in outcomes:
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, Exception):
                logger.error(f"Batch item evaluation failed: {type(outcome).__name__}: {outcome}")
                outcome = self._fallback(outcome, "batch")
            results.append(outcome)
        return results

    def create_streaming_evaluator(self, policy: Optional[PolicySettings] = None) -> BaseStreamingEvaluator:
        """Streaming evaluator for one turn, using the output policy by default."""
        if not self.settings.enabled:
            return NoOpStreamingEvaluator(provider=self.provider_name)

        return OpenAIStreamingEvaluator(
            evaluator=self,
            policy=policy or self.settings.output_policy,
            strategy=create_strategy(self.settings.streaming_strategy, self.settings),
            context_overlap=self.settings.streaming_context_overlap,
        )

    async def aclose(self) -> None:
        await self.client.aclose()
