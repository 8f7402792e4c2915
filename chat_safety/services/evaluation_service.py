"""
Safety evaluation service.

The only entry point other layers use: it short-circuits disabled or empty
input, applies the direction's policy, audits violations and falls back when
evaluation fails unexpectedly.
"""

import logging
from typing import List, Optional

from chat_safety.components.evaluators.base import BaseSafetyEvaluator
from chat_safety.components.evaluators.policy import build_fallback_result
from chat_safety.components.filters.base import BaseSafetyFilter
from chat_safety.components.streaming.base import BaseStreamingEvaluator
from chat_safety.components.streaming.noop_streaming import NoOpStreamingEvaluator
from chat_safety.config import Settings, get_settings
from chat_safety.models.schemas import (
    FilteredTextResult,
    PolicySettings,
    SafetyEvaluationResult,
    SafetyStatus,
    ViolationDirection,
)
from chat_safety.services.audit import AuditLogger
from chat_safety.services.metrics import SafetyMetrics

logger = logging.getLogger(__name__)


class SafetyEvaluationService:
    """Orchestrates evaluation, policy selection, fallback and auditing."""

    def __init__(
        self,
        evaluator: BaseSafetyEvaluator,
        settings: Optional[Settings] = None,
        metrics: Optional[SafetyMetrics] = None,
        audit_logger: Optional[AuditLogger] = None,
        safety_filter: Optional[BaseSafetyFilter] = None,
    ):
        self.evaluator = evaluator
        self.settings = settings or get_settings()
        self.metrics = metrics or SafetyMetrics(self.settings.service_name)
        self.audit = audit_logger or AuditLogger(self.settings)
        self.safety_filter = safety_filter

    @property
    def provider_name(self) -> str:
        return self.evaluator.get_provider_name()

    def _safe(self) -> SafetyEvaluationResult:
        return SafetyEvaluationResult.safe(provider=self.provider_name)

    async def evaluate_user_input(self, text: str) -> SafetyEvaluationResult:
        """Evaluate a user message with the input policy."""
        return await self._evaluate(
            text, self.settings.input_policy, ViolationDirection.USER_INPUT.value, "user input evaluation"
        )

    async def evaluate_output(self, text: str) -> SafetyEvaluationResult:
        """Evaluate a model response with the output policy."""
        return await self._evaluate(
            text, self.settings.output_policy, ViolationDirection.AI_OUTPUT.value, "output evaluation"
        )

    async def _evaluate(
        self,
        text: str,
        policy: PolicySettings,
        content_type: str,
        context: str,
    ) -> SafetyEvaluationResult:
        if not self.settings.enabled or not text or not text.strip():
            return self._safe()

        try:
            result = await self.evaluator.evaluate_text(text, policy)
        except Exception as e:
            logger.error(f"Safety evaluation failed in {context}: {type(e).__name__}: {e}")
            return self._fallback(e, context)

        if not result.is_safe:
            logger.warning(
                f"Unsafe {content_type} detected: categories={result.category_names} "
                f"risk={result.risk_score}"
            )
            self.audit.log_violation(text, result, content_type)
        return result

    async def evaluate_batch(self, texts: List[str]) -> List[SafetyEvaluationResult]:
        """
        Evaluate several texts with the input policy.

        Empty and whitespace-only entries are dropped before dispatch and get
        no result. When safety is disabled every entry gets a safe result.

        Args:
            texts: Texts to evaluate

        Returns:
            List[SafetyEvaluationResult]: One result per retained entry, in order
        """
        if not self.settings.enabled:
            return [self._safe() for _ in texts]

        retained = [text for text in texts if text and text.strip()]
        if not retained:
            return []

        try:
            results = await self.evaluator.evaluate_batch(retained, self.settings.input_policy)
        except Exception as e:
            logger.error(f"Batch safety evaluation failed: {type(e).__name__}: {e}")
            return [self._fallback(e, "batch evaluation") for _ in retained]

        for text, result in zip(retained, results):
            if not result.is_safe:
                self.audit.log_violation(text, result, "batch")
        return results

    def create_streaming_evaluator(self) -> BaseStreamingEvaluator:
        """Streaming evaluator for one turn, checked against the output policy."""
        if not self.settings.enabled:
            return NoOpStreamingEvaluator(provider=self.provider_name)
        return self.evaluator.create_streaming_evaluator(self.settings.output_policy)

    def record_streaming_violation(self, content: str, result: SafetyEvaluationResult) -> None:
        """Audit a violation found while streaming."""
        self.audit.log_violation(content, result, "ai_output_stream")

    async def filter_text(self, text: str) -> Optional[FilteredTextResult]:
        """
        Run the configured filter over text.

        Returns:
            FilteredTextResult: Filter output, or an unchanged result when
            safety is disabled; None when no filter is configured or the
            filter fails
        """
        if self.safety_filter is None:
            return None
        if not self.settings.enabled:
            return BaseSafetyFilter.passthrough(text)

        try:
            return await self.safety_filter.filter_text(text)
        except Exception as e:
            logger.error(f"Safety filter failed: {type(e).__name__}: {e}")
            return None

    def get_status(self) -> SafetyStatus:
        return SafetyStatus(
            is_enabled=self.settings.enabled,
            provider=self.provider_name,
            supported_categories=self.evaluator.get_supported_categories(),
            has_filter=self.safety_filter is not None,
            filter_provider=self.safety_filter.get_provider_name() if self.safety_filter else None,
            fallback_behavior=self.settings.fallback_behavior,
            input_policy=self.settings.input_policy,
            output_policy=self.settings.output_policy,
        )

    def _fallback(self, error: Exception, context: str) -> SafetyEvaluationResult:
        behavior = self.settings.fallback_behavior
        self.metrics.record_error(self.provider_name, "service", type(error).__name__)
        self.metrics.record_fallback(behavior)
        return build_fallback_result(
            behavior,
            error,
            provider=self.provider_name,
            risk_score=self.settings.service_fallback_risk_score,
            context=context,
            category=self.settings.fallback_category,
            severity=self.settings.fallback_severity,
        )

    async def aclose(self) -> None:
        await self.evaluator.aclose()
