"""No-op evaluator used when safety is disabled."""

from typing import List, Optional

from chat_safety.components.evaluators.base import BaseSafetyEvaluator
from chat_safety.components.streaming import BaseStreamingEvaluator, NoOpStreamingEvaluator
from chat_safety.models.schemas import PolicySettings, SafetyEvaluationResult


class NoOpSafetyEvaluator(BaseSafetyEvaluator):
    """Always returns safe results without any network call."""

    name = "noop"
    description = "Evaluator that allows all content"
    provider_name = "Disabled"

    def __init__(self, **kwargs):
        pass

    async def evaluate_text(
        self,
        text: str,
        policy: Optional[PolicySettings] = None,
        streaming: bool = False,
    ) -> SafetyEvaluationResult:
        return SafetyEvaluationResult.safe(provider=self.provider_name)

    async def evaluate_batch(
        self,
        texts: List[str],
        policy: Optional[PolicySettings] = None,
    ) -> List[SafetyEvaluationResult]:
        return [SafetyEvaluationResult.safe(provider=self.provider_name) for _ in texts]

    def create_streaming_evaluator(self, policy: Optional[PolicySettings] = None) -> BaseStreamingEvaluator:
        return NoOpStreamingEvaluator(provider=self.provider_name)
