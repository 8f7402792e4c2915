"""Streaming evaluator backed by a moderation evaluator."""

import logging
from typing import TYPE_CHECKING, Optional

from chat_safety.components.streaming.base import BaseStreamingEvaluator
from chat_safety.components.streaming.strategies import BufferingStrategy
from chat_safety.models.schemas import EvaluationMetadata, PolicySettings, SafetyEvaluationResult

if TYPE_CHECKING:
    from chat_safety.components.evaluators.base import BaseSafetyEvaluator

logger = logging.getLogger(__name__)


class OpenAIStreamingEvaluator(BaseStreamingEvaluator):
    """
    Buffers streamed chunks and evaluates the accumulated text whenever the
    buffering strategy fires.

    Each evaluation covers the text since the previous trigger plus
    ``context_overlap`` characters before it. Once a window is unsafe the
    violation is sticky: later chunks are still buffered and counted, but the
    stored violation is returned without calling the provider again.
    """

    name = "openai"
    description = "Streaming evaluator using OpenAI moderation windows"

    def __init__(
        self,
        evaluator: "BaseSafetyEvaluator",
        policy: PolicySettings,
        strategy: BufferingStrategy,
        context_overlap: int = 50,
    ):
        super().__init__()
        self._evaluator: Optional["BaseSafetyEvaluator"] = evaluator
        self.provider = evaluator.get_provider_name()
        self.policy = policy
        self.strategy = strategy
        self.context_overlap = context_overlap
        self.reset()

    def reset(self) -> None:
        self._buffer = ""
        self._chunk_count = 0
        self._last_position = 0
        self._violation: Optional[SafetyEvaluationResult] = None
        self._last_result = SafetyEvaluationResult.safe(
            provider=self.provider, evaluation_type="streaming"
        )

    async def evaluate_chunk(self, chunk_text: str) -> SafetyEvaluationResult:
        """
        Append a chunk and evaluate the buffer if the strategy triggers.

        Args:
            chunk_text: Next streamed text fragment

        Returns:
            SafetyEvaluationResult: Verdict of the latest window, the stored
            violation, or the last safe result when nothing was evaluated

        Raises:
            StreamingEvaluatorClosedError: If the evaluator has been closed
        """
        self._ensure_open()

        self._chunk_count += 1
        previous_length = len(self._buffer)
        self._buffer += chunk_text

        if self._violation is not None:
            return self._violation

        positions = self.strategy.triggers(
            self._buffer, previous_length, chunk_text, self._chunk_count
        )
        evaluator = self._evaluator
        for position in positions:
            start = max(0, self._last_position - self.context_overlap)
            window = self._buffer[start:position]
            self._last_position = position
            if not window.strip():
                continue

            result = await evaluator.evaluate_text(window, self.policy, streaming=True)
            result = self._annotate(result, position, len(window))
            self._last_result = result

            if not result.is_safe:
                self._violation = result
                logger.warning(
                    f"Streaming violation at chunk {self._chunk_count}: "
                    f"categories={result.category_names} risk={result.risk_score}"
                )
                return result
            if self._closed:
                # Closed while the window was being evaluated; skip the remaining triggers
                return result

        return self._last_result

    def _annotate(self, result: SafetyEvaluationResult, position: int, window_length: int) -> SafetyEvaluationResult:
        result = result.model_copy(deep=True)
        if result.metadata is None:
            result.metadata = EvaluationMetadata(provider=self.provider)
        result.metadata.additional_data.update({
            "chunk_number": self._chunk_count,
            "evaluation_type": "streaming",
            "window_length": window_length,
            "trigger_position": position,
        })
        return result

    def get_accumulated_content(self) -> str:
        return self._buffer

    def get_processed_chunk_count(self) -> int:
        return self._chunk_count

    def has_violations(self) -> bool:
        return self._violation is not None

    def _release(self) -> None:
        self._evaluator = None
