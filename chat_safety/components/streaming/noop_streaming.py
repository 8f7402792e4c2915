"""No-op streaming evaluator used when safety is disabled."""

from chat_safety.components.streaming.base import BaseStreamingEvaluator
from chat_safety.models.schemas import SafetyEvaluationResult


class NoOpStreamingEvaluator(BaseStreamingEvaluator):
    """Always safe, never violates, keeps no state."""

    name = "noop"
    description = "Streaming evaluator that allows all content"

    def __init__(self, provider: str = "Disabled"):
        super().__init__()
        self.provider = provider

    async def evaluate_chunk(self, chunk_text: str) -> SafetyEvaluationResult:
        self._ensure_open()
        return SafetyEvaluationResult.safe(provider=self.provider)

    def get_accumulated_content(self) -> str:
        return ""

    def get_processed_chunk_count(self) -> int:
        return 0

    def has_violations(self) -> bool:
        return False

    def reset(self) -> None:
        pass
