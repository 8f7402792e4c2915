"""Base class for safety evaluators."""

from abc import abstractmethod
from typing import TYPE_CHECKING, List, Optional

from chat_safety.components.base import BaseComponent
from chat_safety.models.schemas import HarmCategory, PolicySettings, SafetyEvaluationResult

if TYPE_CHECKING:
    from chat_safety.components.streaming.base import BaseStreamingEvaluator


class BaseSafetyEvaluator(BaseComponent):
    """Abstract base class for safety evaluators.

    An evaluator scores one text at a time against the harm taxonomy and
    never raises for provider failures; those become fallback results.
    """

    category = "evaluators"
    provider_name: str = ""

    @abstractmethod
    async def evaluate_text(
        self,
        text: str,
        policy: Optional[PolicySettings] = None,
        streaming: bool = False,
    ) -> SafetyEvaluationResult:
        """Evaluate text.

        Args:
            text: Text to evaluate
            policy: Thresholds to apply (input policy when omitted)
            streaming: The text is a window of a streamed response

        Returns:
            Complete evaluation result
        """
        pass

    @abstractmethod
    async def evaluate_batch(
        self,
        texts: List[str],
        policy: Optional[PolicySettings] = None,
    ) -> List[SafetyEvaluationResult]:
        """Evaluate several texts independently; one result per text, in order."""
        pass

    @abstractmethod
    def create_streaming_evaluator(
        self, policy: Optional[PolicySettings] = None
    ) -> "BaseStreamingEvaluator":
        """Create a streaming evaluator for one turn."""
        pass

    def get_supported_categories(self) -> List[HarmCategory]:
        return list(HarmCategory)

    def get_provider_name(self) -> str:
        return self.provider_name or self.name

    async def aclose(self) -> None:
        """Release provider resources."""
        pass
