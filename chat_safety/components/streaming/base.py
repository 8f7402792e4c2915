"""Base class for streaming safety evaluators."""

from abc import abstractmethod

from chat_safety.components.base import BaseComponent
from chat_safety.models.schemas import SafetyEvaluationResult


class StreamingEvaluatorClosedError(Exception):
    """Raised when a closed streaming evaluator is used."""

    def __init__(self, name: str = "streaming evaluator"):
        super().__init__(f"Cannot evaluate chunk: {name} has been closed")


class BaseStreamingEvaluator(BaseComponent):
    """Abstract base class for streaming evaluators.

    One instance serves one turn. Chunks are evaluated strictly in arrival
    order. Use as a context manager (async or sync) so the instance is
    released on every exit path; closing is idempotent.
    """

    category = "streaming_evaluators"

    def __init__(self):
        self._closed = False

    @abstractmethod
    async def evaluate_chunk(self, chunk_text: str) -> SafetyEvaluationResult:
        """Append a chunk and evaluate the accumulated content when due."""
        pass

    @abstractmethod
    def get_accumulated_content(self) -> str:
        pass

    @abstractmethod
    def get_processed_chunk_count(self) -> int:
        pass

    @abstractmethod
    def has_violations(self) -> bool:
        pass

    @abstractmethod
    def reset(self) -> None:
        """Clear buffer, counters and the violation flag for deliberate reuse."""
        pass

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise StreamingEvaluatorClosedError(self.__class__.__name__)

    def _release(self) -> None:
        """Drop held resources. Called once by ``close()``."""
        pass

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._release()

    async def aclose(self) -> None:
        self.close()

    async def __aenter__(self) -> "BaseStreamingEvaluator":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def __enter__(self) -> "BaseStreamingEvaluator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
