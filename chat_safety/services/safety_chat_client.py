"""
Safety-intercepting chat client.

Wraps a chat backend so every turn is checked: the latest user message
before forwarding, and the model output after (single-shot) or during
(streaming) generation.
"""

import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, List, Optional, Union

from chat_safety.clients.chat_backends import ChatBackend, ChatBackendError
from chat_safety.models.schemas import (
    ChatCompletion,
    ChatMessage,
    ChatRole,
    SafetyEvaluationResult,
    StreamingUpdate,
    ViolationDirection,
)
from chat_safety.services.evaluation_service import SafetyEvaluationService

logger = logging.getLogger(__name__)


class SafetyViolationError(Exception):
    """Raised when a turn is aborted because content is unsafe."""

    def __init__(
        self,
        result: SafetyEvaluationResult,
        direction: ViolationDirection,
        processed_chunk_count: int = 0,
    ):
        self.result = result
        self.direction = direction
        self.processed_chunk_count = processed_chunk_count
        categories = ", ".join(result.category_names) or "unspecified"
        super().__init__(
            f"Safety violation in {direction.value} (risk {result.risk_score}; categories: {categories})"
        )


class TurnState(str, Enum):
    IDLE = "idle"
    EVALUATING_INPUT = "evaluating_input"
    FORWARDING = "forwarding"
    EVALUATING_OUTPUT = "evaluating_output"
    DONE = "done"
    ABORTED = "aborted"


ALLOWED_TRANSITIONS = {
    TurnState.IDLE: {TurnState.EVALUATING_INPUT, TurnState.FORWARDING},
    TurnState.EVALUATING_INPUT: {TurnState.FORWARDING, TurnState.ABORTED},
    TurnState.FORWARDING: {TurnState.EVALUATING_OUTPUT, TurnState.DONE},
    # Streaming alternates between forwarding and evaluating each chunk
    TurnState.EVALUATING_OUTPUT: {TurnState.FORWARDING, TurnState.DONE, TurnState.ABORTED},
    TurnState.DONE: set(),
    TurnState.ABORTED: set(),
}


@dataclass
class TurnContext:
    """State of one chat turn."""
    state: TurnState = TurnState.IDLE
    history: List[TurnState] = field(default_factory=lambda: [TurnState.IDLE])
    processed_chunk_count: int = 0

    def transition(self, new_state: TurnState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid turn transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)


@dataclass
class ChatSuccess:
    completion: ChatCompletion
    turn: TurnContext


@dataclass
class ChatBlocked:
    result: SafetyEvaluationResult
    direction: ViolationDirection
    processed_chunk_count: int = 0
    turn: Optional[TurnContext] = None

    def to_error(self) -> SafetyViolationError:
        return SafetyViolationError(self.result, self.direction, self.processed_chunk_count)


ChatOutcome = Union[ChatSuccess, ChatBlocked]


def _latest_user_text(messages: List[ChatMessage]) -> Optional[str]:
    """Text of the most recent message if it is a non-empty user message."""
    if not messages:
        return None
    last = messages[-1]
    if last.role != ChatRole.USER or not last.content.strip():
        return None
    return last.content


class SafetyChatClient:
    """
    Chat backend wrapper that enforces safety on every turn.

    Each call runs its own turn, so concurrent turns share nothing but the
    safety service. Streaming enforcement is best-effort: chunks already
    yielded before a violation is detected cannot be recalled.
    """

    def __init__(self, inner: ChatBackend, safety_service: SafetyEvaluationService):
        self.inner = inner
        self.safety_service = safety_service

    async def _check_input(self, messages: List[ChatMessage], turn: TurnContext) -> Optional[ChatBlocked]:
        text = _latest_user_text(messages)
        if text is None:
            turn.transition(TurnState.FORWARDING)
            return None

        turn.transition(TurnState.EVALUATING_INPUT)
        result = await self.safety_service.evaluate_user_input(text)
        if not result.is_safe:
            turn.transition(TurnState.ABORTED)
            logger.warning(f"User input blocked (risk={result.risk_score})")
            return ChatBlocked(result=result, direction=ViolationDirection.USER_INPUT, turn=turn)

        turn.transition(TurnState.FORWARDING)
        return None

    async def complete(self, messages: List[ChatMessage], **options: Any) -> ChatOutcome:
        """
        Run one single-shot turn.

        Args:
            messages: Conversation so far
            **options: Passed through to the backend

        Returns:
            ChatOutcome: ``ChatSuccess`` with the completion, or
            ``ChatBlocked`` when input or output was unsafe (a blocked
            completion is discarded)

        Raises:
            ChatBackendError: If the backend call fails
        """
        turn = TurnContext()
        blocked = await self._check_input(messages, turn)
        if blocked is not None:
            return blocked

        try:
            completion = await self.inner.complete(messages, **options)
        except ChatBackendError:
            raise
        except Exception as e:
            raise ChatBackendError(type(self.inner).__name__, str(e)) from e

        turn.transition(TurnState.EVALUATING_OUTPUT)
        result = await self.safety_service.evaluate_output(completion.text)
        if not result.is_safe:
            turn.transition(TurnState.ABORTED)
            logger.warning(f"Model output blocked (risk={result.risk_score})")
            return ChatBlocked(result=result, direction=ViolationDirection.AI_OUTPUT, turn=turn)

        turn.transition(TurnState.DONE)
        return ChatSuccess(completion=completion, turn=turn)

    async def complete_or_raise(self, messages: List[ChatMessage], **options: Any) -> ChatCompletion:
        """Like ``complete`` but raises ``SafetyViolationError`` when blocked."""
        outcome = await self.complete(messages, **options)
        if isinstance(outcome, ChatBlocked):
            raise outcome.to_error()
        return outcome.completion

    async def stream(self, messages: List[ChatMessage], **options: Any) -> AsyncIterator[StreamingUpdate]:
        """
        Run one streaming turn.

        Each text update is evaluated before it is yielded. The final marker
        is passed through unchanged.

        Raises:
            SafetyViolationError: If the input or the accumulated output is unsafe
            ChatBackendError: If the backend stream fails
        """
        turn = TurnContext()
        blocked = await self._check_input(messages, turn)
        if blocked is not None:
            raise blocked.to_error()

        async with self.safety_service.create_streaming_evaluator() as evaluator:
            async with aclosing(self._backend_updates(messages, **options)) as updates:
                async for update in updates:
                    if update.text:
                        turn.transition(TurnState.EVALUATING_OUTPUT)
                        result = await evaluator.evaluate_chunk(update.text)
                        turn.processed_chunk_count = evaluator.get_processed_chunk_count()
                        if not result.is_safe:
                            turn.transition(TurnState.ABORTED)
                            logger.warning(
                                f"Stream aborted after {turn.processed_chunk_count} chunks "
                                f"(risk={result.risk_score})"
                            )
                            self.safety_service.record_streaming_violation(
                                evaluator.get_accumulated_content(), result
                            )
                            raise SafetyViolationError(
                                result,
                                ViolationDirection.AI_OUTPUT,
                                processed_chunk_count=turn.processed_chunk_count,
                            )
                        turn.transition(TurnState.FORWARDING)
                    yield update

        turn.transition(TurnState.DONE)

    async def _backend_updates(self, messages: List[ChatMessage], **options: Any) -> AsyncIterator[StreamingUpdate]:
        """Backend stream with backend failures reported as ``ChatBackendError``."""
        try:
            async for update in self.inner.stream(messages, **options):
                yield update
        except ChatBackendError:
            raise
        except Exception as e:
            raise ChatBackendError(type(self.inner).__name__, str(e)) from e
