"""Tests for SafetyChatClient."""

import asyncio
from typing import List, Optional

import pytest

from chat_safety.clients.chat_backends import ChatBackend, ChatBackendError
from chat_safety.components.evaluators import OpenAIModerationEvaluator
from chat_safety.components.streaming import NoOpStreamingEvaluator
from chat_safety.models.schemas import (
    ChatCompletion,
    ChatMessage,
    ChatRole,
    StreamingUpdate,
    UsageDetails,
    ViolationDirection,
)
from chat_safety.services.evaluation_service import SafetyEvaluationService
from chat_safety.services.safety_chat_client import (
    ChatBlocked,
    ChatSuccess,
    SafetyChatClient,
    SafetyViolationError,
    TurnContext,
    TurnState,
)

from conftest import KeywordModerationClient


class FakeBackend(ChatBackend):
    """Chat backend returning canned replies."""

    def __init__(self, reply: str = "Hello!", chunks: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.reply = reply
        self.chunks = chunks or []
        self.error = error
        self.calls = 0
        self.yielded = 0

    async def complete(self, messages, **options):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return ChatCompletion(
            message=ChatMessage(role=ChatRole.ASSISTANT, content=self.reply),
            model="fake",
            usage=UsageDetails(input_tokens=3, output_tokens=2, total_tokens=5),
        )

    async def stream(self, messages, **options):
        self.calls += 1
        for chunk in self.chunks:
            if self.error is not None:
                raise self.error
            self.yielded += 1
            yield StreamingUpdate(text=chunk)
        yield StreamingUpdate(is_final=True, usage=UsageDetails(total_tokens=7))


def user(text: str) -> List[ChatMessage]:
    return [
        ChatMessage(role=ChatRole.SYSTEM, content="You are helpful."),
        ChatMessage(role=ChatRole.USER, content=text),
    ]


@pytest.fixture
def stream_settings(settings):
    """Evaluate every streamed chunk."""
    return settings.model_copy(update={"streaming_strategy": "periodic", "streaming_chunk_interval": 1})


@pytest.fixture
def moderation_client():
    return KeywordModerationClient()


@pytest.fixture
def safety_service(stream_settings, moderation_client):
    evaluator = OpenAIModerationEvaluator(settings=stream_settings, client=moderation_client)
    return SafetyEvaluationService(evaluator=evaluator, settings=stream_settings)


async def collect(stream):
    return [update async for update in stream]


class TestTurnContext:
    """Tests for turn state transitions."""

    def test_valid_path(self):
        turn = TurnContext()
        for state in (TurnState.EVALUATING_INPUT, TurnState.FORWARDING, TurnState.EVALUATING_OUTPUT, TurnState.DONE):
            turn.transition(state)

        assert turn.state == TurnState.DONE
        assert turn.history[0] == TurnState.IDLE

    def test_invalid_transition(self):
        turn = TurnContext()
        with pytest.raises(RuntimeError):
            turn.transition(TurnState.ABORTED)

    def test_terminal_states(self):
        turn = TurnContext()
        turn.transition(TurnState.EVALUATING_INPUT)
        turn.transition(TurnState.ABORTED)
        with pytest.raises(RuntimeError):
            turn.transition(TurnState.FORWARDING)


class TestComplete:
    """Tests for single-shot turns."""

    @pytest.mark.asyncio
    async def test_success(self, safety_service, moderation_client):
        backend = FakeBackend(reply="Hi, how can I help?")
        client = SafetyChatClient(backend, safety_service)

        outcome = await client.complete(user("hello"))

        assert isinstance(outcome, ChatSuccess)
        assert outcome.completion.text == "Hi, how can I help?"
        assert outcome.turn.state == TurnState.DONE
        assert outcome.turn.history == [
            TurnState.IDLE,
            TurnState.EVALUATING_INPUT,
            TurnState.FORWARDING,
            TurnState.EVALUATING_OUTPUT,
            TurnState.DONE,
        ]
        assert moderation_client.calls == ["hello", "Hi, how can I help?"]

    @pytest.mark.asyncio
    async def test_unsafe_input_not_forwarded(self, safety_service):
        backend = FakeBackend()
        client = SafetyChatClient(backend, safety_service)

        outcome = await client.complete(user("I will kill you"))

        assert isinstance(outcome, ChatBlocked)
        assert outcome.direction == ViolationDirection.USER_INPUT
        assert outcome.turn.state == TurnState.ABORTED
        assert backend.calls == 0

    @pytest.mark.asyncio
    async def test_unsafe_output_discarded(self, safety_service):
        backend = FakeBackend(reply="I will kill you")
        client = SafetyChatClient(backend, safety_service)

        outcome = await client.complete(user("tell me a story"))

        assert isinstance(outcome, ChatBlocked)
        assert outcome.direction == ViolationDirection.AI_OUTPUT
        assert not hasattr(outcome, "completion")
        assert backend.calls == 1

    @pytest.mark.asyncio
    async def test_input_check_only_for_last_user_message(self, safety_service, moderation_client):
        backend = FakeBackend(reply="ok")
        client = SafetyChatClient(backend, safety_service)
        messages = [
            ChatMessage(role=ChatRole.USER, content="I will kill you"),
            ChatMessage(role=ChatRole.ASSISTANT, content="Let's stay calm."),
        ]

        outcome = await client.complete(messages)

        assert isinstance(outcome, ChatSuccess)
        assert TurnState.EVALUATING_INPUT not in outcome.turn.history
        assert moderation_client.calls == ["ok"]

    @pytest.mark.asyncio
    async def test_complete_or_raise(self, safety_service):
        client = SafetyChatClient(FakeBackend(), safety_service)

        with pytest.raises(SafetyViolationError) as exc_info:
            await client.complete_or_raise(user("I will kill you"))

        assert exc_info.value.direction == ViolationDirection.USER_INPUT
        assert exc_info.value.result.is_safe is False

        completion = await client.complete_or_raise(user("hello"))
        assert completion.text == "Hello!"

    @pytest.mark.asyncio
    async def test_backend_error_distinct_from_block(self, safety_service):
        client = SafetyChatClient(FakeBackend(error=ValueError("upstream 502")), safety_service)

        with pytest.raises(ChatBackendError):
            await client.complete(user("hello"))


class TestStream:
    """Tests for streaming turns."""

    @pytest.mark.asyncio
    async def test_safe_stream_passes_through(self, safety_service):
        backend = FakeBackend(chunks=["Once ", "upon ", "a time."])
        client = SafetyChatClient(backend, safety_service)

        updates = await collect(client.stream(user("tell me a story")))

        assert [u.text for u in updates[:-1]] == ["Once ", "upon ", "a time."]
        assert updates[-1].is_final is True
        assert updates[-1].usage.total_tokens == 7

    @pytest.mark.asyncio
    async def test_unsafe_input_raises_before_forwarding(self, safety_service):
        backend = FakeBackend(chunks=["never"])
        client = SafetyChatClient(backend, safety_service)

        with pytest.raises(SafetyViolationError) as exc_info:
            await collect(client.stream(user("I will kill you")))

        assert exc_info.value.direction == ViolationDirection.USER_INPUT
        assert backend.calls == 0

    @pytest.mark.asyncio
    async def test_unsafe_output_stops_stream(self, safety_service):
        backend = FakeBackend(chunks=["Sure. ", "I will ", "kill ", "you ", "later"])
        client = SafetyChatClient(backend, safety_service)
        received = []

        with pytest.raises(SafetyViolationError) as exc_info:
            async for update in client.stream(user("hello")):
                received.append(update.text)

        assert exc_info.value.direction == ViolationDirection.AI_OUTPUT
        assert exc_info.value.processed_chunk_count == 3
        # Chunks before the violation were already delivered; the violating one was not
        assert received == ["Sure. ", "I will "]
        assert backend.yielded == 3

    @pytest.mark.asyncio
    async def test_streaming_evaluator_released_on_violation(self, safety_service, monkeypatch):
        created = []
        original = safety_service.create_streaming_evaluator

        def tracking():
            evaluator = original()
            created.append(evaluator)
            return evaluator

        monkeypatch.setattr(safety_service, "create_streaming_evaluator", tracking)
        client = SafetyChatClient(FakeBackend(chunks=["kill"]), safety_service)

        with pytest.raises(SafetyViolationError):
            await collect(client.stream(user("hello")))

        assert len(created) == 1
        assert created[0].closed is True

    @pytest.mark.asyncio
    async def test_streaming_evaluator_released_on_cancel(self, safety_service, monkeypatch):
        created = []
        original = safety_service.create_streaming_evaluator

        def tracking():
            evaluator = original()
            created.append(evaluator)
            return evaluator

        monkeypatch.setattr(safety_service, "create_streaming_evaluator", tracking)

        class SlowBackend(FakeBackend):
            async def stream(self, messages, **options):
                yield StreamingUpdate(text="Hello ")
                await asyncio.sleep(10)
                yield StreamingUpdate(text="never")

        client = SafetyChatClient(SlowBackend(), safety_service)

        async def consume():
            async for _ in client.stream(user("hello")):
                pass

        task = asyncio.create_task(consume())
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert created[0].closed is True

    @pytest.mark.asyncio
    async def test_backend_stream_error(self, safety_service):
        client = SafetyChatClient(FakeBackend(chunks=["a"], error=ConnectionError("reset")), safety_service)

        with pytest.raises(ChatBackendError):
            await collect(client.stream(user("hello")))

    @pytest.mark.asyncio
    async def test_concurrent_turns_independent(self, safety_service):
        safe = SafetyChatClient(FakeBackend(chunks=["nice ", "day"]), safety_service)
        unsafe = SafetyChatClient(FakeBackend(chunks=["kill ", "them"]), safety_service)

        results = await asyncio.gather(
            collect(safe.stream(user("hi"))),
            collect(unsafe.stream(user("hi"))),
            return_exceptions=True,
        )

        assert [u.text for u in results[0][:-1]] == ["nice ", "day"]
        assert isinstance(results[1], SafetyViolationError)

    @pytest.mark.asyncio
    async def test_safety_layer_error_not_reported_as_backend_error(self, safety_service, monkeypatch):
        class BrokenStreamingEvaluator(NoOpStreamingEvaluator):
            async def evaluate_chunk(self, chunk_text):
                raise RuntimeError("evaluator broken")

        monkeypatch.setattr(safety_service, "create_streaming_evaluator", BrokenStreamingEvaluator)
        client = SafetyChatClient(FakeBackend(chunks=["hello"]), safety_service)

        with pytest.raises(RuntimeError) as exc_info:
            await collect(client.stream(user("hi")))

        assert not isinstance(exc_info.value, ChatBackendError)

    @pytest.mark.asyncio
    async def test_malformed_moderation_score_applies_fail_closed(self, fail_closed_settings):
        class NonFiniteScoreClient(KeywordModerationClient):
            async def moderate(self, text):
                body = await super().moderate(text)
                body["results"][0]["category_scores"]["violence"] = float("nan")
                return body

        stream_settings = fail_closed_settings.model_copy(
            update={"streaming_strategy": "periodic", "streaming_chunk_interval": 1}
        )
        evaluator = OpenAIModerationEvaluator(settings=stream_settings, client=NonFiniteScoreClient())
        service = SafetyEvaluationService(evaluator=evaluator, settings=stream_settings)
        client = SafetyChatClient(FakeBackend(chunks=["Once ", "upon"]), service)
        messages = [ChatMessage(role=ChatRole.ASSISTANT, content="Ready.")]

        with pytest.raises(SafetyViolationError) as exc_info:
            await collect(client.stream(messages))

        assert exc_info.value.direction == ViolationDirection.AI_OUTPUT
        assert exc_info.value.processed_chunk_count == 1
