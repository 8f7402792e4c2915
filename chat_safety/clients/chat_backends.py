"""Chat-completion backends wrapped by the safety chat client."""

import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional

from chat_safety.models.schemas import (
    ChatCompletion,
    ChatMessage,
    ChatRole,
    StreamingUpdate,
    UsageDetails,
)

logger = logging.getLogger(__name__)


class ChatBackendError(Exception):
    """Raised when the chat backend call fails."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"Chat backend error ({provider}): {message}")


class ChatBackend(ABC):
    """Abstract chat-completion capability."""

    @abstractmethod
    async def complete(self, messages: List[ChatMessage], **options: Any) -> ChatCompletion:
        """Single-shot chat completion."""
        pass

    @abstractmethod
    def stream(self, messages: List[ChatMessage], **options: Any) -> AsyncIterator[StreamingUpdate]:
        """Streaming chat completion.

        Yields text updates in order, terminated by one update with
        ``is_final`` set that carries aggregate usage.
        """
        pass


def to_openai_messages(messages: List[ChatMessage]) -> List[Dict[str, str]]:
    return [{"role": m.role.value, "content": m.content} for m in messages]


def _usage_from_openai(usage: Any) -> Optional[UsageDetails]:
    if usage is None:
        return None
    return UsageDetails(
        input_tokens=usage.prompt_tokens or 0,
        output_tokens=usage.completion_tokens or 0,
        total_tokens=usage.total_tokens or 0,
    )


class OpenAIChatBackend(ChatBackend):
    """OpenAI chat completions backend."""

    provider = "openai"

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", client: Any = None):
        self.api_key = api_key
        self.model = model
        self._client = client

    @property
    def client(self):
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def complete(self, messages: List[ChatMessage], **options: Any) -> ChatCompletion:
        """Chat completion using OpenAI."""
        model = options.pop("model", None) or self.model
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=to_openai_messages(messages),
                **options,
            )
        except Exception as e:
            raise ChatBackendError(self.provider, str(e)) from e

        choice = response.choices[0]
        return ChatCompletion(
            message=ChatMessage(role=ChatRole.ASSISTANT, content=choice.message.content or ""),
            model=response.model,
            finish_reason=choice.finish_reason,
            usage=_usage_from_openai(response.usage),
        )

    async def stream(self, messages: List[ChatMessage], **options: Any) -> AsyncIterator[StreamingUpdate]:
        """Streaming chat completion using OpenAI."""
        model = options.pop("model", None) or self.model
        finish_reason = None
        usage = None

        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=to_openai_messages(messages),
                stream=True,
                stream_options={"include_usage": True},
                **options,
            )
            async for chunk in response:
                if chunk.usage is not None:
                    usage = _usage_from_openai(chunk.usage)
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                if choice.finish_reason:
                    finish_reason = choice.finish_reason
                if choice.delta.content:
                    yield StreamingUpdate(text=choice.delta.content)
        except ChatBackendError:
            raise
        except Exception as e:
            raise ChatBackendError(self.provider, str(e)) from e

        logger.debug(f"OpenAI stream finished ({finish_reason})")
        yield StreamingUpdate(is_final=True, finish_reason=finish_reason, usage=usage)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
