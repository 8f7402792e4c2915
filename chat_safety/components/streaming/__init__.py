"""Streaming safety evaluators and buffering strategies."""

from chat_safety.components.streaming.base import BaseStreamingEvaluator, StreamingEvaluatorClosedError
from chat_safety.components.streaming.noop_streaming import NoOpStreamingEvaluator
from chat_safety.components.streaming.openai_streaming import OpenAIStreamingEvaluator
from chat_safety.components.streaming.strategies import (
    BufferingStrategy,
    CharacterCountStrategy,
    CompositeStrategy,
    ParagraphBoundaryStrategy,
    PeriodicStrategy,
    SentenceBoundaryStrategy,
    create_strategy,
)

__all__ = [
    "BaseStreamingEvaluator",
    "BufferingStrategy",
    "CharacterCountStrategy",
    "CompositeStrategy",
    "NoOpStreamingEvaluator",
    "OpenAIStreamingEvaluator",
    "ParagraphBoundaryStrategy",
    "PeriodicStrategy",
    "SentenceBoundaryStrategy",
    "StreamingEvaluatorClosedError",
    "create_strategy",
]
