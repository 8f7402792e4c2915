"""
Buffering strategies for streaming evaluation.

A strategy looks at the buffer after a chunk has been appended and returns
the buffer positions at which an evaluation should run. Positions are end
offsets into the buffer, in ascending order.
"""

import re
from abc import ABC, abstractmethod
from typing import Callable, Dict, List

from chat_safety.components.base import ComponentNotFoundError
from chat_safety.config import Settings

# Terminal punctuation, optional closing quotes/brackets, optional trailing whitespace
SENTENCE_END_PATTERN = re.compile(r"[.!?]+[\"')\]”’]*\s*$")
PARAGRAPH_BREAK_PATTERN = re.compile(r"\n[ \t]*\n")


class BufferingStrategy(ABC):
    """Decides when a streaming evaluator should call the provider."""

    name: str = ""

    @abstractmethod
    def triggers(self, buffer: str, previous_length: int, chunk: str, chunk_count: int) -> List[int]:
        """
        Args:
            buffer: Accumulated text including the new chunk
            previous_length: Buffer length before the new chunk was appended
            chunk: The new chunk
            chunk_count: Chunks processed so far, including this one

        Returns:
            Trigger positions, ascending; empty when no evaluation is due
        """
        pass


class CharacterCountStrategy(BufferingStrategy):
    """One trigger for every ``threshold`` characters accumulated."""

    name = "character_count"

    def __init__(self, threshold: int = 300):
        if threshold <= 0:
            raise ValueError("threshold must be positive")
        self.threshold = threshold

    def triggers(self, buffer: str, previous_length: int, chunk: str, chunk_count: int) -> List[int]:
        first = previous_length // self.threshold + 1
        last = len(buffer) // self.threshold
        return [k * self.threshold for k in range(first, last + 1)]


class SentenceBoundaryStrategy(BufferingStrategy):
    """Trigger when the new chunk completes a sentence."""

    name = "sentence"

    def triggers(self, buffer: str, previous_length: int, chunk: str, chunk_count: int) -> List[int]:
        if chunk.strip() and SENTENCE_END_PATTERN.search(chunk):
            return [len(buffer)]
        return []


class ParagraphBoundaryStrategy(BufferingStrategy):
    """Trigger on a new blank line, including one split across chunks."""

    name = "paragraph"

    def triggers(self, buffer: str, previous_length: int, chunk: str, chunk_count: int) -> List[int]:
        # A break may start before the chunk; scan from the last newline already seen
        start = buffer.rfind("\n", 0, previous_length)
        start = max(start, 0)
        for match in PARAGRAPH_BREAK_PATTERN.finditer(buffer, start):
            if match.end() > previous_length:
                return [len(buffer)]
        return []


class PeriodicStrategy(BufferingStrategy):
    """Trigger every ``interval`` chunks."""

    name = "periodic"

    def __init__(self, interval: int = 10):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval

    def triggers(self, buffer: str, previous_length: int, chunk: str, chunk_count: int) -> List[int]:
        if chunk_count % self.interval == 0:
            return [len(buffer)]
        return []


class CompositeStrategy(BufferingStrategy):
    """Union of several strategies, collapsed to one trigger at the furthest position."""

    name = "composite"

    def __init__(self, strategies: List[BufferingStrategy]):
        self.strategies = strategies

    def triggers(self, buffer: str, previous_length: int, chunk: str, chunk_count: int) -> List[int]:
        positions = [
            position
            for strategy in self.strategies
            for position in strategy.triggers(buffer, previous_length, chunk, chunk_count)
        ]
        return [max(positions)] if positions else []


def default_composite(settings: Settings) -> CompositeStrategy:
    return CompositeStrategy([
        CharacterCountStrategy(settings.streaming_char_threshold),
        SentenceBoundaryStrategy(),
        ParagraphBoundaryStrategy(),
        PeriodicStrategy(settings.streaming_chunk_interval),
    ])


STRATEGY_BUILDERS: Dict[str, Callable[[Settings], BufferingStrategy]] = {
    CharacterCountStrategy.name: lambda s: CharacterCountStrategy(s.streaming_char_threshold),
    SentenceBoundaryStrategy.name: lambda s: SentenceBoundaryStrategy(),
    ParagraphBoundaryStrategy.name: lambda s: ParagraphBoundaryStrategy(),
    PeriodicStrategy.name: lambda s: PeriodicStrategy(s.streaming_chunk_interval),
    CompositeStrategy.name: default_composite,
}


def create_strategy(name: str, settings: Settings) -> BufferingStrategy:
    """
    Build a buffering strategy by name.

    Raises:
        ComponentNotFoundError: If the name is unknown
    """
    builder = STRATEGY_BUILDERS.get(name)
    if builder is None:
        raise ComponentNotFoundError(
            name=name,
            category="streaming_strategies",
            available=list(STRATEGY_BUILDERS.keys()),
        )
    return builder(settings)
