"""Safety filters."""

from chat_safety.components.filters.base import BaseSafetyFilter
from chat_safety.components.filters.factory import FilterFactory
from chat_safety.components.filters.masking_filter import ModerationMaskingFilter, split_sentences

__all__ = [
    "BaseSafetyFilter",
    "FilterFactory",
    "ModerationMaskingFilter",
    "split_sentences",
]
