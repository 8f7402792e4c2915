"""Factory for safety filters."""

from typing import Dict, Type

from chat_safety.components.base import BaseFactory
from chat_safety.components.filters.base import BaseSafetyFilter
from chat_safety.components.filters.masking_filter import ModerationMaskingFilter


class FilterFactory(BaseFactory):
    """Factory for creating safety filters."""

    category = "filters"
    _registry: Dict[str, Type[BaseSafetyFilter]] = {}


FilterFactory.register("moderation_mask", ModerationMaskingFilter)
