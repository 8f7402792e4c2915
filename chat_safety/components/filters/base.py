"""Base class for safety filters."""

from abc import abstractmethod

from chat_safety.components.base import BaseComponent
from chat_safety.models.schemas import FilteredTextResult


class BaseSafetyFilter(BaseComponent):
    """Abstract base class for filters that rewrite unsafe text segments."""

    category = "filters"
    provider_name: str = ""

    @abstractmethod
    async def filter_text(self, text: str) -> FilteredTextResult:
        """Rewrite unsafe segments of text.

        Args:
            text: Text to filter

        Returns:
            Original and filtered text with the actions applied
        """
        pass

    def get_provider_name(self) -> str:
        return self.provider_name or self.name

    @staticmethod
    def passthrough(text: str) -> FilteredTextResult:
        return FilteredTextResult(original_text=text, filtered_text=text, was_filtered=False)
