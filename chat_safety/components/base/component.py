"""Base component class for all safety components."""

from abc import ABC
from typing import Any, Dict


class BaseComponent(ABC):
    """Abstract base class for safety components.

    Evaluators, streaming evaluators and filters inherit from this class so
    they can be registered with a factory and selected by name at construction.
    """

    # Component metadata - must be defined by subclasses
    name: str = ""
    description: str = ""
    category: str = ""  # evaluators, filters

    def to_dict(self) -> Dict[str, Any]:
        """Convert component metadata to dictionary.

        Returns:
            Dictionary with component information.
        """
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category,
        }

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name='{self.name}', category='{self.category}')>"
