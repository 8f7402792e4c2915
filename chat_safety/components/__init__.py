"""Safety components package."""

from chat_safety.components.base import BaseComponent, BaseFactory, ComponentNotFoundError

__all__ = [
    "BaseComponent",
    "BaseFactory",
    "ComponentNotFoundError",
]
