"""Base factory class for selecting safety component variants."""

from typing import Dict, List, Type

from chat_safety.components.base.component import BaseComponent


class ComponentNotFoundError(Exception):
    """Raised when a component is not found in the registry."""

    def __init__(self, name: str, category: str, available: List[str] = None):
        self.name = name
        self.category = category
        self.available = available or []
        available_str = ", ".join(self.available) if self.available else "none"
        super().__init__(
            f"Component '{name}' not found in category '{category}'. "
            f"Available: {available_str}"
        )


class BaseFactory:
    """Base factory for creating component variants by name.

    Each component category has its own factory subclass with its own
    ``_registry`` dict.
    """

    category: str = ""
    _registry: Dict[str, Type[BaseComponent]] = {}

    @classmethod
    def register(cls, name: str, component_class: Type[BaseComponent]) -> None:
        """Register a component class with the factory.

        Args:
            name: Unique name for the component
            component_class: The component class to register
        """
        cls._registry[name] = component_class

    @classmethod
    def unregister(cls, name: str) -> None:
        """Unregister a component from the factory."""
        cls._registry.pop(name, None)

    @classmethod
    def create(cls, name: str, **kwargs) -> BaseComponent:
        """Factory method to create a component instance.

        Args:
            name: Name of the component to create
            **kwargs: Arguments to pass to the component constructor

        Returns:
            Instance of the requested component

        Raises:
            ComponentNotFoundError: If the component is not registered
        """
        return cls.get(name)(**kwargs)

    @classmethod
    def get(cls, name: str) -> Type[BaseComponent]:
        """Get a component class without instantiating it.

        Raises:
            ComponentNotFoundError: If the component is not registered
        """
        if name not in cls._registry:
            raise ComponentNotFoundError(
                name=name,
                category=cls.category,
                available=list(cls._registry.keys()),
            )
        return cls._registry[name]

    @classmethod
    def has(cls, name: str) -> bool:
        """Check if a component is registered."""
        return name in cls._registry

    @classmethod
    def list_names(cls) -> List[str]:
        """List all registered component names."""
        return list(cls._registry.keys())
