from chat_safety.components.base.component import BaseComponent
from chat_safety.components.base.factory import BaseFactory, ComponentNotFoundError

__all__ = ["BaseComponent", "BaseFactory", "ComponentNotFoundError"]
