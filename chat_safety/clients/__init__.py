"""External clients: moderation provider, chat backend and circuit breaker."""

from chat_safety.clients.chat_backends import ChatBackend, ChatBackendError, OpenAIChatBackend
from chat_safety.clients.circuit_breaker import CircuitBreaker, CircuitOpenError, CircuitState
from chat_safety.clients.moderation_client import (
    ModerationClient,
    ModerationError,
    ModerationNotConfiguredError,
    ModerationResponseError,
    ModerationTimeoutError,
    ModerationTransportError,
)

__all__ = [
    "ChatBackend",
    "ChatBackendError",
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "ModerationClient",
    "ModerationError",
    "ModerationNotConfiguredError",
    "ModerationResponseError",
    "ModerationTimeoutError",
    "ModerationTransportError",
    "OpenAIChatBackend",
]
