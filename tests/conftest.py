"""Pytest configuration and fixtures."""

from typing import Dict, List, Optional

import httpx
import pytest

from chat_safety.clients.moderation_client import ModerationClient
from chat_safety.config import Settings
from chat_safety.models.schemas import FallbackBehavior
from chat_safety.services.metrics import SafetyMetrics

PROVIDER_CATEGORIES = [
    "hate",
    "hate/threatening",
    "harassment",
    "harassment/threatening",
    "self-harm",
    "self-harm/intent",
    "self-harm/instructions",
    "sexual",
    "sexual/minors",
    "violence",
    "violence/graphic",
    "illicit",
]


def moderation_body(scores: Optional[Dict[str, float]] = None, flagged: Optional[List[str]] = None) -> dict:
    """
    Build a moderation response in the map-based shape.

    Args:
        scores: Provider category -> score; unspecified categories score 0.01
        flagged: Categories to flag (defaults to every category in ``scores``)
    """
    scores = scores or {}
    flagged = list(scores) if flagged is None else flagged
    return {
        "id": "modr-123",
        "model": "omni-moderation-latest",
        "results": [
            {
                "flagged": bool(flagged),
                "categories": {name: name in flagged for name in PROVIDER_CATEGORIES},
                "category_scores": {name: scores.get(name, 0.01) for name in PROVIDER_CATEGORIES},
                "category_applied_input_types": {name: ["text"] for name in PROVIDER_CATEGORIES},
            }
        ],
    }


class KeywordModerationClient:
    """Moderation client stand-in that flags text by keyword."""

    KEYWORDS = {
        "kill": ("violence", 0.95),
        "hurt myself": ("self-harm", 0.75),
        "hate you": ("harassment", 0.65),
    }

    def __init__(self, error: Optional[Exception] = None):
        self.calls: List[str] = []
        self.error = error
        self.closed = False

    async def moderate(self, text: str) -> dict:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        scores = {
            category: score
            for keyword, (category, score) in self.KEYWORDS.items()
            if keyword in text.lower()
        }
        return moderation_body(scores)

    async def aclose(self) -> None:
        self.closed = True


async def no_sleep(delay: float) -> None:
    return None


@pytest.fixture
def settings():
    """Settings isolated from the environment, with fast retries."""
    return Settings(
        _env_file=None,
        api_key="test-key",
        max_retries=0,
        retry_delay_ms=0,
        audit_enabled=True,
        fallback_behavior=FallbackBehavior.FAIL_OPEN,
    )


@pytest.fixture
def fail_closed_settings(settings):
    return settings.model_copy(update={"fallback_behavior": FallbackBehavior.FAIL_CLOSED})


@pytest.fixture
def metrics():
    return SafetyMetrics("test")


@pytest.fixture
def keyword_client():
    return KeywordModerationClient()


@pytest.fixture
def make_http_client():
    """Build a ModerationClient whose HTTP calls go to a handler function."""
    created = []

    def factory(handler, **kwargs) -> ModerationClient:
        options = {
            "endpoint": "https://moderation.test/v1/moderations",
            "api_key": "test-key",
            "max_retries": 0,
            "retry_delay": 0.0,
            "sleep": no_sleep,
        }
        options.update(kwargs)
        client = ModerationClient(transport=httpx.MockTransport(handler), **options)
        created.append(client)
        return client

    return factory
