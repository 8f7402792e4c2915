"""Wiring of the safety layer from settings."""

import logging
from typing import Optional

from chat_safety.clients.chat_backends import ChatBackend, OpenAIChatBackend
from chat_safety.components.evaluators.factory import EvaluatorFactory
from chat_safety.components.filters.factory import FilterFactory
from chat_safety.config import Settings, get_settings
from chat_safety.services.audit import AuditLogger
from chat_safety.services.evaluation_service import SafetyEvaluationService
from chat_safety.services.metrics import SafetyMetrics
from chat_safety.services.safety_chat_client import SafetyChatClient

logger = logging.getLogger(__name__)

DEFAULT_FILTER = "moderation_mask"


def create_safety_service(
    settings: Optional[Settings] = None,
    metrics: Optional[SafetyMetrics] = None,
) -> SafetyEvaluationService:
    """
    Build the evaluation service.

    The evaluator variant comes from ``settings.provider`` (``noop`` when
    safety is disabled). A filter is attached only when filtering is enabled.

    Args:
        settings: Settings to use (cached settings when omitted)
        metrics: Shared metrics context (a new one when omitted)

    Returns:
        SafetyEvaluationService: Ready-to-use service
    """
    settings = settings or get_settings()
    metrics = metrics or SafetyMetrics(settings.service_name)

    provider = settings.provider if settings.enabled else "noop"
    evaluator = EvaluatorFactory.create(provider, settings=settings, metrics=metrics)

    safety_filter = None
    if settings.enabled and settings.filtering_enabled:
        safety_filter = FilterFactory.create(DEFAULT_FILTER, evaluator=evaluator, settings=settings)

    logger.info(
        f"Safety layer ready: provider={evaluator.get_provider_name()} "
        f"fallback={settings.fallback_behavior.value} filter={'on' if safety_filter else 'off'}"
    )
    return SafetyEvaluationService(
        evaluator=evaluator,
        settings=settings,
        metrics=metrics,
        audit_logger=AuditLogger(settings),
        safety_filter=safety_filter,
    )


def create_safety_chat_client(
    safety_service: SafetyEvaluationService,
    backend: Optional[ChatBackend] = None,
) -> SafetyChatClient:
    """Wrap a chat backend (OpenAI from settings by default) with safety checks."""
    if backend is None:
        settings = safety_service.settings
        backend = OpenAIChatBackend(api_key=settings.openai_api_key, model=settings.chat_model)
    return SafetyChatClient(backend, safety_service)
