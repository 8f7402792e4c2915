"""Safety evaluators: provider integration, scoring and policy."""

from chat_safety.components.evaluators.base import BaseSafetyEvaluator
from chat_safety.components.evaluators.factory import EvaluatorFactory
from chat_safety.components.evaluators.noop_evaluator import NoOpSafetyEvaluator
from chat_safety.components.evaluators.openai_evaluator import OpenAIModerationEvaluator
from chat_safety.components.evaluators.parsing import CanonicalModeration, parse_moderation_response
from chat_safety.components.evaluators.policy import (
    apply_policy,
    build_fallback_result,
    exceeds_policy_limits,
)
from chat_safety.components.evaluators.scoring import (
    calculate_confidence,
    calculate_risk_score,
    calculate_severity,
)

__all__ = [
    "BaseSafetyEvaluator",
    "CanonicalModeration",
    "EvaluatorFactory",
    "NoOpSafetyEvaluator",
    "OpenAIModerationEvaluator",
    "apply_policy",
    "build_fallback_result",
    "calculate_confidence",
    "calculate_risk_score",
    "calculate_severity",
    "exceeds_policy_limits",
    "parse_moderation_response",
]
