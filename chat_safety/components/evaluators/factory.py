"""Factory for safety evaluators."""

from typing import Dict, Type

from chat_safety.components.base import BaseFactory
from chat_safety.components.evaluators.base import BaseSafetyEvaluator
from chat_safety.components.evaluators.noop_evaluator import NoOpSafetyEvaluator
from chat_safety.components.evaluators.openai_evaluator import OpenAIModerationEvaluator


class EvaluatorFactory(BaseFactory):
    """Factory for creating safety evaluators by provider name."""

    category = "evaluators"
    _registry: Dict[str, Type[BaseSafetyEvaluator]] = {}


EvaluatorFactory.register("openai", OpenAIModerationEvaluator)
EvaluatorFactory.register("noop", NoOpSafetyEvaluator)
