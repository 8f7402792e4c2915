"""Sentence-level filter driven by moderation results."""

import logging
import re
from typing import List, Tuple

from chat_safety.components.evaluators.base import BaseSafetyEvaluator
from chat_safety.components.filters.base import BaseSafetyFilter
from chat_safety.config import Settings
from chat_safety.models.schemas import (
    FilterActionType,
    FilteredTextResult,
    FilteringAction,
    HarmCategory,
)

logger = logging.getLogger(__name__)

# A sentence runs up to terminal punctuation (plus closing quotes/brackets) or a newline
SENTENCE_PATTERN = re.compile(r"[^.!?\n]*[.!?]+[\"')\]]*|[^.!?\n]+")


def split_sentences(text: str) -> List[Tuple[int, str]]:
    """Split text into ``(start, sentence)`` spans, leading whitespace trimmed."""
    spans = []
    for match in SENTENCE_PATTERN.finditer(text):
        segment = match.group()
        stripped = segment.lstrip()
        if not stripped.strip():
            continue
        start = match.start() + len(segment) - len(stripped)
        spans.append((start, stripped.rstrip()))
    return spans


class ModerationMaskingFilter(BaseSafetyFilter):
    """
    Evaluate each sentence with the output policy and rewrite the blocking
    ones. The action comes from ``filter_category_actions`` for the most
    severe blocking category, falling back to ``filter_default_action``.
    """

    name = "moderation_mask"
    description = "Masks sentences flagged by the moderation evaluator"

    def __init__(self, evaluator: BaseSafetyEvaluator, settings: Settings):
        self.evaluator = evaluator
        self.settings = settings
        self.provider_name = f"{evaluator.get_provider_name()} Filter"

    async def filter_text(self, text: str) -> FilteredTextResult:
        spans = split_sentences(text)
        if not spans:
            return self.passthrough(text)

        results = await self.evaluator.evaluate_batch(
            [segment for _, segment in spans],
            policy=self.settings.output_policy,
        )

        actions: List[FilteringAction] = []
        for (start, segment), result in zip(spans, results):
            blocking = result.blocking_categories
            if result.is_safe or not blocking:
                continue

            category = max(blocking, key=lambda d: d.severity).category
            action = self._action_for(category)
            actions.append(
                FilteringAction(
                    action=action,
                    category=category,
                    original_segment=segment,
                    replacement=self._replacement(action, segment),
                    start_position=start,
                    length=len(segment),
                )
            )

        if not actions:
            return self.passthrough(text)

        logger.info(f"Filtered {len(actions)} of {len(spans)} sentences")
        return FilteredTextResult(
            original_text=text,
            filtered_text=self._rewrite(text, actions),
            was_filtered=True,
            applied_actions=actions,
        )

    def _action_for(self, category: HarmCategory) -> FilterActionType:
        return self.settings.filter_category_actions.get(category, self.settings.filter_default_action)

    def _replacement(self, action: FilterActionType, segment: str) -> str:
        if action == FilterActionType.MASK:
            length = len(segment) if self.settings.filter_preserve_length else 3
            return self.settings.filter_mask_character * length
        if action == FilterActionType.REDACT:
            return self.settings.filter_redaction_text
        if action == FilterActionType.REPLACE:
            return self.settings.filter_replacement_text
        return ""

    @staticmethod
    def _rewrite(text: str, actions: List[FilteringAction]) -> str:
        pieces = []
        cursor = 0
        for action in actions:
            pieces.append(text[cursor:action.start_position])
            pieces.append(action.replacement)
            cursor = action.start_position + action.length
        pieces.append(text[cursor:])
        return "".join(pieces)
