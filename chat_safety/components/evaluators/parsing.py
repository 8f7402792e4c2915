"""
Moderation response parsing.

The provider answers either with per-request ``categories`` /
``category_scores`` maps or with a legacy flat shape (``hate``,
``hate_score``, ...). Both are resolved here into one canonical shape so
nothing downstream deals with wire formats.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from chat_safety.clients.moderation_client import ModerationResponseError
from chat_safety.models.schemas import HarmCategory

logger = logging.getLogger(__name__)


# Provider sub-category (normalised) -> internal category
CATEGORY_FOLDING: Dict[str, HarmCategory] = {
    "hate": HarmCategory.HATE,
    "hate_threatening": HarmCategory.HATE,
    "harassment": HarmCategory.HARASSMENT,
    "harassment_threatening": HarmCategory.HARASSMENT,
    "self_harm": HarmCategory.SELF_HARM,
    "self_harm_intent": HarmCategory.SELF_HARM,
    "self_harm_instructions": HarmCategory.SELF_HARM,
    "sexual": HarmCategory.SEXUAL,
    "sexual_minors": HarmCategory.SEXUAL,
    "violence": HarmCategory.VIOLENCE,
    "violence_graphic": HarmCategory.VIOLENCE,
}


def normalize_category_name(name: str) -> str:
    """``self-harm/intent`` -> ``self_harm_intent``"""
    return name.strip().lower().replace("/", "_").replace("-", "_")


# ============================================================================
# Wire models
# ============================================================================


class ModerationResultPayload(BaseModel):
    """One entry of ``results``. Unknown fields are kept for the legacy shape."""
    model_config = ConfigDict(extra="allow", allow_inf_nan=False)

    flagged: bool = False
    categories: Optional[Dict[str, Optional[bool]]] = None
    category_scores: Optional[Dict[str, Optional[float]]] = None
    category_applied_input_types: Optional[Dict[str, Any]] = None


class ModerationResponsePayload(BaseModel):
    id: str = ""
    model: str = ""
    results: List[ModerationResultPayload] = Field(default_factory=list)


# ============================================================================
# Canonical shape
# ============================================================================


class CategoryScore(BaseModel):
    flagged: bool = False
    score: float = 0.0


class CanonicalModeration(BaseModel):
    """Provider-independent moderation verdict for one input."""
    id: str = ""
    model: str = ""
    flagged: bool = False
    categories: Dict[HarmCategory, CategoryScore] = Field(default_factory=dict)

    @property
    def flagged_categories(self) -> Dict[HarmCategory, CategoryScore]:
        """Flagged categories in taxonomy order."""
        return {
            category: self.categories[category]
            for category in HarmCategory
            if category in self.categories and self.categories[category].flagged
        }

    @property
    def max_flagged_score(self) -> float:
        return max((c.score for c in self.flagged_categories.values()), default=0.0)


def _finite_score(name: str, value: Any) -> float:
    score = float(value or 0.0)
    if not math.isfinite(score):
        raise ModerationResponseError(f"Non-finite score for moderation category '{name}'")
    return score


def _flags_from_maps(result: ModerationResultPayload) -> Dict[str, Tuple[bool, float]]:
    flags = result.categories or {}
    scores = result.category_scores or {}
    merged: Dict[str, Tuple[bool, float]] = {}
    for name in set(flags) | set(scores):
        merged[normalize_category_name(name)] = (
            bool(flags.get(name)),
            _finite_score(name, scores.get(name)),
        )
    return merged


def _flags_from_legacy_fields(result: ModerationResultPayload) -> Dict[str, Tuple[bool, float]]:
    extras = result.model_extra or {}
    merged: Dict[str, Tuple[bool, float]] = {}
    for key, value in extras.items():
        if key.endswith("_score") or not isinstance(value, bool):
            continue
        score = extras.get(f"{key}_score")
        merged[normalize_category_name(key)] = (
            value,
            _finite_score(key, score) if isinstance(score, (int, float)) else 0.0,
        )
    return merged


def fold_categories(sub_categories: Dict[str, Tuple[bool, float]]) -> Dict[HarmCategory, CategoryScore]:
    """
    Fold provider sub-categories into internal categories.

    A category is flagged if any of its sub-categories is flagged; its score
    is the maximum among flagged sub-categories (or among all of them when
    none is flagged). Unknown provider categories are ignored.
    """
    folded: Dict[HarmCategory, CategoryScore] = {}
    for name, (flagged, score) in sub_categories.items():
        category = CATEGORY_FOLDING.get(name)
        if category is None:
            logger.debug(f"Ignoring unknown moderation category '{name}'")
            continue

        current = folded.get(category)
        if current is None:
            folded[category] = CategoryScore(flagged=flagged, score=score)
        elif flagged and not current.flagged:
            folded[category] = CategoryScore(flagged=True, score=score)
        elif flagged == current.flagged and score > current.score:
            current.score = score
    return folded


def parse_moderation_response(data: Any) -> CanonicalModeration:
    """
    Parse a moderation response body into the canonical shape.

    Args:
        data: Decoded JSON body

    Returns:
        CanonicalModeration: Verdict for the first (only) input

    Raises:
        ModerationResponseError: If the body is not a moderation response or
            has no results
    """
    if not isinstance(data, dict):
        raise ModerationResponseError(
            f"Unexpected moderation response type: {type(data).__name__}"
        )

    try:
        payload = ModerationResponsePayload.model_validate(data)
    except ValidationError as e:
        raise ModerationResponseError(f"Malformed moderation response: {e}") from e

    if not payload.results:
        raise ModerationResponseError("Moderation response contains no results")

    result = payload.results[0]
    if result.categories is not None or result.category_scores is not None:
        sub_categories = _flags_from_maps(result)
    else:
        sub_categories = _flags_from_legacy_fields(result)

    return CanonicalModeration(
        id=payload.id,
        model=payload.model,
        flagged=result.flagged,
        categories=fold_categories(sub_categories),
    )
