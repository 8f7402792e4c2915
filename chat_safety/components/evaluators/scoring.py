"""Score-to-severity, confidence and risk calculations."""

from typing import Tuple

from chat_safety.models.schemas import HarmCategory

# Upper bound (inclusive) of each severity bucket, lowest first
SEVERITY_BUCKETS: Tuple[Tuple[float, int], ...] = (
    (0.1, 0),
    (0.2, 1),
    (0.3, 2),
    (0.4, 3),
    (0.5, 4),
    (0.6, 5),
    (0.8, 6),
    (1.0, 7),
)

# Cap for the per-category multiplier in the risk score
RISK_CATEGORY_MULTIPLIER_CAP = 3

CATEGORY_DISPLAY_NAMES = {
    HarmCategory.HATE: "Hate",
    HarmCategory.HARASSMENT: "Harassment",
    HarmCategory.SELF_HARM: "Self-harm",
    HarmCategory.SEXUAL: "Sexual",
    HarmCategory.VIOLENCE: "Violence",
}


def calculate_severity(score: float) -> int:
    """
    Map a provider score in [0, 1] to a severity level 0-7.

    Boundary values fall in the lower bucket. Scores above 1.0 are not
    expected from the provider and map to 0.
    """
    for upper, level in SEVERITY_BUCKETS:
        if score <= upper:
            return level
    return 0


def calculate_confidence(score: float) -> int:
    return max(0, min(100, round(score * 100)))


def calculate_risk_score(max_score: float, detected_count: int) -> int:
    """
    Aggregate risk 0-100 from the highest flagged score and the number of
    flagged categories.

    Args:
        max_score: Highest raw score among flagged categories
        detected_count: Number of flagged categories

    Returns:
        int: ``min(100, round(max_score * 100) * min(detected_count, 3))``
    """
    if detected_count <= 0:
        return 0
    base = max(0, round(max_score * 100))
    return min(100, base * min(detected_count, RISK_CATEGORY_MULTIPLIER_CAP))


def severity_label(severity: int) -> str:
    if severity <= 2:
        return "low"
    if severity <= 4:
        return "medium"
    if severity <= 6:
        return "high"
    return "very high"
