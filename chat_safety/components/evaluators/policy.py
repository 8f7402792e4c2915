"""
Policy application and fallback results.

A detection blocks iff its severity meets the policy threshold for its
category. Fallback results stand in for an evaluation whenever the provider
cannot be reached.
"""

from typing import Dict, List, Optional

from chat_safety.components.evaluators.parsing import CanonicalModeration
from chat_safety.components.evaluators.scoring import (
    CATEGORY_DISPLAY_NAMES,
    calculate_confidence,
    calculate_risk_score,
    calculate_severity,
    severity_label,
)
from chat_safety.models.schemas import (
    DetectedHarmCategory,
    EvaluationMetadata,
    FallbackBehavior,
    HarmCategory,
    PolicySettings,
    SafetyEvaluationResult,
)

STREAMING_VIOLATION_RECOMMENDATION = (
    "Streaming content violation detected. Consider terminating the stream."
)
POLICY_VIOLATION_RECOMMENDATION = "Content violates the active safety policy and should not be delivered."

CATEGORY_RECOMMENDATIONS: Dict[HarmCategory, str] = {
    HarmCategory.HATE: "Content contains hate speech and should be blocked or heavily moderated.",
    HarmCategory.HARASSMENT: "Content contains harassment and should be blocked or heavily moderated.",
    HarmCategory.SELF_HARM: "Content contains self-harm references and requires immediate attention.",
    HarmCategory.SEXUAL: "Content contains sexually explicit material and should be restricted.",
    HarmCategory.VIOLENCE: "Content contains violent material and should be age-restricted or blocked.",
}

STREAMING_CATEGORY_RECOMMENDATIONS: Dict[HarmCategory, str] = {
    HarmCategory.HATE: "Streaming content contains hate speech and should be terminated immediately.",
    HarmCategory.HARASSMENT: "Streaming content contains harassment and should be terminated immediately.",
    HarmCategory.SELF_HARM: "Streaming content contains self-harm references and requires immediate intervention.",
    HarmCategory.SEXUAL: "Streaming content contains sexually explicit material and should be blocked.",
    HarmCategory.VIOLENCE: "Streaming content contains violent material and should be terminated.",
}


def describe_detection(category: HarmCategory, severity: int, streaming: bool = False) -> str:
    context = "streaming content" if streaming else "content"
    return (
        f"{CATEGORY_DISPLAY_NAMES[category]} {context} detected with "
        f"{severity_label(severity)} severity (level {severity})."
    )


def category_recommendation(category: HarmCategory, streaming: bool = False) -> str:
    table = STREAMING_CATEGORY_RECOMMENDATIONS if streaming else CATEGORY_RECOMMENDATIONS
    return table[category]


def is_blocking(category: HarmCategory, severity: int, policy: PolicySettings) -> bool:
    """Categories without a threshold never block."""
    threshold = policy.thresholds.get(category)
    return threshold is not None and severity >= threshold


def apply_policy(
    moderation: CanonicalModeration,
    policy: PolicySettings,
    streaming: bool = False,
) -> SafetyEvaluationResult:
    """
    Turn a canonical moderation verdict into a safety result.

    Every flagged category is recorded; only those meeting the policy
    threshold are marked blocking and make the result unsafe. The risk score
    is computed from all flagged categories regardless of thresholds.

    Args:
        moderation: Canonical provider verdict
        policy: Thresholds for the active direction
        streaming: Use streaming wording for descriptions and recommendations

    Returns:
        SafetyEvaluationResult: Result without metadata
    """
    flagged = moderation.flagged_categories
    detected: List[DetectedHarmCategory] = []
    recommendations: List[str] = []

    for category, score in flagged.items():
        severity = calculate_severity(score.score)
        blocking = is_blocking(category, severity, policy)
        detected.append(
            DetectedHarmCategory(
                category=category,
                severity=severity,
                confidence=calculate_confidence(score.score),
                description=describe_detection(category, severity, streaming),
                is_blocking=blocking,
            )
        )
        if blocking:
            recommendations.append(category_recommendation(category, streaming))

    is_safe = not any(d.is_blocking for d in detected)
    if is_safe:
        recommendations.append("Content is safe to proceed.")
    else:
        recommendations.append(POLICY_VIOLATION_RECOMMENDATION)
        if streaming:
            recommendations.insert(0, STREAMING_VIOLATION_RECOMMENDATION)

    return SafetyEvaluationResult(
        is_safe=is_safe,
        risk_score=calculate_risk_score(moderation.max_flagged_score, len(flagged)),
        detected_categories=detected,
        recommendations=recommendations,
    )


def exceeds_policy_limits(result: SafetyEvaluationResult, policy: PolicySettings) -> bool:
    """
    Holistic gate for callers that want more than the per-category rule.

    Returns True when the policy blocks on violation and either the risk
    score exceeds ``max_risk_score`` or enough categories are blocking. With
    ``require_multiple_categories`` at least ``minimum_category_violations``
    blocking categories are needed; otherwise one is enough.
    """
    if not policy.block_on_violation:
        return False

    if result.risk_score > policy.max_risk_score:
        return True

    blocking = len(result.blocking_categories)
    if policy.require_multiple_categories:
        return blocking >= policy.minimum_category_violations
    return blocking > 0


def build_fallback_result(
    behavior: FallbackBehavior,
    error: Optional[BaseException],
    provider: str,
    risk_score: int = 70,
    context: Optional[str] = None,
    streaming: bool = False,
    category: HarmCategory = HarmCategory.VIOLENCE,
    severity: int = 6,
) -> SafetyEvaluationResult:
    """
    Result used when an evaluation cannot be completed.

    Fail-closed blocks with a fixed risk score and one synthetic detection;
    fail-open allows with risk 0 and no detections.

    Args:
        behavior: Configured fallback behavior
        error: Exception that triggered the fallback
        provider: Provider name for metadata
        risk_score: Risk score reported when failing closed
        context: Service operation in which the failure occurred
        streaming: Use streaming wording
        category: Category of the synthetic detection
        severity: Severity of the synthetic detection

    Returns:
        SafetyEvaluationResult: Fallback result
    """
    subject = "Streaming content" if streaming else "Content"
    if context:
        cause = f"safety service failure in {context}"
    else:
        cause = "safety service unavailability"

    additional_data = {
        "fallback_reason": str(error) if error is not None and str(error) else "Service unavailable",
        "fallback_behavior": behavior.value,
    }
    if error is not None:
        additional_data["error_type"] = type(error).__name__
    if context:
        additional_data["context"] = context
    metadata = EvaluationMetadata(provider=provider, additional_data=additional_data)

    if behavior == FallbackBehavior.FAIL_CLOSED:
        return SafetyEvaluationResult(
            is_safe=False,
            risk_score=risk_score,
            detected_categories=[
                DetectedHarmCategory(
                    category=category,
                    severity=severity,
                    confidence=0,
                    description=f"Synthetic detection: {subject.lower()} blocked because evaluation failed.",
                    is_blocking=True,
                )
            ],
            recommendations=[f"{subject} blocked due to {cause}."],
            metadata=metadata,
        )

    return SafetyEvaluationResult(
        is_safe=True,
        risk_score=0,
        recommendations=[f"{subject} allowed due to {cause} (fail-open policy)."],
        metadata=metadata,
    )
