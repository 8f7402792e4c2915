"""Safety data models."""

from chat_safety.models.schemas import (
    AuditCategory,
    AuditEntry,
    ChatCompletion,
    ChatMessage,
    ChatRole,
    DetectedHarmCategory,
    EvaluateBatchRequest,
    EvaluateTextRequest,
    EvaluationMetadata,
    FallbackBehavior,
    FilterActionType,
    FilteredTextResult,
    FilterTextRequest,
    FilteringAction,
    HarmCategory,
    HealthCheckResponse,
    PolicySettings,
    SafetyEvaluationResult,
    SafetyStatus,
    StreamingUpdate,
    UsageDetails,
    ViolationDirection,
    default_thresholds,
)

__all__ = [
    "AuditCategory",
    "AuditEntry",
    "ChatCompletion",
    "ChatMessage",
    "ChatRole",
    "DetectedHarmCategory",
    "EvaluateBatchRequest",
    "EvaluateTextRequest",
    "EvaluationMetadata",
    "FallbackBehavior",
    "FilterActionType",
    "FilteredTextResult",
    "FilterTextRequest",
    "FilteringAction",
    "HarmCategory",
    "HealthCheckResponse",
    "PolicySettings",
    "SafetyEvaluationResult",
    "SafetyStatus",
    "StreamingUpdate",
    "UsageDetails",
    "ViolationDirection",
    "default_thresholds",
]
