"""
Pydantic schemas for safety evaluation.
Defines the harm taxonomy, evaluation results, policies and chat payloads.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Taxonomy
# ============================================================================


class HarmCategory(str, Enum):
    """Categories of harmful content detected by safety evaluators."""
    HATE = "hate"
    HARASSMENT = "harassment"
    SELF_HARM = "self_harm"
    SEXUAL = "sexual"
    VIOLENCE = "violence"


class FallbackBehavior(str, Enum):
    """Behavior when the moderation provider is unavailable."""
    FAIL_OPEN = "fail_open"       # Allow content through
    FAIL_CLOSED = "fail_closed"   # Block content


class ViolationDirection(str, Enum):
    """Which side of the conversation produced the violating content."""
    USER_INPUT = "user_input"
    AI_OUTPUT = "ai_output"


class FilterActionType(str, Enum):
    """Rewrite applied to a filtered text segment."""
    REMOVE = "remove"
    REPLACE = "replace"
    MASK = "mask"
    REDACT = "redact"


MIN_SEVERITY = 0
MAX_SEVERITY = 7


# ============================================================================
# Evaluation Results
# ============================================================================


class DetectedHarmCategory(BaseModel):
    """A harm category flagged by the provider."""
    category: HarmCategory
    severity: int = Field(default=0, ge=MIN_SEVERITY, le=MAX_SEVERITY, description="Severity level 0-7")
    confidence: int = Field(default=0, ge=0, le=100, description="Provider confidence 0-100")
    description: str = ""
    is_blocking: bool = Field(default=True, description="Severity met the active policy threshold")


class EvaluationMetadata(BaseModel):
    """Metadata about how an evaluation was produced."""
    provider: str = ""
    provider_version: Optional[str] = None
    processing_time_ms: int = 0
    evaluated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: Optional[str] = None
    additional_data: Dict[str, Any] = Field(default_factory=dict)


class SafetyEvaluationResult(BaseModel):
    """Outcome of evaluating one piece of text."""
    is_safe: bool
    risk_score: int = Field(default=0, ge=0, le=100)
    detected_categories: List[DetectedHarmCategory] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    metadata: Optional[EvaluationMetadata] = None

    @classmethod
    def safe(cls, provider: str = "", **additional_data: Any) -> "SafetyEvaluationResult":
        """Pre-configured safe result."""
        metadata = None
        if provider or additional_data:
            metadata = EvaluationMetadata(provider=provider, additional_data=additional_data)
        return cls(
            is_safe=True,
            risk_score=0,
            recommendations=["Content is safe to proceed."],
            metadata=metadata,
        )

    @property
    def blocking_categories(self) -> List[DetectedHarmCategory]:
        return [c for c in self.detected_categories if c.is_blocking]

    @property
    def category_names(self) -> List[str]:
        return [c.category.value for c in self.blocking_categories]


# ============================================================================
# Policy
# ============================================================================


class PolicySettings(BaseModel):
    """Thresholds and gates for one direction (input or output)."""
    thresholds: Dict[HarmCategory, int] = Field(
        default_factory=dict,
        description="Minimum severity per category that blocks content",
    )
    block_on_violation: bool = True
    require_multiple_categories: bool = False
    minimum_category_violations: int = Field(default=2, ge=1)
    max_risk_score: int = Field(default=70, ge=0, le=100)


def default_thresholds(level: int = 4) -> Dict[HarmCategory, int]:
    """Same threshold for every category."""
    return {category: level for category in HarmCategory}


# ============================================================================
# Filtering
# ============================================================================


class FilteringAction(BaseModel):
    """A single rewrite applied by a safety filter."""
    action: FilterActionType
    category: HarmCategory
    original_segment: str
    replacement: str
    start_position: int = Field(..., ge=0)
    length: int = Field(..., ge=0)


class FilteredTextResult(BaseModel):
    """Result of a safety filter pass."""
    original_text: str
    filtered_text: str
    was_filtered: bool = False
    applied_actions: List[FilteringAction] = Field(default_factory=list)


# ============================================================================
# Status & Audit
# ============================================================================


class SafetyStatus(BaseModel):
    """Configuration and provider status of the safety layer."""
    is_enabled: bool
    provider: str
    supported_categories: List[HarmCategory] = Field(default_factory=list)
    has_filter: bool = False
    filter_provider: Optional[str] = None
    fallback_behavior: FallbackBehavior
    input_policy: PolicySettings
    output_policy: PolicySettings


class AuditCategory(BaseModel):
    """Category summary stored in an audit entry."""
    category: HarmCategory
    severity: int
    confidence: int
    description: str = ""


class AuditEntry(BaseModel):
    """Audit record of a blocking violation. Never holds raw content."""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    content_type: str
    content_length: int
    content_hash: Optional[str] = None
    is_safe: bool
    risk_score: int
    detected_categories: List[AuditCategory] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    provider: Optional[str] = None
    processing_time_ms: Optional[int] = None
    request_id: Optional[str] = None


# ============================================================================
# Chat Payloads
# ============================================================================


class ChatRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ChatMessage(BaseModel):
    """Role-tagged chat message."""
    role: ChatRole
    content: str = ""


class UsageDetails(BaseModel):
    """Token usage reported by the chat backend."""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class ChatCompletion(BaseModel):
    """Single-shot completion returned by the chat backend."""
    message: ChatMessage
    model: Optional[str] = None
    finish_reason: Optional[str] = None
    usage: Optional[UsageDetails] = None

    @property
    def text(self) -> str:
        return self.message.content


class StreamingUpdate(BaseModel):
    """Incremental text update from a streaming completion.

    The last update of a stream has ``is_final`` set and carries usage.
    """
    text: str = ""
    is_final: bool = False
    finish_reason: Optional[str] = None
    usage: Optional[UsageDetails] = None


# ============================================================================
# API
# ============================================================================


class EvaluateTextRequest(BaseModel):
    """Request to evaluate one text."""
    text: str
    direction: ViolationDirection = ViolationDirection.USER_INPUT


class EvaluateBatchRequest(BaseModel):
    """Request to evaluate several texts with the input policy."""
    texts: List[str] = Field(default_factory=list)


class FilterTextRequest(BaseModel):
    """Request to run the safety filter over text."""
    text: str


class HealthCheckResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
    timestamp: datetime
