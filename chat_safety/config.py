"""
Configuration management for the safety layer.
Loads settings from environment variables with fallback to .env file.
"""

import logging
from functools import lru_cache
from typing import Dict, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from chat_safety.models.schemas import (
    FallbackBehavior,
    FilterActionType,
    HarmCategory,
    PolicySettings,
    default_thresholds,
)


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Overrides applied by Settings.for_environment()
ENVIRONMENT_PRESETS: Dict[str, dict] = {
    "development": {
        "fallback_behavior": FallbackBehavior.FAIL_OPEN,
        "timeout_ms": 5000,
        "max_retries": 1,
        "audit_enabled": False,
    },
    "production": {
        "fallback_behavior": FallbackBehavior.FAIL_CLOSED,
        "timeout_ms": 3000,
        "max_retries": 3,
        "audit_enabled": True,
        "audit_log_content_hashes": True,
    },
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SAFETY_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Service Configuration
    service_name: str = "chat-safety"
    log_level: str = "INFO"
    environment: str = "development"

    # Moderation Provider
    enabled: bool = True
    provider: str = "openai"
    endpoint: str = "https://api.openai.com/v1/moderations"
    api_key: str = ""
    organization_id: Optional[str] = None
    model: str = "omni-moderation-latest"

    # Fallback
    fallback_behavior: FallbackBehavior = FallbackBehavior.FAIL_OPEN
    fallback_risk_score: int = Field(default=70, ge=0, le=100)
    service_fallback_risk_score: int = Field(default=80, ge=0, le=100)
    fallback_category: HarmCategory = HarmCategory.VIOLENCE
    fallback_severity: int = Field(default=6, ge=0, le=7)

    # Policies
    input_policy: PolicySettings = Field(
        default_factory=lambda: PolicySettings(thresholds=default_thresholds(4))
    )
    output_policy: PolicySettings = Field(
        default_factory=lambda: PolicySettings(thresholds=default_thresholds(4))
    )

    # Resilience
    timeout_ms: int = Field(default=3000, gt=0)
    max_retries: int = Field(default=2, ge=0)
    retry_delay_ms: int = Field(default=1000, ge=0)
    use_exponential_backoff: bool = True
    max_backoff_multiplier: float = Field(default=8.0, ge=1.0)
    circuit_breaker_threshold: int = Field(default=5, ge=1)
    circuit_breaker_duration_seconds: float = Field(default=30, gt=0)

    # Streaming
    streaming_strategy: str = "composite"
    streaming_char_threshold: int = Field(default=300, gt=0)
    streaming_chunk_interval: int = Field(default=10, gt=0)
    streaming_context_overlap: int = Field(default=50, ge=0)

    # Filtering
    filtering_enabled: bool = False
    filter_default_action: FilterActionType = FilterActionType.MASK
    filter_mask_character: str = Field(default="*", min_length=1)
    filter_redaction_text: str = "[REDACTED]"
    filter_replacement_text: str = "[Content removed]"
    filter_preserve_length: bool = True
    filter_category_actions: Dict[HarmCategory, FilterActionType] = Field(default_factory=dict)

    # Audit
    audit_enabled: bool = True
    audit_log_content_hashes: bool = True
    audit_log_metadata: bool = True
    audit_alert_threshold: int = Field(default=4, ge=0, le=7)

    # Chat backend
    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("safety_openai_api_key", "openai_api_key"),
    )
    chat_model: str = "gpt-4o-mini"

    @property
    def resolved_api_key(self) -> str:
        """API key for the moderation endpoint, falling back to the OpenAI key."""
        return self.api_key or self.openai_api_key

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    @classmethod
    def for_environment(cls, environment: str, **overrides) -> "Settings":
        """
        Build settings with the preset for a deployment environment applied.

        Args:
            environment: "development" or "production"
            **overrides: Explicit values that win over the preset

        Returns:
            Settings: Settings with preset and overrides applied
        """
        preset = ENVIRONMENT_PRESETS.get(environment.lower(), {})
        return cls(**{**preset, "environment": environment, **overrides})


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure single instance across application.
    """
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for the process."""
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format=LOG_FORMAT,
    )
