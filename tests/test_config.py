"""Tests for configuration."""

import pytest

from chat_safety.config import Settings, get_settings
from chat_safety.models.schemas import FallbackBehavior, FilterActionType, HarmCategory


class TestSettingsDefaults:
    """Tests for default settings values."""

    def test_defaults(self, monkeypatch):
        for name in ("OPENAI_API_KEY", "SAFETY_OPENAI_API_KEY", "SAFETY_API_KEY"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)

        assert settings.enabled is True
        assert settings.provider == "openai"
        assert settings.endpoint == "https://api.openai.com/v1/moderations"
        assert settings.model == "omni-moderation-latest"
        assert settings.fallback_behavior == FallbackBehavior.FAIL_OPEN
        assert settings.fallback_risk_score == 70
        assert settings.service_fallback_risk_score == 80
        assert settings.timeout_ms == 3000
        assert settings.max_retries == 2
        assert settings.circuit_breaker_threshold == 5
        assert settings.streaming_strategy == "composite"
        assert settings.filter_default_action == FilterActionType.MASK
        assert settings.resolved_api_key == ""

    def test_default_policies(self):
        settings = Settings(_env_file=None)

        for policy in (settings.input_policy, settings.output_policy):
            assert policy.thresholds == {category: 4 for category in HarmCategory}
            assert policy.block_on_violation is True
            assert policy.max_risk_score == 70


class TestSettingsFromEnvironment:
    """Tests for environment overrides."""

    def test_prefixed_env(self, monkeypatch):
        monkeypatch.setenv("SAFETY_FALLBACK_BEHAVIOR", "fail_closed")
        monkeypatch.setenv("SAFETY_TIMEOUT_MS", "1500")
        monkeypatch.setenv("SAFETY_ENABLED", "false")

        settings = Settings(_env_file=None)

        assert settings.fallback_behavior == FallbackBehavior.FAIL_CLOSED
        assert settings.timeout_ms == 1500
        assert settings.timeout_seconds == 1.5
        assert settings.enabled is False

    def test_nested_policy_env(self, monkeypatch):
        monkeypatch.setenv("SAFETY_INPUT_POLICY__MAX_RISK_SCORE", "50")

        settings = Settings(_env_file=None)

        assert settings.input_policy.max_risk_score == 50

    def test_api_key_falls_back_to_openai_key(self, monkeypatch):
        monkeypatch.delenv("SAFETY_API_KEY", raising=False)
        monkeypatch.delenv("SAFETY_OPENAI_API_KEY", raising=False)
        monkeypatch.setenv("OPENAI_API_KEY", "sk-shared")

        settings = Settings(_env_file=None)

        assert settings.resolved_api_key == "sk-shared"

    def test_invalid_value_rejected(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, fallback_risk_score=150)


class TestEnvironmentPresets:
    """Tests for Settings.for_environment."""

    def test_production(self):
        settings = Settings.for_environment("production", _env_file=None)

        assert settings.environment == "production"
        assert settings.fallback_behavior == FallbackBehavior.FAIL_CLOSED
        assert settings.max_retries == 3
        assert settings.timeout_ms == 3000
        assert settings.audit_enabled is True

    def test_development(self):
        settings = Settings.for_environment("development", _env_file=None)

        assert settings.fallback_behavior == FallbackBehavior.FAIL_OPEN
        assert settings.max_retries == 1
        assert settings.timeout_ms == 5000
        assert settings.audit_enabled is False

    def test_override_wins(self):
        settings = Settings.for_environment("production", _env_file=None, max_retries=0)

        assert settings.max_retries == 0


def test_get_settings_cached():
    assert get_settings() is get_settings()
