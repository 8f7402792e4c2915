"""Audit logging for blocking safety violations."""

import hashlib
import logging
from typing import Optional

from chat_safety.config import Settings
from chat_safety.models.schemas import AuditCategory, AuditEntry, SafetyEvaluationResult

logger = logging.getLogger(__name__)

AUDIT_LOGGER_NAME = "chat_safety.audit"


def hash_content(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class AuditLogger:
    """
    Writes one JSON audit record per blocking violation to the
    ``chat_safety.audit`` logger. Raw content is never written, only its
    length and (optionally) a SHA-256 hash.
    """

    def __init__(self, settings: Settings, audit_logger: Optional[logging.Logger] = None):
        self.settings = settings
        self.audit_logger = audit_logger or logging.getLogger(AUDIT_LOGGER_NAME)

    def build_entry(self, text: str, result: SafetyEvaluationResult, content_type: str) -> AuditEntry:
        metadata = result.metadata if self.settings.audit_log_metadata else None
        return AuditEntry(
            content_type=content_type,
            content_length=len(text),
            content_hash=hash_content(text) if self.settings.audit_log_content_hashes else None,
            is_safe=result.is_safe,
            risk_score=result.risk_score,
            detected_categories=[
                AuditCategory(
                    category=d.category,
                    severity=d.severity,
                    confidence=d.confidence,
                    description=d.description,
                )
                for d in result.blocking_categories
            ],
            recommendations=list(result.recommendations),
            provider=metadata.provider if metadata else None,
            processing_time_ms=metadata.processing_time_ms if metadata else None,
            request_id=metadata.request_id if metadata else None,
        )

    def log_violation(self, text: str, result: SafetyEvaluationResult, content_type: str) -> Optional[AuditEntry]:
        """
        Record a blocking violation.

        Failures are logged and swallowed so auditing never changes the
        evaluation outcome.

        Returns:
            AuditEntry: The written entry, or None if nothing was written
        """
        if not self.settings.audit_enabled or result.is_safe:
            return None

        try:
            entry = self.build_entry(text, result, content_type)
            max_severity = max((c.severity for c in entry.detected_categories), default=0)
            level = logging.ERROR if max_severity >= self.settings.audit_alert_threshold else logging.WARNING
            self.audit_logger.log(level, entry.model_dump_json())
            return entry
        except Exception as e:
            logger.error(f"Failed to write safety audit entry: {type(e).__name__}: {e}")
            return None
