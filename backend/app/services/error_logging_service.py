"""Error logging with PII redaction for production safety."""

import logging
import re
import traceback
from typing import Any, Optional


class ErrorLoggingService:
    """Logs errors and security events with emails, tokens and IPs redacted."""

    # (pattern, replacement, flags) applied in order
    _REDACTIONS = (
        (r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b", "[REDACTED_EMAIL]", 0),
        (r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b", "[REDACTED_PHONE]", 0),
        (r"\b(?:\d{1,3}\.){3}\d{1,3}\b", "[REDACTED_IP]", 0),
        (
            r"(token|jwt|bearer)[\"']?\s*[:= ]\s*[\"']?([A-Za-z0-9_.-]{20,})",
            r"\1=[REDACTED_TOKEN]",
            re.IGNORECASE,
        ),
        (
            r"(api[_-]?key|secret)[\"']?\s*[:=]\s*[\"']?([A-Za-z0-9_-]{16,})",
            r"\1=[REDACTED_KEY]",
            re.IGNORECASE,
        ),
    )

    @classmethod
    def redact_pii(cls, text: str) -> str:
        """Return *text* with PII replaced by placeholders."""
        if not text:
            return text
        redacted = text
        for pattern, replacement, flags in cls._REDACTIONS:
            redacted = re.sub(pattern, replacement, redacted, flags=flags)
        return redacted

    @classmethod
    def log_error(
        cls,
        logger: logging.Logger,
        error: Exception,
        context: Optional[dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> None:
        """
        Log error with PII redaction.

        Args:
            logger: Logger instance
            error: Exception to log
            context: Additional context (will be redacted)
            user_id: User ID (not PII, safe to log)
        """
        error_traceback = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )

        log_parts = [
            f"Error: {cls.redact_pii(str(error))}",
            f"Type: {type(error).__name__}",
        ]
        if user_id:
            log_parts.append(f"User ID: {user_id}")
        if context:
            safe_context = {k: cls.redact_pii(str(v)) for k, v in context.items()}
            log_parts.append(f"Context: {safe_context}")
        log_parts.append(f"Traceback:\n{cls.redact_pii(error_traceback)}")

        logger.error("\n".join(log_parts))

    @classmethod
    def log_security_event(
        cls,
        logger: logging.Logger,
        event_type: str,
        message: str,
        user_id: Optional[str] = None,
        building_id: Optional[str] = None,
    ) -> None:
        """Log a security-relevant event such as an authorization denial."""
        log_data = {"event_type": event_type, "message": cls.redact_pii(message)}
        if user_id:
            log_data["user_id"] = user_id
        if building_id:
            log_data["building_id"] = building_id
        logger.warning(f"SECURITY_EVENT: {log_data}")


error_logging_service = ErrorLoggingService()
