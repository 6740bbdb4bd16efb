"""
Structured logging for pipeline, search and rate-limit events.
Log lines never carry image data, API keys, filesystem paths or e-mail addresses.
"""

import logging
import re
from typing import Any, Dict, List

_API_KEY_PATTERN = re.compile(r"AIza[0-9A-Za-z_-]{35}")
_PATH_PATTERN = re.compile(r"(?<![\w.])/[^\s'\"]+")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

SENSITIVE_FIELDS = ['image_data', 'image', 'embedding', 'image_embedding', 'secret', 'password', 'api_key']


def mask_sensitive_info(message: str) -> str:
    """Mask API keys, absolute paths and e-mail addresses in a message."""
    masked = _API_KEY_PATTERN.sub("***API_KEY***", message)
    masked = _EMAIL_PATTERN.sub("***EMAIL***", masked)
    masked = _PATH_PATTERN.sub("***PATH***", masked)
    return masked


class StructuredLogger:
    """Structured logger for critique pipeline operations."""

    def __init__(self, name: str = "dysapp"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_pipeline_stage(self, stage: str, user_id: str, status: str = "success", details: Dict[str, Any] = None):
        """Log one stage of the analyze pipeline."""
        log_details = {"user_id": user_id}
        if details:
            log_details.update(details)

        self.log_operation(f"pipeline.{stage}", status, log_details)

    def log_upstream_rejection(self, reasons: List[str], raw_payload: Any = None):
        """Log a generative response that failed validation, with a truncated payload."""
        log_details = {
            "reasons": [str(r)[:100] for r in reasons[:10]],
            "reason_count": len(reasons),
        }
        if raw_payload is not None:
            log_details["raw_payload"] = mask_sensitive_info(str(sanitize_payload(raw_payload)))[:2000]

        self.log_operation("upstream.rejected", "malformed", log_details, level=logging.ERROR)

    def log_fix_scope_override(self, model_fix_scope: str, rule_fix_scope: str, rule: str, reason: str):
        """Log a rule-based override of the model's fix scope."""
        log_details = {
            "model_fix_scope": model_fix_scope,
            "rule_fix_scope": rule_fix_scope,
            "rule": rule,
            "reason": reason,
        }
        self.log_operation("fix_scope.override", "overridden", log_details, level=logging.WARNING)

    def log_rate_limited(self, user_id: str, operation: str):
        self.log_operation("rate_limit.denied", "denied", {"user_id": user_id, "operation": operation},
                           level=logging.WARNING)

    def log_embedding_failure(self, analysis_id: str, error: str):
        """Log an embedding failure. The pipeline continues without a vector."""
        log_details = {
            "analysis_id": analysis_id,
            "error": mask_sensitive_info(error)[:200],
            "degraded": "no_vector",
        }
        self.log_operation("embedding.generate", "failed", log_details, level=logging.WARNING)

    def log_search(self, kind: str, user_id: str, result_count: int, details: Dict[str, Any] = None):
        """Log a similarity or text search."""
        log_details = {"user_id": user_id, "result_count": result_count}
        if details:
            log_details.update(details)

        self.log_operation(f"search.{kind}", "success", log_details)

    def log_store_operation(self, operation: str, record_id: str, status: str = "success", details: Dict[str, Any] = None):
        log_details = {"record_id": record_id}
        if details:
            log_details.update(details)

        level = logging.INFO if status == "success" else logging.ERROR
        self.log_operation(f"store.{operation}", status, log_details, level=level)

    def log_error(self, context: str, error: Exception, details: Dict[str, Any] = None):
        """Log an error with sensitive details masked."""
        log_details = {
            "error_type": type(error).__name__,
            "message": mask_sensitive_info(str(error))[:300],
        }
        if details:
            log_details.update(sanitize_payload(details))

        self.log_operation(context, "error", log_details, level=logging.ERROR)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for logging."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload
