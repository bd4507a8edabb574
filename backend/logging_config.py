"""
Secure logging configuration for the crash round server
Keeps round secrets out of logs and provides structured logging
"""

import logging
import re
from typing import Any, Optional
from datetime import datetime, timezone

SERVICE_NAME = 'crash-round-server'

# Fields whose values must never reach a log line
SENSITIVE_FIELDS = {
    'secret', 'server_seed', 'seed', 'token', 'password', 'authorization',
    'bearer', 'private_key', 'hmac'
}

# Regex patterns for sensitive data
SENSITIVE_PATTERNS = [
    (re.compile(r'(secret|server_seed|seed|token|password)\s*[:=]\s*["\']?([^"\'\s&,}]+)', re.IGNORECASE), r'\1=***MASKED***'),
    (re.compile(r'(Authorization|Bearer)\s+([^\s]+)', re.IGNORECASE), r'\1 ***MASKED***'),
]

LOG_FORMAT = '%(timestamp)s - %(service)s - %(levelname)s - %(name)s - %(message)s'


class SecureFormatter(logging.Formatter):
    """Custom formatter that masks sensitive data"""

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        return self.mask_sensitive_data(formatted)

    def mask_sensitive_data(self, text: str) -> str:
        """Mask secret material in log text"""
        if not text:
            return text
        for pattern, replacement in SENSITIVE_PATTERNS:
            text = pattern.sub(replacement, text)
        return text


class StructuredLogFilter(logging.Filter):
    """Filter that adds structured information and masks sensitive data"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.timestamp = datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')
        record.service = SERVICE_NAME

        if isinstance(record.args, dict):
            record.args = self._mask_sensitive_dict(record.args)
        elif record.args:
            record.args = tuple(
                self._mask_sensitive_dict(arg) if isinstance(arg, dict) else arg
                for arg in record.args
            )

        return True

    def _mask_sensitive_dict(self, data: Any) -> Any:
        """Recursively mask sensitive keys in dictionaries"""
        if isinstance(data, dict):
            return {
                key: '***MASKED***' if isinstance(key, str) and key.lower() in SENSITIVE_FIELDS
                else self._mask_sensitive_dict(value)
                for key, value in data.items()
            }
        if isinstance(data, (list, tuple)):
            return type(data)(self._mask_sensitive_dict(item) for item in data)
        return data


def _build_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(SecureFormatter(LOG_FORMAT))
    handler.addFilter(StructuredLogFilter())
    return handler


class FairnessAuditLogger:
    """Audit trail for the commit/reveal lifecycle and rejected requests.

    The revealed secret is logged only after the crash, and only through
    secret_revealed(); nothing here accepts an unrevealed secret.
    """

    def __init__(self):
        self.logger = logging.getLogger("fairness")

    def commitment_published(self, sequence_number: int, commitment_hash: str):
        self.logger.info(
            f"Commitment published: round={sequence_number}, commitment={commitment_hash}",
            extra={'audit_event': 'commitment', 'sequence_number': sequence_number}
        )

    def secret_revealed(self, sequence_number: int, crash_multiplier: float, verified: bool):
        level = logging.INFO if verified else logging.CRITICAL
        self.logger.log(
            level,
            f"Round revealed: round={sequence_number}, crash={crash_multiplier:.4f}, verified={verified}",
            extra={'audit_event': 'reveal', 'sequence_number': sequence_number}
        )

    def request_rejected(self, connection_id: str, action: str, reason: str):
        self.logger.info(
            f"Request rejected: connection={connection_id}, action={action}, reason={reason}",
            extra={'audit_event': 'rejection', 'action': action, 'reason': reason}
        )


def setup_logging(level: Optional[str] = None) -> FairnessAuditLogger:
    """Setup secure logging configuration for the entire application"""
    if level is None:
        from config.settings import LOG_LEVEL
        level = LOG_LEVEL
    numeric_level = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove existing handlers to prevent duplication
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(_build_handler(numeric_level))

    loggers_config = {
        'uvicorn': logging.WARNING,
        'uvicorn.access': logging.WARNING,
        'asyncio': logging.WARNING,
        'httpx': logging.WARNING,
    }
    for logger_name, logger_level in loggers_config.items():
        logging.getLogger(logger_name).setLevel(logger_level)

    return get_audit_logger()


# Global audit logger instance
audit_logger = None


def get_audit_logger() -> FairnessAuditLogger:
    """Get the global audit logger instance"""
    global audit_logger
    if audit_logger is None:
        audit_logger = FairnessAuditLogger()
    return audit_logger


def mask_sensitive_data(data: Any) -> Any:
    """Utility function to mask sensitive data in any object"""
    if isinstance(data, str):
        return SecureFormatter().mask_sensitive_data(data)
    return StructuredLogFilter()._mask_sensitive_dict(data)
