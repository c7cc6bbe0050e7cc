"""
Logging configuration for agenttrust.

Provides structured JSON logging and an audit logger for trust-relevant
events (key rotation, certification, credential issuance).
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import List, Optional

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per line, suitable for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Logger for audit events.

    Secrets (private keys, secret access keys, session tokens) are never
    passed to these methods.
    """

    def __init__(self, name: str = "agenttrust.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        if not self._logger.isEnabledFor(level):
            return
        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def signing_key_rotated(self, key_id: str) -> None:
        self._log(
            logging.INFO,
            "SIGNING_KEY_ROTATED",
            key_id=key_id,
            message=f"Platform signing key {key_id} created"
        )

    def signing_key_revoked(self, key_id: str) -> None:
        self._log(
            logging.WARNING,
            "SIGNING_KEY_REVOKED",
            key_id=key_id,
            message=f"Platform signing key {key_id} revoked"
        )

    def object_certified(self, key_id: str, issuer: str, expires_at: str) -> None:
        self._log(
            logging.INFO,
            "OBJECT_CERTIFIED",
            key_id=key_id,
            issuer=issuer,
            expires_at=expires_at,
            message=f"Object certified with {key_id}"
        )

    def credentials_issued(
        self,
        session_name: str,
        provider: str,
        expiration: str,
        list_prefixes: List[str],
        read_prefixes: List[str],
        write_prefixes: List[str]
    ) -> None:
        """Log a scoped storage credential issuance."""
        self._log(
            logging.INFO,
            "CREDENTIALS_ISSUED",
            session_name=session_name,
            provider=provider,
            expiration=expiration,
            list_prefixes=list_prefixes,
            read_prefixes=read_prefixes,
            write_prefixes=write_prefixes,
            message=f"Scoped credentials issued for {session_name}"
        )

    def verification_rejected(self, code: str, reason: str, key_id: Optional[str] = None) -> None:
        self._log(
            logging.WARNING,
            "VERIFICATION_REJECTED",
            code=code,
            reason=reason,
            key_id=key_id,
            message=f"Certified object rejected: {code}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (recommended for production)
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # stderr keeps stdout free for command output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set, or None to generate one

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


# Global audit logger instance
audit_log = AuditLogger()
