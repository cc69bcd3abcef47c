"""
Structured Logging Module for the governance kernel.

Provides JSON-formatted structured logging for observability.
Key events: lifecycle transitions, denied operations, store failures,
audit write failures, approval requests.

Operational logs are not the audit trail: the audit ledger is the record of
decisions, these logs are for operators.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from governance.config import settings


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    All logs are emitted as single-line JSON objects for easy parsing
    by log aggregation tools.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "extra_fields"):
            log_entry.update(record.extra_fields)

        # Add exception info if present
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class StructuredLogger:
    """
    Structured logger wrapper with domain-specific methods.

    Provides typed logging for governance kernel events.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _log(
        self,
        level: int,
        message: str,
        exc_info: bool = False,
        **kwargs: Any
    ) -> None:
        """Internal log method with extra fields."""
        extra = {"extra_fields": kwargs}
        self.logger.log(level, message, extra=extra, exc_info=exc_info)

    # ===== Lifecycle Events =====

    def transition_applied(
        self,
        action: str,
        resource_id: str,
        actor_type: str,
        request_id: str,
        from_status: Optional[str] = None,
        to_status: Optional[str] = None
    ) -> None:
        """Log a successful lifecycle operation."""
        self._log(
            logging.INFO,
            f"{action} applied to {resource_id}",
            event="governance.transition_applied",
            action=action,
            resource_id=resource_id,
            actor_type=actor_type,
            request_id=request_id,
            from_status=from_status,
            to_status=to_status
        )

    def transition_denied(
        self,
        action: str,
        resource_id: Optional[str],
        actor_type: str,
        request_id: str,
        code: str,
        reason: str
    ) -> None:
        """Log an operation rejected by a permission, state or validation rule."""
        self._log(
            logging.INFO,
            f"{action} denied ({code}): {reason}",
            event="governance.transition_denied",
            action=action,
            resource_id=resource_id,
            actor_type=actor_type,
            request_id=request_id,
            code=code,
            reason=reason
        )

    def store_failure(
        self,
        operation: str,
        request_id: str,
        error: str
    ) -> None:
        """Log an unexpected store exception converted to INTERNAL_ERROR."""
        self._log(
            logging.ERROR,
            f"Store failure during {operation}: {error}",
            exc_info=True,
            event="governance.store_failure",
            operation=operation,
            request_id=request_id,
            error=error
        )

    # ===== Audit Events =====

    def audit_write_failed(
        self,
        action: str,
        request_id: Optional[str],
        error: str,
        batch_size: int = 1
    ) -> None:
        """Log an audit write that did not reach the store."""
        self._log(
            logging.ERROR,
            f"Audit write failed for {action}: {error}",
            exc_info=True,
            event="audit.write_failed",
            action=action,
            request_id=request_id,
            error=error,
            batch_size=batch_size
        )

    # ===== Approval Events =====

    def approval_request_opened(
        self,
        request_id: str,
        resource_type: str,
        resource_id: str,
        action: str,
        requester_id: str
    ) -> None:
        """Log approval request creation."""
        self._log(
            logging.INFO,
            f"Approval request opened for {resource_type}:{resource_id}",
            event="approval.opened",
            approval_request_id=request_id,
            resource_type=resource_type,
            resource_id=resource_id,
            action=action,
            requester_id=requester_id
        )

    def approval_request_resolved(
        self,
        request_id: str,
        status: str,
        reviewer_id: Optional[str]
    ) -> None:
        """Log approval request approval, rejection or cancellation."""
        self._log(
            logging.INFO,
            f"Approval request {request_id} {status}",
            event="approval.resolved",
            approval_request_id=request_id,
            status=status,
            reviewer_id=reviewer_id
        )


def setup_logging() -> None:
    """
    Configure application-wide logging.

    Should be called once at application startup.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper()))

    # Remove existing handlers
    root_logger.handlers = []

    # Add JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    # Set levels for noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger for a module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        StructuredLogger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.transition_applied("knowledge.approve", item_id, "user", request_id)
    """
    return StructuredLogger(name)
