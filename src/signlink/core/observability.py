"""Audit logging for resilience and connection events.

Events are written to the ``signlink.audit`` logger with the structured
payload attached under ``extra["audit"]`` so handlers can filter or
serialize them independently of regular module logs.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

# Failure messages in audit details are truncated to this many characters
MAX_DETAIL_MESSAGE_LENGTH = 200


class AuditEventType(Enum):
    """Types of audit events emitted by the resilience layer."""

    RETRY_ATTEMPT = "retry_attempt"
    RETRY_EXHAUSTED = "retry_exhausted"
    OPERATION_TIMEOUT = "operation_timeout"
    DELAY_CANCELLED = "delay_cancelled"
    PROBE_RESULT = "probe_result"
    CONNECTION_STATE_CHANGE = "connection_state_change"
    OTHER = "other"


@dataclass
class AuditEvent:
    """Structured audit event."""

    event_type: AuditEventType
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "details": self.details,
        }


class AuditLogger:
    """
    Structured audit logging for resilience events.

    Audit logs are written to a separate logger for easy filtering.
    """

    def __init__(self):
        self._logger = logging.getLogger("signlink.audit")

    def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        self._logger.info(f"AUDIT: {event.event_type.value}", extra={"audit": event.to_dict()})


# Global audit logger
_audit = AuditLogger()


def get_audit_logger() -> AuditLogger:
    """Get the global audit logger."""
    return _audit


def truncate_message(failure: object) -> str:
    """Render a failure as a bounded-length string for audit details."""
    return str(failure)[:MAX_DETAIL_MESSAGE_LENGTH]


def audit_log(event_type: str, **details: Any) -> None:
    """
    Convenience function for audit logging.

    Args:
        event_type: Type of event (retry_attempt, retry_exhausted,
                    operation_timeout, delay_cancelled, probe_result,
                    connection_state_change)
        **details: Additional details to include in the audit log
    """
    try:
        event_enum = AuditEventType(event_type)
    except ValueError:
        event_enum = AuditEventType.OTHER
        details["original_event_type"] = event_type

    _audit.log(AuditEvent(event_type=event_enum, details=details))
