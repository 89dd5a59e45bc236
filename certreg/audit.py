"""Audit logging for ledger-mutating operations.

Every registration, request, approval, cancellation and authorization
change is recorded with its outcome, whether it succeeded or was refused
by a local pre-check or by the ledger.
"""

import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

log = logging.getLogger("audit")


@dataclass
class AuditEvent:
    """Structured audit event."""

    action: str  # e.g. "identity.register", "request.approve"
    principal: str = "anonymous"  # acting account address
    resource: Optional[str] = None  # e.g. request id, institute address
    status: str = "success"  # "success", "denied", "error"
    details: Optional[Dict[str, Any]] = None
    request_id: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class AuditLogger:
    """Writes audit events to the "audit" logger and keeps a ring buffer."""

    MAX_BUFFER_SIZE = 1000

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._buffer: Deque[dict] = deque(maxlen=self.MAX_BUFFER_SIZE)

    def log(
        self,
        action: str,
        principal: Optional[str] = None,
        resource: Optional[str] = None,
        status: str = "success",
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> None:
        if not self.enabled:
            return

        event = AuditEvent(
            action=action,
            principal=principal or "anonymous",
            resource=resource,
            status=status,
            details=details,
            request_id=request_id,
        )
        self._buffer.append(asdict(event))

        extra = {
            "type": "audit",
            "principal": event.principal,
            "action": event.action,
            "status": event.status,
        }
        if event.resource:
            extra["resource"] = event.resource
        if event.request_id:
            extra["request_id"] = event.request_id
        if event.details:
            extra["details"] = event.details

        if event.status in ("denied", "error"):
            log.warning(f"audit: {event.action} {event.status}", extra=extra)
        else:
            log.info(f"audit: {event.action} {event.status}", extra=extra)

    def get_recent_events(
        self,
        limit: int = 100,
        action_filter: Optional[str] = None,
        status_filter: Optional[str] = None,
    ) -> List[dict]:
        """Recent events, newest first.

        Args:
            limit: Max events to return.
            action_filter: Keep actions starting with this prefix.
            status_filter: Keep events with exactly this status.
        """
        events = list(self._buffer)
        events.reverse()

        if action_filter:
            events = [e for e in events if e["action"].startswith(action_filter)]
        if status_filter:
            events = [e for e in events if e["status"] == status_filter]

        return events[:limit]

    def get_buffer_stats(self) -> dict:
        return {
            "buffer_size": len(self._buffer),
            "max_buffer_size": self.MAX_BUFFER_SIZE,
        }


_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get the global audit logger instance."""
    global _audit_logger

    if _audit_logger is None:
        _audit_logger = AuditLogger()

    return _audit_logger


def reset_audit_logger() -> None:
    """Reset the global logger (for testing)."""
    global _audit_logger
    _audit_logger = None
