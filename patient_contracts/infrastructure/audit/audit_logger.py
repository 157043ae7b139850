"""Lifecycle Audit Logger.

Records destructive and lifecycle operations on patient records (create,
update, archive, restore, merge, anonymize) together with who performed them
and why.

Security Impact:
    - Every destructive operation carries ``performed_by`` and ``reason``
    - Entries hold identifiers only; no PHI is copied into the trail
    - The buffer is append-only; ``clear`` exists for flushing after export

Architecture:
    - Infrastructure layer component implementing ``AuditLogPort``
    - Emits one structured log record per event so JSON logging captures the trail
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from patient_contracts.domain.ports import AuditLogPort

logger = logging.getLogger(__name__)


class LoggingAuditLog(AuditLogPort):
    """Audit log that buffers events in memory and mirrors them to logging.

    Example Usage:
        ```python
        audit = LoggingAuditLog()
        audit.record(
            "archive",
            subject_id=patient.id,
            performed_by=user_id,
            reason="Duplicate chart",
        )
        events = audit.get_events(action="archive")
        ```
    """

    def __init__(self, source: str = "patient_contracts"):
        """Initialize audit log.

        Parameters:
            source: Name recorded on every event, identifying the emitting component
        """
        self._events: List[dict] = []
        self.source = source

    def record(
        self,
        action: str,
        *,
        subject_id: UUID,
        performed_by: UUID,
        reason: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        event = {
            "event_id": str(uuid.uuid4()),
            "action": action,
            "subject_id": str(subject_id),
            "performed_by": str(performed_by),
            "reason": reason,
            "details": dict(details or {}),
            "source": self.source,
            "recorded_at": datetime.now(timezone.utc),
        }
        self._events.append(event)

        logger.info(
            f"Audit: {action} on {subject_id} by {performed_by}",
            extra={"extra_fields": {
                "audit_event_id": event["event_id"],
                "audit_action": action,
                "audit_subject_id": event["subject_id"],
                "audit_performed_by": event["performed_by"],
            }},
        )

    def get_events(self, action: Optional[str] = None, subject_id: Optional[UUID] = None) -> List[dict]:
        """Get buffered events, optionally filtered.

        Parameters:
            action: Only events of this action
            subject_id: Only events about this patient

        Returns:
            List of event dictionaries in recording order
        """
        events = self._events
        if action is not None:
            events = [event for event in events if event["action"] == action]
        if subject_id is not None:
            events = [event for event in events if event["subject_id"] == str(subject_id)]
        return list(events)

    def clear(self) -> None:
        """Clear buffered events (after they have been exported)."""
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)
