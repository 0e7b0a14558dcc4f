from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.activity_log import ActivityLog
from app.services.side_effects import DeliveryOutcome, SideEffectResult

logger = logging.getLogger(__name__)

AUDIT_CHANNEL = "audit"


class AuditSink:
    """Appends audit entries in their own commit, after the primary write."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def append(
        self,
        action: str,
        actor_email: str | None,
        details: dict | None = None,
        *,
        entity_type: str | None = None,
        entity_id: str | None = None,
    ) -> SideEffectResult:
        record = ActivityLog(
            actor_email=(actor_email or "").strip().lower() or None,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details or {},
        )
        try:
            self._db.add(record)
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.warning("Audit entry %s for %s was not recorded", action, entity_id, exc_info=True)
            return SideEffectResult(channel=AUDIT_CHANNEL, outcome=DeliveryOutcome.failed, target=entity_id, detail=str(exc))
        return SideEffectResult(channel=AUDIT_CHANNEL, outcome=DeliveryOutcome.sent, target=entity_id)
