import logging
from typing import Any

from sqlalchemy.orm import Session

from teachkit.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def log(
        self,
        actor_type: str,
        actor_id: str | None,
        action: str,
        entity_type: str,
        entity_id: str | None,
        payload: dict[str, Any] | None = None,
    ) -> AuditLog:
        entry = AuditLog(
            actor_type=actor_type,
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            payload=payload or {},
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def security_event(self, user_id: str | None, action: str, payment_intent_id: str | None, payload: dict[str, Any]) -> None:
        """Record a payment security violation. Audit failures never mask the rejection itself."""
        try:
            self.log("user", user_id, action, "payment", payment_intent_id, payload)
        except Exception:
            self.db.rollback()
            logger.exception("audit_write_failed", extra={"user_id": user_id, "payment_intent_id": payment_intent_id})
