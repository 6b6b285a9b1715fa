from typing import Any

from sqlalchemy.orm import Session

from settlement.models.audit_log import AuditLog


class AuditService:
    """
    Append-only audit trail. Flushes inside the caller's transaction so the
    entry commits (or rolls back) together with the change it describes.
    """

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
        self.db.flush()
        return entry
