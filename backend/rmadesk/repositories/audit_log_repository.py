from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from rmadesk.models.audit_log import ActorType, AuditAction, AuditLog


class AuditLogRepository:
    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        resource_type: str,
        resource_id: UUID,
        action: AuditAction,
        changes: dict[str, Any],
        actor_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AuditLog:
        entry = AuditLog(
            resource_type=resource_type,
            resource_id=resource_id,
            action=action.value,
            changes=changes,
            actor_type=(ActorType.USER if actor_id else ActorType.SYSTEM).value,
            actor_id=actor_id,
            metadata_=metadata,
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def timeline(
        self,
        resource_type: str,
        resource_id: UUID,
        action: AuditAction | None = None,
        limit: int = 200,
    ) -> list[AuditLog]:
        """Entries for one resource, oldest first."""
        query = self.db.query(AuditLog).filter(
            AuditLog.resource_type == resource_type,
            AuditLog.resource_id == resource_id,
        )
        if action is not None:
            query = query.filter(AuditLog.action == action.value)
        return query.order_by(AuditLog.created_at.asc(), AuditLog.id.asc()).limit(limit).all()
