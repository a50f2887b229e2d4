"""Audit trail rows written around RMA case changes."""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Index, String, func

from rmadesk.core.database import Base
from rmadesk.models.shared import UUIDType, generate_uuid, utc_now


class AuditAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    STATUS_CHANGED = "status_changed"


class ActorType(str, Enum):
    USER = "user"
    SYSTEM = "system"


class AuditLog(Base):
    __tablename__ = "audit_logs"
    __table_args__ = (Index("ix_audit_logs_resource", "resource_type", "resource_id"),)

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(UUIDType, nullable=False)
    action = Column(String(50), nullable=False, index=True)
    changes = Column(JSON, nullable=False, default=dict)
    actor_type = Column(String(50), nullable=False, default=ActorType.SYSTEM.value)
    actor_id = Column(String(255), nullable=True)
    metadata_ = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
