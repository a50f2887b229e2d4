"""IdempotencyRecord model for at-most-once execution of side-effecting requests."""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Integer, String, UniqueConstraint, func

from rmadesk.core.database import Base
from rmadesk.models.shared import UUIDType, generate_uuid, utc_now


class IdempotencyState(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class IdempotencyRecord(Base):
    """Claim and stored response for one (endpoint, idempotency key) pair."""

    __tablename__ = "idempotency_records"
    __table_args__ = (
        UniqueConstraint("endpoint", "idempotency_key", name="uq_endpoint_idempotency_key"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    endpoint = Column(String(200), nullable=False)
    idempotency_key = Column(String(255), nullable=False, index=True)
    request_hash = Column(String(64), nullable=False)
    state = Column(String(20), nullable=False, default=IdempotencyState.IN_PROGRESS.value)
    status_code = Column(Integer, nullable=True)
    response_body = Column(JSON, nullable=True)
    locked_until = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
    )
