"""Repository for IdempotencyRecord claims."""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rmadesk.models.idempotency_record import IdempotencyRecord, IdempotencyState


class IdempotencyRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, record_id: UUID) -> IdempotencyRecord | None:
        return self.db.query(IdempotencyRecord).filter(IdempotencyRecord.id == record_id).first()

    def get_by_key(self, endpoint: str, idempotency_key: str) -> IdempotencyRecord | None:
        return (
            self.db.query(IdempotencyRecord)
            .filter(
                IdempotencyRecord.endpoint == endpoint,
                IdempotencyRecord.idempotency_key == idempotency_key,
            )
            .first()
        )

    def create(
        self,
        *,
        endpoint: str,
        idempotency_key: str,
        request_hash: str,
        locked_until: datetime,
    ) -> IdempotencyRecord:
        """Insert an in-progress claim; raises ``IntegrityError`` (after rollback) if taken."""
        record = IdempotencyRecord(
            endpoint=endpoint,
            idempotency_key=idempotency_key,
            request_hash=request_hash,
            state=IdempotencyState.IN_PROGRESS.value,
            locked_until=locked_until,
        )
        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        self.db.refresh(record)
        return record

    def take_over(
        self,
        record_id: UUID,
        *,
        expired_before: datetime,
        locked_until: datetime,
    ) -> bool:
        """Re-claim a stale in-progress record; False when another caller got there first."""
        count = (
            self.db.query(IdempotencyRecord)
            .filter(
                IdempotencyRecord.id == record_id,
                IdempotencyRecord.state == IdempotencyState.IN_PROGRESS.value,
                IdempotencyRecord.locked_until <= expired_before,
            )
            .update(
                {IdempotencyRecord.locked_until: locked_until},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return bool(count)

    def finalize(
        self,
        record_id: UUID,
        *,
        state: IdempotencyState,
        status_code: int,
        response_body: Any,
        completed_at: datetime,
    ) -> IdempotencyRecord | None:
        record = self.get_by_id(record_id)
        if record is None:
            return None
        record.state = state.value  # type: ignore[assignment]
        record.status_code = status_code  # type: ignore[assignment]
        record.response_body = response_body  # type: ignore[assignment]
        record.completed_at = completed_at  # type: ignore[assignment]
        record.locked_until = None  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(record)
        return record

    def delete_expired(self, max_age_hours: int = 72) -> int:
        cutoff = datetime.now(UTC) - timedelta(hours=max_age_hours)
        count = (
            self.db.query(IdempotencyRecord)
            .filter(IdempotencyRecord.created_at < cutoff)
            .delete()
        )
        self.db.commit()
        return int(count)
