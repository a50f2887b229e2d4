"""Repository for the append-only SerialServiceEvent log."""

from typing import Any
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from rmadesk.models.serial_service_event import SerialServiceEvent
from rmadesk.models.shared import utc_now


class SerialServiceEventRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        serial_registry_id: UUID,
        event_type: str,
        summary: str,
        rma_case_id: UUID | None = None,
        notes: str | None = None,
        metadata: dict[str, Any] | None = None,
        created_by: str | None = None,
    ) -> SerialServiceEvent:
        last = (
            self.db.query(func.max(SerialServiceEvent.sequence))
            .filter(SerialServiceEvent.serial_registry_id == serial_registry_id)
            .scalar()
        )
        event = SerialServiceEvent(
            serial_registry_id=serial_registry_id,
            sequence=(last or 0) + 1,
            rma_case_id=rma_case_id,
            event_type=event_type,
            summary=summary,
            notes=notes,
            metadata_=metadata or {},
            created_by=created_by,
            created_at=utc_now(),
        )
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def get_by_registry(
        self, serial_registry_id: UUID, limit: int | None = None
    ) -> list[SerialServiceEvent]:
        query = (
            self.db.query(SerialServiceEvent)
            .filter(SerialServiceEvent.serial_registry_id == serial_registry_id)
            .order_by(SerialServiceEvent.created_at.desc(), SerialServiceEvent.sequence.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def get_by_cases(
        self, rma_case_ids: list[UUID], event_types: list[str]
    ) -> list[SerialServiceEvent]:
        if not rma_case_ids:
            return []
        return (
            self.db.query(SerialServiceEvent)
            .filter(
                SerialServiceEvent.rma_case_id.in_(rma_case_ids),
                SerialServiceEvent.event_type.in_(event_types),
            )
            .order_by(SerialServiceEvent.created_at.desc(), SerialServiceEvent.sequence.desc())
            .all()
        )
