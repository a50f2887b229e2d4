from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from rmadesk.models.rma_communication import RmaCommunication


class RmaCommunicationRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        rma_case_id: UUID,
        recipient: str,
        subject: str,
        body: str,
        status: str,
        template_key: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> RmaCommunication:
        entry = RmaCommunication(
            rma_case_id=rma_case_id,
            recipient=recipient,
            subject=subject,
            body=body,
            status=status,
            template_key=template_key,
            metadata_=metadata or {},
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def for_case(self, rma_case_id: UUID, limit: int = 50) -> list[RmaCommunication]:
        """Newest first."""
        return (
            self.db.query(RmaCommunication)
            .filter(RmaCommunication.rma_case_id == rma_case_id)
            .order_by(RmaCommunication.created_at.desc(), RmaCommunication.id.desc())
            .limit(limit)
            .all()
        )
