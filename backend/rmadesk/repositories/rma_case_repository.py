"""Repository for RmaCase rows."""

from typing import Any
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from rmadesk.models.rma_case import RmaCase, RmaStatus


class RmaCaseRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, case_id: UUID) -> RmaCase | None:
        return self.db.query(RmaCase).filter(RmaCase.id == case_id).first()

    def get_open_by_dedupe_key(self, dedupe_key: str) -> RmaCase | None:
        return (
            self.db.query(RmaCase)
            .filter(
                RmaCase.dedupe_key == dedupe_key,
                RmaCase.status != RmaStatus.BACK_TO_CUSTOMER.value,
            )
            .first()
        )

    def create(self, values: dict[str, Any]) -> RmaCase:
        """Insert a case; raises ``IntegrityError`` (after rollback) on a dedupe key clash."""
        rma_case = RmaCase(**values)
        self.db.add(rma_case)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        self.db.refresh(rma_case)
        return rma_case

    def apply_update(
        self,
        case_id: UUID,
        values: dict[str, Any],
        expected_status: str | None = None,
    ) -> int:
        """Write *values* in a single UPDATE and return the number of rows matched.

        When *expected_status* is given the row only matches while its status
        still equals it, which gives callers an optimistic precondition.
        """
        query = self.db.query(RmaCase).filter(RmaCase.id == case_id)
        if expected_status is not None:
            query = query.filter(RmaCase.status == expected_status)
        count = query.update(values, synchronize_session=False)
        self.db.commit()
        return int(count)

    def refresh(self, rma_case: RmaCase) -> RmaCase:
        self.db.refresh(rma_case)
        return rma_case

    def _filtered(
        self,
        status: str | None = None,
        source: str | None = None,
        warranty_status: str | None = None,
        priority: str | None = None,
        technician_email: str | None = None,
        my_queue_email: str | None = None,
        serial_number: str | None = None,
        customer_email: str | None = None,
        search: str | None = None,
    ) -> Query:
        query = self.db.query(RmaCase)
        if status:
            query = query.filter(RmaCase.status == status)
        if source:
            query = query.filter(RmaCase.source == source)
        if warranty_status:
            query = query.filter(RmaCase.warranty_status == warranty_status)
        if priority:
            query = query.filter(RmaCase.priority == priority)
        if technician_email:
            query = query.filter(RmaCase.assigned_technician_email == technician_email)
        if my_queue_email:
            query = query.filter(RmaCase.assigned_technician_email == my_queue_email)
        if serial_number:
            query = query.filter(RmaCase.serial_number == serial_number)
        if customer_email:
            query = query.filter(RmaCase.customer_email == customer_email)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(
                    RmaCase.shopify_order_id.ilike(pattern),
                    RmaCase.shopify_order_name.ilike(pattern),
                    RmaCase.serial_number.ilike(pattern),
                    RmaCase.issue_summary.ilike(pattern),
                    RmaCase.customer_name.ilike(pattern),
                    RmaCase.customer_email.ilike(pattern),
                )
            )
        return query

    def get_page(
        self, offset: int = 0, limit: int = 50, **filters: Any
    ) -> tuple[list[RmaCase], int]:
        query = self._filtered(**filters)
        total = query.count()
        rows = (
            query.order_by(RmaCase.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return rows, int(total)

    def get_all(self, limit: int | None = None, **filters: Any) -> list[RmaCase]:
        query = self._filtered(**filters).order_by(RmaCase.created_at.desc())
        if limit is not None:
            query = query.limit(limit)
        return query.all()
