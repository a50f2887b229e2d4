"""Repository for SerialRegistry rows."""

from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rmadesk.models.serial_registry import SerialRegistry


class SerialRegistryRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, registry_id: UUID) -> SerialRegistry | None:
        return self.db.query(SerialRegistry).filter(SerialRegistry.id == registry_id).first()

    def get_by_serial(self, serial_number: str) -> SerialRegistry | None:
        return (
            self.db.query(SerialRegistry)
            .filter(SerialRegistry.serial_number == serial_number)
            .first()
        )

    def create(
        self,
        *,
        serial_number: str,
        rma_count: int,
        now: datetime,
        inventory_item_id: UUID | None = None,
        brand: str | None = None,
        model: str | None = None,
    ) -> SerialRegistry:
        """Insert a new row; raises ``IntegrityError`` (after rollback) on a duplicate serial."""
        registry = SerialRegistry(
            serial_number=serial_number,
            rma_count=rma_count,
            inventory_item_id=inventory_item_id,
            brand=brand,
            model=model,
            first_seen_at=now,
            last_rma_at=now if rma_count > 0 else None,
        )
        self.db.add(registry)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        self.db.refresh(registry)
        return registry

    def record_touch(
        self,
        registry_id: UUID,
        *,
        now: datetime,
        count: bool,
        inventory_item_id: UUID | None = None,
        brand: str | None = None,
        model: str | None = None,
    ) -> SerialRegistry | None:
        """Apply a touch with SQL-side arithmetic so concurrent callers never lose a count."""
        values: dict = {SerialRegistry.updated_at: now}
        if count:
            values[SerialRegistry.rma_count] = SerialRegistry.rma_count + 1
            values[SerialRegistry.last_rma_at] = now
        if brand:
            values[SerialRegistry.brand] = brand
        if model:
            values[SerialRegistry.model] = model
        self.db.query(SerialRegistry).filter(SerialRegistry.id == registry_id).update(
            values, synchronize_session=False
        )

        # First writer wins for the inventory link.
        if inventory_item_id is not None:
            self.db.query(SerialRegistry).filter(
                SerialRegistry.id == registry_id,
                SerialRegistry.inventory_item_id.is_(None),
            ).update(
                {SerialRegistry.inventory_item_id: inventory_item_id},
                synchronize_session=False,
            )
        self.db.commit()

        registry = self.get_by_id(registry_id)
        if registry is not None:
            self.db.refresh(registry)
        return registry
