"""Serial registry and service-event log operations.

The registry holds one row per normalized serial number. Rows are created
lazily the first time a case or event mentions a serial and are never
deleted. Concurrent creators are reconciled by the unique constraint on
``serial_number``: the loser rolls back and applies its touch as an update.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rmadesk.models.rma_case import RmaStatus
from rmadesk.models.serial_registry import SerialRegistry
from rmadesk.models.serial_service_event import SerialServiceEvent, ServiceEventType
from rmadesk.models.shared import utc_now
from rmadesk.repositories.serial_registry_repository import SerialRegistryRepository
from rmadesk.repositories.serial_service_event_repository import SerialServiceEventRepository
from rmadesk.schemas.serial_registry import SerialEventCreate
from rmadesk.services.errors import (
    RmaValidationError,
    SerialRegistryNotFoundError,
    translate_schema_errors,
)

logger = logging.getLogger(__name__)

STATUS_TO_EVENT_TYPE: dict[str, ServiceEventType] = {
    RmaStatus.RECEIVED.value: ServiceEventType.RECEIVED,
    RmaStatus.TESTING.value: ServiceEventType.TESTING,
    RmaStatus.SENT_TO_MANUFACTURER.value: ServiceEventType.SENT_TO_MANUFACTURER,
    RmaStatus.REPAIRED_REPLACED.value: ServiceEventType.REPAIRED_REPLACED,
    RmaStatus.BACK_TO_CUSTOMER.value: ServiceEventType.BACK_TO_CUSTOMER,
}


def normalize_serial_number(value: str | None) -> str | None:
    """Trim and upper-case a serial; blank input yields None."""
    if value is None:
        return None
    normalized = value.strip()
    return normalized.upper() if normalized else None


def map_status_to_event(status: str) -> ServiceEventType:
    return STATUS_TO_EVENT_TYPE.get(str(status), ServiceEventType.SERVICE_NOTE)


class SerialRegistryService:
    def __init__(self, db: Session):
        self.db = db
        self.registry_repo = SerialRegistryRepository(db)
        self.event_repo = SerialServiceEventRepository(db)

    def _require_serial(self, serial_number: str | None) -> str:
        serial = normalize_serial_number(serial_number)
        if not serial:
            raise RmaValidationError("Serial number is required")
        return serial

    def _touch(
        self,
        serial_number: str | None,
        *,
        count: bool,
        initial_count: int,
        inventory_item_id: UUID | None = None,
        brand: str | None = None,
        model: str | None = None,
    ) -> SerialRegistry:
        serial = self._require_serial(serial_number)
        now = utc_now()
        existing = self.registry_repo.get_by_serial(serial)
        if existing is None:
            try:
                return self.registry_repo.create(
                    serial_number=serial,
                    rma_count=initial_count,
                    now=now,
                    inventory_item_id=inventory_item_id,
                    brand=brand,
                    model=model,
                )
            except IntegrityError:
                logger.info("Serial registry row for %s created concurrently; updating", serial)
                existing = self.registry_repo.get_by_serial(serial)
                if existing is None:
                    raise

        if not count and inventory_item_id is None and not brand and not model:
            return existing

        registry = self.registry_repo.record_touch(
            existing.id,  # type: ignore[arg-type]
            now=now,
            count=count,
            inventory_item_id=inventory_item_id,
            brand=brand,
            model=model,
        )
        if registry is None:
            raise SerialRegistryNotFoundError(serial)
        return registry

    def upsert_registry(
        self,
        serial_number: str | None,
        inventory_item_id: UUID | None = None,
        brand: str | None = None,
        model: str | None = None,
    ) -> SerialRegistry:
        """Count one more case against *serial_number*, creating the row if needed."""
        return self._touch(
            serial_number,
            count=True,
            initial_count=1,
            inventory_item_id=inventory_item_id,
            brand=brand,
            model=model,
        )

    def ensure_registry(
        self,
        serial_number: str | None,
        inventory_item_id: UUID | None = None,
        initial_count: int = 0,
    ) -> SerialRegistry:
        """Make sure a row exists without counting a new case touch."""
        return self._touch(
            serial_number,
            count=False,
            initial_count=initial_count,
            inventory_item_id=inventory_item_id,
        )

    def get_registry(self, serial_number: str | None) -> SerialRegistry | None:
        serial = normalize_serial_number(serial_number)
        if not serial:
            return None
        return self.registry_repo.get_by_serial(serial)

    def append_event(
        self,
        registry_id: UUID,
        event_type: ServiceEventType | str,
        summary: str,
        rma_case_id: UUID | None = None,
        notes: str | None = None,
        metadata: dict[str, Any] | None = None,
        created_by: str | None = None,
    ) -> SerialServiceEvent:
        if self.registry_repo.get_by_id(registry_id) is None:
            raise SerialRegistryNotFoundError(registry_id)
        value = event_type.value if isinstance(event_type, ServiceEventType) else event_type
        return self.event_repo.create(
            serial_registry_id=registry_id,
            rma_case_id=rma_case_id,
            event_type=value,
            summary=summary,
            notes=notes,
            metadata=metadata,
            created_by=created_by,
        )

    def events_for(self, registry_id: UUID, limit: int | None = None) -> list[SerialServiceEvent]:
        return self.event_repo.get_by_registry(registry_id, limit=limit)

    @translate_schema_errors
    def history(
        self, serial_number: str | None
    ) -> tuple[SerialRegistry, list[SerialServiceEvent]]:
        """Registry row plus its events, newest first."""
        serial = self._require_serial(serial_number)
        registry = self.registry_repo.get_by_serial(serial)
        if registry is None:
            raise SerialRegistryNotFoundError(serial)
        return registry, self.events_for(registry.id)  # type: ignore[arg-type]

    @translate_schema_errors
    def record_event(
        self, serial_number: str | None, event: SerialEventCreate
    ) -> SerialServiceEvent:
        """Log a service event that is not tied to a case, such as lamp hours or a sale."""
        registry = self.ensure_registry(serial_number, event.inventory_item_id)
        logger.info("Recording %s event for serial %s", event.event_type.value, registry.serial_number)
        return self.append_event(
            registry.id,  # type: ignore[arg-type]
            event.event_type,
            event.summary,
            notes=event.notes,
            metadata=event.metadata,
            created_by=event.created_by,
        )
