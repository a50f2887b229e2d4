"""SerialRegistry and SerialServiceEvent schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from rmadesk.models.serial_service_event import ServiceEventType


class SerialRegistryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    serial_number: str
    brand: str | None = None
    model: str | None = None
    inventory_item_id: UUID | None = None
    rma_count: int
    first_seen_at: datetime
    last_rma_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SerialServiceEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    serial_registry_id: UUID
    rma_case_id: UUID | None = None
    event_type: str
    summary: str
    notes: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="metadata_")
    created_by: str | None = None
    created_at: datetime


class SerialEventCreate(BaseModel):
    event_type: ServiceEventType = ServiceEventType.SERVICE_NOTE
    summary: str = Field(min_length=1)
    notes: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_by: str | None = None
    inventory_item_id: UUID | None = None


class SerialHistoryResponse(BaseModel):
    registry: SerialRegistryResponse
    events: list[SerialServiceEventResponse]
