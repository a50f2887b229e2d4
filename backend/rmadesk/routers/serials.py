"""Serial registry API endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rmadesk.core.database import get_db
from rmadesk.schemas.serial_registry import (
    SerialEventCreate,
    SerialHistoryResponse,
    SerialRegistryResponse,
    SerialServiceEventResponse,
)
from rmadesk.services.serial_registry_service import SerialRegistryService

router = APIRouter()


@router.get(
    "/{serial_number}",
    response_model=SerialHistoryResponse,
    summary="Serial history",
    responses={404: {"description": "Serial number has no registry entry"}},
)
async def get_serial_history(
    serial_number: str, db: Session = Depends(get_db)
) -> SerialHistoryResponse:
    """Registry entry for a serial plus every service event, newest first."""
    registry, events = SerialRegistryService(db).history(serial_number)
    return SerialHistoryResponse(
        registry=SerialRegistryResponse.model_validate(registry),
        events=[SerialServiceEventResponse.model_validate(e) for e in events],
    )


@router.post(
    "/{serial_number}/events",
    response_model=SerialServiceEventResponse,
    status_code=201,
    summary="Add serial event",
    responses={
        400: {"description": "Serial number is blank"},
        422: {"description": "Validation error"},
    },
)
async def create_serial_event(
    serial_number: str,
    data: SerialEventCreate,
    db: Session = Depends(get_db),
) -> SerialServiceEventResponse:
    """Append an event that is not tied to an RMA case; the registry row is created if missing."""
    event = SerialRegistryService(db).record_event(serial_number, data)
    return SerialServiceEventResponse.model_validate(event)
