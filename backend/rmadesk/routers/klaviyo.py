"""Klaviyo campaign push endpoint."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from rmadesk.core.database import get_db
from rmadesk.core.idempotency import (
    IdempotencyResult,
    check_idempotency,
    record_idempotency_failure,
    record_idempotency_response,
)
from rmadesk.schemas.klaviyo import KlaviyoPushRequest, KlaviyoPushResponse
from rmadesk.services.errors import RmaError
from rmadesk.services.klaviyo_push import push_to_klaviyo

router = APIRouter()


@router.post(
    "/push",
    response_model=KlaviyoPushResponse,
    status_code=201,
    summary="Push email to Klaviyo",
    responses={
        400: {"description": "Sender configuration missing for campaign creation"},
        409: {"description": "Idempotency conflict"},
        502: {"description": "Klaviyo request failed"},
        503: {"description": "Klaviyo integration not configured"},
    },
)
async def push_klaviyo_campaign(
    data: KlaviyoPushRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> KlaviyoPushResponse | JSONResponse:
    """Create a Klaviyo template and, when requested, a draft campaign that uses it.

    Send an ``Idempotency-Key`` header so a retried push does not create a
    second template or campaign.
    """
    idempotency = check_idempotency(
        request, db, "POST /v1/klaviyo/push", data.model_dump(mode="json")
    )
    if isinstance(idempotency, JSONResponse):
        return idempotency

    try:
        result = push_to_klaviyo(data)
    except RmaError as exc:
        record_idempotency_failure(db, idempotency, exc.status_code, exc.message, exc.code)
        raise

    if isinstance(idempotency, IdempotencyResult):
        record_idempotency_response(db, idempotency, 201, result.model_dump(mode="json"))
    return result
