"""Shopify webhook receivers."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from rmadesk.core.database import get_db
from rmadesk.schemas.intake import ShopifyReturnWebhookResponse
from rmadesk.schemas.rma_case import RmaCaseResponse
from rmadesk.services.intake_service import IntakeService

router = APIRouter()


@router.post(
    "/returns",
    response_model=ShopifyReturnWebhookResponse,
    summary="Shopify returns webhook",
    responses={
        400: {"description": "Payload is missing the return or order id"},
        401: {"description": "Invalid Shopify webhook signature"},
    },
)
async def handle_shopify_return(
    request: Request,
    db: Session = Depends(get_db),
) -> ShopifyReturnWebhookResponse:
    """Open an RMA case for a Shopify return.

    The raw body is verified against ``X-Shopify-Hmac-Sha256``. Redeliveries of
    the same return resolve to the case created the first time.
    """
    payload = await request.body()
    outcome = IntakeService(db).ingest_shopify_return(payload, request.headers)
    return ShopifyReturnWebhookResponse(
        success=True,
        deduped=outcome.deduped,
        case=RmaCaseResponse.model_validate(outcome.case),
    )
