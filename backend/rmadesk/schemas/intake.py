"""Schemas for customer-facing and webhook-driven RMA intake."""

from uuid import UUID

from pydantic import BaseModel, Field

from rmadesk.schemas.rma_case import RmaCaseResponse


class PublicRmaRequest(BaseModel):
    order_number: str = Field(min_length=1, max_length=50)
    email: str = Field(min_length=3, max_length=255)
    customer_name: str | None = Field(default=None, max_length=255)
    customer_phone: str | None = Field(default=None, max_length=50)
    serial_number: str | None = Field(default=None, max_length=255)
    issue_summary: str = Field(min_length=1, max_length=1000)
    issue_details: str | None = Field(default=None, max_length=5000)
    # Honeypot: humans never see this field.
    website: str | None = None


class PublicRmaResponse(BaseModel):
    success: bool = True
    accepted: bool = True
    deduped: bool = False
    case_id: UUID | None = None


class ShopifyReturnWebhookResponse(BaseModel):
    success: bool = True
    deduped: bool = False
    case: RmaCaseResponse
