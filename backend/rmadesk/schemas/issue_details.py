"""Tagged issue-details variants stored in ``rma_cases.issue_details``."""

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

LEGACY_FORMAT = "shopify_return_webhook_legacy"
STRUCTURED_FORMAT = "shopify_return_webhook_v1"


class IssueLineItem(BaseModel):
    index: int | None = None
    item: str | None = None
    sku: str | None = None
    serial: str | None = None
    qty: int | None = None
    reason: str | None = None


class IssueCustomer(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None


class IssuePrimary(BaseModel):
    sku: str | None = None
    serial: str | None = None


class StructuredIssueDetails(BaseModel):
    format: Literal["shopify_return_webhook_v1"] = STRUCTURED_FORMAT
    source: str = "shopify_webhook"
    webhook_topic: str = "unknown"
    return_id: str | None = None
    order_id: str | None = None
    return_status: str | None = None
    customer: IssueCustomer = Field(default_factory=IssueCustomer)
    primary: IssuePrimary = Field(default_factory=IssuePrimary)
    return_note: str | None = None
    line_items: list[IssueLineItem] = Field(default_factory=list)


class LegacyIssueDetails(BaseModel):
    format: Literal["shopify_return_webhook_legacy"] = LEGACY_FORMAT
    webhook_topic: str = "unknown"
    return_note: str | None = None
    primary_sku: str | None = None
    line_items: list[IssueLineItem] = Field(default_factory=list)
    raw: str = ""


class ParsedIssueDetailsResponse(BaseModel):
    case_id: UUID
    parsed: StructuredIssueDetails | LegacyIssueDetails | None = None
