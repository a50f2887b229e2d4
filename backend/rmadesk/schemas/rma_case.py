"""RmaCase request and response schemas."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from rmadesk.models.rma_case import (
    ContactPreference,
    Disposition,
    RmaPriority,
    RmaSource,
    RmaStatus,
    SubmissionChannel,
    WarrantyBasis,
    WarrantyStatus,
)
from rmadesk.models.serial_service_event import ServiceEventType
from rmadesk.schemas.serial_registry import SerialRegistryResponse, SerialServiceEventResponse


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class RmaCaseCreate(BaseModel):
    shopify_order_id: str = Field(min_length=1, max_length=100)
    shopify_order_name: str | None = Field(default=None, max_length=100)
    shopify_order_number: int | None = None
    shopify_return_id: str | None = Field(default=None, max_length=100)
    external_reference: str | None = Field(default=None, max_length=150)
    inventory_item_id: UUID | None = None
    serial_number: str | None = Field(default=None, max_length=255)
    brand: str | None = None
    model: str | None = None
    customer_name: str | None = None
    customer_email: str | None = Field(default=None, max_length=255)
    customer_phone: str | None = Field(default=None, max_length=50)
    customer_contact_preference: ContactPreference = ContactPreference.UNKNOWN
    issue_summary: str = Field(min_length=1)
    issue_details: str | None = None
    arrival_condition_report: str | None = None
    status: RmaStatus = RmaStatus.RECEIVED
    priority: RmaPriority = RmaPriority.NORMAL
    source: RmaSource = RmaSource.MANUAL
    submission_channel: SubmissionChannel = SubmissionChannel.INTERNAL_DASHBOARD
    warranty_status: WarrantyStatus = WarrantyStatus.UNKNOWN
    warranty_basis: WarrantyBasis = WarrantyBasis.UNKNOWN
    warranty_expires_at: datetime | None = None
    order_processed_at: datetime | None = None
    assigned_technician_name: str | None = None
    assigned_technician_email: str | None = None
    sla_due_at: datetime | None = None
    create_ticket: bool = True

    @field_validator("shopify_order_id", "issue_summary", mode="before")
    @classmethod
    def strip_required(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator(
        "shopify_order_name",
        "shopify_return_id",
        "external_reference",
        "serial_number",
        "customer_name",
        "customer_email",
        "customer_phone",
        "issue_details",
        "arrival_condition_report",
        "assigned_technician_email",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)


NON_NULLABLE_UPDATE_FIELDS = frozenset(
    {
        "status",
        "priority",
        "customer_contact_preference",
        "issue_summary",
        "warranty_status",
        "warranty_basis",
    }
)


class RmaCaseUpdate(BaseModel):
    status: RmaStatus | None = None
    expected_status: RmaStatus | None = None
    note: str | None = None

    priority: RmaPriority | None = None
    serial_number: str | None = None
    inventory_item_id: UUID | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    customer_contact_preference: ContactPreference | None = None
    issue_summary: str | None = Field(default=None, min_length=1)
    issue_details: str | None = None
    arrival_condition_report: str | None = None

    warranty_status: WarrantyStatus | None = None
    warranty_basis: WarrantyBasis | None = None
    warranty_expires_at: datetime | None = None
    warranty_decision_notes: str | None = None
    disposition: Disposition | None = None
    disposition_reason: str | None = None

    assigned_technician_name: str | None = None
    assigned_technician_email: str | None = None

    inbound_carrier: str | None = None
    inbound_tracking_number: str | None = None
    inbound_tracking_url: str | None = None
    inbound_status: str | None = None
    outbound_carrier: str | None = None
    outbound_tracking_number: str | None = None
    outbound_tracking_url: str | None = None
    outbound_status: str | None = None

    sla_due_at: datetime | None = None
    received_at: datetime | None = None
    inspected_at: datetime | None = None
    shipped_back_at: datetime | None = None
    delivered_back_at: datetime | None = None
    closed_at: datetime | None = None

    @model_validator(mode="after")
    def reject_null_required(self) -> "RmaCaseUpdate":
        """Omitting a field leaves it alone; an explicit null on a NOT NULL column is an error."""
        nulled = sorted(
            name
            for name in self.model_fields_set & NON_NULLABLE_UPDATE_FIELDS
            if getattr(self, name) is None
        )
        if nulled:
            raise ValueError(f"{', '.join(nulled)} cannot be null")
        return self


class RmaStatusUpdate(BaseModel):
    status: RmaStatus
    note: str | None = None
    expected_status: RmaStatus | None = None


class RmaTrackingUpdate(BaseModel):
    direction: Literal["inbound", "outbound"]
    carrier: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    status: str | None = None
    note: str | None = None


class WarrantyDecision(BaseModel):
    warranty_status: WarrantyStatus
    warranty_basis: WarrantyBasis = WarrantyBasis.MANUAL_OVERRIDE
    warranty_expires_at: datetime | None = None
    notes: str | None = None
    priority: RmaPriority | None = None


class CaseEventCreate(BaseModel):
    event_type: ServiceEventType = ServiceEventType.SERVICE_NOTE
    summary: str = Field(min_length=1)
    notes: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_by: str | None = None


class AiRecommendation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recommendation: Literal["repair", "replace", "monitor"]
    confidence: float = Field(ge=0, le=1)
    rationale: str = Field(max_length=500)
    generated_at: datetime = Field(
        validation_alias=AliasChoices("generatedAt", "generated_at"),
        serialization_alias="generatedAt",
    )


class RmaCaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: str
    priority: str
    source: str
    submission_channel: str
    shopify_order_id: str
    shopify_order_name: str | None = None
    shopify_order_number: int | None = None
    shopify_return_id: str | None = None
    external_reference: str | None = None
    inventory_item_id: UUID | None = None
    serial_number: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    customer_contact_preference: str
    issue_summary: str
    issue_details: str | None = None
    arrival_condition_report: str | None = None
    warranty_status: str
    warranty_basis: str
    warranty_expires_at: datetime | None = None
    warranty_checked_at: datetime | None = None
    warranty_decision_notes: str | None = None
    order_processed_at: datetime | None = None
    disposition: str | None = None
    disposition_reason: str | None = None
    assigned_technician_name: str | None = None
    assigned_technician_email: str | None = None
    assigned_at: datetime | None = None
    inbound_carrier: str | None = None
    inbound_tracking_number: str | None = None
    inbound_tracking_url: str | None = None
    inbound_status: str | None = None
    outbound_carrier: str | None = None
    outbound_tracking_number: str | None = None
    outbound_tracking_url: str | None = None
    outbound_status: str | None = None
    hubspot_ticket_id: str | None = None
    ai_recommendation: dict[str, Any] | None = None
    sla_due_at: datetime | None = None
    received_at: datetime | None = None
    inspected_at: datetime | None = None
    shipped_back_at: datetime | None = None
    delivered_back_at: datetime | None = None
    closed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None


class TicketSyncResult(BaseModel):
    attempted: bool = False
    success: bool = False
    error: str | None = None
    ticket_id: str | None = None


class RmaCaseCreateResult(BaseModel):
    case: RmaCaseResponse
    deduped: bool = False
    ticket_sync: TicketSyncResult = Field(default_factory=TicketSyncResult)


class RmaCaseUpdateResult(BaseModel):
    case: RmaCaseResponse
    automations: list[str] = Field(default_factory=list)
    ticket_sync: TicketSyncResult = Field(default_factory=TicketSyncResult)


class RmaCaseDetail(BaseModel):
    case: RmaCaseResponse
    registry: SerialRegistryResponse | None = None
    events: list[SerialServiceEventResponse] = Field(default_factory=list)


class RmaCaseListResponse(BaseModel):
    cases: list[RmaCaseResponse]
    total: int
    offset: int
    limit: int
    has_more: bool


class RecommendationResult(BaseModel):
    case_id: UUID
    suggestion: AiRecommendation


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    action: str
    changes: dict[str, Any]
    actor_type: str
    actor_id: str | None = None
    metadata: dict[str, Any] | None = Field(
        default=None, validation_alias=AliasChoices("metadata_", "metadata")
    )
    created_at: datetime
