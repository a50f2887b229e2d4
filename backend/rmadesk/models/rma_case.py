"""RmaCase model: one row per customer return/repair intake."""

from enum import Enum

from sqlalchemy import JSON, BigInteger, Column, DateTime, Index, String, Text, func

from rmadesk.core.database import Base
from rmadesk.models.shared import UUIDType, generate_uuid, utc_now


class RmaStatus(str, Enum):
    RECEIVED = "received"
    TESTING = "testing"
    SENT_TO_MANUFACTURER = "sent_to_manufacturer"
    REPAIRED_REPLACED = "repaired_replaced"
    BACK_TO_CUSTOMER = "back_to_customer"


class RmaPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class WarrantyStatus(str, Enum):
    IN_WARRANTY = "in_warranty"
    OUT_OF_WARRANTY = "out_of_warranty"
    UNKNOWN = "unknown"


class WarrantyBasis(str, Enum):
    MANUFACTURER = "manufacturer"
    EXTENDED = "extended"
    ACL = "acl"
    MANUAL_OVERRIDE = "manual_override"
    UNKNOWN = "unknown"


class RmaSource(str, Enum):
    SHOPIFY_WEBHOOK = "shopify_webhook"
    MANUAL = "manual"
    PUBLIC_FORM = "public_form"


class SubmissionChannel(str, Enum):
    INTERNAL_DASHBOARD = "internal_dashboard"
    SHOPIFY_WEBHOOK = "shopify_webhook"
    CUSTOMER_PORTAL = "customer_portal"


class ContactPreference(str, Enum):
    EMAIL = "email"
    PHONE = "phone"
    SMS = "sms"
    UNKNOWN = "unknown"


class Disposition(str, Enum):
    REPAIR = "repair"
    REPLACE = "replace"
    REFUND = "refund"
    REJECT = "reject"
    MONITOR = "monitor"


class RmaCase(Base):
    """A tracked return/repair case, with independent inbound and outbound legs."""

    __tablename__ = "rma_cases"
    __table_args__ = (
        Index("ix_rma_cases_status", "status"),
        Index("ix_rma_cases_shopify_order_id", "shopify_order_id"),
        Index("ix_rma_cases_serial_number", "serial_number"),
        Index("ix_rma_cases_customer_email", "customer_email"),
        Index("ix_rma_cases_assigned_technician_email", "assigned_technician_email"),
        Index("ix_rma_cases_shopify_return_id", "shopify_return_id"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    status = Column(String(50), nullable=False, default=RmaStatus.RECEIVED.value)
    priority = Column(String(20), nullable=False, default=RmaPriority.NORMAL.value)
    source = Column(String(50), nullable=False, default=RmaSource.MANUAL.value)
    submission_channel = Column(
        String(50), nullable=False, default=SubmissionChannel.INTERNAL_DASHBOARD.value
    )

    # Order identity
    shopify_order_id = Column(String(100), nullable=False)
    shopify_order_name = Column(String(100), nullable=True)
    shopify_order_number = Column(BigInteger, nullable=True)
    shopify_return_id = Column(String(100), nullable=True)
    external_reference = Column(String(150), nullable=True)
    dedupe_key = Column(String(255), nullable=True, unique=True)
    inventory_item_id = Column(UUIDType, nullable=True)
    serial_number = Column(String(255), nullable=True)

    # Customer
    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    customer_contact_preference = Column(
        String(20), nullable=False, default=ContactPreference.UNKNOWN.value
    )

    # Issue
    issue_summary = Column(Text, nullable=False)
    issue_details = Column(Text, nullable=True)
    arrival_condition_report = Column(Text, nullable=True)

    # Warranty
    warranty_status = Column(String(30), nullable=False, default=WarrantyStatus.UNKNOWN.value)
    warranty_basis = Column(String(30), nullable=False, default=WarrantyBasis.UNKNOWN.value)
    warranty_expires_at = Column(DateTime(timezone=True), nullable=True)
    warranty_checked_at = Column(DateTime(timezone=True), nullable=True)
    warranty_decision_notes = Column(Text, nullable=True)
    order_processed_at = Column(DateTime(timezone=True), nullable=True)

    disposition = Column(String(20), nullable=True)
    disposition_reason = Column(Text, nullable=True)

    # Assignment
    assigned_technician_name = Column(String(255), nullable=True)
    assigned_technician_email = Column(String(255), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)

    # Inbound leg (customer -> service)
    inbound_carrier = Column(String(120), nullable=True)
    inbound_tracking_number = Column(String(200), nullable=True)
    inbound_tracking_url = Column(Text, nullable=True)
    inbound_status = Column(String(80), nullable=True)

    # Outbound leg (service -> customer)
    outbound_carrier = Column(String(120), nullable=True)
    outbound_tracking_number = Column(String(200), nullable=True)
    outbound_tracking_url = Column(Text, nullable=True)
    outbound_status = Column(String(80), nullable=True)

    hubspot_ticket_id = Column(String(100), nullable=True)
    ai_recommendation = Column(JSON, nullable=True)

    sla_due_at = Column(DateTime(timezone=True), nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=True)
    inspected_at = Column(DateTime(timezone=True), nullable=True)
    shipped_back_at = Column(DateTime(timezone=True), nullable=True)
    delivered_back_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
    )
