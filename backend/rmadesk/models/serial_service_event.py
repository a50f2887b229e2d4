"""SerialServiceEvent model: append-only timeline entries for a serial."""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text

from rmadesk.core.database import Base
from rmadesk.models.shared import UUIDType, generate_uuid, utc_now


class ServiceEventType(str, Enum):
    RECEIVED = "received"
    TESTING = "testing"
    SENT_TO_MANUFACTURER = "sent_to_manufacturer"
    REPAIRED_REPLACED = "repaired_replaced"
    BACK_TO_CUSTOMER = "back_to_customer"
    SERVICE_NOTE = "service_note"
    SALE_RECORDED = "sale_recorded"
    LAMP_HOURS_RECORDED = "lamp_hours_recorded"


class SerialServiceEvent(Base):
    """Immutable event owned by exactly one SerialRegistry row."""

    __tablename__ = "serial_service_events"
    __table_args__ = (
        Index(
            "ix_serial_service_events_registry_created",
            "serial_registry_id",
            "created_at",
        ),
        Index("ix_serial_service_events_rma_case_id", "rma_case_id"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    serial_registry_id = Column(
        UUIDType,
        ForeignKey("serial_registry.id", ondelete="CASCADE"),
        nullable=False,
    )
    rma_case_id = Column(
        UUIDType,
        ForeignKey("rma_cases.id", ondelete="SET NULL"),
        nullable=True,
    )
    event_type = Column(String(50), nullable=False)
    summary = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSON, nullable=False, default=dict)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    # Per-registry insertion counter; breaks created_at ties.
    sequence = Column(Integer, nullable=False, default=0, server_default="0")
