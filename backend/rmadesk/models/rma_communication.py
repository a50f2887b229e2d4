"""Outbound customer messages logged against an RMA case."""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, String, Text

from rmadesk.core.database import Base
from rmadesk.models.shared import UUIDType, generate_uuid, utc_now


class CommunicationTemplate(str, Enum):
    RECEIVED_ACK = "received_ack"
    TESTING_UPDATE = "testing_update"
    OOW_QUOTE = "oow_quote"
    SHIPPED_BACK = "shipped_back"


class SendMode(str, Enum):
    LOG_ONLY = "log_only"
    MANUAL_MAILTO = "manual_mailto"


class CommunicationStatus(str, Enum):
    LOGGED = "logged"
    OPENED_IN_MAIL_CLIENT = "opened_in_mail_client"


class RmaCommunication(Base):
    __tablename__ = "rma_customer_communications"
    __table_args__ = (
        Index("ix_rma_customer_communications_case_created", "rma_case_id", "created_at"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    rma_case_id = Column(
        UUIDType,
        ForeignKey("rma_cases.id", ondelete="CASCADE"),
        nullable=False,
    )
    channel = Column(String(20), nullable=False, default="email")
    direction = Column(String(20), nullable=False, default="outbound")
    template_key = Column(String(50), nullable=True)
    recipient = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    status = Column(String(30), nullable=False, default=CommunicationStatus.LOGGED.value)
    metadata_ = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
