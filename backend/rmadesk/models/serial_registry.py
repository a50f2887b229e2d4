"""SerialRegistry model: one row per physical serial number across all cases."""

from sqlalchemy import Column, DateTime, Integer, String, func

from rmadesk.core.database import Base
from rmadesk.models.shared import UUIDType, generate_uuid, utc_now


class SerialRegistry(Base):
    """Cross-case history record keyed by normalized serial number."""

    __tablename__ = "serial_registry"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    serial_number = Column(String(255), unique=True, index=True, nullable=False)
    brand = Column(String(255), nullable=True)
    model = Column(String(255), nullable=True)
    inventory_item_id = Column(UUIDType, nullable=True)
    rma_count = Column(Integer, nullable=False, default=0)
    first_seen_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    last_rma_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
    )
