"""Customer communication log schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rmadesk.models.rma_communication import CommunicationTemplate, SendMode


class CommunicationCreate(BaseModel):
    """Explicit subject and body override the rendered template."""

    template_key: CommunicationTemplate | None = None
    recipient: str | None = Field(default=None, max_length=255)
    subject: str | None = Field(default=None, max_length=255)
    body: str | None = None
    send_mode: SendMode = SendMode.LOG_ONLY
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("recipient", "subject", "body", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


class CommunicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    rma_case_id: UUID
    channel: str
    direction: str
    template_key: str | None = None
    recipient: str
    subject: str
    body: str
    status: str
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="metadata_")
    created_at: datetime


class CommunicationListResponse(BaseModel):
    communications: list[CommunicationResponse]


class CommunicationCreateResult(BaseModel):
    communication: CommunicationResponse
    mailto_url: str | None = None
