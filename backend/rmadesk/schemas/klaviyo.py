"""Klaviyo campaign push schemas."""

from pydantic import BaseModel, Field


class KlaviyoPushRequest(BaseModel):
    subject: str = Field(min_length=1, max_length=200)
    html_body: str = Field(min_length=1)
    plain_text: str | None = None
    preheader: str | None = Field(default=None, max_length=200)
    campaign_name: str | None = Field(default=None, max_length=200)
    create_campaign: bool = False


class KlaviyoPushResponse(BaseModel):
    template_id: str
    campaign_id: str | None = None
    message_id: str | None = None
    message: str
