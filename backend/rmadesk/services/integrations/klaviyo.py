"""Klaviyo client for pushing email templates and draft campaigns."""

import logging
import re
from dataclasses import dataclass
from typing import Any

import httpx

from rmadesk.core.config import settings

logger = logging.getLogger(__name__)

KLAVIYO_API_URL = "https://a.klaviyo.com/api"
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class KlaviyoError(Exception):
    """Raised when Klaviyo rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class KlaviyoCampaign:
    campaign_id: str
    message_id: str | None = None


class KlaviyoClient:
    def __init__(
        self,
        api_key: str | None = None,
        revision: str | None = None,
        from_email: str | None = None,
        from_label: str | None = None,
    ):
        self.api_key = api_key or settings.KLAVIYO_API_KEY
        self.revision = revision or settings.KLAVIYO_REVISION
        self.from_email = (from_email if from_email is not None else settings.KLAVIYO_FROM_EMAIL).strip()
        self.from_label = (from_label if from_label is not None else settings.KLAVIYO_FROM_LABEL).strip()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def missing_sender_config(self) -> list[str]:
        """Names of sender settings that must be fixed before a campaign can be created."""
        missing: list[str] = []
        if not self.from_email:
            missing.append("KLAVIYO_FROM_EMAIL")
        elif not EMAIL_RE.match(self.from_email):
            missing.append("KLAVIYO_FROM_EMAIL (invalid email format)")
        if not self.from_label:
            missing.append("KLAVIYO_FROM_LABEL")
        return missing

    def _post(self, path: str, body: dict[str, Any], operation: str) -> dict[str, Any]:
        if not self.is_configured:
            raise KlaviyoError("Klaviyo API key is not configured")
        headers = {
            "Authorization": f"Klaviyo-API-Key {self.api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "revision": self.revision,
        }
        try:
            with httpx.Client(timeout=30.0) as client:
                resp = client.post(f"{KLAVIYO_API_URL}{path}", json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise KlaviyoError(f"Klaviyo {operation} failed: {exc}") from exc
        if resp.status_code >= 400:
            raise KlaviyoError(
                f"Klaviyo {operation} failed: {resp.status_code} {resp.text[:500]}",
                status_code=resp.status_code,
            )
        if not resp.content:
            return {}
        result: dict[str, Any] = resp.json()
        return result

    def create_template(self, name: str, html: str, plain_text: str | None = None) -> str:
        attributes: dict[str, Any] = {"name": name, "editor_type": "CODE", "html": html}
        if plain_text is not None:
            attributes["text"] = plain_text
        data = self._post(
            "/templates",
            {"data": {"type": "template", "attributes": attributes}},
            "createTemplate",
        )
        template_id = (data.get("data") or {}).get("id")
        if not template_id:
            raise KlaviyoError("Klaviyo createTemplate did not return template id")
        logger.info("Created Klaviyo template %s", template_id)
        return str(template_id)

    def create_campaign(
        self, name: str, subject: str, preview_text: str | None = None
    ) -> KlaviyoCampaign:
        missing = self.missing_sender_config()
        if missing:
            raise KlaviyoError(f"Campaign creation requires sender config: {', '.join(missing)}")
        message = {
            "type": "campaign-message",
            "attributes": {
                "channel": "email",
                "label": subject[:255],
                "content": {
                    "subject": subject,
                    "preview_text": preview_text or "",
                    "from_email": self.from_email,
                    "from_label": self.from_label,
                    "reply_to_email": self.from_email,
                },
            },
        }
        data = self._post(
            "/campaigns",
            {
                "data": {
                    "type": "campaign",
                    "attributes": {
                        "name": name,
                        "audiences": {"included": [], "excluded": []},
                        "send_strategy": {"method": "immediate"},
                        "campaign-messages": {"data": [message]},
                    },
                }
            },
            "createCampaign",
        )
        campaign = data.get("data") or {}
        campaign_id = campaign.get("id")
        if not campaign_id:
            raise KlaviyoError("Klaviyo createCampaign did not return campaign id")
        refs = (
            campaign.get("relationships", {}).get("campaign-messages", {}).get("data") or []
        )
        message_id = refs[0].get("id") if refs else None
        logger.info("Created Klaviyo draft campaign %s", campaign_id)
        return KlaviyoCampaign(campaign_id=str(campaign_id), message_id=message_id)

    def assign_template(self, message_id: str, template_id: str) -> None:
        self._post(
            "/campaign-message-assign-template",
            {
                "data": {
                    "type": "campaign-message-assign-template",
                    "attributes": {},
                    "relationships": {
                        "campaign-message": {
                            "data": {"type": "campaign-message", "id": message_id}
                        },
                        "template": {"data": {"type": "template", "id": template_id}},
                    },
                }
            },
            "assignTemplate",
        )
