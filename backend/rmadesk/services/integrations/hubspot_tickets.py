"""HubSpot CRM ticket client for mirroring RMA cases into a ticket pipeline."""

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from rmadesk.core.config import settings

logger = logging.getLogger(__name__)

HUBSPOT_TICKETS_URL = "https://api.hubapi.com/crm/v3/objects/tickets"

STAGES = (
    "received",
    "testing",
    "sent_to_manufacturer",
    "repaired_replaced",
    "back_to_customer",
)


class HubSpotError(Exception):
    """Raised when HubSpot rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HubSpotTicket:
    ticket_id: str
    ticket_url: str | None = None


class HubSpotTicketClient:
    """Creates tickets and moves them between pipeline stages.

    Each RMA status maps to one stage of the configured pipeline. The client
    only counts as configured when a token, the pipeline and all five stage
    ids are present.
    """

    def __init__(
        self,
        access_token: str | None = None,
        pipeline_id: str | None = None,
        stage_map: dict[str, str] | None = None,
        portal_id: str | None = None,
    ):
        self.access_token = access_token or settings.HUBSPOT_ACCESS_TOKEN
        self.pipeline_id = pipeline_id or settings.HUBSPOT_RMA_PIPELINE_ID
        self.stage_map = stage_map or settings.hubspot_stage_map
        self.portal_id = portal_id if portal_id is not None else settings.HUBSPOT_PORTAL_ID

    @property
    def is_configured(self) -> bool:
        return bool(
            self.access_token and self.pipeline_id and all(self.stage_map.get(s) for s in STAGES)
        )

    def _stage_for(self, status: str) -> str:
        stage = self.stage_map.get(status)
        if not stage:
            raise HubSpotError(f"No HubSpot stage configured for status: {status}")
        return stage

    def _request(self, method: str, url: str, payload: dict[str, Any]) -> httpx.Response:
        if not self.is_configured:
            raise HubSpotError("HubSpot ticket integration is not fully configured")
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=30.0) as client:
                resp = client.request(method, url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise HubSpotError(f"HubSpot request failed: {exc}") from exc
        if resp.status_code >= 400:
            raise HubSpotError(
                f"HubSpot {method} failed: {resp.status_code} {resp.text[:500]}",
                status_code=resp.status_code,
            )
        return resp

    def ticket_url(self, ticket_id: str) -> str | None:
        if not self.portal_id:
            return None
        return f"https://app.hubspot.com/contacts/{self.portal_id}/ticket/{ticket_id}"

    def create_ticket(
        self,
        *,
        rma_case_id: str,
        subject: str,
        content: str,
        status: str,
        serial_number: str | None = None,
        customer_email: str | None = None,
        customer_phone: str | None = None,
    ) -> HubSpotTicket:
        payload = {
            "properties": {
                "hs_pipeline": self.pipeline_id,
                "hs_pipeline_stage": self._stage_for(status),
                "subject": subject,
                "content": content,
                "rma_case_id": rma_case_id,
                "serial_number": serial_number or "",
                "customer_email": customer_email or "",
                "customer_phone": customer_phone or "",
            }
        }
        resp = self._request("POST", HUBSPOT_TICKETS_URL, payload)
        ticket_id = str(resp.json().get("id") or "")
        if not ticket_id:
            raise HubSpotError("HubSpot create ticket did not return an id")
        logger.info("Created HubSpot ticket %s for RMA %s", ticket_id, rma_case_id)
        return HubSpotTicket(ticket_id=ticket_id, ticket_url=self.ticket_url(ticket_id))

    def update_ticket_stage(self, ticket_id: str, status: str, summary: str | None = None) -> None:
        properties: dict[str, Any] = {"hs_pipeline_stage": self._stage_for(status)}
        if summary:
            properties["content"] = summary
        self._request(
            "PATCH",
            f"{HUBSPOT_TICKETS_URL}/{quote(ticket_id, safe='')}",
            {"properties": properties},
        )
        logger.info("Moved HubSpot ticket %s to stage for %s", ticket_id, status)

