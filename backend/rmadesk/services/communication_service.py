"""Customer-facing messages for RMA cases.

Staff pick one of the canned templates (or write their own text), and the
message is logged against the case. Nothing is sent from the server: in
``manual_mailto`` mode the caller gets a ``mailto:`` link to open in a mail
client, otherwise the entry is only recorded.
"""

import logging
from dataclasses import dataclass
from urllib.parse import quote
from uuid import UUID

from sqlalchemy.orm import Session

from rmadesk.core.config import settings
from rmadesk.models.rma_case import RmaCase
from rmadesk.models.rma_communication import (
    CommunicationStatus,
    CommunicationTemplate,
    RmaCommunication,
    SendMode,
)
from rmadesk.repositories.rma_case_repository import RmaCaseRepository
from rmadesk.repositories.rma_communication_repository import RmaCommunicationRepository
from rmadesk.schemas.communication import CommunicationCreate
from rmadesk.services.errors import RmaCaseNotFoundError, RmaValidationError, translate_schema_errors

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "RMA update"


@dataclass
class RenderedMessage:
    subject: str
    body: str


def _first_name(rma_case: RmaCase) -> str:
    name = (rma_case.customer_name or "").strip()
    return name.split()[0] if name else "there"


def render_rma_template(template: CommunicationTemplate, rma_case: RmaCase) -> RenderedMessage:
    """Fill a canned customer email from the case fields."""
    order_ref = rma_case.shopify_order_name or rma_case.shopify_order_id or "your order"
    serial = f"\nSerial: {rma_case.serial_number}" if rma_case.serial_number else ""
    greeting = f"Hi {_first_name(rma_case)},\n\n"
    reference = f"Case ID: {rma_case.id}\nOrder: {order_ref}"
    closing = f"\n\nRegards,\n{settings.SUPPORT_SIGNATURE}"

    if template == CommunicationTemplate.RECEIVED_ACK:
        return RenderedMessage(
            subject=f"RMA received for {order_ref}",
            body=(
                greeting
                + "We have received your return request and your case is now in our service queue."
                + f"\n\n{reference}{serial}\n\n"
                + "We will send another update once inspection is complete."
                + closing
            ),
        )
    if template == CommunicationTemplate.TESTING_UPDATE:
        return RenderedMessage(
            subject=f"RMA inspection update for {order_ref}",
            body=(
                greeting
                + "Your item is currently in assessment with our technician team."
                + f"\n\n{reference}{serial}\n\n"
                + "We will confirm next steps as soon as testing is complete."
                + closing
            ),
        )
    if template == CommunicationTemplate.OOW_QUOTE:
        return RenderedMessage(
            subject=f"Action required: Out-of-warranty service for {order_ref}",
            body=(
                greeting
                + "After reviewing your item, this case is currently marked as out of warranty."
                + f"\n\n{reference}{serial}\n\n"
                + "Please reply to approve paid repair/replacement options and we will proceed."
                + closing
            ),
        )
    if template == CommunicationTemplate.SHIPPED_BACK:
        return RenderedMessage(
            subject=f"Your serviced item has been shipped - {order_ref}",
            body=(
                greeting
                + "Your serviced item has now been shipped back."
                + f"\n\n{reference}"
                + f"\nCarrier: {rma_case.outbound_carrier or 'TBC'}"
                + f"\nTracking: {rma_case.outbound_tracking_number or 'TBC'}\n\n"
                + "Thank you for your patience."
                + closing
            ),
        )
    raise RmaValidationError(f"Unknown communication template: {template}")


def mailto_url(recipient: str, subject: str, body: str) -> str:
    safe = "!*'()"
    return (
        f"mailto:{quote(recipient, safe=safe)}"
        f"?subject={quote(subject, safe=safe)}&body={quote(body, safe=safe)}"
    )


class CommunicationService:
    def __init__(self, db: Session):
        self.db = db
        self.case_repo = RmaCaseRepository(db)
        self.repo = RmaCommunicationRepository(db)

    def _get_case(self, case_id: UUID) -> RmaCase:
        rma_case = self.case_repo.get_by_id(case_id)
        if rma_case is None:
            raise RmaCaseNotFoundError(case_id)
        return rma_case

    @translate_schema_errors
    def history(self, case_id: UUID, limit: int = 50) -> list[RmaCommunication]:
        """Logged messages for the case, newest first."""
        self._get_case(case_id)
        return self.repo.for_case(case_id, limit=limit)

    @translate_schema_errors
    def log(
        self, case_id: UUID, data: CommunicationCreate
    ) -> tuple[RmaCommunication, str | None]:
        """Record a message and, for ``manual_mailto``, build the link to send it."""
        rma_case = self._get_case(case_id)
        rendered = (
            render_rma_template(data.template_key, rma_case) if data.template_key else None
        )
        subject = data.subject or (rendered.subject if rendered else DEFAULT_SUBJECT)
        body = data.body or (rendered.body if rendered else "")
        if not body.strip():
            raise RmaValidationError("Email body is required")
        recipient = data.recipient or rma_case.customer_email
        if not recipient:
            raise RmaValidationError(
                "Recipient email is required. Set customer email or provide recipient."
            )

        manual = data.send_mode == SendMode.MANUAL_MAILTO
        entry = self.repo.create(
            rma_case_id=case_id,
            recipient=recipient,
            subject=subject,
            body=body,
            status=(
                CommunicationStatus.OPENED_IN_MAIL_CLIENT if manual else CommunicationStatus.LOGGED
            ).value,
            template_key=data.template_key.value if data.template_key else None,
            metadata={**data.metadata, "send_mode": data.send_mode.value},
        )
        logger.info(
            "Logged %s message for RMA case %s (%s)",
            data.template_key.value if data.template_key else "custom",
            case_id,
            entry.status,
        )
        return entry, mailto_url(recipient, subject, body) if manual else None
