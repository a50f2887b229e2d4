"""Customer-facing intake: the public RMA form and the Shopify returns webhook."""

import calendar
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from rmadesk.core.config import settings
from rmadesk.models.rma_case import (
    ContactPreference,
    RmaCase,
    RmaPriority,
    RmaSource,
    SubmissionChannel,
    WarrantyBasis,
    WarrantyStatus,
)
from rmadesk.models.shared import as_utc, utc_now
from rmadesk.schemas.intake import PublicRmaRequest
from rmadesk.schemas.rma_case import RmaCaseCreate
from rmadesk.services.errors import (
    ExternalServiceError,
    IntakeRejectedError,
    IntegrationNotConfiguredError,
    RmaValidationError,
    WebhookSignatureError,
)
from rmadesk.services.integrations.hubspot_tickets import HubSpotTicketClient
from rmadesk.services.integrations.shopify_orders import (
    ShopifyError,
    ShopifyOrder,
    ShopifyOrderClient,
    to_order_gid,
    verify_shopify_hmac,
)
from rmadesk.services.issue_details import build_structured_issue_details
from rmadesk.services.rma_service import CreateOutcome, RmaCaseService

logger = logging.getLogger(__name__)


@dataclass
class WarrantyAssessment:
    status: WarrantyStatus
    basis: WarrantyBasis
    expires_at: datetime | None = None


@dataclass
class PublicIntakeOutcome:
    accepted: bool
    deduped: bool = False
    case: RmaCase | None = None


def _add_months(dt: datetime, months: int) -> datetime:
    """Add months to a datetime, clamping to last day of month."""
    month = dt.month - 1 + months
    year = dt.year + month // 12
    month = month % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def compute_warranty(order_processed_at: datetime | None, now: datetime) -> WarrantyAssessment:
    """Manufacturer warranty runs ``WARRANTY_MONTHS`` from the purchase date."""
    processed_at = as_utc(order_processed_at)
    if processed_at is None:
        return WarrantyAssessment(WarrantyStatus.UNKNOWN, WarrantyBasis.UNKNOWN)
    expires_at = _add_months(processed_at, settings.WARRANTY_MONTHS)
    status = WarrantyStatus.IN_WARRANTY if expires_at >= now else WarrantyStatus.OUT_OF_WARRANTY
    return WarrantyAssessment(status, WarrantyBasis.MANUFACTURER, expires_at)


def _text(*values: Any) -> str | None:
    """First non-blank value, stringified and stripped."""
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring unparseable timestamp %r", value)
        return None


def _qty(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def summarize_return_line_items(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Flatten Shopify return line items into ``{index, item, sku, serial, qty, reason}``."""
    summary = []
    for index, raw in enumerate(items, start=1):
        line_item = raw.get("line_item") or {}
        variant = line_item.get("variant") or {}
        return_reason = raw.get("return_reason")
        reason_name = return_reason.get("name") if isinstance(return_reason, dict) else return_reason
        summary.append(
            {
                "index": index,
                "item": _text(line_item.get("name"), line_item.get("title"), raw.get("title")),
                "sku": _text(raw.get("sku"), line_item.get("sku"), variant.get("sku")),
                "serial": _text(raw.get("serial"), raw.get("serial_number"), variant.get("barcode")),
                "qty": _qty(raw.get("quantity")),
                "reason": _text(raw.get("customer_note"), raw.get("reason"), reason_name),
            }
        )
    return summary


def reason_hint(line_items: list[dict[str, Any]]) -> str | None:
    reasons: list[str] = []
    for item in line_items:
        reason = item.get("reason")
        if reason and reason not in reasons:
            reasons.append(reason)
    return " | ".join(reasons) or None


def _contact_preference(email: str | None, phone: str | None) -> ContactPreference:
    if email:
        return ContactPreference.EMAIL
    if phone:
        return ContactPreference.PHONE
    return ContactPreference.UNKNOWN


class IntakeService:
    def __init__(
        self,
        db: Session,
        shopify: ShopifyOrderClient | None = None,
        ticket_client: HubSpotTicketClient | None = None,
    ):
        self.db = db
        self.shopify = shopify or ShopifyOrderClient()
        self.cases = RmaCaseService(db, ticket_client=ticket_client)

    def submit_public_request(self, request: PublicRmaRequest) -> PublicIntakeOutcome:
        """Verify the order against Shopify, then open a case on the customer's behalf.

        A filled honeypot field is accepted silently without creating anything.
        """
        if request.website and request.website.strip():
            logger.info("Dropping public RMA submission that filled the honeypot field")
            return PublicIntakeOutcome(accepted=True)

        if not self.shopify.is_configured:
            raise IntegrationNotConfiguredError("Shopify")

        email = request.email.strip().lower()
        order_number = request.order_number.strip().lstrip("#")
        try:
            order = self.shopify.find_order(order_number, email)
        except ShopifyError as exc:
            raise ExternalServiceError("Shopify", str(exc)) from exc
        if order is None:
            raise IntakeRejectedError("Order and email combination could not be verified")

        now = utc_now()
        warranty = compute_warranty(order.processed_at, now)
        data = RmaCaseCreate(
            shopify_order_id=order.id,
            shopify_order_name=order.name,
            shopify_order_number=order.order_number,
            external_reference=f"{order_number.lower()}:{email}",
            serial_number=request.serial_number,
            customer_name=request.customer_name or order.customer_name,
            customer_email=email,
            customer_phone=request.customer_phone or order.customer_phone,
            customer_contact_preference=(
                ContactPreference.EMAIL if order.customer_email else ContactPreference.UNKNOWN
            ),
            issue_summary=request.issue_summary,
            issue_details=request.issue_details,
            priority=RmaPriority.NORMAL,
            source=RmaSource.PUBLIC_FORM,
            submission_channel=SubmissionChannel.CUSTOMER_PORTAL,
            warranty_status=warranty.status,
            warranty_basis=warranty.basis,
            warranty_expires_at=warranty.expires_at,
            order_processed_at=order.processed_at,
            create_ticket=True,
        )
        outcome = self.cases.create(
            data, actor_id=email, extra={"warranty_checked_at": now}
        )
        return PublicIntakeOutcome(accepted=True, deduped=outcome.deduped, case=outcome.case)

    def _enrich(self, order_id: str) -> ShopifyOrder | None:
        if not self.shopify.is_configured:
            return None
        try:
            return self.shopify.get_order(order_id)
        except ShopifyError as exc:
            logger.warning("Shopify order lookup failed for %s: %s", order_id, exc)
            return None

    def ingest_shopify_return(
        self, raw_body: bytes, headers: Mapping[str, str]
    ) -> CreateOutcome:
        """Verify and turn a Shopify return webhook into an RMA case.

        Deduplicated on the Shopify return id, so redelivered webhooks return
        the open case they created the first time.
        """
        if not verify_shopify_hmac(raw_body, headers.get("x-shopify-hmac-sha256")):
            raise WebhookSignatureError("Invalid Shopify webhook signature")
        topic = headers.get("x-shopify-topic") or "unknown"
        webhook_id = headers.get("x-shopify-webhook-id")

        try:
            raw = json.loads(raw_body)
        except ValueError as exc:
            raise RmaValidationError("Webhook body is not valid JSON") from exc
        if not isinstance(raw, dict):
            raise RmaValidationError("Webhook body must be a JSON object")
        base: dict[str, Any] = raw.get("return") if isinstance(raw.get("return"), dict) else raw

        order = base.get("order") or raw.get("order") or {}
        return_id = _text(base.get("admin_graphql_api_id"), base.get("id"))
        order_id = _text(base.get("order_id"), order.get("admin_graphql_api_id"), order.get("id"))
        if not return_id or not order_id:
            raise RmaValidationError("Webhook payload is missing the return id or order id")

        customer = base.get("customer") or raw.get("customer") or {}
        customer_email = _text(customer.get("email"), base.get("email"), raw.get("email"))
        customer_phone = _text(customer.get("phone"), base.get("phone"), raw.get("phone"))
        customer_name = _text(
            " ".join(
                p for p in (customer.get("first_name"), customer.get("last_name")) if p
            )
        )
        return_note = _text(base.get("note"), raw.get("note"))
        return_status = _text(base.get("status"), raw.get("status"))

        line_items = summarize_return_line_items(base.get("return_line_items") or [])
        hint = _text(base.get("reason"), raw.get("reason")) or reason_hint(line_items)
        primary_sku = next((i["sku"] for i in line_items if i["sku"]), None)
        primary_serial = next((i["serial"] for i in line_items if i["serial"]), None)

        enriched = self._enrich(order_id)
        processed_at = _parse_timestamp(
            base.get("order_processed_at") or order.get("processed_at")
        )
        if enriched is not None:
            processed_at = processed_at or enriched.processed_at
            customer_name = customer_name or enriched.customer_name
            customer_email = customer_email or enriched.customer_email or enriched.email
            customer_phone = customer_phone or enriched.customer_phone or enriched.phone
            primary_serial = primary_serial or enriched.first_barcode

        now = utc_now()
        warranty = compute_warranty(processed_at, now)
        issue_summary = (
            f"Shopify return: {hint}"
            if hint
            else f"Shopify return received ({return_status or 'open'})"
        )
        data = RmaCaseCreate(
            shopify_order_id=to_order_gid(order_id),
            shopify_order_name=_text(base.get("order_name"), order.get("name"))
            or (enriched.name if enriched else None),
            shopify_order_number=enriched.order_number if enriched else None,
            shopify_return_id=return_id,
            external_reference=webhook_id,
            serial_number=primary_serial,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            customer_contact_preference=_contact_preference(customer_email, customer_phone),
            issue_summary=issue_summary[:1000],
            issue_details=build_structured_issue_details(
                webhook_topic=topic,
                return_id=return_id,
                order_id=order_id,
                return_status=return_status,
                return_note=return_note,
                customer_name=customer_name,
                customer_email=customer_email,
                customer_phone=customer_phone,
                primary_sku=primary_sku,
                primary_serial=primary_serial,
                line_items=line_items,
            ),
            source=RmaSource.SHOPIFY_WEBHOOK,
            submission_channel=SubmissionChannel.SHOPIFY_WEBHOOK,
            warranty_status=warranty.status,
            warranty_basis=warranty.basis,
            warranty_expires_at=warranty.expires_at,
            order_processed_at=processed_at,
            create_ticket=True,
        )
        outcome = self.cases.create(
            data, extra={"warranty_checked_at": now}
        )
        if not outcome.deduped:
            logger.info(
                "Created RMA %s from Shopify return %s (%s)", outcome.case.id, return_id, topic
            )
        return outcome

