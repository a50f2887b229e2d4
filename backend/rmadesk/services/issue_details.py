"""Encode and decode the ``issue_details`` text stored on RMA cases.

Newer cases store a JSON document tagged ``format: shopify_return_webhook_v1``.
Older webhook intakes stored a line-oriented blob such as::

    Webhook topic: returns/request
    Return note: arrived cracked
    Primary SKU: W1
    line_1: item=Widget, sku=W1, serial=SN1, qty=2, reason=damaged

Readers accept both and always get a tagged variant back.
"""

import json
import re
from typing import Any

from pydantic import ValidationError

from rmadesk.schemas.issue_details import (
    STRUCTURED_FORMAT,
    IssueCustomer,
    IssueLineItem,
    IssuePrimary,
    LegacyIssueDetails,
    StructuredIssueDetails,
)

LINE_ITEM_RE = re.compile(r"^line_\d+:", re.IGNORECASE)
LINE_ITEM_KEYS = ("item", "sku", "serial", "qty", "reason")


def _find_value(lines: list[str], label: str) -> str | None:
    prefix = f"{label}:".lower()
    for line in lines:
        if line.lower().startswith(prefix):
            return line[len(prefix):].strip() or None
    return None


def _parse_qty(raw: str | None) -> int | None:
    if not raw:
        return None
    match = re.match(r"^[+-]?\d+", raw.strip())
    return int(match.group(0)) if match else None


def _parse_line_item(line: str, index: int) -> IssueLineItem:
    rest = line.split(":")[1] if ":" in line else ""
    fields: dict[str, str] = {}
    for entry in (part.strip() for part in rest.split(",")):
        for key in LINE_ITEM_KEYS:
            if key not in fields and entry.startswith(f"{key}="):
                fields[key] = entry[len(key) + 1:]
    return IssueLineItem(
        index=index,
        item=fields.get("item") or None,
        sku=fields.get("sku") or None,
        serial=fields.get("serial") or None,
        qty=_parse_qty(fields.get("qty")),
        reason=fields.get("reason") or None,
    )


def parse_legacy_issue_details(text: str) -> LegacyIssueDetails:
    lines = [line.strip() for line in text.split("\n")]
    lines = [line for line in lines if line]
    items = [line for line in lines if LINE_ITEM_RE.match(line)]
    return LegacyIssueDetails(
        webhook_topic=_find_value(lines, "Webhook topic") or "unknown",
        return_note=_find_value(lines, "Return note"),
        primary_sku=_find_value(lines, "Primary SKU"),
        line_items=[_parse_line_item(line, i + 1) for i, line in enumerate(items)],
        raw=text,
    )


def parse_issue_details(
    text: str | None,
) -> StructuredIssueDetails | LegacyIssueDetails | None:
    """Decode *text* into the structured variant when tagged, else the legacy one."""
    if not text:
        return None
    try:
        data = json.loads(text)
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("format") == STRUCTURED_FORMAT:
        try:
            return StructuredIssueDetails.model_validate(data)
        except ValidationError:
            # Malformed v1 documents are still readable as raw text.
            pass
    return parse_legacy_issue_details(text)


def build_structured_issue_details(
    *,
    webhook_topic: str,
    return_id: str | None,
    order_id: str | None,
    return_status: str | None = None,
    return_note: str | None = None,
    customer_name: str | None = None,
    customer_email: str | None = None,
    customer_phone: str | None = None,
    primary_sku: str | None = None,
    primary_serial: str | None = None,
    line_items: list[dict[str, Any]] | None = None,
    source: str = "shopify_webhook",
) -> str:
    details = StructuredIssueDetails(
        source=source,
        webhook_topic=webhook_topic,
        return_id=return_id,
        order_id=order_id,
        return_status=return_status or "unknown",
        customer=IssueCustomer(name=customer_name, email=customer_email, phone=customer_phone),
        primary=IssuePrimary(sku=primary_sku, serial=primary_serial),
        return_note=return_note,
        line_items=[IssueLineItem.model_validate(item) for item in line_items or []],
    )
    return json.dumps(details.model_dump(mode="json"), indent=2)
