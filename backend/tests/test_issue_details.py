"""Tests for decoding and encoding RMA issue details."""

import json

from rmadesk.schemas.issue_details import LegacyIssueDetails, StructuredIssueDetails
from rmadesk.services.issue_details import (
    build_structured_issue_details,
    parse_issue_details,
    parse_legacy_issue_details,
)


class TestParseLegacy:
    def test_orders_create_example(self):
        parsed = parse_issue_details(
            "Webhook topic: orders/create\n"
            "line_1: item=Widget, sku=W1, qty=2, reason=damaged\n"
        )
        assert isinstance(parsed, LegacyIssueDetails)
        assert parsed.model_dump(exclude_none=True, exclude={"raw"}) == {
            "format": "shopify_return_webhook_legacy",
            "webhook_topic": "orders/create",
            "line_items": [
                {"index": 1, "item": "Widget", "sku": "W1", "qty": 2, "reason": "damaged"}
            ],
        }

    def test_labels_case_insensitive(self):
        parsed = parse_legacy_issue_details(
            "WEBHOOK TOPIC: returns/request\nreturn note: arrived cracked\nPrimary SKU: P-9"
        )
        assert parsed.webhook_topic == "returns/request"
        assert parsed.return_note == "arrived cracked"
        assert parsed.primary_sku == "P-9"
        assert parsed.line_items == []

    def test_missing_topic_is_unknown(self):
        assert parse_legacy_issue_details("just some notes").webhook_topic == "unknown"

    def test_quantity_prefix(self):
        parsed = parse_legacy_issue_details("line_1: item=Cable, qty=3 units")
        assert parsed.line_items[0].qty == 3

    def test_unparseable_quantity(self):
        parsed = parse_legacy_issue_details("line_1: item=Cable, qty=many")
        assert parsed.line_items[0].qty is None

    def test_first_value_wins(self):
        parsed = parse_legacy_issue_details("line_1: sku=A, sku=B")
        assert parsed.line_items[0].sku == "A"

    def test_raw_is_kept(self):
        text = "Return note: box crushed"
        assert parse_legacy_issue_details(text).raw == text


class TestParseIssueDetails:
    def test_empty(self):
        assert parse_issue_details(None) is None
        assert parse_issue_details("") is None

    def test_structured_round_trip(self):
        text = build_structured_issue_details(
            webhook_topic="returns/request",
            return_id="gid://shopify/Return/1",
            order_id="gid://shopify/Order/2",
            customer_email="a@b.com",
            primary_sku="W1",
            line_items=[{"index": 1, "item": "Widget", "sku": "W1", "qty": 1}],
        )
        parsed = parse_issue_details(text)
        assert isinstance(parsed, StructuredIssueDetails)
        assert parsed.return_status == "unknown"
        assert parsed.customer.email == "a@b.com"
        assert parsed.line_items[0].item == "Widget"

    def test_untagged_json_is_legacy(self):
        parsed = parse_issue_details(json.dumps({"foo": "bar"}))
        assert isinstance(parsed, LegacyIssueDetails)
        assert parsed.webhook_topic == "unknown"

    def test_malformed_structured_falls_back(self):
        text = json.dumps({"format": "shopify_return_webhook_v1", "line_items": "nope"})
        parsed = parse_issue_details(text)
        assert isinstance(parsed, LegacyIssueDetails)
        assert parsed.raw == text
