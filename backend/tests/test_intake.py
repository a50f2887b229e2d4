"""Tests for the public RMA form, the Shopify returns webhook and warranty checks."""

import base64
import hashlib
import hmac
import json
from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from rmadesk.main import app
from rmadesk.models.rma_case import WarrantyBasis, WarrantyStatus
from rmadesk.schemas.intake import PublicRmaRequest
from rmadesk.services.errors import IntakeRejectedError, WebhookSignatureError
from rmadesk.services.integrations.shopify_orders import (
    ShopifyError,
    ShopifyOrder,
    to_order_gid,
    verify_shopify_hmac,
)
from rmadesk.services.intake_service import (
    IntakeService,
    compute_warranty,
    reason_hint,
    summarize_return_line_items,
)
from rmadesk.services.issue_details import parse_issue_details

SECRET = "shpss_test"
NOW = datetime(2026, 6, 1, tzinfo=UTC)

RETURN_PAYLOAD = {
    "id": 555,
    "admin_graphql_api_id": "gid://shopify/Return/555",
    "order_id": 1001,
    "status": "requested",
    "customer": {"first_name": "Ana", "last_name": "Ruiz", "email": "ana@example.com"},
    "return_line_items": [
        {
            "quantity": 1,
            "return_reason": {"name": "Defective"},
            "line_item": {"name": "HD Projector", "variant": {"sku": "PJ-1", "barcode": "PJ1-SN-77"}},
        }
    ],
}


def _sign(body: bytes, secret: str = SECRET) -> str:
    return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()


def _order(**overrides) -> ShopifyOrder:
    values = {
        "id": "gid://shopify/Order/1001",
        "name": "#1001",
        "legacy_resource_id": "1001",
        "processed_at": datetime(2026, 1, 15, tzinfo=UTC),
        "email": "ana@example.com",
        "customer_first_name": "Ana",
        "customer_last_name": "Ruiz",
        "customer_email": "ana@example.com",
    }
    values.update(overrides)
    return ShopifyOrder(**values)


@pytest.fixture
def shopify():
    client = MagicMock()
    client.is_configured = True
    client.find_order.return_value = _order()
    client.get_order.return_value = None
    return client


@pytest.fixture
def client():
    return TestClient(app)


class TestComputeWarranty:
    def test_in_warranty(self):
        result = compute_warranty(datetime(2025, 12, 1, tzinfo=UTC), NOW)
        assert result.status == WarrantyStatus.IN_WARRANTY
        assert result.basis == WarrantyBasis.MANUFACTURER
        assert result.expires_at == datetime(2026, 12, 1, tzinfo=UTC)

    def test_out_of_warranty(self):
        result = compute_warranty(datetime(2025, 5, 31, tzinfo=UTC), NOW)
        assert result.status == WarrantyStatus.OUT_OF_WARRANTY

    def test_month_end_clamped(self):
        result = compute_warranty(datetime(2024, 2, 29, tzinfo=UTC), NOW)
        assert result.expires_at == datetime(2025, 2, 28, tzinfo=UTC)

    def test_unknown_without_date(self):
        result = compute_warranty(None, NOW)
        assert result.status == WarrantyStatus.UNKNOWN
        assert result.basis == WarrantyBasis.UNKNOWN
        assert result.expires_at is None


class TestShopifyHelpers:
    def test_verify_hmac(self):
        body = b'{"id": 1}'
        assert verify_shopify_hmac(body, _sign(body), secret=SECRET)
        assert not verify_shopify_hmac(body, _sign(body, "other"), secret=SECRET)
        assert not verify_shopify_hmac(body, None, secret=SECRET)
        assert not verify_shopify_hmac(body, _sign(body), secret="")

    def test_to_order_gid(self):
        assert to_order_gid("1001") == "gid://shopify/Order/1001"
        assert to_order_gid("gid://shopify/Order/1001") == "gid://shopify/Order/1001"

    def test_order_from_node(self):
        order = ShopifyOrder.from_node(
            {
                "id": "gid://shopify/Order/1",
                "legacyResourceId": "1",
                "processedAt": "2026-01-01T10:00:00Z",
                "customer": {"firstName": "Ana"},
                "lineItems": {"edges": [{"node": {"name": "PJ", "variant": {"barcode": "B1"}}}]},
            }
        )
        assert order.order_number == 1
        assert order.processed_at == datetime(2026, 1, 1, 10, tzinfo=UTC)
        assert order.customer_name == "Ana"
        assert order.first_barcode == "B1"

    def test_summarize_line_items(self):
        items = summarize_return_line_items(RETURN_PAYLOAD["return_line_items"])
        assert items == [
            {
                "index": 1,
                "item": "HD Projector",
                "sku": "PJ-1",
                "serial": "PJ1-SN-77",
                "qty": 1,
                "reason": "Defective",
            }
        ]

    def test_reason_hint_unique(self):
        items = [{"reason": "Defective"}, {"reason": None}, {"reason": "Defective"}, {"reason": "Noisy"}]
        assert reason_hint(items) == "Defective | Noisy"
        assert reason_hint([]) is None


class TestPublicIntake:
    def _request(self, **overrides) -> PublicRmaRequest:
        values = {
            "order_number": "#1001",
            "email": " Ana@Example.com ",
            "serial_number": "pj1-sn-77",
            "issue_summary": "Fan grinding",
        }
        values.update(overrides)
        return PublicRmaRequest(**values)

    def test_creates_case(self, db_session, shopify):
        outcome = IntakeService(db_session, shopify=shopify).submit_public_request(self._request())
        rma_case = outcome.case
        assert outcome.accepted
        assert not outcome.deduped
        assert rma_case.source == "public_form"
        assert rma_case.submission_channel == "customer_portal"
        assert rma_case.customer_email == "ana@example.com"
        assert rma_case.customer_name == "Ana Ruiz"
        assert rma_case.shopify_order_number == 1001
        assert rma_case.warranty_basis == "manufacturer"
        assert rma_case.warranty_checked_at is not None
        shopify.find_order.assert_called_once_with("1001", "ana@example.com")

    def test_resubmission_deduped(self, db_session, shopify):
        service = IntakeService(db_session, shopify=shopify)
        first = service.submit_public_request(self._request())
        second = service.submit_public_request(self._request(issue_summary="Still grinding"))
        assert second.deduped
        assert second.case.id == first.case.id

    def test_honeypot(self, db_session, shopify):
        outcome = IntakeService(db_session, shopify=shopify).submit_public_request(
            self._request(website="http://spam.example")
        )
        assert outcome.accepted
        assert outcome.case is None
        shopify.find_order.assert_not_called()

    def test_unverified_order(self, db_session, shopify):
        shopify.find_order.return_value = None
        with pytest.raises(IntakeRejectedError):
            IntakeService(db_session, shopify=shopify).submit_public_request(self._request())

    def test_endpoint(self, client, shopify):
        with patch("rmadesk.services.intake_service.ShopifyOrderClient", return_value=shopify):
            response = client.post(
                "/v1/rma/public",
                json={"order_number": "1001", "email": "ana@example.com", "issue_summary": "Dead"},
            )
        assert response.status_code == 201
        body = response.json()
        assert body["accepted"] is True
        assert body["case_id"] is not None

    def test_endpoint_rejected(self, client, shopify):
        shopify.find_order.return_value = None
        with patch("rmadesk.services.intake_service.ShopifyOrderClient", return_value=shopify):
            response = client.post(
                "/v1/rma/public",
                json={"order_number": "1001", "email": "x@example.com", "issue_summary": "Dead"},
            )
        assert response.status_code == 403
        assert response.json()["code"] == "intake_rejected"

    def test_endpoint_shopify_down(self, client, shopify):
        shopify.find_order.side_effect = ShopifyError("timeout")
        with patch("rmadesk.services.intake_service.ShopifyOrderClient", return_value=shopify):
            response = client.post(
                "/v1/rma/public",
                json={"order_number": "1001", "email": "a@example.com", "issue_summary": "Dead"},
            )
        assert response.status_code == 502

    def test_endpoint_not_configured(self, client, shopify):
        shopify.is_configured = False
        with patch("rmadesk.services.intake_service.ShopifyOrderClient", return_value=shopify):
            response = client.post(
                "/v1/rma/public",
                json={"order_number": "1001", "email": "a@example.com", "issue_summary": "Dead"},
            )
        assert response.status_code == 503


class TestShopifyReturnWebhook:
    def _post(self, client, payload, signature=None, headers=None):
        body = json.dumps(payload).encode()
        all_headers = {
            "Content-Type": "application/json",
            "X-Shopify-Hmac-Sha256": signature or _sign(body),
            "X-Shopify-Topic": "returns/request",
            "X-Shopify-Webhook-Id": "wh-1",
        }
        all_headers.update(headers or {})
        return client.post("/v1/webhooks/shopify/returns", content=body, headers=all_headers)

    @pytest.fixture(autouse=True)
    def shopify_secret(self, shopify):
        with (
            patch("rmadesk.services.integrations.shopify_orders.settings") as mock_settings,
            patch("rmadesk.services.intake_service.ShopifyOrderClient", return_value=shopify),
        ):
            mock_settings.SHOPIFY_API_SECRET = SECRET
            yield

    def test_creates_case(self, client):
        response = self._post(client, RETURN_PAYLOAD)
        assert response.status_code == 200
        body = response.json()
        assert body["deduped"] is False
        rma_case = body["case"]
        assert rma_case["shopify_order_id"] == "gid://shopify/Order/1001"
        assert rma_case["shopify_return_id"] == "gid://shopify/Return/555"
        assert rma_case["serial_number"] == "PJ1-SN-77"
        assert rma_case["customer_name"] == "Ana Ruiz"
        assert rma_case["customer_contact_preference"] == "email"
        assert rma_case["issue_summary"] == "Shopify return: Defective"
        assert rma_case["source"] == "shopify_webhook"
        assert rma_case["warranty_status"] == "unknown"

        details = parse_issue_details(rma_case["issue_details"])
        assert details.format == "shopify_return_webhook_v1"
        assert details.webhook_topic == "returns/request"
        assert details.return_status == "requested"
        assert details.primary.sku == "PJ-1"

    def test_redelivery_deduped(self, client):
        first = self._post(client, RETURN_PAYLOAD).json()
        second = self._post(client, RETURN_PAYLOAD).json()
        assert second["deduped"] is True
        assert second["case"]["id"] == first["case"]["id"]

    def test_nested_return_object(self, client):
        response = self._post(
            client,
            {"return": {"id": 9, "order": {"id": 42, "processed_at": "2026-05-01T00:00:00Z"}}},
        )
        assert response.status_code == 200
        rma_case = response.json()["case"]
        assert rma_case["shopify_order_id"] == "gid://shopify/Order/42"
        assert rma_case["issue_summary"] == "Shopify return received (open)"
        assert rma_case["warranty_status"] == "in_warranty"

    def test_enriched_from_order(self, client, shopify):
        shopify.get_order.return_value = _order(customer_phone="+15550100")
        payload = {"id": 77, "order_id": 1001}
        rma_case = self._post(client, payload).json()["case"]
        assert rma_case["customer_email"] == "ana@example.com"
        assert rma_case["customer_phone"] == "+15550100"
        assert rma_case["shopify_order_name"] == "#1001"
        assert rma_case["warranty_basis"] == "manufacturer"

    def test_enrichment_failure_ignored(self, client, shopify):
        shopify.get_order.side_effect = ShopifyError("boom")
        response = self._post(client, {"id": 78, "order_id": 1001})
        assert response.status_code == 200

    def test_bad_signature(self, client):
        response = self._post(client, RETURN_PAYLOAD, signature="bm9wZQ==")
        assert response.status_code == 401
        assert response.json()["code"] == "invalid_signature"

    def test_missing_ids(self, client):
        response = self._post(client, {"status": "requested"})
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    def test_non_object_body(self, client):
        response = self._post(client, [1, 2, 3])
        assert response.status_code == 400

    def test_service_rejects_bad_signature(self, db_session, shopify):
        with pytest.raises(WebhookSignatureError):
            IntakeService(db_session, shopify=shopify).ingest_shopify_return(b"{}", {})
