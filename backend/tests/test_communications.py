"""Tests for customer communication templates and the communication log."""

import uuid
from datetime import UTC, datetime, timedelta
from urllib.parse import unquote

import pytest
from fastapi.testclient import TestClient

from rmadesk.main import app
from rmadesk.models.rma_case import RmaCase
from rmadesk.models.rma_communication import (
    CommunicationStatus,
    CommunicationTemplate,
    RmaCommunication,
    SendMode,
)
from rmadesk.repositories.rma_communication_repository import RmaCommunicationRepository
from rmadesk.schemas.communication import CommunicationCreate
from rmadesk.schemas.rma_case import RmaCaseCreate
from rmadesk.services.communication_service import (
    CommunicationService,
    mailto_url,
    render_rma_template,
)
from rmadesk.services.errors import RmaCaseNotFoundError, RmaValidationError
from rmadesk.services.rma_service import RmaCaseService


@pytest.fixture
def client():
    return TestClient(app)


def _case(**fields):
    defaults = {
        "id": uuid.UUID("6f1c1c2e-0000-4000-8000-000000000001"),
        "shopify_order_id": "gid://shopify/Order/501",
        "shopify_order_name": "#1501",
        "customer_name": "Dana Whitfield",
        "serial_number": "PRJ-77",
    }
    defaults.update(fields)
    return RmaCase(**defaults)


def _open_case(db_session, **overrides):
    data = {
        "shopify_order_id": "gid://shopify/Order/501",
        "shopify_order_name": "#1501",
        "issue_summary": "Fan rattles",
        "customer_name": "Dana Whitfield",
        "customer_email": "dana@example.com",
        "create_ticket": False,
    }
    data.update(overrides)
    return RmaCaseService(db_session).create(RmaCaseCreate(**data)).case


class TestRenderTemplate:
    def test_received_ack(self):
        message = render_rma_template(CommunicationTemplate.RECEIVED_ACK, _case())
        assert message.subject == "RMA received for #1501"
        assert message.body.startswith("Hi Dana,\n\n")
        assert "Case ID: 6f1c1c2e-0000-4000-8000-000000000001\nOrder: #1501\nSerial: PRJ-77" in (
            message.body
        )
        assert message.body.endswith("Regards,\nCHT Support")

    def test_testing_update(self):
        message = render_rma_template(CommunicationTemplate.TESTING_UPDATE, _case())
        assert message.subject == "RMA inspection update for #1501"
        assert "in assessment with our technician team" in message.body

    def test_oow_quote(self):
        message = render_rma_template(CommunicationTemplate.OOW_QUOTE, _case())
        assert message.subject == "Action required: Out-of-warranty service for #1501"
        assert "marked as out of warranty" in message.body

    def test_shipped_back_uses_outbound_tracking(self):
        message = render_rma_template(
            CommunicationTemplate.SHIPPED_BACK,
            _case(outbound_carrier="DHL", outbound_tracking_number="JD0001"),
        )
        assert message.subject == "Your serviced item has been shipped - #1501"
        assert "Carrier: DHL\nTracking: JD0001" in message.body
        assert "Serial:" not in message.body

    def test_shipped_back_without_tracking(self):
        message = render_rma_template(CommunicationTemplate.SHIPPED_BACK, _case())
        assert "Carrier: TBC\nTracking: TBC" in message.body

    def test_fallbacks_for_missing_fields(self):
        message = render_rma_template(
            CommunicationTemplate.RECEIVED_ACK,
            _case(shopify_order_name=None, customer_name=None, serial_number=None),
        )
        assert message.subject == "RMA received for gid://shopify/Order/501"
        assert message.body.startswith("Hi there,")
        assert "Serial:" not in message.body


class TestMailtoUrl:
    def test_parts_are_encoded(self):
        url = mailto_url("dana@example.com", "RMA received for #1501", "Hi Dana,\n\nThanks")
        assert url.startswith("mailto:dana%40example.com?subject=")
        assert "RMA%20received%20for%20%231501" in url
        assert unquote(url.split("&body=")[1]) == "Hi Dana,\n\nThanks"


class TestCommunicationService:
    def test_log_template_to_case_email(self, db_session):
        rma_case = _open_case(db_session)
        entry, link = CommunicationService(db_session).log(
            rma_case.id, CommunicationCreate(template_key=CommunicationTemplate.RECEIVED_ACK)
        )
        assert entry.recipient == "dana@example.com"
        assert entry.subject == "RMA received for #1501"
        assert entry.template_key == "received_ack"
        assert entry.status == CommunicationStatus.LOGGED.value
        assert entry.channel == "email"
        assert entry.direction == "outbound"
        assert entry.metadata_ == {"send_mode": "log_only"}
        assert link is None

    def test_manual_mailto(self, db_session):
        rma_case = _open_case(db_session)
        entry, link = CommunicationService(db_session).log(
            rma_case.id,
            CommunicationCreate(
                template_key=CommunicationTemplate.TESTING_UPDATE,
                recipient="ops@example.com",
                send_mode=SendMode.MANUAL_MAILTO,
                metadata={"agent": "sam"},
            ),
        )
        assert entry.status == CommunicationStatus.OPENED_IN_MAIL_CLIENT.value
        assert entry.recipient == "ops@example.com"
        assert entry.metadata_ == {"agent": "sam", "send_mode": "manual_mailto"}
        assert link.startswith("mailto:ops%40example.com?subject=")

    def test_explicit_text_overrides_template(self, db_session):
        rma_case = _open_case(db_session)
        entry, _ = CommunicationService(db_session).log(
            rma_case.id,
            CommunicationCreate(
                template_key=CommunicationTemplate.OOW_QUOTE,
                subject="Quote for your projector",
                body="Repair is 120 EUR.",
            ),
        )
        assert entry.subject == "Quote for your projector"
        assert entry.body == "Repair is 120 EUR."
        assert entry.template_key == "oow_quote"

    def test_custom_body_gets_default_subject(self, db_session):
        rma_case = _open_case(db_session)
        entry, _ = CommunicationService(db_session).log(
            rma_case.id, CommunicationCreate(body="Parts are on order.")
        )
        assert entry.subject == "RMA update"
        assert entry.template_key is None

    def test_no_body_rejected(self, db_session):
        rma_case = _open_case(db_session)
        with pytest.raises(RmaValidationError, match="body is required"):
            CommunicationService(db_session).log(rma_case.id, CommunicationCreate(body="   "))

    def test_no_recipient_rejected(self, db_session):
        rma_case = _open_case(db_session, customer_email=None)
        with pytest.raises(RmaValidationError, match="Recipient email is required"):
            CommunicationService(db_session).log(
                rma_case.id,
                CommunicationCreate(template_key=CommunicationTemplate.RECEIVED_ACK),
            )
        assert CommunicationService(db_session).history(rma_case.id) == []

    def test_unknown_case(self, db_session):
        with pytest.raises(RmaCaseNotFoundError):
            CommunicationService(db_session).history(uuid.uuid4())


class TestCommunicationRepository:
    def test_history_newest_first_and_limited(self, db_session):
        rma_case = _open_case(db_session)
        start = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
        for offset in range(3):
            db_session.add(
                RmaCommunication(
                    rma_case_id=rma_case.id,
                    recipient="dana@example.com",
                    subject=f"update {offset}",
                    body="text",
                    status="logged",
                    created_at=start + timedelta(hours=offset),
                )
            )
        db_session.commit()

        repo = RmaCommunicationRepository(db_session)
        assert [e.subject for e in repo.for_case(rma_case.id)] == [
            "update 2",
            "update 1",
            "update 0",
        ]
        assert len(repo.for_case(rma_case.id, limit=2)) == 2
        assert repo.for_case(uuid.uuid4()) == []


class TestCommunicationEndpoints:
    def test_log_then_list(self, client):
        case_id = client.post(
            "/v1/rma/",
            json={
                "shopify_order_id": "gid://shopify/Order/900",
                "issue_summary": "No picture",
                "customer_email": "kai@example.com",
                "create_ticket": False,
            },
        ).json()["case"]["id"]

        response = client.post(
            f"/v1/rma/{case_id}/communications",
            json={
                "template_key": "testing_update",
                "recipient": "ops-integration@example.com",
                "send_mode": "manual_mailto",
            },
        )
        assert response.status_code == 201
        body = response.json()
        assert body["mailto_url"].startswith("mailto:")
        assert body["communication"]["status"] == "opened_in_mail_client"
        assert body["communication"]["metadata"] == {"send_mode": "manual_mailto"}

        listed = client.get(f"/v1/rma/{case_id}/communications")
        assert listed.status_code == 200
        communications = listed.json()["communications"]
        assert len(communications) == 1
        assert communications[0]["id"] == body["communication"]["id"]

    def test_missing_recipient_is_400(self, client):
        case_id = client.post(
            "/v1/rma/",
            json={
                "shopify_order_id": "gid://shopify/Order/901",
                "issue_summary": "No picture",
                "create_ticket": False,
            },
        ).json()["case"]["id"]
        response = client.post(
            f"/v1/rma/{case_id}/communications", json={"template_key": "received_ack"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    def test_unknown_template_is_422(self, client):
        response = client.post(
            f"/v1/rma/{uuid.uuid4()}/communications", json={"template_key": "refund_sent"}
        )
        assert response.status_code == 422

    def test_unknown_case_is_404(self, client):
        assert client.get(f"/v1/rma/{uuid.uuid4()}/communications").status_code == 404
        response = client.post(
            f"/v1/rma/{uuid.uuid4()}/communications", json={"body": "hello"}
        )
        assert response.status_code == 404
