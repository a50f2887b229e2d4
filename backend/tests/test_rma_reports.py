"""Tests for RMA KPIs, logistics exceptions and time in stage."""

import uuid
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from rmadesk.main import app
from rmadesk.services.rma_kpi_service import (
    build_logistics_exceptions,
    classify_logistics_exceptions,
    compute_rma_kpis,
    compute_time_in_stage,
)

NOW = datetime(2026, 5, 10, 12, 0, tzinfo=UTC)


def _row(**overrides):
    values = {
        "id": uuid.uuid4(),
        "status": "received",
        "priority": "normal",
        "warranty_status": "unknown",
        "issue_summary": "Does not power on",
        "shopify_order_name": "#1001",
        "serial_number": None,
        "assigned_technician_email": None,
        "inbound_tracking_number": None,
        "outbound_tracking_number": None,
        "delivered_back_at": None,
        "sla_due_at": NOW + timedelta(days=5),
        "created_at": NOW - timedelta(days=2),
        "closed_at": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def client():
    return TestClient(app)


class TestComputeRmaKpis:
    def test_empty_rows(self):
        kpis = compute_rma_kpis([], NOW)
        assert kpis.total_cases == 0
        assert kpis.warranty_hit_rate_pct is None
        assert kpis.logistics_exception_rate_pct is None
        assert kpis.avg_turnaround_days is None
        assert kpis.repeat_issue_serials == []

    def test_hit_rate_ignores_unknown_warranty(self):
        rows = [
            _row(warranty_status="in_warranty"),
            _row(warranty_status="out_of_warranty"),
            _row(warranty_status="in_warranty"),
            _row(warranty_status="unknown"),
        ]
        kpis = compute_rma_kpis(rows, NOW)
        assert kpis.in_warranty_cases == 2
        assert kpis.warranty_hit_rate_pct == pytest.approx(200 / 3)

    def test_open_overdue_and_queue(self):
        rows = [
            _row(assigned_technician_email="a@shop.com", sla_due_at=NOW - timedelta(hours=1)),
            _row(assigned_technician_email="a@shop.com", status="testing"),
            _row(status="testing"),
            _row(
                status="back_to_customer",
                sla_due_at=NOW - timedelta(days=1),
                closed_at=NOW - timedelta(days=1),
                outbound_tracking_number="SHIP1",
                delivered_back_at=NOW,
            ),
        ]
        kpis = compute_rma_kpis(rows, NOW)
        assert kpis.open_cases == 3
        assert kpis.overdue_cases == 1
        assert kpis.queue_by_technician == {"a@shop.com": 2, "unassigned": 1}
        assert kpis.avg_turnaround_days == pytest.approx(1.0)

    def test_logistics_exception_rate(self):
        rows = [
            _row(),
            _row(inbound_tracking_number="1Z1"),
            _row(status="repaired_replaced"),
            _row(status="testing"),
        ]
        kpis = compute_rma_kpis(rows, NOW)
        assert kpis.logistics_exception_cases == 2
        assert kpis.logistics_exception_rate_pct == pytest.approx(50.0)

    def test_repeat_serials_top_five(self):
        rows = [_row(serial_number="sn-1") for _ in range(3)]
        rows += [_row(serial_number="SN-2") for _ in range(2)]
        rows.append(_row(serial_number="sn-3"))
        kpis = compute_rma_kpis(rows, NOW)
        assert [(r.serial_number, r.case_count) for r in kpis.repeat_issue_serials] == [
            ("SN-1", 3),
            ("SN-2", 2),
        ]

    def test_high_priority(self):
        rows = [_row(priority="high"), _row(priority="urgent"), _row(priority="low")]
        assert compute_rma_kpis(rows, NOW).high_priority_cases == 2


class TestLogisticsExceptions:
    def test_classification(self):
        assert classify_logistics_exceptions(_row(), NOW) == ["needs_inbound_tracking"]
        assert classify_logistics_exceptions(
            _row(status="repaired_replaced", inbound_tracking_number="1Z1"), NOW
        ) == ["needs_outbound_tracking"]
        assert classify_logistics_exceptions(
            _row(status="back_to_customer", outbound_tracking_number="SHIP1"), NOW
        ) == ["outbound_in_transit"]
        assert classify_logistics_exceptions(
            _row(status="testing", sla_due_at=NOW - timedelta(minutes=1)), NOW
        ) == ["sla_overdue"]

    def test_closed_case_never_overdue(self):
        row = _row(
            status="back_to_customer",
            outbound_tracking_number="SHIP1",
            delivered_back_at=NOW,
            sla_due_at=NOW - timedelta(days=3),
        )
        assert classify_logistics_exceptions(row, NOW) == []

    def test_report_summary(self):
        rows = [
            _row(),
            _row(sla_due_at=NOW - timedelta(days=1)),
            _row(status="testing"),
        ]
        report = build_logistics_exceptions(rows, NOW)
        assert report.total_exceptions == 2
        assert report.summary == {
            "needs_inbound_tracking": 2,
            "needs_outbound_tracking": 0,
            "outbound_in_transit": 0,
            "sla_overdue": 1,
        }
        assert report.exceptions[1].exception_types == ["needs_inbound_tracking", "sla_overdue"]


class TestTimeInStage:
    def test_uses_latest_matching_event(self):
        row = _row(status="testing")
        entered = NOW - timedelta(hours=6)
        report = compute_time_in_stage([row], {(row.id, "testing"): entered}, NOW)
        assert report.entries[0].hours_in_stage == pytest.approx(6.0)
        assert report.entries[0].entered_at == entered

    def test_falls_back_to_created_at(self):
        row = _row(created_at=NOW - timedelta(hours=48))
        report = compute_time_in_stage([row], {}, NOW)
        assert report.entries[0].hours_in_stage == pytest.approx(48.0)
        assert report.summary_by_status["received"].count == 1

    def test_future_entry_clamped_to_zero(self):
        row = _row(created_at=NOW + timedelta(hours=1))
        report = compute_time_in_stage([row], {}, NOW)
        assert report.entries[0].hours_in_stage == 0.0


class TestReportEndpoints:
    def _create_case(self, client, **overrides):
        payload = {
            "shopify_order_id": "gid://shopify/Order/7",
            "issue_summary": "Fan noise",
            "warranty_status": "in_warranty",
        }
        payload.update(overrides)
        response = client.post("/v1/rma/", json=payload)
        assert response.status_code == 201
        return response.json()["case"]

    def test_kpis(self, client):
        self._create_case(client, serial_number="A1")
        self._create_case(client, serial_number="A2", warranty_status="out_of_warranty")
        response = client.get("/v1/rma/kpis")
        assert response.status_code == 200
        kpis = response.json()["kpis"]
        assert kpis["total_cases"] == 2
        assert kpis["warranty_hit_rate_pct"] == pytest.approx(50.0)

    def test_kpis_with_filter(self, client):
        self._create_case(client, serial_number="A1", priority="urgent")
        self._create_case(client, serial_number="A2")
        response = client.get("/v1/rma/kpis", params={"priority": "urgent"})
        assert response.json()["kpis"]["total_cases"] == 1

    def test_logistics_exceptions(self, client):
        case = self._create_case(client)
        response = client.get("/v1/rma/logistics-exceptions")
        assert response.status_code == 200
        body = response.json()
        assert body["total_exceptions"] == 1
        assert body["exceptions"][0]["id"] == case["id"]

    def test_time_in_stage(self, client):
        case = self._create_case(client, serial_number="A9")
        client.post(f"/v1/rma/{case['id']}/status", json={"status": "testing"})
        response = client.get("/v1/rma/time-in-stage")
        assert response.status_code == 200
        body = response.json()
        assert body["entries"][0]["status"] == "testing"
        assert body["summary_by_status"]["testing"]["count"] == 1
