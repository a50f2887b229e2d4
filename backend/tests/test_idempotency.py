"""Tests for idempotency claims, replay and endpoint integration."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from rmadesk.core.idempotency import AcquireKind, IdempotencyGuard, build_request_hash
from rmadesk.main import app
from rmadesk.models.idempotency_record import IdempotencyRecord
from rmadesk.models.shared import utc_now
from rmadesk.repositories.idempotency_repository import IdempotencyRepository
from rmadesk.schemas.rma_case import RmaCaseCreate
from rmadesk.services.errors import ExternalServiceError
from rmadesk.services.integrations.hubspot_tickets import HubSpotTicket

CASE_PAYLOAD = {
    "shopify_order_id": "gid://shopify/Order/77",
    "issue_summary": "Remote not pairing",
}


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def guard(db_session):
    return IdempotencyGuard(db_session, lock_seconds=60)


def _claim_looks_free(guard):
    """First lookup misses, as if another request inserted the claim right after it."""
    real_get = guard.repo.get_by_key
    lookups = []

    def get_by_key(endpoint, key):
        lookups.append(key)
        return None if len(lookups) == 1 else real_get(endpoint, key)

    return patch.object(guard.repo, "get_by_key", side_effect=get_by_key)


class TestBuildRequestHash:
    def test_key_order_does_not_matter(self):
        assert build_request_hash({"a": 1, "b": 2}) == build_request_hash({"b": 2, "a": 1})

    def test_different_payloads_differ(self):
        assert build_request_hash({"a": 1}) != build_request_hash({"a": 2})


class TestIdempotencyGuard:
    def test_first_claim_proceeds(self, guard):
        result = guard.acquire("POST /x", "k1", "h1")
        assert result.kind == AcquireKind.PROCEED
        assert result.record_id is not None

    def test_second_claim_while_running(self, guard):
        guard.acquire("POST /x", "k1", "h1")
        assert guard.acquire("POST /x", "k1", "h1").kind == AcquireKind.IN_PROGRESS

    def test_different_hash_conflicts(self, guard):
        guard.acquire("POST /x", "k1", "h1")
        assert guard.acquire("POST /x", "k1", "h2").kind == AcquireKind.CONFLICT

    def test_same_key_on_other_endpoint_is_independent(self, guard):
        guard.acquire("POST /x", "k1", "h1")
        assert guard.acquire("POST /y", "k1", "h2").kind == AcquireKind.PROCEED

    def test_completed_claim_replays(self, guard):
        first = guard.acquire("POST /x", "k1", "h1")
        guard.finalize(first.record_id, 201, {"ok": True})
        result = guard.acquire("POST /x", "k1", "h1")
        assert result.kind == AcquireKind.REPLAY
        assert result.status_code == 201
        assert result.body == {"ok": True}

    def test_failed_claim_replays(self, guard):
        first = guard.acquire("POST /x", "k1", "h1")
        guard.finalize(first.record_id, 502, {"detail": "down"}, failed=True)
        result = guard.acquire("POST /x", "k1", "h1")
        assert result.kind == AcquireKind.REPLAY
        assert result.status_code == 502

    def test_stale_claim_taken_over(self, db_session, guard):
        IdempotencyRepository(db_session).create(
            endpoint="POST /x",
            idempotency_key="k1",
            request_hash="h1",
            locked_until=utc_now() - timedelta(seconds=5),
        )
        result = guard.acquire("POST /x", "k1", "h1")
        assert result.kind == AcquireKind.PROCEED
        # The new lock blocks a third caller.
        assert guard.acquire("POST /x", "k1", "h1").kind == AcquireKind.IN_PROGRESS

    def test_delete_expired(self, db_session, guard):
        first = guard.acquire("POST /x", "old", "h1")
        guard.acquire("POST /x", "new", "h1")
        record = db_session.get(IdempotencyRecord, first.record_id)
        record.created_at = utc_now() - timedelta(hours=100)
        db_session.commit()

        assert guard.delete_expired(max_age_hours=72) == 1
        assert db_session.query(IdempotencyRecord).count() == 1


    def test_lost_insert_race_same_payload_in_progress(self, db_session, guard):
        IdempotencyGuard(db_session).acquire("POST /x", "k1", "h1")
        with _claim_looks_free(guard):
            result = guard.acquire("POST /x", "k1", "h1")
        assert result.kind == AcquireKind.IN_PROGRESS
        assert db_session.query(IdempotencyRecord).count() == 1

    def test_lost_insert_race_other_payload_conflicts(self, db_session, guard):
        winner = IdempotencyGuard(db_session).acquire("POST /x", "k1", "h1")
        with _claim_looks_free(guard):
            result = guard.acquire("POST /x", "k1", "h2")
        assert result.kind == AcquireKind.CONFLICT
        assert result.record_id == winner.record_id

class TestEndpointIntegration:
    def test_no_header_runs_every_time(self, client):
        first = client.post("/v1/rma/", json={**CASE_PAYLOAD, "external_reference": "a"})
        second = client.post("/v1/rma/", json={**CASE_PAYLOAD, "external_reference": "b"})
        assert first.json()["case"]["id"] != second.json()["case"]["id"]

    def test_replay_returns_stored_response(self, client):
        headers = {"Idempotency-Key": "create-1"}
        first = client.post("/v1/rma/", json=CASE_PAYLOAD, headers=headers)
        assert first.status_code == 201
        assert "Idempotency-Replayed" not in first.headers

        second = client.post("/v1/rma/", json=CASE_PAYLOAD, headers=headers)
        assert second.status_code == 201
        assert second.headers["Idempotency-Replayed"] == "true"
        assert second.json() == first.json()
        assert client.get("/v1/rma/").json()["total"] == 1

    def test_alternate_header_name(self, client):
        headers = {"X-Idempotency-Key": "create-2"}
        client.post("/v1/rma/", json=CASE_PAYLOAD, headers=headers)
        second = client.post("/v1/rma/", json=CASE_PAYLOAD, headers=headers)
        assert second.headers["Idempotency-Replayed"] == "true"

    def test_payload_mismatch_conflicts(self, client):
        headers = {"Idempotency-Key": "create-3"}
        client.post("/v1/rma/", json=CASE_PAYLOAD, headers=headers)
        response = client.post(
            "/v1/rma/", json={**CASE_PAYLOAD, "issue_summary": "Different"}, headers=headers
        )
        assert response.status_code == 409
        assert response.json()["code"] == "idempotency_conflict"

    def test_in_progress_rejected(self, client, db_session):
        request_hash = build_request_hash(RmaCaseCreate(**CASE_PAYLOAD).model_dump(mode="json"))
        IdempotencyGuard(db_session).acquire("POST /v1/rma", "create-4", request_hash)
        response = client.post(
            "/v1/rma/", json=CASE_PAYLOAD, headers={"Idempotency-Key": "create-4"}
        )
        assert response.status_code == 409
        assert response.json()["code"] == "idempotency_in_progress"

    def test_error_is_recorded_and_replayed(self, client):
        headers = {"Idempotency-Key": "sync-1"}
        with patch(
            "rmadesk.services.rma_service.RmaCaseService.sync_ticket",
            side_effect=ExternalServiceError("HubSpot", "down"),
        ):
            first = client.post(
                "/v1/rma/00000000-0000-0000-0000-000000000001/hubspot-sync", headers=headers
            )
        assert first.status_code == 502

        second = client.post(
            "/v1/rma/00000000-0000-0000-0000-000000000001/hubspot-sync", headers=headers
        )
        assert second.status_code == 502
        assert second.headers["Idempotency-Replayed"] == "true"
        assert second.json()["code"] == "external_service_error"

    def test_ticket_created_once_across_retries(self, client):
        ticket_client = MagicMock()
        ticket_client.is_configured = True
        ticket_client.create_ticket.return_value = HubSpotTicket(ticket_id="T-9")
        headers = {"Idempotency-Key": "create-ticket-1"}
        with patch("rmadesk.services.rma_service.HubSpotTicketClient", return_value=ticket_client):
            first = client.post("/v1/rma/", json=CASE_PAYLOAD, headers=headers)
            second = client.post("/v1/rma/", json=CASE_PAYLOAD, headers=headers)

        assert first.json()["ticket_sync"]["ticket_id"] == "T-9"
        assert second.headers["Idempotency-Replayed"] == "true"
        assert second.json() == first.json()
        ticket_client.create_ticket.assert_called_once()

    def test_ticket_sync_runs_once_per_key(self, client):
        case_id = client.post("/v1/rma/", json=CASE_PAYLOAD).json()["case"]["id"]
        ticket_client = MagicMock()
        ticket_client.is_configured = True
        ticket_client.create_ticket.return_value = HubSpotTicket(ticket_id="T-10")
        headers = {"Idempotency-Key": "sync-2"}
        with patch("rmadesk.services.rma_service.HubSpotTicketClient", return_value=ticket_client):
            first = client.post(f"/v1/rma/{case_id}/hubspot-sync", headers=headers)
            second = client.post(f"/v1/rma/{case_id}/hubspot-sync", headers=headers)

        assert first.status_code == second.status_code == 200
        assert second.headers["Idempotency-Replayed"] == "true"
        ticket_client.create_ticket.assert_called_once()
