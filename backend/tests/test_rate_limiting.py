"""Tests for the sliding-window rate limiter and its use on the RMA routes."""

import pytest
from fastapi.testclient import TestClient

from rmadesk.core.rate_limiter import RateLimiter
from rmadesk.main import app
from rmadesk.routers import rma_cases


@pytest.fixture
def client():
    return TestClient(app)


class TestRateLimiter:
    def test_allows_under_limit(self):
        limiter = RateLimiter(max_requests=3, window_seconds=60)
        assert all(limiter.is_allowed("1.2.3.4") for _ in range(3))

    def test_rejects_over_limit(self):
        limiter = RateLimiter(max_requests=2, window_seconds=60)
        limiter.is_allowed("ip")
        limiter.is_allowed("ip")
        assert not limiter.is_allowed("ip")

    def test_keys_are_independent(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        assert limiter.is_allowed("a")
        assert limiter.is_allowed("b")
        assert not limiter.is_allowed("a")

    def test_window_expiry(self):
        limiter = RateLimiter(max_requests=1, window_seconds=0)
        assert limiter.is_allowed("ip")
        assert limiter.is_allowed("ip")

    def test_retry_after(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        assert limiter.retry_after("ip") == 0
        limiter.is_allowed("ip")
        assert 1 <= limiter.retry_after("ip") <= 60

    def test_reset(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        limiter.is_allowed("ip")
        limiter.reset()
        assert limiter.is_allowed("ip")


class TestRouteLimits:
    def test_rma_routes_return_429(self, client, monkeypatch):
        monkeypatch.setattr(rma_cases.rma_rate_limiter, "max_requests", 2)
        assert client.get("/v1/rma/").status_code == 200
        assert client.get("/v1/rma/").status_code == 200

        response = client.get("/v1/rma/")
        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) >= 1
        assert "Rate limit exceeded" in response.json()["detail"]

    def test_forwarded_for_is_the_key(self, client, monkeypatch):
        monkeypatch.setattr(rma_cases.rma_rate_limiter, "max_requests", 1)
        assert client.get("/v1/rma/", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 200
        assert client.get("/v1/rma/", headers={"X-Forwarded-For": "10.0.0.2"}).status_code == 200
        assert client.get("/v1/rma/", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 429

    def test_public_form_uses_ai_budget(self, client, monkeypatch):
        monkeypatch.setattr(rma_cases.ai_rate_limiter, "max_requests", 1)
        payload = {
            "order_number": "1",
            "email": "a@example.com",
            "issue_summary": "x",
            "website": "bot",
        }
        assert client.post("/v1/rma/public", json=payload).status_code == 201
        assert client.post("/v1/rma/public", json=payload).status_code == 429
        # The general budget is unaffected.
        assert client.get("/v1/rma/").status_code == 200
