"""Tests for the arq worker, its cron registration and the enqueue helpers."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from rmadesk.core import database as db_module
from rmadesk.core.idempotency import IdempotencyGuard
from rmadesk.models.idempotency_record import IdempotencyRecord
from rmadesk.models.shared import utc_now
from rmadesk.worker import WorkerSettings, purge_expired_idempotency_records_task


class TestPurgeExpiredIdempotencyRecordsTask:
    @pytest.mark.asyncio
    async def test_purges_old_records(self, db_session):
        guard = IdempotencyGuard(db_session)
        old = guard.acquire("POST /v1/rma", "old-key", "h")
        guard.acquire("POST /v1/rma", "fresh-key", "h")
        record = db_session.get(IdempotencyRecord, old.record_id)
        record.created_at = utc_now() - timedelta(days=30)
        db_session.commit()

        with patch("rmadesk.worker.SessionLocal", db_module.SessionLocal):
            result = await purge_expired_idempotency_records_task({})

        assert result == 1
        db_session.expire_all()
        keys = [r.idempotency_key for r in db_session.query(IdempotencyRecord).all()]
        assert keys == ["fresh-key"]

    @pytest.mark.asyncio
    async def test_closes_session_on_error(self):
        mock_db = MagicMock()
        with (
            patch("rmadesk.worker.SessionLocal", return_value=mock_db),
            patch("rmadesk.worker.IdempotencyGuard") as mock_guard,
        ):
            mock_guard.return_value.delete_expired.side_effect = RuntimeError("db down")
            with pytest.raises(RuntimeError, match="db down"):
                await purge_expired_idempotency_records_task({})
        mock_db.close.assert_called_once()


class TestWorkerSettings:
    def test_functions_registered(self):
        assert purge_expired_idempotency_records_task in WorkerSettings.functions

    def test_cron_runs_hourly(self):
        assert len(WorkerSettings.cron_jobs) == 1
        job = WorkerSettings.cron_jobs[0]
        assert job.coroutine is purge_expired_idempotency_records_task
        assert job.minute == {0}

    def test_redis_settings_from_url(self):
        assert WorkerSettings.redis_settings.host
