import logging
from typing import Any

from arq import cron
from arq.connections import RedisSettings

from rmadesk.core.config import settings
from rmadesk.core.database import SessionLocal
from rmadesk.core.idempotency import IdempotencyGuard

logger = logging.getLogger(__name__)

redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)


async def purge_expired_idempotency_records_task(ctx: dict[str, Any]) -> int:
    """Background task: delete idempotency records older than the retention window.

    Also frees keys left ``in_progress`` by callers that crashed mid-request.
    Runs hourly.
    """
    db = SessionLocal()
    try:
        count = IdempotencyGuard(db).delete_expired(settings.IDEMPOTENCY_MAX_AGE_HOURS)
        if count > 0:
            logger.info("Purged %d expired idempotency records", count)
        return count
    finally:
        db.close()


class WorkerSettings:
    functions = [purge_expired_idempotency_records_task]
    cron_jobs = [
        cron(purge_expired_idempotency_records_task, minute={0}),  # hourly
    ]
    redis_settings = redis_settings
