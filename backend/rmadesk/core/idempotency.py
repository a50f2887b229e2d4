"""Idempotency support for side-effecting API endpoints.

``IdempotencyGuard`` claims an ``(endpoint, key)`` pair before the side effect
runs and stores the response afterwards, so a retried request replays the
first outcome instead of repeating it. ``check_idempotency`` wraps the guard
as router glue: it returns a ``JSONResponse`` when the request must not run,
an ``IdempotencyResult`` when it should run and be recorded, or ``None`` when
the caller sent no key. After the endpoint completes, call
``record_idempotency_response`` to persist the response for future replays.
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any
from uuid import UUID

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rmadesk.core.config import settings
from rmadesk.models.idempotency_record import IdempotencyRecord, IdempotencyState
from rmadesk.models.shared import as_utc, utc_now
from rmadesk.repositories.idempotency_repository import IdempotencyRepository

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADERS = ("Idempotency-Key", "X-Idempotency-Key")


class AcquireKind(str, Enum):
    PROCEED = "proceed"
    REPLAY = "replay"
    IN_PROGRESS = "in_progress"
    CONFLICT = "conflict"


@dataclass
class AcquireResult:
    kind: AcquireKind
    record_id: UUID | None = None
    status_code: int | None = None
    body: Any = None


def build_request_hash(payload: Any) -> str:
    """SHA-256 of the payload as canonical JSON (sorted keys, compact separators)."""
    canonical = json.dumps(
        jsonable_encoder(payload), sort_keys=True, separators=(",", ":")
    )
    return hashlib.sha256(canonical.encode()).hexdigest()


class IdempotencyGuard:
    def __init__(self, db: Session, lock_seconds: int | None = None):
        self.db = db
        self.repo = IdempotencyRepository(db)
        self.lock_seconds = (
            lock_seconds if lock_seconds is not None else settings.IDEMPOTENCY_LOCK_SECONDS
        )

    def _resolve(self, record: IdempotencyRecord, request_hash: str) -> AcquireResult:
        record_id: UUID = record.id  # type: ignore[assignment]
        if record.request_hash != request_hash:
            return AcquireResult(AcquireKind.CONFLICT, record_id)
        if record.state != IdempotencyState.IN_PROGRESS.value:
            return AcquireResult(
                AcquireKind.REPLAY,
                record_id,
                status_code=record.status_code,  # type: ignore[arg-type]
                body=record.response_body,
            )

        now = utc_now()
        locked_until = as_utc(record.locked_until)  # type: ignore[arg-type]
        if locked_until is not None and locked_until > now:
            return AcquireResult(AcquireKind.IN_PROGRESS, record_id)
        # Lock expired: the previous caller died mid-request.
        if self.repo.take_over(
            record_id,
            expired_before=now,
            locked_until=now + timedelta(seconds=self.lock_seconds),
        ):
            logger.info("Took over stale idempotency claim %s", record_id)
            return AcquireResult(AcquireKind.PROCEED, record_id)
        return AcquireResult(AcquireKind.IN_PROGRESS, record_id)

    def acquire(self, endpoint: str, key: str, request_hash: str) -> AcquireResult:
        existing = self.repo.get_by_key(endpoint, key)
        if existing is not None:
            return self._resolve(existing, request_hash)

        try:
            record = self.repo.create(
                endpoint=endpoint,
                idempotency_key=key,
                request_hash=request_hash,
                locked_until=utc_now() + timedelta(seconds=self.lock_seconds),
            )
        except IntegrityError:
            # Lost the insert race; whoever won is still running.
            winner = self.repo.get_by_key(endpoint, key)
            if winner is None:
                raise
            if winner.request_hash != request_hash:
                return AcquireResult(AcquireKind.CONFLICT, winner.id)  # type: ignore[arg-type]
            return AcquireResult(AcquireKind.IN_PROGRESS, winner.id)  # type: ignore[arg-type]
        return AcquireResult(AcquireKind.PROCEED, record.id)  # type: ignore[arg-type]

    def finalize(
        self,
        record_id: UUID,
        status_code: int,
        response_body: Any,
        failed: bool = False,
    ) -> None:
        state = IdempotencyState.FAILED if failed else IdempotencyState.COMPLETED
        self.repo.finalize(
            record_id,
            state=state,
            status_code=status_code,
            response_body=jsonable_encoder(response_body),
            completed_at=utc_now(),
        )

    def delete_expired(self, max_age_hours: int | None = None) -> int:
        return self.repo.delete_expired(
            max_age_hours if max_age_hours is not None else settings.IDEMPOTENCY_MAX_AGE_HOURS
        )


@dataclass
class IdempotencyResult:
    """Holds the claimed record for later recording."""

    key: str
    endpoint: str
    record_id: UUID


def check_idempotency(
    request: Request,
    db: Session,
    endpoint: str,
    payload: Any,
) -> JSONResponse | IdempotencyResult | None:
    """Check the ``Idempotency-Key`` header against stored claims.

    Returns:
        - ``None`` if no key header is present (no idempotency).
        - A ``JSONResponse`` with the stored response and ``Idempotency-Replayed: true``
          header if the key already finished, or a 409 ``JSONResponse`` if it is
          still running or was used with a different payload.
        - An ``IdempotencyResult`` if this request claimed the key and should be
          recorded after processing.
    """
    key = next(
        (request.headers[h].strip() for h in IDEMPOTENCY_HEADERS if request.headers.get(h)),
        None,
    )
    if not key:
        return None

    result = IdempotencyGuard(db).acquire(endpoint, key, build_request_hash(payload))

    if result.kind == AcquireKind.REPLAY:
        response = JSONResponse(
            content=result.body,
            status_code=int(result.status_code or 200),
        )
        response.headers["Idempotency-Replayed"] = "true"
        return response
    if result.kind == AcquireKind.CONFLICT:
        return JSONResponse(
            status_code=409,
            content={
                "detail": "Idempotency key was already used with a different request payload",
                "code": "idempotency_conflict",
            },
        )
    if result.kind == AcquireKind.IN_PROGRESS:
        return JSONResponse(
            status_code=409,
            content={
                "detail": "A request with this idempotency key is still in progress",
                "code": "idempotency_in_progress",
            },
        )

    return IdempotencyResult(key=key, endpoint=endpoint, record_id=result.record_id)  # type: ignore[arg-type]


def record_idempotency_response(
    db: Session,
    result: IdempotencyResult | None,
    status: int,
    body: Any,
    failed: bool = False,
) -> None:
    """Persist the endpoint response so subsequent calls return the stored result."""
    if result is None:
        return
    IdempotencyGuard(db).finalize(result.record_id, status, body, failed=failed)


def record_idempotency_failure(
    db: Session,
    result: IdempotencyResult | None,
    status: int,
    detail: str,
    code: str | None = None,
) -> None:
    """Store an error response; retries with the same key replay it."""
    body: dict[str, Any] = {"detail": detail}
    if code:
        body["code"] = code
    record_idempotency_response(db, result, status, body, failed=True)
