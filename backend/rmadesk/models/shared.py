"""Column types and clock helpers shared by the RMA models."""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import String, TypeDecorator
from sqlalchemy.engine import Dialect


def _coerce_uuid(value: Any) -> uuid.UUID | None:
    if value is None or isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


class UUIDType(TypeDecorator[uuid.UUID]):
    """UUIDs stored as their 36-character text form on every backend.

    The alembic revisions create these columns as ``String(36)``, so SQLite
    and PostgreSQL share one schema.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
        coerced = _coerce_uuid(value)
        return str(coerced) if coerced is not None else None

    def process_result_value(self, value: Any, dialect: Dialect) -> uuid.UUID | None:
        return _coerce_uuid(value)


def generate_uuid() -> uuid.UUID:
    return uuid.uuid4()


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)
