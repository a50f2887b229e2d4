"""Domain exceptions raised by the RMA services.

Each exception carries the HTTP status it maps to; ``rmadesk.main`` registers
a single handler that renders them as ``{"detail": ..., "code": ...}``.
"""

import functools
from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError, ProgrammingError

T = TypeVar("T")


class RmaError(Exception):
    """Base class for service desk errors."""

    status_code = 400
    code = "rma_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RmaValidationError(RmaError, ValueError):
    status_code = 400
    code = "validation_error"


class RmaCaseNotFoundError(RmaError):
    status_code = 404
    code = "not_found"

    def __init__(self, case_id: object):
        super().__init__(f"RMA case {case_id} not found")
        self.case_id = case_id


class SerialRegistryNotFoundError(RmaError):
    status_code = 404
    code = "not_found"

    def __init__(self, serial_or_id: object):
        super().__init__(f"Serial registry entry {serial_or_id} not found")


class RmaConflictError(RmaError):
    status_code = 409
    code = "conflict"


class SchemaNotReadyError(RmaError):
    status_code = 409
    code = "schema_not_ready"

    def __init__(self, detail: str = ""):
        message = "Database schema is not ready. Run `alembic upgrade head` and retry."
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class IntakeRejectedError(RmaError):
    """The caller could not prove it owns the order or webhook it submitted."""

    status_code = 403
    code = "intake_rejected"


class WebhookSignatureError(RmaError):
    status_code = 401
    code = "invalid_signature"


class IntegrationNotConfiguredError(RmaError):
    status_code = 503
    code = "integration_not_configured"

    def __init__(self, service: str):
        super().__init__(f"{service} integration is not configured")
        self.service = service


class ExternalServiceError(RmaError):
    status_code = 502
    code = "external_service_error"

    def __init__(self, service: str, message: str):
        super().__init__(f"{service} request failed: {message}")
        self.service = service


_SCHEMA_MARKERS = (
    "no such column",
    "no such table",
    "does not exist",
    "undefined column",
    "undefined table",
    "unknown column",
)


def is_schema_error(exc: DBAPIError) -> bool:
    """Return True when *exc* points at a missing table or column."""
    text = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in text for marker in _SCHEMA_MARKERS)


def translate_schema_errors(func: Callable[..., T]) -> Callable[..., T]:
    """Re-raise missing-table/column database errors as ``SchemaNotReadyError``.

    Decorates service methods; the service must expose its session as ``self.db``.
    """

    @functools.wraps(func)
    def wrapper(self: Any, *args: Any, **kwargs: Any) -> T:
        try:
            return func(self, *args, **kwargs)
        except (OperationalError, ProgrammingError) as exc:
            self.db.rollback()
            if is_schema_error(exc):
                raise SchemaNotReadyError(str(exc.orig)[:200]) from exc
            raise

    return wrapper
