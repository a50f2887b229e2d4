"""Read-only rollups over RMA cases: KPIs, logistics exceptions and time in stage.

The ``compute_*`` functions are pure and take ``now`` explicitly; the
``RmaReportService`` wrapper loads the filtered rows and feeds them in.
"""

from collections import Counter
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from rmadesk.models.rma_case import RmaCase, RmaPriority, RmaStatus, WarrantyStatus
from rmadesk.models.shared import as_utc, utc_now
from rmadesk.repositories.rma_case_repository import RmaCaseRepository
from rmadesk.repositories.serial_service_event_repository import SerialServiceEventRepository
from rmadesk.schemas.rma_report import (
    LogisticsExceptionCase,
    LogisticsExceptionsResponse,
    RepeatIssueSerial,
    RmaKpis,
    StageSummary,
    TimeInStageEntry,
    TimeInStageResponse,
)
from rmadesk.services.errors import translate_schema_errors
from rmadesk.services.rma_service import RmaCaseService
from rmadesk.services.serial_registry_service import (
    STATUS_TO_EVENT_TYPE,
    map_status_to_event,
    normalize_serial_number,
)

CLOSED = RmaStatus.BACK_TO_CUSTOMER.value
EXCEPTION_TYPES = (
    "needs_inbound_tracking",
    "needs_outbound_tracking",
    "outbound_in_transit",
    "sla_overdue",
)
EXCEPTION_REPORT_LIMIT = 100


def _pct(numerator: int, denominator: int) -> float | None:
    if denominator == 0:
        return None
    return numerator / denominator * 100


def is_open(row: Any) -> bool:
    return row.status != CLOSED


def is_overdue(row: Any, now: datetime) -> bool:
    sla_due_at = as_utc(row.sla_due_at)
    return is_open(row) and sla_due_at is not None and sla_due_at < now


def leg_exceptions(row: Any) -> list[str]:
    """Shipping legs that need attention, regardless of SLA."""
    exceptions: list[str] = []
    if row.status == RmaStatus.RECEIVED.value and not row.inbound_tracking_number:
        exceptions.append("needs_inbound_tracking")
    if row.status == RmaStatus.REPAIRED_REPLACED.value and not row.outbound_tracking_number:
        exceptions.append("needs_outbound_tracking")
    if row.status == CLOSED and row.outbound_tracking_number and not row.delivered_back_at:
        exceptions.append("outbound_in_transit")
    return exceptions


def classify_logistics_exceptions(row: Any, now: datetime) -> list[str]:
    exceptions = leg_exceptions(row)
    if is_overdue(row, now):
        exceptions.append("sla_overdue")
    return exceptions


def compute_rma_kpis(rows: list[Any], now: datetime) -> RmaKpis:
    """One pass over *rows*; every rate or mean is None when its denominator is zero."""
    open_cases = overdue = in_warranty = known_warranty = high_priority = exceptions = 0
    turnaround_days: list[float] = []
    queue: Counter[str] = Counter()
    serials: Counter[str] = Counter()

    for row in rows:
        if is_open(row):
            open_cases += 1
            queue[row.assigned_technician_email or "unassigned"] += 1
            if is_overdue(row, now):
                overdue += 1
        if row.warranty_status == WarrantyStatus.IN_WARRANTY.value:
            in_warranty += 1
        if row.warranty_status and row.warranty_status != WarrantyStatus.UNKNOWN.value:
            known_warranty += 1
        if row.priority in (RmaPriority.HIGH.value, RmaPriority.URGENT.value):
            high_priority += 1
        if leg_exceptions(row):
            exceptions += 1

        created_at = as_utc(row.created_at)
        closed_at = as_utc(row.closed_at)
        if created_at is not None and closed_at is not None and closed_at >= created_at:
            turnaround_days.append((closed_at - created_at).total_seconds() / 86400)

        serial = normalize_serial_number(row.serial_number)
        if serial:
            serials[serial] += 1

    repeat = sorted(
        ((serial, count) for serial, count in serials.items() if count > 1),
        key=lambda item: item[1],
        reverse=True,
    )[:5]

    return RmaKpis(
        total_cases=len(rows),
        open_cases=open_cases,
        overdue_cases=overdue,
        in_warranty_cases=in_warranty,
        warranty_hit_rate_pct=_pct(in_warranty, known_warranty),
        high_priority_cases=high_priority,
        logistics_exception_cases=exceptions,
        logistics_exception_rate_pct=_pct(exceptions, open_cases),
        avg_turnaround_days=(
            sum(turnaround_days) / len(turnaround_days) if turnaround_days else None
        ),
        queue_by_technician=dict(queue),
        repeat_issue_serials=[
            RepeatIssueSerial(serial_number=serial, case_count=count) for serial, count in repeat
        ],
    )


def build_logistics_exceptions(rows: list[Any], now: datetime) -> LogisticsExceptionsResponse:
    flagged: list[LogisticsExceptionCase] = []
    summary = dict.fromkeys(EXCEPTION_TYPES, 0)
    for row in rows:
        types = classify_logistics_exceptions(row, now)
        if not types:
            continue
        for exception_type in types:
            summary[exception_type] += 1
        flagged.append(
            LogisticsExceptionCase.model_validate(
                {
                    **{name: getattr(row, name) for name in LogisticsExceptionCase.model_fields
                       if name != "exception_types"},
                    "exception_types": types,
                }
            )
        )
    return LogisticsExceptionsResponse(
        exceptions=flagged, summary=summary, total_exceptions=len(flagged)
    )


def compute_time_in_stage(
    rows: list[Any],
    entered_at_by_case: dict[tuple[UUID, str], datetime],
    now: datetime,
) -> TimeInStageResponse:
    """Hours each case has spent in its current status.

    *entered_at_by_case* maps ``(case_id, event_type)`` to the latest event of
    that type; cases without one fall back to ``created_at``.
    """
    entries: list[TimeInStageEntry] = []
    totals: dict[str, list[float]] = {}
    for row in rows:
        event_type = map_status_to_event(row.status).value
        entered_at = as_utc(entered_at_by_case.get((row.id, event_type)) or row.created_at)
        hours = max((now - entered_at).total_seconds() / 3600, 0.0) if entered_at else 0.0
        entries.append(
            TimeInStageEntry(
                case_id=row.id,
                status=row.status,
                entered_at=entered_at or now,
                hours_in_stage=hours,
                is_sla_overdue=is_overdue(row, now),
            )
        )
        totals.setdefault(row.status, []).append(hours)

    return TimeInStageResponse(
        entries=entries,
        summary_by_status={
            status: StageSummary(count=len(hours), avg_hours_in_stage=sum(hours) / len(hours))
            for status, hours in totals.items()
        },
    )


class RmaReportService:
    def __init__(self, db: Session):
        self.db = db
        self.case_repo = RmaCaseRepository(db)
        self.event_repo = SerialServiceEventRepository(db)

    def _rows(self, limit: int | None = None, **filters: Any) -> list[RmaCase]:
        return self.case_repo.get_all(limit=limit, **RmaCaseService.normalize_filters(filters))

    @translate_schema_errors
    def kpis(self, now: datetime | None = None, **filters: Any) -> RmaKpis:
        return compute_rma_kpis(self._rows(**filters), now or utc_now())

    @translate_schema_errors
    def logistics_exceptions(
        self, now: datetime | None = None, **filters: Any
    ) -> LogisticsExceptionsResponse:
        rows = self._rows(limit=EXCEPTION_REPORT_LIMIT, **filters)
        return build_logistics_exceptions(rows, now or utc_now())

    @translate_schema_errors
    def time_in_stage(self, now: datetime | None = None, **filters: Any) -> TimeInStageResponse:
        rows = self._rows(**filters)
        events = self.event_repo.get_by_cases(
            [row.id for row in rows],  # type: ignore[misc]
            [event_type.value for event_type in STATUS_TO_EVENT_TYPE.values()],
        )
        latest: dict[tuple[UUID, str], datetime] = {}
        for event in events:
            key = (event.rma_case_id, event.event_type)
            created_at = as_utc(event.created_at)  # type: ignore[arg-type]
            if created_at is not None and (key not in latest or created_at > latest[key]):
                latest[key] = created_at  # type: ignore[index]
        return compute_time_in_stage(rows, latest, now or utc_now())
