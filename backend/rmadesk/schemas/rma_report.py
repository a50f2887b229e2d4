"""Schemas for the RMA KPI, logistics-exception and time-in-stage reports."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class RepeatIssueSerial(BaseModel):
    serial_number: str
    case_count: int


class RmaKpis(BaseModel):
    total_cases: int
    open_cases: int
    overdue_cases: int
    in_warranty_cases: int
    warranty_hit_rate_pct: float | None = None
    high_priority_cases: int
    logistics_exception_cases: int
    logistics_exception_rate_pct: float | None = None
    avg_turnaround_days: float | None = None
    queue_by_technician: dict[str, int]
    repeat_issue_serials: list[RepeatIssueSerial]


class RmaKpiResponse(BaseModel):
    kpis: RmaKpis


class LogisticsExceptionCase(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: str
    issue_summary: str
    shopify_order_name: str | None = None
    serial_number: str | None = None
    assigned_technician_email: str | None = None
    inbound_tracking_number: str | None = None
    outbound_tracking_number: str | None = None
    delivered_back_at: datetime | None = None
    sla_due_at: datetime | None = None
    created_at: datetime
    exception_types: list[str]


class LogisticsExceptionsResponse(BaseModel):
    exceptions: list[LogisticsExceptionCase]
    summary: dict[str, int]
    total_exceptions: int


class TimeInStageEntry(BaseModel):
    case_id: UUID
    status: str
    entered_at: datetime
    hours_in_stage: float
    is_sla_overdue: bool


class StageSummary(BaseModel):
    count: int
    avg_hours_in_stage: float


class TimeInStageResponse(BaseModel):
    entries: list[TimeInStageEntry]
    summary_by_status: dict[str, StageSummary]
