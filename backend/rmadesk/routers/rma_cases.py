"""RMA case API endpoints."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from rmadesk.core.config import settings
from rmadesk.core.database import get_db
from rmadesk.core.idempotency import (
    IdempotencyResult,
    check_idempotency,
    record_idempotency_failure,
    record_idempotency_response,
)
from rmadesk.core.rate_limiter import RateLimiter, rate_limit_dependency
from rmadesk.models.rma_case import RmaPriority, RmaSource, RmaStatus, WarrantyStatus
from rmadesk.schemas.communication import (
    CommunicationCreate,
    CommunicationCreateResult,
    CommunicationListResponse,
    CommunicationResponse,
)
from rmadesk.schemas.intake import PublicRmaRequest, PublicRmaResponse
from rmadesk.schemas.issue_details import ParsedIssueDetailsResponse
from rmadesk.schemas.rma_case import (
    AuditEntryResponse,
    CaseEventCreate,
    RecommendationResult,
    RmaCaseCreate,
    RmaCaseCreateResult,
    RmaCaseDetail,
    RmaCaseListResponse,
    RmaCaseResponse,
    RmaCaseUpdate,
    RmaCaseUpdateResult,
    RmaStatusUpdate,
    RmaTrackingUpdate,
    TicketSyncResult,
    WarrantyDecision,
)
from rmadesk.schemas.rma_report import (
    LogisticsExceptionsResponse,
    RmaKpiResponse,
    TimeInStageResponse,
)
from rmadesk.schemas.serial_registry import SerialRegistryResponse, SerialServiceEventResponse
from rmadesk.services.communication_service import CommunicationService
from rmadesk.services.errors import RmaError
from rmadesk.services.intake_service import IntakeService
from rmadesk.services.recommendation_service import RecommendationService
from rmadesk.services.rma_kpi_service import RmaReportService
from rmadesk.services.rma_service import CreateOutcome, RmaCaseService, UpdateOutcome

# Module-level rate limiters, keyed by caller IP
rma_rate_limiter = RateLimiter(max_requests=settings.RATE_LIMIT_RMA_PER_MINUTE, window_seconds=60)
ai_rate_limiter = RateLimiter(max_requests=settings.RATE_LIMIT_AI_PER_MINUTE, window_seconds=60)

router = APIRouter(dependencies=[Depends(rate_limit_dependency(rma_rate_limiter))])


class CaseFilters:
    """Query parameters shared by the list and report endpoints."""

    def __init__(
        self,
        status: RmaStatus | None = None,
        source: RmaSource | None = None,
        warranty_status: WarrantyStatus | None = None,
        priority: RmaPriority | None = None,
        technician_email: str | None = None,
        my_queue_email: str | None = None,
        serial_number: str | None = None,
        customer_email: str | None = None,
        search: str | None = Query(default=None, max_length=200),
    ):
        self.values: dict[str, Any] = {
            "status": status,
            "source": source,
            "warranty_status": warranty_status,
            "priority": priority,
            "technician_email": technician_email,
            "my_queue_email": my_queue_email,
            "serial_number": serial_number,
            "customer_email": customer_email,
            "search": search.strip() if search else None,
        }


def _create_result(outcome: CreateOutcome) -> RmaCaseCreateResult:
    return RmaCaseCreateResult(
        case=RmaCaseResponse.model_validate(outcome.case),
        deduped=outcome.deduped,
        ticket_sync=outcome.ticket_sync,
    )


def _update_result(outcome: UpdateOutcome) -> RmaCaseUpdateResult:
    return RmaCaseUpdateResult(
        case=RmaCaseResponse.model_validate(outcome.case),
        automations=outcome.automations,
        ticket_sync=outcome.ticket_sync,
    )


@router.post(
    "/",
    response_model=RmaCaseCreateResult,
    status_code=201,
    summary="Create RMA case",
    responses={
        409: {"description": "Idempotency conflict or database schema not ready"},
        422: {"description": "Validation error"},
        429: {"description": "Rate limit exceeded"},
    },
)
async def create_rma_case(
    data: RmaCaseCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> RmaCaseCreateResult | JSONResponse:
    """Open a new RMA case.

    An open case with the same Shopify return, order/serial pair or external
    reference is returned instead, with ``deduped`` set. Send an
    ``Idempotency-Key`` header to make retries safe for ticket creation.
    """
    idempotency = check_idempotency(request, db, "POST /v1/rma", data.model_dump(mode="json"))
    if isinstance(idempotency, JSONResponse):
        return idempotency

    try:
        outcome = RmaCaseService(db).create(data)
    except RmaError as exc:
        record_idempotency_failure(db, idempotency, exc.status_code, exc.message, exc.code)
        raise

    result = _create_result(outcome)
    if isinstance(idempotency, IdempotencyResult):
        record_idempotency_response(db, idempotency, 201, result.model_dump(mode="json"))
    return result


@router.get(
    "/",
    response_model=RmaCaseListResponse,
    summary="List RMA cases",
    responses={409: {"description": "Database schema not ready"}},
)
async def list_rma_cases(
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    filters: CaseFilters = Depends(),
    db: Session = Depends(get_db),
) -> RmaCaseListResponse:
    """List cases, newest first."""
    rows, total = RmaCaseService(db).list_cases(offset=offset, limit=limit, **filters.values)
    return RmaCaseListResponse(
        cases=[RmaCaseResponse.model_validate(row) for row in rows],
        total=total,
        offset=offset,
        limit=limit,
        has_more=total > offset + limit,
    )


@router.get(
    "/kpis",
    response_model=RmaKpiResponse,
    summary="RMA KPIs",
    responses={409: {"description": "Database schema not ready"}},
)
async def get_rma_kpis(
    filters: CaseFilters = Depends(),
    db: Session = Depends(get_db),
) -> RmaKpiResponse:
    return RmaKpiResponse(kpis=RmaReportService(db).kpis(**filters.values))


@router.get(
    "/logistics-exceptions",
    response_model=LogisticsExceptionsResponse,
    summary="Logistics exceptions",
    responses={409: {"description": "Database schema not ready"}},
)
async def get_logistics_exceptions(
    filters: CaseFilters = Depends(),
    db: Session = Depends(get_db),
) -> LogisticsExceptionsResponse:
    """Recent cases with a missing tracking number, an undelivered return shipment or a blown SLA."""
    return RmaReportService(db).logistics_exceptions(**filters.values)


@router.get(
    "/time-in-stage",
    response_model=TimeInStageResponse,
    summary="Time in stage",
    responses={409: {"description": "Database schema not ready"}},
)
async def get_time_in_stage(
    filters: CaseFilters = Depends(),
    db: Session = Depends(get_db),
) -> TimeInStageResponse:
    return RmaReportService(db).time_in_stage(**filters.values)


@router.post(
    "/public",
    response_model=PublicRmaResponse,
    status_code=201,
    summary="Submit a customer RMA request",
    dependencies=[Depends(rate_limit_dependency(ai_rate_limiter))],
    responses={
        403: {"description": "Order and email combination could not be verified"},
        409: {"description": "Idempotency conflict"},
        429: {"description": "Rate limit exceeded"},
        502: {"description": "Shopify lookup failed"},
        503: {"description": "Shopify integration not configured"},
    },
)
async def submit_public_rma(
    data: PublicRmaRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> PublicRmaResponse | JSONResponse:
    """Customer-facing intake, verified against the Shopify order and email."""
    idempotency = check_idempotency(
        request, db, "POST /v1/rma/public", data.model_dump(mode="json")
    )
    if isinstance(idempotency, JSONResponse):
        return idempotency

    try:
        outcome = IntakeService(db).submit_public_request(data)
    except RmaError as exc:
        record_idempotency_failure(db, idempotency, exc.status_code, exc.message, exc.code)
        raise

    result = PublicRmaResponse(
        success=True,
        accepted=outcome.accepted,
        deduped=outcome.deduped,
        case_id=outcome.case.id if outcome.case is not None else None,
    )
    if isinstance(idempotency, IdempotencyResult):
        record_idempotency_response(db, idempotency, 201, result.model_dump(mode="json"))
    return result


@router.get(
    "/{case_id}",
    response_model=RmaCaseDetail,
    summary="Get RMA case",
    responses={404: {"description": "RMA case not found"}},
)
async def get_rma_case(case_id: UUID, db: Session = Depends(get_db)) -> RmaCaseDetail:
    """Return the case with its serial registry entry and service history."""
    detail = RmaCaseService(db).get(case_id)
    return RmaCaseDetail(
        case=RmaCaseResponse.model_validate(detail.case),
        registry=(
            SerialRegistryResponse.model_validate(detail.registry)
            if detail.registry is not None
            else None
        ),
        events=[SerialServiceEventResponse.model_validate(e) for e in detail.events],
    )


@router.patch(
    "/{case_id}",
    response_model=RmaCaseUpdateResult,
    summary="Update RMA case",
    responses={
        404: {"description": "RMA case not found"},
        409: {"description": "Status changed since it was read (expected_status mismatch)"},
        422: {"description": "Validation error"},
    },
)
async def update_rma_case(
    case_id: UUID,
    data: RmaCaseUpdate,
    db: Session = Depends(get_db),
) -> RmaCaseUpdateResult:
    return _update_result(RmaCaseService(db).update(case_id, data))


@router.post(
    "/{case_id}/status",
    response_model=RmaCaseUpdateResult,
    summary="Change RMA status",
    responses={
        404: {"description": "RMA case not found"},
        409: {"description": "Status changed since it was read (expected_status mismatch)"},
    },
)
async def update_rma_status(
    case_id: UUID,
    data: RmaStatusUpdate,
    db: Session = Depends(get_db),
) -> RmaCaseUpdateResult:
    outcome = RmaCaseService(db).update_status(
        case_id, data.status, note=data.note, expected_status=data.expected_status
    )
    return _update_result(outcome)


@router.post(
    "/{case_id}/tracking",
    response_model=RmaCaseUpdateResult,
    summary="Update a logistics leg",
    responses={404: {"description": "RMA case not found"}},
)
async def update_rma_tracking(
    case_id: UUID,
    data: RmaTrackingUpdate,
    db: Session = Depends(get_db),
) -> RmaCaseUpdateResult:
    """Write inbound or outbound tracking; logistics automation runs on the result."""
    return _update_result(RmaCaseService(db).update_tracking(case_id, data))


@router.post(
    "/{case_id}/warranty-decision",
    response_model=RmaCaseResponse,
    summary="Record warranty decision",
    responses={404: {"description": "RMA case not found"}},
)
async def record_warranty_decision(
    case_id: UUID,
    data: WarrantyDecision,
    db: Session = Depends(get_db),
) -> RmaCaseResponse:
    rma_case = RmaCaseService(db).record_warranty_decision(case_id, data)
    return RmaCaseResponse.model_validate(rma_case)


@router.post(
    "/{case_id}/events",
    response_model=SerialServiceEventResponse,
    status_code=201,
    summary="Add service event",
    responses={
        400: {"description": "RMA case has no serial number"},
        404: {"description": "RMA case not found"},
    },
)
async def create_case_event(
    case_id: UUID,
    data: CaseEventCreate,
    db: Session = Depends(get_db),
) -> SerialServiceEventResponse:
    event = RmaCaseService(db).append_case_event(case_id, data)
    return SerialServiceEventResponse.model_validate(event)


@router.get(
    "/{case_id}/audit",
    response_model=list[AuditEntryResponse],
    summary="RMA case audit trail",
    responses={404: {"description": "RMA case not found"}},
)
async def get_rma_audit_trail(
    case_id: UUID, db: Session = Depends(get_db)
) -> list[AuditEntryResponse]:
    """Creation, status moves and field diffs for the case, oldest first."""
    entries = RmaCaseService(db).audit_history(case_id)
    return [AuditEntryResponse.model_validate(e) for e in entries]


@router.get(
    "/{case_id}/communications",
    response_model=CommunicationListResponse,
    summary="Customer communication history",
    responses={
        404: {"description": "RMA case not found"},
        409: {"description": "Database schema is not ready"},
    },
)
async def list_rma_communications(
    case_id: UUID, db: Session = Depends(get_db)
) -> CommunicationListResponse:
    """The last 50 messages logged for the case, newest first."""
    entries = CommunicationService(db).history(case_id)
    return CommunicationListResponse(
        communications=[CommunicationResponse.model_validate(e) for e in entries]
    )


@router.post(
    "/{case_id}/communications",
    response_model=CommunicationCreateResult,
    status_code=201,
    summary="Log customer communication",
    responses={
        400: {"description": "No message body or no recipient"},
        404: {"description": "RMA case not found"},
        409: {"description": "Database schema is not ready"},
        422: {"description": "Validation error"},
    },
)
async def create_rma_communication(
    case_id: UUID,
    data: CommunicationCreate,
    db: Session = Depends(get_db),
) -> CommunicationCreateResult:
    """Render a template or take explicit text, log it, and return a mailto link when asked."""
    entry, link = CommunicationService(db).log(case_id, data)
    return CommunicationCreateResult(
        communication=CommunicationResponse.model_validate(entry), mailto_url=link
    )


@router.get(
    "/{case_id}/parsed",
    response_model=ParsedIssueDetailsResponse,
    summary="Parsed issue details",
    responses={404: {"description": "RMA case not found"}},
)
async def get_parsed_issue_details(
    case_id: UUID, db: Session = Depends(get_db)
) -> ParsedIssueDetailsResponse:
    parsed = RmaCaseService(db).parsed_issue_details(case_id)
    return ParsedIssueDetailsResponse(case_id=case_id, parsed=parsed)


@router.post(
    "/{case_id}/hubspot-sync",
    response_model=TicketSyncResult,
    summary="Sync HubSpot ticket",
    responses={
        404: {"description": "RMA case not found"},
        409: {"description": "Idempotency conflict"},
    },
)
async def sync_hubspot_ticket(
    case_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
) -> TicketSyncResult | JSONResponse:
    """Push the case status to its HubSpot ticket, creating the ticket if needed."""
    endpoint = f"POST /v1/rma/{case_id}/hubspot-sync"
    idempotency = check_idempotency(request, db, endpoint, {"case_id": str(case_id)})
    if isinstance(idempotency, JSONResponse):
        return idempotency

    try:
        result = RmaCaseService(db).sync_ticket(case_id)
    except RmaError as exc:
        record_idempotency_failure(db, idempotency, exc.status_code, exc.message, exc.code)
        raise

    if isinstance(idempotency, IdempotencyResult):
        record_idempotency_response(
            db,
            idempotency,
            200,
            result.model_dump(mode="json"),
            failed=result.attempted and not result.success,
        )
    return result


@router.post(
    "/{case_id}/suggestion",
    response_model=RecommendationResult,
    summary="Generate AI recommendation",
    dependencies=[Depends(rate_limit_dependency(ai_rate_limiter))],
    responses={
        404: {"description": "RMA case not found"},
        409: {"description": "Idempotency conflict"},
        429: {"description": "Rate limit exceeded"},
        502: {"description": "AI provider request failed"},
        503: {"description": "AI provider not configured"},
    },
)
async def generate_suggestion(
    case_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
) -> RecommendationResult | JSONResponse:
    """Ask the model for a repair, replace or monitor recommendation and store it on the case."""
    endpoint = f"POST /v1/rma/{case_id}/suggestion"
    idempotency = check_idempotency(request, db, endpoint, {"case_id": str(case_id)})
    if isinstance(idempotency, JSONResponse):
        return idempotency

    try:
        suggestion = await RecommendationService(db).generate(case_id)
    except RmaError as exc:
        record_idempotency_failure(db, idempotency, exc.status_code, exc.message, exc.code)
        raise

    result = RecommendationResult(case_id=case_id, suggestion=suggestion)
    if isinstance(idempotency, IdempotencyResult):
        record_idempotency_response(
            db, idempotency, 200, result.model_dump(mode="json", by_alias=True)
        )
    return result
