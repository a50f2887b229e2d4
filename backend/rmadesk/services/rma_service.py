"""RMA case lifecycle: intake, updates, tracking, warranty decisions and events.

Every mutation keeps three invariants:

* ``closed_at`` is set exactly while the case is ``back_to_customer``;
* a non-null ``serial_number`` always has a serial registry row;
* ``dedupe_key`` is only held by open cases, so the unique index rejects a
  second open case for the same return, order/serial pair or reference.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rmadesk.core.config import settings
from rmadesk.models.audit_log import AuditLog
from rmadesk.models.rma_case import RmaCase, RmaStatus
from rmadesk.models.serial_registry import SerialRegistry
from rmadesk.models.serial_service_event import SerialServiceEvent, ServiceEventType
from rmadesk.models.shared import utc_now
from rmadesk.repositories.rma_case_repository import RmaCaseRepository
from rmadesk.schemas.issue_details import LegacyIssueDetails, StructuredIssueDetails
from rmadesk.schemas.rma_case import (
    CaseEventCreate,
    RmaCaseCreate,
    RmaCaseUpdate,
    RmaTrackingUpdate,
    TicketSyncResult,
    WarrantyDecision,
)
from rmadesk.services.audit_service import CaseAuditTrail
from rmadesk.services.errors import (
    RmaCaseNotFoundError,
    RmaConflictError,
    RmaValidationError,
    translate_schema_errors,
)
from rmadesk.services.integrations.hubspot_tickets import HubSpotError, HubSpotTicketClient
from rmadesk.services.issue_details import parse_issue_details
from rmadesk.services.logistics_automation import (
    AutomationOutcome,
    LogisticsSnapshot,
    derive_logistics_automation,
    has_tracking_changes,
)
from rmadesk.services.serial_registry_service import (
    SerialRegistryService,
    map_status_to_event,
    normalize_serial_number,
)

logger = logging.getLogger(__name__)

CLOSED = RmaStatus.BACK_TO_CUSTOMER.value
TICKETS_NOT_CONFIGURED = "HubSpot ticket integration not fully configured"

# Fields the audit trail diffs on update.
AUDITED_FIELDS = (
    "priority",
    "serial_number",
    "customer_email",
    "assigned_technician_email",
    "warranty_status",
    "warranty_basis",
    "disposition",
    "inbound_tracking_number",
    "inbound_status",
    "outbound_tracking_number",
    "outbound_status",
    "received_at",
    "inspected_at",
    "shipped_back_at",
    "delivered_back_at",
    "closed_at",
)


@dataclass
class CreateOutcome:
    case: RmaCase
    deduped: bool = False
    ticket_sync: TicketSyncResult = field(default_factory=TicketSyncResult)


@dataclass
class UpdateOutcome:
    case: RmaCase
    automations: list[str] = field(default_factory=list)
    ticket_sync: TicketSyncResult = field(default_factory=TicketSyncResult)


@dataclass
class CaseDetail:
    case: RmaCase
    registry: SerialRegistry | None
    events: list[SerialServiceEvent]


def compute_dedupe_key(
    shopify_return_id: str | None,
    shopify_order_id: str | None,
    serial_number: str | None,
    external_reference: str | None,
) -> str | None:
    """Pick the strongest identity available for an intake."""
    if shopify_return_id:
        return f"shopify_return:{shopify_return_id}"
    if shopify_order_id and serial_number:
        return f"order_serial:{shopify_order_id}:{serial_number}"
    if external_reference:
        return f"external:{external_reference.strip().lower()}"
    return None


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return value


def _normalize_email(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


class RmaCaseService:
    def __init__(self, db: Session, ticket_client: HubSpotTicketClient | None = None):
        self.db = db
        self.case_repo = RmaCaseRepository(db)
        self.registry = SerialRegistryService(db)
        self.audit = CaseAuditTrail(db)
        self.tickets = ticket_client or HubSpotTicketClient()

    # Reads

    @translate_schema_errors
    def get_case(self, case_id: UUID) -> RmaCase:
        rma_case = self.case_repo.get_by_id(case_id)
        if rma_case is None:
            raise RmaCaseNotFoundError(case_id)
        return rma_case

    @translate_schema_errors
    def get(self, case_id: UUID) -> CaseDetail:
        """Return the case, its registry row (if any) and the registry's events, newest first."""
        rma_case = self.get_case(case_id)
        registry = self.registry.get_registry(rma_case.serial_number)  # type: ignore[arg-type]
        events = self.registry.events_for(registry.id) if registry is not None else []  # type: ignore[arg-type]
        return CaseDetail(case=rma_case, registry=registry, events=events)

    @translate_schema_errors
    def audit_history(self, case_id: UUID) -> list[AuditLog]:
        self.get_case(case_id)
        return self.audit.history(case_id)

    @staticmethod
    def normalize_filters(filters: dict[str, Any]) -> dict[str, Any]:
        normalized = {k: _jsonable(v) for k, v in filters.items() if v not in (None, "")}
        if "serial_number" in normalized:
            normalized["serial_number"] = normalize_serial_number(normalized["serial_number"])
        for key in ("customer_email", "technician_email", "my_queue_email"):
            if key in normalized:
                normalized[key] = _normalize_email(normalized[key])
        return normalized

    @translate_schema_errors
    def list_cases(
        self, offset: int = 0, limit: int = 50, **filters: Any
    ) -> tuple[list[RmaCase], int]:
        return self.case_repo.get_page(
            offset=offset, limit=limit, **self.normalize_filters(filters)
        )

    @translate_schema_errors
    def parsed_issue_details(
        self, case_id: UUID
    ) -> StructuredIssueDetails | LegacyIssueDetails | None:
        rma_case = self.get_case(case_id)
        return parse_issue_details(rma_case.issue_details)  # type: ignore[arg-type]

    # Intake

    @translate_schema_errors
    def create(
        self,
        data: RmaCaseCreate,
        actor_id: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> CreateOutcome:
        """Open a new case, or return the open case that already holds its dedupe key.

        *extra* carries columns that intake channels set but the manual form does
        not, such as ``warranty_checked_at``.
        """
        serial = normalize_serial_number(data.serial_number)
        dedupe_key = compute_dedupe_key(
            data.shopify_return_id,
            data.shopify_order_id,
            serial,
            data.external_reference,
        )
        if dedupe_key:
            existing = self.case_repo.get_open_by_dedupe_key(dedupe_key)
            if existing is not None:
                return self._deduped(existing, dedupe_key, actor_id)

        now = utc_now()
        status = data.status.value
        values: dict[str, Any] = {
            k: _jsonable(v) if isinstance(v, Enum) else v
            for k, v in data.model_dump(exclude={"create_ticket", "brand", "model"}).items()
        }
        values.update(
            serial_number=serial,
            customer_email=_normalize_email(data.customer_email),
            assigned_technician_email=_normalize_email(data.assigned_technician_email),
            dedupe_key=dedupe_key if status != CLOSED else None,
            received_at=now,
            created_at=now,
            sla_due_at=data.sla_due_at or now + timedelta(days=settings.DEFAULT_SLA_DAYS),
        )
        if values["assigned_technician_email"]:
            values["assigned_at"] = now
        if status == CLOSED:
            values["closed_at"] = now
        if extra:
            values.update(extra)

        try:
            rma_case = self.case_repo.create(values)
        except IntegrityError:
            existing = self.case_repo.get_open_by_dedupe_key(dedupe_key) if dedupe_key else None
            if existing is None:
                raise
            logger.info("Concurrent intake for %s resolved to RMA %s", dedupe_key, existing.id)
            return self._deduped(existing, dedupe_key, actor_id)  # type: ignore[arg-type]

        if serial:
            registry = self.registry.upsert_registry(
                serial, data.inventory_item_id, brand=data.brand, model=data.model
            )
            self.registry.append_event(
                registry.id,  # type: ignore[arg-type]
                map_status_to_event(status),
                f"RMA case created ({status})",
                rma_case_id=rma_case.id,  # type: ignore[arg-type]
                notes=rma_case.issue_summary,  # type: ignore[arg-type]
                metadata={
                    "shopify_order_id": rma_case.shopify_order_id,
                    "source": rma_case.source,
                },
                created_by=actor_id,
            )

        self.audit.opened(
            rma_case.id,  # type: ignore[arg-type]
            {
                "status": status,
                "source": rma_case.source,
                "shopify_order_id": rma_case.shopify_order_id,
                "serial_number": serial,
            },
            actor_id=actor_id,
        )

        ticket_sync = TicketSyncResult()
        if data.create_ticket:
            ticket_sync = (
                self._create_ticket(rma_case)
                if self.tickets.is_configured
                else TicketSyncResult(attempted=False, error=TICKETS_NOT_CONFIGURED)
            )
        return CreateOutcome(case=rma_case, deduped=False, ticket_sync=ticket_sync)

    def _deduped(self, existing: RmaCase, dedupe_key: str, actor_id: str | None) -> CreateOutcome:
        self.audit.deduped(existing.id, dedupe_key, actor_id=actor_id)  # type: ignore[arg-type]
        return CreateOutcome(case=existing, deduped=True)

    # Mutations

    @translate_schema_errors
    def update(
        self,
        case_id: UUID,
        data: RmaCaseUpdate,
        actor_id: str | None = None,
    ) -> UpdateOutcome:
        rma_case = self.get_case(case_id)
        delta: dict[str, Any] = {
            k: _jsonable(v) if isinstance(v, Enum) else v
            for k, v in data.model_dump(exclude_unset=True).items()
        }
        expected_status = delta.pop("expected_status", None)
        note = delta.pop("note", None)

        old_status = str(rma_case.status)
        if expected_status is not None and old_status != expected_status:
            raise RmaConflictError(
                f"RMA case {case_id} is in status {old_status}, expected {expected_status}"
            )

        if "serial_number" in delta:
            delta["serial_number"] = normalize_serial_number(delta["serial_number"])
        for key in ("customer_email", "assigned_technician_email"):
            if key in delta:
                delta[key] = _normalize_email(delta[key])

        now = utc_now()
        old_values = {k: _jsonable(getattr(rma_case, k)) for k in AUDITED_FIELDS}
        prior = LogisticsSnapshot.from_case(rma_case)

        registry = self._link_registry(rma_case, delta)

        outcome = (
            derive_logistics_automation(prior, delta, now)
            if has_tracking_changes(delta)
            else AutomationOutcome()
        )
        values = {**delta, **outcome.updates}
        if (
            "assigned_technician_email" in delta
            and delta["assigned_technician_email"] != rma_case.assigned_technician_email
        ):
            values["assigned_at"] = now if delta["assigned_technician_email"] else None
        self._reconcile_closure(rma_case, values, now)

        if values:
            matched = self.case_repo.apply_update(
                case_id, values, expected_status=expected_status
            )
            if matched == 0:
                raise RmaConflictError(
                    f"RMA case {case_id} changed status concurrently; reload and retry"
                )
        rma_case = self.case_repo.refresh(rma_case)
        new_status = str(rma_case.status)

        if registry is not None:
            self._append_update_events(rma_case, registry, delta, outcome, old_status, note, actor_id)

        if new_status != old_status:
            self.audit.status_moved(case_id, old_status, new_status, actor_id=actor_id)
        self.audit.fields_changed(
            case_id,
            old_values,
            {k: _jsonable(getattr(rma_case, k)) for k in AUDITED_FIELDS},
            actor_id=actor_id,
            automations=outcome.rules,
        )

        ticket_sync = TicketSyncResult()
        if new_status != old_status and rma_case.hubspot_ticket_id:
            ticket_sync = self._sync_ticket_stage(rma_case, note)
        return UpdateOutcome(case=rma_case, automations=outcome.rules, ticket_sync=ticket_sync)

    def _link_registry(self, rma_case: RmaCase, delta: dict[str, Any]) -> SerialRegistry | None:
        serial = delta["serial_number"] if "serial_number" in delta else rma_case.serial_number
        if not serial:
            return None
        inventory_item_id = delta.get("inventory_item_id") or rma_case.inventory_item_id
        if "serial_number" in delta and serial != rma_case.serial_number:
            return self.registry.upsert_registry(serial, inventory_item_id)  # type: ignore[arg-type]
        return self.registry.ensure_registry(
            serial, inventory_item_id, initial_count=1  # type: ignore[arg-type]
        )

    @staticmethod
    def _reconcile_closure(rma_case: RmaCase, values: dict[str, Any], now: datetime) -> None:
        status = values.get("status", rma_case.status)
        closed_at = values["closed_at"] if "closed_at" in values else rma_case.closed_at
        if status == CLOSED:
            if closed_at is None:
                values["closed_at"] = now
            if rma_case.dedupe_key is not None:
                values["dedupe_key"] = None
        elif closed_at is not None:
            values["closed_at"] = None

    def _append_update_events(
        self,
        rma_case: RmaCase,
        registry: SerialRegistry,
        delta: dict[str, Any],
        outcome: AutomationOutcome,
        old_status: str,
        note: str | None,
        actor_id: str | None,
    ) -> None:
        registry_id: UUID = registry.id  # type: ignore[assignment]
        case_id: UUID = rma_case.id  # type: ignore[assignment]
        caller_status = delta.get("status")
        if caller_status is not None and caller_status != old_status:
            self.registry.append_event(
                registry_id,
                map_status_to_event(caller_status),
                f"Status changed: {old_status} -> {caller_status}",
                rma_case_id=case_id,
                notes=note,
                metadata={"from": old_status, "to": caller_status},
                created_by=actor_id,
            )
        elif note:
            self.registry.append_event(
                registry_id,
                ServiceEventType.SERVICE_NOTE,
                "Case updated",
                rma_case_id=case_id,
                notes=note,
                created_by=actor_id,
            )

        if outcome.fired:
            event_type = (
                map_status_to_event(outcome.updates["status"])
                if outcome.status_changed
                else ServiceEventType.SERVICE_NOTE
            )
            self.registry.append_event(
                registry_id,
                event_type,
                f"Logistics automation: {', '.join(outcome.rules)}",
                rma_case_id=case_id,
                notes="; ".join(outcome.notes),
                metadata={
                    "automations": outcome.rules,
                    "fields": sorted(outcome.updates),
                },
                created_by="automation",
            )

    def update_status(
        self,
        case_id: UUID,
        status: RmaStatus,
        note: str | None = None,
        expected_status: RmaStatus | None = None,
        actor_id: str | None = None,
    ) -> UpdateOutcome:
        update = RmaCaseUpdate(status=status, note=note, expected_status=expected_status)
        return self.update(case_id, update, actor_id=actor_id)

    def update_tracking(
        self,
        case_id: UUID,
        tracking: RmaTrackingUpdate,
        actor_id: str | None = None,
    ) -> UpdateOutcome:
        """Write one logistics leg; only the fields the caller sent are touched."""
        sent = tracking.model_dump(exclude_unset=True, exclude={"direction", "note"})
        fields = {f"{tracking.direction}_{key}": value for key, value in sent.items()}
        if tracking.note:
            fields["note"] = tracking.note
        return self.update(case_id, RmaCaseUpdate.model_validate(fields), actor_id=actor_id)

    @translate_schema_errors
    def record_warranty_decision(
        self,
        case_id: UUID,
        decision: WarrantyDecision,
        actor_id: str | None = None,
    ) -> RmaCase:
        rma_case = self.get_case(case_id)
        now = utc_now()
        old_values = {
            "warranty_status": rma_case.warranty_status,
            "warranty_basis": rma_case.warranty_basis,
            "priority": rma_case.priority,
        }
        values: dict[str, Any] = {
            "warranty_status": decision.warranty_status.value,
            "warranty_basis": decision.warranty_basis.value,
            "warranty_decision_notes": decision.notes,
            "warranty_checked_at": now,
        }
        if decision.warranty_expires_at is not None:
            values["warranty_expires_at"] = decision.warranty_expires_at
        if decision.priority is not None:
            values["priority"] = decision.priority.value
        self.case_repo.apply_update(case_id, values)
        rma_case = self.case_repo.refresh(rma_case)

        if rma_case.serial_number:
            registry = self.registry.ensure_registry(
                rma_case.serial_number,  # type: ignore[arg-type]
                rma_case.inventory_item_id,  # type: ignore[arg-type]
                initial_count=1,
            )
            self.registry.append_event(
                registry.id,  # type: ignore[arg-type]
                ServiceEventType.SERVICE_NOTE,
                f"Warranty decision: {decision.warranty_status.value.replace('_', ' ')}",
                rma_case_id=case_id,
                notes=decision.notes,
                metadata={"warranty_basis": decision.warranty_basis.value},
                created_by=actor_id,
            )
        self.audit.fields_changed(
            case_id,
            old_values,
            {
                "warranty_status": rma_case.warranty_status,
                "warranty_basis": rma_case.warranty_basis,
                "priority": rma_case.priority,
            },
            actor_id=actor_id,
        )
        return rma_case

    @translate_schema_errors
    def append_case_event(
        self,
        case_id: UUID,
        event: CaseEventCreate,
        actor_id: str | None = None,
    ) -> SerialServiceEvent:
        rma_case = self.get_case(case_id)
        if not rma_case.serial_number:
            raise RmaValidationError(
                "RMA case has no serial number; set one before adding service events"
            )
        registry = self.registry.ensure_registry(
            rma_case.serial_number,  # type: ignore[arg-type]
            rma_case.inventory_item_id,  # type: ignore[arg-type]
            initial_count=1,
        )
        return self.registry.append_event(
            registry.id,  # type: ignore[arg-type]
            event.event_type,
            event.summary,
            rma_case_id=case_id,
            notes=event.notes,
            metadata=event.metadata,
            created_by=event.created_by or actor_id,
        )

    @translate_schema_errors
    def store_recommendation(self, case_id: UUID, recommendation: dict[str, Any]) -> RmaCase:
        rma_case = self.get_case(case_id)
        self.case_repo.apply_update(case_id, {"ai_recommendation": recommendation})
        return self.case_repo.refresh(rma_case)

    # HubSpot

    def _create_ticket(self, rma_case: RmaCase) -> TicketSyncResult:
        try:
            ticket = self.tickets.create_ticket(
                rma_case_id=str(rma_case.id),
                subject=f"RMA {rma_case.shopify_order_name or rma_case.shopify_order_id}",
                content=str(rma_case.issue_summary),
                status=str(rma_case.status),
                serial_number=rma_case.serial_number,  # type: ignore[arg-type]
                customer_email=rma_case.customer_email,  # type: ignore[arg-type]
                customer_phone=rma_case.customer_phone,  # type: ignore[arg-type]
            )
        except HubSpotError as exc:
            logger.warning("HubSpot ticket creation failed for RMA %s: %s", rma_case.id, exc)
            return TicketSyncResult(attempted=True, success=False, error=str(exc))

        self.case_repo.apply_update(
            rma_case.id, {"hubspot_ticket_id": ticket.ticket_id}  # type: ignore[arg-type]
        )
        self.case_repo.refresh(rma_case)
        return TicketSyncResult(attempted=True, success=True, ticket_id=ticket.ticket_id)

    def _sync_ticket_stage(self, rma_case: RmaCase, summary: str | None = None) -> TicketSyncResult:
        ticket_id = rma_case.hubspot_ticket_id
        if not ticket_id:
            return TicketSyncResult()
        if not self.tickets.is_configured:
            return TicketSyncResult(
                attempted=True,
                error="HubSpot ticket integration not fully configured",
                ticket_id=ticket_id,  # type: ignore[arg-type]
            )
        try:
            self.tickets.update_ticket_stage(
                ticket_id, str(rma_case.status), summary  # type: ignore[arg-type]
            )
        except HubSpotError as exc:
            logger.warning("HubSpot stage sync failed for RMA %s: %s", rma_case.id, exc)
            return TicketSyncResult(
                attempted=True, error=str(exc), ticket_id=ticket_id  # type: ignore[arg-type]
            )
        return TicketSyncResult(attempted=True, success=True, ticket_id=ticket_id)  # type: ignore[arg-type]

    @translate_schema_errors
    def sync_ticket(self, case_id: UUID) -> TicketSyncResult:
        """Push the current status to HubSpot, creating the ticket if the case has none."""
        rma_case = self.get_case(case_id)
        if not rma_case.hubspot_ticket_id:
            if not self.tickets.is_configured:
                return TicketSyncResult(attempted=False, error=TICKETS_NOT_CONFIGURED)
            return self._create_ticket(rma_case)
        return self._sync_ticket_stage(rma_case, rma_case.issue_summary)  # type: ignore[arg-type]

