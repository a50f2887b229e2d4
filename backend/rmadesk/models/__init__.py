from rmadesk.models.audit_log import ActorType, AuditAction, AuditLog
from rmadesk.models.idempotency_record import IdempotencyRecord, IdempotencyState
from rmadesk.models.rma_case import (
    ContactPreference,
    Disposition,
    RmaCase,
    RmaPriority,
    RmaSource,
    RmaStatus,
    SubmissionChannel,
    WarrantyBasis,
    WarrantyStatus,
)
from rmadesk.models.rma_communication import (
    CommunicationStatus,
    CommunicationTemplate,
    RmaCommunication,
    SendMode,
)
from rmadesk.models.serial_registry import SerialRegistry
from rmadesk.models.serial_service_event import SerialServiceEvent, ServiceEventType
from rmadesk.models.shared import UUIDType, generate_uuid

__all__ = [
    "ActorType",
    "AuditAction",
    "AuditLog",
    "CommunicationStatus",
    "CommunicationTemplate",
    "ContactPreference",
    "Disposition",
    "IdempotencyRecord",
    "IdempotencyState",
    "RmaCase",
    "RmaCommunication",
    "RmaPriority",
    "RmaSource",
    "RmaStatus",
    "SendMode",
    "SerialRegistry",
    "SerialServiceEvent",
    "ServiceEventType",
    "SubmissionChannel",
    "UUIDType",
    "WarrantyBasis",
    "WarrantyStatus",
    "generate_uuid",
]
