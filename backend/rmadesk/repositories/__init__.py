from rmadesk.repositories.audit_log_repository import AuditLogRepository
from rmadesk.repositories.idempotency_repository import IdempotencyRepository
from rmadesk.repositories.rma_case_repository import RmaCaseRepository
from rmadesk.repositories.rma_communication_repository import RmaCommunicationRepository
from rmadesk.repositories.serial_registry_repository import SerialRegistryRepository
from rmadesk.repositories.serial_service_event_repository import SerialServiceEventRepository

__all__ = [
    "AuditLogRepository",
    "IdempotencyRepository",
    "RmaCaseRepository",
    "RmaCommunicationRepository",
    "SerialRegistryRepository",
    "SerialServiceEventRepository",
]
