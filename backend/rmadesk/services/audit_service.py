"""Audit trail for RMA cases.

Every case gets a ``created`` row (deduped intakes too, flagged in metadata),
a ``status_changed`` row per status move and an ``updated`` row holding the
field-level diff of the audited columns. Status is not part of the diff.
"""

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from rmadesk.models.audit_log import AuditAction, AuditLog
from rmadesk.repositories.audit_log_repository import AuditLogRepository

RMA_CASE = "rma_case"


def diff_fields(before: dict[str, Any], after: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """``{field: {"old", "new"}}`` for each key whose value differs."""
    return {
        key: {"old": before.get(key), "new": after.get(key)}
        for key in sorted(set(before) | set(after))
        if before.get(key) != after.get(key)
    }


class CaseAuditTrail:
    def __init__(self, db: Session):
        self.repo = AuditLogRepository(db)

    def opened(
        self,
        case_id: UUID,
        snapshot: dict[str, Any],
        actor_id: str | None = None,
    ) -> AuditLog:
        return self.repo.append(
            RMA_CASE, case_id, AuditAction.CREATED, snapshot, actor_id=actor_id
        )

    def deduped(self, case_id: UUID, dedupe_key: str, actor_id: str | None = None) -> AuditLog:
        """A repeat intake that resolved to the already-open case."""
        return self.repo.append(
            RMA_CASE,
            case_id,
            AuditAction.CREATED,
            {},
            actor_id=actor_id,
            metadata={"deduped": True, "dedupe_key": dedupe_key},
        )

    def status_moved(
        self,
        case_id: UUID,
        old_status: str,
        new_status: str,
        actor_id: str | None = None,
    ) -> AuditLog:
        return self.repo.append(
            RMA_CASE,
            case_id,
            AuditAction.STATUS_CHANGED,
            {"status": {"old": old_status, "new": new_status}},
            actor_id=actor_id,
        )

    def fields_changed(
        self,
        case_id: UUID,
        before: dict[str, Any],
        after: dict[str, Any],
        actor_id: str | None = None,
        automations: list[str] | None = None,
    ) -> AuditLog | None:
        """Write the diff; nothing is written when no audited field moved."""
        changes = diff_fields(before, after)
        if not changes:
            return None
        return self.repo.append(
            RMA_CASE,
            case_id,
            AuditAction.UPDATED,
            changes,
            actor_id=actor_id,
            metadata={"automations": automations} if automations else None,
        )

    def history(self, case_id: UUID, limit: int = 200) -> list[AuditLog]:
        return self.repo.timeline(RMA_CASE, case_id, limit=limit)
