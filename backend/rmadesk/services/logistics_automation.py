"""Derive status and timestamp writes from tracking-field deltas.

Technicians treat tracking numbers as the source of truth, so entering or
updating a leg should move the case along without a second manual edit.
This module is pure: it takes the case as it was, the caller's partial
update and the current time, and returns the extra writes plus the names of
the rules that fired. Any field the caller sent is never overwritten.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from rmadesk.models.rma_case import RmaStatus

TRACKING_FIELDS = frozenset(
    {
        "inbound_carrier",
        "inbound_tracking_number",
        "inbound_tracking_url",
        "inbound_status",
        "outbound_carrier",
        "outbound_tracking_number",
        "outbound_tracking_url",
        "outbound_status",
    }
)

RULE_NOTES = {
    "inbound_received_at": "Inbound tracking added; received_at stamped",
    "inbound_delivered": "Inbound carrier reports delivered",
    "outbound_shipped": "Outbound tracking added; unit shipped back to customer",
    "outbound_delivered": "Outbound carrier reports delivered",
}


@dataclass
class LogisticsSnapshot:
    """The subset of case state the automation rules read."""

    status: str = RmaStatus.RECEIVED.value
    received_at: datetime | None = None
    inspected_at: datetime | None = None
    shipped_back_at: datetime | None = None
    delivered_back_at: datetime | None = None
    closed_at: datetime | None = None
    inbound_tracking_number: str | None = None
    outbound_tracking_number: str | None = None

    @classmethod
    def from_case(cls, rma_case: Any) -> "LogisticsSnapshot":
        return cls(
            status=str(rma_case.status),
            received_at=rma_case.received_at,
            inspected_at=rma_case.inspected_at,
            shipped_back_at=rma_case.shipped_back_at,
            delivered_back_at=rma_case.delivered_back_at,
            closed_at=rma_case.closed_at,
            inbound_tracking_number=rma_case.inbound_tracking_number,
            outbound_tracking_number=rma_case.outbound_tracking_number,
        )


@dataclass
class AutomationOutcome:
    updates: dict[str, Any] = field(default_factory=dict)
    rules: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    @property
    def fired(self) -> bool:
        return bool(self.rules)

    @property
    def status_changed(self) -> bool:
        return "status" in self.updates


def has_tracking_changes(delta: dict[str, Any]) -> bool:
    return any(key in TRACKING_FIELDS for key in delta)


def _present(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def _mentions_delivered(value: Any) -> bool:
    return value is not None and "delivered" in str(value).lower()


def derive_logistics_automation(
    prior: LogisticsSnapshot, delta: dict[str, Any], now: datetime
) -> AutomationOutcome:
    outcome = AutomationOutcome()
    updates = outcome.updates

    def effective(name: str) -> Any:
        if name in updates:
            return updates[name]
        if name in delta:
            return delta[name]
        return getattr(prior, name)

    def write(name: str, value: Any) -> bool:
        if name in delta or effective(name) == value:
            return False
        updates[name] = value
        return True

    def stamp(name: str) -> bool:
        if name in delta or effective(name) is not None:
            return False
        updates[name] = now
        return True

    def close() -> bool:
        changed = False
        if "status" not in delta:
            changed = write("status", RmaStatus.BACK_TO_CUSTOMER.value) or changed
        if effective("status") == RmaStatus.BACK_TO_CUSTOMER.value:
            changed = stamp("closed_at") or changed
        return changed

    def fire(rule: str) -> None:
        outcome.rules.append(rule)
        outcome.notes.append(RULE_NOTES[rule])

    if (
        "inbound_tracking_number" in delta
        and not _present(prior.inbound_tracking_number)
        and _present(delta["inbound_tracking_number"])
        and stamp("received_at")
    ):
        fire("inbound_received_at")

    if _mentions_delivered(delta.get("inbound_status")):
        changed = stamp("received_at")
        if prior.status == RmaStatus.RECEIVED.value and "status" not in delta:
            changed = write("status", RmaStatus.TESTING.value) or changed
            changed = stamp("inspected_at") or changed
        if changed:
            fire("inbound_delivered")

    if (
        "outbound_tracking_number" in delta
        and not _present(prior.outbound_tracking_number)
        and _present(delta["outbound_tracking_number"])
    ):
        changed = stamp("shipped_back_at")
        # Closes eagerly, before the carrier confirms delivery.
        changed = close() or changed
        if changed:
            fire("outbound_shipped")

    if _mentions_delivered(delta.get("outbound_status")):
        changed = stamp("delivered_back_at")
        if effective("closed_at") is None:
            changed = close() or changed
        if changed:
            fire("outbound_delivered")

    return outcome
