from __future__ import annotations

import enum
import logging
from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from opsledger.app.core.clock import business_date, utcnow
from opsledger.app.models.change_log import ChangeLog

logger = logging.getLogger(__name__)

# Fields whose transitions are recorded, per entity type. Anything else that
# changes on the entity is ignored.
TRACKED_FIELDS: dict[str, tuple[str, ...]] = {
    "fixed_asset": ("status", "custodian", "department_id", "site_id"),
    "rental_property": (
        "status",
        "lease_start_date",
        "lease_end_date",
        "monthly_rent_cents",
    ),
    "rental_payable_bill": ("status", "paid_payment_id"),
}


def _normalise(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def snapshot(entity: Any, entity_type: str) -> dict[str, Any]:
    """Capture the tracked fields of ``entity`` as plain JSON-able values."""
    fields = TRACKED_FIELDS.get(entity_type, ())
    return {name: _normalise(getattr(entity, name, None)) for name in fields}


def diff(
    entity_type: str,
    before: dict[str, Any],
    after: dict[str, Any],
) -> dict[str, dict[str, Any]]:
    """Return ``{field: {"from": old, "to": new}}`` for tracked fields that differ."""
    changes: dict[str, dict[str, Any]] = {}
    for name in TRACKED_FIELDS.get(entity_type, ()):
        old = _normalise(before.get(name))
        new = _normalise(after.get(name))
        if old != new:
            changes[name] = {"from": old, "to": new}
    return changes


def record_change(
    db: Session,
    *,
    entity_type: str,
    entity_id: UUID,
    change_type: str,
    before: dict[str, Any],
    after: dict[str, Any],
    actor: str | None,
    memo: str | None = None,
    change_date: date | None = None,
) -> ChangeLog | None:
    """Write one change-log row bundling every tracked field that changed.

    Returns ``None`` and writes nothing when no tracked field differs.
    Does NOT commit; the row belongs to the caller's transaction.
    """
    if entity_type not in TRACKED_FIELDS:
        raise ValueError(f"No tracked fields registered for entity type '{entity_type}'")

    changes = diff(entity_type, before, after)
    if not changes:
        return None

    row = ChangeLog(
        entity_type=entity_type,
        entity_id=entity_id,
        change_type=change_type,
        change_date=change_date or business_date(),
        changes=changes,
        memo=memo,
        created_by=actor,
        created_at=utcnow(),
    )
    db.add(row)
    db.flush()
    logger.debug(
        "Recorded %s change on %s %s: %s",
        change_type, entity_type, entity_id, ", ".join(sorted(changes)),
    )
    return row


def list_entity_changes(db: Session, entity_id: UUID) -> list[ChangeLog]:
    return (
        db.query(ChangeLog)
        .filter(ChangeLog.entity_id == entity_id)
        .order_by(ChangeLog.created_at)
        .all()
    )
