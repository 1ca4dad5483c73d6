# Overview: Read access to settlements and the variance investigation workflow.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import SettlementRecord, VarianceRecord
from ..models.cash import (
    VARIANCE_PENDING,
    VARIANCE_INVESTIGATING,
    VARIANCE_RESOLVED,
    VARIANCE_WRITTEN_OFF,
)
from ..time_utils import utcnow
from ..validation import InvalidStateError, NotFoundError, check_range, coerce_choice
from .concurrency import lock_for_update


INVESTIGATION_STATUSES = {
    VARIANCE_PENDING,
    VARIANCE_INVESTIGATING,
    VARIANCE_RESOLVED,
    VARIANCE_WRITTEN_OFF,
}

# Allowed next statuses; RESOLVED and WRITTEN_OFF are terminal
INVESTIGATION_TRANSITIONS = {
    VARIANCE_PENDING: {VARIANCE_INVESTIGATING, VARIANCE_RESOLVED, VARIANCE_WRITTEN_OFF},
    VARIANCE_INVESTIGATING: {VARIANCE_RESOLVED, VARIANCE_WRITTEN_OFF},
    VARIANCE_RESOLVED: set(),
    VARIANCE_WRITTEN_OFF: set(),
}


def get_settlement(store_id: int, settlement_id: int) -> SettlementRecord:
    record = db.session.query(SettlementRecord).filter_by(id=settlement_id, store_id=store_id).first()
    if not record:
        raise NotFoundError("Settlement not found", {"settlement_id": settlement_id})
    return record


def list_settlements(
    store_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[SettlementRecord]:
    """Settlements for a store, newest first. Both bounds are inclusive."""
    check_range(start, end)

    query = db.session.query(SettlementRecord).filter_by(store_id=store_id)
    if start:
        query = query.filter(SettlementRecord.settled_at >= start)
    if end:
        query = query.filter(SettlementRecord.settled_at <= end)
    return query.order_by(SettlementRecord.settled_at.desc(), SettlementRecord.id.desc()).all()


def update_variance_investigation(
    store_id: int,
    variance_id: int,
    user_id: int,
    status: str,
    notes: str | None = None,
) -> VarianceRecord:
    """
    Move a variance through its investigation.

    PENDING -> INVESTIGATING -> RESOLVED | WRITTEN_OFF

    The settlement itself is never modified.
    """
    status = coerce_choice(status, "status", INVESTIGATION_STATUSES)

    variance = lock_for_update(
        db.session.query(VarianceRecord).filter_by(id=variance_id, store_id=store_id)
    ).first()
    if not variance:
        raise NotFoundError("Variance record not found", {"variance_id": variance_id})

    allowed = INVESTIGATION_TRANSITIONS[variance.investigation_status]
    if status not in allowed:
        raise InvalidStateError(
            f"Cannot move variance from {variance.investigation_status} to {status}",
            {"variance_id": variance_id, "status": variance.investigation_status},
        )

    variance.investigation_status = status
    variance.investigated_by_user_id = user_id
    variance.investigated_at = utcnow()
    if notes is not None:
        variance.notes = notes

    db.session.commit()

    current_app.logger.info(
        "Variance %s moved to %s by user=%s", variance.id, status, user_id,
    )
    return variance
