# Overview: Service-layer operations for cash register sessions; encapsulates business logic and database work.

"""
Cash Register Session Service

WHY: Cash accountability per store. Each session has a starting float,
collects every cash movement made while it is open, and is settled against
a physical count when it closes.

DESIGN PRINCIPLES:
- One OPEN session per store at a time (service check + partial unique index)
- The "current session" is always a query, never process state
- Close locks the session row, sums the movements and writes the
  SettlementRecord in the same transaction as the status change
- Sessions are immutable once closed; repeat closes fail
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    Store,
    CashRegisterSession,
    CashRegisterSnapshot,
    CashMovement,
    SettlementRecord,
    VarianceRecord,
)
from ..models.registers import SESSION_STATUS_OPEN, SESSION_STATUS_CLOSED
from ..models.cash import VARIANCE_PENDING
from ..time_utils import utcnow
from ..validation import (
    ValidationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    coerce_cents,
    coerce_choice,
)
from . import settlement
from .concurrency import lock_for_update


SNAPSHOT_AUTOMATIC = "AUTOMATIC"
SNAPSHOT_MANUAL = "MANUAL"
SNAPSHOT_RECONCILIATION = "RECONCILIATION"
SNAPSHOT_SHIFT_CLOSE = "SHIFT_CLOSE"

# SHIFT_CLOSE is reserved for close_register
REQUESTABLE_SNAPSHOT_TYPES = {SNAPSHOT_AUTOMATIC, SNAPSHOT_MANUAL, SNAPSHOT_RECONCILIATION}

SESSION_STATUSES = {SESSION_STATUS_OPEN, SESSION_STATUS_CLOSED}


def _sessions():
    return db.session.query(CashRegisterSession).filter(CashRegisterSession.deleted_at.is_(None))


# =============================================================================
# LIFECYCLE
# =============================================================================

def open_register(
    store_id: int,
    user_id: int,
    starting_balance_cents: int
) -> CashRegisterSession:
    """
    Open a new register session for a store.

    Args:
        store_id: Store whose drawer is being opened
        user_id: Staff member opening it
        starting_balance_cents: Float placed in the drawer (>= 0)

    Raises:
        ValidationError: negative or non-integer starting balance
        NotFoundError: store missing or inactive
        ConflictError: store already has an OPEN session
    """
    starting_balance_cents = coerce_cents(starting_balance_cents, "starting_balance_cents")

    store = db.session.get(Store, store_id)
    if not store or not store.is_active:
        raise NotFoundError("Store not found", {"store_id": store_id})

    existing_open = get_current_open_session(store_id)
    if existing_open:
        raise ConflictError(
            f"Store already has an open cash register (session {existing_open.id})",
            {"store_id": store_id, "session_id": existing_open.id},
        )

    session = CashRegisterSession(
        store_id=store_id,
        status=SESSION_STATUS_OPEN,
        opened_by_user_id=user_id,
        opened_at=utcnow(),
        starting_balance_cents=starting_balance_cents,
    )
    db.session.add(session)

    try:
        db.session.commit()
    except IntegrityError:
        # Lost the race against a concurrent open for the same store
        db.session.rollback()
        raise ConflictError(
            "Store already has an open cash register",
            {"store_id": store_id},
        )

    current_app.logger.info(
        "Cash register opened: store=%s session=%s starting=%s by user=%s",
        store_id, session.id, starting_balance_cents, user_id,
    )
    return session


def close_register(
    session_id: int,
    user_id: int,
    actual_balance_cents: int,
    notes: str | None = None,
) -> SettlementRecord:
    """
    Close a session and settle counted cash against expected cash.

    expected = starting balance + sum(movement amounts)
    difference = actual - expected

    The session row is locked first so any concurrent movement either
    commits before the sum is read or sees CLOSED afterwards.

    Raises:
        ValidationError: negative or non-integer actual balance
        NotFoundError: no such session
        InvalidStateError: session is not OPEN
    """
    actual_balance_cents = coerce_cents(actual_balance_cents, "actual_balance_cents")

    session = lock_for_update(_sessions().filter(CashRegisterSession.id == session_id)).first()
    if not session:
        raise NotFoundError("Cash register session not found", {"session_id": session_id})

    if session.status != SESSION_STATUS_OPEN:
        raise InvalidStateError(
            "Cash register session is already closed",
            {"session_id": session_id, "status": session.status},
        )

    totals = session_totals(session.id)
    expected = settlement.expected_balance(
        session.starting_balance_cents,
        (totals.cash_in_cents, -totals.cash_out_cents),
    )
    diff = settlement.difference(actual_balance_cents, expected)
    now = utcnow()

    record = SettlementRecord(
        session_id=session.id,
        store_id=session.store_id,
        starting_balance_cents=session.starting_balance_cents,
        total_cash_in_cents=totals.cash_in_cents,
        total_cash_out_cents=totals.cash_out_cents,
        movement_count=totals.count,
        expected_balance_cents=expected,
        actual_balance_cents=actual_balance_cents,
        difference_cents=diff,
        settled_by_user_id=user_id,
        settled_at=now,
    )
    db.session.add(record)
    try:
        db.session.flush()
    except IntegrityError:
        # Another close already settled this session
        db.session.rollback()
        raise InvalidStateError(
            "Cash register session is already closed",
            {"session_id": session_id},
        )

    variance_type = settlement.classify_variance(diff)
    if variance_type:
        db.session.add(VarianceRecord(
            settlement_id=record.id,
            store_id=session.store_id,
            variance_cents=abs(diff),
            variance_type=variance_type,
            investigation_status=VARIANCE_PENDING,
        ))

    db.session.add(CashRegisterSnapshot(
        session_id=session.id,
        snapshot_type=SNAPSHOT_SHIFT_CLOSE,
        balance_cents=expected,
        movement_count=totals.count,
        last_movement_id=_last_movement_id(session.id),
        notes=notes,
        created_by_user_id=user_id,
        created_at=now,
    ))

    session.status = SESSION_STATUS_CLOSED
    session.closed_at = now
    session.closed_by_user_id = user_id
    session.expected_balance_cents = expected
    session.actual_balance_cents = actual_balance_cents
    session.difference_cents = diff
    session.notes = notes

    db.session.commit()

    current_app.logger.info(
        "Cash register closed: store=%s session=%s expected=%s actual=%s difference=%s",
        session.store_id, session.id, expected, actual_balance_cents, diff,
    )
    if variance_type:
        current_app.logger.warning(
            "Cash register variance: session=%s %s of %s",
            session.id, variance_type, abs(diff),
        )

    return record


def get_current_open_session(store_id: int) -> CashRegisterSession | None:
    """Get the currently open session for a store, if any."""
    return _sessions().filter(
        CashRegisterSession.store_id == store_id,
        CashRegisterSession.status == SESSION_STATUS_OPEN,
    ).first()


def get_session(session_id: int) -> CashRegisterSession:
    session = _sessions().filter(CashRegisterSession.id == session_id).first()
    if not session:
        raise NotFoundError("Cash register session not found", {"session_id": session_id})
    return session


def list_store_sessions(store_id: int, status: str | None = None) -> list[CashRegisterSession]:
    """All sessions for a store, newest first, optionally filtered by status."""
    query = _sessions().filter(CashRegisterSession.store_id == store_id)
    if status:
        query = query.filter(CashRegisterSession.status == coerce_choice(status, "status", SESSION_STATUSES))
    return query.order_by(CashRegisterSession.opened_at.desc(), CashRegisterSession.id.desc()).all()


# =============================================================================
# AGGREGATES
# =============================================================================

def session_totals(session_id: int) -> settlement.MovementTotals:
    """
    Sum cash in / cash out for a session with a single aggregate query.
    """
    cash_in, cash_out, count = db.session.query(
        func.coalesce(func.sum(case((CashMovement.amount_cents > 0, CashMovement.amount_cents), else_=0)), 0),
        func.coalesce(func.sum(case((CashMovement.amount_cents < 0, -CashMovement.amount_cents), else_=0)), 0),
        func.count(CashMovement.id),
    ).filter(CashMovement.session_id == session_id).one()

    return settlement.MovementTotals(
        cash_in_cents=int(cash_in),
        cash_out_cents=int(cash_out),
        count=int(count),
    )


def _last_movement_id(session_id: int) -> int | None:
    return db.session.query(func.max(CashMovement.id)).filter(
        CashMovement.session_id == session_id
    ).scalar()


def get_session_summary(session_id: int) -> dict:
    """
    Session overview for the register screen.

    Returns:
        - Session details
        - Running expected balance (starting + net movements)
        - Totals in/out, movement count and count per kind
        - Settlement, once closed
    """
    session = get_session(session_id)
    totals = session_totals(session_id)

    by_kind = dict(
        db.session.query(CashMovement.kind, func.count(CashMovement.id))
        .filter(CashMovement.session_id == session_id)
        .group_by(CashMovement.kind)
        .all()
    )

    return {
        "session": session.to_dict(),
        "starting_balance_cents": session.starting_balance_cents,
        "running_balance_cents": settlement.expected_balance(
            session.starting_balance_cents, (totals.net_cents,)
        ),
        "total_cash_in_cents": totals.cash_in_cents,
        "total_cash_out_cents": totals.cash_out_cents,
        "movement_count": totals.count,
        "movements_by_kind": by_kind,
        "is_closed": session.status == SESSION_STATUS_CLOSED,
        "settlement": session.settlement.to_dict() if session.settlement else None,
    }


# =============================================================================
# SNAPSHOTS
# =============================================================================

def take_snapshot(
    session_id: int,
    user_id: int | None,
    snapshot_type: str = SNAPSHOT_MANUAL,
    notes: str | None = None,
) -> CashRegisterSnapshot:
    """
    Record the running expected balance of an open session.
    """
    snapshot_type = coerce_choice(snapshot_type, "snapshot_type", REQUESTABLE_SNAPSHOT_TYPES)

    session = lock_for_update(
        _sessions().filter(CashRegisterSession.id == session_id),
        read=True,
    ).first()
    if not session:
        raise NotFoundError("Cash register session not found", {"session_id": session_id})
    if session.status != SESSION_STATUS_OPEN:
        raise InvalidStateError(
            "Snapshots can only be taken on an open cash register",
            {"session_id": session_id, "status": session.status},
        )

    totals = session_totals(session_id)
    snapshot = CashRegisterSnapshot(
        session_id=session_id,
        snapshot_type=snapshot_type,
        balance_cents=settlement.expected_balance(session.starting_balance_cents, (totals.net_cents,)),
        movement_count=totals.count,
        last_movement_id=_last_movement_id(session_id),
        notes=notes,
        created_by_user_id=user_id,
        created_at=utcnow(),
    )
    db.session.add(snapshot)
    db.session.commit()
    return snapshot


def list_snapshots(session_id: int, limit: int | None = None) -> list[CashRegisterSnapshot]:
    get_session(session_id)
    query = db.session.query(CashRegisterSnapshot).filter_by(session_id=session_id).order_by(
        CashRegisterSnapshot.created_at.desc(), CashRegisterSnapshot.id.desc()
    )
    if limit is not None:
        if limit <= 0:
            raise ValidationError("limit must be positive", {"limit": limit})
        query = query.limit(limit)
    return query.all()

