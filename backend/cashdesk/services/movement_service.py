# Overview: Service-layer operations for cash movements; encapsulates business logic and database work.

"""
Cash Movement Recorder

WHY: The drawer's expected balance is derived from its movements, so every
cash in/out must be appended here against the store's open session.

RULES:
- A movement needs an OPEN session for its store
- The sign of the amount is fixed by its kind
- A cash payment can back at most one movement (1:1 link)
- Movements are never updated or deleted
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CashRegisterSession, CashMovement, Payment
from ..models.registers import SESSION_STATUS_OPEN
from ..models.cash import METHOD_CASH, DIRECTION_IN, DIRECTION_OUT
from ..time_utils import utcnow
from ..validation import (
    ValidationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    check_range,
    coerce_cents,
    coerce_choice,
)
from .concurrency import lock_for_update


# =============================================================================
# MOVEMENT KINDS (CONSTANTS)
# =============================================================================

KIND_SALE_PAYMENT = "SALE_PAYMENT"
KIND_PURCHASE_PAYMENT = "PURCHASE_PAYMENT"
KIND_EXPENSE = "EXPENSE"
KIND_REFUND = "REFUND"
KIND_CASH_IN = "CASH_IN"
KIND_CASH_OUT = "CASH_OUT"
KIND_MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"

# +1: must be positive, -1: must be negative, 0: any non-zero amount
KIND_SIGNS = {
    KIND_SALE_PAYMENT: 1,
    KIND_CASH_IN: 1,
    KIND_PURCHASE_PAYMENT: -1,
    KIND_EXPENSE: -1,
    KIND_REFUND: -1,
    KIND_CASH_OUT: -1,
    KIND_MANUAL_ADJUSTMENT: 0,
}

VALID_KINDS = set(KIND_SIGNS)


def validate_sign(kind: str, amount_cents: int) -> None:
    """Enforce the sign convention for a movement kind."""
    if amount_cents == 0:
        raise ValidationError("Movement amount cannot be zero", {"kind": kind})

    sign = KIND_SIGNS[kind]
    if sign > 0 and amount_cents < 0:
        raise ValidationError(
            f"{kind} movements must be positive (cash in)",
            {"kind": kind, "amount_cents": amount_cents},
        )
    if sign < 0 and amount_cents > 0:
        raise ValidationError(
            f"{kind} movements must be negative (cash out)",
            {"kind": kind, "amount_cents": amount_cents},
        )


def _check_payment_link(store_id: int, payment_id: int, amount_cents: int) -> Payment:
    payment = db.session.query(Payment).filter_by(id=payment_id, store_id=store_id).first()
    if not payment:
        raise NotFoundError("Payment not found", {"payment_id": payment_id})

    if payment.method != METHOD_CASH:
        raise ValidationError(
            "Only cash payments can be linked to a cash movement",
            {"payment_id": payment_id, "method": payment.method},
        )

    if abs(amount_cents) != payment.amount_cents:
        raise ValidationError(
            "Movement amount must match the linked payment amount",
            {"payment_id": payment_id, "payment_amount_cents": payment.amount_cents},
        )

    expected_sign = 1 if payment.direction == DIRECTION_IN else -1
    if (amount_cents > 0) != (expected_sign > 0):
        raise ValidationError(
            f"Movement sign does not match payment direction {payment.direction}",
            {"payment_id": payment_id, "direction": payment.direction},
        )

    already_linked = db.session.query(CashMovement.id).filter_by(linked_payment_id=payment_id).first()
    if already_linked:
        raise ConflictError(
            "Payment is already linked to a cash movement",
            {"payment_id": payment_id, "movement_id": already_linked[0]},
        )

    return payment


def record_movement(
    store_id: int,
    user_id: int,
    kind: str,
    amount_cents: int,
    linked_payment_id: int | None = None,
    note: str | None = None,
    *,
    commit: bool = True,
) -> CashMovement:
    """
    Append a cash movement to the store's open register session.

    The open session row is locked shared, so a close running at the same
    time either waits for this insert or makes it fail with
    InvalidStateError.

    Args:
        store_id: Store whose drawer the cash goes in/out of
        user_id: Staff member recording it
        kind: One of VALID_KINDS
        amount_cents: Signed amount (positive = cash in)
        linked_payment_id: Cash payment backing this movement (optional)
        note: Free text (optional)
        commit: False when called inside a larger unit of work

    Raises:
        ValidationError: unknown kind, bad amount or sign, unlinkable payment
        InvalidStateError: no open session for the store
        NotFoundError: linked payment missing
        ConflictError: linked payment already has a movement
    """
    kind = coerce_choice(kind, "kind", VALID_KINDS)
    amount_cents = coerce_cents(amount_cents, "amount_cents", allow_negative=True)
    validate_sign(kind, amount_cents)

    session = lock_for_update(
        db.session.query(CashRegisterSession).filter(
            CashRegisterSession.store_id == store_id,
            CashRegisterSession.status == SESSION_STATUS_OPEN,
            CashRegisterSession.deleted_at.is_(None),
        ),
        read=True,
    ).first()

    if not session:
        raise InvalidStateError(
            "No open cash register for this store",
            {"store_id": store_id},
        )

    if linked_payment_id is not None:
        _check_payment_link(store_id, linked_payment_id, amount_cents)

    movement = CashMovement(
        session_id=session.id,
        store_id=store_id,
        kind=kind,
        amount_cents=amount_cents,
        linked_payment_id=linked_payment_id,
        note=note,
        created_by_user_id=user_id,
        created_at=utcnow(),
    )
    db.session.add(movement)

    try:
        if commit:
            db.session.commit()
        else:
            db.session.flush()
    except IntegrityError:
        db.session.rollback()
        if linked_payment_id is None:
            raise
        raise ConflictError(
            "Payment is already linked to a cash movement",
            {"payment_id": linked_payment_id},
        )

    return movement


def list_session_movements(session_id: int) -> list[CashMovement]:
    """Movements for a session, oldest first."""
    session = db.session.get(CashRegisterSession, session_id)
    if not session or session.deleted_at is not None:
        raise NotFoundError("Cash register session not found", {"session_id": session_id})

    return db.session.query(CashMovement).filter_by(
        session_id=session_id
    ).order_by(CashMovement.created_at, CashMovement.id).all()


def list_store_movements(
    store_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
    direction: str | None = None,
) -> list[CashMovement]:
    """
    Movements across every session of a store, newest first.

    direction: IN (positive amounts) or OUT (negative amounts), optional.
    start / end: inclusive created_at range, optional.
    """
    check_range(start, end)

    query = db.session.query(CashMovement).filter(CashMovement.store_id == store_id)
    if direction:
        direction = coerce_choice(direction, "direction", {DIRECTION_IN, DIRECTION_OUT})
        if direction == DIRECTION_IN:
            query = query.filter(CashMovement.amount_cents > 0)
        else:
            query = query.filter(CashMovement.amount_cents < 0)
    if start:
        query = query.filter(CashMovement.created_at >= start)
    if end:
        query = query.filter(CashMovement.created_at <= end)
    return query.order_by(CashMovement.created_at.desc(), CashMovement.id.desc()).all()


def list_payment_movements(store_id: int, payment_id: int) -> list[CashMovement]:
    """Movements backed by a payment: one for cash, none otherwise."""
    payment = db.session.query(Payment).filter_by(id=payment_id, store_id=store_id).first()
    if not payment:
        raise NotFoundError("Payment not found", {"payment_id": payment_id})

    return db.session.query(CashMovement).filter_by(linked_payment_id=payment_id).all()
