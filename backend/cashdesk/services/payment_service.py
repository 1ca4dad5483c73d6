# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Recording Service

WHY: Payments are taken against sales and made against purchases, expenses
and returns. Cash payments physically move money through the drawer, so
they must show up as cash movements on the open register.

DESIGN PRINCIPLES:
- Exactly one document reference per payment
- Direction follows the document: sale -> IN, everything else -> OUT
- A cash payment and its movement are written in one transaction;
  without an open register neither is kept
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Payment
from ..models.cash import METHOD_CASH, DIRECTION_IN, DIRECTION_OUT
from ..time_utils import utcnow
from ..validation import (
    ValidationError,
    NotFoundError,
    check_range,
    coerce_cents,
    coerce_choice,
)
from . import movement_service


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_BANK_TRANSFER = "BANK_TRANSFER"
METHOD_CHECK = "CHECK"
METHOD_CREDIT_CARD = "CREDIT_CARD"
METHOD_OTHER = "OTHER"

VALID_METHODS = {
    METHOD_CASH,
    METHOD_BANK_TRANSFER,
    METHOD_CHECK,
    METHOD_CREDIT_CARD,
    METHOD_OTHER,
}

# Document reference -> (direction, movement kind for cash)
DOCUMENT_RULES = {
    "sale_id": (DIRECTION_IN, movement_service.KIND_SALE_PAYMENT),
    "purchase_id": (DIRECTION_OUT, movement_service.KIND_PURCHASE_PAYMENT),
    "expense_id": (DIRECTION_OUT, movement_service.KIND_EXPENSE),
    "return_id": (DIRECTION_OUT, movement_service.KIND_REFUND),
}


def record_payment(
    store_id: int,
    user_id: int,
    amount_cents: int,
    method: str,
    *,
    sale_id: int | None = None,
    purchase_id: int | None = None,
    expense_id: int | None = None,
    return_id: int | None = None,
    reference: str | None = None,
    notes: str | None = None,
) -> Payment:
    """
    Record a payment and, for cash, its drawer movement.

    Args:
        store_id: Store taking or making the payment
        user_id: Staff member recording it
        amount_cents: Positive amount in minor units
        method: CASH, BANK_TRANSFER, CHECK, CREDIT_CARD, OTHER
        sale_id / purchase_id / expense_id / return_id: exactly one
        reference: Check number, transfer reference, etc. (optional)

    Raises:
        ValidationError: bad amount, method or document reference
        InvalidStateError: cash payment with no open register
    """
    amount_cents = coerce_cents(amount_cents, "amount_cents")
    if amount_cents == 0:
        raise ValidationError("Payment amount must be positive", {"field": "amount_cents"})
    method = coerce_choice(method, "method", VALID_METHODS)

    references = {
        "sale_id": sale_id,
        "purchase_id": purchase_id,
        "expense_id": expense_id,
        "return_id": return_id,
    }
    provided = [name for name, value in references.items() if value is not None]
    if len(provided) != 1:
        raise ValidationError(
            "Exactly one of sale_id, purchase_id, expense_id, return_id is required",
            {"provided": provided},
        )
    document_field = provided[0]
    direction, cash_kind = DOCUMENT_RULES[document_field]

    payment = Payment(
        store_id=store_id,
        amount_cents=amount_cents,
        method=method,
        direction=direction,
        reference=reference,
        notes=notes,
        created_by_user_id=user_id,
        created_at=utcnow(),
        **references,
    )

    try:
        db.session.add(payment)
        db.session.flush()  # Get payment ID

        if method == METHOD_CASH:
            signed = amount_cents if direction == DIRECTION_IN else -amount_cents
            movement_service.record_movement(
                store_id=store_id,
                user_id=user_id,
                kind=cash_kind,
                amount_cents=signed,
                linked_payment_id=payment.id,
                note=f"Payment {payment.id} ({document_field}={references[document_field]})",
                commit=False,
            )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return payment


def get_payment(store_id: int, payment_id: int) -> Payment:
    payment = db.session.query(Payment).filter_by(id=payment_id, store_id=store_id).first()
    if not payment:
        raise NotFoundError("Payment not found", {"payment_id": payment_id})
    return payment


def _document_filters(query, documents: dict):
    for field, value in documents.items():
        if field not in DOCUMENT_RULES:
            raise ValidationError(f"Unknown document reference {field}", {"field": field})
        if value is not None:
            query = query.filter(getattr(Payment, field) == value)
    return query


def list_payments(
    store_id: int,
    method: str | None = None,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    **documents,
) -> list[Payment]:
    """
    Payments for a store, newest first.

    Filters (all optional, combined):
        method: one of VALID_METHODS
        start / end: inclusive created_at range
        sale_id / purchase_id / expense_id / return_id: one document's payments
    """
    check_range(start, end)

    query = db.session.query(Payment).filter_by(store_id=store_id)
    if method:
        query = query.filter_by(method=coerce_choice(method, "method", VALID_METHODS))
    if start:
        query = query.filter(Payment.created_at >= start)
    if end:
        query = query.filter(Payment.created_at <= end)
    query = _document_filters(query, documents)
    return query.order_by(Payment.created_at.desc(), Payment.id.desc()).all()


def total_payments(store_id: int, **documents) -> int:
    """Sum of payments recorded against a document (e.g. sale_id=12)."""
    if not any(value is not None for value in documents.values()):
        raise ValidationError(
            "A document reference is required",
            {"fields": sorted(DOCUMENT_RULES)},
        )

    query = db.session.query(func.coalesce(func.sum(Payment.amount_cents), 0)).filter(
        Payment.store_id == store_id
    )
    return int(_document_filters(query, documents).scalar())


def summarize_payments_by_method(
    store_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    """
    Money in and out per payment method over an inclusive range.

    Returns:
        {
            "methods": {"CASH": {"in_cents": ..., "out_cents": ..., "count": ...}, ...},
            "total_in_cents": ...,
            "total_out_cents": ...,
            "net_cents": ...,
        }
    Every method appears, with zeros when unused.
    """
    check_range(start, end)

    query = db.session.query(
        Payment.method,
        Payment.direction,
        func.coalesce(func.sum(Payment.amount_cents), 0),
        func.count(Payment.id),
    ).filter(Payment.store_id == store_id)
    if start:
        query = query.filter(Payment.created_at >= start)
    if end:
        query = query.filter(Payment.created_at <= end)

    methods = {m: {"in_cents": 0, "out_cents": 0, "count": 0} for m in sorted(VALID_METHODS)}
    total_in = 0
    total_out = 0
    for method, direction, amount, count in query.group_by(Payment.method, Payment.direction).all():
        bucket = methods.setdefault(method, {"in_cents": 0, "out_cents": 0, "count": 0})
        bucket["count"] += int(count)
        if direction == DIRECTION_IN:
            bucket["in_cents"] += int(amount)
            total_in += int(amount)
        else:
            bucket["out_cents"] += int(amount)
            total_out += int(amount)

    return {
        "methods": methods,
        "total_in_cents": total_in,
        "total_out_cents": total_out,
        "net_cents": total_in - total_out,
    }
