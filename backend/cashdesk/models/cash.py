from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


VARIANCE_PENDING = "PENDING"
VARIANCE_INVESTIGATING = "INVESTIGATING"
VARIANCE_RESOLVED = "RESOLVED"
VARIANCE_WRITTEN_OFF = "WRITTEN_OFF"

METHOD_CASH = "CASH"

DIRECTION_IN = "IN"
DIRECTION_OUT = "OUT"


class CashMovement(db.Model):
    """
    A single cash in/out event recorded against an open register session.

    Positive amount = cash into the drawer, negative = cash out.
    Rows are append-only: never updated, never deleted.

    KINDS:
    - SALE_PAYMENT: customer paid cash for a sale (+)
    - PURCHASE_PAYMENT: supplier paid cash for a purchase (-)
    - EXPENSE: petty cash expense (-)
    - REFUND: cash handed back on a return (-)
    - CASH_IN: float top-up (+)
    - CASH_OUT: cash drop to safe/bank (-)
    - MANUAL_ADJUSTMENT: correction, either sign, never zero
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.Index("ix_cash_movements_session_created", "session_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("cash_register_sessions.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    kind = db.Column(db.String(32), nullable=False, index=True)
    amount_cents = db.Column(db.BigInteger, nullable=False)

    # 1:1 with a cash payment; weak reference, the movement does not own it
    linked_payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=True, unique=True)

    note = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    session = db.relationship("CashRegisterSession", backref=db.backref("movements", lazy=True))
    linked_payment = db.relationship("Payment", backref=db.backref("cash_movement", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "store_id": self.store_id,
            "kind": self.kind,
            "amount_cents": self.amount_cents,
            "linked_payment_id": self.linked_payment_id,
            "note": self.note,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class Payment(db.Model):
    """
    Money received for a sale or paid out for a purchase, expense or return.

    DESIGN: Exactly one document reference is set. The documents themselves
    live in upstream systems; only their ids are kept here.

    Only CASH payments touch the register: they get a linked CashMovement
    in the same transaction.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    sale_id = db.Column(db.Integer, nullable=True, index=True)
    purchase_id = db.Column(db.Integer, nullable=True, index=True)
    expense_id = db.Column(db.Integer, nullable=True, index=True)
    return_id = db.Column(db.Integer, nullable=True, index=True)

    amount_cents = db.Column(db.BigInteger, nullable=False)
    method = db.Column(db.String(32), nullable=False, index=True)  # CASH, BANK_TRANSFER, ...
    direction = db.Column(db.String(8), nullable=False)  # IN, OUT

    reference = db.Column(db.String(128), nullable=True)  # check number, transfer ref, ...
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "sale_id": self.sale_id,
            "purchase_id": self.purchase_id,
            "expense_id": self.expense_id,
            "return_id": self.return_id,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "direction": self.direction,
            "reference": self.reference,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "cash_movement_id": self.cash_movement.id if self.cash_movement else None,
        }


class SettlementRecord(db.Model):
    """
    Reconciliation produced when a register session is closed.

    IMMUTABLE: Written once by close_register, never updated.
    Follow-up on a non-zero difference happens on VarianceRecord.
    """
    __tablename__ = "settlement_records"
    __table_args__ = (
        db.Index("ix_settlement_records_store_settled", "store_id", "settled_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("cash_register_sessions.id"), nullable=False, unique=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    starting_balance_cents = db.Column(db.BigInteger, nullable=False)
    total_cash_in_cents = db.Column(db.BigInteger, nullable=False, default=0)
    total_cash_out_cents = db.Column(db.BigInteger, nullable=False, default=0)  # positive magnitude
    movement_count = db.Column(db.Integer, nullable=False, default=0)

    expected_balance_cents = db.Column(db.BigInteger, nullable=False)
    actual_balance_cents = db.Column(db.BigInteger, nullable=False)
    difference_cents = db.Column(db.BigInteger, nullable=False)

    settled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    settled_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    session = db.relationship("CashRegisterSession", backref=db.backref("settlement", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "store_id": self.store_id,
            "starting_balance_cents": self.starting_balance_cents,
            "total_cash_in_cents": self.total_cash_in_cents,
            "total_cash_out_cents": self.total_cash_out_cents,
            "movement_count": self.movement_count,
            "expected_balance_cents": self.expected_balance_cents,
            "actual_balance_cents": self.actual_balance_cents,
            "difference_cents": self.difference_cents,
            "settled_by_user_id": self.settled_by_user_id,
            "settled_at": to_utc_z(self.settled_at),
            "variance": self.variance.to_dict() if self.variance else None,
        }


class VarianceRecord(db.Model):
    """
    Follow-up for a settlement whose counted cash did not match.

    INVESTIGATION STATUS:
    - PENDING -> INVESTIGATING -> RESOLVED | WRITTEN_OFF
    """
    __tablename__ = "variance_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    settlement_id = db.Column(db.Integer, db.ForeignKey("settlement_records.id"), nullable=False, unique=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    variance_cents = db.Column(db.BigInteger, nullable=False)  # absolute amount
    variance_type = db.Column(db.String(16), nullable=False)  # SHORTAGE, OVERAGE
    investigation_status = db.Column(db.String(16), nullable=False, default=VARIANCE_PENDING, index=True)

    notes = db.Column(db.Text, nullable=True)
    investigated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    investigated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    settlement = db.relationship("SettlementRecord", backref=db.backref("variance", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "settlement_id": self.settlement_id,
            "store_id": self.store_id,
            "variance_cents": self.variance_cents,
            "variance_type": self.variance_type,
            "investigation_status": self.investigation_status,
            "notes": self.notes,
            "investigated_by_user_id": self.investigated_by_user_id,
            "investigated_at": to_utc_z(self.investigated_at),
            "created_at": to_utc_z(self.created_at),
        }
