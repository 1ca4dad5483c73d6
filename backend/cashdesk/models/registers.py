from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


SESSION_STATUS_OPEN = "OPEN"
SESSION_STATUS_CLOSED = "CLOSED"


class CashRegisterSession(db.Model):
    """
    One open-to-close cycle of a store's cash register.

    LIFECYCLE:
    - OPEN: movements and payments may be recorded against it
    - CLOSED: settled; expected/actual/difference are frozen

    INVARIANTS:
    - At most one OPEN session per store (partial unique index below)
    - starting_balance_cents never changes after creation
    - Closing fields are written exactly once, together with the
      SettlementRecord, in the same transaction
    - Never hard-deleted; deleted_at is reserved for correction workflows
    """
    __tablename__ = "cash_register_sessions"
    __table_args__ = (
        db.Index(
            "uq_cash_register_sessions_store_open",
            "store_id",
            unique=True,
            sqlite_where=db.text("status = 'OPEN'"),
            postgresql_where=db.text("status = 'OPEN'"),
        ),
        db.Index("ix_cash_register_sessions_store_opened", "store_id", "opened_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=SESSION_STATUS_OPEN, index=True)

    opened_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    starting_balance_cents = db.Column(db.BigInteger, nullable=False, default=0)

    # Set once, at close
    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    expected_balance_cents = db.Column(db.BigInteger, nullable=True)
    actual_balance_cents = db.Column(db.BigInteger, nullable=True)
    difference_cents = db.Column(db.BigInteger, nullable=True)  # actual - expected
    notes = db.Column(db.Text, nullable=True)

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store", backref=db.backref("cash_register_sessions", lazy=True))
    opened_by = db.relationship("User", foreign_keys=[opened_by_user_id])
    closed_by = db.relationship("User", foreign_keys=[closed_by_user_id])
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == SESSION_STATUS_OPEN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "status": self.status,
            "opened_by_user_id": self.opened_by_user_id,
            "opened_at": to_utc_z(self.opened_at),
            "starting_balance_cents": self.starting_balance_cents,
            "closed_by_user_id": self.closed_by_user_id,
            "closed_at": to_utc_z(self.closed_at),
            "expected_balance_cents": self.expected_balance_cents,
            "actual_balance_cents": self.actual_balance_cents,
            "difference_cents": self.difference_cents,
            "notes": self.notes,
            "version_id": self.version_id,
        }


class CashRegisterSnapshot(db.Model):
    """
    Point-in-time copy of a session's running expected balance.

    SNAPSHOT TYPES:
    - AUTOMATIC: taken by a scheduled job
    - MANUAL: requested by staff mid-shift
    - RECONCILIATION: taken before a physical count
    - SHIFT_CLOSE: written by close_register itself
    """
    __tablename__ = "cash_register_snapshots"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("cash_register_sessions.id"), nullable=False, index=True)

    snapshot_type = db.Column(db.String(32), nullable=False)
    balance_cents = db.Column(db.BigInteger, nullable=False)
    movement_count = db.Column(db.Integer, nullable=False, default=0)
    last_movement_id = db.Column(db.Integer, db.ForeignKey("cash_movements.id"), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    session = db.relationship("CashRegisterSession", backref=db.backref("snapshots", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "snapshot_type": self.snapshot_type,
            "balance_cents": self.balance_cents,
            "movement_count": self.movement_count,
            "last_movement_id": self.last_movement_id,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
