"""cash register schema

Revision ID: 20261019_cash_register
Revises:
Create Date: 2026-10-19

Creates the complete cash register schema:
- stores, users, session_tokens: identity and store scope
- payments: sale/purchase/expense/return payments
- cash_register_sessions: open/close lifecycle, one OPEN per store
- cash_movements: append-only drawer movements, 1:1 with cash payments
- cash_register_snapshots: running balance snapshots
- settlement_records / variance_records: reconciliation at close
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_cash_register"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False):
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=None if nullable else sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade():
    op.create_table(
        "stores",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stores_code", "stores", ["code"], unique=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.String(length=128), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_users_store_id", "users", ["store_id"])
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "session_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        _timestamp("created_at"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_session_tokens_user_id", "session_tokens", ["user_id"])
    op.create_index("ix_session_tokens_store_id", "session_tokens", ["store_id"])
    op.create_index("ix_session_tokens_token_hash", "session_tokens", ["token_hash"], unique=True)

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=True),
        sa.Column("purchase_id", sa.Integer(), nullable=True),
        sa.Column("expense_id", sa.Integer(), nullable=True),
        sa.Column("return_id", sa.Integer(), nullable=True),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("method", sa.String(length=32), nullable=False),
        sa.Column("direction", sa.String(length=8), nullable=False),
        sa.Column("reference", sa.String(length=128), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    for column in ("store_id", "sale_id", "purchase_id", "expense_id", "return_id", "method", "created_by_user_id"):
        op.create_index(f"ix_payments_{column}", "payments", [column])
    op.create_index("ix_payments_store_created", "payments", ["store_id", "created_at"])

    op.create_table(
        "cash_register_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("opened_by_user_id", sa.Integer(), nullable=False),
        _timestamp("opened_at"),
        sa.Column("starting_balance_cents", sa.BigInteger(), nullable=False),
        sa.Column("closed_by_user_id", sa.Integer(), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expected_balance_cents", sa.BigInteger(), nullable=True),
        sa.Column("actual_balance_cents", sa.BigInteger(), nullable=True),
        sa.Column("difference_cents", sa.BigInteger(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["opened_by_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["closed_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_cash_register_sessions_store_id", "cash_register_sessions", ["store_id"])
    op.create_index("ix_cash_register_sessions_status", "cash_register_sessions", ["status"])
    op.create_index("ix_cash_register_sessions_opened_by_user_id", "cash_register_sessions", ["opened_by_user_id"])
    op.create_index("ix_cash_register_sessions_store_opened", "cash_register_sessions", ["store_id", "opened_at"])
    op.create_index(
        "uq_cash_register_sessions_store_open",
        "cash_register_sessions",
        ["store_id"],
        unique=True,
        sqlite_where=sa.text("status = 'OPEN'"),
        postgresql_where=sa.text("status = 'OPEN'"),
    )

    op.create_table(
        "cash_movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("linked_payment_id", sa.Integer(), nullable=True),
        sa.Column("note", sa.String(length=255), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["session_id"], ["cash_register_sessions.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["linked_payment_id"], ["payments.id"]),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("linked_payment_id"),
        sqlite_autoincrement=True,
    )
    for column in ("session_id", "store_id", "kind", "created_by_user_id"):
        op.create_index(f"ix_cash_movements_{column}", "cash_movements", [column])
    op.create_index("ix_cash_movements_session_created", "cash_movements", ["session_id", "created_at"])

    op.create_table(
        "cash_register_snapshots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("snapshot_type", sa.String(length=32), nullable=False),
        sa.Column("balance_cents", sa.BigInteger(), nullable=False),
        sa.Column("movement_count", sa.Integer(), nullable=False),
        sa.Column("last_movement_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["session_id"], ["cash_register_sessions.id"]),
        sa.ForeignKeyConstraint(["last_movement_id"], ["cash_movements.id"]),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_cash_register_snapshots_session_id", "cash_register_snapshots", ["session_id"])
    op.create_index("ix_cash_register_snapshots_created_at", "cash_register_snapshots", ["created_at"])

    op.create_table(
        "settlement_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("starting_balance_cents", sa.BigInteger(), nullable=False),
        sa.Column("total_cash_in_cents", sa.BigInteger(), nullable=False),
        sa.Column("total_cash_out_cents", sa.BigInteger(), nullable=False),
        sa.Column("movement_count", sa.Integer(), nullable=False),
        sa.Column("expected_balance_cents", sa.BigInteger(), nullable=False),
        sa.Column("actual_balance_cents", sa.BigInteger(), nullable=False),
        sa.Column("difference_cents", sa.BigInteger(), nullable=False),
        sa.Column("settled_by_user_id", sa.Integer(), nullable=False),
        _timestamp("settled_at"),
        sa.ForeignKeyConstraint(["session_id"], ["cash_register_sessions.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["settled_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_settlement_records_store_id", "settlement_records", ["store_id"])
    op.create_index("ix_settlement_records_store_settled", "settlement_records", ["store_id", "settled_at"])

    op.create_table(
        "variance_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("settlement_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("variance_cents", sa.BigInteger(), nullable=False),
        sa.Column("variance_type", sa.String(length=16), nullable=False),
        sa.Column("investigation_status", sa.String(length=16), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("investigated_by_user_id", sa.Integer(), nullable=True),
        sa.Column("investigated_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["settlement_id"], ["settlement_records.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["investigated_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("settlement_id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_variance_records_store_id", "variance_records", ["store_id"])
    op.create_index("ix_variance_records_investigation_status", "variance_records", ["investigation_status"])


def downgrade():
    op.drop_table("variance_records")
    op.drop_table("settlement_records")
    op.drop_table("cash_register_snapshots")
    op.drop_table("cash_movements")
    op.drop_table("cash_register_sessions")
    op.drop_table("payments")
    op.drop_table("session_tokens")
    op.drop_table("users")
    op.drop_table("stores")
