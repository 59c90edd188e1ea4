"""Coffee payment core: suppliers, batches, pricing, cash ledger, approvals, follow-ups

Revision ID: 20261017_coffee_payment_core
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_coffee_payment_core"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
    ]


def upgrade():
    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("suppliers", schema=None) as batch_op:
        batch_op.create_index("ix_suppliers_is_active", ["is_active"], unique=False)

    op.create_table(
        "coffee_batches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("batch_number", sa.String(64), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("coffee_type", sa.String(32), nullable=False),
        sa.Column("kilograms", sa.Float(), nullable=False),
        sa.Column("bags", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending_quality"),
        sa.Column("received_by_user_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("batch_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("coffee_batches", schema=None) as batch_op:
        batch_op.create_index("ix_coffee_batches_supplier_id", ["supplier_id"], unique=False)
        batch_op.create_index("ix_coffee_batches_status", ["status"], unique=False)
        batch_op.create_index("ix_coffee_batches_supplier_status", ["supplier_id", "status"], unique=False)

    op.create_table(
        "quality_assessments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("batch_id", sa.Integer(), nullable=False),
        sa.Column("moisture", sa.Float(), nullable=True),
        sa.Column("group1_defects", sa.Float(), nullable=True),
        sa.Column("group2_defects", sa.Float(), nullable=True),
        sa.Column("pods", sa.Float(), nullable=True),
        sa.Column("husks", sa.Float(), nullable=True),
        sa.Column("foreign_matter", sa.Float(), nullable=True),
        sa.Column("outturn", sa.Float(), nullable=True),
        sa.Column("robusta_in_arabica", sa.Float(), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("suggested_price_ugx", sa.BigInteger(), nullable=True),
        sa.Column("final_price_ugx", sa.BigInteger(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending_admin_pricing"),
        sa.Column("assessed_by_user_id", sa.Integer(), nullable=True),
        sa.Column("is_price_correction", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("price_submitted_by_user_id", sa.Integer(), nullable=True),
        sa.Column("reviewed_by_user_id", sa.Integer(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_comments", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.String(255), nullable=True),
        *_timestamps(),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["batch_id"], ["coffee_batches.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("quality_assessments", schema=None) as batch_op:
        batch_op.create_index("ix_quality_assessments_batch_id", ["batch_id"], unique=False)
        batch_op.create_index("ix_quality_assessments_status", ["status"], unique=False)

    op.create_table(
        "payment_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("batch_number", sa.String(64), nullable=False),
        sa.Column("batch_id", sa.Integer(), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("quality_assessment_id", sa.Integer(), nullable=True),
        sa.Column("method", sa.String(32), nullable=True),
        sa.Column("amount_ugx", sa.BigInteger(), nullable=False),
        sa.Column("amount_paid_ugx", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("balance_ugx", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("advance_recovered_ugx", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(16), nullable=False, server_default="Pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("processed_by_user_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["batch_id"], ["coffee_batches.id"]),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.ForeignKeyConstraint(["quality_assessment_id"], ["quality_assessments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("batch_number", name="uq_payment_records_batch_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("payment_records", schema=None) as batch_op:
        batch_op.create_index("ix_payment_records_batch_id", ["batch_id"], unique=False)
        batch_op.create_index("ix_payment_records_supplier_id", ["supplier_id"], unique=False)
        batch_op.create_index("ix_payment_records_quality_assessment_id", ["quality_assessment_id"], unique=False)
        batch_op.create_index("ix_payment_records_status", ["status"], unique=False)

    op.create_table(
        "supplier_advances",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("amount_ugx", sa.BigInteger(), nullable=False),
        sa.Column("outstanding_ugx", sa.BigInteger(), nullable=False),
        sa.Column("is_closed", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("purpose", sa.String(255), nullable=True),
        sa.Column("issued_by_user_id", sa.Integer(), nullable=True),
        sa.Column("issued_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint("outstanding_ugx >= 0", name="ck_supplier_advances_outstanding_nonneg"),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("supplier_advances", schema=None) as batch_op:
        batch_op.create_index("ix_supplier_advances_supplier_id", ["supplier_id"], unique=False)
        batch_op.create_index(
            "ix_supplier_advances_open_fifo", ["supplier_id", "is_closed", "issued_at"], unique=False
        )

    op.create_table(
        "advance_recoveries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("advance_id", sa.Integer(), nullable=False),
        sa.Column("payment_record_id", sa.Integer(), nullable=True),
        sa.Column("amount_ugx", sa.BigInteger(), nullable=False),
        sa.Column("outstanding_after_ugx", sa.BigInteger(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["advance_id"], ["supplier_advances.id"]),
        sa.ForeignKeyConstraint(["payment_record_id"], ["payment_records.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("advance_recoveries", schema=None) as batch_op:
        batch_op.create_index("ix_advance_recoveries_advance_id", ["advance_id"], unique=False)
        batch_op.create_index("ix_advance_recoveries_payment_record_id", ["payment_record_id"], unique=False)

    op.create_table(
        "cash_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("transaction_type", sa.String(32), nullable=False),
        sa.Column("amount_ugx", sa.BigInteger(), nullable=False),
        sa.Column("balance_after_ugx", sa.BigInteger(), nullable=False),
        sa.Column("reference", sa.String(64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("payment_record_id", sa.Integer(), nullable=True),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="confirmed"),
        sa.Column("created_by", sa.String(128), nullable=True),
        sa.Column("confirmed_by", sa.String(128), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["payment_record_id"], ["payment_records.id"]),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("cash_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_cash_transactions_transaction_type", ["transaction_type"], unique=False)
        batch_op.create_index("ix_cash_transactions_payment_record_id", ["payment_record_id"], unique=False)
        batch_op.create_index("ix_cash_transactions_supplier_id", ["supplier_id"], unique=False)
        batch_op.create_index("ix_cash_transactions_status_created", ["status", "created_at"], unique=False)

    op.create_table(
        "cash_balances",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("account", sa.String(32), nullable=False),
        sa.Column("current_balance_ugx", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_by", sa.String(128), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("account"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "approval_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("request_type", sa.String(64), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("amount_ugx", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("requested_by", sa.String(128), nullable=False),
        sa.Column("department", sa.String(64), nullable=False, server_default="Finance"),
        sa.Column("priority", sa.String(16), nullable=False, server_default="Medium"),
        sa.Column("status", sa.String(16), nullable=False, server_default="Pending"),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("date_requested", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("approval_requests", schema=None) as batch_op:
        batch_op.create_index("ix_approval_requests_status_type", ["status", "request_type"], unique=False)

    op.create_table(
        "follow_up_tasks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("payment_record_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["payment_record_id"], ["payment_records.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("follow_up_tasks", schema=None) as batch_op:
        batch_op.create_index("ix_follow_up_tasks_status", ["status"], unique=False)
        batch_op.create_index("ix_follow_up_tasks_payment_record_id", ["payment_record_id"], unique=False)
        batch_op.create_index("ix_follow_up_tasks_status_created", ["status", "created_at"], unique=False)

    op.create_table(
        "day_book_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("entry_type", sa.String(64), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount_ugx", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("completed_by", sa.String(128), nullable=True),
        sa.Column("department", sa.String(64), nullable=False, server_default="Finance"),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("batch_number", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("day_book_entries", schema=None) as batch_op:
        batch_op.create_index("ix_day_book_entries_entry_date", ["entry_date"], unique=False)


def downgrade():
    op.drop_table("day_book_entries")
    op.drop_table("follow_up_tasks")
    op.drop_table("approval_requests")
    op.drop_table("cash_balances")
    op.drop_table("cash_transactions")
    op.drop_table("advance_recoveries")
    op.drop_table("supplier_advances")
    op.drop_table("payment_records")
    op.drop_table("quality_assessments")
    op.drop_table("coffee_batches")
    op.drop_table("suppliers")
