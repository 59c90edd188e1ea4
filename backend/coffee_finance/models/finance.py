from __future__ import annotations

from ..extensions import db
from ..statuses import PaymentStatus, TRANSACTION_CONFIRMED
from ..time_utils import to_utc_z, utcnow


class PaymentRecord(db.Model):
    """
    Payment projection for one coffee batch.

    WHY: The unique batch_number makes "at most one payment per batch" a
    database guarantee. A second attempt collides with the first and is
    turned into an in-place update (Pending) or a ConflictError (Paid/Processing).

    STATUSES:
    - Pending: payable placeholder written when the price is approved
    - Processing: bank transfer awaiting second authorizer
    - Paid: cash paid, or bank transfer confirmed
    """
    __tablename__ = "payment_records"
    __table_args__ = (
        db.UniqueConstraint("batch_number", name="uq_payment_records_batch_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    batch_number = db.Column(db.String(64), nullable=False)
    batch_id = db.Column(db.Integer, db.ForeignKey("coffee_batches.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    quality_assessment_id = db.Column(db.Integer, db.ForeignKey("quality_assessments.id"), nullable=True, index=True)

    method = db.Column(db.String(32), nullable=True)  # Cash, Bank Transfer

    amount_ugx = db.Column(db.BigInteger, nullable=False)
    amount_paid_ugx = db.Column(db.BigInteger, nullable=False, default=0)
    balance_ugx = db.Column(db.BigInteger, nullable=False, default=0)
    advance_recovered_ugx = db.Column(db.BigInteger, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=PaymentStatus.PENDING.value, index=True)
    notes = db.Column(db.Text, nullable=True)

    processed_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    batch = db.relationship("CoffeeBatch")
    supplier = db.relationship("Supplier")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_number": self.batch_number,
            "batch_id": self.batch_id,
            "supplier_id": self.supplier_id,
            "quality_assessment_id": self.quality_assessment_id,
            "method": self.method,
            "amount_ugx": self.amount_ugx,
            "amount_paid_ugx": self.amount_paid_ugx,
            "balance_ugx": self.balance_ugx,
            "advance_recovered_ugx": self.advance_recovered_ugx,
            "status": self.status,
            "notes": self.notes,
            "processed_by_user_id": self.processed_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "version_id": self.version_id,
        }


class CashTransaction(db.Model):
    """
    Append-only cash ledger entry.

    amount_ugx is signed: cash-in (DEPOSIT, ADVANCE_RECOVERY) positive,
    cash-out (PAYMENT, EXPENSE) negative. balance_after_ugx is the running
    balance snapshot at posting time. Rows are never deleted. The only update
    is confirming a pending deposit (status, confirmed_by, confirmed_at and
    balance_after_ugx). Pending rows count toward no balance.
    """
    __tablename__ = "cash_transactions"
    __table_args__ = (
        db.Index("ix_cash_transactions_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_type = db.Column(db.String(32), nullable=False, index=True)
    amount_ugx = db.Column(db.BigInteger, nullable=False)
    balance_after_ugx = db.Column(db.BigInteger, nullable=False)

    reference = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    payment_record_id = db.Column(db.Integer, db.ForeignKey("payment_records.id"), nullable=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default=TRANSACTION_CONFIRMED)
    created_by = db.Column(db.String(128), nullable=True)
    confirmed_by = db.Column(db.String(128), nullable=True)
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_type": self.transaction_type,
            "amount_ugx": self.amount_ugx,
            "balance_after_ugx": self.balance_after_ugx,
            "reference": self.reference,
            "notes": self.notes,
            "payment_record_id": self.payment_record_id,
            "supplier_id": self.supplier_id,
            "status": self.status,
            "created_by": self.created_by,
            "confirmed_by": self.confirmed_by,
            "confirmed_at": to_utc_z(self.confirmed_at) if self.confirmed_at else None,
            "created_at": to_utc_z(self.created_at),
        }


class CashBalance(db.Model):
    """
    Materialized current cash balance.

    One row per account. version_id makes every write a compare-and-swap:
    two writers that read the same version cannot both commit.
    """
    __tablename__ = "cash_balances"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    account = db.Column(db.String(32), nullable=False, unique=True)
    current_balance_ugx = db.Column(db.BigInteger, nullable=False, default=0)
    updated_by = db.Column(db.String(128), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account": self.account,
            "current_balance_ugx": self.current_balance_ugx,
            "updated_by": self.updated_by,
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
