from __future__ import annotations

from ..extensions import db
from ..statuses import FollowUpStatus
from ..time_utils import to_utc_z, utcnow, utctoday


class FollowUpTask(db.Model):
    """
    Post-commit outbox row.

    Written in the same transaction as the payment it follows, executed after
    commit. A failing task stays pending with its error so it can be retried
    or reconciled later; it never rolls back the payment.
    """
    __tablename__ = "follow_up_tasks"
    __table_args__ = (
        db.Index("ix_follow_up_tasks_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(32), nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=dict)

    status = db.Column(db.String(16), nullable=False, default=FollowUpStatus.PENDING.value, index=True)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)

    payment_record_id = db.Column(db.Integer, db.ForeignKey("payment_records.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "payload": self.payload or {},
            "status": self.status,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "payment_record_id": self.payment_record_id,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
        }


class DayBookEntry(db.Model):
    """Daily activity log row shown in the finance day book."""
    __tablename__ = "day_book_entries"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    entry_type = db.Column(db.String(64), nullable=False)
    description = db.Column(db.Text, nullable=False)
    amount_ugx = db.Column(db.BigInteger, nullable=False, default=0)
    completed_by = db.Column(db.String(128), nullable=True)
    department = db.Column(db.String(64), nullable=False, default="Finance")
    entry_date = db.Column(db.Date, nullable=False, default=utctoday, index=True)
    batch_number = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entry_type": self.entry_type,
            "description": self.description,
            "amount_ugx": self.amount_ugx,
            "completed_by": self.completed_by,
            "department": self.department,
            "entry_date": self.entry_date.isoformat() if self.entry_date else None,
            "batch_number": self.batch_number,
            "created_at": to_utc_z(self.created_at),
        }
