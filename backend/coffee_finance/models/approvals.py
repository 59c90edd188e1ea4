from __future__ import annotations

from ..extensions import db
from ..statuses import ApprovalStatus
from ..time_utils import to_utc_z, utcnow


class ApprovalRequest(db.Model):
    """
    Secondary-approval envelope.

    Created Pending by the core (bank transfers, self-submitted price
    corrections). Resolution happens outside this service.
    """
    __tablename__ = "approval_requests"
    __table_args__ = (
        db.Index("ix_approval_requests_status_type", "status", "request_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    request_type = db.Column(db.String(64), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    amount_ugx = db.Column(db.BigInteger, nullable=False, default=0)

    requested_by = db.Column(db.String(128), nullable=False)
    department = db.Column(db.String(64), nullable=False, default="Finance")
    priority = db.Column(db.String(16), nullable=False, default="Medium")
    status = db.Column(db.String(16), nullable=False, default=ApprovalStatus.PENDING.value)

    details = db.Column(db.JSON, nullable=False, default=dict)

    date_requested = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_type": self.request_type,
            "title": self.title,
            "description": self.description,
            "amount_ugx": self.amount_ugx,
            "requested_by": self.requested_by,
            "department": self.department,
            "priority": self.priority,
            "status": self.status,
            "details": self.details or {},
            "date_requested": to_utc_z(self.date_requested),
            "created_at": to_utc_z(self.created_at),
        }
