from __future__ import annotations

from ..extensions import db
from ..statuses import AssessmentStatus, BatchStatus
from ..time_utils import to_utc_z, utcnow


class CoffeeBatch(db.Model):
    """
    One intake lot of coffee from a supplier.

    Never deleted, only status-transitioned (see statuses.BATCH_TRANSITIONS).
    """
    __tablename__ = "coffee_batches"
    __table_args__ = (
        db.Index("ix_coffee_batches_supplier_status", "supplier_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable identifier (e.g., "CF-001"); payments are keyed by it
    batch_number = db.Column(db.String(64), nullable=False, unique=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    coffee_type = db.Column(db.String(32), nullable=False)  # arabica, robusta
    kilograms = db.Column(db.Float, nullable=False)
    bags = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(32), nullable=False, default=BatchStatus.PENDING_QUALITY.value, index=True)

    received_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier", backref=db.backref("batches", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_number": self.batch_number,
            "supplier_id": self.supplier_id,
            "coffee_type": self.coffee_type,
            "kilograms": self.kilograms,
            "bags": self.bags,
            "status": self.status,
            "received_by_user_id": self.received_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class QualityAssessment(db.Model):
    """
    Graded attributes and pricing for one batch per payable cycle.

    Created by grading, finalized by the pricing approval step,
    immutable once paid.
    """
    __tablename__ = "quality_assessments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("coffee_batches.id"), nullable=False, index=True)

    # Grading (percentages)
    moisture = db.Column(db.Float, nullable=True)
    group1_defects = db.Column(db.Float, nullable=True)
    group2_defects = db.Column(db.Float, nullable=True)
    pods = db.Column(db.Float, nullable=True)
    husks = db.Column(db.Float, nullable=True)
    foreign_matter = db.Column(db.Float, nullable=True)
    outturn = db.Column(db.Float, nullable=True)
    robusta_in_arabica = db.Column(db.Float, nullable=True)
    comments = db.Column(db.Text, nullable=True)

    # Pricing (UGX per kg)
    suggested_price_ugx = db.Column(db.BigInteger, nullable=True)
    final_price_ugx = db.Column(db.BigInteger, nullable=True)

    status = db.Column(db.String(32), nullable=False, default=AssessmentStatus.PENDING_ADMIN_PRICING.value, index=True)

    assessed_by_user_id = db.Column(db.Integer, nullable=True)

    # Set when someone re-submits the price for correction
    is_price_correction = db.Column(db.Boolean, nullable=False, default=False)
    price_submitted_by_user_id = db.Column(db.Integer, nullable=True)

    # Review
    reviewed_by_user_id = db.Column(db.Integer, nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    admin_comments = db.Column(db.Text, nullable=True)
    rejection_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    batch = db.relationship("CoffeeBatch", backref=db.backref("assessments", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_id": self.batch_id,
            "moisture": self.moisture,
            "group1_defects": self.group1_defects,
            "group2_defects": self.group2_defects,
            "pods": self.pods,
            "husks": self.husks,
            "foreign_matter": self.foreign_matter,
            "outturn": self.outturn,
            "robusta_in_arabica": self.robusta_in_arabica,
            "comments": self.comments,
            "suggested_price_ugx": self.suggested_price_ugx,
            "final_price_ugx": self.final_price_ugx,
            "status": self.status,
            "assessed_by_user_id": self.assessed_by_user_id,
            "is_price_correction": self.is_price_correction,
            "price_submitted_by_user_id": self.price_submitted_by_user_id,
            "reviewed_by_user_id": self.reviewed_by_user_id,
            "reviewed_at": to_utc_z(self.reviewed_at) if self.reviewed_at else None,
            "admin_comments": self.admin_comments,
            "rejection_reason": self.rejection_reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
