from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Supplier(db.Model):
    """Coffee supplier (farmer, trader or cooperative) delivering batches."""
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True)
    name = db.Column(db.String(128), nullable=False)

    # SMS recipient for payment notifications
    phone = db.Column(db.String(32), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "phone": self.phone,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class SupplierAdvance(db.Model):
    """
    Cash advanced to a supplier against future deliveries.

    Recovered oldest-first out of later coffee payments. Closed (never
    deleted) once outstanding reaches zero.
    """
    __tablename__ = "supplier_advances"
    __table_args__ = (
        db.CheckConstraint("outstanding_ugx >= 0", name="ck_supplier_advances_outstanding_nonneg"),
        db.Index("ix_supplier_advances_open_fifo", "supplier_id", "is_closed", "issued_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    amount_ugx = db.Column(db.BigInteger, nullable=False)
    outstanding_ugx = db.Column(db.BigInteger, nullable=False)
    is_closed = db.Column(db.Boolean, nullable=False, default=False)

    purpose = db.Column(db.String(255), nullable=True)
    issued_by_user_id = db.Column(db.Integer, nullable=True)
    issued_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier", backref=db.backref("advances", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "amount_ugx": self.amount_ugx,
            "outstanding_ugx": self.outstanding_ugx,
            "is_closed": self.is_closed,
            "purpose": self.purpose,
            "issued_by_user_id": self.issued_by_user_id,
            "issued_at": to_utc_z(self.issued_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "version_id": self.version_id,
        }


class AdvanceRecoveryLine(db.Model):
    """One advance's share of a recovery (append-only)."""
    __tablename__ = "advance_recoveries"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    advance_id = db.Column(db.Integer, db.ForeignKey("supplier_advances.id"), nullable=False, index=True)
    payment_record_id = db.Column(db.Integer, db.ForeignKey("payment_records.id"), nullable=True, index=True)
    amount_ugx = db.Column(db.BigInteger, nullable=False)
    outstanding_after_ugx = db.Column(db.BigInteger, nullable=False)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    advance = db.relationship("SupplierAdvance", backref=db.backref("recoveries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "advance_id": self.advance_id,
            "payment_record_id": self.payment_record_id,
            "amount_ugx": self.amount_ugx,
            "outstanding_after_ugx": self.outstanding_after_ugx,
            "occurred_at": to_utc_z(self.occurred_at),
        }
