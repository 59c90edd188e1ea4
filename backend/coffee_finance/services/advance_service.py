# Overview: Service-layer operations for supplier advances; encapsulates business logic and database work.

"""
Supplier Advance Recovery

Advances are recovered oldest-first (FIFO by issued_at, then id). A
recovery never touches a newer advance while an older one still has
outstanding debt. Requests beyond the supplier's total outstanding are
simply capped; that is not an error.

recover() participates in the caller's transaction: it flushes but never
commits, so advance state and the ADVANCE_RECOVERY cash entry land together
or not at all.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import AdvanceRecoveryLine, Supplier, SupplierAdvance
from ..time_utils import utcnow
from ..validation import ValidationError, coerce_amount, require_int_id
from .concurrency import lock_for_update, run_with_retry


@dataclass(frozen=True)
class AdvanceDelta:
    advance_id: int
    recovered_ugx: int
    outstanding_after_ugx: int
    closed: bool

    def to_dict(self) -> dict:
        return {
            "advance_id": self.advance_id,
            "recovered_ugx": self.recovered_ugx,
            "outstanding_after_ugx": self.outstanding_after_ugx,
            "closed": self.closed,
        }


@dataclass
class RecoveryResult:
    requested_ugx: int
    recovered_ugx: int = 0
    deltas: list[AdvanceDelta] = field(default_factory=list)

    @property
    def unrecovered_ugx(self) -> int:
        return self.requested_ugx - self.recovered_ugx


def _open_advances_query(supplier_id: int):
    return (
        db.session.query(SupplierAdvance)
        .filter(
            SupplierAdvance.supplier_id == supplier_id,
            SupplierAdvance.is_closed.is_(False),
        )
        .order_by(SupplierAdvance.issued_at.asc(), SupplierAdvance.id.asc())
    )


def open_advances(supplier_id: int) -> list[SupplierAdvance]:
    """Open advances for a supplier, oldest first."""
    return _open_advances_query(supplier_id).all()


def outstanding_total(supplier_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(SupplierAdvance.outstanding_ugx), 0))
        .filter(
            SupplierAdvance.supplier_id == supplier_id,
            SupplierAdvance.is_closed.is_(False),
        )
        .scalar()
    )
    return int(total or 0)


def recover(supplier_id: int, amount_ugx: int, *, payment_record_id: int | None = None) -> RecoveryResult:
    """
    Apply amount_ugx against the supplier's open advances, oldest first.

    Args:
        supplier_id: Supplier whose advances are recovered
        amount_ugx: Amount to recover (>= 0)
        payment_record_id: Payment the recovery is deducted from (audit link)

    Returns:
        RecoveryResult with the amount actually recovered and one delta per
        advance touched, in the order they were touched.
    """
    if amount_ugx < 0:
        raise ValidationError("advance recovery must be >= 0")

    result = RecoveryResult(requested_ugx=amount_ugx)
    remaining = amount_ugx
    if remaining == 0:
        return result

    now = utcnow()
    for advance in lock_for_update(_open_advances_query(supplier_id)).all():
        if remaining == 0:
            break
        outstanding = int(advance.outstanding_ugx)
        take = min(remaining, outstanding)
        if take <= 0:
            # Open row already at zero; close it and move on
            advance.is_closed = True
            advance.closed_at = now
            continue

        advance.outstanding_ugx = outstanding - take
        if advance.outstanding_ugx == 0:
            advance.is_closed = True
            advance.closed_at = now
        remaining -= take

        db.session.add(AdvanceRecoveryLine(
            advance_id=advance.id,
            payment_record_id=payment_record_id,
            amount_ugx=take,
            outstanding_after_ugx=advance.outstanding_ugx,
            occurred_at=now,
        ))
        result.deltas.append(AdvanceDelta(
            advance_id=advance.id,
            recovered_ugx=take,
            outstanding_after_ugx=int(advance.outstanding_ugx),
            closed=bool(advance.is_closed),
        ))

    result.recovered_ugx = amount_ugx - remaining
    db.session.flush()
    return result


def issue_advance(supplier_id, amount_ugx, *, issued_by_user_id: int | None = None,
                  purpose: str | None = None, issued_at: datetime | None = None) -> SupplierAdvance:
    """Record a new advance for a supplier (outstanding starts at the full amount)."""
    supplier_id = require_int_id(supplier_id, "supplier_id")
    amount = coerce_amount(amount_ugx, "amount_ugx")

    def _op():
        supplier = db.session.get(Supplier, supplier_id)
        if not supplier:
            raise ValidationError(f"Supplier {supplier_id} not found")
        if not supplier.is_active:
            raise ValidationError(f"Supplier {supplier.code} is inactive")

        advance = SupplierAdvance(
            supplier_id=supplier.id,
            amount_ugx=amount,
            outstanding_ugx=amount,
            is_closed=False,
            purpose=purpose,
            issued_by_user_id=issued_by_user_id,
            issued_at=issued_at or utcnow(),
        )
        db.session.add(advance)
        db.session.commit()
        return advance

    return run_with_retry(_op)
