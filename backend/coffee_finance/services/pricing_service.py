# Overview: Service-layer operations for quality pricing approval; encapsulates business logic and database work.

"""
Pricing Approval Engine

WHY: The price graders suggest is not the price finance pays. An admin
approves (with a final UGX/kg price) or rejects every assessment waiting in
pending_admin_pricing. Approval is what makes a batch payable.

STATE MACHINE (per assessment):
    pending_admin_pricing -> approved   (batch: pending_pricing -> payable)
    pending_admin_pricing -> rejected   (batch: pending_pricing -> quality_rejected)

SEPARATION OF DUTIES:
    When a price was re-submitted for correction, the person who submitted
    it cannot approve it. AuthorizationError, nothing written.

PAYABLE EVENT:
    Approval writes a Pending payment_records row keyed by batch_number
    (amount = kilograms x final price). process_payment() later upserts that
    same row to Paid / Processing.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from ..extensions import db
from ..models import ApprovalRequest, CoffeeBatch, PaymentRecord, QualityAssessment
from ..statuses import (
    ApprovalType,
    AssessmentStatus,
    BatchStatus,
    PaymentStatus,
    ensure_transition,
)
from ..time_utils import utcnow
from ..validation import (
    AuthorizationError,
    ConflictError,
    ValidationError,
    coerce_amount,
    require_text,
    require_int_id,
)
from . import approval_service
from .concurrency import lock_for_update, run_with_retry


@dataclass(frozen=True)
class PriceDecision:
    """Outcome of one approve/reject call."""
    assessment_id: int
    batch_number: str
    decision: str  # approved, rejected
    decided_by_user_id: int
    final_price_ugx: int | None = None
    payable_amount_ugx: int | None = None
    payment_record_id: int | None = None
    comments: str | None = None
    rejection_reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "assessment_id": self.assessment_id,
            "batch_number": self.batch_number,
            "decision": self.decision,
            "decided_by_user_id": self.decided_by_user_id,
            "final_price_ugx": self.final_price_ugx,
            "payable_amount_ugx": self.payable_amount_ugx,
            "payment_record_id": self.payment_record_id,
            "comments": self.comments,
            "rejection_reason": self.rejection_reason,
        }


def batch_value_ugx(kilograms: float, price_per_kg_ugx: int) -> int:
    """kilograms x price, rounded half-up to whole UGX."""
    value = Decimal(str(kilograms)) * Decimal(price_per_kg_ugx)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _load_for_review(assessment_id) -> tuple[QualityAssessment, CoffeeBatch]:
    assessment = lock_for_update(
        db.session.query(QualityAssessment).filter_by(id=assessment_id)
    ).first()
    if not assessment:
        raise ValidationError(f"Quality assessment {assessment_id} not found")
    batch = lock_for_update(db.session.query(CoffeeBatch).filter_by(id=assessment.batch_id)).first()
    if not batch:
        raise ValidationError(f"Batch for assessment {assessment_id} not found")
    return assessment, batch


def _emit_payable(batch: CoffeeBatch, assessment: QualityAssessment, amount_ugx: int) -> PaymentRecord:
    record = lock_for_update(
        db.session.query(PaymentRecord).filter_by(batch_number=batch.batch_number)
    ).first()
    if record is None:
        record = PaymentRecord(
            batch_number=batch.batch_number,
            batch_id=batch.id,
            supplier_id=batch.supplier_id,
            status=PaymentStatus.PENDING.value,
            amount_paid_ugx=0,
            advance_recovered_ugx=0,
        )
        db.session.add(record)
    elif record.status != PaymentStatus.PENDING.value:
        raise ConflictError(f"Batch {batch.batch_number} already has a {record.status} payment")

    record.quality_assessment_id = assessment.id
    record.amount_ugx = amount_ugx
    record.balance_ugx = amount_ugx
    db.session.flush()
    return record


def approve_price(assessment_id, final_price_ugx, *, approver_user_id: int,
                  comments: str | None = None) -> PriceDecision:
    """
    Approve an assessment at a final UGX/kg price.

    Raises:
        ValidationError: missing/non-positive price, unknown assessment
        LifecycleError: assessment is not pending_admin_pricing
        AuthorizationError: approver submitted this price correction
    """
    assessment_id = require_int_id(assessment_id, "assessment_id")
    approver_user_id = require_int_id(approver_user_id, "approver_user_id")
    price = coerce_amount(final_price_ugx, "final_price_ugx")

    def _op():
        assessment, batch = _load_for_review(assessment_id)
        ensure_transition("Quality assessment", assessment.status, AssessmentStatus.APPROVED)

        if assessment.is_price_correction and assessment.price_submitted_by_user_id == approver_user_id:
            raise AuthorizationError("You cannot approve your own price update request")

        batch_status = ensure_transition("Batch", batch.status, BatchStatus.PAYABLE)

        assessment.final_price_ugx = price
        assessment.status = AssessmentStatus.APPROVED.value
        assessment.admin_comments = comments or None
        assessment.reviewed_by_user_id = approver_user_id
        assessment.reviewed_at = utcnow()
        batch.status = batch_status.value

        amount = batch_value_ugx(batch.kilograms, price)
        record = _emit_payable(batch, assessment, amount)
        db.session.commit()

        return PriceDecision(
            assessment_id=assessment.id,
            batch_number=batch.batch_number,
            decision=AssessmentStatus.APPROVED.value,
            decided_by_user_id=approver_user_id,
            final_price_ugx=price,
            payable_amount_ugx=amount,
            payment_record_id=record.id,
            comments=assessment.admin_comments,
        )

    return run_with_retry(_op)


def reject_price(assessment_id, reason: str, *, reviewer_user_id: int) -> PriceDecision:
    """
    Reject an assessment. The batch becomes quality_rejected (terminal)
    and is never paid.
    """
    assessment_id = require_int_id(assessment_id, "assessment_id")
    reviewer_user_id = require_int_id(reviewer_user_id, "reviewer_user_id")
    if reason is None or not str(reason).strip():
        raise ValidationError("Please provide rejection reason")
    reason = str(reason).strip()

    def _op():
        assessment, batch = _load_for_review(assessment_id)
        ensure_transition("Quality assessment", assessment.status, AssessmentStatus.REJECTED)
        batch_status = ensure_transition("Batch", batch.status, BatchStatus.QUALITY_REJECTED)

        assessment.status = AssessmentStatus.REJECTED.value
        assessment.rejection_reason = reason[:255]
        assessment.admin_comments = reason
        assessment.reviewed_by_user_id = reviewer_user_id
        assessment.reviewed_at = utcnow()
        batch.status = batch_status.value
        db.session.commit()

        return PriceDecision(
            assessment_id=assessment.id,
            batch_number=batch.batch_number,
            decision=AssessmentStatus.REJECTED.value,
            decided_by_user_id=reviewer_user_id,
            rejection_reason=reason,
        )

    return run_with_retry(_op)


def submit_price_correction(assessment_id, proposed_price_ugx, *, submitted_by_user_id: int,
                            submitted_by: str | None = None, reason: str | None = None) -> ApprovalRequest:
    """
    Re-submit the suggested price of a pending assessment.

    The submitter is recorded on the assessment so approve_price() can
    refuse a self-approval, and a Price Correction approval request is
    queued for a second authorizer.
    """
    assessment_id = require_int_id(assessment_id, "assessment_id")
    submitted_by_user_id = require_int_id(submitted_by_user_id, "submitted_by_user_id")
    price = coerce_amount(proposed_price_ugx, "proposed_price_ugx")
    requested_by = require_text(submitted_by or f"User {submitted_by_user_id}", "submitted_by")

    def _op():
        assessment, batch = _load_for_review(assessment_id)
        ensure_transition("Quality assessment", assessment.status, AssessmentStatus.PENDING_ADMIN_PRICING)

        previous = assessment.suggested_price_ugx
        assessment.suggested_price_ugx = price
        assessment.is_price_correction = True
        assessment.price_submitted_by_user_id = submitted_by_user_id

        request = approval_service.create_request(
            request_type=ApprovalType.PRICE_CORRECTION,
            title=f"Price Correction - {batch.batch_number}",
            description=reason or f"Price correction for batch {batch.batch_number}",
            amount_ugx=batch_value_ugx(batch.kilograms, price),
            requested_by=requested_by,
            department="Quality",
            details={
                "assessment_id": assessment.id,
                "batch_number": batch.batch_number,
                "previous_price_ugx": previous,
                "proposed_price_ugx": price,
                "submitted_by_user_id": submitted_by_user_id,
            },
        )
        db.session.commit()
        return request

    return run_with_retry(_op)


def list_pending_assessments() -> list[QualityAssessment]:
    return (
        db.session.query(QualityAssessment)
        .filter(QualityAssessment.status == AssessmentStatus.PENDING_ADMIN_PRICING.value)
        .order_by(QualityAssessment.created_at.asc(), QualityAssessment.id.asc())
        .all()
    )
