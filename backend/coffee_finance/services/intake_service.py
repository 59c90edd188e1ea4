# Overview: Service-layer operations for supplier and batch intake; encapsulates business logic and database work.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import CoffeeBatch, QualityAssessment, Supplier
from ..statuses import AssessmentStatus, BatchStatus, ensure_transition
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    ValidationError,
    coerce_amount,
    coerce_percentage,
    require_int_id,
    require_text,
)
from .concurrency import lock_for_update, run_with_retry


COFFEE_TYPES = {"arabica", "robusta"}

GRADE_FIELDS = (
    "moisture",
    "group1_defects",
    "group2_defects",
    "pods",
    "husks",
    "foreign_matter",
    "outturn",
    "robusta_in_arabica",
)


def register_supplier(code: str, name: str, phone: str | None = None) -> Supplier:
    code = require_text(code, "code").upper()
    name = require_text(name, "name")

    def _op():
        if db.session.query(Supplier).filter_by(code=code).first():
            raise ConflictError(f"Supplier code {code} already exists")
        supplier = Supplier(code=code, name=name, phone=(phone or "").strip() or None, is_active=True)
        db.session.add(supplier)
        db.session.commit()
        return supplier

    return run_with_retry(_op)


def receive_batch(batch_number: str, supplier_id, coffee_type: str, kilograms, bags: int = 0,
                  *, received_by_user_id: int | None = None) -> CoffeeBatch:
    """
    Record a delivered batch. It waits in pending_quality until graded.

    Raises:
        ValidationError: bad weight, unknown supplier or coffee type
        ConflictError: batch_number already used
    """
    batch_number = require_text(batch_number, "batch_number").upper()
    supplier_id = require_int_id(supplier_id, "supplier_id")
    coffee_type = require_text(coffee_type, "coffee_type").lower()
    if coffee_type not in COFFEE_TYPES:
        raise ValidationError(f"coffee_type must be one of {sorted(COFFEE_TYPES)}")
    try:
        kilograms = float(kilograms)
    except (TypeError, ValueError):
        raise ValidationError("kilograms must be a number")
    if kilograms <= 0:
        raise ValidationError("kilograms must be > 0")
    if bags is None or int(bags) < 0:
        raise ValidationError("bags must be >= 0")

    def _op():
        supplier = db.session.get(Supplier, supplier_id)
        if not supplier:
            raise ValidationError(f"Supplier {supplier_id} not found")
        if db.session.query(CoffeeBatch).filter_by(batch_number=batch_number).first():
            raise ConflictError(f"Batch {batch_number} already exists")

        batch = CoffeeBatch(
            batch_number=batch_number,
            supplier_id=supplier.id,
            coffee_type=coffee_type,
            kilograms=kilograms,
            bags=int(bags),
            status=BatchStatus.PENDING_QUALITY.value,
            received_by_user_id=received_by_user_id,
        )
        db.session.add(batch)
        db.session.commit()
        return batch

    return run_with_retry(_op)


def _auto_reject_reasons(coffee_type: str, grades: dict) -> list[str]:
    """Arabica lots with too much robusta or too many group-1 defects are not priced."""
    if coffee_type != "arabica":
        return []
    reasons = []
    max_robusta = current_app.config.get("ARABICA_MAX_ROBUSTA_PCT", 3)
    max_group1 = current_app.config.get("ARABICA_MAX_GROUP1_PCT", 12)
    robusta = grades.get("robusta_in_arabica")
    group1 = grades.get("group1_defects")
    if robusta is not None and robusta > max_robusta:
        reasons.append(f"Robusta in Arabica exceeds {max_robusta:g}% ({robusta:g}%)")
    if group1 is not None and group1 > max_group1:
        reasons.append(f"G1 defects exceed {max_group1:g}% ({group1:g}%)")
    return reasons


def submit_assessment(batch_id, *, assessed_by_user_id: int, suggested_price_ugx,
                      comments: str | None = None, **grades) -> QualityAssessment:
    """
    Grade a batch and send it for admin pricing.

    Arabica lots over the quality thresholds are rejected on the spot:
    the assessment is stored as rejected and the batch as quality_rejected.
    """
    batch_id = require_int_id(batch_id, "batch_id")
    unknown = set(grades) - set(GRADE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown grading fields: {', '.join(sorted(unknown))}")
    clean_grades = {k: coerce_percentage(v, k) for k, v in grades.items()}
    price = coerce_amount(suggested_price_ugx, "suggested_price_ugx")

    def _op():
        batch = lock_for_update(db.session.query(CoffeeBatch).filter_by(id=batch_id)).first()
        if not batch:
            raise ValidationError(f"Batch {batch_id} not found")

        open_assessment = (
            db.session.query(QualityAssessment)
            .filter(
                QualityAssessment.batch_id == batch.id,
                QualityAssessment.status != AssessmentStatus.REJECTED.value,
            )
            .first()
        )
        if open_assessment:
            raise ConflictError(f"Batch {batch.batch_number} already has assessment {open_assessment.id}")

        reasons = _auto_reject_reasons(batch.coffee_type, clean_grades)
        assessment = QualityAssessment(
            batch_id=batch.id,
            suggested_price_ugx=price,
            comments=comments,
            assessed_by_user_id=assessed_by_user_id,
            status=AssessmentStatus.PENDING_ADMIN_PRICING.value,
            **clean_grades,
        )
        if reasons:
            assessment.status = AssessmentStatus.REJECTED.value
            assessment.rejection_reason = "; ".join(reasons)
            assessment.reviewed_at = utcnow()
            batch.status = ensure_transition("Batch", batch.status, BatchStatus.QUALITY_REJECTED).value
        else:
            batch.status = ensure_transition("Batch", batch.status, BatchStatus.PENDING_PRICING).value

        db.session.add(assessment)
        db.session.commit()
        return assessment

    return run_with_retry(_op)
