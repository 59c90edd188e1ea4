# Overview: Service-layer operations for coffee batch payments; encapsulates business logic and database work.

"""
Coffee Payment Processing

WHY: Paying a supplier for an approved batch moves cash, settles advance
debt and takes the batch into inventory. Either all of that happens or none
of it does.

ONE TRANSACTION:
    payment record upsert (Paid for cash, Processing for bank)
    batch: payable -> inventory
    FIFO advance recovery + ADVANCE_RECOVERY cash entry (cash in)
    PAYMENT cash entry (cash out, full requested amount)
    materialized cash balance
    bank transfers: a Pending approval request for the second authorizer
    follow-up rows (assessment status, day book, SMS)

AFTER COMMIT:
    The follow-ups run one by one. A failure there never undoes the payment;
    it comes back as a warning on the result and stays queued for retry.

NET EFFECT ON CASH:
    balance_after = balance_before + recovered - amount
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..models import CoffeeBatch, PaymentRecord, QualityAssessment, Supplier
from ..statuses import (
    ApprovalType,
    AssessmentStatus,
    BatchStatus,
    CashTransactionType,
    FollowUpKind,
    PaymentMethod,
    PaymentStatus,
    ensure_transition,
)
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    InsufficientFundsError,
    ValidationError,
    coerce_amount,
    require_int_id,
    require_text,
)
from . import advance_service, approval_service, cash_service, followup_service, notification_service
from .concurrency import lock_for_update, run_with_retry


@dataclass
class PaymentResult:
    """What process_payment() did. warnings lists follow-ups that failed after commit."""
    payment: dict
    balance_before_ugx: int
    balance_after_ugx: int
    advance_recovered_ugx: int
    advance_deltas: list[dict] = field(default_factory=list)
    cash_transaction_ids: list[int] = field(default_factory=list)
    approval_request_id: int | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def net_paid_ugx(self) -> int:
        return self.payment["amount_ugx"] - self.advance_recovered_ugx

    def to_dict(self) -> dict:
        return {
            "payment": self.payment,
            "balance_before_ugx": self.balance_before_ugx,
            "balance_after_ugx": self.balance_after_ugx,
            "advance_recovered_ugx": self.advance_recovered_ugx,
            "net_paid_ugx": self.net_paid_ugx,
            "advance_deltas": list(self.advance_deltas),
            "cash_transaction_ids": list(self.cash_transaction_ids),
            "approval_request_id": self.approval_request_id,
            "warnings": list(self.warnings),
        }


# =============================================================================
# PROCESS PAYMENT
# =============================================================================

def _raise_if_settled(batch_number: str) -> None:
    """
    Re-read the payment record, bypassing the identity map.

    Without row locks (SQLite) a competing payment for the same batch can
    commit between our record check and our balance read. Its debit then
    looks like a shortfall; report the conflict instead.
    """
    record = (
        db.session.query(PaymentRecord)
        .filter_by(batch_number=batch_number)
        .populate_existing()
        .first()
    )
    if record is not None and record.status != PaymentStatus.PENDING.value:
        raise ConflictError(f"Batch {batch_number} already has a {record.status} payment")


def process_payment(
    batch_number: str,
    supplier_id,
    assessment_id,
    method,
    amount_ugx,
    advance_recovery_ugx=0,
    notes: str | None = None,
    processed_by_user_id: int | None = None,
    processed_by: str | None = None,
) -> PaymentResult:
    """
    Pay a supplier for one payable batch.

    Args:
        batch_number: Batch being paid (unique payment key)
        supplier_id: Supplier who delivered the batch
        assessment_id: Approved quality assessment of the batch
        method: "Cash" or "Bank Transfer" (aliases: cash, bank)
        amount_ugx: Gross amount owed for the batch
        advance_recovery_ugx: Part of amount_ugx withheld to repay advances
        notes: Free text stored on the payment record
        processed_by_user_id: Acting finance user
        processed_by: Display name for ledger/day-book rows

    Raises:
        ValidationError: bad input, unknown or mismatched batch/assessment/supplier
        LifecycleError: batch is not payable
        ConflictError: batch already Paid or Processing
        InsufficientFundsError: amount exceeds the cash balance (nothing written)
    """
    batch_number = require_text(batch_number, "batch_number").upper()
    supplier_id = require_int_id(supplier_id, "supplier_id")
    assessment_id = require_int_id(assessment_id, "assessment_id")
    payment_method = PaymentMethod.parse(method)
    amount = coerce_amount(amount_ugx, "amount_ugx")
    recovery = coerce_amount(advance_recovery_ugx or 0, "advance_recovery_ugx", allow_zero=True)
    if recovery > amount:
        raise ValidationError("advance_recovery_ugx cannot exceed amount_ugx")
    if processed_by_user_id is not None:
        processed_by_user_id = require_int_id(processed_by_user_id, "processed_by_user_id")
    actor = (processed_by or "").strip() or (
        f"User {processed_by_user_id}" if processed_by_user_id is not None else "Finance Department"
    )

    is_cash = payment_method is PaymentMethod.CASH
    target_status = PaymentStatus.PAID if is_cash else PaymentStatus.PROCESSING

    def _op():
        # --- identity checks ---
        batch = lock_for_update(db.session.query(CoffeeBatch).filter_by(batch_number=batch_number)).first()
        if not batch:
            raise ValidationError(f"Batch {batch_number} not found")
        if batch.supplier_id != supplier_id:
            raise ValidationError(f"Batch {batch_number} does not belong to supplier {supplier_id}")

        assessment = lock_for_update(db.session.query(QualityAssessment).filter_by(id=assessment_id)).first()
        if not assessment or assessment.batch_id != batch.id:
            raise ValidationError(f"Quality assessment {assessment_id} does not match batch {batch_number}")

        supplier = db.session.get(Supplier, supplier_id)

        # --- one payment per batch ---
        record = lock_for_update(
            db.session.query(PaymentRecord).filter_by(batch_number=batch_number)
        ).first()
        if record is not None and record.status != PaymentStatus.PENDING.value:
            raise ConflictError(f"Batch {batch_number} already has a {record.status} payment")

        batch_status = ensure_transition("Batch", batch.status, BatchStatus.INVENTORY)

        # --- funds, re-read under lock ---
        balance_row, balance_before = cash_service.lock_balance()
        if balance_before < amount:
            _raise_if_settled(batch_number)
            raise InsufficientFundsError(balance_before, amount)

        now = utcnow()
        if record is None:
            record = PaymentRecord(
                batch_number=batch_number,
                batch_id=batch.id,
                supplier_id=supplier_id,
                status=PaymentStatus.PENDING.value,
            )
            db.session.add(record)

        record.status = ensure_transition("Payment", record.status, target_status).value
        record.quality_assessment_id = assessment.id
        record.method = payment_method.value
        record.amount_ugx = amount
        record.amount_paid_ugx = amount
        record.balance_ugx = 0
        record.notes = notes
        record.processed_by_user_id = processed_by_user_id
        record.paid_at = now if is_cash else None
        db.session.flush()

        batch.status = batch_status.value

        # --- advance recovery (cash back in) ---
        transaction_ids = []
        recovered = 0
        deltas = []
        if recovery:
            recovery_result = advance_service.recover(supplier_id, recovery, payment_record_id=record.id)
            recovered = recovery_result.recovered_ugx
            deltas = [d.to_dict() for d in recovery_result.deltas]
            if recovery_result.unrecovered_ugx:
                current_app.logger.info(
                    "Advance recovery for batch %s capped: requested %s, supplier owed %s",
                    batch_number, recovery, recovered,
                )
            if recovered:
                txn = cash_service.post_transaction(
                    transaction_type=CashTransactionType.ADVANCE_RECOVERY,
                    amount_ugx=recovered,
                    balance_after_ugx=balance_before + recovered,
                    actor=actor,
                    reference=batch_number,
                    notes=f"Advance recovered from payment for batch {batch_number}",
                    payment_record_id=record.id,
                    supplier_id=supplier_id,
                )
                transaction_ids.append(txn.id)
        record.advance_recovered_ugx = recovered

        # --- payment (cash out) ---
        balance_after = balance_before + recovered - amount
        txn = cash_service.post_transaction(
            transaction_type=CashTransactionType.PAYMENT,
            amount_ugx=amount,
            balance_after_ugx=balance_after,
            actor=actor,
            reference=batch_number,
            notes=f"{payment_method.value} payment to {supplier.name} for batch {batch_number}",
            payment_record_id=record.id,
            supplier_id=supplier_id,
        )
        transaction_ids.append(txn.id)
        cash_service.write_balance(balance_row, balance_after, actor)

        # --- second authorizer for bank transfers ---
        approval_request_id = None
        if not is_cash:
            request = approval_service.create_request(
                request_type=ApprovalType.BANK_TRANSFER,
                title=f"Coffee Payment - {supplier.name}",
                description=f"Bank transfer for coffee batch {batch_number}",
                amount_ugx=amount,
                requested_by=actor,
                details={
                    "payment_id": record.id,
                    "supplier": supplier.name,
                    "supplier_id": supplier_id,
                    "batch_number": batch_number,
                    "method": payment_method.value,
                    "advance_recovered_ugx": recovered,
                },
            )
            approval_request_id = request.id

        # --- follow-ups, run after commit ---
        tasks = [
            followup_service.enqueue(
                FollowUpKind.ASSESSMENT_STATUS,
                {
                    "assessment_id": assessment.id,
                    "status": (AssessmentStatus.PAID if is_cash else AssessmentStatus.SUBMITTED_TO_FINANCE).value,
                },
                payment_record_id=record.id,
            ),
            followup_service.enqueue(
                FollowUpKind.DAY_BOOK,
                {
                    "entry_type": "coffee_payment",
                    "description": f"Coffee payment - {supplier.name} - batch {batch_number} ({payment_method.value})",
                    "amount_ugx": amount,
                    "completed_by": actor,
                    "batch_number": batch_number,
                },
                payment_record_id=record.id,
            ),
        ]
        if supplier.phone and current_app.config.get("SMS_ENABLED", True):
            tasks.append(followup_service.enqueue(
                FollowUpKind.NOTIFICATION,
                {
                    "recipient": supplier.phone,
                    "message": notification_service.payment_message(
                        supplier_name=supplier.name,
                        batch_number=batch_number,
                        amount_ugx=amount,
                        advance_recovered_ugx=recovered,
                        method=payment_method.value,
                    ),
                    "message_type": "payment",
                },
                payment_record_id=record.id,
            ))

        db.session.commit()

        result = PaymentResult(
            payment=record.to_dict(),
            balance_before_ugx=balance_before,
            balance_after_ugx=balance_after,
            advance_recovered_ugx=recovered,
            advance_deltas=deltas,
            cash_transaction_ids=transaction_ids,
            approval_request_id=approval_request_id,
        )
        return result, [t.id for t in tasks]

    result, task_ids = run_with_retry(_op)
    current_app.logger.info(
        "Paid batch %s: %s UGX %s (recovered %s), balance %s -> %s",
        batch_number, payment_method.value, amount, result.advance_recovered_ugx,
        result.balance_before_ugx, result.balance_after_ugx,
    )

    result.warnings = followup_service.dispatch(task_ids)
    return result


# =============================================================================
# QUERIES
# =============================================================================

def get_payment(batch_number: str) -> PaymentRecord | None:
    batch_number = require_text(batch_number, "batch_number").upper()
    return db.session.query(PaymentRecord).filter_by(batch_number=batch_number).first()


def list_payable() -> list[PaymentRecord]:
    """Pending payment records whose batch is still payable, oldest first."""
    return (
        db.session.query(PaymentRecord)
        .join(CoffeeBatch, CoffeeBatch.id == PaymentRecord.batch_id)
        .filter(
            PaymentRecord.status == PaymentStatus.PENDING.value,
            CoffeeBatch.status == BatchStatus.PAYABLE.value,
        )
        .order_by(PaymentRecord.created_at.asc(), PaymentRecord.id.asc())
        .all()
    )
