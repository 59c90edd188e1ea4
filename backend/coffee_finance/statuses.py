# Overview: Closed status vocabularies and their allowed transitions.

r"""
Status State Machines

Every status column in the ledger is one of the enums below, stored as the
enum's string value. Transitions are checked against an explicit table;
anything not listed is rejected with LifecycleError.

    CoffeeBatch:        pending_quality -> pending_pricing -> payable -> inventory
                                     \-> quality_rejected <-/
    QualityAssessment:  pending_admin_pricing -> approved -> submitted_to_finance -> paid
                                            \-> rejected        \-> paid
    PaymentRecord:      Pending -> Processing -> Paid
                              \-> Paid

Terminal states (no outgoing transitions): inventory, quality_rejected,
rejected, paid, Paid.
"""

from __future__ import annotations

import enum
from typing import Mapping, TypeVar

from .validation import LifecycleError, ValidationError


class BatchStatus(str, enum.Enum):
    PENDING_QUALITY = "pending_quality"
    PENDING_PRICING = "pending_pricing"
    PAYABLE = "payable"
    INVENTORY = "inventory"
    QUALITY_REJECTED = "quality_rejected"


class AssessmentStatus(str, enum.Enum):
    PENDING_ADMIN_PRICING = "pending_admin_pricing"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUBMITTED_TO_FINANCE = "submitted_to_finance"
    PAID = "paid"


class PaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    PAID = "Paid"


class PaymentMethod(str, enum.Enum):
    CASH = "Cash"
    BANK = "Bank Transfer"

    @classmethod
    def parse(cls, value) -> "PaymentMethod":
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
        aliases = {
            "cash": cls.CASH,
            "bank": cls.BANK,
            "bank_transfer": cls.BANK,
        }
        if key not in aliases:
            raise ValidationError(f"Invalid payment method: {value!r}. Must be Cash or Bank")
        return aliases[key]


class CashTransactionType(str, enum.Enum):
    DEPOSIT = "DEPOSIT"
    PAYMENT = "PAYMENT"
    ADVANCE_RECOVERY = "ADVANCE_RECOVERY"
    EXPENSE = "EXPENSE"

    @property
    def is_cash_in(self) -> bool:
        return self in CASH_IN_TYPES


CASH_IN_TYPES = frozenset({CashTransactionType.DEPOSIT, CashTransactionType.ADVANCE_RECOVERY})
CASH_OUT_TYPES = frozenset({CashTransactionType.PAYMENT, CashTransactionType.EXPENSE})

TRANSACTION_PENDING = "pending"
TRANSACTION_CONFIRMED = "confirmed"


class ApprovalStatus(str, enum.Enum):
    PENDING = "Pending"


class ApprovalType(str, enum.Enum):
    BANK_TRANSFER = "Bank Transfer"
    PRICE_CORRECTION = "Price Correction"


class FollowUpStatus(str, enum.Enum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


class FollowUpKind(str, enum.Enum):
    ASSESSMENT_STATUS = "assessment_status"
    DAY_BOOK = "day_book"
    NOTIFICATION = "notification"


BATCH_TRANSITIONS: Mapping[BatchStatus, frozenset[BatchStatus]] = {
    BatchStatus.PENDING_QUALITY: frozenset({BatchStatus.PENDING_PRICING, BatchStatus.QUALITY_REJECTED}),
    BatchStatus.PENDING_PRICING: frozenset({BatchStatus.PAYABLE, BatchStatus.QUALITY_REJECTED}),
    BatchStatus.PAYABLE: frozenset({BatchStatus.INVENTORY}),
    BatchStatus.INVENTORY: frozenset(),
    BatchStatus.QUALITY_REJECTED: frozenset(),
}

ASSESSMENT_TRANSITIONS: Mapping[AssessmentStatus, frozenset[AssessmentStatus]] = {
    # A price correction re-enters pending_admin_pricing with a new suggested price
    AssessmentStatus.PENDING_ADMIN_PRICING: frozenset({
        AssessmentStatus.PENDING_ADMIN_PRICING,
        AssessmentStatus.APPROVED,
        AssessmentStatus.REJECTED,
    }),
    AssessmentStatus.APPROVED: frozenset({AssessmentStatus.PAID, AssessmentStatus.SUBMITTED_TO_FINANCE}),
    AssessmentStatus.SUBMITTED_TO_FINANCE: frozenset({AssessmentStatus.PAID}),
    AssessmentStatus.REJECTED: frozenset(),
    AssessmentStatus.PAID: frozenset(),
}

PAYMENT_TRANSITIONS: Mapping[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PROCESSING, PaymentStatus.PAID}),
    PaymentStatus.PROCESSING: frozenset({PaymentStatus.PAID}),
    PaymentStatus.PAID: frozenset(),
}

_TABLES = {
    BatchStatus: BATCH_TRANSITIONS,
    AssessmentStatus: ASSESSMENT_TRANSITIONS,
    PaymentStatus: PAYMENT_TRANSITIONS,
}

S = TypeVar("S", BatchStatus, AssessmentStatus, PaymentStatus)


def coerce_status(enum_cls: type[S], value) -> S:
    """Map a stored string onto its enum, rejecting anything outside the vocabulary."""
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(s.value for s in enum_cls)
        raise LifecycleError(f"Invalid {enum_cls.__name__} '{value}'. Must be one of: {allowed}")


def can_transition(from_status: S, to_status: S) -> bool:
    table = _TABLES[type(from_status)]
    return to_status in table[from_status]


def ensure_transition(entity: str, current, target: S) -> S:
    """
    Validate a transition and return the target status.

    Raises:
        LifecycleError: if current -> target is not in the table
    """
    enum_cls = type(target)
    current_status = coerce_status(enum_cls, current)
    if not can_transition(current_status, target):
        raise LifecycleError(
            f"{entity} cannot move from '{current_status.value}' to '{target.value}'"
        )
    return target
