# Overview: Service-layer operations for the cash balance; encapsulates business logic and database work.

"""
Cash Balance Tracker

WHY: Every coffee payment is checked against, and debited from, a single
cash-on-hand figure. That figure exists twice:
- materialized: the cash_balances row (fast, can lag or be missing)
- derived: the sum of confirmed cash_transactions (the audit trail)

RULES:
- The materialized value wins whenever it exists and is nonzero.
- Only a missing or exactly-zero row falls back to summing the log.
- Inside a mutating transaction the balance is re-read under lock
  (lock_balance), never carried over from an earlier read.
- cash_transactions are append-only, with one exception: a deposit can be
  recorded pending (counted cash not yet verified) and is later confirmed in
  place. Confirming sets confirmed_by/confirmed_at and credits the balance.
  Pending rows never count toward any balance.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import CashBalance, CashTransaction
from ..statuses import (
    CASH_OUT_TYPES,
    CashTransactionType,
    FollowUpKind,
    TRANSACTION_CONFIRMED,
    TRANSACTION_PENDING,
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
from .concurrency import lock_for_update, run_with_retry


def _account(account: str | None) -> str:
    return account or current_app.config.get("CASH_ACCOUNT", "MAIN")


def _latest_balance_query(account: str):
    return (
        db.session.query(CashBalance)
        .filter(CashBalance.account == account)
        .order_by(CashBalance.updated_at.desc(), CashBalance.id.desc())
    )


def replay_balance() -> int:
    """
    Sum all confirmed transactions: cash-in types minus cash-out types.

    Magnitudes are taken with abs() so a row stored with the wrong sign
    still counts in the direction its type says.
    """
    rows = (
        db.session.query(
            CashTransaction.transaction_type,
            func.coalesce(func.sum(func.abs(CashTransaction.amount_ugx)), 0),
        )
        .filter(CashTransaction.status == TRANSACTION_CONFIRMED)
        .group_by(CashTransaction.transaction_type)
        .all()
    )

    total = 0
    for transaction_type, magnitude in rows:
        kind = CashTransactionType(transaction_type)
        if kind.is_cash_in:
            total += int(magnitude)
        elif kind in CASH_OUT_TYPES:
            total -= int(magnitude)
    return total


def current_balance(account: str | None = None) -> int:
    """Read-only balance for display and pre-checks."""
    row = _latest_balance_query(_account(account)).first()
    if row is not None and row.current_balance_ugx:
        return int(row.current_balance_ugx)
    return replay_balance()


def lock_balance(account: str | None = None) -> tuple[CashBalance | None, int]:
    """
    Read the balance inside the caller's transaction, locking the row.

    Returns (row, balance). row is None on a freshly initialized ledger;
    write_balance() creates it.
    """
    row = lock_for_update(_latest_balance_query(_account(account))).first()
    if row is not None and row.current_balance_ugx:
        return row, int(row.current_balance_ugx)
    return row, replay_balance()


def write_balance(row: CashBalance | None, new_balance_ugx: int, updated_by: str | None,
                  account: str | None = None) -> CashBalance:
    """
    Persist the materialized balance.

    The update carries the row's version_id, so a concurrent writer that
    read the same version gets StaleDataError at flush.
    """
    if row is None:
        row = CashBalance(account=_account(account), current_balance_ugx=new_balance_ugx, updated_by=updated_by)
        db.session.add(row)
    else:
        row.current_balance_ugx = new_balance_ugx
        row.updated_by = updated_by
        row.updated_at = utcnow()
    db.session.flush()
    return row


def post_transaction(
    *,
    transaction_type: CashTransactionType,
    amount_ugx: int,
    balance_after_ugx: int,
    actor: str | None,
    reference: str | None = None,
    notes: str | None = None,
    payment_record_id: int | None = None,
    supplier_id: int | None = None,
    pending: bool = False,
) -> CashTransaction:
    """
    Append one cash transaction, confirmed unless pending=True.

    amount_ugx is the magnitude; the sign comes from the type.
    """
    signed = abs(amount_ugx) if transaction_type.is_cash_in else -abs(amount_ugx)
    now = utcnow()
    txn = CashTransaction(
        transaction_type=transaction_type.value,
        amount_ugx=signed,
        balance_after_ugx=balance_after_ugx,
        reference=reference,
        notes=notes,
        payment_record_id=payment_record_id,
        supplier_id=supplier_id,
        status=TRANSACTION_PENDING if pending else TRANSACTION_CONFIRMED,
        created_by=actor,
        confirmed_by=None if pending else actor,
        confirmed_at=None if pending else now,
        created_at=now,
    )
    db.session.add(txn)
    db.session.flush()
    return txn


def record_deposit(amount_ugx, *, actor: str, reference: str | None = None,
                   notes: str | None = None, pending: bool = False) -> CashTransaction:
    """
    Cash received into the finance float (bank withdrawal, sales receipts).

    With pending=True the deposit is only logged; the balance is credited
    when a finance user confirms it (confirm_deposit). Until then
    balance_after_ugx holds the balance at the time it was logged.
    """
    amount = coerce_amount(amount_ugx, "amount_ugx")
    actor = require_text(actor, "actor")

    def _op():
        row, balance = lock_balance()
        new_balance = balance if pending else balance + amount
        txn = post_transaction(
            transaction_type=CashTransactionType.DEPOSIT,
            amount_ugx=amount,
            balance_after_ugx=new_balance,
            actor=actor,
            reference=reference or f"DEP-{utcnow():%Y%m%d%H%M%S%f}",
            notes=notes,
            pending=pending,
        )
        if not pending:
            write_balance(row, new_balance, actor)
        db.session.commit()
        return txn

    return run_with_retry(_op)


def confirm_deposit(transaction_id, *, actor: str) -> CashTransaction:
    """
    Confirm a pending deposit and credit it to the balance.

    Raises:
        ValidationError: unknown id, or the row is not a deposit
        ConflictError: the deposit is already confirmed
    """
    transaction_id = require_int_id(transaction_id, "transaction_id")
    actor = require_text(actor, "actor")

    def _op():
        txn = lock_for_update(db.session.query(CashTransaction).filter_by(id=transaction_id)).first()
        if not txn:
            raise ValidationError(f"Cash transaction {transaction_id} not found")
        if txn.transaction_type != CashTransactionType.DEPOSIT.value:
            raise ValidationError(f"Cash transaction {transaction_id} is not a deposit")
        if txn.status != TRANSACTION_PENDING:
            raise ConflictError(f"Deposit {transaction_id} is already {txn.status}")

        row, balance = lock_balance()
        new_balance = balance + abs(int(txn.amount_ugx))
        txn.status = TRANSACTION_CONFIRMED
        txn.confirmed_by = actor
        txn.confirmed_at = utcnow()
        txn.balance_after_ugx = new_balance
        # The balance row's version check serializes concurrent confirmations
        write_balance(row, new_balance, actor)
        db.session.commit()
        return txn

    txn = run_with_retry(_op)
    current_app.logger.info("Deposit #%s confirmed by %s: UGX %s", txn.id, actor, txn.amount_ugx)
    return txn


def list_pending_deposits() -> list[CashTransaction]:
    return (
        db.session.query(CashTransaction)
        .filter(
            CashTransaction.transaction_type == CashTransactionType.DEPOSIT.value,
            CashTransaction.status == TRANSACTION_PENDING,
        )
        .order_by(CashTransaction.created_at.asc(), CashTransaction.id.asc())
        .all()
    )


def record_expense(amount_ugx, *, actor: str, category: str, description: str,
                   reference: str | None = None) -> CashTransaction:
    """
    Pay an operating expense out of cash.

    Raises:
        InsufficientFundsError: expense exceeds the balance (nothing written)
    """
    from . import followup_service

    amount = coerce_amount(amount_ugx, "amount_ugx")
    actor = require_text(actor, "actor")
    category = require_text(category, "category")
    description = require_text(description, "description")

    def _op():
        row, balance = lock_balance()
        if balance < amount:
            raise InsufficientFundsError(balance, amount)

        new_balance = balance - amount
        txn = post_transaction(
            transaction_type=CashTransactionType.EXPENSE,
            amount_ugx=amount,
            balance_after_ugx=new_balance,
            actor=actor,
            reference=reference or f"EXP-{utcnow():%Y%m%d%H%M%S%f}",
            notes=f"{category}: {description}",
        )
        write_balance(row, new_balance, actor)
        task = followup_service.enqueue(
            FollowUpKind.DAY_BOOK,
            {
                "entry_type": "expense",
                "description": f"{category}: {description}",
                "amount_ugx": amount,
                "completed_by": actor,
            },
        )
        db.session.commit()
        return txn, task.id

    txn, task_id = run_with_retry(_op)
    followup_service.dispatch([task_id])
    return txn


def reconcile(account: str | None = None) -> dict:
    """
    Compare the materialized balance with a replay of the transaction log.

    drift_ugx != 0 means the projection and the audit trail disagree.
    """
    row = _latest_balance_query(_account(account)).first()
    replayed = replay_balance()
    materialized = int(row.current_balance_ugx) if row is not None else None
    return {
        "account": _account(account),
        "materialized_ugx": materialized,
        "replayed_ugx": replayed,
        "drift_ugx": (materialized - replayed) if materialized is not None else 0,
        "in_balance": materialized is None or materialized == replayed,
    }


def list_transactions(*, limit: int = 100, transaction_type: str | None = None) -> list[CashTransaction]:
    q = db.session.query(CashTransaction)
    if transaction_type:
        q = q.filter(CashTransaction.transaction_type == CashTransactionType(transaction_type).value)
    return q.order_by(CashTransaction.id.desc()).limit(limit).all()
