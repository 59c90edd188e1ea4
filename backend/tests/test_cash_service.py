import pytest

from coffee_finance.models import CashBalance, CashTransaction, DayBookEntry, FollowUpTask
from coffee_finance.services import cash_service
from coffee_finance.statuses import CashTransactionType
from coffee_finance.validation import ConflictError, InsufficientFundsError, ValidationError


def _raw_transaction(db_session, transaction_type, amount_ugx):
    db_session.add(CashTransaction(
        transaction_type=transaction_type.value,
        amount_ugx=amount_ugx,
        balance_after_ugx=0,
        status="confirmed",
    ))
    db_session.commit()


def test_fresh_ledger_is_zero(db_session):
    assert cash_service.current_balance() == 0
    assert cash_service.reconcile()["in_balance"]


def test_missing_row_falls_back_to_replay(db_session):
    _raw_transaction(db_session, CashTransactionType.DEPOSIT, 500000)
    _raw_transaction(db_session, CashTransactionType.PAYMENT, -120000)
    _raw_transaction(db_session, CashTransactionType.ADVANCE_RECOVERY, 20000)

    assert db_session.query(CashBalance).count() == 0
    assert cash_service.current_balance() == 400000


def test_replay_uses_type_not_sign(db_session):
    # Legacy rows stored with a positive amount still count as cash out
    _raw_transaction(db_session, CashTransactionType.DEPOSIT, 100000)
    _raw_transaction(db_session, CashTransactionType.EXPENSE, 30000)
    assert cash_service.replay_balance() == 70000


def test_zero_row_falls_back_to_replay(db_session):
    _raw_transaction(db_session, CashTransactionType.DEPOSIT, 250000)
    db_session.add(CashBalance(account="MAIN", current_balance_ugx=0))
    db_session.commit()
    assert cash_service.current_balance() == 250000


def test_nonzero_row_wins_over_replay(db_session):
    _raw_transaction(db_session, CashTransactionType.DEPOSIT, 250000)
    db_session.add(CashBalance(account="MAIN", current_balance_ugx=90000))
    db_session.commit()

    assert cash_service.current_balance() == 90000
    report = cash_service.reconcile()
    assert report["drift_ugx"] == 90000 - 250000
    assert not report["in_balance"]


def test_deposit_updates_materialized_balance(fund_cash, db_session):
    txn = fund_cash(500000)
    assert txn.amount_ugx == 500000
    assert txn.balance_after_ugx == 500000
    assert txn.transaction_type == "DEPOSIT"
    assert txn.status == "confirmed"

    row = db_session.query(CashBalance).one()
    assert row.current_balance_ugx == 500000
    assert row.updated_by == "Test Treasurer"

    fund_cash(25000)
    assert cash_service.current_balance() == 525000
    assert cash_service.reconcile()["in_balance"]


def test_expense_debits_and_writes_day_book(fund_cash, db_session):
    fund_cash(100000)
    txn = cash_service.record_expense(40000, actor="Finance Clerk", category="Transport",
                                      description="Truck hire to Kampala")

    assert txn.amount_ugx == -40000
    assert txn.balance_after_ugx == 60000
    assert cash_service.current_balance() == 60000

    entry = db_session.query(DayBookEntry).one()
    assert entry.entry_type == "expense"
    assert entry.amount_ugx == 40000
    assert db_session.query(FollowUpTask).one().status == "done"


def test_expense_over_balance_writes_nothing(fund_cash, db_session):
    fund_cash(10000)
    with pytest.raises(InsufficientFundsError):
        cash_service.record_expense(40000, actor="Finance Clerk", category="Transport", description="Truck")

    assert cash_service.current_balance() == 10000
    assert db_session.query(CashTransaction).count() == 1
    assert db_session.query(FollowUpTask).count() == 0


def test_deposit_validates_amount(db_session):
    with pytest.raises(ValidationError):
        cash_service.record_deposit(0, actor="Test")
    with pytest.raises(ValidationError):
        cash_service.record_deposit("12.5", actor="Test")
    with pytest.raises(ValidationError):
        cash_service.record_deposit(100, actor="  ")


def test_list_transactions_newest_first(fund_cash):
    fund_cash(100)
    fund_cash(200)
    txns = cash_service.list_transactions()
    assert [t.amount_ugx for t in txns] == [200, 100]
    assert cash_service.list_transactions(transaction_type="PAYMENT") == []


def test_pending_deposit_counts_only_once_confirmed(fund_cash, db_session):
    fund_cash(100000)
    pending = cash_service.record_deposit(50000, actor="Field Clerk", reference="DEP-77", pending=True)

    assert pending.status == "pending"
    assert pending.confirmed_by is None
    assert pending.balance_after_ugx == 100000
    assert cash_service.current_balance() == 100000
    assert cash_service.replay_balance() == 100000
    assert cash_service.reconcile()["in_balance"]
    assert [t.id for t in cash_service.list_pending_deposits()] == [pending.id]

    confirmed = cash_service.confirm_deposit(pending.id, actor="Finance Manager")

    assert confirmed.status == "confirmed"
    assert confirmed.confirmed_by == "Finance Manager"
    assert confirmed.confirmed_at is not None
    assert confirmed.balance_after_ugx == 150000
    assert cash_service.current_balance() == 150000
    assert cash_service.replay_balance() == 150000
    assert cash_service.list_pending_deposits() == []


def test_pending_deposit_on_empty_ledger_is_ignored_by_replay(db_session):
    pending = cash_service.record_deposit(80000, actor="Field Clerk", pending=True)

    assert db_session.query(CashBalance).count() == 0
    assert cash_service.current_balance() == 0

    cash_service.confirm_deposit(pending.id, actor="Finance Manager")
    assert db_session.query(CashBalance).one().current_balance_ugx == 80000


def test_confirm_deposit_rejects_wrong_rows(fund_cash, db_session):
    confirmed = fund_cash(100000)
    with pytest.raises(ConflictError, match="already confirmed"):
        cash_service.confirm_deposit(confirmed.id, actor="Finance Manager")

    expense = cash_service.record_expense(1000, actor="Clerk", category="Fuel", description="Generator")
    with pytest.raises(ValidationError, match="is not a deposit"):
        cash_service.confirm_deposit(expense.id, actor="Finance Manager")

    with pytest.raises(ValidationError, match="not found"):
        cash_service.confirm_deposit(999999, actor="Finance Manager")

    assert cash_service.current_balance() == 99000
