import pytest
from sqlalchemy import update

from coffee_finance.models import (
    ApprovalRequest,
    CashTransaction,
    CoffeeBatch,
    DayBookEntry,
    FollowUpTask,
    PaymentRecord,
    QualityAssessment,
    SupplierAdvance,
)
from coffee_finance.services import cash_service, intake_service, payment_service, pricing_service
from coffee_finance.statuses import AssessmentStatus, BatchStatus, PaymentStatus
from coffee_finance.validation import ConflictError, InsufficientFundsError, LifecycleError, ValidationError


def _pay(lot, method="Cash", amount=None, recovery=0, **kwargs):
    return payment_service.process_payment(
        lot.batch_number,
        lot.supplier_id,
        lot.assessment_id,
        method,
        amount if amount is not None else lot.amount_ugx,
        advance_recovery_ugx=recovery,
        processed_by_user_id=4,
        processed_by="Finance Clerk",
        **kwargs,
    )


def test_cash_payment_debits_balance(make_payable, fund_cash, db_session):
    fund_cash(500000)
    lot = make_payable("CF-001", kilograms=100, price_ugx=2000)

    result = _pay(lot)

    assert result.warnings == []
    assert result.balance_before_ugx == 500000
    assert result.balance_after_ugx == 300000
    assert cash_service.current_balance() == 300000

    record = db_session.query(PaymentRecord).filter_by(batch_number="CF-001").one()
    assert record.status == PaymentStatus.PAID.value
    assert record.method == "Cash"
    assert record.amount_paid_ugx == 200000
    assert record.balance_ugx == 0
    assert record.paid_at is not None
    assert record.processed_by_user_id == 4

    assert db_session.get(CoffeeBatch, lot.batch_id).status == BatchStatus.INVENTORY.value
    assert db_session.get(QualityAssessment, lot.assessment_id).status == AssessmentStatus.PAID.value

    payment_txn = db_session.query(CashTransaction).filter_by(transaction_type="PAYMENT").one()
    assert payment_txn.amount_ugx == -200000
    assert payment_txn.balance_after_ugx == 300000
    assert payment_txn.payment_record_id == record.id

    entry = db_session.query(DayBookEntry).one()
    assert entry.batch_number == "CF-001"
    assert entry.amount_ugx == 200000


def test_advance_recovery_nets_against_payment(make_payable, make_advance, fund_cash, db_session):
    fund_cash(500000)
    advance = make_advance(50000, days_ago=7)
    lot = make_payable("CF-002", kilograms=75, price_ugx=2000)

    result = _pay(lot, recovery=50000)

    assert result.advance_recovered_ugx == 50000
    assert result.net_paid_ugx == 100000
    assert result.balance_after_ugx == 400000
    assert cash_service.current_balance() == 400000

    txns = db_session.query(CashTransaction).filter(CashTransaction.payment_record_id.isnot(None)) \
        .order_by(CashTransaction.id).all()
    assert [(t.transaction_type, t.amount_ugx, t.balance_after_ugx) for t in txns] == [
        ("ADVANCE_RECOVERY", 50000, 550000),
        ("PAYMENT", -150000, 400000),
    ]

    advance = db_session.get(SupplierAdvance, advance.id)
    assert advance.is_closed
    assert advance.outstanding_ugx == 0
    assert db_session.query(PaymentRecord).filter_by(batch_number="CF-002").one().advance_recovered_ugx == 50000


def test_recovery_without_open_advances_posts_payment_only(make_payable, fund_cash, db_session):
    fund_cash(500000)
    lot = make_payable("CF-003")

    result = _pay(lot, recovery=50000)

    assert result.advance_recovered_ugx == 0
    assert result.balance_after_ugx == 300000
    assert len(result.cash_transaction_ids) == 1


def test_insufficient_funds_changes_nothing(make_payable, fund_cash, db_session):
    fund_cash(100000)
    lot = make_payable("CF-004")

    with pytest.raises(InsufficientFundsError) as exc:
        _pay(lot)

    assert exc.value.available_ugx == 100000
    assert exc.value.requested_ugx == 200000
    assert cash_service.current_balance() == 100000
    assert db_session.query(CashTransaction).count() == 1
    assert db_session.query(FollowUpTask).count() == 0
    assert db_session.query(PaymentRecord).filter_by(batch_number="CF-004").one().status == "Pending"
    assert db_session.get(CoffeeBatch, lot.batch_id).status == BatchStatus.PAYABLE.value


def test_insufficient_funds_leaves_advances_alone(make_payable, make_advance, fund_cash, db_session):
    fund_cash(100000)
    advance = make_advance(50000)
    lot = make_payable("CF-005")

    with pytest.raises(InsufficientFundsError):
        _pay(lot, recovery=50000)

    assert db_session.get(SupplierAdvance, advance.id).outstanding_ugx == 50000


def test_payment_committed_during_balance_read_reports_conflict(make_payable, fund_cash, db_session, monkeypatch):
    fund_cash(300000)
    lot = make_payable("CF-001", kilograms=100, price_ugx=2000)
    real_lock_balance = cash_service.lock_balance

    def lock_after_competing_payment(account=None):
        # Another worker pays the same batch between our record check and our balance read
        db_session.execute(
            update(PaymentRecord)
            .where(PaymentRecord.batch_number == lot.batch_number)
            .values(status=PaymentStatus.PAID.value)
        )
        row, _ = real_lock_balance(account)
        return row, 100000

    monkeypatch.setattr(cash_service, "lock_balance", lock_after_competing_payment)

    with pytest.raises(ConflictError, match="already has a Paid payment"):
        _pay(lot)

    assert cash_service.current_balance() == 300000
    assert db_session.query(CashTransaction).filter_by(transaction_type="PAYMENT").count() == 0
    assert db_session.query(PaymentRecord).filter_by(batch_number="CF-001").one().status == "Pending"


def test_second_payment_for_batch_conflicts(make_payable, fund_cash, db_session):
    fund_cash(500000)
    lot = make_payable("CF-006")
    _pay(lot)

    with pytest.raises(ConflictError, match="already has a Paid payment"):
        _pay(lot)

    assert cash_service.current_balance() == 300000
    assert db_session.query(CashTransaction).filter_by(transaction_type="PAYMENT").count() == 1
    assert db_session.query(PaymentRecord).count() == 1


def test_bank_transfer_waits_for_approval(make_payable, fund_cash, db_session):
    fund_cash(500000)
    lot = make_payable("CF-007")

    result = _pay(lot, method="Bank Transfer")

    record = db_session.query(PaymentRecord).filter_by(batch_number="CF-007").one()
    assert record.status == PaymentStatus.PROCESSING.value
    assert record.method == "Bank Transfer"
    assert record.paid_at is None

    request = db_session.get(ApprovalRequest, result.approval_request_id)
    assert request.request_type == "Bank Transfer"
    assert request.status == "Pending"
    assert request.title == "Coffee Payment - Kato Farm"
    assert request.amount_ugx == 200000
    assert request.details["batch_number"] == "CF-007"
    assert request.details["payment_id"] == record.id

    assert db_session.get(QualityAssessment, lot.assessment_id).status == AssessmentStatus.SUBMITTED_TO_FINANCE.value
    # The cash ledger is debited at submission time
    assert cash_service.current_balance() == 300000

    with pytest.raises(ConflictError, match="Processing"):
        _pay(lot)


def test_cash_payment_creates_no_approval_request(make_payable, fund_cash, db_session):
    fund_cash(500000)
    result = _pay(make_payable("CF-008"))
    assert result.approval_request_id is None
    assert db_session.query(ApprovalRequest).count() == 0


def test_rejected_batch_cannot_be_paid(supplier, fund_cash, db_session):
    fund_cash(500000)
    batch = intake_service.receive_batch("CF-009", supplier.id, "robusta", 100)
    assessment = intake_service.submit_assessment(batch.id, assessed_by_user_id=1, suggested_price_ugx=2000)
    pricing_service.reject_price(assessment.id, "Foreign matter", reviewer_user_id=2)

    with pytest.raises(LifecycleError):
        payment_service.process_payment("CF-009", supplier.id, assessment.id, "Cash", 200000)

    assert db_session.query(PaymentRecord).count() == 0
    assert cash_service.current_balance() == 500000


def test_supplier_must_own_batch(make_payable, fund_cash, db_session):
    fund_cash(500000)
    lot = make_payable("CF-010")
    other = intake_service.register_supplier("OKELLO", "Okello Growers")

    with pytest.raises(ValidationError, match="does not belong"):
        payment_service.process_payment(lot.batch_number, other.id, lot.assessment_id, "Cash", lot.amount_ugx)


def test_assessment_must_match_batch(make_payable, fund_cash):
    fund_cash(900000)
    first = make_payable("CF-011")
    second = make_payable("CF-012")

    with pytest.raises(ValidationError, match="does not match"):
        payment_service.process_payment(first.batch_number, first.supplier_id, second.assessment_id,
                                        "Cash", first.amount_ugx)


@pytest.mark.parametrize("overrides,message", [
    ({"method": "Cheque"}, "Invalid payment method"),
    ({"amount": 0}, "amount_ugx"),
    ({"recovery": 250000}, "cannot exceed"),
])
def test_invalid_input_rejected_before_any_write(make_payable, fund_cash, db_session, overrides, message):
    fund_cash(500000)
    lot = make_payable("CF-013")

    with pytest.raises(ValidationError, match=message):
        _pay(lot, **overrides)

    assert cash_service.current_balance() == 500000
    assert db_session.query(PaymentRecord).one().status == "Pending"


def test_unknown_batch(supplier, fund_cash):
    fund_cash(500000)
    with pytest.raises(ValidationError, match="not found"):
        payment_service.process_payment("CF-404", supplier.id, 1, "Cash", 1000)


def test_balance_is_conserved_across_operations(make_payable, make_advance, fund_cash, db_session):
    fund_cash(1000000)
    make_advance(80000, days_ago=5)
    first = make_payable("CF-020", kilograms=150, price_ugx=2000)
    second = make_payable("CF-021", kilograms=100, price_ugx=1500)

    _pay(first, recovery=60000)
    cash_service.record_expense(45000, actor="Finance Clerk", category="Fuel", description="Generator")
    _pay(second, method="Bank", recovery=40000)
    fund_cash(5000)

    signed_total = sum(t.amount_ugx for t in db_session.query(CashTransaction).all())
    expected = 1000000 + 60000 - 300000 - 45000 + 20000 - 150000 + 5000
    assert signed_total == expected
    assert cash_service.current_balance() == expected

    report = cash_service.reconcile()
    assert report["in_balance"]
    assert report["replayed_ugx"] == expected


def test_payable_listing(make_payable, fund_cash):
    fund_cash(500000)
    first = make_payable("CF-030")
    make_payable("CF-031")

    assert [r.batch_number for r in payment_service.list_payable()] == ["CF-030", "CF-031"]
    _pay(first)
    assert [r.batch_number for r in payment_service.list_payable()] == ["CF-031"]

    assert payment_service.get_payment("cf-030").status == "Paid"
    assert payment_service.get_payment("CF-999") is None
